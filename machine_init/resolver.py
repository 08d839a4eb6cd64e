from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator

from machine_init.catalog import (
    Capability,
    ExtensionCapability,
    KnownCapability,
    coerce,
    sorted_capabilities,
    to_string,
)
from machine_init.context import InitContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectionSet:
    members: frozenset[Capability]

    def __post_init__(self) -> None:
        for member in self.members:
            if not isinstance(member, (KnownCapability, ExtensionCapability)):
                raise TypeError(f"SelectionSet members must be capabilities (got {member!r})")

    @classmethod
    def of(cls, items: Iterable[str | Capability]) -> "SelectionSet":
        return cls(members=frozenset(coerce(item) for item in items))

    def __contains__(self, item: object) -> bool:
        return item in self.members

    def __iter__(self) -> Iterator[Capability]:
        return iter(self.ordered())

    def __len__(self) -> int:
        return len(self.members)

    def ordered(self) -> tuple[Capability, ...]:
        return sorted_capabilities(self.members)

    def names(self) -> tuple[str, ...]:
        return tuple(to_string(member) for member in self.ordered())

    def with_added(self, capability: Capability) -> "SelectionSet":
        if capability in self.members:
            return self
        return SelectionSet(members=self.members | {capability})

    def without(self, capability: Capability) -> "SelectionSet":
        if capability not in self.members:
            return self
        return SelectionSet(members=self.members - {capability})


@dataclass(frozen=True)
class ResolveSwitches:
    require_static_ip_provisioner: bool = False
    accelerator_arch: bool = False
    post_init_script_supplied: bool = False

    @classmethod
    def from_context(
        cls, context: InitContext, *, require_static_ip_provisioner: bool = False
    ) -> "ResolveSwitches":
        return cls(
            require_static_ip_provisioner=require_static_ip_provisioner,
            accelerator_arch=context.is_nvidia,
            post_init_script_supplied=context.post_init_script is not None,
        )


ImplicationRule = Callable[[SelectionSet, ResolveSwitches], SelectionSet]


def _insert_accelerator_driver(selection: SelectionSet, switches: ResolveSwitches) -> SelectionSet:
    if switches.accelerator_arch:
        return selection.with_added(KnownCapability.NVIDIA_DRIVER)
    return selection


def _insert_static_ip(selection: SelectionSet, switches: ResolveSwitches) -> SelectionSet:
    if KnownCapability.STATIC_VOLUME_PROVISIONER in selection and switches.require_static_ip_provisioner:
        return selection.with_added(KnownCapability.STATIC_IP_PROVISIONER)
    return selection


def _single_interpreter(selection: SelectionSet, switches: ResolveSwitches) -> SelectionSet:
    if KnownCapability.ANACONDA in selection and KnownCapability.PYTHON in selection:
        logger.info("anaconda specified, overriding python capability")
        return selection.without(KnownCapability.PYTHON)
    return selection


def _insert_post_init(selection: SelectionSet, switches: ResolveSwitches) -> SelectionSet:
    if not switches.post_init_script_supplied:
        return selection
    if KnownCapability.POST_INIT_SCRIPT not in selection:
        logger.warning(
            "post-init script supplied but '%s' not requested; adding it to the selection",
            KnownCapability.POST_INIT_SCRIPT.value,
        )
    return selection.with_added(KnownCapability.POST_INIT_SCRIPT)


# Order matters: each rule sees the result of the ones before it.
IMPLICATION_RULES: tuple[ImplicationRule, ...] = (
    _insert_accelerator_driver,
    _insert_static_ip,
    _single_interpreter,
    _insert_post_init,
)


def resolve(
    requested: Iterable[str | Capability],
    *,
    switches: ResolveSwitches | None = None,
) -> SelectionSet:
    """Normalize requested capability names into a selection set.

    Unknown names pass through as extension capabilities. The implication rules
    only add members or drop the one interpreter that loses to the full
    distribution, so resolving an already-resolved set returns it unchanged.
    """

    if isinstance(requested, str):
        raise TypeError("requested must be an iterable of capability names, not a single string")
    active = switches or ResolveSwitches()

    selection = SelectionSet.of(requested)
    for rule in IMPLICATION_RULES:
        selection = rule(selection, active)

    logger.debug("Resolved capabilities: %s", ", ".join(selection.names()) or "<none>")
    return selection
