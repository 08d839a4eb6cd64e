from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Protocol

from machine_init.catalog import INTERPRETERS, KnownCapability
from machine_init.context import InitContext, is_nvidia_arch
from machine_init.errors import (
    ArchitectureMismatch,
    ConflictingCapabilities,
    InitScriptError,
    MissingRequiredCapability,
    MissingRequiredInput,
)
from machine_init.resolver import SelectionSet

logger = logging.getLogger(__name__)

_C = KnownCapability


class Rule(Protocol):
    subject: KnownCapability

    @property
    def name(self) -> str:
        ...

    def check(self, selection: SelectionSet, context: InitContext) -> InitScriptError | None:
        """Return the violation for this selection/context, or None when satisfied."""


def _quoted(items: tuple[KnownCapability, ...]) -> str:
    return ", ".join(f"'{item.value}'" for item in items)


@dataclass(frozen=True)
class RequiresCapability:
    """`subject` needs every capability in `requires` (or at least one when `any_of`)."""

    subject: KnownCapability
    requires: tuple[KnownCapability, ...]
    any_of: bool = False
    reason: str | None = None

    @property
    def name(self) -> str:
        joiner = "|" if self.any_of else "+"
        return f"{self.subject.value}.requires.{joiner.join(c.value for c in self.requires)}"

    def check(self, selection: SelectionSet, context: InitContext) -> InitScriptError | None:
        if self.subject not in selection:
            return None

        missing = tuple(c for c in self.requires if c not in selection)
        if self.any_of:
            if len(missing) < len(self.requires):
                return None
            message = f"'{self.subject.value}' requires one of {_quoted(self.requires)}"
        else:
            if not missing:
                return None
            message = f"'{self.subject.value}' requires {_quoted(missing)}"
        if self.reason:
            message = f"{message} ({self.reason})"

        return MissingRequiredCapability(
            message,
            capability=self.subject.value,
            missing=tuple(c.value for c in missing),
            rule=self.name,
        )


@dataclass(frozen=True)
class RequiresArchitecture:
    subject: KnownCapability
    predicate: Callable[[str], bool]
    family: str

    @property
    def name(self) -> str:
        return f"{self.subject.value}.requires_arch.{self.family}"

    def check(self, selection: SelectionSet, context: InitContext) -> InitScriptError | None:
        if self.subject not in selection or self.predicate(context.arch):
            return None
        return ArchitectureMismatch(
            f"specified '{self.subject.value}' but arch type is '{context.arch}' (not {self.family})",
            capability=self.subject.value,
            arch=context.arch,
            rule=self.name,
        )


@dataclass(frozen=True)
class ConflictsWith:
    subject: KnownCapability
    other: KnownCapability

    @property
    def name(self) -> str:
        return f"{self.subject.value}.conflicts.{self.other.value}"

    def check(self, selection: SelectionSet, context: InitContext) -> InitScriptError | None:
        if self.subject in selection and self.other in selection:
            return ConflictingCapabilities(
                f"'{self.subject.value}' conflicts with '{self.other.value}'",
                capability=self.subject.value,
                other=self.other.value,
                rule=self.name,
            )
        return None


@dataclass(frozen=True)
class RequiresInput:
    """`subject` embeds context values that must have been supplied."""

    subject: KnownCapability
    inputs: tuple[str, ...]

    @property
    def name(self) -> str:
        return f"{self.subject.value}.requires_input.{'+'.join(self.inputs)}"

    def check(self, selection: SelectionSet, context: InitContext) -> InitScriptError | None:
        if self.subject not in selection:
            return None
        missing = tuple(field_name for field_name in self.inputs if not context.has_input(field_name))
        if not missing:
            return None
        return MissingRequiredInput(
            f"capability '{self.subject.value}' specified but no {', '.join(missing)} supplied",
            capability=self.subject.value,
            inputs=missing,
            rule=self.name,
        )


# First violation in this order wins.
RULES: tuple[Rule, ...] = (
    RequiresCapability(_C.AWS_CFN_HELPER, INTERPRETERS, any_of=True, reason="needs a pip/python install"),
    RequiresCapability(_C.ECR_CREDENTIAL_PROVIDER, (_C.GO,)),
    RequiresCapability(_C.TIME_SYNC, (_C.IMDS,)),
    RequiresCapability(_C.ENA, (_C.IMDS,)),
    RequiresArchitecture(_C.NVIDIA_CUDA_TOOLKIT, is_nvidia_arch, "nvidia"),
    RequiresCapability(_C.NVIDIA_CUDA_TOOLKIT, (_C.NVIDIA_DRIVER,)),
    RequiresCapability(_C.DEV_BARK, (_C.STATIC_VOLUME_PROVISIONER,)),
    RequiresCapability(_C.DEV_FAISS_GPU, (_C.STATIC_VOLUME_PROVISIONER,)),
    ConflictsWith(_C.EKS_WORKER_NODE_AMI_SCRATCH, _C.EKS_WORKER_NODE_AMI_REUSE),
    RequiresInput(_C.SSH_KEY_WITH_EMAIL, ("ssh_key_email",)),
    RequiresInput(_C.POST_INIT_SCRIPT, ("post_init_script",)),
    RequiresInput(_C.STATIC_VOLUME_PROVISIONER, ("instance_id", "region")),
    RequiresInput(_C.STATIC_IP_PROVISIONER, ("instance_id", "region")),
    RequiresInput(_C.CLUSTER_INFO, ("s3_bucket", "instance_id")),
)


def check(
    selection: SelectionSet, context: InitContext, *, rules: tuple[Rule, ...] = RULES
) -> list[InitScriptError]:
    """Evaluate every rule and return all violations, in rule-table order."""

    violations: list[InitScriptError] = []
    for rule in rules:
        violation = rule.check(selection, context)
        if violation is not None:
            violations.append(violation)
    return violations


def validate(
    selection: SelectionSet, context: InitContext, *, rules: tuple[Rule, ...] = RULES
) -> None:
    for rule in rules:
        violation = rule.check(selection, context)
        if violation is not None:
            logger.error("Validation failed (rule=%s): %s", rule.name, violation)
            raise violation
    logger.debug("Validation passed (%d rules, %d capabilities)", len(rules), len(selection))
