"""Two-pass assembly of a validated selection into one init script.

Main pass: every selected capability in ascending rank order, except the epilogue
capabilities, which are only recorded. The environment-update fragment follows the
first environment trigger met in the main pass; if none was selected it opens the
epilogue instead, so it is emitted exactly once either way.

Epilogue: environment update (when still pending), credentials (when supplied),
then the epilogue capabilities in their fixed order, the completion marker, and
finally the SSH-key cleanup, which must follow everything else.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from machine_init.catalog import (
    AFTER_MARKER_CAPABILITIES,
    ENVIRONMENT_TRIGGERS,
    EPILOGUE_CAPABILITIES,
    Capability,
    KnownCapability,
    coerce,
    is_epilogue,
    to_string,
)
from machine_init.context import InitContext
from machine_init.errors import GeneratorFailure
from machine_init.resolver import SelectionSet
from scriptkit.engine.emitter import EmitRecorder, ScriptEmitter
from scriptkit.fragment_registry import FragmentRegistry
from scriptkit.fragment_types import FragmentKind

INIT_SCRIPT_COMPLETE_MSG = "INIT SCRIPT COMPLETE"

PREAMBLE_FRAGMENT = "preamble"
ENVIRONMENT_UPDATE_FRAGMENT = "environment-update"
CREDENTIALS_FRAGMENT = "credentials"
FIXED_FRAGMENTS: tuple[str, ...] = (
    PREAMBLE_FRAGMENT,
    ENVIRONMENT_UPDATE_FRAGMENT,
    CREDENTIALS_FRAGMENT,
)

POST_INIT_HEADER = "###########################\n# USER-DEFINED POST INIT SCRIPT\n"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FragmentRequest:
    """What a fragment generator gets to look at."""

    fragment_id: str
    context: InitContext
    selection: SelectionSet
    capability: Capability | None = None

    @property
    def os(self) -> str:
        return self.context.os

    @property
    def arch(self) -> str:
        return self.context.arch

    def has(self, capability: str | Capability) -> bool:
        return coerce(capability) in self.selection


@dataclass(frozen=True)
class ExecutionPlan:
    capabilities: tuple[Capability, ...]
    main_pass: tuple[Capability, ...]
    epilogue: tuple[str, ...]
    script: str
    included: tuple[str, ...]

    @property
    def capability_names(self) -> tuple[str, ...]:
        return tuple(to_string(capability) for capability in self.capabilities)


class ScriptAssembler:
    def __init__(self, registry: FragmentRegistry, *, recorder: EmitRecorder | None = None):
        if not isinstance(registry, FragmentRegistry):
            raise TypeError(f"registry must be a FragmentRegistry (type={type(registry).__name__})")
        self._registry = registry
        self._recorder = recorder

    def assemble(self, selection: SelectionSet, context: InitContext) -> ExecutionPlan:
        ordered = selection.ordered()
        emitter = ScriptEmitter(recorder=self._recorder)

        emitter.append(
            PREAMBLE_FRAGMENT,
            self._render_fixed(PREAMBLE_FRAGMENT, selection, context),
            banner=False,
        )

        main_pass: list[Capability] = []
        environment_updated = False
        for capability in ordered:
            name = to_string(capability)
            if is_epilogue(capability):
                logger.info("Deferring %s to the epilogue", name)
                continue

            emitter.append(name, self._render_capability(capability, selection, context))
            main_pass.append(capability)

            if capability in ENVIRONMENT_TRIGGERS and not environment_updated:
                environment_updated = True
                emitter.append(
                    ENVIRONMENT_UPDATE_FRAGMENT,
                    self._render_fixed(ENVIRONMENT_UPDATE_FRAGMENT, selection, context),
                )

        epilogue: list[str] = []
        if not environment_updated:
            emitter.append(
                ENVIRONMENT_UPDATE_FRAGMENT,
                self._render_fixed(ENVIRONMENT_UPDATE_FRAGMENT, selection, context),
            )
            epilogue.append(ENVIRONMENT_UPDATE_FRAGMENT)

        if context.credentials is not None:
            emitter.append(
                CREDENTIALS_FRAGMENT,
                self._render_fixed(CREDENTIALS_FRAGMENT, selection, context),
            )
            epilogue.append(CREDENTIALS_FRAGMENT)

        for capability in EPILOGUE_CAPABILITIES:
            if capability in AFTER_MARKER_CAPABILITIES or capability not in selection:
                continue
            if capability is KnownCapability.POST_INIT_SCRIPT:
                text = self._post_init_text(context)
            else:
                text = self._render_capability(capability, selection, context)
            emitter.append(capability.value, text)
            epilogue.append(capability.value)

        emitter.mark_complete(INIT_SCRIPT_COMPLETE_MSG)
        epilogue.append(INIT_SCRIPT_COMPLETE_MSG)

        for capability in AFTER_MARKER_CAPABILITIES:
            if capability not in selection:
                continue
            emitter.append_after_marker(
                capability.value, self._render_capability(capability, selection, context)
            )
            epilogue.append(capability.value)

        script = emitter.render()
        logger.info(
            "Assembled init script (main_pass=%d, epilogue=%d, chars=%d)",
            len(main_pass),
            len(epilogue),
            len(script),
        )
        return ExecutionPlan(
            capabilities=ordered,
            main_pass=tuple(main_pass),
            epilogue=tuple(epilogue),
            script=script,
            included=emitter.included,
        )

    def _post_init_text(self, context: InitContext) -> str:
        if context.post_init_script is None:
            raise GeneratorFailure(
                f"'{KnownCapability.POST_INIT_SCRIPT.value}' selected but no post_init_script text supplied",
                fragment_id=KnownCapability.POST_INIT_SCRIPT.value,
                capability=KnownCapability.POST_INIT_SCRIPT.value,
            )
        return POST_INIT_HEADER + context.post_init_script

    def _render_capability(
        self, capability: Capability, selection: SelectionSet, context: InitContext
    ) -> str:
        name = to_string(capability)
        request = FragmentRequest(
            fragment_id=name, context=context, selection=selection, capability=capability
        )
        return self._render(name, kind="capability", request=request, capability=name)

    def _render_fixed(self, fragment_id: str, selection: SelectionSet, context: InitContext) -> str:
        request = FragmentRequest(fragment_id=fragment_id, context=context, selection=selection)
        return self._render(fragment_id, kind="fixed", request=request, capability=None)

    def _render(
        self,
        fragment_id: str,
        *,
        kind: FragmentKind,
        request: FragmentRequest,
        capability: str | None,
    ) -> str:
        ref = self._registry.find(fragment_id, kind=kind)
        if ref is None:
            raise GeneratorFailure(
                f"No {kind} fragment generator registered for '{fragment_id}'",
                fragment_id=fragment_id,
                capability=capability,
            )
        try:
            return ref.render(request)
        except Exception as exc:
            logger.error("Fragment generator failed: %s (%s)", fragment_id, exc)
            raise GeneratorFailure(
                f"Fragment generator failed for '{fragment_id}': {exc}",
                fragment_id=fragment_id,
                capability=capability,
            ) from exc


def assemble(
    selection: SelectionSet,
    context: InitContext,
    *,
    registry: FragmentRegistry,
    recorder: EmitRecorder | None = None,
) -> ExecutionPlan:
    return ScriptAssembler(registry, recorder=recorder).assemble(selection, context)
