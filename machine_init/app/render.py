from __future__ import annotations

import logging
from typing import Iterable

from machine_init.assembler import ExecutionPlan, ScriptAssembler
from machine_init.catalog import Capability
from machine_init.context import InitContext
from machine_init.resolver import ResolveSwitches, resolve
from machine_init.validator import validate
from scriptkit.engine.emitter import DefaultEmitRecorder
from scriptkit.fragment_registry import FragmentRegistry


def render_init_script(
    requested: Iterable[str | Capability],
    context: InitContext,
    registry: FragmentRegistry,
    *,
    require_static_ip_provisioner: bool = False,
    logger: logging.Logger | None = None,
) -> ExecutionPlan:
    """Resolve, validate and assemble one init script.

    Nothing is emitted unless the whole selection validates.
    """

    log = logger or logging.getLogger(__name__)
    switches = ResolveSwitches.from_context(
        context, require_static_ip_provisioner=require_static_ip_provisioner
    )
    log.debug(
        "Resolve switches: accelerator_arch=%s require_static_ip_provisioner=%s post_init_script_supplied=%s",
        switches.accelerator_arch,
        switches.require_static_ip_provisioner,
        switches.post_init_script_supplied,
    )

    selection = resolve(requested, switches=switches)
    log.info("Resolved capabilities (%d): %s", len(selection), ", ".join(selection.names()) or "<none>")

    validate(selection, context)

    assembler = ScriptAssembler(registry, recorder=DefaultEmitRecorder(log))
    plan = assembler.assemble(selection, context)
    log.info("Init script ready: %d fragments, %d chars", len(plan.included), len(plan.script))
    return plan
