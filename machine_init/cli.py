from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from collections.abc import Sequence
from typing import Any

from machine_init.catalog import KnownCapability, default_selection, is_epilogue, rank, sorted_capabilities
from machine_init.config import RequestConfig
from machine_init.errors import InitScriptError
from machine_init.foundation.config_io import load_config
from machine_init.foundation.logging_utils import setup_operational_logger
from machine_init.fragments import load_fragment_registry
from machine_init.resolver import resolve
from machine_init.validator import check


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="machine-init", add_help=True)
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list-capabilities", help="List known capabilities in rank order")

    render = sub.add_parser("render", help="Resolve, validate and assemble an init script")
    render.add_argument("--config", default=None, help="Request config YAML (default: repo config/)")
    render.add_argument("--output", default=None, help="Write the script here instead of stdout")

    check_cmd = sub.add_parser("check", help="Report every rule violation for a request")
    check_cmd.add_argument("--config", default=None, help="Request config YAML (default: repo config/)")

    return parser


def list_capabilities() -> None:
    defaults = set(default_selection())
    for capability in sorted_capabilities(KnownCapability):
        flags = []
        if capability in defaults:
            flags.append("default")
        if is_epilogue(capability):
            flags.append("epilogue")
        print(f"{capability.value}\t{rank(capability)}\t{','.join(flags)}")


def _resolve_fragments_path(path: str, meta: dict[str, Any]) -> str:
    expanded = os.path.expandvars(os.path.expanduser(path))
    if os.path.isabs(expanded):
        return expanded
    return os.path.join(meta["base_dir"], expanded)


def _load_request(config_path: str | None) -> tuple[RequestConfig, dict[str, Any], list[str]]:
    cfg_dict, meta = load_config(config_path=config_path)
    request, warnings = RequestConfig.from_dict(cfg_dict)
    return request, meta, warnings


def _render(args: argparse.Namespace) -> int:
    from machine_init.app.render import render_init_script

    request, meta, warnings = _load_request(args.config)
    logger = setup_operational_logger(level=request.logging.level, log_file=request.logging.file)
    logger.info("Loaded config (%s): %s", meta["mode"], ", ".join(meta["paths"]))
    for warning in warnings:
        logger.warning("Config warning: %s", warning)

    fragments_path = _resolve_fragments_path(request.fragments_path, meta)
    registry = load_fragment_registry(fragments_path)
    logger.info("Fragment templates: %s", fragments_path)

    plan = render_init_script(
        request.capabilities,
        request.context,
        registry,
        require_static_ip_provisioner=request.require_static_ip_provisioner,
        logger=logger,
    )

    if args.output:
        directory = os.path.dirname(os.path.abspath(args.output))
        os.makedirs(directory, exist_ok=True)
        with open(args.output, "w", encoding="utf-8", newline="\n") as handle:
            handle.write(plan.script)
        logger.info("Wrote init script to %s", args.output)
    else:
        sys.stdout.write(plan.script)
    return 0


def _check(args: argparse.Namespace) -> int:
    request, _meta, warnings = _load_request(args.config)
    logger = setup_operational_logger(level=request.logging.level, log_file=request.logging.file)
    for warning in warnings:
        logger.warning("Config warning: %s", warning)

    selection = resolve(request.capabilities, switches=request.switches)
    print("capabilities: " + (", ".join(selection.names()) or "<none>"))

    violations = check(selection, request.context)
    for violation in violations:
        print(json.dumps(violation.as_dict(), sort_keys=True))
    if violations:
        logger.error("%d rule violation(s)", len(violations))
        return 1
    print("ok")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)

    if args.command == "list-capabilities":
        list_capabilities()
        return 0

    try:
        if args.command == "render":
            return _render(args)
        if args.command == "check":
            return _check(args)
    except (InitScriptError, ValueError, TypeError, FileNotFoundError) as exc:
        logging.getLogger("machine_init").error("%s failed: %s", args.command, exc)
        return 1

    raise AssertionError(f"Unhandled command: {args.command}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
