"""YAML-backed fragment generators.

A fragments file maps fragment ids to `string.Template` text:

    fixed:
      preamble: |
        #!/usr/bin/env bash
    capabilities:
      imds:
        doc: Fetch instance metadata helpers.
        template: |
          ...
        os:
          al2023: |
            ...
        when_selected:
          anaconda: |
            export PATH=${anaconda_bin}:$$PATH

`os` entries replace `template` for that OS. `when_selected` snippets are appended
(in file order) when the named capability is part of the selection.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from string import Template
from typing import Any

from machine_init.assembler import FIXED_FRAGMENTS, FragmentRequest
from machine_init.catalog import KnownCapability, is_known, parse
from machine_init.context import OS_TYPES
from machine_init.foundation.config_io import load_yaml_mapping
from scriptkit.config_section import ConfigSection
from scriptkit.fragment_registry import FragmentRegistry
from scriptkit.fragment_types import FragmentKind, FragmentRef

ANACONDA_BIN_DIR = "/home/ubuntu/anaconda3/bin"

logger = logging.getLogger(__name__)


def fragment_variables(request: FragmentRequest) -> dict[str, str]:
    ctx = request.context
    volume = ctx.volume
    variables = {
        "fragment_id": request.fragment_id,
        "os": ctx.os,
        "arch": ctx.arch,
        "instance_id": ctx.instance_id,
        "s3_bucket": ctx.s3_bucket,
        "region": ctx.region,
        "volume_type": volume.volume_type,
        "volume_size": str(volume.size),
        "volume_iops": str(volume.iops),
        "volume_throughput": str(volume.throughput),
        "volume_device_name": volume.device_name,
        "provisioner_initial_wait_random_seconds": str(volume.initial_wait_random_seconds),
        "ssh_key_email": ctx.ssh_key_email or "",
        "anaconda_bin": ANACONDA_BIN_DIR if request.has(KnownCapability.ANACONDA) else "",
        "static_volume": "true" if request.has(KnownCapability.STATIC_VOLUME_PROVISIONER) else "false",
    }
    if ctx.credentials is not None:
        variables["aws_access_key_id"] = ctx.credentials.key_id
        variables["aws_secret_access_key"] = ctx.credentials.secret
    return variables


@dataclass(frozen=True)
class TemplateFragment:
    fragment_id: str
    template: str | None = None
    os_templates: tuple[tuple[str, str], ...] = ()
    when_selected: tuple[tuple[str, str], ...] = ()

    def _source_for(self, os_type: str) -> str:
        for name, text in self.os_templates:
            if name == os_type:
                return text
        if self.template is None:
            supported = ", ".join(name for name, _ in self.os_templates) or "<none>"
            raise ValueError(
                f"Fragment {self.fragment_id} has no template for os {os_type!r} (supported: {supported})"
            )
        return self.template

    def __call__(self, request: FragmentRequest) -> str:
        variables = fragment_variables(request)
        try:
            text = Template(self._source_for(request.os)).substitute(variables)
            for capability, snippet in self.when_selected:
                if request.has(capability):
                    text += Template(snippet).substitute(variables)
        except KeyError as exc:
            raise ValueError(
                f"Fragment {self.fragment_id} references unknown variable {exc.args[0]!r}"
            ) from exc
        return text


def _parse_entry(raw: Any, *, fragment_id: str, path: str) -> tuple[TemplateFragment, str | None]:
    if isinstance(raw, str):
        return TemplateFragment(fragment_id=fragment_id, template=raw), None
    if not isinstance(raw, Mapping):
        raise TypeError(f"{path} must be a string or mapping (type={type(raw).__name__})")

    entry = ConfigSection(dict(raw), path=path)
    doc = entry.get_str("doc", default=None)
    template = entry.get_text("template", default=None)

    os_section = entry.section("os")
    os_templates: list[tuple[str, str]] = []
    for os_type in list(os_section.data.keys()):
        if os_type not in OS_TYPES:
            raise ValueError(
                f"{path}.os has unknown os type {os_type!r} (expected one of: {', '.join(OS_TYPES)})"
            )
        os_templates.append((os_type, os_section.get_text(os_type)))

    selected_section = entry.section("when_selected")
    when_selected: list[tuple[str, str]] = []
    for capability in list(selected_section.data.keys()):
        if not is_known(parse(str(capability))):
            logger.warning("%s.when_selected references unknown capability %r", path, capability)
        when_selected.append((str(capability), selected_section.get_text(str(capability))))

    entry.assert_consumed()
    if template is None and not os_templates:
        raise ValueError(f"{path} must define template or os templates")

    fragment = TemplateFragment(
        fragment_id=fragment_id,
        template=template,
        os_templates=tuple(os_templates),
        when_selected=tuple(when_selected),
    )
    return fragment, doc


def fragment_refs_from_mapping(payload: Mapping[str, Any], *, source: str) -> list[FragmentRef]:
    root = ConfigSection(dict(payload), path="")
    refs: list[FragmentRef] = []

    sections: tuple[tuple[str, FragmentKind], ...] = (("fixed", "fixed"), ("capabilities", "capability"))
    for section_name, kind in sections:
        section = root.section(section_name)
        for raw_id in list(section.data.keys()):
            fragment_id = str(raw_id).strip()
            raw_entry = section.get(str(raw_id))
            path = f"{section_name}.{fragment_id}"
            if kind == "fixed" and fragment_id not in FIXED_FRAGMENTS:
                raise ValueError(
                    f"Unknown fixed fragment id: {fragment_id} (expected one of: {', '.join(FIXED_FRAGMENTS)})"
                )
            if kind == "capability" and not is_known(parse(fragment_id)):
                logger.debug("Registering generator for extension capability %s", fragment_id)

            generator, doc = _parse_entry(raw_entry, fragment_id=fragment_id, path=path)
            refs.append(
                FragmentRef(
                    id=fragment_id,
                    generator=generator,
                    kind=kind,
                    doc=doc,
                    source=f"{source}#{path}",
                    tags=(section_name,),
                )
            )

    root.assert_consumed()
    return refs


def load_fragment_registry(path: str) -> FragmentRegistry:
    payload = load_yaml_mapping(path)
    refs = fragment_refs_from_mapping(payload, source=path)
    logger.debug("Loaded %d fragment templates from %s", len(refs), path)
    return FragmentRegistry.from_refs(refs)
