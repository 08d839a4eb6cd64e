from __future__ import annotations

from typing import Any


class InitScriptError(ValueError):
    """Base for every failure raised while resolving, validating or assembling."""

    kind = "init_script_error"

    def __init__(self, message: str, *, capability: str | None = None, rule: str | None = None):
        super().__init__(message)
        self.capability = capability
        self.rule = rule

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.kind, "message": str(self)}
        if self.capability is not None:
            payload["capability"] = self.capability
        if self.rule is not None:
            payload["rule"] = self.rule
        return payload


class ConflictingCapabilities(InitScriptError):
    kind = "conflicting_capabilities"

    def __init__(self, message: str, *, capability: str, other: str, rule: str | None = None):
        super().__init__(message, capability=capability, rule=rule)
        self.other = other

    def as_dict(self) -> dict[str, Any]:
        return {**super().as_dict(), "other": self.other}


class MissingRequiredCapability(InitScriptError):
    kind = "missing_required_capability"

    def __init__(
        self, message: str, *, capability: str, missing: tuple[str, ...], rule: str | None = None
    ):
        super().__init__(message, capability=capability, rule=rule)
        self.missing = tuple(missing)

    def as_dict(self) -> dict[str, Any]:
        return {**super().as_dict(), "missing": list(self.missing)}


class MissingRequiredInput(InitScriptError):
    kind = "missing_required_input"

    def __init__(
        self, message: str, *, capability: str, inputs: tuple[str, ...], rule: str | None = None
    ):
        super().__init__(message, capability=capability, rule=rule)
        self.inputs = tuple(inputs)

    def as_dict(self) -> dict[str, Any]:
        return {**super().as_dict(), "inputs": list(self.inputs)}


class ArchitectureMismatch(InitScriptError):
    kind = "architecture_mismatch"

    def __init__(self, message: str, *, capability: str, arch: str, rule: str | None = None):
        super().__init__(message, capability=capability, rule=rule)
        self.arch = arch

    def as_dict(self) -> dict[str, Any]:
        return {**super().as_dict(), "arch": self.arch}


class GeneratorFailure(InitScriptError):
    kind = "generator_failure"

    def __init__(self, message: str, *, fragment_id: str, capability: str | None = None):
        super().__init__(message, capability=capability)
        self.fragment_id = fragment_id

    def as_dict(self) -> dict[str, Any]:
        return {**super().as_dict(), "fragment_id": self.fragment_id}
