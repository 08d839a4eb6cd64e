from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Mapping

from machine_init.catalog import expand_requested
from machine_init.context import ARCH_TYPES, OS_TYPES, CredentialPair, InitContext, VolumeSpec
from machine_init.resolver import ResolveSwitches
from scriptkit.config_section import ConfigSection

DEFAULT_FRAGMENTS_PATH = os.path.join("config", "fragments.yaml")


def parse_bool(value: Any, path: str) -> bool:
    """
    Strict boolean parsing to avoid bool('false') footguns.

    Accepts True/False, 0/1 and the strings true/false/1/0/yes/no
    (case-insensitive). Anything else raises ValueError naming `path`.
    """

    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value in (0, 1):
            return bool(value)
        raise ValueError(f"Invalid boolean for {path}: {value!r}")
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"true", "1", "yes"}:
            return True
        if normalized in {"false", "0", "no"}:
            return False
    raise ValueError(f"Invalid boolean for {path}: {value!r}")


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    file: str | None = None


@dataclass(frozen=True)
class RequestConfig:
    capabilities: tuple[str, ...]
    context: InitContext
    require_static_ip_provisioner: bool = False
    fragments_path: str = DEFAULT_FRAGMENTS_PATH
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def switches(self) -> ResolveSwitches:
        return ResolveSwitches.from_context(
            self.context, require_static_ip_provisioner=self.require_static_ip_provisioner
        )

    @staticmethod
    def from_dict(cfg: Mapping[str, Any]) -> tuple["RequestConfig", list[str]]:
        """
        Parse a request document into a RequestConfig.

        Unknown keys become warnings, or a ValueError when `strict: true`. The
        `default` capability token expands to the default selection.
        """

        if not isinstance(cfg, Mapping):
            raise TypeError(f"Request config must be a mapping (type={type(cfg).__name__})")

        warnings: list[str] = []
        root = ConfigSection(dict(cfg), path="")

        strict_unknown_keys = False
        if root.has("strict"):
            strict_unknown_keys = parse_bool(root.get("strict"), "strict")

        raw_capabilities = root.get_list_str("capabilities", default=["default"], allow_empty=True)
        capabilities = tuple(expand_requested(raw_capabilities))
        if not capabilities:
            warnings.append("capabilities is empty; the script will hold only fixed fragments")

        require_static_ip = False
        if root.has("require_static_ip_provisioner"):
            require_static_ip = parse_bool(
                root.get("require_static_ip_provisioner"), "require_static_ip_provisioner"
            )

        machine = root.section("machine", required=True)
        arch = machine.get_str("arch", choices=ARCH_TYPES)
        os_type = machine.get_str("os", choices=OS_TYPES)
        instance_id = machine.get_str("instance_id", default="", allow_empty=True) or ""
        region = machine.get_str("region", default="", allow_empty=True) or ""
        s3_bucket = machine.get_str("s3_bucket", default="", allow_empty=True) or ""

        defaults = VolumeSpec()
        volume_section = root.section("volume")
        volume = VolumeSpec(
            volume_type=volume_section.get_str("type", default=defaults.volume_type),
            size=volume_section.get_int("size", default=defaults.size, min_value=1),
            iops=volume_section.get_int("iops", default=defaults.iops, min_value=0),
            throughput=volume_section.get_int("throughput", default=defaults.throughput, min_value=0),
            device_name=volume_section.get_str("device_name", default=defaults.device_name),
            initial_wait_random_seconds=volume_section.get_int(
                "initial_wait_random_seconds",
                default=defaults.initial_wait_random_seconds,
                min_value=0,
            ),
        )

        ssh_key_email = root.get_str("ssh_key_email", default=None)

        credentials: CredentialPair | None = None
        credentials_section = root.section("credentials")
        if credentials_section.data:
            key_id = credentials_section.get_str("key_id", default=None)
            secret = credentials_section.get_str("secret", default=None)
            if (key_id is None) != (secret is None):
                raise ValueError("credentials.key_id and credentials.secret must be set together")
            if key_id is not None and secret is not None:
                credentials = CredentialPair(key_id=key_id, secret=secret)

        post_init_script = root.get_text("post_init_script", default=None)
        if post_init_script is not None and not post_init_script.strip():
            raise ValueError("post_init_script cannot be empty (omit it or set it to null)")

        fragments_path = root.section("fragments").get_str("path", default=DEFAULT_FRAGMENTS_PATH)

        logging_section = root.section("logging")
        logging_cfg = LoggingConfig(
            level=logging_section.get_str("level", default="INFO").upper(),
            file=logging_section.get_str("file", default=None),
        )

        unknown_keys = list(root.unconsumed_paths())
        if unknown_keys:
            if strict_unknown_keys:
                raise ValueError("Unknown config keys: " + ", ".join(unknown_keys))
            warnings.extend(f"Unknown config key: {key}" for key in unknown_keys)

        context = InitContext(
            arch=arch,
            os=os_type,
            instance_id=instance_id,
            s3_bucket=s3_bucket,
            region=region,
            volume=volume,
            ssh_key_email=ssh_key_email,
            credentials=credentials,
            post_init_script=post_init_script,
        )
        return (
            RequestConfig(
                capabilities=capabilities,
                context=context,
                require_static_ip_provisioner=require_static_ip,
                fragments_path=fragments_path,
                logging=logging_cfg,
            ),
            warnings,
        )
