from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, TypeAlias

ArchType: TypeAlias = Literal[
    "amd64",
    "arm64",
    "amd64-gpu-p4-nvidia-tesla-a100",
    "amd64-gpu-g3-nvidia-tesla-m60",
    "amd64-gpu-g4dn-nvidia-t4",
    "amd64-gpu-g5-nvidia-a10g",
    "amd64-gpu-g4ad-radeon",
    "amd64-gpu-inf1",
    "amd64-gpu-trn1",
]
ARCH_TYPES: tuple[str, ...] = (
    "amd64",
    "arm64",
    "amd64-gpu-p4-nvidia-tesla-a100",
    "amd64-gpu-g3-nvidia-tesla-m60",
    "amd64-gpu-g4dn-nvidia-t4",
    "amd64-gpu-g5-nvidia-a10g",
    "amd64-gpu-g4ad-radeon",
    "amd64-gpu-inf1",
    "amd64-gpu-trn1",
)

OsType: TypeAlias = Literal["al2023", "ubuntu20.04", "ubuntu22.04"]
OS_TYPES: tuple[str, ...] = ("al2023", "ubuntu20.04", "ubuntu22.04")


def is_nvidia_arch(arch: str) -> bool:
    return "-nvidia-" in arch


@dataclass(frozen=True)
class VolumeSpec:
    """Parameters for the static data volume the provisioner creates and mounts.

    Throughput applies to gp3 only and must stay within 0.25 MiB/s per provisioned
    IOPS, otherwise the volume API rejects the request.
    """

    volume_type: str = "gp3"
    size: int = 300
    iops: int = 3000
    throughput: int = 500
    device_name: str = "/dev/xvdb"
    initial_wait_random_seconds: int = 10

    def __post_init__(self) -> None:
        if not isinstance(self.volume_type, str) or not self.volume_type.strip():
            raise ValueError("VolumeSpec.volume_type must be a non-empty string")
        if not isinstance(self.device_name, str) or not self.device_name.strip():
            raise ValueError("VolumeSpec.device_name must be a non-empty string")
        for name in ("size", "iops", "throughput", "initial_wait_random_seconds"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"VolumeSpec.{name} must be a non-negative int (got {value!r})")


@dataclass(frozen=True)
class CredentialPair:
    key_id: str
    secret: str = field(repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.key_id, str) or not self.key_id.strip():
            raise ValueError("CredentialPair.key_id must be a non-empty string")
        if not isinstance(self.secret, str) or not self.secret.strip():
            raise ValueError("CredentialPair.secret must be a non-empty string")


@dataclass(frozen=True)
class InitContext:
    arch: ArchType
    os: OsType
    instance_id: str = ""
    s3_bucket: str = ""
    region: str = ""
    volume: VolumeSpec = field(default_factory=VolumeSpec)
    ssh_key_email: str | None = None
    credentials: CredentialPair | None = None
    post_init_script: str | None = None

    def __post_init__(self) -> None:
        if self.arch not in ARCH_TYPES:
            raise ValueError(f"Unknown arch type: {self.arch!r} (expected one of: {', '.join(ARCH_TYPES)})")
        if self.os not in OS_TYPES:
            raise ValueError(f"Unknown os type: {self.os!r} (expected one of: {', '.join(OS_TYPES)})")
        if not isinstance(self.volume, VolumeSpec):
            raise TypeError(f"InitContext.volume must be a VolumeSpec (type={type(self.volume).__name__})")
        if self.credentials is not None and not isinstance(self.credentials, CredentialPair):
            raise TypeError("InitContext.credentials must be a CredentialPair or None")

    @property
    def is_nvidia(self) -> bool:
        return is_nvidia_arch(self.arch)

    def has_input(self, name: str) -> bool:
        value = getattr(self, name)
        if value is None:
            return False
        if isinstance(value, str):
            return bool(value.strip())
        return True
