"""Capability vocabulary, ranks and ordering.

Ordering is defined by the explicit rank table below, never by enum declaration
order, so reshuffling the enum body cannot change the generated script.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, TypeAlias

MAX_RANK = 2**32 - 1
DEFAULT_TOKEN = "default"


class KnownCapability(Enum):
    IMDS = "imds"
    PROVIDER_ID = "provider-id"
    VERCMP = "vercmp"
    SETUP_LOCAL_DISKS = "setup-local-disks"
    MOUNT_BPF_FS = "mount-bpf-fs"

    TIME_SYNC = "time-sync"
    SYSTEM_LIMIT_BUMP = "system-limit-bump"
    AWS_CLI = "aws-cli"
    SSM_AGENT = "ssm-agent"
    CLOUDWATCH_AGENT = "cloudwatch-agent"

    STATIC_VOLUME_PROVISIONER = "static-volume-provisioner"
    STATIC_IP_PROVISIONER = "static-ip-provisioner"

    ANACONDA = "anaconda"
    PYTHON = "python"

    RUST = "rust"
    GO = "go"

    DOCKER = "docker"
    CONTAINERD = "containerd"
    RUNC = "runc"
    CNI_PLUGINS = "cni-plugins"

    AWS_CFN_HELPER = "aws-cfn-helper"
    SAML2AWS = "saml2aws"
    AWS_IAM_AUTHENTICATOR = "aws-iam-authenticator"
    ECR_CREDENTIAL_HELPER = "ecr-credential-helper"
    ECR_CREDENTIAL_PROVIDER = "ecr-credential-provider"

    KUBELET = "kubelet"
    KUBECTL = "kubectl"
    HELM = "helm"
    TERRAFORM = "terraform"

    SSH_KEY_WITH_EMAIL = "ssh-key-with-email"

    ENA = "ena"

    NVIDIA_DRIVER = "nvidia-driver"
    NVIDIA_CUDA_TOOLKIT = "nvidia-cuda-toolkit"
    NVIDIA_CONTAINER_TOOLKIT = "nvidia-container-toolkit"

    AMD_RADEON_GPU_DRIVER = "amd-radeon-gpu-driver"

    PROTOBUF_COMPILER = "protobuf-compiler"
    CMAKE = "cmake"
    GCC7 = "gcc7"

    DEV_BARK = "dev-bark"
    DEV_FAISS_GPU = "dev-faiss-gpu"

    EKS_WORKER_NODE_AMI_SCRATCH = "eks-worker-node-ami-scratch"
    EKS_WORKER_NODE_AMI_REUSE = "eks-worker-node-ami-reuse"

    AMI_INFO = "ami-info"
    CLUSTER_INFO = "cluster-info"

    POST_INIT_SCRIPT = "post-init-script"

    CLEANUP_IMAGE_PACKAGES = "cleanup-image-packages"
    CLEANUP_IMAGE_TMP_DIR = "cleanup-image-tmp-dir"
    CLEANUP_IMAGE_AWS_CREDENTIALS = "cleanup-image-aws-credentials"
    CLEANUP_IMAGE_SSH_KEYS = "cleanup-image-ssh-keys"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ExtensionCapability:
    """A capability name this build does not know; carried through verbatim."""

    name: str

    def __post_init__(self) -> None:
        if not isinstance(self.name, str):
            raise TypeError(
                f"ExtensionCapability.name must be a string (type={type(self.name).__name__})"
            )

    def __str__(self) -> str:
        return self.name


Capability: TypeAlias = KnownCapability | ExtensionCapability

_C = KnownCapability

# Volume mount and IP provisioning come early so a base instance for an image
# build has its storage in place before anything installs onto it.
_RANKS: dict[KnownCapability, int] = {
    _C.IMDS: 0,
    _C.PROVIDER_ID: 1,
    _C.VERCMP: 2,
    _C.SETUP_LOCAL_DISKS: 3,
    _C.MOUNT_BPF_FS: 4,
    _C.TIME_SYNC: 5,
    _C.SYSTEM_LIMIT_BUMP: 6,
    _C.AWS_CLI: 7,
    _C.SSM_AGENT: 8,
    _C.CLOUDWATCH_AGENT: 9,
    _C.STATIC_VOLUME_PROVISIONER: 20,
    _C.STATIC_IP_PROVISIONER: 21,
    _C.PYTHON: 24,
    _C.ANACONDA: 25,
    _C.RUST: 26,
    _C.GO: 27,
    _C.DOCKER: 28,
    _C.CONTAINERD: 29,
    _C.RUNC: 30,
    _C.CNI_PLUGINS: 31,
    _C.AWS_CFN_HELPER: 32,
    _C.SAML2AWS: 33,
    _C.AWS_IAM_AUTHENTICATOR: 34,
    _C.ECR_CREDENTIAL_HELPER: 35,
    _C.ECR_CREDENTIAL_PROVIDER: 36,
    _C.KUBELET: 37,
    _C.KUBECTL: 38,
    _C.HELM: 50,
    _C.TERRAFORM: 51,
    _C.SSH_KEY_WITH_EMAIL: 68,
    _C.ENA: 100,
    _C.NVIDIA_DRIVER: 200,
    _C.NVIDIA_CUDA_TOOLKIT: 201,
    _C.NVIDIA_CONTAINER_TOOLKIT: 202,
    _C.AMD_RADEON_GPU_DRIVER: 300,
    _C.PROTOBUF_COMPILER: 60000,
    _C.CMAKE: 60001,
    _C.GCC7: 60002,
    _C.DEV_BARK: 80000,
    _C.DEV_FAISS_GPU: 80001,
    _C.EKS_WORKER_NODE_AMI_SCRATCH: 99990,
    _C.EKS_WORKER_NODE_AMI_REUSE: 99991,
    _C.AMI_INFO: MAX_RANK - 2000,
    _C.CLUSTER_INFO: MAX_RANK - 1999,
    _C.POST_INIT_SCRIPT: MAX_RANK - 1000,
    _C.CLEANUP_IMAGE_PACKAGES: MAX_RANK - 10,
    _C.CLEANUP_IMAGE_TMP_DIR: MAX_RANK - 9,
    _C.CLEANUP_IMAGE_AWS_CREDENTIALS: MAX_RANK - 8,
    _C.CLEANUP_IMAGE_SSH_KEYS: MAX_RANK - 5,
}

_DEFAULT_SELECTION: tuple[KnownCapability, ...] = (
    _C.IMDS,
    _C.PROVIDER_ID,
    _C.VERCMP,
    _C.SETUP_LOCAL_DISKS,
    _C.MOUNT_BPF_FS,
    _C.TIME_SYNC,
    _C.SYSTEM_LIMIT_BUMP,
    _C.SSM_AGENT,
    _C.CLOUDWATCH_AGENT,
    _C.ANACONDA,
    _C.AWS_CFN_HELPER,
)

# Skipped by the ranked main pass; emitted in exactly this order afterwards.
EPILOGUE_CAPABILITIES: tuple[KnownCapability, ...] = (
    _C.AMI_INFO,
    _C.CLUSTER_INFO,
    _C.POST_INIT_SCRIPT,
    _C.CLEANUP_IMAGE_PACKAGES,
    _C.CLEANUP_IMAGE_TMP_DIR,
    _C.CLEANUP_IMAGE_AWS_CREDENTIALS,
    _C.CLEANUP_IMAGE_SSH_KEYS,
)

# Emitted after the completion marker.
AFTER_MARKER_CAPABILITIES: tuple[KnownCapability, ...] = (_C.CLEANUP_IMAGE_SSH_KEYS,)

ENVIRONMENT_TRIGGERS: tuple[KnownCapability, ...] = (
    _C.SYSTEM_LIMIT_BUMP,
    _C.STATIC_VOLUME_PROVISIONER,
)

INTERPRETERS: tuple[KnownCapability, ...] = (_C.ANACONDA, _C.PYTHON)

_BY_NAME: dict[str, KnownCapability] = {member.value: member for member in KnownCapability}


def _check_rank_table() -> None:
    missing = [member.value for member in KnownCapability if member not in _RANKS]
    if missing:
        raise ValueError(f"Capabilities missing a rank: {', '.join(missing)}")

    owners: dict[int, KnownCapability] = {}
    for member, value in _RANKS.items():
        if not 0 <= value < MAX_RANK:
            raise ValueError(f"Rank out of range for {member.value}: {value}")
        owner = owners.get(value)
        if owner is not None:
            raise ValueError(f"Rank collision: {owner.value} and {member.value} both rank {value}")
        owners[value] = member


_check_rank_table()


def parse(value: str) -> Capability:
    if not isinstance(value, str):
        raise TypeError(f"Capability name must be a string (type={type(value).__name__})")
    known = _BY_NAME.get(value)
    if known is None:
        return ExtensionCapability(value)
    return known


def coerce(value: str | Capability) -> Capability:
    if isinstance(value, (KnownCapability, ExtensionCapability)):
        return value
    return parse(value)


def to_string(capability: Capability) -> str:
    if isinstance(capability, KnownCapability):
        return capability.value
    if isinstance(capability, ExtensionCapability):
        return capability.name
    raise TypeError(f"Not a capability: {capability!r}")


def rank(capability: Capability) -> int:
    if isinstance(capability, KnownCapability):
        return _RANKS[capability]
    if isinstance(capability, ExtensionCapability):
        return MAX_RANK
    raise TypeError(f"Not a capability: {capability!r}")


def sort_key(capability: Capability) -> tuple[int, str]:
    # Extension names break the MAX_RANK tie among unknown capabilities.
    return (rank(capability), to_string(capability))


def sorted_capabilities(capabilities: Iterable[Capability]) -> tuple[Capability, ...]:
    return tuple(sorted(capabilities, key=sort_key))


def is_known(capability: Capability) -> bool:
    return isinstance(capability, KnownCapability)


def is_epilogue(capability: Capability) -> bool:
    return capability in EPILOGUE_CAPABILITIES


def known_values() -> tuple[str, ...]:
    return tuple(to_string(member) for member in sorted_capabilities(KnownCapability))


def default_selection() -> tuple[KnownCapability, ...]:
    return _DEFAULT_SELECTION


def expand_requested(requested: Iterable[str]) -> list[str]:
    """Replace every `default` token with the default selection's names."""

    expanded: list[str] = []
    for item in requested:
        if item == DEFAULT_TOKEN:
            expanded.extend(member.value for member in _DEFAULT_SELECTION)
        else:
            expanded.append(item)
    return expanded
