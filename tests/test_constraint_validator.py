import logging

import pytest

from machine_init.context import InitContext
from machine_init.errors import (
    ArchitectureMismatch,
    ConflictingCapabilities,
    InitScriptError,
    MissingRequiredCapability,
    MissingRequiredInput,
)
from machine_init.resolver import SelectionSet
from machine_init.validator import RULES, check, validate


def _ctx(**overrides) -> InitContext:
    values = {
        "arch": "amd64",
        "os": "ubuntu22.04",
        "instance_id": "i-123",
        "region": "us-west-2",
        "s3_bucket": "bucket",
    }
    values.update(overrides)
    return InitContext(**values)


def _sel(*names: str) -> SelectionSet:
    return SelectionSet.of(names)


def test_cfn_helper_requires_an_interpreter():
    with pytest.raises(MissingRequiredCapability, match=r"'aws-cfn-helper' requires one of 'anaconda', 'python'"):
        validate(_sel("aws-cfn-helper"), _ctx())

    validate(_sel("aws-cfn-helper", "python"), _ctx())
    validate(_sel("aws-cfn-helper", "anaconda"), _ctx())


@pytest.mark.parametrize(
    ("subject", "required"),
    [
        ("ecr-credential-provider", "go"),
        ("time-sync", "imds"),
        ("ena", "imds"),
        ("dev-bark", "static-volume-provisioner"),
        ("dev-faiss-gpu", "static-volume-provisioner"),
    ],
)
def test_required_pairs(subject, required):
    with pytest.raises(MissingRequiredCapability, match=rf"'{subject}' requires '{required}'") as excinfo:
        validate(_sel(subject), _ctx())
    assert excinfo.value.capability == subject
    assert excinfo.value.missing == (required,)

    validate(_sel(subject, required), _ctx())


def test_cuda_toolkit_requires_nvidia_architecture():
    with pytest.raises(ArchitectureMismatch, match=r"arch type is 'amd64' \(not nvidia\)") as excinfo:
        validate(_sel("nvidia-cuda-toolkit", "nvidia-driver"), _ctx())
    assert excinfo.value.arch == "amd64"


def test_cuda_toolkit_requires_driver_on_nvidia_architecture():
    ctx = _ctx(arch="amd64-gpu-p4-nvidia-tesla-a100")
    with pytest.raises(MissingRequiredCapability, match=r"requires 'nvidia-driver'"):
        validate(_sel("nvidia-cuda-toolkit"), ctx)

    validate(_sel("nvidia-cuda-toolkit", "nvidia-driver"), ctx)


def test_eks_ami_modes_conflict():
    with pytest.raises(ConflictingCapabilities, match=r"conflicts with 'eks-worker-node-ami-reuse'"):
        validate(_sel("eks-worker-node-ami-scratch", "eks-worker-node-ami-reuse"), _ctx())


def test_ssh_key_requires_email():
    with pytest.raises(MissingRequiredInput, match=r"no ssh_key_email supplied"):
        validate(_sel("ssh-key-with-email"), _ctx())
    with pytest.raises(MissingRequiredInput):
        validate(_sel("ssh-key-with-email"), _ctx(ssh_key_email="   "))

    validate(_sel("ssh-key-with-email"), _ctx(ssh_key_email="dev@example.com"))


def test_post_init_capability_requires_text():
    with pytest.raises(MissingRequiredInput, match=r"no post_init_script supplied"):
        validate(_sel("post-init-script"), _ctx())


@pytest.mark.parametrize("capability", ["static-volume-provisioner", "static-ip-provisioner"])
def test_provisioners_require_instance_and_region(capability):
    with pytest.raises(MissingRequiredInput, match=r"no instance_id, region supplied") as excinfo:
        validate(_sel(capability), _ctx(instance_id="", region=""))
    assert excinfo.value.inputs == ("instance_id", "region")


def test_cluster_info_requires_bucket():
    with pytest.raises(MissingRequiredInput, match=r"no s3_bucket supplied"):
        validate(_sel("cluster-info"), _ctx(s3_bucket=""))


def test_first_violation_in_rule_order_wins():
    selection = _sel("aws-cfn-helper", "time-sync", "eks-worker-node-ami-scratch", "eks-worker-node-ami-reuse")
    with pytest.raises(InitScriptError) as excinfo:
        validate(selection, _ctx())
    assert excinfo.value.capability == "aws-cfn-helper"


def test_check_reports_every_violation_in_rule_order():
    selection = _sel("aws-cfn-helper", "time-sync", "eks-worker-node-ami-scratch", "eks-worker-node-ami-reuse")
    violations = check(selection, _ctx())
    assert [v.capability for v in violations] == [
        "aws-cfn-helper",
        "time-sync",
        "eks-worker-node-ami-scratch",
    ]
    assert [v.kind for v in violations] == [
        "missing_required_capability",
        "missing_required_capability",
        "conflicting_capabilities",
    ]


def test_unknown_capabilities_are_not_errors():
    validate(_sel("imds", "something-new"), _ctx())
    assert check(_sel("something-new"), _ctx()) == []


def test_validate_logs_failed_rule(caplog):
    caplog.set_level(logging.ERROR, logger="machine_init.validator")
    with pytest.raises(InitScriptError):
        validate(_sel("ena"), _ctx())
    assert "ena.requires.imds" in caplog.text


def test_rule_names_are_unique():
    names = [rule.name for rule in RULES]
    assert len(names) == len(set(names))


def test_error_payload_names_rule_and_capability():
    [violation] = check(_sel("ena"), _ctx())
    assert violation.as_dict() == {
        "error": "missing_required_capability",
        "message": "'ena' requires 'imds'",
        "capability": "ena",
        "rule": "ena.requires.imds",
        "missing": ["imds"],
    }
