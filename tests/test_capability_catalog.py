import pytest

from machine_init import catalog
from machine_init.catalog import (
    EPILOGUE_CAPABILITIES,
    MAX_RANK,
    ExtensionCapability,
    KnownCapability,
    default_selection,
    expand_requested,
    known_values,
    parse,
    rank,
    sorted_capabilities,
    to_string,
)


def test_parse_round_trips_every_known_value():
    for member in KnownCapability:
        assert parse(member.value) is member
        assert to_string(parse(member.value)) == member.value


def test_parse_unknown_string_yields_extension_verbatim():
    parsed = parse("My-Custom Thing")
    assert parsed == ExtensionCapability("My-Custom Thing")
    assert to_string(parsed) == "My-Custom Thing"


def test_parse_is_case_sensitive():
    assert parse("Docker") == ExtensionCapability("Docker")
    assert parse("docker") is KnownCapability.DOCKER


def test_parse_rejects_non_strings():
    with pytest.raises(TypeError, match=r"must be a string"):
        parse(3)  # type: ignore[arg-type]


def test_ranks_are_unique_and_extensions_rank_last():
    ranks = [rank(member) for member in KnownCapability]
    assert len(ranks) == len(set(ranks))
    assert max(ranks) < MAX_RANK
    assert rank(ExtensionCapability("zzz")) == MAX_RANK


def test_ordering_follows_rank_table_not_declaration_order():
    ordered = sorted_capabilities(
        [KnownCapability.ANACONDA, KnownCapability.PYTHON, KnownCapability.IMDS]
    )
    assert ordered == (KnownCapability.IMDS, KnownCapability.PYTHON, KnownCapability.ANACONDA)


def test_extensions_sort_after_known_and_by_name():
    ordered = sorted_capabilities(
        [
            ExtensionCapability("zeta"),
            KnownCapability.CLEANUP_IMAGE_SSH_KEYS,
            ExtensionCapability("alpha"),
            KnownCapability.IMDS,
        ]
    )
    assert [to_string(c) for c in ordered] == [
        "imds",
        "cleanup-image-ssh-keys",
        "alpha",
        "zeta",
    ]


def test_known_values_lists_full_vocabulary_in_rank_order():
    values = known_values()
    assert len(values) == len(KnownCapability)
    assert values[0] == "imds"
    assert values[-1] == "cleanup-image-ssh-keys"
    assert [rank(parse(v)) for v in values] == sorted(rank(parse(v)) for v in values)


def test_default_selection_contents():
    assert [c.value for c in default_selection()] == [
        "imds",
        "provider-id",
        "vercmp",
        "setup-local-disks",
        "mount-bpf-fs",
        "time-sync",
        "system-limit-bump",
        "ssm-agent",
        "cloudwatch-agent",
        "anaconda",
        "aws-cfn-helper",
    ]


def test_expand_requested_replaces_default_token():
    expanded = expand_requested(["docker", "default"])
    assert expanded[0] == "docker"
    assert expanded[1:] == [c.value for c in default_selection()]


def test_epilogue_members_rank_after_every_regular_capability():
    regular = [c for c in KnownCapability if c not in EPILOGUE_CAPABILITIES]
    assert max(rank(c) for c in regular) < min(rank(c) for c in EPILOGUE_CAPABILITIES)


def test_rank_table_self_check_rejects_collisions(monkeypatch):
    ranks = dict(catalog._RANKS)
    ranks[KnownCapability.PYTHON] = ranks[KnownCapability.ANACONDA]
    monkeypatch.setattr(catalog, "_RANKS", ranks)

    with pytest.raises(ValueError, match=r"Rank collision: .*anaconda"):
        catalog._check_rank_table()


def test_rank_table_self_check_rejects_missing_rank(monkeypatch):
    ranks = dict(catalog._RANKS)
    del ranks[KnownCapability.HELM]
    monkeypatch.setattr(catalog, "_RANKS", ranks)

    with pytest.raises(ValueError, match=r"missing a rank: helm"):
        catalog._check_rank_table()
