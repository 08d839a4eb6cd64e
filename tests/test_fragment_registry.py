import pytest

from scriptkit.fragment_registry import FragmentRegistry
from scriptkit.fragment_types import FragmentRef


def _gen(_request):
    return "x\n"


def test_registry_rejects_duplicate_ids_per_kind():
    with pytest.raises(ValueError, match=r"Duplicate capability fragment id: docker"):
        FragmentRegistry.from_refs([FragmentRef(id="docker", generator=_gen), FragmentRef(id="docker", generator=_gen)])


def test_same_id_may_exist_under_different_kinds():
    registry = FragmentRegistry.from_refs(
        [FragmentRef(id="credentials", generator=_gen), FragmentRef(id="credentials", generator=_gen, kind="fixed")]
    )
    assert registry.available("capability") == ("credentials",)
    assert registry.available("fixed") == ("credentials",)


def test_get_unknown_id_suggests_close_matches():
    registry = FragmentRegistry.from_refs(
        [FragmentRef(id="docker", generator=_gen), FragmentRef(id="containerd", generator=_gen)]
    )
    with pytest.raises(ValueError, match=r"Unknown capability fragment id: dockr \(did you mean: docker\)"):
        registry.get("dockr")


def test_find_returns_none_for_missing_ids():
    registry = FragmentRegistry.from_refs([FragmentRef(id="docker", generator=_gen)])
    assert registry.find("docker").id == "docker"
    assert registry.find("docker", kind="fixed") is None
    assert registry.find("nope") is None


def test_lookup_does_not_normalize_whitespace_in_ids():
    registry = FragmentRegistry.from_refs([FragmentRef(id="docker", generator=_gen)])
    assert registry.find(" docker") is None
    with pytest.raises(ValueError, match=r"Unknown capability fragment id:  docker \(did you mean: docker\)"):
        registry.get(" docker")


def test_unknown_kind_is_rejected():
    registry = FragmentRegistry.from_refs([])
    with pytest.raises(ValueError, match=r"Unknown fragment kind"):
        registry.available("template")  # type: ignore[arg-type]


def test_describe_lists_metadata_sorted_by_kind_then_id():
    registry = FragmentRegistry.from_refs(
        [
            FragmentRef(id="helm", generator=_gen, doc="Install helm.", source="x.yaml#capabilities.helm", tags=("capabilities",)),
            FragmentRef(id="preamble", generator=_gen, kind="fixed"),
            FragmentRef(id="docker", generator=_gen),
        ]
    )
    rows = registry.describe()
    assert [(row["kind"], row["fragment_id"]) for row in rows] == [
        ("capability", "docker"),
        ("capability", "helm"),
        ("fixed", "preamble"),
    ]
    assert rows[1]["doc"] == "Install helm."
    assert rows[1]["tags"] == ["capabilities"]


def test_fragment_ref_validates_fields():
    with pytest.raises(TypeError, match=r"must be callable"):
        FragmentRef(id="x", generator="not callable")  # type: ignore[arg-type]
    with pytest.raises(ValueError, match=r"kind must be one of"):
        FragmentRef(id="x", generator=_gen, kind="other")  # type: ignore[arg-type]
    with pytest.raises(TypeError, match=r"non-empty string"):
        FragmentRef(id="  ", generator=_gen)


def test_fragment_ref_render_rejects_none():
    ref = FragmentRef(id="x", generator=lambda _request: None)
    with pytest.raises(ValueError, match=r"returned None"):
        ref.render(object())
