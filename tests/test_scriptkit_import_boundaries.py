import ast
import sys
from pathlib import Path

import pytest

import scriptkit
import scriptkit.engine

SCRIPTKIT_DIR = Path(__file__).resolve().parents[1] / "scriptkit"
KERNEL_MODULES = [
    "__init__.py",
    "config_section.py",
    "fragment_registry.py",
    "fragment_types.py",
    "engine/__init__.py",
    "engine/emitter.py",
]


def _imported_roots(path: Path) -> set[str]:
    roots: set[str] = set()
    for node in ast.parse(path.read_text(encoding="utf-8")).body:
        if isinstance(node, ast.Import):
            roots.update(alias.name.split(".")[0] for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
            roots.add(node.module.split(".")[0])
    return roots


def test_every_kernel_module_is_listed():
    found = sorted(p.relative_to(SCRIPTKIT_DIR).as_posix() for p in SCRIPTKIT_DIR.rglob("*.py"))
    assert found == sorted(KERNEL_MODULES)


@pytest.mark.parametrize("relpath", KERNEL_MODULES)
def test_kernel_module_imports_only_stdlib_and_itself(relpath):
    allowed = set(sys.stdlib_module_names) | {"__future__", "scriptkit"}
    assert _imported_roots(SCRIPTKIT_DIR / relpath) - allowed == set()


def test_top_level_exports_are_the_defining_objects():
    from scriptkit import config_section, fragment_registry, fragment_types
    from scriptkit.engine import emitter

    homes = (config_section, fragment_registry, fragment_types, emitter)
    for name in scriptkit.__all__:
        exported = getattr(scriptkit, name)
        assert any(getattr(home, name, None) is exported for home in homes), name


def test_engine_exports_are_reexported_at_top_level():
    assert set(scriptkit.engine.__all__) <= set(scriptkit.__all__)
    for name in scriptkit.engine.__all__:
        assert getattr(scriptkit.engine, name) is getattr(scriptkit, name)
