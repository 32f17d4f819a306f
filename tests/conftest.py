"""Pytest configuration and fixtures for factory_registry tests."""

import importlib
import sys
import textwrap

import pytest

from factory_registry import RegistryContext


@pytest.fixture(autouse=True)
def reset_plugin_modules():
    """
    Remove temporary plugin packages from sys.modules between tests.

    Plugin modules register on import, so a cached module would skip
    registration in the next test.
    """
    yield
    to_remove = [key for key in sys.modules.keys() if 'test_pkg' in key]
    for key in to_remove:
        del sys.modules[key]


@pytest.fixture
def context():
    """A fresh registry context, so no test sees another test's registrations."""
    return RegistryContext()


@pytest.fixture
def plugin_package(tmp_path, monkeypatch):
    """
    Build a temporary plugin package on sys.path.

    Returns a function ``make(name, modules)`` where ``modules`` maps a
    relative module path (e.g. ``"circle.py"`` or ``"sub/__init__.py"``) to
    its source. The package ``__init__.py`` is created automatically.
    """
    monkeypatch.syspath_prepend(str(tmp_path))

    def make(name, modules):
        pkg_dir = tmp_path / name
        pkg_dir.mkdir()
        (pkg_dir / "__init__.py").write_text("")
        for rel_path, source in modules.items():
            path = pkg_dir / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(source))
        importlib.invalidate_caches()
        return pkg_dir

    return make
