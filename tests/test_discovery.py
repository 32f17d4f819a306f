"""Tests for factory_registry.discovery module and bootstrap."""

import importlib
import logging

import pytest

from factory_registry import DiscoveryError, RegistrationError, RegistrationState
from factory_registry.discovery import (
    discover_registry_classes,
    discover_registry_classes_recursive,
    import_plugin_package,
)


BASE_MODULE = """
from factory_registry import BasicFactory, RegistryContext

CONTEXT = RegistryContext()


class Shape:
    __factory_identifier_type__ = int
    sides = 0


SHAPES = BasicFactory(Shape, context=CONTEXT)
"""

CIRCLE_MODULE = """
from factory_registry import AutoRegister
from .base import Shape, SHAPES


class Circle(Shape, AutoRegister, factory=SHAPES):
    @staticmethod
    def get_factory_id():
        return 1
"""

SQUARE_MODULE = """
from factory_registry import AutoRegister
from .base import Shape, SHAPES


class Square(Shape, AutoRegister, factory=SHAPES):
    sides = 4

    @staticmethod
    def get_factory_id():
        return 4
"""

TRIANGLE_MODULE = """
from factory_registry import AutoRegister
from ..base import Shape, SHAPES


class Triangle(Shape, AutoRegister, factory=SHAPES):
    sides = 3

    @staticmethod
    def get_factory_id():
        return 3
"""


@pytest.fixture
def shapes_package(plugin_package):
    plugin_package("test_pkg_shapes", {
        "base.py": BASE_MODULE,
        "circle.py": CIRCLE_MODULE,
        "square.py": SQUARE_MODULE,
        "polygons/__init__.py": "",
        "polygons/triangle.py": TRIANGLE_MODULE,
    })
    return importlib.import_module("test_pkg_shapes.base")


class TestDiscoverRegistryClasses:
    """Test discover_registry_classes function."""

    def test_discover_simple_classes(self, shapes_package):
        """Test discovering classes from one package level."""
        pkg = importlib.import_module("test_pkg_shapes")

        discovered = discover_registry_classes(
            package_path=pkg.__path__,
            package_prefix="test_pkg_shapes.",
            base_class=shapes_package.Shape,
            exclude_modules={'base'},
        )

        assert {cls.__name__ for cls in discovered} == {'Circle', 'Square'}

    def test_discovery_registers(self, shapes_package):
        """Test that discovering a package registers its classes."""
        pkg = importlib.import_module("test_pkg_shapes")
        assert shapes_package.SHAPES.create(1) is None

        discover_registry_classes(pkg.__path__, "test_pkg_shapes.", shapes_package.Shape)

        assert type(shapes_package.SHAPES.create(1)).__name__ == 'Circle'
        assert shapes_package.SHAPES.create(4).sides == 4

    def test_exclude_modules(self, shapes_package):
        """Test excluding modules by name substring."""
        pkg = importlib.import_module("test_pkg_shapes")

        discovered = discover_registry_classes(
            package_path=pkg.__path__,
            package_prefix="test_pkg_shapes.",
            base_class=shapes_package.Shape,
            exclude_modules={'base', 'square'},
        )

        assert [cls.__name__ for cls in discovered] == ['Circle']
        assert shapes_package.SHAPES.create(4) is None

    def test_validation_func(self, shapes_package):
        """Test filtering discovered classes with a validation function."""
        pkg = importlib.import_module("test_pkg_shapes")

        discovered = discover_registry_classes(
            package_path=pkg.__path__,
            package_prefix="test_pkg_shapes.",
            base_class=shapes_package.Shape,
            validation_func=lambda cls: cls.sides > 0,
        )

        assert [cls.__name__ for cls in discovered] == ['Square']

    def test_recursive(self, shapes_package):
        """Test walking subpackages."""
        pkg = importlib.import_module("test_pkg_shapes")

        discovered = discover_registry_classes_recursive(
            package_path=pkg.__path__,
            package_prefix="test_pkg_shapes.",
            base_class=shapes_package.Shape,
        )

        assert {cls.__name__ for cls in discovered} == {'Circle', 'Square', 'Triangle'}
        assert shapes_package.SHAPES.create(3).sides == 3

    def test_import_error_raises(self, plugin_package):
        """Test that a broken plugin module is an error by default."""
        plugin_package("test_pkg_broken", {
            "base.py": BASE_MODULE,
            "broken.py": "import nonexistent_module  # This will fail\n",
        })
        base = importlib.import_module("test_pkg_broken.base")
        pkg = importlib.import_module("test_pkg_broken")

        with pytest.raises(DiscoveryError, match="test_pkg_broken.broken"):
            discover_registry_classes(pkg.__path__, "test_pkg_broken.", base.Shape)

    def test_import_error_ignored(self, plugin_package):
        """Test skipping broken modules when asked to."""
        plugin_package("test_pkg_broken2", {
            "base.py": BASE_MODULE,
            "broken.py": "raise RuntimeError('boom')\n",
            "circle.py": CIRCLE_MODULE,
        })
        base = importlib.import_module("test_pkg_broken2.base")
        pkg = importlib.import_module("test_pkg_broken2")

        discovered = discover_registry_classes(
            pkg.__path__, "test_pkg_broken2.", base.Shape, ignore_import_errors=True
        )

        assert [cls.__name__ for cls in discovered] == ['Circle']


class TestImportPluginPackage:
    """Test import_plugin_package function."""

    def test_imports_top_level_modules(self, shapes_package):
        """Test importing one package level."""
        imported = import_plugin_package("test_pkg_shapes")

        assert set(imported) == {
            "test_pkg_shapes.base",
            "test_pkg_shapes.circle",
            "test_pkg_shapes.square",
        }

    def test_imports_recursively(self, shapes_package):
        """Test importing subpackages as well."""
        imported = import_plugin_package("test_pkg_shapes", recursive=True)
        assert "test_pkg_shapes.polygons.triangle" in imported

    def test_missing_package(self):
        """Test that an unknown package is a discovery error."""
        with pytest.raises(DiscoveryError, match="test_pkg_missing"):
            import_plugin_package("test_pkg_missing")

    def test_module_is_not_a_package(self, shapes_package):
        """Test that a plain module is rejected."""
        with pytest.raises(DiscoveryError, match="not a package"):
            import_plugin_package("test_pkg_shapes.base")


class TestBootstrap:
    """Test RegistryContext.bootstrap, the explicit startup pass."""

    def test_bootstrap_registers_plugins(self, shapes_package):
        """Test that bootstrap imports plugins and registers them."""
        context = shapes_package.CONTEXT
        shapes = shapes_package.SHAPES
        assert shapes.create(1) is None

        results = context.bootstrap(packages=["test_pkg_shapes"])

        assert [d.cls.__name__ for d in results] == ['Circle', 'Square']
        assert all(state is RegistrationState.REGISTERED for state in results.values())
        assert shapes.create(1) is not None
        assert shapes.create(3) is None

    def test_bootstrap_recursive(self, shapes_package):
        """Test bootstrapping a nested plugin package."""
        shapes_package.CONTEXT.bootstrap(packages=["test_pkg_shapes"], recursive=True)
        assert shapes_package.SHAPES.create(3).sides == 3

    def test_bootstrap_restores_after_clear(self, shapes_package):
        """Test that a second bootstrap restores cleared registrations."""
        context = shapes_package.CONTEXT
        context.bootstrap(packages=["test_pkg_shapes"])
        context.clear_all()
        assert shapes_package.SHAPES.create(1) is None

        context.bootstrap()
        assert shapes_package.SHAPES.create(1) is not None

    def test_bootstrap_strict_collision(self, plugin_package):
        """Test that strict bootstrap reports identifier collisions."""
        plugin_package("test_pkg_clash", {
            "base.py": BASE_MODULE,
            "circle.py": CIRCLE_MODULE,
            "disc.py": CIRCLE_MODULE.replace("class Circle", "class Disc"),
        })
        base = importlib.import_module("test_pkg_clash.base")

        with pytest.raises(RegistrationError) as exc_info:
            base.CONTEXT.bootstrap(packages=["test_pkg_clash"], strict=True)

        assert [d.cls.__name__ for d in exc_info.value.failures] == ['Disc']
        assert type(base.SHAPES.create(1)).__name__ == 'Circle'

    def test_bootstrap_broken_plugin(self, plugin_package):
        """Test that a plugin that cannot be imported stops bootstrap."""
        plugin_package("test_pkg_broken3", {
            "base.py": BASE_MODULE,
            "broken.py": "import nonexistent_module\n",
        })
        base = importlib.import_module("test_pkg_broken3.base")

        with pytest.raises(DiscoveryError):
            base.CONTEXT.bootstrap(packages=["test_pkg_broken3"])


class TestBrokenSubpackages:
    """Test that recursive discovery reports subpackages that fail to import."""

    def _make(self, plugin_package, name, init_source):
        plugin_package(name, {
            "base.py": BASE_MODULE,
            "circle.py": CIRCLE_MODULE,
            "polygons/__init__.py": init_source,
            "polygons/triangle.py": TRIANGLE_MODULE,
        })
        return importlib.import_module(f"{name}.base")

    def test_recursive_discovery_raises(self, plugin_package):
        """Test that a subpackage with a failing import is a discovery error."""
        base = self._make(plugin_package, "test_pkg_badsub", "import nonexistent_module\n")
        pkg = importlib.import_module("test_pkg_badsub")

        with pytest.raises(DiscoveryError, match="test_pkg_badsub.polygons") as exc_info:
            discover_registry_classes_recursive(pkg.__path__, "test_pkg_badsub.", base.Shape)

        assert isinstance(exc_info.value.__cause__, ImportError)

    def test_non_import_error_is_wrapped(self, plugin_package):
        """Test that other exceptions from a subpackage become discovery errors."""
        base = self._make(plugin_package, "test_pkg_badsub2", "raise RuntimeError('boom')\n")
        pkg = importlib.import_module("test_pkg_badsub2")

        with pytest.raises(DiscoveryError, match="boom") as exc_info:
            discover_registry_classes_recursive(pkg.__path__, "test_pkg_badsub2.", base.Shape)

        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_recursive_discovery_ignores_when_asked(self, plugin_package, caplog):
        """Test that ignored subpackage failures are logged and the rest is discovered."""
        base = self._make(plugin_package, "test_pkg_badsub3", "import nonexistent_module\n")
        pkg = importlib.import_module("test_pkg_badsub3")

        with caplog.at_level(logging.WARNING, logger="factory_registry.discovery"):
            discovered = discover_registry_classes_recursive(
                pkg.__path__, "test_pkg_badsub3.", base.Shape, ignore_import_errors=True
            )

        assert [cls.__name__ for cls in discovered] == ['Circle']
        assert "test_pkg_badsub3.polygons" in caplog.text

    def test_recursive_bootstrap_raises(self, plugin_package):
        """Test that bootstrap stops on a subpackage that fails to import."""
        base = self._make(plugin_package, "test_pkg_badsub4", "import nonexistent_module\n")

        with pytest.raises(DiscoveryError):
            base.CONTEXT.bootstrap(packages=["test_pkg_badsub4"], recursive=True)
