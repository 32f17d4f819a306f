"""
Plugin module discovery.

Auto-registering classes register when their module is imported. A plugin
module that nothing imports never registers anything, silently. This module
imports plugin packages explicitly so ``RegistryContext.bootstrap`` can make
registration a single, observable startup step.

Unlike a best-effort scan, an import failure is an error by default: a broken
plugin module would otherwise be indistinguishable from a missing one. Pass
``ignore_import_errors=True`` to log and skip such modules instead.
"""

import importlib
import inspect
import logging
import pkgutil
import sys
from collections.abc import Iterable
from typing import Callable, List, Optional, Set, Type

from .exceptions import DiscoveryError

logger = logging.getLogger(__name__)


def _import_module(module_name: str, ignore_import_errors: bool):
    """Import one module, returning None if it failed and errors are ignored."""
    try:
        return importlib.import_module(module_name)
    except Exception as e:
        if ignore_import_errors:
            logger.warning(f"Failed to load plugin module {module_name}: {e}")
            return None
        raise DiscoveryError(f"Failed to import plugin module {module_name}: {e}") from e


def _make_walk_onerror(ignore_import_errors: bool) -> Callable[[str], None]:
    """Build the onerror hook walk_packages calls when a subpackage fails to import."""
    def onerror(package_name: str) -> None:
        error = sys.exc_info()[1]
        if ignore_import_errors:
            logger.warning(f"Failed to load plugin package {package_name}: {error}")
            return
        raise DiscoveryError(f"Failed to import plugin package {package_name}: {error}") from error

    return onerror


def _iter_module_names(
    package_path: Iterable[str],
    package_prefix: str,
    recursive: bool,
    skip_packages: bool = True,
    ignore_import_errors: bool = False
):
    if recursive:
        # walk_packages imports subpackages itself to list their contents
        walker = pkgutil.walk_packages(
            package_path,
            prefix=package_prefix,
            onerror=_make_walk_onerror(ignore_import_errors)
        )
    else:
        walker = pkgutil.iter_modules(package_path, package_prefix)

    for _importer, module_name, ispkg in walker:
        if ispkg and skip_packages:
            continue
        yield module_name


def import_plugin_package(
    package_name: str,
    recursive: bool = False,
    ignore_import_errors: bool = False
) -> List[str]:
    """
    Import a plugin package and every module in it.

    Args:
        package_name: Dotted package name (e.g., "myapp.shapes")
        recursive: If True, import subpackages and their modules as well
        ignore_import_errors: If True, log and skip modules that fail to import

    Returns:
        Names of the modules imported, in import order

    Raises:
        DiscoveryError: If the package or a module in it cannot be imported
    """
    try:
        package = importlib.import_module(package_name)
    except Exception as e:
        raise DiscoveryError(f"Failed to import plugin package {package_name}: {e}") from e

    if not hasattr(package, '__path__'):
        raise DiscoveryError(f"{package_name} is a module, not a package")

    imported = []
    for module_name in _iter_module_names(
        package.__path__, f"{package_name}.", recursive,
        skip_packages=not recursive, ignore_import_errors=ignore_import_errors
    ):
        if _import_module(module_name, ignore_import_errors) is not None:
            imported.append(module_name)

    logger.info(f"Imported {len(imported)} plugin modules from {package_name}")
    return imported


def discover_registry_classes(
    package_path: Iterable[str],
    package_prefix: str,
    base_class: Type,
    exclude_modules: Optional[Set[str]] = None,
    validation_func: Optional[Callable[[Type], bool]] = None,
    skip_packages: bool = True,
    ignore_import_errors: bool = False
) -> List[Type]:
    """
    Import every module in one package level and collect subclasses of a base class.

    Importing is what registers auto-registering classes; the returned list
    reports which classes were found.

    Args:
        package_path: Package __path__ attribute to scan (e.g., myapp.shapes.__path__)
                     Accepts any iterable of strings (List, Tuple, _NamespacePath, etc.)
        package_prefix: Module prefix for importlib (e.g., "myapp.shapes.")
        base_class: Base class to filter for (e.g., Shape)
        exclude_modules: Set of module name substrings to skip (e.g., {'base'})
        validation_func: Optional function to validate discovered classes
                        Should return True to include, False to exclude
        skip_packages: If True, skip package directories (default: True)
        ignore_import_errors: If True, log and skip modules that fail to import

    Returns:
        List of discovered classes, in module order

    Raises:
        DiscoveryError: If a module cannot be imported and errors are not ignored

    Example:
        >>> import myapp.shapes
        >>> shapes = discover_registry_classes(
        ...     package_path=myapp.shapes.__path__,
        ...     package_prefix="myapp.shapes.",
        ...     base_class=Shape,
        ...     exclude_modules={'base'}
        ... )
        >>> print([s.__name__ for s in shapes])
        ['Circle', 'Square']
    """
    return _discover(
        package_path, package_prefix, base_class, exclude_modules,
        validation_func, ignore_import_errors,
        recursive=False, skip_packages=skip_packages
    )


def discover_registry_classes_recursive(
    package_path: Iterable[str],
    package_prefix: str,
    base_class: Type,
    exclude_modules: Optional[Set[str]] = None,
    validation_func: Optional[Callable[[Type], bool]] = None,
    ignore_import_errors: bool = False
) -> List[Type]:
    """
    Recursive version of discover_registry_classes that walks the entire package tree.

    Uses pkgutil.walk_packages instead of iter_modules to scan all subpackages.

    Args:
        package_path: Package __path__ attribute to scan
        package_prefix: Module prefix for importlib
        base_class: Base class to filter for
        exclude_modules: Set of module name substrings to skip
        validation_func: Optional function to validate discovered classes
        ignore_import_errors: If True, log and skip modules that fail to import

    Returns:
        List of discovered classes
    """
    return _discover(
        package_path, package_prefix, base_class, exclude_modules,
        validation_func, ignore_import_errors,
        recursive=True, skip_packages=True
    )


def _discover(
    package_path: Iterable[str],
    package_prefix: str,
    base_class: Type,
    exclude_modules: Optional[Set[str]],
    validation_func: Optional[Callable[[Type], bool]],
    ignore_import_errors: bool,
    recursive: bool,
    skip_packages: bool
) -> List[Type]:
    registry_classes = []
    exclude_modules = exclude_modules or set()

    logger.debug(
        f"Discovering classes: base={base_class.__name__}, prefix={package_prefix}, "
        f"exclude={exclude_modules}, recursive={recursive}"
    )

    for module_name in _iter_module_names(
        package_path, package_prefix, recursive, skip_packages, ignore_import_errors
    ):
        if any(excluded in module_name for excluded in exclude_modules):
            logger.debug(f"Skipping excluded module: {module_name}")
            continue

        module = _import_module(module_name, ignore_import_errors)
        if module is None:
            continue

        for _name, obj in inspect.getmembers(module, inspect.isclass):
            if not issubclass(obj, base_class) or obj is base_class:
                continue

            # Only include classes defined in this module (not imported)
            if obj.__module__ != module_name:
                continue

            if validation_func and not validation_func(obj):
                logger.debug(f"Validation failed for {obj.__name__}")
                continue

            logger.debug(f"Discovered class: {obj.__name__} from {module_name}")
            registry_classes.append(obj)

    logger.info(
        f"Discovered {len(registry_classes)} classes for {base_class.__name__}: "
        f"{[cls.__name__ for cls in registry_classes]}"
    )

    return registry_classes
