"""
Identifier-to-creator registries and the context that owns them.

A ``Registry`` is a plain mapping from an identifier to a construction closure.
Registries are never global: a ``RegistryContext`` owns one registry per
``RegistryKey``, i.e. per (base class, closure signature, identifier type)
triple. Factories built over the same triple on the same context therefore
share a namespace, while a zero-argument and a single-argument factory over
the same base class stay isolated.

Architecture:
------------
1. RegistryConfig defines locking and logging behaviour
2. RegistryContext is the composition root; it hands out registries lazily
   and owns the RegistrationManifest used by the startup pass
3. Factories (see ``factory.py``) are thin facades over one registry

Concurrency:
-----------
Every registry guards all of its operations with its own ``RLock``. The
context guards registry creation with a separate lock. Closures are returned
from ``lookup`` and invoked by the caller, never while the lock is held.
``RegistryConfig(thread_safe=False)`` replaces the locks with no-ops for
single-threaded embedding.
"""

import contextlib
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Iterable, Optional, Tuple, Type

from .manifest import RegistrationManifest

logger = logging.getLogger(__name__)

# Type aliases for clarity
Creator = Callable[..., Any]
Signature = Tuple[Type, ...]

# Signature of zero-argument creators
NO_ARGUMENTS: Signature = ()


def _make_lock(thread_safe: bool):
    if thread_safe:
        return threading.RLock()
    return contextlib.nullcontext()


@dataclass(frozen=True)
class RegistryConfig:
    """
    Configuration for registry behaviour within one context.

    Attributes:
        thread_safe: If True, every registry serializes its operations with a lock.
                     If False, the caller must serialize access itself.
        log_registration: If True, log debug messages for register/remove/clear
        check_identifier_types: If True, factories reject identifiers that are not
                                instances of their identifier type
        registry_name: Human-readable name for logging (e.g., 'shape factory')
    """
    thread_safe: bool = True
    log_registration: bool = True
    check_identifier_types: bool = True
    registry_name: str = "factory"


@dataclass(frozen=True)
class RegistryKey:
    """Identity of one registry: (base class, closure signature, identifier type)."""
    base_class: Type
    signature: Signature
    identifier_type: Type

    def describe(self) -> str:
        args = ", ".join(t.__name__ for t in self.signature)
        return f"{self.base_class.__name__}({args}) keyed by {self.identifier_type.__name__}"


class Registry:
    """
    Mapping from identifier to construction closure.

    First writer wins: registering an identifier that is already present is
    rejected and leaves the existing closure in place. No iteration over the
    entries is exposed.
    """

    def __init__(self, key: Optional[RegistryKey] = None, config: Optional[RegistryConfig] = None):
        self.key = key
        self.config = config or RegistryConfig()
        self._entries: Dict[Hashable, Creator] = {}
        self._lock = _make_lock(self.config.thread_safe)

    @property
    def name(self) -> str:
        if self.key is None:
            return self.config.registry_name
        return f"{self.config.registry_name} [{self.key.describe()}]"

    def register_entry(self, identifier: Hashable, creator: Creator) -> bool:
        """
        Register a creator under an identifier.

        Args:
            identifier: Key the creator is stored under
            creator: Construction closure

        Returns:
            True if the creator was registered, False if the identifier already exists
        """
        with self._lock:
            if identifier in self._entries:
                if self.config.log_registration:
                    logger.debug(f"Rejected duplicate identifier {identifier!r} in {self.name}")
                return False
            self._entries[identifier] = creator

        if self.config.log_registration:
            logger.debug(f"Registered {identifier!r} in {self.name}")
        return True

    def remove_entry(self, identifier: Hashable) -> bool:
        """
        Remove the creator stored under an identifier.

        Returns:
            True if the creator was removed, False if the identifier does not exist
        """
        with self._lock:
            if identifier not in self._entries:
                return False
            del self._entries[identifier]

        if self.config.log_registration:
            logger.debug(f"Removed {identifier!r} from {self.name}")
        return True

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()

        if self.config.log_registration:
            logger.debug(f"Cleared {count} entries from {self.name}")

    def lookup(self, identifier: Hashable) -> Optional[Creator]:
        """Return the creator for an identifier, or None if it is not registered."""
        with self._lock:
            return self._entries.get(identifier)

    def __contains__(self, identifier) -> bool:
        with self._lock:
            return identifier in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __repr__(self) -> str:
        return f"<Registry {self.name}: {len(self)} entries>"


class RegistryContext:
    """
    Owner of every registry and of the registration manifest.

    Build one context at the application's composition root and pass it to
    the factories that need it. Tests build a fresh context per test case.
    """

    def __init__(self, config: Optional[RegistryConfig] = None):
        self.config = config or RegistryConfig()
        self.manifest = RegistrationManifest()
        self._registries: Dict[RegistryKey, Registry] = {}
        self._lock = _make_lock(self.config.thread_safe)

    def registry_for(self, key: RegistryKey) -> Registry:
        """Return the registry for a key, creating it on first use."""
        with self._lock:
            registry = self._registries.get(key)
            if registry is None:
                registry = Registry(key, self.config)
                self._registries[key] = registry
                logger.debug(f"Created registry for {key.describe()}")
            return registry

    def has_registry(self, key: RegistryKey) -> bool:
        with self._lock:
            return key in self._registries

    def clear_all(self) -> None:
        """Clear every registry owned by this context. The manifest is kept."""
        with self._lock:
            registries = list(self._registries.values())
        for registry in registries:
            registry.clear()

    def bootstrap(
        self,
        packages: Iterable[str] = (),
        recursive: bool = False,
        strict: bool = False,
        ignore_import_errors: bool = False
    ):
        """
        Run the explicit startup registration pass.

        Imports every module of each plugin package so that every
        auto-registering class is defined, then applies the manifest.

        Args:
            packages: Dotted names of plugin packages to import
            recursive: If True, walk subpackages as well
            strict: If True, raise RegistrationError when any registration failed
            ignore_import_errors: If True, log and skip plugin modules that fail to import

        Returns:
            Mapping from each RegistrationDescriptor to its RegistrationState

        Raises:
            DiscoveryError: If a plugin module cannot be imported
            RegistrationError: If strict and any registration failed
        """
        from .discovery import import_plugin_package

        for package_name in packages:
            import_plugin_package(
                package_name,
                recursive=recursive,
                ignore_import_errors=ignore_import_errors
            )

        return self.manifest.apply(strict=strict)

    def __repr__(self) -> str:
        with self._lock:
            count = len(self._registries)
        return f"<RegistryContext: {count} registries, {len(self.manifest)} declared registrations>"


_default_context: Optional[RegistryContext] = None
_default_lock = threading.Lock()


def get_default_context() -> RegistryContext:
    """Return the context used by factories built without ``context=``."""
    global _default_context
    with _default_lock:
        if _default_context is None:
            _default_context = RegistryContext()
        return _default_context


def reset_default_context(config: Optional[RegistryConfig] = None) -> RegistryContext:
    """Replace the default context with a fresh one and return it."""
    global _default_context
    with _default_lock:
        _default_context = RegistryContext(config)
        return _default_context
