"""
factory-registry: identifier-keyed object construction with auto-registration.

This package lets independently written classes register a way to construct
themselves under a small identifier, and lets callers construct the right
concrete class later from only that identifier and, optionally, one argument.
"""

__version__ = "0.1.0"

from .registry import (
    Registry,
    RegistryConfig,
    RegistryContext,
    RegistryKey,
    NO_ARGUMENTS,
    get_default_context,
    reset_default_context,
)
from .factory import FactoryBase, BasicFactory, SingleArgumentFactory
from .manifest import RegistrationDescriptor, RegistrationManifest, RegistrationState
from .core import AutoRegisterMeta, AutoRegister, registration_state, is_registered
from .discovery import (
    discover_registry_classes,
    discover_registry_classes_recursive,
    import_plugin_package,
)
from .exceptions import (
    RegistryError,
    ConfigurationError,
    IdentifierError,
    RegistrationError,
    DiscoveryError,
)

__all__ = [
    # Registry
    "Registry",
    "RegistryConfig",
    "RegistryContext",
    "RegistryKey",
    "NO_ARGUMENTS",
    "get_default_context",
    "reset_default_context",
    # Factories
    "FactoryBase",
    "BasicFactory",
    "SingleArgumentFactory",
    # Auto-registration
    "AutoRegisterMeta",
    "AutoRegister",
    "registration_state",
    "is_registered",
    "RegistrationDescriptor",
    "RegistrationManifest",
    "RegistrationState",
    # Discovery
    "discover_registry_classes",
    "discover_registry_classes_recursive",
    "import_plugin_package",
    # Exceptions
    "RegistryError",
    "ConfigurationError",
    "IdentifierError",
    "RegistrationError",
    "DiscoveryError",
]
