"""Exceptions for factory-registry."""


class RegistryError(Exception):
    """Base exception for registry-related errors."""
    pass


class ConfigurationError(RegistryError, ValueError):
    """Exception raised when a factory or auto-registration is misconfigured."""
    pass


class IdentifierError(RegistryError, TypeError):
    """Exception raised when an identifier is missing or has the wrong type."""
    pass


class RegistrationError(RegistryError):
    """Exception raised when a strict bootstrap finds failed registrations."""

    def __init__(self, message: str, failures=None):
        super().__init__(message)
        self.failures = list(failures or [])


class DiscoveryError(RegistryError):
    """Exception raised when plugin discovery fails."""
    pass
