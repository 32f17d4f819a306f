"""
Typed factories over identifier-keyed registries.

Two shapes are provided:

- ``BasicFactory``: creators take no arguments
- ``SingleArgumentFactory``: creators take exactly one argument whose type is
  fixed when the factory is built

Both are stateless facades. The registry they forward to is looked up in
their ``RegistryContext`` by (base class, signature, identifier type), so
every factory object built over the same triple on the same context sees the
same identifiers.

Usage:
    class Shape:
        __factory_identifier_type__ = int

    shapes = BasicFactory(Shape, context=context)
    shapes.register_type(Circle)          # identifier from Circle.get_factory_id()
    shapes.register_type(Square, 4)       # explicit identifier
    circle = shapes.create(Circle.get_factory_id())
    nothing = shapes.create(99)           # unknown identifier -> None
"""

import logging
from typing import Any, Callable, Generic, Hashable, Optional, Type, TypeVar

from .exceptions import ConfigurationError, IdentifierError
from .registry import (
    NO_ARGUMENTS,
    Creator,
    Registry,
    RegistryContext,
    RegistryKey,
    Signature,
    get_default_context,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')  # Base class of constructed objects

# Class attribute a base class uses to declare its identifier type
IDENTIFIER_TYPE_ATTRIBUTE = '__factory_identifier_type__'

# Method a registrable class uses to provide its identifier
IDENTIFIER_PROVIDER = 'get_factory_id'


class FactoryBase(Generic[T]):
    """
    Base of all factories.

    Holds the registry key and forwards registration, removal and clearing to
    the registry. It has no ``create``; subclasses define one for their
    creator signature. Inherit this to build a factory with another shape.

    Type Parameters:
        T: Base class of the constructed objects
    """

    def __init__(
        self,
        base_class: Type[T],
        signature: Signature = NO_ARGUMENTS,
        identifier_type: Optional[Type] = None,
        context: Optional[RegistryContext] = None
    ):
        """
        Initialize factory.

        Args:
            base_class: Base class of all constructed objects
            signature: Argument types every creator accepts
            identifier_type: Identifier type; defaults to the base class's
                             ``__factory_identifier_type__``
            context: Context owning the registry; defaults to the module default
                     context at construction time

        Raises:
            ConfigurationError: If no identifier type is given or declared
        """
        if identifier_type is None:
            identifier_type = getattr(base_class, IDENTIFIER_TYPE_ATTRIBUTE, None)
        if identifier_type is None:
            raise ConfigurationError(
                f"{base_class.__name__} must declare {IDENTIFIER_TYPE_ATTRIBUTE} "
                f"or an identifier_type must be passed to the factory"
            )
        if not isinstance(identifier_type, type):
            raise ConfigurationError(f"Identifier type must be a class, got {identifier_type!r}")

        self.context = context if context is not None else get_default_context()
        self.key = RegistryKey(base_class, tuple(signature), identifier_type)
        self._registry: Optional[Registry] = None

    @property
    def base_class(self) -> Type[T]:
        return self.key.base_class

    @property
    def identifier_type(self) -> Type:
        return self.key.identifier_type

    @property
    def registry(self) -> Registry:
        """The registry this factory forwards to, created on first use."""
        if self._registry is None:
            self._registry = self.context.registry_for(self.key)
        return self._registry

    def check_identifier(self, identifier: Hashable) -> None:
        """
        Raise IdentifierError if ``identifier`` is not of the identifier type.

        Skipped when the context config disables identifier type checks.
        """
        if not self.context.config.check_identifier_types:
            return
        if not isinstance(identifier, self.identifier_type):
            raise IdentifierError(
                f"Identifier {identifier!r} is not a {self.identifier_type.__name__} "
                f"(factory {self!r})"
            )

    def identifier_for(self, cls: Type) -> Hashable:
        """
        Get the identifier a class declares through ``get_factory_id()``.

        Raises:
            IdentifierError: If the class has no identifier provider or it
                             returns an identifier of the wrong type
        """
        provider = getattr(cls, IDENTIFIER_PROVIDER, None)
        if provider is None:
            raise IdentifierError(
                f"Class {cls.__name__} must define {IDENTIFIER_PROVIDER}() "
                f"or be registered with an explicit identifier"
            )
        identifier = provider()
        self.check_identifier(identifier)
        return identifier

    def _check_class(self, cls: Type) -> None:
        if not (isinstance(cls, type) and issubclass(cls, self.base_class)):
            raise TypeError(f"{cls!r} is not a subclass of {self.base_class.__name__}")

    def register_creator(self, identifier: Hashable, creator: Creator) -> bool:
        """
        Register a creator function under an identifier.

        Returns:
            True if the creator was registered, False if the identifier already exists
        """
        self.check_identifier(identifier)
        if not callable(creator):
            raise TypeError(f"Creator for {identifier!r} must be callable, got {creator!r}")
        return self.registry.register_entry(identifier, creator)

    def remove_creator(self, identifier: Hashable) -> bool:
        """
        Remove the creator registered under an identifier.

        Returns:
            True if the creator was removed, False if the identifier does not exist
        """
        self.check_identifier(identifier)
        return self.registry.remove_entry(identifier)

    # Reads better at call sites that registered classes rather than creators
    remove_type = remove_creator

    def get_creator(self, identifier: Hashable) -> Optional[Creator]:
        self.check_identifier(identifier)
        return self.registry.lookup(identifier)

    def clear(self) -> None:
        """Remove every creator from this factory's registry."""
        self.registry.clear()

    def register(
        self,
        identifier: Optional[Hashable] = None,
        creator: Optional[Callable[..., Any]] = None
    ) -> Callable[[Type], Type]:
        """
        Class decorator that registers the decorated class with this factory.

        The registration is recorded in the context manifest, so it is
        restored by ``manifest.apply()`` after a ``clear()``.

        Args:
            identifier: Identifier override; defaults to ``cls.get_factory_id()``
            creator: Creator override; defaults to the class constructor
        """
        def decorator(cls: Type) -> Type:
            self._check_class(cls)
            descriptor = self.context.manifest.add(self, cls, identifier, creator)
            self.context.manifest.apply_one(descriptor)
            return cls

        return decorator

    def _invoke(self, identifier: Hashable, *args: Any) -> Optional[T]:
        self.check_identifier(identifier)
        creator = self.registry.lookup(identifier)
        if creator is None:
            logger.debug(f"No creator registered for {identifier!r} in {self!r}")
            return None
        return creator(*args)

    def __contains__(self, identifier) -> bool:
        self.check_identifier(identifier)
        return identifier in self.registry

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.key.describe()}>"


class BasicFactory(FactoryBase[T]):
    """
    Factory whose creators take no arguments.

    Type Parameters:
        T: Base class of the constructed objects
    """

    def __init__(
        self,
        base_class: Type[T],
        identifier_type: Optional[Type] = None,
        context: Optional[RegistryContext] = None
    ):
        super().__init__(base_class, NO_ARGUMENTS, identifier_type, context)

    def create(self, identifier: Hashable) -> Optional[T]:
        """
        Create an object from its identifier.

        Returns:
            Whatever the creator returns (possibly None), or None if the
            identifier is not registered
        """
        return self._invoke(identifier)

    def register_type(self, cls: Type[T], identifier: Optional[Hashable] = None) -> bool:
        """
        Register a class so that ``create`` calls ``cls()``.

        Args:
            cls: Class to register; must subclass the base class
            identifier: Identifier override; defaults to ``cls.get_factory_id()``

        Returns:
            True if the class was registered, False if the identifier already exists
        """
        self._check_class(cls)
        if identifier is None:
            identifier = self.identifier_for(cls)
        return self.register_creator(identifier, cls)


class SingleArgumentFactory(FactoryBase[T]):
    """
    Factory whose creators take exactly one argument.

    The argument type belongs to the factory, not to each registration: every
    class registered here must accept the same argument in its constructor.
    The argument itself is passed through unchecked.

    Type Parameters:
        T: Base class of the constructed objects
    """

    def __init__(
        self,
        base_class: Type[T],
        arg_type: Type,
        identifier_type: Optional[Type] = None,
        context: Optional[RegistryContext] = None
    ):
        super().__init__(base_class, (arg_type,), identifier_type, context)

    @property
    def arg_type(self) -> Type:
        return self.key.signature[0]

    def create(self, identifier: Hashable, arg: Any) -> Optional[T]:
        """
        Create an object from its identifier, passing ``arg`` to its creator.

        Returns:
            Whatever the creator returns (possibly None), or None if the
            identifier is not registered
        """
        return self._invoke(identifier, arg)

    def register_constructor(self, cls: Type[T], identifier: Optional[Hashable] = None) -> bool:
        """
        Register a class so that ``create(identifier, arg)`` calls ``cls(arg)``.

        Args:
            cls: Class to register; must subclass the base class
            identifier: Identifier override; defaults to ``cls.get_factory_id()``

        Returns:
            True if the class was registered, False if the identifier already exists
        """
        self._check_class(cls)
        if identifier is None:
            identifier = self.identifier_for(cls)
        return self.register_creator(identifier, cls)
