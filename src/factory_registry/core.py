"""
Metaclass infrastructure for automatic factory registration.

A concrete class opts in by naming its factory in the class statement:

    class Circle(Shape, AutoRegister, factory=shape_factory):
        @staticmethod
        def get_factory_id():
            return 1

When the class statement runs, ``AutoRegisterMeta`` records a
``RegistrationDescriptor`` in the factory context's manifest and applies it.
The class is constructible through ``shape_factory.create(1)`` from then on,
with no registration call anywhere in application code.

A plugin module that is never imported never defines its classes, so nothing
registers. ``RegistryContext.bootstrap(packages=...)`` closes that gap by
importing every plugin module and re-applying the manifest at one well-defined
startup step.

Class keywords:
--------------
- factory: Factory to register with (required to register anything)
- identifier: Identifier override; defaults to ``get_factory_id()``
- constructor: Creator override; defaults to a ``create`` classmethod or
  staticmethod defined in the class body, else the class itself

Abstract classes (non-empty ``__abstractmethods__``) are never registered.
"""

import logging
from abc import ABCMeta
from typing import Any, Callable, Hashable, Optional, Type

from .exceptions import ConfigurationError
from .factory import FactoryBase
from .manifest import RegistrationState, get_marker, marker_key

logger = logging.getLogger(__name__)

# Named constructor a class may define instead of relying on __init__
CREATE_METHOD = 'create'


class AutoRegisterMeta(ABCMeta):
    """
    Metaclass that registers concrete classes with a factory at definition time.

    Features:
    - Skips abstract classes (checks __abstractmethods__)
    - Explicit identifier via class keyword or ``get_factory_id()``
    - Named ``create`` constructors or plain constructors
    - Per (class, factory) registration marker for diagnostics
    - Every registration recorded in the context manifest for re-application

    Usage:
        class Square(Shape, metaclass=AutoRegisterMeta, factory=shape_factory, identifier=4):
            pass
    """

    def __new__(mcs, name: str, bases: tuple, attrs: dict,
                factory: Optional[FactoryBase] = None,
                identifier: Optional[Hashable] = None,
                constructor: Optional[Callable[..., Any]] = None,
                **kwargs):
        """
        Create a new class and register it if a factory was named.

        Args:
            name: Name of the class being created
            bases: Base classes
            attrs: Class attributes dictionary
            factory: Factory to register the class with
            identifier: Identifier override
            constructor: Creator override

        Returns:
            The newly created class
        """
        new_class = super().__new__(mcs, name, bases, attrs, **kwargs)

        if factory is None:
            return new_class

        if not isinstance(factory, FactoryBase):
            raise ConfigurationError(
                f"Class {name} names {factory!r} as its factory, which is not a factory"
            )

        # Only register concrete classes
        if getattr(new_class, '__abstractmethods__', None):
            logger.debug(f"Skipping registration for abstract class {name}")
            return new_class

        factory._check_class(new_class)

        creator = constructor if constructor is not None else mcs._find_creator(new_class)
        manifest = factory.context.manifest
        descriptor = manifest.add(factory, new_class, identifier, creator)
        state = manifest.apply_one(descriptor)

        if state is RegistrationState.REGISTERED and factory.context.config.log_registration:
            logger.debug(f"Auto-registered {name} as {descriptor.identifier!r} in {factory!r}")

        return new_class

    def __init__(cls, name: str, bases: tuple, attrs: dict,
                 factory: Optional[FactoryBase] = None,
                 identifier: Optional[Hashable] = None,
                 constructor: Optional[Callable[..., Any]] = None,
                 **kwargs):
        super().__init__(name, bases, attrs, **kwargs)

    @staticmethod
    def _find_creator(cls: Type) -> Callable[..., Any]:
        """
        Return the ``create`` constructor defined in the class body, or the class itself.

        An inherited ``create`` is ignored: it builds the parent, not ``cls``.
        """
        attr = cls.__dict__.get(CREATE_METHOD)
        if isinstance(attr, (classmethod, staticmethod)):
            return getattr(cls, CREATE_METHOD)
        return cls


class AutoRegister(metaclass=AutoRegisterMeta):
    """
    Mixin that gives a class ``AutoRegisterMeta`` as its metaclass.

    Mixing it in registers nothing by itself; pass ``factory=`` in the class
    statement of each concrete class that should register.
    """
    pass


def registration_state(cls: Type, factory: FactoryBase) -> RegistrationState:
    """
    Return the registration state of ``cls`` with ``factory``.

    Any factory object over the same context and registry key reports the same state.
    """
    return get_marker(cls).get(marker_key(factory), RegistrationState.UNREGISTERED)


def is_registered(cls: Type, factory: FactoryBase) -> bool:
    """True if ``cls`` registered with ``factory`` successfully."""
    return registration_state(cls, factory) is RegistrationState.REGISTERED
