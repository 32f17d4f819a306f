"""
Registration manifest: the explicit startup registration pass.

Every auto-registering class records a ``RegistrationDescriptor`` here when it
is defined. A manifest can also be filled by hand from a "register all known
types" function. ``apply()`` registers every descriptor in declaration order
and records the outcome on each class, so registration order and failures are
observable instead of being a side effect nobody can inspect.

Usage:
    manifest = context.manifest
    manifest.add(shape_factory, Circle)
    manifest.add(shape_factory, Square, identifier=4)
    states = manifest.apply()
"""

import enum
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Iterator, List, Optional, Tuple, Type

from .exceptions import RegistrationError

logger = logging.getLogger(__name__)

# Per-class marker: {(context, registry key): RegistrationState}
_MARKER_ATTR = '__factory_registrations__'


class RegistrationState(enum.Enum):
    """Lifecycle of one (class, factory) registration."""
    UNREGISTERED = "unregistered"
    REGISTERED = "registered"
    FAILED = "failed"


@dataclass(frozen=True, eq=False)
class RegistrationDescriptor:
    """One pending registration: which creator goes under which identifier in which factory."""
    factory: Any
    cls: Type
    identifier: Hashable
    creator: Callable[..., Any]

    def __repr__(self) -> str:
        return (
            f"RegistrationDescriptor({self.cls.__name__} as {self.identifier!r} "
            f"in {self.factory!r})"
        )


def marker_key(factory: Any) -> Tuple[Any, Any]:
    """Key a marker by the registry a factory forwards to, not by the factory object."""
    return (factory.context, factory.key)


def get_marker(cls: Type) -> Dict[Any, RegistrationState]:
    """Return the registration marker defined on ``cls`` itself (never inherited)."""
    return cls.__dict__.get(_MARKER_ATTR, {})


def set_marker(cls: Type, factory: Any, state: RegistrationState) -> None:
    marker = dict(get_marker(cls))
    marker[marker_key(factory)] = state
    setattr(cls, _MARKER_ATTR, marker)


class RegistrationManifest:
    """Ordered table of registration descriptors for one context."""

    def __init__(self):
        self._descriptors: List[RegistrationDescriptor] = []
        self._states: Dict[RegistrationDescriptor, RegistrationState] = {}
        self._lock = threading.RLock()

    def add(
        self,
        factory: Any,
        cls: Type,
        identifier: Optional[Hashable] = None,
        creator: Optional[Callable[..., Any]] = None
    ) -> RegistrationDescriptor:
        """
        Record a registration without applying it.

        Args:
            factory: Factory the class registers with
            cls: Concrete class to register
            identifier: Identifier override; defaults to ``cls.get_factory_id()``
            creator: Creator override; defaults to the class constructor

        Returns:
            The recorded descriptor
        """
        if identifier is None:
            identifier = factory.identifier_for(cls)
        else:
            factory.check_identifier(identifier)

        descriptor = RegistrationDescriptor(
            factory=factory,
            cls=cls,
            identifier=identifier,
            creator=creator if creator is not None else cls,
        )
        with self._lock:
            self._descriptors.append(descriptor)
            self._states[descriptor] = RegistrationState.UNREGISTERED
        set_marker(cls, factory, RegistrationState.UNREGISTERED)
        return descriptor

    def apply_one(self, descriptor: RegistrationDescriptor) -> RegistrationState:
        """Register one descriptor and record its state on the class."""
        factory = descriptor.factory
        existing = factory.get_creator(descriptor.identifier)

        if existing is not None and existing == descriptor.creator:
            state = RegistrationState.REGISTERED
        elif factory.register_creator(descriptor.identifier, descriptor.creator):
            state = RegistrationState.REGISTERED
        else:
            state = RegistrationState.FAILED
            logger.warning(
                f"Cannot register {descriptor.cls.__name__} as {descriptor.identifier!r}: "
                f"identifier already taken in {factory!r}"
            )

        with self._lock:
            self._states[descriptor] = state
        set_marker(descriptor.cls, factory, state)
        return state

    def apply(self, strict: bool = False) -> Dict[RegistrationDescriptor, RegistrationState]:
        """
        Register every descriptor in declaration order.

        Idempotent: a descriptor whose creator is already stored under its
        identifier counts as registered. Re-applying after a factory was
        cleared restores every recorded registration.

        Args:
            strict: If True, raise RegistrationError when any registration failed

        Returns:
            Mapping from descriptor to resulting state, in declaration order
        """
        results = {descriptor: self.apply_one(descriptor) for descriptor in self}

        failures = [d for d, state in results.items() if state is RegistrationState.FAILED]
        logger.debug(
            f"Applied {len(results)} registrations ({len(failures)} failed)"
        )
        if strict and failures:
            names = ", ".join(f"{d.cls.__name__} as {d.identifier!r}" for d in failures)
            raise RegistrationError(f"Failed registrations: {names}", failures)
        return results

    def state_of(self, descriptor: RegistrationDescriptor) -> RegistrationState:
        with self._lock:
            return self._states.get(descriptor, RegistrationState.UNREGISTERED)

    def failures(self) -> List[RegistrationDescriptor]:
        """Descriptors whose last application failed."""
        with self._lock:
            return [d for d in self._descriptors if self._states[d] is RegistrationState.FAILED]

    def descriptors_for(self, factory: Any) -> List[RegistrationDescriptor]:
        return [d for d in self if d.factory is factory]

    def __iter__(self) -> Iterator[RegistrationDescriptor]:
        with self._lock:
            return iter(list(self._descriptors))

    def __len__(self) -> int:
        with self._lock:
            return len(self._descriptors)
