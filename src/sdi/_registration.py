from __future__ import annotations

import functools
import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Union

from ._errors import InvalidArgumentError


if TYPE_CHECKING:
    from collections.abc import Callable

    from ._container import Container

DecoratorEntry = Union[str, "Callable[[Any], Any]"]


class Lifetime(Enum):
    SINGLETON = "singleton"
    TRANSIENT = "transient"
    SCOPED = "scoped"
    VALUE = "value"


class ImplementationKind(Enum):
    """How a registered implementation turns into an instance.

    - CLASS: instantiated with the dependencies bundle.
    - FACTORY: called with the dependencies bundle, its result is used as-is.
    - FUNCTION: called with the dependencies bundle; transient results are deep-copied.
    - OBJECT: used as the instance itself; transient registrations get a deep copy.
    """

    CLASS = "class"
    FACTORY = "factory"
    FUNCTION = "function"
    OBJECT = "object"


@dataclass(frozen=True)
class ServiceRegistration:
    name: str
    implementation: Any
    lifetime: Lifetime
    kind: ImplementationKind
    tags: frozenset[str] = field(default_factory=frozenset)
    decorators: tuple[DecoratorEntry, ...] = ()

    @property
    def is_factory(self) -> bool:
        return self.kind is ImplementationKind.FACTORY

    @property
    def sorted_tags(self) -> list[str]:
        return sorted(self.tags)


def format_name(declared: str) -> str:
    return declared[:1].lower() + declared[1:]


def infer_name(implementation: object) -> str:
    """Derive a service name from a class or function's declared name."""
    declared = getattr(implementation, "__name__", None) if callable(implementation) else None
    if not isinstance(declared, str) or not declared or declared == "<lambda>":
        msg = "Service name is required when implementation has no name"
        raise InvalidArgumentError(msg)
    return format_name(declared)


def detect_kind(implementation: object) -> ImplementationKind:
    # Static inspection only: the candidate is never called here.
    if inspect.isclass(implementation):
        return ImplementationKind.CLASS
    if inspect.isroutine(implementation) or isinstance(implementation, functools.partial):
        return ImplementationKind.FUNCTION
    return ImplementationKind.OBJECT


def accepts_argument(target: object) -> bool:
    """Whether `target` can be called with one positional argument.

    Targets without an inspectable signature are assumed to accept it.
    """
    try:
        sig = inspect.signature(target)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return True

    return any(
        p.kind
        in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.VAR_POSITIONAL)
        for p in sig.parameters.values()
    )


def validate_name(name: object, what: str = "Service name") -> str:
    if not isinstance(name, str) or not name:
        msg = f"{what} must be a non-empty string"
        raise InvalidArgumentError(msg)
    return name


class ServiceBuilder:
    """Fluent configuration for one registration.

    Nothing reaches the container until one of the terminal lifetime methods
    (`as_singleton`, `as_transient`, `as_scoped`, `as_value`) is called; those
    return the container so registrations can be chained:

      container.register(Database).with_tag("persistence").as_singleton()
    """

    def __init__(self, container: Container, implementation: Any, name: str | None = None) -> None:
        self._container = container
        self.implementation = implementation
        self.name = infer_name(implementation) if name is None else validate_name(name)
        self.kind = detect_kind(implementation)
        self.lifetime = Lifetime.SINGLETON
        self.tags: set[str] = set()
        self.decorators: list[DecoratorEntry] = []
        self._conditions: list[Callable[[], object]] = []
        self._override = False
        self._committed = False

    def as_singleton(self) -> Container:
        return self._commit(Lifetime.SINGLETON)

    def as_transient(self) -> Container:
        return self._commit(Lifetime.TRANSIENT)

    def as_scoped(self) -> Container:
        return self._commit(Lifetime.SCOPED)

    def as_value(self) -> Container:
        return self._commit(Lifetime.VALUE)

    def as_factory(self) -> ServiceBuilder:
        if not callable(self.implementation):
            msg = "Factory must be a function"
            raise InvalidArgumentError(msg)
        self.kind = ImplementationKind.FACTORY
        return self

    def with_tag(self, tag: str) -> ServiceBuilder:
        self.tags.add(validate_name(tag, "Tag"))
        return self

    def with_tags(self, *tags: str) -> ServiceBuilder:
        for tag in tags:
            self.with_tag(tag)
        return self

    def when(self, condition: Callable[[], object]) -> ServiceBuilder:
        """Only register if every condition holds at commit time."""
        if not callable(condition):
            msg = "Condition must be a function"
            raise InvalidArgumentError(msg)
        self._conditions.append(condition)
        return self

    def override(self) -> ServiceBuilder:
        self._override = True
        return self

    def decorate_with(self, names: list[str] | tuple[str, ...]) -> ServiceBuilder:
        """Append decorator services, applied in the given order after construction."""
        if not isinstance(names, (list, tuple)):
            msg = "decorate_with requires a list of decorator service names"
            raise InvalidArgumentError(msg)
        for name in names:
            self.decorators.append(validate_name(name, "Decorator name"))
        return self

    def decorate(self, decorator: Callable[[Any], Any]) -> ServiceBuilder:
        if not callable(decorator):
            msg = "Decorator must be a function"
            raise InvalidArgumentError(msg)
        self.decorators.append(decorator)
        return self

    def _commit(self, lifetime: Lifetime) -> Container:
        self.lifetime = lifetime
        registration = ServiceRegistration(
            name=self.name,
            implementation=self.implementation,
            lifetime=lifetime,
            kind=self.kind,
            tags=frozenset(self.tags),
            decorators=tuple(self.decorators),
        )
        # A builder committing a second time replaces its own earlier registration.
        installed = self._container._install(  # noqa: SLF001
            registration,
            override=self._override or self._committed,
            conditions=tuple(self._conditions),
        )
        self._committed = self._committed or installed
        return self._container

    def __repr__(self) -> str:
        return f"ServiceBuilder(name={self.name!r}, kind={self.kind.value}, lifetime={self.lifetime.value})"
