"""String-keyed dependency injection container.

This package provides a small dependency injection container for Python.
Services are registered under string names as classes, factories, functions
or plain values. Every constructor or factory receives one `Dependencies`
bundle that resolves the names it reads, lazily and depth-first.

Exports:
- `Container` / `create_container`: registry and resolution engine.
- `ServiceBuilder`: fluent registration returned by `Container.register`.
- `Lifetime`: singleton, transient, scoped or value.
- `Scope`: named cache for scoped services, disposable and usable as a context manager.
- `Dependencies`: the read-only bundle injected into constructors and factories.
- `Hook`, `ResolveEvent`, `CreateEvent`: lifecycle hooks and their payloads.
- `TagMode`, `ResolvedService`: tag-based discovery.
"""

from ._container import (
    Container,
    ContainerOptions,
    CreateEvent,
    Hook,
    ResolvedService,
    ResolveEvent,
    TagMode,
    create_container,
)
from ._dependencies import DANGEROUS_KEYS, Dependencies
from ._errors import (
    CircularDependencyError,
    ContainerError,
    DangerousAccessError,
    DecoratorContractError,
    DuplicateRegistrationError,
    InvalidArgumentError,
    ReadOnlyDependenciesError,
    ResourceLimitError,
    ScopeExistsError,
    ScopeNotFoundError,
    ServiceNotFoundError,
)
from ._registration import ImplementationKind, Lifetime, ServiceBuilder, ServiceRegistration
from ._scope import Scope


__all__ = [
    "DANGEROUS_KEYS",
    "CircularDependencyError",
    "Container",
    "ContainerError",
    "ContainerOptions",
    "CreateEvent",
    "DangerousAccessError",
    "DecoratorContractError",
    "Dependencies",
    "DuplicateRegistrationError",
    "Hook",
    "ImplementationKind",
    "InvalidArgumentError",
    "Lifetime",
    "ReadOnlyDependenciesError",
    "ResolveEvent",
    "ResolvedService",
    "ResourceLimitError",
    "Scope",
    "ScopeExistsError",
    "ScopeNotFoundError",
    "ServiceBuilder",
    "ServiceNotFoundError",
    "ServiceRegistration",
    "TagMode",
    "create_container",
]
