from __future__ import annotations

import copy
import dataclasses
import functools
import inspect
import json
import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from ._decorators import apply_decorators
from ._dependencies import Dependencies
from ._errors import (
    CircularDependencyError,
    DuplicateRegistrationError,
    InvalidArgumentError,
    ResourceLimitError,
    ScopeExistsError,
    ScopeNotFoundError,
    ServiceNotFoundError,
)
from ._registration import (
    ImplementationKind,
    Lifetime,
    ServiceBuilder,
    ServiceRegistration,
    accepts_argument,
    validate_name,
)
from ._scope import Scope


if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    HookCallback = Callable[[Any], object]


logger = logging.getLogger(__name__)

_UNSET = object()


@dataclass
class ContainerOptions:
    """Container configuration.

    `verbose` raises registration/resolution log records from DEBUG to INFO.
    The `max_*` limits are enforced eagerly: reaching one raises
    ResourceLimitError instead of evicting anything.
    """

    verbose: bool = False
    auto_binding: bool = True
    strict_mode: bool = False
    allow_overrides: bool = False
    max_services: int = 1000
    max_instances: int = 5000
    max_scopes: int = 100
    max_hooks_per_event: int = 50

    def __post_init__(self) -> None:
        for name in ("max_services", "max_instances", "max_scopes", "max_hooks_per_event"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                msg = f"{name} must be a positive integer, got {value!r}"
                raise InvalidArgumentError(msg)


class Hook(Enum):
    BEFORE_RESOLVE = "before_resolve"
    AFTER_RESOLVE = "after_resolve"
    BEFORE_CREATE = "before_create"
    AFTER_CREATE = "after_create"


class TagMode(Enum):
    AND = "AND"
    OR = "OR"


@dataclass(frozen=True)
class ResolveEvent:
    name: str
    scope_name: str | None
    result: Any = None


@dataclass(frozen=True)
class CreateEvent:
    registration: ServiceRegistration
    scope: Scope | None
    instance: Any = None


@dataclass(frozen=True)
class ResolvedService:
    name: str
    instance: Any
    registration: ServiceRegistration

    @property
    def tags(self) -> list[str]:
        return self.registration.sorted_tags

    @property
    def lifetime(self) -> Lifetime:
        return self.registration.lifetime


class Container:
    """String-keyed dependency injection container.

    - register classes, factories, functions or plain values under a name
    - resolve with a single `Dependencies` bundle injected into each constructor
    - lifetimes: singleton / transient / scoped / value
    - tag-based discovery, lifecycle hooks and service decorators.
    """

    def __init__(self, options: ContainerOptions | None = None, **overrides: Any) -> None:
        options = options if options is not None else ContainerOptions()
        if overrides:
            try:
                options = dataclasses.replace(options, **overrides)
            except TypeError as e:
                msg = f"Unknown container option: {e}"
                raise InvalidArgumentError(msg) from e

        self.options = options
        self._registrations: dict[str, ServiceRegistration] = {}
        self._instances: dict[str, Any] = {}
        self._scopes: dict[str, Scope] = {}
        self._hooks: dict[Hook, list[HookCallback]] = {hook: [] for hook in Hook}
        self._resolution_stack: list[str] | None = None
        self._lock = threading.RLock()

    # -- registration -------------------------------------------------------

    def register(self, implementation: Any, name: str | None = None) -> ServiceBuilder:
        """Start a registration; it is committed by a terminal `as_*` call on the builder.

        Classes, factories and functions receive the `Dependencies` bundle as
        their first positional argument when they declare one (or `*args`),
        and are called with no arguments otherwise. A class whose first
        parameter has a default, such as a dataclass field, therefore gets the
        bundle bound to that parameter; register such classes through a
        factory or as a value instead.

        Example:
          container.register(UserService).with_tag("api").as_singleton()
          container.register(make_cache, "cache").as_factory().as_transient()

        """
        return ServiceBuilder(self, implementation, name)

    def register_all(self, services: Mapping[str, Any]) -> Container:
        """Register every name -> implementation pair as a singleton."""
        if not isinstance(services, Mapping):
            msg = "register_all requires a mapping of service names to implementations"
            raise InvalidArgumentError(msg)

        for name, implementation in services.items():
            self.register(implementation, name).as_singleton()
        return self

    def batch_register(self, configs: Sequence[Mapping[str, Any]]) -> Container:
        """Register services from configuration mappings.

        Recognised keys: `implementation` (or `class`), `name`, `lifetime`,
        `factory`, `tags`, `decorators` (service names) and `custom_decorators`.
        """
        if not isinstance(configs, (list, tuple)):
            msg = "batch_register requires a list of service configurations"
            raise InvalidArgumentError(msg)

        for index, config in enumerate(configs):
            if not isinstance(config, Mapping):
                msg = f"Service configuration #{index} must be a mapping"
                raise InvalidArgumentError(msg)

            implementation = config.get("implementation", config.get("class", _UNSET))
            if implementation is _UNSET:
                msg = f"Service configuration #{index} must have an 'implementation' property"
                raise InvalidArgumentError(msg)

            lifetime = _coerce_lifetime(config.get("lifetime", Lifetime.SINGLETON))
            builder = self.register(implementation, config.get("name"))
            if config.get("factory"):
                builder.as_factory()
            builder.with_tags(*config.get("tags", ()))
            if config.get("decorators"):
                builder.decorate_with(list(config["decorators"]))
            for decorator in config.get("custom_decorators", ()):
                builder.decorate(decorator)
            builder._commit(lifetime)  # noqa: SLF001

        return self

    def value(self, name: str, value: Any) -> Container:
        validate_name(name)
        return self.register(value, name).as_value()

    def factory(
        self,
        name: str,
        factory: Callable[[Dependencies], Any],
        lifetime: Lifetime | str = Lifetime.SINGLETON,
    ) -> ServiceBuilder:
        """Register a factory receiving the dependencies bundle.

        The registration is committed immediately; a later terminal call on
        the returned builder (e.g. `.as_transient()`) replaces it.
        """
        validate_name(name)
        if not callable(factory):
            msg = "Factory must be a function"
            raise InvalidArgumentError(msg)

        builder = self.register(factory, name).as_factory()
        builder._commit(_coerce_lifetime(lifetime))  # noqa: SLF001
        return builder

    def singleton(self, name_or_implementation: Any, implementation: Any = _UNSET) -> Container:
        return self._sugar(name_or_implementation, implementation).as_singleton()

    def transient(self, name_or_implementation: Any, implementation: Any = _UNSET) -> Container:
        return self._sugar(name_or_implementation, implementation).as_transient()

    def _sugar(self, name_or_implementation: Any, implementation: Any) -> ServiceBuilder:
        # singleton(Impl) infers the name, singleton("name", impl) names it explicitly.
        if implementation is _UNSET:
            return self.register(name_or_implementation)
        return self.register(implementation, name_or_implementation)

    def _install(
        self,
        registration: ServiceRegistration,
        *,
        override: bool,
        conditions: Sequence[Callable[[], object]] = (),
    ) -> bool:
        name = registration.name
        with self._lock:
            exists = name in self._registrations
            if exists and not override and self.options.strict_mode and not self.options.allow_overrides:
                raise DuplicateRegistrationError(name)

            if conditions and not self._conditions_hold(name, conditions):
                logger.debug("Skipped registration of %s: condition not met", name)
                return False

            if not exists and len(self._registrations) >= self.options.max_services:
                raise ResourceLimitError(_limit_message("services", self.options.max_services))

            if exists:
                self._purge_instances(name)
            self._registrations[name] = registration

        self._log("Registered: %s [%s]", name, registration.lifetime.value)
        return True

    def _conditions_hold(self, name: str, conditions: Iterable[Callable[[], object]]) -> bool:
        for condition in conditions:
            try:
                if not condition():
                    return False
            except Exception:  # noqa: BLE001
                logger.warning("Condition check failed for %s", name, exc_info=True)
                return False
        return True

    def _purge_instances(self, name: str) -> None:
        self._instances.pop(name, None)
        for scope in self._scopes.values():
            scope._instances.pop(name, None)  # noqa: SLF001

    # -- resolution ---------------------------------------------------------

    def resolve(self, name: str, scope_name: str | None = None) -> Any:
        """Resolve a service by name, optionally inside a named scope."""
        validate_name(name)
        with self._lock:
            scope = self.scope(scope_name) if scope_name is not None else None
            return self._resolve_in(name, scope)

    def resolve_all(self, names: Sequence[str], scope_name: str | None = None) -> dict[str, Any]:
        if not isinstance(names, (list, tuple)):
            msg = "resolve_all requires a list of service names"
            raise InvalidArgumentError(msg)
        return {name: self.resolve(name, scope_name) for name in names}

    def get_resolver(self, name: str) -> Callable[..., Any]:
        """Return a callable that resolves `name` (optionally in a scope) when invoked."""
        validate_name(name)
        return functools.partial(self.resolve, name)

    def _resolve_in(self, name: str, scope: Scope | None) -> Any:
        scope_name = scope.name if scope is not None else None
        with self._lock:
            self._call_hooks(Hook.BEFORE_RESOLVE, ResolveEvent(name, scope_name))
            result = self._resolve(name, scope)
            self._call_hooks(Hook.AFTER_RESOLVE, ResolveEvent(name, scope_name, result))
            return result

    def _resolve(self, name: str, scope: Scope | None) -> Any:
        registration = self._registrations.get(name)
        if registration is None:
            raise ServiceNotFoundError(name)

        if scope is not None and name in scope._instances:  # noqa: SLF001
            return scope._instances[name]  # noqa: SLF001

        if registration.lifetime is Lifetime.SINGLETON and name in self._instances:
            return self._instances[name]

        if self._resolution_stack is None:
            self._resolution_stack = []
        stack = self._resolution_stack
        if name in stack:
            raise CircularDependencyError([*stack[stack.index(name) :], name])

        stack.append(name)
        try:
            instance = self._create_instance(registration, scope)
        finally:
            stack.pop()
            if not stack:
                # Unrelated resolution trees must never share a stack.
                self._resolution_stack = None

        if registration.lifetime is Lifetime.SINGLETON:
            if len(self._instances) >= self.options.max_instances:
                raise ResourceLimitError(_limit_message("instances", self.options.max_instances))
            self._instances[name] = instance
        elif registration.lifetime is Lifetime.SCOPED and scope is not None:
            scope._instances[name] = instance  # noqa: SLF001

        return instance

    def _create_instance(self, registration: ServiceRegistration, scope: Scope | None) -> Any:
        self._call_hooks(Hook.BEFORE_CREATE, CreateEvent(registration, scope))
        self._log("Creating %s [%s, %s]", registration.name, registration.lifetime.value, registration.kind.value)

        implementation = registration.implementation
        transient = registration.lifetime is Lifetime.TRANSIENT

        if registration.lifetime is Lifetime.VALUE:
            instance = implementation
        elif registration.kind is ImplementationKind.FACTORY:
            instance = self._call_with_dependencies(implementation, scope)
        elif registration.kind is ImplementationKind.CLASS:
            if implementation.__init__ is object.__init__:
                instance = implementation()
            else:
                instance = self._call_with_dependencies(implementation, scope)
            if self.options.auto_binding:
                _bind_methods(instance)
        elif registration.kind is ImplementationKind.FUNCTION:
            result = self._call_with_dependencies(implementation, scope)
            instance = safe_clone(result) if transient else result
        else:
            instance = safe_clone(implementation) if transient else implementation

        # Value registrations always hand out the registered object itself.
        if registration.decorators and registration.lifetime is not Lifetime.VALUE:
            instance = apply_decorators(self, registration, instance, scope)

        self._call_hooks(Hook.AFTER_CREATE, CreateEvent(registration, scope, instance))
        return instance

    def _call_with_dependencies(self, target: Callable[..., Any], scope: Scope | None) -> Any:
        # Callables declaring no positional parameter are called bare.
        if accepts_argument(target):
            return target(Dependencies(self, scope))
        return target()

    # -- introspection ------------------------------------------------------

    def has(self, name: str) -> bool:
        return name in self._registrations

    def get_registration(self, name: str) -> ServiceRegistration:
        registration = self._registrations.get(name)
        if registration is None:
            raise ServiceNotFoundError(name)
        return registration

    def get_service_names(self) -> list[str]:
        return list(self._registrations)

    def unregister(self, name: str) -> Container:
        with self._lock:
            self._registrations.pop(name, None)
            self._purge_instances(name)
        return self

    def clear(self) -> Container:
        """Drop every registration, cached instance and scope. Hooks are kept."""
        with self._lock:
            self._registrations.clear()
            self._instances.clear()
            self._scopes.clear()
            self._resolution_stack = None
        return self

    def __contains__(self, name: object) -> bool:
        return name in self._registrations

    def __len__(self) -> int:
        return len(self._registrations)

    def __repr__(self) -> str:
        return (
            f"Container(services={len(self._registrations)}, "
            f"singletons={len(self._instances)}, scopes={len(self._scopes)})"
        )

    # -- tag discovery ------------------------------------------------------

    def get_services_by_tags(self, tags: Iterable[str], mode: TagMode | str = TagMode.AND) -> list[ServiceRegistration]:
        """Registrations carrying all (AND) or any (OR) of `tags`. Nothing is instantiated."""
        wanted = _coerce_tags(tags)
        match = all if _coerce_mode(mode) is TagMode.AND else any
        return [
            registration
            for registration in self._registrations.values()
            if match(tag in registration.tags for tag in wanted)
        ]

    def get_service_names_by_tags(self, tags: Iterable[str], mode: TagMode | str = TagMode.AND) -> list[str]:
        return [registration.name for registration in self.get_services_by_tags(tags, mode)]

    def resolve_services_by_tags(
        self,
        tags: Iterable[str],
        mode: TagMode | str = TagMode.AND,
        scope_name: str | None = None,
    ) -> list[ResolvedService]:
        return [
            ResolvedService(registration.name, self.resolve(registration.name, scope_name), registration)
            for registration in self.get_services_by_tags(tags, mode)
        ]

    def get_all_tags(self) -> list[str]:
        return sorted({tag for registration in self._registrations.values() for tag in registration.tags})

    def get_services_by_tag(self) -> dict[str, list[str]]:
        groups: dict[str, list[str]] = {}
        for name, registration in self._registrations.items():
            for tag in registration.sorted_tags:
                groups.setdefault(tag, []).append(name)
        return groups

    # -- hooks --------------------------------------------------------------

    def hook(self, event: Hook | str, callback: HookCallback) -> Container:
        """Add a callback for a lifecycle event.

        Resolve hooks receive a ResolveEvent, create hooks a CreateEvent.
        Exceptions raised by callbacks are logged and never propagate.
        """
        hook = _coerce_hook(event)
        if not callable(callback):
            msg = "Hook callback must be a function"
            raise InvalidArgumentError(msg)

        with self._lock:
            callbacks = self._hooks[hook]
            if len(callbacks) >= self.options.max_hooks_per_event:
                msg = f"Hook limit exceeded. Max: {self.options.max_hooks_per_event} hooks per event"
                raise ResourceLimitError(msg)
            callbacks.append(callback)
        return self

    def clear_hooks(self, event: Hook | str) -> Container:
        with self._lock:
            self._hooks[_coerce_hook(event)] = []
        return self

    def _call_hooks(self, hook: Hook, event: ResolveEvent | CreateEvent) -> None:
        for callback in list(self._hooks[hook]):
            try:
                callback(event)
            except Exception:  # noqa: BLE001
                logger.warning("Hook %s failed", hook.value, exc_info=True)

    # -- scopes -------------------------------------------------------------

    def create_scope(self, name: str) -> Scope:
        validate_name(name, "Scope name")
        with self._lock:
            if name in self._scopes:
                raise ScopeExistsError(name)
            if len(self._scopes) >= self.options.max_scopes:
                raise ResourceLimitError(_limit_message("scopes", self.options.max_scopes))

            scope = Scope(self, name)
            self._scopes[name] = scope
        return scope

    def scope(self, name: str) -> Scope:
        scope = self._scopes.get(name)
        if scope is None:
            raise ScopeNotFoundError(name)
        return scope

    def dispose_scope(self, name: str) -> Container:
        """Dispose a scope and remove it from the container."""
        self._release_scope(self.scope(name))
        return self

    def _release_scope(self, scope: Scope) -> None:
        scope.dispose()
        with self._lock:
            if self._scopes.get(scope.name) is scope:
                del self._scopes[scope.name]

    def _log(self, msg: str, *args: object) -> None:
        logger.log(logging.INFO if self.options.verbose else logging.DEBUG, msg, *args)


def create_container(**options: Any) -> Container:
    """Create a container; keyword arguments are ContainerOptions fields."""
    return Container(**options)


def safe_clone(value: Any) -> Any:
    """Deep-copy `value`, falling back to a JSON round trip, then to the value itself."""
    try:
        return copy.deepcopy(value)
    except Exception:  # noqa: BLE001
        logger.debug("deepcopy failed for %s, trying JSON round trip", type(value).__name__, exc_info=True)

    if isinstance(value, (dict, list)):
        try:
            return json.loads(json.dumps(value))
        except (TypeError, ValueError):
            logger.debug("JSON round trip failed for %s", type(value).__name__)

    return value


def _bind_methods(instance: object) -> None:
    """Store a bound method per public method on the instance, once.

    Detached methods (`get = service.get`) then keep pointing at the same
    bound object. Names already present on the instance are left alone.
    """
    attrs = getattr(instance, "__dict__", None)
    if not isinstance(attrs, dict):
        return

    seen: set[str] = set()
    for klass in type(instance).__mro__:
        if klass is object:
            continue
        for name, member in vars(klass).items():
            if name in seen:
                continue
            seen.add(name)
            if name.startswith("_") or name in attrs or not inspect.isfunction(member):
                continue
            attrs[name] = getattr(instance, name)


def _limit_message(kind: str, limit: int) -> str:
    return f"Memory limit exceeded for {kind}. Max: {limit}"


def _coerce_lifetime(value: Lifetime | str) -> Lifetime:
    if isinstance(value, Lifetime):
        return value
    try:
        return Lifetime(str(value).lower())
    except ValueError as e:
        msg = f"Unknown lifetime: {value}"
        raise InvalidArgumentError(msg) from e


def _coerce_hook(event: Hook | str) -> Hook:
    if isinstance(event, Hook):
        return event
    if not isinstance(event, str) or not event:
        msg = "Hook event must be a non-empty string"
        raise InvalidArgumentError(msg)
    try:
        return Hook(event)
    except ValueError as e:
        msg = f"Unknown hook event '{event}'. Use: {', '.join(hook.value for hook in Hook)}"
        raise InvalidArgumentError(msg) from e


def _coerce_tags(tags: Iterable[str]) -> list[str]:
    if isinstance(tags, str) or not isinstance(tags, (list, tuple, set, frozenset)):
        msg = "Tags must be a list"
        raise InvalidArgumentError(msg)
    if not tags:
        msg = "At least one tag must be provided"
        raise InvalidArgumentError(msg)
    if not all(isinstance(tag, str) for tag in tags):
        msg = "Tags must be a list of strings"
        raise InvalidArgumentError(msg)
    return list(tags)


def _coerce_mode(mode: TagMode | str) -> TagMode:
    if isinstance(mode, TagMode):
        return mode
    try:
        return TagMode(mode)
    except ValueError as e:
        msg = "Mode must be 'AND' or 'OR'"
        raise InvalidArgumentError(msg) from e
