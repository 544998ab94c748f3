"""Service-level decorator composition.

A registration may carry an ordered list of decorators: names of services
exposing `decorate(instance) -> instance`, and/or plain callables with the same
shape. They are applied after construction, each one wrapping the previous
result, and every application is checked so that a decorator cannot silently
break the interface of the service it wraps.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from ._errors import DecoratorContractError, ServiceNotFoundError
from ._registration import accepts_argument


if TYPE_CHECKING:
    from collections.abc import Callable

    from ._container import Container
    from ._registration import ServiceRegistration
    from ._scope import Scope


logger = logging.getLogger(__name__)

_MISSING = object()


def apply_decorators(
    container: Container,
    registration: ServiceRegistration,
    instance: Any,
    scope: Scope | None,
) -> Any:
    service = registration.name
    verbose = container.options.verbose

    for index, entry in enumerate(registration.decorators, start=1):
        if isinstance(entry, str):
            label = f"Decorator '{entry}'"
            decorate = _decorate_method(container, service, entry, scope)
            if not accepts_argument(decorate):
                logger.warning(
                    "%s decorate method takes no parameters. Expected: decorate(service_instance)", label
                )
                decorated = decorate()
            else:
                decorated = decorate(instance)
        else:
            label = f"Custom decorator #{index}"
            decorated = _call_custom(entry, label, service, instance, index)

        validate_decorated(instance, decorated, label=label, service=service, verbose=verbose)
        instance = decorated

    return instance


def _decorate_method(container: Container, service: str, name: str, scope: Scope | None) -> Callable[..., Any]:
    try:
        decorator = container._resolve_in(name, scope)  # noqa: SLF001
    except ServiceNotFoundError as exc:
        if exc.name != name:
            raise
        msg = f"Decorator '{name}' for service '{service}' could not be resolved: {exc}"
        raise DecoratorContractError(msg) from exc

    decorate = getattr(decorator, "decorate", None)
    if callable(decorate):
        return decorate

    if callable(decorator):
        msg = (
            f"Decorator '{name}' is a function but should be an object with a 'decorate' method. "
            f"Did you mean to use .decorate({name})?"
        )
    else:
        msg = f"Decorator '{name}' applied to service '{service}' must have a 'decorate' method"
    raise DecoratorContractError(msg)


def _call_custom(decorator: Callable[..., Any], label: str, service: str, instance: Any, index: int) -> Any:
    takes_instance = accepts_argument(decorator)
    if not takes_instance:
        logger.warning("%s takes no parameters. Expected: (service_instance) -> decorated_instance", label)

    try:
        return decorator(instance) if takes_instance else decorator()
    except Exception as exc:
        msg = f"Failed to apply custom decorator #{index} to service '{service}': {exc}"
        raise DecoratorContractError(msg) from exc


def validate_decorated(original: Any, decorated: Any, *, label: str, service: str, verbose: bool = False) -> None:
    """Check that `decorated` still offers everything `original` did.

    Raises DecoratorContractError for a None result, a change of basic kind or
    dropped public methods. Signature changes and dropped data attributes are
    only logged as warnings.
    """
    if decorated is None:
        msg = f"{label} returned None for service '{service}'. Decorators must return the decorated service instance."
        raise DecoratorContractError(msg)

    before, after = _kind(original), _kind(decorated)
    if before != after:
        msg = f"{label} changed service type from {before} to {after} for service '{service}'"
        raise DecoratorContractError(msg)

    if before != "object":
        return

    methods: list[str] = []
    properties: list[str] = []
    for name in _public_names(original):
        value = _lookup(original, name)
        if callable(value) and not inspect.isclass(value):
            methods.append(name)
        else:
            properties.append(name)

    missing = [name for name in methods if not callable(_lookup(decorated, name))]
    if missing:
        msg = f"{label} removed public method(s) from service '{service}': {', '.join(missing)}"
        raise DecoratorContractError(msg)

    for name in methods:
        original_arity = _positional_arity(_lookup(original, name))
        decorated_arity = _positional_arity(_lookup(decorated, name))
        if original_arity is None or decorated_arity is None:
            continue
        if original_arity != decorated_arity:
            logger.warning(
                "%s changed '%s' method signature for service '%s'. Original: %d params, Decorated: %d params",
                label,
                name,
                service,
                original_arity,
                decorated_arity,
            )

    lost = [name for name in properties if _lookup(decorated, name) is _MISSING]
    if lost:
        logger.warning(
            "%s removed properties from service '%s': %s. "
            "Consider copying the original instance's attributes (e.g. vars(instance)) onto the decorated object.",
            label,
            service,
            ", ".join(lost),
        )

    if methods:
        logger.log(
            logging.INFO if verbose else logging.DEBUG,
            "%s successfully preserved service interface for '%s' (%d methods: %s)",
            label,
            service,
            len(methods),
            ", ".join(methods),
        )


def _kind(value: object) -> str:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float, complex)):
        return "number"
    if isinstance(value, str):
        return "str"
    if isinstance(value, (bytes, bytearray)):
        return "bytes"
    return "object"


def _public_names(obj: object) -> list[str]:
    """Public member names in declaration order: instance attributes, then class bodies along the MRO."""
    if isinstance(obj, Mapping):
        return [key for key in obj if isinstance(key, str) and not key.startswith("_")]

    names: dict[str, None] = {}
    for name in getattr(obj, "__dict__", {}):
        names.setdefault(name, None)
    for klass in type(obj).__mro__:
        if klass is object:
            continue
        for name in vars(klass):
            names.setdefault(name, None)

    return [name for name in names if not name.startswith("_")]


def _lookup(obj: object, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name, _MISSING)
    return getattr(obj, name, _MISSING)


def _positional_arity(func: object) -> int | None:
    try:
        sig = inspect.signature(func)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None

    return sum(
        1
        for p in sig.parameters.values()
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    )
