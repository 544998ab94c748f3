from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any

from ._errors import DangerousAccessError, ReadOnlyDependenciesError


if TYPE_CHECKING:
    from ._container import Container
    from ._scope import Scope


logger = logging.getLogger(__name__)

# Keys that could reach into an object model instead of naming a service.
DANGEROUS_KEYS = frozenset(
    {
        "__proto__",
        "constructor",
        "prototype",
        "__class__",
        "__dict__",
        "__globals__",
        "__builtins__",
        "__subclasses__",
        "__mro__",
        "__bases__",
        "__init__",
        "__getattribute__",
        "__reduce__",
        "__reduce_ex__",
    }
)


def check_key(key: object) -> str:
    key = str(key)
    if key in DANGEROUS_KEYS:
        raise DangerousAccessError(key)
    return key


class Dependencies(Mapping[str, Any]):
    """Read-only view of the container handed to every constructor and factory.

    Each lookup resolves the named service in the scope the owner is being
    built in, so dependencies are created lazily, depth-first, in the order
    they are first accessed:

      class UserService:
          def __init__(self, deps):
              self.db = deps["database"]
              self.log = deps.logger

    Iteration and membership only look at registered names and never build
    anything.
    """

    __slots__ = ("_container", "_scope")

    def __init__(self, container: Container, scope: Scope | None = None) -> None:
        object.__setattr__(self, "_container", container)
        object.__setattr__(self, "_scope", scope)

    def __getitem__(self, key: str) -> Any:
        return self._resolve(check_key(key))

    def __getattribute__(self, name: str) -> Any:
        # Denylisted names like __class__ or __init__ would otherwise be found
        # on the type before __getattr__ runs.
        if name in DANGEROUS_KEYS:
            raise DangerousAccessError(name)
        return object.__getattribute__(self, name)

    def __getattr__(self, name: str) -> Any:
        # Only called for names not found through normal attribute lookup.
        check_key(name)
        if name in Dependencies.__slots__ or (name.startswith("__") and name.endswith("__")):
            raise AttributeError(name)
        return self._resolve(name)

    def get(self, key: str, default: Any = None) -> Any:
        key = check_key(key)
        if not self._container.has(key):
            return default
        return self._resolve(key)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key not in DANGEROUS_KEYS and self._container.has(key)

    def __iter__(self) -> Iterator[str]:
        return iter(self._container.get_service_names())

    def __len__(self) -> int:
        return len(self._container)

    def __setattr__(self, name: str, value: Any) -> None:
        msg = "Dependencies are read-only"
        raise ReadOnlyDependenciesError(msg)

    def __delattr__(self, name: str) -> None:
        msg = "Dependencies are read-only"
        raise ReadOnlyDependenciesError(msg)

    def __setitem__(self, key: str, value: Any) -> None:
        msg = "Dependencies are read-only"
        raise ReadOnlyDependenciesError(msg)

    def __delitem__(self, key: str) -> None:
        msg = "Dependencies are read-only"
        raise ReadOnlyDependenciesError(msg)

    # A view over the container: copies share it.
    def __copy__(self) -> Dependencies:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> Dependencies:
        return self

    def __repr__(self) -> str:
        scope = self._scope.name if self._scope is not None else None
        return f"Dependencies(scope={scope!r}, services={list(self)!r})"

    def _resolve(self, key: str) -> Any:
        if self._container.options.verbose:
            logger.info("Resolving dependency: %s", key)
        else:
            logger.debug("Resolving dependency: %s", key)
        return self._container._resolve_in(key, self._scope)  # noqa: SLF001
