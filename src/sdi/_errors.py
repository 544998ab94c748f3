from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Sequence


class ContainerError(Exception):
    """Base class for every error raised by the container."""


class ServiceNotFoundError(ContainerError, KeyError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Service '{name}' not found. Did you forget to register it?")

    def __str__(self) -> str:
        # KeyError would repr-quote the message
        return str(self.args[0])


class DuplicateRegistrationError(ContainerError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Service '{name}' is already registered. Use override() to replace it.")


class CircularDependencyError(ContainerError):
    """Raised when a service reappears in its own in-flight resolution chain.

    `cycle` holds the names from the first occurrence of the repeated service
    up to (and including) the repeated service itself.
    """

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = list(cycle)
        super().__init__(f"Circular dependency detected: {' -> '.join(self.cycle)}")


class InvalidArgumentError(ContainerError, ValueError):
    pass


class DangerousAccessError(ContainerError, AttributeError):
    """Raised for denylisted keys, by item or attribute access.

    Also an AttributeError, so `hasattr()` and `isinstance()` against concrete
    classes treat a blocked `__class__` on the bundle as missing.
    """

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Dangerous property access blocked: '{key}'")


class ReadOnlyDependenciesError(ContainerError, TypeError):
    pass


class ResourceLimitError(ContainerError):
    pass


class ScopeNotFoundError(ContainerError, KeyError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Scope '{name}' not found. Create it first with create_scope()")

    def __str__(self) -> str:
        return str(self.args[0])


class ScopeExistsError(ContainerError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Scope '{name}' already exists. Use a different name or dispose the existing scope.")


class DecoratorContractError(ContainerError):
    pass
