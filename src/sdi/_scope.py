from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from types import TracebackType

    from ._container import Container


logger = logging.getLogger(__name__)


class Scope:
    """A named cache for scoped services.

    Every scoped service resolved through a scope is built once per scope and
    reused until the scope is disposed. Scopes are created with
    `Container.create_scope()`; used as a context manager the scope is disposed
    and dropped from its container on exit:

      with container.create_scope("request-42") as scope:
          handler = scope.resolve("requestHandler")
    """

    def __init__(self, container: Container, name: str) -> None:
        self.container = container
        self.name = name
        self._instances: dict[str, Any] = {}

    def resolve(self, name: str) -> Any:
        return self.container.resolve(name, self.name)

    def dispose(self) -> Scope:
        """Call `dispose()` on every cached instance that has one, then empty the cache."""
        for name, instance in list(self._instances.items()):
            dispose = getattr(instance, "dispose", None)
            if not callable(dispose):
                continue
            try:
                dispose()
            except Exception:  # noqa: BLE001
                logger.warning("Failed to dispose %s in scope %s", name, self.name, exc_info=True)

        self._instances.clear()
        return self

    def get_instances(self) -> dict[str, Any]:
        return dict(self._instances)

    def __enter__(self) -> Scope:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.container._release_scope(self)  # noqa: SLF001

    def __repr__(self) -> str:
        return f"Scope(name={self.name!r}, instances={len(self._instances)})"
