"""Extensions turn a named configuration section into service definitions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .container import ContainerBuilder


class Extension(ABC):
    """Base class for container extensions.

    Configuration blocks registered under ``alias`` are collected in load
    order and handed to ``load()`` together when the container is compiled,
    so an extension always sees every block (defaults, imports, overrides)
    at once.
    """

    alias: str = ""

    @abstractmethod
    def load(self, configs: list[dict[str, Any]], container: ContainerBuilder) -> None:
        """Merge ``configs`` and register the resulting definitions."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(alias={self.alias!r})"
