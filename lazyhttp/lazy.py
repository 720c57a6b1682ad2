"""Compute-once fields for request and response objects.

Each instance owns one :class:`_Cell` per field. A cell moves from
``UNEVALUATED`` through ``EVALUATING`` to either ``EVALUATED`` or
``FAILED`` and never moves back: a computed value is returned for the rest
of the instance's life and a failure is re-raised without retrying.
"""

from __future__ import annotations

import enum
import threading
from typing import Any, Callable, Generic, Optional, TypeVar

from .exceptions import StateError

T = TypeVar("T")


class State(enum.Enum):
    UNEVALUATED = "unevaluated"
    EVALUATING = "evaluating"
    EVALUATED = "evaluated"
    FAILED = "failed"


class _Cell:
    __slots__ = ("state", "value", "error", "owner", "lock")

    def __init__(self) -> None:
        self.state = State.UNEVALUATED
        self.value: Any = None
        self.error: Optional[BaseException] = None
        self.owner: Optional[int] = None
        self.lock = threading.Lock()


class lazy(Generic[T]):
    """Descriptor memoising ``func(instance)`` on first access."""

    def __init__(self, func: Callable[[Any], T]) -> None:
        self.func = func
        self.name = func.__name__
        self.__doc__ = func.__doc__

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def _cell(self, instance: Any) -> _Cell:
        cells = instance.__dict__.setdefault("_lazy_cells", {})
        cell = cells.get(self.name)
        if cell is None:
            cell = cells.setdefault(self.name, _Cell())
        return cell

    def __get__(self, instance: Any, owner: type | None = None) -> T:
        if instance is None:
            return self  # type: ignore[return-value]
        cell = self._cell(instance)
        if cell.state is State.EVALUATING and cell.owner == threading.get_ident():
            raise StateError(f"{type(instance).__name__}.{self.name} re-entered during evaluation")
        with cell.lock:
            if cell.state is State.UNEVALUATED:
                cell.state = State.EVALUATING
                cell.owner = threading.get_ident()
                try:
                    cell.value = self.func(instance)
                except BaseException as exc:
                    cell.error = exc
                    cell.state = State.FAILED
                    raise
                finally:
                    cell.owner = None
                cell.state = State.EVALUATED
            if cell.state is State.FAILED:
                assert cell.error is not None
                raise cell.error
            return cell.value


def state_of(instance: Any, name: str) -> State:
    """Return the evaluation state of the lazy field ``name`` on ``instance``."""

    cell = instance.__dict__.get("_lazy_cells", {}).get(name)
    return State.UNEVALUATED if cell is None else cell.state


__all__ = ["State", "lazy", "state_of"]
