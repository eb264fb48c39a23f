"""Slot wrappers held by the nodes of a connection ring.

A node never stores the connected callable itself but a `WeakCallback`, which
knows how to call it with the emitted arguments.  Bound methods are wrapped in a
`WeakMethod` that does not keep their object alive; when that object is collected,
the `finalize` callback given at connect time disconnects the node.  Any other
callable is wrapped in a `StrongFunction`.
"""

from __future__ import annotations

import weakref
from functools import partial
from types import MethodType
from typing import TYPE_CHECKING, Any, Literal
from warnings import warn

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import TypeAlias

    RefErrorChoice: TypeAlias = Literal["raise", "warn", "ignore"]

__all__ = ["StrongFunction", "WeakCallback", "WeakMethod", "weak_callback"]


def weak_callback(
    slot: Callable,
    *,
    max_args: int | None = None,
    finalize: Callable[[WeakCallback], Any] | None = None,
    weak: bool = True,
    on_ref_error: RefErrorChoice = "warn",
) -> WeakCallback:
    """Wrap `slot` for storage in a ring node.

    A `functools.partial` is taken apart first, so that a partial of a bound
    method is still wrapped in a `WeakMethod`.

    Parameters
    ----------
    slot : Callable
        The callable being connected.
    max_args : int, optional
        Emitted arguments beyond the first `max_args` are not passed to `slot`.
    finalize : Callable[[WeakCallback], Any], optional
        Called with the wrapper once the object of a weakly held method is gone.
    weak : bool
        Hold bound methods weakly.  By default `True`.
    on_ref_error : {'raise', 'warn', 'ignore'}
        What to do when the method's object cannot be weakly referenced.  'warn'
        and 'ignore' fall back to a strong reference.
    """
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = {}
    if isinstance(slot, partial):
        slot, args, kwargs = slot.func, slot.args, slot.keywords

    if weak and isinstance(slot, MethodType):
        return WeakMethod(slot, args, kwargs, max_args, finalize, on_ref_error)
    return StrongFunction(slot, args, kwargs, max_args)


def _describe(func: Any) -> str:
    if isinstance(func, MethodType):
        owner = type(func.__self__)
        return f"{owner.__module__}.{owner.__qualname__}.{func.__name__}"
    name = getattr(func, "__qualname__", None) or type(func).__qualname__
    module = getattr(func, "__module__", None) or type(func).__module__
    return f"{module}.{name}"


def _ref(
    obj: Any, callback: Callable | None, on_ref_error: RefErrorChoice
) -> Callable[[], Any]:
    try:
        return weakref.ref(obj, callback)
    except TypeError:
        if on_ref_error == "raise":
            raise
        if on_ref_error == "warn":
            warn(
                f"cannot weakly reference {object.__repr__(obj)}, the slot will "
                "keep it alive",
                stacklevel=4,
            )
        return lambda: obj


class WeakCallback:
    """A connected slot, as stored in a ring node.

    `cb(args)` calls the slot with the emitted `args` (after any arguments bound by
    a partial, and truncated to `max_args`) and returns whatever the slot returns.
    """

    def __init__(
        self,
        label: str,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        max_args: int | None,
    ) -> None:
        if args:
            label = f"{label} with {args!r}"
        self._label = label
        self._args = args
        self._kwargs = kwargs
        self._max_args = max_args

    def cb(self, args: tuple[Any, ...] = ()) -> Any:
        raise NotImplementedError

    def _trim(self, args: tuple[Any, ...]) -> tuple[Any, ...]:
        return args if self._max_args is None else args[: self._max_args]

    def __repr__(self) -> str:
        return f"<{type(self).__name__} on {self._label}>"


class StrongFunction(WeakCallback):
    """Keeps the slot alive for as long as it is connected."""

    def __init__(
        self,
        func: Callable,
        args: tuple[Any, ...] = (),
        kwargs: dict[str, Any] | None = None,
        max_args: int | None = None,
    ) -> None:
        super().__init__(_describe(func), args, kwargs or {}, max_args)
        self._func = func

    def cb(self, args: tuple[Any, ...] = ()) -> Any:
        return self._func(*self._args, *self._trim(args), **self._kwargs)


class WeakMethod(WeakCallback):
    """Holds a bound method through weak references to its object and function.

    `finalize(self)` is called (once) when either of them is collected, after which
    `cb` raises `ReferenceError`.
    """

    def __init__(
        self,
        method: MethodType,
        args: tuple[Any, ...] = (),
        kwargs: dict[str, Any] | None = None,
        max_args: int | None = None,
        finalize: Callable[[WeakCallback], Any] | None = None,
        on_ref_error: RefErrorChoice = "warn",
    ) -> None:
        super().__init__(_describe(method), args, kwargs or {}, max_args)
        self._finalize = finalize
        on_death = None if finalize is None else self._on_death
        self._self_ref = _ref(method.__self__, on_death, on_ref_error)
        self._func_ref = _ref(method.__func__, on_death, on_ref_error)

    def _on_death(self, _: weakref.ReferenceType) -> None:
        finalize, self._finalize = self._finalize, None
        if finalize is not None:
            finalize(self)

    def cb(self, args: tuple[Any, ...] = ()) -> Any:
        obj, func = self._self_ref(), self._func_ref()
        if obj is None or func is None:
            raise ReferenceError(f"{self._label} was garbage collected")
        return func(obj, *self._args, *self._trim(args), **self._kwargs)
