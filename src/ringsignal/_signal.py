"""Signals: the `Signal` descriptor and the `SignalInstance` emission engine.

Connected slots live in a `ConnectionRing`, in connection order, and an emission
walks that ring from the first node back to the sentinel.  A slot may `connect`,
`disconnect` or `emit` the very signal that is calling it:

- a slot connected during an emission is appended to the ring, and so is called
  later in that *same* emission;
- a slot disconnected during an emission is only deactivated: no emission calls
  it anymore, and its node is unlinked when the outermost emission returns;
- a slot that emits again starts a nested emission that runs to completion before
  the outer one moves on to the next slot.

```python
from ringsignal import SignalInstance

sig = SignalInstance((int,))


def cb1(value: int) -> None:
    print(f"calling cb1 with: {value}")
    if value == 1:
        sig.emit(2)


def cb2(value: int) -> None:
    print(f"calling cb2 with: {value}")
    if value == 1:
        conn3.disconnect()


def cb3(value: int) -> None:
    print(f"calling cb3 with: {value}")


sig.connect(cb1)
sig.connect(cb2)
conn3 = sig.connect(cb3)
sig.emit(1)
```

prints:

```
calling cb1 with: 1
calling cb1 with: 2
calling cb2 with: 2
calling cb3 with: 2
calling cb2 with: 1
```

An exception raised by a slot propagates out of `emit()` unchanged, and the signal
stays usable.  Slots disconnected during an emission that raised are unlinked by
the next emission that completes normally.
"""

from __future__ import annotations

import builtins
import inspect
import warnings
import weakref
from collections.abc import Callable
from contextlib import contextmanager, suppress
from dataclasses import dataclass
from inspect import Parameter, Signature, isclass
from types import MethodType, UnionType
from typing import (
    TYPE_CHECKING,
    Any,
    ClassVar,
    NoReturn,
    TypeVar,
    Union,
    cast,
    get_args,
    get_origin,
    get_type_hints,
    overload,
)

from ._aggregation import AlwaysContinue, LastAggregator, VoidAggregator
from ._connection import Connection
from ._ring import ConnectionRing
from ._weak_callback import weak_callback

if TYPE_CHECKING:
    from collections.abc import Iterator

    from ._aggregation import Aggregator, Controller
    from ._ring import _Node
    from ._weak_callback import RefErrorChoice, WeakCallback


__all__ = ["EmissionInfo", "Signal", "SignalInstance"]

F = TypeVar("F", bound=Callable)

_VOID_RETURNS = (Signature.empty, None, type(None), "None")
_POSITIONAL = (Parameter.POSITIONAL_ONLY, Parameter.POSITIONAL_OR_KEYWORD)


@dataclass(slots=True, frozen=True)
class EmissionInfo:
    """What the debug hook is told about an emission.

    Attributes
    ----------
    signal : SignalInstance
        The emitting signal.
    args : tuple
        The emitted arguments.
    """

    signal: SignalInstance
    args: tuple[Any, ...]


class Signal:
    """A signal declared as a class attribute.

    Each instance of the owner class gets its own `SignalInstance` (created on first
    access, then cached), with its own connections:

    ```python
    class Thermostat:
        reading = Signal(float)
        validate = Signal(float, returns=bool)


    t = Thermostat()
    t.reading.connect(print)
    t.reading.emit(21.5)  # prints 21.5
    ```

    Parameters
    ----------
    *types : type | Signature
        The types of the emitted arguments, or a single `inspect.Signature`.
    returns : Any
        The type returned by slots.  `None` (the default) declares slots returning
        nothing, so that `emit()` returns `None`; otherwise `emit()` returns the
        value of the last slot called, unless told to aggregate otherwise.
    description : str
        Free text, not used by the signal.
    name : str | None
        Name of the signal instances.  By default the attribute name.
    check_nargs_on_connect : bool
        Default for `connect(check_nargs=...)`.  By default `True`.
    check_types_on_connect : bool
        Default for `connect(check_types=...)`.  By default `False`.
    """

    _current_emitter: ClassVar[SignalInstance | None] = None

    def __init__(
        self,
        *types: type[Any] | Signature,
        returns: Any = None,
        description: str = "",
        name: str | None = None,
        check_nargs_on_connect: bool = True,
        check_types_on_connect: bool = False,
    ) -> None:
        self._name = name
        self.description = description
        self._check_nargs_on_connect = check_nargs_on_connect
        self._check_types_on_connect = check_types_on_connect
        # for owners that cannot take the instance as an attribute
        self._instances: dict[int, SignalInstance] = {}

        if types and isinstance(types[0], Signature):
            if len(types) > 1:
                warnings.warn(
                    f"Arguments after a Signature are ignored: {types[1:]}",
                    stacklevel=2,
                )
            self._signature = types[0]
            if returns is not None:
                self._signature = self._signature.replace(return_annotation=returns)
        else:
            self._signature = _build_signature(
                *cast("tuple[type[Any], ...]", types), returns=returns
            )

    @property
    def signature(self) -> Signature:
        """Signature of the emitted arguments and of the slot return value."""
        return self._signature

    def __set_name__(self, owner: type[Any], name: str) -> None:
        if self._name is None:
            self._name = name

    @overload
    def __get__(self, instance: None, owner: type[Any] | None = None) -> Signal: ...

    @overload
    def __get__(
        self, instance: Any, owner: type[Any] | None = None
    ) -> SignalInstance: ...

    def __get__(
        self, instance: Any, owner: type[Any] | None = None
    ) -> Signal | SignalInstance:
        if instance is None:
            return self
        if (cached := self._instances.get(id(instance))) is not None:
            return cached

        signal_instance = SignalInstance(
            self._signature,
            instance=instance,
            name=self._name,
            description=self.description,
            check_nargs_on_connect=self._check_nargs_on_connect,
            check_types_on_connect=self._check_types_on_connect,
        )
        try:
            # shadows this descriptor: later lookups find the instance attribute
            setattr(instance, cast("str", self._name), signal_instance)
        except AttributeError:
            # no __dict__ on the owner (__slots__)
            obj_id = id(instance)
            self._instances[obj_id] = signal_instance
            with suppress(TypeError):
                weakref.finalize(instance, self._instances.pop, obj_id, None)
        return signal_instance

    @classmethod
    @contextmanager
    def _emitting(cls, emitter: SignalInstance) -> Iterator[None]:
        previous, cls._current_emitter = cls._current_emitter, emitter
        try:
            yield
        finally:
            cls._current_emitter = previous

    @classmethod
    def current_emitter(cls) -> SignalInstance | None:
        """Return the `SignalInstance` whose slots are being called, if any.

        Nested emissions take precedence over the emissions they were started from.
        """
        return cls._current_emitter

    @classmethod
    def sender(cls) -> Any:
        """Return the object owning the `current_emitter()`, if any."""
        return getattr(cls._current_emitter, "instance", None)


_empty_signature = Signature()


def _discard_from(
    signal_ref: weakref.ReferenceType[SignalInstance],
) -> Callable[[WeakCallback], None]:
    def _discard(callback: WeakCallback) -> None:
        if (signal := signal_ref()) is not None:
            signal._try_discard(callback)

    return _discard


class SignalInstance:
    """A signal with its ring of connected slots.

    Usually created by accessing a [`Signal`][ringsignal.Signal] on an instance of
    its owner class, but it can be used on its own as well:

    ```python
    sig = SignalInstance((int,), returns=int)
    sig.connect(lambda x: x + 1)
    sig.connect(lambda x: x * 10)
    assert sig.emit(2) == 20
    ```

    A `SignalInstance` cannot be copied or pickled: the copy could not take over the
    `Connection` handles given out by the original.

    Parameters
    ----------
    signature : Signature | tuple
        Types of the emitted arguments (a tuple), or an `inspect.Signature`.
    returns : Any
        The type returned by slots, overriding the return annotation of
        `signature`.  `None` (the default) means that slots return nothing.
    slot : Callable | None
        A slot to connect right away.
    instance : Any
        The object owning this signal, held by weak reference where possible.
    name : str | None
        Name of this signal.
    description : str
        Free text, not used by the signal.
    check_nargs_on_connect : bool
        Default for `connect(check_nargs=...)`.  By default `True`.
    check_types_on_connect : bool
        Default for `connect(check_types=...)`.  By default `False`.
    """

    _is_blocked: bool = False
    _debug_hook: ClassVar[Callable[[EmissionInfo], None] | None] = None

    def __init__(
        self,
        signature: Signature | tuple = _empty_signature,
        *,
        returns: Any = None,
        slot: Callable | None = None,
        instance: Any = None,
        name: str | None = None,
        description: str = "",
        check_nargs_on_connect: bool = True,
        check_types_on_connect: bool = False,
    ) -> None:
        if isinstance(signature, (list, tuple)):
            signature = _build_signature(*signature, returns=returns)
        elif not isinstance(signature, Signature):
            raise TypeError(
                "`signature` must be a tuple of types or an `inspect.Signature`, "
                f"not {type(signature)}"
            )
        elif returns is not None:
            signature = signature.replace(return_annotation=returns)

        self._signature = signature
        self._returns_value = signature.return_annotation not in _VOID_RETURNS
        self._name = name
        self._description = description
        self._instance = _owner_ref(instance)
        self._check_nargs_on_connect = check_nargs_on_connect
        self._check_types_on_connect = check_types_on_connect
        self._is_blocked = False
        # created on first connect
        self._ring: ConnectionRing | None = None
        # number of slot steps in progress, over all nested emissions
        self._recursion_depth: int = 0
        # whether nodes were deactivated while _recursion_depth > 0
        self._deactivations: bool = False

        if slot is not None:
            self.connect(slot)

    @property
    def signature(self) -> Signature:
        """Signature of the emitted arguments and of the slot return value."""
        return self._signature

    @property
    def returns(self) -> Any:
        """Type returned by slots, or `None` if they return nothing."""
        return self._signature.return_annotation if self._returns_value else None

    @property
    def instance(self) -> Any:
        """The object owning this signal, or `None`."""
        return self._instance()

    @property
    def name(self) -> str:
        return self._name or ""

    @property
    def description(self) -> str:
        return self._description

    def __repr__(self) -> str:
        name = f" {self._name!r}" if self._name else ""
        owner = f" on {self.instance!r}" if self.instance is not None else ""
        return f"<{type(self).__name__}{name}{owner}>"

    @overload
    def connect(
        self,
        *,
        check_nargs: bool | None = ...,
        check_types: bool | None = ...,
        max_args: int | None = None,
        weak: bool = ...,
        on_ref_error: RefErrorChoice = ...,
    ) -> Callable[[F], F]: ...

    @overload
    def connect(
        self,
        slot: Callable,
        *,
        check_nargs: bool | None = ...,
        check_types: bool | None = ...,
        max_args: int | None = None,
        weak: bool = ...,
        on_ref_error: RefErrorChoice = ...,
    ) -> Connection: ...

    def connect(
        self,
        slot: Callable | None = None,
        *,
        check_nargs: bool | None = None,
        check_types: bool | None = None,
        max_args: int | None = None,
        weak: bool = True,
        on_ref_error: RefErrorChoice = "warn",
    ) -> Callable[[F], F] | Connection:
        """Append `slot` to the ring, and return the handle of the new connection.

        The same callable may be connected several times; each connection is called
        once per emission.  Connecting from a slot is fine: the new slot is called
        later in the ongoing emission.  Without `slot`, `connect()` returns a
        decorator that connects a function and returns it unchanged.

        Parameters
        ----------
        slot : Callable
            The callable to call on each emission.  It may take fewer positional
            arguments than are emitted; the trailing ones are dropped.
        check_nargs : bool | None
            Raise `ValueError` if `slot` requires more positional arguments than the
            signal emits, and work out how many it can take.  By default the
            `check_nargs_on_connect` setting of the signal.
        check_types : bool | None
            Raise `ValueError` if the parameter annotations of `slot` do not accept
            the emitted types.  By default the `check_types_on_connect` setting.
        max_args : int | None
            Pass at most this many emitted arguments to `slot` (skips the
            `check_nargs` inspection).
        weak : bool
            Hold bound methods through weak references, disconnecting them once
            their object is collected.  Other callables are always held strongly.
        on_ref_error : {'raise', 'warn', 'ignore'}
            What to do if the object of a bound method cannot be weakly referenced.

        Returns
        -------
        Connection
            The handle with which to query and break this connection.

        Raises
        ------
        TypeError
            If `slot` is not callable.
        ValueError
            If `slot` fails the `check_nargs` or `check_types` validation.
        """
        if check_nargs is None:
            check_nargs = self._check_nargs_on_connect
        if check_types is None:
            check_types = self._check_types_on_connect

        def _connect(slot: Callable) -> Connection:
            if not callable(slot):
                raise TypeError(f"Cannot connect to non-callable object: {slot!r}")

            n_args = max_args
            if check_nargs and n_args is None:
                n_args = self._validate_nargs(slot)
            if check_types:
                slot_sig = inspect.signature(slot)
                if not _annotations_accept(slot, slot_sig, self._signature):
                    raise self._connection_error(
                        slot, "its parameter annotations do not accept the emitted types"
                    )

            cb = weak_callback(
                slot,
                max_args=n_args,
                finalize=_discard_from(weakref.ref(self)),
                weak=weak,
                on_ref_error=on_ref_error,
            )
            if self._ring is None:
                self._ring = ConnectionRing()
            return Connection(self, self._ring.insert(cb))

        if slot is None:

            def _decorator(slot: F) -> F:
                _connect(slot)
                return slot

            return _decorator
        return _connect(slot)

    def connect_member(
        self, obj: Any, member: str | Callable, **kwargs: Any
    ) -> Connection:
        """Connect the method `member` of `obj`, given by name or by function.

        ```python
        sig.connect_member(foo, "on_value")
        sig.connect_member(foo, Foo.on_value)  # the same
        ```

        With `obj=None` nothing is connected, and the returned `Connection` is
        inert: never connected, and unequal to every other connection.  Keyword
        arguments are passed on to `connect()`.
        """
        if obj is None:
            return Connection(self, None)
        if isinstance(member, str):
            return self.connect(getattr(obj, member), **kwargs)
        return self.connect(MethodType(member, obj), **kwargs)

    def _try_discard(self, callback: WeakCallback) -> None:
        """Disconnect the node holding `callback`, whose method object is gone."""
        if self._ring is None:  # pragma: no cover
            return
        for node in self._ring:
            if node.slot is callback:
                self._disconnect_node(node)
                return

    def _validate_nargs(self, slot: Callable) -> int | None:
        """Raise if `slot` needs too many arguments, else return how many it takes."""
        try:
            slot_sig = inspect.signature(slot)
        except ValueError as e:
            warnings.warn(
                f"Connecting {slot!r} unchecked, its signature is unknown ({e}). "
                "Pass `check_nargs=False` to silence this warning.",
                stacklevel=4,
            )
            return None
        needed, accepted = _positional_capacity(slot_sig)
        if needed > (emitted := len(self._signature.parameters)):
            raise self._connection_error(
                slot,
                f"it requires {needed} positional arguments, but {emitted} are emitted",
            )
        return accepted

    def _connection_error(self, slot: Callable, reason: str) -> ValueError:
        name = getattr(slot, "__name__", repr(slot))
        return ValueError(
            f"Cannot connect slot {name!r} to {self!r} with signature "
            f"{self._signature}: {reason}"
        )

    def disconnect(self, connection: Connection | None = None) -> bool:
        """Break `connection`, or every connection if `connection` is `None`.

        While the signal is emitting, the node is only deactivated: it is skipped
        from now on, and unlinked when the outermost emission is over.

        Returns
        -------
        bool
            `True` if something was disconnected.  `False` if `connection` belongs
            to another signal or was already disconnected.
        """
        if connection is None:
            return self._disconnect_all()
        if not isinstance(connection, Connection) or connection.signal is not self:
            return False
        node = connection._node
        if self._ring is None or node not in self._ring:
            return False
        return self._disconnect_node(cast("_Node", node))

    def _disconnect_node(self, node: _Node) -> bool:
        ring = cast("ConnectionRing", self._ring)
        if self._recursion_depth > 0:
            if ring.deactivate(node):
                self._deactivations = True
                return True
            return False

        was_active = node.active
        ring.unlink(node)
        return was_active

    def _disconnect_all(self) -> bool:
        if self._ring is None:
            return False
        if self._recursion_depth > 0:
            changed = False
            for node in self._ring:
                changed = self._ring.deactivate(node) or changed
            self._deactivations = self._deactivations or changed
            return changed

        changed = len(self._ring) > 0
        self._ring.clear()
        self._deactivations = False
        return changed

    def connected(self, connection: Connection) -> bool:
        """Whether `connection` is a connection of this signal.

        A node deactivated during an ongoing emission is still connected (though
        never called again) until the outermost emission is over.
        """
        if not isinstance(connection, Connection) or connection.signal is not self:
            return False
        return self._ring is not None and connection._node in self._ring

    def __contains__(self, connection: Any) -> bool:
        return self.connected(connection)

    def __len__(self) -> int:
        """Number of active connections."""
        return 0 if self._ring is None else len(self._ring)

    def emit(
        self,
        *args: Any,
        aggregator: Aggregator | type[Aggregator] | None = None,
        controller: Controller | type[Controller] | None = None,
        check_nargs: bool = False,
        check_types: bool = False,
    ) -> Any:
        """Call the active slots with `args`, in connection order.

        After each slot, the `controller` decides whether to go on, then the
        `aggregator` takes the slot's return value.  Slots of a void signature
        return nothing, and both are then called without a value.

        Parameters
        ----------
        *args : Any
            The emitted arguments.
        aggregator : Aggregator | type[Aggregator] | None
            Builds the return value of `emit`; a class is instantiated.  By default
            a `VoidAggregator` for a void signature, otherwise a `LastAggregator`
            starting from the return type called without arguments (`0` for `int`),
            or from `None` if that fails.
        controller : Controller | type[Controller] | None
            Stops the emission once `decide` returns `False`; a class is
            instantiated.  By default `AlwaysContinue`.
        check_nargs : bool
            Raise `TypeError` if `args` do not bind to the signature.
        check_types : bool
            Raise `TypeError` if `args` are not instances of the declared types.

        Returns
        -------
        Any
            `aggregator.result()`.  A blocked signal calls no slot and returns the
            result of the untouched aggregator.
        """
        aggregator = self._make_aggregator(aggregator)
        if controller is None:
            controller = AlwaysContinue()
        elif isclass(controller):
            controller = controller()

        if self._is_blocked:
            return aggregator.result()

        if check_nargs:
            try:
                self._signature.bind(*args)
            except TypeError as e:
                raise TypeError(f"{self!r} cannot emit {args!r}: {e}") from e
        if check_types and not _args_match(self._signature, args):
            raise TypeError(
                f"{self!r} cannot emit {args!r}: expected types {self._signature}"
            )

        # an instance-level hook (see `utils.monitor_events`) shadows the global one
        debug_hook = self.__dict__.get("_debug_hook", SignalInstance._debug_hook)
        if debug_hook is not None:
            debug_hook(EmissionInfo(self, args))

        if self._ring is None:
            return aggregator.result()

        with Signal._emitting(self):
            self._run_emit_loop(args, aggregator, cast("Controller", controller))

        if self._recursion_depth == 0 and self._deactivations:
            # outermost emission is over, unlink what was deactivated meanwhile
            self._ring.sweep()
            self._deactivations = False

        return aggregator.result()

    def __call__(
        self,
        *args: Any,
        aggregator: Aggregator | type[Aggregator] | None = None,
        controller: Controller | type[Controller] | None = None,
        check_nargs: bool = False,
        check_types: bool = False,
    ) -> Any:
        """Same as `emit()`."""
        return self.emit(
            *args,
            aggregator=aggregator,
            controller=controller,
            check_nargs=check_nargs,
            check_types=check_types,
        )

    def _make_aggregator(
        self, aggregator: Aggregator | type[Aggregator] | None
    ) -> Aggregator:
        if aggregator is None:
            if self._returns_value:
                return LastAggregator(_value_init(self._signature.return_annotation))
            return VoidAggregator()
        if isclass(aggregator):
            return cast("type[Aggregator]", aggregator)()
        return cast("Aggregator", aggregator)

    def _run_emit_loop(
        self, args: tuple[Any, ...], aggregator: Aggregator, controller: Controller
    ) -> None:
        ring = cast("ConnectionRing", self._ring)
        sentinel = ring.sentinel
        node = ring.first
        ok = True
        while ok and node is not sentinel:
            slot = node.slot
            if slot is not None:
                # while this is > 0, disconnecting only deactivates nodes, so that
                # `node` cannot be unlinked from under us.
                self._recursion_depth += 1
                try:
                    if self._returns_value:
                        result = slot.cb(args)
                        ok = controller.decide(result)
                        aggregator.accept(result)
                    else:
                        slot.cb(args)
                        ok = controller.decide()
                        aggregator.accept()
                finally:
                    self._recursion_depth -= 1
            # read `next` only now: the slot may have appended nodes
            node = cast("_Node", node.next)

    def block(self) -> None:
        """Stop calling slots on `emit()` until `unblock()`."""
        self._is_blocked = True

    def unblock(self) -> None:
        self._is_blocked = False

    def blocked(self) -> _SignalBlocker:
        """Context manager blocking the signal, then restoring its previous state.

        ```python
        with sig.blocked():
            sig.emit(1)  # no slot is called
        ```
        """
        return _SignalBlocker(self)

    def __reduce__(self) -> NoReturn:
        raise TypeError(f"{type(self).__name__!r} objects cannot be copied or pickled")


class _SignalBlocker:
    def __init__(self, signal: SignalInstance) -> None:
        self._signal = signal
        self._was_blocked = signal._is_blocked

    def __enter__(self) -> None:
        self._signal.block()

    def __exit__(self, *args: Any) -> None:
        if not self._was_blocked:
            self._signal.unblock()


def _owner_ref(instance: Any) -> Callable[[], Any]:
    if instance is None:
        return lambda: None
    try:
        return weakref.ref(instance)
    except TypeError:
        return lambda: instance


def _build_signature(*types: Any, returns: Any = None) -> Signature:
    params = [
        Parameter(f"p{i}", Parameter.POSITIONAL_ONLY, annotation=t)
        for i, t in enumerate(types)
    ]
    if returns is None:
        return Signature(params)
    return Signature(params, return_annotation=returns)


def _value_init(type_: Any) -> Any:
    """Return `type_()` (`0` for `int`), or `None` if that is not possible.

    A string annotation only resolves if it names a builtin (`"int"`).
    """
    if isinstance(type_, str):
        type_ = getattr(builtins, type_, None)
    if isclass(type_):
        with suppress(TypeError):
            return type_()
    return None


def _positional_capacity(sig: Signature) -> tuple[int, int | None]:
    """Return how many positional arguments `sig` needs, and how many it takes.

    The second value is `None` for `*args`.  A keyword-only parameter without a
    default can never be filled by an emission, and raises `ValueError`.
    """
    needed = accepted = 0
    unbounded = False
    for param in sig.parameters.values():
        if param.kind in _POSITIONAL:
            accepted += 1
            if param.default is Parameter.empty:
                needed += 1
        elif param.kind is Parameter.VAR_POSITIONAL:
            unbounded = True
        elif param.kind is Parameter.KEYWORD_ONLY and param.default is Parameter.empty:
            raise ValueError(
                f"Slot has a required KEYWORD_ONLY parameter {param.name!r}: {sig}"
            )
    return needed, None if unbounded else accepted


def _annotations_accept(slot: Callable, slot_sig: Signature, sig: Signature) -> bool:
    """Whether each annotated parameter of `slot` accepts the emitted type."""
    hints: dict[str, Any] | None = None
    for slot_param, param in zip(
        slot_sig.parameters.values(), sig.parameters.values(), strict=False
    ):
        expected = slot_param.annotation
        if expected is Parameter.empty:
            continue
        if isinstance(expected, str):
            if hints is None:
                hints = get_type_hints(slot)
            expected = hints.get(slot_param.name, Any)
        if not _accepts(expected, param.annotation):
            return False
    return True


def _args_match(sig: Signature, args: tuple[Any, ...]) -> bool:
    return all(
        _accepts(param.annotation, type(arg))
        for param, arg in zip(sig.parameters.values(), args, strict=False)
    )


def _accepts(expected: Any, provided: Any) -> bool:
    """Whether values of type `provided` fit the annotation `expected`."""
    if expected in (Any, Parameter.empty) or provided in (Any, Parameter.empty):
        return True
    if get_origin(expected) in (Union, UnionType):
        return any(_accepts(member, provided) for member in get_args(expected))
    return isclass(provided) and isclass(expected) and issubclass(provided, expected)
