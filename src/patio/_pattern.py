"""Pattern algebra: immutable descriptions of structured bytes.

A Pattern says *what* to move, never *how*. Leaves describe primitive
fields (raw buffers, fixed-width numbers); combinators build new patterns
from existing ones. Every variant is a frozen dataclass, so patterns are
hashable-by-identity-of-parts, shareable, and reusable across any number of
operations.

The Pattern union type is closed and pattern-matchable via match/case:
the consuming and producing engines each dispatch over it in exactly one
place.
"""

from __future__ import annotations

import struct
import sys
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, ClassVar, Literal

from patio._errors import PatternError

type ByteOrder = Literal["big", "little"]

NATIVE_ORDER: ByteOrder = "little" if sys.byteorder == "little" else "big"

DEFAULT_CHUNK_SIZE = 4096
DEFAULT_MAX_DELIMITED = 64 * 1024


class _Combinators:
    """Method sugar shared by every pattern variant."""

    __slots__ = ()

    def map(
        self, func: Callable[[Any], Any], encode: Callable[[Any], Any] | None = None
    ) -> Map:
        """Transform the value with ``func``; ``encode`` inverts it for producing."""
        return Map(self, func, encode)  # type: ignore[arg-type]

    def and_then(
        self, func: Callable[[Any], Pattern], head: Callable[[Any], Any] | None = None
    ) -> AndThen:
        """Continue with the pattern ``func`` builds from this pattern's value."""
        return AndThen(self, func, head)  # type: ignore[arg-type]

    def repeat(self, count: int) -> Repeat:
        """Run this pattern exactly ``count`` times."""
        return Repeat(self, count)  # type: ignore[arg-type]


class _Endian:
    """Endianness selection for multi-byte numeric leaves."""

    __slots__ = ()

    def be(self) -> BigEndian:
        return BigEndian(self)  # type: ignore[arg-type]

    def le(self) -> LittleEndian:
        return LittleEndian(self)  # type: ignore[arg-type]


# ═══════════════════════════════════════════════════════════════════════════════
# Leaves
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Bytes(_Combinators):
    """Exactly ``size`` raw bytes. Value: ``bytes``."""

    size: int

    def __post_init__(self) -> None:
        _check_size("Bytes", self.size)


@dataclass(frozen=True, slots=True)
class Int(_Combinators, _Endian):
    """A fixed-width integer of 1 to 8 bytes.

    Read and written in native byte order unless wrapped by ``.be()`` or
    ``.le()``.
    """

    width: int
    signed: bool = False

    def __post_init__(self) -> None:
        if not 1 <= self.width <= 8:
            msg = f"Int width must be between 1 and 8 bytes, got {self.width}"
            raise PatternError(msg)

    def decode(self, data: bytes, byteorder: ByteOrder) -> int:
        return int.from_bytes(data, byteorder, signed=self.signed)

    def encode(self, value: int, byteorder: ByteOrder) -> bytes:
        if not isinstance(value, int):
            msg = f"expected int, got {type(value).__name__}"
            raise TypeError(msg)
        return value.to_bytes(self.width, byteorder, signed=self.signed)


@dataclass(frozen=True, slots=True)
class Float(_Combinators, _Endian):
    """An IEEE-754 float: binary32 (width 4) or binary64 (width 8)."""

    width: int

    def __post_init__(self) -> None:
        if self.width not in (4, 8):
            msg = f"Float width must be 4 or 8 bytes, got {self.width}"
            raise PatternError(msg)

    def _format(self, byteorder: ByteOrder) -> str:
        return (">" if byteorder == "big" else "<") + ("f" if self.width == 4 else "d")

    def decode(self, data: bytes, byteorder: ByteOrder) -> float:
        return struct.unpack(self._format(byteorder), data)[0]

    def encode(self, value: float, byteorder: ByteOrder) -> bytes:
        return struct.pack(self._format(byteorder), value)


@dataclass(frozen=True, slots=True)
class BigEndian(_Combinators):
    """Read/write the wrapped numeric leaf most-significant byte first."""

    inner: Int | Float
    byteorder: ClassVar[ByteOrder] = "big"

    def __post_init__(self) -> None:
        _check_numeric("BigEndian", self.inner)


@dataclass(frozen=True, slots=True)
class LittleEndian(_Combinators):
    """Read/write the wrapped numeric leaf least-significant byte first."""

    inner: Int | Float
    byteorder: ClassVar[ByteOrder] = "little"

    def __post_init__(self) -> None:
        _check_numeric("LittleEndian", self.inner)


@dataclass(frozen=True, slots=True)
class Partial(_Combinators):
    """Up to ``size`` bytes, taken from a single non-empty move.

    Value: the bytes actually moved (between 1 and ``size``; empty only
    when ``size`` is 0).
    """

    size: int

    def __post_init__(self) -> None:
        _check_size("Partial", self.size)


@dataclass(frozen=True, slots=True)
class Eos(_Combinators):
    """Probe for end of stream.

    Value: None when the stream is exhausted, otherwise the single byte
    that was read (as an int). The probe byte is consumed. Produces nothing.
    """


@dataclass(frozen=True, slots=True)
class Remaining(_Combinators):
    """Every byte up to end of stream, read ``chunk_size`` at a time."""

    chunk_size: int = DEFAULT_CHUNK_SIZE

    def __post_init__(self) -> None:
        if self.chunk_size < 1:
            msg = f"Remaining chunk_size must be positive, got {self.chunk_size}"
            raise PatternError(msg)


@dataclass(frozen=True, slots=True)
class Delimited(_Combinators):
    """Bytes up to (and consuming) ``delimiter``. Value excludes the delimiter.

    Reads one byte per move so nothing past the delimiter is ever taken
    from the channel. End of stream after at least one byte ends the value
    (a final unterminated line); end of stream before any byte is an
    unexpected end.
    """

    delimiter: bytes = b"\n"
    max_size: int = DEFAULT_MAX_DELIMITED

    def __post_init__(self) -> None:
        if not self.delimiter:
            msg = "Delimited delimiter must not be empty"
            raise PatternError(msg)
        _check_size("Delimited max_size", self.max_size)


@dataclass(frozen=True, slots=True)
class Const[T](_Combinators):
    """Yield ``value`` without moving any bytes."""

    value: T


# ═══════════════════════════════════════════════════════════════════════════════
# Combinators
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Map(_Combinators):
    """Apply ``func`` to the value of ``pattern``.

    If ``pattern`` fails, ``func`` is never called. Producing needs
    ``encode``, the inverse direction: outer value -> inner value.
    """

    pattern: Pattern
    func: Callable[[Any], Any]
    encode: Callable[[Any], Any] | None = None

    def __post_init__(self) -> None:
        _check_pattern("Map", self.pattern)


@dataclass(frozen=True, slots=True)
class AndThen(_Combinators):
    """Run ``pattern``, then the pattern ``func(value)`` builds.

    The continuation starts exactly where ``pattern`` stopped; it requests
    nothing until ``pattern`` has completed. Producing needs ``head``,
    which extracts the dependency value from the final value.
    """

    pattern: Pattern
    func: Callable[[Any], Pattern]
    head: Callable[[Any], Any] | None = None

    def __post_init__(self) -> None:
        _check_pattern("AndThen", self.pattern)


@dataclass(frozen=True, slots=True)
class Chain(_Combinators):
    """Strict sequencing. Value: a tuple with one entry per sub-pattern.

    The empty chain is the identity: value ``()``, moves nothing.
    """

    patterns: tuple[Pattern, ...]

    def __post_init__(self) -> None:
        if not isinstance(self.patterns, tuple):
            object.__setattr__(self, "patterns", tuple(self.patterns))
        for p in self.patterns:
            _check_pattern("Chain", p)


@dataclass(frozen=True, slots=True)
class Repeat(_Combinators):
    """Run ``pattern`` exactly ``count`` times. Value: a list of results."""

    pattern: Pattern
    count: int

    def __post_init__(self) -> None:
        _check_pattern("Repeat", self.pattern)
        _check_size("Repeat count", self.count)


@dataclass(frozen=True, slots=True)
class Branch(_Combinators):
    """Exactly one alternative, chosen by ``discriminant``.

    ``cases`` pairs discriminant values with patterns, first equal key
    wins. Unchosen alternatives never run. When nothing matches and
    there is no ``default``, the operation fails with PatternLogicError.
    """

    discriminant: Any
    cases: tuple[tuple[Any, Pattern], ...]
    default: Pattern | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.cases, tuple):
            object.__setattr__(self, "cases", tuple(self.cases))
        for _, p in self.cases:
            _check_pattern("Branch", p)
        if self.default is not None:
            _check_pattern("Branch", self.default)

    def select(self) -> Pattern | None:
        """Return the chosen alternative, or None if nothing matches."""
        for key, p in self.cases:
            if key == self.discriminant:
                return p
        return self.default


# Union type: the closed set of pattern variants.
type Pattern = (
    Bytes
    | Int
    | Float
    | BigEndian
    | LittleEndian
    | Partial
    | Eos
    | Remaining
    | Delimited
    | Const[Any]
    | Map
    | AndThen
    | Chain
    | Repeat
    | Branch
)

PATTERN_TYPES: tuple[type, ...] = (
    Bytes,
    Int,
    Float,
    BigEndian,
    LittleEndian,
    Partial,
    Eos,
    Remaining,
    Delimited,
    Const,
    Map,
    AndThen,
    Chain,
    Repeat,
    Branch,
)


def is_pattern(obj: object) -> bool:
    return isinstance(obj, PATTERN_TYPES)


# ═══════════════════════════════════════════════════════════════════════════════
# Constructors
# ═══════════════════════════════════════════════════════════════════════════════


def chain(*patterns: Pattern) -> Chain:
    """Sequence patterns in declared order."""
    return Chain(patterns)


def repeat(pattern: Pattern, count: int) -> Repeat:
    """Run ``pattern`` exactly ``count`` times."""
    return Repeat(pattern, count)


def branch(
    discriminant: Any,
    alternatives: Mapping[Any, Pattern] | Sequence[Pattern],
    default: Pattern | None = None,
) -> Branch:
    """Select one alternative by discriminant.

    ``alternatives`` is either a mapping (key -> pattern) or a sequence,
    in which case the discriminant is the index.

    >>> branch(1, [U8, U16.be()]).select() == U16.be()
    True
    """
    if isinstance(alternatives, Mapping):
        cases = tuple(alternatives.items())
    else:
        cases = tuple(enumerate(alternatives))
    return Branch(discriminant, cases, default)


# Leaf catalogue
U8 = Int(1)
I8 = Int(1, signed=True)
U16 = Int(2)
I16 = Int(2, signed=True)
U24 = Int(3)
I24 = Int(3, signed=True)
U32 = Int(4)
I32 = Int(4, signed=True)
U40 = Int(5)
I40 = Int(5, signed=True)
U48 = Int(6)
I48 = Int(6, signed=True)
U56 = Int(7)
I56 = Int(7, signed=True)
U64 = Int(8)
I64 = Int(8, signed=True)
F32 = Float(4)
F64 = Float(8)


# ═══════════════════════════════════════════════════════════════════════════════
# Introspection
# ═══════════════════════════════════════════════════════════════════════════════


def static_size(p: Pattern) -> int | None:
    """Bytes ``p`` moves regardless of data, or None if that depends on data."""
    match p:
        case Bytes(size=n):
            return n
        case Int(width=w) | Float(width=w):
            return w
        case BigEndian(inner=inner) | LittleEndian(inner=inner):
            return inner.width
        case Const():
            return 0
        case Map(pattern=inner):
            return static_size(inner)
        case Chain(patterns=ps):
            total = 0
            for sub in ps:
                size = static_size(sub)
                if size is None:
                    return None
                total += size
            return total
        case Repeat(pattern=inner, count=n):
            if n == 0:
                return 0
            size = static_size(inner)
            return None if size is None else size * n
        case Branch():
            selected = p.select()
            return None if selected is None else static_size(selected)
        case _:
            # Partial, Eos, Remaining, Delimited, AndThen
            return None


def pattern_depth(p: Pattern) -> int:
    """Nesting depth of the static pattern tree.

    AndThen continuations are built at run time and do not count.
    """
    match p:
        case BigEndian() | LittleEndian():
            return 2
        case Map(pattern=inner) | AndThen(pattern=inner) | Repeat(pattern=inner):
            return 1 + pattern_depth(inner)
        case Chain(patterns=ps):
            return 1 + max((pattern_depth(sub) for sub in ps), default=0)
        case Branch(cases=cases, default=default):
            subs = [sub for _, sub in cases]
            if default is not None:
                subs.append(default)
            return 1 + max((pattern_depth(sub) for sub in subs), default=0)
        case _:
            return 1


def _check_pattern(owner: str, obj: object) -> None:
    if not is_pattern(obj):
        msg = f"{owner} expects a pattern, got {type(obj).__name__}"
        raise PatternError(msg)


def _check_size(owner: str, n: object) -> None:
    if not isinstance(n, int) or isinstance(n, bool) or n < 0:
        msg = f"{owner} must be a non-negative int, got {n!r}"
        raise PatternError(msg)


def _check_numeric(owner: str, obj: object) -> None:
    if not isinstance(obj, (Int, Float)):
        msg = f"{owner} wraps Int or Float leaves only, got {type(obj).__name__}"
        raise PatternError(msg)
