"""Type registry for layout-driven pattern construction.

The registry turns a parsed layout into a Pattern without format-specific
compile code. Leaf types (``u8``, ``u16be``, ``f64le``, ...) are plain
factories registered by name; the structural types (struct, bytes, utf8,
repeat, switch, const) are compiled here.

- RegistryBuilder → .build() → Registry (immutable)
- Factories are plain callables: (config: dict) → Pattern
- load_pattern() walks the config tree and builds the pattern

Example::

    builder = register_core_leaves(RegistryBuilder())
    registry = builder.build()

    config = parse_layout_config(yaml.safe_load(text))
    pattern = registry.load_pattern(config)

A struct compiles to a chain of AndThen continuations, one per field, so
sizes, counts and switch discriminants can come from fields decoded
earlier. Field references are checked when the layout is loaded.
"""

from __future__ import annotations

from collections import ChainMap
from dataclasses import dataclass, field
from operator import itemgetter
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from patio._config import (
    BUILT_IN_TYPES,
    BytesConfig,
    ConstConfig,
    FieldRef,
    LeafConfig,
    RepeatConfig,
    StructConfig,
    SwitchConfig,
    Utf8Config,
)
from patio._errors import PatternError
from patio._helpers import line, utf8
from patio._pattern import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_DELIMITED,
    F32,
    F64,
    I8,
    I16,
    I24,
    I32,
    I40,
    I48,
    I56,
    I64,
    U8,
    U16,
    U24,
    U32,
    U40,
    U48,
    U56,
    U64,
    AndThen,
    Branch,
    Bytes,
    Const,
    Eos,
    Remaining,
    Repeat,
    is_pattern,
    static_size,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from patio._config import LayoutConfig, SizeConfig
    from patio._pattern import Float, Int, Pattern

# ═══════════════════════════════════════════════════════════════════════════════
# Limits
# ═══════════════════════════════════════════════════════════════════════════════

MAX_FIELDS = 256
MAX_LAYOUT_DEPTH = 32

# ═══════════════════════════════════════════════════════════════════════════════
# Error types
# ═══════════════════════════════════════════════════════════════════════════════


class UnknownTypeError(PatternError):
    """A leaf type name was not found in the registry."""

    def __init__(self, type_name: str, available: list[str]) -> None:
        self.type_name = type_name
        self.available = sorted(available)
        if self.available:
            registered = ", ".join(self.available)
            msg = f"unknown leaf type: {type_name!r} (registered: {registered})"
        else:
            msg = f"unknown leaf type: {type_name!r} (no leaf types are registered)"
        super().__init__(msg)


class InvalidConfigError(PatternError):
    """A layout was malformed or semantically invalid."""

    def __init__(self, source: str) -> None:
        self.source = source
        super().__init__(f"invalid config: {source}")


class TooManyFieldsError(PatternError):
    """A struct has too many fields (width-based limit)."""

    def __init__(self, count: int, max_: int) -> None:
        self.count = count
        self.max = max_
        super().__init__(f"too many fields: {count} exceeds maximum {max_}")


class LayoutTooDeepError(PatternError):
    """Layout nesting exceeds the depth limit."""

    def __init__(self, depth: int, max_: int) -> None:
        self.depth = depth
        self.max = max_
        super().__init__(f"layout depth {depth} exceeds maximum {max_}")


# ═══════════════════════════════════════════════════════════════════════════════
# Builder
# ═══════════════════════════════════════════════════════════════════════════════

type LeafFactory = Callable[[dict[str, Any]], Pattern]

# Values of already-decoded fields, innermost struct first.
type Scope = Mapping[str, Any]
type _Build = Callable[[Scope], Pattern]


class RegistryBuilder:
    """Builder for constructing a Registry.

    Register leaf factories by type name, then call build() to produce an
    immutable Registry.
    """

    def __init__(self) -> None:
        self._leaf_factories: dict[str, LeafFactory] = {}

    def leaf(self, type_name: str, factory: LeafFactory) -> RegistryBuilder:
        """Register a leaf factory under ``type_name``."""
        if type_name in BUILT_IN_TYPES:
            msg = f"{type_name!r} is a built-in layout type and cannot be registered"
            raise PatternError(msg)
        self._leaf_factories[type_name] = factory
        return self

    def build(self) -> Registry:
        """Freeze the registry. No further registration is possible."""
        return Registry(_leaf_factories=MappingProxyType(dict(self._leaf_factories)))


_INTEGERS: dict[str, Int] = {
    "u8": U8,
    "i8": I8,
    "u16": U16,
    "i16": I16,
    "u24": U24,
    "i24": I24,
    "u32": U32,
    "i32": I32,
    "u40": U40,
    "i40": I40,
    "u48": U48,
    "i48": I48,
    "u56": U56,
    "i56": I56,
    "u64": U64,
    "i64": I64,
}
_FLOATS: dict[str, Float] = {"f32": F32, "f64": F64}


def register_core_leaves(builder: RegistryBuilder) -> RegistryBuilder:
    """Register the leaf catalogue.

    Single-byte integers are registered as ``u8``/``i8``; wider numbers
    always name their byte order (``u16be``, ``i32le``, ``f64be``). Also
    registers ``remaining`` (optional ``chunk_size``), ``line`` (optional
    ``max_size``) and ``eos``.
    """
    for name, leaf in (_INTEGERS | _FLOATS).items():
        if leaf.width == 1:
            builder.leaf(name, _fixed_leaf(name, leaf))
        else:
            builder.leaf(f"{name}be", _fixed_leaf(f"{name}be", leaf.be()))
            builder.leaf(f"{name}le", _fixed_leaf(f"{name}le", leaf.le()))
    builder.leaf(
        "remaining", lambda cfg: Remaining(cfg.get("chunk_size", DEFAULT_CHUNK_SIZE))
    )
    builder.leaf("line", lambda cfg: line(cfg.get("max_size", DEFAULT_MAX_DELIMITED)))
    builder.leaf("eos", _fixed_leaf("eos", Eos()))
    return builder


def _fixed_leaf(name: str, pattern: Pattern) -> LeafFactory:
    def factory(config: dict[str, Any]) -> Pattern:
        if config:
            msg = f"{name} takes no options, got {sorted(config)}"
            raise ValueError(msg)
        return pattern

    return factory


# ═══════════════════════════════════════════════════════════════════════════════
# Registry
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Registry:
    """Immutable registry of leaf factories.

    Constructed via RegistryBuilder. Use load_pattern() to compile a
    layout config into a Pattern.
    """

    _leaf_factories: MappingProxyType[str, LeafFactory] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def load_pattern(self, config: LayoutConfig) -> Pattern:
        """Load a Pattern from a layout config.

        Raises:
            UnknownTypeError: a leaf type name is not registered
            InvalidConfigError: a leaf config is malformed, or a field
                reference names no earlier field
            TooManyFieldsError: a struct has too many fields
            LayoutTooDeepError: nesting exceeds MAX_LAYOUT_DEPTH
        """
        build = self._compile(config, frozenset(), 1)
        return build(MappingProxyType({}))

    @property
    def leaf_count(self) -> int:
        """Number of registered leaf types."""
        return len(self._leaf_factories)

    def contains_leaf(self, type_name: str) -> bool:
        """Check if a leaf type name is registered."""
        return type_name in self._leaf_factories

    def leaf_names(self) -> list[str]:
        """Return all registered leaf type names (sorted)."""
        return sorted(self._leaf_factories.keys())

    def layout_size(self, config: LayoutConfig) -> int | None:
        """Bytes every record of this layout occupies, or None if that
        depends on the data.

        Unlike static_size() on the loaded pattern, this sees through
        structs, whose fields are joined by continuations.
        """
        match config:
            case LeafConfig(type_name=name, config=cfg):
                return static_size(self._load_leaf(name, cfg))
            case BytesConfig(size=int(n)) | Utf8Config(size=int(n)):
                return n
            case RepeatConfig(count=int(n), element=element):
                if n == 0:
                    return 0
                size = self.layout_size(element)
                return None if size is None else size * n
            case ConstConfig():
                return 0
            case StructConfig(fields=fields):
                total = 0
                for f in fields:
                    size = self.layout_size(f.type)
                    if size is None:
                        return None
                    total += size
                return total
            case _:
                # Field-derived sizes and switches
                return None

    # ── Private loading methods ────────────────────────────────────────────

    def _compile(self, config: LayoutConfig, known: frozenset[str], depth: int) -> _Build:
        if depth > MAX_LAYOUT_DEPTH:
            raise LayoutTooDeepError(depth, MAX_LAYOUT_DEPTH)

        match config:
            case LeafConfig(type_name=name, config=cfg):
                pattern = self._load_leaf(name, cfg)
                return lambda scope: pattern
            case BytesConfig(size=size):
                size_of = _resolver(size, known)
                return lambda scope: Bytes(size_of(scope))
            case Utf8Config(size=size):
                size_of = _resolver(size, known)
                return lambda scope: utf8(Bytes(size_of(scope)))
            case RepeatConfig(count=count, element=element):
                count_of = _resolver(count, known)
                element_of = self._compile(element, known, depth + 1)
                return lambda scope: Repeat(element_of(scope), count_of(scope))
            case SwitchConfig():
                return self._compile_switch(config, known, depth)
            case ConstConfig(value=value):
                pattern = Const(value)
                return lambda scope: pattern
            case StructConfig(fields=fields):
                if len(fields) > MAX_FIELDS:
                    raise TooManyFieldsError(len(fields), MAX_FIELDS)
                available = set(known)
                builds = []
                for f in fields:
                    builds.append(self._compile(f.type, frozenset(available), depth + 1))
                    available.add(f.name)
                return _Struct(tuple(f.name for f in fields), tuple(builds))
            case _:  # pragma: no cover
                msg = f"unknown layout config type: {type(config).__name__}"
                raise InvalidConfigError(msg)

    def _compile_switch(
        self, config: SwitchConfig, known: frozenset[str], depth: int
    ) -> _Build:
        on = config.on
        _check_ref(on, known)
        cases = tuple(
            (key, self._compile(case, known, depth + 1)) for key, case in config.cases
        )
        default_of = None
        if config.default is not None:
            default_of = self._compile(config.default, known, depth + 1)

        def build(scope: Scope) -> Pattern:
            default = None if default_of is None else default_of(scope)
            return Branch(scope[on], tuple((k, b(scope)) for k, b in cases), default)

        return build

    def _load_leaf(self, type_name: str, config: dict[str, Any]) -> Pattern:
        factory = self._leaf_factories.get(type_name)
        if factory is None:
            raise UnknownTypeError(type_name, list(self._leaf_factories.keys()))
        try:
            pattern = factory(config)
        except Exception as e:
            raise InvalidConfigError(str(e)) from e
        if not is_pattern(pattern):
            msg = f"{type_name} factory returned {type(pattern).__name__}, not a pattern"
            raise InvalidConfigError(msg)
        return pattern


# ═══════════════════════════════════════════════════════════════════════════════
# Struct compilation
# ═══════════════════════════════════════════════════════════════════════════════


class _Struct:
    """Builds the pattern of one struct for a given enclosing scope.

    Field ``i`` is ``AndThen(pattern_i, next)``: its value extends the
    record, and ``next`` builds field ``i + 1`` from the extended scope.
    The last continuation is ``Const(record)``. Producing reads each field
    back out of the record with ``head``.
    """

    __slots__ = ("_names", "_builds")

    def __init__(self, names: tuple[str, ...], builds: tuple[_Build, ...]) -> None:
        self._names = names
        self._builds = builds

    def __call__(self, outer: Scope) -> Pattern:
        return self._field(0, {}, outer)

    def _field(self, index: int, record: dict[str, Any], outer: Scope) -> Pattern:
        if index == len(self._names):
            return Const(record)
        name = self._names[index]
        pattern = self._builds[index](ChainMap(record, outer))

        def rest(value: Any) -> Pattern:
            return self._field(index + 1, {**record, name: value}, outer)

        return AndThen(pattern, rest, head=itemgetter(name))


def _check_ref(name: str, known: frozenset[str]) -> None:
    if name not in known:
        msg = f"field {name!r} is referenced before it is defined"
        raise InvalidConfigError(msg)


def _resolver(size: SizeConfig, known: frozenset[str]) -> Callable[[Scope], Any]:
    if isinstance(size, FieldRef):
        _check_ref(size.field, known)
        return itemgetter(size.field)
    return lambda scope: size
