"""patio: composable patterns for non-blocking binary I/O.

All public types are exported from this module for flat imports:

    from patio import U8, U16, Bytes, chain, consume, wait
"""

__version__ = "0.1.0"

# Channels
from patio._channel import Counter, Reader, Sink, Writer

# Layout config types, see patio._config for details
from patio._config import (
    BytesConfig,
    ConfigParseError,
    ConstConfig,
    FieldConfig,
    FieldRef,
    LayoutConfig,
    LeafConfig,
    RepeatConfig,
    SizeConfig,
    StructConfig,
    SwitchConfig,
    Utf8Config,
    parse_layout_config,
)

# Errors
from patio._errors import (
    ChannelError,
    OperationCancelled,
    OperationError,
    PatternError,
    PatternLogicError,
    TrailingBytesError,
    UnexpectedEofError,
)
from patio._helpers import length_prefixed, line, utf8

# Operations
from patio._operation import (
    PENDING,
    Failed,
    Operation,
    Pending,
    Poll,
    Ready,
    consume,
    produce,
)

# Patterns
from patio._pattern import (
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
    BigEndian,
    Branch,
    ByteOrder,
    Bytes,
    Chain,
    Const,
    Delimited,
    Eos,
    Float,
    Int,
    LittleEndian,
    Map,
    Partial,
    Pattern,
    Remaining,
    Repeat,
    branch,
    chain,
    is_pattern,
    pattern_depth,
    repeat,
    static_size,
)

# Registry, see patio._registry for details
from patio._registry import (
    MAX_FIELDS,
    MAX_LAYOUT_DEPTH,
    InvalidConfigError,
    LayoutTooDeepError,
    Registry,
    RegistryBuilder,
    TooManyFieldsError,
    UnknownTypeError,
    register_core_leaves,
)
from patio._sync import decode, encode, encoded_size, wait, wait_async

__all__ = [
    # Patterns
    "AndThen",
    "BigEndian",
    "Branch",
    "ByteOrder",
    "Bytes",
    "Chain",
    "Const",
    "Delimited",
    "Eos",
    "F32",
    "F64",
    "Float",
    "I8",
    "I16",
    "I24",
    "I32",
    "I40",
    "I48",
    "I56",
    "I64",
    "Int",
    "LittleEndian",
    "Map",
    "Partial",
    "Pattern",
    "Remaining",
    "Repeat",
    "U8",
    "U16",
    "U24",
    "U32",
    "U40",
    "U48",
    "U56",
    "U64",
    "branch",
    "chain",
    "is_pattern",
    "length_prefixed",
    "line",
    "pattern_depth",
    "repeat",
    "static_size",
    "utf8",
    # Channels
    "Counter",
    "Reader",
    "Sink",
    "Writer",
    # Operations
    "PENDING",
    "Failed",
    "Operation",
    "Pending",
    "Poll",
    "Ready",
    "consume",
    "decode",
    "encode",
    "encoded_size",
    "produce",
    "wait",
    "wait_async",
    # Errors
    "ChannelError",
    "OperationCancelled",
    "OperationError",
    "PatternError",
    "PatternLogicError",
    "TrailingBytesError",
    "UnexpectedEofError",
    # Config
    "BytesConfig",
    "ConfigParseError",
    "ConstConfig",
    "FieldConfig",
    "FieldRef",
    "LayoutConfig",
    "LeafConfig",
    "RepeatConfig",
    "SizeConfig",
    "StructConfig",
    "SwitchConfig",
    "Utf8Config",
    "parse_layout_config",
    # Registry
    "MAX_FIELDS",
    "MAX_LAYOUT_DEPTH",
    "InvalidConfigError",
    "LayoutTooDeepError",
    "Registry",
    "RegistryBuilder",
    "TooManyFieldsError",
    "UnknownTypeError",
    "register_core_leaves",
]
