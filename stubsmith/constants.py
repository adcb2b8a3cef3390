"""Named constants — eliminates magic strings across the codebase."""

from __future__ import annotations

RUNTIME_MODULE = "stubsmith.runtime"
RUNTIME_ALIAS = "_rt"

INLINE_CONTAINER = "Stubs"
BUNDLE_COLLISION_SUFFIX = "_"
GENERIC_GROUP_SUFFIX = "generic"

INDEXER_ATTR = "indexer"
INDEXER_GET = "__getitem__"
INDEXER_SET = "__setitem__"
CALLABLE_INVOKE = "__call__"

USER_IMPL_PREFIX = "_"
AS_METHOD_PREFIX = "as_"
QUALIFIED_PREFIX = "_via_"
BACKING_PREFIX = "_backing_"
INDEXER_BACKING_SUFFIX = "_backing"
OVERLOAD_TABLE_PREFIX = "_OVERLOADS_"

RESET_INTERCEPTORS = "reset_interceptors"
STRICT_ATTR = "strict"
INTERCEPTOR_ATTR = "interceptor"

# Names generated on every stub; members may not reuse them.
RESERVED_STUB_NAMES: frozenset[str] = frozenset(
    {
        RESET_INTERCEPTORS,
        STRICT_ATTR,
        "__init__",
        "__slots__",
        "__dict__",
        "__class__",
    }
)

# Dunder members the front end turns into stubbable members.
STUBBABLE_DUNDERS: frozenset[str] = frozenset(
    {INDEXER_GET, INDEXER_SET, CALLABLE_INVOKE}
)

# Value-shaped builtins and the literal each defaults to.
VALUE_TYPE_DEFAULTS: dict[str, str] = {
    "int": "0",
    "float": "0.0",
    "complex": "0j",
    "bool": "False",
    "str": '""',
    "bytes": 'b""',
    "bytearray": "bytearray()",
    "tuple": "()",
    "frozenset": "frozenset()",
    "None": "None",
    "NoneType": "None",
}

# Collection abstractions and the growable container each maps to,
# with the number of element types the abstraction takes.
SEQUENCE_ABSTRACTIONS: frozenset[str] = frozenset(
    {
        "Iterable",
        "Collection",
        "Sequence",
        "MutableSequence",
        "Reversible",
        "List",
    }
)
MAPPING_ABSTRACTIONS: frozenset[str] = frozenset(
    {"Mapping", "MutableMapping", "Dict"}
)
SET_ABSTRACTIONS: frozenset[str] = frozenset(
    {"AbstractSet", "MutableSet", "Set"}
)

CONCRETE_SEQUENCE = "list"
CONCRETE_MAPPING = "dict"
CONCRETE_SET = "set"

FUTURE_NAMES: frozenset[str] = frozenset({"Awaitable", "Coroutine", "Future"})
CALLABLE_NAMES: frozenset[str] = frozenset({"Callable"})
ANY_NAMES: frozenset[str] = frozenset({"Any"})
OPTIONAL_NAMES: frozenset[str] = frozenset({"Optional"})
UNION_NAMES: frozenset[str] = frozenset({"Union"})

# Builtins whose runtime type can be checked with isinstance() directly.
CHECKABLE_BUILTINS: frozenset[str] = frozenset(
    {
        "int",
        "float",
        "complex",
        "bool",
        "str",
        "bytes",
        "bytearray",
        "list",
        "dict",
        "set",
        "frozenset",
        "tuple",
        "object",
        "type",
    }
)

# Marker names recognised by the Python front end.
EVENT_MARKER = "Event"
REF_MARKER = "Ref"
OUT_MARKER = "Out"
IN_MARKER = "In"
STUB_DECORATOR = "stub"
INLINE_STUBS_DECORATOR = "inline_stubs"
PROTOCOL_BASE = "Protocol"
OVERLOAD_DECORATOR = "overload"
ABSTRACT_DECORATOR = "abstractmethod"
FINAL_DECORATOR = "final"
PROPERTY_DECORATOR = "property"

GENERATED_HEADER = "# <auto-generated by stubsmith/>"
