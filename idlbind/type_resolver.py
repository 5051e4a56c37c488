"""Type resolution from IDL type expressions to closed type descriptors"""

import logging
from dataclasses import dataclass, replace
from typing import Optional, Union

from .errors import UnsupportedTypeError
from .types import NO_FLAGS, TypeExpr, TypeFlags

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScalarKind:
    """Native representation of an IDL scalar"""
    idl: str
    cpp: str
    size: int
    heap: str       # Emscripten heap view used for staged copies
    ensure: Optional[str] = None   # staging helper for sequence<kind>, if any

    @property
    def shift(self) -> int:
        return {1: 0, 2: 1, 4: 2, 8: 3}[self.size]

    @property
    def is_64bit_integer(self) -> bool:
        return self.size == 8 and not self.heap.startswith("HEAPF")


# IDL scalar name -> native layout
SCALAR_TYPES = {
    'boolean': ScalarKind('boolean', 'bool', 1, 'HEAPU8', 'ensureI8'),
    'byte': ScalarKind('byte', 'char', 1, 'HEAP8', 'ensureI8'),
    'octet': ScalarKind('octet', 'unsigned char', 1, 'HEAPU8', 'ensureI8'),
    'short': ScalarKind('short', 'short', 2, 'HEAP16', 'ensureI16'),
    'unsigned short': ScalarKind('unsigned short', 'unsigned short', 2, 'HEAPU16', 'ensureI16'),
    'long': ScalarKind('long', 'int', 4, 'HEAP32', 'ensureI32'),
    'unsigned long': ScalarKind('unsigned long', 'unsigned int', 4, 'HEAPU32', 'ensureI32'),
    'long long': ScalarKind('long long', 'long long', 8, 'HEAP64'),
    'unsigned long long': ScalarKind('unsigned long long', 'unsigned long long', 8, 'HEAPU64'),
    'float': ScalarKind('float', 'float', 4, 'HEAPF32', 'ensureF32'),
    'double': ScalarKind('double', 'double', 8, 'HEAPF64', 'ensureF64'),
}

STRING_TYPES = ('DOMString', 'ByteString', 'USVString')


# -- descriptors ---------------------------------------------------------------
#
# A closed set of frozen dataclasses. Equality and hashing are structural, so
# two descriptors built from the same expression compare (and hash) equal; the
# resolver additionally guarantees they are the same object.

@dataclass(frozen=True)
class Scalar:
    kind: ScalarKind
    flags: TypeFlags = NO_FLAGS


@dataclass(frozen=True)
class StringType:
    flags: TypeFlags = NO_FLAGS


@dataclass(frozen=True)
class SequenceOf:
    element: Scalar
    flags: TypeFlags = NO_FLAGS


@dataclass(frozen=True)
class Nullable:
    inner: "TypeDescriptor"
    flags: TypeFlags = NO_FLAGS


@dataclass(frozen=True)
class InterfaceRef:
    name: str
    flags: TypeFlags = NO_FLAGS


@dataclass(frozen=True)
class ValueTypeRef:
    name: str
    flags: TypeFlags = NO_FLAGS


@dataclass(frozen=True)
class CallbackRef:
    name: str
    flags: TypeFlags = NO_FLAGS


TypeDescriptor = Union[Scalar, StringType, SequenceOf, Nullable, InterfaceRef, ValueTypeRef, CallbackRef]


def type_key(desc: Optional[TypeDescriptor]) -> tuple:
    """Structural composite key: variant tag, flags, base"""
    if desc is None:
        return ("void",)
    if isinstance(desc, Scalar):
        base = desc.kind.idl
    elif isinstance(desc, StringType):
        base = None
    elif isinstance(desc, SequenceOf):
        base = type_key(desc.element)
    elif isinstance(desc, Nullable):
        base = type_key(desc.inner)
    else:
        base = desc.name
    return (type(desc).__name__, desc.flags, base)


def describe(desc: Optional[TypeDescriptor]) -> str:
    """Human readable form for error messages"""
    if desc is None:
        return "void"
    if isinstance(desc, Scalar):
        return desc.kind.idl
    if isinstance(desc, StringType):
        return "DOMString"
    if isinstance(desc, SequenceOf):
        return f"sequence<{describe(desc.element)}>"
    if isinstance(desc, Nullable):
        return f"{describe(desc.inner)}?"
    return desc.name


class TypeResolver:
    """Resolves type expressions against one set of declarations.

    The memo lives as long as the resolver, i.e. one generation session.
    """

    def __init__(self, typedefs: dict[str, TypeExpr], interfaces: set[str],
                 value_types: set[str], callbacks: set[str]):
        self.typedefs = typedefs
        self.interfaces = interfaces
        self.value_types = value_types
        self.callbacks = callbacks
        self._memo: dict[tuple[TypeExpr, TypeFlags], Optional[TypeDescriptor]] = {}
        self._resolving: list[str] = []
        self._canonical: dict = {}

    def resolve(self, expr: TypeExpr, flags: TypeFlags = NO_FLAGS) -> Optional[TypeDescriptor]:
        """Resolve ``expr`` to a descriptor; ``void`` resolves to None"""
        key = (expr, flags)
        if key in self._memo:
            return self._memo[key]
        desc = self._intern(self._resolve(expr, flags))
        self._memo[key] = desc
        logger.debug("resolved %s -> %s", expr, type_key(desc))
        return desc

    def _resolve(self, expr: TypeExpr, flags: TypeFlags) -> Optional[TypeDescriptor]:
        if expr.union:
            raise UnsupportedTypeError(f"union type {expr} is not supported")

        if expr.nullable:
            inner = self.resolve(TypeExpr(name=expr.name, element=expr.element))
            if inner is None:
                raise UnsupportedTypeError("void cannot be nullable")
            if isinstance(inner, Nullable):
                return Nullable(inner.inner, flags)
            return Nullable(inner, flags)

        if expr.element is not None:
            element = self.resolve(expr.element)
            if not isinstance(element, Scalar):
                raise UnsupportedTypeError(
                    f"sequence element type {describe(element)} is not a scalar")
            return SequenceOf(element, flags)

        name = expr.name
        if name == "void":
            return None
        if name in ("int", "unsigned int"):
            raise UnsupportedTypeError(f"{name} is not a WebIDL type")
        if name in SCALAR_TYPES:
            return Scalar(SCALAR_TYPES[name], flags)
        if name in STRING_TYPES:
            return StringType(flags)
        if name in self.typedefs:
            return self._resolve_typedef(name, flags)
        if name in self.interfaces:
            return InterfaceRef(name, flags)
        if name in self.value_types:
            return ValueTypeRef(name, flags)
        if name in self.callbacks:
            return CallbackRef(name, flags)
        raise UnsupportedTypeError(f"unknown type '{name}'")

    def _resolve_typedef(self, name: str, flags: TypeFlags) -> Optional[TypeDescriptor]:
        if name in self._resolving:
            raise UnsupportedTypeError(f"typedef cycle through '{name}'")
        self._resolving.append(name)
        try:
            target = self.resolve(self.typedefs[name])
        finally:
            self._resolving.pop()
        if target is None or flags == NO_FLAGS:
            return target
        return replace(target, flags=flags)

    def _intern(self, desc: Optional[TypeDescriptor]) -> Optional[TypeDescriptor]:
        if desc is None:
            return None
        return self._canonical.setdefault(desc, desc)
