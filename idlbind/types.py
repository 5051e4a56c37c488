"""Data types for parsed IDL declarations"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class TypeExpr:
    """Unresolved type expression as written in the IDL.

    Exactly one of ``name``, ``element`` (sequence) or ``union`` is set.
    """
    name: str = ""
    element: Optional["TypeExpr"] = None
    union: tuple["TypeExpr", ...] = ()
    nullable: bool = False

    @property
    def is_sequence(self) -> bool:
        return self.element is not None

    def __str__(self) -> str:
        if self.union:
            text = "(" + " or ".join(str(u) for u in self.union) + ")"
        elif self.element is not None:
            text = f"sequence<{self.element}>"
        else:
            text = self.name
        return text + "?" if self.nullable else text


@dataclass(frozen=True)
class TypeFlags:
    """Modifiers from the [Ref], [Value] and [Const] extended attributes"""
    by_ref: bool = False
    by_value: bool = False
    is_const: bool = False


NO_FLAGS = TypeFlags()


class OwnershipMode(Enum):
    RAW_POINTER = "raw"
    SHARED = "shared"


@dataclass
class ExtAttr:
    """Extended attribute, e.g. [CppName=Foo] or [Constructor(long x)]"""
    name: str
    value: Optional[str] = None
    arguments: Optional[list["Argument"]] = None


@dataclass
class Argument:
    """Operation, constructor or callback argument"""
    name: str
    type: TypeExpr
    optional: bool = False
    flags: TypeFlags = NO_FLAGS


@dataclass
class Operation:
    """Interface method"""
    name: str
    return_type: TypeExpr
    arguments: list[Argument] = field(default_factory=list)
    flags: TypeFlags = NO_FLAGS
    is_static: bool = False
    cpp_name: Optional[str] = None

    @property
    def native_name(self) -> str:
        return self.cpp_name or self.name


@dataclass
class Attribute:
    """Interface attribute or value type field"""
    name: str
    type: TypeExpr
    flags: TypeFlags = NO_FLAGS
    is_static: bool = False
    read_only: bool = False


@dataclass
class Interface:
    """IDL interface definition"""
    name: str
    parent: Optional[str] = None
    ownership: OwnershipMode = OwnershipMode.RAW_POINTER
    cpp_name: Optional[str] = None
    constructors: list[list[Argument]] = field(default_factory=list)
    operations: list[Operation] = field(default_factory=list)
    attributes: list[Attribute] = field(default_factory=list)
    non_destructible: bool = False

    @property
    def native_name(self) -> str:
        return self.cpp_name or self.name


@dataclass
class ValueType:
    """Plain data record copied field by field across the boundary"""
    name: str
    parent: Optional[str] = None
    fields: list[Attribute] = field(default_factory=list)
    cpp_name: Optional[str] = None

    @property
    def native_name(self) -> str:
        return self.cpp_name or self.name


@dataclass
class Callback:
    """Callback function type definition"""
    name: str
    return_type: TypeExpr
    arguments: list[Argument] = field(default_factory=list)


@dataclass
class Typedef:
    name: str
    type: TypeExpr


@dataclass
class ParsedIDL:
    """Complete parsed IDL result, in declaration order"""
    interfaces: list[Interface] = field(default_factory=list)
    value_types: list[ValueType] = field(default_factory=list)
    callbacks: list[Callback] = field(default_factory=list)
    typedefs: list[Typedef] = field(default_factory=list)
