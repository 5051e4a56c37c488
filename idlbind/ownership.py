"""
Ownership-aware marshaling

Every resolved type is classified into exactly one marshaling variant. A
variant knows the native parameter/return types and the script-side
transforms applied before a call (arguments) and after it (results), plus
the reverse direction used when native code invokes a script callback.
"""

from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Optional, TYPE_CHECKING

from .errors import UnsupportedTypeError
from .type_resolver import (
    CallbackRef, InterfaceRef, Nullable, Scalar, SequenceOf, StringType,
    TypeDescriptor, ValueTypeRef, describe,
)
from .types import OwnershipMode

if TYPE_CHECKING:
    from .session import GenerationSession


class Marshaling(ABC):
    """Base class for one way of crossing the boundary"""

    variant = ""
    stages = False          # the pre-call transform writes into the staging buffer
    nullable_ok = False

    def __init__(self, desc: TypeDescriptor, nullable: bool = False):
        self.desc = desc
        self.flags = desc.flags
        self.nullable = nullable
        if nullable and not self.nullable_ok:
            raise UnsupportedTypeError(f"{self.variant} type {describe(desc)} cannot be nullable")

    def _unsupported(self, what: str):
        raise UnsupportedTypeError(f"{describe(self.desc)} is not supported as {what}")

    # -- script -> native arguments --

    @abstractmethod
    def native_param_type(self) -> str:
        """Native type of the entry point parameter"""

    def native_arg(self, var: str) -> str:
        """Expression handed to the native implementation"""
        return var

    def js_pre(self, var: str) -> Optional[str]:
        """Script statement rewriting ``var`` before the call"""
        return None

    # -- native -> script results --

    def native_return_type(self) -> str:
        self._unsupported("a return value")

    def native_return(self, call: str) -> list[str]:
        return [f"return {call};"]

    def js_post(self, var: str) -> str:
        return var

    # -- native -> script callback arguments --

    def callback_param_type(self) -> str:
        self._unsupported("a callback argument")

    def native_to_script(self, var: str) -> str:
        return var

    def js_from_native(self, var: str) -> str:
        return var

    # -- script -> native callback results --

    def js_to_native(self, var: str) -> str:
        return var

    def native_from_script(self, var: str) -> str:
        return var


class ScalarMarshaling(Marshaling):
    variant = "scalar"

    def __init__(self, desc: Scalar, nullable: bool = False):
        super().__init__(desc, nullable)
        self.kind = desc.kind

    @property
    def is_bool(self) -> bool:
        return self.kind.idl == "boolean"

    def native_param_type(self) -> str:
        return self.kind.cpp

    def native_return_type(self) -> str:
        return self.kind.cpp

    def js_post(self, var: str) -> str:
        return f"!!({var})" if self.is_bool else var

    def callback_param_type(self) -> str:
        return self.kind.cpp

    def js_from_native(self, var: str) -> str:
        return self.js_post(var)

    def js_to_native(self, var: str) -> str:
        return f"(({var}) ? 1 : 0)" if self.is_bool else var


class StringMarshaling(Marshaling):
    variant = "string"
    stages = True
    nullable_ok = True

    def native_param_type(self) -> str:
        return "const char*"

    def js_pre(self, var: str) -> Optional[str]:
        return f"{var} = ensureString({var});"

    def native_return_type(self) -> str:
        return "const char*"

    def native_return(self, call: str) -> list[str]:
        if self.flags.by_value:
            return [
                "static std::string temp;",
                f"temp = {call};",
                "return temp.c_str();",
            ]
        return [f"return {call};"]

    def js_post(self, var: str) -> str:
        if self.nullable:
            return f"({var} ? UTF8ToString({var}) : null)"
        return f"UTF8ToString({var})"

    def callback_param_type(self) -> str:
        return "const char*"

    def js_from_native(self, var: str) -> str:
        return self.js_post(var)


class SequenceMarshaling(Marshaling):
    variant = "sequence"
    stages = True
    nullable_ok = True

    def __init__(self, desc: SequenceOf, nullable: bool = False):
        super().__init__(desc, nullable)
        self.kind = desc.element.kind
        if not self.kind.ensure:
            raise UnsupportedTypeError(f"{describe(desc)} has no staging view for 64-bit elements")

    def native_param_type(self) -> str:
        const = "const " if self.flags.is_const else ""
        return f"{const}{self.kind.cpp}*"

    def js_pre(self, var: str) -> Optional[str]:
        return f"{var} = {self.kind.ensure}({var});"


class RawInterfaceMarshaling(Marshaling):
    variant = "interface"
    nullable_ok = True

    def __init__(self, desc: InterfaceRef, cpp_name: str, nullable: bool = False):
        super().__init__(desc, nullable)
        self.name = desc.name
        self.cpp = cpp_name
        if nullable and (self.flags.by_ref or self.flags.by_value):
            raise UnsupportedTypeError(f"{self.name} passed by reference or value cannot be nullable")

    @property
    def _const(self) -> str:
        return "const " if self.flags.is_const else ""

    def native_param_type(self) -> str:
        return f"{self._const}{self.cpp}*"

    def native_arg(self, var: str) -> str:
        if self.flags.by_ref or self.flags.by_value:
            return f"*{var}"
        return var

    def js_pre(self, var: str) -> Optional[str]:
        if self.nullable:
            return f"{var} = {var} ? {var}.ptr : 0;"
        return f"{var} = {var}.ptr;"

    def native_return_type(self) -> str:
        return f"{self._const}{self.cpp}*"

    def native_return(self, call: str) -> list[str]:
        if self.flags.by_value:
            return [
                f"static {self.cpp} temp;",
                f"temp = {call};",
                "return &temp;",
            ]
        if self.flags.by_ref:
            return [f"return &{call};"]
        return [f"return {call};"]

    def js_post(self, var: str) -> str:
        # By-value results live in a reused temporary and must not alias a cached wrapper
        wrap = "__wrapNoCache" if self.flags.by_value else "__wrap"
        if self.nullable:
            return f"({var} ? {self.name}.{wrap}({var}) : null)"
        return f"{self.name}.{wrap}({var})"

    def callback_param_type(self) -> str:
        if self.flags.by_ref or self.flags.by_value:
            return f"{self._const}{self.cpp}&"
        return f"{self._const}{self.cpp}*"

    def native_to_script(self, var: str) -> str:
        if self.flags.by_ref or self.flags.by_value:
            return f"const_cast<{self.cpp}*>(&{var})"
        return var

    def js_from_native(self, var: str) -> str:
        return f"({var} ? {self.name}.__wrap({var}) : null)"

    def js_to_native(self, var: str) -> str:
        return f"({var} ? {var}.ptr : 0)"


class SharedInterfaceMarshaling(Marshaling):
    """Shared-ownership interfaces cross as heap-boxed std::shared_ptr cells"""

    variant = "shared interface"
    nullable_ok = True

    def __init__(self, desc: InterfaceRef, cpp_name: str, nullable: bool = False):
        super().__init__(desc, nullable)
        self.name = desc.name
        self.cell = f"std::shared_ptr<{cpp_name}>"

    def native_param_type(self) -> str:
        return f"{self.cell}*"

    def native_arg(self, var: str) -> str:
        if self.nullable:
            return f"({var} ? *{var} : {self.cell}())"
        return f"*{var}"

    def js_pre(self, var: str) -> Optional[str]:
        if self.nullable:
            return f"{var} = {var} ? {var}.ptr : 0;"
        return f"{var} = {var}.ptr;"

    def native_return_type(self) -> str:
        return f"{self.cell}*"

    def native_return(self, call: str) -> list[str]:
        return [
            f"{self.cell} result = {call};",
            f"return result ? new {self.cell}(std::move(result)) : nullptr;",
        ]

    def js_post(self, var: str) -> str:
        return f"({var} ? {self.name}.__wrap({var}) : null)"

    def callback_param_type(self) -> str:
        # Cells are already heap-boxed, so the invocation passes the handle through
        return f"{self.cell}*"

    def js_from_native(self, var: str) -> str:
        return self.js_post(var)

    def js_to_native(self, var: str) -> str:
        return f"({var} ? {var}.ptr : 0)"

    def native_from_script(self, var: str) -> str:
        return f"({var} ? *{var} : {self.cell}())"


class ValueTypeMarshaling(Marshaling):
    variant = "value type"
    stages = True

    def __init__(self, desc: ValueTypeRef, cpp_name: str, slot: str):
        super().__init__(desc)
        self.name = desc.name
        self.cpp = cpp_name
        self.slot = slot

    def native_param_type(self) -> str:
        return f"{self.cpp}*"

    def native_arg(self, var: str) -> str:
        return f"*{var}"

    def js_pre(self, var: str) -> Optional[str]:
        return f"{var} = {self.name}.__toNative({var});"

    def native_return_type(self) -> str:
        return f"{self.cpp}*"

    def native_return(self, call: str) -> list[str]:
        return [
            f"{self.slot} = {call};",
            f"return &{self.slot};",
        ]

    def js_post(self, var: str) -> str:
        return f"{self.name}.__fromNative({var})"

    def callback_param_type(self) -> str:
        return f"const {self.cpp}&"

    def native_to_script(self, var: str) -> str:
        return f"const_cast<{self.cpp}*>(&{var})"

    def js_from_native(self, var: str) -> str:
        return self.js_post(var)


class CallbackMarshaling(Marshaling):
    variant = "callback"
    nullable_ok = True

    def __init__(self, desc: CallbackRef, session: "GenerationSession", nullable: bool = False):
        super().__init__(desc, nullable)
        self.name = desc.name
        self.session = session

    @property
    def registry(self) -> str:
        return self.session.bridge.registry_name(self.name)

    def native_param_type(self) -> str:
        return "int"

    def native_arg(self, var: str) -> str:
        return self.session.bridge.native_callable(self.name, var, self.nullable)

    def js_pre(self, var: str) -> Optional[str]:
        if self.nullable:
            return f"{var} = {var} ? {self.registry}.tokenFor({var}) : 0;"
        return f"{var} = {self.registry}.tokenFor({var});"


class OwnershipStrategy:
    """Classifies resolved types into marshaling variants"""

    def __init__(self, session: "GenerationSession"):
        self.session = session
        self._cache: dict[TypeDescriptor, Marshaling] = {}

    def classify(self, desc: TypeDescriptor) -> Marshaling:
        if desc not in self._cache:
            self._cache[desc] = self._classify(desc)
        return self._cache[desc]

    def _classify(self, desc: TypeDescriptor, nullable: bool = False) -> Marshaling:
        if isinstance(desc, Nullable):
            # Modifiers written on a nullable type apply to the wrapped type
            return self._classify(replace(desc.inner, flags=desc.flags), nullable=True)
        if isinstance(desc, Scalar):
            return ScalarMarshaling(desc, nullable)
        if isinstance(desc, StringType):
            return StringMarshaling(desc, nullable)
        if isinstance(desc, SequenceOf):
            return SequenceMarshaling(desc, nullable)
        if isinstance(desc, InterfaceRef):
            iface = self.session.interfaces[desc.name]
            if iface.ownership is OwnershipMode.SHARED:
                return SharedInterfaceMarshaling(desc, iface.native_name, nullable)
            return RawInterfaceMarshaling(desc, iface.native_name, nullable)
        if isinstance(desc, ValueTypeRef):
            if nullable:
                raise UnsupportedTypeError(f"value type {desc.name} cannot be nullable")
            vtype = self.session.value_types[desc.name]
            return ValueTypeMarshaling(desc, vtype.native_name, self.session.layout.slot_name(vtype))
        if isinstance(desc, CallbackRef):
            return CallbackMarshaling(desc, self.session, nullable)
        raise UnsupportedTypeError(f"no marshaling for {describe(desc)}")

    def argument(self, desc: Optional[TypeDescriptor]) -> Marshaling:
        """Marshaling for a value passed from script to native"""
        if desc is None:
            raise UnsupportedTypeError("void is only valid as a return type")
        marshaling = self.classify(desc)
        marshaling.native_param_type()
        return marshaling

    def result(self, desc: Optional[TypeDescriptor]) -> Optional[Marshaling]:
        """Marshaling for a value returned from native to script; None for void"""
        if desc is None:
            return None
        marshaling = self.classify(desc)
        marshaling.native_return_type()
        return marshaling
