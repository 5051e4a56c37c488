"""
Value type layout planning

Sizes and field offsets of value types are only known to the native
compiler. Each query gets one slot in an offset table; the native side
fills the table with sizeof/offsetof at compile time and the script side
copies it into ``__jsbind_layout`` once at startup. Both sides are
generated from the same registration pass, so slot numbers always agree.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, TYPE_CHECKING

from .errors import UnsupportedTypeError, ValidationError
from .type_resolver import (
    InterfaceRef, Scalar, ScalarKind, StringType, ValueTypeRef, describe,
)
from .types import ValueType

if TYPE_CHECKING:
    from .session import GenerationSession

logger = logging.getLogger(__name__)

LAYOUT_TABLE = "__jsbind_layout"


@dataclass(frozen=True)
class LayoutSlot:
    index: int
    value_type: str
    field: Optional[str] = None     # None queries the type size

    def native_expr(self, cpp_name: str) -> str:
        if self.field is None:
            return f"(int)sizeof({cpp_name})"
        return f"(int)offsetof({cpp_name}, {self.field})"


@dataclass
class FieldLayout:
    name: str
    kind: ScalarKind
    slot: int

    @property
    def is_bool(self) -> bool:
        return self.kind.idl == "boolean"

    def heap_ref(self, ptr: str) -> str:
        offset = f"({ptr} + {LAYOUT_TABLE}[{self.slot}])"
        if self.kind.shift:
            return f"{self.kind.heap}[{offset} >> {self.kind.shift}]"
        return f"{self.kind.heap}[{offset}]"


@dataclass
class ValueTypeLayout:
    value_type: ValueType
    size_slot: int
    fields: list[FieldLayout] = field(default_factory=list)


class ValueTypeLayoutPlanner:
    """Registers offset-table slots for value types, in registration order"""

    def __init__(self, session: "GenerationSession"):
        self.session = session
        self.slots: list[LayoutSlot] = []
        self.layouts: dict[str, ValueTypeLayout] = {}

    @property
    def query_name(self) -> str:
        return self.session.mangle("_", "_layout__", 0)

    def slot_name(self, vtype: ValueType) -> str:
        """Native static slot holding the last by-value result of ``vtype``"""
        return f"{self.session.options.prefix}slot_{vtype.name}"

    def _claim(self, value_type: str, field_name: Optional[str] = None) -> int:
        slot = LayoutSlot(len(self.slots), value_type, field_name)
        self.slots.append(slot)
        return slot.index

    def _chain(self, vtype: ValueType) -> list[ValueType]:
        """``vtype`` followed by its ancestors, most derived first"""
        chain = [vtype]
        while chain[-1].parent is not None:
            parent_name = chain[-1].parent
            parent = self.session.value_types.get(parent_name)
            if parent is None:
                raise ValidationError(f"value type {chain[-1].name} extends '{parent_name}', which is not a value type")
            if parent in chain:
                raise ValidationError(f"value type inheritance cycle through {parent_name}")
            chain.append(parent)
        return chain

    def _field_kind(self, vtype: ValueType, attr) -> ScalarKind:
        where = f"{vtype.name}.{attr.name}"
        if attr.read_only:
            raise ValidationError(f"value type field {where} is read-only")
        if attr.is_static:
            raise ValidationError(f"value type field {where} is static")
        with self.session.context(where):
            desc = self.session.resolve(attr.type, attr.flags)
        if isinstance(desc, InterfaceRef):
            raise UnsupportedTypeError(f"value type field {where} holds interface {desc.name}")
        if isinstance(desc, ValueTypeRef):
            raise UnsupportedTypeError(f"value type field {where} nests value type {desc.name}")
        if isinstance(desc, StringType):
            raise UnsupportedTypeError(f"value type field {where} is string-valued")
        if not isinstance(desc, Scalar):
            raise UnsupportedTypeError(f"value type field {where} has non-scalar type {describe(desc)}")
        if desc.kind.is_64bit_integer:
            raise UnsupportedTypeError(f"value type field {where} is a 64-bit integer")
        return desc.kind

    def register(self, vtype: ValueType) -> ValueTypeLayout:
        if vtype.name in self.layouts:
            return self.layouts[vtype.name]

        layout = ValueTypeLayout(vtype, self._claim(vtype.name))
        seen: set[str] = set()
        for owner in self._chain(vtype):
            for attr in owner.fields:
                if attr.name in seen:
                    raise ValidationError(f"value type field {owner.name}.{attr.name} is shadowed by {vtype.name}")
                seen.add(attr.name)
                kind = self._field_kind(owner, attr)
                layout.fields.append(FieldLayout(attr.name, kind, self._claim(vtype.name, attr.name)))

        self.layouts[vtype.name] = layout
        logger.debug("%s: size slot %d, field slots %s", vtype.name, layout.size_slot,
                     [(f.name, f.slot) for f in layout.fields])
        return layout

    def records_order(self) -> list[ValueType]:
        """Registered value types, each parent ahead of its children"""
        ordered: list[ValueType] = []
        for layout in self.layouts.values():
            for vtype in reversed(self._chain(layout.value_type)):
                if vtype not in ordered:
                    ordered.append(vtype)
        return ordered

    # -- native side --

    def native_slots(self) -> list[str]:
        return [f"static {vt.native_name} {self.slot_name(vt)};"
                for vt in (layout.value_type for layout in self.layouts.values())]

    def native_query(self) -> list[str]:
        if not self.slots:
            return []
        lines = [f"const int* EMSCRIPTEN_KEEPALIVE {self.query_name}() {{",
                 "  static const int table[] = {"]
        for slot in self.slots:
            cpp_name = self.session.value_types[slot.value_type].native_name
            lines.append(f"    {slot.native_expr(cpp_name)},")
        lines.extend([
            "  };",
            "  return table;",
            "}",
            "",
        ])
        return lines

    # -- script side --

    def script_init(self) -> list[str]:
        lines = [f"var {LAYOUT_TABLE} = [];"]
        if not self.slots:
            return lines + [""]
        lines.extend([
            "function __jsbind_initLayout() {",
            f"  var table = _{self.query_name}() >> 2;",
            f"  for (var i = 0; i < {len(self.slots)}; i++) {{",
            f"    {LAYOUT_TABLE}[i] = HEAP32[table + i];",
            "  }",
            "}",
            "if (runtimeInitialized) __jsbind_initLayout(); else addOnInit(__jsbind_initLayout);",
            "",
        ])
        return lines

    def script_record(self, vtype: ValueType) -> list[str]:
        layout = self.layouts[vtype.name]
        own = [f for f in layout.fields if f.name in {a.name for a in vtype.fields}]
        extends = f" extends {vtype.parent}" if vtype.parent else ""

        lines = [f"class {vtype.name}{extends} {{", "  constructor(init) {"]
        if vtype.parent:
            lines.append("    super(init);")
        lines.append("    init = init || {};")
        for f in own:
            default = "false" if f.is_bool else "0"
            lines.append(f"    this.{f.name} = init.{f.name} === undefined ? {default} : init.{f.name};")
        lines.extend(["  }", ""])

        lines.append("  static __fromNative(ptr) {")
        lines.append(f"    let obj = Object.create({vtype.name}.prototype);")
        for f in layout.fields:
            value = f"!!{f.heap_ref('ptr')}" if f.is_bool else f.heap_ref("ptr")
            lines.append(f"    obj.{f.name} = {value};")
        lines.extend(["    return obj;", "  }", ""])

        lines.append("  static __toNative(obj) {")
        lines.append(f"    let ptr = ensureCache.allocBytes({LAYOUT_TABLE}[{layout.size_slot}]);")
        for f in layout.fields:
            value = f"obj.{f.name} ? 1 : 0" if f.is_bool else f"obj.{f.name}"
            lines.append(f"    {f.heap_ref('ptr')} = {value};")
        lines.extend(["    return ptr;", "  }", "}", ""])
        return lines
