"""Interface Generator - paired script class and native entry points per interface"""

from dataclasses import dataclass, field
from typing import Optional, TYPE_CHECKING

from .errors import ValidationError
from .ownership import Marshaling
from .overloads import Overload, OverloadGroup
from .types import Attribute, Interface, OwnershipMode

if TYPE_CHECKING:
    from .session import GenerationSession

DESTRUCTOR = "__destroy__"


@dataclass
class AttributePlan:
    attribute: Attribute
    getter: Marshaling
    setter: Optional[Marshaling] = None     # None for read-only attributes


@dataclass
class InterfacePlan:
    interface: Interface
    constructors: OverloadGroup
    methods: list[OverloadGroup] = field(default_factory=list)
    attributes: list[AttributePlan] = field(default_factory=list)
    destroyable_parent: bool = False


class InterfaceGenerator:
    """Emits constructor, destructor, method and attribute glue for interfaces"""

    def __init__(self, session: "GenerationSession"):
        self.session = session

    # -- planning ------------------------------------------------------------

    def plan(self, iface: Interface) -> InterfacePlan:
        session = self.session
        plan = InterfacePlan(
            interface=iface,
            constructors=session.overloads.plan_constructors(iface),
            methods=session.overloads.plan_operations(iface),
        )
        seen: set[str] = set()
        for attr in iface.attributes:
            if attr.name in seen:
                raise ValidationError(f"attribute {iface.name}.{attr.name} is declared twice")
            seen.add(attr.name)
            with session.context(f"{iface.name}.{attr.name}"):
                desc = session.resolve(attr.type, attr.flags)
                getter = session.result(desc)
                setter = None if attr.read_only else session.argument(attr.type, attr.flags)
            plan.attributes.append(AttributePlan(attr, getter, setter))

        parent = session.interfaces.get(iface.parent) if iface.parent else None
        while parent is not None:
            if not parent.non_destructible:
                plan.destroyable_parent = True
                break
            parent = session.interfaces.get(parent.parent) if parent.parent else None
        return plan

    # -- naming --------------------------------------------------------------

    def _self_type(self, iface: Interface) -> str:
        if iface.ownership is OwnershipMode.SHARED:
            return f"std::shared_ptr<{iface.native_name}>*"
        return f"{iface.native_name}*"

    def _receiver(self, iface: Interface, is_static: bool) -> str:
        """Prefix used to reach a member of the native instance"""
        if is_static:
            return f"{iface.native_name}::"
        if iface.ownership is OwnershipMode.SHARED:
            return "(*self)->"
        return "self->"

    @staticmethod
    def _js_args(count: int) -> str:
        return ", ".join(f"arg{i}" for i in range(count))

    # -- script side ---------------------------------------------------------

    def _js_call(self, overload: Overload, owner: str, member: str,
                 with_self: bool, assign: bool) -> list[str]:
        """Statements performing one overload's native call"""
        lines = []
        if overload.stages:
            lines.append("ensureCache.prepare();")
        for i, arg in enumerate(overload.arguments):
            pre = arg.marshaling.js_pre(f"arg{i}")
            if pre:
                lines.append(pre)
        args = (["self"] if with_self else []) + [f"arg{i}" for i in range(overload.arity)]
        entry = self.session.mangle(owner, member, overload.arity)
        lines.append(f"{'ret = ' if assign else ''}_{entry}({', '.join(args)});")
        return lines

    def _js_dispatch(self, group: OverloadGroup, owner: str, member: str,
                     with_self: bool, assign: bool) -> list[str]:
        """Arity dispatch: the first omitted argument selects the overload"""
        plan = group.dispatch()
        if len(plan) == 1:
            return ["    " + s for s in self._js_call(plan[0][1], owner, member, with_self, assign)]

        lines = []
        for i, (guard, overload) in enumerate(plan):
            body = ["      " + s for s in self._js_call(overload, owner, member, with_self, assign)]
            if guard is None:
                lines.append("    } else {")
            elif i == 0:
                lines.append(f"    if (arg{guard} === undefined) {{")
            else:
                lines.append(f"    }} else if (arg{guard} === undefined) {{")
            lines.extend(body)
        lines.append("    }")
        return lines

    def _js_constructor(self, plan: InterfacePlan) -> list[str]:
        iface = plan.interface
        group = plan.constructors
        lines = [f"  constructor({self._js_args(group.max_arity)}) {{"]
        if not group.overloads:
            lines.append(f'    throw new Error("No constructor defined for {iface.name}");')
        else:
            lines.append("    let ret, obj = Object.create(new.target.prototype);")
            lines.extend(self._js_dispatch(group, iface.name, iface.name, with_self=False, assign=True))
            lines.extend([
                "    obj.ptr = ret;",
                f"    {iface.name}.__setCache(obj);",
                "    return obj;",
            ])
        lines.extend(["  }", ""])
        return lines

    def _js_method(self, iface: Interface, group: OverloadGroup) -> list[str]:
        static = "static " if group.is_static else ""
        lines = [f"  {static}{group.name}({self._js_args(group.max_arity)}) {{"]
        if not group.is_static:
            lines.append("    let self = this.ptr;")
        if group.returns:
            lines.append("    let ret;")
        lines.extend(self._js_dispatch(group, iface.name, group.name,
                                       with_self=not group.is_static, assign=group.returns is not None))
        if group.returns:
            lines.append(f"    return {group.returns.js_post('ret')};")
        lines.extend(["  }", ""])
        return lines

    def _js_attribute(self, iface: Interface, ap: AttributePlan) -> list[str]:
        attr = ap.attribute
        static = "static " if attr.is_static else ""
        self_arg = "" if attr.is_static else "this.ptr"
        getter = self.session.mangle(iface.name, f"__get_{attr.name}", 0)
        lines = [
            f"  {static}get {attr.name}() {{",
            f"    let ret = _{getter}({self_arg});",
            f"    return {ap.getter.js_post('ret')};",
            "  }",
            "",
        ]
        if ap.setter is not None:
            setter = self.session.mangle(iface.name, f"__set_{attr.name}", 1)
            lines.append(f"  {static}set {attr.name}(arg0) {{")
            if ap.setter.stages:
                lines.append("    ensureCache.prepare();")
            pre = ap.setter.js_pre("arg0")
            if pre:
                lines.append(f"    {pre}")
            args = "arg0" if attr.is_static else "this.ptr, arg0"
            lines.extend([f"    _{setter}({args});", "  }", ""])
        return lines

    def _js_cache_helpers(self, plan: InterfacePlan) -> list[str]:
        iface = plan.interface
        name = iface.name
        cache = f"{name}___CACHE"
        lines = [
            "  static __setCache(obj) {",
            f"    {cache}[obj.ptr] = obj;",
            "  }",
            "",
            "  static __wrap(ptr) {",
            f"    let obj = {cache}[ptr];",
            "    if (!obj) {",
            f"      obj = Object.create({name}.prototype);",
            "      obj.ptr = ptr;",
            f"      {cache}[ptr] = obj;",
            "    }",
            "    return obj;",
            "  }",
            "",
            "  static __wrapNoCache(ptr) {",
            f"    let obj = Object.create({name}.prototype);",
            "    obj.ptr = ptr;",
            "    return obj;",
            "  }",
        ]
        if not iface.non_destructible:
            destroy = self.session.mangle(name, DESTRUCTOR, 0)
            lines.extend([
                "",
                "  destroy() {",
                f"    _{destroy}(this.ptr);",
                f"    delete {cache}[this.ptr];",
                "    delete this.ptr;",
                "  }",
            ])
        elif plan.destroyable_parent:
            lines.extend([
                "",
                "  destroy() {",
                f'    throw new Error("{name} cannot be destroyed");',
                "  }",
            ])
        return lines

    def generate_script(self, plan: InterfacePlan) -> list[str]:
        iface = plan.interface
        extends = f" extends {iface.parent}" if iface.parent else ""
        lines = [
            f"var {iface.name}___CACHE = {{}};",
            f"class {iface.name}{extends} {{",
        ]
        lines.extend(self._js_constructor(plan))
        for group in plan.methods:
            lines.extend(self._js_method(iface, group))
        for ap in plan.attributes:
            lines.extend(self._js_attribute(iface, ap))
        lines.extend(self._js_cache_helpers(plan))
        lines.extend(["}", ""])
        return lines

    # -- native side ---------------------------------------------------------

    def _native_entry(self, ret: str, name: str, params: list[str], body: list[str]) -> list[str]:
        lines = [f"{ret} EMSCRIPTEN_KEEPALIVE {name}({', '.join(params)}) {{"]
        lines.extend(f"  {s}" for s in body)
        lines.extend(["}", ""])
        return lines

    @staticmethod
    def _params(overload: Overload) -> list[str]:
        return [f"{a.marshaling.native_param_type()} arg{i}" for i, a in enumerate(overload.arguments)]

    @staticmethod
    def _call_args(overload: Overload) -> str:
        return ", ".join(a.marshaling.native_arg(f"arg{i}") for i, a in enumerate(overload.arguments))

    def _native_constructors(self, plan: InterfacePlan) -> list[str]:
        iface = plan.interface
        cpp = iface.native_name
        lines = []
        for overload in plan.constructors.overloads:
            name = self.session.mangle(iface.name, iface.name, overload.arity)
            args = self._call_args(overload)
            if iface.ownership is OwnershipMode.SHARED:
                body = [f"return new std::shared_ptr<{cpp}>(std::make_shared<{cpp}>({args}));"]
            else:
                body = [f"return new {cpp}({args});"]
            lines.extend(self._native_entry(self._self_type(iface), name, self._params(overload), body))

        if not iface.non_destructible:
            name = self.session.mangle(iface.name, DESTRUCTOR, 0)
            # Deleting the cell of a shared interface releases one reference
            lines.extend(self._native_entry("void", name, [f"{self._self_type(iface)} self"], ["delete self;"]))
        return lines

    def _native_method(self, iface: Interface, group: OverloadGroup) -> list[str]:
        lines = []
        ret = group.returns.native_return_type() if group.returns else "void"
        receiver = self._receiver(iface, group.is_static)
        for overload in group.overloads:
            params = self._params(overload)
            if not group.is_static:
                params.insert(0, f"{self._self_type(iface)} self")
            call = f"{receiver}{overload.native_name}({self._call_args(overload)})"
            body = group.returns.native_return(call) if group.returns else [f"{call};"]
            name = self.session.mangle(iface.name, group.name, overload.arity)
            lines.extend(self._native_entry(ret, name, params, body))
        return lines

    def _native_attribute(self, iface: Interface, ap: AttributePlan) -> list[str]:
        attr = ap.attribute
        receiver = self._receiver(iface, attr.is_static)
        self_param = [] if attr.is_static else [f"{self._self_type(iface)} self"]
        member = f"{receiver}{attr.name}"

        lines = self._native_entry(
            ap.getter.native_return_type(),
            self.session.mangle(iface.name, f"__get_{attr.name}", 0),
            self_param,
            ap.getter.native_return(member),
        )
        if ap.setter is not None:
            lines.extend(self._native_entry(
                "void",
                self.session.mangle(iface.name, f"__set_{attr.name}", 1),
                self_param + [f"{ap.setter.native_param_type()} arg0"],
                [f"{member} = {ap.setter.native_arg('arg0')};"],
            ))
        return lines

    def generate_native(self, plan: InterfacePlan) -> list[str]:
        iface = plan.interface
        lines = [f"// {iface.name}", ""]
        lines.extend(self._native_constructors(plan))
        for group in plan.methods:
            lines.extend(self._native_method(iface, group))
        for ap in plan.attributes:
            lines.extend(self._native_attribute(iface, ap))
        return lines
