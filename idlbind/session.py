"""
Generation session

All state of one generation run lives here: the declaration index, the
type memo, the marshaling cache, the offset-table slots and the callback
plans. Components receive the session instead of sharing module globals,
so two runs never see each other's declarations.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional

from .callback_generator import CallbackGenerator
from .errors import BindingError, ValidationError
from .interface_generator import InterfaceGenerator, InterfacePlan
from .layout import ValueTypeLayoutPlanner
from .overloads import OverloadPlanner
from .ownership import Marshaling, OwnershipStrategy
from .type_resolver import TypeDescriptor, TypeResolver
from .types import Interface, NO_FLAGS, ParsedIDL, TypeExpr, TypeFlags

logger = logging.getLogger(__name__)


@dataclass
class BindingOptions:
    module_name: str = "Module"     # script object the classes are published on
    prefix: str = "jsbind_"         # prefix of every native entry point


class GenerationSession:
    def __init__(self, idl: ParsedIDL, options: Optional[BindingOptions] = None):
        self.idl = idl
        self.options = options or BindingOptions()

        self.interfaces = {i.name: i for i in idl.interfaces}
        self.value_types = {v.name: v for v in idl.value_types}
        self.callback_types = {c.name: c for c in idl.callbacks}
        self.typedefs = {t.name: t.type for t in idl.typedefs}
        self._check_unique_names()

        self.resolver = TypeResolver(self.typedefs, set(self.interfaces),
                                     set(self.value_types), set(self.callback_types))
        self.strategy = OwnershipStrategy(self)
        self.overloads = OverloadPlanner(self)
        self.layout = ValueTypeLayoutPlanner(self)
        self.bridge = CallbackGenerator(self)
        self.emitter = InterfaceGenerator(self)

        self.ordered_interfaces: list[Interface] = []
        self.plans: list[InterfacePlan] = []

    def _check_unique_names(self):
        seen: dict[str, str] = {}
        kinds = [
            ("interface", self.idl.interfaces),
            ("value type", self.idl.value_types),
            ("callback", self.idl.callbacks),
            ("typedef", self.idl.typedefs),
        ]
        for kind, decls in kinds:
            for decl in decls:
                if decl.name in seen:
                    raise ValidationError(f"{kind} {decl.name} clashes with {seen[decl.name]} {decl.name}")
                seen[decl.name] = kind

    # -- shared helpers ------------------------------------------------------

    def mangle(self, owner: str, member: str, arity: int) -> str:
        """Native entry point name; ``arity`` never counts the implicit self"""
        return f"{self.options.prefix}{owner}_{member}_{arity}"

    @contextmanager
    def context(self, where: str):
        """Prefix errors raised inside the block with the declaration being processed"""
        try:
            yield
        except BindingError as err:
            if err.where is not None:
                raise
            wrapped = type(err)(f"{where}: {err}")
            wrapped.where = where
            raise wrapped from err

    def resolve(self, expr: TypeExpr, flags: TypeFlags = NO_FLAGS) -> Optional[TypeDescriptor]:
        return self.resolver.resolve(expr, flags)

    def argument(self, expr: TypeExpr, flags: TypeFlags = NO_FLAGS) -> Marshaling:
        return self.strategy.argument(self.resolve(expr, flags))

    def result(self, desc: Optional[TypeDescriptor]) -> Optional[Marshaling]:
        return self.strategy.result(desc)

    # -- validation ----------------------------------------------------------

    def order_interfaces(self) -> list[Interface]:
        """Interfaces with every parent ahead of its children"""
        ordered: list[Interface] = []
        done: set[str] = set()

        for iface in self.idl.interfaces:
            chain = []
            current = iface
            while current is not None and current.name not in done:
                if current in chain:
                    raise ValidationError(f"interface inheritance cycle through {current.name}")
                chain.append(current)
                current = self._parent_of(current)
            for item in reversed(chain):
                ordered.append(item)
                done.add(item.name)
        return ordered

    def _parent_of(self, iface: Interface) -> Optional[Interface]:
        if iface.parent is None:
            return None
        if iface.parent in self.value_types:
            raise ValidationError(f"interface {iface.name} cannot extend value type {iface.parent}")
        parent = self.interfaces.get(iface.parent)
        if parent is None:
            raise ValidationError(f"interface {iface.name} extends unknown interface '{iface.parent}'")
        if parent.ownership is not iface.ownership:
            raise ValidationError(
                f"interface {iface.name} ({iface.ownership.value} ownership) cannot extend "
                f"{parent.name} ({parent.ownership.value} ownership)")
        return parent

    # -- planning ------------------------------------------------------------

    def prepare(self) -> list[InterfacePlan]:
        """Validate and plan the whole input; nothing is emitted before this succeeds"""
        self.ordered_interfaces = self.order_interfaces()
        for vtype in self.idl.value_types:
            self.layout.register(vtype)
        for cb in self.idl.callbacks:
            self.bridge.plan(cb)
        self.plans = [self.emitter.plan(iface) for iface in self.ordered_interfaces]
        logger.debug("planned %d interfaces, %d value types, %d callbacks, %d layout slots",
                     len(self.plans), len(self.layout.layouts), len(self.bridge.plans),
                     len(self.layout.slots))
        return self.plans
