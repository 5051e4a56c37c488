"""Overload grouping and arity-based dispatch planning"""

import logging
from dataclasses import dataclass, field
from typing import Optional, TYPE_CHECKING

from .errors import ValidationError
from .ownership import Marshaling
from .type_resolver import TypeDescriptor, describe
from .types import Argument, Interface

if TYPE_CHECKING:
    from .session import GenerationSession

logger = logging.getLogger(__name__)


@dataclass
class ResolvedArgument:
    name: str
    marshaling: Marshaling


@dataclass
class Overload:
    """One native entry point of a group"""
    arguments: list[ResolvedArgument]
    native_name: str

    @property
    def arity(self) -> int:
        return len(self.arguments)

    @property
    def stages(self) -> bool:
        return any(a.marshaling.stages for a in self.arguments)


@dataclass
class OverloadGroup:
    """Same-named members of one interface, ordered by ascending arity"""
    name: str
    return_type: Optional[TypeDescriptor]
    returns: Optional[Marshaling]
    is_static: bool
    overloads: list[Overload] = field(default_factory=list)

    @property
    def max_arity(self) -> int:
        return max((o.arity for o in self.overloads), default=0)

    def dispatch(self) -> list[tuple[Optional[int], Overload]]:
        """Dispatch plan as (guard, overload) pairs.

        An overload with a guard is taken when argument ``guard`` is
        undefined, i.e. the caller stopped before it; the highest arity
        has no guard and is the fallback.
        """
        plan = []
        for overload in self.overloads:
            guard = overload.arity if overload.arity != self.max_arity else None
            plan.append((guard, overload))
        return plan

    def select(self, argc: int) -> Optional[Overload]:
        """Overload the generated dispatch picks for ``argc`` explicit arguments"""
        for guard, overload in self.dispatch():
            if guard is None or argc <= guard:
                return overload
        return None


def expand_optional(arguments: list[Argument]) -> list[list[Argument]]:
    """One argument list per callable arity; trailing optionals may be omitted"""
    required = sum(1 for a in arguments if not a.optional)
    return [arguments[:n] for n in range(required, len(arguments) + 1)]


class OverloadPlanner:
    """Groups operations and constructors and validates each group"""

    def __init__(self, session: "GenerationSession"):
        self.session = session

    def _resolve_arguments(self, where: str, arguments: list[Argument]) -> list[ResolvedArgument]:
        resolved = []
        for arg in arguments:
            with self.session.context(f"{where}({arg.name})"):
                resolved.append(ResolvedArgument(arg.name, self.session.argument(arg.type, arg.flags)))
        return resolved

    def _add(self, where: str, group: OverloadGroup, overload: Overload):
        if any(o.arity == overload.arity for o in group.overloads):
            raise ValidationError(
                f"{where} has more than one overload taking {overload.arity} argument(s); "
                "overloads are dispatched by argument count")
        group.overloads.append(overload)
        group.overloads.sort(key=lambda o: o.arity)

    def plan_constructors(self, iface: Interface) -> OverloadGroup:
        """Constructor group; an empty group means the interface is not constructible"""
        group = OverloadGroup(name=iface.name, return_type=None, returns=None, is_static=True)
        where = f"{iface.name}.constructor"
        for arguments in iface.constructors:
            for variant in expand_optional(arguments):
                self._add(where, group, Overload(self._resolve_arguments(where, variant), iface.native_name))
        logger.debug("%s: constructor arities %s", iface.name, [o.arity for o in group.overloads])
        return group

    def plan_operations(self, iface: Interface) -> list[OverloadGroup]:
        groups: dict[str, OverloadGroup] = {}
        attribute_names = {a.name for a in iface.attributes}

        for op in iface.operations:
            where = f"{iface.name}.{op.name}"
            if op.name in attribute_names:
                raise ValidationError(f"{where} is declared as both an attribute and an operation")
            with self.session.context(where):
                return_type = self.session.resolve(op.return_type, op.flags)
                returns = self.session.result(return_type)

            group = groups.get(op.name)
            if group is None:
                group = groups[op.name] = OverloadGroup(
                    name=op.name, return_type=return_type, returns=returns, is_static=op.is_static)
            if group.is_static != op.is_static:
                raise ValidationError(f"Method {where} has same name as a static method, can't handle this")
            if group.return_type != return_type:
                raise ValidationError(
                    f"Method {where} overload differs in return type "
                    f"({describe(group.return_type)} vs {describe(return_type)})")

            for variant in expand_optional(op.arguments):
                self._add(where, group, Overload(self._resolve_arguments(where, variant), op.native_name))

        for group in groups.values():
            logger.debug("%s.%s: arities %s", iface.name, group.name, [o.arity for o in group.overloads])
        return list(groups.values())
