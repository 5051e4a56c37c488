"""
Callback bridge generation

Script functions cross into native code as integer tokens minted by a
per-callback-type ``CallbackRegistry``. The native entry point wraps the
token in a callable that forwards to an EM_JS invocation shim; the shim
looks the function up by token on the script side, converts the native
arguments back, calls it and converts the result.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, TYPE_CHECKING

from .errors import UnsupportedTypeError
from .ownership import (
    Marshaling, RawInterfaceMarshaling, ScalarMarshaling, SharedInterfaceMarshaling,
)
from .types import Callback

if TYPE_CHECKING:
    from .session import GenerationSession

logger = logging.getLogger(__name__)


@dataclass
class CallbackPlan:
    callback: Callback
    invoke_name: str
    arguments: list[tuple[str, Marshaling]] = field(default_factory=list)
    returns: Optional[Marshaling] = None

    @property
    def native_return_type(self) -> str:
        return self.returns.native_return_type() if self.returns else "void"

    @property
    def callable_return_type(self) -> str:
        """Return type of the callable handed to the native implementation"""
        if self.returns is None:
            return "void"
        if isinstance(self.returns, SharedInterfaceMarshaling):
            return self.returns.cell
        return self.returns.native_return_type()

    @property
    def signature(self) -> str:
        params = ", ".join(m.callback_param_type() for _, m in self.arguments)
        return f"{self.callable_return_type}({params})"


class CallbackGenerator:
    """Generates token registries and invocation shims, one per callback type"""

    def __init__(self, session: "GenerationSession"):
        self.session = session
        self.plans: dict[str, CallbackPlan] = {}

    @staticmethod
    def registry_name(name: str) -> str:
        return f"{name}___REGISTRY"

    def plan(self, cb: Callback) -> CallbackPlan:
        if cb.name in self.plans:
            return self.plans[cb.name]

        plan = CallbackPlan(cb, self.session.mangle(cb.name, "__invoke__", len(cb.arguments)))
        for arg in cb.arguments:
            with self.session.context(f"callback {cb.name}({arg.name})"):
                marshaling = self.session.argument(arg.type, arg.flags)
                marshaling.callback_param_type()
            plan.arguments.append((arg.name, marshaling))

        with self.session.context(f"callback {cb.name}"):
            desc = self.session.resolve(cb.return_type)
            if desc is not None:
                marshaling = self.session.strategy.classify(desc)
                if not isinstance(marshaling, (ScalarMarshaling, RawInterfaceMarshaling, SharedInterfaceMarshaling)):
                    raise UnsupportedTypeError(f"{marshaling.variant} is not supported as a callback result")
                plan.returns = marshaling

        self.plans[cb.name] = plan
        logger.debug("callback %s: shim %s", cb.name, plan.invoke_name)
        return plan

    def native_callable(self, name: str, token: str, nullable: bool = False) -> str:
        """C++ expression wrapping ``token`` into a callable for the native implementation"""
        plan = self.plans[name]
        params = ", ".join(f"{m.callback_param_type()} cb{i}" for i, (_, m) in enumerate(plan.arguments))
        forwarded = ", ".join([token] + [m.native_to_script(f"cb{i}") for i, (_, m) in enumerate(plan.arguments)])
        invoke = f"{plan.invoke_name}({forwarded})"

        if plan.returns is None:
            body = f"{invoke};"
        elif isinstance(plan.returns, SharedInterfaceMarshaling):
            body = f"{plan.native_return_type} cell = {invoke}; return {plan.returns.native_from_script('cell')};"
        else:
            body = f"return {invoke};"
        lam = f"[{token}]({params}) -> {plan.callable_return_type} {{ {body} }}"

        if nullable:
            fn = f"std::function<{plan.signature}>"
            return f"({token} ? {fn}({lam}) : {fn}())"
        return lam

    def generate_native(self) -> list[str]:
        lines = []
        for plan in self.plans.values():
            params = ", ".join(["int token"] + [f"{m.native_param_type()} arg{i}"
                                                for i, (_, m) in enumerate(plan.arguments)])
            args = ", ".join(["token"] + [f"arg{i}" for i in range(len(plan.arguments))])
            lines.extend([
                f"EM_JS({plan.native_return_type}, {plan.invoke_name}, ({params}), {{",
                f"  return __jsbind_invoke_{plan.callback.name}({args});",
                "});",
                "",
            ])
        return lines

    def generate_script(self) -> list[str]:
        lines = []
        for plan in self.plans.values():
            name = plan.callback.name
            registry = self.registry_name(name)
            params = ", ".join(["token"] + [f"arg{i}" for i in range(len(plan.arguments))])
            call_args = ", ".join(m.js_from_native(f"arg{i}") for i, (_, m) in enumerate(plan.arguments))

            lines.append(f'var {registry} = new CallbackRegistry("{name}");')
            lines.append(f"function __jsbind_invoke_{name}({params}) {{")
            lines.append(f"  let fn = {registry}.lookup(token);")
            lines.append("  ensureCache.depth++;")
            lines.append("  try {")
            if plan.returns is None:
                lines.append(f"    fn({call_args});")
            else:
                lines.append(f"    let ret = fn({call_args});")
                lines.append(f"    return {plan.returns.js_to_native('ret')};")
            lines.extend([
                "  } finally {",
                "    ensureCache.depth--;",
                "  }",
                "}",
                "",
            ])
        return lines
