"""
Binding assembly

Concatenates the fragments produced by the session's components into the
script module and the native translation unit, and writes both files.
"""

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .parser import IDLParser
from .runtime_generator import RuntimeGenerator
from .session import BindingOptions, GenerationSession
from .types import ParsedIDL

logger = logging.getLogger(__name__)


@dataclass
class GeneratedBindings:
    script: str
    native: str


class BindingGenerator:
    """Generates the paired script/native glue for one parsed IDL"""

    def __init__(self, idl: ParsedIDL, options: Optional[BindingOptions] = None):
        self.session = GenerationSession(idl, options)
        self.runtime = RuntimeGenerator(self.session.options.module_name)

    def generate(self) -> GeneratedBindings:
        plans = self.session.prepare()
        return GeneratedBindings(
            script=self._generate_script(plans),
            native=self._generate_native(plans),
        )

    def _generate_script(self, plans) -> str:
        session = self.session
        lines = self.runtime.generate_script_runtime()
        lines.extend(session.layout.script_init())

        for vtype in session.layout.records_order():
            lines.extend(session.layout.script_record(vtype))
        lines.extend(session.bridge.generate_script())
        for plan in plans:
            lines.extend(session.emitter.generate_script(plan))

        exported = [v.name for v in session.idl.value_types] + [p.interface.name for p in plans]
        lines.extend(self.runtime.generate_script_exports(exported))
        return "\n".join(lines)

    def _generate_native(self, plans) -> str:
        session = self.session
        lines = self.runtime.generate_native_prologue()

        slots = session.layout.native_slots()
        if slots:
            lines.extend(slots)
            lines.append("")
        # EM_JS shims define their own extern "C" linkage
        lines.extend(session.bridge.generate_native())

        lines.extend(['extern "C" {', ""])
        lines.extend(session.layout.native_query())
        for plan in plans:
            lines.extend(session.emitter.generate_native(plan))
        lines.extend(['}  // extern "C"', ""])
        return "\n".join(lines)


def generate_bindings(idl: Union[ParsedIDL, str], options: Optional[BindingOptions] = None) -> GeneratedBindings:
    """Generate bindings from a parsed IDL or from IDL source text"""
    if isinstance(idl, str):
        idl = IDLParser(idl).parse()
    return BindingGenerator(idl, options).generate()


def _stage(path: Path, content: str) -> str:
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
    except OSError:
        os.unlink(tmp)
        raise
    return tmp


def _restore(path: Path, previous: Optional[str]):
    """Put back what ``path`` held before this run replaced it"""
    if previous is None:
        path.unlink()
    else:
        os.replace(_stage(path, previous), path)


def write_bindings(bindings: GeneratedBindings, base: Union[str, Path]) -> list[Path]:
    """Write ``<base>.js`` and ``<base>.cpp``.

    Both files are staged next to their destination and only moved into
    place once both were written. If moving the second file fails, the
    first one is restored to its previous content before the error
    propagates. A failure during that restore is not recovered from.
    """
    base = Path(base)
    base.parent.mkdir(parents=True, exist_ok=True)
    outputs = [
        (base.with_name(base.name + ".js"), bindings.script),
        (base.with_name(base.name + ".cpp"), bindings.native),
    ]

    staged = []
    try:
        for path, content in outputs:
            staged.append((_stage(path, content), path))
    except OSError:
        for tmp, _ in staged:
            os.unlink(tmp)
        raise

    previous = {path: path.read_text(encoding="utf-8") if path.exists() else None for _, path in staged}
    replaced = []
    try:
        for tmp, path in staged:
            os.replace(tmp, path)
            replaced.append(path)
            logger.debug("wrote %s", path)
    except OSError:
        logger.debug("rolling back %s", [str(p) for p in replaced])
        for tmp, path in staged:
            if path not in replaced:
                os.unlink(tmp)
        for path in replaced:
            _restore(path, previous[path])
        raise
    return [path for path, _ in outputs]
