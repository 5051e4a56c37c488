"""Runtime Generator - shared support code emitted ahead of the bindings"""


class RuntimeGenerator:
    """Generates the script runtime and native prologue used by all generated glue"""

    def __init__(self, module_name: str = "Module"):
        self.module_name = module_name

    def generate_native_prologue(self) -> list[str]:
        """Includes needed by the native entry points.

        The translation unit is meant to be #included after the bound
        classes are declared.
        """
        return [
            "// AUTO-GENERATED - DO NOT EDIT",
            "// Include this file after the declarations of the bound classes.",
            "#include <emscripten.h>",
            "",
            "#include <cstddef>",
            "#include <functional>",
            "#include <memory>",
            "#include <string>",
            "#include <utility>",
            "",
        ]

    def generate_script_runtime(self) -> list[str]:
        """Staging buffer, staging helpers and the callback token registry.

        The script runtime is single-threaded, so one staging buffer is
        shared by every call; it is reset by prepare() at the start of each
        call that stages arguments. While a callback runs, native code may
        still be reading the outer call's staged data, so nested calls made
        from the callback append to the buffer instead of resetting it.
        """
        module = self.module_name
        return [
            "// AUTO-GENERATED - DO NOT EDIT",
            "",
            "// Temporary native storage for strings, sequences and value types",
            "var ensureCache = {",
            "  buffer: 0,   // the main buffer of temporary storage",
            "  size: 0,     // the size of buffer",
            "  pos: 0,      // the next free offset in buffer",
            "  temps: [],   // extra allocations made when the buffer overflowed",
            "  needed: 0,   // how much to grow the buffer by next time",
            "  depth: 0,    // callbacks currently running inside a native call",
            "",
            "  prepare: function() {",
            "    if (this.depth && this.buffer) return;",
            "    if (this.needed) {",
            "      for (var i = 0; i < this.temps.length; i++) {",
            f"        {module}['_free'](this.temps[i]);",
            "      }",
            "      this.temps.length = 0;",
            f"      {module}['_free'](this.buffer);",
            "      this.buffer = 0;",
            "      this.size += this.needed;",
            "      this.needed = 0;",
            "    }",
            "    if (!this.buffer) {",
            "      this.size += 128;",
            f"      this.buffer = {module}['_malloc'](this.size);",
            "      assert(this.buffer);",
            "    }",
            "    this.pos = 0;",
            "  },",
            "",
            "  allocBytes: function(len) {",
            "    assert(this.buffer);",
            "    len = ((len || 1) + 7) & -8;  // 8-byte aligned",
            "    var ret;",
            "    if (this.pos + len >= this.size) {",
            "      this.needed += len;",
            f"      ret = {module}['_malloc'](len);",
            "      this.temps.push(ret);",
            "    } else {",
            "      ret = this.buffer + this.pos;",
            "      this.pos += len;",
            "    }",
            "    return ret;",
            "  },",
            "};",
            "",
            "function ensureString(value) {",
            "  if (value === null || value === undefined) return 0;",
            "  if (typeof value !== 'string') return value;",
            "  var len = lengthBytesUTF8(value) + 1;",
            "  var ptr = ensureCache.allocBytes(len);",
            "  stringToUTF8(value, ptr, len);",
            "  return ptr;",
            "}",
            "",
            # Heap views are read after allocating, since malloc may grow memory
            *self._ensure_view("ensureI8", 1, "HEAP8"),
            *self._ensure_view("ensureI16", 2, "HEAP16"),
            *self._ensure_view("ensureI32", 4, "HEAP32"),
            *self._ensure_view("ensureF32", 4, "HEAPF32"),
            *self._ensure_view("ensureF64", 8, "HEAPF64"),
            "// Maps script functions to integer tokens native code can hold on to",
            "class CallbackRegistry {",
            "  constructor(name) {",
            "    this.name = name;",
            "    this.tokens = new Map();     // function -> token",
            "    this.functions = new Map();  // token -> function",
            "    this.next = 1;",
            "  }",
            "",
            "  tokenFor(fn) {",
            "    if (typeof fn !== 'function') {",
            "      throw new TypeError(this.name + ': expected a function');",
            "    }",
            "    let token = this.tokens.get(fn);",
            "    if (token === undefined) {",
            "      token = this.next++;",
            "      this.tokens.set(fn, token);",
            "      this.functions.set(token, fn);",
            "    }",
            "    return token;",
            "  }",
            "",
            "  lookup(token) {",
            "    let fn = this.functions.get(token);",
            "    if (fn === undefined) {",
            "      throw new Error(this.name + ': no function registered for token ' + token);",
            "    }",
            "    return fn;",
            "  }",
            "}",
            "",
        ]

    @staticmethod
    def _ensure_view(name: str, width: int, heap: str) -> list[str]:
        shift = {1: "", 2: " >> 1", 4: " >> 2", 8: " >> 3"}[width]
        return [
            f"function {name}(value) {{",
            "  if (value === null || value === undefined) return 0;",
            "  if (typeof value !== 'object') return value;",
            f"  var ptr = ensureCache.allocBytes(value.length * {width});",
            f"  {heap}.set(value, ptr{shift});",
            "  return ptr;",
            "}",
            "",
        ]

    def generate_script_exports(self, names: list[str]) -> list[str]:
        """Publish generated classes on the module object"""
        lines = [f"{self.module_name}['{name}'] = {name};" for name in names]
        return lines + [""] if lines else lines
