#!/usr/bin/env python3
"""
IDL Binding Generator

Parses WebIDL-style definitions and generates:
  1. <output>.js  - classes to load with the Emscripten module (--post-js)
  2. <output>.cpp - native entry points, compiled with the bound classes

Usage:
    python generate_bindings.py input.idl generated/bindings
    python generate_bindings.py --idl input.idl -o generated/bindings --module MyModule
"""

import argparse
import logging
import sys
import time
from pathlib import Path

# Add parent directory to path so idlbind package can be found
sys.path.insert(0, str(Path(__file__).parent.parent))

from idlbind import (
    BindingError,
    BindingOptions,
    IDLParser,
    generate_bindings,
    write_bindings,
)


def main(argv=None):
    start_time = time.perf_counter()

    parser = argparse.ArgumentParser(description="Generate Emscripten bindings from IDL")
    parser.add_argument("idl_file", nargs="?", help="Path to IDL file (positional)")
    parser.add_argument("output_base", nargs="?", help="Output base path, without extension")
    parser.add_argument("--idl", help="Path to IDL file (alternative)")
    parser.add_argument("--output", "-o", default="", help="Output base path (alternative)")
    parser.add_argument("--module", default="Module", help="Script module object the classes are published on")
    parser.add_argument("--prefix", default="jsbind_", help="Prefix of the native entry points")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log type resolution and planning")
    args = parser.parse_args(argv)

    # Support both positional and --idl argument
    idl_file = args.idl_file or args.idl
    if not idl_file:
        parser.error("IDL file is required (positional or --idl)")

    idl_path = Path(idl_file)
    output_base = args.output or args.output_base or str(idl_path.with_suffix(""))

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    options = BindingOptions(module_name=args.module, prefix=args.prefix)
    try:
        idl = IDLParser(idl_path.read_text()).parse()
        bindings = generate_bindings(idl, options)
        paths = write_bindings(bindings, output_base)
    except (BindingError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    for path in paths:
        print(f"Generated: {path}")

    elapsed = time.perf_counter() - start_time
    print(f"Generation completed in {elapsed*1000:.2f} ms")
    return 0


if __name__ == "__main__":
    sys.exit(main())
