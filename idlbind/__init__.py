"""
IDL Binding Generator Package

Parses WebIDL-style definitions and generates a paired set of glue files
for an Emscripten module:
  1. A JavaScript module with one class per interface and value type
  2. A C++ translation unit exporting the native entry points
"""

from .types import (
    TypeExpr, TypeFlags, OwnershipMode, Argument, Operation, Attribute,
    Interface, ValueType, Callback, Typedef, ParsedIDL,
)
from .errors import BindingError, IDLSyntaxError, UnsupportedTypeError, ValidationError
from .parser import IDLParser, parse_type
from .type_resolver import TypeResolver
from .ownership import OwnershipStrategy
from .overloads import OverloadPlanner
from .layout import ValueTypeLayoutPlanner
from .callback_generator import CallbackGenerator
from .interface_generator import InterfaceGenerator
from .session import BindingOptions, GenerationSession
from .generator import BindingGenerator, GeneratedBindings, generate_bindings, write_bindings

__all__ = [
    'TypeExpr', 'TypeFlags', 'OwnershipMode', 'Argument', 'Operation', 'Attribute',
    'Interface', 'ValueType', 'Callback', 'Typedef', 'ParsedIDL',
    'BindingError', 'IDLSyntaxError', 'UnsupportedTypeError', 'ValidationError',
    'IDLParser', 'parse_type', 'TypeResolver', 'OwnershipStrategy', 'OverloadPlanner',
    'ValueTypeLayoutPlanner', 'CallbackGenerator', 'InterfaceGenerator',
    'BindingOptions', 'GenerationSession',
    'BindingGenerator', 'GeneratedBindings', 'generate_bindings', 'write_bindings',
]
