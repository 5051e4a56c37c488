"""Errors raised while reading IDL or generating bindings"""


class BindingError(Exception):
    """Generation failed. The message names the offending declaration."""

    where = None    # declaration the error was first attributed to


class IDLSyntaxError(BindingError):
    """The IDL text could not be parsed"""


class UnsupportedTypeError(BindingError):
    """A type cannot be represented across the boundary"""


class ValidationError(BindingError):
    """Declarations are individually valid but inconsistent with each other"""
