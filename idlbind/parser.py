"""WebIDL-subset parser"""

import re
from typing import Optional

from .errors import IDLSyntaxError, ValidationError
from .types import (
    Argument, Attribute, Callback, ExtAttr, Interface, Operation, OwnershipMode,
    ParsedIDL, TypeExpr, TypeFlags, Typedef, ValueType,
)

_OPEN = {"(": ")", "[": "]", "{": "}", "<": ">"}
_CLOSE = {v: k for k, v in _OPEN.items()}


def split_top_level(text: str, sep: str) -> list[str]:
    """Split on ``sep`` outside of any (), [], {} or <> nesting"""
    parts = []
    depth = 0
    start = 0
    i = 0
    while i < len(text):
        ch = text[i]
        if ch in _OPEN:
            depth += 1
        elif ch in _CLOSE:
            depth -= 1
            if depth < 0:
                raise IDLSyntaxError(f"unbalanced '{ch}' in: {text.strip()}")
        elif depth == 0 and text.startswith(sep, i):
            parts.append(text[start:i])
            i += len(sep)
            start = i
            continue
        i += 1
    if depth != 0:
        raise IDLSyntaxError(f"unbalanced brackets in: {text.strip()}")
    parts.append(text[start:])
    return parts


class IDLParser:
    """Parses the WebIDL subset understood by the binding generator"""

    def __init__(self, content: str):
        self.content = self._strip_comments(content)

    def _strip_comments(self, content: str) -> str:
        content = re.sub(r'/\*.*?\*/', '', content, flags=re.DOTALL)
        content = re.sub(r'//.*$', '', content, flags=re.MULTILINE)
        return content

    def parse(self) -> ParsedIDL:
        result = ParsedIDL()
        for statement in split_top_level(self.content, ";"):
            statement = statement.strip()
            if not statement:
                continue
            attrs, body = self._take_ext_attrs(statement)

            if body.startswith("typedef"):
                result.typedefs.append(self._parse_typedef(body))
            elif body.startswith("callback"):
                result.callbacks.append(self._parse_callback(body))
            elif body.startswith("interface"):
                decl = self._parse_interface(body, attrs)
                if isinstance(decl, ValueType):
                    result.value_types.append(decl)
                else:
                    result.interfaces.append(decl)
            else:
                raise IDLSyntaxError(f"unrecognized declaration: {body[:60]}")
        return result

    # -- extended attributes ------------------------------------------------

    def _take_ext_attrs(self, text: str) -> tuple[list[ExtAttr], str]:
        """Split a leading [...] block off ``text``"""
        text = text.strip()
        if not text.startswith("["):
            return [], text
        depth = 0
        for i, ch in enumerate(text):
            if ch == "[":
                depth += 1
            elif ch == "]":
                depth -= 1
                if depth == 0:
                    return self._parse_ext_attrs(text[1:i]), text[i + 1:].strip()
        raise IDLSyntaxError(f"unterminated extended attribute list: {text[:60]}")

    def _parse_ext_attrs(self, text: str) -> list[ExtAttr]:
        attrs = []
        for item in split_top_level(text, ","):
            item = item.strip()
            if not item:
                continue
            if m := re.fullmatch(r'(\w+)\s*=\s*(\w+)', item):
                attrs.append(ExtAttr(name=m.group(1), value=m.group(2)))
            elif m := re.fullmatch(r'(\w+)\s*\((.*)\)', item, flags=re.DOTALL):
                attrs.append(ExtAttr(name=m.group(1), arguments=self._parse_arguments(m.group(2))))
            elif re.fullmatch(r'\w+', item):
                attrs.append(ExtAttr(name=item))
            else:
                raise IDLSyntaxError(f"malformed extended attribute: {item}")
        return attrs

    @staticmethod
    def _find_attr(attrs: list[ExtAttr], name: str) -> Optional[ExtAttr]:
        return next((a for a in attrs if a.name == name), None)

    def _flags(self, attrs: list[ExtAttr]) -> TypeFlags:
        return TypeFlags(
            by_ref=self._find_attr(attrs, "Ref") is not None,
            by_value=self._find_attr(attrs, "Value") is not None,
            is_const=self._find_attr(attrs, "Const") is not None,
        )

    # -- declarations -------------------------------------------------------

    def _parse_typedef(self, text: str) -> Typedef:
        m = re.fullmatch(r'typedef\s+(.+?)\s+(\w+)', text, flags=re.DOTALL)
        if not m:
            raise IDLSyntaxError(f"malformed typedef: {text}")
        return Typedef(name=m.group(2), type=parse_type(m.group(1)))

    def _parse_callback(self, text: str) -> Callback:
        """Parse callback declarations like: callback Transform = long (long value);"""
        m = re.fullmatch(r'callback\s+(\w+)\s*=\s*(.+?)\s*\((.*)\)', text, flags=re.DOTALL)
        if not m:
            raise IDLSyntaxError(f"malformed callback: {text}")
        return Callback(
            name=m.group(1),
            return_type=parse_type(m.group(2)),
            arguments=self._parse_arguments(m.group(3)),
        )

    def _parse_interface(self, text: str, attrs: list[ExtAttr]):
        m = re.fullmatch(r'interface\s+(\w+)\s*(?::\s*(\w+))?\s*\{(.*)\}', text, flags=re.DOTALL)
        if not m:
            raise IDLSyntaxError(f"malformed interface: {text[:60]}")
        name, parent, body = m.groups()
        cpp_name = self._find_attr(attrs, "CppName")

        if self._find_attr(attrs, "ValueType"):
            vtype = ValueType(name=name, parent=parent, cpp_name=cpp_name.value if cpp_name else None)
            for member in split_top_level(body, ";"):
                if not member.strip():
                    continue
                decl = self._parse_member(member)
                if not isinstance(decl, Attribute):
                    raise ValidationError(f"value type {name} declares operation '{decl.name}'")
                vtype.fields.append(decl)
            return vtype

        iface = Interface(
            name=name,
            parent=parent,
            ownership=OwnershipMode.SHARED if self._find_attr(attrs, "Shared") else OwnershipMode.RAW_POINTER,
            cpp_name=cpp_name.value if cpp_name else None,
            non_destructible=self._find_attr(attrs, "NoDestroy") is not None,
        )
        for attr in attrs:
            if attr.name == "Constructor":
                iface.constructors.append(attr.arguments or [])
        for member in split_top_level(body, ";"):
            if not member.strip():
                continue
            decl = self._parse_member(member)
            if isinstance(decl, Attribute):
                iface.attributes.append(decl)
            else:
                iface.operations.append(decl)
        return iface

    def _parse_member(self, text: str):
        attrs, body = self._take_ext_attrs(text)
        flags = self._flags(attrs)

        # Attribute: [static] [readonly] attribute type name
        if m := re.fullmatch(r'(static\s+)?(readonly\s+)?attribute\s+(.+?)\s+(\w+)', body, flags=re.DOTALL):
            return Attribute(
                name=m.group(4),
                type=parse_type(m.group(3)),
                flags=flags,
                is_static=m.group(1) is not None,
                read_only=m.group(2) is not None,
            )
        # Operation: [static] type name(args)
        if m := re.fullmatch(r'(static\s+)?(.+?)\s+(\w+)\s*\((.*)\)', body, flags=re.DOTALL):
            cpp_name = self._find_attr(attrs, "CppName")
            return Operation(
                name=m.group(3),
                return_type=parse_type(m.group(2)),
                arguments=self._parse_arguments(m.group(4)),
                flags=flags,
                is_static=m.group(1) is not None,
                cpp_name=cpp_name.value if cpp_name else None,
            )
        raise IDLSyntaxError(f"malformed interface member: {body}")

    def _parse_arguments(self, text: str) -> list[Argument]:
        args = []
        if not text.strip():
            return args

        for item in split_top_level(text, ","):
            attrs, body = self._take_ext_attrs(item)
            m = re.fullmatch(r'(optional\s+)?(.+?)\s+(\w+)', body, flags=re.DOTALL)
            if not m:
                raise IDLSyntaxError(f"malformed argument: {item.strip()}")
            args.append(Argument(
                name=m.group(3),
                type=parse_type(m.group(2)),
                optional=m.group(1) is not None,
                flags=self._flags(attrs),
            ))

        seen_optional = False
        for arg in args:
            if arg.optional:
                seen_optional = True
            elif seen_optional:
                raise IDLSyntaxError(f"required argument '{arg.name}' follows an optional argument")
        return args


def parse_type(text: str) -> TypeExpr:
    """Parse a type expression such as ``sequence<long>``, ``ClassB[]`` or ``(long or DOMString)?``"""
    text = " ".join(text.split())
    nullable = text.endswith("?")
    if nullable:
        text = text[:-1].rstrip()

    if text.startswith("(") and text.endswith(")"):
        members = split_top_level(text[1:-1], " or ")
        if len(members) < 2:
            raise IDLSyntaxError(f"malformed union type: {text}")
        return TypeExpr(union=tuple(parse_type(u) for u in members), nullable=nullable)
    if m := re.fullmatch(r'sequence\s*<(.+)>', text):
        return TypeExpr(element=parse_type(m.group(1)), nullable=nullable)
    if text.endswith("[]"):
        return TypeExpr(element=parse_type(text[:-2]), nullable=nullable)
    if not re.fullmatch(r'[A-Za-z_]\w*( [A-Za-z_]\w*)*', text):
        raise IDLSyntaxError(f"malformed type: {text}")
    return TypeExpr(name=text, nullable=nullable)
