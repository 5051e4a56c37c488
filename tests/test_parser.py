import pytest

from idlbind import IDLParser, IDLSyntaxError, OwnershipMode, ValidationError, parse_type
from idlbind.types import Attribute, TypeExpr, TypeFlags


def test_parse_type_names_and_composites():
    assert parse_type("unsigned  long long") == TypeExpr(name="unsigned long long")
    assert parse_type("sequence<long>") == TypeExpr(element=TypeExpr(name="long"))
    assert parse_type("ClassB[]") == TypeExpr(element=TypeExpr(name="ClassB"))
    assert parse_type("DOMString?") == TypeExpr(name="DOMString", nullable=True)

    union = parse_type("(long or DOMString)?")
    assert union.nullable
    assert union.union == (TypeExpr(name="long"), TypeExpr(name="DOMString"))
    assert str(union) == "(long or DOMString)?"


def test_parse_type_rejects_garbage():
    with pytest.raises(IDLSyntaxError, match="malformed type"):
        parse_type("long*")


def test_typedef_and_callback():
    idl = IDLParser("""
        typedef double Real;  // comment
        /* block
           comment */
        callback Transform = Real (long value, optional DOMString label);
    """).parse()

    assert idl.typedefs[0].name == "Real"
    assert idl.typedefs[0].type == TypeExpr(name="double")
    cb = idl.callbacks[0]
    assert cb.name == "Transform"
    assert cb.return_type == TypeExpr(name="Real")
    assert [a.name for a in cb.arguments] == ["value", "label"]
    assert cb.arguments[1].optional


def test_interface_members_and_ext_attrs():
    idl = IDLParser("""
        [Constructor, Constructor(long a, [Const] DOMString b), CppName=NativeThing, NoDestroy]
        interface Thing : Base {
            [Value] Thing copy();
            static long count();
            [CppName=doRun] void run(optional long times);
            attribute long size;
            static readonly attribute DOMString kind;
        };
    """).parse()

    thing = idl.interfaces[0]
    assert thing.name == "Thing"
    assert thing.parent == "Base"
    assert thing.native_name == "NativeThing"
    assert thing.non_destructible
    assert thing.ownership is OwnershipMode.RAW_POINTER
    assert [len(c) for c in thing.constructors] == [0, 2]
    assert thing.constructors[1][1].flags == TypeFlags(is_const=True)

    copy, count, run = thing.operations
    assert copy.flags.by_value
    assert count.is_static
    assert run.native_name == "doRun"
    assert run.arguments[0].optional

    size, kind = thing.attributes
    assert not size.read_only and not size.is_static
    assert kind.read_only and kind.is_static


def test_shared_and_value_type_declarations():
    idl = IDLParser("""
        [Shared] interface Doc { };
        [ValueType] interface Point { attribute long x; attribute long y; };
    """).parse()

    assert idl.interfaces[0].ownership is OwnershipMode.SHARED
    point = idl.value_types[0]
    assert [f.name for f in point.fields] == ["x", "y"]
    assert all(isinstance(f, Attribute) for f in point.fields)


def test_value_type_with_operation_is_rejected():
    with pytest.raises(ValidationError, match="value type Point declares operation 'norm'"):
        IDLParser("[ValueType] interface Point { attribute long x; double norm(); };").parse()


def test_required_argument_after_optional():
    with pytest.raises(IDLSyntaxError, match="required argument 'b'"):
        IDLParser("interface A { void f(optional long a, long b); };").parse()


def test_unrecognized_and_unbalanced_input():
    with pytest.raises(IDLSyntaxError, match="unrecognized declaration"):
        IDLParser("enum Color { red };").parse()
    with pytest.raises(IDLSyntaxError, match="unbalanced"):
        IDLParser("interface A { void f(long a; };").parse()
