import pytest

from conftest import generate, js_block, make_session
from idlbind import UnsupportedTypeError, ValidationError
from idlbind.overloads import expand_optional
from idlbind.types import Argument, TypeExpr

OVERLOADED = """
    interface Calc {
        long f();
        long f(long a, long b);
        long f(long a, long b, long c);
    };
"""


def plan(text, name):
    session = make_session(text)
    return session.overloads.plan_operations(session.interfaces[name])


def test_groups_are_sorted_by_arity():
    session = make_session("""
        interface Calc {
            long f(long a, long b, long c);
            long f();
            long f(long a, long b);
        };
    """)
    (group,) = session.overloads.plan_operations(session.interfaces["Calc"])
    assert [o.arity for o in group.overloads] == [0, 2, 3]


def test_arity_dispatch_selects_matching_overload():
    (group,) = plan(OVERLOADED, "Calc")
    assert group.select(0).arity == 0
    assert group.select(2).arity == 2
    assert group.select(3).arity == 3
    assert [guard for guard, _ in group.dispatch()] == [0, 2, None]


def test_generated_dispatch_checks_first_omitted_argument():
    script = generate(OVERLOADED).script
    body = js_block(script, "  f(arg0, arg1, arg2) {")
    assert "    if (arg0 === undefined) {\n      ret = _jsbind_Calc_f_0(self);" in body
    assert "    } else if (arg2 === undefined) {\n      ret = _jsbind_Calc_f_2(self, arg0, arg1);" in body
    assert "    } else {\n      ret = _jsbind_Calc_f_3(self, arg0, arg1, arg2);" in body


def test_one_native_entry_point_per_arity():
    native = generate(OVERLOADED).native
    assert "int EMSCRIPTEN_KEEPALIVE jsbind_Calc_f_0(Calc* self) {" in native
    assert "int EMSCRIPTEN_KEEPALIVE jsbind_Calc_f_2(Calc* self, int arg0, int arg1) {" in native
    assert "  return self->f(arg0, arg1, arg2);" in native


def test_optional_arguments_expand_into_arities():
    args = [
        Argument("a", TypeExpr(name="long")),
        Argument("b", TypeExpr(name="long"), optional=True),
        Argument("c", TypeExpr(name="long"), optional=True),
    ]
    assert [len(v) for v in expand_optional(args)] == [1, 2, 3]

    (group,) = plan("interface A { void g(long a, optional long b); };", "A")
    assert [o.arity for o in group.overloads] == [1, 2]


def test_duplicate_arity_is_rejected():
    with pytest.raises(ValidationError, match="A.f has more than one overload taking 1 argument"):
        plan("interface A { void f(long a); void f(double a); };", "A")


def test_return_type_mismatch_is_rejected():
    with pytest.raises(ValidationError, match="A.f overload differs in return type"):
        plan("interface A { long f(); double f(long a); };", "A")


def test_staticness_mismatch_is_rejected():
    with pytest.raises(ValidationError, match="A.f has same name as a static method"):
        plan("interface A { static long f(); long f(long a); };", "A")


def test_attribute_and_operation_clash():
    with pytest.raises(ValidationError, match="A.size is declared as both an attribute and an operation"):
        plan("interface A { attribute long size; long size(); };", "A")


def test_constructor_overloads():
    session = make_session("[Constructor, Constructor(long a, optional DOMString b)] interface A { };")
    group = session.overloads.plan_constructors(session.interfaces["A"])
    assert [o.arity for o in group.overloads] == [0, 1, 2]
    assert group.is_static


def test_no_constructor_is_legal_and_throws_when_called():
    script = generate("interface Opaque { long id(); };").script
    body = js_block(script, "  constructor() {")
    assert 'throw new Error("No constructor defined for Opaque");' in body
    assert "jsbind_Opaque_Opaque_" not in generate("interface Opaque { };").native


def test_argument_errors_name_the_argument():
    with pytest.raises(UnsupportedTypeError, match=r"A\.f\(x\): union type"):
        plan("interface A { void f((long or DOMString) x); };", "A")
