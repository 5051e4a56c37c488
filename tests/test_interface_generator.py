import pytest

from conftest import generate, js_block, make_session
from idlbind import OwnershipMode, UnsupportedTypeError, ValidationError

SHAPES = """
    [Constructor(DOMString name)]
    interface Shape {
        DOMString getName();
        void setName(DOMString name);
        static long count();
        attribute double scale;
        readonly attribute boolean visible;
        static attribute long created;
    };

    [Constructor(double width, double height), CppName=RectShape]
    interface Rect : Shape {
        [Value] Rect scaled(double factor);
        [Ref] Rect bounds();
        Shape? parent();
    };
"""


@pytest.fixture(scope="module")
def shapes():
    return generate(SHAPES)


def test_wrapper_cache_helpers(shapes):
    script = shapes.script
    assert "var Shape___CACHE = {};" in script
    wrap = js_block(script, "  static __wrap(ptr) {")
    assert "    let obj = Shape___CACHE[ptr];" in wrap
    assert "      Shape___CACHE[ptr] = obj;" in wrap
    assert "Shape___CACHE[obj.ptr] = obj;" in js_block(script, "  static __setCache(obj) {")


def test_uncached_wrap_never_touches_the_cache(shapes):
    body = js_block(shapes.script, "  static __wrapNoCache(ptr) {")
    assert "Object.create(Shape.prototype)" in body
    assert "CACHE" not in body


def test_constructor_registers_the_new_wrapper(shapes):
    body = js_block(shapes.script, "  constructor(arg0) {")
    assert "    let ret, obj = Object.create(new.target.prototype);" in body
    assert "    ensureCache.prepare();" in body
    assert "    arg0 = ensureString(arg0);" in body
    assert "    ret = _jsbind_Shape_Shape_1(arg0);" in body
    assert "    Shape.__setCache(obj);" in body


def test_native_factory_and_destructor(shapes):
    native = shapes.native
    assert "Shape* EMSCRIPTEN_KEEPALIVE jsbind_Shape_Shape_1(const char* arg0) {\n  return new Shape(arg0);\n}" in native
    assert "void EMSCRIPTEN_KEEPALIVE jsbind_Shape___destroy___0(Shape* self) {\n  delete self;\n}" in native
    assert "RectShape* EMSCRIPTEN_KEEPALIVE jsbind_Rect_Rect_2(double arg0, double arg1) {" in native
    assert "  return new RectShape(arg0, arg1);" in native


def test_destroy_releases_and_uncaches(shapes):
    body = js_block(shapes.script, "  destroy() {")
    assert "    _jsbind_Shape___destroy___0(this.ptr);" in body
    assert "    delete Shape___CACHE[this.ptr];" in body


def test_instance_and_static_methods(shapes):
    script, native = shapes.script, shapes.native
    assert "    return UTF8ToString(ret);" in js_block(script, "  getName() {")
    assert "const char* EMSCRIPTEN_KEEPALIVE jsbind_Shape_getName_0(Shape* self) {\n  return self->getName();" in native
    assert "  static count() {\n    let ret;\n    ret = _jsbind_Shape_count_0();" in script
    assert "int EMSCRIPTEN_KEEPALIVE jsbind_Shape_count_0() {\n  return Shape::count();" in native


def test_attribute_accessors(shapes):
    script, native = shapes.script, shapes.native
    assert "  get scale() {\n    let ret = _jsbind_Shape___get_scale_0(this.ptr);" in script
    assert "  set scale(arg0) {\n    _jsbind_Shape___set_scale_1(this.ptr, arg0);" in script
    assert "double EMSCRIPTEN_KEEPALIVE jsbind_Shape___get_scale_0(Shape* self) {\n  return self->scale;" in native
    assert "void EMSCRIPTEN_KEEPALIVE jsbind_Shape___set_scale_1(Shape* self, double arg0) {\n  self->scale = arg0;" in native

    assert "    return !!(ret);" in js_block(script, "  get visible() {")
    assert "set visible" not in script
    assert "jsbind_Shape___set_visible_1" not in native

    assert "  static get created() {\n    let ret = _jsbind_Shape___get_created_0();" in script
    assert "  static set created(arg0) {\n    _jsbind_Shape___set_created_1(arg0);" in script
    assert "void EMSCRIPTEN_KEEPALIVE jsbind_Shape___set_created_1(int arg0) {\n  Shape::created = arg0;" in native


def test_subclass_extends_parent(shapes):
    script = shapes.script
    assert "class Rect extends Shape {" in script
    assert script.index("class Shape {") < script.index("class Rect extends Shape {")


def test_value_and_reference_results(shapes):
    script, native = shapes.script, shapes.native
    assert "    return Rect.__wrapNoCache(ret);" in js_block(script, "  scaled(arg0) {")
    assert "  static RectShape temp;\n  temp = self->scaled(arg0);\n  return &temp;" in native
    assert "    return Rect.__wrap(ret);" in js_block(script, "  bounds() {")
    assert "  return &self->bounds();" in native
    assert "    return (ret ? Shape.__wrap(ret) : null);" in js_block(script, "  parent() {")


def test_non_destructible_interface():
    bindings = generate("[NoDestroy] interface Registry { static Registry instance(); };")
    assert "destroy()" not in bindings.script
    assert "__destroy__" not in bindings.native
    assert "Registry* EMSCRIPTEN_KEEPALIVE jsbind_Registry_instance_0() {\n  return Registry::instance();" in bindings.native


def test_non_destructible_child_of_destroyable_parent():
    script = generate("interface Base { }; [NoDestroy] interface Leaf : Base { };").script
    leaf = script[script.index("class Leaf extends Base {"):]
    assert 'throw new Error("Leaf cannot be destroyed");' in leaf


def test_shared_ownership_entry_points():
    bindings = generate("""
        [Shared, Constructor(DOMString path)]
        interface Document {
            DOMString title();
            Document? next();
            void link(Document other);
            attribute long pages;
        };
    """)
    native = bindings.native
    assert (
        "std::shared_ptr<Document>* EMSCRIPTEN_KEEPALIVE jsbind_Document_Document_1(const char* arg0) {\n"
        "  return new std::shared_ptr<Document>(std::make_shared<Document>(arg0));"
    ) in native
    assert "void EMSCRIPTEN_KEEPALIVE jsbind_Document___destroy___0(std::shared_ptr<Document>* self) {\n  delete self;" in native
    assert "  return (*self)->title();" in native
    assert "  std::shared_ptr<Document> result = (*self)->next();" in native
    assert "  (*self)->link(*arg0);" in native
    assert "  (*self)->pages = arg0;" in native
    assert "    return (ret ? Document.__wrap(ret) : null);" in bindings.script


def test_classes_are_published_on_the_module(shapes):
    assert "Module['Shape'] = Shape;" in shapes.script
    assert "Module['Rect'] = Rect;" in shapes.script
    script = generate("interface A { };", module_name="Geometry").script
    assert "Geometry['A'] = A;" in script
    assert "Geometry['_malloc']" in script


def test_custom_entry_point_prefix():
    bindings = generate("[Constructor] interface A { void run(); };", prefix="geo_")
    assert "A* EMSCRIPTEN_KEEPALIVE geo_A_A_0() {" in bindings.native
    assert "_geo_A_run_0(self);" in bindings.script


def test_parents_are_emitted_before_children():
    script = generate("interface Child : Base { }; interface Base { };").script
    assert script.index("class Base {") < script.index("class Child extends Base {")


def test_shared_interface_requires_shared_parent():
    with pytest.raises(ValidationError, match=r"Doc \(shared ownership\) cannot extend Node \(raw ownership\)"):
        make_session("interface Node { }; [Shared] interface Doc : Node { };").prepare()
    with pytest.raises(ValidationError, match="cannot extend"):
        make_session("[Shared] interface Node { }; interface Doc : Node { };").prepare()

    session = make_session("[Shared] interface Node { }; [Shared] interface Doc : Node { };")
    session.prepare()
    assert [i.name for i in session.ordered_interfaces] == ["Node", "Doc"]
    assert session.interfaces["Doc"].ownership is OwnershipMode.SHARED


def test_inheritance_errors():
    with pytest.raises(ValidationError, match="extends unknown interface 'Missing'"):
        make_session("interface A : Missing { };").prepare()
    with pytest.raises(ValidationError, match="inheritance cycle"):
        make_session("interface A : B { }; interface B : A { };").prepare()
    with pytest.raises(ValidationError, match="cannot extend value type Point"):
        make_session("[ValueType] interface Point { attribute long x; }; interface A : Point { };").prepare()


def test_duplicate_declaration_names():
    with pytest.raises(ValidationError, match="callback A clashes with interface A"):
        make_session("interface A { }; callback A = void ();")


def test_duplicate_attribute_names():
    with pytest.raises(ValidationError, match=r"attribute Shape\.scale is declared twice"):
        make_session("interface Shape { attribute double scale; readonly attribute long scale; };").prepare()

    # The same attribute name on different interfaces is fine
    session = make_session("interface A { attribute long x; }; interface B { attribute long x; };")
    assert [len(p.attributes) for p in session.prepare()] == [1, 1]


def test_sequence_of_interface_attribute_names_the_member():
    with pytest.raises(UnsupportedTypeError, match=r"Bad\.items"):
        make_session("interface ClassB { }; interface Bad { attribute ClassB[] items; };").prepare()


def test_union_member_names_the_member():
    with pytest.raises(UnsupportedTypeError, match=r"Bad\.value: union type"):
        make_session("interface Bad { attribute (long or DOMString) value; };").prepare()
