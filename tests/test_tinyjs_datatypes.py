import math

import pytest

from tinyjs.tinyjs_datatypes import (
    Scope, JSObject, JSFunction, NativeFunction, Undefined, JSRuntimeError,
    FUNCTION_SCOPE, BLOCK_SCOPE,
    type_of, is_truthy, to_number, to_string, to_int32, to_uint32, format_number,
    strict_equals, loose_equals, array_index, property_key,
)


def test_undefined_is_a_falsy_singleton():
    assert type(Undefined)() is Undefined
    assert not Undefined
    assert repr(Undefined) == "Undefined"


def test_objects_compare_by_identity():
    a = JSObject({"x": 1.0})
    b = JSObject({"x": 1.0})
    assert a != b
    assert a == a
    assert len({a, b}) == 2


def test_objects_preserve_insertion_order():
    obj = JSObject()
    obj["b"] = 1.0
    obj["a"] = 2.0
    obj["b"] = 3.0
    assert list(obj.keys()) == ["b", "a"]


def test_native_function_receives_argument_list():
    fn = NativeFunction(lambda args: len(args), "count")
    assert fn([1, 2, 3]) == 3
    assert fn.name == "count"


# --- Scope ---

def test_scope_declare_and_assign():
    scope = Scope(BLOCK_SCOPE)
    scope.declare("a", 1.0)
    scope.assign("a", 2.0)
    assert scope["a"] == 2.0
    assert "a" in scope
    assert not scope.is_function
    assert Scope(FUNCTION_SCOPE).is_function


def test_scope_refuses_assignment_to_constants():
    scope = Scope()
    scope.declare("c", 1.0, constant=True)
    with pytest.raises(JSRuntimeError, match="constant"):
        scope.assign("c", 2.0)
    # a fresh declaration replaces the binding and its constness
    scope.declare("c", 3.0)
    scope.assign("c", 4.0)
    assert scope["c"] == 4.0


# --- typeof ---

TYPE_OF_CASES = [
    ("undefined", Undefined, "undefined"),
    ("null", None, "object"),
    ("boolean", True, "boolean"),
    ("number", 1.5, "number"),
    ("string", "s", "string"),
    ("array", [1.0], "object"),
    ("object", JSObject(), "object"),
    ("function", JSFunction("f", [], None), "function"),
    ("native", NativeFunction(lambda args: None, "n"), "function"),
]


@pytest.mark.parametrize("value, expected", [c[1:] for c in TYPE_OF_CASES], ids=[c[0] for c in TYPE_OF_CASES])
def test_type_of(value, expected):
    assert type_of(value) == expected


@pytest.mark.parametrize("value", [Undefined, None, False, 0.0, -0.0, math.nan, ""])
def test_falsy_values(value):
    assert not is_truthy(value)


@pytest.mark.parametrize("value", [True, 1.0, -1.0, "0", " ", [], JSObject()])
def test_truthy_values(value):
    assert is_truthy(value)


# --- Conversions ---

TO_NUMBER_CASES = [
    ("null", None, 0.0),
    ("true", True, 1.0),
    ("false", False, 0.0),
    ("padded_string", "  12  ", 12.0),
    ("empty_string", "", 0.0),
    ("fraction_string", "3.5", 3.5),
    ("exponent_string", "1e3", 1000.0),
    ("hex_string", "0x1f", 31.0),
    ("infinity_string", "-Infinity", -math.inf),
    ("empty_array", [], 0.0),
    ("single_array", ["7"], 7.0),
]


@pytest.mark.parametrize("value, expected", [c[1:] for c in TO_NUMBER_CASES], ids=[c[0] for c in TO_NUMBER_CASES])
def test_to_number(value, expected):
    assert to_number(value) == expected


@pytest.mark.parametrize("value", [Undefined, "abc", "1 2", [1.0, 2.0], JSObject()])
def test_to_number_nan(value):
    assert math.isnan(to_number(value))


FORMAT_NUMBER_CASES = [
    ("integer", 42.0, "42"),
    ("negative", -7.0, "-7"),
    ("zero", 0.0, "0"),
    ("negative_zero", -0.0, "0"),
    ("fraction", 1.5, "1.5"),
    ("float_noise", 0.1 + 0.2, "0.30000000000000004"),
    ("small", 0.000001, "0.000001"),
    ("tiny", 1e-7, "1e-7"),
    ("large", 1e21, "1e+21"),
    ("large_integer", 123456789012.0, "123456789012"),
    ("nan", math.nan, "NaN"),
    ("infinity", math.inf, "Infinity"),
    ("negative_infinity", -math.inf, "-Infinity"),
]


@pytest.mark.parametrize("value, expected", [c[1:] for c in FORMAT_NUMBER_CASES], ids=[c[0] for c in FORMAT_NUMBER_CASES])
def test_format_number(value, expected):
    assert format_number(value) == expected


def test_to_string():
    assert to_string(Undefined) == "undefined"
    assert to_string(None) == "null"
    assert to_string(False) == "false"
    assert to_string(2.0) == "2"
    assert to_string([1.0, None, Undefined, "x"]) == "1,,,x"
    assert to_string(JSObject()) == "[object Object]"
    assert to_string(JSFunction("f", [], None)) == "function f() { [code] }"


def test_cyclic_arrays_coerce_like_empty_strings():
    a = []
    a.append(a)
    assert to_string(a) == ""
    assert to_number(a) == 0.0
    b = [1.0]
    b.append(b)
    assert to_string(b) == "1,"
    assert math.isnan(to_number(b))
    shared = [2.0]
    assert to_string([shared, shared]) == "2,2"


def test_int32_conversions():
    assert to_int32(2.0 ** 32 + 5) == 5
    assert to_int32(2.0 ** 31) == -2147483648
    assert to_int32(-1.5) == -1
    assert to_int32(math.nan) == 0
    assert to_uint32(-1.0) == 4294967295


# --- Equality ---

def test_strict_equality():
    assert strict_equals(1.0, 1.0)
    assert not strict_equals("5", 5.0)
    assert not strict_equals(math.nan, math.nan)
    assert not strict_equals(1.0, True)
    assert strict_equals(None, None)
    arr = [1.0]
    assert strict_equals(arr, arr)
    assert not strict_equals(arr, [1.0])


LOOSE_EQUAL_CASES = [
    ("string_number", "5", 5.0, True),
    ("null_undefined", None, Undefined, True),
    ("null_zero", None, 0.0, False),
    ("empty_array_false", [], False, True),
    ("true_one", True, 1.0, True),
    ("true_string_one", True, "1", True),
    ("single_array_number", [3.0], 3.0, True),
    ("distinct_arrays", [1.0, 2.0], [1.0, 2.0], False),
    ("nan_nan", math.nan, math.nan, False),
]


@pytest.mark.parametrize("a, b, expected", [c[1:] for c in LOOSE_EQUAL_CASES], ids=[c[0] for c in LOOSE_EQUAL_CASES])
def test_loose_equality(a, b, expected):
    assert loose_equals(a, b) is expected
    assert loose_equals(b, a) is expected


def test_array_index_and_property_key():
    assert array_index(2.0) == 2
    assert array_index("10") == 10
    assert array_index("0") == 0
    assert array_index("01") is None
    assert array_index(1.5) is None
    assert array_index(-1.0) is None
    assert array_index("x") is None
    assert property_key(1.0) == "1"
    assert property_key("k") == "k"
