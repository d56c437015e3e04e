import math

import pytest

from tinyjs.tinyjs_runtime import Context
from tinyjs.tinyjs_datatypes import Undefined


def run_js(src: str):
    return Context().run(src)


def assert_ok(res, expected=None):
    assert res.status == 'success', f"expected success, got {res.status}: {res.error_message}"
    if expected is not None:
        assert res.value == expected


def assert_error(res, contains: str | None = None):
    assert res.status == 'error', f"expected error, got {res.status} with value {res.value!r}"
    if contains:
        msg = res.error_message or ""
        assert contains in msg, f"error message did not contain {contains!r}: {msg!r}"


# 6.1 Number globals

def test_nan_and_infinity_globals():
    res = run_js("NaN")
    assert math.isnan(res.value)
    assert_ok(run_js("Infinity"), math.inf)
    assert_ok(run_js("-Infinity"), -math.inf)


@pytest.mark.parametrize("src, expected", [
    ("isNaN()", True),
    ("isNaN('abc')", True),
    ("isNaN('12')", False),
    ("isFinite()", False),
    ("isFinite(1 / 0)", False),
    ("isFinite('3')", True),
])
def test_isnan_isfinite(src, expected):
    assert_ok(run_js(src), expected)


@pytest.mark.parametrize("src, expected", [
    ("parseInt('42px')", 42),
    ("parseInt('  -17')", -17),
    ("parseInt('ff', 16)", 255),
    ("parseInt('0x1A')", 26),
    ("parseInt('101', 2)", 5),
    ("parseInt(3.9)", 3),
    ("parseFloat('3.14abc')", 3.14),
    ("parseFloat('.5')", 0.5),
    ("parseFloat('-1e3x')", -1000),
    ("parseFloat('Infinityx')", math.inf),
])
def test_parse_int_and_float(src, expected):
    assert_ok(run_js(src), expected)


@pytest.mark.parametrize("src", ["parseInt('abc')", "parseInt('1', 99)", "parseFloat('x1')"])
def test_parse_failures_are_nan(src):
    res = run_js(src)
    assert_ok(res)
    assert math.isnan(res.value)


# 6.2 Conversions

@pytest.mark.parametrize("src, expected", [
    ("String(12)", "12"),
    ("String(1.5)", "1.5"),
    ("String(null)", "null"),
    ("String([1, [2, 3]])", "1,2,3"),
    ("String({})", "[object Object]"),
    ("String()", ""),
    ("Number('  7 ')", 7),
    ("Number(true)", 1),
    ("Number()", 0),
    ("Boolean('')", False),
    ("Boolean('0')", True),
    ("Boolean()", False),
    ("String(1) + String(2)", "12"),
])
def test_conversion_functions(src, expected):
    assert_ok(run_js(src), expected)


# 6.3 console.log

def test_console_log_records_stdout_side_effects():
    res = run_js("console.log('hi', 1, [1, 'a'], {k: true}); console.log(); 5")
    assert_ok(res, 5)
    messages = [e['message'] for e in res.side_effects if e['topics'] == ['stdout']]
    assert messages == ["hi 1 [ 1, 'a' ] { k: true }", ""]


def test_console_log_returns_undefined():
    res = run_js("console.log('x')")
    assert res.value is Undefined


# 6.4 Math

@pytest.mark.parametrize("src, expected", [
    ("Math.abs(-3)", 3),
    ("Math.floor(2.7)", 2),
    ("Math.floor(-2.1)", -3),
    ("Math.ceil(2.1)", 3),
    ("Math.round(2.5)", 3),
    ("Math.round(-2.5)", -2),
    ("Math.trunc(-2.7)", -2),
    ("Math.sign(-4)", -1),
    ("Math.sqrt(16)", 4),
    ("Math.pow(2, 8)", 256),
    ("Math.min(3, 1, 2)", 1),
    ("Math.max(3, 1, 2)", 3),
    ("Math.max()", -math.inf),
    ("Math.floor(Infinity)", math.inf),
])
def test_math_functions(src, expected):
    assert_ok(run_js(src), expected)


def test_math_constants_and_random():
    assert_ok(run_js("Math.PI"), math.pi)
    assert_ok(run_js("Math.E"), math.e)
    res = run_js("Math.random()")
    assert 0 <= res.value < 1


def test_math_nan_cases():
    for src in ("Math.sqrt(-1)", "Math.max(1, NaN)", "Math.abs('x')"):
        res = run_js(src)
        assert math.isnan(res.value), src


# 6.5 JSON

@pytest.mark.parametrize("src, expected", [
    ("JSON.stringify({a: 1, b: [1, 'x', null]})", '{"a":1,"b":[1,"x",null]}'),
    ("JSON.stringify([1.5, true, undefined])", '[1.5,true,null]'),
    ("JSON.stringify({a: undefined, f: function () {}, n: NaN})", '{"n":null}'),
    ("JSON.stringify('s')", '"s"'),
    ("JSON.stringify({a: 1, b: 2, c: 3}, ['a', 'c'])", '{"a":1,"c":3}'),
    ("JSON.stringify({a: [1]}, null, 2)", '{\n  "a": [\n    1\n  ]\n}'),
    ("JSON.stringify({n: 1, m: 2}, (k, v) => k == 'm' ? undefined : v)", '{"n":1}'),
])
def test_json_stringify(src, expected):
    assert_ok(run_js(src), expected)


def test_json_stringify_of_undefined_is_undefined():
    assert run_js("JSON.stringify(undefined)").value is Undefined


def test_json_parse():
    assert_ok(run_js("JSON.parse('{\"a\": [1, 2]}').a[1]"), 2)
    assert_ok(run_js("typeof JSON.parse('{}')"), "object")
    assert_ok(run_js("JSON.parse('[true, null, \"s\"]')"), [True, None, "s"])


def test_json_round_trip_through_script():
    assert_ok(run_js("let o = {x: [1, {y: 'z'}]}; JSON.parse(JSON.stringify(o)).x[1].y"), "z")


def test_json_parse_error():
    assert_error(run_js("JSON.parse('{bad')"), "RuntimeError: JSON.parse")
