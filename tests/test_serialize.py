import math

import pytest

from tinyjs.tinyjs_serialize import serialize, deserialize, to_builtin, from_builtin
from tinyjs.tinyjs_datatypes import JSObject, JSFunction, NativeFunction, Undefined
from tinyjs.tinyjs_nodes import Block


def test_to_builtin_normalizes_numbers_and_drops_unrepresentable_values():
    fn = JSFunction("f", [], Block(()))
    value = JSObject({
        "i": 2.0,
        "f": 2.5,
        "nan": math.nan,
        "inf": math.inf,
        "u": Undefined,
        "fn": fn,
        "list": [Undefined, fn, 1.0],
    })
    assert to_builtin(value) == {
        "i": 2,
        "f": 2.5,
        "nan": None,
        "inf": None,
        "list": [None, None, 1],
    }
    assert to_builtin(Undefined) is None


def test_to_builtin_keeps_large_numbers_as_floats():
    assert to_builtin(1e21) == 1e21
    assert isinstance(to_builtin(1e21), float)


def test_to_builtin_key_filter_and_replacer():
    obj = JSObject({"a": 1.0, "b": JSObject({"a": 2.0, "c": 3.0}), "c": 4.0})
    assert to_builtin(obj, keys={"a", "b"}) == {"a": 1, "b": {"a": 2}}

    def double_numbers(key, value):
        return value * 2 if isinstance(value, float) else value
    assert to_builtin([1.0, [2.0]], replacer=double_numbers) == [2, [4]]


def test_serialize_json_compact_and_indented():
    obj = JSObject({"a": [1.0, "x"], "b": None})
    assert serialize(obj) == '{"a":[1,"x"],"b":null}'
    assert serialize(obj, indent=2) == '{\n  "a": [\n    1,\n    "x"\n  ],\n  "b": null\n}'
    assert serialize(JSObject({"k": True}), indent="--") == '{\n--"k": true\n}'
    assert serialize("é") == '"é"'


def test_serialize_yaml():
    assert serialize(JSObject({"a": 1.0}), fmt='yaml') == "a: 1\n"
    assert serialize([1.0, "x"], fmt='yaml') == "- 1\n- x\n"


def test_deserialize_json_produces_script_values():
    value = deserialize('{"a": [1, 2.5, true, null], "b": {"c": "d"}}')
    assert isinstance(value, JSObject)
    assert isinstance(value["b"], JSObject)
    assert value["a"] == [1.0, 2.5, True, None]
    assert isinstance(value["a"][0], float)


def test_deserialize_yaml():
    value = deserialize("a: 1\nb:\n  - x\n  - y\n", fmt='yaml')
    assert to_builtin(value) == {"a": 1, "b": ["x", "y"]}


def test_from_builtin_stringifies_unknown_scalars():
    import datetime
    assert from_builtin(datetime.date(2024, 1, 2)) == "2024-01-02"
    assert list(from_builtin({1: 2}).keys()) == ["1"]


@pytest.mark.parametrize("call", [
    lambda: serialize(1.0, fmt='toml'),
    lambda: deserialize("x", fmt='toml'),
    lambda: deserialize("{bad"),
    lambda: deserialize("a: [1", fmt='yaml'),
])
def test_errors_raise_value_error(call):
    with pytest.raises(ValueError):
        call()


def test_cyclic_values_raise_value_error():
    arr = [1.0]
    arr.append(arr)
    with pytest.raises(ValueError, match="circular"):
        serialize(arr)
    obj = JSObject()
    obj["self"] = obj
    with pytest.raises(ValueError, match="circular"):
        to_builtin(obj)
    # The same object appearing twice is not a cycle
    shared = JSObject({"k": 1.0})
    assert to_builtin([shared, shared]) == [{"k": 1}, {"k": 1}]
