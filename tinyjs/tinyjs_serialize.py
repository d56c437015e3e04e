from __future__ import annotations

import json
import math
from typing import Any, Callable, Collection, Optional, Union
import collections.abc

import yaml

from tinyjs.tinyjs_datatypes import JSObject, Undefined, is_callable, is_number


# Marker for values JSON cannot hold (undefined, functions).
_OMIT = object()


# --------------------------
# Helpers
# --------------------------

def _convert(key: str, value: Any, replacer: Optional[Callable[[str, Any], Any]],
             keys: Optional[Collection[str]], active: set) -> Any:
    if replacer is not None:
        value = replacer(key, value)
    if value is Undefined or is_callable(value):
        return _OMIT
    if value is None or isinstance(value, (bool, str)):
        return value
    if is_number(value):
        x = float(value)
        if math.isnan(x) or math.isinf(x):
            return None
        if x.is_integer() and abs(x) < 1e21:
            return int(x)
        return x
    if isinstance(value, (list, collections.abc.Mapping)):
        if id(value) in active:
            raise ValueError("Converting circular structure")
        active.add(id(value))
        try:
            return _convert_container(value, replacer, keys, active)
        finally:
            active.discard(id(value))
    return str(value)


def _convert_container(value, replacer, keys, active):
    if isinstance(value, list):
        out = []
        for i, item in enumerate(value):
            converted = _convert(str(i), item, replacer, keys, active)
            out.append(None if converted is _OMIT else converted)
        return out
    out = {}
    for k, v in value.items():
        if keys is not None and k not in keys:
            continue
        converted = _convert(k, v, replacer, keys, active)
        if converted is not _OMIT:
            out[k] = converted
    return out


def to_builtin(value: Any,
               replacer: Optional[Callable[[str, Any], Any]] = None,
               keys: Optional[Collection[str]] = None) -> Any:
    """
    Convert a tinyjs value into plain Python data (dict/list/scalars).
    Integral numbers become ints, NaN and the infinities become None,
    undefined and functions are dropped from objects and become None in arrays.
    `replacer(key, value)` is applied to every value on the way down;
    `keys` restricts which object properties are kept. A value that contains
    itself raises ValueError.
    """
    converted = _convert("", value, replacer, keys, set())
    return None if converted is _OMIT else converted


def from_builtin(value: Any) -> Any:
    """Convert plain Python data (as produced by json/yaml loaders) into tinyjs values."""
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, list):
        return [from_builtin(v) for v in value]
    if isinstance(value, collections.abc.Mapping):
        return JSObject({str(k): from_builtin(v) for k, v in value.items()})
    # yaml timestamps and the like
    return str(value)


# --------------------------
# Public API
# --------------------------

def deserialize(text: str, *, fmt: str = 'json') -> Any:
    """
    Parse text into tinyjs values.
    Supported fmt: 'json', 'yaml'. Malformed input raises ValueError.
    """
    f = (fmt or '').lower()
    if f == 'json':
        return from_builtin(json.loads(text))
    if f == 'yaml':
        try:
            return from_builtin(yaml.safe_load(text))
        except yaml.YAMLError as e:
            raise ValueError(str(e)) from e
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


def serialize(value: Any,
              *,
              fmt: str = 'json',
              indent: Union[int, str, None] = None,
              replacer: Optional[Callable[[str, Any], Any]] = None,
              keys: Optional[Collection[str]] = None) -> str:
    """
    Convert a tinyjs value into a textual representation.
    - fmt: 'json' | 'yaml'
    - indent: JSON only; None gives the compact form
    """
    f = (fmt or '').lower()
    built = to_builtin(value, replacer=replacer, keys=keys)
    if f == 'json':
        if indent is None:
            return json.dumps(built, ensure_ascii=False, separators=(',', ':'))
        return json.dumps(built, ensure_ascii=False, indent=indent)
    if f == 'yaml':
        return yaml.safe_dump(built, sort_keys=False, allow_unicode=True)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


__all__ = [
    "deserialize",
    "serialize",
    "to_builtin",
    "from_builtin",
]
