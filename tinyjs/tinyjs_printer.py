"""
A pretty-printer for tinyjs values.
"""
import collections.abc

from tinyjs.tinyjs_datatypes import (
    _UndefinedType, JSObject, JSFunction, NativeFunction, format_number,
)

_IDENT_CHARS = set("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_$")


class Printer:
    """Formats values into their display form (the REPL and console.log view)."""

    def __init__(self, indent_width=2, max_depth=6):
        self._indent_char = " " * indent_width
        self.max_depth = max_depth
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format a value."""
        handler = self._get_handler(obj)
        return handler(obj, level)

    def _get_handler(self, obj):
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        if isinstance(obj, list):
            return self._pformat_array
        if isinstance(obj, collections.abc.Mapping):
            return self._pformat_object
        return lambda o, l: repr(o)

    def _create_handlers(self):
        return {
            str: self._pformat_str,
            float: self._pformat_number,
            int: self._pformat_number,
            bool: self._pformat_bool,
            type(None): self._pformat_null,
            _UndefinedType: self._pformat_undefined,
            list: self._pformat_array,
            JSObject: self._pformat_object,
            JSFunction: self._pformat_function,
            NativeFunction: self._pformat_function,
        }

    def _pformat_str(self, obj, level):
        escaped = obj.replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n")
        return f"'{escaped}'"

    def _pformat_number(self, obj, level):
        return format_number(float(obj))

    def _pformat_bool(self, obj, level):
        return 'true' if obj else 'false'

    def _pformat_null(self, obj, level):
        return 'null'

    def _pformat_undefined(self, obj, level):
        return 'undefined'

    def _pformat_function(self, obj, level):
        if obj.name:
            return f"[Function: {obj.name}]"
        return "[Function (anonymous)]"

    def _pformat_key(self, key):
        if key and key[0] not in "0123456789" and all(ch in _IDENT_CHARS for ch in key):
            return key
        return self._pformat_str(key, 0)

    def _pformat_array(self, obj, level):
        if not obj:
            return "[]"
        if level >= self.max_depth:
            return "[Array]"
        items = [self.pformat(v, level + 1) for v in obj]
        return "[ " + ", ".join(items) + " ]"

    def _pformat_object(self, obj, level):
        if not obj:
            return "{}"
        if level >= self.max_depth:
            return "[Object]"
        items = [f"{self._pformat_key(k)}: {self.pformat(v, level + 1)}" for k, v in obj.items()]
        return "{ " + ", ".join(items) + " }"


def display_string(value) -> str:
    """console.log form: strings print raw, everything else in display form."""
    if isinstance(value, str):
        return value
    return Printer().pformat(value)
