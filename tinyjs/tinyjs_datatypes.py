"""
Defines the core data types for the tinyjs runtime.

This module provides the value representation (undefined, objects, functions),
the scope frames the evaluator pushes and pops, the error taxonomy, and the
coercion and equality rules shared by the evaluator and the standard library.
"""

import math
import re
import collections.abc
from collections import UserDict
from typing import Any, Dict, List, Optional, Callable, TYPE_CHECKING

if TYPE_CHECKING:
    from tinyjs.tinyjs_nodes import Node


# =================================================================
# Errors
# =================================================================

class ScriptError(Exception):
    """Base class for every failure reported by a tinyjs evaluation."""
    kind = "Error"

    def __init__(self, message: str, line: Optional[int] = None, col: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.line = line
        self.col = col


class LexError(ScriptError):
    kind = "LexError"


class ParseError(ScriptError):
    kind = "ParseError"


class JSRuntimeError(ScriptError):
    kind = "RuntimeError"


# =================================================================
# Values
# =================================================================

class _UndefinedType:
    """The type of the `Undefined` singleton."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "Undefined"

    def __bool__(self):
        return False

    def __reduce__(self):
        return (_UndefinedType, ())

Undefined = _UndefinedType()


class JSObject(UserDict):
    """An insertion-ordered string-keyed object.

    Objects are shared handles: hashing and equality are by identity, so two
    literals with the same contents are different objects.
    """

    def __hash__(self):
        return id(self)

    def __eq__(self, other):
        return self is other

    def __ne__(self, other):
        return self is not other

    def __repr__(self):
        from tinyjs.tinyjs_printer import Printer
        return Printer().pformat(self)


class JSFunction:
    """A function defined in script code.

    Holds the parameter names and a reference to the body node only; there is
    no captured environment. Free variables resolve against the scope stack
    active when the function is called.
    """
    def __init__(self, name: Optional[str], params: List[str], body: 'Node', is_arrow: bool = False):
        self.name = name
        self.params = list(params)
        self.body = body
        self.is_arrow = is_arrow

    def __repr__(self) -> str:
        return f"<JSFunction {self.name or '(anonymous)'}({', '.join(self.params)})>"


class NativeFunction:
    """A host function. The wrapped callable receives the argument list."""
    def __init__(self, func: Callable[[List[Any]], Any], name: Optional[str] = None):
        self.func = func
        self.name = name or getattr(func, "__name__", None)

    def __call__(self, args: List[Any]) -> Any:
        return self.func(args)

    def __repr__(self) -> str:
        return f"<NativeFunction {self.name}>"


def is_callable(value: Any) -> bool:
    return isinstance(value, (JSFunction, NativeFunction))


# =================================================================
# Scopes
# =================================================================

FUNCTION_SCOPE = "function"
BLOCK_SCOPE = "block"


class Scope:
    """A single frame of bindings on the evaluator's scope stack.

    Function frames are created per call and receive `var` declarations and
    parameters; block frames are created per block and receive `let` and
    `const` declarations. Frames do not link to each other: the evaluator
    walks its explicit stack.
    """
    def __init__(self, kind: str = BLOCK_SCOPE):
        self.kind = kind
        self.bindings: Dict[str, Any] = {}
        self.constants: set = set()

    @property
    def is_function(self) -> bool:
        return self.kind == FUNCTION_SCOPE

    def declare(self, name: str, value: Any, constant: bool = False):
        """Creates (or replaces) a binding in this frame."""
        self.bindings[name] = value
        if constant:
            self.constants.add(name)
        else:
            self.constants.discard(name)

    def assign(self, name: str, value: Any):
        """Overwrites an existing binding, refusing constants."""
        if name in self.constants:
            raise JSRuntimeError(f"Assignment to constant variable '{name}'")
        self.bindings[name] = value

    def __contains__(self, name: Any) -> bool:
        return name in self.bindings

    def __getitem__(self, name: str) -> Any:
        return self.bindings[name]

    def __setitem__(self, name: str, value: Any):
        self.declare(name, value)

    def get(self, name: str, default: Any = None) -> Any:
        return self.bindings.get(name, default)

    def keys(self) -> collections.abc.KeysView:
        return self.bindings.keys()

    def __repr__(self) -> str:
        keys = ', '.join(self.bindings.keys())
        return f"<Scope {self.kind} bindings=[{keys}]>"


# =================================================================
# Coercion & equality
# =================================================================

_DECIMAL_RE = re.compile(r'^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$')
_RADIX_RE = re.compile(r'^0([xXoObB])([0-9a-fA-F]+)$')
_RADIX_BASES = {'x': 16, 'o': 8, 'b': 2}


def type_of(value: Any) -> str:
    """Returns the `typeof` name of a value."""
    match value:
        case _UndefinedType():
            return "undefined"
        case None:
            return "object"
        case bool():
            return "boolean"
        case float() | int():
            return "number"
        case str():
            return "string"
        case JSFunction() | NativeFunction():
            return "function"
        case _:
            return "object"


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_truthy(value: Any) -> bool:
    if value is Undefined or value is None:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return not (value == 0 or math.isnan(value))
    if isinstance(value, str):
        return value != ""
    return True


def string_to_number(text: str) -> float:
    s = text.strip()
    if s == "":
        return 0.0
    if _DECIMAL_RE.match(s):
        return float(s)
    m = _RADIX_RE.match(s)
    if m:
        try:
            return float(int(m.group(2), _RADIX_BASES[m.group(1).lower()]))
        except ValueError:
            return math.nan
    if s in ("Infinity", "+Infinity"):
        return math.inf
    if s == "-Infinity":
        return -math.inf
    return math.nan


def to_number(value: Any) -> float:
    """Numeric coercion used by loose equality, relational operators and `Number(x)`."""
    if value is Undefined:
        return math.nan
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if is_number(value):
        return float(value)
    if isinstance(value, str):
        return string_to_number(value)
    if isinstance(value, list):
        return _array_to_number(value)
    return math.nan


def _array_to_number(array: list) -> float:
    # A single-element array coerces through its element; an array already
    # on the path reads as the empty string.
    seen = set()
    value: Any = array
    while isinstance(value, list):
        if id(value) in seen or not value:
            return 0.0
        if len(value) > 1:
            return math.nan
        seen.add(id(value))
        value = value[0]
    return to_number(value)


def to_int32(value: float) -> int:
    if math.isnan(value) or math.isinf(value):
        return 0
    n = int(value) & 0xFFFFFFFF
    return n - 0x100000000 if n >= 0x80000000 else n


def to_uint32(value: float) -> int:
    if math.isnan(value) or math.isinf(value):
        return 0
    return int(value) & 0xFFFFFFFF


def format_number(value: float) -> str:
    """Formats a number the way JavaScript's Number#toString does."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"
    if value < 0:
        return "-" + format_number(-value)
    if value == int(value) and value < 1e21:
        return str(int(value))

    # Shortest round-trip digits from repr, then re-laid out with JS rules.
    mantissa, _, exp = repr(float(value)).partition('e')
    int_part, _, frac_part = mantissa.partition('.')
    digits = (int_part + frac_part).lstrip('0')
    point = len(int_part) + (int(exp) if exp else 0)
    if int_part == '0':
        stripped = frac_part.lstrip('0')
        point = -(len(frac_part) - len(stripped)) + (int(exp) if exp else 0)
        digits = stripped
    digits = digits.rstrip('0') or '0'
    k = len(digits)
    n = point

    if k <= n <= 21:
        return digits + '0' * (n - k)
    if 0 < n <= 21:
        return digits[:n] + '.' + digits[n:]
    if -6 < n <= 0:
        return '0.' + '0' * (-n) + digits
    e = n - 1
    sign = '+' if e >= 0 else '-'
    if k == 1:
        return f"{digits}e{sign}{abs(e)}"
    return f"{digits[0]}.{digits[1:]}e{sign}{abs(e)}"


def to_string(value: Any) -> str:
    """Implicit string conversion (object keys, `String(x)`, array joins)."""
    if value is Undefined:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return format_number(float(value))
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return _join(value, set())
    if isinstance(value, (JSFunction, NativeFunction)):
        return f"function {value.name or ''}() {{ [code] }}"
    return "[object Object]"


def _join(array: list, active: set) -> str:
    # Arrays already being joined further up contribute "".
    if id(array) in active:
        return ""
    active.add(id(array))
    try:
        parts = []
        for v in array:
            if v is Undefined or v is None:
                parts.append("")
            elif isinstance(v, list):
                parts.append(_join(v, active))
            else:
                parts.append(to_string(v))
    finally:
        active.discard(id(array))
    return ",".join(parts)


def strict_equals(a: Any, b: Any) -> bool:
    if is_number(a) and is_number(b):
        return float(a) == float(b)
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    return a is b


def loose_equals(a: Any, b: Any) -> bool:
    """The `==` coercion ladder."""
    nullish_a = a is Undefined or a is None
    nullish_b = b is Undefined or b is None
    if nullish_a or nullish_b:
        return nullish_a and nullish_b

    if type_of(a) == type_of(b) and not isinstance(a, list) and not isinstance(b, list):
        return strict_equals(a, b)
    if isinstance(a, list) and isinstance(b, list):
        return a is b

    if isinstance(a, bool):
        return loose_equals(to_number(a), b)
    if isinstance(b, bool):
        return loose_equals(a, to_number(b))

    # number/string/array combinations compare numerically
    coercible = (str, list, int, float)
    if isinstance(a, coercible) and isinstance(b, coercible):
        return to_number(a) == to_number(b)
    return False


def array_index(key: Any) -> Optional[int]:
    """Returns the array index a key denotes, or None when it is not one."""
    if is_number(key):
        if key >= 0 and float(key).is_integer():
            return int(key)
        return None
    if isinstance(key, str) and key.isascii() and key.isdigit():
        if key == "0" or not key.startswith("0"):
            return int(key)
    return None


def property_key(key: Any) -> str:
    """Object property names are strings; other keys are stringified."""
    return key if isinstance(key, str) else to_string(key)
