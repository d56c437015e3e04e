# tinyjs runtime: the host-facing Context, the standard globals and result reporting.

import re
import inspect
import logging
import math
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from tinyjs.tinyjs_lexer import tokenize
from tinyjs.tinyjs_parser import parse
from tinyjs.tinyjs_interpreter import Evaluator, power
from tinyjs.tinyjs_printer import Printer, display_string
from tinyjs.tinyjs_serialize import serialize, deserialize
from tinyjs.tinyjs_datatypes import (
    Scope, JSObject, NativeFunction, ScriptError, JSRuntimeError, Undefined, FUNCTION_SCOPE,
    is_callable, is_number, is_truthy, to_number, to_string, to_int32,
)

logger = logging.getLogger(__name__)

_FLOAT_PREFIX_RE = re.compile(r'^[+-]?(?:Infinity|\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?)')
_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"

# Method-name prefixes that StdLib groups into namespace objects.
_NAMESPACES = {'console': 'console', 'math': 'Math', 'json': 'JSON'}


def _arg(args: List[Any], i: int) -> Any:
    return args[i] if i < len(args) else Undefined


def _num(args: List[Any], i: int) -> float:
    return to_number(_arg(args, i))


def _enable_diagnostics():
    if logger.getEffectiveLevel() > logging.INFO:
        logger.setLevel(logging.INFO)
    if not logger.hasHandlers():
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        logger.addHandler(handler)


def _finite_or(x: float, fn) -> float:
    if math.isnan(x) or math.isinf(x):
        return x
    return float(fn(x))


# ===================================================================
# 1. Standard globals
# ===================================================================

class StdLib:
    """Python implementations of the global functions every Context starts with.

    Each `_name` method becomes a global `name`; methods named
    `_console_*`, `_math_*` and `_json_*` become members of the `console`,
    `Math` and `JSON` objects. Every method receives the argument list.
    """
    def __init__(self, context: 'Context'):
        self.context = context
        self.evaluator = context.evaluator

    def install(self, scope: Scope):
        namespaces: Dict[str, JSObject] = {js_name: JSObject() for js_name in _NAMESPACES.values()}
        for name, member in inspect.getmembers(self, inspect.ismethod):
            if not name.startswith('_') or name.startswith('__'):
                continue
            head, _, tail = name[1:].partition('_')
            if head in _NAMESPACES and tail:
                owner = _NAMESPACES[head]
                namespaces[owner][tail] = NativeFunction(member, f"{owner}.{tail}")
            else:
                scope.declare(name[1:], NativeFunction(member, name[1:]))
        namespaces['Math']['PI'] = math.pi
        namespaces['Math']['E'] = math.e
        for js_name, obj in namespaces.items():
            scope.declare(js_name, obj)
        scope.declare('undefined', Undefined)
        scope.declare('NaN', math.nan)
        scope.declare('Infinity', math.inf)

    # --- Numbers ---
    def _isNaN(self, args):
        if not args:
            return True
        return math.isnan(to_number(args[0]))

    def _isFinite(self, args):
        if not args:
            return False
        return math.isfinite(to_number(args[0]))

    def _parseInt(self, args):
        text = to_string(_arg(args, 0)).strip()
        sign = 1.0
        if text[:1] in ('+', '-'):
            sign = -1.0 if text[0] == '-' else 1.0
            text = text[1:]
        radix = 0 if len(args) < 2 or args[1] is Undefined else to_int32(to_number(args[1]))
        if radix == 0:
            radix = 10
            if text[:2].lower() == '0x':
                radix = 16
                text = text[2:]
        elif radix == 16 and text[:2].lower() == '0x':
            text = text[2:]
        if radix < 2 or radix > 36:
            return math.nan
        allowed = _DIGITS[:radix]
        end = 0
        while end < len(text) and text[end].lower() in allowed:
            end += 1
        if end == 0:
            return math.nan
        return sign * float(int(text[:end], radix))

    def _parseFloat(self, args):
        m = _FLOAT_PREFIX_RE.match(to_string(_arg(args, 0)).lstrip())
        if not m:
            return math.nan
        return float(m.group(0).replace('Infinity', 'inf'))

    # --- Conversions ---
    def _String(self, args):
        return to_string(args[0]) if args else ""

    def _Number(self, args):
        return to_number(args[0]) if args else 0.0

    def _Boolean(self, args):
        return is_truthy(_arg(args, 0))

    # --- Side Effects and I/O ---
    def _console_log(self, args):
        """Records a stdout event for the host application."""
        message = " ".join(display_string(a) for a in args)
        self.context.side_effects.append({'topics': ['stdout'], 'message': message})
        return Undefined

    # --- Math ---
    def _math_abs(self, args):
        return abs(_num(args, 0))

    def _math_floor(self, args):
        return _finite_or(_num(args, 0), math.floor)

    def _math_ceil(self, args):
        return _finite_or(_num(args, 0), math.ceil)

    def _math_round(self, args):
        return _finite_or(_num(args, 0), lambda x: math.floor(x + 0.5))

    def _math_trunc(self, args):
        return _finite_or(_num(args, 0), math.trunc)

    def _math_sign(self, args):
        x = _num(args, 0)
        if math.isnan(x) or x == 0:
            return x
        return 1.0 if x > 0 else -1.0

    def _math_sqrt(self, args):
        x = _num(args, 0)
        if math.isnan(x) or x < 0:
            return math.nan
        return math.sqrt(x)

    def _math_pow(self, args):
        return power(_num(args, 0), _num(args, 1))

    def _math_min(self, args):
        values = [to_number(a) for a in args]
        if any(math.isnan(v) for v in values):
            return math.nan
        return min(values, default=math.inf)

    def _math_max(self, args):
        values = [to_number(a) for a in args]
        if any(math.isnan(v) for v in values):
            return math.nan
        return max(values, default=-math.inf)

    def _math_random(self, args):
        return random.random()

    # --- JSON ---
    def _json_stringify(self, args):
        value = _arg(args, 0)
        if value is Undefined or is_callable(value):
            return Undefined
        replacer_arg = _arg(args, 1)
        replacer = None
        keys = None
        if is_callable(replacer_arg):
            replacer = lambda k, v: self.evaluator.call(replacer_arg, [k, v])
        elif isinstance(replacer_arg, list):
            keys = {to_string(k) for k in replacer_arg}
        indent_arg = _arg(args, 2)
        indent = None
        if isinstance(indent_arg, str):
            indent = indent_arg[:10] or None
        elif is_number(indent_arg):
            width = 0 if math.isnan(indent_arg) else int(max(0.0, min(10.0, indent_arg)))
            indent = width or None
        try:
            return serialize(value, fmt='json', indent=indent, replacer=replacer, keys=keys)
        except ValueError as e:
            raise JSRuntimeError(f"JSON.stringify: {e}") from e

    def _json_parse(self, args):
        text = to_string(_arg(args, 0))
        try:
            return deserialize(text, fmt='json')
        except ValueError as e:
            raise JSRuntimeError(f"JSON.parse: {e}") from e


# ===================================================================
# 2. Results
# ===================================================================

@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    error_token: Optional[Dict] = None
    side_effects: List[Dict] = field(default_factory=list)

    def format_error(self) -> str:
        """Formats an error message with line and column if available."""
        if self.status != 'error':
            return ""
        return str(self.error_message or "Unknown error")


# ===================================================================
# 3. Context
# ===================================================================

class Context:
    """An interpreter instance with a persistent global environment."""

    def __init__(self, verbose: bool = False):
        self.side_effects: List[Dict] = []
        self.globals = Scope(FUNCTION_SCOPE)
        self.evaluator = Evaluator(self.globals)
        self.stdlib = StdLib(self)
        self.stdlib.install(self.globals)
        self.set_verbose(verbose)

    def set_verbose(self, verbose: bool):
        """Toggles INFO logging of each evaluation's text, tokens and AST.

        If the host has not configured logging, turning this on attaches a
        stderr handler to this module's logger so the output is visible.
        """
        self.verbose = bool(verbose)
        if self.verbose:
            _enable_diagnostics()

    def eval(self, text: str) -> Any:
        """Lexes, parses and evaluates `text`; script errors are raised."""
        self.evaluator.call_stack.clear()
        self.evaluator.scopes.clear()
        if self.verbose:
            logger.info("Text: %s", text)
        tokens = tokenize(text)
        if self.verbose:
            logger.info("Tokens: %s", tokens)
        program = parse(tokens)
        if self.verbose:
            logger.info("Node: %s", program)
        return self.evaluator.eval(program)

    def run(self, source_code: str) -> ExecutionResult:
        """The non-raising form of `eval`: failures are reported in the result."""
        self.side_effects = []
        try:
            value = self.eval(source_code)
            return ExecutionResult(status='success', value=value, side_effects=self.side_effects)
        except RecursionError:
            raise
        except Exception as e:
            err_msg, err_token = self._format_runtime_error(e, source_code)
            self.side_effects.append({'topics': ['stderr'], 'message': err_msg})
            return ExecutionResult(
                status='error',
                error_message=err_msg,
                error_token=err_token,
                side_effects=self.side_effects,
            )

    def _format_runtime_error(self, e: Exception, source: str) -> tuple[str, Optional[dict]]:
        match e:
            case ScriptError():
                msg = f"{e.kind}: {e.message}"
            case _:
                msg = f"InternalError: {e}"

        token = None
        line = getattr(e, 'line', None)
        if line is not None:
            col = getattr(e, 'col', None)
            token = {'line': line, 'col': col}
            msg = f"{msg}\n(line {line}, col {col})"
            excerpt = self._source_context(source, line, col)
            if excerpt:
                msg = f"{msg}\n{excerpt}"

        if isinstance(e, JSRuntimeError):
            st = self._format_stacktrace()
            if st:
                msg += "\n" + st
        return msg, token

    def _source_context(self, source: str, line: int, col: Optional[int], radius: int = 2) -> str:
        lines = source.splitlines()
        if not line or line < 1 or line > len(lines):
            return ""
        start = max(1, line - radius)
        end = min(len(lines), line + radius)
        width = len(str(end))
        out = []
        for i in range(start, end + 1):
            prefix = ">" if i == line else " "
            ln = str(i).rjust(width)
            out.append(f"{prefix} {ln} | {lines[i - 1]}")
            if i == line and col is not None:
                caret = " " * max(col - 1, 0)
                out.append(f"  {' ' * width} | {caret}^")
        return "\n".join(out)

    def _format_stacktrace(self) -> str:
        stack = self.evaluator.call_stack
        if not stack:
            return ""
        pf = Printer(max_depth=1).pformat
        frames = []
        for frame in stack:
            args = " ".join(pf(a) for a in frame.get('args') or [])
            name = frame.get('name') or '(anonymous)'
            frames.append(f"({name} {args})" if args else f"({name})")
        return "Stacktrace: " + " ".join(frames)
