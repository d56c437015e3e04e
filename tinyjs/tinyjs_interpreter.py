"""
The core tinyjs interpreter: a tree-walking Evaluator over the parser's AST.
"""
import logging
import math
from typing import Any, Iterable, List, Optional, Tuple

from tinyjs.tinyjs_datatypes import (
    Scope, JSObject, JSFunction, NativeFunction, JSRuntimeError,
    Undefined, FUNCTION_SCOPE, BLOCK_SCOPE,
    is_number, is_truthy, is_callable, type_of, to_number, to_string,
    to_int32, to_uint32, strict_equals, loose_equals, array_index, property_key,
)
from tinyjs.tinyjs_nodes import (
    Node, Program, Block, Declaration, If, Switch, While, DoWhile, For, ForIn, ForOf,
    Labeled, Break, Continue, Return, FunctionDeclaration,
    Literal, Identifier, ArrayLiteral, ObjectLiteral, FunctionExpression, Member, Call,
    Unary, Update, Binary, Logical, Assign, Conditional, Sequence,
)

logger = logging.getLogger(__name__)


# =================================================================
# Control-flow signals
# =================================================================

class BreakSignal:
    __slots__ = ("label",)

    def __init__(self, label: Optional[str] = None):
        self.label = label

    def __repr__(self):
        return f"BreakSignal({self.label!r})"


class ContinueSignal:
    __slots__ = ("label",)

    def __init__(self, label: Optional[str] = None):
        self.label = label

    def __repr__(self):
        return f"ContinueSignal({self.label!r})"


class ReturnSignal:
    __slots__ = ("value",)

    def __init__(self, value: Any = Undefined):
        self.value = value

    def __repr__(self):
        return f"ReturnSignal({self.value!r})"


def is_signal(x) -> bool:
    return isinstance(x, (BreakSignal, ContinueSignal, ReturnSignal))


def _signal_error(signal) -> str:
    word = "break" if isinstance(signal, BreakSignal) else "continue"
    if signal.label is not None:
        return f"Undefined label '{signal.label}' for {word} statement"
    return f"Illegal {word} statement"


# Outcomes of a signal reaching a loop.
_BREAK = "break"
_CONTINUE = "continue"
_PROPAGATE = "propagate"

_LOOPS = (While, DoWhile, For, ForIn, ForOf)


# =================================================================
# Numeric helpers
# =================================================================

def _divide(a: float, b: float) -> float:
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _modulo(a: float, b: float) -> float:
    if math.isnan(a) or math.isnan(b) or math.isinf(a) or b == 0:
        return math.nan
    if math.isinf(b):
        return a
    return math.fmod(a, b)


def _is_odd_integer(x: float) -> bool:
    return float(x).is_integer() and x % 2 == 1


def power(a: float, b: float) -> float:
    if math.isnan(b):
        return math.nan
    if b == 0:
        return 1.0
    if math.isnan(a) or (abs(a) == 1 and math.isinf(b)):
        return math.nan
    if a == 0 and b < 0:
        if _is_odd_integer(b):
            return math.copysign(math.inf, a)
        return math.inf
    try:
        return math.pow(a, b)
    except OverflowError:
        if a < 0 and _is_odd_integer(b):
            return -math.inf
        return math.inf
    except ValueError:
        # negative base with a fractional exponent
        return math.nan


def _shift(op: str, a: float, b: float) -> float:
    count = to_uint32(b) & 31
    if op == "<<":
        return float(to_int32(float(to_int32(a) << count)))
    if op == ">>":
        return float(to_int32(a) >> count)
    return float(to_uint32(a) >> count)


class Evaluator:
    """Walks AST nodes against an explicit stack of scope frames.

    The global frame sits beneath the stack and is consulted last. Statements
    evaluate to a value or to one of the control-flow signals above; runtime
    failures raise JSRuntimeError.
    """

    def __init__(self, globals: Optional[Scope] = None):
        self.globals = globals if globals is not None else Scope(FUNCTION_SCOPE)
        self.scopes: List[Scope] = []
        self.call_stack: List[dict] = []
        self.current_node: Optional[Node] = None

    # -------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------

    def eval(self, node: Node) -> Any:
        """Public entry point. Evaluates a program (or any node) to a value."""
        self.current_node = node
        try:
            result = self._eval(node)
        except JSRuntimeError as e:
            if e.line is None:
                loc = getattr(self.current_node, 'loc', None)
                if loc is not None:
                    e.line, e.col = loc
            raise
        if isinstance(result, ReturnSignal):
            raise self._error(node, "Illegal return statement")
        if isinstance(result, (BreakSignal, ContinueSignal)):
            raise self._error(node, _signal_error(result))
        return result

    def call(self, func: Any, args: List[Any], this: Any = Undefined, call_site: Optional[Node] = None) -> Any:
        """Invokes a script or native function with already-evaluated arguments."""
        if isinstance(func, NativeFunction):
            self._push_frame(func.name or '(native)', func, args, call_site)
            result = func(args)
            self._pop_frame()
            return result
        if not isinstance(func, JSFunction):
            raise self._error(call_site, f"{to_string(func)} is not a function")

        name = func.name or '(anonymous)'
        logger.debug("call %s argc=%d depth=%d", name, len(args), len(self.call_stack))
        frame = Scope(FUNCTION_SCOPE)
        frame.declare('globalThis', JSObject(dict(self.globals.bindings)))
        if not func.is_arrow:
            frame.declare('this', this)
            frame.declare('arguments', list(args))
        if func.name:
            frame.declare(func.name, func)
        for i, param in enumerate(func.params):
            frame.declare(param, args[i] if i < len(args) else Undefined)

        self._push_frame(name, func, args, call_site)
        self.scopes.append(frame)
        try:
            if isinstance(func.body, Block):
                result = self._eval(func.body)
            else:
                result = ReturnSignal(self._eval(func.body))
        finally:
            self.scopes.pop()

        if isinstance(result, (BreakSignal, ContinueSignal)):
            raise self._error(call_site, _signal_error(result))
        self._pop_frame()
        if isinstance(result, ReturnSignal):
            return result.value
        return Undefined

    # -------------------------------------------------------------
    # Bookkeeping
    # -------------------------------------------------------------

    def _push_frame(self, name, func, args, call_site_node):
        self.call_stack.append({
            'name': name,
            'func': func,
            'args': args,
            'call_site': getattr(call_site_node, 'loc', None),
        })

    def _pop_frame(self):
        if self.call_stack:
            self.call_stack.pop()

    def _error(self, node: Optional[Node], message: str) -> JSRuntimeError:
        loc = getattr(node, 'loc', None)
        if loc is None:
            return JSRuntimeError(message)
        return JSRuntimeError(message, line=loc[0], col=loc[1])

    def _find_scope(self, name: str) -> Optional[Scope]:
        for scope in reversed(self.scopes):
            if name in scope:
                return scope
        if name in self.globals:
            return self.globals
        return None

    def _var_scope(self) -> Scope:
        for scope in reversed(self.scopes):
            if scope.is_function:
                return scope
        return self.globals

    def lookup(self, name: str, node: Optional[Node] = None) -> Any:
        scope = self._find_scope(name)
        if scope is None:
            raise self._error(node, f"{name} is not defined")
        return scope[name]

    def declare(self, kind: str, name: str, value: Any):
        """Binds a declared name: `var` in the nearest function frame, `let`/`const` in the innermost frame."""
        if kind == 'var':
            target = self._var_scope()
        else:
            target = self.scopes[-1] if self.scopes else self.globals
        target.declare(name, value, constant=(kind == 'const'))

    def assign(self, name: str, value: Any):
        """Plain assignment: overwrite the nearest binding, or create a global."""
        scope = self._find_scope(name) or self.globals
        scope.assign(name, value)

    def _hoist(self, body: Iterable[Node]):
        for stmt in body:
            if isinstance(stmt, FunctionDeclaration):
                self.declare('var', stmt.name, JSFunction(stmt.name, stmt.params, stmt.body))

    # -------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------

    def _eval(self, node: Node) -> Any:
        self.current_node = node
        match node:
            case Literal():
                return node.value
            case Identifier():
                return self.lookup(node.name, node)
            case Binary():
                return self.binary_op(node.operator, self._eval(node.left), self._eval(node.right), node)
            case Logical():
                return self._eval_logical(node)
            case Assign():
                return self._eval_assign(node)
            case Update():
                return self._eval_update(node)
            case Unary():
                return self._eval_unary(node)
            case Member():
                obj = self._eval(node.object)
                return self.get_member(obj, self._eval(node.property), node)
            case Call():
                return self._eval_call(node)
            case Conditional():
                if is_truthy(self._eval(node.test)):
                    return self._eval(node.consequent)
                return self._eval(node.alternate)
            case Sequence():
                result = Undefined
                for expr in node.expressions:
                    result = self._eval(expr)
                return result
            case ArrayLiteral():
                return [self._eval(e) for e in node.elements]
            case ObjectLiteral():
                return self._eval_object(node)
            case FunctionExpression():
                return JSFunction(node.name, node.params, node.body, node.is_arrow)
            case Program():
                self._hoist(node.body)
                return self._eval_statements(node.body)
            case Block():
                return self._eval_block(node)
            case Declaration():
                return self._eval_declaration(node)
            case If():
                if is_truthy(self._eval(node.test)):
                    return self._eval(node.consequent)
                if node.alternate is not None:
                    return self._eval(node.alternate)
                return Undefined
            case Switch():
                return self._eval_switch(node, ())
            case While() | DoWhile() | For() | ForIn() | ForOf():
                return self._eval_loop(node, ())
            case Labeled():
                return self._eval_labeled(node)
            case Break():
                return BreakSignal(node.label)
            case Continue():
                return ContinueSignal(node.label)
            case Return():
                value = Undefined if node.argument is None else self._eval(node.argument)
                return ReturnSignal(value)
            case FunctionDeclaration():
                # Reached only outside a statement list, e.g. `if (x) function f() {}`.
                self.declare('var', node.name, JSFunction(node.name, node.params, node.body))
                return Undefined
            case _:
                raise self._error(node, f"Cannot evaluate node {type(node).__name__}")

    # -------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------

    def _eval_statements(self, body: Iterable[Node]) -> Any:
        result = Undefined
        for stmt in body:
            if isinstance(stmt, FunctionDeclaration):
                # bound when the list was hoisted
                continue
            value = self._eval(stmt)
            if is_signal(value):
                return value
            result = value
        return result

    def _eval_block(self, node: Block) -> Any:
        self.scopes.append(Scope(BLOCK_SCOPE))
        try:
            self._hoist(node.body)
            return self._eval_statements(node.body)
        finally:
            self.scopes.pop()

    def _eval_declaration(self, node: Declaration) -> Any:
        result = Undefined
        for name, init in node.declarators:
            if init is None:
                # `var x;` leaves an existing binding untouched
                if node.kind == 'var' and name in self._var_scope():
                    result = Undefined
                    continue
                value = Undefined
            else:
                value = self._eval(init)
            self.declare(node.kind, name, value)
            result = value
        return result

    def _eval_labeled(self, node: Labeled) -> Any:
        labels = [node.label]
        body = node.body
        while isinstance(body, Labeled):
            labels.append(body.label)
            body = body.body
        if isinstance(body, _LOOPS):
            result = self._eval_loop(body, tuple(labels))
        elif isinstance(body, Switch):
            result = self._eval_switch(body, tuple(labels))
        else:
            result = self._eval(body)
        if isinstance(result, BreakSignal) and result.label in labels:
            return Undefined
        return result

    def _loop_control(self, signal, labels: Tuple[str, ...]) -> str:
        if isinstance(signal, BreakSignal) and (signal.label is None or signal.label in labels):
            return _BREAK
        if isinstance(signal, ContinueSignal) and (signal.label is None or signal.label in labels):
            return _CONTINUE
        return _PROPAGATE

    def _eval_loop(self, node: Node, labels: Tuple[str, ...]) -> Any:
        match node:
            case While():
                return self._run_loop(node.body, labels, test=node.test)
            case DoWhile():
                return self._run_loop(node.body, labels, test=node.test, test_first=False)
            case For():
                pushed = isinstance(node.init, Declaration) and node.init.kind != 'var'
                if pushed:
                    self.scopes.append(Scope(BLOCK_SCOPE))
                try:
                    if node.init is not None:
                        self._eval(node.init)
                    return self._run_loop(node.body, labels, test=node.test, update=node.update)
                finally:
                    if pushed:
                        self.scopes.pop()
            case ForIn() | ForOf():
                iterable = self._eval(node.iterable)
                if isinstance(node, ForIn):
                    items = self._keys_of(iterable, node)
                else:
                    items = self._values_of(iterable, node)
                if node.kind is not None:
                    self.scopes.append(Scope(BLOCK_SCOPE))
                try:
                    return self._run_loop(node.body, labels, items=items, binding=(node.kind, node.name))
                finally:
                    if node.kind is not None:
                        self.scopes.pop()

    def _run_loop(self, body: Node, labels: Tuple[str, ...], test: Optional[Node] = None,
                  update: Optional[Node] = None, test_first: bool = True,
                  items: Optional[Iterable[Any]] = None, binding=None) -> Any:
        """Shared driver for every loop form; returns the last completed body value."""
        result = Undefined
        iterator = iter(items) if items is not None else None
        first = True
        while True:
            if iterator is not None:
                try:
                    item = next(iterator)
                except StopIteration:
                    break
                kind, name = binding
                if kind is None:
                    self.assign(name, item)
                else:
                    self.declare(kind, name, item)
            elif test is not None and (test_first or not first):
                if not is_truthy(self._eval(test)):
                    break
            first = False

            value = self._eval(body)
            if is_signal(value):
                action = self._loop_control(value, labels)
                if action == _BREAK:
                    break
                if action == _PROPAGATE:
                    return value
            else:
                result = value
            if update is not None:
                self._eval(update)
        return result

    def _keys_of(self, value: Any, node: Node) -> List[str]:
        if isinstance(value, JSObject):
            return list(value.keys())
        if isinstance(value, (list, str)):
            return [str(i) for i in range(len(value))]
        raise self._error(node, f"Cannot iterate over the keys of {type_of(value)} {to_string(value)}")

    def _values_of(self, value: Any, node: Node) -> Iterable[Any]:
        if isinstance(value, list):
            return self._live_elements(value)
        if isinstance(value, str):
            return list(value)
        raise self._error(node, f"{to_string(value)} is not iterable")

    def _live_elements(self, array: list):
        # Re-reads the length each step so pushes during the loop are visited.
        i = 0
        while i < len(array):
            yield array[i]
            i += 1

    def _eval_switch(self, node: Switch, labels: Tuple[str, ...]) -> Any:
        discriminant = self._eval(node.discriminant)
        self.scopes.append(Scope(BLOCK_SCOPE))
        try:
            chosen = None
            for case in node.cases:
                if case.test is not None and loose_equals(discriminant, self._eval(case.test)):
                    chosen = case
                    break
            if chosen is None:
                chosen = next((case for case in node.cases if case.test is None), None)
            if chosen is None:
                return Undefined
            self._hoist(chosen.body)
            result = self._eval_statements(chosen.body)
            if isinstance(result, BreakSignal) and (result.label is None or result.label in labels):
                return Undefined
            return result
        finally:
            self.scopes.pop()

    # -------------------------------------------------------------
    # Expressions
    # -------------------------------------------------------------

    def _eval_object(self, node: ObjectLiteral) -> JSObject:
        obj = JSObject()
        for prop in node.properties:
            if prop.computed:
                key = property_key(self._eval(prop.key))
            else:
                key = prop.key.value
            obj[key] = self._eval(prop.value)
        return obj

    def _eval_logical(self, node: Logical) -> Any:
        left = self._eval(node.left)
        if node.operator == '&&':
            return self._eval(node.right) if is_truthy(left) else left
        return left if is_truthy(left) else self._eval(node.right)

    def _require_number(self, value: Any, op: str, node: Node) -> float:
        if not is_number(value):
            raise self._error(node, f"Operator '{op}' requires a number, got {type_of(value)}")
        return float(value)

    def _eval_unary(self, node: Unary) -> Any:
        op = node.operator
        if op == 'typeof':
            if isinstance(node.operand, Identifier) and self._find_scope(node.operand.name) is None:
                return "undefined"
            return type_of(self._eval(node.operand))
        value = self._eval(node.operand)
        match op:
            case '!':
                return not is_truthy(value)
            case '+':
                # no numeric conversion
                return value
            case '-':
                return -self._require_number(value, op, node)
            case '~':
                return float(~to_int32(self._require_number(value, op, node)))
        raise self._error(node, f"Unknown unary operator '{op}'")

    def binary_op(self, op: str, left: Any, right: Any, node: Optional[Node] = None) -> Any:
        match op:
            case '===':
                return strict_equals(left, right)
            case '!==':
                return not strict_equals(left, right)
            case '==':
                return loose_equals(left, right)
            case '!=':
                return not loose_equals(left, right)
            case '<' | '<=' | '>' | '>=':
                return self._compare(op, left, right)
            case '+':
                if isinstance(left, str) and isinstance(right, str):
                    return left + right
                if is_number(left) and is_number(right):
                    return float(left) + float(right)
                raise self._error(
                    node, f"Operator '+' expects two numbers or two strings, got {type_of(left)} and {type_of(right)}")

        a = self._require_number(left, op, node)
        b = self._require_number(right, op, node)
        match op:
            case '-':
                return a - b
            case '*':
                return a * b
            case '/':
                return _divide(a, b)
            case '%':
                return _modulo(a, b)
            case '**':
                return power(a, b)
            case '&':
                return float(to_int32(a) & to_int32(b))
            case '|':
                return float(to_int32(a) | to_int32(b))
            case '^':
                return float(to_int32(a) ^ to_int32(b))
            case '<<' | '>>' | '>>>':
                return _shift(op, a, b)
        raise self._error(node, f"Unknown binary operator '{op}'")

    def _compare(self, op: str, left: Any, right: Any) -> bool:
        if isinstance(left, str) and isinstance(right, str):
            a, b = left, right
        else:
            a, b = to_number(left), to_number(right)
        match op:
            case '<':
                return a < b
            case '<=':
                return a <= b
            case '>':
                return a > b
            case _:
                return a >= b

    # -- references (assignment targets) --

    def _reference(self, target: Node):
        if isinstance(target, Identifier):
            return (target.name,)
        if isinstance(target, Member):
            return (self._eval(target.object), self._eval(target.property))
        raise self._error(target, "Invalid assignment target")

    def _read_reference(self, ref, target: Node) -> Any:
        if len(ref) == 1:
            return self.lookup(ref[0], target)
        return self.get_member(ref[0], ref[1], target)

    def _write_reference(self, ref, value: Any, target: Node):
        if len(ref) == 1:
            self.assign(ref[0], value)
        else:
            self.set_member(ref[0], ref[1], value, target)

    def _eval_assign(self, node: Assign) -> Any:
        op = node.operator
        ref = self._reference(node.target)
        if op == '=':
            value = self._eval(node.value)
        elif op in ('||=', '&&='):
            current = self._read_reference(ref, node.target)
            if is_truthy(current) == (op == '||='):
                return current
            value = self._eval(node.value)
        else:
            current = self._read_reference(ref, node.target)
            value = self.binary_op(op[:-1], current, self._eval(node.value), node)
        self._write_reference(ref, value, node.target)
        return value

    def _eval_update(self, node: Update) -> Any:
        ref = self._reference(node.target)
        current = self._require_number(self._read_reference(ref, node.target), node.operator, node)
        updated = current + 1 if node.operator == '++' else current - 1
        self._write_reference(ref, updated, node.target)
        return updated if node.prefix else current

    # -- members --

    def get_member(self, obj: Any, key: Any, node: Optional[Node] = None) -> Any:
        if obj is Undefined or obj is None:
            raise self._error(node, f"Cannot read properties of {to_string(obj)} (reading '{to_string(key)}')")
        if isinstance(obj, (list, str)):
            if key == 'length':
                return float(len(obj))
            index = array_index(key)
            if index is not None and index < len(obj):
                return obj[index]
            return Undefined
        if isinstance(obj, JSObject):
            return obj.get(property_key(key), Undefined)
        return Undefined

    def set_member(self, obj: Any, key: Any, value: Any, node: Optional[Node] = None):
        if isinstance(obj, list):
            if key == 'length':
                if not is_number(value) or value < 0 or not float(value).is_integer():
                    raise self._error(node, "Invalid array length")
                size = int(value)
                if size < len(obj):
                    del obj[size:]
                else:
                    obj.extend([Undefined] * (size - len(obj)))
                return
            index = array_index(key)
            if index is None:
                raise self._error(node, f"Invalid array index {to_string(key)}")
            if index >= len(obj):
                obj.extend([Undefined] * (index - len(obj) + 1))
            obj[index] = value
            return
        if isinstance(obj, JSObject):
            obj[property_key(key)] = value
            return
        raise self._error(node, f"Cannot set property '{to_string(key)}' of {type_of(obj)} {to_string(obj)}")

    # -- calls --

    def _describe_callee(self, callee: Node) -> str:
        if isinstance(callee, Identifier):
            return callee.name
        if isinstance(callee, Member) and not callee.computed and isinstance(callee.property, Literal):
            return f"{self._describe_callee(callee.object)}.{callee.property.value}"
        return "expression"

    def _eval_call(self, node: Call) -> Any:
        callee = node.callee
        if isinstance(callee, Member):
            this = self._eval(callee.object)
            key = self._eval(callee.property)
            if isinstance(this, list) and key == 'push':
                this.extend([self._eval(arg) for arg in node.arguments])
                return float(len(this))
            func = self.get_member(this, key, callee)
        else:
            this = Undefined
            func = self._eval(callee)
        args = [self._eval(arg) for arg in node.arguments]
        if not is_callable(func):
            raise self._error(node, f"{self._describe_callee(callee)} is not a function")
        return self.call(func, args, this, node)
