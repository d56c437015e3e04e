"""
AST node types produced by the parser and walked by the evaluator.

Nodes are frozen dataclasses that own their children as tuples. The `loc`
field records the (line, col) of the token that started the node and is
ignored by equality so parser tests can compare trees structurally.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Tuple


@dataclass(frozen=True)
class Node:
    loc: Optional[Tuple[int, int]] = field(default=None, compare=False, repr=False, kw_only=True)


# -----------------------------------------------------------------
# Statements
# -----------------------------------------------------------------

@dataclass(frozen=True)
class Program(Node):
    body: Tuple[Node, ...]


@dataclass(frozen=True)
class Block(Node):
    body: Tuple[Node, ...]


@dataclass(frozen=True)
class Declaration(Node):
    """`var`, `let` or `const` with one or more (name, initializer) pairs."""
    kind: str
    declarators: Tuple[Tuple[str, Optional[Node]], ...]


@dataclass(frozen=True)
class If(Node):
    test: Node
    consequent: Node
    alternate: Optional[Node] = None


@dataclass(frozen=True)
class SwitchCase(Node):
    test: Optional[Node]    # None for `default`
    body: Tuple[Node, ...]


@dataclass(frozen=True)
class Switch(Node):
    discriminant: Node
    cases: Tuple[SwitchCase, ...]


@dataclass(frozen=True)
class While(Node):
    test: Node
    body: Node


@dataclass(frozen=True)
class DoWhile(Node):
    body: Node
    test: Node


@dataclass(frozen=True)
class For(Node):
    init: Optional[Node]
    test: Optional[Node]
    update: Optional[Node]
    body: Node


@dataclass(frozen=True)
class ForIn(Node):
    kind: Optional[str]     # declaration keyword, or None for a bare name
    name: str
    iterable: Node
    body: Node


@dataclass(frozen=True)
class ForOf(Node):
    kind: Optional[str]
    name: str
    iterable: Node
    body: Node


@dataclass(frozen=True)
class Labeled(Node):
    label: str
    body: Node


@dataclass(frozen=True)
class Break(Node):
    label: Optional[str] = None


@dataclass(frozen=True)
class Continue(Node):
    label: Optional[str] = None


@dataclass(frozen=True)
class Return(Node):
    argument: Optional[Node] = None


@dataclass(frozen=True)
class FunctionDeclaration(Node):
    name: str
    params: Tuple[str, ...]
    body: Block


# -----------------------------------------------------------------
# Expressions
# -----------------------------------------------------------------

@dataclass(frozen=True)
class Literal(Node):
    value: Any


@dataclass(frozen=True)
class Identifier(Node):
    name: str


@dataclass(frozen=True)
class ArrayLiteral(Node):
    elements: Tuple[Node, ...]


@dataclass(frozen=True)
class Property(Node):
    key: Node               # Literal string key, or any expression when computed
    value: Node
    computed: bool = False


@dataclass(frozen=True)
class ObjectLiteral(Node):
    properties: Tuple[Property, ...]


@dataclass(frozen=True)
class FunctionExpression(Node):
    name: Optional[str]
    params: Tuple[str, ...]
    body: Node              # Block, or an expression for arrow shorthand
    is_arrow: bool = False


@dataclass(frozen=True)
class Member(Node):
    object: Node
    property: Node
    computed: bool = False


@dataclass(frozen=True)
class Call(Node):
    callee: Node
    arguments: Tuple[Node, ...]


@dataclass(frozen=True)
class Unary(Node):
    operator: str
    operand: Node


@dataclass(frozen=True)
class Update(Node):
    operator: str           # '++' or '--'
    prefix: bool
    target: Node


@dataclass(frozen=True)
class Binary(Node):
    operator: str
    left: Node
    right: Node


@dataclass(frozen=True)
class Logical(Node):
    operator: str           # '&&' or '||'
    left: Node
    right: Node


@dataclass(frozen=True)
class Assign(Node):
    operator: str           # '=' or a compound operator such as '+='
    target: Node
    value: Node


@dataclass(frozen=True)
class Conditional(Node):
    test: Node
    consequent: Node
    alternate: Node


@dataclass(frozen=True)
class Sequence(Node):
    expressions: Tuple[Node, ...]
