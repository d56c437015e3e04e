"""
Recursive-descent parser that turns the lexer's token list into an AST.
"""

from typing import Callable, Iterable, List, Optional, Tuple

from tinyjs.tinyjs_datatypes import ParseError, format_number
from tinyjs.tinyjs_lexer import (
    Token, NUMBER, STRING, BOOLEAN, IDENT, KEYWORD, OP, NEWLINE, EOF,
)
from tinyjs.tinyjs_nodes import (
    Node, Program, Block, Declaration, If, Switch, SwitchCase, While, DoWhile,
    For, ForIn, ForOf, Labeled, Break, Continue, Return, FunctionDeclaration,
    Literal, Identifier, ArrayLiteral, ObjectLiteral, Property,
    FunctionExpression, Member, Call, Unary, Update, Binary, Logical, Assign,
    Conditional, Sequence,
)

ASSIGNMENT_OPERATORS = frozenset([
    "=", "+=", "-=", "*=", "/=", "%=", "**=", "&=", "|=", "^=",
    "<<=", ">>=", ">>>=", "||=", "&&=",
])

DECLARATION_KEYWORDS = ("var", "let", "const")


def _loc(tok: Token) -> Tuple[int, int]:
    return (tok.line, tok.col)


class Parser:
    """Builds a Program from tokens. Newline tokens are treated as whitespace."""

    def __init__(self, tokens: Iterable[Token]):
        self.tokens: List[Token] = list(tokens)
        if not self.tokens or self.tokens[-1].kind != EOF:
            last = self.tokens[-1] if self.tokens else None
            self.tokens.append(Token(EOF, None, last.line if last else 1, last.col if last else 1))
        self.pos = 0

    # -----------------------------------------------------------------
    # Token helpers
    # -----------------------------------------------------------------

    def _skip_newlines(self):
        while self.tokens[self.pos].kind == NEWLINE:
            self.pos += 1

    def _index_of(self, offset: int) -> int:
        """Raw index of the offset-th significant token from the cursor."""
        i = self.pos
        seen = 0
        while True:
            tok = self.tokens[i]
            if tok.kind == NEWLINE:
                i += 1
                continue
            if seen == offset or tok.kind == EOF:
                return i
            seen += 1
            i += 1

    def _peek(self, offset: int = 0) -> Token:
        return self.tokens[self._index_of(offset)]

    def _next(self) -> Token:
        self._skip_newlines()
        tok = self.tokens[self.pos]
        if tok.kind != EOF:
            self.pos += 1
        return tok

    def _error(self, expected: str, tok: Optional[Token] = None) -> ParseError:
        tok = tok or self._peek()
        return ParseError(f"expected {expected}, found {tok.describe()}", line=tok.line, col=tok.col)

    def _expect_op(self, op: str, expected: Optional[str] = None) -> Token:
        tok = self._peek()
        if not tok.is_op(op):
            raise self._error(expected or f"'{op}'", tok)
        return self._next()

    def _expect_ident(self, expected: str = "identifier") -> Token:
        tok = self._peek()
        if tok.kind != IDENT:
            raise self._error(expected, tok)
        return self._next()

    def _accept_op(self, op: str) -> bool:
        if self._peek().is_op(op):
            self._next()
            return True
        return False

    # -----------------------------------------------------------------
    # Statements
    # -----------------------------------------------------------------

    def parse(self) -> Program:
        body = self._statement_list()
        tok = self._peek()
        if tok.kind != EOF:
            raise self._error("end of input", tok)
        return Program(tuple(body), loc=(1, 1))

    def _statement_list(self, closing: Callable[[Token], bool] = lambda t: False) -> List[Node]:
        body: List[Node] = []
        while True:
            tok = self._peek()
            if tok.kind == EOF or closing(tok):
                return body
            if tok.is_op(";"):
                self._next()
                continue
            body.append(self._statement())

    def _end_statement(self):
        # Only an explicit ';' is consumed; '}' and end of input terminate
        # implicitly and anything else simply starts the next statement.
        self._accept_op(";")

    def _statement(self) -> Node:
        tok = self._peek()
        if tok.is_op("{"):
            return self._block()
        if tok.is_op(";"):
            # empty statement, as in `while (x);`
            self._next()
            return Block((), loc=_loc(tok))
        if tok.kind == KEYWORD:
            match tok.value:
                case "var" | "let" | "const":
                    decl = self._declaration()
                    self._end_statement()
                    return decl
                case "if":
                    return self._if()
                case "switch":
                    return self._switch()
                case "while":
                    return self._while()
                case "do":
                    return self._do_while()
                case "for":
                    return self._for()
                case "break" | "continue":
                    return self._jump()
                case "return":
                    return self._return()
                case "function":
                    return self._function_declaration()
        if tok.kind == IDENT and self._peek(1).is_op(":"):
            return self._labeled()
        expr = self._expression()
        self._end_statement()
        return expr

    def _block(self) -> Block:
        start = self._expect_op("{")
        body = self._statement_list(lambda t: t.is_op("}"))
        self._expect_op("}", "'}' to close block")
        return Block(tuple(body), loc=_loc(start))

    def _declaration(self) -> Declaration:
        start = self._next()
        declarators = []
        while True:
            name = self._expect_ident(f"variable name after '{start.value}'")
            init = None
            if self._accept_op("="):
                init = self._assignment()
            declarators.append((name.value, init))
            if not self._accept_op(","):
                break
        return Declaration(start.value, tuple(declarators), loc=_loc(start))

    def _paren_expression(self) -> Node:
        self._expect_op("(")
        expr = self._expression()
        self._expect_op(")")
        return expr

    def _if(self) -> If:
        start = self._next()
        test = self._paren_expression()
        consequent = self._statement()
        alternate = None
        if self._peek().is_keyword("else"):
            self._next()
            alternate = self._statement()
        return If(test, consequent, alternate, loc=_loc(start))

    def _switch(self) -> Switch:
        start = self._next()
        discriminant = self._paren_expression()
        self._expect_op("{", "'{' to open switch body")
        cases = []
        seen_default = False
        ends_case = lambda t: t.is_op("}") or t.is_keyword("case", "default")
        while not self._peek().is_op("}"):
            tok = self._peek()
            if tok.is_keyword("case"):
                self._next()
                test = self._expression()
            elif tok.is_keyword("default"):
                if seen_default:
                    raise ParseError("more than one default clause in switch", line=tok.line, col=tok.col)
                seen_default = True
                self._next()
                test = None
            else:
                raise self._error("'case' or 'default'", tok)
            self._expect_op(":")
            body = self._statement_list(ends_case)
            cases.append(SwitchCase(test, tuple(body), loc=_loc(tok)))
        self._expect_op("}", "'}' to close switch body")
        return Switch(discriminant, tuple(cases), loc=_loc(start))

    def _while(self) -> While:
        start = self._next()
        test = self._paren_expression()
        body = self._statement()
        return While(test, body, loc=_loc(start))

    def _do_while(self) -> DoWhile:
        start = self._next()
        body = self._statement()
        tok = self._peek()
        if not tok.is_keyword("while"):
            raise self._error("'while' after do body", tok)
        self._next()
        test = self._paren_expression()
        self._end_statement()
        return DoWhile(body, test, loc=_loc(start))

    def _for(self) -> Node:
        start = self._next()
        self._expect_op("(", "'(' after for")
        init = None
        tok = self._peek()
        if tok.is_keyword(*DECLARATION_KEYWORDS):
            if self._peek(1).kind == IDENT and self._peek(2).is_keyword("in", "of"):
                kind = self._next().value
                return self._for_each(start, kind)
            init = self._declaration()
        elif tok.kind == IDENT and self._peek(1).is_keyword("in", "of"):
            return self._for_each(start, None)
        elif not tok.is_op(";"):
            init = self._expression()

        self._expect_op(";", "';' after for initializer")
        test = None if self._peek().is_op(";") else self._expression()
        self._expect_op(";", "';' after for condition")
        update = None if self._peek().is_op(")") else self._expression()
        self._expect_op(")", "')' to close for header")
        body = self._statement()
        return For(init, test, update, body, loc=_loc(start))

    def _for_each(self, start: Token, kind: Optional[str]) -> Node:
        name = self._expect_ident().value
        which = self._next().value
        iterable = self._expression()
        self._expect_op(")", f"')' to close for...{which} header")
        body = self._statement()
        node_cls = ForIn if which == "in" else ForOf
        return node_cls(kind, name, iterable, body, loc=_loc(start))

    def _jump(self) -> Node:
        start = self._next()
        label = None
        # A label must sit on the same line as the keyword.
        if self.tokens[self.pos].kind == IDENT:
            label = self._next().value
        self._end_statement()
        node_cls = Break if start.value == "break" else Continue
        return node_cls(label, loc=_loc(start))

    def _return(self) -> Return:
        start = self._next()
        argument = None
        tok = self._peek()
        if not (tok.is_op(";", "}") or tok.kind == EOF):
            argument = self._expression()
        self._end_statement()
        return Return(argument, loc=_loc(start))

    def _params(self) -> Tuple[str, ...]:
        self._expect_op("(", "'(' to open parameter list")
        params = []
        if not self._peek().is_op(")"):
            while True:
                params.append(self._expect_ident("parameter name").value)
                if not self._accept_op(","):
                    break
        self._expect_op(")", "')' to close parameter list")
        return tuple(params)

    def _function_declaration(self) -> FunctionDeclaration:
        start = self._next()
        name = self._expect_ident("function name").value
        params = self._params()
        body = self._block()
        return FunctionDeclaration(name, params, body, loc=_loc(start))

    def _labeled(self) -> Labeled:
        label = self._next()
        self._next()  # ':'
        body = self._statement()
        return Labeled(label.value, body, loc=_loc(label))

    # -----------------------------------------------------------------
    # Expressions
    # -----------------------------------------------------------------

    def _expression(self) -> Node:
        start = self._peek()
        first = self._assignment()
        if not self._peek().is_op(","):
            return first
        expressions = [first]
        while self._accept_op(","):
            expressions.append(self._assignment())
        return Sequence(tuple(expressions), loc=_loc(start))

    def _is_arrow_ahead(self) -> bool:
        tok = self._peek()
        if tok.kind == IDENT:
            return self._peek(1).is_op("=>")
        if not tok.is_op("("):
            return False
        i = self._index_of(0)
        depth = 0
        while True:
            t = self.tokens[i]
            if t.kind == EOF:
                return False
            if t.is_op("("):
                depth += 1
            elif t.is_op(")"):
                depth -= 1
                if depth == 0:
                    break
            i += 1
        i += 1
        while self.tokens[i].kind == NEWLINE:
            i += 1
        return self.tokens[i].is_op("=>")

    def _arrow(self) -> FunctionExpression:
        start = self._peek()
        if start.kind == IDENT:
            params: Tuple[str, ...] = (self._next().value,)
        else:
            params = self._params()
        self._expect_op("=>")
        if self._peek().is_op("{"):
            body = self._block()
        else:
            body = self._assignment()
        return FunctionExpression(None, params, body, is_arrow=True, loc=_loc(start))

    def _assignment(self) -> Node:
        if self._is_arrow_ahead():
            return self._arrow()
        start = self._peek()
        left = self._conditional()
        tok = self._peek()
        if tok.kind == OP and tok.value in ASSIGNMENT_OPERATORS:
            if not isinstance(left, (Identifier, Member)):
                raise ParseError("invalid assignment target", line=tok.line, col=tok.col)
            self._next()
            value = self._assignment()
            return Assign(tok.value, left, value, loc=_loc(start))
        return left

    def _conditional(self) -> Node:
        start = self._peek()
        test = self._logical_or()
        if not self._accept_op("?"):
            return test
        consequent = self._assignment()
        self._expect_op(":", "':' in conditional expression")
        alternate = self._assignment()
        return Conditional(test, consequent, alternate, loc=_loc(start))

    def _binary_level(self, operators: Tuple[str, ...], operand: Callable[[], Node], node_cls=Binary) -> Node:
        start = self._peek()
        left = operand()
        while True:
            tok = self._peek()
            if not tok.is_op(*operators):
                return left
            self._next()
            left = node_cls(tok.value, left, operand(), loc=_loc(start))

    def _logical_or(self) -> Node:
        return self._binary_level(("||",), self._logical_and, Logical)

    def _logical_and(self) -> Node:
        return self._binary_level(("&&",), self._relational, Logical)

    def _relational(self) -> Node:
        return self._binary_level(("<", "<=", ">", ">="), self._equality)

    def _equality(self) -> Node:
        return self._binary_level(("==", "===", "!=", "!=="), self._shift)

    def _shift(self) -> Node:
        return self._binary_level(("<<", ">>", ">>>"), self._bitwise_or)

    def _bitwise_or(self) -> Node:
        return self._binary_level(("|",), self._bitwise_xor)

    def _bitwise_xor(self) -> Node:
        return self._binary_level(("^",), self._bitwise_and)

    def _bitwise_and(self) -> Node:
        return self._binary_level(("&",), self._additive)

    def _additive(self) -> Node:
        return self._binary_level(("+", "-"), self._multiplicative)

    def _multiplicative(self) -> Node:
        return self._binary_level(("*", "/", "%"), self._exponent)

    def _exponent(self) -> Node:
        start = self._peek()
        base = self._unary()
        if self._peek().is_op("**"):
            self._next()
            return Binary("**", base, self._exponent(), loc=_loc(start))
        return base

    def _check_update_target(self, target: Node, tok: Token):
        if not isinstance(target, (Identifier, Member)):
            raise ParseError(f"invalid operand for '{tok.value}'", line=tok.line, col=tok.col)

    def _unary(self) -> Node:
        tok = self._peek()
        if tok.is_op("+", "-", "~", "!"):
            self._next()
            return Unary(tok.value, self._unary(), loc=_loc(tok))
        if tok.is_op("++", "--"):
            self._next()
            target = self._unary()
            self._check_update_target(target, tok)
            return Update(tok.value, True, target, loc=_loc(tok))
        if tok.is_keyword("typeof"):
            self._next()
            return Unary("typeof", self._unary(), loc=_loc(tok))
        return self._postfix()

    def _postfix(self) -> Node:
        start = self._peek()
        expr = self._call_member()
        tok = self._peek()
        if tok.is_op("++", "--"):
            self._check_update_target(expr, tok)
            self._next()
            return Update(tok.value, False, expr, loc=_loc(start))
        return expr

    def _call_member(self) -> Node:
        start = self._peek()
        expr = self._primary()
        while True:
            tok = self._peek()
            if tok.is_op("."):
                self._next()
                name = self._next()
                if name.kind not in (IDENT, KEYWORD, BOOLEAN):
                    raise self._error("property name after '.'", name)
                key = name.value if name.kind != BOOLEAN else ("true" if name.value else "false")
                expr = Member(expr, Literal(key, loc=_loc(name)), False, loc=_loc(start))
            elif tok.is_op("["):
                self._next()
                prop = self._expression()
                self._expect_op("]", "']' after computed member")
                expr = Member(expr, prop, True, loc=_loc(start))
            elif tok.is_op("("):
                expr = Call(expr, self._arguments(), loc=_loc(start))
            else:
                return expr

    def _arguments(self) -> Tuple[Node, ...]:
        self._expect_op("(")
        args = []
        while not self._peek().is_op(")"):
            args.append(self._assignment())
            if not self._accept_op(","):
                break
        self._expect_op(")", "')' to close argument list")
        return tuple(args)

    def _primary(self) -> Node:
        tok = self._peek()
        if tok.kind in (NUMBER, STRING, BOOLEAN):
            self._next()
            return Literal(tok.value, loc=_loc(tok))
        if tok.kind == IDENT:
            self._next()
            return Identifier(tok.value, loc=_loc(tok))
        if tok.is_keyword("null"):
            self._next()
            return Literal(None, loc=_loc(tok))
        if tok.is_keyword("function"):
            return self._function_expression()
        if tok.is_op("("):
            return self._paren_expression()
        if tok.is_op("["):
            return self._array_literal()
        if tok.is_op("{"):
            return self._object_literal()
        raise self._error("expression", tok)

    def _function_expression(self) -> FunctionExpression:
        start = self._next()
        name = None
        if self._peek().kind == IDENT:
            name = self._next().value
        params = self._params()
        body = self._block()
        return FunctionExpression(name, params, body, loc=_loc(start))

    def _array_literal(self) -> ArrayLiteral:
        start = self._next()
        elements = []
        while not self._peek().is_op("]"):
            elements.append(self._assignment())
            if not self._accept_op(","):
                break
        self._expect_op("]", "']' to close array literal")
        return ArrayLiteral(tuple(elements), loc=_loc(start))

    def _object_literal(self) -> ObjectLiteral:
        start = self._next()
        properties = []
        while not self._peek().is_op("}"):
            properties.append(self._property())
            if not self._accept_op(","):
                break
        self._expect_op("}", "'}' to close object literal")
        return ObjectLiteral(tuple(properties), loc=_loc(start))

    def _property(self) -> Property:
        tok = self._next()
        computed = False
        name: Optional[str] = None
        match tok.kind:
            case "ident" | "keyword" | "string":
                name = tok.value
            case "boolean":
                name = "true" if tok.value else "false"
            case "number":
                name = format_number(tok.value)
            case _:
                if not tok.is_op("["):
                    raise self._error("property name", tok)
                key_expr = self._assignment()
                self._expect_op("]", "']' after computed property name")
                computed = True

        key: Node = key_expr if computed else Literal(name, loc=_loc(tok))
        if self._peek().is_op("("):
            params = self._params()
            body = self._block()
            value: Node = FunctionExpression(name, params, body, loc=_loc(tok))
        elif self._accept_op(":"):
            value = self._assignment()
        elif tok.kind == IDENT and self._peek().is_op(",", "}"):
            value = Identifier(name, loc=_loc(tok))
        else:
            raise self._error("':' after property name")
        return Property(key, value, computed, loc=_loc(tok))


def parse(tokens: Iterable[Token]) -> Program:
    """Parses a token list into a Program node."""
    return Parser(tokens).parse()
