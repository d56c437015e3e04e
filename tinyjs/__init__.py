"""tinyjs: an embeddable interpreter for a small JavaScript-like language."""

from tinyjs.tinyjs_datatypes import (
    ScriptError, LexError, ParseError, JSRuntimeError,
    Undefined, JSObject, JSFunction, NativeFunction, Scope,
)
from tinyjs.tinyjs_lexer import Token, tokenize
from tinyjs.tinyjs_parser import Parser, parse
from tinyjs.tinyjs_interpreter import Evaluator
from tinyjs.tinyjs_printer import Printer
from tinyjs.tinyjs_runtime import Context, ExecutionResult, StdLib

__all__ = [
    "ScriptError", "LexError", "ParseError", "JSRuntimeError",
    "Undefined", "JSObject", "JSFunction", "NativeFunction", "Scope",
    "Token", "tokenize", "Parser", "parse",
    "Evaluator", "Printer", "Context", "ExecutionResult", "StdLib",
]
