"""
Formula evaluation for collections.

Formulas are derived per-document values declared on a collection. They
are computed on every run, shown next to the document's properties, and
never written back into its metadata.

Expression language:
- literals: 12, 1.5, "text", 'text', true, false, null
- property references: file.name, status, note.status, formula.other
- operators: + - * / %  == != < <= > >=  && || !  and parentheses
- functions: if, lower, upper, length, round, min, max, date, concat, contains
"""

import re
from collections.abc import Iterable
from datetime import datetime
from typing import Any

import structlog

from .diagnostics import DiagnosticCode, DiagnosticLog
from .models import Collection, Document, FormulaDef
from .query import PropertyResolver
from .utils import parse_date

logger = structlog.get_logger(__name__)

TOKEN_PATTERN = re.compile(
    r"""
    (?P<space>\s+)
  | (?P<number>\d+(?:\.\d+)?)
  | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
  | (?P<name>[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)*)
  | (?P<op>&&|\|\||==|!=|<=|>=|[-+*/%<>!(),])
    """,
    re.VERBOSE,
)

ESCAPE_PATTERN = re.compile(r"\\(.)")

KEYWORDS = {"true": True, "false": False, "null": None}

MAX_NESTING = 32


class FormulaError(ValueError):
    """Raised when a formula cannot be parsed or evaluated."""
    pass


# ============== Parsing ==============

def tokenize(expression: str) -> list[tuple[str, str]]:
    tokens: list[tuple[str, str]] = []
    position = 0
    while position < len(expression):
        match = TOKEN_PATTERN.match(expression, position)
        if not match:
            raise FormulaError(f"unexpected character {expression[position]!r} at {position}")
        position = match.end()
        if match.lastgroup != "space":
            tokens.append((match.lastgroup, match.group()))
    return tokens


class _Parser:
    """Recursive-descent parser producing a tuple-based syntax tree."""

    BINARY_LEVELS = [
        ("||",),
        ("&&",),
        ("==", "!="),
        ("<", "<=", ">", ">="),
        ("+", "-"),
        ("*", "/", "%"),
    ]

    def __init__(self, tokens: list[tuple[str, str]]):
        self.tokens = tokens
        self.index = 0
        self.depth = 0

    def peek(self) -> tuple[str, str] | None:
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def take(self) -> tuple[str, str]:
        token = self.peek()
        if token is None:
            raise FormulaError("unexpected end of expression")
        self.index += 1
        return token

    def nested(self, parse, *args):
        """Run a sub-parse one nesting level deeper."""
        self.depth += 1
        if self.depth > MAX_NESTING:
            raise FormulaError(f"expression nested deeper than {MAX_NESTING} levels")
        try:
            return parse(*args)
        finally:
            self.depth -= 1

    def expect(self, value: str) -> None:
        kind, text = self.take()
        if kind != "op" or text != value:
            raise FormulaError(f"expected {value!r}, got {text!r}")

    def parse(self):
        node = self.binary(0)
        if self.peek() is not None:
            raise FormulaError(f"unexpected token {self.peek()[1]!r}")
        return node

    def binary(self, level: int):
        if level == len(self.BINARY_LEVELS):
            return self.unary()
        node = self.binary(level + 1)
        while True:
            token = self.peek()
            if token is None or token[0] != "op" or token[1] not in self.BINARY_LEVELS[level]:
                return node
            self.take()
            node = ("binary", token[1], node, self.binary(level + 1))

    def unary(self):
        token = self.peek()
        if token is not None and token[0] == "op" and token[1] in ("!", "-"):
            self.take()
            return ("unary", token[1], self.nested(self.unary))
        return self.primary()

    def primary(self):
        kind, text = self.take()
        if kind == "number":
            return ("literal", float(text) if "." in text else int(text))
        if kind == "string":
            return ("literal", ESCAPE_PATTERN.sub(r"\1", text[1:-1]))
        if kind == "name":
            if text in KEYWORDS:
                return ("literal", KEYWORDS[text])
            token = self.peek()
            if token is not None and token == ("op", "("):
                self.take()
                return ("call", text, self.arguments())
            return ("ref", text)
        if kind == "op" and text == "(":
            node = self.nested(self.binary, 0)
            self.expect(")")
            return node
        raise FormulaError(f"unexpected token {text!r}")

    def arguments(self) -> list:
        args = []
        if self.peek() == ("op", ")"):
            self.take()
            return args
        while True:
            args.append(self.nested(self.binary, 0))
            kind, text = self.take()
            if kind == "op" and text == ")":
                return args
            if kind != "op" or text != ",":
                raise FormulaError(f"expected ',' or ')', got {text!r}")


def compile_formula(expression: str):
    """Parse an expression into a syntax tree. Raises FormulaError."""
    if not expression or not expression.strip():
        raise FormulaError("empty expression")
    return _Parser(tokenize(expression)).parse()


# ============== Evaluation ==============

def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, list):
        return ", ".join(_text(item) for item in value)
    return str(value)


def _number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise FormulaError(f"expected a number, got {value!r}")
    return value


def _call(name: str, args: list) -> Any:
    if name == "lower":
        return _text(args[0]).lower() if args else ""
    if name == "upper":
        return _text(args[0]).upper() if args else ""
    if name == "length":
        if len(args) != 1:
            raise FormulaError("length() takes one argument")
        value = args[0]
        return len(value) if isinstance(value, (str, list)) else 0 if value is None else len(_text(value))
    if name == "round":
        if not args:
            raise FormulaError("round() needs a number")
        digits = int(_number(args[1])) if len(args) > 1 else 0
        return round(_number(args[0]), digits)
    if name in ("min", "max"):
        numbers = [_number(arg) for arg in args if arg is not None]
        if not numbers:
            return None
        return min(numbers) if name == "min" else max(numbers)
    if name == "date":
        parsed = parse_date(args[0]) if args else None
        if parsed is None:
            raise FormulaError(f"cannot parse date from {args[0] if args else None!r}")
        return parsed
    if name == "concat":
        return "".join(_text(arg) for arg in args)
    if name == "contains":
        if len(args) != 2:
            raise FormulaError("contains() takes two arguments")
        haystack, needle = args
        if isinstance(haystack, list):
            return _text(needle) in [_text(item) for item in haystack]
        return _text(needle).lower() in _text(haystack).lower()
    raise FormulaError(f"unknown function {name}()")


def _binary(op: str, left: Any, right: Any) -> Any:
    if op == "+":
        if isinstance(left, str) or isinstance(right, str):
            return _text(left) + _text(right)
        return _number(left) + _number(right)
    if op == "-":
        if isinstance(left, datetime) and isinstance(right, datetime):
            return (left - right).total_seconds() / 86400
        return _number(left) - _number(right)
    if op == "*":
        return _number(left) * _number(right)
    if op in ("/", "%"):
        divisor = _number(right)
        if divisor == 0:
            raise FormulaError("division by zero")
        return _number(left) / divisor if op == "/" else _number(left) % divisor
    if op == "==":
        return left == right
    if op == "!=":
        return left != right
    if op in ("<", "<=", ">", ">="):
        comparable = (
            (isinstance(left, (int, float)) and isinstance(right, (int, float)))
            or (isinstance(left, str) and isinstance(right, str))
            or (isinstance(left, datetime) and isinstance(right, datetime))
        )
        if not comparable or isinstance(left, bool) or isinstance(right, bool):
            raise FormulaError(f"cannot compare {left!r} and {right!r}")
        if op == "<":
            return left < right
        if op == "<=":
            return left <= right
        if op == ">":
            return left > right
        return left >= right
    raise FormulaError(f"unknown operator {op}")


def evaluate(node, document: Document, resolver: PropertyResolver) -> Any:
    """Evaluate a compiled formula against one document."""
    kind = node[0]
    if kind == "literal":
        return node[1]
    if kind == "ref":
        return resolver.resolve(document, node[1]).to_python()
    if kind == "unary":
        value = evaluate(node[2], document, resolver)
        return (not value) if node[1] == "!" else -_number(value)
    if kind == "binary":
        op = node[1]
        if op == "&&":
            return bool(evaluate(node[2], document, resolver)) and bool(evaluate(node[3], document, resolver))
        if op == "||":
            return bool(evaluate(node[2], document, resolver)) or bool(evaluate(node[3], document, resolver))
        return _binary(op, evaluate(node[2], document, resolver), evaluate(node[3], document, resolver))
    if kind == "call":
        name, args = node[1], node[2]
        if name == "if":
            if len(args) not in (2, 3):
                raise FormulaError("if() takes two or three arguments")
            if evaluate(args[0], document, resolver):
                return evaluate(args[1], document, resolver)
            return evaluate(args[2], document, resolver) if len(args) == 3 else None
        return _call(name, [evaluate(arg, document, resolver) for arg in args])
    raise FormulaError(f"unknown node {kind}")


def coerce_result(value: Any, result_type: str | None) -> Any:
    """Coerce a formula result to its declared type."""
    if value is None or not result_type:
        return value
    result_type = result_type.lower()
    if result_type == "number":
        if isinstance(value, str):
            try:
                value = float(value)
            except ValueError as e:
                raise FormulaError(f"{value!r} is not a number") from e
        number = _number(value)
        return int(number) if float(number).is_integer() else number
    if result_type in ("string", "text"):
        return _text(value)
    if result_type in ("boolean", "checkbox"):
        if isinstance(value, str):
            text = value.strip().lower()
            if text not in ("true", "false"):
                raise FormulaError(f"{value!r} is not a boolean")
            return text == "true"
        return bool(value)
    if result_type in ("date", "datetime"):
        parsed = parse_date(value)
        if parsed is None:
            raise FormulaError(f"{value!r} is not a date")
        return parsed
    return value


def evaluate_formulas(
    collection: Collection,
    documents: Iterable[Document],
    diagnostics: DiagnosticLog,
) -> dict[str, dict[str, Any]]:
    """Compute every formula of a collection for each document.

    Formulas run in declared order; a formula may read earlier ones through
    formula.<name>. A failing formula yields None for that document.

    Returns:
        document ID -> {formula name: value}
    """
    derived: dict[str, dict[str, Any]] = {}
    documents = list(documents)
    for document in documents:
        derived[document.id] = {}
    if not collection.formulas:
        return derived

    resolver = PropertyResolver(collection.properties, derived)
    for formula in collection.formulas:
        _evaluate_one(collection, formula, documents, derived, resolver, diagnostics)

    logger.debug("formulas_evaluated", collection=collection.id, formulas=len(collection.formulas))
    return derived


def _evaluate_one(
    collection: Collection,
    formula: FormulaDef,
    documents: list[Document],
    derived: dict[str, dict[str, Any]],
    resolver: PropertyResolver,
    diagnostics: DiagnosticLog,
) -> None:
    try:
        tree = compile_formula(formula.expression)
    except (FormulaError, RecursionError) as e:
        diagnostics.warn(
            DiagnosticCode.FORMULA_ERROR,
            f"Formula '{formula.name}' does not parse: {e}",
            target=collection.id,
        )
        for document in documents:
            derived[document.id][formula.name] = None
        return

    failures = 0
    for document in documents:
        try:
            value = coerce_result(evaluate(tree, document, resolver), formula.result_type)
        except (FormulaError, TypeError, ValueError, OverflowError, RecursionError) as e:
            if failures == 0:
                diagnostics.warn(
                    DiagnosticCode.FORMULA_ERROR,
                    f"Formula '{formula.name}' failed: {e}",
                    document_id=document.id,
                    target=collection.id,
                )
            failures += 1
            value = None
        derived[document.id][formula.name] = value

    if failures > 1:
        logger.debug("formula_failures", collection=collection.id, formula=formula.name, failures=failures)
