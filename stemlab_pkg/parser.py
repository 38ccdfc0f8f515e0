"""Formula tokenizing and parsing module.

This module handles:
- Input validation (empty input, length limit, balanced parentheses)
- Tokenizing the restricted formula grammar (numbers, identifiers,
  ``+ - * / ^``, parentheses, commas, ``π`` and the ``°`` marker)
- Recursive-descent parsing into an immutable AST, with nesting depth and
  node count limits
- Marking trig calls whose argument text looks like an angle in degrees
- Memoising parsed formulas per formula string
- Result formatting for display (fixed decimals, superscripts)

Grammar, loosest binding first::

    expression := term (("+" | "-") term)*
    term       := unary (("*" | "/") unary)*
    unary      := ("-" | "+") unary | power
    power      := postfix ("^" unary)?
    postfix    := primary "°"*
    primary    := NUMBER | NAME | NAME "(" arguments ")" | "(" expression ")"
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Iterator, Union

from .config import (
    ALLOWED_FUNCTIONS,
    ANGLE_HINTS,
    CACHE_SIZE_PARSE,
    DEGREE_SIGN,
    DISPLAY_PRECISION,
    IDENTIFIER_RE,
    MAX_EXPRESSION_DEPTH,
    MAX_EXPRESSION_NODES,
    MAX_INPUT_LENGTH,
    NUMBER_RE,
    TRIG_FUNCTIONS,
    UNICODE_OPERATORS,
)
from .logging_config import get_logger
from .types import ParseError, ValidationError

logger = get_logger("parser")

OPERATOR_CHARS = "+-*/^(),"


@dataclass(frozen=True)
class Token:
    """A lexical token with its span in the source formula."""

    kind: str  # "NUMBER", "NAME", "OP", "DEGREE", "EOF"
    text: str
    start: int
    end: int
    value: float | None = None


@dataclass(frozen=True)
class Number:
    value: float


@dataclass(frozen=True)
class Name:
    name: str


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: "Node"


@dataclass(frozen=True)
class Chain:
    """Left-associative run of same-precedence operators.

    ``a - b + c`` is ``Chain(a, (("-", b), ("+", c)))``. Keeping the run flat
    keeps long sums from producing deep trees.
    """

    head: "Node"
    tail: tuple[tuple[str, "Node"], ...]


@dataclass(frozen=True)
class Power:
    base: "Node"
    exponent: "Node"


@dataclass(frozen=True)
class Degrees:
    """Postfix degree marker (``30°``). Does not change the value by itself."""

    operand: "Node"


@dataclass(frozen=True)
class Call:
    """Call into the closed function set.

    ``degrees`` is set for sin/cos/tan calls whose argument text mentions
    one of the angle hints; the evaluator converts that argument to radians.
    """

    name: str
    args: tuple["Node", ...]
    degrees: bool = False
    argument_text: str = ""


Node = Union[Number, Name, UnaryOp, Chain, Power, Degrees, Call]


def superscriptify(input_str: str) -> str:
    """Convert numeric string to Unicode superscript characters.

    Args:
        input_str: Input string with digits and '-' (e.g., "123", "-5")

    Returns:
        String with superscript Unicode characters (e.g., "¹²³", "⁻⁵")
    """
    mapping = {
        "0": "⁰",
        "1": "¹",
        "2": "²",
        "3": "³",
        "4": "⁴",
        "5": "⁵",
        "6": "⁶",
        "7": "⁷",
        "8": "⁸",
        "9": "⁹",
        "-": "⁻",
        "n": "ⁿ",
    }
    return "".join(mapping.get(char, char) for char in input_str)


def format_superscript(expr_str: str) -> str:
    """Replace caret power notation with Unicode superscripts.

    Args:
        expr_str: Formula string (e.g., "v0^2", "x^-3")

    Returns:
        String with superscripts (e.g., "v0²", "x⁻³")
    """
    return re.sub(
        r"(?:\^|\*\*)(\-?\d+)(?![\d.])",
        lambda m: superscriptify(m.group(1)),
        expr_str,
    )


def prettify_formula(formula: str) -> str:
    """Convert a formula string to a more readable form.

    Replaces powers with superscripts, 'sqrt(' with '√(', 'pi' with 'π'
    and '*' with '×'.

    Args:
        formula: Formula string (e.g., "2*pi*sqrt(length/gravity)")

    Returns:
        Prettified string (e.g., "2×π×√(length/gravity)")
    """
    result = format_superscript(formula)
    result = re.sub(r"\bsqrt\(", "√(", result)
    result = re.sub(r"\bpi\b", "π", result, flags=re.IGNORECASE)
    result = result.replace("*", "×")
    return result


def format_number(val: Any, precision: int = 6) -> str:
    """Format a numeric value with the given number of significant digits.

    Args:
        val: Numeric value to format
        precision: Number of significant digits

    Returns:
        Formatted string representation of the number
    """
    try:
        fmt = "{:." + str(int(precision)) + "g}"
        return fmt.format(float(val))
    except (ValueError, TypeError, OverflowError):
        return str(val)


def format_result(value: float, precision: int | None = None) -> str:
    """Round an evaluation result for display (2 decimals by default)."""
    if precision is None:
        precision = DISPLAY_PRECISION
    try:
        number = float(value)
    except (TypeError, ValueError):
        return str(value)
    if not math.isfinite(number):
        return str(number)
    text = f"{number:.{max(0, int(precision))}f}"
    # "-0.00" reads as a sign error on a results panel
    if text.startswith("-") and float(text) == 0:
        text = text[1:]
    return text


def is_balanced(input_str: str) -> tuple[bool, int | None]:
    """Check if parentheses are balanced. Returns (is_balanced, error_position)."""
    stack: list[int] = []
    for i, char in enumerate(input_str):
        if char == "(":
            stack.append(i)
        elif char == ")":
            if not stack:
                return False, i
            stack.pop()
    if stack:
        return False, stack[0]
    return True, None


def tokenize(source: str) -> list[Token]:
    """Split a formula into tokens. Always ends with an EOF token.

    Raises:
        ParseError: On a character outside the formula grammar
    """
    tokens: list[Token] = []
    pos = 0
    length = len(source)
    while pos < length:
        char = source[pos]
        if char.isspace():
            pos += 1
            continue
        char = UNICODE_OPERATORS.get(char, char)
        if char == "*" and source.startswith("**", pos):
            tokens.append(Token("OP", "^", pos, pos + 2))
            pos += 2
            continue
        if char in OPERATOR_CHARS:
            tokens.append(Token("OP", char, pos, pos + 1))
            pos += 1
            continue
        if char == DEGREE_SIGN:
            tokens.append(Token("DEGREE", char, pos, pos + 1))
            pos += 1
            continue
        if char == "π":
            tokens.append(Token("NAME", char, pos, pos + 1))
            pos += 1
            continue
        match = NUMBER_RE.match(source, pos)
        if match:
            text = match.group()
            tokens.append(Token("NUMBER", text, pos, match.end(), float(text)))
            pos = match.end()
            continue
        match = IDENTIFIER_RE.match(source, pos)
        if match:
            tokens.append(Token("NAME", match.group(), pos, match.end()))
            pos = match.end()
            continue
        raise ParseError(f"Unexpected character {source[pos]!r}", "SYNTAX_ERROR", pos)
    tokens.append(Token("EOF", "", length, length))
    return tokens


class _Parser:
    """Recursive-descent parser over a token list."""

    def __init__(self, source: str, tokens: list[Token]):
        self.source = source
        self.tokens = tokens
        self.pos = 0
        self.depth = 0
        self.node_count = 0

    def peek(self) -> Token:
        return self.tokens[self.pos]

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.kind != "EOF":
            self.pos += 1
        return token

    def at_op(self, *ops: str) -> bool:
        token = self.peek()
        return token.kind == "OP" and token.text in ops

    def expect(self, op: str) -> Token:
        token = self.peek()
        if token.kind != "OP" or token.text != op:
            found = "end of formula" if token.kind == "EOF" else repr(token.text)
            raise ParseError(f"Expected '{op}' but found {found}", "SYNTAX_ERROR", token.start)
        return self.advance()

    def node(self, node: Node) -> Node:
        self.node_count += 1
        if self.node_count > MAX_EXPRESSION_NODES:
            raise ValidationError(
                f"Formula too complex (>{MAX_EXPRESSION_NODES} nodes)", "TOO_COMPLEX"
            )
        return node

    def descend(self) -> None:
        self.depth += 1
        if self.depth > MAX_EXPRESSION_DEPTH:
            raise ValidationError(
                f"Formula too deeply nested (>{MAX_EXPRESSION_DEPTH} levels)", "TOO_DEEP"
            )

    def ascend(self) -> None:
        self.depth -= 1

    def parse(self) -> Node:
        node = self.expression()
        token = self.peek()
        if token.kind != "EOF":
            raise ParseError(f"Unexpected token {token.text!r}", "SYNTAX_ERROR", token.start)
        return node

    def expression(self) -> Node:
        return self.chain(self.term, ("+", "-"))

    def term(self) -> Node:
        return self.chain(self.unary, ("*", "/"))

    def chain(self, operand, operators: tuple[str, ...]) -> Node:
        head = operand()
        tail = []
        while self.at_op(*operators):
            op = self.advance().text
            tail.append((op, operand()))
        if not tail:
            return head
        return self.node(Chain(head, tuple(tail)))

    def unary(self) -> Node:
        if self.at_op("-", "+"):
            op = self.advance().text
            self.descend()
            operand = self.unary()
            self.ascend()
            return self.node(UnaryOp(op, operand))
        return self.power()

    def power(self) -> Node:
        base = self.postfix()
        if self.at_op("^"):
            self.advance()
            self.descend()
            # Exponent is parsed as unary so that 2^-1 works and 2^3^2 == 2^(3^2)
            exponent = self.unary()
            self.ascend()
            return self.node(Power(base, exponent))
        return base

    def postfix(self) -> Node:
        node = self.primary()
        markers = 0
        # Each marker wraps the node once more and counts as a nesting level
        while self.peek().kind == "DEGREE":
            self.advance()
            self.descend()
            markers += 1
            node = self.node(Degrees(node))
        self.depth -= markers
        return node

    def primary(self) -> Node:
        token = self.peek()
        if token.kind == "NUMBER":
            self.advance()
            return self.node(Number(token.value))
        if token.kind == "NAME":
            self.advance()
            if self.at_op("("):
                return self.call(token)
            return self.node(Name(token.text))
        if self.at_op("("):
            self.advance()
            self.descend()
            node = self.expression()
            self.ascend()
            self.expect(")")
            return node
        if token.kind == "EOF":
            raise ParseError("Unexpected end of formula", "SYNTAX_ERROR", token.start)
        raise ParseError(f"Unexpected token {token.text!r}", "SYNTAX_ERROR", token.start)

    def call(self, name_token: Token) -> Node:
        name = name_token.text
        if name not in ALLOWED_FUNCTIONS:
            raise ParseError(f"Unknown function '{name}'", "UNKNOWN_FUNCTION", name_token.start)
        open_token = self.expect("(")
        self.descend()
        args = []
        if not self.at_op(")"):
            args.append(self.expression())
            while self.at_op(","):
                self.advance()
                args.append(self.expression())
        self.ascend()
        close_token = self.expect(")")

        arity = ALLOWED_FUNCTIONS[name]
        if len(args) != arity:
            raise ParseError(
                f"{name}() takes {arity} argument{'s' if arity != 1 else ''}, got {len(args)}",
                "ARITY_ERROR",
                name_token.start,
            )
        argument_text = self.source[open_token.end:close_token.start]
        degrees = name in TRIG_FUNCTIONS and any(
            hint in argument_text for hint in ANGLE_HINTS
        )
        return self.node(Call(name, tuple(args), degrees, argument_text.strip()))


def validate_formula_text(formula: str) -> str:
    """Check raw formula text before tokenizing. Returns the stripped text.

    Raises:
        ValidationError: Empty input or input longer than MAX_INPUT_LENGTH
        ParseError: Unbalanced parentheses
    """
    if not isinstance(formula, str):
        raise ValidationError(
            f"Formula must be a string, got {type(formula).__name__}", "SYNTAX_ERROR"
        )
    text = formula.strip()
    if not text:
        raise ValidationError("Formula cannot be empty", "EMPTY_INPUT")
    if len(text) > MAX_INPUT_LENGTH:
        raise ValidationError(
            f"Formula too long (>{MAX_INPUT_LENGTH} characters)", "TOO_LONG"
        )
    balanced, position = is_balanced(text)
    if not balanced:
        raise ParseError("Unbalanced parentheses", "SYNTAX_ERROR", position)
    return text


@lru_cache(maxsize=CACHE_SIZE_PARSE)
def parse_formula(formula: str) -> Node:
    """Parse and validate a formula string into an AST.

    Results are memoised per formula string; the AST is immutable so cached
    trees are shared safely between callers.

    Raises:
        ValidationError: Input limits exceeded
        ParseError: Syntax errors, unknown functions, wrong argument counts
    """
    text = validate_formula_text(formula)
    try:
        tree = _Parser(text, tokenize(text)).parse()
    except RecursionError as e:
        raise ValidationError(
            f"Formula too deeply nested (>{MAX_EXPRESSION_DEPTH} levels)", "TOO_DEEP"
        ) from e
    logger.debug("Parsed formula %r", text)
    return tree


def clear_parse_cache() -> None:
    """Drop every memoised AST."""
    parse_formula.cache_clear()


def parse_cache_info():
    """Hit/miss statistics of the parsed-formula cache."""
    return parse_formula.cache_info()


def iter_nodes(node: Node) -> Iterator[Node]:
    """Yield every node of a tree, parents before children."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        if isinstance(current, UnaryOp):
            stack.append(current.operand)
        elif isinstance(current, Chain):
            stack.extend(operand for _, operand in reversed(current.tail))
            stack.append(current.head)
        elif isinstance(current, Power):
            stack.append(current.exponent)
            stack.append(current.base)
        elif isinstance(current, Degrees):
            stack.append(current.operand)
        elif isinstance(current, Call):
            stack.extend(reversed(current.args))


def formula_identifiers(formula: str) -> list[str]:
    """Names referenced by a formula, in order of first appearance.

    Function names are not included; constants (``pi``, ``π``) are.
    """
    seen: dict[str, None] = {}
    for node in iter_nodes(parse_formula(formula)):
        if isinstance(node, Name):
            seen.setdefault(node.name, None)
    return list(seen)
