# calc_core.py

"""
Arithmetic expression evaluator: tokenizer and recursive-descent parser.

The tokenizer holds a single look-ahead token and scans the input one token
at a time. The parser evaluates while it parses, so no syntax tree is built.

Grammar:
    Expr     -> Term ExprTail
    ExprTail -> ('+'|'-') Term ExprTail | e
    Term     -> Unary TermTail
    TermTail -> ('*'|'/'|'%') Unary TermTail | e
    Unary    -> ('+'|'-')? Factor
    Factor   -> Number | Group
    Group    -> '(' Expr ')'
              | ('sqrt'|'lg'|'fact') '(' Expr ')'
              | ('pow'|'log') '(' Expr ',' Expr ')'

Numeric anomalies (division by zero, sqrt of a negative number, log of zero)
follow IEEE-754 and come back as inf/nan values instead of errors.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

# --------------------------
# Exceptions
# --------------------------

class ErrorKind(str, Enum):
    """Stable identifiers for every user-facing failure."""
    UNKNOWN_OPERATOR = 'unknown_operator'
    UNCLOSED_PARENTHESIS = 'unclosed_parenthesis'
    NUMBER_EXPECTED = 'number_expected'
    SECOND_PARAMETER_EXPECTED = 'second_parameter_expected'
    PARENTHESIZED_EQUATION_EXPECTED = 'parenthesized_equation_expected'
    UNEXPECTED_TOKEN = 'unexpected_token'
    NESTING_TOO_DEEP = 'nesting_too_deep'
    INTEGER_EXPECTED = 'integer_expected'


class CalculatorError(Exception):
    """Base class for errors reported back to the user.

    ``pos`` is the offset into the whitespace-stripped expression, when known.
    """
    prefix = 'Error'
    kind: ErrorKind
    description = 'evaluation failed'

    def __init__(self, pos: Optional[int] = None, detail: Optional[str] = None):
        self.pos = pos
        text = detail or self.description
        if pos is not None:
            text = f"{text} at position {pos}"
        super().__init__(f"{self.prefix}: {text}.")


class TokenizationError(CalculatorError):
    """Raised while scanning the input."""
    prefix = 'Semantic error'


class ParseError(CalculatorError):
    """Raised when the token sequence does not fit the grammar."""
    prefix = 'Syntax error'


class EvalError(CalculatorError):
    """Raised when an operand is outside what an operator accepts."""
    prefix = 'Semantic error'


class UnknownOperatorError(TokenizationError):
    kind = ErrorKind.UNKNOWN_OPERATOR

    def __init__(self, text: str, pos: Optional[int] = None):
        self.text = text
        super().__init__(pos, f'unknown operator "{text}"')


class UnclosedParenthesisError(ParseError):
    kind = ErrorKind.UNCLOSED_PARENTHESIS
    description = 'unclosed parenthesis'


class NumberExpectedError(ParseError):
    kind = ErrorKind.NUMBER_EXPECTED
    description = 'number expected'


class SecondParameterExpectedError(ParseError):
    kind = ErrorKind.SECOND_PARAMETER_EXPECTED
    description = 'second parameter expected'


class ParenthesizedEquationExpectedError(ParseError):
    kind = ErrorKind.PARENTHESIZED_EQUATION_EXPECTED
    description = 'parenthesized equation expected'


class UnexpectedTokenError(ParseError):
    kind = ErrorKind.UNEXPECTED_TOKEN
    description = 'unexpected input after expression'


class NestingTooDeepError(ParseError):
    kind = ErrorKind.NESTING_TOO_DEEP
    description = 'expression nested too deeply'


class IntegerExpectedError(EvalError):
    kind = ErrorKind.INTEGER_EXPECTED
    description = 'integer expected'

# --------------------------
# Tokenizer
# --------------------------

class TokenType:
    """Enumeration of token types."""
    NUMBER = 'NUMBER'
    OPERATOR = 'OPERATOR'
    END = 'END'


class OperatorKind(Enum):
    """Every operator, bracket and function name; the value is its symbol text."""
    PLUS = '+'
    MINUS = '-'
    MULTIPLY = '*'
    DIVIDE = '/'
    REMAINDER = '%'
    PAREN_OPEN = '('
    PAREN_CLOSE = ')'
    COMMA = ','
    SQRT = 'sqrt'
    LG = 'lg'
    FACT = 'fact'
    POW = 'pow'
    LOG = 'log'


_SYMBOLS: Dict[str, OperatorKind] = {kind.value: kind for kind in OperatorKind}

UNARY_FUNCTIONS = (OperatorKind.SQRT, OperatorKind.LG, OperatorKind.FACT)
BINARY_FUNCTIONS = (OperatorKind.POW, OperatorKind.LOG)
FUNCTION_NAMES = tuple(kind.value for kind in UNARY_FUNCTIONS + BINARY_FUNCTIONS)

_DIGITS = frozenset('0123456789')
_PUNCTUATION = frozenset('+-*/%(),')


def strip_whitespace(text: str) -> str:
    """Remove every whitespace character (spaces, tabs, newlines)."""
    return ''.join(text.split())


def _is_numeral_char(ch: str) -> bool:
    return ch in _DIGITS or ch == '.'


def _is_numeral(raw: str) -> bool:
    return raw.count('.') <= 1 and any(ch in _DIGITS for ch in raw)


@dataclass
class Token:
    """A token with type, value, source text and character position."""
    type: str
    value: Any
    text: str
    pos: int

    def __repr__(self) -> str:
        return f"Token({self.type}, {self.value!r}, pos={self.pos})"


class Tokenizer:
    """Incremental scanner holding exactly one look-ahead token.

    Token boundaries fall between a numeral run (digits and '.') and anything
    else, and around each of ``+ - * / % ( ) ,``. Whatever lies between those
    boundaries must be a function name from the symbol table.

    Use it as a context manager so the input is released on every exit path.
    """

    def __init__(self, text: str):
        self._text: Optional[str] = strip_whitespace(text)
        self._pos = 0
        self._current = Token(TokenType.END, None, '', 0)
        self._advance()

    def __enter__(self) -> Tokenizer:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._text = None

    @property
    def closed(self) -> bool:
        return self._text is None

    @property
    def at_end(self) -> bool:
        return self.peek().type == TokenType.END

    def peek(self) -> Token:
        """Return the look-ahead token without consuming it."""
        if self._text is None:
            raise RuntimeError("Tokenizer is closed")
        return self._current

    def peek_is_number(self) -> bool:
        return self.peek().type == TokenType.NUMBER

    def peek_is_operator(self, *kinds: OperatorKind) -> bool:
        token = self.peek()
        return token.type == TokenType.OPERATOR and token.value in kinds

    def pop_number(self) -> float:
        """Consume the look-ahead number. Callers check peek_is_number() first."""
        token = self.peek()
        if token.type != TokenType.NUMBER:
            raise RuntimeError(f"pop_number() called with look-ahead {token!r}")
        self._advance()
        return token.value

    def pop_operator(self) -> OperatorKind:
        """Consume the look-ahead operator. Callers check peek_is_operator() first."""
        token = self.peek()
        if token.type != TokenType.OPERATOR:
            raise RuntimeError(f"pop_operator() called with look-ahead {token!r}")
        self._advance()
        return token.value

    def _scan(self, start: int, accept: Callable[[str], bool]) -> int:
        text = self._text
        end = start
        while end < len(text) and accept(text[end]):
            end += 1
        return end

    def _advance(self) -> None:
        text = self._text
        start = self._pos
        if start >= len(text):
            self._current = Token(TokenType.END, None, '', start)
            return
        ch = text[start]
        if _is_numeral_char(ch):
            end = self._scan(start, _is_numeral_char)
            raw = text[start:end]
            if not _is_numeral(raw):
                raise UnknownOperatorError(raw, start)
            self._pos = end
            self._current = Token(TokenType.NUMBER, float(raw), raw, start)
            return
        if ch in _PUNCTUATION:
            end = start + 1
        else:
            end = self._scan(start, lambda c: not _is_numeral_char(c) and c not in _PUNCTUATION)
        raw = text[start:end]
        kind = _SYMBOLS.get(raw)
        if kind is None:
            raise UnknownOperatorError(raw, start)
        self._pos = end
        self._current = Token(TokenType.OPERATOR, kind, raw, start)

# --------------------------
# Arithmetic
# --------------------------

def _divide(dividend: float, divisor: float) -> float:
    if divisor == 0:
        if dividend == 0 or math.isnan(dividend):
            return math.nan
        return math.copysign(math.inf, dividend) * math.copysign(1.0, divisor)
    return dividend / divisor


def _remainder(dividend: float, divisor: float) -> float:
    # fmod keeps the sign of the dividend
    if divisor == 0 or math.isinf(dividend):
        return math.nan
    return math.fmod(dividend, divisor)


def _is_odd_integer(x: float) -> bool:
    return x.is_integer() and math.fmod(x, 2.0) != 0


def _power(base: float, exponent: float) -> float:
    try:
        return math.pow(base, exponent)
    except OverflowError:
        if base < 0 and _is_odd_integer(exponent):
            return -math.inf
        return math.inf
    except ValueError:
        # zero to a negative power, or a negative base to a fractional power
        if base == 0:
            if math.copysign(1.0, base) < 0 and _is_odd_integer(exponent):
                return -math.inf
            return math.inf
        return math.nan


def _natural_log(x: float) -> float:
    if x > 0:
        return math.log(x)
    if x == 0:
        return -math.inf
    return math.nan


def _lg(x: float) -> float:
    if x > 0:
        return math.log10(x)
    if x == 0:
        return -math.inf
    return math.nan


def _log(base: float, x: float) -> float:
    return _divide(_natural_log(x), _natural_log(base))


def _sqrt(x: float) -> float:
    return math.sqrt(x) if x >= 0 else math.nan


def _factorial(n: float) -> float:
    """Product 2..n computed in floating point; fact(0) == fact(1) == 1."""
    if not n.is_integer():
        raise IntegerExpectedError(detail=f"integer expected for fact, got {n!r}")
    result = 1.0
    factor = 2.0
    # once the product overflows it stays inf, so stop there
    while factor <= n and not math.isinf(result):
        result *= factor
        factor += 1.0
    return result


_BINARY_OPS: Dict[OperatorKind, Callable[[float, float], float]] = {
    OperatorKind.PLUS: lambda a, b: a + b,
    OperatorKind.MINUS: lambda a, b: a - b,
    OperatorKind.MULTIPLY: lambda a, b: a * b,
    OperatorKind.DIVIDE: _divide,
    OperatorKind.REMAINDER: _remainder,
    OperatorKind.POW: _power,
    OperatorKind.LOG: _log,
}

_UNARY_OPS: Dict[OperatorKind, Callable[[float], float]] = {
    OperatorKind.SQRT: _sqrt,
    OperatorKind.LG: _lg,
    OperatorKind.FACT: _factorial,
}


def apply_binary(kind: OperatorKind, first: float, second: float) -> float:
    return _BINARY_OPS[kind](first, second)


def apply_unary(kind: OperatorKind, operand: float) -> float:
    return _UNARY_OPS[kind](operand)

# --------------------------
# Parser / evaluator
# --------------------------

class Parser:
    """Recursive-descent parser that returns the value of what it parses.

    Each grammar rule is a method returning a float. The ``*_tail`` methods
    receive the value computed so far and fold further operands into it, which
    makes ``+ -`` and ``* / %`` left-associative.
    """

    def __init__(self, tokenizer: Tokenizer):
        self.tokenizer = tokenizer

    def parse(self) -> float:
        """Evaluate a whole expression; trailing input is an error."""
        value = self.expr()
        if not self.tokenizer.at_end:
            token = self.tokenizer.peek()
            raise UnexpectedTokenError(token.pos, f"unexpected '{token.text}'")
        return value

    def expr(self) -> float:
        # Expr -> Term ExprTail
        return self.expr_tail(self.term())

    def expr_tail(self, left: float) -> float:
        # ExprTail -> ('+'|'-') Term ExprTail | e, right recursion unrolled
        while self.tokenizer.peek_is_operator(OperatorKind.PLUS, OperatorKind.MINUS):
            op = self.tokenizer.pop_operator()
            left = apply_binary(op, left, self.term())
        return left

    def term(self) -> float:
        # Term -> Unary TermTail
        return self.term_tail(self.unary())

    def term_tail(self, left: float) -> float:
        # TermTail -> ('*'|'/'|'%') Unary TermTail | e
        while self.tokenizer.peek_is_operator(
                OperatorKind.MULTIPLY, OperatorKind.DIVIDE, OperatorKind.REMAINDER):
            op = self.tokenizer.pop_operator()
            left = apply_binary(op, left, self.unary())
        return left

    def unary(self) -> float:
        """Unary -> ('+'|'-')? Factor, evaluated as 0 +/- Factor.

        Only one sign is accepted: Factor itself does not take a sign, so
        '--1' is rejected.
        """
        if self.tokenizer.peek_is_operator(OperatorKind.PLUS, OperatorKind.MINUS):
            op = self.tokenizer.pop_operator()
            return apply_binary(op, 0.0, self.factor())
        return self.factor()

    def factor(self) -> float:
        # Factor -> Number | Group
        if self.tokenizer.peek_is_number():
            return self.tokenizer.pop_number()
        if self.tokenizer.peek_is_operator(OperatorKind.PAREN_OPEN, *UNARY_FUNCTIONS, *BINARY_FUNCTIONS):
            return self.group()
        raise NumberExpectedError(self.tokenizer.peek().pos)

    def group(self) -> float:
        """Group -> '(' Expr ')' | f '(' Expr ')' | g '(' Expr ',' Expr ')'"""
        start = self.tokenizer.peek()
        kind = self.tokenizer.pop_operator()
        if kind is OperatorKind.PAREN_OPEN:
            value = self.expr()
            self._close_paren(start.pos)
            return value

        opening = self.tokenizer.peek()
        if not self.tokenizer.peek_is_operator(OperatorKind.PAREN_OPEN):
            raise ParenthesizedEquationExpectedError(
                opening.pos, f"parenthesized equation expected after '{kind.value}'")
        self.tokenizer.pop_operator()
        first = self.expr()

        if kind in UNARY_FUNCTIONS:
            self._close_paren(opening.pos)
            return apply_unary(kind, first)

        if not self.tokenizer.peek_is_operator(OperatorKind.COMMA):
            raise SecondParameterExpectedError(
                self.tokenizer.peek().pos, f"second parameter expected for '{kind.value}'")
        self.tokenizer.pop_operator()
        second = self.expr()
        self._close_paren(opening.pos)
        return apply_binary(kind, first, second)

    def _close_paren(self, pos: int) -> None:
        if not self.tokenizer.peek_is_operator(OperatorKind.PAREN_CLOSE):
            raise UnclosedParenthesisError(pos)
        self.tokenizer.pop_operator()


def parse_and_evaluate(tokenizer: Tokenizer) -> float:
    return Parser(tokenizer).parse()

# --------------------------
# Entry points
# --------------------------

@dataclass
class EvaluationResult:
    """Outcome of try_evaluate(): exactly one of value / error is set."""
    expression: str
    value: Optional[float] = None
    error: Optional[CalculatorError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error is not None else None


def evaluate(expression: str) -> float:
    """Evaluate ``expression`` and return its value.

    Whitespace is ignored. Function names are matched in lowercase only.
    Raises a CalculatorError subclass on the first tokenization, syntax or
    operand error; there is no partial result.
    """
    logger.debug(f"Evaluating {expression!r}")
    try:
        with Tokenizer(expression) as tokenizer:
            result = parse_and_evaluate(tokenizer)
    except RecursionError:
        logger.debug(f"Recursion limit hit while evaluating {expression!r}")
        raise NestingTooDeepError() from None
    except CalculatorError as e:
        logger.debug(f"Evaluation of {expression!r} failed ({e.kind.value}): {e}")
        raise
    logger.debug(f"{expression!r} evaluated to {result!r}")
    return result


def try_evaluate(expression: str) -> EvaluationResult:
    """Like evaluate(), but returns the error instead of raising it."""
    try:
        return EvaluationResult(expression, value=evaluate(expression))
    except CalculatorError as e:
        return EvaluationResult(expression, error=e)
