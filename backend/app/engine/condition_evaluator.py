"""Condition Evaluator - Safe evaluation of business-rule and transition conditions"""
import math
import re
from functools import lru_cache
from typing import Dict, List, NamedTuple, Optional, Set, Tuple, Union

from ..domain.enums import ComparisonOperator, LogicalConnector
from ..domain.errors import InvalidExpressionError, UnknownFieldError
from ..utils.logger import get_logger

logger = get_logger(__name__)


Literal = Union[float, str]

_TOKEN_PATTERN = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>-?\d+(?:\.\d+)?(?![A-Za-z_]))
  | (?P<string>'[^']*'|"[^"]*")
  | (?P<op>>=|<=|==|!=|>|<)
  | (?P<logic>&&|\|\|)
  | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
    """,
    re.VERBOSE,
)

_KEYWORD_CONNECTORS = {"AND": LogicalConnector.AND, "OR": LogicalConnector.OR}
_SYMBOL_CONNECTORS = {"&&": LogicalConnector.AND, "||": LogicalConnector.OR}
_BOOLEAN_LITERALS = {"true", "false"}


class Token(NamedTuple):
    kind: str
    text: str
    position: int


class Clause(NamedTuple):
    """`field OP literal`"""
    field: str
    operator: ComparisonOperator
    literal: Literal

    @property
    def is_numeric(self) -> bool:
        return isinstance(self.literal, float)


class ParsedCondition(NamedTuple):
    """First clause plus (connector, clause) pairs, evaluated left to right"""
    source: str
    first: Optional[Clause]
    rest: Tuple[Tuple[LogicalConnector, Clause], ...]

    @property
    def clauses(self) -> List[Clause]:
        if self.first is None:
            return []
        return [self.first] + [clause for _, clause in self.rest]

    @property
    def fields(self) -> Set[str]:
        return {clause.field for clause in self.clauses}


def _tokenize(expression: str) -> List[Token]:
    tokens: List[Token] = []
    position = 0
    while position < len(expression):
        match = _TOKEN_PATTERN.match(expression, position)
        if not match:
            raise InvalidExpressionError(
                f"Unexpected character {expression[position]!r} at position {position}",
                expression=expression,
                position=position,
            )
        kind = match.lastgroup
        if kind != "ws":
            tokens.append(Token(kind, match.group(), position))
        position = match.end()
    return tokens


class _Parser:
    """Recursive-descent parser for the one-line condition grammar"""

    def __init__(self, expression: str):
        self.expression = expression
        self.tokens = _tokenize(expression)
        self.index = 0

    def _fail(self, message: str, token: Optional[Token] = None) -> InvalidExpressionError:
        position = token.position if token else len(self.expression)
        return InvalidExpressionError(
            f"{message} in condition '{self.expression}'",
            expression=self.expression,
            position=position,
        )

    def _next(self, expected: str) -> Token:
        if self.index >= len(self.tokens):
            raise self._fail(f"Expected {expected} but the condition ended")
        token = self.tokens[self.index]
        self.index += 1
        return token

    def parse(self) -> ParsedCondition:
        if not self.tokens:
            return ParsedCondition(self.expression, None, ())

        first = self._clause()
        rest = []
        while self.index < len(self.tokens):
            rest.append((self._connector(), self._clause()))
        return ParsedCondition(self.expression, first, tuple(rest))

    def _connector(self) -> LogicalConnector:
        token = self._next("AND/OR")
        if token.kind == "logic":
            return _SYMBOL_CONNECTORS[token.text]
        if token.kind == "ident" and token.text.upper() in _KEYWORD_CONNECTORS:
            return _KEYWORD_CONNECTORS[token.text.upper()]
        raise self._fail(f"Expected AND/OR but found {token.text!r}", token)

    def _clause(self) -> Clause:
        field = self._next("a field name")
        if field.kind != "ident" or field.text.upper() in _KEYWORD_CONNECTORS:
            raise self._fail(f"Expected a field name but found {field.text!r}", field)

        op = self._next("a comparison operator")
        if op.kind != "op":
            raise self._fail(f"Expected a comparison operator but found {op.text!r}", op)
        operator = ComparisonOperator(op.text)

        value = self._next("a literal")
        if value.kind == "number":
            literal: Literal = float(value.text)
        elif value.kind == "string":
            literal = value.text[1:-1]
        elif value.kind == "ident" and value.text.lower() in _BOOLEAN_LITERALS:
            literal = value.text.lower()
        else:
            raise self._fail(f"Expected a number or quoted string but found {value.text!r}", value)

        if operator.is_ordering and not isinstance(literal, float):
            raise self._fail(f"Operator {operator.value} needs a numeric literal", op)

        return Clause(field.text, operator, literal)


@lru_cache(maxsize=512)
def parse(expression: Optional[str]) -> ParsedCondition:
    """
    Parse a condition expression

    Raises:
        InvalidExpressionError: If the expression is malformed
    """
    return _Parser(expression or "").parse()


def _to_number(raw: str, clause: Clause, expression: str) -> float:
    try:
        number = float(raw.strip())
    except ValueError:
        number = math.nan
    if math.isnan(number) or math.isinf(number):
        raise InvalidExpressionError(
            f"Field '{clause.field}' value {raw!r} is not numeric",
            expression=expression,
        )
    return number


def _compare(left: Literal, operator: ComparisonOperator, right: Literal) -> bool:
    if operator == ComparisonOperator.EQUALS:
        return left == right
    if operator == ComparisonOperator.NOT_EQUALS:
        return left != right
    if operator == ComparisonOperator.GREATER_THAN:
        return left > right
    if operator == ComparisonOperator.LESS_THAN:
        return left < right
    if operator == ComparisonOperator.GREATER_THAN_OR_EQUALS:
        return left >= right
    return left <= right


class ConditionEvaluator:
    """
    Evaluate condition expressions safely

    Grammar: ``clause (AND|OR clause)*`` where a clause is ``field OP literal``.
    AND and OR share one precedence level and are applied left to right.
    No eval() or exec().
    """

    def evaluate(self, expression: Optional[str], context: Dict[str, str]) -> bool:
        """
        Evaluate an expression against submitted form data

        Args:
            expression: Condition text; empty means unconditionally true
            context: Field key -> submitted value

        Returns:
            True if the condition holds

        Raises:
            InvalidExpressionError: Malformed expression or non-numeric value
            UnknownFieldError: A referenced field is absent from context
        """
        parsed = parse(expression)
        if parsed.first is None:
            return True

        result = self._evaluate_clause(parsed.first, context, parsed.source)
        for connector, clause in parsed.rest:
            value = self._evaluate_clause(clause, context, parsed.source)
            if connector == LogicalConnector.AND:
                result = result and value
            else:
                result = result or value
        return result

    def matches(self, expression: Optional[str], context: Dict[str, str]) -> bool:
        """Evaluate, treating evaluation failures as a non-match"""
        try:
            return self.evaluate(expression, context)
        except (InvalidExpressionError, UnknownFieldError) as e:
            logger.warning(
                f"Condition evaluation failed: {e.message}",
                extra={"error_code": e.error_code, "details": e.details}
            )
            return False

    def _evaluate_clause(self, clause: Clause, context: Dict[str, str], expression: str) -> bool:
        if clause.field not in context:
            raise UnknownFieldError(clause.field, expression)

        raw = context[clause.field]
        if clause.is_numeric:
            return _compare(_to_number(raw, clause, expression), clause.operator, clause.literal)
        return _compare(raw, clause.operator, clause.literal)


def validate_expression(expression: Optional[str]) -> Optional[InvalidExpressionError]:
    """Return the parse error for an expression, or None if it is well formed"""
    try:
        parse(expression)
    except InvalidExpressionError as e:
        return e
    return None
