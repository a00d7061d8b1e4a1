"""
Condition expressions for Condition nodes.  Never calls eval().

Expressions reference earlier outputs with ``{{@NODEID:LABEL.path}}`` tokens:

    {{@n1:Fetch.count}} > 5 && {{@n2:Lookup.status}} === 'active'

Evaluation is two-phase:

  1. ``ConditionGrammar.pre_validate`` checks the raw text (tokens stand in as
     placeholders) against the permitted grammar.
  2. Tokens are replaced by bound names ``__v0, __v1, ...`` whose values come
     from the node outputs; ``ConditionGrammar.validate`` parses the
     substituted text again, allowing only those names, and the resulting AST
     is walked directly.

Supported syntax:
  - Literals: numbers, 'single' / "double" quoted strings, true/false,
    null/undefined (also True/False/None), [list, literals]
  - Comparisons: == === != !== < <= > >= in, not in
  - Boolean: && || ! and or not
  - Unary minus / plus on numbers
  - ``.length`` and the methods includes, startsWith, endsWith, toLowerCase,
    toUpperCase, trim (Python spellings startswith, endswith, lower, upper,
    strip are accepted too)

Anything else (other identifiers, attributes, calls, subscripts, arithmetic)
is rejected.  Any rejection or evaluation error makes the condition False.
"""

from __future__ import annotations

import logging
import math
import operator
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Union

from relayflow.exceptions import ConditionValidationError
from relayflow.types import NodeOutput
from relayflow.workflows.templates import (
    NODE_OUTPUT_PATTERN,
    extract_output_value,
    lookup_node_output,
)

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(
    r"""
     (?P<ws>\s+)
    |(?P<number>\d+(?:\.\d+)?(?:[eE][+-]?\d+)?|\.\d+)
    |(?P<string>'(?:[^'\\\n]|\\.)*'|"(?:[^"\\\n]|\\.)*")
    |(?P<op>===|!==|==|!=|<=|>=|&&|\|\||[<>!()\[\],.+\-])
    |(?P<name>[A-Za-z_][A-Za-z0-9_]*)
    """,
    re.VERBOSE,
)

_LITERAL_NAMES = {
    "true": True, "True": True,
    "false": False, "False": False,
    "null": None, "undefined": None, "None": None,
}

_METHODS = {
    "includes", "startsWith", "endsWith", "toLowerCase", "toUpperCase", "trim",
    "startswith", "endswith", "lower", "upper", "strip",
}

_COMPARE_OPS = {"==", "===", "!=", "!==", "<", "<=", ">", ">=", "in", "not in"}

_STRING_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0"}

_PLACEHOLDER = "__t"


# ── AST ──────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Literal:
    value: Any

@dataclass(frozen=True)
class Name:
    id: str

@dataclass(frozen=True)
class ListExpr:
    items: tuple

@dataclass(frozen=True)
class Unary:
    op: str                 # "not" | "-" | "+"
    operand: Any

@dataclass(frozen=True)
class BoolOp:
    op: str                 # "and" | "or"
    values: tuple

@dataclass(frozen=True)
class Compare:
    left: Any
    ops: tuple
    comparators: tuple

@dataclass(frozen=True)
class Member:
    obj: Any
    name: str               # only "length"

@dataclass(frozen=True)
class MethodCall:
    obj: Any
    name: str
    args: tuple

Node = Union[Literal, Name, ListExpr, Unary, BoolOp, Compare, Member, MethodCall]


# ── Tokenizer + parser ───────────────────────────────────────────────────────


def _tokenize(text: str) -> list[tuple[str, str]]:
    tokens: list[tuple[str, str]] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise ConditionValidationError(
                f"Unexpected character {text[pos]!r} at position {pos}",
                expression=text,
            )
        kind = match.lastgroup
        if kind != "ws":
            tokens.append((kind, match.group(0)))
        pos = match.end()
    return tokens


def _unquote(raw: str) -> str:
    body = raw[1:-1]
    return re.sub(
        r"\\(.)", lambda m: _STRING_ESCAPES.get(m.group(1), m.group(1)), body
    )


class _Parser:
    """Recursive descent, lowest precedence first:

        or      := and (("||" | "or") and)*
        and     := not (("&&" | "and") not)*
        not     := "not" not | compare
        compare := unary (cmp_op unary)*
        unary   := ("!" | "-" | "+") unary | postfix
        postfix := primary ("." NAME ["(" args ")"])*
        primary := NUMBER | STRING | NAME | "(" or ")" | "[" args "]"
    """

    def __init__(self, text: str, allowed_names: Iterable[str]):
        self.text = text
        self.tokens = _tokenize(text)
        self.pos = 0
        self.allowed_names = set(allowed_names)

    # helpers
    def _peek(self, offset: int = 0) -> Optional[tuple[str, str]]:
        idx = self.pos + offset
        return self.tokens[idx] if idx < len(self.tokens) else None

    def _at(self, *values: str) -> bool:
        tok = self._peek()
        return tok is not None and tok[0] in ("op", "name") and tok[1] in values

    def _take(self) -> tuple[str, str]:
        tok = self._peek()
        if tok is None:
            self._fail("Unexpected end of expression")
        self.pos += 1
        return tok

    def _expect(self, value: str) -> None:
        tok = self._take()
        if tok[1] != value:
            self._fail(f"Expected {value!r}, found {tok[1]!r}")

    def _fail(self, message: str):
        raise ConditionValidationError(message, expression=self.text)

    # grammar
    def parse(self) -> Node:
        if not self.tokens:
            self._fail("Empty expression")
        node = self._or()
        if self._peek() is not None:
            self._fail(f"Unexpected token {self._peek()[1]!r}")
        return node

    def _or(self) -> Node:
        values = [self._and()]
        while self._at("||", "or"):
            self._take()
            values.append(self._and())
        return values[0] if len(values) == 1 else BoolOp("or", tuple(values))

    def _and(self) -> Node:
        values = [self._not()]
        while self._at("&&", "and"):
            self._take()
            values.append(self._not())
        return values[0] if len(values) == 1 else BoolOp("and", tuple(values))

    def _not(self) -> Node:
        if self._at("not") and not (self._peek(1) and self._peek(1)[1] == "in"):
            self._take()
            return Unary("not", self._not())
        return self._compare()

    def _compare_op(self) -> Optional[str]:
        tok = self._peek()
        if tok is None:
            return None
        if tok[1] == "not" and self._peek(1) and self._peek(1)[1] == "in":
            return "not in"
        if tok[1] in _COMPARE_OPS and tok[0] in ("op", "name"):
            return tok[1]
        return None

    def _compare(self) -> Node:
        left = self._unary()
        ops: list[str] = []
        comparators: list[Node] = []
        while (op := self._compare_op()) is not None:
            self._take()
            if op == "not in":
                self._take()
            ops.append(op)
            comparators.append(self._unary())
        if not ops:
            return left
        return Compare(left, tuple(ops), tuple(comparators))

    def _unary(self) -> Node:
        if self._at("!"):
            self._take()
            return Unary("not", self._unary())
        if self._at("-", "+"):
            op = self._take()[1]
            return Unary(op, self._unary())
        return self._postfix()

    def _postfix(self) -> Node:
        node = self._primary()
        while self._at("."):
            self._take()
            kind, name = self._take()
            if kind != "name":
                self._fail(f"Expected a property name after '.', found {name!r}")
            if self._at("("):
                if name not in _METHODS:
                    self._fail(f"Method '{name}' is not allowed")
                self._take()
                node = MethodCall(node, name, tuple(self._args(")")))
            elif name == "length":
                node = Member(node, name)
            else:
                self._fail(f"Property access '.{name}' is not allowed")
        return node

    def _args(self, closing: str) -> list[Node]:
        args: list[Node] = []
        if self._at(closing):
            self._take()
            return args
        while True:
            args.append(self._or())
            if self._at(","):
                self._take()
                continue
            self._expect(closing)
            return args

    def _primary(self) -> Node:
        kind, value = self._take()
        if kind == "number":
            number = float(value)
            return Literal(int(number) if number.is_integer() and "e" not in value.lower() and "." not in value else number)
        if kind == "string":
            return Literal(_unquote(value))
        if kind == "name":
            if value in _LITERAL_NAMES:
                return Literal(_LITERAL_NAMES[value])
            if value in self.allowed_names:
                return Name(value)
            self._fail(f"Identifier '{value}' is not allowed")
        if value == "(":
            node = self._or()
            self._expect(")")
            return node
        if value == "[":
            return ListExpr(tuple(self._args("]")))
        self._fail(f"Unexpected token {value!r}")


# ── Grammar validator ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: Optional[str] = None


class ConditionGrammar:
    """Accept/reject + parse for the permitted condition grammar."""

    def parse(self, expression: str, allowed_names: Iterable[str] = ()) -> Node:
        """Parse to an AST.

        Raises:
            ConditionValidationError: on any syntax outside the grammar.
        """
        return _Parser(expression, allowed_names).parse()

    def pre_validate(self, raw: str) -> ValidationResult:
        """Check the raw expression, with node-output tokens as placeholders."""
        if not isinstance(raw, str) or not raw.strip():
            return ValidationResult(False, "Condition expression is empty")
        counter = iter(range(10_000))
        names: list[str] = []

        def _placeholder(_m: re.Match) -> str:  # type: ignore[type-arg]
            name = f"{_PLACEHOLDER}{next(counter)}"
            names.append(name)
            return name

        text = NODE_OUTPUT_PATTERN.sub(_placeholder, raw)
        return self._check(text, names)

    def validate(self, substituted: str, bound_names: Iterable[str]) -> ValidationResult:
        """Check the expression after tokens were replaced by bound names."""
        return self._check(substituted, bound_names)

    def _check(self, text: str, names: Iterable[str]) -> ValidationResult:
        try:
            self.parse(text, names)
        except ConditionValidationError as exc:
            return ValidationResult(False, str(exc))
        return ValidationResult(True)


# ── Evaluation ───────────────────────────────────────────────────────────────


def _truthy(value: Any) -> bool:
    """Truthiness as the workflow editor's expression language defines it."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    if isinstance(value, str):
        return value != ""
    return True  # lists and objects are truthy even when empty


def _as_number(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return float(value) if value.strip() else value
        except ValueError:
            return value
    return value


def _coerce_pair(left: Any, right: Any) -> tuple[Any, Any]:
    """Numeric strings compare as numbers against numbers."""
    left_num = isinstance(left, (int, float)) and not isinstance(left, bool)
    right_num = isinstance(right, (int, float)) and not isinstance(right, bool)
    if left_num and isinstance(right, str):
        return left, _as_number(right)
    if right_num and isinstance(left, str):
        return _as_number(left), right
    return left, right


_ORDERING = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def _strict_equal(left: Any, right: Any) -> bool:
    """Equality without coercion: a number never equals a string or a boolean."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    numeric = (int, float)
    if isinstance(left, numeric) and isinstance(right, numeric):
        return left == right
    return type(left) is type(right) and left == right


def _apply_compare_op(op: str, left: Any, right: Any) -> bool:
    """Apply a single comparison operator."""
    if op in ("in", "not in"):
        contained = left in right if not isinstance(right, str) else str(left) in right
        return contained if op == "in" else not contained
    if op == "===":
        return _strict_equal(left, right)
    if op == "!==":
        return not _strict_equal(left, right)
    left, right = _coerce_pair(left, right)
    if op == "==":
        return left == right
    if op == "!=":
        return left != right
    if op in _ORDERING:
        try:
            return _ORDERING[op](left, right)
        except TypeError:
            # missing or mismatched operands never order
            return False
    raise ConditionValidationError(f"Unsupported comparison operator: {op}")


def _call_method(obj: Any, name: str, args: list[Any]) -> Any:
    if name == "includes":
        if isinstance(obj, str):
            return str(args[0]) in obj if args else False
        if isinstance(obj, (list, tuple)):
            return bool(args) and args[0] in obj
        raise TypeError(f"includes() is not defined for {type(obj).__name__}")
    if not isinstance(obj, str):
        raise TypeError(f"{name}() requires a string, got {type(obj).__name__}")
    if name in ("startsWith", "startswith"):
        return obj.startswith(str(args[0])) if args else False
    if name in ("endsWith", "endswith"):
        return obj.endswith(str(args[0])) if args else False
    if name in ("toLowerCase", "lower"):
        return obj.lower()
    if name in ("toUpperCase", "upper"):
        return obj.upper()
    if name in ("trim", "strip"):
        return obj.strip()
    raise ConditionValidationError(f"Method '{name}' is not allowed")


def eval_node(node: Node, bindings: Mapping[str, Any]) -> Any:
    """Recursively evaluate a parsed condition AST against bound values."""
    if isinstance(node, Literal):
        return node.value

    if isinstance(node, Name):
        return bindings.get(node.id)

    if isinstance(node, ListExpr):
        return [eval_node(item, bindings) for item in node.items]

    if isinstance(node, Unary):
        value = eval_node(node.operand, bindings)
        if node.op == "not":
            return not _truthy(value)
        value = _as_number(value)
        return -value if node.op == "-" else +value

    if isinstance(node, BoolOp):
        # Short-circuit and return the deciding operand, like && / ||
        result: Any = None
        for operand in node.values:
            result = eval_node(operand, bindings)
            if node.op == "and" and not _truthy(result):
                return result
            if node.op == "or" and _truthy(result):
                return result
        return result

    if isinstance(node, Compare):
        left = eval_node(node.left, bindings)
        for op, comparator in zip(node.ops, node.comparators):
            right = eval_node(comparator, bindings)
            if not _apply_compare_op(op, left, right):
                return False
            left = right
        return True

    if isinstance(node, Member):
        value = eval_node(node.obj, bindings)
        return len(value) if isinstance(value, (str, list, tuple, dict)) else None

    if isinstance(node, MethodCall):
        obj = eval_node(node.obj, bindings)
        return _call_method(obj, node.name, [eval_node(a, bindings) for a in node.args])

    raise ConditionValidationError(f"Unsupported expression node '{type(node).__name__}'")


@dataclass
class ConditionEvaluation:
    result: bool
    resolved_values: dict[str, Any] = field(default_factory=dict)


def evaluate_condition_expression(
    expression: Any,
    outputs: Mapping[str, NodeOutput],
    grammar: Optional[ConditionGrammar] = None,
) -> ConditionEvaluation:
    """Evaluate a Condition node's ``condition`` field.  Never raises.

    Args:
        expression: bool (used as-is) or expression string.
        outputs:    Node outputs recorded so far in this run.
        grammar:    Grammar validator; defaults to ConditionGrammar().

    Returns:
        ConditionEvaluation with the boolean result and the value each token
        resolved to, keyed by the token's display text (``Label.path``).
    """
    if isinstance(expression, bool):
        return ConditionEvaluation(expression)

    if not isinstance(expression, str):
        return ConditionEvaluation(_truthy(expression))

    grammar = grammar or ConditionGrammar()
    logger.debug(f"[Condition] Original expression: {expression!r}")

    pre = grammar.pre_validate(expression)
    if not pre.valid:
        logger.error(f"[Condition] Pre-validation failed: {pre.error} (expression={expression!r})")
        return ConditionEvaluation(False)

    bindings: dict[str, Any] = {}
    resolved_values: dict[str, Any] = {}

    def _bind(match: re.Match) -> str:  # type: ignore[type-arg]
        node_id, rest = match.group(1), match.group(2)
        output = lookup_node_output(outputs, node_id)
        if output is None:
            logger.info(f"[Condition] Output not found for node: {node_id!r}")
            return match.group(0)
        name = f"__v{len(bindings)}"
        bindings[name] = extract_output_value(output.data, rest)
        resolved_values[rest] = bindings[name]
        return name

    try:
        substituted = NODE_OUTPUT_PATTERN.sub(_bind, expression)

        check = grammar.validate(substituted, bindings.keys())
        if not check.valid:
            logger.error(
                f"[Condition] Validation failed: {check.error} "
                f"(expression={expression!r}, transformed={substituted!r})"
            )
            return ConditionEvaluation(False, resolved_values)

        tree = grammar.parse(substituted, bindings.keys())
        result = _truthy(eval_node(tree, bindings))
        logger.debug(f"[Condition] Final result: {result}")
        return ConditionEvaluation(result, resolved_values)
    except Exception as exc:
        logger.error(f"[Condition] Failed to evaluate condition {expression!r}: {exc}")
        return ConditionEvaluation(False)
