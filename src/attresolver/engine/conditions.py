# src/attresolver/engine/conditions.py
"""Safe expression language for plugin activation conditions.

Uses Python's ast module to parse and evaluate expressions in a restricted
subset of Python. This is NOT eval() - it is a whitelist-based evaluator.

Expressions see one name, ``request``, a mapping with the keys:

- principal: authenticated principal name
- requester: relying party entity id (may be None)
- issuer: identity provider entity id (may be None)
- requested: list of attribute ids the caller asked for

Example:
    request['requester'] in ['https://sp1.example.org', 'https://sp2.example.org']
    and request.get('principal') != 'guest'

Two phases:
1. Parse-time validation when the plugin is configured (errors are
   configuration errors)
2. Evaluation once per request
"""

from __future__ import annotations

import ast
import operator
from collections.abc import Mapping
from typing import Any

from attresolver.contracts.errors import ConfigurationError


class ConditionSyntaxError(ConfigurationError):
    """Raised when a condition is not valid Python syntax."""


class ConditionSecurityError(ConfigurationError):
    """Raised when a condition contains forbidden constructs."""


class ConditionEvaluationError(Exception):
    """Raised when a valid condition fails against a request.

    Wraps KeyError/TypeError raised while evaluating; the original
    exception is chained via __cause__.
    """


_COMPARISON_OPS: dict[type[ast.cmpop], Any] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
}

_NAMESPACE = "request"
_CONSTANT_NAMES = {"True": True, "False": False, "None": None}


class _ConditionValidator(ast.NodeVisitor):
    """Collects every forbidden construct instead of stopping at the first."""

    def __init__(self) -> None:
        self.errors: list[str] = []

    def _is_none(self, node: ast.expr) -> bool:
        if isinstance(node, ast.Constant) and node.value is None:
            return True
        return isinstance(node, ast.Name) and node.id == "None"

    def _is_get_call(self, node: ast.AST) -> bool:
        return (
            isinstance(node, ast.Call)
            and isinstance(node.func, ast.Attribute)
            and isinstance(node.func.value, ast.Name)
            and node.func.value.id == _NAMESPACE
            and node.func.attr == "get"
        )

    def visit_Expression(self, node: ast.Expression) -> None:
        self.visit(node.body)

    def visit_Name(self, node: ast.Name) -> None:
        if node.id != _NAMESPACE and node.id not in _CONSTANT_NAMES:
            self.errors.append(f"Forbidden name: {node.id!r}")

    def visit_Constant(self, node: ast.Constant) -> None:
        if node.value is not None and not isinstance(node.value, str | int | float | bool):
            self.errors.append(f"Forbidden constant type: {type(node.value).__name__}")

    def visit_Subscript(self, node: ast.Subscript) -> None:
        if isinstance(node.slice, ast.Slice):
            self.errors.append("Slice syntax is forbidden")
        if not (isinstance(node.value, ast.Name) and node.value.id == _NAMESPACE) and not self._is_get_call(node.value):
            self.errors.append("Subscript access is only allowed on request data")
        self.visit(node.value)
        self.visit(node.slice)

    def visit_Call(self, node: ast.Call) -> None:
        if not self._is_get_call(node):
            self.errors.append(f"Forbidden function call: {ast.unparse(node.func)}")
            return
        if not 1 <= len(node.args) <= 2:
            self.errors.append(f"request.get() requires 1 or 2 arguments, got {len(node.args)}")
        if node.keywords:
            self.errors.append("request.get() does not accept keyword arguments")
        for arg in node.args:
            self.visit(arg)

    def visit_Attribute(self, node: ast.Attribute) -> None:
        # Reached only outside a request.get(...) call
        self.errors.append(f"Forbidden attribute access: {node.attr!r}")

    def visit_Compare(self, node: ast.Compare) -> None:
        operands = [node.left, *node.comparators]
        for i, op in enumerate(node.ops):
            if type(op) not in _COMPARISON_OPS:
                self.errors.append(f"Forbidden comparison operator: {type(op).__name__}")
            elif isinstance(op, ast.Is | ast.IsNot) and not (self._is_none(operands[i]) or self._is_none(operands[i + 1])):
                self.errors.append("'is' and 'is not' operators are only allowed for None checks")
        for operand in operands:
            self.visit(operand)

    def visit_BoolOp(self, node: ast.BoolOp) -> None:
        for value in node.values:
            self.visit(value)

    def visit_UnaryOp(self, node: ast.UnaryOp) -> None:
        if not isinstance(node.op, ast.Not):
            self.errors.append(f"Forbidden unary operator: {type(node.op).__name__}")
        self.visit(node.operand)

    def visit_List(self, node: ast.List) -> None:
        for elt in node.elts:
            self.visit(elt)

    def visit_Tuple(self, node: ast.Tuple) -> None:
        for elt in node.elts:
            self.visit(elt)

    def visit_Set(self, node: ast.Set) -> None:
        for elt in node.elts:
            self.visit(elt)

    def generic_visit(self, node: ast.AST) -> None:
        self.errors.append(f"Forbidden construct: {type(node).__name__}")


class _ConditionEvaluator(ast.NodeVisitor):
    """Evaluates a validated AST against one request mapping."""

    def __init__(self, request: Mapping[str, Any]) -> None:
        self._request = request

    def visit_Expression(self, node: ast.Expression) -> Any:
        return self.visit(node.body)

    def visit_Name(self, node: ast.Name) -> Any:
        if node.id == _NAMESPACE:
            return self._request
        return _CONSTANT_NAMES[node.id]

    def visit_Constant(self, node: ast.Constant) -> Any:
        return node.value

    def visit_Subscript(self, node: ast.Subscript) -> Any:
        value = self.visit(node.value)
        key = self.visit(node.slice)
        try:
            return value[key]
        except KeyError as e:
            raise ConditionEvaluationError(f"Key '{key}' not found. Available keys: {sorted(value)}") from e
        except (IndexError, TypeError) as e:
            raise ConditionEvaluationError(f"Cannot access '{key}' on {type(value).__name__}: {e}") from e

    def visit_Call(self, node: ast.Call) -> Any:
        args = [self.visit(arg) for arg in node.args]
        try:
            return self._request.get(*args)
        except TypeError as e:
            raise ConditionEvaluationError(f"invalid argument to request.get(): {e}") from e

    def visit_Compare(self, node: ast.Compare) -> Any:
        left = self.visit(node.left)
        for op, comparator in zip(node.ops, node.comparators, strict=True):
            right = self.visit(comparator)
            try:
                if not _COMPARISON_OPS[type(op)](left, right):
                    return False
            except TypeError as e:
                raise ConditionEvaluationError(
                    f"cannot compare {type(left).__name__} and {type(right).__name__} with {type(op).__name__}"
                ) from e
            left = right
        return True

    def visit_BoolOp(self, node: ast.BoolOp) -> Any:
        if isinstance(node.op, ast.And):
            return all(self.visit(value) for value in node.values)
        return any(self.visit(value) for value in node.values)

    def visit_UnaryOp(self, node: ast.UnaryOp) -> Any:
        return not self.visit(node.operand)

    def visit_List(self, node: ast.List) -> Any:
        return [self.visit(elt) for elt in node.elts]

    def visit_Tuple(self, node: ast.Tuple) -> Any:
        return tuple(self.visit(elt) for elt in node.elts)

    def visit_Set(self, node: ast.Set) -> Any:
        try:
            return {self.visit(elt) for elt in node.elts}
        except TypeError as e:
            raise ConditionEvaluationError(f"cannot create set literal: {e}") from e


class ActivationCondition:
    """A parsed, validated activation condition.

    Allowed operations:
    - Request access: request['key'], request.get('key'), request.get('key', default)
    - Comparisons: ==, !=, <, >, <=, >=, in, not in, is None, is not None
    - Boolean operators: and, or, not
    - Literals: strings, numbers, booleans, None, list/tuple/set literals

    Everything else (calls, attributes, arithmetic, comprehensions) is rejected
    at construction.

    Example:
        condition = ActivationCondition("request['requester'] == 'https://sp.example.org'")
        condition.evaluate({"requester": "https://sp.example.org"})  # True
    """

    def __init__(self, expression: str) -> None:
        """Parse and validate the expression.

        Raises:
            ConditionSyntaxError: If expression is not valid Python syntax
            ConditionSecurityError: If expression contains forbidden constructs
        """
        self._expression = expression
        try:
            self._ast = ast.parse(expression, mode="eval")
        except SyntaxError as e:
            raise ConditionSyntaxError(f"Invalid activation condition syntax: {e.msg}") from e

        validator = _ConditionValidator()
        validator.visit(self._ast)
        if validator.errors:
            raise ConditionSecurityError(f"Invalid activation condition {expression!r}: {'; '.join(validator.errors)}")

    @property
    def expression(self) -> str:
        return self._expression

    def evaluate(self, request: Mapping[str, Any]) -> bool:
        """Evaluate against one request; the result is coerced to bool."""
        return bool(_ConditionEvaluator(request).visit(self._ast))

    def __repr__(self) -> str:
        return f"ActivationCondition({self._expression!r})"
