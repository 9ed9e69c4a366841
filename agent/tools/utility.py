"""Clock and calculator tools."""

import ast
import logging
import math
import operator
from datetime import datetime
from typing import Any, Callable, Dict

from ..exceptions import ToolExecutionError

logger = logging.getLogger(__name__)

_BINARY_OPS: Dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPS: Dict[type, Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

_FUNCTIONS: Dict[str, Callable[..., float]] = {
    "sqrt": math.sqrt,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "abs": abs,
    "log": math.log,
    "exp": math.exp,
    "round": round,
}

_CONSTANTS = {"pi": math.pi, "e": math.e}

# Guards against expressions like 9**9**9
_MAX_EXPONENT = 1000


def evaluate_expression(expression: str) -> float:
    """Evaluate an arithmetic expression without executing code.

    Supports + - * / // % and ** (``^`` is accepted as power), parentheses,
    pi, e and a few math functions.

    Raises:
        ToolExecutionError: On syntax errors, unsupported constructs or
            math domain errors
    """
    try:
        tree = ast.parse(expression.replace("^", "**").strip(), mode="eval")
    except SyntaxError as e:
        raise ToolExecutionError(f"Cannot evaluate: {expression}", "calculate") from e

    try:
        return _evaluate(tree.body)
    except ZeroDivisionError as e:
        raise ToolExecutionError("Division by zero", "calculate") from e
    except (ValueError, OverflowError) as e:
        raise ToolExecutionError(f"Math error: {e}", "calculate") from e


def _evaluate(node: ast.AST) -> Any:
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
        return node.value

    if isinstance(node, ast.Name) and node.id in _CONSTANTS:
        return _CONSTANTS[node.id]

    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        left = _evaluate(node.left)
        right = _evaluate(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > _MAX_EXPONENT:
            raise ValueError("exponent too large")
        return _BINARY_OPS[type(node.op)](left, right)

    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_evaluate(node.operand))

    if (
        isinstance(node, ast.Call)
        and isinstance(node.func, ast.Name)
        and node.func.id in _FUNCTIONS
        and not node.keywords
    ):
        return _FUNCTIONS[node.func.id](*[_evaluate(arg) for arg in node.args])

    raise ToolExecutionError(f"Unsupported expression element: {ast.dump(node)}", "calculate")


def format_number(value: Any) -> str:
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return str(value)


class CurrentTimeTool:
    """Tool reporting the local date and time."""

    def __init__(self):
        self.name = "get_current_time"
        self.description = "Get the current date and time"
        self.parameters = {"type": "object", "properties": {}}

    async def run(self) -> str:
        now = datetime.now().astimezone()
        return f"Current date and time: {now.strftime('%Y-%m-%d %H:%M:%S %Z')}"


class CalculatorTool:
    """Tool evaluating arithmetic expressions safely."""

    def __init__(self):
        self.name = "calculate"
        self.description = "Evaluate a mathematical expression, e.g. '2 * (3 + 4)' or 'sqrt(16)'"
        self.parameters = {
            "type": "object",
            "properties": {
                "expression": {
                    "type": "string",
                    "description": "The expression to evaluate",
                },
            },
            "required": ["expression"],
        }

    async def run(self, expression: str) -> str:
        """Evaluate an expression.

        Args:
            expression: Arithmetic expression

        Returns:
            The result, formatted as "Result: <value>"
        """
        result = evaluate_expression(str(expression))
        logger.debug(f"Calculated {expression} = {result}")
        return f"Result: {format_number(result)}"
