"""Directive argument parsing.

Turns the parenthesized argument text of a directive into a mapping:

    >>> parse_directive_args("(group='org.foo', module='bar', version='1.0')")
    {'group': 'org.foo', 'module': 'bar', 'version': '1.0'}
    >>> parse_directive_args("('org.foo:bar:1.0')")
    {'coordinates': 'org.foo:bar:1.0'}

Values must be Python literals; nothing in the directive is executed.
"""

import ast
from typing import Any

from ..errors import DirectiveSyntaxError
from ..spec import COORDINATES_KEY


def parse_directive_args(text: str) -> dict[str, Any]:
    """Parse ``(key=value, ...)`` or ``('coordinates')`` into a dict.

    Raises:
        DirectiveSyntaxError: Text is not a parenthesized literal argument list
    """
    stripped = text.strip()
    if not stripped.startswith("("):
        raise DirectiveSyntaxError("Directive arguments must be parenthesized", text)

    try:
        tree = ast.parse(f"_{stripped}", mode="eval")
    except SyntaxError as e:
        raise DirectiveSyntaxError(f"Invalid directive arguments ({e.msg})", text) from e

    call = tree.body
    if not isinstance(call, ast.Call) or not (isinstance(call.func, ast.Name) and call.func.id == "_"):
        raise DirectiveSyntaxError("Invalid directive arguments", text)

    result: dict[str, Any] = {}

    if call.args:
        if len(call.args) > 1:
            raise DirectiveSyntaxError("At most one positional coordinates string is allowed", text)
        coordinates = _literal(call.args[0], text)
        if not isinstance(coordinates, str):
            raise DirectiveSyntaxError("Positional argument must be a coordinates string", text)
        result[COORDINATES_KEY] = coordinates

    for keyword in call.keywords:
        if keyword.arg is None:
            raise DirectiveSyntaxError("Keyword unpacking is not allowed", text)
        result[keyword.arg] = _literal(keyword.value, text)

    if not result:
        raise DirectiveSyntaxError("Directive has no arguments", text)
    return result


def _literal(node: ast.expr, text: str) -> Any:
    try:
        return ast.literal_eval(node)
    except (TypeError, ValueError) as e:
        raise DirectiveSyntaxError(f"Directive values must be literals ({ast.unparse(node)})", text) from e
