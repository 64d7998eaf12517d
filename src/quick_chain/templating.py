"""Jinja2 rendering for step prompt templates."""

from __future__ import annotations

from typing import Mapping

from jinja2 import Environment, StrictUndefined, UndefinedError, meta, nodes

from quick_chain.errors import MissingVariable

TEMPLATE_ENV = Environment(
    variable_start_string="{{",
    variable_end_string="}}",
    undefined=StrictUndefined,
    autoescape=False,
    keep_trailing_newline=True,
)


def check_syntax(template: str) -> None:
    """Raises jinja2.TemplateSyntaxError when ``template`` does not parse."""
    TEMPLATE_ENV.parse(template)


def placeholders(template: str) -> list[str]:
    """Names the template reads from its variables, in first-seen order."""
    ast = TEMPLATE_ENV.parse(template)
    undeclared = meta.find_undeclared_variables(ast)
    names = [node.name for node in ast.find_all(nodes.Name) if node.name in undeclared]
    return list(dict.fromkeys(names))


def render(template: str, variables: Mapping[str, str]) -> str:
    """
    Renders ``template`` with ``variables``.
    Raises MissingVariable for the first placeholder without a value.
    """
    for name in placeholders(template):
        if name not in variables:
            raise MissingVariable(name)
    try:
        return TEMPLATE_ENV.from_string(template).render(**variables)
    except UndefinedError as exc:
        raise MissingVariable(exc.message or str(exc)) from exc
