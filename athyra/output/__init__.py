"""Output formatting for generation results."""

from athyra.output.formatters import (
    format_generation_json,
    format_generation_markdown,
    format_shopping_list_json,
    format_recipe_json,
    format_money,
)

__all__ = [
    "format_generation_json",
    "format_generation_markdown",
    "format_shopping_list_json",
    "format_recipe_json",
    "format_money",
]
