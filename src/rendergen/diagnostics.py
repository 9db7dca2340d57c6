"""Readable compile error reports for template authors."""

from typing import Optional

from rich.console import Console, Group, RenderableType
from rich.panel import Panel
from rich.syntax import Syntax
from rich.text import Text

from rendergen.compiler.exceptions import (
    CodegenError,
    InvalidTemplateError,
    TemplateCompileError,
)

_TITLES = {
    InvalidTemplateError: "Invalid template",
    CodegenError: "Code generation failed",
}

CONTEXT_LINES = 2


def _title(error: TemplateCompileError) -> str:
    for cls in type(error).__mro__:
        if cls in _TITLES:
            return _TITLES[cls]
    return "Template compile error"


def render_error(error: TemplateCompileError, source: Optional[str] = None) -> Panel:
    """Build a panel describing ``error``.

    If the template ``source`` is given and the error has a line number, the
    surrounding lines are shown with the failing line highlighted.
    """
    parts: list[RenderableType] = []

    location = error.filename or "<template>"
    if error.line:
        location += f", line {error.line}, column {error.column}"
    parts.append(Text(location, style="dim"))
    parts.append(Text(error.message, style="bold"))

    if source and error.line:
        total = source.count("\n") + 1
        if error.line <= total:
            parts.append(
                Syntax(
                    source,
                    "html",
                    line_numbers=True,
                    line_range=(
                        max(1, error.line - CONTEXT_LINES),
                        min(total, error.line + CONTEXT_LINES),
                    ),
                    highlight_lines={error.line},
                )
            )

    return Panel(Group(*parts), title=_title(error), border_style="red", expand=False)


def report_error(
    error: TemplateCompileError,
    console: Optional[Console] = None,
    source: Optional[str] = None,
) -> None:
    console = console or Console(stderr=True)
    console.print(render_error(error, source))
