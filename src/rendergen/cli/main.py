"""Main CLI entry point."""

import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import rich_click as click
from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax

from rendergen import __version__
from rendergen.compiler import compile_template
from rendergen.compiler.exceptions import TemplateCompileError
from rendergen.compiler.ir import IRElement
from rendergen.config import OUTPUT_FORMATS, ConfigError, load_config
from rendergen.diagnostics import report_error

console = Console()
err_console = Console(stderr=True)

click.rich_click.USE_RICH_MARKUP = True
click.rich_click.STYLE_HELPTEXT_FIRST = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = "Try running 'rendergen --help' for more information."

# Cyan theme
click.rich_click.STYLE_HEADER_TEXT = "bold cyan"
click.rich_click.STYLE_OPTION = "cyan"
click.rich_click.STYLE_SWITCH = "cyan"
click.rich_click.STYLE_METAVAR = "dim white"
click.rich_click.STYLE_USAGE_COMMAND = "cyan"
click.rich_click.STYLE_USAGE = "dim"


def import_ir(target: str) -> IRElement:
    """Import a template IR root from string (e.g. 'templates.card:root').

    The attribute may also be a callable returning the root.
    """
    if ":" not in target:
        raise click.BadParameter("Target must be in format 'module:attr'", param_hint="TARGET")

    module_name, attr = target.split(":", 1)

    # Add current directory to path so we can import local modules
    sys.path.insert(0, os.getcwd())

    try:
        import importlib

        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(
            f"Could not import module '{module_name}': {e}", param_hint="TARGET"
        )

    try:
        root = getattr(module, attr)
    except AttributeError:
        raise click.BadParameter(
            f"Attribute '{attr}' not found in module '{module_name}'",
            param_hint="TARGET",
        )

    if callable(root) and not isinstance(root, IRElement):
        root = root()
    if not isinstance(root, IRElement):
        raise click.BadParameter(
            f"'{target}' is a {type(root).__name__}, expected an IRElement",
            param_hint="TARGET",
        )
    return root


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False, markup=True)],
    )


@click.group(
    help=f"""
[bold white on cyan] rendergen [/] [bold cyan]v{__version__}[/] Compile UI templates into Python render functions.

Run [bold cyan]rendergen compile TARGET[/] to print the generated code.

[dim]TARGET is a string in format 'module:attr' naming a template IR root, e.g. 'templates.card:root'[/dim]
"""
)
@click.version_option(__version__)
def cli() -> None:
    pass


@cli.command("compile")
@click.argument("target")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(OUTPUT_FORMATS),
    default=None,
    help="Output format (default: module)",
)
@click.option(
    "--no-fragment-scoping",
    is_flag=True,
    help="Do not scope '#fragment' URLs",
)
@click.option("--runtime-module", default=None, help="Module providing register_template")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: ./rendergen.config.py)",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the generated code to a file",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logs")
def compile_command(
    target: str,
    output_format: Optional[str],
    no_fragment_scoping: bool,
    runtime_module: Optional[str],
    config_path: Optional[Path],
    output: Optional[Path],
    verbose: bool,
) -> None:
    """Compile a template IR root into a render function."""
    _setup_logging(verbose)

    try:
        base = load_config(config_path)
    except ConfigError as e:
        raise click.BadParameter(str(e), param_hint="--config")

    options: Dict[str, Any] = {
        "format": base.format,
        "scope_fragment_ids": base.scope_fragment_ids,
        "runtime_module": base.runtime_module,
        "name": target,
    }
    if output_format:
        options["format"] = output_format
    if no_fragment_scoping:
        options["scope_fragment_ids"] = False
    if runtime_module:
        options["runtime_module"] = runtime_module

    root = import_ir(target)

    try:
        compiled = compile_template(root, options)
    except TemplateCompileError as e:
        report_error(e, console=err_console)
        sys.exit(1)

    if output:
        output.write_text(compiled.code + "\n", encoding="utf-8")
        console.print(f"✨ Wrote [cyan]{output}[/]")
    else:
        console.print(Syntax(compiled.code, "python"))

    if compiled.dependencies:
        err_console.print(
            f"📦 Components: [cyan]{', '.join(compiled.dependencies)}[/]"
        )


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
