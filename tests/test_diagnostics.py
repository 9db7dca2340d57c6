import unittest

from rich.console import Console
from rich.panel import Panel

from rendergen.compiler.exceptions import (
    CodegenError,
    InvalidTemplateError,
    TemplateCompileError,
)
from rendergen.diagnostics import render_error, report_error

SOURCE = """<template>
  <ul>
    <li for:each={items} for:item="_item"></li>
  </ul>
</template>"""


def render_text(renderable):
    console = Console(record=True, width=120)
    console.print(renderable)
    return console.export_text()


class TestRenderError(unittest.TestCase):
    def test_panel_title(self):
        self.assertEqual(render_error(InvalidTemplateError("bad")).title, "Invalid template")
        self.assertEqual(render_error(CodegenError("bad")).title, "Code generation failed")
        self.assertEqual(render_error(TemplateCompileError("bad")).title, "Template compile error")

    def test_location_and_message(self):
        error = InvalidTemplateError("'_item' is reserved", filename="list.html", line=3, column=5)
        panel = render_error(error)
        self.assertIsInstance(panel, Panel)

        output = render_text(panel)
        self.assertIn("list.html, line 3, column 5", output)
        self.assertIn("'_item' is reserved", output)

    def test_source_excerpt(self):
        error = InvalidTemplateError("'_item' is reserved", filename="list.html", line=3, column=5)
        output = render_text(render_error(error, SOURCE))
        self.assertIn('for:item="_item"', output)

    def test_source_ignored_without_line(self):
        output = render_text(render_error(CodegenError("broken"), SOURCE))
        self.assertNotIn("for:each", output)
        self.assertIn("<template>", output)

    def test_report_error(self):
        console = Console(record=True, width=120)
        report_error(CodegenError("broken", filename="card"), console=console)
        output = console.export_text()
        self.assertIn("Code generation failed", output)
        self.assertIn("broken", output)


if __name__ == "__main__":
    unittest.main()
