"""Compiler exceptions."""


class TemplateCompileError(Exception):
    """Raised when a template cannot be compiled."""

    def __init__(self, message: str, filename: str = "", line: int = 0, column: int = 0):
        self.message = message
        self.filename = filename
        self.line = line
        self.column = column
        super().__init__(message)

    def __str__(self) -> str:
        if self.filename and self.line:
            return f"{self.filename}:{self.line}:{self.column}: {self.message}"
        if self.line:
            return f"{self.line}:{self.column}: {self.message}"
        return self.message


class CodegenError(TemplateCompileError):
    """Structural error raised while generating the render function."""


class InvalidTemplateError(TemplateCompileError):
    """The IR handed to the compiler breaks its input contract."""
