"""Error types for Stitch.

Every error raised while parsing directives, loading pages or resolving
templates derives from StitchError. None of them are recoverable inside a
build: the builder wraps them in a BuildError that names the offending file.
"""

from __future__ import annotations

from pathlib import Path


class StitchError(Exception):
    """Base class for all Stitch errors."""


class EmptyDirective(StitchError):
    def __init__(self) -> None:
        super().__init__("empty directive")


class UnclosedQuote(StitchError):
    def __init__(self) -> None:
        super().__init__("unclosed quote")


class MissingArgument(StitchError):
    """A directive was used without one of its required arguments.

    Attributes:
        which: Name of the missing argument ("name" or "command").
    """

    def __init__(self, which: str) -> None:
        self.which = which
        super().__init__(f"missing argument: {which}")


class UnknownDirective(StitchError):
    """The first token of a directive is not a known directive name.

    Attributes:
        name: The unrecognized token.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"unknown directive: {name}")


class UnclosedDirective(StitchError):
    def __init__(self) -> None:
        super().__init__("unclosed directive: '{{' without matching '}}'")


class UnclosedConfigBlock(StitchError):
    def __init__(self) -> None:
        super().__init__("unclosed config block: '+++' without matching '+++'")


class ConfigParseError(StitchError):
    """Front matter could not be parsed into a page config."""

    def __init__(self, message: str) -> None:
        super().__init__(f"failed parsing config: {message}")


class ExtendWithNoPageContent(StitchError):
    def __init__(self, name: str | None = None) -> None:
        self.name = name
        target = f"'{name}'" if name else "extended template"
        super().__init__(f"{target} does not have a 'pagecontent' directive")


class ToplevelPageContent(StitchError):
    def __init__(self) -> None:
        super().__init__("'pagecontent' directive can not be used at page top level")


class ExecCommandFailed(StitchError):
    """An `exec` directive's command exited with a non-zero status.

    Attributes:
        status: Exit status of the process.
        stderr: Captured standard error, decoded lossily.
    """

    def __init__(self, status: int, stderr: str) -> None:
        self.status = status
        self.stderr = stderr
        super().__init__(f"'exec' command failed ({status}): {stderr.strip()}")


class TemplateNotFound(StitchError):
    """A template referenced by `extends` or `use` does not exist.

    Attributes:
        template_name: The name used in the directive.
        path: Path that was looked up.
    """

    def __init__(self, template_name: str, path: Path) -> None:
        self.template_name = template_name
        self.path = path
        super().__init__(f"template '{template_name}' not found at {path}")


class TemplateRecursionError(StitchError):
    def __init__(self, depth: int) -> None:
        self.depth = depth
        super().__init__(
            f"template nesting exceeded {depth} levels (recursive extends/use?)"
        )


class OutputPathError(StitchError):
    def __init__(self, output: str) -> None:
        self.output = output
        super().__init__(f"output path escapes the output directory: {output}")
