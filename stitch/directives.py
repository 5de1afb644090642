"""Directive scanning and parsing for Stitch.

A directive is a `{{ ... }}` marker embedded in page or template text. This
module finds directive spans in a text buffer and turns their inner text into
one of a fixed set of directive types.

Key functions:
- find_next_span: Locate the first `{{ ... }}` span in a text.
- parse_directive: Tokenize and classify a span's inner text.
- find_next_directive: Locate and parse the first directive.
- find_directive: Locate the first directive of a given kind.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Union

from .errors import (
    EmptyDirective,
    MissingArgument,
    UnclosedDirective,
    UnclosedQuote,
    UnknownDirective,
)

OPENER = "{{"
CLOSER = "}}"
WHITESPACE = " \t\r\n"
QUOTES = "\"'"


@dataclass(frozen=True)
class Extends:
    """Splice the page body into a template at its `pagecontent` marker."""

    kind: ClassVar[str] = "extends"
    name: str


@dataclass(frozen=True)
class Use:
    """Inline another template's fully resolved content."""

    kind: ClassVar[str] = "use"
    name: str


@dataclass(frozen=True)
class PageName:
    kind: ClassVar[str] = "pagename"


@dataclass(frozen=True)
class NavItems:
    kind: ClassVar[str] = "navitems"


@dataclass(frozen=True)
class CurrentDate:
    """Current local time, formatted with strftime."""

    kind: ClassVar[str] = "currentdate"
    format: str | None = None


@dataclass(frozen=True)
class Exec:
    """Standard output of an external command."""

    kind: ClassVar[str] = "exec"
    command: str
    args: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class PageContent:
    """Splice marker, only meaningful inside an extended template."""

    kind: ClassVar[str] = "pagecontent"


Directive = Union[Extends, Use, PageName, NavItems, CurrentDate, Exec, PageContent]


@dataclass(frozen=True)
class DirectiveSpan:
    """Raw location of a `{{ ... }}` construct.

    Attributes:
        start_pos: Index of the first `{` of the opener.
        end_pos: Index of the last `}` of the closer (inclusive).
        inner: Text between the markers, untrimmed.
    """

    start_pos: int
    end_pos: int
    inner: str


@dataclass(frozen=True)
class DirectiveInstance:
    """A parsed directive together with its span in the source text."""

    start_pos: int
    end_pos: int
    directive: Directive

    def replace(self, text: str, insert: str) -> str:
        """Return `text` with this directive's span replaced by `insert`."""
        return text[: self.start_pos] + insert + text[self.end_pos + 1 :]

    def remove(self, text: str) -> str:
        """Return `text` with this directive's span cut out."""
        return self.replace(text, "")


def find_next_span(text: str) -> DirectiveSpan | None:
    """Find the first `{{ ... }}` span in text.

    The closer is the first `}}` after the opener, so a `}}` inside a quoted
    argument ends the directive early.

    Args:
        text: Text to scan.

    Returns:
        The span, or None when the text contains no opener.

    Raises:
        UnclosedDirective: If an opener has no matching closer.
    """
    start_pos = text.find(OPENER)
    if start_pos == -1:
        return None
    close = text.find(CLOSER, start_pos)
    if close == -1:
        raise UnclosedDirective()
    end_pos = close + len(CLOSER) - 1
    return DirectiveSpan(start_pos, end_pos, text[start_pos + len(OPENER) : close])


def tokenize(text: str) -> list[str]:
    """Split directive text on whitespace, honouring single and double quotes.

    A quoted region becomes one token without its quote characters; the other
    quote character is kept verbatim inside it.

    Raises:
        UnclosedQuote: If a quote is opened but never closed.
    """
    tokens: list[str] = []
    active_quote: str | None = None
    start = 0
    for i, char in enumerate(text):
        if active_quote is not None:
            if char == active_quote:
                tokens.append(text[start:i])
                active_quote = None
                start = i + 1
            continue
        if char in WHITESPACE:
            if start != i:
                tokens.append(text[start:i])
            start = i + 1
        elif char in QUOTES:
            active_quote = char
            start = i + 1
    if active_quote is not None:
        raise UnclosedQuote()
    rest = text[start:]
    if rest:
        tokens.append(rest)
    return tokens


def parse_directive(inner: str) -> Directive:
    """Parse the inner text of a directive span.

    Args:
        inner: Text between `{{` and `}}`, untrimmed.

    Returns:
        The directive described by the text.

    Raises:
        EmptyDirective: If the text is blank.
        UnclosedQuote: If a quoted argument is not terminated.
        UnknownDirective: If the first token is not a directive name.
        MissingArgument: If a required argument is absent.
    """
    text = inner.strip(WHITESPACE)
    if not text:
        raise EmptyDirective()

    name, *args = tokenize(text)

    if name == Extends.kind:
        return Extends(name=_required(args, "name"))
    if name == Use.kind:
        return Use(name=_required(args, "name"))
    if name == PageName.kind:
        return PageName()
    if name == NavItems.kind:
        return NavItems()
    if name == CurrentDate.kind:
        return CurrentDate(format=args[0] if args else None)
    if name == Exec.kind:
        command = _required(args, "command")
        return Exec(command=command, args=tuple(args[1:]))
    if name == PageContent.kind:
        return PageContent()
    raise UnknownDirective(name)


def _required(args: list[str], which: str) -> str:
    if not args:
        raise MissingArgument(which)
    return args[0]


def find_next_directive(text: str) -> DirectiveInstance | None:
    """Find and parse the first directive in text.

    Returns:
        The directive with its span, or None when there is none.
    """
    span = find_next_span(text)
    if span is None:
        return None
    return DirectiveInstance(span.start_pos, span.end_pos, parse_directive(span.inner))


def find_directive(text: str, kind: str) -> DirectiveInstance | None:
    """Find the first directive of the given kind.

    Directives of other kinds are parsed (so malformed ones still raise) and
    skipped.

    Args:
        text: Text to scan.
        kind: Directive identifier, e.g. "pagecontent".

    Returns:
        The directive with offsets relative to `text`, or None.
    """
    offset = 0
    while True:
        found = find_next_directive(text[offset:])
        if found is None:
            return None
        if found.directive.kind == kind:
            return DirectiveInstance(
                found.start_pos + offset, found.end_pos + offset, found.directive
            )
        offset += found.end_pos + 1
