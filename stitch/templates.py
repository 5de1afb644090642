"""Template resolution for Stitch.

This module rewrites page content by repeatedly finding the first directive in
the buffer and replacing it with computed text, until no directive remains.
Templates referenced by `extends` and `use` are read from the templates
directory as `<name>.html` and resolved recursively.

Key class:
- TemplateResolver: Resolves a page's content against the full page set.

Design principles:
- The directive set is closed; dispatch is an exhaustive isinstance chain.
- Wall-clock time and process execution are injected (Clock, CommandRunner).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from markupsafe import escape

from .directives import (
    CurrentDate,
    Directive,
    DirectiveInstance,
    Exec,
    Extends,
    NavItems,
    PageContent,
    PageName,
    Use,
    find_directive,
    find_next_directive,
)
from .errors import (
    ExecCommandFailed,
    ExtendWithNoPageContent,
    TemplateNotFound,
    TemplateRecursionError,
    ToplevelPageContent,
)
from .executable_utils import SubprocessRunner
from .pages import Page
from .protocols import Clock, CommandRunner

__all__ = ["DEFAULT_DATE_FORMAT", "TemplateResolver", "render_nav_items"]

logger = logging.getLogger(__name__)

DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
TEMPLATE_SUFFIX = ".html"


def _local_now() -> datetime:
    return datetime.now().astimezone()


def render_nav_items(page: Page, pages: Sequence[Page]) -> str:
    """Render navigation links for every page not marked `navignore`.

    Args:
        page: The page being rendered; its own link is marked active.
        pages: All pages, in load order.

    Returns:
        One `<a>` element per line.
    """
    items: list[str] = []
    for other in pages:
        if other.navignore:
            continue
        active = ' class="active"' if other == page else ""
        items.append(f'<a href="{escape(other.link)}"{active}>{escape(other.name)}</a>')
    return "\n".join(items)


class TemplateResolver:
    """Resolves directives in page and template text.

    Attributes:
        templates_dir: Directory holding `<name>.html` templates.
        clock: Source of the current time for `currentdate`.
        runner: Runs commands for `exec`.
        max_depth: Maximum nesting of `extends`/`use` before giving up.
    """

    def __init__(
        self,
        templates_dir: Path,
        clock: Clock | None = None,
        runner: CommandRunner | None = None,
        max_depth: int = 64,
    ):
        """Initialize the resolver.

        Args:
            templates_dir: Directory with templates.
            clock: Optional clock; defaults to the local wall clock.
            runner: Optional command runner; defaults to SubprocessRunner.
            max_depth: Maximum template nesting.
        """
        self.templates_dir = templates_dir
        self.clock = clock or _local_now
        self.runner = runner or SubprocessRunner()
        self.max_depth = max_depth

    def resolve(self, content: str, page: Page, pages: Sequence[Page]) -> str:
        """Resolve every directive in content.

        Args:
            content: Text to resolve; surrounding whitespace is trimmed.
            page: The page being built.
            pages: All pages of the site, in load order.

        Returns:
            The fully resolved text.
        """
        return self._resolve(content, page, pages, depth=0)

    def _resolve(
        self, content: str, page: Page, pages: Sequence[Page], depth: int
    ) -> str:
        if depth > self.max_depth:
            raise TemplateRecursionError(self.max_depth)
        content = content.strip()
        while True:
            found = find_next_directive(content)
            if found is None:
                return content
            content = self._apply(found, content, page, pages, depth)

    def _apply(
        self,
        found: DirectiveInstance,
        content: str,
        page: Page,
        pages: Sequence[Page],
        depth: int,
    ) -> str:
        directive: Directive = found.directive
        if isinstance(directive, Extends):
            body = found.remove(content)
            spliced = self._splice(directive.name, body)
            return self._resolve(spliced, page, pages, depth + 1)
        if isinstance(directive, Use):
            included = self._resolve(
                self.load_template(directive.name), page, pages, depth + 1
            )
            return found.replace(content, included)
        if isinstance(directive, PageName):
            return found.replace(content, page.name)
        if isinstance(directive, NavItems):
            return found.replace(content, render_nav_items(page, pages))
        if isinstance(directive, CurrentDate):
            fmt = DEFAULT_DATE_FORMAT if directive.format is None else directive.format
            return found.replace(content, self.clock().strftime(fmt))
        if isinstance(directive, Exec):
            return found.replace(content, self._exec(directive))
        if isinstance(directive, PageContent):
            raise ToplevelPageContent()
        raise TypeError(f"unhandled directive: {directive!r}")  # pragma: no cover

    def _splice(self, name: str, body: str) -> str:
        """Insert body into the named template at its `pagecontent` marker."""
        template = self.load_template(name)
        marker = find_directive(template, PageContent.kind)
        if marker is None:
            raise ExtendWithNoPageContent(name)
        return marker.replace(template, body)

    def _exec(self, directive: Exec) -> str:
        logger.debug("Executing '%s' with args %s", directive.command, directive.args)
        result = self.runner.run(directive.command, list(directive.args))
        if result.returncode != 0:
            raise ExecCommandFailed(
                result.returncode, result.stderr.decode("utf-8", errors="replace")
            )
        return result.stdout.decode("utf-8", errors="replace")

    def template_path(self, name: str) -> Path:
        return self.templates_dir / f"{name}{TEMPLATE_SUFFIX}"

    def load_template(self, name: str) -> str:
        """Read a template's raw text.

        Raises:
            TemplateNotFound: If `<name>.html` does not exist.
        """
        path = self.template_path(name)
        if not path.is_file():
            raise TemplateNotFound(name, path)
        with open(path, encoding="utf-8", newline="") as f:
            return f.read()
