"""Site building functionality for Stitch.

This module drives a full build: it copies static assets, loads every page,
resolves each page's directives and writes the results to the output
directory.

The build is staged into a sibling `<output>.staging` directory and swapped
into place only when every page succeeded, so a failed build leaves the
previous output untouched.

Key classes and functions:
- Builder: Owns the source layout and output directory lifecycle.
- build_site: Build a site in one call.
- load_config: Loads project configuration from stitch.yaml.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .errors import OutputPathError, StitchError
from .pages import Page, iter_page_files, load_page
from .templates import TemplateResolver
from .utils import copy_tree, ensure_clean_dir, remove_dir, safe_join, swap_dirs

logger = logging.getLogger(__name__)


class BuildError(Exception):
    """Error during site build with file context.

    Attributes:
        source_path: Path to the source file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


CONFIG_FILENAME = "stitch.yaml"

DEFAULT_CONFIG = {
    "source": "src",
    "output": "dist",
    "host": "127.0.0.1",
    "port": 8081,
}


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        pages: All pages of the site, in build order.
        output_dir: Directory where the site was built.
        written: Output files written, one per page.
    """

    pages: list[Page]
    output_dir: Path
    written: list[Path]


def load_config(project_root: Path) -> dict[str, Any]:
    """Load project configuration from stitch.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing configuration values, with defaults applied.
        `ws_port` defaults to one above `port`.
    """
    config_path = project_root / CONFIG_FILENAME
    config: dict[str, Any] = DEFAULT_CONFIG.copy()
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
            if isinstance(loaded, dict):
                config.update(loaded)
    config.setdefault("ws_port", int(config["port"]) + 1)
    return config


class Builder:
    """Builds a site from a source tree.

    The source tree holds `public/` (static assets), `pages/` and
    `templates/`.

    Attributes:
        source_dir: Root of the source tree.
        output_dir: Directory the site is written to.
        resolver: Resolver used for every page.
    """

    def __init__(
        self,
        source_dir: Path,
        output_dir: Path,
        resolver: TemplateResolver | None = None,
    ):
        self.source_dir = Path(source_dir)
        self.output_dir = Path(output_dir)
        self.public_dir = self.source_dir / "public"
        self.pages_dir = self.source_dir / "pages"
        self.templates_dir = self.source_dir / "templates"
        self.resolver = resolver or TemplateResolver(self.templates_dir)

    @property
    def staging_dir(self) -> Path:
        return self.output_dir.with_name(self.output_dir.name + ".staging")

    def build(self) -> BuildResult:
        """Run a full clean build.

        Returns:
            BuildResult with the pages and the files written.

        Raises:
            BuildError: If any page fails to load, resolve or write.
            OSError: If assets can not be copied or the pages directory is
                missing.
        """
        staging = self.staging_dir
        ensure_clean_dir(staging)
        try:
            copy_tree(self.public_dir, staging / "public")
            pages = self.load_pages()
            written = [self._build_page(page, pages, staging) for page in pages]
        except BaseException:
            remove_dir(staging)
            raise
        swap_dirs(staging, self.output_dir)
        logger.info("Built %d pages into %s", len(pages), self.output_dir)
        return BuildResult(
            pages=pages,
            output_dir=self.output_dir,
            written=[self.output_dir / path.relative_to(staging) for path in written],
        )

    def load_pages(self) -> list[Page]:
        """Load all pages in filename order.

        Raises:
            BuildError: If a page file can not be read or parsed.
        """
        pages: list[Page] = []
        for path in iter_page_files(self.pages_dir):
            try:
                pages.append(load_page(path))
            except (StitchError, OSError, ValueError) as exc:
                raise BuildError(path, _format_error_message(exc), exc) from exc
        return pages

    def _build_page(self, page: Page, pages: list[Page], root: Path) -> Path:
        logger.debug("Processing page '%s' ...", page.name)
        source_path = page.path or self.pages_dir / page.name
        try:
            rendered = self.resolver.resolve(page.content, page, pages)
            target = self.output_path(page, root)
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "w", encoding="utf-8", newline="") as f:
                f.write(rendered)
        except (StitchError, OSError, ValueError) as exc:
            raise BuildError(source_path, _format_error_message(exc), exc) from exc
        return target

    def output_path(self, page: Page, root: Path | None = None) -> Path:
        """Compute where a page is written.

        Args:
            page: The page.
            root: Output root; defaults to the output directory.

        Returns:
            `config.output` under root when set, else `<name>/index.html`.

        Raises:
            OutputPathError: If the path leaves the output root.
        """
        root = self.output_dir if root is None else root
        if page.config is not None and page.config.output:
            relative = page.config.output
        else:
            relative = f"{page.name}/index.html"
        target = safe_join(root, relative)
        if target is None:
            raise OutputPathError(relative)
        return target


def build_site(source_dir: Path, output_dir: Path) -> BuildResult:
    """Build the site in source_dir into output_dir.

    Args:
        source_dir: Root of the source tree.
        output_dir: Output directory.

    Returns:
        BuildResult of the build.
    """
    return Builder(source_dir, output_dir).build()


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message.

    Args:
        exc: The exception to format.

    Returns:
        A human-readable error message.
    """
    if isinstance(exc, StitchError):
        return str(exc)
    if isinstance(exc, FileNotFoundError):
        return f"File not found: {exc.filename or exc}"
    return f"{type(exc).__name__}: {exc}"
