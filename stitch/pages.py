"""Page loading for Stitch.

A page file is an optional TOML front matter block delimited by `+++` lines,
followed by the page body:

    +++
    title = "Home"
    path = "/"
    +++
    {{ extends base }}
    Hello

Key classes and functions:
- PageConfig: Front matter settings.
- Page: A loaded page (name, body, config).
- load_page: Read one page file.
- iter_page_files: List page files in filename order.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import ConfigParseError, UnclosedConfigBlock

logger = logging.getLogger(__name__)

CONFIG_DELIMITER = "+++"


@dataclass(frozen=True)
class PageConfig:
    """Front matter of a page.

    Attributes:
        title: Display name, overriding the one derived from the filename.
        path: Link target used in navigation.
        output: Output file path relative to the output directory.
        navignore: Exclude the page from navigation.
    """

    title: str | None = None
    path: str | None = None
    output: str | None = None
    navignore: bool = False

    @classmethod
    def parse(cls, text: str) -> PageConfig:
        """Parse a front matter block.

        Args:
            text: TOML text between the `+++` delimiters.

        Returns:
            PageConfig with defaults for absent keys. Unknown keys are ignored.

        Raises:
            ConfigParseError: If the text is not valid TOML or a value has the
                wrong type.
        """
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigParseError(str(exc)) from exc

        values: dict[str, Any] = {}
        for key in ("title", "path", "output"):
            if key in data:
                values[key] = _expect(data, key, str)
        if "navignore" in data:
            values["navignore"] = _expect(data, "navignore", bool)
        return cls(**values)


def _expect(data: dict[str, Any], key: str, kind: type) -> Any:
    value = data[key]
    if not isinstance(value, kind):
        raise ConfigParseError(
            f"'{key}' must be a {kind.__name__}, got {type(value).__name__}"
        )
    return value


@dataclass(frozen=True)
class Page:
    """A page loaded from the pages directory.

    Attributes:
        name: Display name (config title or derived from the filename).
        content: Body text after the front matter.
        config: Parsed front matter, or None when the file has none.
        path: Source file the page was loaded from.
    """

    name: str
    content: str
    config: PageConfig | None = None
    path: Path | None = None

    @property
    def navignore(self) -> bool:
        return self.config is not None and self.config.navignore

    @property
    def link(self) -> str:
        """Navigation link target: config path, or `/` + name."""
        if self.config is not None and self.config.path:
            return self.config.path
        return f"/{self.name}"


def page_name_from_path(path: Path) -> str:
    """Derive a page name from its filename.

    Everything up to and including the first underscore is treated as an
    ordering prefix and dropped, then the final extension is removed.

    Examples:
        >>> page_name_from_path(Path("02_about.md"))
        'about'
        >>> page_name_from_path(Path("index.html"))
        'index'
    """
    name = path.name
    _, sep, rest = name.partition("_")
    if sep:
        name = rest
    stem, dot, _ = name.rpartition(".")
    return stem if dot else name


def split_front_matter(text: str) -> tuple[PageConfig | None, str]:
    """Split trimmed page text into its config and body.

    Raises:
        UnclosedConfigBlock: If the opening `+++` has no closing `+++`.
        ConfigParseError: If the front matter is invalid.
    """
    if not text.startswith(CONFIG_DELIMITER):
        return None, text
    rest = text[len(CONFIG_DELIMITER) :]
    end = rest.find(CONFIG_DELIMITER)
    if end == -1:
        raise UnclosedConfigBlock()
    config = PageConfig.parse(rest[:end])
    return config, rest[end + len(CONFIG_DELIMITER) :]


def load_page(path: Path) -> Page:
    """Load a page file.

    Args:
        path: Path to the page file.

    Returns:
        The loaded page.
    """
    with open(path, encoding="utf-8", newline="") as f:
        text = f.read().strip()
    config, content = split_front_matter(text)
    if config is not None and config.title is not None:
        name = config.title
    else:
        name = page_name_from_path(path)
    logger.debug("Loaded page '%s' from %s", name, path.name)
    return Page(name=name, content=content, config=config, path=path)


def iter_page_files(pages_dir: Path) -> list[Path]:
    """List page files in a directory, sorted by filename.

    Subdirectories are ignored.

    Args:
        pages_dir: Directory containing page files.

    Returns:
        Paths in lexicographic filename order.
    """
    return sorted(
        (p for p in pages_dir.iterdir() if p.is_file()), key=lambda p: p.name
    )
