"""Command-line interface for Stitch.

This module defines the CLI commands using Click framework.

Commands:
- new: Scaffold a new Stitch project.
- build: Build the site into the output directory.
- serve: Build, watch for changes and run the live reload dev server.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path

import click

from . import __version__
from .build import Builder, BuildError, load_config

logger = logging.getLogger(__name__)

LOG_LEVELS = ["debug", "info", "warning", "error"]

_LEVEL_COLORS = {
    "DEBUG": "blue",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red",
}

# Files written by `stitch new`, relative to the project root.
_SCAFFOLD_FILES = {
    "stitch.yaml": "source: src\noutput: dist\nport: 8081\n",
    "src/public/style.css": (
        "body { font-family: sans-serif; margin: 2rem auto; max-width: 40rem; }\n"
        "nav a { margin-right: 1rem; }\n"
        "nav a.active { font-weight: bold; }\n"
    ),
    "src/templates/base.html": (
        "<!DOCTYPE html>\n"
        "<html>\n"
        "<head>\n"
        "  <meta charset=\"utf-8\">\n"
        "  <title>{{ pagename }}</title>\n"
        "  <link rel=\"stylesheet\" href=\"/public/style.css\">\n"
        "</head>\n"
        "<body>\n"
        "  {{ use nav }}\n"
        "  <main>\n"
        "    {{ pagecontent }}\n"
        "  </main>\n"
        "  <footer>Built {{ currentdate '%Y-%m-%d' }}</footer>\n"
        "</body>\n"
        "</html>\n"
    ),
    "src/templates/nav.html": "<nav>\n{{ navitems }}\n</nav>\n",
    "src/pages/01_home.html": (
        "+++\n"
        "title = \"Home\"\n"
        "path = \"/\"\n"
        "output = \"index.html\"\n"
        "+++\n"
        "{{ extends base }}\n"
        "<h1>Welcome</h1>\n"
        "<p>Edit the files in src/pages to get started.</p>\n"
    ),
    "src/pages/02_about.html": (
        "{{ extends base }}\n"
        "<h1>{{ pagename }}</h1>\n"
        "<p>This page is named after its file.</p>\n"
    ),
}


class _ClickFormatter(logging.Formatter):
    """Log formatter with a timestamp and a colored, padded level name."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = self.formatTime(record, "%Y-%m-%dT%H:%M:%S")
        level = click.style(
            f"{record.levelname:<7}", fg=_LEVEL_COLORS.get(record.levelname)
        )
        module = click.style(record.name, fg="magenta")
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return f"{timestamp} [{level}] {module} {message}"


class _ClickHandler(logging.Handler):
    """Writes formatted records to stderr through click.echo."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            click.echo(self.format(record), err=True)
        except Exception:
            self.handleError(record)


def configure_logging(level: str) -> None:
    """Send the package's log records to stderr at the given level."""
    package_logger = logging.getLogger("stitch")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    handler = _ClickHandler()
    handler.setFormatter(_ClickFormatter())
    package_logger.addHandler(handler)
    package_logger.setLevel(level.upper())
    package_logger.propagate = False


@click.group()
@click.version_option(version=__version__, prog_name="stitch")
@click.option(
    "-l",
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="info",
    show_default=True,
    help="Minimum level of log messages to print.",
)
def cli(log_level: str):
    """Stitch static site generator."""
    configure_logging(log_level)


def _source_output_options(func):
    func = click.option(
        "-o",
        "--output",
        type=click.Path(file_okay=False, path_type=Path),
        help="Output directory (overrides stitch.yaml output)",
    )(func)
    func = click.option(
        "-s",
        "--source",
        type=click.Path(file_okay=False, path_type=Path),
        help="Source directory (overrides stitch.yaml source)",
    )(func)
    return func


def _make_builder(project_root: Path, config: dict, source, output) -> Builder:
    source_dir = project_root / (source or config["source"])
    output_dir = project_root / (output or config["output"])
    if not (source_dir / "pages").is_dir():
        raise click.ClickException(f"No pages directory found at {source_dir / 'pages'}")
    return Builder(source_dir, output_dir)


def _report_build_error(exc: BuildError, project_root: Path) -> None:
    try:
        rel_path = exc.source_path.relative_to(project_root)
    except ValueError:
        rel_path = exc.source_path
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    click.echo(click.style(f"  File: {rel_path}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)


@cli.command()
@click.argument("name")
def new(name: str):
    """Scaffold a new Stitch project."""
    target = Path(name).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    _scaffold(target)
    click.echo(f"New Stitch site created at {target}")


@cli.command()
@_source_output_options
def build(source: Path | None, output: Path | None):
    """Build the site into the output directory."""
    project_root = Path.cwd()
    config = load_config(project_root)
    builder = _make_builder(project_root, config, source, output)

    try:
        result = builder.build()
    except BuildError as exc:
        _report_build_error(exc, project_root)
        raise SystemExit(1) from None
    except OSError as exc:
        raise click.ClickException(f"Build failed: {exc}") from exc
    click.echo(f"Built {len(result.pages)} pages into {result.output_dir}")


@cli.command()
@_source_output_options
@click.option("--host", help="Address to bind the dev server to (overrides stitch.yaml)")
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the dev server (overrides stitch.yaml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (defaults to port + 1)",
)
@click.option("--no-open", is_flag=True, help="Do not open the site in a browser")
def serve(
    source: Path | None,
    output: Path | None,
    host: str | None,
    port: int | None,
    ws_port: int | None,
    no_open: bool,
):
    """Build, watch the source directory and serve with live reload."""
    project_root = Path.cwd()
    config = load_config(project_root)
    builder = _make_builder(project_root, config, source, output)
    from .server import DevServer

    http_port = int(port or config["port"])
    if ws_port is None:
        ws_port = http_port + 1 if port is not None else int(config["ws_port"])
    server = DevServer(
        builder,
        host=host or config["host"],
        http_port=http_port,
        ws_port=ws_port,
    )
    try:
        server.start(open_browser=not no_open)
    except BuildError as exc:
        _report_build_error(exc, project_root)
        raise SystemExit(1) from None


def main():
    """Entry point for the CLI application."""
    cli()


def _scaffold(root: Path) -> None:
    """Create the directory structure and files for a new Stitch project.

    Args:
        root: Root directory for the new project.
    """
    for rel_path, content in _SCAFFOLD_FILES.items():
        dest_path = root / rel_path
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        dest_path.write_text(content, encoding="utf-8")
    (root / ".gitignore").write_text("dist/\ndist.staging/\n", encoding="utf-8")
    _try_git_init(root)


def _try_git_init(root: Path) -> None:
    """Initialize a git repository if git is available."""
    if os.environ.get("STITCH_SKIP_GIT_INIT") == "1":
        return
    git_bin = shutil.which("git")
    if not git_bin:
        return
    try:
        subprocess.run(
            [git_bin, "init"],
            cwd=root,
            check=True,
            capture_output=True,
        )
    except (OSError, subprocess.CalledProcessError) as exc:
        # Non-fatal: user can run git init manually
        logger.warning("git init failed: %s", exc)
