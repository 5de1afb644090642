"""Filesystem utilities for Stitch.

Key functions:
    ensure_clean_dir: Ensure a directory exists and is empty.
    remove_dir: Remove a directory tree if it exists.
    copy_tree: Recursively copy a directory.
    swap_dirs: Replace a directory with another one.
    safe_join: Join a relative path under a root, refusing escapes.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path, PurePosixPath


def remove_dir(path: Path) -> None:
    """Remove a directory tree if it exists.

    Args:
        path: Directory to remove.
    """
    if path.exists():
        shutil.rmtree(path)


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    Args:
        path: Directory path to clean or create.
    """
    remove_dir(path)
    path.mkdir(parents=True, exist_ok=True)


def copy_tree(source: Path, dest: Path) -> None:
    """Recursively copy a directory, creating dest.

    A missing source yields an empty dest directory.

    Args:
        source: Directory to copy.
        dest: Destination directory.
    """
    if not source.is_dir():
        dest.mkdir(parents=True, exist_ok=True)
        return
    shutil.copytree(source, dest, dirs_exist_ok=True)


def swap_dirs(staging: Path, target: Path) -> None:
    """Move staging into place as target, discarding the previous target.

    os.replace can not overwrite a non-empty directory, so the old target is
    first moved aside and deleted once staging is in place.

    Args:
        staging: Freshly built directory.
        target: Directory to replace.
    """
    previous = target.with_name(target.name + ".old")
    remove_dir(previous)
    if target.exists():
        os.replace(target, previous)
    os.replace(staging, target)
    remove_dir(previous)


def safe_join(root: Path, relative: str) -> Path | None:
    """Join a slash-separated relative path under root.

    Leading slashes are ignored so `/feed.xml` lands at `root/feed.xml`.

    Args:
        root: Base directory.
        relative: Path relative to root.

    Returns:
        The joined path, or None if it would leave root.
    """
    parts = PurePosixPath(relative.lstrip("/")).parts
    if not parts or any(part == ".." for part in parts):
        return None
    return root.joinpath(*parts)
