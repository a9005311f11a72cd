"""Markdown-with-frontmatter I/O for persistent data files.

Each record is one ``.md`` file: YAML frontmatter holds the fields, the body
holds the free-text ``task``. Writes are atomic (temp file + rename).
"""

import dataclasses
import logging
import os
import re
import tempfile
from dataclasses import asdict
from pathlib import Path
from typing import TypeVar

import yaml

from echomind.config import DATA_DIR as DATA_DIR
from echomind.config import TZ as TZ

T = TypeVar("T")
log = logging.getLogger(__name__)

_BODY_FIELD = "task"
_DELIMITER = re.compile(r"^---[ \t]*$", re.MULTILINE)


def _slugify(text: str, max_len: int = 50) -> str:
    """Convert text to a filesystem-safe slug."""
    slug = text.lower()
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    slug = slug.strip("-")
    if len(slug) > max_len:
        slug = slug[:max_len].rstrip("-")
    return slug or "item"


def _serialize_md(item: T) -> str:
    """Build YAML frontmatter + markdown body from a dataclass with a `task` field."""
    data = asdict(item)  # type: ignore[call-overload]
    body = data.pop(_BODY_FIELD)
    defaults = {
        f.name: f.default
        for f in dataclasses.fields(item)  # type: ignore[arg-type]
        if f.default is not dataclasses.MISSING and f.name != _BODY_FIELD
    }

    lines = ["---"]
    for key, value in data.items():
        if key in defaults and value == defaults[key]:
            continue
        if isinstance(value, str):
            escaped = (
                value.replace("\\", "\\\\")
                .replace('"', '\\"')
                .replace("\n", "\\n")
                .replace("\r", "\\r")
            )
            lines.append(f'{key}: "{escaped}"')
        elif isinstance(value, bool):
            lines.append(f"{key}: {str(value).lower()}")
        elif value is None:
            lines.append(f"{key}: null")
        else:
            lines.append(f"{key}: {value}")
    lines.append("---")
    lines.append(body)
    return "\n".join(lines) + "\n"


def _split_frontmatter(text: str) -> list[str]:
    # Delimiters are whole lines; "---" inside a value is not one
    return _DELIMITER.split(text, maxsplit=2)


def _parse_md(text: str, cls: type[T]) -> T:
    """Parse a single markdown file with YAML frontmatter into a dataclass."""
    parts = _split_frontmatter(text)
    if len(parts) < 3:
        raise ValueError("Missing YAML frontmatter delimiters")
    body = parts[2].strip()

    data = yaml.safe_load(parts[1])
    if not isinstance(data, dict):
        raise ValueError("YAML frontmatter is not a mapping")

    fields = {f.name: f for f in dataclasses.fields(cls)}  # type: ignore[arg-type]
    filtered: dict[str, object] = {}
    for key, value in data.items():
        if key not in fields or key == _BODY_FIELD:
            continue
        expected = fields[key].type
        if expected == "str" or expected is str:
            filtered[key] = str(value) if value is not None else ""
        else:
            filtered[key] = value
    filtered[_BODY_FIELD] = body
    return cls(**filtered)


def _read_id(filepath: Path) -> str | None:
    parts = _split_frontmatter(filepath.read_text())
    if len(parts) < 3:
        return None
    try:
        data = yaml.safe_load(parts[1])
    except yaml.YAMLError:
        return None
    if isinstance(data, dict) and data.get("id") is not None:
        return str(data["id"])
    return None


def read_md_dir(dir_path: Path, cls: type[T]) -> list[T]:
    """Read all .md files in a directory into dataclass instances."""
    if not dir_path.is_dir():
        return []
    result: list[T] = []
    for filepath in sorted(dir_path.glob("*.md")):
        try:
            result.append(_parse_md(filepath.read_text(), cls))
        except (ValueError, yaml.YAMLError, TypeError, KeyError):
            log.warning("Skipping corrupt file: %s", filepath)
    return result


def write_md(dir_path: Path, item: T) -> Path:
    """Write a single item as a .md file with a slug-based filename. Atomic write."""
    dir_path.mkdir(parents=True, exist_ok=True)
    slug = _slugify(getattr(item, _BODY_FIELD))
    item_id = str(item.id)  # type: ignore[attr-defined]
    target = dir_path / f"{slug}.md"

    # Slug collisions: overwrite if same id, else bump suffix
    counter = 2
    while target.exists():
        if _read_id(target) == item_id:
            break
        target = dir_path / f"{slug}-{counter}.md"
        counter += 1

    fd, tmp = tempfile.mkstemp(dir=dir_path, suffix=".tmp")
    try:
        os.write(fd, _serialize_md(item).encode())
    finally:
        os.close(fd)
    os.replace(tmp, target)
    return target


def remove_md(dir_path: Path, item_id: str, *, keep: Path | None = None) -> bool:
    """Find and delete the .md file whose YAML id matches item_id.

    `keep` is skipped, so a rewrite can drop the file it replaced.
    """
    if not dir_path.is_dir():
        return False
    for filepath in dir_path.glob("*.md"):
        if filepath == keep:
            continue
        if _read_id(filepath) == item_id:
            filepath.unlink()
            return True
    return False
