"""Document parsing for Quill.

A document is a metadata block (YAML front matter) followed by Markdown
body text. This module splits raw text into those two parts, validates the
recognized metadata keys and exposes the result as an immutable Document.

Key classes:
- Document: Immutable dataclass holding metadata, body and source path.
- FileDocumentLoader: Discovers document files in a source directory.

Key functions:
- parse: Split raw text into a Document.
- load_document: Read and parse a file.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from .utils import extract_date_from_name, is_internal_path, is_markdown, titleize

MARKER = "---"
CLOSING_MARKERS = ("---", "...")

SCALAR_KEYS = ("layout", "title", "subtitle", "cover-img", "author")

_TAG_SPLIT_RE = re.compile(r"[\s,]+")


class QuillError(Exception):
    """Base class for all Quill errors."""


class DocumentError(QuillError):
    """Error confined to a single document.

    Attributes:
        message: Human-readable error message.
        source: Path of the offending file, if known.
    """

    def __init__(self, message: str, source: Path | None = None):
        self.message = message
        self.source = source
        super().__init__(f"{source}: {message}" if source else message)


class MalformedDocument(DocumentError):
    """The metadata block is missing, unterminated or not valid YAML."""


@dataclass(frozen=True)
class Document:
    """One content entry: front matter plus Markdown body.

    Attributes:
        metadata: Read-only mapping of front matter keys to values.
        body: Raw Markdown text following the metadata block.
        source: Path the document was read from, if any.
    """

    metadata: Mapping[str, Any]
    body: str
    source: Path | None = field(default=None, compare=False)

    # metadata is a read-only mapping, so documents compare by value but
    # cannot be hashed.
    __hash__ = None

    def __post_init__(self):
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def layout(self) -> str | None:
        return self.metadata.get("layout")

    @property
    def title(self) -> str:
        title = self.metadata.get("title")
        if title:
            return title
        if self.source is not None:
            return titleize(self.source.name)
        return "Untitled"

    @property
    def subtitle(self) -> str | None:
        return self.metadata.get("subtitle")

    @property
    def author(self) -> str | None:
        return self.metadata.get("author")

    @property
    def cover_img(self) -> str | None:
        return self.metadata.get("cover-img")

    @property
    def tags(self) -> tuple[str, ...]:
        return tuple(self.metadata.get("tags", ()))

    @property
    def date(self) -> datetime | None:
        """Publication date from metadata or a YYYY-MM-DD filename prefix."""
        value = self.metadata.get("date")
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        if self.source is not None:
            return extract_date_from_name(self.source.stem)
        return None


def _split_front_matter(text: str, source: Path | None) -> tuple[str, str]:
    """Split text into (metadata block, body) at the recognized marker.

    Handles the fenced form (``---`` on the first line) and the bare form
    (``key: value`` lines terminated by ``---``).
    """
    lines = text.split("\n")
    if lines[0].rstrip() == MARKER:
        for index in range(1, len(lines)):
            if lines[index].rstrip() in CLOSING_MARKERS:
                block = "\n".join(lines[1:index])
                body = "\n".join(lines[index + 1 :])
                return block, body
        raise MalformedDocument("unterminated metadata block", source)

    for index, line in enumerate(lines):
        if line.rstrip() == MARKER:
            block = "\n".join(lines[:index])
            if not block.strip():
                break
            return block, "\n".join(lines[index + 1 :])
    raise MalformedDocument("missing metadata block", source)


def _normalize_tags(value: Any, source: Path | None) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [tag for tag in _TAG_SPLIT_RE.split(value) if tag]
    if isinstance(value, list):
        tags: list[str] = []
        for item in value:
            if isinstance(item, (dict, list)) or item is None:
                raise MalformedDocument("'tags' must be a list of strings", source)
            tags.append(str(item))
        return tags
    raise MalformedDocument("'tags' must be a list of strings", source)


def _normalize_metadata(data: Any, text: Any, source: Path | None) -> dict[str, Any]:
    """Validate the typed block and take recognized scalars as written.

    ``text`` is the same block loaded without type resolution, so that
    ``title: 3.10`` stays "3.10" rather than becoming 3.1.
    """
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise MalformedDocument("metadata block is not a mapping", source)

    metadata: dict[str, Any] = {}
    for key, value in data.items():
        if not isinstance(key, str):
            raise MalformedDocument(f"metadata key {key!r} is not a string", source)
        metadata[key] = value

    for key in SCALAR_KEYS:
        if key not in metadata:
            continue
        value = metadata[key]
        if value is None:
            del metadata[key]
        elif isinstance(value, (dict, list)):
            raise MalformedDocument(f"{key!r} must be a single value", source)
        else:
            # Merged keys (<<) only exist in the typed load.
            metadata[key] = text.get(key, str(value))

    if "tags" in metadata:
        metadata["tags"] = _normalize_tags(metadata["tags"], source)
    return metadata


def parse(raw: str | bytes, source: Path | None = None) -> Document:
    """Parse raw document text into a Document.

    Args:
        raw: File contents, as text or UTF-8 bytes.
        source: Optional path used in error messages and derived fields.

    Returns:
        The parsed Document.

    Raises:
        MalformedDocument: If the metadata block is missing, unterminated,
            not valid YAML, or a recognized key has the wrong shape.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedDocument(f"not valid UTF-8: {exc}", source) from exc
    text = raw.lstrip("\ufeff").replace("\r\n", "\n")

    block, body = _split_front_matter(text, source)
    try:
        data = yaml.safe_load(block)
        text_data = yaml.load(block, Loader=yaml.BaseLoader)
    except yaml.YAMLError as exc:
        raise MalformedDocument(f"invalid metadata block: {exc}", source) from exc
    metadata = _normalize_metadata(data, text_data, source)
    return Document(metadata=metadata, body=body, source=source)


def load_document(path: Path) -> Document:
    """Read a file and parse it into a Document."""
    return parse(path.read_bytes(), source=path)


class FileDocumentLoader:
    """Discovers document files in a source directory.

    Attributes:
        source_dir: Directory containing documents.
    """

    def __init__(self, source_dir: Path):
        self.source_dir = source_dir

    def iter_files(self, include_drafts: bool = False) -> list[Path]:
        """Return all document files, sorted by path.

        Directories starting with ``_`` (layouts, partials) are skipped, as
        are files starting with ``_`` unless drafts are requested.
        """
        files: list[Path] = []
        for path in self.source_dir.rglob("*"):
            if path.is_dir():
                continue
            rel = path.relative_to(self.source_dir)
            if is_internal_path(rel.parent):
                continue
            if rel.name.startswith("_") and not include_drafts:
                continue
            if is_markdown(path):
                files.append(path)
        return sorted(files)
