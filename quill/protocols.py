"""Protocol definitions for Quill.

Interfaces the site builder depends on, so document discovery and Markdown
rendering can be swapped out (for tests, or another source layout).
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .renderers import RenderedMarkdown


@runtime_checkable
class DocumentLoader(Protocol):
    """Protocol for discovering document files."""

    @abstractmethod
    def iter_files(self, include_drafts: bool = False) -> list[Path]:
        """Return document files in a stable order.

        Args:
            include_drafts: Whether to include draft files.
        """
        ...


@runtime_checkable
class MarkupRenderer(Protocol):
    """Protocol for turning a document body into HTML."""

    @abstractmethod
    def render(self, text: str) -> RenderedMarkdown:
        """Render markup text.

        Returns:
            RenderedMarkdown with the HTML, headings and anomalies.
        """
        ...
