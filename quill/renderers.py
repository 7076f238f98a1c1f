"""Markdown rendering for Quill.

Converts a document body to HTML with mistune, highlighting fenced code
blocks with Pygments and assigning anchor ids to headings.

Malformed Markdown is never fatal: constructs the parser cannot make sense
of are rendered best-effort and reported as MarkdownSyntaxAnomaly notes.

Key classes:
- Heading: Dataclass representing a heading for TOC generation.
- MarkdownSyntaxAnomaly: A non-fatal note about suspicious Markdown.
- RenderedMarkdown: Result of a render (HTML, headings, anomalies).
- MarkdownRenderer: Renders Markdown text to HTML.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .utils import join_root_url

PLUGINS = ["strikethrough", "footnotes", "table", "url"]

_TAG_RE = re.compile(r"<[^>]+>")
_FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})")
_REF_LINK_RE = re.compile(r"(?<!!)\[([^\]]+)\]\[([^\]]*)\]")
_REF_DEF_RE = re.compile(r"^ {0,3}\[([^\]]+)\]:\s*\S+", re.MULTILINE)
_CODE_SPAN_RE = re.compile(r"`+[^`]*`+")


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text.

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = text.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


def _escape_code(code: str) -> str:
    return code.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


@dataclass
class Heading:
    """A heading extracted from Markdown content.

    Attributes:
        id: Anchor ID for the heading.
        text: Plain text of the heading.
        level: Heading level (1-6).
    """

    id: str
    text: str
    level: int


@dataclass(frozen=True)
class MarkdownSyntaxAnomaly:
    """A Markdown construct that was rendered best-effort.

    Attributes:
        kind: Short identifier such as "unterminated-fence".
        message: Human-readable description.
        line: 1-based line in the body, when known.
    """

    kind: str
    message: str
    line: int | None = None

    def __str__(self) -> str:
        if self.line is not None:
            return f"line {self.line}: {self.message}"
        return self.message


@dataclass
class RenderedMarkdown:
    html: str
    headings: list[Heading] = field(default_factory=list)
    anomalies: list[MarkdownSyntaxAnomaly] = field(default_factory=list)


class _HighlightRenderer(mistune.HTMLRenderer):
    """HTML renderer with heading anchors and Pygments code highlighting.

    Attributes:
        root_url: Base URL applied to root-relative image sources.
        headings: Headings collected during rendering.
        anomalies: Anomalies collected during rendering.
    """

    def __init__(self, root_url: str = ""):
        super().__init__(escape=False)
        self.root_url = root_url
        self.headings: list[Heading] = []
        self.anomalies: list[MarkdownSyntaxAnomaly] = []
        self._heading_id_counts: dict[str, int] = {}
        self._heading_ids: set[str] = set()

    def heading(self, text: str, level: int, **attrs) -> str:
        plain = _TAG_RE.sub("", text)
        base_id = _generate_heading_id(plain) or "section"

        heading_id = base_id
        while heading_id in self._heading_ids:
            count = self._heading_id_counts.get(base_id, 0) + 1
            self._heading_id_counts[base_id] = count
            heading_id = f"{base_id}-{count}"
        self._heading_ids.add(heading_id)

        self.headings.append(Heading(id=heading_id, text=plain, level=level))
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def image(self, text: str, url: str, title: str | None = None) -> str:
        if url.startswith("/") and not url.startswith("//"):
            url = join_root_url(self.root_url, url)
        return super().image(text, url, title)

    def block_code(self, code: str, info: str | None = None) -> str:
        lang = info.split()[0] if info and info.strip() else None
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                self.anomalies.append(
                    MarkdownSyntaxAnomaly(
                        "unknown-language",
                        f"no highlighter for code language {lang!r}",
                    )
                )
            else:
                formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
                return highlight(code, lexer, formatter)
        lang_class = f' class="language-{lang}"' if lang else ""
        return f"<pre><code{lang_class}>{_escape_code(code)}</code></pre>\n"


def scan_anomalies(text: str) -> list[MarkdownSyntaxAnomaly]:
    """Find structural problems mistune renders without complaint.

    Detects code fences that never close and full reference links
    (``[text][label]``) whose label has no definition. Code is skipped.
    """
    anomalies: list[MarkdownSyntaxAnomaly] = []
    defined = {label.strip().lower() for label in _REF_DEF_RE.findall(text)}
    open_fence: tuple[str, int] | None = None
    for number, line in enumerate(text.split("\n"), start=1):
        match = _FENCE_RE.match(line)
        if match:
            fence = match.group(1)
            if open_fence is None:
                open_fence = (fence, number)
            elif (
                fence[0] == open_fence[0][0]
                and len(fence) >= len(open_fence[0])
                and not line.strip()[len(fence) :].strip()
            ):
                open_fence = None
            continue
        if open_fence is not None or line.startswith(("    ", "\t")):
            continue
        for ref in _REF_LINK_RE.finditer(_CODE_SPAN_RE.sub("", line)):
            label = (ref.group(2) or ref.group(1)).strip().lower()
            if label not in defined:
                anomalies.append(
                    MarkdownSyntaxAnomaly(
                        "undefined-reference",
                        f"reference link label {label!r} is not defined",
                        number,
                    )
                )
    if open_fence is not None:
        anomalies.append(
            MarkdownSyntaxAnomaly(
                "unterminated-fence",
                "code fence is never closed; rendered to end of document",
                open_fence[1],
            )
        )
    return anomalies


class MarkdownRenderer:
    """Renders Markdown text to HTML.

    A fresh mistune instance is built per call, so one renderer can be
    shared across threads.

    Attributes:
        root_url: Base URL applied to root-relative image sources.
    """

    def __init__(self, root_url: str = ""):
        self.root_url = root_url

    def render(self, text: str) -> RenderedMarkdown:
        """Render Markdown to HTML.

        Args:
            text: Markdown source.

        Returns:
            RenderedMarkdown with the HTML, headings and any anomalies.
        """
        renderer = _HighlightRenderer(self.root_url)
        markdown = mistune.create_markdown(renderer=renderer, plugins=PLUGINS)
        html = markdown(text)
        anomalies = scan_anomalies(text) + renderer.anomalies
        return RenderedMarkdown(html=html, headings=renderer.headings, anomalies=anomalies)


def pygments_css() -> str:
    """Return Pygments CSS rules for the ``.highlight`` class."""
    return HtmlFormatter().get_style_defs(".highlight")
