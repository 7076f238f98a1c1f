"""Layout templates for Quill.

This module uses Jinja2 to bind a parsed Document into the layout it names.

Key classes:
- TemplateSet: Named layouts loaded from a directory or a mapping.
- UnknownLayout: Raised when a document names a layout that does not exist.

Key functions:
- render: Render a Document through its layout to a complete HTML page.
- render_toc: Render collected headings as a nested list.

Layouts see these variables:
- ``page``: metadata slots (title, subtitle, author, cover_img, tags, date)
  plus every other front matter key.
- ``content``: the rendered Markdown body.
- ``toc``: the table of contents for the body.
- ``site``: site-wide data from the project configuration.
- ``url_for``: joins a path with the configured root URL.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from jinja2 import (
    BaseLoader,
    DictLoader,
    Environment,
    FileSystemLoader,
    Template,
    TemplateNotFound,
    select_autoescape,
)
from markupsafe import Markup, escape

from .document import Document, DocumentError
from .protocols import MarkupRenderer
from .renderers import Heading, MarkdownRenderer, RenderedMarkdown, pygments_css
from .utils import join_root_url

__all__ = ["TemplateSet", "UnknownLayout", "render", "render_document", "render_toc"]

LAYOUT_SUFFIXES = (".html", ".html.jinja", ".jinja")


class UnknownLayout(DocumentError):
    """The layout a document names is not in the template set.

    Attributes:
        layout: The requested layout name, or None when none was declared.
        available: Names of the layouts that do exist.
    """

    def __init__(
        self,
        layout: str | None,
        available: list[str] | None = None,
        source: Path | None = None,
    ):
        self.layout = layout
        self.available = available or []
        if layout is None:
            message = "document does not declare a layout"
        else:
            message = f"unknown layout {layout!r}"
        if self.available:
            message += f" (available: {', '.join(self.available)})"
        super().__init__(message, source)


def render_toc(headings: list[Heading]) -> Markup:
    """Render a list of headings as nested ``<ul>`` HTML.

    Args:
        headings: Headings in document order.

    Returns:
        Markup-safe HTML, or empty Markup if there are no headings.
    """
    if not headings:
        return Markup("")

    html_parts: list[str] = []
    level_stack: list[int] = []

    for heading in headings:
        level = heading.level

        while level_stack and level_stack[-1] > level:
            level_stack.pop()
            html_parts.append("</li></ul>")

        if level_stack and level_stack[-1] == level:
            html_parts.append("</li>")
        else:
            html_parts.append("<ul>")
            level_stack.append(level)

        html_parts.append(
            f'<li><a href="#{escape(heading.id)}">{escape(heading.text)}</a>'
        )

    while level_stack:
        level_stack.pop()
        html_parts.append("</li></ul>")

    return Markup("".join(html_parts))


class TemplateSet:
    """A set of named layout templates.

    Layout ``post`` is found as ``post.html``, ``post.html.jinja`` or
    ``post.jinja``; a mapping may also use the bare name as its key.

    Attributes:
        env: Jinja2 environment holding the layouts.
        site: Site-wide data exposed to every layout as ``site``.
        root_url: Base URL used by ``url_for`` and image sources.
        markdown: Renderer for document bodies.
    """

    def __init__(
        self,
        loader: BaseLoader,
        site: dict[str, Any] | None = None,
        root_url: str = "",
        markdown: MarkupRenderer | None = None,
    ):
        self.site = site or {}
        self.root_url = root_url
        self.env = Environment(
            loader=loader,
            autoescape=select_autoescape(["html", "xml", "jinja"], default=True),
            keep_trailing_newline=True,
        )
        self.env.globals["url_for"] = self._url_for
        self.env.globals["pygments_css"] = pygments_css
        self.env.globals["site"] = self.site
        self.markdown = markdown or MarkdownRenderer(root_url)

    @classmethod
    def from_directory(
        cls,
        layouts_dir: Path,
        site: dict[str, Any] | None = None,
        root_url: str = "",
    ) -> TemplateSet:
        """Load layouts from a directory (partials may live alongside)."""
        return cls(FileSystemLoader(str(layouts_dir)), site=site, root_url=root_url)

    @classmethod
    def from_mapping(
        cls,
        templates: Mapping[str, str],
        site: dict[str, Any] | None = None,
        root_url: str = "",
    ) -> TemplateSet:
        """Build a template set from layout sources keyed by name."""
        return cls(DictLoader(dict(templates)), site=site, root_url=root_url)

    def names(self) -> list[str]:
        """Return the sorted layout names in the set."""
        names = set()
        for template_name in self.env.list_templates():
            for suffix in LAYOUT_SUFFIXES:
                if template_name.endswith(suffix):
                    names.add(template_name[: -len(suffix)])
                    break
            else:
                names.add(template_name)
        return sorted(names)

    def __contains__(self, name: str) -> bool:
        try:
            self.get(name)
        except UnknownLayout:
            return False
        return True

    def get(self, name: str | None, source: Path | None = None) -> Template:
        """Look up a layout by name.

        Raises:
            UnknownLayout: If no template carries that name.
        """
        if not name:
            raise UnknownLayout(None, self.names(), source)
        for candidate in (*(f"{name}{suffix}" for suffix in LAYOUT_SUFFIXES), name):
            try:
                return self.env.get_template(candidate)
            except TemplateNotFound:
                continue
        raise UnknownLayout(name, self.names(), source)

    def _url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://", "//")):
            return path
        path = path if path.startswith("/") else f"/{path}"
        return join_root_url(self.root_url, path)


def _page_context(document: Document, layout: str) -> dict[str, Any]:
    page: dict[str, Any] = dict(document.metadata)
    page.update(
        layout=layout,
        title=document.title,
        subtitle=document.subtitle,
        author=document.author,
        cover_img=document.cover_img,
        tags=list(document.tags),
        date=document.date,
    )
    return page


def render_document(
    document: Document,
    template_set: TemplateSet,
    layout: str | None = None,
) -> tuple[str, RenderedMarkdown]:
    """Render a document and also return the Markdown render details.

    Args:
        document: The parsed document.
        template_set: Layouts to choose from.
        layout: Layout to use when the document declares none.

    Returns:
        Tuple of (complete HTML page, RenderedMarkdown for the body).

    Raises:
        UnknownLayout: If the layout is not in the template set.
    """
    name = document.layout or layout
    template = template_set.get(name, document.source)
    body = template_set.markdown.render(document.body)
    html = template.render(
        page=_page_context(document, name),
        content=Markup(body.html),
        toc=render_toc(body.headings),
    )
    return html, body


def render(document: Document, template_set: TemplateSet) -> str:
    """Render a document through the layout it names.

    Args:
        document: The parsed document.
        template_set: Layouts to choose from.

    Returns:
        The complete HTML page.

    Raises:
        UnknownLayout: If ``document.layout`` is not in the template set.
    """
    html, _ = render_document(document, template_set)
    return html
