"""Quill blog renderer.

Turns Markdown documents with YAML front matter into static HTML pages by
binding their metadata and rendered body into named Jinja2 layouts.

The main entry point is the CLI module, which provides commands for
scaffolding a new blog, building it, checking it and adding posts.
"""

from .document import Document, MalformedDocument, parse
from .templates import TemplateSet, UnknownLayout, render

__all__ = [
    "Document",
    "MalformedDocument",
    "TemplateSet",
    "UnknownLayout",
    "__version__",
    "parse",
    "render",
]
__version__ = "0.1.0"
