"""Site building for Quill.

Loads the project configuration, discovers documents, renders each one
through its layout and writes one HTML file per document.

Documents are independent: a failure is recorded against that one page and
never blocks the rest of the site, unless the build runs fail-fast.

Key functions:
- build_site: Build the whole site and report per-page outcomes.
- check_site: Parse and render every document without writing anything.
- load_config: Load project configuration from quill.yaml.
- output_path: Map a source path to its output file.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from jinja2 import TemplateSyntaxError

from .document import DocumentError, FileDocumentLoader, QuillError, load_document
from .protocols import DocumentLoader
from .renderers import MarkdownSyntaxAnomaly
from .templates import TemplateSet, render_document
from .utils import ensure_clean_dir, slugify

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "quill.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "source_dir": "content",
    "layouts_dir": "_layouts",
    "output_dir": "output",
    "root_url": "",
    "default_layout": None,
    "fail_fast": False,
    "jobs": 1,
    "site": {},
}


class BuildError(QuillError):
    """Error during site build with file context.

    Attributes:
        source_path: Path to the file that caused the error.
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


@dataclass
class PageResult:
    """Outcome of building one document.

    Attributes:
        source: Source file of the document.
        output: File written, or None when the page failed or was not written.
        error: The failure, if any.
        anomalies: Non-fatal Markdown notes.
    """

    source: Path
    output: Path | None = None
    error: BuildError | None = None
    anomalies: list[MarkdownSyntaxAnomaly] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BuildReport:
    """Result of a site build.

    Attributes:
        results: One PageResult per discovered document, in source order.
        output_dir: Directory where the site was built.
        config: Effective configuration.
    """

    results: list[PageResult]
    output_dir: Path
    config: dict[str, Any]

    @property
    def pages(self) -> list[PageResult]:
        return [r for r in self.results if r.ok]

    @property
    def failures(self) -> list[PageResult]:
        return [r for r in self.results if not r.ok]

    @property
    def ok(self) -> bool:
        return not self.failures


def load_config(project_root: Path) -> dict[str, Any]:
    """Load project configuration from quill.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Configuration values with defaults applied.

    Raises:
        BuildError: If the file exists but is not a YAML mapping.
    """
    config_path = project_root / CONFIG_FILENAME
    config = {**DEFAULT_CONFIG, "site": {}}
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            try:
                loaded = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise BuildError(config_path, f"invalid YAML: {exc}", exc) from exc
        if not isinstance(loaded, dict):
            raise BuildError(config_path, "configuration must be a mapping")
        config.update(loaded)
    return config


def output_path(rel: Path) -> Path:
    """Map a document path (relative to the source dir) to its output file.

    ``posts/2024-01-15-hello.md`` becomes ``posts/hello/index.html`` and
    ``index.md`` becomes ``index.html``.
    """
    parent = rel.parent if rel.parent != Path(".") else Path()
    slug = slugify(rel.stem)
    if slug == "index":
        return parent / "index.html"
    return parent / slug / "index.html"


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message."""
    if isinstance(exc, DocumentError):
        return f"{type(exc).__name__}: {exc.message}"
    if isinstance(exc, TemplateSyntaxError):
        return f"Template syntax error on line {exc.lineno}: {exc.message}"

    error_type = type(exc).__name__
    if error_type == "UndefinedError":
        return f"Undefined variable: {exc}"
    return f"{error_type}: {exc}"


def _write_page(target: Path, html: str) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as f:
        f.write(html)


class SiteBuilder:
    """Renders the documents of one project.

    Attributes:
        project_root: Root directory of the project.
        config: Effective configuration.
        source_dir: Directory holding documents.
        template_set: Layouts available to documents.
    """

    def __init__(
        self,
        project_root: Path,
        config: dict[str, Any] | None = None,
        loader: DocumentLoader | None = None,
    ):
        self.project_root = project_root
        self.config = config if config is not None else load_config(project_root)
        self.source_dir = project_root / self.config["source_dir"]
        if not self.source_dir.is_dir():
            raise BuildError(self.source_dir, "source directory does not exist")
        layouts_dir = self.source_dir / self.config["layouts_dir"]
        self.template_set = TemplateSet.from_directory(
            layouts_dir,
            site=dict(self.config.get("site") or {}),
            root_url=str(self.config.get("root_url") or ""),
        )
        self._loader = loader or FileDocumentLoader(self.source_dir)

    def discover(self, include_drafts: bool = False) -> list[Path]:
        return self._loader.iter_files(include_drafts)

    def render_file(self, path: Path) -> tuple[str, list[MarkdownSyntaxAnomaly]]:
        """Parse and render one file.

        Raises:
            BuildError: Wrapping whatever made this page fail.
        """
        try:
            document = load_document(path)
            html, body = render_document(
                document, self.template_set, layout=self.config.get("default_layout")
            )
        except Exception as exc:
            raise BuildError(path, _format_error_message(exc), exc) from exc
        return html, body.anomalies

    def build_page(self, path: Path, output_dir: Path | None) -> PageResult:
        """Render one file and, when output_dir is given, write it."""
        result = PageResult(source=path)
        try:
            html, result.anomalies = self.render_file(path)
        except BuildError as exc:
            result.error = exc
            return result
        for anomaly in result.anomalies:
            logger.warning("%s: %s", path, anomaly)
        if output_dir is not None:
            target = output_dir / output_path(path.relative_to(self.source_dir))
            try:
                _write_page(target, html)
            except OSError as exc:
                result.error = BuildError(path, _format_error_message(exc), exc)
                return result
            result.output = target
            logger.debug("wrote %s", target)
        return result

    def run(
        self,
        output_dir: Path | None,
        include_drafts: bool = False,
        fail_fast: bool = False,
        jobs: int = 1,
    ) -> list[PageResult]:
        """Build every discovered document.

        Pages whose output paths collide fail after the first one (in source
        order). Results come back in source order whatever ``jobs`` is.

        Raises:
            BuildError: On the first failure when ``fail_fast`` is set.
        """
        paths = self.discover(include_drafts)
        claimed: dict[Path, Path] = {}
        planned: list[Path] = []
        collisions: dict[Path, PageResult] = {}
        for path in paths:
            target = output_path(path.relative_to(self.source_dir))
            if target in claimed:
                message = f"output path {target} already produced by {claimed[target]}"
                collisions[path] = PageResult(source=path, error=BuildError(path, message))
            else:
                claimed[target] = path
                planned.append(path)

        results: list[PageResult] = []
        with ThreadPoolExecutor(max_workers=max(1, jobs)) as pool:
            futures = {path: pool.submit(self.build_page, path, output_dir) for path in planned}
            for path in paths:
                result = collisions.get(path) or futures[path].result()
                if result.error is not None:
                    logger.warning("%s", result.error)
                    if fail_fast:
                        for future in futures.values():
                            future.cancel()
                        raise result.error
                results.append(result)
        return results


def build_site(
    project_root: Path,
    include_drafts: bool = False,
    fail_fast: bool | None = None,
    jobs: int | None = None,
    root_url: str | None = None,
    output_dir_override: Path | None = None,
    clean_output: bool = True,
) -> BuildReport:
    """Build the entire static site.

    Args:
        project_root: Root directory of the project.
        include_drafts: Whether to include draft documents (starting with _).
        fail_fast: Abort on the first failing page (overrides config).
        jobs: Number of worker threads (overrides config).
        root_url: Base URL for url_for and image sources (overrides config).
        output_dir_override: Write here instead of the configured output_dir.
        clean_output: Whether to wipe the output directory before building.

    Returns:
        BuildReport with one result per document.

    Raises:
        BuildError: For project-level problems, or the first page failure
            in fail-fast mode.
    """
    config = load_config(project_root)
    if root_url is not None:
        config["root_url"] = root_url
    if fail_fast is None:
        fail_fast = bool(config.get("fail_fast"))
    if jobs is None:
        jobs = int(config.get("jobs") or 1)

    builder = SiteBuilder(project_root, config)
    output_dir = output_dir_override or (project_root / config["output_dir"])
    if clean_output:
        ensure_clean_dir(output_dir)
    else:
        output_dir.mkdir(parents=True, exist_ok=True)

    results = builder.run(
        output_dir, include_drafts=include_drafts, fail_fast=fail_fast, jobs=jobs
    )
    return BuildReport(results=results, output_dir=output_dir, config=config)


def check_site(project_root: Path, include_drafts: bool = False) -> BuildReport:
    """Parse and render every document without writing output."""
    config = load_config(project_root)
    builder = SiteBuilder(project_root, config)
    results = builder.run(None, include_drafts=include_drafts)
    output_dir = project_root / config["output_dir"]
    return BuildReport(results=results, output_dir=output_dir, config=config)
