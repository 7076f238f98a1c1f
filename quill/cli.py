"""Command-line interface for Quill.

This module defines the CLI commands using the Click framework.

Commands:
- new: Scaffold a new blog.
- build: Render every document into the output directory.
- check: Parse and render every document without writing output.
- post: Create a new post interactively.
"""

from __future__ import annotations

import logging
import shutil
from datetime import datetime
from pathlib import Path

import click
import questionary
import yaml

from . import __version__
from .build import BuildError, BuildReport, load_config
from .utils import slugify

_SCAFFOLD_DIR = Path(__file__).parent / "scaffold"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.ERROR,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _display_path(path: Path, project_root: Path) -> Path:
    try:
        return path.relative_to(project_root)
    except ValueError:
        return path


def _report(report: BuildReport, project_root: Path) -> None:
    """Echo anomalies and failures from a build report."""
    for result in report.results:
        rel_path = _display_path(result.source, project_root)
        for anomaly in result.anomalies:
            click.echo(
                click.style(f"  warning: {rel_path}: {anomaly}", fg="yellow"), err=True
            )
        if result.error is not None:
            click.echo(click.style(f"  failed: {rel_path}", fg="red", bold=True), err=True)
            click.echo(click.style(f"    {result.error.message}", fg="white"), err=True)


def _fail(exc: BuildError, project_root: Path) -> None:
    rel_path = _display_path(exc.source_path, project_root)
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    click.echo(click.style(f"  File: {rel_path}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)


@click.group()
@click.version_option(version=__version__, prog_name="quill")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def cli(verbose: bool):
    """Quill blog renderer."""
    _configure_logging(verbose)


@cli.command()
@click.argument("name")
def new(name: str):
    """Scaffold a new blog."""
    target = Path(name).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    _scaffold(target)
    click.echo(f"New Quill blog created at {target}")


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft documents")
@click.option("--fail-fast", is_flag=True, help="Stop at the first failing page")
@click.option("--jobs", "-j", type=click.IntRange(min=1), help="Render pages on N threads")
@click.option(
    "--output",
    "output_dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Output directory (overrides quill.yaml)",
)
def build(drafts: bool, fail_fast: bool, jobs: int | None, output_dir: Path | None):
    """Render every document into the output directory."""
    project_root = Path.cwd()
    from .build import build_site

    try:
        report = build_site(
            project_root,
            include_drafts=drafts,
            fail_fast=True if fail_fast else None,
            jobs=jobs,
            output_dir_override=output_dir,
        )
    except BuildError as exc:
        _fail(exc, project_root)
        raise SystemExit(1) from None
    _report(report, project_root)
    click.echo(f"Built {len(report.pages)} pages into {report.output_dir}")
    if not report.ok:
        click.echo(
            click.style(f"{len(report.failures)} pages failed", fg="red", bold=True), err=True
        )
        raise SystemExit(1)


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft documents")
def check(drafts: bool):
    """Parse and render every document without writing output."""
    project_root = Path.cwd()
    from .build import check_site

    try:
        report = check_site(project_root, include_drafts=drafts)
    except BuildError as exc:
        _fail(exc, project_root)
        raise SystemExit(1) from None
    _report(report, project_root)
    if not report.ok:
        click.echo(
            click.style(
                f"{len(report.failures)} of {len(report.results)} documents failed",
                fg="red",
                bold=True,
            ),
            err=True,
        )
        raise SystemExit(1)
    click.echo(f"Checked {len(report.results)} documents")


@cli.command()
def post():
    """Create a new post interactively."""
    project_root = Path.cwd()
    try:
        config = load_config(project_root)
    except BuildError as exc:
        _fail(exc, project_root)
        raise SystemExit(1) from None
    source_dir = project_root / config["source_dir"]
    if not source_dir.exists():
        raise click.ClickException(
            f"No {config['source_dir']}/ directory found. "
            "Run this command from a Quill project root."
        )

    title = questionary.text(
        "Title:",
        validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
        style=_questionary_style(),
    ).ask()
    if title is None:
        raise click.Abort()

    subtitle = questionary.text("Subtitle (optional):", style=_questionary_style()).ask()
    if subtitle is None:
        raise click.Abort()

    tags = questionary.text("Tags (space separated):", style=_questionary_style()).ask()
    if tags is None:
        raise click.Abort()

    target_dir = source_dir / "posts"
    slug = slugify(title)
    existing = [f for f in target_dir.glob("*.md") if slugify(f.stem) == slug]
    if existing:
        raise click.ClickException(
            f"A post with slug '{slug}' already exists: {existing[0].name}"
        )

    metadata = {"layout": "post", "title": title.strip()}
    if subtitle.strip():
        metadata["subtitle"] = subtitle.strip()
    if tags.split():
        metadata["tags"] = tags.split()

    filename = f"{datetime.now().strftime('%Y-%m-%d')}-{slug}.md"
    target_dir.mkdir(parents=True, exist_ok=True)
    target_path = target_dir / filename
    front_matter = yaml.safe_dump(metadata, sort_keys=False, allow_unicode=True)
    target_path.write_text(f"---\n{front_matter}---\n\n", encoding="utf-8")
    click.echo(f"Created {target_path.relative_to(project_root)}")


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
            ("pointer", "fg:cyan bold"),
            ("highlighted", "fg:cyan bold"),
            ("selected", "fg:cyan"),
        ]
    )


def _scaffold(root: Path) -> None:
    """Copy the starter blog into a new project directory."""
    for src_path in _SCAFFOLD_DIR.rglob("*"):
        if src_path.is_dir():
            continue
        dest_path = root / src_path.relative_to(_SCAFFOLD_DIR)
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_path, dest_path)


def main():
    """Entry point for the CLI application."""
    cli()

