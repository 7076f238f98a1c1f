from datetime import datetime

from click.testing import CliRunner

from quill import __version__
from quill.build import BuildError
from quill.cli import cli
from quill.document import load_document


def scaffold(runner, tmp_path):
    project = tmp_path / "blog"
    result = runner.invoke(cli, ["new", str(project)])
    assert result.exit_code == 0, result.output
    return project


def test_new_scaffolds_project(tmp_path):
    runner = CliRunner()
    project = scaffold(runner, tmp_path)
    assert (project / "quill.yaml").exists()
    assert (project / "content" / "_layouts" / "post.html").exists()
    assert (project / "content" / "aboutme.md").exists()

    # fails on non-empty directory
    result = runner.invoke(cli, ["new", str(project)])
    assert result.exit_code != 0
    assert "non-empty" in result.output


def test_build_scaffolded_project(monkeypatch, tmp_path):
    runner = CliRunner()
    project = scaffold(runner, tmp_path)
    monkeypatch.chdir(project)

    result = runner.invoke(cli, ["build"], catch_exceptions=False)
    assert result.exit_code == 0, result.output
    assert "Built 2 pages" in result.output

    post = (project / "output" / "posts" / "hello-world" / "index.html").read_text(encoding="utf-8")
    assert "<title>Hello, world | My Blog</title>" in post
    assert "Posted on January 01, 2024 by Anonymous" in post
    assert '<div class="highlight">' in post
    assert (project / "output" / "aboutme" / "index.html").exists()


def test_build_reports_failed_pages(monkeypatch, tmp_path):
    runner = CliRunner()
    project = scaffold(runner, tmp_path)
    (project / "content" / "posts" / "broken.md").write_text("no metadata", encoding="utf-8")
    monkeypatch.chdir(project)

    result = runner.invoke(cli, ["build", "--jobs", "2"])
    assert result.exit_code == 1
    assert "failed: content/posts/broken.md" in result.output
    assert "MalformedDocument: missing metadata block" in result.output
    assert "1 pages failed" in result.output
    assert (project / "output" / "aboutme" / "index.html").exists()

    result = runner.invoke(cli, ["build", "--fail-fast"])
    assert result.exit_code == 1
    assert "Build failed:" in result.output
    assert "File: content/posts/broken.md" in result.output


def test_build_output_option(monkeypatch, tmp_path):
    runner = CliRunner()
    project = scaffold(runner, tmp_path)
    monkeypatch.chdir(project)
    result = runner.invoke(cli, ["build", "--output", "public"])
    assert result.exit_code == 0, result.output
    assert (project / "public" / "aboutme" / "index.html").exists()
    assert not (project / "output").exists()


def test_build_outside_project(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli, ["build"])
    assert result.exit_code == 1
    assert "source directory does not exist" in result.output


def test_check(monkeypatch, tmp_path):
    runner = CliRunner()
    project = scaffold(runner, tmp_path)
    monkeypatch.chdir(project)

    result = runner.invoke(cli, ["check"])
    assert result.exit_code == 0, result.output
    assert "Checked 2 documents" in result.output
    assert not (project / "output").exists()

    (project / "content" / "gallery.md").write_text(
        "---\nlayout: gallery\n---\n```nosuchlang\nx\n```\n", encoding="utf-8"
    )
    (project / "content" / "notes.md").write_text(
        "---\nlayout: page\n---\n```nosuchlang\nx\n```\n", encoding="utf-8"
    )
    result = runner.invoke(cli, ["check"])
    assert result.exit_code == 1
    assert "unknown layout 'gallery'" in result.output
    assert "warning: content/notes.md: no highlighter for code language 'nosuchlang'" in result.output
    assert "1 of 4 documents failed" in result.output


def test_post_creates_front_matter(monkeypatch, tmp_path):
    runner = CliRunner()
    project = scaffold(runner, tmp_path)
    monkeypatch.chdir(project)

    answers = iter(["Admission Webhooks", "", "k8s go"])

    class FakeQuestion:
        def __init__(self, value):
            self.value = value

        def ask(self):
            return self.value

    monkeypatch.setattr(
        "quill.cli.questionary.text", lambda *args, **kwargs: FakeQuestion(next(answers))
    )
    result = runner.invoke(cli, ["post"], catch_exceptions=False)
    assert result.exit_code == 0, result.output

    filename = f"{datetime.now().strftime('%Y-%m-%d')}-admission-webhooks.md"
    path = project / "content" / "posts" / filename
    doc = load_document(path)
    assert doc.layout == "post"
    assert doc.title == "Admission Webhooks"
    assert doc.tags == ("k8s", "go")
    assert doc.subtitle is None

    answers = iter(["Admission webhooks!", "", ""])
    result = runner.invoke(cli, ["post"])
    assert result.exit_code != 0
    assert "already exists" in result.output


def test_post_abort(monkeypatch, tmp_path):
    runner = CliRunner()
    project = scaffold(runner, tmp_path)
    monkeypatch.chdir(project)

    class Cancelled:
        def ask(self):
            return None

    monkeypatch.setattr("quill.cli.questionary.text", lambda *args, **kwargs: Cancelled())
    result = runner.invoke(cli, ["post"])
    assert result.exit_code != 0
    posts = sorted(p.name for p in (project / "content" / "posts").glob("*.md"))
    assert posts == ["2024-01-01-hello-world.md"]


def test_version_and_main_entrypoint():
    result = CliRunner().invoke(cli, ["--version"])
    assert __version__ in result.output

    from quill.__main__ import main

    assert callable(main)


def test_post_reports_invalid_config(monkeypatch, tmp_path):
    runner = CliRunner()
    project = scaffold(runner, tmp_path)
    (project / "quill.yaml").write_text("- not\n- a mapping\n", encoding="utf-8")
    monkeypatch.chdir(project)

    result = runner.invoke(cli, ["post"])
    assert result.exit_code == 1
    assert "configuration must be a mapping" in result.output
    assert not isinstance(result.exception, BuildError)
