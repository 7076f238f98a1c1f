from datetime import datetime
from pathlib import Path

from quill import utils


def test_slugify_and_titleize_strip_date():
    assert utils.slugify("2024-01-02-post-title") == "post-title"
    assert utils.slugify("Admission Webhooks 101") == "admission-webhooks-101"
    assert utils.slugify("mixed-case-slug") == "mixed-case-slug"
    assert utils.slugify("!!!") == "index"
    assert utils.titleize("2024-01-02-post-title.md") == "Post Title"
    assert utils.titleize("aboutme.md") == "Aboutme"
    assert utils.titleize("wal_and_indexes.md") == "Wal And Indexes"


def test_extract_date_from_name():
    assert utils.extract_date_from_name("2024-01-15-cool") == datetime(2024, 1, 15)
    assert utils.extract_date_from_name("invalid") is None
    assert utils.extract_date_from_name("2024-13-32-post") is None


def test_path_predicates():
    assert utils.is_markdown(Path("post.md"))
    assert utils.is_markdown(Path("POST.MD"))
    assert utils.is_markdown(Path("post.markdown"))
    assert not utils.is_markdown(Path("post.html"))
    assert utils.is_internal_path(Path("_layouts/post.html"))
    assert not utils.is_internal_path(Path("posts/hello.md"))


def test_ensure_clean_dir(tmp_path):
    target = tmp_path / "build"
    (target / "nested").mkdir(parents=True)
    (target / "nested" / "old.txt").write_text("old", encoding="utf-8")
    utils.ensure_clean_dir(target)
    assert target.exists() and list(target.iterdir()) == []

    missing = tmp_path / "missing-dir"
    utils.ensure_clean_dir(missing)
    assert missing.exists()


def test_join_root_url():
    assert utils.join_root_url("", "/posts/") == "/posts/"
    assert utils.join_root_url("https://example.com", "/posts/") == "https://example.com/posts/"
    assert (
        utils.join_root_url("https://example.com/blog/", "/img/a.png")
        == "https://example.com/blog/img/a.png"
    )
