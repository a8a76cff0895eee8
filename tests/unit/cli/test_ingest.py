"""Tests for docchat ingest CLI command."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from docchat.cli.main import app
from docchat.db.connection import Database
from docchat.db.repository import CorpusRepository
from docchat.db.vectors import model_to_slug, vec_table_name

runner = CliRunner()

_DIMS = 1536
_VEC_TABLE = vec_table_name(model_to_slug("openai/text-embedding-3-small"))


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "corpus.db"


@pytest.fixture
def mock_embed(monkeypatch):
    """Fake embeddings; no provider calls."""
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    with patch("docchat.ingest.embedding_writer.embed", return_value=[0.1] * _DIMS) as mock:
        yield mock


def _write_doc(path: Path, text: str = "# Hazards\n\nHazards hurt. They drain health.\n") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


# ------------------------------------------------------------------
# Input validation
# ------------------------------------------------------------------


def test_ingest_exits_without_source(db_path):
    result = runner.invoke(app, ["ingest", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "source" in result.output.lower()


def test_ingest_skips_non_markdown(tmp_path, db_path, mock_embed):
    src = tmp_path / "notes.txt"
    src.write_text("plain text")

    result = runner.invoke(app, ["ingest", "--source", str(src), "--db", str(db_path)])
    assert result.exit_code == 0
    assert "No markdown files" in result.output
    assert not db_path.exists()


def test_ingest_missing_api_key(tmp_path, db_path, monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    src = _write_doc(tmp_path / "doc.md")

    result = runner.invoke(app, ["ingest", "--source", str(src), "--db", str(db_path)])
    assert result.exit_code == 1
    assert "OPENAI_API_KEY" in result.output


# ------------------------------------------------------------------
# Pipeline
# ------------------------------------------------------------------


def test_ingest_stores_sentences_and_embeddings(tmp_path, db_path, mock_embed):
    src = _write_doc(tmp_path / "doc.md")

    result = runner.invoke(app, ["ingest", "--source", str(src), "--db", str(db_path)])
    assert result.exit_code == 0, result.output
    assert mock_embed.call_count == 3

    with Database(db_path) as conn:
        repo = CorpusRepository(conn)
        doc = repo.get_document_by_path(str(src))
        assert doc.parsed_text == "Hazards\n\nHazards hurt.\n\nThey drain health."
        window = repo.sentences_in_window(doc.id, 0, 10)
        assert [s.text for s in window] == ["Hazards", "Hazards hurt.", "They drain health."]
        assert repo.has_vec_table(_VEC_TABLE)


def test_reingest_writes_nothing_new(tmp_path, db_path, mock_embed):
    src = _write_doc(tmp_path / "doc.md")
    runner.invoke(app, ["ingest", "--source", str(src), "--db", str(db_path)])

    result = runner.invoke(app, ["ingest", "--source", str(src), "--db", str(db_path)])
    assert result.exit_code == 0
    assert "stored split" in result.output
    assert "already stored" in result.output
    assert mock_embed.call_count == 3


def test_reingest_uses_stored_split(tmp_path, db_path, mock_embed):
    src = _write_doc(tmp_path / "doc.md")
    runner.invoke(app, ["ingest", "--source", str(src), "--db", str(db_path)])
    src.write_text("Completely new text.", encoding="utf-8")

    runner.invoke(app, ["ingest", "--source", str(src), "--db", str(db_path)])

    with Database(db_path) as conn:
        assert CorpusRepository(conn).count_sentences() == 3


def test_ingest_directory_recursive_skips_node_modules(tmp_path, db_path, mock_embed):
    docs = tmp_path / "docs"
    _write_doc(docs / "a.md", "Alpha doc.")
    _write_doc(docs / "guides" / "b.markdown", "Beta doc.")
    _write_doc(docs / "node_modules" / "pkg" / "readme.md", "Ignored doc.")
    _write_doc(docs / "skip.md", "Excluded doc.")

    result = runner.invoke(
        app,
        ["ingest", "--source", str(docs), "--recursive", "--exclude", "skip.md", "--db", str(db_path)],
    )
    assert result.exit_code == 0, result.output

    with Database(db_path) as conn:
        repo = CorpusRepository(conn)
        assert repo.count_documents() == 2
        assert repo.get_document_by_path(str(docs / "node_modules" / "pkg" / "readme.md")) is None


def test_ingest_directory_non_recursive(tmp_path, db_path, mock_embed):
    docs = tmp_path / "docs"
    _write_doc(docs / "a.md", "Alpha doc.")
    _write_doc(docs / "sub" / "b.md", "Beta doc.")

    runner.invoke(app, ["ingest", "--source", str(docs), "--db", str(db_path)])

    with Database(db_path) as conn:
        assert CorpusRepository(conn).count_documents() == 1


def test_ingest_continues_after_failed_file(tmp_path, db_path, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    bad = _write_doc(tmp_path / "a_bad.md", "Broken doc.")
    good = _write_doc(tmp_path / "b_good.md", "Healthy doc.")

    def flaky_embed(model, text):
        if text == "Broken doc.":
            raise RuntimeError("rate limited")
        return [0.1] * _DIMS

    with patch("docchat.ingest.embedding_writer.embed", side_effect=flaky_embed):
        result = runner.invoke(
            app, ["ingest", "--source", str(bad), "--source", str(good), "--db", str(db_path)]
        )

    assert result.exit_code == 1
    assert "rate limited" in result.output
    assert "1 of 2" in result.output
    with Database(db_path) as conn:
        repo = CorpusRepository(conn)
        assert repo.has_sentence_text("Healthy doc.")
        assert not repo.has_sentence_text("Broken doc.")

    with patch("docchat.ingest.embedding_writer.embed", return_value=[0.1] * _DIMS):
        retry = runner.invoke(app, ["ingest", "--source", str(bad), "--db", str(db_path)])

    assert retry.exit_code == 0, retry.output
    with Database(db_path) as conn:
        assert CorpusRepository(conn).has_sentence_text("Broken doc.")


# ------------------------------------------------------------------
# Dry run
# ------------------------------------------------------------------


def test_ingest_dry_run_no_db_writes(tmp_path, db_path, mock_embed):
    src = _write_doc(tmp_path / "doc.md")

    result = runner.invoke(
        app, ["ingest", "--source", str(src), "--db", str(db_path), "--dry-run"]
    )

    assert result.exit_code == 0
    assert "Dry run" in result.output
    assert not db_path.exists()
    mock_embed.assert_not_called()
