import json
from pathlib import Path

import pytest

from storyvault.services.crawl import runner
from storyvault.services.crawl.orchestrator import CrawlReport

FIXTURES = Path(__file__).parent / "fixtures"
BASE = "https://stories.example.com/tags/sci-fi"


def test_index_command_prints_records_as_json(capsys):
    code = runner.main(["index", "--file", str(FIXTURES / "story_index_sample.html"), "--base-url", BASE])
    assert code == 0
    records = json.loads(capsys.readouterr().out)
    assert [r["url"] for r in records] == [
        "https://stories.example.com/stories/the-time-engine",
        "https://stories.example.com/stories/starfall",
    ]
    assert records[0]["categories"] == ["sci-fi", "time-travel"]
    assert records[0]["synopsis"] is None


def test_synopsis_command_prints_text(capsys):
    code = runner.main(["synopsis", "--file", str(FIXTURES / "story_detail_sample.html")])
    assert code == 0
    assert capsys.readouterr().out.strip() == "A clockmaker discovers that her engine can fold time."


@pytest.mark.parametrize("status,expected", [("ok", 0), ("empty", 0), ("failed", 1), ("skipped", 1)])
def test_crawl_command_exit_code_follows_report(monkeypatch, capsys, tmp_path, status, expected):
    calls = []

    def fake_run_crawl(*, db_path=None, renderer_kind=None):
        calls.append((db_path, renderer_kind))
        return CrawlReport(status=status, category="sci-fi", error="boom" if expected else None)

    monkeypatch.setattr(runner, "run_crawl", fake_run_crawl)
    db = str(tmp_path / "cli.db")
    assert runner.main(["--db", db, "--renderer", "http", "crawl"]) == expected
    assert calls == [(db, "http")]
    assert json.loads(capsys.readouterr().out)["status"] == status


def test_init_db_creates_store(tmp_path, capsys):
    db = tmp_path / "nested" / "init.db"
    assert runner.main(["--db", str(db), "init-db"]) == 0
    assert db.is_file()
    assert capsys.readouterr().out.strip() == str(db)
