from pathlib import Path

import pytest

from storyvault.db.sqlite_connector import init_schema


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "stories.db")
    init_schema(path)
    return path


def read_fixture(name: str) -> str:
    p = Path(__file__).parent / "fixtures" / name
    return p.read_text(encoding="utf-8")
