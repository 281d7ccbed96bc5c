from pathlib import Path

import pytest

from psdash.config import get_settings
from psdash.months import from_key, shift_key


def monthly_csv(months: int = 30, start: int = 202201, branches=("113", "215")) -> str:
    lines = ["Year,Period,Branch,Parts,Total"]
    for i in range(months):
        year, month = from_key(shift_key(start, i))
        for branch in branches:
            lines.append(f"{year},{month},{branch},40,100")
    return "\n".join(lines) + "\n"


@pytest.fixture
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    (tmp_path / "historical_all.csv").write_text(monthly_csv(), encoding="utf-8")
    (tmp_path / "historical_bad.csv").write_text("Foo,Bar\n1,2\n", encoding="utf-8")
    monkeypatch.setenv("PSDASH_DATA_DIR", str(tmp_path))
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()
