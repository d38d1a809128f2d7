from __future__ import annotations

import json
from pathlib import Path

import pytest

from klarity.catalog import find_act
from klarity.cli.main import main
from klarity.quotes import QuoteDatabase, QuoteDraft, QuoteService

SETTING_KEYS = ("OPENAI_API_KEY", "USE_MOCK", "KLARITY_LINK_BASE_URL", "KLARITY_LINK_TTL_DAYS")


@pytest.fixture
def workdir(project_root: Path, monkeypatch) -> Path:
    for key in SETTING_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(project_root)
    return project_root


def test_init_creates_the_database(workdir: Path, capsys) -> None:
    assert main(["init"]) == 0
    printed = Path(capsys.readouterr().out.strip())
    expected = workdir / "var" / "klarity" / "klarity.sqlite3"
    assert printed.resolve() == expected.resolve()
    assert expected.is_file()


def test_search_prints_matching_acts(workdir: Path, capsys) -> None:
    assert main(["search", "couronne"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert [line.split()[0] for line in lines] == ["HBLD038", "HBLD036", "HBLD418"]
    assert "550.00 €" in lines[0]

    assert main(["search", "couronne", "--json"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert [a["code"] for a in payload] == ["HBLD038", "HBLD036", "HBLD418"]

    assert main(["search", "zzzz"]) == 0
    assert capsys.readouterr().out.strip() == "Aucun acte trouvé."


def test_quotes_list_and_stats(workdir: Path, clock, capsys) -> None:
    assert main(["quotes", "list"]) == 0
    assert capsys.readouterr().out.strip() == "No quotes stored yet."

    assert main(["quotes", "stats"]) == 0
    assert json.loads(capsys.readouterr().out)["quote_count"] == 0

    draft = QuoteDraft("Alice")
    draft.add_act(find_act("HBLD038"))
    quote = QuoteService(QuoteDatabase(root_dir=str(workdir)), clock=clock).create_quote(draft)

    assert main(["quotes", "list"]) == 0
    line = capsys.readouterr().out.strip()
    assert line.startswith(f"{quote.id}  2024-06-01  sent")
    assert "550.00 €" in line
    assert "opens=0" in line
    assert "Alice" in line
    assert line.endswith(f"https://klarity.app/d/{quote.magic_link_token}")

    assert main(["quotes", "list", "--json"]) == 0
    assert [q["id"] for q in json.loads(capsys.readouterr().out)] == [quote.id]

    assert main(["quotes", "stats"]) == 0
    stats = json.loads(capsys.readouterr().out)
    assert stats["quote_count"] == 1
    assert stats["acceptance_rate"] == 0
    assert stats["total_amount"] == 550
    assert stats["pending_amount"] == 550


def test_unknown_subcommand_exits(workdir: Path) -> None:
    with pytest.raises(SystemExit):
        main(["nope"])
