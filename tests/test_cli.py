from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

import pytest


@pytest.fixture(autouse=True)
def _restore_root_handlers():
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    yield
    for h in list(root.handlers):
        if h not in before:
            root.removeHandler(h)
            h.close()
    root.setLevel(level)


def _seed(tmp_path, gta_primary) -> None:
    from game_unifier.store import GameStore
    from game_unifier.utils import ProjectPaths
    from game_unifier.utils.merger import FieldMerger

    paths = ProjectPaths.from_root(tmp_path)
    paths.ensure()
    store = GameStore(paths.store_path)
    store.put_entry(
        "grand-theft-auto-v",
        FieldMerger().merge("grand-theft-auto-v", gta_primary),
        datetime(2024, 3, 1, tzinfo=timezone.utc),
    )


def test_cli_offline_commands(tmp_path, gta_primary, capsys):
    from game_unifier.cli import main

    _seed(tmp_path, gta_primary)
    common = ["--run-dir", str(tmp_path)]

    main(["view", "grand-theft-auto-v", *common])
    main(["vote", "grand-theft-auto-v", "up", *common])
    capsys.readouterr()

    main(["peek", "grand-theft-auto-v", "--json", *common])
    payload = json.loads(capsys.readouterr().out)
    assert payload["title"] == "Grand Theft Auto V"
    assert payload["counters"] == {"views": 1, "upvotes": 1, "downvotes": 0}

    main(["export", *common])
    assert (tmp_path / "data" / "output" / "Games_Cached.csv").exists()

    main(["invalidate", "grand-theft-auto-v", *common])
    with pytest.raises(SystemExit):
        main(["peek", "grand-theft-auto-v", *common])


def test_cli_requires_a_command():
    from game_unifier.cli import main

    with pytest.raises(SystemExit):
        main([])
