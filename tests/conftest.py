import json
import sqlite3

import matplotlib
matplotlib.use("Agg")

import pytest

from irv import Poll


@pytest.fixture
def abc_poll():
    """Three candidates, one first preference each."""
    poll = Poll(["C", "B", "A"])
    for ballot in (["A", "B", "C"], ["B", "A", "C"], ["C", "B", "A"]):
        poll.submit(ballot)
    return poll


@pytest.fixture
def majority_poll():
    poll = Poll(["A", "B", "C", "D"])
    for ballot in (
        ["A", "B", "C", "D"],
        ["A", "C", "B", "D"],
        ["B", "A", "C", "D"],
        ["B", "C", "A", "D"],
        ["C", "A", "B", "D"],
        ["D", "B", "A", "C"],
    ):
        poll.submit(ballot)
    return poll


@pytest.fixture
def bot_db(tmp_path):
    """A ballots database in the voting bot's layout."""
    path = tmp_path / "bot.sqlite3"
    con = sqlite3.connect(path)
    con.executescript(
        """
        CREATE TABLE options (
            id INTEGER PRIMARY KEY,
            title TEXT NOT NULL
        );
        CREATE TABLE ballots (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            ranking_json TEXT NOT NULL
        );
        """
    )
    con.executemany("INSERT INTO options (id, title) VALUES (?, ?)", [(1, "Red"), (2, "Green"), (3, "Blue")])
    rows = [
        (10, [1, 2, 3]),
        (11, [2, 1, 3]),
        (12, [2, 3, 1]),
        (13, [3, 2, 1]),
        (14, [1, 3, 2]),
        # second ballot of user 10 replaces the first one
        (10, [2, 3, 1]),
        # partial ranking, refused by the poll
        (15, [3, 1]),
    ]
    con.executemany(
        "INSERT INTO ballots (user_id, ranking_json) VALUES (?, ?)",
        [(uid, json.dumps(r)) for uid, r in rows],
    )
    con.commit()
    con.close()
    return str(path)
