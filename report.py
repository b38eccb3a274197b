from __future__ import annotations

import csv
import json
import logging
import os
import sqlite3
from typing import Dict, Hashable, List, Optional, Sequence, Tuple

import numpy as np
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from graph import plot_irv_round_matrix
from irv import BallotError, Poll, RoundResult, elimination_order

logger = logging.getLogger(__name__)


# ---------- Loading from sqlite ----------

def _connect_readonly(db_path: str) -> sqlite3.Connection:
    # mode=ro: a missing file is an error instead of a new empty database
    return sqlite3.connect(f"file:{db_path}?mode=ro", uri=True)


def load_ballots_sqlite(db_path: str = "bot.sqlite3") -> List[List[int]]:
    """
    Rankings from the voting bot's `ballots` table, latest one per user.
    The database is read-only input here: `ranking_json` holds a JSON list of
    option ids, best first. Nothing is validated yet, see build_poll.
    """
    con = _connect_readonly(db_path)
    try:
        cur = con.cursor()
        # latest ballot of each user only
        query = """
                SELECT ranking_json
                FROM ballots b1
                WHERE id = (
                    SELECT MAX(id)
                    FROM ballots b2
                    WHERE b2.user_id = b1.user_id
                )
                ORDER BY id ASC
            """
        cur.execute(query)
        rows = cur.fetchall()
    finally:
        con.close()

    ballots = [json.loads(r[0]) for r in rows]
    return [list(map(int, b)) for b in ballots]


def load_options_sqlite(db_path: str = "bot.sqlite3") -> Tuple[List[int], Dict[int, str]]:
    """Candidate ids and titles from the bot's `options` table (read-only)."""
    con = _connect_readonly(db_path)
    try:
        cur = con.cursor()
        cur.execute("SELECT id, title FROM options ORDER BY id ASC")
        rows = cur.fetchall()
    finally:
        con.close()
    candidate_ids = [int(r[0]) for r in rows]
    labels = {int(r[0]): str(r[1]) for r in rows}
    return candidate_ids, labels


# ---------- Building the poll ----------

def build_poll(candidate_ids: Sequence[Hashable], ballots: Sequence[Sequence[Hashable]]) -> Poll:
    """
    Submits every ballot; refused ones are logged and skipped.
    """
    poll = Poll(candidate_ids)
    rejected = 0
    for i, ballot in enumerate(ballots):
        try:
            poll.submit(ballot)
        except BallotError as e:
            rejected += 1
            logger.warning("Ballot #%d skipped (%s): %s", i, type(e).__name__, e)
    if rejected:
        logger.warning("%d of %d ballots skipped", rejected, len(ballots))
    return poll


# ---------- Metrics ----------

def first_choice_counts(ballots: Sequence[Sequence[Hashable]], candidate_ids: Sequence[Hashable]) -> Dict[Hashable, int]:
    out = {cid: 0 for cid in candidate_ids}
    for b in ballots:
        if b:
            out[b[0]] += 1
    return out


def exit_rounds(results: Sequence[RoundResult]) -> Dict[Hashable, int]:
    return {r.loser: r.round for r in results}


def round_rows(results: Sequence[RoundResult], labels: Optional[Dict[Hashable, str]] = None) -> List[List[object]]:
    rows = []
    for r in results:
        # counts in one cell: "id:count; ...", best first
        ordered = sorted(r.results.items(), key=lambda x: -x[1])
        counts_str = "; ".join(f"{cid}:{v}" for cid, v in ordered)
        rows.append([r.round, r.total, r.loser, _label(r.loser, labels or {}), r.votes, counts_str])
    return rows


# ---------- Plots ----------

def _label(cid: Hashable, labels: Dict[Hashable, str]) -> str:
    return labels.get(cid, str(cid))


def plot_bar(order: List[Hashable], values: Dict[Hashable, float], labels: Dict[Hashable, str], title: str, path: str):
    x = np.arange(len(order))
    y = [values.get(cid, 0) for cid in order]

    fig, ax = plt.subplots(figsize=(14, 5))
    ax.bar(x, y)
    ax.set_xticks(x)
    ax.set_xticklabels([_label(cid, labels) for cid in order], rotation=90)
    ax.set_title(title)
    fig.tight_layout()
    fig.savefig(path, dpi=200, bbox_inches="tight")
    plt.close(fig)


def plot_round_totals(results: Sequence[RoundResult], path: str):
    rs = [r.round for r in results]
    loser_votes = [r.votes for r in results]
    leader_votes = [max(r.results.values()) for r in results]

    fig, ax = plt.subplots(figsize=(8, 4))
    ax.plot(rs, leader_votes, marker="o", label="leader")
    ax.plot(rs, loser_votes, marker="o", label="eliminated")
    ax.set_title("IRV by round: leader vs eliminated")
    ax.set_xlabel("Round")
    ax.set_ylabel("First-preference votes")
    ax.legend()
    fig.tight_layout()
    fig.savefig(path, dpi=200, bbox_inches="tight")
    plt.close(fig)


# ---------- CSV helpers ----------

def write_csv(path: str, header: List[str], rows: List[List[object]]):
    with open(path, "w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(header)
        w.writerows(rows)


def write_report(poll: Poll, labels: Optional[Dict[Hashable, str]] = None, out_dir: str = "report") -> Optional[Hashable]:
    """
    Tabulates `poll` and writes CSV tables and plots into `out_dir`.
    Returns the winner (None for a poll without candidates).
    """
    labels = labels or {}
    os.makedirs(out_dir, exist_ok=True)

    results = list(poll.tabulate())
    winner, eliminated = elimination_order(results)
    order = eliminated[::-1]
    n_ballots = len(poll)
    logger.info("Tabulated %d rounds over %d ballots", len(results), n_ballots)

    write_csv(
        os.path.join(out_dir, "irv_rounds.csv"),
        ["round", "votes_cast", "eliminated", "eliminated_label", "eliminated_votes", "counts"],
        round_rows(results, labels),
    )

    fc = first_choice_counts(poll.ballots, poll.candidates)
    exits = exit_rounds(results)
    summary_rows = []
    for cid in order:
        summary_rows.append([cid, _label(cid, labels), fc.get(cid, 0), exits.get(cid, ""), int(cid == winner)])

    write_csv(
        os.path.join(out_dir, "summary.csv"),
        ["id", "label", "top1", "irv_round", "winner"],
        summary_rows,
    )

    plot_bar(order, fc, labels, f"Top-1 (plurality), N={n_ballots}", os.path.join(out_dir, "01_first_choices.png"))
    if results:
        plot_round_totals(results, os.path.join(out_dir, "02_round_totals.png"))

        fig, ax = plot_irv_round_matrix(results, labels=labels, figsize=(13, 11))
        fig.savefig(os.path.join(out_dir, "03_round_matrix.png"), dpi=200, bbox_inches="tight")
        plt.close(fig)

    logger.info("Report written to %s/", out_dir)
    return winner


def generate_report(db_path: str = "bot.sqlite3", out_dir: str = "report") -> Optional[Hashable]:
    ballots = load_ballots_sqlite(db_path)
    candidate_ids, labels = load_options_sqlite(db_path)

    if not ballots:
        raise RuntimeError(f"No ballots in {db_path}")

    poll = build_poll(candidate_ids, ballots)
    if not len(poll):
        raise RuntimeError(f"No valid ballots in {db_path}")

    winner = write_report(poll, labels, out_dir)
    print(f"Ballots counted: {len(poll)} of {len(ballots)}")
    if winner is not None:
        print(f"IRV winner: {winner} ({_label(winner, labels)})")
    return winner


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    generate_report(os.getenv("IRV_DB_PATH", "bot.sqlite3"), os.getenv("IRV_REPORT_DIR", "report"))
