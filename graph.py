from __future__ import annotations

from typing import Dict, Hashable, List, Optional, Sequence, Tuple

import numpy as np
import matplotlib.pyplot as plt

from irv import RoundResult, elimination_order


def round_matrix(
    results: Sequence[RoundResult],
    order: Sequence[Hashable],
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Returns counts[r, c] and share[r, c]: votes of candidate order[r] in round c+1
    and their fraction of that round's total.
    Both are NaN once the candidate is out.
    """
    m = len(order)
    n = len(results)
    counts = np.full((m, n), np.nan, dtype=float)
    share = np.full((m, n), np.nan, dtype=float)
    row = {cid: i for i, cid in enumerate(order)}

    for c, res in enumerate(results):
        total = res.total
        for cid, v in res.results.items():
            r = row[cid]
            counts[r, c] = v
            share[r, c] = v / total if total > 0 else 0.0

    return counts, share


def plot_irv_round_matrix(
    results: Sequence[RoundResult],
    labels: Optional[Dict[Hashable, str]] = None,
    figsize: Tuple[int, int] = (13, 11),
):
    """
    results: every RoundResult of one tabulation, in order.
    labels: optional display names instead of candidate ids.

    Rows go from the winner to the first candidate eliminated; columns are rounds.
    Each cell is colored by vote share and annotated with the raw count, the
    cell where a candidate is eliminated is outlined and later rounds are gray.
    """
    results = list(results)
    winner, eliminated = elimination_order(results)
    order: List[Hashable] = eliminated[::-1]
    m = len(order)
    n = len(results)

    counts, share = round_matrix(results, order)

    def _lab(cid: Hashable) -> str:
        if labels and cid in labels:
            return labels[cid]
        return str(cid)

    fig, ax = plt.subplots(figsize=figsize)

    data = np.ma.masked_invalid(share)
    im = ax.imshow(data, vmin=0.0, vmax=1.0, cmap="RdYlGn", aspect="auto")

    for r in range(m):
        for c in range(n):
            if np.isnan(counts[r, c]):
                ax.add_patch(plt.Rectangle((c - 0.5, r - 0.5), 1, 1, facecolor="lightgray", edgecolor="none", zorder=2))
            else:
                ax.text(c, r, f"{int(counts[r, c])}", ha="center", va="center", fontsize=8, zorder=3)

    # where each candidate went out
    for c, res in enumerate(results):
        r = order.index(res.loser)
        ax.add_patch(plt.Rectangle((c - 0.5, r - 0.5), 1, 1, fill=False, edgecolor="black", linewidth=1.5, zorder=4))

    ax.set_xticks(np.arange(n))
    ax.set_xticklabels([str(res.round) for res in results])
    ax.tick_params(top=True, labeltop=True, bottom=False, labelbottom=False)
    ax.xaxis.set_ticks_position("top")
    ax.set_yticks(np.arange(m))
    ax.set_yticklabels([_lab(cid) for cid in order])

    ax.set_xticks(np.arange(-.5, n, 1), minor=True)
    ax.set_yticks(np.arange(-.5, m, 1), minor=True)
    ax.grid(which="minor", linestyle="-", linewidth=0.5)
    ax.tick_params(which="minor", bottom=False, left=False)

    cbar = fig.colorbar(im, ax=ax, fraction=0.046, pad=0.04)
    cbar.set_label("Vote share in round")

    n_ballots = results[0].total if results else 0
    title = f"IRV rounds, ballots: {n_ballots}"
    if winner is not None:
        title += f", winner: {_lab(winner)}"
    ax.set_title(title)
    ax.set_xlabel("Round")
    ax.set_ylabel("Candidate")

    fig.tight_layout()
    return fig, ax
