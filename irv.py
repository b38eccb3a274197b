from __future__ import annotations

import random
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Hashable, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

# =========================
# Ballot errors
# =========================

class BallotError(ValueError):
    """
    A ballot was refused by Poll.submit.
    `candidate` is the offending candidate; the subclass tells which rule failed.
    """

    template = "Invalid ballot: {}"

    def __init__(self, candidate: Hashable) -> None:
        super().__init__(self.template.format(candidate))
        self.candidate = candidate

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.candidate == other.candidate

    def __hash__(self) -> int:
        return hash((type(self), self.candidate))


class MissingCandidate(BallotError):
    template = "Candidate missing: {}"


class DuplicateCandidate(BallotError):
    template = "Duplicate candidate: {}"


class ExtraCandidate(BallotError):
    template = "Candidate not in poll: {}"


class TabulationError(RuntimeError):
    """Broken invariant while counting. Means a bug in validation, not bad input."""


# =========================
# Rounds
# =========================

@dataclass(frozen=True)
class RoundResult:
    loser: Hashable
    votes: int
    # read-only view, left out of the hash
    results: Mapping[Hashable, int] = field(repr=False, hash=False)
    round: int

    @property
    def total(self) -> int:
        return sum(self.results.values())


class ElectionRound:
    """
    State between two rounds: surviving candidates, ballots trimmed to them,
    and the number of the last counted round. Never mutated once built.
    """

    __slots__ = ("candidates", "ballots", "last_round")

    def __init__(
        self,
        candidates: Sequence[Hashable],
        ballots: Sequence[Sequence[Hashable]],
        last_round: int = 0,
    ) -> None:
        self.candidates = tuple(candidates)
        self.ballots = tuple(tuple(b) for b in ballots)
        self.last_round = last_round

    def advance(self) -> Optional[Tuple[RoundResult, "ElectionRound"]]:
        if not self.candidates:
            return None
        # All ballots lose the same candidates each round, so if the first one
        # is empty every other one is too.
        if self.ballots and not self.ballots[0]:
            return None

        counts = {cid: 0 for cid in self.candidates}
        for ballot in self.ballots:
            if not ballot:
                raise TabulationError(f"ballot exhausted early in round {self.last_round + 1}")
            try:
                counts[ballot[0]] += 1
            except KeyError:
                raise TabulationError(f"ballot ranks unknown candidate {ballot[0]!r}") from None

        # Strictly smaller only, so a tie goes to the earliest candidate in
        # registry order.
        loser = None
        lowest = None
        for cid, v in counts.items():
            if lowest is None or v < lowest:
                loser, lowest = cid, v

        rnd = self.last_round + 1
        result = RoundResult(loser=loser, votes=lowest, results=MappingProxyType(dict(counts)), round=rnd)
        next_round = ElectionRound(
            [cid for cid in self.candidates if cid != loser],
            [[pref for pref in ballot if pref != loser] for ballot in self.ballots],
            rnd,
        )
        return result, next_round


class RoundSequence(Iterator[RoundResult]):
    """
    Lazy iterator over the rounds of a poll. Keeps only the current round;
    call Poll.tabulate() again to start over.
    """

    def __init__(self, first: ElectionRound) -> None:
        self._current: Optional[ElectionRound] = first

    def __iter__(self) -> "RoundSequence":
        return self

    def __next__(self) -> RoundResult:
        if self._current is None:
            raise StopIteration
        step = self._current.advance()
        if step is None:
            self._current = None
            raise StopIteration
        result, self._current = step
        return result


# =========================
# Poll
# =========================

class Poll:
    def __init__(self, candidates: Iterable[Hashable]) -> None:
        # dict keeps the caller's order, which is also the tie-break order
        self._candidates: Tuple[Hashable, ...] = tuple(dict.fromkeys(candidates))
        self._ballots: List[Tuple[Hashable, ...]] = []

    @property
    def candidates(self) -> Tuple[Hashable, ...]:
        return self._candidates

    @property
    def ballots(self) -> Tuple[Tuple[Hashable, ...], ...]:
        return tuple(self._ballots)

    def __len__(self) -> int:
        return len(self._ballots)

    def submit(self, ballot: Iterable[Hashable]) -> None:
        """
        Accept `ballot` if it ranks every candidate of the poll exactly once.
        Raises ExtraCandidate, DuplicateCandidate or MissingCandidate otherwise,
        in that order of checking; nothing is stored on failure.
        """
        ballot = tuple(ballot)
        seen = dict.fromkeys(self._candidates, False)

        for cid in ballot:
            try:
                already = seen[cid]
            except KeyError:
                raise ExtraCandidate(cid) from None
            except TypeError:
                # unhashable values can't be candidates either
                raise ExtraCandidate(cid) from None
            if already:
                raise DuplicateCandidate(cid)
            seen[cid] = True

        for cid, ranked in seen.items():
            if not ranked:
                raise MissingCandidate(cid)

        self._ballots.append(ballot)

    def tabulate(self) -> RoundSequence:
        return RoundSequence(ElectionRound(self._candidates, self._ballots))


# =========================
# Helpers for callers
# =========================

def generate_ballot(poll: Poll, rng: Optional[random.Random] = None) -> List[Hashable]:
    """Random full ranking of the poll's candidates."""
    if rng is None:
        rng = random.Random()
    ballot = list(poll.candidates)
    # shuffle to avoid ballot-order effect in generated data
    rng.shuffle(ballot)
    return ballot


def elimination_order(results: Iterable[RoundResult]) -> Tuple[Optional[Hashable], List[Hashable]]:
    """
    Returns (winner_id, eliminated_in_order).
    The last round eliminates the last candidate standing, who is the winner.
    """
    eliminated = [r.loser for r in results]
    if not eliminated:
        return None, []
    return eliminated[-1], eliminated
