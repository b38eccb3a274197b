import argparse
import logging
import os
import random
from typing import List, Optional, Tuple

from irv import Poll, generate_ballot

# =========================
# Config
# =========================

DEFAULT_CANDIDATES = 10
DEFAULT_BALLOTS = 10_000
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {name} must be an integer, got {raw!r}") from None


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Random instant-runoff election demo")
    parser.add_argument("-c", "--candidates", type=int, default=None,
                        help=f"number of candidates (IRV_CANDIDATES, default {DEFAULT_CANDIDATES})")
    parser.add_argument("-b", "--ballots", type=int, default=None,
                        help=f"number of random ballots (IRV_BALLOTS, default {DEFAULT_BALLOTS})")
    parser.add_argument("-s", "--seed", type=int, default=None,
                        help="random seed (IRV_SEED)")
    parser.add_argument("-r", "--report-dir", default=None,
                        help="write CSV tables and plots here (IRV_REPORT_DIR)")
    parser.add_argument("--log-level", type=str.upper, default=None,
                        help="logging level (IRV_LOG_LEVEL, default INFO)")
    args = parser.parse_args(argv)

    # environment only fills what the command line left out
    if args.candidates is None:
        args.candidates = _env_int("IRV_CANDIDATES", DEFAULT_CANDIDATES)
    if args.ballots is None:
        args.ballots = _env_int("IRV_BALLOTS", DEFAULT_BALLOTS)
    if args.seed is None:
        args.seed = _env_int("IRV_SEED", None)
    if args.report_dir is None:
        args.report_dir = os.getenv("IRV_REPORT_DIR") or None
    if args.log_level is None:
        args.log_level = os.getenv("IRV_LOG_LEVEL", "INFO").upper()

    if args.candidates < 1:
        parser.error("--candidates must be at least 1")
    if args.ballots < 0:
        parser.error("--ballots must not be negative")
    if args.log_level not in LOG_LEVELS:
        parser.error(f"--log-level must be one of {', '.join(LOG_LEVELS)}, got {args.log_level!r}")
    return args


# =========================
# Election
# =========================

def run(num_candidates: int, num_ballots: int, rng: random.Random) -> Tuple[Poll, Optional[str]]:
    print(f"Generating {num_candidates} candidates...")
    candidates = [f"Person {i}" for i in range(num_candidates)]
    poll = Poll(candidates)

    print(f"Generating {num_ballots} ballots...")
    for _ in range(num_ballots):
        # generated ballots are full permutations, so this never fails
        poll.submit(generate_ballot(poll, rng))

    print("Calculating results...")
    winner = None
    for result in poll.tabulate():
        logging.debug("round %d counts: %s", result.round, result.results)
        print(f"Round {result.round}: {result.loser} ({result.votes} votes)")
        winner = result.loser
    print(f"Election winner: {winner}!")
    return poll, winner


def main(argv: Optional[List[str]] = None) -> Optional[str]:
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level)

    rng = random.Random(args.seed)
    poll, winner = run(args.candidates, args.ballots, rng)

    if args.report_dir:
        # matplotlib is only needed for the report
        from report import write_report
        write_report(poll, out_dir=args.report_dir)
    return winner


if __name__ == "__main__":
    main()
