from __future__ import annotations

import argparse

from taskweave.scenarios import SCENARIOS


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _probability(value: str) -> float:
    rate = float(value)
    if not 0.0 <= rate <= 1.0:
        raise argparse.ArgumentTypeError(f"must be between 0 and 1, got {rate}")
    return rate


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="taskweave")

    parser.add_argument(
        "--config",
        default="taskweave.yml",
        help="Path to config file",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log scheduler activity to stderr",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        required=True,
    )

    # run
    run = subparsers.add_parser("run", help="Run tasks")
    run.add_argument(
        "target",
        nargs="?",
        help="Run only this task and its dependencies",
    )
    run.add_argument(
        "--fail-fast",
        action="store_true",
        help="Skip every task not yet started after the first failure",
    )
    _add_run_options(run)

    # list
    subparsers.add_parser("list", help="List tasks")

    # graph
    subparsers.add_parser("graph", help="Show dependency graph")

    # demo
    demo = subparsers.add_parser("demo", help="Run a built-in scenario")
    demo.add_argument("scenario", choices=sorted(SCENARIOS))
    demo.add_argument(
        "--fail",
        action="append",
        default=[],
        metavar="TASK",
        help="Force this task to fail (repeatable)",
    )
    demo.add_argument(
        "--scale",
        type=float,
        default=1.0,
        help="Multiply every simulated duration",
    )
    demo.add_argument(
        "--fault-rate",
        type=_probability,
        default=0.0,
        help="Probability that any step fails at random",
    )
    demo.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for --fault-rate, for reproducible runs",
    )
    _add_run_options(demo)

    return parser


def _add_run_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--concurrency",
        type=_positive_int,
        default=None,
        help="Maximum number of tasks running at once",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the run report as JSON",
    )
