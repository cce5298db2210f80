from __future__ import annotations

import argparse
import json
import logging
import sys

from rich.console import Console
from rich.logging import RichHandler

from taskweave.config import ConfigError, load_project
from taskweave.executor import FailurePolicy, RunReport, Scheduler, TaskState, tasks_from_project
from taskweave.graph import GraphError, TaskGraph
from taskweave.scenarios import SCENARIOS, random_faults

from .args import build_parser

logger = logging.getLogger(__name__)

console = Console(stderr=True)


def run_cli(argv: list[str] | None = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
        _configure_logging(args.verbose)

        match args.command:
            case "run":
                return cmd_run(args)
            case "list":
                return cmd_list(args)
            case "graph":
                return cmd_graph(args)
            case "demo":
                return cmd_demo(args)
            case _:
                return 2

    except (ConfigError, GraphError, KeyError) as exc:
        print(str(exc), file=sys.stderr)
        return 2

    except KeyboardInterrupt:
        return 130


def main() -> None:
    sys.exit(run_cli())


def cmd_run(args: argparse.Namespace) -> int:
    project = load_project(args.config)
    graph = TaskGraph.build(tasks_from_project(project))
    if args.target is not None:
        graph = graph.subgraph(args.target)

    policy = FailurePolicy.STOP_ALL if args.fail_fast else FailurePolicy(project.on_failure)
    limit = args.concurrency if args.concurrency is not None else project.concurrency_limit

    report = Scheduler(limit, policy).run_sync(graph)
    _print_report(graph, report, as_json=args.json)
    return 0 if report.overall_succeeded else 1


def cmd_list(args: argparse.Namespace) -> int:
    project = load_project(args.config)
    for tid in project.tasks_ids():
        print(tid)
    return 0


def cmd_graph(args: argparse.Namespace) -> int:
    project = load_project(args.config)
    graph = TaskGraph.build(tasks_from_project(project))
    for tid in graph:
        deps = " ".join(graph.dependencies_of(tid))
        print(f"{tid}: {deps}".rstrip())
    return 0


def cmd_demo(args: argparse.Namespace) -> int:
    scenario = SCENARIOS[args.scenario]
    faults = random_faults(args.fault_rate, args.seed) if args.fault_rate > 0 else None
    graph = TaskGraph.build(scenario.build(fail=args.fail, scale=args.scale, faults=faults))
    for tid in args.fail:
        if tid not in graph:
            raise KeyError(f"Scenario '{scenario.name}' has no task '{tid}'")

    logger.info("Running scenario %s: %s", scenario.name, scenario.description)
    report = Scheduler(args.concurrency).run_sync(graph)
    _print_report(graph, report, as_json=args.json)
    return 0 if report.overall_succeeded else 1


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
    )


def _print_report(graph: TaskGraph, report: RunReport, *, as_json: bool) -> None:
    if as_json:
        print(json.dumps(report.to_dict(), indent=2))
        return

    for tid in graph.topo_order():
        outcome = report.outcomes[tid]
        seconds = (outcome.duration_ms or 0.0) / 1000
        match outcome.state:
            case TaskState.SUCCEEDED:
                print(f"OK {tid}, {seconds:.3f}s")
            case TaskState.FAILED:
                print(f"FAIL {tid}, {seconds:.3f}s: {outcome.error}")
            case _:
                print(f"SKIP {tid}")

    print(f"finish order: {' '.join(report.finish_order)}")
    print(f"total: {report.total_duration_ms:.0f} ms")
