# tests/test_cli.py
from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

from taskweave.cli import run_cli


def _py(code: str) -> str:
    exe = str(Path(sys.executable))
    # This returns a shell command string. JSON will escape it safely.
    return f'"{exe}" -c "{code}"'


def _write_json_config(path: Path, tasks: dict, **settings: object) -> None:
    path.write_text(json.dumps({"tasks": tasks, **settings}), encoding="utf-8")


def _append(log: Path, tid: str) -> str:
    return _py(f"open(r'{log}','a').write('{tid}\\\\n')")


def test_list_prints_one_task_per_line(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cfg = tmp_path / "taskweave.json"
    _write_json_config(
        cfg,
        {
            "b": {"command": _py("raise SystemExit(0)")},
            "a": {"command": _py("raise SystemExit(0)")},
        },
    )

    code = run_cli(["--config", str(cfg), "list"])
    out = capsys.readouterr().out.splitlines()

    assert code == 0
    assert out == ["a", "b"]


def test_graph_prints_adjacency_list(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cfg = tmp_path / "taskweave.json"
    _write_json_config(
        cfg,
        {
            "c": {"command": _py("raise SystemExit(0)"), "deps": ["b", "a"]},
            "b": {"command": _py("raise SystemExit(0)"), "deps": ["a"]},
            "a": {"command": _py("raise SystemExit(0)")},
        },
    )

    code = run_cli(["--config", str(cfg), "graph"])
    out = capsys.readouterr().out.splitlines()

    assert code == 0
    assert out == ["a:", "b: a", "c: a b"]


def test_graph_with_cycle_returns_2(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cfg = tmp_path / "taskweave.json"
    _write_json_config(
        cfg,
        {
            "a": {"command": _py("raise SystemExit(0)"), "deps": ["b"]},
            "b": {"command": _py("raise SystemExit(0)"), "deps": ["a"]},
        },
    )

    code = run_cli(["--config", str(cfg), "graph"])

    assert code == 2
    assert "Cycle detected" in capsys.readouterr().err


def test_run_all_executes_and_reports(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cfg = tmp_path / "taskweave.json"
    log = tmp_path / "log.txt"

    _write_json_config(
        cfg,
        {
            "a": {"command": _append(log, "a")},
            "b": {"command": _append(log, "b"), "deps": ["a"]},
        },
    )

    code = run_cli(["--config", str(cfg), "run"])
    captured = capsys.readouterr()

    assert code == 0
    assert log.read_text(encoding="utf-8").splitlines() == ["a", "b"]
    assert "OK a" in captured.out
    assert "OK b" in captured.out
    assert "finish order: a b" in captured.out


def test_run_target_executes_only_subgraph(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cfg = tmp_path / "taskweave.json"
    log = tmp_path / "log.txt"

    _write_json_config(
        cfg,
        {
            "a": {"command": _append(log, "a")},
            "b": {"command": _append(log, "b"), "deps": ["a"]},
            "c": {"command": _append(log, "c")},
            "d": {"command": _append(log, "d"), "deps": ["b"]},
        },
    )

    code = run_cli(["--config", str(cfg), "run", "d"])
    _ = capsys.readouterr()

    assert code == 0
    assert log.read_text(encoding="utf-8").splitlines() == ["a", "b", "d"]


def test_run_failure_returns_1_and_skips_dependents(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cfg = tmp_path / "taskweave.json"
    _write_json_config(
        cfg,
        {
            "fail": {"command": _py("raise SystemExit(5)")},
            "after": {"command": _py("raise SystemExit(0)"), "deps": ["fail"]},
        },
    )

    code = run_cli(["--config", str(cfg), "run"])
    out = capsys.readouterr().out

    assert code == 1
    assert "FAIL fail" in out
    assert "SKIP after" in out


def test_run_fail_fast_skips_independent_tasks(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cfg = tmp_path / "taskweave.json"
    log = tmp_path / "log.txt"
    _write_json_config(
        cfg,
        {
            "a_fail": {"command": _py("raise SystemExit(3)")},
            "b_ind": {"command": _append(log, "b_ind")},
        },
        concurrency_limit=1,
    )

    code = run_cli(["--config", str(cfg), "run", "--fail-fast"])
    out = capsys.readouterr().out

    assert code == 1
    assert "SKIP b_ind" in out
    assert not log.exists()


def test_run_json_output(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    cfg = tmp_path / "taskweave.json"
    _write_json_config(cfg, {"a": {"command": _py("print('hi')")}})

    code = run_cli(["--config", str(cfg), "run", "--json"])
    data = json.loads(capsys.readouterr().out)

    assert code == 0
    assert data["overall_succeeded"] is True
    assert data["outcomes"]["a"]["result"]["stdout"].strip() == "hi"


def test_invalid_config_path_returns_2(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    missing = tmp_path / "missing.json"

    code = run_cli(["--config", str(missing), "list"])
    captured = capsys.readouterr()

    assert code == 2
    assert captured.err != ""


def test_unknown_target_returns_2(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cfg = tmp_path / "taskweave.json"
    _write_json_config(cfg, {"a": {"command": _py("raise SystemExit(0)")}})

    code = run_cli(["--config", str(cfg), "run", "nope"])
    captured = capsys.readouterr()

    assert code == 2
    assert captured.err != ""


def test_demo_runs_scenario(capsys: pytest.CaptureFixture[str]) -> None:
    code = run_cli(["demo", "integration", "--scale", "0.01"])
    out = capsys.readouterr().out

    assert code == 0
    assert "OK recommendations" in out


def test_demo_with_injected_failure_returns_1(capsys: pytest.CaptureFixture[str]) -> None:
    code = run_cli(["demo", "order", "--scale", "0.01", "--fail", "costs"])
    out = capsys.readouterr().out

    assert code == 1
    assert "FAIL costs" in out
    assert "SKIP invoice" in out
    assert "OK stock" in out


def test_demo_unknown_fail_target_returns_2(capsys: pytest.CaptureFixture[str]) -> None:
    code = run_cli(["demo", "queue", "--scale", "0.01", "--fail", "nope"])

    assert code == 2
    assert capsys.readouterr().err != ""


def test_demo_fault_rate_one_fails_every_step(capsys: pytest.CaptureFixture[str]) -> None:
    code = run_cli(["demo", "delivery", "--scale", "0.01", "--fault-rate", "1", "--seed", "3"])
    out = capsys.readouterr().out

    assert code == 1
    for package in ("package-1", "package-2", "package-3", "package-4"):
        assert f"FAIL {package}" in out


def test_demo_fault_rate_out_of_range_is_rejected() -> None:
    with pytest.raises(SystemExit) as e:
        run_cli(["demo", "delivery", "--fault-rate", "2"])

    assert e.value.code == 2
