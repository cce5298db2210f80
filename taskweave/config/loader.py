import json
import tomllib
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml

from .types import ConfigError, ProjectConfig, TaskConfig, UnsupportedConfigFormatError

PROJECT_KEYS = {"tasks", "concurrency_limit", "on_failure"}
TASK_KEYS = {"command", "deps", "env", "working_dir", "timeout_ms"}
FAILURE_POLICIES = {"stop_dependents", "stop_all"}


def load_project(path: str | Path) -> ProjectConfig:
    pure_path = Path(path).expanduser().resolve()

    if not pure_path.exists():
        raise ConfigError(f"Config file not found: {pure_path}")

    if not pure_path.is_file():
        raise ConfigError(f"Config path is not a file: {pure_path}")

    fmt = _detect_format(pure_path)
    raw_file = _parse_file(pure_path, fmt)
    return _build_project_config(raw_file)


def _detect_format(path: Path) -> str:
    match path.suffix:
        case ".yaml" | ".yml":
            return "yaml"
        case ".toml":
            return "toml"
        case ".json":
            return "json"
        case other:
            raise UnsupportedConfigFormatError(
                f"Non supported file extension: {other}\n Expected format: .yml/.yaml, .toml, .json"
            )


_PARSERS: dict[str, tuple[Callable[[str], Any], type[Exception]]] = {
    "yaml": (yaml.safe_load, yaml.YAMLError),
    "toml": (tomllib.loads, tomllib.TOMLDecodeError),
    "json": (json.loads, json.JSONDecodeError),
}


def _parse_file(path: Path, fmt: str) -> Mapping[str, Any]:
    parse, parse_error = _PARSERS[fmt]
    try:
        raw_file = parse(path.read_text(encoding="utf-8"))
    except parse_error as exc:
        raise ConfigError(f"{path}: invalid {fmt.upper()}") from exc

    if not isinstance(raw_file, Mapping):
        raise ConfigError(
            f"{path}: {fmt.upper()} parsed but the top-level value is not an object: {type(raw_file)}"
        )

    return raw_file


def _build_project_config(raw: Mapping[str, Any]) -> ProjectConfig:
    tasks: dict[str, TaskConfig] = {}

    for key in raw.keys():
        if key not in PROJECT_KEYS:
            raise ConfigError(f"Unknown top-level field: {key}")

    if "tasks" not in raw:
        raise ConfigError("Missing 'tasks' field")

    if not isinstance(raw["tasks"], Mapping):
        raise ConfigError(f"'tasks' must be a mapping, got {type(raw['tasks'])}")

    if len(raw["tasks"]) < 1:
        raise ConfigError("There must be at least one task in the config file")

    for task_id, fields in raw["tasks"].items():
        if not isinstance(task_id, str):
            raise ConfigError(f"Task id must be a string, got {type(task_id)}")

        if not isinstance(fields, Mapping):
            raise ConfigError(f"{task_id} must be a mapping")

        task_id_norm = task_id.strip()

        if len(task_id_norm) < 1:
            raise ConfigError("A task id can't be empty")

        if task_id_norm in tasks:
            raise ConfigError(f"Duplicate task id after normalization: {task_id_norm}")

        tasks[task_id_norm] = _build_task_config(task_id_norm, fields)

    # Unknown dependencies are reported by TaskGraph.build.
    return ProjectConfig(
        tasks=tasks,
        concurrency_limit=_concurrency_limit(raw.get("concurrency_limit")),
        on_failure=_on_failure(raw.get("on_failure", "stop_dependents")),
    )


def _concurrency_limit(value: Any) -> int | None:
    if value is None:
        return None

    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"'concurrency_limit' must be a positive integer, got {value!r}")

    return value


def _on_failure(value: Any) -> str:
    if not isinstance(value, str) or value.strip() not in FAILURE_POLICIES:
        raise ConfigError(
            f"'on_failure' must be one of {sorted(FAILURE_POLICIES)}, got {value!r}"
        )

    return value.strip()


def _build_task_config(task_id: str, fields: Mapping[str, Any]) -> TaskConfig:
    for field in fields.keys():
        if field not in TASK_KEYS:
            raise ConfigError(f"{task_id}: Can't process: {field}")

    command = _command(task_id, fields)
    deps = _deps(task_id, fields.get("deps", []))
    env = _env(task_id, fields.get("env", {}))
    working_dir = None
    timeout_ms = None

    if "working_dir" in fields:
        if not isinstance(fields["working_dir"], str):
            raise ConfigError(f"{task_id}: The working_dir should be a string")

        if len(fields["working_dir"].strip()) < 1:
            raise ConfigError(f"{task_id}: Please provide a string or remove this field")

        working_dir = fields["working_dir"].strip()

    if "timeout_ms" in fields:
        value = fields["timeout_ms"]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ConfigError(f"{task_id}: timeout_ms must be a positive number")

        timeout_ms = float(value)

    return TaskConfig(task_id, command, deps, env, working_dir, timeout_ms)


def _command(task_id: str, fields: Mapping[str, Any]) -> str:
    if "command" not in fields:
        raise ConfigError(f"{task_id}: missing 'command'")

    if not isinstance(fields["command"], str):
        raise ConfigError(f"{task_id}: The command should be a string")

    if len(fields["command"].strip()) < 1:
        raise ConfigError(f"{task_id}: Command missing")

    return fields["command"].strip()


def _deps(task_id: str, raw_deps: Any) -> list[str]:
    deps: list[str] = []
    seen: set[str] = set()

    if not isinstance(raw_deps, list):
        raise ConfigError(f"{task_id}: Dependencies should be in a list.")

    for item in raw_deps:
        if not isinstance(item, str):
            raise ConfigError(f"{task_id}: {item} should be a string in the dependency list")

        dep = item.strip()

        if len(dep) < 1:
            raise ConfigError(f"{task_id}: A dependency is empty")

        if dep == task_id:
            raise ConfigError(f"{task_id}: A task cannot be self dependent")

        # Duplicate dependencies are ignored
        if dep in seen:
            continue

        deps.append(dep)
        seen.add(dep)

    return deps


def _env(task_id: str, raw_env: Any) -> dict[str, str]:
    env: dict[str, str] = {}

    if not isinstance(raw_env, Mapping):
        raise ConfigError(f"{task_id}: Env should be a mapping")

    for key, item in raw_env.items():
        if not isinstance(key, str):
            raise ConfigError(f"{task_id}: {key} should be a string")

        if len(key.strip()) < 1:
            raise ConfigError(f"{task_id}: A key can't be empty")

        if not isinstance(item, str):
            raise ConfigError(f"{task_id}: {item} should be a string")

        env[key.strip()] = item

    return env
