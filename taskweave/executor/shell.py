from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from taskweave.config import ProjectConfig, TaskConfig
from taskweave.graph import Task

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    stdout: str
    stderr: str

    def to_dict(self) -> dict[str, Any]:
        return {"returncode": self.returncode, "stdout": self.stdout, "stderr": self.stderr}


class CommandFailedError(Exception):
    def __init__(self, command: str, result: CommandResult):
        super().__init__(f"Command exited with code {result.returncode}: {command}")
        self.command = command
        self.result = result


@dataclass(frozen=True)
class ShellCommand:
    """Executor running ``command`` through the system shell.

    Dependency results are not passed to the command. If the awaiting task is
    cancelled (for example on timeout) the child process is killed.
    """

    command: str
    env: Mapping[str, str] = field(default_factory=dict)
    working_dir: str | None = None

    async def __call__(self, inputs: Mapping[str, Any]) -> CommandResult:
        logger.debug("Spawning: %s", self.command)
        proc = await asyncio.create_subprocess_shell(
            self.command,
            cwd=self.working_dir or None,
            env={**os.environ, **self.env},
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            raise

        assert proc.returncode is not None
        result = CommandResult(
            proc.returncode,
            stdout.decode(errors="replace"),
            stderr.decode(errors="replace"),
        )
        if result.returncode != 0:
            raise CommandFailedError(self.command, result)
        return result


def shell_task(config: TaskConfig) -> Task:
    return Task(
        config.id,
        ShellCommand(config.command, dict(config.env), config.working_dir),
        frozenset(config.deps),
        config.timeout_ms,
    )


def tasks_from_project(project: ProjectConfig) -> list[Task]:
    return [shell_task(task) for task in project]
