"""Subprocess execution with an executable allow-list.

Every external command the build runs (only ``git`` today) goes through
:class:`ProcessRunner`, which resolves the executable against the allow-list in
:class:`~styledocs.settings.DocsRuntimeSettings`, runs it with a sanitised
environment and returns a structured :class:`ToolRunResult`.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from styledocs.logging import LoggerAdapter, get_logger
from styledocs.problem_details import (
    ProblemDetailsDict,
    ProblemDetailsParams,
    build_problem_details,
    problem_type,
)
from styledocs.settings import get_runtime_settings

if TYPE_CHECKING:
    from styledocs.settings import DocsRuntimeSettings

__all__ = [
    "ProcessRunner",
    "SanitisedEnvironment",
    "ToolExecutionError",
    "ToolRunResult",
]

Command = Sequence[str]


@dataclass(slots=True, frozen=True)
class ToolRunResult:
    """Structured result from invoking a subprocess."""

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    duration_seconds: float


class ToolExecutionError(RuntimeError):
    """Raised when a subprocess cannot run or exits unsuccessfully.

    Parameters
    ----------
    message : str
        Human-readable error message.
    command : Sequence[str]
        Command that failed.
    returncode : int | None, optional
        Process exit code if available.
    streams : tuple[str, str] | None, optional
        ``(stdout, stderr)`` tuple if available.
    problem : ProblemDetailsDict | None, optional
        RFC 9457 Problem Details payload.
    """

    def __init__(
        self,
        message: str,
        *,
        command: Sequence[str],
        returncode: int | None = None,
        streams: tuple[str, str] | None = None,
        problem: ProblemDetailsDict | None = None,
    ) -> None:
        super().__init__(message)
        self.command: tuple[str, ...] = tuple(command)
        self.returncode = returncode
        self.stdout, self.stderr = streams if streams is not None else ("", "")
        self.problem = problem


def _tool_problem(
    slug: str, title: str, command: Command, detail: str, status: int = 500
) -> ProblemDetailsDict:
    tool_name = Path(command[0]).name if command else "<unknown>"
    return build_problem_details(
        ProblemDetailsParams(
            type=problem_type(slug),
            title=title,
            status=status,
            detail=detail,
            instance=f"urn:styledocs:tool:{tool_name}:{slug}",
            extensions={"command": [str(part) for part in command]},
        )
    )


@dataclass(slots=True, frozen=True)
class SanitisedEnvironment:
    """Environment policy that keeps baseline variables and applies overrides."""

    allowed_keys: frozenset[str] = frozenset(
        {
            "HOME",
            "PATH",
            "LANG",
            "LC_ALL",
            "LC_CTYPE",
            "LC_MESSAGES",
            "TZ",
            "SSH_AUTH_SOCK",
        }
    )

    def build(self, overrides: Mapping[str, str] | None) -> dict[str, str]:
        """Return the environment for a child process."""
        baseline = {
            key: value
            for key, value in os.environ.items()
            if key in self.allowed_keys or key.startswith(("GIT_", "CI"))
        }
        if overrides:
            baseline.update(overrides)
        return {key: str(value) for key, value in baseline.items()}


@dataclass(slots=True)
class ProcessRunner:
    """Execute allow-listed executables with a sanitised environment."""

    settings_loader: Callable[[], DocsRuntimeSettings] = get_runtime_settings
    environment: SanitisedEnvironment = field(default_factory=SanitisedEnvironment)
    logger: LoggerAdapter = field(default_factory=lambda: get_logger(__name__))

    def resolve(self, executable: str, command: Command) -> Path:
        """Resolve ``executable`` to an absolute, allow-listed path.

        Raises
        ------
        ToolExecutionError
            If the executable cannot be found or is not allow-listed.
        """
        candidate = Path(executable)
        if not candidate.is_absolute():
            resolved = shutil.which(executable)
            if resolved is None:
                detail = f"Executable '{executable}' could not be resolved to an absolute path"
                problem = _tool_problem("tool-missing", "Executable not found", command, detail)
                raise ToolExecutionError(detail, command=command, problem=problem)
            candidate = Path(resolved)

        settings = self.settings_loader()
        if not settings.is_allowed(candidate):
            message = f"Executable '{candidate}' is not permitted by STYLEDOCS_EXEC_ALLOWLIST"
            problem = _tool_problem(
                "tool-exec-disallowed", "Executable not allowed", command, message, status=403
            )
            self.logger.warning(
                message,
                extra={"executable": candidate.as_posix(), "command": list(command)},
            )
            raise ToolExecutionError(message, command=command, problem=problem)
        return candidate

    def run(
        self,
        command: Command,
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        check: bool = False,
    ) -> ToolRunResult:
        """Execute ``command`` under the configured policies.

        Parameters
        ----------
        command : Sequence[str]
            Command to execute.
        cwd : Path | None, optional
            Working directory.
        env : Mapping[str, str] | None, optional
            Environment overrides.
        timeout : float | None, optional
            Timeout in seconds.
        check : bool, optional
            Raise :class:`ToolExecutionError` on a non-zero exit status.

        Returns
        -------
        ToolRunResult
            Execution result.
        """
        if not command:
            message = "Command must contain at least one argument"
            raise ToolExecutionError(message, command=[])

        executable = self.resolve(command[0], command)
        final_command = (str(executable), *command[1:])
        start = time.monotonic()
        try:
            completed = subprocess.run(  # noqa: S603 - executable is allow-listed
                final_command,
                cwd=str(cwd) if cwd else None,
                env=self.environment.build(env),
                text=True,
                capture_output=True,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            detail = f"Command '{command[0]}' timed out after {timeout} seconds"
            problem = _tool_problem(
                "tool-timeout", "Tool execution timed out", command, detail, status=504
            )
            message = "Subprocess timed out"
            raise ToolExecutionError(message, command=command, problem=problem) from exc

        duration = time.monotonic() - start
        result = ToolRunResult(
            command=final_command,
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
            duration_seconds=duration,
        )
        self.logger.debug(
            "Subprocess finished",
            extra={
                "operation": "subprocess",
                "command": list(final_command),
                "returncode": completed.returncode,
                "duration_ms": duration * 1000.0,
            },
        )

        if check and completed.returncode != 0:
            detail = completed.stderr.strip() or "Unknown failure"
            problem = _tool_problem(
                "tool-failure", "Tool returned a non-zero exit code", command, detail
            )
            message = "Subprocess returned a non-zero exit status"
            raise ToolExecutionError(
                message,
                command=command,
                returncode=completed.returncode,
                streams=(completed.stdout, completed.stderr),
                problem=problem,
            )
        return result
