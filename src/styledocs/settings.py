"""Typed runtime settings for the documentation build.

Settings are loaded from ``STYLEDOCS_*`` environment variables through
``pydantic_settings.BaseSettings``. They cover the operational knobs of a run
(log level, link-check transport options, deploy pushing, metrics export) and
never the site configuration itself, which is a literal in
:mod:`styledocs.project`. Validation errors are surfaced as
:class:`SettingsError` exceptions carrying RFC 9457 Problem Details payloads.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from fnmatch import fnmatch
from pathlib import Path
from typing import Annotated, Final, TypeVar

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from styledocs.problem_details import (
    JsonValue,
    ProblemDetailsDict,
    ProblemDetailsParams,
    build_problem_details,
    problem_type,
)

__all__: Final[list[str]] = [
    "DEFAULT_USER_AGENT",
    "DocsRuntimeSettings",
    "SettingsError",
    "get_runtime_settings",
    "load_settings",
    "reset_runtime_settings",
]

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)


class SettingsError(RuntimeError):
    """Raised when runtime settings fail validation."""

    def __init__(
        self,
        message: str,
        *,
        problem: ProblemDetailsDict,
        errors: Sequence[dict[str, JsonValue]],
    ) -> None:
        super().__init__(message)
        self.problem = problem
        self.errors: tuple[dict[str, JsonValue], ...] = tuple(errors)


class DocsRuntimeSettings(BaseSettings):
    """Operational configuration for a documentation build run."""

    model_config = SettingsConfigDict(
        env_prefix="STYLEDOCS_", case_sensitive=False, extra="ignore"
    )

    log_level: str = Field(
        default="INFO",
        description="Threshold for the JSON log handler installed by the CLI.",
    )
    linkcheck_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Seconds to wait for each external link before treating it as unreachable.",
    )
    linkcheck_user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="User-Agent header sent with link-check requests.",
    )
    deploy_push: bool = Field(
        default=True,
        description="Push the deploy commit to the remote; when false only the local branch is updated.",
    )
    metrics_textfile: Path | None = Field(
        default=None,
        description="Write Prometheus metrics of the run to this textfile-collector path.",
    )
    exec_allowlist: Annotated[tuple[str, ...], NoDecode] = Field(
        default=("git",),
        description="Glob patterns for executables the process runner may spawn.",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: object) -> str:
        level = str(value).strip().upper()
        if level not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            message = f"log_level must be a standard logging level name, got {value!r}"
            raise ValueError(message)
        return level

    @field_validator("exec_allowlist", mode="before")
    @classmethod
    def _normalise_allowlist(cls, value: object) -> tuple[str, ...]:
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(",") if part.strip())
        if isinstance(value, (list, tuple, set)):
            return tuple(str(part).strip() for part in value if str(part).strip())
        message = "exec_allowlist must be a comma-separated string or sequence"
        raise ValueError(message)

    def is_allowed(self, executable: Path) -> bool:
        """Return ``True`` when ``executable`` matches the allow list.

        Parameters
        ----------
        executable : Path
            Executable path to evaluate.

        Returns
        -------
        bool
            ``True`` when ``executable`` is permitted.
        """
        for pattern in self.exec_allowlist:
            if Path(pattern).is_absolute() and str(executable) == pattern:
                return True
            if fnmatch(executable.name, pattern):
                return True
        return False


_SETTINGS_CACHE: dict[str, DocsRuntimeSettings] = {}

SettingsT = TypeVar("SettingsT", bound=BaseSettings)


def load_settings(
    settings_factory: Callable[[], SettingsT] | type[SettingsT],
) -> SettingsT:
    """Instantiate settings via ``settings_factory`` with structured error handling.

    Parameters
    ----------
    settings_factory : Callable[[], SettingsT] | type[SettingsT]
        Zero-argument callable that returns a ``BaseSettings`` instance.

    Returns
    -------
    SettingsT
        Validated settings instance.

    Raises
    ------
    SettingsError
        Raised when validation fails; the errors are converted to Problem Details.
    """
    try:
        return settings_factory()
    except ValidationError as exc:
        settings_name = getattr(settings_factory, "__name__", type(settings_factory).__name__)
        error_dicts = tuple(_as_error_dict(err) for err in exc.errors())
        problem = build_problem_details(
            ProblemDetailsParams(
                type=problem_type("settings-invalid"),
                title="Invalid runtime settings",
                status=500,
                detail="Failed to load documentation build settings",
                instance=f"urn:styledocs:settings:{settings_name}:invalid",
                extensions={"errors": list(error_dicts), "settings_class": str(settings_name)},
            )
        )
        message = "Failed to load documentation build settings"
        raise SettingsError(message, problem=problem, errors=error_dicts) from exc


def get_runtime_settings() -> DocsRuntimeSettings:
    """Return the cached settings, loading them from the environment on first use."""
    cached = _SETTINGS_CACHE.get("default")
    if cached is None:
        cached = load_settings(DocsRuntimeSettings)
        _SETTINGS_CACHE["default"] = cached
    return cached


def reset_runtime_settings() -> None:
    """Drop cached settings so the next access re-reads the environment."""
    _SETTINGS_CACHE.clear()


def _as_error_dict(error: object) -> dict[str, JsonValue]:
    if isinstance(error, Mapping):
        return {str(key): _to_jsonable(value) for key, value in error.items()}
    return {"detail": _to_jsonable(error)}


def _to_jsonable(value: object) -> JsonValue:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, Mapping):
        return {str(key): _to_jsonable(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_to_jsonable(item) for item in value]
    if isinstance(value, Path):
        return value.as_posix()
    return repr(value)
