"""RFC 9457 Problem Details helpers for build failures.

Every failure surfaced by the command line is rendered as a Problem Details
document so operators (and CI log scrapers) see which stage failed and why.

Examples
--------
>>> problem = build_problem_details(
...     ProblemDetailsParams(
...         type="urn:styledocs:problem:source-missing",
...         title="Source document not found",
...         status=404,
...         detail="README.md does not exist",
...         instance="urn:styledocs:stage:prepare",
...         extensions={"path": "README.md"},
...     )
... )
>>> problem["path"]
'README.md'
"""

# pylint: disable=redefined-builtin

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

__all__ = [
    "PROBLEM_TYPE_PREFIX",
    "ExceptionProblemDetailsParams",
    "JsonPrimitive",
    "JsonValue",
    "ProblemDetailsDict",
    "ProblemDetailsParams",
    "build_problem_details",
    "coerce_optional_dict",
    "problem_from_exception",
    "problem_type",
    "render_problem",
]

JsonPrimitive = str | int | float | bool | None
JsonValue = JsonPrimitive | list["JsonValue"] | dict[str, "JsonValue"]

ProblemDetailsDict = dict[str, JsonValue]

PROBLEM_TYPE_PREFIX = "urn:styledocs:problem:"


def problem_type(slug: str) -> str:
    """Return the problem ``type`` URI for ``slug``."""
    return f"{PROBLEM_TYPE_PREFIX}{slug}"


def coerce_optional_dict(
    mapping: Mapping[str, JsonValue] | None,
) -> dict[str, JsonValue] | None:
    """Return ``mapping`` as a ``dict`` when non-empty, otherwise ``None``.

    Parameters
    ----------
    mapping : Mapping[str, JsonValue] | None
        Mapping of extension values.

    Returns
    -------
    dict[str, JsonValue] | None
        Materialised dictionary or ``None`` when ``mapping`` is empty/``None``.
    """
    if mapping is None:
        return None
    materialised = {str(key): value for key, value in mapping.items()}
    if not materialised:
        return None
    return materialised


@dataclass(frozen=True, slots=True)
class ProblemDetailsParams:
    """Core fields required to build a Problem Details payload."""

    type: str
    title: str
    status: int
    detail: str
    instance: str
    extensions: Mapping[str, JsonValue] | None = None


def build_problem_details(params: ProblemDetailsParams) -> ProblemDetailsDict:
    """Build an RFC 9457 Problem Details payload.

    Extension members are merged at the top level of the document, as the RFC
    prescribes.

    Parameters
    ----------
    params : ProblemDetailsParams
        Structured fields describing the Problem Details payload.

    Returns
    -------
    ProblemDetailsDict
        Problem Details payload.
    """
    payload: ProblemDetailsDict = {
        "type": params.type,
        "title": params.title,
        "status": params.status,
        "detail": params.detail,
        "instance": params.instance,
    }
    extensions = coerce_optional_dict(params.extensions)
    if extensions:
        for key, value in extensions.items():
            payload[key] = value
    return payload


@dataclass(frozen=True, slots=True)
class ExceptionProblemDetailsParams:
    """Inputs describing a generic exception converted to Problem Details."""

    base: ProblemDetailsParams
    exception: BaseException
    extensions: Mapping[str, JsonValue] | None = None


def problem_from_exception(params: ExceptionProblemDetailsParams) -> ProblemDetailsDict:
    """Build Problem Details from an exception.

    The exception message becomes ``detail`` and its class name is recorded in
    the ``exception_type`` extension.

    Parameters
    ----------
    params : ExceptionProblemDetailsParams
        Structured context describing the exception and base problem fields.

    Returns
    -------
    ProblemDetailsDict
        Problem Details payload.
    """
    detail = str(params.exception) or params.base.detail
    merged_extensions: dict[str, JsonValue] = {
        "exception_type": type(params.exception).__name__,
    }
    base_extensions = coerce_optional_dict(params.base.extensions)
    if base_extensions:
        merged_extensions.update(base_extensions)
    if params.extensions:
        merged_extensions.update(params.extensions)
    base = replace(params.base, detail=detail, extensions=merged_extensions)
    return build_problem_details(base)


def render_problem(problem: ProblemDetailsDict) -> str:
    """Render Problem Details as a minified JSON string (no trailing newline)."""
    return json.dumps(problem, default=str)
