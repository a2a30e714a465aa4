"""Prepare stage: derive the docs source page from the repository README.

The destination is a pure function of the source bytes and the optional
header, so re-running the stage with unchanged input rewrites an identical
file.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from styledocs.errors import DestinationWriteError, SourceNotFoundError
from styledocs.fs import atomic_write_bytes
from styledocs.logging import get_logger, with_fields

if TYPE_CHECKING:
    from pathlib import Path

__all__ = ["prepare"]

LOGGER = get_logger(__name__)


def prepare(source_path: Path, dest_path: Path, header: str | None = None) -> None:
    """Copy ``source_path`` to ``dest_path``, prepending ``header`` when given.

    The source is read completely before anything is written, so a missing
    source never touches the destination. The destination is replaced
    atomically and its bytes equal ``header + source`` exactly.

    Parameters
    ----------
    source_path : Path
        Document to read.
    dest_path : Path
        Document to (over)write. Missing parent directories are created.
    header : str | None, optional
        Text prepended verbatim (UTF-8 encoded). ``None`` or ``""`` copies the
        source unchanged.

    Raises
    ------
    SourceNotFoundError
        If ``source_path`` does not exist or cannot be read.
    DestinationWriteError
        If ``dest_path`` cannot be written.
    """
    adapter = with_fields(LOGGER, operation="prepare", source=str(source_path))
    try:
        content = source_path.read_bytes()
    except FileNotFoundError as exc:
        raise SourceNotFoundError(source_path) from exc
    except OSError as exc:
        raise SourceNotFoundError(source_path, exc.strerror or type(exc).__name__) from exc

    payload = header.encode("utf-8") + content if header else content
    try:
        atomic_write_bytes(dest_path, payload)
    except OSError as exc:
        raise DestinationWriteError(dest_path, exc.strerror or str(exc)) from exc

    adapter.info(
        "Destination document written",
        extra={
            "destination": str(dest_path),
            "bytes": len(payload),
            "header": bool(header),
        },
    )
