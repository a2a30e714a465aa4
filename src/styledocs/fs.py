"""Filesystem helpers using pathlib.

Examples
--------
>>> from pathlib import Path
>>> from styledocs.fs import atomic_write_bytes
>>> atomic_write_bytes(Path("/tmp/styledocs-example.md"), b"# Title\\n")
"""

from __future__ import annotations

import tempfile
from pathlib import Path

from styledocs.logging import get_logger

logger = get_logger(__name__)

__all__ = ["atomic_write_bytes", "ensure_dir"]


def ensure_dir(path: Path, *, exist_ok: bool = True) -> Path:
    """Create ``path`` and any missing parents, returning ``path``."""
    path.mkdir(parents=True, exist_ok=exist_ok)
    return path


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Replace ``path`` with ``data`` using a temporary file and rename.

    The temporary file lives in the destination directory so the final rename
    stays on one filesystem; readers see either the old or the new content,
    never a partial write.

    Parameters
    ----------
    path : Path
        Final file path. Parent directories are created if needed.
    data : bytes
        Complete new content of the file.

    Raises
    ------
    OSError
        If the directory cannot be created or the file cannot be written or renamed.
    """
    ensure_dir(path.parent)
    tmp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=str(path.parent),
            prefix=f".{path.name}.",
            delete=False,
        ) as temp_file:
            tmp_path = Path(temp_file.name)
            temp_file.write(data)
            temp_file.flush()
        tmp_path.replace(path)
    except BaseException:
        if tmp_path is not None:
            tmp_path.unlink(missing_ok=True)
            logger.debug("Removed temporary file after failed write", extra={"path": str(tmp_path)})
        raise
