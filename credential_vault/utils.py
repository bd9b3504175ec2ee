"""File helpers shared by the key store and the record store."""
import os
import tempfile
import contextlib
from pathlib import Path


def atomic_write(path: Path, data: bytes, mode: int = 0o600) -> None:
    """Replace ``path`` with ``data`` in one step.

    The content is written to a temporary file in the same directory,
    flushed to disk and moved over the target, so readers only ever see
    the old or the new document.

    Raises:
        OSError: If the file cannot be written or replaced.
    """
    fd, tmp = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.chmod(tmp, mode)
        os.replace(tmp, path)
    except OSError:
        with contextlib.suppress(OSError):
            os.unlink(tmp)
        raise
