from __future__ import annotations

import os
import pathlib
import subprocess
import tempfile
from typing import List, Union

PathLike = Union[str, os.PathLike]


def run(cmd: List[str], cwd: str | None = None, check: bool = True,
        text: bool = True) -> subprocess.CompletedProcess:
    return subprocess.run(cmd, cwd=cwd, check=check, text=text, capture_output=True)


def bytes_human(n: int) -> str:
    """SI sizes with one decimal: '0 B', '512.0 B', '1.5 kB', '2.0 MB'."""
    if n == 0:
        return "0 B"
    if n < 0:
        return "? B"
    units = ["B", "kB", "MB", "GB", "TB", "PB", "EB"]
    f = float(n)
    i = 0
    while f >= 1000.0 and i < len(units) - 1:
        f /= 1000.0
        i += 1
    return f"{f:.1f} {units[i]}"


def rel_root_from_path(path: str) -> str:
    """'../' repeated enough to climb from the directory holding ``path`` to the first segment.

    ``path`` names a file, so ``site/a/b/c.html`` (four segments) gives ``../../``.
    """
    parts = [p for p in pathlib.PurePosixPath(path.replace(os.sep, "/")).parts if p not in ("", ".")]
    return "../" * max(len(parts) - 2, 0)


def site_rel_root(base_dir: PathLike, path: PathLike) -> str:
    """Relative root for ``path`` counting the output root as a single segment."""
    rel = pathlib.Path(os.path.relpath(path, base_dir)).as_posix()
    return rel_root_from_path("site/" + rel)


def is_skip_write(path: PathLike, logical_time: float) -> bool:
    """True when ``path`` exists and was modified strictly after ``logical_time``."""
    try:
        mtime = os.stat(path).st_mtime
    except FileNotFoundError:
        return False
    return mtime > logical_time


def write_html(path: PathLike, content: str) -> None:
    """Write through a sibling temp file and rename, so readers never see a torn page."""
    directory = os.path.dirname(os.fspath(path)) or "."
    fd, tmp = tempfile.mkstemp(dir=directory, prefix=".tmp-", suffix=".html")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", errors="replace") as f:
            f.write(content)
        os.chmod(tmp, 0o644)
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
        raise
