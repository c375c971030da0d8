from __future__ import annotations

import glob
import logging
import os
import re
import shutil
import time
from pathlib import Path
from typing import List, Optional

from .command import CommandRunner
from .shell import PathLike

logger = logging.getLogger(__name__)

PROC_MOUNTS = "/proc/self/mounts"

_OCTAL_ESCAPE = re.compile(r"\\([0-7]{3})")
_NATURAL_SPLIT = re.compile(r"(\d+)")


class FilesystemError(OSError):
    pass


def _unescape_mount_field(field: str) -> str:
    return _OCTAL_ESCAPE.sub(lambda m: chr(int(m.group(1), 8)), field)


def read_mount_points(mounts_file: str = PROC_MOUNTS) -> List[str]:
    try:
        text = Path(mounts_file).read_text(encoding="utf-8")
    except OSError:
        return []
    points = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) >= 2:
            points.append(_unescape_mount_field(parts[1]))
    return points


def natural_key(s: str) -> list:
    return [int(t) if t.isdigit() else t for t in _NATURAL_SPLIT.split(s)]


class FilesystemOps:
    """Filesystem primitives used by the phases.

    ``copy_tree`` goes through the command runner because ``cp -a`` is the
    only thing that keeps ownership, device nodes and xattrs of a rootfs.
    Everything else is plain Python.
    """

    def __init__(self, runner: CommandRunner, *, mounts_file: str = PROC_MOUNTS) -> None:
        self.runner = runner
        self.mounts_file = mounts_file

    def mkdir_all(self, path: PathLike) -> Path:
        p = Path(path)
        p.mkdir(parents=True, exist_ok=True)
        return p

    def exists(self, path: PathLike) -> bool:
        return os.path.lexists(path)

    def copy_file(self, src: PathLike, dst: PathLike) -> None:
        if not os.path.isfile(src):
            raise FileNotFoundError(f"source file missing: {src}")
        Path(dst).parent.mkdir(parents=True, exist_ok=True)
        shutil.copy(src, dst)

    def copy_tree(self, src: PathLike, dst: PathLike) -> None:
        if not os.path.isdir(src):
            raise FileNotFoundError(f"source directory missing: {src}")
        self.runner.run(["cp", "-a", os.fspath(src), os.fspath(dst)], check=True)

    def mounts_under(self, path: PathLike) -> List[str]:
        # The kernel lists mount points by their resolved path.
        root = os.path.realpath(path)
        prefix = root.rstrip("/") + "/"
        points = (os.path.realpath(m) for m in read_mount_points(self.mounts_file))
        return [m for m in points if m == root or m.startswith(prefix)]

    def remove_all(self, path: PathLike) -> None:
        """Remove ``path`` recursively; a missing path is not an error.

        Refuses to touch a tree that still has something mounted inside it.
        """

        p = Path(path)
        if not os.path.lexists(p):
            return

        busy = self.mounts_under(p)
        if busy:
            raise FilesystemError(f"refusing to remove {p}: still mounted: {', '.join(busy)}")

        if p.is_dir() and not p.is_symlink():
            shutil.rmtree(p)
        else:
            p.unlink()

    def remove_all_with_retries(self, path: PathLike, *, attempts: int = 3, delay: float = 1.0) -> bool:
        for attempt in range(1, attempts + 1):
            try:
                self.remove_all(path)
                return True
            except OSError as e:
                logger.warning("Failed to remove %s (attempt %d/%d): %s", path, attempt, attempts, e)
                if attempt < attempts:
                    time.sleep(delay)
        return False

    def remove_file(self, path: PathLike) -> None:
        Path(path).unlink(missing_ok=True)

    def symlink(self, target: str, link_path: PathLike) -> None:
        p = Path(link_path)
        p.parent.mkdir(parents=True, exist_ok=True)
        if os.path.lexists(p):
            p.unlink()
        os.symlink(target, p)

    def chmod(self, mode: int, path: PathLike) -> None:
        os.chmod(path, mode)

    def make_executable(self, path: PathLike) -> None:
        st = os.stat(path)
        os.chmod(path, st.st_mode | 0o111)

    def write_file(self, path: PathLike, content: str) -> None:
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(content, encoding="utf-8")

    def append_file(self, path: PathLike, content: str) -> None:
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        with p.open("a", encoding="utf-8") as f:
            f.write(content)

    def read_file(self, path: PathLike) -> str:
        return Path(path).read_text(encoding="utf-8")

    def find_first_match(self, pattern: PathLike) -> Optional[Path]:
        """Return the highest-versioned path matching a glob, or None."""

        matches = glob.glob(os.fspath(pattern))
        if not matches:
            return None
        matches.sort(key=natural_key, reverse=True)
        if len(matches) > 1:
            logger.info("Multiple matches for %s, using %s", pattern, matches[0])
        return Path(matches[0])
