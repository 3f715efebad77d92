from __future__ import annotations

"""
Atomic JSON snapshot persistence for the council state.

The snapshot holds three independent sequences:

    {"proposals": [...], "votes": [...], "audit": [...]}

Save path:
- write a journal marker (best-effort) so an interrupted save is detectable
- rotate backups (.bak1, .bak2, ...)
- atomic write of the new primary (tmp file + fsync + os.replace)
- clear the journal

Load path falls back primary -> bak1 -> bak2 -> ... and returns None when
nothing readable exists.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

log = logging.getLogger(__name__)

JsonDict = Dict[str, Any]
PathLike = Union[str, Path]


def _fsync_dir(dir_path: Path) -> None:
    try:
        fd = os.open(str(dir_path), os.O_DIRECTORY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
    except (OSError, AttributeError):
        # not supported on every platform
        pass


def _json_dumps(obj: JsonDict) -> bytes:
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, indent=2).encode("utf-8")


def atomic_write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=path.name + ".", suffix=".tmp", dir=str(path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

        os.replace(str(tmp_path), str(path))
        _fsync_dir(path.parent)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def read_json(path: Path) -> Optional[JsonDict]:
    if not path.exists():
        return None
    try:
        obj = json.loads(path.read_bytes().decode("utf-8"))
    except (OSError, ValueError):
        log.warning("Unreadable state snapshot at %s", path)
        return None
    return obj if isinstance(obj, dict) else None


class AtomicStateStore:
    def __init__(self, path: PathLike = "council_state.json", *, keep_backups: int = 2) -> None:
        self.path = Path(path)
        self.keep_backups = int(keep_backups)

    @property
    def journal_path(self) -> Path:
        return self.path.with_suffix(self.path.suffix + ".journal")

    def backup_path(self, n: int) -> Path:
        return self.path.with_suffix(self.path.suffix + f".bak{n}")

    def exists(self) -> bool:
        return self.path.exists()

    def interrupted(self) -> bool:
        """True when a journal marker from an unfinished save is present."""
        return self.journal_path.exists()

    def load(self) -> Optional[JsonDict]:
        if self.interrupted():
            log.warning("Previous save of %s did not complete; trying backups if needed", self.path)

        candidates = [self.path] + [self.backup_path(i) for i in range(1, max(1, self.keep_backups) + 1)]
        for p in candidates:
            obj = read_json(p)
            if obj is not None:
                if p != self.path:
                    log.warning("Loaded council state from backup %s", p)
                return obj
        return None

    def save(self, state: JsonDict) -> None:
        """
        Persist ``state``. Raises OSError / TypeError when the snapshot cannot
        be written; the caller decides what a failed save means.
        """
        data = _json_dumps(state)
        self.path.parent.mkdir(parents=True, exist_ok=True)

        try:
            atomic_write_bytes(self.journal_path, b"1")
        except OSError:
            log.debug("Could not write journal marker for %s", self.path)

        self._rotate_backups()
        atomic_write_bytes(self.path, data)

        if self.journal_path.exists():
            self.journal_path.unlink()

    def _rotate_backups(self) -> None:
        if self.keep_backups <= 0:
            return

        for i in range(self.keep_backups, 1, -1):
            src = self.backup_path(i - 1)
            if src.exists():
                os.replace(str(src), str(self.backup_path(i)))

        # copy, not move: the primary must stay readable until the new one lands
        if self.path.exists():
            atomic_write_bytes(self.backup_path(1), self.path.read_bytes())
