"""
Enumerate both sides of a sync folder
"""
import os
from pathlib import Path
from typing import Dict

from ...core.interfaces import CommandExecutor
from ...core.logging import get_logger
from ...core.shell import RemotePath, render
from .models import FileRecord

logger = get_logger(__name__)

# Partial uploads and downloads live under this suffix until moved into place
TRANSFER_TMP_SUFFIX = ".vastlink-tmp"

# size, mtime, path relative to the start point; NUL-terminated
FIND_FORMAT = r"%s\t%T@\t%P\0"


def scan_local(root: Path) -> Dict[str, FileRecord]:
    """All regular files under ``root``, keyed by POSIX relative path"""
    files: Dict[str, FileRecord] = {}
    if not root.is_dir():
        return files

    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for filename in sorted(filenames):
            if filename.endswith(TRANSFER_TMP_SUFFIX):
                continue
            full = Path(dirpath) / filename
            if full.is_symlink() or not full.is_file():
                continue
            stat = full.stat()
            rel = full.relative_to(root).as_posix()
            files[rel] = FileRecord(path=rel, size=stat.st_size, mtime=stat.st_mtime)
    return files


def parse_find_output(output: str) -> Dict[str, FileRecord]:
    files: Dict[str, FileRecord] = {}
    for entry in output.split("\0"):
        entry = entry.lstrip("\n")
        if not entry:
            continue
        try:
            size, mtime, rel = entry.split("\t", 2)
            record = FileRecord(path=rel, size=int(size), mtime=float(mtime))
        except ValueError:
            logger.debug("Skipping unparseable find entry %r", entry)
            continue
        if not rel or rel.endswith(TRANSFER_TMP_SUFFIX):
            continue
        files[rel] = record
    return files


def scan_remote(executor: CommandExecutor, root: RemotePath) -> Dict[str, FileRecord]:
    """
    All regular files under the remote ``root`` in one round trip.

    A missing root is an empty folder, not an error.
    """
    output = executor.execute(
        render(
            "if [ -d {root} ]; then find {root} -type f -printf {fmt}; fi",
            root=root,
            fmt=FIND_FORMAT,
        )
    )
    return parse_find_output(output)
