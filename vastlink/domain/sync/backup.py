"""
Backup copies of local files taken before an overwrite
"""
import shutil
from pathlib import Path

from ...core.exceptions import SyncIOError
from ...core.logging import get_logger

logger = get_logger(__name__)


def backup_name(rel_path: str, timestamp_ms: int) -> str:
    """``a/b/notes.md`` at 1700000000000 -> ``a_b_notes.md_1700000000000``"""
    flattened = rel_path.replace("\\", "_").replace("/", "_")
    return f"{flattened}_{timestamp_ms}"


def backup_local_file(
    backup_root: Path,
    folder: str,
    rel_path: str,
    source: Path,
    timestamp_ms: int,
) -> Path:
    """
    Copy ``source`` into ``<backup_root>/<folder>/``.

    Backups are append-only: an existing name is never overwritten.
    """
    target_dir = backup_root / folder
    target = target_dir / backup_name(rel_path, timestamp_ms)
    while target.exists():
        timestamp_ms += 1
        target = target_dir / backup_name(rel_path, timestamp_ms)

    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)
    except OSError as e:
        raise SyncIOError(str(source), f"backup failed: {e}") from e

    logger.info("Backed up %s/%s to %s", folder, rel_path, target)
    return target
