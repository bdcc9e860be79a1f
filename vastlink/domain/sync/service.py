"""
Bidirectional folder sync over the command channel
"""
import time
from pathlib import PurePosixPath
from typing import Any, Callable, Dict, Optional

from ...core.constants import CONFLICT_SUFFIX
from ...core.exceptions import CommandError, ConnectionError
from ...core.interfaces import CommandExecutor
from ...core.logging import get_logger
from ...core.utils import utc_now_iso
from ...infrastructure.state.sync_store import SyncStateStore
from .backup import backup_local_file
from .models import (
    FileRecord,
    Resolution,
    SyncConfig,
    SyncConflict,
    SyncErrorRecord,
    SyncFolder,
    SyncReport,
)
from .scanner import scan_local, scan_remote
from .transfer import download_file, local_sha256, remote_sha256, upload_file

logger = get_logger(__name__)


def resolve_conflict(local: FileRecord, remote: FileRecord, policy: str) -> Resolution:
    """Which side wins; ``newest`` breaks an exact mtime tie in favour of local"""
    if policy == "local-wins":
        return "upload"
    if policy == "remote-wins":
        return "download"
    if policy == "keep-both":
        return "keep-both"
    return "upload" if local.mtime >= remote.mtime else "download"


def conflict_copy_path(rel_path: str) -> str:
    """``docs/notes.md`` -> ``docs/notes.sync-conflict-remote.md``"""
    path = PurePosixPath(rel_path)
    return str(path.with_name(f"{path.stem}{CONFLICT_SUFFIX}{path.suffix}"))


class SyncService:
    """
    Mirrors every configured folder between the local and remote roots.

    Both sides are enumerated in full on every pass; the checkpoint is only
    informational.
    """

    def __init__(
        self,
        executor: CommandExecutor,
        config: SyncConfig,
        store: Optional[SyncStateStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.executor = executor
        self.config = config
        self.store = store or SyncStateStore(config.state_file)
        self._clock = clock

    def run_sync(self, dry_run: bool = False) -> SyncReport:
        report = SyncReport(dry_run=dry_run)

        for folder in self.config.folders:
            self._sync_folder(folder, report, dry_run)

        if not dry_run:
            self.store.record_sync(utc_now_iso())

        logger.info(
            "Sync %s: %d uploaded, %d downloaded, %d conflicts, %d errors",
            "planned" if dry_run else "complete",
            report.uploaded,
            report.downloaded,
            len(report.conflicts),
            len(report.errors),
        )
        return report

    def sync_status(self) -> Dict[str, Any]:
        return {
            "last_sync": self.store.last_sync(),
            "root": str(self.config.local_root),
            "folders": {f.name: len(scan_local(f.local_root)) for f in self.config.folders},
        }

    # --------------------
    # Per folder
    # --------------------
    def _sync_folder(self, folder: SyncFolder, report: SyncReport, dry_run: bool) -> None:
        try:
            if not dry_run:
                folder.local_root.mkdir(parents=True, exist_ok=True)
            local_files = scan_local(folder.local_root)
            remote_files = scan_remote(self.executor, folder.remote_root)
        except (OSError, CommandError) as e:
            logger.error("Could not enumerate folder %s: %s", folder.name, e)
            report.errors.append(SyncErrorRecord(folder.name, f"enumeration failed: {e}"))
            return

        for rel in sorted(set(local_files) | set(remote_files)):
            label = f"{folder.name}/{rel}"
            local = local_files.get(rel)
            remote = remote_files.get(rel)
            try:
                if local is not None and remote is None:
                    logger.debug("↑ %s", label)
                    if not dry_run:
                        self._upload(folder, rel)
                    report.uploaded += 1
                elif remote is not None and local is None:
                    logger.debug("↓ %s", label)
                    if not dry_run:
                        self._download(folder, rel, remote, rel)
                    report.downloaded += 1
                elif local is not None and remote is not None:
                    if self._differs(folder, rel, local, remote):
                        self._resolve(folder, rel, local, remote, report, dry_run)
            except ConnectionError:
                raise
            except Exception as e:
                logger.error("✗ %s: %s", label, e)
                report.errors.append(SyncErrorRecord(label, str(e)))

    def _differs(self, folder: SyncFolder, rel: str, local: FileRecord, remote: FileRecord) -> bool:
        if local.size != remote.size:
            return True
        if abs(local.mtime - remote.mtime) <= self.config.mtime_tolerance:
            return False
        if not self.config.hash_check:
            return True
        same = local_sha256(folder.local_root / rel) == remote_sha256(
            self.executor, folder.remote_root.join(rel)
        )
        if same:
            logger.debug("%s/%s: same content, only mtime differs", folder.name, rel)
        return not same

    def _resolve(
        self,
        folder: SyncFolder,
        rel: str,
        local: FileRecord,
        remote: FileRecord,
        report: SyncReport,
        dry_run: bool,
    ) -> None:
        label = f"{folder.name}/{rel}"
        resolution = resolve_conflict(local, remote, folder.policy)
        report.conflicts.append(SyncConflict(label, resolution))
        logger.info("⚠ Conflict: %s -> %s", label, resolution)

        if resolution == "upload":
            if not dry_run:
                self._upload(folder, rel)
            report.uploaded += 1
        elif resolution == "download":
            if not dry_run:
                self._download(folder, rel, remote, rel)
            report.downloaded += 1
        else:
            if not dry_run:
                self._download(folder, rel, remote, conflict_copy_path(rel))
            report.downloaded += 1

    # --------------------
    # Transfers
    # --------------------
    def _upload(self, folder: SyncFolder, rel: str) -> None:
        upload_file(self.executor, folder.local_root / rel, folder.remote_root.join(rel))

    def _download(self, folder: SyncFolder, rel: str, remote: FileRecord, target_rel: str) -> None:
        """Fetch ``rel`` into ``target_rel``, backing up whatever is there first"""
        target = folder.local_root / target_rel
        if target.is_file():
            backup_local_file(
                self.config.backup_dir,
                folder.name,
                target_rel,
                target,
                int(self._clock() * 1000),
            )
        download_file(self.executor, folder.remote_root.join(rel), target, remote.mtime)
