"""
Sync domain models
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Literal, Mapping, Optional, Sequence

from ...core.constants import (
    CONFLICT_POLICIES,
    DEFAULT_BACKUP_DIR,
    DEFAULT_CONFLICT_POLICY,
    DEFAULT_SYNC_FOLDERS,
    MTIME_TOLERANCE_SECONDS,
    SYNC_STATE_DIR,
    SYNC_STATE_FILE,
)
from ...core.shell import RemotePath

ConflictPolicy = Literal["newest", "local-wins", "remote-wins", "keep-both"]
Resolution = Literal["upload", "download", "keep-both"]


def validate_policy(policy: str) -> str:
    if policy not in CONFLICT_POLICIES:
        raise ValueError(
            f"Unknown conflict policy {policy!r}, expected one of: {', '.join(CONFLICT_POLICIES)}"
        )
    return policy


@dataclass
class SyncFolder:
    """
    One logical folder, mirrored between a local and a remote root.

    A file's identity is the pair (folder name, relative path).
    """
    name: str
    local_root: Path
    remote_root: RemotePath
    policy: ConflictPolicy = DEFAULT_CONFLICT_POLICY


@dataclass(frozen=True)
class FileRecord:
    """One side's view of a file, captured during a pass"""
    path: str
    size: int
    mtime: float


@dataclass
class SyncConflict:
    path: str
    resolution: Resolution


@dataclass
class SyncErrorRecord:
    path: str
    message: str


@dataclass
class SyncReport:
    """Outcome of one sync pass"""
    uploaded: int = 0
    downloaded: int = 0
    conflicts: List[SyncConflict] = field(default_factory=list)
    errors: List[SyncErrorRecord] = field(default_factory=list)
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class SyncConfig:
    """Local and remote roots plus the folders mirrored between them"""
    local_root: Path
    remote_root: RemotePath
    folders: List[SyncFolder]
    backup_dir: Path
    mtime_tolerance: float = MTIME_TOLERANCE_SECONDS
    hash_check: bool = False

    @property
    def state_file(self) -> Path:
        return self.local_root / SYNC_STATE_DIR / SYNC_STATE_FILE

    @classmethod
    def build(
        cls,
        local_root: Path,
        remote_root: str,
        folder_names: Sequence[str] = DEFAULT_SYNC_FOLDERS,
        default_policy: str = DEFAULT_CONFLICT_POLICY,
        policies: Optional[Mapping[str, str]] = None,
        backup_dir: str = DEFAULT_BACKUP_DIR,
        mtime_tolerance: float = MTIME_TOLERANCE_SECONDS,
        hash_check: bool = False,
    ) -> "SyncConfig":
        """
        Derive per-folder roots from the two top-level roots.

        A relative ``backup_dir`` lives under ``local_root``.
        """
        policies = policies or {}
        remote = RemotePath(remote_root)
        folders = [
            SyncFolder(
                name=name,
                local_root=local_root / name,
                remote_root=remote.join(name),
                policy=validate_policy(policies.get(name, default_policy)),
            )
            for name in folder_names
        ]
        backup = Path(backup_dir).expanduser()
        if not backup.is_absolute():
            backup = local_root / backup
        return cls(
            local_root=local_root,
            remote_root=remote,
            folders=folders,
            backup_dir=backup,
            mtime_tolerance=mtime_tolerance,
            hash_check=hash_check,
        )
