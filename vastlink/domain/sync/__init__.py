"""
Sync domain module
"""
from .models import (
    ConflictPolicy,
    SyncFolder,
    FileRecord,
    SyncConflict,
    SyncErrorRecord,
    SyncReport,
    SyncConfig,
    validate_policy,
)
from .scanner import scan_local, scan_remote, parse_find_output
from .transfer import upload_file, download_file
from .backup import backup_local_file, backup_name
from .service import SyncService, resolve_conflict, conflict_copy_path

__all__ = [
    "ConflictPolicy",
    "SyncFolder",
    "FileRecord",
    "SyncConflict",
    "SyncErrorRecord",
    "SyncReport",
    "SyncConfig",
    "validate_policy",
    "scan_local",
    "scan_remote",
    "parse_find_output",
    "upload_file",
    "download_file",
    "backup_local_file",
    "backup_name",
    "SyncService",
    "resolve_conflict",
    "conflict_copy_path",
]
