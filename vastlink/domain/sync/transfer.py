"""
File transfer over the command channel as base64 text blocks
"""
import base64
import binascii
import os
from pathlib import Path

from ...core.constants import TRANSFER_CHUNK_BYTES
from ...core.exceptions import CommandError, SyncIOError
from ...core.interfaces import CommandExecutor
from ...core.logging import get_logger
from ...core.shell import RemotePath, b64encode_text, render
from ...core.utils import file_sha256
from .scanner import TRANSFER_TMP_SUFFIX

logger = get_logger(__name__)


def upload_file(
    executor: CommandExecutor,
    local_path: Path,
    remote_path: RemotePath,
    chunk_size: int = TRANSFER_CHUNK_BYTES,
) -> None:
    """
    Copy a local file to the remote host.

    Chunks are appended to a temp file that is moved into place at the end,
    so readers never see a half-written file. The remote mtime is set to
    the local one.
    """
    try:
        data = local_path.read_bytes()
        mtime = local_path.stat().st_mtime
    except OSError as e:
        raise SyncIOError(str(local_path), f"read failed: {e}") from e

    tmp = RemotePath(remote_path.path + TRANSFER_TMP_SUFFIX)
    try:
        executor.execute(render("mkdir -p {parent} && : > {tmp}", parent=remote_path.parent(), tmp=tmp))
        for offset in range(0, len(data), chunk_size):
            executor.execute(
                render(
                    "printf %s {chunk} | base64 -d >> {tmp}",
                    chunk=b64encode_text(data[offset:offset + chunk_size]),
                    tmp=tmp,
                )
            )
        executor.execute(
            render(
                "mv -f {tmp} {path} && touch -d {stamp} {path}",
                tmp=tmp,
                path=remote_path,
                stamp=f"@{mtime:.6f}",
            )
        )
    except CommandError as e:
        executor.execute(render("rm -f {tmp}", tmp=tmp), quiet=True)
        raise SyncIOError(str(remote_path), f"upload failed: {e}") from e

    logger.debug("[push] %s -> %s (%d bytes)", local_path, remote_path, len(data))


def download_file(
    executor: CommandExecutor,
    remote_path: RemotePath,
    local_path: Path,
    mtime: float,
) -> None:
    """Copy a remote file to ``local_path`` and stamp it with ``mtime``"""
    try:
        encoded = executor.execute(render("base64 {path}", path=remote_path))
    except CommandError as e:
        raise SyncIOError(str(remote_path), f"download failed: {e}") from e

    try:
        data = base64.b64decode("".join(encoded.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise SyncIOError(str(remote_path), f"corrupt transfer: {e}") from e

    tmp = local_path.with_name(local_path.name + TRANSFER_TMP_SUFFIX)
    try:
        local_path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_bytes(data)
        os.utime(tmp, (mtime, mtime))
        os.replace(tmp, local_path)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        raise SyncIOError(str(local_path), f"write failed: {e}") from e

    logger.debug("[pull] %s -> %s (%d bytes)", remote_path, local_path, len(data))


def remote_sha256(executor: CommandExecutor, remote_path: RemotePath) -> str:
    try:
        out = executor.execute(render("sha256sum {path}", path=remote_path))
    except CommandError as e:
        raise SyncIOError(str(remote_path), f"hash failed: {e}") from e
    digest = out.strip().split(" ", 1)[0]
    if len(digest) != 64:
        raise SyncIOError(str(remote_path), f"unexpected sha256sum output: {out.strip()[:100]}")
    return digest.lower()


def local_sha256(local_path: Path) -> str:
    try:
        return file_sha256(local_path)
    except OSError as e:
        raise SyncIOError(str(local_path), f"hash failed: {e}") from e
