"""File helpers for the harness: download, unzip, delete."""

from __future__ import annotations

import logging
import shutil
import zipfile
from pathlib import Path

import httpx

from nnit.integration.types import ArtifactError

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 8192


def download(url: str, dest_dir: str | Path, filename: str, timeout: float = 60.0) -> Path:
    """Stream *url* into ``dest_dir/filename``.

    The file is written to a ``.part`` sibling first and renamed on success,
    so an interrupted download never looks complete.

    Raises:
        ArtifactError: The request or the write failed.
    """
    dest_dir = Path(dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)
    target = dest_dir / filename
    partial = target.with_name(target.name + ".part")

    logger.info("Downloading %s -> %s", url, target)
    try:
        with httpx.Client(timeout=timeout, follow_redirects=True) as client:
            with client.stream("GET", url) as resp:
                resp.raise_for_status()
                with open(partial, "wb") as fh:
                    for chunk in resp.iter_bytes(chunk_size=_CHUNK_SIZE):
                        fh.write(chunk)
        partial.replace(target)
    except (httpx.HTTPError, OSError) as exc:
        partial.unlink(missing_ok=True)
        raise ArtifactError(f"Download failed for {url}: {exc}") from exc

    return target


def unzip(archive: str | Path, dest_dir: str | Path) -> Path:
    """Extract a zip archive into *dest_dir*, rejecting entries that escape it."""
    archive = Path(archive)
    dest_dir = Path(dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)
    root = dest_dir.resolve()

    try:
        with zipfile.ZipFile(archive, "r") as zf:
            for member in zf.namelist():
                target = (root / member).resolve()
                if target != root and root not in target.parents:
                    raise ArtifactError(f"Unsafe path in {archive.name}: {member}")
            zf.extractall(root)
    except (zipfile.BadZipFile, OSError) as exc:
        if isinstance(exc, ArtifactError):
            raise
        raise ArtifactError(f"Failed to extract {archive}: {exc}") from exc

    logger.debug("Extracted %s into %s", archive, dest_dir)
    return dest_dir


def delete_file_or_dir(path: str | Path) -> None:
    """Remove a file or a directory tree; missing paths are ignored."""
    path = Path(path)
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink(missing_ok=True)
