"""
sources/download.py — Run-scoped HTTP downloads and archive extraction.

Provides:
  download_to_tempfile()   — stream a URL to a temporary file (caller cleans up)
  downloaded()             — async context manager that deletes the file on exit
  extract_archive_member() — pull one named entry (plus shapefile sidecars)
                             out of a zip archive into a directory

All failures surface as AcquisitionError so the run stops with a message
naming the URL or the archive entry.

Usage:
    async with downloaded(url, suffix=".zip") as zip_path:
        with tempfile.TemporaryDirectory() as tmp:
            shp = extract_archive_member(zip_path, "REGC2014_GV_Clipped.shp", tmp)
            gdf = gpd.read_file(shp)
"""

from __future__ import annotations

import shutil
import tempfile
import zipfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path, PurePosixPath

import httpx
import structlog

from nzcensus_shared.config import settings
from nzcensus_shared.constants import SHAPEFILE_SIDECARS
from nzcensus_shared.errors import AcquisitionError
from nzcensus_pipeline.utils.retry import with_retry

log = structlog.get_logger(__name__)

_CHUNK_SIZE = 256 * 1024


async def _stream_to_file(url: str, dest: Path, timeout: float) -> int:
    written = 0
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        async with client.stream("GET", url) as response:
            response.raise_for_status()
            with open(dest, "wb") as fh:
                async for chunk in response.aiter_bytes(chunk_size=_CHUNK_SIZE):
                    fh.write(chunk)
                    written += len(chunk)
    return written


async def download_to_tempfile(
    url: str,
    *,
    suffix: str = "",
    timeout: float | None = None,
    attempts: int | None = None,
) -> Path:
    """
    Download *url* to a new temporary file and return its path.

    The response body is streamed to disk rather than buffered in memory.
    The caller owns the file; use downloaded() to have it removed
    automatically.

    Args:
        url:      Remote resource.
        suffix:   Suffix for the temporary file name (".xls", ".zip").
        timeout:  HTTP timeout in seconds (default settings.download_timeout).
        attempts: Total attempts on transport errors (default settings.download_attempts).

    Returns:
        Path of the downloaded file.

    Raises:
        AcquisitionError: non-2xx response, transport failure, or empty body.
    """
    timeout = timeout if timeout is not None else settings.download_timeout
    attempts = attempts if attempts is not None else settings.download_attempts

    fd = tempfile.NamedTemporaryFile(prefix="nzcensus_", suffix=suffix, delete=False)
    fd.close()
    dest = Path(fd.name)

    fetch = with_retry(max_attempts=attempts, retry_on=(httpx.TransportError,))(_stream_to_file)
    log.info("download_start", url=url, attempts=attempts)
    try:
        size = await fetch(url, dest, timeout)
    except httpx.HTTPStatusError as exc:
        dest.unlink(missing_ok=True)
        raise AcquisitionError(
            f"Download failed with HTTP {exc.response.status_code}", url=url
        ) from exc
    except httpx.HTTPError as exc:
        dest.unlink(missing_ok=True)
        raise AcquisitionError(f"Download failed: {exc}", url=url) from exc
    except BaseException:
        dest.unlink(missing_ok=True)
        raise

    if size == 0:
        dest.unlink(missing_ok=True)
        raise AcquisitionError("Download returned an empty body", url=url)

    log.info("download_complete", url=url, bytes=size, path=str(dest))
    return dest


@asynccontextmanager
async def downloaded(url: str, *, suffix: str = "") -> AsyncIterator[Path]:
    """Download *url* for the duration of the ``async with`` block."""
    path = await download_to_tempfile(url, suffix=suffix)
    try:
        yield path
    finally:
        path.unlink(missing_ok=True)
        log.debug("download_released", path=str(path))


def _members_to_extract(names: list[str], entry_name: str) -> list[str]:
    """Return the archive members for *entry_name*, named entry first."""
    wanted = entry_name.lower()
    matches = [n for n in names if PurePosixPath(n).name.lower() == wanted]
    if not matches:
        return []
    entry = matches[0]
    entry_path = PurePosixPath(entry)
    if entry_path.suffix.lower() != ".shp":
        return [entry]

    # A shapefile is unreadable without its .shx/.dbf/.prj companions
    stem = entry_path.with_suffix("").as_posix().lower()
    sidecars = [
        n for n in names
        if n != entry
        and PurePosixPath(n).with_suffix("").as_posix().lower() == stem
        and PurePosixPath(n).suffix.lower() in SHAPEFILE_SIDECARS
    ]
    return [entry, *sidecars]


def extract_archive_member(
    zip_path: str | Path,
    entry_name: str,
    dest_dir: str | Path,
) -> Path:
    """
    Extract a named entry from a zip archive into *dest_dir*.

    The entry is located by base name (case-insensitive) anywhere in the
    archive. For a ``.shp`` entry the sibling files sharing its stem
    (.shx, .dbf, .prj, .cpg) are extracted alongside. Directory structure
    inside the archive is flattened.

    Args:
        zip_path:   Path of the downloaded archive.
        entry_name: Base name of the entry, e.g. "REGC2014_GV_Clipped.shp".
        dest_dir:   Existing directory to extract into.

    Returns:
        Path of the extracted named entry.

    Raises:
        AcquisitionError: archive is not a zip, or the entry is absent.
    """
    dest = Path(dest_dir)
    try:
        with zipfile.ZipFile(zip_path) as zf:
            names = [n for n in zf.namelist() if not n.endswith("/")]
            members = _members_to_extract(names, entry_name)
            if not members:
                preview = ", ".join(sorted(names)[:20])
                raise AcquisitionError(
                    f"Entry {entry_name!r} not found in archive {Path(zip_path).name}; "
                    f"available entries: {preview}"
                )

            extracted: list[Path] = []
            for member in members:
                target = dest / PurePosixPath(member).name
                with zf.open(member) as src, open(target, "wb") as out:
                    shutil.copyfileobj(src, out, length=_CHUNK_SIZE)
                extracted.append(target)
    except zipfile.BadZipFile as exc:
        raise AcquisitionError(f"Not a valid zip archive: {Path(zip_path).name}") from exc

    log.info(
        "archive_entry_extracted",
        entry=entry_name,
        files=[p.name for p in extracted],
        dest=str(dest),
    )
    return extracted[0]
