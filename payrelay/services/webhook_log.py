"""
Durable webhook log - append-only NDJSON with size-based rotation.

Layout inside the log directory:
- webhooks.log                          active file, one JSON object per line
- webhooks-<utc label>.log.gz           rotated archives
- webhooks-<utc label>.log              rotated archive whose compression failed

Every public function here is best-effort: failures are logged and
swallowed so that log I/O can never affect webhook acknowledgment.
These functions do blocking file I/O and are called from the single
writer task (see payrelay.workers.webhook_log_writer) via a worker thread.
"""
import gzip
import json
import logging
import os
import shutil
from pathlib import Path
from typing import Iterator, Optional, Union

from payrelay.schemas.webhook_events import LogEntry, VerifiedEvent
from payrelay.utils.errors import (
    AppendFailure,
    DirectoryCreateFailure,
    RotationFailure,
)
from payrelay.utils.timestamps import filesystem_safe_label

logger = logging.getLogger(__name__)

ACTIVE_LOG_NAME = "webhooks.log"
ARCHIVE_PREFIX = "webhooks-"
ARCHIVE_SUFFIX = ".log.gz"
UNCOMPRESSED_ARCHIVE_SUFFIX = ".log"
DEFAULT_MAX_LOG_BYTES = 5 * 1024 * 1024

PathLike = Union[str, os.PathLike]


def active_log_path(log_dir: PathLike) -> Path:
    return Path(log_dir) / ACTIVE_LOG_NAME


def _make_directory(log_dir: Path) -> None:
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DirectoryCreateFailure(f"Failed to create log dir {log_dir}: {e}") from e


def ensure_log_directory(log_dir: PathLike) -> bool:
    """Create the log directory (and parents) if absent. Returns True if it exists afterwards."""
    try:
        _make_directory(Path(log_dir))
        return True
    except DirectoryCreateFailure as e:
        logger.error("%s", str(e))
        return False


def _archive_name(log_dir: Path) -> Path:
    """webhooks-<label>.log, with a _N suffix if that label was already used."""
    label = filesystem_safe_label()
    candidate = log_dir / f"{ARCHIVE_PREFIX}{label}.log"
    counter = 1
    while candidate.exists() or candidate.with_name(candidate.name + ".gz").exists():
        candidate = log_dir / f"{ARCHIVE_PREFIX}{label}_{counter:03d}.log"
        counter += 1
    return candidate


def _compress(source: Path) -> Path:
    gzip_path = source.with_name(source.name + ".gz")
    with open(source, "rb") as inp, gzip.open(gzip_path, "wb") as out:
        shutil.copyfileobj(inp, out)
    return gzip_path


def _discard_partial_gzip(source: Path) -> None:
    partial = source.with_name(source.name + ".gz")
    try:
        partial.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not remove partial archive %s: %s", partial, str(e))


def _rotate(path: Path, threshold_bytes: int) -> Optional[Path]:
    try:
        size = path.stat().st_size
    except FileNotFoundError:
        return None
    except OSError as e:
        raise RotationFailure(f"Failed to stat {path}: {e}") from e

    if size < threshold_bytes:
        return None

    rotated = _archive_name(path.parent)
    try:
        os.replace(path, rotated)
    except OSError as e:
        raise RotationFailure(f"Failed to rotate {path}: {e}") from e

    # From here on the entries live in `rotated`; it stays readable if gzip fails
    try:
        gzip_path = _compress(rotated)
    except OSError as e:
        _discard_partial_gzip(rotated)
        raise RotationFailure(
            f"Failed to compress {rotated}, keeping it uncompressed: {e}"
        ) from e

    try:
        rotated.unlink()
    except OSError as e:
        logger.warning("Could not remove uncompressed archive %s: %s", rotated, str(e))

    logger.info("Rotated and compressed log to %s", gzip_path, extra={"log_file": str(gzip_path)})
    return gzip_path


def rotate_if_needed(
    path: PathLike,
    threshold_bytes: int = DEFAULT_MAX_LOG_BYTES,
) -> Optional[Path]:
    """
    Archive the active log once it reaches threshold_bytes.

    rename -> gzip -> delete the uncompressed copy. Returns the .gz path when
    a rotation happened, None otherwise (including on failure). If the rename
    fails the active file is left alone. If gzip fails the renamed file is
    kept as an uncompressed archive and the partial .gz is removed.
    """
    try:
        return _rotate(Path(path), threshold_bytes)
    except RotationFailure as e:
        logger.error("Error rotating log: %s", str(e), exc_info=True)
        return None


def _write_line(path: Path, entry: LogEntry) -> None:
    line = json.dumps(entry.model_dump(), ensure_ascii=False, default=str) + "\n"
    try:
        with open(path, "a", encoding="utf-8") as f:
            f.write(line)
    except OSError as e:
        raise AppendFailure(f"Failed to append to {path}: {e}") from e


def append_log(
    event: VerifiedEvent,
    log_dir: PathLike,
    max_bytes: int = DEFAULT_MAX_LOG_BYTES,
    received_at: Optional[str] = None,
) -> bool:
    """
    Append one LogEntry line for event to the active log.

    Ensures the directory, rotates first if the active file is over max_bytes,
    then appends. received_at is the time the request was accepted; when
    omitted the entry is stamped now. Returns True when a line was written;
    never raises.
    """
    log_dir = Path(log_dir)
    path = active_log_path(log_dir)
    try:
        _make_directory(log_dir)
        rotate_if_needed(path, max_bytes)
        _write_line(path, LogEntry.from_verified(event, received_at))
        return True
    except Exception as e:
        logger.error(
            "Failed to append webhook log: %s", str(e),
            extra={"event_id": event.id, "event_type": event.type},
        )
        return False


def _archive_sort_key(path: Path) -> str:
    return path.name[: -len(".gz")] if path.name.endswith(".gz") else path.name


def archived_log_paths(log_dir: PathLike) -> list[Path]:
    """
    Archives in rotation order (labels are UTC timestamps, so name order is time order).

    Includes archives left uncompressed by a failed gzip. When both
    webhooks-<label>.log and its .gz exist, only the .log is listed: it was
    the rename target, so it is always complete.
    """
    log_dir = Path(log_dir)
    if not log_dir.is_dir():
        return []

    by_label: dict[str, Path] = {}
    for p in log_dir.iterdir():
        if not p.name.startswith(ARCHIVE_PREFIX):
            continue
        if p.name.endswith(ARCHIVE_SUFFIX):
            by_label.setdefault(_archive_sort_key(p), p)
        elif p.name.endswith(UNCOMPRESSED_ARCHIVE_SUFFIX):
            by_label[p.name] = p
    return [by_label[key] for key in sorted(by_label)]


def _iter_lines(path: Path) -> Iterator[str]:
    opener = gzip.open if path.name.endswith(".gz") else open
    with opener(path, "rt", encoding="utf-8") as f:
        for line in f:
            if line.strip():
                yield line


def iter_log_entries(log_dir: PathLike) -> Iterator[dict]:
    """
    Yield parsed entries from every archive (oldest first), then the active file.

    Lines that fail to parse are skipped with a warning. A file that cannot
    be read to the end (truncated or corrupt gzip, bad encoding) is abandoned
    at that point with a warning and reading moves on to the next file.
    """
    paths = archived_log_paths(log_dir)
    active = active_log_path(log_dir)
    if active.exists():
        paths.append(active)

    for path in paths:
        try:
            for lineno, line in enumerate(_iter_lines(path), start=1):
                try:
                    yield json.loads(line)
                except ValueError:
                    logger.warning("Skipping unparseable log line %s:%d", path.name, lineno)
        except (OSError, EOFError, UnicodeDecodeError) as e:
            logger.warning(
                "Skipping unreadable log file %s: %s", path.name, str(e),
                extra={"log_file": str(path)},
            )
