"""Persistence of batch results and session logs.

Layout under the output directory::

    <batch_id>/
        summary.json        # BatchResult.summary()
        errors.jsonl        # one ErrorRecord per line
        sessions/
            <session_id>_<run_id>.json
"""

import json
from collections.abc import Iterable
from pathlib import Path

from .models import BatchResult, ErrorRecord, SessionRecord

SESSIONS_DIRNAME = "sessions"
SUMMARY_FILENAME = "summary.json"
ERRORS_FILENAME = "errors.jsonl"


def write_session(directory: Path, record: SessionRecord) -> Path:
    """Write one session as pretty-printed JSON.

    Returns:
        Path to the written file
    """
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{record.session_id}_{record.run_id or 'unnamed'}.json"
    path.write_text(record.model_dump_json(indent=2))
    return path


def write_error_records(path: Path, records: Iterable[ErrorRecord]) -> int:
    """Write error records as JSON lines.

    Returns:
        Number of records written
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with open(path, "w") as f:
        for record in records:
            f.write(record.model_dump_json() + "\n")
            count += 1
    return count


def write_batch(directory: Path, batch: BatchResult) -> Path:
    """Persist a batch summary, its sessions and all error records.

    Args:
        directory: Batch directory (created if missing)
        batch: Completed batch

    Returns:
        The batch directory
    """
    directory.mkdir(parents=True, exist_ok=True)
    (directory / SUMMARY_FILENAME).write_text(json.dumps(batch.summary(), indent=2, default=str))
    for record in batch.sessions:
        write_session(directory / SESSIONS_DIRNAME, record)
    write_error_records(
        directory / ERRORS_FILENAME,
        (error for record in batch.sessions for error in record.errors),
    )
    return directory


def load_error_records(path: Path) -> list[ErrorRecord]:
    """Read error records from a JSONL file, skipping blank lines.

    Raises:
        FileNotFoundError: If the file doesn't exist
        pydantic.ValidationError: If a line is not a valid ErrorRecord
    """
    records = []
    with open(path) as f:
        for line in f:
            line = line.strip()
            if line:
                records.append(ErrorRecord.model_validate_json(line))
    return records


def load_session(path: Path) -> SessionRecord:
    return SessionRecord.model_validate_json(path.read_text())


def list_recent_sessions(directory: Path, limit: int = 10) -> list[Path]:
    """List session files, newest first.

    Session IDs start with a timestamp, so sorting by name orders by time.

    Args:
        directory: A sessions directory, or a parent searched recursively
        limit: Maximum number of paths to return

    Returns:
        Paths of session JSON files, newest first
    """
    if not directory.exists():
        return []
    paths = [p for p in directory.rglob("gen_*.json") if p.is_file()]
    return sorted(paths, key=lambda p: p.name, reverse=True)[:limit]
