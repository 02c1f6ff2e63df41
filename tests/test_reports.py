"""Tests for batch and session persistence."""

import json
from pathlib import Path

import pytest
from helpers import ScriptedStage, failing

from pipeforge.config import BatchConfig, ForgeConfig
from pipeforge.core import (
    BatchRunner,
    ErrorPatternAnalyzer,
    PipelineDefinition,
    PipelineOrchestrator,
)
from pipeforge.reports import (
    ERRORS_FILENAME,
    SESSIONS_DIRNAME,
    SUMMARY_FILENAME,
    list_recent_sessions,
    load_error_records,
    load_session,
    write_batch,
)


async def _batch(runs: int):
    scripted = ScriptedStage("concept", validations=[failing("E_TITLE", "no title")])
    config = ForgeConfig(batch=BatchConfig(inter_run_delay=0))
    orchestrator = PipelineOrchestrator(
        PipelineDefinition.build([scripted.stage(max_retries=0)]), config=config
    )
    return await BatchRunner(orchestrator).run(runs, batch_id="b")


@pytest.mark.asyncio
@pytest.mark.unit
class TestWriteBatch:
    """Tests for write_batch and the loaders."""

    async def test_layout(self, tmp_path: Path) -> None:
        """Summary, sessions and errors are written under the batch directory."""
        batch = await _batch(2)
        directory = write_batch(tmp_path / "b", batch)

        summary = json.loads((directory / SUMMARY_FILENAME).read_text())
        assert summary["total"] == 2
        assert summary["failed"] == 2
        assert len(list((directory / SESSIONS_DIRNAME).glob("*.json"))) == 2
        assert (directory / ERRORS_FILENAME).exists()

    async def test_errors_round_trip_into_analyzer(self, tmp_path: Path) -> None:
        """Persisted error records analyze the same as the live batch."""
        batch = await _batch(3)
        directory = write_batch(tmp_path / "b", batch)

        records = load_error_records(directory / ERRORS_FILENAME)
        live = ErrorPatternAnalyzer.from_batch(batch).analyze()
        offline = ErrorPatternAnalyzer(records).analyze()
        assert [(p.key, p.count) for p in offline] == [(p.key, p.count) for p in live]
        assert offline[0].key == ("concept", "E_TITLE")

    async def test_sessions_load_back(self, tmp_path: Path) -> None:
        """Session files parse back into ended SessionRecords."""
        batch = await _batch(1)
        write_batch(tmp_path / "b", batch)

        [path] = list_recent_sessions(tmp_path)
        record = load_session(path)
        assert record.ended
        assert record.run_id == "b-r001"
        assert record.session_id == batch.sessions[0].session_id


@pytest.mark.unit
class TestListRecentSessions:
    """Tests for list_recent_sessions."""

    def test_missing_directory(self, tmp_path: Path) -> None:
        """A missing directory has no sessions."""
        assert list_recent_sessions(tmp_path / "nope") == []

    def test_newest_first_with_limit(self, tmp_path: Path) -> None:
        """Session files sort by their timestamped names."""
        names = [
            "gen_20240101_000000_aaaa_r1",
            "gen_20250101_000000_bbbb_r2",
            "gen_20230101_000000_cccc_r3",
        ]
        for name in names:
            (tmp_path / f"{name}.json").write_text("{}")
        (tmp_path / "summary.json").write_text("{}")

        paths = list_recent_sessions(tmp_path, limit=2)
        assert [p.stem for p in paths] == [
            "gen_20250101_000000_bbbb_r2",
            "gen_20240101_000000_aaaa_r1",
        ]


class TestLoadErrorRecords:
    """Tests for reading errors files."""

    def test_blank_lines_skipped(self, tmp_path: Path) -> None:
        """Blank lines in an errors file are ignored."""
        path = tmp_path / ERRORS_FILENAME
        path.write_text(
            '{"run_id": "r", "stage": "s", "error_kind": "E", "message": "m"}\n\n'
        )
        assert len(load_error_records(path)) == 1
