"""Shared test fixtures for pipeforge tests."""

import pytest
from helpers import ScriptedStage
from typer.testing import CliRunner

from pipeforge.core import PipelineDefinition, SessionLog


@pytest.fixture
def runner() -> CliRunner:
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def session() -> SessionLog:
    """Started session log for a single run."""
    log = SessionLog(run_id="run-1")
    log.start_session()
    return log


@pytest.fixture
def two_stage_pipeline() -> tuple[PipelineDefinition, ScriptedStage, ScriptedStage]:
    """Pipeline whose stages both pass on the first try."""
    concept = ScriptedStage("concept")
    assembly = ScriptedStage("assembly")
    pipeline = PipelineDefinition.build([concept.stage(), assembly.stage()])
    return pipeline, concept, assembly
