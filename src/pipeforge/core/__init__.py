"""Core engine for pipeforge.

This package contains the execution logic, separated from the CLI:
- stage_runner: bounded generate/validate/repair loop for one stage
- orchestrator: sequences stages for one run and computes the verdict
- batch_runner: N independent runs with optional concurrency
- session_log: per-run event and error log
- error_analyzer: cross-run error pattern ranking
"""

from .batch_runner import BatchRunner
from .error_analyzer import ErrorPatternAnalyzer, SuggestionProvider
from .identifiers import generate_batch_id, generate_run_id, generate_session_id
from .invoke import call_collaborator
from .loader import load_pipeline
from .orchestrator import PipelineOrchestrator
from .session_log import EventSink, SessionLog
from .stage import FinalCheck, PipelineDefinition, Stage, StageContract
from .stage_runner import StageOutcome, StageRunner

__all__ = [
    "BatchRunner",
    "ErrorPatternAnalyzer",
    "EventSink",
    "FinalCheck",
    "PipelineDefinition",
    "PipelineOrchestrator",
    "SessionLog",
    "Stage",
    "StageContract",
    "StageOutcome",
    "StageRunner",
    "SuggestionProvider",
    "call_collaborator",
    "generate_batch_id",
    "generate_run_id",
    "generate_session_id",
    "load_pipeline",
]
