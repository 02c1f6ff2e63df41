"""Import pipeline definitions from ``module:attribute`` references."""

import importlib
import logging

from ..errors import InvalidPipelineError, PipelineLoadError
from .stage import PipelineDefinition

logger = logging.getLogger(__name__)


def load_pipeline(reference: str) -> PipelineDefinition:
    """Load a pipeline from a ``pkg.module:attr`` reference.

    The attribute may be a PipelineDefinition or a zero-argument factory
    returning one.

    Args:
        reference: Import path and attribute, separated by a colon

    Returns:
        The loaded PipelineDefinition

    Raises:
        PipelineLoadError: If the reference is malformed, cannot be imported,
            or does not produce a PipelineDefinition
    """
    module_name, sep, attr = reference.partition(":")
    if not sep or not module_name or not attr:
        raise PipelineLoadError(f"Expected 'module:attribute', got '{reference}'")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise PipelineLoadError(f"Cannot import '{module_name}': {e}") from e

    target = module
    for part in attr.split("."):
        try:
            target = getattr(target, part)
        except AttributeError:
            raise PipelineLoadError(f"'{module_name}' has no attribute '{attr}'") from None

    if callable(target) and not isinstance(target, PipelineDefinition):
        try:
            target = target()
        except (InvalidPipelineError, PipelineLoadError):
            raise
        except Exception as e:
            raise PipelineLoadError(f"Pipeline factory '{reference}' failed: {e}") from e

    if not isinstance(target, PipelineDefinition):
        raise PipelineLoadError(
            f"'{reference}' produced {type(target).__name__}, expected PipelineDefinition"
        )
    logger.debug(f"Loaded pipeline {reference}: {', '.join(target.stage_names)}")
    return target
