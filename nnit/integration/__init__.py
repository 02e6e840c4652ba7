"""Integration test harness: runner, assertions and artifact staging."""

from nnit.integration.artifacts import model_path_prefix, prepare_model
from nnit.integration.assertions import (
    assert_almost_equals,
    assert_equals,
    assert_false,
    assert_throws,
    assert_true,
)
from nnit.integration.runner import IntegrationTest, run_as_test
from nnit.integration.types import ArtifactError, FailedTestException, Outcome, RunSummary, ScenarioResult

__all__ = [
    "prepare_model",
    "model_path_prefix",
    "assert_true",
    "assert_false",
    "assert_equals",
    "assert_almost_equals",
    "assert_throws",
    "IntegrationTest",
    "run_as_test",
    "ArtifactError",
    "FailedTestException",
    "Outcome",
    "RunSummary",
    "ScenarioResult",
]
