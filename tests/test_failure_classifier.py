from __future__ import annotations

import allure

from prompt_batch.batch.failure_classifier import (
    FAILURE_CLASSIFIER_VERSION,
    classify_failure,
)
from prompt_batch.batch.models import FailureClass

pytestmark = [
    allure.epic("Batch Runtime"),
    allure.feature("Failure Reporting"),
]


def test_classifier_version_is_stable() -> None:
    assert FAILURE_CLASSIFIER_VERSION == 1


def test_classifier_prefers_billing_over_rate_limit() -> None:
    classified = classify_failure("429 RESOURCE_EXHAUSTED: quota exceeded, please retry")
    assert classified.failure_class == FailureClass.BILLING_OR_QUOTA
    assert classified.matched_rule == "billing_or_quota"
    assert classified.matched_pattern == "quota"


def test_classifier_maps_invalid_api_key_to_access() -> None:
    classified = classify_failure("400 API key not valid. Please pass a valid API key.")
    assert classified.failure_class == FailureClass.ACCESS_OR_AUTH


def test_classifier_maps_model_unavailable() -> None:
    classified = classify_failure("404 Unknown model gemini-9")
    assert classified.failure_class == FailureClass.MODEL_NOT_AVAILABLE
    assert classified.matched_rule == "model_not_available"


def test_classifier_maps_rate_limit_to_backend_transient() -> None:
    classified = classify_failure("HTTP 429 too many requests")
    assert classified.failure_class == FailureClass.BACKEND_TRANSIENT
    assert classified.matched_rule == "rate_limit_transient"


def test_classifier_maps_network_errors_to_backend_transient() -> None:
    classified = classify_failure("curl: (6) Could not resolve host: example.invalid")
    assert classified.failure_class == FailureClass.BACKEND_TRANSIENT
    assert classified.matched_rule == "generic_transient"


def test_classifier_timeout_wins_over_message() -> None:
    classified = classify_failure("quota", timed_out=True)
    assert classified.failure_class == FailureClass.TIMEOUT
    assert classified.matched_pattern is None


def test_classifier_falls_back_to_non_retryable() -> None:
    classified = classify_failure("fatal: unsupported syntax in prompt template")
    assert classified.failure_class == FailureClass.BACKEND_NON_RETRYABLE
    assert classified.matched_rule == "fallback_non_retryable"
