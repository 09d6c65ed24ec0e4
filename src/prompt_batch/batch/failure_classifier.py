"""Deterministic classification of per-item processor failures."""

from __future__ import annotations

from dataclasses import dataclass

from prompt_batch.batch.models import FailureClass

FAILURE_CLASSIFIER_VERSION = 1

_BILLING_OR_QUOTA_PATTERNS: tuple[str, ...] = (
    "quota",
    "resource_exhausted",
    "insufficient",
    "billing",
    "payment",
    "credits",
    "usage limit",
)
_ACCESS_OR_AUTH_PATTERNS: tuple[str, ...] = (
    "unauthorized",
    "unauthenticated",
    "forbidden",
    "permission denied",
    "permission_denied",
    "invalid api key",
    "api key not valid",
    "authentication",
)
_MODEL_NOT_AVAILABLE_PATTERNS: tuple[str, ...] = (
    "model not found",
    "unknown model",
    "unsupported model",
    "invalid model",
    "model is not available",
    "not available in your region",
)
_RATE_LIMIT_TRANSIENT_PATTERNS: tuple[str, ...] = (
    "too many requests",
    "rate limit",
    "429",
    "please retry",
    "try again later",
)
_GENERIC_TRANSIENT_PATTERNS: tuple[str, ...] = (
    "temporarily unavailable",
    "temporary failure",
    "service unavailable",
    "503",
    "connection reset",
    "network error",
    "could not resolve host",
    "deadline exceeded",
)


@dataclass(slots=True)
class FailureClassification:
    """Normalized failure classification result."""

    failure_class: FailureClass
    matched_rule: str
    matched_pattern: str | None


def classify_failure(message: str, *, timed_out: bool = False) -> FailureClassification:
    """Classify one item failure message; rules are checked in priority order."""

    if timed_out:
        return FailureClassification(
            failure_class=FailureClass.TIMEOUT,
            matched_rule="timeout",
            matched_pattern=None,
        )

    haystack = message.lower()
    rules: tuple[tuple[str, FailureClass, tuple[str, ...]], ...] = (
        ("billing_or_quota", FailureClass.BILLING_OR_QUOTA, _BILLING_OR_QUOTA_PATTERNS),
        ("access_or_auth", FailureClass.ACCESS_OR_AUTH, _ACCESS_OR_AUTH_PATTERNS),
        ("model_not_available", FailureClass.MODEL_NOT_AVAILABLE, _MODEL_NOT_AVAILABLE_PATTERNS),
        ("rate_limit_transient", FailureClass.BACKEND_TRANSIENT, _RATE_LIMIT_TRANSIENT_PATTERNS),
        ("generic_transient", FailureClass.BACKEND_TRANSIENT, _GENERIC_TRANSIENT_PATTERNS),
    )
    for rule, failure_class, patterns in rules:
        pattern = _first_match(haystack, patterns)
        if pattern is not None:
            return FailureClassification(
                failure_class=failure_class,
                matched_rule=rule,
                matched_pattern=pattern,
            )

    return FailureClassification(
        failure_class=FailureClass.BACKEND_NON_RETRYABLE,
        matched_rule="fallback_non_retryable",
        matched_pattern=None,
    )


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None
