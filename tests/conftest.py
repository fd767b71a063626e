"""Shared test fixtures."""

from __future__ import annotations

import random
from collections.abc import Callable

import pytest

from row_analysis.config import (
    ConfidenceSettings,
    DispatchSettings,
    EndpointSettings,
    RetrySettings,
    Settings,
)


@pytest.fixture()
def fast_settings() -> Callable[..., Settings]:
    """Settings factory with millisecond timings and boosting off by default."""

    def _factory(
        *,
        concurrency_limit: int = 5,
        stagger_seconds: float = 0.0,
        max_retries: int = 3,
        backoff_seconds: float = 0.001,
        attempt_timeout_seconds: float = 5.0,
        boost: bool = False,
    ) -> Settings:
        return Settings(
            dispatch=DispatchSettings(
                concurrency_limit=concurrency_limit,
                stagger_seconds=stagger_seconds,
            ),
            retry=RetrySettings(
                max_retries=max_retries,
                backoff_seconds=backoff_seconds,
                attempt_timeout_seconds=attempt_timeout_seconds,
            ),
            endpoint=EndpointSettings(url="https://classifier.example/analyze"),
            confidence=ConfidenceSettings(enabled=boost),
        )

    return _factory


@pytest.fixture()
def seeded_rng() -> random.Random:
    return random.Random(1234)
