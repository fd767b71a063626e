"""Presentation-time boost for borderline confidence values."""

from __future__ import annotations

import random

from row_analysis.config import ConfidenceSettings
from row_analysis.orchestrator.models import AnalysisOutcome, OutcomeStatus


class ConfidenceAdjuster:
    """Push completed outcomes out of the low-confidence band.

    The winning class keeps its identity: class 1 wins only when
    ``probability1 > probability0``, so ties stay with class 0.
    """

    def __init__(
        self,
        settings: ConfidenceSettings | None = None,
        *,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings or ConfidenceSettings()
        self._random = rng or random.Random()  # noqa: S311

    def adjust(self, outcome: AnalysisOutcome) -> AnalysisOutcome:
        settings = self.settings
        if not settings.enabled or outcome.status is not OutcomeStatus.COMPLETE:
            return outcome

        confidence = outcome.confidence
        if confidence < settings.band_low or confidence > settings.band_high:
            return outcome

        boost = self._random.uniform(settings.boost_min, settings.boost_max)
        boosted = min(confidence + boost, settings.ceiling)
        if outcome.probability1 > outcome.probability0:
            return outcome.with_probabilities(1 - boosted, boosted)
        return outcome.with_probabilities(boosted, 1 - boosted)
