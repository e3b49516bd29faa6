"""
Tests for the suspicion scorer.

Covers:
- Zero activity scores zero
- Worked scenarios (volume only, diverse + high risk)
- Capping at 1.0
- Configuration errors raised when the scorer is built
"""

import pytest

from sentinel.errors import ConfigurationError
from sentinel.models import ActivityKind, WindowAggregate
from sentinel.scoring import SuspicionScorer, score

VIEW = ActivityKind.VIEW
UPDATE = ActivityKind.UPDATE
DELETE = ActivityKind.DELETE
AUTH = ActivityKind.AUTHENTICATION

KNOWN = frozenset({VIEW, UPDATE, DELETE, AUTH})
HIGH_RISK = frozenset({DELETE})


def agg(total: int, *kinds: ActivityKind) -> WindowAggregate:
    return WindowAggregate("acct", total, frozenset(kinds))


# =============================================================================
# SCORE FUNCTION
# =============================================================================


class TestScore:
    def test_zero_activity_scores_zero(self):
        assert score(agg(0), 10, KNOWN, HIGH_RISK) == 0.0

    def test_zero_activity_ignores_kinds(self):
        """Even a (malformed) aggregate listing high-risk kinds scores 0 with no records."""
        assert score(agg(0, DELETE, UPDATE), 10, KNOWN, HIGH_RISK) == 0.0

    def test_volume_only_stays_below_watchlist_line(self):
        """12 views: base 0.6 + diversity 0.075 = 0.675."""
        assert score(agg(12, VIEW), 10, KNOWN, HIGH_RISK) == pytest.approx(0.675)

    def test_diverse_high_risk_activity_is_capped(self):
        """12 actions over view/update/delete: 0.6 + 0.225 + 0.2 -> capped at 1.0."""
        assert score(agg(12, VIEW, UPDATE, DELETE), 10, KNOWN, HIGH_RISK) == 1.0

    def test_high_risk_bonus_applied_once(self):
        without = score(agg(4, VIEW), 10, KNOWN, HIGH_RISK)
        with_risk = score(agg(4, DELETE), 10, KNOWN, HIGH_RISK)
        assert with_risk - without == pytest.approx(0.2)

    def test_exactly_at_threshold_volume_is_half(self):
        assert score(agg(10, VIEW), 10, KNOWN, frozenset()) == pytest.approx(0.5 + 0.075)

    def test_uses_size_of_known_kinds(self):
        all_kinds = frozenset(ActivityKind)
        assert score(agg(10, VIEW), 10, all_kinds, frozenset()) == pytest.approx(0.55)

    def test_never_exceeds_one(self):
        assert score(agg(10_000, *KNOWN), 10, KNOWN, HIGH_RISK) == 1.0


# =============================================================================
# BOUND SCORER
# =============================================================================


class TestSuspicionScorer:
    def test_bound_scorer_matches_function(self):
        scorer = SuspicionScorer(10, KNOWN, HIGH_RISK)
        aggregate = agg(12, VIEW, UPDATE)
        assert scorer(aggregate) == score(aggregate, 10, KNOWN, HIGH_RISK)

    @pytest.mark.parametrize("threshold", [0, -1, -10])
    def test_non_positive_threshold_rejected_at_construction(self, threshold):
        with pytest.raises(ConfigurationError):
            SuspicionScorer(threshold, KNOWN, HIGH_RISK)

    def test_empty_known_kinds_rejected(self):
        with pytest.raises(ConfigurationError):
            SuspicionScorer(10, frozenset(), frozenset())
