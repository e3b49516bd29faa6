"""
Suspicion Scorer - maps windowed activity statistics to a score in [0, 1].

    base      = total_count / (threshold * 2)
    diversity = (distinct_kind_count / |known_kinds|) * 0.3
    riskBonus = 0.2 if any high-risk kind is present else 0
    score     = min(base + diversity + riskBonus, 1.0)

Volume alone at exactly the count threshold scores 0.5. Diversity and
high-risk kinds push an account over the watchlist line.
"""

from collections.abc import Collection

from sentinel.errors import ConfigurationError
from sentinel.models import ActivityKind, WindowAggregate

DIVERSITY_WEIGHT = 0.3
HIGH_RISK_BONUS = 0.2
MAX_SCORE = 1.0


def score(
    aggregate: WindowAggregate,
    threshold: int,
    known_kinds: Collection[ActivityKind],
    high_risk_kinds: Collection[ActivityKind],
) -> float:
    """Score one account's window. Assumes threshold > 0 and known_kinds non-empty."""
    if aggregate.total_count <= 0:
        return 0.0

    base = aggregate.total_count / (threshold * 2)
    diversity = (aggregate.distinct_kind_count / len(known_kinds)) * DIVERSITY_WEIGHT
    risk_bonus = HIGH_RISK_BONUS if aggregate.kinds_present & frozenset(high_risk_kinds) else 0.0
    return min(base + diversity + risk_bonus, MAX_SCORE)


class SuspicionScorer:
    """Scorer bound to a validated threshold and kind sets."""

    def __init__(
        self,
        threshold: int,
        known_kinds: Collection[ActivityKind],
        high_risk_kinds: Collection[ActivityKind],
    ):
        if threshold <= 0:
            raise ConfigurationError(f"count threshold must be positive, got {threshold}")
        if not known_kinds:
            raise ConfigurationError("known activity kinds must not be empty")
        self.threshold = threshold
        self.known_kinds = frozenset(known_kinds)
        self.high_risk_kinds = frozenset(high_risk_kinds)

    def __call__(self, aggregate: WindowAggregate) -> float:
        return score(aggregate, self.threshold, self.known_kinds, self.high_risk_kinds)
