"""
Property-based tests for scorer invariants using Hypothesis.

- score is 0 with no activity
- score stays within [0, 1]
- score is non-decreasing in volume, in kind diversity, and in the presence
  of high-risk kinds
"""

from hypothesis import given
from hypothesis import strategies as st

from sentinel.models import ActivityKind, WindowAggregate
from sentinel.scoring import score

ALL_KINDS = sorted(ActivityKind, key=lambda k: k.value)
HIGH_RISK = frozenset({ActivityKind.DELETE, ActivityKind.TRANSACTION})
LOW_RISK = [k for k in ALL_KINDS if k not in HIGH_RISK]

kind_sets = st.frozensets(st.sampled_from(ALL_KINDS))
thresholds = st.integers(min_value=1, max_value=1000)
counts = st.integers(min_value=0, max_value=100_000)


def agg(total: int, kinds: frozenset) -> WindowAggregate:
    return WindowAggregate("acct", total, kinds)


@given(kinds=kind_sets, threshold=thresholds)
def test_no_activity_scores_zero(kinds, threshold):
    assert score(agg(0, kinds), threshold, ALL_KINDS, HIGH_RISK) == 0.0


@given(total=counts, kinds=kind_sets, threshold=thresholds)
def test_score_bounded(total, kinds, threshold):
    s = score(agg(total, kinds), threshold, ALL_KINDS, HIGH_RISK)
    assert 0.0 <= s <= 1.0


@given(
    total=counts,
    extra=st.integers(min_value=0, max_value=1000),
    kinds=kind_sets,
    threshold=thresholds,
)
def test_monotone_in_total_count(total, extra, kinds, threshold):
    lower = score(agg(total, kinds), threshold, ALL_KINDS, HIGH_RISK)
    higher = score(agg(total + extra, kinds), threshold, ALL_KINDS, HIGH_RISK)
    assert higher >= lower


@given(
    total=st.integers(min_value=1, max_value=100_000),
    kinds=kind_sets,
    added=st.sampled_from(LOW_RISK),
    threshold=thresholds,
)
def test_monotone_in_distinct_kinds(total, kinds, added, threshold):
    lower = score(agg(total, kinds), threshold, ALL_KINDS, HIGH_RISK)
    higher = score(agg(total, kinds | {added}), threshold, ALL_KINDS, HIGH_RISK)
    assert higher >= lower


@given(
    total=st.integers(min_value=1, max_value=100_000),
    kinds=st.frozensets(st.sampled_from(LOW_RISK)),
    threshold=thresholds,
)
def test_monotone_in_high_risk_presence(total, kinds, threshold):
    """Same diversity, one kind swapped for a high-risk one, never scores lower."""
    base = kinds | {ActivityKind.VIEW}
    risky = (base - {ActivityKind.VIEW}) | {ActivityKind.DELETE}
    lower = score(agg(total, base), threshold, ALL_KINDS, HIGH_RISK)
    higher = score(agg(total, risky), threshold, ALL_KINDS, HIGH_RISK)
    assert higher >= lower
