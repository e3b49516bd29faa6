"""
Outcome of one monitoring cycle and of each phase (detect, sweep) within it.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime

from .models import utc_now


@dataclass
class PhaseResult:
    name: str
    success: bool
    error: str | None = None
    duration_seconds: float = 0.0
    # Phase report (DetectionReport / SweepReport as a dict)
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CycleResult:
    """
    A cycle succeeds only if every phase it ran succeeded. A cycle that
    raised outside any phase has no phases and carries the error directly.
    """

    cycle_number: int
    started_at: datetime
    completed_at: datetime
    phases: list[PhaseResult] = field(default_factory=list)
    overall_success: bool = True
    error: str | None = None
    cycle_id: str | None = None

    @classmethod
    def from_phases(
        cls,
        cycle_number: int,
        started_at: datetime,
        phases: list[PhaseResult],
        cycle_id: str | None = None,
    ) -> "CycleResult":
        first_failure = next((p for p in phases if not p.success), None)
        return cls(
            cycle_number=cycle_number,
            started_at=started_at,
            completed_at=utc_now(),
            phases=list(phases),
            overall_success=first_failure is None,
            error=first_failure.error if first_failure else None,
            cycle_id=cycle_id,
        )

    @classmethod
    def crashed(cls, cycle_number: int, started_at: datetime, exc: BaseException) -> "CycleResult":
        return cls(
            cycle_number=cycle_number,
            started_at=started_at,
            completed_at=utc_now(),
            overall_success=False,
            error=f"{type(exc).__name__}: {exc}"[:500],
        )

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()

    @property
    def failed_phases(self) -> list[str]:
        return [p.name for p in self.phases if not p.success]

    @property
    def succeeded_phases(self) -> list[str]:
        return [p.name for p in self.phases if p.success]

    def phase(self, name: str) -> PhaseResult | None:
        return next((p for p in self.phases if p.name == name), None)

    def to_dict(self) -> dict:
        """JSON-ready form for logs and health output."""
        return {
            "cycle_number": self.cycle_number,
            "cycle_id": self.cycle_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration_seconds": self.duration_seconds,
            "overall_success": self.overall_success,
            "error": self.error,
            "phases": [p.to_dict() for p in self.phases],
            "failed_phases": self.failed_phases,
        }
