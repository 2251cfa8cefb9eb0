"""Half-open time interval used for conflict comparison."""

from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True)
class TimeSlot:
    """
    [start, start + duration) in the single reference clock (naive UTC).

    Touching slots do not overlap: a lesson ending at 10:00 and another
    starting at 10:00 are compatible.
    """
    start: datetime
    duration_minutes: int

    def __post_init__(self) -> None:
        if self.duration_minutes <= 0:
            raise ValueError(f"duration_minutes must be positive, got {self.duration_minutes}")

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)

    def overlaps(self, other: "TimeSlot") -> bool:
        return self.start < other.end and other.start < self.end

    def __str__(self) -> str:
        return f"{self.start.isoformat()} +{self.duration_minutes}m"
