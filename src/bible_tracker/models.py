"""Data classes for the reading tracker domain model."""
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ScheduleEntry:
    date: str
    portion: str
    weekday: str

    @classmethod
    def from_dict(cls, data: dict) -> "ScheduleEntry":
        weekday = data.get("day") or data.get("weekday") or ""
        return cls(date=str(data["date"]), portion=data["portion"], weekday=weekday)

    def to_dict(self) -> dict:
        return {"date": self.date, "portion": self.portion, "day": self.weekday}


@dataclass(frozen=True)
class CompletionRecord:
    user_name: str
    date: str
    portion: str
    day: str
    completed_on: str
    catchup: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "CompletionRecord":
        """Build a record from its stored camelCase form."""
        return cls(
            user_name=data["userName"],
            date=data["date"],
            portion=data.get("portion", ""),
            day=data.get("day", ""),
            completed_on=data.get("completedOn", ""),
            catchup=bool(data.get("catchup", False)),
        )

    def to_dict(self) -> dict:
        return {
            "userName": self.user_name,
            "date": self.date,
            "portion": self.portion,
            "day": self.day,
            "completedOn": self.completed_on,
            "catchup": self.catchup,
        }

    @property
    def kind(self) -> str:
        return "Catch-up" if self.catchup else "Regular"


@dataclass
class CompletionStats:
    total: int
    completed: int
    remaining: int
    percentage: int
    streak: int


@dataclass
class WeeklyRow:
    user_name: str
    completed: int
    missed: int
    rate: int


@dataclass
class WeeklyReport:
    year: int
    week: int
    start: str
    end: str
    readings: list[ScheduleEntry] = field(default_factory=list)
    rows: list[WeeklyRow] = field(default_factory=list)


@dataclass
class AdminAggregate:
    total_participants: int
    total_completions: int
    avg_completion_percent: int
    today_completions: int


@dataclass
class UserSummary:
    user_name: str
    completed: int
    percentage: int
    streak: int
    recent: list[CompletionRecord] = field(default_factory=list)
