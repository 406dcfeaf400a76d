import calendar
import math
import datetime
import re
from typing import Iterable, Optional

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_LEADING_FLOAT = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


class MathTools:
    """Provides essential mathematical utilities for workout calculations."""

    EPL_COEFF: float = 0.0333

    @staticmethod
    def clamp(value: float, min_value: float, max_value: float) -> float:
        """Clamp ``value`` to the inclusive range [min_value, max_value]."""
        if min_value > max_value:
            raise ValueError("min_value must not exceed max_value")
        return max(min_value, min(value, max_value))

    @classmethod
    def epley_1rm(cls, weight: float, reps: int, factor: float = 1.0) -> float:
        """Return the estimated one-rep max using the Epley formula."""
        if reps < 0:
            raise ValueError("reps must be non-negative")
        rep_term = min(reps, 8)
        return weight * (1 + cls.EPL_COEFF * rep_term) * factor

    @staticmethod
    def volume(sets: Iterable[tuple[int, float]]) -> float:
        """Compute training volume as the sum of reps times weight."""
        vol = 0.0
        for reps, weight in sets:
            vol += reps * weight
        return vol

    @staticmethod
    def leading_int(text: str) -> Optional[int]:
        """Parse the integer prefix of ``text`` ("12kg" -> 12), or None."""
        match = _LEADING_INT.match(text)
        return int(match.group(1)) if match else None

    @staticmethod
    def leading_float(text: str) -> Optional[float]:
        """Parse the decimal prefix of ``text`` ("42.5 kg" -> 42.5), or None."""
        match = _LEADING_FLOAT.match(text)
        if not match:
            return None
        value = float(match.group(1))
        return value if math.isfinite(value) else None

    @staticmethod
    def days_until(target: datetime.date, today: datetime.date | None = None) -> int:
        """Whole days from ``today`` to ``target``, rounded up."""
        today = today or datetime.date.today()
        now = datetime.datetime.combine(today, datetime.time())
        end = datetime.datetime.combine(target, datetime.time())
        return math.ceil((end - now).total_seconds() / 86400)

    @staticmethod
    def add_months(date: datetime.date, months: int = 1) -> datetime.date:
        """Shift ``date`` by calendar months, clamping to the month's last day."""
        index = date.month - 1 + months
        year, month = date.year + index // 12, index % 12 + 1
        day = min(date.day, calendar.monthrange(year, month)[1])
        return datetime.date(year, month, day)


class TimeFormatter:
    @staticmethod
    def clock(total_seconds: int) -> str:
        """Render seconds as ``m:ss``."""
        mins, secs = divmod(max(int(total_seconds), 0), 60)
        return f"{mins}:{secs:02d}"

    @staticmethod
    def minutes(total_seconds: int) -> int:
        return max(int(total_seconds), 0) // 60


class WeightConverter:
    """Utility for converting between kg and lb."""

    KG_TO_LB = 2.20462

    @staticmethod
    def kg_to_lb(kg: float) -> float:
        return round(kg * WeightConverter.KG_TO_LB, 2)

    @staticmethod
    def lb_to_kg(lb: float) -> float:
        return round(lb / WeightConverter.KG_TO_LB, 2)
