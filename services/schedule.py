from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Sequence, Tuple

from services.errors import InvalidDateError, InvalidSlotError

DEFAULT_DAY_START_HOUR = 6
DEFAULT_DAY_END_HOUR = 22


def daily_slots(start_hour: int = DEFAULT_DAY_START_HOUR, end_hour: int = DEFAULT_DAY_END_HOUR) -> List[str]:
    """
    Hourly slot labels from start_hour to end_hour inclusive, e.g. "06:00".."22:00".
    """
    if not (0 <= start_hour <= end_hour <= 23):
        raise ValueError("Slot hours must satisfy 0 <= start <= end <= 23")
    return [f"{h:02d}:00" for h in range(start_hour, end_hour + 1)]


def parse_date(value) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidDateError("Invalid date. Use YYYY-MM-DD")


def ensure_not_past(day: date, today: date) -> None:
    if day < today:
        raise InvalidDateError(f"Cannot book past dates ({day.isoformat()})")


def normalize_slots(requested: Sequence[str], schedule: Sequence[str]) -> List[str]:
    """
    Validates a slot selection and returns it in schedule order.
    Any non-empty subset of the schedule is accepted; slots need not be contiguous.
    """
    if not requested:
        raise InvalidSlotError("At least one time slot is required")

    seen = set()
    unknown = []
    for slot in requested:
        if not isinstance(slot, str) or slot not in schedule:
            unknown.append(str(slot))
        elif slot in seen:
            raise InvalidSlotError(f"Duplicate time slot {slot}")
        else:
            seen.add(slot)
    if unknown:
        raise InvalidSlotError("Unknown time slots: " + ", ".join(unknown))

    return [s for s in schedule if s in seen]


def compute_amounts(price_per_hour: int, slot_count: int, fee_percent: int = 5) -> Tuple[int, int, int]:
    """
    Returns (total_amount, platform_fee, final_amount) in whole currency units.
    The fee is rounded half-up so 2.5 becomes 3.
    """
    total = int(price_per_hour) * int(slot_count)
    fee = int((Decimal(total) * Decimal(fee_percent) / Decimal(100)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return total, fee, total + fee
