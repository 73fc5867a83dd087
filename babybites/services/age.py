"""
Age helpers.

Age in months is always calendar-month differencing: a baby born on
2024-01-15 is 0 months old on 2024-02-14 and 1 month old on 2024-02-15.
Every caller goes through
`age_in_months` so texture guidance never disagrees between endpoints.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Union

from babybites.config.constants import AGE_TEXTURE_GUIDELINES

DateLike = Union[str, date, datetime]


def parse_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def age_in_months(birthdate: DateLike, today: Optional[date] = None) -> int:
    born = parse_date(birthdate)
    today = today or date.today()
    months = (today.year - born.year) * 12 + (today.month - born.month)
    if today.day < born.day:
        months -= 1
    return max(months, 0)


def get_age_range(months: int) -> str:
    # under 6 months falls back to the first solids stage
    if months < 8:
        return "6-7"
    if months < 10:
        return "8-9"
    if months < 12:
        return "10-12"
    if months < 18:
        return "12-18"
    return "18-24"


def texture_guideline(months: int) -> str:
    return AGE_TEXTURE_GUIDELINES[get_age_range(months)]
