from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

MONTH_NAMES = (
    "January|February|March|April|May|June|July|August|September|October|November|December"
)
FULL_DATE_PATTERN = re.compile(rf"(?:{MONTH_NAMES})\s+\d{{1,2}},\s+\d{{4}}", re.IGNORECASE)


def format_long_date(value: date) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def day_name(value: date) -> str:
    return f"{value:%A}"


@dataclass(frozen=True)
class AnchoredDateRule:
    """Rewrite "<anchor>[,] [which is] <Month d, yyyy>" when the date is not the real one."""

    anchor: str
    offset_days: int
    pattern: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        pattern = re.compile(
            rf"\b({self.anchor}),?\s+(?:which\s+is\s+)?([a-zA-Z]+\s+\d{{1,2}},?\s+\d{{4}})",
            re.IGNORECASE,
        )
        object.__setattr__(self, "pattern", pattern)

    def apply(self, text: str, today: date) -> str:
        if self.anchor not in text.lower():
            return text
        expected = format_long_date(today + timedelta(days=self.offset_days))

        def replace(found: re.Match[str]) -> str:
            if found.group(2) == expected:
                return found.group(0)
            return f"{found.group(1)}, which is {expected}"

        return self.pattern.sub(replace, text)


@dataclass(frozen=True)
class DistantDateRule:
    """Swap dates far in the future for tomorrow's date when the reply talks about tomorrow."""

    horizon_days: int = 30

    def apply(self, text: str, today: date) -> str:
        if "tomorrow" not in text.lower():
            return text
        limit = today + timedelta(days=self.horizon_days)
        tomorrow_text = format_long_date(today + timedelta(days=1))

        def replace(found: re.Match[str]) -> str:
            try:
                mentioned = datetime.strptime(" ".join(found.group(0).split()), "%B %d, %Y").date()
            except ValueError:
                return found.group(0)
            return tomorrow_text if mentioned > limit else found.group(0)

        return FULL_DATE_PATTERN.sub(replace, text)


DATE_RULES = (
    AnchoredDateRule("tomorrow", offset_days=1),
    AnchoredDateRule("today", offset_days=0),
    DistantDateRule(),
)


def correct_date_references(text: str, today: date | None = None) -> str:
    reference_day = today or date.today()
    for rule in DATE_RULES:
        text = rule.apply(text, reference_day)
    return text
