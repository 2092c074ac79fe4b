# src/exporter/terms.py - v1
"""Academic term calendars for semester and quarter systems."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from typing import Literal

AcademicSystem = Literal["semester", "quarter"]


@dataclass(frozen=True)
class TermInfo:
    term: str
    start_month: int  # 1-12
    end_month: int
    is_main_term: bool

    @property
    def wraps_year(self) -> bool:
        return self.start_month > self.end_month

    def contains_month(self, month: int) -> bool:
        if self.wraps_year:
            return month >= self.start_month or month <= self.end_month
        return self.start_month <= month <= self.end_month


SEMESTER_TERMS: tuple[TermInfo, ...] = (
    TermInfo("Spring", 1, 5, True),
    TermInfo("Summer", 6, 8, False),
    TermInfo("Fall", 9, 12, True),
    TermInfo("Winter", 12, 1, False),    # intersession
)

QUARTER_TERMS: tuple[TermInfo, ...] = (
    TermInfo("Fall Quarter", 9, 12, True),
    TermInfo("Winter Quarter", 1, 3, True),
    TermInfo("Spring Quarter", 4, 6, True),
    TermInfo("Summer Quarter", 7, 9, False),
)


def system_of(term: str) -> AcademicSystem:
    return "quarter" if "quarter" in term.lower() else "semester"


def terms_for(system: AcademicSystem) -> tuple[TermInfo, ...]:
    return QUARTER_TERMS if system == "quarter" else SEMESTER_TERMS


def term_info(term: str, system: AcademicSystem | None = None) -> TermInfo | None:
    for info in terms_for(system or system_of(term)):
        if info.term.lower() == term.strip().lower():
            return info
    return None


def term_date_range(
    term: str, year: int, system: AcademicSystem | None = None
) -> tuple[date, date]:
    """First day of the start month through the last day of the end month.

    The semester Winter intersession of ``year`` starts in December of the
    previous year; other wrapping terms end in the following year.

    Raises:
        ValueError: Unknown term.
    """
    info = term_info(term, system)
    if info is None:
        raise ValueError(f"Invalid term: {term!r}")
    start_year = end_year = year
    if info.wraps_year:
        if info.term == "Winter":
            start_year = year - 1
        else:
            end_year = year + 1
    last_day = calendar.monthrange(end_year, info.end_month)[1]
    return date(start_year, info.start_month, 1), date(end_year, info.end_month, last_day)


def current_term(system: AcademicSystem = "semester", today: date | None = None) -> str:
    today = today or date.today()
    for info in terms_for(system):
        if info.contains_month(today.month):
            return info.term
    return "Fall Quarter" if system == "quarter" else "Fall"


def academic_year(today: date | None = None) -> int:
    """Year the academic year started in (Aug-Dec belongs to the new year)."""
    today = today or date.today()
    return today.year if today.month >= 8 else today.year - 1


def parse_term(text: str, default_system: AcademicSystem = "semester") -> str | None:
    """Flexible term parsing ("fall", "Spring Quarter", "winter 2024")."""
    normalised = text.strip().lower()
    for info in (*SEMESTER_TERMS, *QUARTER_TERMS):
        if info.term.lower() == normalised:
            return info.term
    for season in ("fall", "winter", "spring", "summer"):
        if season in normalised:
            name = season.capitalize()
            return f"{name} Quarter" if default_system == "quarter" else name
    return None


def next_term(term: str, system: AcademicSystem | None = None) -> str:
    terms = terms_for(system or system_of(term))
    names = [t.term for t in terms]
    if term not in names:
        return names[0]
    return names[(names.index(term) + 1) % len(names)]


def previous_term(term: str, system: AcademicSystem | None = None) -> str:
    terms = terms_for(system or system_of(term))
    names = [t.term for t in terms]
    if term not in names:
        return names[-1]
    return names[names.index(term) - 1]
