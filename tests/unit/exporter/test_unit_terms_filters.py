# tests/unit/exporter/test_unit_terms_filters.py - v1

from __future__ import annotations

from datetime import date

import pytest

from schedulebud.core.models import Task
from schedulebud.exporter.filters import filter_tasks
from schedulebud.exporter.models import ExportOptions
from schedulebud.exporter.terms import (
    academic_year,
    current_term,
    next_term,
    parse_term,
    previous_term,
    term_date_range,
    term_info,
)


class TestTerms:
    @pytest.mark.parametrize("term,year,expected", [
        ("Fall", 2024, (date(2024, 9, 1), date(2024, 12, 31))),
        ("Spring", 2024, (date(2024, 1, 1), date(2024, 5, 31))),
        ("Summer", 2024, (date(2024, 6, 1), date(2024, 8, 31))),
        ("Winter", 2024, (date(2023, 12, 1), date(2024, 1, 31))),
        ("Winter Quarter", 2024, (date(2024, 1, 1), date(2024, 3, 31))),
        ("Fall Quarter", 2024, (date(2024, 9, 1), date(2024, 12, 31))),
        ("fall", 2023, (date(2023, 9, 1), date(2023, 12, 31))),
    ])
    def test_term_date_range(self, term, year, expected):
        assert term_date_range(term, year) == expected

    def test_range_ends_on_last_day_of_month(self):
        assert term_date_range("Winter Quarter", 2023)[1] == date(2023, 3, 31)

    def test_unknown_term(self):
        with pytest.raises(ValueError, match="Autumn"):
            term_date_range("Autumn", 2024)

    def test_term_info(self):
        info = term_info("Winter")
        assert info.wraps_year
        assert info.contains_month(12) and info.contains_month(1)
        assert not info.contains_month(6)
        assert term_info("Spring Quarter").is_main_term

    @pytest.mark.parametrize("today,system,expected", [
        (date(2024, 3, 10), "semester", "Spring"),
        (date(2024, 7, 4), "semester", "Summer"),
        (date(2024, 10, 1), "semester", "Fall"),
        (date(2024, 2, 1), "quarter", "Winter Quarter"),
        (date(2024, 5, 1), "quarter", "Spring Quarter"),
    ])
    def test_current_term(self, today, system, expected):
        assert current_term(system, today) == expected

    def test_academic_year(self):
        assert academic_year(date(2024, 8, 15)) == 2024
        assert academic_year(date(2024, 3, 1)) == 2023

    @pytest.mark.parametrize("text,system,expected", [
        ("fall", "semester", "Fall"),
        ("Spring Quarter", "semester", "Spring Quarter"),
        ("winter 2024", "quarter", "Winter Quarter"),
        ("  SUMMER ", "semester", "Summer"),
        ("midterms", "semester", None),
    ])
    def test_parse_term(self, text, system, expected):
        assert parse_term(text, system) == expected

    def test_next_and_previous(self):
        assert next_term("Spring") == "Summer"
        assert next_term("Winter") == "Spring"
        assert previous_term("Spring") == "Winter"
        assert next_term("Summer Quarter") == "Fall Quarter"
        assert next_term("Unknown") == "Spring"


def _task(title, due=None, completed=False, class_id=None) -> Task:
    return Task(title=title, due_date=due, completed=completed, class_id=class_id)


class TestFilterTasks:
    TASKS = [
        _task("done", "2024-03-10", completed=True, class_id="c1"),
        _task("early", "2024-02-28", class_id="c1"),
        _task("start", "2024-03-01", class_id="c2"),
        _task("end", "2024-03-31"),
        _task("late", "2024-04-01", class_id="c1"),
        _task("undated", class_id="c2"),
    ]

    def _titles(self, **options) -> list[str]:
        return [t.title for t in filter_tasks(self.TASKS, ExportOptions(**options))]

    def test_no_filters(self):
        assert len(self._titles()) == 6

    def test_exclude_completed(self):
        assert "done" not in self._titles(include_completed=False)

    def test_date_range_inclusive_keeps_undated(self):
        titles = self._titles(start_date=date(2024, 3, 1), end_date=date(2024, 3, 31))
        assert titles == ["done", "start", "end", "undated"]

    def test_open_ended_range(self):
        assert self._titles(start_date=date(2024, 4, 1)) == ["late", "undated"]

    def test_class_allow_list_drops_unassigned(self):
        assert self._titles(class_ids=["c2"]) == ["start", "undated"]

    def test_filters_compose(self):
        titles = self._titles(
            include_completed=False, end_date=date(2024, 3, 31), class_ids=["c1"],
        )
        assert titles == ["early"]
