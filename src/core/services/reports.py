"""Dashboard and report calculations.

Pure functions over the session snapshot: totals for the home dashboard,
today's birthdays, and the filters of the financial and community reports.
Dates travel as ISO strings (`YYYY-MM-DD`); empty or malformed values never
match a date filter.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Sequence

from core.domain.models import (
    Category,
    PaymentMethod,
    Person,
    Population,
    Transaction,
    TransactionType,
)


@dataclass
class FinancialTotals:
    income: float = 0.0
    expense: float = 0.0

    @property
    def net(self) -> float:
        return self.income - self.expense


@dataclass
class DashboardSummary:
    totals: FinancialTotals
    people_count: int
    birthdays_today: list[Person]


@dataclass
class TransactionFilter:
    """Filters of the financial report; `None` means "all"."""

    start: str | None = None
    end: str | None = None
    type: TransactionType | None = None
    payment_method: PaymentMethod | None = None
    category_id: str | None = None
    person_id: str | None = None


@dataclass
class PeopleFilter:
    """Filters of the community report; `None` means "all"."""

    name: str = ""
    ministry_id: str | None = None
    population: Population | None = None
    baptized: bool | None = None


@dataclass
class CategoryTotal:
    category_id: str
    name: str
    type: TransactionType | None
    total: float
    count: int


def _parse_iso(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def financial_totals(transactions: Iterable[Transaction]) -> FinancialTotals:
    totals = FinancialTotals()
    for tx in transactions:
        if tx.type is TransactionType.INCOME:
            totals.income += tx.value
        elif tx.type is TransactionType.EXPENSE:
            totals.expense += tx.value
    return totals


def birthdays_on(people: Iterable[Person], day: date) -> list[Person]:
    """People whose birth month/day match `day` (year ignored)."""

    out: list[Person] = []
    for person in people:
        born = _parse_iso(person.birth_date)
        if born and born.month == day.month and born.day == day.day:
            out.append(person)
    return out


def dashboard_summary(
    *,
    transactions: Sequence[Transaction],
    people: Sequence[Person],
    today: date | None = None,
) -> DashboardSummary:
    return DashboardSummary(
        totals=financial_totals(transactions),
        people_count=len(people),
        birthdays_today=birthdays_on(people, today or date.today()),
    )


def filter_transactions(transactions: Iterable[Transaction], criteria: TransactionFilter) -> list[Transaction]:
    start = _parse_iso(criteria.start)
    end = _parse_iso(criteria.end)

    out: list[Transaction] = []
    for tx in transactions:
        if start or end:
            when = _parse_iso(tx.date)
            if when is None:
                continue
            if start and when < start:
                continue
            if end and when > end:
                continue
        if criteria.type and tx.type is not criteria.type:
            continue
        if criteria.payment_method and tx.payment_method is not criteria.payment_method:
            continue
        if criteria.category_id and tx.category_id != criteria.category_id:
            continue
        if criteria.person_id and tx.person_id != criteria.person_id:
            continue
        out.append(tx)
    return out


def filter_people(people: Iterable[Person], criteria: PeopleFilter) -> list[Person]:
    needle = criteria.name.strip().lower()
    out: list[Person] = []
    for person in people:
        if needle and needle not in person.full_name.lower() and needle not in person.identification:
            continue
        if criteria.ministry_id and person.ministry_id != criteria.ministry_id:
            continue
        if criteria.population and person.population_group is not criteria.population:
            continue
        if criteria.baptized is not None and person.is_baptized != criteria.baptized:
            continue
        out.append(person)
    return out


def category_breakdown(
    transactions: Iterable[Transaction],
    categories: Iterable[Category],
) -> list[CategoryTotal]:
    """Totals per category, largest first; unknown ids are grouped apart."""

    by_id = {c.id: c for c in categories}
    totals: dict[str, float] = defaultdict(float)
    counts: dict[str, int] = defaultdict(int)
    for tx in transactions:
        totals[tx.category_id] += tx.value
        counts[tx.category_id] += 1

    out: list[CategoryTotal] = []
    for category_id, total in totals.items():
        category = by_id.get(category_id)
        out.append(
            CategoryTotal(
                category_id=category_id,
                name=category.name if category else "Sin categoría",
                type=category.type if category else None,
                total=total,
                count=counts[category_id],
            )
        )
    out.sort(key=lambda item: (-item.total, item.name))
    return out
