"""Фильтры ленты событий: поиск, категория, дата, цена."""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from afisha.models import Event

# Казахстан живёт в едином поясе UTC+5 с марта 2024
TZ = timezone(timedelta(hours=5), "Asia/Almaty")

DATE_FILTERS = {
    "all": "Все",
    "today": "Сегодня",
    "week": "На неделе",
    "month": "В этом месяце",
}

PRICE_FILTERS = {
    "all": "Любая цена",
    "free": "Бесплатно",
    "paid": "Платно",
}


@dataclass(frozen=True)
class EventFilters:
    search: str = ""
    category: str = "all"
    date: str = "all"
    price: str = "all"

    @property
    def is_active(self) -> bool:
        return bool(self.search) or any(
            value != "all" for value in (self.category, self.date, self.price)
        )

    @property
    def server_category(self) -> str | None:
        return None if self.category == "all" else self.category


def _match_date(event: Event, mode: str, now: datetime) -> bool:
    if mode == "all":
        return True
    local = event.date.astimezone(TZ)
    today = now.astimezone(TZ).replace(hour=0, minute=0, second=0, microsecond=0)
    if mode == "today":
        return local.date() == today.date()
    if mode == "week":
        return today <= local < today + timedelta(days=7)
    if mode == "month":
        return local.year == today.year and local.month == today.month
    return True


def _match_search(event: Event, search: str) -> bool:
    needle = search.strip().lower()
    if not needle:
        return True
    haystack = [event.title, event.description, event.location, event.address, *event.tags]
    if event.organizer:
        haystack.append(event.organizer.name)
    return any(needle in (s or "").lower() for s in haystack)


def apply_filters(events: list[Event], filters: EventFilters, now: datetime | None = None) -> list[Event]:
    now = now or datetime.now(TZ)
    result = []
    for event in events:
        if filters.category != "all" and event.category != filters.category:
            continue
        if filters.price == "free" and not event.is_free:
            continue
        if filters.price == "paid" and event.is_free:
            continue
        if not _match_date(event, filters.date, now):
            continue
        if not _match_search(event, filters.search):
            continue
        result.append(event)
    return result
