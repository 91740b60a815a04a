from datetime import datetime, timedelta

from afisha.models import Event, Organizer
from afisha.services.filters import TZ, EventFilters, apply_filters

NOW = datetime(2025, 6, 11, 12, 0, tzinfo=TZ)


def event(event_id, days, category="concerts", price=None, title="Событие", **extra):
    return Event(
        id=event_id,
        title=title,
        category=category,
        date=NOW + timedelta(days=days),
        price=price,
        **extra,
    )


EVENTS = [
    event("today", 0, price=2000, title="Джаз в парке"),
    event("week", 3, category="education", title="Лекция"),
    event("month", 15, category="sports", price=1000, title="Забег"),
    event("later", 40, organizer=Organizer(id="b1", name="Филармония")),
]


def ids(events):
    return [e.id for e in events]


def test_defaults_are_inactive():
    assert not EventFilters().is_active
    assert EventFilters(search="джаз").is_active
    assert EventFilters(price="free").is_active
    assert EventFilters().server_category is None
    assert EventFilters(category="sports").server_category == "sports"


def test_date_filters():
    assert ids(apply_filters(EVENTS, EventFilters(date="today"), now=NOW)) == ["today"]
    assert ids(apply_filters(EVENTS, EventFilters(date="week"), now=NOW)) == ["today", "week"]
    assert ids(apply_filters(EVENTS, EventFilters(date="month"), now=NOW)) == ["today", "week", "month"]


def test_price_filters():
    assert ids(apply_filters(EVENTS, EventFilters(price="free"), now=NOW)) == ["week", "later"]
    assert ids(apply_filters(EVENTS, EventFilters(price="paid"), now=NOW)) == ["today", "month"]


def test_search_is_case_insensitive_and_covers_organizer():
    assert ids(apply_filters(EVENTS, EventFilters(search="ДЖАЗ"), now=NOW)) == ["today"]
    assert ids(apply_filters(EVENTS, EventFilters(search="филармония"), now=NOW)) == ["later"]


def test_filters_combine():
    filters = EventFilters(category="sports", price="paid", date="month")
    assert ids(apply_filters(EVENTS, filters, now=NOW)) == ["month"]
