from datetime import datetime

from afisha.models import Business, Community, Event, ImageIdea, ModerationStatus, Promotion, Tier
from afisha.services.filters import TZ
from afisha.utils import formatting


def make_event(**overrides):
    fields = dict(
        id="e1",
        title="Рок <ночь>",
        category="concerts",
        date=datetime(2025, 3, 8, 19, 0, tzinfo=TZ),
        time="19:00",
        location="Арена",
        address="пр. Абая, 1",
        price=5000,
    )
    fields.update(overrides)
    return Event(**fields)


def test_format_date_in_russian():
    assert formatting.format_date(datetime(2025, 3, 8, 19, 0, tzinfo=TZ)) == "8 марта, сб"
    assert formatting.format_date(datetime(2025, 12, 31, tzinfo=TZ), with_weekday=False) == "31 декабря"


def test_event_card_escapes_and_shows_details():
    text = formatting.event_card(make_event(), is_favorite=True)

    assert "<b>Рок &lt;ночь&gt;</b>" in text
    assert "🎵 Концерты" in text
    assert "8 марта, сб, 19:00" in text
    assert "📍 Арена, пр. Абая, 1" in text
    assert "от 5 000 ₸" in text
    assert "❤️ В избранном" in text


def test_event_card_shows_moderation_status():
    text = formatting.event_card(make_event(status=ModerationStatus.PENDING))
    assert "На модерации" in text
    assert "В избранном" not in text


def test_empty_events_list():
    assert "Событий не найдено" in formatting.events_list([], "🎭 Афиша")


def test_business_dashboard_shows_quota():
    business = Business(
        id="b1", owner_id="u2", name="Кофейня", category="cafe", tier=Tier.FREE, posts_this_month=2
    )
    text = formatting.business_dashboard(business)
    assert "Тариф: Free" in text
    assert "2 из 3" in text
    assert "Осталось: 1" in text


def test_promotion_and_community_cards():
    promotion = Promotion(
        id="p1",
        business_id="b1",
        title="Кофе в подарок",
        valid_until=datetime(2025, 5, 1, tzinfo=TZ),
        discount="-20%",
    )
    community = Community(id="c1", name="Бегуны", members_count=12, is_member=True)

    assert "до 1 мая" in formatting.promotion_card(promotion)
    assert "🔥 -20%" in formatting.promotion_card(promotion)
    assert "Участников: 12" in formatting.community_card(community)
    assert "Вы участник" in formatting.community_card(community)


def test_locked_ideas_card_names_premium():
    text = formatting.locked_feature_card("ai_image_ideas")
    assert "Идеи для изображений" in text
    assert "Premium" in text


def test_ideas_text():
    ideas = [ImageIdea(id=1, title="Закат", prompt="sunset & mountains")]
    text = formatting.ideas_text(ideas)
    assert "1. Закат" in text
    assert "sunset &amp; mountains" in text


def test_promotions_overview_marks_hidden():
    promotions = [
        Promotion(id="p1", business_id="b1", title="Кофе", valid_until=datetime(2025, 5, 1, tzinfo=TZ)),
        Promotion(
            id="p2",
            business_id="b1",
            title="Десерт",
            valid_until=datetime(2025, 5, 2, tzinfo=TZ),
            is_active=False,
        ),
    ]

    text = formatting.promotions_overview(promotions, "Мои акции")

    assert "1. 🟢 Кофе · до 1 мая" in text
    assert "2. ⚪️ Десерт" in text
    assert formatting.promotions_overview([], "Мои акции").endswith("Акций пока нет.")


def test_businesses_review_lists_only_unverified():
    businesses = [
        Business(id="b1", owner_id="u2", name="Кофейня", category="cafe", tier=Tier.LITE, owner_name="Марат"),
        Business(id="b2", owner_id="u5", name="Книжный", category="shop", is_verified=True),
    ]

    text = formatting.businesses_review(businesses)

    assert "1. Кофейня · Lite · 👤 Марат" in text
    assert "Книжный" not in text
    assert "Все бизнесы проверены" in formatting.businesses_review(businesses[1:])
