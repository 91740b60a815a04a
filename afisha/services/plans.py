"""Матрица тарифов бизнеса."""

from __future__ import annotations

from typing import Final

from afisha.errors import FeatureLockedError
from afisha.models import Business, Tier


PLAN_TITLES: Final[dict[Tier, str]] = {
    Tier.FREE: "Free",
    Tier.LITE: "Lite",
    Tier.PREMIUM: "Premium",
}

# Публикаций (события + акции) в месяц.
POSTS_LIMITS: Final[dict[Tier, int]] = {
    Tier.FREE: 3,
    Tier.LITE: 10,
    Tier.PREMIUM: 999,
}

# Минимальный тариф для функции.
FEATURE_TIERS: Final[dict[str, Tier]] = {
    "video_upload": Tier.LITE,
    "stats": Tier.LITE,
    "ai_image_ideas": Tier.PREMIUM,
    "team": Tier.PREMIUM,
    "banner": Tier.PREMIUM,
}

FEATURE_TITLES: Final[dict[str, str]] = {
    "video_upload": "Загрузка видео",
    "stats": "Статистика",
    "ai_image_ideas": "Идеи для изображений",
    "team": "Команда",
    "banner": "Реклама",
}

_ORDER: Final[list[Tier]] = [Tier.FREE, Tier.LITE, Tier.PREMIUM]


def tier_at_least(tier: Tier, required: Tier) -> bool:
    return _ORDER.index(tier) >= _ORDER.index(required)


def has_feature(tier: Tier, feature: str) -> bool:
    return tier_at_least(tier, FEATURE_TIERS[feature])


def require_feature(tier: Tier, feature: str) -> None:
    required = FEATURE_TIERS[feature]
    if not tier_at_least(tier, required):
        raise FeatureLockedError(
            f"{FEATURE_TITLES[feature]} доступно на тарифе {PLAN_TITLES[required]}",
            feature=feature,
            required_tier=required.value,
        )


def posts_limit(tier: Tier) -> int:
    return POSTS_LIMITS[tier]


def posts_remaining(business: Business) -> int:
    return max(posts_limit(business.tier) - business.posts_this_month, 0)


def require_post_quota(business: Business) -> None:
    if posts_remaining(business) <= 0:
        limit = posts_limit(business.tier)
        raise FeatureLockedError(
            f"Лимит публикаций исчерпан: {limit} из {limit}. Перейдите на тариф выше",
            feature="posts",
            required_tier=_next_tier(business.tier).value,
        )


def _next_tier(tier: Tier) -> Tier:
    idx = _ORDER.index(tier)
    return _ORDER[min(idx + 1, len(_ORDER) - 1)]
