from .reply import (
    main_kb,
    cancel_kb,
)
from .inline import (
    back_kb,
    cities_kb,
    events_kb,
    filter_options_kb,
    event_detail_kb,
    favorites_kb,
    community_menu_kb,
    communities_kb,
    community_kb,
    collaborations_kb,
    collaboration_kb,
    auth_kb,
    profile_kb,
    business_kb,
    categories_kb,
    my_promotions_kb,
    moderation_kb,
    admin_businesses_kb,
    admin_promotions_kb,
)

__all__ = [
    "main_kb",
    "cancel_kb",
    "back_kb",
    "cities_kb",
    "events_kb",
    "filter_options_kb",
    "event_detail_kb",
    "favorites_kb",
    "community_menu_kb",
    "communities_kb",
    "community_kb",
    "collaborations_kb",
    "collaboration_kb",
    "auth_kb",
    "profile_kb",
    "business_kb",
    "categories_kb",
    "my_promotions_kb",
    "moderation_kb",
    "admin_businesses_kb",
    "admin_promotions_kb",
]
