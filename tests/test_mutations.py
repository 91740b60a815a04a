import json

import pytest

from afisha.errors import (
    ApiError,
    FeatureLockedError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from afisha.models import AuthResult
from afisha.services.cache import QueryKey
from afisha.services.queries import USER_KEY
from afisha.storage import TOKEN_KEY, USER_KEY as STORED_USER_KEY


async def login(client, email="aida@example.kz", password="secret1"):
    return await client.mutations.login(email, password)


async def test_login_updates_session_and_user_cache_together(client, storage):
    result = await login(client)

    assert result.user.id == "u1"
    assert client.session.token == "token-aida"
    assert client.session.user.email == "aida@example.kz"
    assert client.cache.peek(USER_KEY).data.id == "u1"
    assert (await client.load(client.queries.current_user())).id == "u1"
    assert storage.snapshot()[TOKEN_KEY] == "token-aida"
    assert json.loads(storage.snapshot()[STORED_USER_KEY])["id"] == "u1"


async def test_failed_login_changes_nothing(client, storage, backend):
    with pytest.raises(UnauthorizedError, match="Неверный email или пароль"):
        await login(client, password="wrong")

    assert backend.calls["POST /auth/login"] == 1
    assert storage.writes == 0
    assert client.session.token is None
    assert client.session.user is None
    assert USER_KEY not in client.cache


async def test_login_validation_skips_network(client, backend):
    with pytest.raises(ValidationError) as exc_info:
        await client.mutations.login("  ", "")

    assert exc_info.value.fields == ("email", "password")
    assert backend.calls["POST /auth/login"] == 0


async def test_register_requires_long_password(client, backend):
    with pytest.raises(ValidationError):
        await client.mutations.register("new@example.kz", "123")
    assert backend.calls["POST /auth/register"] == 0


async def test_register_conflict_surfaces_backend_message(client):
    with pytest.raises(ApiError, match="Пользователь уже существует") as exc_info:
        await client.mutations.register("aida@example.kz", "secret1")
    assert exc_info.value.status == 409
    assert not client.session.is_authenticated


async def test_register_signs_in(client):
    result = await client.mutations.register("new@example.kz", "secret9", name="Новый")
    assert result.token == "token-new"
    assert client.session.user_id == "u9"


async def test_logout_hides_previous_viewer_data(client, backend):
    await login(client)
    favorite = client.queries.favorite("e1")
    assert (await client.load(favorite)).is_favorite
    assert [e.id for e in await client.load(client.queries.favorite_events())] == ["e1"]

    await client.mutations.logout()

    assert client.session.state.value == "anonymous"
    assert client.cache.peek(USER_KEY).data is None
    assert client.cache.peek(favorite.key).data is None
    assert client.cache.peek(QueryKey.of("favorites", "u1")).data is None

    anonymous = client.queries.favorite("e1")
    assert not anonymous.enabled
    assert await client.load(anonymous) is None
    assert backend.calls["GET /favorites/check"] == 1


async def test_next_viewer_does_not_see_previous_viewer_data(client):
    await login(client)
    communities = await client.load(client.queries.communities(city_id="1"))
    assert communities[0].is_member

    await client.mutations.logout()
    await login(client, "marat@example.kz", "secret2")

    communities = await client.load(client.queries.communities(city_id="1"))
    assert not communities[0].is_member
    assert not (await client.load(client.queries.favorite("e1"))).is_favorite


async def test_toggle_twice_restores_state_with_two_calls(client, backend):
    await login(client)
    favorite = client.queries.favorite("e2")
    assert not (await client.load(favorite)).is_favorite

    assert await client.mutations.toggle_favorite("e2") is True
    assert client.cache.peek(favorite.key).data.is_favorite
    assert await client.mutations.toggle_favorite("e2") is False

    assert not client.cache.peek(favorite.key).data.is_favorite
    assert backend.calls["POST /favorites/toggle"] == 2
    assert "e2" not in backend.favorites["u1"]


async def test_toggle_requires_login(client, backend):
    with pytest.raises(ValidationError):
        await client.mutations.toggle_favorite("e1")
    assert backend.calls["POST /favorites/toggle"] == 0


async def test_rejected_token_signs_out(client, storage):
    await login(client)
    # сервер больше не принимает токен
    await client.session.set(AuthResult(token="expired", user=client.session.user))

    with pytest.raises(UnauthorizedError):
        await client.mutations.toggle_favorite("e1")

    assert not client.session.is_authenticated
    assert TOKEN_KEY not in storage.snapshot()


async def test_join_community_patches_cached_lists(client):
    await login(client, "marat@example.kz", "secret2")
    query = client.queries.communities(city_id="1")
    before = (await client.load(query))[0]
    assert not before.is_member

    await client.mutations.join_community("c1")

    after = client.cache.peek(query.key).data[0]
    assert after.is_member
    assert after.members_count == before.members_count + 1


async def test_publication_quota_blocks_before_network(client, backend):
    await login(client, "marat@example.kz", "secret2")
    backend.posts_this_month = 3
    business = await client.load(client.queries.my_business())

    payload = {"title": "Открытие", "category": "leisure", "date": "2030-01-01T19:00:00+05:00"}
    with pytest.raises(FeatureLockedError) as exc_info:
        await client.mutations.create_event(payload, business=business)

    assert exc_info.value.required_tier == "lite"
    assert backend.calls["POST /business/events"] == 0


async def test_create_event_validates_required_fields(client):
    await login(client, "marat@example.kz", "secret2")
    with pytest.raises(ValidationError) as exc_info:
        await client.mutations.create_event({"title": "Без даты", "category": "other"})
    assert exc_info.value.fields == ("date",)


async def test_respond_to_collaboration_patches_cache(client, backend):
    await login(client)
    query = client.queries.collaborations()
    before = (await client.load(query))[0]
    assert not before.has_responded

    with pytest.raises(ValidationError):
        await client.mutations.respond_to_collaboration("k1", "   ")
    assert backend.calls["POST /collaborations/k1/respond"] == 0

    await client.mutations.respond_to_collaboration("k1", "Готов снять ваше событие")

    after = client.cache.peek(query.key).data[0]
    assert after.has_responded
    assert after.response_count == before.response_count + 1
    assert backend.responses["k1"] == {"u1"}


async def test_approve_event_refreshes_moderation_queue(client, backend):
    await login(client, "lena@example.kz", "secret3")
    pending = client.queries.admin_events("pending")
    assert [e.id for e in await client.load(pending)] == ["e4"]

    await client.mutations.approve_event("e4")

    # устаревший список отдаётся сразу, свежий приходит после перезагрузки
    assert [e.id for e in await client.load(pending)] == ["e4"]
    await client.cache.settle(pending.key)
    assert client.cache.peek(pending.key).data == []
    assert backend.calls["GET /admin/events"] == 2


async def test_update_event_writes_answer_and_marks_lists_stale(client, backend):
    await login(client, "marat@example.kz", "secret2")
    detail = client.queries.event("e1")
    events = client.queries.events(city_id="1")
    await client.load(detail)
    await client.load(events)

    event = await client.mutations.update_event("e1", {"title": "Джаз под открытым небом"})

    assert event.title == "Джаз под открытым небом"
    assert client.cache.peek(detail.key).data.title == "Джаз под открытым небом"
    assert client.cache.peek(events.key).is_stale
    assert backend.calls["GET /events/e1"] == 1
    assert backend.calls["PUT /business/events/e1"] == 1


async def test_delete_event_forgets_detail_and_favorite(client, backend):
    await login(client, "marat@example.kz", "secret2")
    detail = client.queries.event("e1")
    favorite = client.queries.favorite("e1")
    await client.load(detail)
    await client.load(favorite)

    await client.mutations.delete_event("e1")

    assert detail.key not in client.cache
    assert favorite.key not in client.cache
    assert "e1" not in [e["id"] for e in backend.events]
    assert "e1" not in backend.favorites["u1"]


async def test_failed_update_leaves_cache_untouched(client, backend):
    await login(client)
    detail = client.queries.event("e1")
    events = client.queries.events(city_id="1")
    await client.load(detail)
    await client.load(events)

    with pytest.raises(ForbiddenError, match="Это не ваша публикация"):
        await client.mutations.update_event("e1", {"title": "Чужое"})
    with pytest.raises(NotFoundError, match="Публикация не найдена"):
        await client.mutations.delete_event("missing")

    assert client.cache.peek(detail.key).data.title == "Джазовый вечер"
    assert not client.cache.peek(events.key).is_stale
    assert client.session.is_authenticated
    assert backend.events[0]["title"] == "Джазовый вечер"


async def test_pause_and_delete_own_promotion(client, backend):
    await login(client, "marat@example.kz", "secret2")
    promotions = client.queries.promotions(city_id="1")
    await client.load(promotions)

    promotion = await client.mutations.update_promotion("p1", {"isActive": False})
    assert not promotion.is_active
    assert client.cache.peek(promotions.key).is_stale

    await client.cache.refetch(promotions)
    assert [p.is_active for p in client.cache.peek(promotions.key).data] == [False, True]

    await client.mutations.delete_promotion("p1")
    assert [p["id"] for p in backend.promotions] == ["p2"]

    with pytest.raises(ForbiddenError):
        await client.mutations.delete_promotion("p2")


async def test_verify_business_refreshes_review_list(client, backend):
    await login(client, "lena@example.kz", "secret3")
    review = client.queries.admin_businesses(verified=False)
    assert [b.id for b in await client.load(review)] == ["b1"]

    await client.mutations.verify_business("b1")

    assert client.cache.peek(review.key).is_stale
    await client.load(review)
    await client.cache.settle(review.key)
    assert client.cache.peek(review.key).data == []
    assert backend.params["/admin/businesses"] == {"verified": "false"}


async def test_moderate_promotion_updates_admin_and_public_lists(client, backend):
    await login(client, "lena@example.kz", "secret3")
    admin_list = client.queries.admin_promotions()
    public = client.queries.promotions(city_id="1", active=True)
    await client.load(admin_list)
    assert [p.id for p in await client.load(public)] == ["p1", "p2"]

    promotion = await client.mutations.moderate_promotion("p2", False)

    assert not promotion.is_active
    assert client.cache.peek(admin_list.key).is_stale
    assert client.cache.peek(public.key).is_stale
    await client.cache.refetch(public)
    assert [p.id for p in client.cache.peek(public.key).data] == ["p1"]


async def test_moderation_requires_moderator_role(client):
    await login(client)
    with pytest.raises(ForbiddenError, match="Доступ запрещен"):
        await client.mutations.verify_business("b1")
    assert client.session.is_authenticated


async def test_toggle_answer_serves_next_favorite_check(client, backend, clock):
    await login(client)
    await client.mutations.toggle_favorite("e2")

    assert (await client.load(client.queries.favorite("e2"))).is_favorite
    assert backend.calls["GET /favorites/check"] == 0

    clock.advance(client.config.LIST_STALE_TIME)
    await client.load(client.queries.favorite("e2"))
    await client.cache.settle(client.queries.favorite("e2").key)
    assert backend.calls["GET /favorites/check"] == 1
