import pytest

from conftest import LONG_LIVED_EXPIRES_IN, NOW_MS, media
from creator_match.errors import AuthError, NotFoundError, PersistenceError, TokenExpiredError, ValidationError
from creator_match.schemas.social import ConnectionStatus, SocialAccountLink


def connected_link(user_id="user-1", expires_at=NOW_MS + 1000):
    return SocialAccountLink(
        user_id=user_id,
        external_id="17841400000",
        username="maria.creates",
        access_token="long-token",
        token_issued_at=NOW_MS - 1000,
        token_expires_at=expires_at,
        status=ConnectionStatus.connected,
    )


async def test_connect_persists_link_and_metrics(connect_service, fake_ig, store):
    fake_ig.items = [
        media("1", likes=100, comments=10, media_type="VIDEO"),
        media("2", likes=60, comments=6),
    ]
    fake_ig.insight_views = {"1": 1200}

    result = await connect_service.connect("AQD-code", "user-1")

    link = store.links["user-1"]
    assert link.status == ConnectionStatus.connected
    assert link.access_token == "long-token"
    assert link.username == "maria.creates"
    assert link.token_issued_at == NOW_MS
    assert link.token_expires_at == NOW_MS + LONG_LIVED_EXPIRES_IN * 1000

    snapshot = store.metrics["user-1"]
    assert snapshot == result.snapshot
    assert snapshot.followers == 2000
    assert snapshot.avg_likes == 80
    assert snapshot.avg_comments == 8
    assert snapshot.engagement_rate == 4.4
    assert snapshot.avg_views == 1200


async def test_connect_without_metrics_when_media_fails(connect_service, fake_ig, store):
    fake_ig.reject_all_media = True

    result = await connect_service.connect("AQD-code", "user-1")

    assert result.snapshot is None
    assert store.links["user-1"].status == ConnectionStatus.connected
    assert "user-1" not in store.metrics


async def test_long_lived_failure_persists_nothing(connect_service, fake_ig, store):
    fake_ig.reject_long_lived = True
    with pytest.raises(AuthError):
        await connect_service.connect("AQD-code", "user-1")
    assert store.links == {}
    assert fake_ig.calls("/me") == []


async def test_rejected_code_persists_nothing(connect_service, fake_ig, store):
    fake_ig.rejected_codes.add("bad")
    with pytest.raises(AuthError):
        await connect_service.connect("bad", "user-1")
    assert store.links == {}
    assert fake_ig.calls("/access_token") == []


async def test_persist_failure_propagates(connect_service, store):
    store.fail_writes = True
    with pytest.raises(PersistenceError):
        await connect_service.connect("AQD-code", "user-1")


@pytest.mark.parametrize("code,user_id", [("", "user-1"), ("code", None), ("code", "  ")])
async def test_connect_validates_input(connect_service, fake_ig, code, user_id):
    with pytest.raises(ValidationError):
        await connect_service.connect(code, user_id)
    assert fake_ig.requests == []


async def test_refresh_metrics_replaces_snapshot(connect_service, fake_ig, store):
    store.links["user-1"] = connected_link()
    fake_ig.items = [media("1", likes=40, comments=0)]

    snapshot = await connect_service.refresh_metrics("user-1")

    assert store.metrics["user-1"] == snapshot
    assert snapshot.avg_likes == 40
    assert snapshot.engagement_rate == 2.0


async def test_expired_token_requires_reconnect(connect_service, fake_ig, store):
    store.links["user-1"] = connected_link(expires_at=NOW_MS)
    with pytest.raises(TokenExpiredError) as exc_info:
        await connect_service.refresh_metrics("user-1")
    assert exc_info.value.status == 401
    assert fake_ig.requests == []
    assert store.links["user-1"].status == ConnectionStatus.expired
    assert store.links["user-1"].access_token == "long-token"

    with pytest.raises(TokenExpiredError):
        await connect_service.list_media("user-1")


async def test_unknown_user_is_not_found(connect_service):
    with pytest.raises(NotFoundError):
        await connect_service.list_media("nobody")


async def test_list_media_uses_stored_token(connect_service, fake_ig, store):
    store.links["user-1"] = connected_link()
    fake_ig.items = [media(str(i)) for i in range(30)]

    items = await connect_service.list_media("user-1")

    assert len(items) == 25
    assert fake_ig.calls("/me/media")[0].url.params["access_token"] == "long-token"


async def test_post_metrics_for_video_uses_insight_views(connect_service, fake_ig, store):
    store.links["user-1"] = connected_link()
    fake_ig.items = [media("9", likes=12, comments=3, media_type="REELS", shortcode="Reel9", view_count=50)]
    fake_ig.insight_views = {"9": 640}

    metrics = await connect_service.post_metrics("user-1", "https://www.instagram.com/reel/Reel9/")

    assert (metrics.likes, metrics.comments, metrics.views) == (12, 3, 640)
    assert metrics.type == "REELS"
    assert metrics.model_dump(by_alias=True)["fetchedAt"].startswith("2023-11-14T")


async def test_post_metrics_falls_back_to_view_count(connect_service, fake_ig, store):
    store.links["user-1"] = connected_link()
    fake_ig.items = [media("9", media_type="VIDEO", shortcode="Vid9", view_count=77)]
    fake_ig.failing_insights = {"9"}

    metrics = await connect_service.post_metrics("user-1", "Vid9")

    assert metrics.views == 77


async def test_post_metrics_for_image_makes_no_insight_call(connect_service, fake_ig, store):
    store.links["user-1"] = connected_link()
    fake_ig.items = [media("3", likes=5, shortcode="Img3")]

    metrics = await connect_service.post_metrics("user-1", "Img3")

    assert metrics.views == 0
    assert metrics.thumbnail == "https://cdn.example/3.jpg"
    assert not any(r.url.path.endswith("/insights") for r in fake_ig.requests)


async def test_post_outside_window_is_not_found(connect_service, fake_ig, store):
    store.links["user-1"] = connected_link()
    fake_ig.items = [media("1", shortcode="Recent1")]
    with pytest.raises(NotFoundError):
        await connect_service.post_metrics("user-1", "OldPost")


async def test_disconnected_account_is_not_found(connect_service, store):
    store.links["user-1"] = connected_link().model_copy(update={"status": ConnectionStatus.disconnected})
    with pytest.raises(NotFoundError):
        await connect_service.refresh_metrics("user-1")
