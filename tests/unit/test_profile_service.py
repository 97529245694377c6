"""Test ProfileService: projection creation only via events, local updates."""

from __future__ import annotations

import pytest

from usersync.core.errors import NotFoundError, ValidationFailed
from usersync.core.events import UserRegistered, UserVerified


def _registered(user_id: str = "u-1", email: str = "a@x.com", name: str = "A"):
    return UserRegistered(id=user_id, email=email, name=name)


class TestProjectionFromEvents:
    async def test_registered_event_creates_unverified_projection(
        self, profile_service, publisher,
    ):
        await publisher.publish(_registered())

        projection = await profile_service.get_by_id("u-1")
        assert projection.email == "a@x.com"
        assert projection.name == "A"
        assert projection.verified is False

    async def test_duplicate_delivery_keeps_local_edits(self, profile_service, publisher):
        await publisher.publish(_registered())
        await profile_service.update("u-1", {"name": "Edited"})

        await publisher.publish(_registered(name="Original"))

        assert (await profile_service.get_by_id("u-1")).name == "Edited"

    async def test_verified_event_marks_projection(self, profile_service, publisher):
        await publisher.publish(_registered())
        await publisher.publish(UserVerified(id="u-1", email="a@x.com"))

        assert (await profile_service.get_by_id("u-1")).verified is True

    async def test_verified_without_projection_is_dropped(
        self, profile_service, publisher, projection_repo,
    ):
        await publisher.publish(UserVerified(id="ghost", email="g@x.com"))

        assert projection_repo.count() == 0
        with pytest.raises(NotFoundError):
            await profile_service.get_by_id("ghost")

    async def test_event_published_before_bind_is_missed(
        self, memory_broker, publisher, projection_repo, subscriber,
    ):
        from usersync.profile.service import ProfileService

        await publisher.publish(_registered())
        service = ProfileService(projection_repo)
        await service.bind(subscriber)

        with pytest.raises(NotFoundError):
            await service.get_by_id("u-1")

    async def test_store_failure_is_absorbed(self, profile_service, publisher, subscriber, projection_repo):
        async def broken_save(entity):
            raise RuntimeError("disk full")

        projection_repo.save = broken_save
        assert await publisher.publish(_registered()) is True

        assert subscriber.get_error_counts()["user.registered"] == 1
        with pytest.raises(NotFoundError):
            await profile_service.get_by_id("u-1")


class TestQueries:
    async def test_get_missing_raises_not_found(self, profile_service):
        with pytest.raises(NotFoundError):
            await profile_service.get_by_id("nope")

    async def test_get_all(self, profile_service, publisher):
        await publisher.publish(_registered("u-1", "a@x.com"))
        await publisher.publish(_registered("u-2", "b@x.com"))

        rows = await profile_service.get_all()
        assert [r.id for r in rows] == ["u-1", "u-2"]


class TestUpdate:
    async def test_update_without_projection_is_not_found(self, profile_service):
        with pytest.raises(NotFoundError):
            await profile_service.update("u-1", {"name": "B"})

    async def test_update_name_and_email(self, profile_service, publisher):
        await publisher.publish(_registered())

        updated = await profile_service.update("u-1", {"name": "B", "email": " B@X.com"})

        assert updated.name == "B"
        assert updated.email == "b@x.com"
        assert updated.verified is False

    @pytest.mark.parametrize(
        "fields,match",
        [
            ({"verified": True}, "cannot be updated: verified"),
            ({"id": "other"}, "cannot be updated: id"),
            ({}, "No fields"),
            ({"email": "nope"}, "valid email"),
            ({"email": "@x.com"}, "valid email"),
            ({"email": None}, "valid email"),
            ({"email": 42}, "valid email"),
            ({"name": ""}, "Name is required"),
            ({"name": "   "}, "Name is required"),
            ({"name": None}, "Name is required"),
        ],
    )
    async def test_update_rejections(self, profile_service, publisher, fields, match):
        await publisher.publish(_registered())
        with pytest.raises(ValidationFailed, match=match):
            await profile_service.update("u-1", fields)

    async def test_update_strips_name(self, profile_service, publisher):
        await publisher.publish(_registered())
        updated = await profile_service.update("u-1", {"name": "  Bea "})
        assert updated.name == "Bea"

    async def test_rejected_update_leaves_projection(self, profile_service, publisher):
        await publisher.publish(_registered())
        with pytest.raises(ValidationFailed):
            await profile_service.update("u-1", {"name": "B", "email": None})

        projection = await profile_service.get_by_id("u-1")
        assert projection.name == "A"
        assert projection.email == "a@x.com"


class TestHandlerTypes:
    async def test_registered_handler_rejects_other_events(self, profile_service):
        with pytest.raises(TypeError, match="UserRegistered"):
            await profile_service.handle_user_registered(UserVerified(id="u-1", email="a@x.com"))

    async def test_verified_handler_rejects_other_events(self, profile_service):
        with pytest.raises(TypeError, match="UserVerified"):
            await profile_service.handle_user_verified(_registered())
