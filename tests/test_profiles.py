from __future__ import annotations

import pytest

from ffmclub.db.collections import USER_PROFILES_COLLECTION
from ffmclub.errors import AlreadyExistsError, BackendUnavailableError, InvalidOperationError, NotFoundError
from ffmclub.models.user_profile import ProfileAttributes, ProfileFilter, UserProfilePatch
from ffmclub.repositories.exceptions import DuplicateKeyRepositoryError, NotFoundRepositoryError
from ffmclub.repositories.user_profile import UserProfileRepository
from ffmclub.services.profile_service import ProfileService


@pytest.mark.asyncio
async def test_user_profile_repository_crud(services) -> None:
    repo = UserProfileRepository(services.db)

    created = await repo.create_profile(
        user_id="user-1",
        attributes={"email": "alice@example.com", "username": "Alice", "age": 30},
        created_at=123456,
    )
    assert created.user_id == "user-1"
    assert created.likes == []
    assert created.favorites == []
    assert created.profile_views == 0
    assert created.verified is False

    fetched = await repo.get_by_user_id("user-1")
    assert fetched is not None
    assert fetched.username == "Alice"

    updated = await repo.update_profile(user_id="user-1", updates={"city": "Sofia"})
    assert updated.city == "Sofia"
    assert updated.age == 30

    with pytest.raises(DuplicateKeyRepositoryError):
        await repo.create_profile(
            user_id="user-1",
            attributes={"email": "x@example.com", "username": "X"},
            created_at=1,
        )
    with pytest.raises(NotFoundRepositoryError):
        await repo.update_profile(user_id="missing", updates={"city": "Varna"})


@pytest.mark.asyncio
async def test_create_profile_rejects_duplicate_id(services, make_profile) -> None:
    await make_profile("u1")
    with pytest.raises(AlreadyExistsError):
        await services.profiles.create_profile(
            "u1", ProfileAttributes(email="other@example.com", username="other")
        )


@pytest.mark.asyncio
async def test_get_profile_missing(services) -> None:
    with pytest.raises(NotFoundError):
        await services.profiles.get_profile("nobody")


@pytest.mark.asyncio
async def test_update_profile_merges_only_given_fields(services, make_profile) -> None:
    await make_profile("u1", city="Sofia", age=28, about="hello")

    updated = await services.profiles.update_profile("u1", UserProfilePatch(about="updated"))
    assert updated.about == "updated"
    assert updated.city == "Sofia"
    assert updated.age == 28

    with pytest.raises(NotFoundError):
        await services.profiles.update_profile("missing", UserProfilePatch(city="Varna"))


@pytest.mark.asyncio
async def test_list_profiles_newest_first_and_limited(services, make_profile) -> None:
    repo = services.profiles.repository
    for index, user_id in enumerate(["a", "b", "c"]):
        await repo.create_profile(
            user_id=user_id,
            attributes={"email": f"{user_id}@example.com", "username": user_id},
            created_at=1000 + index,
        )

    listed = await services.profiles.list_profiles(limit=2)
    assert [p.user_id for p in listed] == ["c", "b"]


@pytest.mark.asyncio
async def test_list_profiles_age_range_is_inclusive(services, make_profile) -> None:
    await make_profile("young", age=17, city="Sofia")
    await make_profile("low", age=18, city="Sofia")
    await make_profile("mid", age=22, city="Sofia")
    await make_profile("high", age=25, city="Sofia")
    await make_profile("old", age=26, city="Sofia")
    await make_profile("unknown", city="Sofia")

    listed = await services.profiles.list_profiles(
        ProfileFilter(city="Sofia", age_from=18, age_to=25), limit=50
    )
    assert {p.user_id for p in listed} == {"low", "mid", "high"}


@pytest.mark.asyncio
async def test_list_profiles_equality_filters(services, make_profile) -> None:
    await make_profile("u1", account_type="couple", city="Sofia")
    await make_profile("u2", account_type="single", city="Sofia")
    await make_profile("u3", account_type="couple", city="Varna")
    await services.profiles.repository.update_profile(user_id="u1", updates={"verified": True})

    by_type = await services.profiles.list_profiles(ProfileFilter(account_type="couple"))
    assert {p.user_id for p in by_type} == {"u1", "u3"}

    by_type_and_city = await services.profiles.list_profiles(
        ProfileFilter(account_type="couple", city="Sofia")
    )
    assert [p.user_id for p in by_type_and_city] == ["u1"]

    every_city = await services.profiles.list_profiles(ProfileFilter(city="all"))
    assert len(every_city) == 3

    verified = await services.profiles.list_profiles(ProfileFilter(verified_only=True))
    assert [p.user_id for p in verified] == ["u1"]


@pytest.mark.asyncio
async def test_increment_profile_views(services, make_profile) -> None:
    await make_profile("u1")
    await services.profiles.increment_profile_views("u1")
    await services.profiles.increment_profile_views("u1")
    profile = await services.profiles.get_profile("u1")
    assert profile.profile_views == 2

    # absent profile: silently ignored
    await services.profiles.increment_profile_views("ghost")
    assert await services.profiles.repository.get_by_user_id("ghost") is None


@pytest.mark.asyncio
async def test_watch_profile_receives_updates_until_cancelled(services, make_profile) -> None:
    await make_profile("u1")
    seen = []
    subscription = services.profiles.watch_profile("u1", lambda profile: seen.append(profile.city))

    await services.profiles.update_profile("u1", UserProfilePatch(city="Plovdiv"))
    assert seen == ["Plovdiv"]

    subscription.cancel()
    await services.profiles.update_profile("u1", UserProfilePatch(city="Burgas"))
    assert seen == ["Plovdiv"]


class _RecordingStorage:
    def __init__(self, fail: bool = False) -> None:
        self.uploads = []
        self.fail = fail

    async def upload(self, path: str, data: bytes) -> str:
        if self.fail:
            raise RuntimeError("storage offline")
        self.uploads.append((path, data))
        return f"ref/{path}"

    async def get_download_url(self, reference: str) -> str:
        return f"https://cdn.example.com/{reference}"


@pytest.mark.asyncio
async def test_upload_profile_photo(services, make_profile) -> None:
    await make_profile("u1")
    storage = _RecordingStorage()
    service = ProfileService(services.profiles.repository, registry=services.registry, storage=storage, max_photo_bytes=16)

    updated = await service.upload_profile_photo("u1", filename="me pic.png", data=b"png-bytes", content_type="image/png")

    path, _ = storage.uploads[0]
    assert path.startswith("profile-photos/u1/")
    assert path.endswith("_me_pic.png")
    assert updated.photo_url == f"https://cdn.example.com/ref/{path}"

    with pytest.raises(InvalidOperationError):
        await service.upload_profile_photo("u1", filename="a.txt", data=b"x", content_type="text/plain")
    with pytest.raises(InvalidOperationError):
        await service.upload_profile_photo("u1", filename="big.png", data=b"x" * 17, content_type="image/png")
    with pytest.raises(NotFoundError):
        await service.upload_profile_photo("ghost", filename="a.png", data=b"x", content_type="image/png")

    broken = ProfileService(services.profiles.repository, registry=services.registry, storage=_RecordingStorage(fail=True))
    with pytest.raises(BackendUnavailableError):
        await broken.upload_profile_photo("u1", filename="a.png", data=b"x", content_type="image/png")


@pytest.mark.asyncio
async def test_update_profile_null_text_fields_clear_them(services, make_profile) -> None:
    await make_profile("u1", about="hello", interests="hiking")

    patch = UserProfilePatch.model_validate({"about": None, "interests": None, "photoURL": None})
    updated = await services.profiles.update_profile("u1", patch)
    assert updated.about == ""
    assert updated.interests == ""
    assert updated.photo_url == ""

    stored = await services.db[USER_PROFILES_COLLECTION].find_one({"_id": "u1"})
    assert stored["about"] == ""
    profile = await services.profiles.get_profile("u1")
    assert profile.interests == ""


@pytest.mark.asyncio
async def test_age_filtered_listing_is_limited_after_filtering(services) -> None:
    repo = services.profiles.repository
    ages = {"a": 30, "b": 19, "c": None, "d": 21, "e": 40, "f": 24}
    for index, (user_id, age) in enumerate(ages.items()):
        await repo.create_profile(
            user_id=user_id,
            attributes={"email": f"{user_id}@example.com", "username": user_id, "age": age},
            created_at=1000 + index,
        )

    listed = await services.profiles.list_profiles(ProfileFilter(age_from=18, age_to=25), limit=2)
    assert [p.user_id for p in listed] == ["f", "d"]

    older = await services.profiles.list_profiles(ProfileFilter(age_from=30), limit=10)
    assert [p.user_id for p in older] == ["e", "a"]
