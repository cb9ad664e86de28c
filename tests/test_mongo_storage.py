"""Tests for the MongoDB store against mocked collections."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import bson
import pytest

from database import ConnectionManager, DatabaseUnavailableError
from mongo_storage import MongoStorage, collection_name, to_entity
from schemas import (
    BlogPost,
    LanguageCreate,
    LanguageUpdate,
    Project,
    ProjectUpdate,
    SiteContent,
    SiteContentCreate,
    TranslationCreate,
)


class FakeCursor:
    def __init__(self, docs):
        self.docs = docs
        self.sort_spec = None

    def sort(self, spec):
        self.sort_spec = spec
        return self

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for doc in self.docs:
            yield doc


def make_collection():
    collection = MagicMock()
    for method in (
        "find_one", "find_one_and_update", "insert_one", "update_one",
        "update_many", "delete_one", "create_index",
    ):
        setattr(collection, method, AsyncMock())
    collection.find.return_value = FakeCursor([])
    return collection


class FakeDatabase:
    def __init__(self):
        self.collections = {}

    def __getitem__(self, name):
        if name not in self.collections:
            self.collections[name] = make_collection()
        return self.collections[name]


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def mongo(db):
    connection = MagicMock()
    connection.get_database.return_value = db
    return MongoStorage(connection)


class TestConversion:

    def test_collection_names(self):
        assert collection_name(BlogPost) == "blogpost"
        assert collection_name(SiteContent) == "sitecontent"

    def test_to_entity_drops_object_id_and_renders_dates(self):
        doc = {
            "_id": "65f0c0ffee",
            "id": 4,
            "section": "hero",
            "key": "name",
            "value": "Ada",
            "type": "text",
            "updated_at": datetime(2024, 5, 1, 12, 30, 0, 1500),
        }
        content = to_entity(SiteContent, doc)
        assert content.id == 4
        assert content.updated_at == "2024-05-01T12:30:00.001500+00:00"

    def test_to_entity_keeps_aware_dates(self):
        stamp = datetime(2024, 5, 1, tzinfo=timezone.utc)
        project = to_entity(Project, {
            "id": 1, "title": "t", "description": "d", "image": "i", "category": "web",
            "link": "l", "updated_at": stamp,
        })
        assert project.updated_at == "2024-05-01T00:00:00.000000+00:00"


class TestWrites:

    @pytest.mark.asyncio
    async def test_create_draws_id_from_counter(self, mongo, db, project_payload):
        db["counters"].find_one_and_update.return_value = {"_id": "project", "seq": 7}

        project = await mongo.create_project(project_payload())

        assert project.id == 7
        args, kwargs = db["counters"].find_one_and_update.call_args
        assert args == ({"_id": "project"}, {"$inc": {"seq": 1}})
        assert kwargs["upsert"] is True
        inserted = db["project"].insert_one.call_args.args[0]
        assert inserted["id"] == 7
        assert isinstance(inserted["updated_at"], datetime)

    @pytest.mark.asyncio
    async def test_upsert_new_site_content_sets_id_on_insert(self, mongo, db):
        db["counters"].find_one_and_update.return_value = {"_id": "sitecontent", "seq": 1}
        db["sitecontent"].find_one.return_value = None
        db["sitecontent"].find_one_and_update.return_value = {
            "_id": "abc", "id": 1, "section": "hero", "key": "name", "value": "Ada", "type": "text",
            "updated_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
        }

        content = await mongo.upsert_site_content(SiteContentCreate(section="hero", key="name", value="Ada"))

        assert content.id == 1
        query, update = db["sitecontent"].find_one_and_update.call_args.args
        assert query == {"section": "hero", "key": "name"}
        assert update["$set"]["value"] == "Ada"
        assert "type" not in update["$set"]
        assert update["$setOnInsert"] == {"id": 1, "type": "text"}
        assert db["sitecontent"].find_one_and_update.call_args.kwargs["upsert"] is True

    @pytest.mark.asyncio
    async def test_upsert_existing_site_content_keeps_id(self, mongo, db):
        db["sitecontent"].find_one.return_value = {"_id": "abc"}
        db["sitecontent"].find_one_and_update.return_value = {
            "_id": "abc", "id": 3, "section": "hero", "key": "photo", "value": "b.png", "type": "image",
            "updated_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
        }

        await mongo.upsert_site_content(SiteContentCreate(section="hero", key="photo", value="b.png", type="image"))

        _, update = db["sitecontent"].find_one_and_update.call_args.args
        assert "$setOnInsert" not in update
        assert update["$set"]["type"] == "image"
        db["counters"].find_one_and_update.assert_not_called()

    @pytest.mark.asyncio
    async def test_increment_view_count(self, mongo, db):
        db["blogpost"].update_one.return_value = MagicMock(matched_count=0)

        assert await mongo.increment_blog_post_view_count(9) is False
        db["blogpost"].update_one.assert_awaited_once_with({"id": 9}, {"$inc": {"view_count": 1}})

    @pytest.mark.asyncio
    async def test_update_touches_updated_at_and_reports_miss(self, mongo, db):
        db["project"].find_one_and_update.return_value = None

        assert await mongo.update_project(5, ProjectUpdate(title="Renamed")) is None

        query, update = db["project"].find_one_and_update.call_args.args
        assert query == {"id": 5}
        assert update["$set"]["title"] == "Renamed"
        assert isinstance(update["$set"]["updated_at"], datetime)
        assert set(update["$set"]) == {"title", "updated_at"}

    @pytest.mark.asyncio
    async def test_new_default_language_demotes_others(self, mongo, db):
        db["counters"].find_one_and_update.return_value = {"_id": "language", "seq": 2}
        db["language"].update_many.return_value = MagicMock(modified_count=1)

        language = await mongo.create_language(LanguageCreate(code="es", name="Español", is_default=True))

        assert language.is_default
        db["language"].update_many.assert_awaited_once_with(
            {"is_default": True, "code": {"$ne": "es"}}, {"$set": {"is_default": False}}
        )

    @pytest.mark.asyncio
    async def test_non_default_language_leaves_others(self, mongo, db):
        db["counters"].find_one_and_update.return_value = {"_id": "language", "seq": 3}

        await mongo.create_language(LanguageCreate(code="fr", name="Français"))

        db["language"].update_many.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_language_to_default_demotes_others(self, mongo, db):
        db["language"].find_one_and_update.return_value = {
            "_id": "abc", "id": 1, "code": "en", "name": "English", "is_active": True, "is_default": True,
        }
        db["language"].update_many.return_value = MagicMock(modified_count=1)

        await mongo.update_language("en", LanguageUpdate(is_default=True))

        # Languages carry no updated_at
        db["language"].find_one_and_update.assert_awaited_once()
        query, update = db["language"].find_one_and_update.call_args.args
        assert query == {"code": "en"}
        assert update == {"$set": {"is_default": True}}
        db["language"].update_many.assert_awaited_once_with(
            {"is_default": True, "code": {"$ne": "en"}}, {"$set": {"is_default": False}}
        )

    @pytest.mark.asyncio
    async def test_empty_language_update_only_reads(self, mongo, db):
        db["language"].find_one.return_value = {
            "_id": "abc", "id": 1, "code": "en", "name": "English", "is_active": True, "is_default": False,
        }

        language = await mongo.update_language("en", LanguageUpdate())

        assert language.name == "English"
        db["language"].find_one.assert_awaited_once_with({"code": "en"})
        db["language"].find_one_and_update.assert_not_called()
        db["language"].update_many.assert_not_called()

    @pytest.mark.asyncio
    async def test_upsert_new_translation_sets_only_id_on_insert(self, mongo, db):
        db["counters"].find_one_and_update.return_value = {"_id": "translation", "seq": 5}
        db["translation"].find_one.return_value = None
        db["translation"].find_one_and_update.return_value = {
            "_id": "abc", "id": 5, "language_code": "es", "key": "nav.home", "value": "Inicio",
            "updated_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
        }

        translation = await mongo.upsert_translation(
            TranslationCreate(language_code="es", key="nav.home", value="Inicio")
        )

        assert translation.id == 5
        query, update = db["translation"].find_one_and_update.call_args.args
        assert query == {"language_code": "es", "key": "nav.home"}
        assert update["$setOnInsert"] == {"id": 5}
        assert update["$set"]["value"] == "Inicio"
        assert isinstance(update["$set"]["updated_at"], datetime)

    @pytest.mark.asyncio
    async def test_sync_social_profile_sets_both_stamps(self, mongo, db):
        stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
        db["socialprofile"].find_one_and_update.return_value = {
            "_id": "abc", "id": 2, "platform": "github", "username": "ada", "profile_url": "https://github.com/ada",
            "last_synced": stamp, "updated_at": stamp,
        }

        profile = await mongo.sync_social_profile(2)

        assert profile.id == 2
        query, update = db["socialprofile"].find_one_and_update.call_args.args
        assert query == {"id": 2}
        assert set(update["$set"]) == {"last_synced", "updated_at"}
        assert update["$set"]["last_synced"] == update["$set"]["updated_at"]

    @pytest.mark.asyncio
    async def test_delete_reports_deleted_count(self, mongo, db):
        db["blogpost"].delete_one.return_value = MagicMock(deleted_count=1)
        assert await mongo.delete_blog_post(3) is True
        db["blogpost"].delete_one.assert_awaited_once_with({"id": 3})

        db["blogpost"].delete_one.return_value = MagicMock(deleted_count=0)
        assert await mongo.delete_blog_post(3) is False


class TestTimestamps:

    @pytest.mark.asyncio
    async def test_created_record_reads_back_unchanged(self, mongo, db, project_payload):
        db["counters"].find_one_and_update.return_value = {"_id": "project", "seq": 1}

        project = await mongo.create_project(project_payload())

        inserted = db["project"].insert_one.call_args.args[0]
        stored = bson.decode(bson.encode(inserted))
        assert to_entity(Project, stored).updated_at == project.updated_at

    def test_clock_is_strictly_increasing_at_millisecond_resolution(self, mongo):
        stamps = [mongo._now() for _ in range(50)]

        assert all(stamp.microsecond % 1000 == 0 for stamp in stamps)
        stored = [bson.decode(bson.encode({"at": stamp}))["at"] for stamp in stamps]
        assert all(later > earlier for earlier, later in zip(stored, stored[1:]))

    @pytest.mark.asyncio
    async def test_repeated_upserts_advance_stored_updated_at(self, mongo, db):
        db["sitecontent"].find_one.return_value = {"_id": "abc"}
        db["sitecontent"].find_one_and_update.return_value = {
            "_id": "abc", "id": 1, "section": "hero", "key": "name", "value": "Ada", "type": "text",
            "updated_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
        }

        for value in ("Ada", "Ada L."):
            await mongo.upsert_site_content(SiteContentCreate(section="hero", key="name", value=value))

        first, second = (
            bson.decode(bson.encode(call.args[1]["$set"]))["updated_at"]
            for call in db["sitecontent"].find_one_and_update.call_args_list
        )
        assert second > first


class TestIndexes:

    @pytest.mark.asyncio
    async def test_subscriber_email_unique_regardless_of_case(self, mongo, db):
        await mongo.ensure_indexes()

        calls = db["newslettersubscriber"].create_index.call_args_list
        email_call = next(call for call in calls if call.args[0] == "email")
        assert email_call.kwargs["unique"] is True
        assert email_call.kwargs["collation"].document == {"locale": "en", "strength": 2}

    @pytest.mark.asyncio
    async def test_every_collection_has_unique_id(self, mongo, db):
        await mongo.ensure_indexes()

        for name in ("user", "blogpost", "translation", "socialprofile"):
            db[name].create_index.assert_any_await("id", unique=True)


class TestReads:

    @pytest.mark.asyncio
    async def test_username_lookup_is_exact(self, mongo, db):
        db["user"].find_one.return_value = None
        assert await mongo.get_user_by_username("Admin") is None
        db["user"].find_one.assert_awaited_once_with({"username": "Admin"})

    @pytest.mark.asyncio
    async def test_skill_category_query_is_anchored_and_case_insensitive(self, mongo, db):
        await mongo.get_skills_by_category("C++")
        query = db["skill"].find.call_args.args[0]
        assert query == {"category": {"$regex": "^C\\+\\+$", "$options": "i"}}

    @pytest.mark.asyncio
    async def test_blog_posts_sorted_published_first(self, mongo, db):
        cursor = FakeCursor([])
        db["blogpost"].find.return_value = cursor

        await mongo.get_all_blog_posts(is_published=True)

        assert db["blogpost"].find.call_args.args[0] == {"is_published": True}
        assert cursor.sort_spec == [("is_published", -1), ("updated_at", -1)]

    @pytest.mark.asyncio
    async def test_requires_live_connection(self):
        mongo = MongoStorage(ConnectionManager(uri=None))
        with pytest.raises(DatabaseUnavailableError):
            await mongo.get_project(1)
