"""
MongoDB storage.

Each entity is stored in the collection named after its lowercased class
(``BlogPost`` -> ``blogpost``). Documents carry an integer ``id`` drawn from
a per-collection counter in ``counters``, so callers see the same id shape as
with the in-memory store. Timestamps are stored as BSON dates, so they carry milliseconds, and are
handed out as ISO-8601 strings.

Driver errors are not caught here; the unified storage decides what to do
with them.
"""

import hmac
import logging
import re
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, TypeVar

from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.collation import Collation, CollationStrength

from database import ConnectionManager
from schemas import (
    BlogComment, BlogCommentCreate,
    BlogPost, BlogPostCreate, BlogPostUpdate,
    Contact, ContactCreate,
    Experience, ExperienceCreate, ExperienceUpdate,
    Language, LanguageCreate, LanguageUpdate,
    NewsletterSubscriber, NewsletterSubscriberCreate,
    Project, ProjectCreate, ProjectUpdate,
    SiteContent, SiteContentCreate,
    Skill, SkillCreate, SkillUpdate,
    SocialProfile, SocialProfileCreate, SocialProfileUpdate,
    Testimonial, TestimonialCreate, TestimonialUpdate,
    Translation, TranslationCreate, TranslationUpdate,
    User, UserCreate,
)
from storage_backend import StorageBackend

logger = logging.getLogger("portfolio-api.mongo")

T = TypeVar("T", bound=BaseModel)

COUNTERS_COLLECTION = "counters"

ENTITY_MODELS = (
    User, Contact, SiteContent, Project, Experience, Testimonial, BlogPost,
    BlogComment, Skill, NewsletterSubscriber, Language, Translation, SocialProfile,
)

BY_ID = [("id", ASCENDING)]

# Subscriber emails are unique regardless of case
CASE_INSENSITIVE = Collation(locale="en", strength=CollationStrength.SECONDARY)


def collection_name(model: Type[BaseModel]) -> str:
    return model.__name__.lower()


def to_entity(model: Type[T], doc: Dict[str, Any]) -> T:
    """Drop the ObjectId and render dates as ISO strings before validating."""
    data = {}
    for field, value in doc.items():
        if field == "_id":
            continue
        if isinstance(value, datetime):
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            value = value.isoformat(timespec="microseconds")
        data[field] = value
    return model.model_validate(data)


def _iexact(value: str) -> Dict[str, str]:
    return {"$regex": f"^{re.escape(value)}$", "$options": "i"}


class MongoStorage(StorageBackend):
    def __init__(self, connection: ConnectionManager):
        self._connection = connection
        self._clock_lock = threading.Lock()
        self._last_instant: Optional[datetime] = None

    # ---------- plumbing ----------

    def _now(self) -> datetime:
        # BSON dates keep milliseconds; stay strictly increasing at that resolution
        with self._clock_lock:
            instant = datetime.now(timezone.utc)
            instant = instant.replace(microsecond=instant.microsecond // 1000 * 1000)
            if self._last_instant is not None and instant <= self._last_instant:
                instant = self._last_instant + timedelta(milliseconds=1)
            self._last_instant = instant
        return instant

    def _collection(self, model: Type[BaseModel]):
        return self._connection.get_database()[collection_name(model)]

    async def ensure_indexes(self) -> None:
        db = self._connection.get_database()
        for model in ENTITY_MODELS:
            await db[collection_name(model)].create_index("id", unique=True)
        await self._collection(User).create_index("username", unique=True)
        await self._collection(BlogPost).create_index("slug", unique=True)
        await self._collection(BlogComment).create_index("post_id")
        await self._collection(Language).create_index("code", unique=True)
        await self._collection(NewsletterSubscriber).create_index("email", unique=True, collation=CASE_INSENSITIVE)
        await self._collection(SiteContent).create_index([("section", ASCENDING), ("key", ASCENDING)], unique=True)
        await self._collection(Translation).create_index([("language_code", ASCENDING), ("key", ASCENDING)], unique=True)
        logger.info("MongoDB indexes ensured")

    async def _next_id(self, model: Type[BaseModel]) -> int:
        counter = await self._connection.get_database()[COUNTERS_COLLECTION].find_one_and_update(
            {"_id": collection_name(model)},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return counter["seq"]

    async def _find_one(self, model: Type[T], query: Dict[str, Any]) -> Optional[T]:
        doc = await self._collection(model).find_one(query)
        return to_entity(model, doc) if doc else None

    async def _find(
        self, model: Type[T], query: Optional[Dict[str, Any]] = None, sort: Sequence[Tuple[str, int]] = BY_ID
    ) -> List[T]:
        cursor = self._collection(model).find(query or {}).sort(list(sort))
        return [to_entity(model, doc) async for doc in cursor]

    async def _insert(self, model: Type[T], fields: Dict[str, Any]) -> T:
        doc = {"id": await self._next_id(model), **fields}
        entity = to_entity(model, doc)
        await self._collection(model).insert_one(doc)
        return entity

    async def _update(
        self, model: Type[T], query: Dict[str, Any], changes: Dict[str, Any], touch: bool = True
    ) -> Optional[T]:
        changes = dict(changes)
        if touch:
            changes["updated_at"] = self._now()
        if not changes:
            return await self._find_one(model, query)
        doc = await self._collection(model).find_one_and_update(
            query, {"$set": changes}, return_document=ReturnDocument.AFTER
        )
        return to_entity(model, doc) if doc else None

    async def _delete(self, model: Type[BaseModel], query: Dict[str, Any]) -> bool:
        result = await self._collection(model).delete_one(query)
        return result.deleted_count > 0

    async def _upsert(
        self, model: Type[T], query: Dict[str, Any], changes: Dict[str, Any], on_insert: Dict[str, Any]
    ) -> T:
        """
        Create-or-replace on a composite key.

        A pre-read decides whether a new id is needed, then one
        ``find_one_and_update(upsert=True)`` writes the document. When two first
        upserts of the same key race, both draw an id. The later write either
        updates the document the earlier one inserted or fails on the unique
        index, and its id is left as a gap.
        """
        collection = self._collection(model)
        update: Dict[str, Any] = {"$set": {**changes, "updated_at": self._now()}}
        if await collection.find_one(query, {"_id": 1}) is None:
            update["$setOnInsert"] = {"id": await self._next_id(model), **on_insert}
        doc = await collection.find_one_and_update(
            query, update, upsert=True, return_document=ReturnDocument.AFTER
        )
        return to_entity(model, doc)

    # ---------- users ----------

    async def get_user(self, user_id: int) -> Optional[User]:
        return await self._find_one(User, {"id": user_id})

    async def get_user_by_username(self, username: str) -> Optional[User]:
        return await self._find_one(User, {"username": username})

    async def create_user(self, data: UserCreate) -> User:
        return await self._insert(User, data.model_dump())

    async def verify_user(self, username: str, password: str) -> Optional[User]:
        user = await self.get_user_by_username(username)
        if user is not None and hmac.compare_digest(user.password.encode(), password.encode()):
            return user
        return None

    # ---------- contacts ----------

    async def create_contact(self, data: ContactCreate) -> Contact:
        return await self._insert(Contact, {**data.model_dump(), "created_at": self._now()})

    async def get_contact(self, contact_id: int) -> Optional[Contact]:
        return await self._find_one(Contact, {"id": contact_id})

    async def get_all_contacts(self) -> List[Contact]:
        return await self._find(Contact)

    # ---------- site content ----------

    async def get_site_content(self, section: str, key: str) -> Optional[SiteContent]:
        return await self._find_one(SiteContent, {"section": section, "key": key})

    async def get_site_contents_by_section(self, section: str) -> List[SiteContent]:
        return await self._find(SiteContent, {"section": section})

    async def upsert_site_content(self, data: SiteContentCreate) -> SiteContent:
        changes: Dict[str, Any] = {"value": data.value}
        on_insert: Dict[str, Any] = {}
        if data.type:
            changes["type"] = data.type
        else:
            on_insert["type"] = "text"
        return await self._upsert(SiteContent, {"section": data.section, "key": data.key}, changes, on_insert)

    # ---------- projects ----------

    async def get_project(self, project_id: int) -> Optional[Project]:
        return await self._find_one(Project, {"id": project_id})

    async def get_all_projects(self) -> List[Project]:
        return await self._find(Project)

    async def create_project(self, data: ProjectCreate) -> Project:
        return await self._insert(Project, {**data.model_dump(), "updated_at": self._now()})

    async def update_project(self, project_id: int, patch: ProjectUpdate) -> Optional[Project]:
        return await self._update(Project, {"id": project_id}, patch.changes())

    async def delete_project(self, project_id: int) -> bool:
        return await self._delete(Project, {"id": project_id})

    # ---------- experience ----------

    async def get_experience(self, experience_id: int) -> Optional[Experience]:
        return await self._find_one(Experience, {"id": experience_id})

    async def get_all_experiences(self) -> List[Experience]:
        return await self._find(Experience)

    async def create_experience(self, data: ExperienceCreate) -> Experience:
        return await self._insert(Experience, {**data.model_dump(), "updated_at": self._now()})

    async def update_experience(self, experience_id: int, patch: ExperienceUpdate) -> Optional[Experience]:
        return await self._update(Experience, {"id": experience_id}, patch.changes())

    async def delete_experience(self, experience_id: int) -> bool:
        return await self._delete(Experience, {"id": experience_id})

    # ---------- testimonials ----------

    async def get_testimonial(self, testimonial_id: int) -> Optional[Testimonial]:
        return await self._find_one(Testimonial, {"id": testimonial_id})

    async def get_all_testimonials(self) -> List[Testimonial]:
        return await self._find(Testimonial)

    async def create_testimonial(self, data: TestimonialCreate) -> Testimonial:
        return await self._insert(Testimonial, {**data.model_dump(), "updated_at": self._now()})

    async def update_testimonial(self, testimonial_id: int, patch: TestimonialUpdate) -> Optional[Testimonial]:
        return await self._update(Testimonial, {"id": testimonial_id}, patch.changes())

    async def delete_testimonial(self, testimonial_id: int) -> bool:
        return await self._delete(Testimonial, {"id": testimonial_id})

    # ---------- blog posts ----------

    async def get_blog_post(self, post_id: int) -> Optional[BlogPost]:
        return await self._find_one(BlogPost, {"id": post_id})

    async def get_blog_post_by_slug(self, slug: str) -> Optional[BlogPost]:
        return await self._find_one(BlogPost, {"slug": slug})

    async def get_all_blog_posts(self, is_published: Optional[bool] = None) -> List[BlogPost]:
        query = {"is_published": is_published} if is_published is not None else {}
        return await self._find(BlogPost, query, sort=[("is_published", DESCENDING), ("updated_at", DESCENDING)])

    async def create_blog_post(self, data: BlogPostCreate) -> BlogPost:
        now = self._now()
        return await self._insert(
            BlogPost, {**data.model_dump(), "view_count": 0, "created_at": now, "updated_at": now}
        )

    async def update_blog_post(self, post_id: int, patch: BlogPostUpdate) -> Optional[BlogPost]:
        return await self._update(BlogPost, {"id": post_id}, patch.changes())

    async def delete_blog_post(self, post_id: int) -> bool:
        return await self._delete(BlogPost, {"id": post_id})

    async def increment_blog_post_view_count(self, post_id: int) -> bool:
        result = await self._collection(BlogPost).update_one({"id": post_id}, {"$inc": {"view_count": 1}})
        return result.matched_count > 0

    # ---------- blog comments ----------

    async def get_blog_comment(self, comment_id: int) -> Optional[BlogComment]:
        return await self._find_one(BlogComment, {"id": comment_id})

    async def get_blog_comments_by_post_id(self, post_id: int) -> List[BlogComment]:
        return await self._find(BlogComment, {"post_id": post_id}, sort=[("created_at", DESCENDING)])

    async def create_blog_comment(self, data: BlogCommentCreate) -> BlogComment:
        return await self._insert(
            BlogComment, {**data.model_dump(), "is_approved": False, "created_at": self._now()}
        )

    async def update_blog_comment_approval(self, comment_id: int, is_approved: bool) -> Optional[BlogComment]:
        return await self._update(BlogComment, {"id": comment_id}, {"is_approved": is_approved}, touch=False)

    async def delete_blog_comment(self, comment_id: int) -> bool:
        return await self._delete(BlogComment, {"id": comment_id})

    # ---------- skills ----------

    async def get_skill(self, skill_id: int) -> Optional[Skill]:
        return await self._find_one(Skill, {"id": skill_id})

    async def get_all_skills(self) -> List[Skill]:
        return await self._find(Skill)

    async def get_skills_by_category(self, category: str) -> List[Skill]:
        return await self._find(Skill, {"category": _iexact(category)})

    async def create_skill(self, data: SkillCreate) -> Skill:
        return await self._insert(Skill, {**data.model_dump(), "updated_at": self._now()})

    async def update_skill(self, skill_id: int, patch: SkillUpdate) -> Optional[Skill]:
        return await self._update(Skill, {"id": skill_id}, patch.changes())

    async def delete_skill(self, skill_id: int) -> bool:
        return await self._delete(Skill, {"id": skill_id})

    # ---------- newsletter ----------

    async def create_newsletter_subscriber(self, data: NewsletterSubscriberCreate) -> NewsletterSubscriber:
        return await self._insert(NewsletterSubscriber, {**data.model_dump(), "created_at": self._now()})

    async def get_newsletter_subscriber(self, subscriber_id: int) -> Optional[NewsletterSubscriber]:
        return await self._find_one(NewsletterSubscriber, {"id": subscriber_id})

    async def get_all_newsletter_subscribers(self, only_active: bool = False) -> List[NewsletterSubscriber]:
        return await self._find(NewsletterSubscriber, {"is_active": True} if only_active else None)

    async def update_newsletter_subscriber_status(
        self, subscriber_id: int, is_active: bool
    ) -> Optional[NewsletterSubscriber]:
        return await self._update(NewsletterSubscriber, {"id": subscriber_id}, {"is_active": is_active}, touch=False)

    async def delete_newsletter_subscriber(self, subscriber_id: int) -> bool:
        return await self._delete(NewsletterSubscriber, {"id": subscriber_id})

    # ---------- languages ----------

    async def _demote_default_languages(self, keep_code: str) -> None:
        result = await self._collection(Language).update_many(
            {"is_default": True, "code": {"$ne": keep_code}}, {"$set": {"is_default": False}}
        )
        if result.modified_count:
            logger.info("Language %s is now the default; demoted %s other(s)", keep_code, result.modified_count)

    async def get_language(self, code: str) -> Optional[Language]:
        return await self._find_one(Language, {"code": code})

    async def get_all_languages(self, only_active: bool = False) -> List[Language]:
        return await self._find(Language, {"is_active": True} if only_active else None)

    async def get_default_language(self) -> Optional[Language]:
        return await self._find_one(Language, {"is_default": True})

    async def create_language(self, data: LanguageCreate) -> Language:
        language = await self._insert(Language, data.model_dump())
        if language.is_default:
            await self._demote_default_languages(language.code)
        return language

    async def update_language(self, code: str, patch: LanguageUpdate) -> Optional[Language]:
        language = await self._update(Language, {"code": code}, patch.changes(), touch=False)
        if language is not None and language.is_default:
            await self._demote_default_languages(language.code)
        return language

    async def delete_language(self, code: str) -> bool:
        return await self._delete(Language, {"code": code})

    # ---------- translations ----------

    async def get_translation(self, language_code: str, key: str) -> Optional[Translation]:
        return await self._find_one(Translation, {"language_code": language_code, "key": key})

    async def get_all_translations(self, language_code: str) -> List[Translation]:
        return await self._find(Translation, {"language_code": language_code})

    async def create_translation(self, data: TranslationCreate) -> Translation:
        return await self._insert(Translation, {**data.model_dump(), "updated_at": self._now()})

    async def upsert_translation(self, data: TranslationCreate) -> Translation:
        return await self._upsert(
            Translation, {"language_code": data.language_code, "key": data.key}, {"value": data.value}, {}
        )

    async def update_translation(self, translation_id: int, patch: TranslationUpdate) -> Optional[Translation]:
        return await self._update(Translation, {"id": translation_id}, patch.changes())

    async def delete_translation(self, translation_id: int) -> bool:
        return await self._delete(Translation, {"id": translation_id})

    # ---------- social profiles ----------

    async def get_social_profile(self, profile_id: int) -> Optional[SocialProfile]:
        return await self._find_one(SocialProfile, {"id": profile_id})

    async def get_social_profile_by_platform(self, platform: str) -> Optional[SocialProfile]:
        return await self._find_one(SocialProfile, {"platform": _iexact(platform)})

    async def get_all_social_profiles(self) -> List[SocialProfile]:
        return await self._find(SocialProfile)

    async def create_social_profile(self, data: SocialProfileCreate) -> SocialProfile:
        now = self._now()
        return await self._insert(SocialProfile, {**data.model_dump(), "last_synced": now, "updated_at": now})

    async def update_social_profile(self, profile_id: int, patch: SocialProfileUpdate) -> Optional[SocialProfile]:
        return await self._update(SocialProfile, {"id": profile_id}, patch.changes())

    async def delete_social_profile(self, profile_id: int) -> bool:
        return await self._delete(SocialProfile, {"id": profile_id})

    async def sync_social_profile(self, profile_id: int) -> Optional[SocialProfile]:
        now = self._now()
        return await self._update(
            SocialProfile, {"id": profile_id}, {"last_synced": now, "updated_at": now}, touch=False
        )
