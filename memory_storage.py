"""
In-memory storage.

Used as the fallback when MongoDB is unreachable and as the demo data store.
Each entity lives in its own table: a dict plus an id counter that only ever
grows, so ids are never reused after a delete.
"""

import hmac
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Generic, Hashable, List, Optional, Type, TypeVar

from pydantic import BaseModel

from schemas import (
    BlogComment, BlogCommentCreate,
    BlogPost, BlogPostCreate, BlogPostUpdate,
    Contact, ContactCreate,
    Experience, ExperienceCreate, ExperienceUpdate,
    Language, LanguageCreate, LanguageUpdate,
    NewsletterSubscriber, NewsletterSubscriberCreate,
    PatchModel,
    Project, ProjectCreate, ProjectUpdate,
    SiteContent, SiteContentCreate,
    Skill, SkillCreate, SkillUpdate,
    SocialProfile, SocialProfileCreate, SocialProfileUpdate,
    Testimonial, TestimonialCreate, TestimonialUpdate,
    Translation, TranslationCreate, TranslationUpdate,
    User, UserCreate,
)
from storage_backend import DuplicateEntryError, StorageBackend

logger = logging.getLogger("portfolio-api.memory")

T = TypeVar("T", bound=BaseModel)


def _composite(first: str, second: str) -> str:
    return f"{first}:{second}"


class _Table(Generic[T]):
    """Rows of one entity type and the counter that numbers them. Rows go out as copies."""

    def __init__(self):
        self.rows: Dict[Hashable, T] = {}
        self.lock = threading.RLock()
        self._next_id = 1

    def allocate_id(self) -> int:
        with self.lock:
            new_id = self._next_id
            self._next_id += 1
            return new_id

    def get(self, key: Hashable) -> Optional[T]:
        row = self.rows.get(key)
        return row.model_copy(deep=True) if row is not None else None

    def all(self) -> List[T]:
        with self.lock:
            return [row.model_copy(deep=True) for row in self.rows.values()]

    def filter(self, predicate: Callable[[T], bool]) -> List[T]:
        return [row for row in self.all() if predicate(row)]

    def find(self, predicate: Callable[[T], bool]) -> Optional[T]:
        return next((row for row in self.all() if predicate(row)), None)

    def put(self, key: Hashable, row: T) -> T:
        with self.lock:
            self.rows[key] = row
        return row.model_copy(deep=True)

    def pop(self, key: Hashable) -> bool:
        with self.lock:
            return self.rows.pop(key, None) is not None


class MemoryStorage(StorageBackend):
    def __init__(self):
        self._users: _Table[User] = _Table()
        self._contacts: _Table[Contact] = _Table()
        self._site_contents: _Table[SiteContent] = _Table()  # keyed by "section:key"
        self._projects: _Table[Project] = _Table()
        self._experiences: _Table[Experience] = _Table()
        self._testimonials: _Table[Testimonial] = _Table()
        self._blog_posts: _Table[BlogPost] = _Table()
        self._blog_comments: _Table[BlogComment] = _Table()
        self._skills: _Table[Skill] = _Table()
        self._subscribers: _Table[NewsletterSubscriber] = _Table()
        self._languages: _Table[Language] = _Table()  # keyed by language code
        self._translations: _Table[Translation] = _Table()  # keyed by "languageCode:key"
        self._social_profiles: _Table[SocialProfile] = _Table()

        self._clock_lock = threading.Lock()
        self._last_instant: Optional[datetime] = None

    # ---------- helpers ----------

    def _now(self) -> str:
        # Strictly increasing, even for writes within the same microsecond
        with self._clock_lock:
            instant = datetime.now(timezone.utc)
            if self._last_instant is not None and instant <= self._last_instant:
                instant = self._last_instant + timedelta(microseconds=1)
            self._last_instant = instant
        return instant.isoformat(timespec="microseconds")

    def _insert(self, table: _Table[T], model: Type[T], **fields) -> T:
        with table.lock:
            row = model(id=table.allocate_id(), **fields)
            return table.put(row.id, row)

    def _update(self, table: _Table[T], key: Hashable, patch: Optional[PatchModel], **extra) -> Optional[T]:
        with table.lock:
            row = table.get(key)
            if row is None:
                return None
            changes = patch.changes() if patch is not None else {}
            updated = type(row).model_validate({**row.model_dump(), **changes, **extra})
            return table.put(key, updated)

    # ---------- users ----------

    async def get_user(self, user_id: int) -> Optional[User]:
        return self._users.get(user_id)

    async def get_user_by_username(self, username: str) -> Optional[User]:
        return self._users.find(lambda user: user.username == username)

    async def create_user(self, data: UserCreate) -> User:
        with self._users.lock:
            if self._users.find(lambda user: user.username == data.username) is not None:
                raise DuplicateEntryError("User", "username", data.username)
            return self._insert(self._users, User, **data.model_dump())

    async def verify_user(self, username: str, password: str) -> Optional[User]:
        user = await self.get_user_by_username(username)
        if user is not None and hmac.compare_digest(user.password.encode(), password.encode()):
            return user
        return None

    # ---------- contacts ----------

    async def create_contact(self, data: ContactCreate) -> Contact:
        return self._insert(self._contacts, Contact, **data.model_dump(), created_at=self._now())

    async def get_contact(self, contact_id: int) -> Optional[Contact]:
        return self._contacts.get(contact_id)

    async def get_all_contacts(self) -> List[Contact]:
        return self._contacts.all()

    # ---------- site content ----------

    async def get_site_content(self, section: str, key: str) -> Optional[SiteContent]:
        return self._site_contents.get(_composite(section, key))

    async def get_site_contents_by_section(self, section: str) -> List[SiteContent]:
        return self._site_contents.filter(lambda content: content.section == section)

    async def upsert_site_content(self, data: SiteContentCreate) -> SiteContent:
        table = self._site_contents
        key = _composite(data.section, data.key)
        with table.lock:
            existing = table.get(key)
            if existing is not None:
                updated = existing.model_copy(update={
                    "value": data.value,
                    "type": data.type or existing.type,
                    "updated_at": self._now(),
                })
                return table.put(key, updated)
            row = SiteContent(
                id=table.allocate_id(),
                section=data.section,
                key=data.key,
                value=data.value,
                type=data.type or "text",
                updated_at=self._now(),
            )
            return table.put(key, row)

    # ---------- projects ----------

    async def get_project(self, project_id: int) -> Optional[Project]:
        return self._projects.get(project_id)

    async def get_all_projects(self) -> List[Project]:
        return self._projects.all()

    async def create_project(self, data: ProjectCreate) -> Project:
        return self._insert(self._projects, Project, **data.model_dump(), updated_at=self._now())

    async def update_project(self, project_id: int, patch: ProjectUpdate) -> Optional[Project]:
        return self._update(self._projects, project_id, patch, updated_at=self._now())

    async def delete_project(self, project_id: int) -> bool:
        return self._projects.pop(project_id)

    # ---------- experience ----------

    async def get_experience(self, experience_id: int) -> Optional[Experience]:
        return self._experiences.get(experience_id)

    async def get_all_experiences(self) -> List[Experience]:
        return self._experiences.all()

    async def create_experience(self, data: ExperienceCreate) -> Experience:
        return self._insert(self._experiences, Experience, **data.model_dump(), updated_at=self._now())

    async def update_experience(self, experience_id: int, patch: ExperienceUpdate) -> Optional[Experience]:
        return self._update(self._experiences, experience_id, patch, updated_at=self._now())

    async def delete_experience(self, experience_id: int) -> bool:
        return self._experiences.pop(experience_id)

    # ---------- testimonials ----------

    async def get_testimonial(self, testimonial_id: int) -> Optional[Testimonial]:
        return self._testimonials.get(testimonial_id)

    async def get_all_testimonials(self) -> List[Testimonial]:
        return self._testimonials.all()

    async def create_testimonial(self, data: TestimonialCreate) -> Testimonial:
        return self._insert(self._testimonials, Testimonial, **data.model_dump(), updated_at=self._now())

    async def update_testimonial(self, testimonial_id: int, patch: TestimonialUpdate) -> Optional[Testimonial]:
        return self._update(self._testimonials, testimonial_id, patch, updated_at=self._now())

    async def delete_testimonial(self, testimonial_id: int) -> bool:
        return self._testimonials.pop(testimonial_id)

    # ---------- blog posts ----------

    async def get_blog_post(self, post_id: int) -> Optional[BlogPost]:
        return self._blog_posts.get(post_id)

    async def get_blog_post_by_slug(self, slug: str) -> Optional[BlogPost]:
        return self._blog_posts.find(lambda post: post.slug == slug)

    async def get_all_blog_posts(self, is_published: Optional[bool] = None) -> List[BlogPost]:
        posts = self._blog_posts.all()
        if is_published is not None:
            posts = [post for post in posts if post.is_published == is_published]
        # Newest first, then publication status dominates (sort is stable)
        posts.sort(key=lambda post: post.updated_at, reverse=True)
        posts.sort(key=lambda post: not post.is_published)
        return posts

    async def create_blog_post(self, data: BlogPostCreate) -> BlogPost:
        table = self._blog_posts
        with table.lock:
            if table.find(lambda post: post.slug == data.slug) is not None:
                raise DuplicateEntryError("BlogPost", "slug", data.slug)
            now = self._now()
            return self._insert(table, BlogPost, **data.model_dump(), view_count=0, created_at=now, updated_at=now)

    async def update_blog_post(self, post_id: int, patch: BlogPostUpdate) -> Optional[BlogPost]:
        table = self._blog_posts
        with table.lock:
            if patch.slug is not None:
                clash = table.find(lambda post: post.slug == patch.slug)
                if clash is not None and clash.id != post_id:
                    raise DuplicateEntryError("BlogPost", "slug", patch.slug)
            return self._update(table, post_id, patch, updated_at=self._now())

    async def delete_blog_post(self, post_id: int) -> bool:
        return self._blog_posts.pop(post_id)

    async def increment_blog_post_view_count(self, post_id: int) -> bool:
        table = self._blog_posts
        with table.lock:
            post = table.get(post_id)
            if post is None:
                return False
            table.put(post_id, post.model_copy(update={"view_count": post.view_count + 1}))
            return True

    # ---------- blog comments ----------

    async def get_blog_comment(self, comment_id: int) -> Optional[BlogComment]:
        return self._blog_comments.get(comment_id)

    async def get_blog_comments_by_post_id(self, post_id: int) -> List[BlogComment]:
        comments = self._blog_comments.filter(lambda comment: comment.post_id == post_id)
        comments.sort(key=lambda comment: comment.created_at, reverse=True)
        return comments

    async def create_blog_comment(self, data: BlogCommentCreate) -> BlogComment:
        # New comments always wait for moderation
        return self._insert(
            self._blog_comments, BlogComment, **data.model_dump(), is_approved=False, created_at=self._now()
        )

    async def update_blog_comment_approval(self, comment_id: int, is_approved: bool) -> Optional[BlogComment]:
        return self._update(self._blog_comments, comment_id, None, is_approved=is_approved)

    async def delete_blog_comment(self, comment_id: int) -> bool:
        return self._blog_comments.pop(comment_id)

    # ---------- skills ----------

    async def get_skill(self, skill_id: int) -> Optional[Skill]:
        return self._skills.get(skill_id)

    async def get_all_skills(self) -> List[Skill]:
        return self._skills.all()

    async def get_skills_by_category(self, category: str) -> List[Skill]:
        wanted = category.casefold()
        return self._skills.filter(lambda skill: skill.category.casefold() == wanted)

    async def create_skill(self, data: SkillCreate) -> Skill:
        return self._insert(self._skills, Skill, **data.model_dump(), updated_at=self._now())

    async def update_skill(self, skill_id: int, patch: SkillUpdate) -> Optional[Skill]:
        return self._update(self._skills, skill_id, patch, updated_at=self._now())

    async def delete_skill(self, skill_id: int) -> bool:
        return self._skills.pop(skill_id)

    # ---------- newsletter ----------

    async def create_newsletter_subscriber(self, data: NewsletterSubscriberCreate) -> NewsletterSubscriber:
        table = self._subscribers
        email = str(data.email)
        with table.lock:
            if table.find(lambda sub: sub.email.lower() == email.lower()) is not None:
                raise DuplicateEntryError("NewsletterSubscriber", "email", email)
            return self._insert(
                table, NewsletterSubscriber,
                email=email, name=data.name, is_active=data.is_active, created_at=self._now(),
            )

    async def get_newsletter_subscriber(self, subscriber_id: int) -> Optional[NewsletterSubscriber]:
        return self._subscribers.get(subscriber_id)

    async def get_all_newsletter_subscribers(self, only_active: bool = False) -> List[NewsletterSubscriber]:
        if only_active:
            return self._subscribers.filter(lambda sub: sub.is_active)
        return self._subscribers.all()

    async def update_newsletter_subscriber_status(
        self, subscriber_id: int, is_active: bool
    ) -> Optional[NewsletterSubscriber]:
        return self._update(self._subscribers, subscriber_id, None, is_active=is_active)

    async def delete_newsletter_subscriber(self, subscriber_id: int) -> bool:
        return self._subscribers.pop(subscriber_id)

    # ---------- languages ----------

    def _demote_default_languages(self, keep_code: str) -> None:
        for language in self._languages.filter(lambda lang: lang.is_default and lang.code != keep_code):
            logger.info("Language %s is no longer the default (replaced by %s)", language.code, keep_code)
            self._languages.put(language.code, language.model_copy(update={"is_default": False}))

    async def get_language(self, code: str) -> Optional[Language]:
        return self._languages.get(code)

    async def get_all_languages(self, only_active: bool = False) -> List[Language]:
        if only_active:
            return self._languages.filter(lambda lang: lang.is_active)
        return self._languages.all()

    async def get_default_language(self) -> Optional[Language]:
        return self._languages.find(lambda lang: lang.is_default)

    async def create_language(self, data: LanguageCreate) -> Language:
        table = self._languages
        with table.lock:
            if table.get(data.code) is not None:
                raise DuplicateEntryError("Language", "code", data.code)
            language = Language(id=table.allocate_id(), **data.model_dump())
            if language.is_default:
                self._demote_default_languages(language.code)
            return table.put(language.code, language)

    async def update_language(self, code: str, patch: LanguageUpdate) -> Optional[Language]:
        table = self._languages
        with table.lock:
            language = table.get(code)
            if language is None:
                return None
            updated = Language.model_validate({**language.model_dump(), **patch.changes()})
            if updated.code != code:
                if table.get(updated.code) is not None:
                    raise DuplicateEntryError("Language", "code", updated.code)
                table.pop(code)
            if updated.is_default:
                self._demote_default_languages(updated.code)
            return table.put(updated.code, updated)

    async def delete_language(self, code: str) -> bool:
        return self._languages.pop(code)

    # ---------- translations ----------

    async def get_translation(self, language_code: str, key: str) -> Optional[Translation]:
        return self._translations.get(_composite(language_code, key))

    async def get_all_translations(self, language_code: str) -> List[Translation]:
        return self._translations.filter(lambda tr: tr.language_code == language_code)

    async def create_translation(self, data: TranslationCreate) -> Translation:
        table = self._translations
        key = _composite(data.language_code, data.key)
        with table.lock:
            if table.get(key) is not None:
                raise DuplicateEntryError("Translation", "key", key)
            row = Translation(id=table.allocate_id(), **data.model_dump(), updated_at=self._now())
            return table.put(key, row)

    async def upsert_translation(self, data: TranslationCreate) -> Translation:
        table = self._translations
        key = _composite(data.language_code, data.key)
        with table.lock:
            existing = table.get(key)
            if existing is not None:
                return table.put(key, existing.model_copy(update={"value": data.value, "updated_at": self._now()}))
            row = Translation(id=table.allocate_id(), **data.model_dump(), updated_at=self._now())
            return table.put(key, row)

    async def update_translation(self, translation_id: int, patch: TranslationUpdate) -> Optional[Translation]:
        table = self._translations
        with table.lock:
            translation = table.find(lambda tr: tr.id == translation_id)
            if translation is None:
                return None
            old_key = _composite(translation.language_code, translation.key)
            updated = Translation.model_validate(
                {**translation.model_dump(), **patch.changes(), "updated_at": self._now()}
            )
            new_key = _composite(updated.language_code, updated.key)
            if new_key != old_key:
                if table.get(new_key) is not None:
                    raise DuplicateEntryError("Translation", "key", new_key)
                table.pop(old_key)
            return table.put(new_key, updated)

    async def delete_translation(self, translation_id: int) -> bool:
        table = self._translations
        with table.lock:
            translation = table.find(lambda tr: tr.id == translation_id)
            if translation is None:
                return False
            return table.pop(_composite(translation.language_code, translation.key))

    # ---------- social profiles ----------

    async def get_social_profile(self, profile_id: int) -> Optional[SocialProfile]:
        return self._social_profiles.get(profile_id)

    async def get_social_profile_by_platform(self, platform: str) -> Optional[SocialProfile]:
        wanted = platform.casefold()
        return self._social_profiles.find(lambda profile: profile.platform.casefold() == wanted)

    async def get_all_social_profiles(self) -> List[SocialProfile]:
        return self._social_profiles.all()

    async def create_social_profile(self, data: SocialProfileCreate) -> SocialProfile:
        now = self._now()
        return self._insert(self._social_profiles, SocialProfile, **data.model_dump(), last_synced=now, updated_at=now)

    async def update_social_profile(self, profile_id: int, patch: SocialProfileUpdate) -> Optional[SocialProfile]:
        # last_synced only moves on sync
        return self._update(self._social_profiles, profile_id, patch, updated_at=self._now())

    async def delete_social_profile(self, profile_id: int) -> bool:
        return self._social_profiles.pop(profile_id)

    async def sync_social_profile(self, profile_id: int) -> Optional[SocialProfile]:
        # TODO: pull display name, avatar and follower count from the platform APIs using the stored tokens
        now = self._now()
        return self._update(self._social_profiles, profile_id, None, last_synced=now, updated_at=now)
