"""
Unified storage.

Every caller talks to ``UnifiedStorage``. For each call it picks MongoDB when
a connection is live and the in-memory store otherwise, and when a MongoDB
call fails it retries that one call against memory. Availability wins over
consistency: records written during a failover stay in memory and are not
reconciled with MongoDB.
"""

import functools
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import config
from database import ConnectionManager
from memory_storage import MemoryStorage
from mongo_storage import MongoStorage
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

logger = logging.getLogger("portfolio-api.storage")

R = TypeVar("R")


def with_fallback(method):
    """Run the same-named method of the active backend under the fallback policy."""
    name = method.__name__

    @functools.wraps(method)
    async def wrapper(self: "UnifiedStorage", *args, **kwargs):
        return await self._with_fallback(lambda backend: getattr(backend, name)(*args, **kwargs), name)

    return wrapper


class UnifiedStorage(StorageBackend):
    def __init__(self, connection: ConnectionManager, durable: StorageBackend, volatile: StorageBackend):
        self.connection = connection
        self.durable = durable
        self.volatile = volatile

        logger.info("Storage status: %s", connection.get_status())
        if connection.is_using_fallback():
            logger.info("Using in-memory storage (data will not persist across restarts)")
        elif connection.has_active_connection():
            logger.info("Connected to MongoDB (data will persist)")
        else:
            logger.info("MongoDB connection pending or not yet established")

    def active_backend(self) -> StorageBackend:
        if self.connection.is_using_fallback():
            return self.volatile
        if self.connection.has_active_connection():
            return self.durable
        logger.debug("MongoDB connection not ready, temporarily using in-memory storage")
        return self.volatile

    async def _with_fallback(self, operation: Callable[[StorageBackend], Awaitable[R]], method_name: str) -> R:
        backend = self.active_backend()
        try:
            return await operation(backend)
        except Exception as e:
            logger.error("Error in %s: %s", method_name, e)
            durable_still_up = not self.connection.is_using_fallback() and self.connection.has_active_connection()
            if backend is self.durable and durable_still_up:
                logger.warning("Falling back to memory storage for operation: %s", method_name)
                return await operation(self.volatile)
            raise

    def status_report(self) -> Dict[str, Any]:
        return self.connection.status_report()

    # Users
    @with_fallback
    async def get_user(self, user_id: int) -> Optional[User]: ...

    @with_fallback
    async def get_user_by_username(self, username: str) -> Optional[User]: ...

    @with_fallback
    async def create_user(self, data: UserCreate) -> User: ...

    @with_fallback
    async def verify_user(self, username: str, password: str) -> Optional[User]: ...

    # Contact form
    @with_fallback
    async def create_contact(self, data: ContactCreate) -> Contact: ...

    @with_fallback
    async def get_contact(self, contact_id: int) -> Optional[Contact]: ...

    @with_fallback
    async def get_all_contacts(self) -> List[Contact]: ...

    # Site content
    @with_fallback
    async def get_site_content(self, section: str, key: str) -> Optional[SiteContent]: ...

    @with_fallback
    async def get_site_contents_by_section(self, section: str) -> List[SiteContent]: ...

    @with_fallback
    async def upsert_site_content(self, data: SiteContentCreate) -> SiteContent: ...

    # Projects
    @with_fallback
    async def get_project(self, project_id: int) -> Optional[Project]: ...

    @with_fallback
    async def get_all_projects(self) -> List[Project]: ...

    @with_fallback
    async def create_project(self, data: ProjectCreate) -> Project: ...

    @with_fallback
    async def update_project(self, project_id: int, patch: ProjectUpdate) -> Optional[Project]: ...

    @with_fallback
    async def delete_project(self, project_id: int) -> bool: ...

    # Experience
    @with_fallback
    async def get_experience(self, experience_id: int) -> Optional[Experience]: ...

    @with_fallback
    async def get_all_experiences(self) -> List[Experience]: ...

    @with_fallback
    async def create_experience(self, data: ExperienceCreate) -> Experience: ...

    @with_fallback
    async def update_experience(self, experience_id: int, patch: ExperienceUpdate) -> Optional[Experience]: ...

    @with_fallback
    async def delete_experience(self, experience_id: int) -> bool: ...

    # Testimonials
    @with_fallback
    async def get_testimonial(self, testimonial_id: int) -> Optional[Testimonial]: ...

    @with_fallback
    async def get_all_testimonials(self) -> List[Testimonial]: ...

    @with_fallback
    async def create_testimonial(self, data: TestimonialCreate) -> Testimonial: ...

    @with_fallback
    async def update_testimonial(self, testimonial_id: int, patch: TestimonialUpdate) -> Optional[Testimonial]: ...

    @with_fallback
    async def delete_testimonial(self, testimonial_id: int) -> bool: ...

    # Blog posts
    @with_fallback
    async def get_blog_post(self, post_id: int) -> Optional[BlogPost]: ...

    @with_fallback
    async def get_blog_post_by_slug(self, slug: str) -> Optional[BlogPost]: ...

    @with_fallback
    async def get_all_blog_posts(self, is_published: Optional[bool] = None) -> List[BlogPost]: ...

    @with_fallback
    async def create_blog_post(self, data: BlogPostCreate) -> BlogPost: ...

    @with_fallback
    async def update_blog_post(self, post_id: int, patch: BlogPostUpdate) -> Optional[BlogPost]: ...

    @with_fallback
    async def delete_blog_post(self, post_id: int) -> bool: ...

    @with_fallback
    async def increment_blog_post_view_count(self, post_id: int) -> bool: ...

    # Blog comments
    @with_fallback
    async def get_blog_comment(self, comment_id: int) -> Optional[BlogComment]: ...

    @with_fallback
    async def get_blog_comments_by_post_id(self, post_id: int) -> List[BlogComment]: ...

    @with_fallback
    async def create_blog_comment(self, data: BlogCommentCreate) -> BlogComment: ...

    @with_fallback
    async def update_blog_comment_approval(self, comment_id: int, is_approved: bool) -> Optional[BlogComment]: ...

    @with_fallback
    async def delete_blog_comment(self, comment_id: int) -> bool: ...

    # Skills
    @with_fallback
    async def get_skill(self, skill_id: int) -> Optional[Skill]: ...

    @with_fallback
    async def get_all_skills(self) -> List[Skill]: ...

    @with_fallback
    async def get_skills_by_category(self, category: str) -> List[Skill]: ...

    @with_fallback
    async def create_skill(self, data: SkillCreate) -> Skill: ...

    @with_fallback
    async def update_skill(self, skill_id: int, patch: SkillUpdate) -> Optional[Skill]: ...

    @with_fallback
    async def delete_skill(self, skill_id: int) -> bool: ...

    # Newsletter
    @with_fallback
    async def create_newsletter_subscriber(self, data: NewsletterSubscriberCreate) -> NewsletterSubscriber: ...

    @with_fallback
    async def get_newsletter_subscriber(self, subscriber_id: int) -> Optional[NewsletterSubscriber]: ...

    @with_fallback
    async def get_all_newsletter_subscribers(self, only_active: bool = False) -> List[NewsletterSubscriber]: ...

    @with_fallback
    async def update_newsletter_subscriber_status(
        self, subscriber_id: int, is_active: bool
    ) -> Optional[NewsletterSubscriber]: ...

    @with_fallback
    async def delete_newsletter_subscriber(self, subscriber_id: int) -> bool: ...

    # Languages
    @with_fallback
    async def get_language(self, code: str) -> Optional[Language]: ...

    @with_fallback
    async def get_all_languages(self, only_active: bool = False) -> List[Language]: ...

    @with_fallback
    async def get_default_language(self) -> Optional[Language]: ...

    @with_fallback
    async def create_language(self, data: LanguageCreate) -> Language: ...

    @with_fallback
    async def update_language(self, code: str, patch: LanguageUpdate) -> Optional[Language]: ...

    @with_fallback
    async def delete_language(self, code: str) -> bool: ...

    # Translations
    @with_fallback
    async def get_translation(self, language_code: str, key: str) -> Optional[Translation]: ...

    @with_fallback
    async def get_all_translations(self, language_code: str) -> List[Translation]: ...

    @with_fallback
    async def create_translation(self, data: TranslationCreate) -> Translation: ...

    @with_fallback
    async def upsert_translation(self, data: TranslationCreate) -> Translation: ...

    @with_fallback
    async def update_translation(self, translation_id: int, patch: TranslationUpdate) -> Optional[Translation]: ...

    @with_fallback
    async def delete_translation(self, translation_id: int) -> bool: ...

    # Social profiles
    @with_fallback
    async def get_social_profile(self, profile_id: int) -> Optional[SocialProfile]: ...

    @with_fallback
    async def get_social_profile_by_platform(self, platform: str) -> Optional[SocialProfile]: ...

    @with_fallback
    async def get_all_social_profiles(self) -> List[SocialProfile]: ...

    @with_fallback
    async def create_social_profile(self, data: SocialProfileCreate) -> SocialProfile: ...

    @with_fallback
    async def update_social_profile(self, profile_id: int, patch: SocialProfileUpdate) -> Optional[SocialProfile]: ...

    @with_fallback
    async def delete_social_profile(self, profile_id: int) -> bool: ...

    @with_fallback
    async def sync_social_profile(self, profile_id: int) -> Optional[SocialProfile]: ...


def build_storage(uri: Optional[str] = config.MONGODB_URI, **connection_options) -> UnifiedStorage:
    """Wire the connection manager and both stores; call once per process."""
    connection = ConnectionManager(uri=uri, **connection_options)
    return UnifiedStorage(connection, MongoStorage(connection), MemoryStorage())
