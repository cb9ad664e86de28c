"""
Storage contract shared by the MongoDB store, the in-memory store and the
unified facade.

Not-found is never an exception: lookups return ``None``, deletes and
counters return ``False``.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

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


class StorageError(Exception):
    """Base class for errors raised by the storage layer itself."""


class DuplicateEntryError(StorageError):
    """A unique attribute (username, slug, language code, ...) is already taken."""

    def __init__(self, entity: str, field: str, value):
        super().__init__(f"{entity} with {field}={value!r} already exists")
        self.entity = entity
        self.field = field
        self.value = value


class StorageBackend(ABC):

    # Users
    @abstractmethod
    async def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    async def get_user_by_username(self, username: str) -> Optional[User]:
        """Exact, case-sensitive match."""

    @abstractmethod
    async def create_user(self, data: UserCreate) -> User: ...

    @abstractmethod
    async def verify_user(self, username: str, password: str) -> Optional[User]: ...

    # Contact form
    @abstractmethod
    async def create_contact(self, data: ContactCreate) -> Contact: ...

    @abstractmethod
    async def get_contact(self, contact_id: int) -> Optional[Contact]: ...

    @abstractmethod
    async def get_all_contacts(self) -> List[Contact]: ...

    # Site content
    @abstractmethod
    async def get_site_content(self, section: str, key: str) -> Optional[SiteContent]: ...

    @abstractmethod
    async def get_site_contents_by_section(self, section: str) -> List[SiteContent]: ...

    @abstractmethod
    async def upsert_site_content(self, data: SiteContentCreate) -> SiteContent:
        """Create or replace the entry stored under (section, key)."""

    # Projects
    @abstractmethod
    async def get_project(self, project_id: int) -> Optional[Project]: ...

    @abstractmethod
    async def get_all_projects(self) -> List[Project]: ...

    @abstractmethod
    async def create_project(self, data: ProjectCreate) -> Project: ...

    @abstractmethod
    async def update_project(self, project_id: int, patch: ProjectUpdate) -> Optional[Project]: ...

    @abstractmethod
    async def delete_project(self, project_id: int) -> bool: ...

    # Experience
    @abstractmethod
    async def get_experience(self, experience_id: int) -> Optional[Experience]: ...

    @abstractmethod
    async def get_all_experiences(self) -> List[Experience]: ...

    @abstractmethod
    async def create_experience(self, data: ExperienceCreate) -> Experience: ...

    @abstractmethod
    async def update_experience(self, experience_id: int, patch: ExperienceUpdate) -> Optional[Experience]: ...

    @abstractmethod
    async def delete_experience(self, experience_id: int) -> bool: ...

    # Testimonials
    @abstractmethod
    async def get_testimonial(self, testimonial_id: int) -> Optional[Testimonial]: ...

    @abstractmethod
    async def get_all_testimonials(self) -> List[Testimonial]: ...

    @abstractmethod
    async def create_testimonial(self, data: TestimonialCreate) -> Testimonial: ...

    @abstractmethod
    async def update_testimonial(self, testimonial_id: int, patch: TestimonialUpdate) -> Optional[Testimonial]: ...

    @abstractmethod
    async def delete_testimonial(self, testimonial_id: int) -> bool: ...

    # Blog posts
    @abstractmethod
    async def get_blog_post(self, post_id: int) -> Optional[BlogPost]: ...

    @abstractmethod
    async def get_blog_post_by_slug(self, slug: str) -> Optional[BlogPost]: ...

    @abstractmethod
    async def get_all_blog_posts(self, is_published: Optional[bool] = None) -> List[BlogPost]:
        """Published posts newest first, then unpublished ones."""

    @abstractmethod
    async def create_blog_post(self, data: BlogPostCreate) -> BlogPost: ...

    @abstractmethod
    async def update_blog_post(self, post_id: int, patch: BlogPostUpdate) -> Optional[BlogPost]: ...

    @abstractmethod
    async def delete_blog_post(self, post_id: int) -> bool:
        """Comments of the post are left in place."""

    @abstractmethod
    async def increment_blog_post_view_count(self, post_id: int) -> bool: ...

    # Blog comments
    @abstractmethod
    async def get_blog_comment(self, comment_id: int) -> Optional[BlogComment]: ...

    @abstractmethod
    async def get_blog_comments_by_post_id(self, post_id: int) -> List[BlogComment]: ...

    @abstractmethod
    async def create_blog_comment(self, data: BlogCommentCreate) -> BlogComment: ...

    @abstractmethod
    async def update_blog_comment_approval(self, comment_id: int, is_approved: bool) -> Optional[BlogComment]: ...

    @abstractmethod
    async def delete_blog_comment(self, comment_id: int) -> bool: ...

    # Skills
    @abstractmethod
    async def get_skill(self, skill_id: int) -> Optional[Skill]: ...

    @abstractmethod
    async def get_all_skills(self) -> List[Skill]: ...

    @abstractmethod
    async def get_skills_by_category(self, category: str) -> List[Skill]: ...

    @abstractmethod
    async def create_skill(self, data: SkillCreate) -> Skill: ...

    @abstractmethod
    async def update_skill(self, skill_id: int, patch: SkillUpdate) -> Optional[Skill]: ...

    @abstractmethod
    async def delete_skill(self, skill_id: int) -> bool: ...

    # Newsletter
    @abstractmethod
    async def create_newsletter_subscriber(self, data: NewsletterSubscriberCreate) -> NewsletterSubscriber: ...

    @abstractmethod
    async def get_newsletter_subscriber(self, subscriber_id: int) -> Optional[NewsletterSubscriber]: ...

    @abstractmethod
    async def get_all_newsletter_subscribers(self, only_active: bool = False) -> List[NewsletterSubscriber]: ...

    @abstractmethod
    async def update_newsletter_subscriber_status(
        self, subscriber_id: int, is_active: bool
    ) -> Optional[NewsletterSubscriber]: ...

    @abstractmethod
    async def delete_newsletter_subscriber(self, subscriber_id: int) -> bool: ...

    # Languages
    @abstractmethod
    async def get_language(self, code: str) -> Optional[Language]: ...

    @abstractmethod
    async def get_all_languages(self, only_active: bool = False) -> List[Language]: ...

    @abstractmethod
    async def get_default_language(self) -> Optional[Language]: ...

    @abstractmethod
    async def create_language(self, data: LanguageCreate) -> Language:
        """A new default language demotes the previous one."""

    @abstractmethod
    async def update_language(self, code: str, patch: LanguageUpdate) -> Optional[Language]: ...

    @abstractmethod
    async def delete_language(self, code: str) -> bool: ...

    # Translations
    @abstractmethod
    async def get_translation(self, language_code: str, key: str) -> Optional[Translation]: ...

    @abstractmethod
    async def get_all_translations(self, language_code: str) -> List[Translation]: ...

    @abstractmethod
    async def create_translation(self, data: TranslationCreate) -> Translation: ...

    @abstractmethod
    async def upsert_translation(self, data: TranslationCreate) -> Translation:
        """Create or replace the entry stored under (language_code, key)."""

    @abstractmethod
    async def update_translation(self, translation_id: int, patch: TranslationUpdate) -> Optional[Translation]: ...

    @abstractmethod
    async def delete_translation(self, translation_id: int) -> bool: ...

    # Social profiles
    @abstractmethod
    async def get_social_profile(self, profile_id: int) -> Optional[SocialProfile]: ...

    @abstractmethod
    async def get_social_profile_by_platform(self, platform: str) -> Optional[SocialProfile]: ...

    @abstractmethod
    async def get_all_social_profiles(self) -> List[SocialProfile]: ...

    @abstractmethod
    async def create_social_profile(self, data: SocialProfileCreate) -> SocialProfile: ...

    @abstractmethod
    async def update_social_profile(self, profile_id: int, patch: SocialProfileUpdate) -> Optional[SocialProfile]: ...

    @abstractmethod
    async def delete_social_profile(self, profile_id: int) -> bool: ...

    @abstractmethod
    async def sync_social_profile(self, profile_id: int) -> Optional[SocialProfile]:
        """Refresh ``last_synced``; platform APIs are not queried."""
