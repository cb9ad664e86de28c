"""
Database Schemas for Portfolio CMS

Each entity model = one MongoDB collection (lowercased class name).
Every entity comes in three shapes:

- ``<Entity>``        the stored record, as returned by the storage layer
- ``<Entity>Create``  the payload accepted by ``create_*`` / ``upsert_*``
- ``<Entity>Update``  a partial update; only fields explicitly set are applied

Timestamps are ISO-8601 strings (UTC).
"""

from typing import ClassVar, FrozenSet, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

SiteContentType = Literal["text", "image"]


class PatchModel(BaseModel):
    """Partial update. Unset fields are left alone; None only clears nullable fields."""

    nullable_fields: ClassVar[FrozenSet[str]] = frozenset()

    @model_validator(mode="after")
    def _reject_null_required(self):
        for name in self.model_fields_set:
            if getattr(self, name) is None and name not in self.nullable_fields:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


# Auth
class User(BaseModel):
    id: int
    username: str
    password: str
    is_admin: bool = False

class UserCreate(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)  # kept in clear, see DESIGN.md
    is_admin: bool = False


# Contact form (append-only)
class Contact(BaseModel):
    id: int
    name: str
    email: str
    subject: str
    message: str
    created_at: str

class ContactCreate(BaseModel):
    name: str
    email: EmailStr
    subject: str
    message: str


# Site content, addressed by (section, key)
class SiteContent(BaseModel):
    id: int
    section: str
    key: str
    value: str
    type: SiteContentType = "text"
    updated_at: str

class SiteContentCreate(BaseModel):
    section: str = Field(..., min_length=1, description="e.g. hero, about")
    key: str = Field(..., min_length=1, description="e.g. name, bio")
    value: str
    type: Optional[SiteContentType] = None  # None keeps the stored type on update


# Projects
class Project(BaseModel):
    id: int
    title: str
    description: str
    image: str
    category: str
    technologies: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    link: str
    updated_at: str

class ProjectCreate(BaseModel):
    title: str
    description: str
    image: str
    category: str = Field(..., description="web|ui|mobile")
    technologies: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    link: str

class ProjectUpdate(PatchModel):
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    category: Optional[str] = None
    technologies: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    link: Optional[str] = None


# Experience
class Experience(BaseModel):
    id: int
    title: str
    company: str
    location: str
    period: str
    description: List[str] = Field(default_factory=list)
    technologies: List[str] = Field(default_factory=list)
    achievements: List[str] = Field(default_factory=list)
    category: str
    logo: Optional[str] = None
    updated_at: str

class ExperienceCreate(BaseModel):
    title: str
    company: str
    location: str
    period: str
    description: List[str] = Field(default_factory=list)
    technologies: List[str] = Field(default_factory=list)
    achievements: List[str] = Field(default_factory=list)
    category: str = Field(..., description="backend|frontend|ai-ml|devops|management")
    logo: Optional[str] = None

class ExperienceUpdate(PatchModel):
    nullable_fields = frozenset({"logo"})

    title: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    period: Optional[str] = None
    description: Optional[List[str]] = None
    technologies: Optional[List[str]] = None
    achievements: Optional[List[str]] = None
    category: Optional[str] = None
    logo: Optional[str] = None


# Testimonials
class Testimonial(BaseModel):
    id: int
    name: str
    position: str
    company: str
    text: str
    image: Optional[str] = None
    updated_at: str

class TestimonialCreate(BaseModel):
    name: str
    position: str
    company: str
    text: str
    image: Optional[str] = None

class TestimonialUpdate(PatchModel):
    nullable_fields = frozenset({"image"})

    name: Optional[str] = None
    position: Optional[str] = None
    company: Optional[str] = None
    text: Optional[str] = None
    image: Optional[str] = None


# Blog
class BlogPost(BaseModel):
    id: int
    title: str
    slug: str
    summary: str
    content: str
    featured_image: str
    author_id: Optional[int] = None
    category: str
    tags: Optional[List[str]] = None
    is_published: bool = True
    view_count: int = 0
    created_at: str
    updated_at: str

class BlogPostCreate(BaseModel):
    title: str
    slug: str = Field(..., min_length=1)
    summary: str
    content: str
    featured_image: str
    author_id: Optional[int] = None
    category: str = Field(..., description="tech|career|ai|ml|web-dev|backend|frontend|devops|tutorial|opinion")
    tags: Optional[List[str]] = None
    is_published: bool = True

class BlogPostUpdate(PatchModel):
    nullable_fields = frozenset({"author_id", "tags"})

    title: Optional[str] = None
    slug: Optional[str] = None
    summary: Optional[str] = None
    content: Optional[str] = None
    featured_image: Optional[str] = None
    author_id: Optional[int] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    is_published: Optional[bool] = None


class BlogComment(BaseModel):
    id: int
    post_id: int
    name: str
    email: str
    content: str
    is_approved: bool = False
    created_at: str

class BlogCommentCreate(BaseModel):
    post_id: int
    name: str
    email: EmailStr
    content: str = Field(..., min_length=1)


# Skills
class Skill(BaseModel):
    id: int
    name: str
    category: str
    proficiency: int = Field(..., ge=0, le=100)
    icon: Optional[str] = None
    years_experience: Optional[str] = None
    updated_at: str

class SkillCreate(BaseModel):
    name: str
    category: str = Field(..., description="e.g. Programming, Design, DevOps")
    proficiency: int = Field(..., ge=0, le=100, description="0-100 percentage")
    icon: Optional[str] = None
    years_experience: Optional[str] = Field(None, description='e.g. "3+ years"')

class SkillUpdate(PatchModel):
    nullable_fields = frozenset({"icon", "years_experience"})

    name: Optional[str] = None
    category: Optional[str] = None
    proficiency: Optional[int] = Field(None, ge=0, le=100)
    icon: Optional[str] = None
    years_experience: Optional[str] = None


# Newsletter
class NewsletterSubscriber(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    is_active: bool = True
    created_at: str

class NewsletterSubscriberCreate(BaseModel):
    email: EmailStr
    name: Optional[str] = None
    is_active: bool = True


# i18n
class Language(BaseModel):
    id: int
    code: str
    name: str
    is_active: bool = True
    is_default: bool = False

class LanguageCreate(BaseModel):
    code: str = Field(..., min_length=2, description="e.g. en, es, fr")
    name: str
    is_active: bool = True
    is_default: bool = False

class LanguageUpdate(PatchModel):
    code: Optional[str] = Field(None, min_length=2)
    name: Optional[str] = None
    is_active: Optional[bool] = None
    is_default: Optional[bool] = None


class Translation(BaseModel):
    id: int
    language_code: str
    key: str
    value: str
    updated_at: str

class TranslationCreate(BaseModel):
    language_code: str = Field(..., min_length=2)
    key: str = Field(..., min_length=1)
    value: str

class TranslationUpdate(PatchModel):
    language_code: Optional[str] = Field(None, min_length=2)
    key: Optional[str] = Field(None, min_length=1)
    value: Optional[str] = None


# Social media profiles
class SocialProfile(BaseModel):
    id: int
    platform: str
    username: str
    profile_url: str
    display_name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    follower_count: Optional[int] = None
    is_connected: bool = True
    last_synced: str
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_expiry: Optional[str] = None
    updated_at: str

class SocialProfileCreate(BaseModel):
    platform: str = Field(..., description="linkedin|github|twitter|...")
    username: str
    profile_url: str
    display_name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    follower_count: Optional[int] = None
    is_connected: bool = True
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_expiry: Optional[str] = None

class SocialProfileUpdate(PatchModel):
    nullable_fields = frozenset({
        "display_name", "bio", "avatar_url", "follower_count", "access_token", "refresh_token", "token_expiry",
    })

    platform: Optional[str] = None
    username: Optional[str] = None
    profile_url: Optional[str] = None
    display_name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    follower_count: Optional[int] = None
    is_connected: Optional[bool] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_expiry: Optional[str] = None
