"""Shared fixtures for the storage tests."""

import pytest

from memory_storage import MemoryStorage
from schemas import BlogPostCreate, ProjectCreate


@pytest.fixture
def memory():
    return MemoryStorage()


@pytest.fixture
def project_payload():
    def make(title: str = "Portfolio site") -> ProjectCreate:
        return ProjectCreate(
            title=title,
            description="A responsive portfolio",
            image="/uploads/portfolio.png",
            category="web",
            technologies=["React", "FastAPI"],
            tags=["frontend"],
            link="https://example.com",
        )
    return make


@pytest.fixture
def post_payload():
    def make(slug: str, is_published: bool = True) -> BlogPostCreate:
        return BlogPostCreate(
            title=slug.replace("-", " ").title(),
            slug=slug,
            summary="Summary",
            content="Body",
            featured_image="/uploads/cover.png",
            category="tech",
            is_published=is_published,
        )
    return make
