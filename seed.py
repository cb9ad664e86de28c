"""First-run demo content, written through the public storage contract."""

import logging

from schemas import ExperienceCreate, SiteContentCreate, SocialProfileCreate, UserCreate
from storage_backend import StorageBackend

logger = logging.getLogger("portfolio-api.seed")

DEFAULT_ADMIN = UserCreate(username="admin", password="admin123", is_admin=True)

SITE_CONTENT = [
    SiteContentCreate(section="hero", key="name", value="Ritik Mahyavanshi", type="text"),
    SiteContentCreate(section="hero", key="role", value="Full Stack Developer & AI Specialist", type="text"),
    SiteContentCreate(section="hero", key="photo", value="/uploads/1672052819495.jpeg", type="image"),
    SiteContentCreate(section="about", key="title", value="Full Stack Developer & AI Engineer", type="text"),
    SiteContentCreate(
        section="about",
        key="bio",
        value=(
            "I am a passionate Full Stack Developer with expertise in backend systems and AI development. "
            "With 5+ years of experience building scalable applications and implementing machine learning "
            "models, I bring a unique blend of technical abilities and problem-solving skills to every project."
        ),
        type="text",
    ),
    SiteContentCreate(
        section="about",
        key="photo",
        value="https://images.unsplash.com/photo-1573164574572-cb89e39749b4?auto=format&fit=crop&w=1161&q=80",
        type="image",
    ),
    SiteContentCreate(section="about", key="degree", value="MS in Computer Science", type="text"),
    SiteContentCreate(section="about", key="degree_specialization", value="Northeastern University, Silicon Valley", type="text"),
    SiteContentCreate(section="about", key="degree_period", value="Sep'25 to May'27", type="text"),
]

EXPERIENCES = [
    ExperienceCreate(
        title="Research Assistant",
        company="Speech Research Lab",
        location="University of Illinois",
        period="Jan 2022 - Feb 2023",
        description=[
            "Contributed to fundamental research in speech processing and natural language understanding.",
            "Developed algorithms for improved speech recognition in noisy environments.",
            "Collaborated with a team of PhD students and professors on cutting-edge research.",
        ],
        technologies=["Python", "TensorFlow", "PyTorch", "NLTK", "Jupyter", "Git"],
        achievements=[
            "Co-authored a research paper on noise-robust speech recognition.",
            "Improved recognition accuracy by 15% in challenging acoustic environments.",
            "Created a dataset of over 10,000 annotated speech samples.",
        ],
        category="ai-ml",
        logo="https://cdn-icons-png.flaticon.com/512/2988/2988031.png",
    ),
    ExperienceCreate(
        title="Machine Learning Intern",
        company="AI Solutions Inc.",
        location="Remote",
        period="May 2021 - Aug 2021",
        description=[
            "Developed and deployed machine learning models for predictive analytics.",
            "Created data pipelines for processing and analyzing large datasets.",
            "Implemented deep learning algorithms for natural language processing tasks.",
        ],
        technologies=["Python", "Scikit-learn", "Pandas", "Docker", "AWS", "PostgreSQL"],
        achievements=[
            "Built a recommendation system that increased user engagement by 22%.",
            "Optimized ML pipeline to reduce training time by 40%.",
            "Presented findings to senior leadership team.",
        ],
        category="ai-ml",
        logo="https://cdn-icons-png.flaticon.com/512/2103/2103633.png",
    ),
    ExperienceCreate(
        title="Backend Developer",
        company="TechStack Solutions",
        location="Chicago, IL",
        period="Mar 2023 - Present",
        description=[
            "Designed and implemented RESTful APIs for high-traffic applications.",
            "Architected distributed systems using microservices architecture.",
            "Developed data processing pipelines for real-time analytics.",
        ],
        technologies=["Node.js", "Express", "TypeScript", "MongoDB", "Redis", "Docker", "Kubernetes"],
        achievements=[
            "Reduced API response time by 65% through optimization and caching strategies.",
            "Implemented CI/CD pipeline reducing deployment time from hours to minutes.",
            "Led a team of 4 developers on a mission-critical project.",
        ],
        category="backend",
        logo="https://cdn-icons-png.flaticon.com/512/6295/6295417.png",
    ),
]

SOCIAL_PROFILES = [
    SocialProfileCreate(
        platform="linkedin",
        username="ritik-mahyavanshi",
        profile_url="https://www.linkedin.com/in/ritik-mahyavanshi/",
        display_name="Ritik Mahyavanshi",
    ),
    SocialProfileCreate(
        platform="github",
        username="ritikmahyavanshi",
        profile_url="https://github.com/ritikmahyavanshi",
        display_name="ritikmahyavanshi",
    ),
    SocialProfileCreate(
        platform="twitter",
        username="ritikm_dev",
        profile_url="https://twitter.com/ritikm_dev",
        display_name="Ritik Mahyavanshi",
    ),
]


async def seed_demo_data(store: StorageBackend) -> bool:
    """Populate ``store`` unless the default admin already exists. Returns True if seeded."""
    if await store.get_user_by_username(DEFAULT_ADMIN.username) is not None:
        logger.info("Demo data already present, skipping seed")
        return False

    await store.create_user(DEFAULT_ADMIN)
    for content in SITE_CONTENT:
        await store.upsert_site_content(content)
    for experience in EXPERIENCES:
        await store.create_experience(experience)
    for profile in SOCIAL_PROFILES:
        await store.create_social_profile(profile)

    logger.info(
        "Seeded demo data: 1 user, %s site content entries, %s experiences, %s social profiles",
        len(SITE_CONTENT), len(EXPERIENCES), len(SOCIAL_PROFILES),
    )
    return True
