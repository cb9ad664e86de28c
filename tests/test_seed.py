import pytest

from seed import EXPERIENCES, SITE_CONTENT, SOCIAL_PROFILES, seed_demo_data


class TestSeed:

    @pytest.mark.asyncio
    async def test_seed_populates_store(self, memory):
        assert await seed_demo_data(memory) is True

        admin = await memory.verify_user("admin", "admin123")
        assert admin is not None and admin.is_admin
        assert len(await memory.get_site_contents_by_section("hero")) == 3
        assert len(await memory.get_site_contents_by_section("about")) == len(SITE_CONTENT) - 3
        assert len(await memory.get_all_experiences()) == len(EXPERIENCES)
        assert (await memory.get_social_profile_by_platform("github")).username == "ritikmahyavanshi"

    @pytest.mark.asyncio
    async def test_seed_runs_once(self, memory):
        await seed_demo_data(memory)
        assert await seed_demo_data(memory) is False
        assert len(await memory.get_all_social_profiles()) == len(SOCIAL_PROFILES)
