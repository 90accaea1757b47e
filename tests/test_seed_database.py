import pytest

from db.database import close_db, init_db
from db.repository import InterviewStore
from models.schemas import TemplateInfo
from seed_database import SESSIONS, TEMPLATES, seed
from services.session_export import export_session_markdown


@pytest.mark.asyncio
async def test_seed_replaces_existing_data(tmp_path):
    factory = await init_db(str(tmp_path / "seed.db"))
    try:
        store = InterviewStore(factory)
        stale = await store.upsert_template(None, "Old", "Old prompt", "Old", 600, {})

        await seed(factory)
        await seed(factory)

        templates = await store.list_templates()
        assert {t.id for t in templates} == {t["id"] for t in TEMPLATES}
        assert await store.get_template(stale.id) is None
        for template in templates:
            info = TemplateInfo.model_validate(template)
            assert info.translations["ja"].title

        assert await store.count_sessions() == len(SESSIONS)
        sessions = await store.get_sessions_by_template("template-product-feedback")
        assert sorted(s.status for s in sessions) == ["active", "completed", "completed"]

        turns = await store.get_ordered_turns("session-pf-001")
        assert [t.role for t in turns] == ["assistant", "user"] * 3
        session = await store.get_session("session-pf-001")
        assert session.ended_at > session.started_at
        markdown = export_session_markdown(session, await store.get_template(session.template_id), turns)
        assert "6 messages" in markdown
    finally:
        await close_db()
