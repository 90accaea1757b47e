"""Populate the database with demo templates and interview sessions.

Existing data is removed first. Run with ``python seed_database.py``.
"""

import asyncio
import logging
from datetime import datetime, timedelta

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import settings
from db.database import close_db, init_db
from db.models import (
    ConversationLog,
    InterviewSession,
    InterviewTemplate,
    ReportAggregation,
    ReportDetail,
)

logger = logging.getLogger("seed")

PRODUCT_FEEDBACK_PROMPT = """\
You are an experienced product researcher conducting a user interview. Your goal is to understand the user's experience with our product and gather valuable feedback.

Guidelines:
- Ask one question at a time
- Listen actively and ask follow-up questions based on user responses
- Be empathetic and professional
- Dig deeper into specific pain points or positive experiences

Start by asking about their overall experience with the product."""

PRODUCT_FEEDBACK_PROMPT_JA = """\
あなたは経験豊富なプロダクトリサーチャーとして、ユーザーインタビューを実施しています。ユーザーの製品体験を理解し、貴重なフィードバックを収集することが目標です。

ガイドライン：
- 一度に1つの質問をする
- ユーザーの回答に基づいて積極的に聞き、フォローアップの質問をする
- 共感的でプロフェッショナルな態度を保つ
- 特定の課題点やポジティブな体験をより深く掘り下げる

まず製品全体の体験について質問してください。"""

USER_RESEARCH_PROMPT = """\
You are a UX researcher conducting a discovery interview. Your objective is to understand the user's needs, challenges, and behaviors in their daily workflow.

Guidelines:
- Focus on understanding the "why" behind user behaviors
- Ask open-ended questions and avoid leading questions
- Explore specific examples and stories
- Build rapport with the interviewee

Begin by asking about their typical workflow and daily challenges."""

USER_RESEARCH_PROMPT_JA = """\
あなたはUXリサーチャーとして、発見的インタビューを実施しています。ユーザーの日常業務におけるニーズ、課題、行動を理解することが目的です。

ガイドライン：
- ユーザーの行動の背後にある「なぜ」を理解することに焦点を当てる
- オープンエンドな質問をし、誘導的な質問を避ける
- 具体的な例やストーリーを探る
- インタビュイーとの信頼関係を構築する

まず、典型的なワークフローと日々の課題について質問してください。"""

TEMPLATES = [
    {
        "id": "template-product-feedback",
        "title": "Product Feedback Interview",
        "prompt": PRODUCT_FEEDBACK_PROMPT,
        "overview": "A short conversation about how you use our product and what could be better.",
        "duration": 600,
        "translations": {
            "en": {
                "title": "Product Feedback Interview",
                "prompt": PRODUCT_FEEDBACK_PROMPT,
                "overview": "A short conversation about how you use our product and what could be better.",
            },
            "ja": {
                "title": "製品フィードバックインタビュー",
                "prompt": PRODUCT_FEEDBACK_PROMPT_JA,
                "overview": "製品の使い方と改善点についての短いインタビューです。",
            },
        },
    },
    {
        "id": "template-user-research",
        "title": "User Needs Research",
        "prompt": USER_RESEARCH_PROMPT,
        "overview": "A discovery interview about your daily workflow and the challenges in it.",
        "duration": 900,
        "translations": {
            "en": {
                "title": "User Needs Research",
                "prompt": USER_RESEARCH_PROMPT,
                "overview": "A discovery interview about your daily workflow and the challenges in it.",
            },
            "ja": {
                "title": "ユーザーニーズ調査",
                "prompt": USER_RESEARCH_PROMPT_JA,
                "overview": "日々の業務フローとその課題についての調査インタビューです。",
            },
        },
    },
]

# (session id, template id, language, status, [(role, content), ...])
SESSIONS = [
    (
        "session-pf-001",
        "template-product-feedback",
        "en",
        "completed",
        [
            ("assistant", "Hello! Thank you for taking the time to speak with me today. To start, could you tell me about your overall experience with our product so far?"),
            ("user", "Overall, I've had a pretty positive experience. I use it daily for managing my projects, and it has made my workflow more organized."),
            ("assistant", "That's great to hear! Could you share a specific example of how it has made your project management more organized?"),
            ("user", "I really like the task prioritization feature. I can easily rearrange tasks when priorities change. It saves me a lot of time compared to my old spreadsheet."),
            ("assistant", "On the flip side, have you encountered any challenges or frustrations while using the product?"),
            ("user", "The mobile app is a bit clunky. Sometimes it's slow to load, and last week it took forever to sync a task update during a meeting."),
        ],
    ),
    (
        "session-pf-002",
        "template-product-feedback",
        "ja",
        "completed",
        [
            ("assistant", "こんにちは！本日はお時間をいただきありがとうございます。まず、製品の全体的な使用感についてお聞かせいただけますか？"),
            ("user", "全体的には満足しています。特にチーム機能が便利で、メンバー間のコミュニケーションがスムーズになりました。"),
            ("assistant", "一方で、改善してほしい点や使いにくいと感じる部分はありますか？"),
            ("user", "通知機能がちょっと多すぎて、重要な通知が埋もれてしまうことがあります。通知の優先度を設定できるようになると助かります。"),
        ],
    ),
    (
        "session-pf-003",
        "template-product-feedback",
        "en",
        "active",
        [
            ("assistant", "Hello! Thank you for joining this interview today. How has our product been for you overall?"),
            ("user", "It's been good! I started using it about a month ago for team collaboration."),
            ("assistant", "That's great! How has it helped with your team collaboration specifically?"),
        ],
    ),
    (
        "session-ur-001",
        "template-user-research",
        "en",
        "completed",
        [
            ("assistant", "Hello! Thank you for participating in this research session. Could you start by describing a typical day in your work?"),
            ("user", "I work as a marketing manager. My day starts with emails and prioritizing tasks, then team meetings, campaign work and performance metrics."),
            ("assistant", "What would you say is the most challenging part of your daily workflow?"),
            ("user", "Managing all the different tools. Switching between email, project management and analytics takes a lot of time and mental energy."),
            ("assistant", "What would an ideal solution look like for you?"),
            ("user", "A central dashboard where I could see project status, analytics and team communications in one place."),
        ],
    ),
    (
        "session-ur-002",
        "template-user-research",
        "ja",
        "completed",
        [
            ("assistant", "こんにちは！本日は調査にご協力いただきありがとうございます。まず、典型的な1日の仕事の流れについて教えていただけますか？"),
            ("user", "ソフトウェアエンジニアとして働いています。朝はスタンドアップミーティング、その後コーディングとコードレビュー、午後は設計やドキュメント作成です。"),
            ("assistant", "その中で、最も時間がかかる、あるいは難しいと感じる作業は何ですか？"),
            ("user", "コードレビューですね。コンテキストが分からない場合は、関連するドキュメントを探す必要があります。AIで要約を作ってくれるツールがあれば最高です。"),
        ],
    ),
    (
        "session-ur-003",
        "template-user-research",
        "ja",
        "active",
        [
            ("assistant", "本日はありがとうございます。まず、典型的な1日の流れを教えていただけますか？"),
        ],
    ),
]


async def seed(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Replace all data with the demo templates and sessions in one transaction."""
    now = datetime.utcnow()
    async with session_factory() as db:
        async with db.begin():
            for model in (ConversationLog, ReportDetail, ReportAggregation, InterviewSession, InterviewTemplate):
                await db.execute(delete(model))

            for template in TEMPLATES:
                db.add(InterviewTemplate(created_at=now, **template))
                logger.info(f"Created template: {template['title']}")
            await db.flush()

            for index, (session_id, template_id, language, status, turns) in enumerate(SESSIONS):
                started_at = now - timedelta(days=len(SESSIONS) - index, minutes=15)
                ended_at = started_at + timedelta(minutes=2 * len(turns)) if status == "completed" else None
                db.add(
                    InterviewSession(
                        id=session_id,
                        template_id=template_id,
                        language=language,
                        status=status,
                        started_at=started_at,
                        ended_at=ended_at,
                    )
                )
                await db.flush()
                for offset, (role, content) in enumerate(turns):
                    db.add(
                        ConversationLog(
                            session_id=session_id,
                            role=role,
                            content=content,
                            metadata_={"type": "text"},
                            timestamp=started_at + timedelta(minutes=offset),
                        )
                    )
                logger.info(f"Created session {session_id} ({language}, {status}, {len(turns)} messages)")


async def main() -> None:
    session_factory = await init_db(str(settings.db_path.expanduser()))
    try:
        await seed(session_factory)
    finally:
        await close_db()
    logger.info(f"Seeded {len(TEMPLATES)} templates and {len(SESSIONS)} sessions")


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )
    asyncio.run(main())
