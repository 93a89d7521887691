"""
FAQ lookup.

Scores each FAQ document by word overlap with the customer's question and
keeps the best few above a threshold. Good enough for the short FAQ lists
a small business maintains.
"""

import logging
import re
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select

from deskbot.infra.database import Database
from deskbot.models.database import FaqDocument

logger = logging.getLogger(__name__)

_WORD = re.compile(r"[a-z0-9]+")

STOPWORDS = frozenset({
    "a", "an", "the", "is", "are", "do", "does", "you", "your", "i", "me", "my",
    "we", "our", "to", "of", "for", "in", "on", "and", "or", "it", "can", "what",
    "how", "when", "where", "which", "why", "there", "any", "be", "with", "at",
})


@dataclass(frozen=True)
class FaqEntry:
    """One FAQ document."""
    question: str
    answer: str
    category: Optional[str] = None


@dataclass(frozen=True)
class FaqMatch:
    entry: FaqEntry
    score: float


def tokenize(text: str) -> set[str]:
    """Lower-cased content words."""
    return {w for w in _WORD.findall(text.lower()) if w not in STOPWORDS}


def search_faqs(
    entries: list[FaqEntry],
    query: str,
    threshold: float = 0.3,
    limit: int = 3,
) -> list[FaqMatch]:
    """
    Rank FAQ entries against a question.

    Score is the fraction of the query's content words found in the entry's
    question or answer. Question words count double so an entry whose
    question matches beats one that only mentions the words in passing.
    """
    query_words = tokenize(query)
    if not query_words:
        return []

    matches = []
    for entry in entries:
        question_words = tokenize(entry.question)
        answer_words = tokenize(entry.answer)
        hits = sum(
            2 if w in question_words else 1 if w in answer_words else 0
            for w in query_words
        )
        score = hits / (2 * len(query_words))
        if score >= threshold:
            matches.append(FaqMatch(entry=entry, score=score))

    matches.sort(key=lambda m: m.score, reverse=True)
    return matches[:limit]


def build_faq_prompt(question: str, matches: list[FaqMatch]) -> str:
    """Answer prompt grounded only in the matched FAQs."""
    context = "\n\n".join(
        f"[{i}] Q: {m.entry.question}\nA: {m.entry.answer}"
        for i, m in enumerate(matches, start=1)
    )
    return f"""Answer the customer's question using ONLY the provided FAQs. If the answer isn't in the FAQs, say you don't know.

FAQs:
{context}

Customer Question: {question}

Instructions:
- Answer briefly and naturally
- Keep response under 100 words
- Be friendly and professional"""


class FaqRepository:
    """Reads and writes a tenant's FAQ documents."""

    def __init__(self, db: Database):
        self.db = db

    async def list_for_tenant(self, tenant_id: uuid.UUID) -> list[FaqEntry]:
        async with self.db.session() as session:
            result = await session.execute(
                select(FaqDocument).where(FaqDocument.business_id == tenant_id)
            )
            return [
                FaqEntry(question=d.question, answer=d.answer, category=d.category)
                for d in result.scalars()
            ]

    async def add(self, tenant_id: uuid.UUID, entry: FaqEntry) -> uuid.UUID:
        document = FaqDocument(
            id=uuid.uuid4(),
            business_id=tenant_id,
            question=entry.question,
            answer=entry.answer,
            category=entry.category,
        )
        async with self.db.session() as session:
            session.add(document)
        return document.id

    async def search(
        self,
        tenant_id: uuid.UUID,
        query: str,
        threshold: float = 0.3,
        limit: int = 3,
    ) -> list[FaqMatch]:
        entries = await self.list_for_tenant(tenant_id)
        matches = search_faqs(entries, query, threshold, limit)
        logger.debug(f"FAQ search matched {len(matches)}/{len(entries)} documents")
        return matches
