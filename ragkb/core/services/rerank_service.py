"""Rerank service - relevance scoring with a generative model."""

import asyncio
import json
import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Optional

from ..errors import RerankParseError
from ..models.document import Candidate
from ..protocols.scorer import ScoringModelProtocol
from .rerank_parser import RerankResponseParser

logger = logging.getLogger(__name__)

PROMPT_HEADER = """You are an expert at judging how relevant documents are to a search query.
Assess each document below against the user query and return the result as JSON.

User query: {query}

Rules:
1. Scores range from 0.0 to 1.0; 1.0 is most relevant, 0.0 is unrelated.
2. Consider semantic similarity, topical match and informational value.
3. Give a short reason for each document.

Return exactly this JSON shape, one entry per document id:
"""

SELF_TEST_QUERY = "learning artificial intelligence"
SELF_TEST_DOCUMENTS = [
    "Machine learning tutorial covering the basic concepts with practical examples.",
    "Cooking guide that teaches you how to prepare delicious dishes.",
    "Introduction to deep learning: neural networks and algorithms explained.",
]


@dataclass(frozen=True)
class RerankRequestRecord:
    """Correlates the token shown to the scoring model with a candidate."""
    token: str
    position: int
    candidate: Candidate


def normalize_token(value: Any) -> Optional[str]:
    """Render an id from the model's response the way tokens are rendered."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    token = str(value).strip()
    return token or None


def coerce_score(value: Any) -> float:
    """Score as a float in [0, 1]; anything non-numeric counts as 0."""
    if isinstance(value, bool):
        return 0.0
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(score):
        return 0.0
    return min(1.0, max(0.0, score))


def sort_reranked(candidates: list[Candidate]) -> list[Candidate]:
    """Descending score, ties to the originally closer match."""
    indexed = list(enumerate(candidates))
    indexed.sort(
        key=lambda pair: (
            -(pair[1].rerank_score or 0.0),
            pair[1].original_rank if pair[1].original_rank is not None else pair[0] + 1,
        )
    )
    return [c for _, c in indexed]


class RerankService:
    """Reranks candidates by asking a generative model for relevance scores.

    Any failure (transport, HTTP status, timeout, unparseable output) returns
    the candidates in their retrieval order, without scores.
    """

    def __init__(
        self,
        scorer: ScoringModelProtocol,
        model: str = "",
        enabled: bool = True,
        temperature: float = 0.0,
        max_retries: int = 3,
        timeout: float = 30.0,
        default_score: float = 0.1,
        keep_unmatched: bool = True,
    ):
        """Initialize rerank service.

        Args:
            scorer: Streamed generation transport.
            model: Scoring model name, reported in stats.
            enabled: When False, rerank returns its input unchanged.
            temperature: Sampling temperature for scoring.
            max_retries: Reported in stats; calls are not retried.
            timeout: Seconds allowed for one scoring call.
            default_score: Score given to candidates the model did not score.
            keep_unmatched: Keep candidates missing from a ``results`` array.
        """
        self._scorer = scorer
        self._model = model
        self._enabled = enabled
        self._temperature = temperature
        self._max_retries = max_retries
        self._timeout = timeout
        self._default_score = default_score
        self._keep_unmatched = keep_unmatched

    @property
    def enabled(self) -> bool:
        return self._enabled

    @staticmethod
    def correlate(candidates: list[Candidate]) -> list[RerankRequestRecord]:
        """Assign each candidate a per-call token (its 1-based position)."""
        return [
            RerankRequestRecord(token=str(i), position=i, candidate=c)
            for i, c in enumerate(candidates, 1)
        ]

    @staticmethod
    def build_prompt(query: str, records: list[RerankRequestRecord]) -> str:
        shape = {
            "query": query,
            "results": [
                {"id": r.position, "score": 0.0, "reason": "short reason"}
                for r in records
            ],
        }
        parts = [
            PROMPT_HEADER.format(query=query),
            json.dumps(shape, ensure_ascii=False, indent=4),
            "\n\nDocuments:\n",
        ]
        for r in records:
            parts.append(f"Document {r.token}: {r.candidate.text}\n\n")
        return "".join(parts)

    async def _score(self, prompt: str) -> dict[str, Any]:
        parser = RerankResponseParser()
        async for line in self._scorer.generate_stream(
            prompt, temperature=self._temperature, format_hint="json"
        ):
            parser.feed_line(line)

        logger.debug(f"Scoring model response: {parser.text}")
        if parser.ignored_lines:
            logger.debug(f"Ignored {parser.ignored_lines} non-JSON stream lines")
        return parser.finish()

    def _apply_scores(
        self, data: dict[str, Any], records: list[RerankRequestRecord]
    ) -> list[Candidate]:
        by_token = {r.token: r for r in records}

        results = data.get("results")
        if isinstance(results, list):
            scores: dict[str, float] = {}
            for entry in results:
                if not isinstance(entry, dict):
                    continue
                token = normalize_token(entry.get("id"))
                if token in by_token and token not in scores:
                    scores[token] = coerce_score(entry.get("score", 0))

            if not scores:
                raise RerankParseError("No result entry matched a candidate")

            reranked = []
            for r in records:
                if r.token in scores:
                    score = scores[r.token]
                elif self._keep_unmatched:
                    score = self._default_score
                else:
                    continue
                reranked.append(replace(r.candidate, rerank_score=score, original_rank=r.position))

            dropped = len(records) - len(reranked)
            if dropped:
                logger.info(f"Rerank dropped {dropped} unscored candidates")
            return sort_reranked(reranked)

        if "id" in data and "score" in data:
            token = normalize_token(data.get("id"))
            if token not in by_token:
                raise RerankParseError(f"Single result id {data.get('id')!r} matches no candidate")

            logger.info("Scoring model returned a single result; defaulting the rest")
            reranked = [
                replace(
                    r.candidate,
                    rerank_score=(
                        coerce_score(data.get("score")) if r.token == token else self._default_score
                    ),
                    original_rank=r.position,
                )
                for r in records
            ]
            return sort_reranked(reranked)

        raise RerankParseError("Scoring response has neither 'results' nor 'id'/'score'")

    async def rerank(self, query: str, candidates: list[Candidate]) -> list[Candidate]:
        """Rerank candidates in one scoring call.

        Args:
            query: User query.
            candidates: Candidates in retrieval order.

        Returns:
            Candidates sorted by rerank score, or the input order unchanged.
        """
        if not self._enabled or not candidates:
            return list(candidates)

        records = self.correlate(candidates)
        prompt = self.build_prompt(query, records)
        logger.info(f"Reranking {len(candidates)} candidates for '{query[:50]}'")

        try:
            data = await asyncio.wait_for(self._score(prompt), timeout=self._timeout)
            reranked = self._apply_scores(data, records)
        except RerankParseError as e:
            logger.warning(f"Rerank response unusable, keeping retrieval order: {e}")
            return list(candidates)
        except asyncio.TimeoutError:
            logger.warning(f"Rerank timed out after {self._timeout}s, keeping retrieval order")
            return list(candidates)
        except Exception as e:
            logger.error(f"Rerank failed, keeping retrieval order: {e}")
            return list(candidates)

        if logger.isEnabledFor(logging.DEBUG):
            top_scores = ", ".join(f"{c.rerank_score:.2f}" for c in reranked[:3])
            logger.debug(f"Reranker top-3 scores: [{top_scores}]")
        logger.info(f"Rerank complete: {len(reranked)} candidates")
        return reranked

    async def batch_rerank(
        self, query: str, candidates: list[Candidate], batch_size: int = 10
    ) -> list[Candidate]:
        """Rerank fixed-size groups independently, then sort the whole list.

        Groups are scored without seeing each other, so the global order is
        an approximation. ``original_rank`` refers to the full input list.
        """
        if not self._enabled or not candidates:
            return list(candidates)

        size = max(1, batch_size)
        total = math.ceil(len(candidates) / size)
        merged: list[Candidate] = []

        for n, offset in enumerate(range(0, len(candidates), size), 1):
            group = candidates[offset : offset + size]
            for c in await self.rerank(query, group):
                if c.original_rank is not None:
                    c = replace(c, original_rank=c.original_rank + offset)
                merged.append(c)
            logger.info(f"Rerank batch {n}/{total} done")

        if not any(c.is_reranked for c in merged):
            return list(candidates)
        return sort_reranked(merged)

    def get_stats(self) -> dict[str, Any]:
        return {
            "model": self._model,
            "enabled": self._enabled,
            "temperature": self._temperature,
            "max_retries": self._max_retries,
            "timeout": self._timeout,
        }

    async def self_test(self) -> bool:
        """Score a fixed probe set and report whether scores came back."""
        probe = [
            Candidate(id=str(i), text=text, metadata={"filename": f"probe-{i}"}, similarity_distance=0.0)
            for i, text in enumerate(SELF_TEST_DOCUMENTS, 1)
        ]
        reranked = await self.rerank(SELF_TEST_QUERY, probe)
        ok = bool(reranked) and reranked[0].is_reranked
        if ok:
            for i, c in enumerate(reranked, 1):
                logger.info(f"  {i}. {c.filename}: score={c.rerank_score:.3f} '{c.text}'")
        else:
            logger.warning("Reranker self-test returned no scores")
        return ok
