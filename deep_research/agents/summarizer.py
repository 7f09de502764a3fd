from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Sequence

from loguru import logger

from deep_research.capabilities import StructuredCompletionService
from deep_research.config import MAX_SUMMARY_WORKERS
from deep_research.models.messages import ResearchState
from deep_research.models.schemas import WebpageSummary
from deep_research.services.prompt_store import render_prompt


class SummarizationError(RuntimeError):
    """One document of a batch failed; the whole batch is discarded."""

    def __init__(self, index: int, failed: int, total: int, cause: BaseException):
        self.index = index
        self.failed = failed
        self.total = total
        super().__init__(
            f"Failed to summarize document {index} ({failed} of {total} failed): {cause}"
        )


@dataclass(slots=True)
class SummaryJob:
    index: int
    text: str


@dataclass(slots=True)
class SummaryResult:
    index: int
    summary: str = ""
    error: Exception | None = None


def format_summary(summary: WebpageSummary) -> str:
    excerpts = "\n".join(f"- {e}" for e in summary.key_excerpts)
    return f"<summary>\n{summary.summary}\n</summary>\n<key_excerpts>\n{excerpts}\n</key_excerpts>"


class ResearchSummarizer:
    """Compresses raw search documents with a bounded pool of workers.

    Every document of a batch is summarized independently. Results arrive in
    completion order and are put back in document order by index before they
    reach the research notes. A batch is all-or-nothing: either every
    document is summarized and appended, or nothing is.
    """

    def __init__(
        self,
        client: StructuredCompletionService,
        *,
        max_workers: int = MAX_SUMMARY_WORKERS,
    ):
        self.client = client
        self.max_workers = min(max(max_workers, 1), MAX_SUMMARY_WORKERS)

    async def _summarize_one(self, job: SummaryJob) -> str:
        prompt = render_prompt("summarize.prompt", raw_content=job.text)
        summary = await self.client.complete_structured(
            prompt, WebpageSummary, caller="summarizer"
        )
        return format_summary(summary)

    async def _worker(
        self,
        jobs: asyncio.Queue[SummaryJob],
        results: asyncio.Queue[SummaryResult],
    ) -> None:
        while True:
            try:
                job = jobs.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                summary = await self._summarize_one(job)
            except Exception as e:
                # Keep pulling: siblings and later jobs still run to completion.
                await results.put(SummaryResult(index=job.index, error=e))
            else:
                await results.put(SummaryResult(index=job.index, summary=summary))

    async def summarize_batch(self, documents: Sequence[str]) -> list[str]:
        """Summarize ``documents`` and return the formatted blocks in input order."""
        if not documents:
            raise ValueError("no results to summarize")

        total = len(documents)
        jobs: asyncio.Queue[SummaryJob] = asyncio.Queue()
        results: asyncio.Queue[SummaryResult] = asyncio.Queue()
        for index, text in enumerate(documents):
            jobs.put_nowait(SummaryJob(index=index, text=text))

        num_workers = min(total, self.max_workers)
        t0 = time.monotonic()
        workers = [
            asyncio.create_task(self._worker(jobs, results), name=f"summarizer-{i}")
            for i in range(num_workers)
        ]

        collected: list[SummaryResult] = []
        try:
            for _ in range(total):
                collected.append(await results.get())
        finally:
            for worker in workers:
                if not worker.done():
                    worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        failures = sorted((r for r in collected if r.error is not None), key=lambda r: r.index)
        if failures:
            first = failures[0]
            logger.warning(
                f"Discarding summary batch: {len(failures)}/{total} documents failed "
                f"(first failure at index {first.index}: {first.error})"
            )
            raise SummarizationError(first.index, len(failures), total, first.error) from first.error

        ordered = sorted(collected, key=lambda r: r.index)
        logger.debug(
            f"Summarized {total} documents with {num_workers} workers "
            f"in {int((time.monotonic() - t0) * 1000)}ms"
        )
        return [r.summary for r in ordered]

    async def summarize(self, documents: Sequence[str], state: ResearchState) -> str:
        """Summarize a batch, append it to the research notes and return the tool text."""
        summaries = await self.summarize_batch(documents)
        state.add_notes(summaries)
        return "\n".join(summaries)
