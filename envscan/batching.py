"""Batches extraction calls to stay inside the analysis endpoint's rate limit."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Iterator, List, Optional, Sequence, TypeVar

from .artifacts import read_artifact
from .errors import ExtractionError
from .extractor import DeclarationExtractor
from .logging import get_logger
from .models import PackageConfiguration, VariableDeclaration

T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[None]]


def iter_batches(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive fixed-size windows of ``items``; the last may be shorter."""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


@dataclass
class BatchReport:
    """Everything the coordinator accumulated for one package."""

    declarations: List[VariableDeclaration] = field(default_factory=list)
    batches: List[int] = field(default_factory=list)
    failures: List[Path] = field(default_factory=list)


class BatchCoordinator:
    """Runs extractions concurrently within a batch and serially across batches."""

    def __init__(
        self,
        extractor: DeclarationExtractor,
        *,
        batch_size: int = 5,
        delay: float = 1.0,
        sleep: Sleeper | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch size must be at least 1")
        self.extractor = extractor
        self.batch_size = batch_size
        self.delay = delay
        self._sleep = sleep or asyncio.sleep
        self.logger = get_logger("batching")

    async def run(
        self,
        paths: Sequence[Path],
        existing: Optional[PackageConfiguration] = None,
    ) -> BatchReport:
        report = BatchReport()
        total = -(-len(paths) // self.batch_size)
        for index, batch in enumerate(iter_batches(paths, self.batch_size), start=1):
            self.logger.info("Batch %d/%d (%d files)", index, total, len(batch))
            results = await asyncio.gather(
                *(self._extract_one(path, existing) for path in batch)
            )
            # Results follow argument order, not completion order.
            for path, declarations in zip(batch, results):
                if declarations is None:
                    report.failures.append(path)
                    continue
                report.declarations.extend(declarations)
            report.batches.append(len(batch))

            if index < total and self.delay > 0:
                self.logger.debug("Waiting %.1fs to respect API rate limits", self.delay)
                await self._sleep(self.delay)
        return report

    async def _extract_one(
        self,
        path: Path,
        existing: Optional[PackageConfiguration],
    ) -> Optional[List[VariableDeclaration]]:
        try:
            artifact = read_artifact(path)
        except OSError as exc:
            self.logger.warning("Failed to read %s: %s", path, exc)
            return None
        try:
            return await self.extractor.extract(artifact, existing)
        except ExtractionError as exc:
            self.logger.warning("Failed to analyze %s", exc)
            return None


__all__ = ["BatchCoordinator", "BatchReport", "iter_batches"]
