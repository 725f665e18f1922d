import asyncio
import logging
from typing import Awaitable, Callable, Iterable, TypeVar

from inventory_sync.sync.checkpoint import SkuProgress
from inventory_sync.sync.models import BatchSummary, ItemResult, ItemStatus
from inventory_sync.sync.retry import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

MutateResult = ItemResult | ItemStatus | bool


class RateLimitedMutator:
    """
    Apply one mutation per item, sequentially, pausing between calls.

    - `item_delay` after every item whatever the outcome, plus
      `failure_delay` after a failed one
    - `batch_pause` between logical batches of `batch_size`
    - rate-limit errors go through `retry`; once it gives up the item is
      FAILED and the run moves on
    - `concurrency > 1` runs groups of that many items at once and still
      waits between groups
    - with `progress`, items already marked done are skipped and the map is
      saved after every batch, then removed once no SKU in it is failed
    """

    def __init__(
        self,
        retry: RetryPolicy | None = None,
        item_delay: float = 0.5,
        failure_delay: float = 1.0,
        batch_size: int | None = None,
        batch_pause: float = 0,
        concurrency: int = 1,
        progress: SkuProgress | None = None,
        sleep: Callable[[float], Awaitable] = asyncio.sleep,
    ):
        self.retry = retry
        self.item_delay = item_delay
        self.failure_delay = failure_delay
        self.batch_size = batch_size
        self.batch_pause = batch_pause
        self.concurrency = max(1, concurrency)
        self.progress = progress
        self.sleep = sleep

    @classmethod
    def from_settings(cls, settings, sleep=asyncio.sleep, **overrides) -> "RateLimitedMutator":
        kwargs = dict(
            retry=RetryPolicy.from_settings(settings, sleep=sleep),
            item_delay=settings.ITEM_DELAY,
            failure_delay=settings.FAILURE_DELAY,
            batch_size=settings.BATCH_SIZE,
            batch_pause=settings.BATCH_PAUSE,
            sleep=sleep,
        )
        kwargs.update(overrides)
        return cls(**kwargs)

    async def _apply(self, item: T, key: str, mutate: Callable[[T], Awaitable[MutateResult]]) -> ItemResult:
        try:
            if self.retry:
                out = await self.retry.run(mutate, item)
            else:
                out = await mutate(item)
        except Exception as e:
            logger.error(f"Failed to process {key}: {e}")
            return ItemResult(key=key, status=ItemStatus.FAILED, detail=str(e))

        if isinstance(out, ItemResult):
            return out
        if isinstance(out, ItemStatus):
            return ItemResult(key=key, status=out)
        return ItemResult(key=key, status=ItemStatus.UPDATED if out else ItemStatus.FAILED)

    async def _run_batch(self, batch: list, keys: list[str], mutate, is_last_batch: bool) -> list[ItemResult]:
        results: list[ItemResult] = []
        step = self.concurrency
        for start in range(0, len(batch), step):
            group = batch[start:start + step]
            group_keys = keys[start:start + step]
            if step == 1:
                group_results = [await self._apply(group[0], group_keys[0], mutate)]
            else:
                group_results = list(await asyncio.gather(
                    *(self._apply(item, k, mutate) for item, k in zip(group, group_keys))
                ))
            results.extend(group_results)

            last_group = is_last_batch and start + step >= len(batch)
            if last_group:
                continue
            await self.sleep(self.item_delay)
            if any(not r.ok for r in group_results) and self.failure_delay:
                await self.sleep(self.failure_delay)
        return results

    async def run(
        self,
        items: Iterable[T],
        mutate: Callable[[T], Awaitable[MutateResult]],
        key: Callable[[T], str] = str,
    ) -> BatchSummary:
        items = list(items)
        summary = BatchSummary()

        if self.progress:
            self.progress.load()
            pending = [item for item in items if not self.progress.is_done(key(item))]
            summary.skipped = len(items) - len(pending)
            if summary.skipped:
                logger.info(f"Skipping {summary.skipped} items already processed")
        else:
            pending = items

        summary.submitted = len(pending)
        size = self.batch_size or len(pending) or 1
        total_batches = (len(pending) + size - 1) // size

        for index, start in enumerate(range(0, len(pending), size), 1):
            batch = pending[start:start + size]
            keys = [key(item) for item in batch]
            if total_batches > 1:
                logger.info(f"Processing batch {index}/{total_batches}")

            results = await self._run_batch(batch, keys, mutate, is_last_batch=index == total_batches)
            summary.results.extend(results)

            if self.progress:
                for r in results:
                    self.progress.mark(r.key, r.ok)
                self.progress.save()

            done = len(summary.results)
            logger.info(
                f"Progress: {done / len(pending) * 100:.1f}% "
                f"(updated {summary.succeeded}, failed {summary.failed}, remaining {len(pending) - done})"
            )

            if index < total_batches and self.batch_pause:
                logger.info(f"Taking a break between batches ({self.batch_pause:.0f}s)...")
                await self.sleep(self.batch_pause)

        if self.progress and not self.progress.has_failures():
            self.progress.clear()

        logger.info(f"Done: {summary.succeeded} succeeded, {summary.failed} failed, {summary.skipped} skipped")
        return summary
