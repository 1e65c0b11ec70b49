from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from ..domain.constants import STAGE_COMPLETE, STAGE_ERROR
from ..domain.models import AttemptFailure, ProgressCallback, ProgressEvent
from ..errors import CancellationError, ExhaustionError, ProviderFailure, ProviderTimeout
from ..logging import get_logger
from ..providers.base import Provider
from ..providers.registry import ProviderRegistry

LOG = get_logger("attempt-runner")

Operation = Callable[[Provider, ProgressCallback], Awaitable[Any]]


class CancellationToken:
    """Per-request cancellation flag that can also be awaited."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancellationError("Operation cancelled by user")


def rescale(start: int, end: int) -> Callable[[int], int]:
    """Linear map of a 0-100 sub-progress onto ``start..end`` of a parent scale."""

    def _map(progress: int) -> int:
        p = min(max(progress, 0), 100)
        return int(round(start + (end - start) * p / 100.0))

    return _map


def scaled(
    on_progress: Optional[ProgressCallback],
    start: int,
    end: int,
    *,
    stage: Optional[str] = None,
) -> Optional[ProgressCallback]:
    """Forward events to ``on_progress`` with progress mapped into ``start..end``.

    ``stage`` relabels every non-error event, so a sub-pipeline can report
    under the parent's stage name.
    """
    if on_progress is None:
        return None
    mapping = rescale(start, end)

    def _forward(event: ProgressEvent) -> None:
        on_progress(
            ProgressEvent(
                stage=stage if stage and event.stage != STAGE_ERROR else event.stage,
                progress=mapping(event.progress),
                message=event.message,
                provider=event.provider,
                estimated_remaining_ms=event.estimated_remaining_ms,
            )
        )

    return _forward


class _AttemptReporter:
    """Keeps progress non-decreasing within one attempt and mutes it afterwards."""

    def __init__(self, on_progress: Optional[ProgressCallback]) -> None:
        self.on_progress = on_progress
        self.last = 0
        self.last_stage: Optional[str] = None
        self.closed = False

    def emit(self, event: ProgressEvent) -> None:
        if self.closed or self.on_progress is None:
            return
        progress = max(self.last, min(max(int(event.progress), 0), 100))
        self.last = progress
        self.last_stage = event.stage
        if progress != event.progress:
            event = ProgressEvent(
                stage=event.stage,
                progress=progress,
                message=event.message,
                provider=event.provider,
                estimated_remaining_ms=event.estimated_remaining_ms,
            )
        self.on_progress(event)

    def close(self) -> None:
        self.closed = True


def _consume_result(task: "asyncio.Future[Any]") -> None:
    if not task.cancelled():
        exc = task.exception()
        if exc is not None:
            LOG.debug("Detached attempt finished with: %s", exc)


class AttemptRunner:
    """Tries planned providers one at a time until one succeeds.

    Every attempt is raced against the per-attempt timeout and the request's
    cancellation token. A losing attempt is cancelled, its provider's
    ``abort`` hook is called, and the runner moves on at once without
    waiting for the provider to wind down, so a request never outlives
    ``timeout_s`` per planned provider.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        *,
        label: str,
        start_stage: str,
        timeout_s: float,
    ) -> None:
        self.registry = registry
        self.label = label
        self.start_stage = start_stage
        self.timeout_s = timeout_s

    async def run(
        self,
        plan: Sequence[str],
        operation: Operation,
        *,
        on_progress: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
    ) -> Any:
        failures: List[AttemptFailure] = []
        reporter = _AttemptReporter(on_progress)
        for index, provider_id in enumerate(plan):
            if token is not None and token.cancelled:
                self._report_cancelled(reporter, provider_id)
            descriptor = self.registry.descriptor(provider_id)
            reporter.close()
            reporter = _AttemptReporter(on_progress)
            reporter.emit(
                ProgressEvent(
                    stage=self.start_stage,
                    progress=5,
                    message=f"Attempting {self.label} with {descriptor.name}...",
                    provider=provider_id,
                    estimated_remaining_ms=descriptor.average_processing_ms,
                )
            )
            LOG.info("Attempt %d/%d: %s via %s", index + 1, len(plan), self.label, provider_id)

            try:
                provider = self.registry.get(provider_id)
                result = await self._race(provider, operation(provider, reporter.emit), token)
            except CancellationError:
                self._report_cancelled(reporter, provider_id)
            except ProviderFailure as exc:
                failure = AttemptFailure(provider_id, exc.message, exc.retryable)
            except Exception as exc:
                LOG.warning("%s provider %s raised unexpectedly", self.label, provider_id, exc_info=True)
                failure = AttemptFailure(provider_id, str(exc) or type(exc).__name__)
            else:
                if reporter.last < 100 or reporter.last_stage != STAGE_COMPLETE:
                    reporter.emit(
                        ProgressEvent(
                            stage=STAGE_COMPLETE,
                            progress=100,
                            message=f"{self.label} complete with {descriptor.name}",
                            provider=provider_id,
                        )
                    )
                reporter.close()
                return result

            failures.append(failure)
            LOG.warning("%s provider %s failed: %s", self.label, provider_id, failure.message)
            if index + 1 < len(plan):
                next_name = self.registry.descriptor(plan[index + 1]).name
                reporter.emit(
                    ProgressEvent(
                        stage=self.start_stage,
                        progress=reporter.last,
                        message=f"{descriptor.name} failed, trying next provider ({next_name})...",
                        provider=plan[index + 1],
                    )
                )

        error = ExhaustionError(self.label, failures)
        reporter.emit(
            ProgressEvent(
                stage=STAGE_ERROR,
                progress=reporter.last,
                message=str(error),
                provider=error.last_provider,
            )
        )
        reporter.close()
        raise error

    def _report_cancelled(self, reporter: _AttemptReporter, provider_id: str) -> None:
        LOG.info("%s cancelled before/while using %s", self.label, provider_id)
        reporter.emit(
            ProgressEvent(
                stage=STAGE_ERROR,
                progress=reporter.last,
                message="Operation cancelled by user",
                provider=provider_id,
            )
        )
        reporter.close()
        raise CancellationError("Operation cancelled by user")

    async def _race(self, provider: Provider, coro: Awaitable[Any], token: Optional[CancellationToken]) -> Any:
        task = asyncio.ensure_future(coro)
        waiters = {task}
        cancel_waiter: Optional[asyncio.Future[Any]] = None
        if token is not None:
            cancel_waiter = asyncio.ensure_future(token.wait())
            waiters.add(cancel_waiter)
        try:
            done, _ = await asyncio.wait(waiters, timeout=self.timeout_s, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

        if task in done:
            return task.result()

        self._abandon(provider, task)
        if token is not None and token.cancelled:
            raise CancellationError("Operation cancelled by user")
        LOG.warning("%s provider %s timed out after %ss", self.label, provider.id, self.timeout_s)
        raise ProviderTimeout(provider.id, self.timeout_s)

    def _abandon(self, provider: Provider, task: "asyncio.Future[Any]") -> None:
        task.cancel()
        try:
            provider.abort()
        except Exception:
            LOG.debug("abort() failed for %s", provider.id, exc_info=True)
        LOG.debug("%s provider %s detached", self.label, provider.id)
        task.add_done_callback(_consume_result)
