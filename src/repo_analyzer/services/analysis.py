"""Submission of analysis jobs to a task runner.

The gateway only ever calls :meth:`AnalysisRunner.submit` and reads job state
back from the :class:`JobRegistry`; how and when a job completes is up to
whichever task or worker advances it.
"""

import asyncio
import importlib
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from repo_analyzer.core.exceptions import GatewayError, InvariantError
from repo_analyzer.services.jobs import Job, JobRegistry, JobStatus

logger = logging.getLogger(__name__)


class JobReporter:
    """Handle through which a running task reports on its job."""

    def __init__(self, registry: JobRegistry, job_id: str):
        self.registry = registry
        self.job_id = job_id

    def start(self, message: str = "Analysis in progress") -> Job:
        return self.registry.advance(self.job_id, JobStatus.IN_PROGRESS, message=message)

    def progress(self, percent: int, message: Optional[str] = None) -> Job:
        return self.registry.advance(self.job_id, JobStatus.IN_PROGRESS, percent, message)

    def complete(self, message: str = "Analysis complete") -> Job:
        return self.registry.advance(self.job_id, JobStatus.DONE, 100, message)

    def fail(self, message: str) -> Job:
        return self.registry.advance(self.job_id, JobStatus.FAILED, message=message)


AnalysisTask = Callable[[Dict[str, Any], JobReporter], Awaitable[Optional[str]]]


def load_task(path: str) -> AnalysisTask:
    """Import a task from a ``package.module:function`` path."""
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ValueError(f"ANALYSIS_TASK must look like 'package.module:function', got {path!r}")
    module = importlib.import_module(module_name)
    return getattr(module, attr)


class AnalysisRunner(ABC):
    """Accepts analysis payloads and hands back a job identifier."""

    @abstractmethod
    async def submit(self, payload: Dict[str, Any]) -> str:
        """Queue an analysis and return its job id."""
        pass

    async def shutdown(self) -> None:
        """Stop accepting work and release resources."""


class BackgroundAnalysisRunner(AnalysisRunner):
    """Runs analysis tasks as asyncio tasks in the gateway process.

    Without a task, jobs stay queued for an external worker that advances
    them through the registry.
    """

    def __init__(self, registry: JobRegistry, task: Optional[AnalysisTask] = None):
        self.registry = registry
        self.task = task
        self._running: Set[asyncio.Task] = set()

    async def submit(self, payload: Dict[str, Any]) -> str:
        job = self.registry.create(payload)
        if self.task is not None:
            running = asyncio.create_task(self._run(job.job_id, payload))
            self._running.add(running)
            running.add_done_callback(self._running.discard)
        return job.job_id

    async def _run(self, job_id: str, payload: Dict[str, Any]) -> None:
        reporter = JobReporter(self.registry, job_id)
        try:
            reporter.start()
            message = await self.task(payload, reporter)
            if not self.registry.get(job_id).status.is_terminal:
                reporter.complete(message or "Analysis complete")
        except asyncio.CancelledError:
            self._fail_quietly(job_id, "Analysis cancelled")
            raise
        except InvariantError:
            logger.error(f"Analysis task broke job invariants: job_id={job_id}", exc_info=True)
            self._fail_quietly(job_id, "Analysis failed")
        except Exception as e:
            logger.error(f"Analysis task failed: job_id={job_id}: {e}", exc_info=True)
            self._fail_quietly(job_id, f"Analysis failed: {e}")

    def _fail_quietly(self, job_id: str, message: str) -> None:
        try:
            self.registry.advance(job_id, JobStatus.FAILED, message=message)
        except GatewayError as e:
            logger.warning(f"Could not mark job {job_id} failed: {e.message}")

    async def shutdown(self) -> None:
        for running in list(self._running):
            running.cancel()
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)
