"""
jobs.py - In-process background job queue

Work that the web tier defers (sending message summaries, republishing
pace plans) is enqueued here instead of running inline. A job may carry a
`singleton` key: while a job with that key is pending, enqueueing another
one is a no-op. Jobs enqueued inside `serial_batch()` are wrapped into a
single batch job that runs them in order.
"""

from __future__ import annotations

import itertools
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple


logger = logging.getLogger(__name__)

SERIAL_BATCH_TAG = "Delayed::Batch.serial"


@dataclass
class Job:
    id: int
    func: Optional[Callable[..., Any]]
    args: Tuple[Any, ...] = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)
    tag: str = ""
    singleton: Optional[str] = None
    strand: Optional[str] = None
    jobs: List["Job"] = field(default_factory=list)

    @property
    def is_batch(self) -> bool:
        return self.tag == SERIAL_BATCH_TAG

    def perform(self) -> Any:
        if self.is_batch:
            return [job.perform() for job in self.jobs]
        return self.func(*self.args, **self.kwargs)


class JobQueue:
    """Collects jobs and runs them on demand."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.pending: List[Job] = []
        self.created: List[Job] = []
        self._batch: Optional[List[Job]] = None

    def enqueue(
        self,
        func: Callable[..., Any],
        *args: Any,
        tag: Optional[str] = None,
        singleton: Optional[str] = None,
        strand: Optional[str] = None,
        **kwargs: Any,
    ) -> Job:
        if singleton is not None:
            existing = self.find(singleton=singleton)
            if existing:
                logger.debug("[jobs] singleton %s already queued", singleton)
                return existing[0]

        job = Job(
            id=next(self._ids),
            func=func,
            args=args,
            kwargs=kwargs,
            tag=tag or getattr(func, "__qualname__", repr(func)),
            singleton=singleton,
            strand=strand if strand is not None else singleton,
        )
        if self._batch is not None:
            self._batch.append(job)
        else:
            self._add(job)
        return job

    @contextmanager
    def serial_batch(self) -> Iterator[None]:
        """Group every job enqueued inside the block into one batch job."""
        if self._batch is not None:
            raise RuntimeError("serial batches cannot be nested")
        self._batch = []
        try:
            yield
        finally:
            collected, self._batch = self._batch, None
        if len(collected) == 1:
            self._add(collected[0])
        elif collected:
            self._add(Job(id=next(self._ids), func=None, tag=SERIAL_BATCH_TAG, jobs=collected))

    def find(self, singleton: Optional[str] = None, strand_prefix: Optional[str] = None) -> List[Job]:
        """Pending jobs matching a singleton key or a strand prefix."""
        found = []
        for job in self.pending:
            if singleton is not None and job.singleton != singleton:
                continue
            if strand_prefix is not None and not (job.strand or "").startswith(strand_prefix):
                continue
            found.append(job)
        return found

    def run(self) -> int:
        """Run pending jobs (including ones they enqueue) and return how many ran."""
        count = 0
        while self.pending:
            job = self.pending.pop(0)
            job.perform()
            count += 1
        return count

    def _add(self, job: Job) -> None:
        self.pending.append(job)
        self.created.append(job)
