"""
Per-worker scratch state for the split search.

A :class:`BestSplitAllocs` holds the class-count buffer, the contrast target
rewritten by vetting, and the worker's random generator. It belongs to one
thread: the first thread to claim it becomes its owner, and any claim from
another thread, or a second claim while one is active, raises
:class:`AllocationInUseError`.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator, Optional

import numpy as np
from sklearn.utils import check_random_state

from ._types import RandomStateLike


class AllocationInUseError(RuntimeError):
    """Raised when an allocation bundle is shared between split searches."""


class BestSplitAllocs:
    """
    Reusable buffers for :meth:`FeatureMatrix.best_splitter`.

    Parameters
    ----------
    target : Target
        Target the bundle will serve; fixes the contrast buffer's variant and
        the counter size.
    random_state : int, RandomState or None, default=None
        Seed or generator for vetting shuffles.

    Attributes
    ----------
    counter : np.ndarray
        Class-count scratch buffer.
    contrast_target : Target
        Empty target of the same variant, refreshed by ``copy_into`` on each
        vetted call.
    rng : np.random.RandomState
        Generator local to the owning worker.
    """

    def __init__(self, target, random_state: RandomStateLike = None):
        self.counter = np.zeros(max(getattr(target, "n_classes", 0), 1), dtype=np.intp)
        self.contrast_target = target.blank()
        self.rng = check_random_state(random_state)
        self._lock = threading.Lock()
        self._owner: Optional[int] = None

    @property
    def owner(self) -> Optional[int]:
        """Thread identifier of the owning worker, once claimed."""
        return self._owner

    @contextmanager
    def claim(self) -> Iterator["BestSplitAllocs"]:
        """Hold the bundle exclusively for one split search."""
        ident = threading.get_ident()
        if not self._lock.acquire(blocking=False):
            raise AllocationInUseError(
                "allocation bundle is already in use by another split search"
            )
        try:
            if self._owner is None:
                self._owner = ident
            elif self._owner != ident:
                raise AllocationInUseError(
                    f"allocation bundle is owned by thread {self._owner}, not {ident}"
                )
            yield self
        finally:
            self._lock.release()
