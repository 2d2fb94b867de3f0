"""
Per-worker split-search streams.

A tree-building task creates one :class:`SplitWorker` and calls it once per
node. The worker owns its configuration, its random generator and its
allocation bundle, so several workers can grow trees over the same matrix in
parallel threads.
"""

from __future__ import annotations

from typing import Optional, Tuple, Union

import numpy as np
from sklearn.utils import check_random_state

from ._types import CaseIndices
from .allocs import BestSplitAllocs
from .config import SplitSearchConfig
from .feature_matrix import FeatureMatrix
from .splitter import Splitter
from .target import Target, create_target


class SplitWorker:
    """
    Split search bound to one worker.

    Parameters
    ----------
    fm : FeatureMatrix
        Shared matrix; must not be mutated while workers run.
    target : Target or str
        The objective, or the name of the matrix feature to wrap with
        ``config.criterion``.
    config : SplitSearchConfig, optional
        Search settings; defaults to ``SplitSearchConfig()``.
    """

    def __init__(
        self,
        fm: FeatureMatrix,
        target: Union[Target, str],
        config: Optional[SplitSearchConfig] = None,
    ):
        self.fm = fm
        self.config = config if config is not None else SplitSearchConfig()
        if not isinstance(target, Target):
            target = create_target(fm[target], self.config.criterion)
        if len(target) != fm.n_cases:
            raise ValueError(
                f"Target '{target.name}' has {len(target)} cases, matrix has {fm.n_cases}"
            )
        self.target = target
        self.rng = check_random_state(self.config.random_state)
        self.allocs = BestSplitAllocs(target, self.rng)

    def candidate_pool(self) -> np.ndarray:
        """Indices of every feature except the target column."""
        target_index = self.fm.name_index.get(self.target.name)
        return np.array([i for i in range(len(self.fm)) if i != target_index], dtype=np.intp)

    def bootstrap(self, n_samples: Optional[int] = None) -> Tuple[np.ndarray, np.ndarray]:
        """
        Draw an in-bag sample with replacement.

        Returns
        -------
        inbag, oob : np.ndarray
            Sampled case indices and the sorted cases never drawn.
        """
        n = self.fm.n_cases
        if n_samples is None:
            n_samples = n
        inbag = self.rng.randint(0, n, size=n_samples) if n else np.empty(0, dtype=np.intp)
        oob = np.setdiff1d(np.arange(n), inbag)
        return inbag.astype(np.intp), oob.astype(np.intp)

    def sample_candidates(self) -> np.ndarray:
        """Draw ``config.mtry`` candidate features without replacement."""
        pool = self.candidate_pool()
        mtry = self.config.mtry
        if mtry is None or mtry >= len(pool):
            return pool
        return self.rng.choice(pool, size=mtry, replace=False)

    def best_splitter(
        self,
        cases: CaseIndices,
        candidates: Optional[CaseIndices] = None,
        oob: Optional[CaseIndices] = None,
    ) -> Tuple[Optional[Splitter], float]:
        """Search one node; candidates default to a fresh ``sample_candidates()`` draw."""
        if candidates is None:
            candidates = self.sample_candidates()
        cfg = self.config
        return self.fm.best_splitter(
            self.target,
            cases,
            candidates,
            oob=oob,
            min_leaf_size=cfg.min_leaf_size,
            vet=cfg.vet,
            evaloob=cfg.evaloob,
            allocs=self.allocs,
            min_imp=cfg.min_imp,
        )
