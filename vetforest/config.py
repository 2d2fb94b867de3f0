"""Configuration objects for vetforest."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

# Smallest impurity decrease that counts as an improvement.
MIN_IMP = 1e-12

CRITERIA = ("auto", "gini", "entropy", "variance")


@dataclass(frozen=True)
class SplitSearchConfig:
    """Hyper-parameters steering the per-node split search.

    Parameters
    ----------
    min_leaf_size:
        Minimum number of known cases on either side of a split.
    vet:
        Penalize each promising split by the decrease the same feature achieves
        against a case-shuffled copy of the target.
    evaloob:
        Re-score promising splits on the out-of-bag cases instead of trusting
        the training-set decrease.
    min_imp:
        Decreases must exceed this value to be accepted.
    criterion:
        Target impurity: ``"auto"`` (Gini for categorical targets, variance for
        numeric), ``"gini"``, ``"entropy"`` or ``"variance"``.
    mtry:
        Number of candidate features drawn per node. ``None`` uses every
        feature except the target.
    random_state:
        Optional seed for the worker's generator (bagging, candidate draws and
        vetting shuffles).
    """

    min_leaf_size: int = 1
    vet: bool = False
    evaloob: bool = False
    min_imp: float = MIN_IMP
    criterion: Literal["auto", "gini", "entropy", "variance"] = "auto"
    mtry: Optional[int] = None
    random_state: Optional[int] = None

    def __post_init__(self) -> None:
        if self.min_leaf_size < 1:
            raise ValueError(f"min_leaf_size must be >= 1, got {self.min_leaf_size}")
        if self.min_imp < 0:
            raise ValueError(f"min_imp must be non-negative, got {self.min_imp}")
        if self.criterion not in CRITERIA:
            raise ValueError(f"Unknown criterion: {self.criterion}")
        if self.mtry is not None and self.mtry < 1:
            raise ValueError(f"mtry must be >= 1 or None, got {self.mtry}")
