"""
Prediction targets.

A target is a feature used as the objective: it keeps the feature's
capability set (copy, shuffle, name) and adds impurity scoring over case
sets. Classification targets wrap a categorical feature and score Gini or
entropy; the regression target wraps a numeric feature and scores variance.
Cases whose target value is missing carry no weight.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, ClassVar, Optional, Tuple

import numpy as np

from .features import CategoricalFeature, Feature
from .impurity import entropy_from_counts, gini_from_counts, variance_from_sums, weighted_impurity


class Target(ABC):
    """Abstract base class for objectives."""

    feature_kind: ClassVar[str]

    def __init__(self, feature: Feature):
        if feature.kind != self.feature_kind:
            raise TypeError(
                f"{type(self).__name__} needs a {self.feature_kind} feature, "
                f"got {feature.kind} feature '{feature.name}'"
            )
        self.feature = feature

    def __len__(self) -> int:
        return len(self.feature)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.feature!r})"

    @property
    def name(self) -> str:
        return self.feature.name

    def blank(self) -> "Target":
        """An empty target of the same shape, for use as a contrast buffer."""
        return type(self)(self.feature._blank())

    def copy_into(self, dest: "Target") -> None:
        if type(dest) is not type(self):
            raise TypeError(
                f"cannot copy {type(self).__name__} into {type(dest).__name__}"
            )
        self.feature.copy_into(dest.feature)

    def shuffle_cases(self, cases, rng: np.random.RandomState) -> None:
        self.feature.shuffle_cases(cases, rng)

    @abstractmethod
    def _node_stats(self, cases, counter: Optional[np.ndarray] = None) -> Tuple[float, float]:
        """Return ``(weight, impurity)`` of the node formed by ``cases``."""

    @abstractmethod
    def sweep_impurity(self, ordered, missing) -> np.ndarray:
        """Post-split impurity for each boundary of ``ordered`` (see ``TargetProtocol``)."""

    @abstractmethod
    def ordering_score(self, cases, reference) -> float:
        """Key used to order categories in the greedy categorical search."""

    def impurity(self, cases, counter: Optional[np.ndarray] = None) -> float:
        return self._node_stats(cases, counter)[1]

    def split_impurity(self, left, right, missing, allocs=None) -> float:
        counter = allocs.counter if allocs is not None else None
        stats = [self._node_stats(group, counter) for group in (left, right, missing)]
        sizes, impurities = zip(*stats)
        return float(weighted_impurity(np.array(sizes), np.array(impurities)))


class ClassificationTarget(Target):
    """Categorical objective scored from class counts."""

    feature_kind = "categorical"
    _impurity_fn: ClassVar[Callable[[np.ndarray], np.ndarray]]

    @property
    def n_classes(self) -> int:
        return self.feature.n_categories

    def _class_counts(self, cases, counter: Optional[np.ndarray] = None) -> np.ndarray:
        cases = np.asarray(cases, dtype=np.intp)
        f = self.feature
        codes = f.codes[cases][~f.missing[cases]]
        k = self.n_classes
        if counter is not None and len(counter) >= k:
            counts = counter[:k]
            counts[:] = 0
            np.add.at(counts, codes, 1)
            return counts
        return np.bincount(codes, minlength=k)

    def _node_stats(self, cases, counter=None):
        counts = self._class_counts(cases, counter)
        return float(counts.sum()), float(type(self)._impurity_fn(counts))

    def sweep_impurity(self, ordered, missing):
        f = self.feature
        fn = type(self)._impurity_fn
        ordered = np.asarray(ordered, dtype=np.intp)
        k = max(self.n_classes, 1)
        known = ~f.missing[ordered]

        onehot = np.zeros((len(ordered), k))
        onehot[np.flatnonzero(known), f.codes[ordered][known]] = 1.0
        left = np.cumsum(onehot, axis=0)[:-1]
        right = onehot.sum(axis=0) - left
        miss = np.broadcast_to(self._class_counts(missing).astype(float), left.shape)

        sizes = np.stack([left.sum(axis=1), right.sum(axis=1), miss.sum(axis=1)], axis=-1)
        impurities = np.stack([fn(left), fn(right), fn(miss)], axis=-1)
        return weighted_impurity(sizes, impurities)

    def ordering_score(self, cases, reference):
        majority = int(np.argmax(self._class_counts(reference)))
        counts = self._class_counts(cases)
        total = counts.sum()
        return float(counts[majority] / total) if total > 0 else 0.0


class GiniTarget(ClassificationTarget):
    _impurity_fn = staticmethod(gini_from_counts)


class EntropyTarget(ClassificationTarget):
    _impurity_fn = staticmethod(entropy_from_counts)


class RegressionTarget(Target):
    """Numeric objective scored by variance (mean squared deviation)."""

    feature_kind = "numeric"

    def _known_values(self, cases) -> np.ndarray:
        cases = np.asarray(cases, dtype=np.intp)
        f = self.feature
        return f.values[cases][~f.missing[cases]]

    def _node_stats(self, cases, counter=None):
        y = self._known_values(cases)
        if y.size == 0:
            return 0.0, 0.0
        return float(y.size), float(np.var(y))

    def sweep_impurity(self, ordered, missing):
        f = self.feature
        ordered = np.asarray(ordered, dtype=np.intp)
        known = ~f.missing[ordered]
        y = np.where(known, f.values[ordered], 0.0)
        w = known.astype(float)

        n_left = np.cumsum(w)[:-1]
        s_left = np.cumsum(y)[:-1]
        sq_left = np.cumsum(y**2)[:-1]
        n_right = w.sum() - n_left
        s_right = y.sum() - s_left
        sq_right = np.sum(y**2) - sq_left
        n_miss, imp_miss = self._node_stats(missing)

        sizes = np.stack([n_left, n_right, np.full_like(n_left, n_miss)], axis=-1)
        impurities = np.stack(
            [
                variance_from_sums(n_left, s_left, sq_left),
                variance_from_sums(n_right, s_right, sq_right),
                np.full_like(n_left, imp_miss),
            ],
            axis=-1,
        )
        return weighted_impurity(sizes, impurities)

    def ordering_score(self, cases, reference):
        y = self._known_values(cases)
        return float(np.mean(y)) if y.size else 0.0


def create_target(feature: Feature, criterion: str = "auto") -> Target:
    """
    Factory function to wrap a feature as a target by criterion name.

    Parameters
    ----------
    feature : Feature
        Column holding the prediction objective.
    criterion : str
        'auto' (Gini for categorical, variance for numeric), 'gini',
        'entropy' or 'variance'.

    Returns
    -------
    target : Target
        Configured target
    """
    if criterion == "auto":
        criterion = "gini" if isinstance(feature, CategoricalFeature) else "variance"

    if criterion == "gini":
        return GiniTarget(feature)
    elif criterion == "entropy":
        return EntropyTarget(feature)
    elif criterion == "variance":
        return RegressionTarget(feature)
    else:
        raise ValueError(f"Unknown criterion: {criterion}")
