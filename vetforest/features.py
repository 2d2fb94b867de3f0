"""
Feature columns and their split searches.

A feature owns one column of the matrix: per-case values, a parallel missing
mask and, for categorical columns, the string <-> code table. Each variant
knows how to find its own best split against a target and how to decode the
split descriptor it produced into a :class:`~vetforest.splitter.Splitter`.

Storage grows by doubling so parsers can append case by case; ``values`` and
``missing`` are views of the filled prefix.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar, Dict, Iterable, Iterator, List, Optional, Tuple, Union

import numpy as np
from sklearn.utils import check_random_state

from ._types import CaseIndices, RandomStateLike, TargetProtocol
from .splitter import Splitter

logger = logging.getLogger(__name__)

MISSING_TOKENS = frozenset({"", "NA", "na", "N/A", "?", "nan", "NaN"})
SHUFFLED_SUFFIX = ":SHUFFLED"


@dataclass(frozen=True)
class NumericSplit:
    """Threshold descriptor produced by :class:`NumericFeature`."""

    threshold: float


@dataclass(frozen=True)
class CategoricalSplit:
    """Left-going category codes produced by :class:`CategoricalFeature`."""

    left_codes: frozenset


SplitDescriptor = Union[NumericSplit, CategoricalSplit]


class CatMap:
    """Append-only table mapping category strings to integer codes."""

    def __init__(self, labels: Optional[Iterable[str]] = None):
        self.labels: List[str] = []
        self.codes: Dict[str, int] = {}
        for label in labels or ():
            self.code_for(label)

    def code_for(self, label: str) -> int:
        """Return the code of ``label``, assigning the next code if unseen."""
        code = self.codes.get(label)
        if code is None:
            code = len(self.labels)
            self.codes[label] = code
            self.labels.append(label)
        return code

    def label_for(self, code: int) -> str:
        return self.labels[code]

    def copy(self) -> "CatMap":
        return CatMap(self.labels)

    def __len__(self) -> int:
        return len(self.labels)


def _format_float(value: float) -> str:
    text = repr(float(value))
    return text[:-2] if text.endswith(".0") else text


def _two_way_partitions(k: int) -> Iterator[Tuple[int, ...]]:
    """Yield each unordered two-way partition of ``range(k)`` once, as its left part."""
    # The last category never goes left, so complements are not revisited.
    for mask in range(1, 1 << (k - 1)):
        yield tuple(j for j in range(k) if (mask >> j) & 1)


class Feature(ABC):
    """Abstract base class for a single feature column."""

    kind: ClassVar[str]
    _dtype: ClassVar[type]

    def __init__(self, name: str, capacity: int = 0):
        self.name = name
        self._data = np.zeros(capacity, dtype=self._dtype)
        self._missing = np.zeros(capacity, dtype=bool)
        self._n = 0

    def __len__(self) -> int:
        return self._n

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, n_cases={self._n})"

    @property
    def values(self) -> np.ndarray:
        return self._data[: self._n]

    @property
    def missing(self) -> np.ndarray:
        return self._missing[: self._n]

    @property
    def has_missing(self) -> bool:
        return bool(self.missing.any())

    # ---- storage ----
    def _reserve(self, n: int) -> None:
        if n <= len(self._data):
            return
        size = max(n, 2 * len(self._data), 8)
        data = np.zeros(size, dtype=self._dtype)
        missing = np.zeros(size, dtype=bool)
        data[: self._n] = self._data[: self._n]
        missing[: self._n] = self._missing[: self._n]
        self._data, self._missing = data, missing

    def _push(self, value, is_missing: bool) -> None:
        self._reserve(self._n + 1)
        self._data[self._n] = value
        self._missing[self._n] = is_missing
        self._n += 1

    def _blank(self) -> "Feature":
        return type(self)(self.name)

    def _partition_missing(self, cases: CaseIndices) -> Tuple[np.ndarray, np.ndarray]:
        cases = np.asarray(cases, dtype=np.intp)
        is_missing = self.missing[cases]
        return cases[~is_missing], cases[is_missing]

    # ---- capability set ----
    @abstractmethod
    def get_str(self, case: int) -> str:
        """String form of the value of ``case`` (``"NA"`` when missing)."""

    @abstractmethod
    def append(self, raw: str) -> None:
        """Parse ``raw`` and append it as the next case."""

    @abstractmethod
    def impute_missing(self) -> None:
        """Replace missing values in place and clear their missing flags."""

    @abstractmethod
    def best_split(
        self,
        target: TargetProtocol,
        cases: CaseIndices,
        parent_impurity: float,
        min_leaf_size: int,
        allocs=None,
    ) -> Tuple[Optional[SplitDescriptor], float]:
        """
        Find the split on this feature that most decreases ``target`` impurity.

        Parameters
        ----------
        target
            Objective scored over the cases.
        cases
            Case indices of the node (may repeat for bootstrap samples).
        parent_impurity
            Impurity of ``target`` over ``cases``.
        min_leaf_size
            Minimum number of known cases on either side.
        allocs
            Allocation bundle forwarded to the target.

        Returns
        -------
        descriptor, decrease
            ``(None, 0.0)`` when no admissible split exists.
        """

    @abstractmethod
    def decode_split(self, descriptor: SplitDescriptor) -> Splitter:
        """Materialize a descriptor produced by this feature."""

    def copy_into(self, dest: "Feature") -> None:
        """Deep-copy this feature into ``dest``, reusing its storage when possible."""
        if type(dest) is not type(self):
            raise TypeError(
                f"cannot copy {type(self).__name__} '{self.name}' into "
                f"{type(dest).__name__} '{dest.name}'"
            )
        n = self._n
        dest._n = min(dest._n, n)
        dest._reserve(n)
        dest._data[:n] = self._data[:n]
        dest._missing[:n] = self._missing[:n]
        dest._n = n
        dest.name = self.name

    def shuffled_copy(self, random_state: RandomStateLike = None) -> "Feature":
        """Return a copy named ``<name>:SHUFFLED`` with values permuted across cases."""
        rng = check_random_state(random_state)
        fake = self._blank()
        self.copy_into(fake)
        fake.name = self.name + SHUFFLED_SUFFIX
        order = rng.permutation(self._n)
        fake._data[: self._n] = self._data[order]
        fake._missing[: self._n] = self._missing[order]
        return fake

    def shuffle_cases(self, cases: CaseIndices, rng: np.random.RandomState) -> None:
        """Permute values in place among ``cases`` only; other cases are untouched."""
        cases = np.unique(np.asarray(cases, dtype=np.intp))
        if cases.size and cases[-1] >= self._n:
            raise IndexError(f"case {cases[-1]} out of range for '{self.name}'")
        picked = cases[rng.permutation(len(cases))]
        self._data[cases] = self._data[picked]
        self._missing[cases] = self._missing[picked]


class NumericFeature(Feature):
    """Real-valued feature split by a threshold."""

    kind = "numeric"
    _dtype = np.float64

    def get_str(self, case: int) -> str:
        if self.missing[case]:
            return "NA"
        return _format_float(self.values[case])

    def append(self, raw: str) -> None:
        token = raw.strip()
        if token in MISSING_TOKENS:
            self._push(0.0, True)
            return
        try:
            value = float(token)
        except ValueError:
            logger.debug("Unparsable value %r in '%s' treated as missing", raw, self.name)
            self._push(0.0, True)
            return
        self._push(value, bool(np.isnan(value)))

    def impute_missing(self) -> None:
        missing = self.missing
        if not missing.any():
            return
        if missing.all():
            logger.warning("Feature '%s' has no observed values; nothing to impute", self.name)
            return
        self.values[missing] = float(np.mean(self.values[~missing]))
        missing[:] = False

    def best_split(self, target, cases, parent_impurity, min_leaf_size, allocs=None):
        known, missing = self._partition_missing(cases)
        n = len(known)
        if n < 2 * max(min_leaf_size, 1):
            return None, 0.0

        ordered = known[np.argsort(self.values[known], kind="mergesort")]
        v = self.values[ordered]
        left_sizes = np.arange(1, n)
        valid = (
            (v[:-1] != v[1:])
            & (left_sizes >= min_leaf_size)
            & (n - left_sizes >= min_leaf_size)
        )
        if not valid.any():
            return None, 0.0

        post = target.sweep_impurity(ordered, missing)
        decrease = np.where(valid, parent_impurity - post, -np.inf)
        i = int(np.argmax(decrease))

        threshold = 0.5 * (v[i] + v[i + 1])
        if not threshold < v[i + 1]:
            # adjacent floats: the midpoint rounds up
            threshold = v[i]
        return NumericSplit(float(threshold)), float(decrease[i])

    def decode_split(self, descriptor):
        if not isinstance(descriptor, NumericSplit):
            raise TypeError(
                f"numeric feature '{self.name}' cannot decode {type(descriptor).__name__}"
            )
        return Splitter(self.name, "numeric", threshold=descriptor.threshold)


class CategoricalFeature(Feature):
    """
    Feature over a finite set of string categories.

    Parameters
    ----------
    name : str
        Feature name.
    capacity : int, default=0
        Initial storage size.
    cat_map : CatMap, optional
        Existing code table to share; a fresh one by default.
    max_exhaustive_categories : int, default=10
        Up to this many observed categories every two-way partition is scored;
        above it categories are ordered by target score and only prefixes of
        that order are scored.
    """

    kind = "categorical"
    _dtype = np.intp

    def __init__(
        self,
        name: str,
        capacity: int = 0,
        cat_map: Optional[CatMap] = None,
        max_exhaustive_categories: int = 10,
    ):
        super().__init__(name, capacity)
        self.cat_map = cat_map if cat_map is not None else CatMap()
        self.max_exhaustive_categories = max_exhaustive_categories

    @property
    def codes(self) -> np.ndarray:
        return self.values

    @property
    def n_categories(self) -> int:
        return len(self.cat_map)

    def _blank(self) -> "CategoricalFeature":
        return CategoricalFeature(
            self.name, max_exhaustive_categories=self.max_exhaustive_categories
        )

    def copy_into(self, dest: Feature) -> None:
        super().copy_into(dest)
        dest.cat_map = self.cat_map.copy()
        dest.max_exhaustive_categories = self.max_exhaustive_categories

    def get_str(self, case: int) -> str:
        if self.missing[case]:
            return "NA"
        return self.cat_map.label_for(self.codes[case])

    def append(self, raw: str) -> None:
        if raw in MISSING_TOKENS:
            self._push(0, True)
            return
        self._push(self.cat_map.code_for(raw), False)

    def impute_missing(self) -> None:
        missing = self.missing
        if not missing.any():
            return
        if missing.all():
            logger.warning("Feature '%s' has no observed values; nothing to impute", self.name)
            return
        counts = np.bincount(self.codes[~missing], minlength=self.n_categories)
        # argmax keeps the first (lowest, earliest seen) code on ties
        self.codes[missing] = int(np.argmax(counts))
        missing[:] = False

    def best_split(self, target, cases, parent_impurity, min_leaf_size, allocs=None):
        known, missing = self._partition_missing(cases)
        if len(known) < 2 * max(min_leaf_size, 1):
            return None, 0.0

        codes = self.codes[known]
        present = np.unique(codes)
        k = len(present)
        if k < 2:
            return None, 0.0
        groups = [known[codes == c] for c in present]
        sizes = np.array([len(g) for g in groups])
        n = len(known)

        if k <= self.max_exhaustive_categories:
            subsets: Iterable[Tuple[int, ...]] = _two_way_partitions(k)
        else:
            scores = [target.ordering_score(g, known) for g in groups]
            order = [int(j) for j in np.argsort(scores, kind="mergesort")]
            subsets = (tuple(order[: i + 1]) for i in range(k - 1))

        best_decrease, best_subset = -np.inf, None
        for subset in subsets:
            in_left = np.zeros(k, dtype=bool)
            in_left[list(subset)] = True
            n_left = int(sizes[in_left].sum())
            if n_left < min_leaf_size or n - n_left < min_leaf_size:
                continue
            left = np.concatenate([groups[j] for j in np.flatnonzero(in_left)])
            right = np.concatenate([groups[j] for j in np.flatnonzero(~in_left)])
            decrease = parent_impurity - target.split_impurity(left, right, missing, allocs)
            if decrease > best_decrease:
                best_decrease, best_subset = decrease, subset

        if best_subset is None:
            return None, 0.0
        left_codes = frozenset(int(present[j]) for j in best_subset)
        return CategoricalSplit(left_codes), float(best_decrease)

    def decode_split(self, descriptor):
        if not isinstance(descriptor, CategoricalSplit):
            raise TypeError(
                f"categorical feature '{self.name}' cannot decode {type(descriptor).__name__}"
            )
        labels = tuple(self.cat_map.label_for(c) for c in sorted(descriptor.left_codes))
        return Splitter(
            self.name, "categorical", left_codes=descriptor.left_codes, left_labels=labels
        )
