"""
FeatureMatrix: a column-wise dataset and the per-node best-split search.

The matrix is mutated only in a write phase (loading, contrast generation,
imputation). Tree growth afterwards only reads it, so any number of workers
may call :meth:`FeatureMatrix.best_splitter` concurrently as long as each one
passes its own :class:`~vetforest.allocs.BestSplitAllocs`.
"""

from __future__ import annotations

import csv
import logging
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, TextIO, Tuple, Union

import numpy as np
from sklearn.utils import check_random_state

from ._types import CaseIndices, RandomStateLike
from .allocs import BestSplitAllocs
from .config import MIN_IMP
from .features import Feature
from .splitter import Splitter

logger = logging.getLogger(__name__)


class FeatureMatrix:
    """
    Ordered collection of features with a name lookup and case labels.

    Parameters
    ----------
    features : list of Feature, optional
        Columns in order; the order defines candidate indices.
    name_index : dict, optional
        Name -> position lookup. Built from ``features`` when omitted.
    case_labels : list of str, optional
        One identifier per case.

    Attributes
    ----------
    features : list of Feature
    name_index : dict[str, int]
        Invariant: ``name_index[features[i].name] == i``.
    case_labels : list of str
    """

    def __init__(
        self,
        features: Optional[Iterable[Feature]] = None,
        name_index: Optional[Dict[str, int]] = None,
        case_labels: Optional[Iterable[str]] = None,
    ):
        self.features: List[Feature] = list(features or [])
        if name_index is None:
            name_index = {f.name: i for i, f in enumerate(self.features)}
        self.name_index: Dict[str, int] = dict(name_index)
        self.case_labels: List[str] = list(case_labels or [])

    @classmethod
    def from_features(
        cls, features: Iterable[Feature], case_labels: Optional[Sequence[str]] = None
    ) -> "FeatureMatrix":
        """Build a matrix from filled features, checking names and case counts."""
        features = list(features)
        names = [f.name for f in features]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate feature names: {duplicates}")

        counts = {len(f) for f in features}
        if len(counts) > 1:
            raise ValueError(f"Features have unequal case counts: {sorted(counts)}")
        n_cases = counts.pop() if counts else len(case_labels or ())

        if case_labels is None:
            case_labels = [str(i) for i in range(n_cases)]
        elif len(case_labels) != n_cases:
            raise ValueError(
                f"Got {len(case_labels)} case labels for {n_cases} cases"
            )
        return cls(features, None, case_labels)

    def __len__(self) -> int:
        return len(self.features)

    def __iter__(self) -> Iterator[Feature]:
        return iter(self.features)

    def __getitem__(self, key: Union[int, str]) -> Feature:
        if isinstance(key, str):
            return self.features[self.name_index[key]]
        return self.features[key]

    def __repr__(self) -> str:
        return f"FeatureMatrix(n_features={len(self.features)}, n_cases={self.n_cases})"

    @property
    def n_cases(self) -> int:
        return len(self.case_labels)

    def index_of(self, name: str) -> int:
        return self.name_index[name]

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------
    def write_cases(self, stream: TextIO, cases: CaseIndices) -> None:
        """
        Write the given cases as a features-in-rows table.

        The header row is ``"."`` followed by the case labels; each following
        row is a feature name followed by its values. Rows are tab separated
        and newline terminated. Write errors propagate; rows already written
        stay written.
        """
        cases = [int(c) for c in cases]
        header = ["."] + [self.case_labels[c] for c in cases]
        stream.write("\t".join(header) + "\n")
        for feature in self.features:
            row = [feature.name] + [feature.get_str(c) for c in cases]
            stream.write("\t".join(row) + "\n")

    def load_cases(self, rows: Iterable[Sequence[str]], has_row_labels: bool = False) -> int:
        """
        Append cases, one record per case, onto the existing features.

        Parameters
        ----------
        rows : iterable of sequences of str
            Records, e.g. a ``csv.reader``. Fields map by position onto
            ``features``.
        has_row_labels : bool, default=False
            Treat the first field as the case label. Otherwise labels are the
            running zero-based count.

        Returns
        -------
        int
            Number of cases loaded. Blank records are skipped. A read error
            or a record with the wrong number of fields is logged and ends
            loading early.
        """
        count = 0
        records = iter(rows)
        while True:
            try:
                record = next(records)
            except StopIteration:
                break
            except (csv.Error, OSError, UnicodeDecodeError) as exc:
                logger.error("Error reading case %d: %s", count, exc)
                break

            record = list(record)
            if not record:
                continue
            label = str(count)
            if has_row_labels:
                label, record = record[0], record[1:]

            if len(record) != len(self.features):
                logger.error(
                    "Case %s has %d values for %d features; stopping",
                    label,
                    len(record),
                    len(self.features),
                )
                break

            self.case_labels.append(label)
            for feature, value in zip(self.features, record):
                feature.append(value)
            count += 1
        return count

    # ------------------------------------------------------------------
    # Write-phase mutations
    # ------------------------------------------------------------------
    def _append_contrast(self, fake: Feature) -> None:
        base = fake.name
        name, k = base, 1
        while name in self.name_index:
            name = f"{base}:{k}"
            k += 1
        if name != base:
            logger.debug("Contrast '%s' already present; adding it as '%s'", base, name)
        fake.name = name
        self.name_index[name] = len(self.features)
        self.features.append(fake)

    def add_contrasts(self, n: int, random_state: RandomStateLike = None) -> None:
        """
        Append ``n`` shuffled copies of features drawn with replacement.

        Copies are named ``<name>:SHUFFLED``; a repeated draw gets a numeric
        suffix (``<name>:SHUFFLED:1``) so every feature keeps a unique name.
        Only features present before the call are drawn.
        """
        if n < 0:
            raise ValueError(f"n must be non-negative, got {n}")
        n_real = len(self.features)
        if n and not n_real:
            raise ValueError("Cannot add contrasts to a matrix without features")
        rng = check_random_state(random_state)
        for _ in range(n):
            orig = self.features[rng.randint(n_real)]
            self._append_contrast(orig.shuffled_copy(rng))

    def contrast_all(self, random_state: RandomStateLike = None) -> None:
        """Append one shuffled copy of every feature present at call start."""
        rng = check_random_state(random_state)
        for i in range(len(self.features)):
            self._append_contrast(self.features[i].shuffled_copy(rng))

    def impute_missing(self) -> None:
        """Fill missing values in place: mean for numeric, mode for categorical."""
        for feature in self.features:
            feature.impute_missing()

    # ------------------------------------------------------------------
    # Split search
    # ------------------------------------------------------------------
    def best_splitter(
        self,
        target,
        cases: CaseIndices,
        candidates: Iterable[int],
        oob: Optional[CaseIndices] = None,
        min_leaf_size: int = 1,
        vet: bool = False,
        evaloob: bool = False,
        allocs: Optional[BestSplitAllocs] = None,
        min_imp: float = MIN_IMP,
    ) -> Tuple[Optional[Splitter], float]:
        """
        Find the best split among candidate features for one node.

        Parameters
        ----------
        target : Target
            Objective to reduce.
        cases : array-like of int
            Training cases of the node.
        candidates : iterable of int
            Feature indices to search, in tie-breaking order.
        oob : array-like of int, optional
            Out-of-bag cases; required when ``evaloob``.
        min_leaf_size : int, default=1
            Minimum known cases on either side of a split.
        vet : bool, default=False
            Subtract the decrease the feature achieves against a shuffled copy
            of the target.
        evaloob : bool, default=False
            Re-score promising splits on ``oob``.
        allocs : BestSplitAllocs, optional
            The caller's own scratch bundle; required when ``vet``.
        min_imp : float
            Decreases must exceed this to be accepted.

        Returns
        -------
        splitter, decrease
            ``(None, min_imp)`` when no candidate exceeds ``min_imp``.
        """
        if vet and allocs is None:
            raise ValueError("vet=True needs an allocation bundle")
        if evaloob and oob is None:
            raise ValueError("evaloob=True needs out-of-bag cases")

        candidates = [int(i) for i in candidates]
        for i in candidates:
            if not 0 <= i < len(self.features):
                raise IndexError(
                    f"Candidate feature {i} out of range for {len(self.features)} features"
                )
        cases = np.asarray(cases, dtype=np.intp)
        if oob is not None:
            oob = np.asarray(oob, dtype=np.intp)

        if allocs is None:
            return self._search(
                target, cases, candidates, oob, min_leaf_size, vet, evaloob, None, min_imp
            )
        with allocs.claim():
            return self._search(
                target, cases, candidates, oob, min_leaf_size, vet, evaloob, allocs, min_imp
            )

    def _search(self, target, cases, candidates, oob, min_leaf_size, vet, evaloob, allocs, min_imp):
        counter = allocs.counter if allocs is not None else None
        best_decrease = min_imp
        best_feature, best_split = None, None

        if vet:
            target.copy_into(allocs.contrast_target)
        parent = target.impurity(cases, counter)
        vet_cases = oob if evaloob else cases

        for i in candidates:
            feature = self.features[i]
            split, decrease = feature.best_split(target, cases, parent, min_leaf_size, allocs)

            if evaloob and split is not None and decrease > min_imp and decrease > best_decrease:
                left, right, missing = feature.decode_split(split).partition(feature, oob)
                decrease = target.impurity(oob, counter) - target.split_impurity(
                    left, right, missing, allocs
                )

            if vet and decrease > min_imp and decrease > best_decrease:
                contrast = allocs.contrast_target
                contrast.shuffle_cases(vet_cases, allocs.rng)
                _, vet_decrease = feature.best_split(
                    contrast, vet_cases, parent, min_leaf_size, allocs
                )
                decrease -= vet_decrease

            if split is not None and decrease > min_imp and decrease > best_decrease:
                best_feature, best_split, best_decrease = feature, split, decrease

        if best_feature is None:
            return None, min_imp

        splitter = best_feature.decode_split(best_split)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Best split %s over %d cases, decrease %.6g",
                splitter.describe(),
                len(cases),
                best_decrease,
            )
        return splitter, float(best_decrease)
