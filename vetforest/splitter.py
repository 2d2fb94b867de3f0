"""Decoded split rules that partition cases into left, right and missing groups."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class Splitter:
    """
    A case-partitioning rule on one named feature.

    Numeric rules send known values ``<= threshold`` left; categorical rules
    send known codes in ``left_codes`` left. Cases missing on the feature
    always form the third group.
    """

    feature: str
    kind: Literal["numeric", "categorical"]
    threshold: Optional[float] = None
    left_codes: frozenset = field(default_factory=frozenset)
    left_labels: Tuple[str, ...] = ()

    def split(self, fm, cases) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Partition ``cases`` using the matrix column named by this rule."""
        return self.partition(fm[self.feature], cases)

    def partition(self, feature, cases) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Partition ``cases`` on ``feature``.

        Returns
        -------
        left, right, missing : np.ndarray
            Case indices of each group, in input order.
        """
        if feature.kind != self.kind:
            raise TypeError(
                f"{self.kind} splitter on '{self.feature}' cannot partition "
                f"{feature.kind} feature '{feature.name}'"
            )
        cases = np.asarray(cases, dtype=np.intp)
        is_missing = feature.missing[cases]
        known = cases[~is_missing]
        if self.kind == "numeric":
            goes_left = feature.values[known] <= self.threshold
        else:
            goes_left = np.isin(feature.codes[known], list(self.left_codes))
        return known[goes_left], known[~goes_left], cases[is_missing]

    def describe(self) -> str:
        if self.kind == "numeric":
            return f"{self.feature} <= {self.threshold:g}"
        return f"{self.feature} in {{{', '.join(self.left_labels)}}}"
