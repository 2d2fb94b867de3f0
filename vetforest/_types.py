"""Type definitions and protocols for vetforest."""

from typing import Any, Optional, Protocol, Sequence, Union

import numpy as np
from numpy.typing import NDArray


class TargetProtocol(Protocol):
    """Protocol for objectives that can score a set of cases."""

    name: str

    def impurity(self, cases: NDArray[Any], counter: Optional[NDArray[Any]] = None) -> float:
        """
        Impurity of the target over ``cases``.

        Parameters
        ----------
        cases
            Case indices.
        counter
            Optional reusable count buffer.

        Returns
        -------
        float
            Impurity of the node.
        """
        ...

    def split_impurity(
        self,
        left: NDArray[Any],
        right: NDArray[Any],
        missing: NDArray[Any],
        allocs: Any = None,
    ) -> float:
        """
        Size-weighted impurity of a three-way partition.

        Parameters
        ----------
        left, right, missing
            Case indices of each group.
        allocs
            Optional allocation bundle.

        Returns
        -------
        float
            Post-split impurity.
        """
        ...

    def sweep_impurity(self, ordered: NDArray[Any], missing: NDArray[Any]) -> NDArray[Any]:
        """
        Post-split impurity for every boundary of an ordered case sequence.

        Parameters
        ----------
        ordered
            Known cases in split order; boundary ``i`` puts ``ordered[: i + 1]``
            on the left.
        missing
            Cases routed to the missing group for every boundary.

        Returns
        -------
        NDArray[Any]
            Array of length ``len(ordered) - 1``.
        """
        ...

    def ordering_score(self, cases: NDArray[Any], reference: NDArray[Any]) -> float:
        """
        Scalar summary used to order categories in the greedy search.

        Parameters
        ----------
        cases
            Case indices of one category.
        reference
            Case indices of the whole node.

        Returns
        -------
        float
            Ordering key (target mean, or share of the node's majority class).
        """
        ...


# Type aliases for better readability
CaseIndices = Union[NDArray[np.intp], Sequence[int]]
RandomStateLike = Union[int, np.random.RandomState, None]
