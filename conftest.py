"""Shared fixtures for the vetforest test suite."""

from __future__ import annotations

import numpy as np
import pytest
from sklearn.datasets import make_classification, make_regression

from vetforest import CategoricalFeature, FeatureMatrix, NumericFeature


def _feature(kind, name, values):
    feature = NumericFeature(name) if kind == "numeric" else CategoricalFeature(name)
    for value in values:
        feature.append(str(value))
    return feature


@pytest.fixture
def build_feature():
    """Factory ``build_feature(kind, name, values)`` appending values as strings."""
    return _feature


@pytest.fixture
def age_height_matrix():
    """Three cases where both numeric features separate the last case."""
    return FeatureMatrix.from_features(
        [
            _feature("numeric", "age", [20, 40, 60]),
            _feature("numeric", "height", [150, 170, 190]),
            _feature("categorical", "label", [0, 0, 1]),
        ],
        case_labels=["a", "b", "c"],
    )


@pytest.fixture
def classification_matrix():
    """Mixed-type matrix with missing values and a binary categorical target."""
    X, y = make_classification(
        n_samples=120,
        n_features=4,
        n_informative=3,
        n_redundant=1,
        random_state=0,
    )
    rng = np.random.RandomState(0)
    X = np.round(X, 2)
    features = []
    for j in range(X.shape[1]):
        values = [str(v) for v in X[:, j]]
        for i in rng.choice(len(values), size=6, replace=False):
            values[i] = "NA"
        features.append(_feature("numeric", f"N:x{j}", values))
    # categorical view of the first informative column, with ties
    bins = np.digitize(X[:, 0], [-1.0, 0.0, 1.0])
    features.append(_feature("categorical", "C:band", [f"b{b}" for b in bins]))
    features.append(_feature("categorical", "C:target", y))
    return FeatureMatrix.from_features(features)


@pytest.fixture
def regression_matrix():
    """Numeric matrix with a numeric target."""
    X, y = make_regression(n_samples=80, n_features=3, noise=5.0, random_state=1)
    features = [_feature("numeric", f"N:x{j}", np.round(X[:, j], 2)) for j in range(3)]
    features.append(_feature("numeric", "N:y", np.round(y, 3)))
    return FeatureMatrix.from_features(features)
