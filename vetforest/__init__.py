"""Public package exports for vetforest."""

# Data model
from .afm import load_afm, parse_afm, parse_feature
from .allocs import AllocationInUseError, BestSplitAllocs
from .config import MIN_IMP, SplitSearchConfig
from .feature_matrix import FeatureMatrix
from .features import (
    CategoricalFeature,
    CategoricalSplit,
    CatMap,
    Feature,
    NumericFeature,
    NumericSplit,
)
from .splitter import Splitter

# Objectives
from .target import EntropyTarget, GiniTarget, RegressionTarget, Target, create_target

# Per-worker search
from .worker import SplitWorker

__all__ = [
    # Matrix and parsing
    "FeatureMatrix",
    "parse_afm",
    "parse_feature",
    "load_afm",
    # Features
    "Feature",
    "NumericFeature",
    "CategoricalFeature",
    "CatMap",
    "NumericSplit",
    "CategoricalSplit",
    "Splitter",
    # Targets
    "Target",
    "GiniTarget",
    "EntropyTarget",
    "RegressionTarget",
    "create_target",
    # Split search
    "BestSplitAllocs",
    "AllocationInUseError",
    "SplitSearchConfig",
    "SplitWorker",
    "MIN_IMP",
]

__version__ = "0.1.0"
