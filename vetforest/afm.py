"""
Reading annotated feature matrices (AFM).

An AFM is a tab-separated table with row and column headers. Feature names
carry a type prefix: ``N:`` numeric, ``C:`` categorical and ``B:`` boolean
(read as categorical). Features may be laid out in rows or in columns; the
first header cell after the corner cell decides which. In the row layout a
name without the ``N:`` prefix is categorical.
"""

from __future__ import annotations

import csv
import io
import logging
import zipfile
from os import PathLike
from pathlib import Path
from typing import Sequence, TextIO, Union

from .feature_matrix import FeatureMatrix
from .features import CategoricalFeature, Feature, NumericFeature

logger = logging.getLogger(__name__)

TYPE_PREFIXES = ("N:", "C:", "B:")
UNSUPPORTED_SUFFIXES = (".arff", ".libsvm")


def _reader(stream: TextIO):
    return csv.reader(stream, delimiter="\t", quoting=csv.QUOTE_NONE)


def _new_feature(name: str, capacity: int = 0) -> Feature:
    if name.startswith("N:"):
        return NumericFeature(name, capacity)
    return CategoricalFeature(name, capacity)


def parse_feature(record: Sequence[str]) -> Feature:
    """
    Parse one features-in-rows record: a name followed by one value per case.

    The type comes from the name: ``N:`` is numeric, anything else categorical.
    """
    name, values = record[0], record[1:]
    feature = _new_feature(name, len(values))
    for value in values:
        feature.append(value)
    return feature


def parse_afm(stream: TextIO) -> FeatureMatrix:
    """
    Parse an AFM from a text stream.

    Read errors and rows whose length disagrees with the header are logged
    and end parsing; the matrix holds whatever was read before.
    """
    reader = _reader(stream)
    try:
        headers = next(reader)
    except StopIteration:
        return FeatureMatrix()
    except csv.Error as exc:
        logger.error("Error reading header: %s", exc)
        return FeatureMatrix()
    headers = headers[1:]

    if headers and headers[0][:2] in TYPE_PREFIXES:
        # features in columns
        fm = FeatureMatrix([_new_feature(label) for label in headers])
        fm.load_cases(reader, has_row_labels=True)
        return fm

    # features in rows
    features = []
    while True:
        try:
            record = next(reader)
        except StopIteration:
            break
        except csv.Error as exc:
            logger.error("Error reading feature %d: %s", len(features), exc)
            break
        if not record:
            continue
        if len(record) - 1 != len(headers):
            logger.error(
                "Feature '%s' has %d values for %d cases; stopping",
                record[0],
                len(record) - 1,
                len(headers),
            )
            break
        features.append(parse_feature(record))
    return FeatureMatrix(features, None, headers)


def load_afm(filename: Union[str, "PathLike[str]"]) -> FeatureMatrix:
    """
    Load an AFM from disk, unwrapping a zip archive's first entry if needed.

    Raises
    ------
    ValueError
        For ``.arff`` and ``.libsvm`` files, or an empty archive.
    """
    path = Path(filename)
    if zipfile.is_zipfile(path):
        with zipfile.ZipFile(path) as archive:
            entries = archive.infolist()
            if not entries:
                raise ValueError(f"Archive {path} is empty")
            with archive.open(entries[0]) as raw:
                return parse_afm(io.TextIOWrapper(raw, encoding="utf-8", newline=""))

    if path.suffix in UNSUPPORTED_SUFFIXES:
        raise ValueError(f"Unsupported feature matrix format: {path.suffix}")
    with open(path, newline="", encoding="utf-8") as handle:
        return parse_afm(handle)
