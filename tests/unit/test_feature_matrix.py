"""Unit tests for the FeatureMatrix data model and write-phase operations."""

import csv
import io
import logging

import numpy as np
import pytest

from vetforest import CategoricalFeature, FeatureMatrix, NumericFeature


def _assert_index_consistent(fm):
    assert len(fm.name_index) == len(fm.features)
    for i, feature in enumerate(fm.features):
        assert fm.name_index[feature.name] == i


def _snapshot(fm):
    return {f.name: [f.get_str(i) for i in range(len(f))] for f in fm.features}


class _FailingStream:
    """Accepts ``ok_writes`` writes, then raises."""

    def __init__(self, ok_writes):
        self.ok_writes = ok_writes
        self.lines = []

    def write(self, text):
        if len(self.lines) >= self.ok_writes:
            raise OSError("disk full")
        self.lines.append(text)


# -------------------------------
# Construction
# -------------------------------


def test_from_features_builds_index_and_labels(build_feature):
    """Test that from_features builds the name index and default case labels."""
    fm = FeatureMatrix.from_features(
        [build_feature("numeric", "x", [1, 2]), build_feature("categorical", "c", ["a", "b"])]
    )
    assert len(fm) == 2
    assert fm.n_cases == 2
    assert fm.case_labels == ["0", "1"]
    assert fm["c"] is fm.features[1]
    assert fm[0].name == "x"
    assert fm.index_of("c") == 1
    _assert_index_consistent(fm)


def test_from_features_rejects_duplicates_and_ragged(build_feature):
    """Test validation of duplicate names, ragged columns and label counts."""
    with pytest.raises(ValueError, match="Duplicate"):
        FeatureMatrix.from_features(
            [build_feature("numeric", "x", [1]), build_feature("numeric", "x", [2])]
        )
    with pytest.raises(ValueError, match="unequal"):
        FeatureMatrix.from_features(
            [build_feature("numeric", "x", [1]), build_feature("numeric", "y", [1, 2])]
        )
    with pytest.raises(ValueError):
        FeatureMatrix.from_features([build_feature("numeric", "x", [1, 2])], case_labels=["a"])


# -------------------------------
# write_cases
# -------------------------------


def test_write_cases_layout(age_height_matrix):
    """Test the features-in-rows layout written for selected cases."""
    out = io.StringIO()
    age_height_matrix.write_cases(out, [2, 0])
    assert out.getvalue() == (
        ".\tc\ta\n"
        "age\t60\t20\n"
        "height\t190\t150\n"
        "label\t1\t0\n"
    )


def test_write_cases_missing_values_written_as_na(build_feature):
    """Test that missing cells are written as NA."""
    fm = FeatureMatrix.from_features([build_feature("numeric", "x", [1, "NA"])])
    out = io.StringIO()
    fm.write_cases(out, [0, 1])
    assert out.getvalue().splitlines()[1] == "x\t1\tNA"


def test_write_cases_propagates_first_failure(age_height_matrix):
    """Test that a write failure propagates and earlier rows stay written."""
    stream = _FailingStream(ok_writes=2)
    with pytest.raises(OSError):
        age_height_matrix.write_cases(stream, [0, 1, 2])
    # header and first feature row stay written
    assert stream.lines == [".\ta\tb\tc\n", "age\t20\t40\t60\n"]


# -------------------------------
# load_cases
# -------------------------------


def _empty_matrix():
    return FeatureMatrix([NumericFeature("N:x"), CategoricalFeature("C:c")])


def test_load_cases_sequential_labels():
    """Test loading records with running-count case labels."""
    fm = _empty_matrix()
    loaded = fm.load_cases([["1", "p"], ["2", "q"]])
    assert loaded == 2
    assert fm.case_labels == ["0", "1"]
    assert fm["C:c"].get_str(1) == "q"


def test_load_cases_row_labels():
    """Test loading records whose first field is the case label."""
    fm = _empty_matrix()
    fm.load_cases(csv.reader(io.StringIO("r1\t1\tp\nr2\tNA\tq\n"), delimiter="\t"), True)
    assert fm.case_labels == ["r1", "r2"]
    assert fm["N:x"].missing.tolist() == [False, True]


def test_load_cases_stops_on_malformed_record(caplog):
    """Test that a record with the wrong field count ends loading."""
    fm = _empty_matrix()
    with caplog.at_level(logging.ERROR, logger="vetforest.feature_matrix"):
        loaded = fm.load_cases([["1", "p"], ["2"], ["3", "r"]])
    assert loaded == 1
    assert fm.case_labels == ["0"]
    assert all(len(f) == 1 for f in fm.features)
    assert "stopping" in caplog.text


def test_load_cases_skips_blank_records():
    """Test that blank records are skipped instead of ending the load."""
    fm = _empty_matrix()
    assert fm.load_cases([["1", "p"], [], ["2", "q"], []]) == 2
    assert fm.case_labels == ["0", "1"]
    assert fm["C:c"].get_str(1) == "q"

    fm = _empty_matrix()
    rows = csv.reader(io.StringIO("r1\t1\tp\n\nr2\t2\tq\n"), delimiter="\t")
    assert fm.load_cases(rows, has_row_labels=True) == 2
    assert fm.case_labels == ["r1", "r2"]


def test_load_cases_stops_on_read_error(caplog):
    """Test that a reader error is logged and ends loading."""
    def rows():
        yield ["1", "p"]
        raise csv.Error("bad quoting")

    fm = _empty_matrix()
    with caplog.at_level(logging.ERROR, logger="vetforest.feature_matrix"):
        loaded = fm.load_cases(rows())
    assert loaded == 1
    assert "bad quoting" in caplog.text


# -------------------------------
# Contrasts
# -------------------------------


@pytest.mark.parametrize("n", [0, 1, 5, 12])
def test_add_contrasts_grows_by_n(classification_matrix, n):
    """Test that add_contrasts appends exactly n features and keeps originals."""
    fm = classification_matrix
    before = _snapshot(fm)
    n_before = len(fm)

    fm.add_contrasts(n, random_state=0)

    assert len(fm) == n_before + n
    assert len(fm.name_index) == n_before + n
    _assert_index_consistent(fm)
    for name, values in before.items():
        assert _snapshot(fm)[name] == values
    for fake in fm.features[n_before:]:
        assert ":SHUFFLED" in fake.name


def test_add_contrasts_copies_are_permutations(classification_matrix):
    """Test that each contrast is a permutation of its source feature."""
    fm = classification_matrix
    n_before = len(fm)
    fm.add_contrasts(8, random_state=3)
    for fake in fm.features[n_before:]:
        source = fm[fake.name.split(":SHUFFLED")[0]]
        assert type(fake) is type(source)
        assert sorted(fake.get_str(i) for i in range(fm.n_cases)) == sorted(
            source.get_str(i) for i in range(fm.n_cases)
        )


def test_add_contrasts_repeated_draws_get_unique_names(build_feature):
    """Test numeric suffixes for repeated contrast draws."""
    fm = FeatureMatrix.from_features([build_feature("numeric", "x", range(5))])
    fm.add_contrasts(3, random_state=0)
    assert [f.name for f in fm.features] == ["x", "x:SHUFFLED", "x:SHUFFLED:1", "x:SHUFFLED:2"]
    _assert_index_consistent(fm)


def test_add_contrasts_rejects_bad_input(build_feature):
    """Test add_contrasts argument validation."""
    with pytest.raises(ValueError):
        FeatureMatrix().add_contrasts(1)
    fm = FeatureMatrix.from_features([build_feature("numeric", "x", range(3))])
    with pytest.raises(ValueError):
        fm.add_contrasts(-1)


def test_contrast_all_doubles_width(age_height_matrix):
    """Test that contrast_all appends one copy of every feature."""
    fm = age_height_matrix
    fm.contrast_all(random_state=0)
    assert len(fm) == 6
    assert [f.name for f in fm.features[3:]] == [
        "age:SHUFFLED",
        "height:SHUFFLED",
        "label:SHUFFLED",
    ]
    _assert_index_consistent(fm)

    fm.contrast_all(random_state=1)
    assert len(fm) == 12
    assert "age:SHUFFLED:1" in fm.name_index
    assert "age:SHUFFLED:SHUFFLED" in fm.name_index
    _assert_index_consistent(fm)


# -------------------------------
# Imputation
# -------------------------------


def test_impute_missing_clears_flags_only(classification_matrix):
    """Test imputation clears missing flags without touching observed values."""
    fm = classification_matrix
    observed = {
        f.name: (f.values[~f.missing].copy(), ~f.missing.copy()) for f in fm.features
    }
    fm.impute_missing()

    for f in fm.features:
        values, was_observed = observed[f.name]
        assert len(f) == fm.n_cases
        assert not f.has_missing
        np.testing.assert_array_equal(f.values[was_observed], values)
