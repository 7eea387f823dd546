from __future__ import annotations

import pytest

from bids_grouping.config.grouping import NamedGroup
from bids_grouping.grouping.matching import match_group, matches_filter, values_match, vetoing_entity
from bids_grouping.models.entities import FileRecord

GROUPS = [
    NamedGroup(name="ap", patterns={"dir": "dir-AP"}),
    NamedGroup(name="pa", patterns={"dir": "PA"}),
    NamedGroup(name="ap_run1", patterns={"dir": "AP", "run": "run-01"}),
]


@pytest.mark.parametrize(
    ("actual", "expected"),
    [("2", "flip-02"), ("02", "2"), ("AP", "dir-AP"), ("mag", "part-mag")],
)
def test_values_match_normalizes_both_sides(actual: str, expected: str) -> None:
    assert values_match(actual, expected)


def test_values_match_detects_difference() -> None:
    assert not values_match("AP", "dir-PA")


def test_match_group_first_declaration_wins() -> None:
    record = FileRecord.from_path("sub-01_dir-AP_run-1_dwi.nii.gz")

    assert match_group(record, GROUPS) == "ap"


def test_match_group_returns_none_without_match() -> None:
    record = FileRecord.from_path("sub-01_dir-LR_dwi.nii.gz")

    assert match_group(record, GROUPS) is None


def test_match_group_requires_every_pattern() -> None:
    groups = [NamedGroup(name="both", patterns={"dir": "AP", "run": "2"})]

    assert match_group(FileRecord.from_path("sub-01_dir-AP_run-1_dwi.nii"), groups) is None
    assert match_group(FileRecord.from_path("sub-01_dir-AP_run-02_dwi.nii"), groups) == "both"


def test_empty_group_never_matches() -> None:
    groups = [NamedGroup(name="empty", patterns={}), NamedGroup(name="pa", patterns={"dir": "PA"})]

    assert match_group(FileRecord.from_path("sub-01_dir-PA_dwi.nii"), groups) == "pa"


def test_restricted_match_only_compares_dimension() -> None:
    groups = [
        NamedGroup(name="MTw", patterns={"acq": "MTw", "flip": "1"}),
        NamedGroup(name="PDw", patterns={"acq": "PDw", "flip": "1"}),
    ]
    record = FileRecord.from_path("sub-01_acq-PDw_flip-2_echo-1_MPM.nii")

    assert match_group(record, groups) is None
    assert match_group(record, groups, restrict_to="acquisition") == "PDw"


def test_restricted_match_is_vacuous_for_groups_without_dimension() -> None:
    groups = [NamedGroup(name="any", patterns={"flip": "1"})]
    record = FileRecord.from_path("sub-01_acq-PDw_echo-1_MPM.nii")

    assert match_group(record, groups, restrict_to="acq") == "any"


def test_filter_wildcards_and_equality() -> None:
    record = FileRecord.from_path("sub-01_acq-lowres_run-01_T1w.nii.gz")

    assert matches_filter(record, {"acq": "lowres", "run": "1"})
    assert matches_filter(record, {"acq": None, "ses": "NA"})
    assert not matches_filter(record, {"acq": "highres"})
    assert not matches_filter(record, {"ses": "1"})


def test_vetoing_entity_reports_first_present() -> None:
    record = FileRecord.from_path("sub-01_acq-lowres_T1w.nii.gz")

    assert vetoing_entity(record, ["run", "acq"]) == "acq"
    assert vetoing_entity(record, ["run", "ses"]) is None
