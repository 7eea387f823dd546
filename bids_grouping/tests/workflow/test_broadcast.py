from __future__ import annotations

from bids_grouping.models.records import ChannelRecord
from bids_grouping.workflow.broadcast import broadcast_cross_modal

LOOP_OVER = ("subject", "session", "run", "task")


def _record(key, suffix, data, paths=None):
    paths = paths if paths is not None else list(data.values())
    return ChannelRecord.create(key, LOOP_OVER, suffix, data, paths)


def test_independent_record_trimmed_when_partially_consumed(grouping_config) -> None:
    config = grouping_config(
        """
        T1w: {plain_set: {}}
        T2w: {plain_set: {}}
        bold:
          plain_set:
            include_cross_modal: [T1w]
        """
    )
    anat = _record(("01", "NA", "NA", "NA"), "T1w", {"nii": "t1.nii"}).merged_with(
        _record(("01", "NA", "NA", "NA"), "T2w", {"nii": "t2.nii"})
    )
    bold = _record(("01", "NA", "NA", "rest"), "bold", {"nii": "bold.nii"})

    outcome = broadcast_cross_modal([anat, bold], config)

    assert [record.group_key for record in outcome.records] == [
        ("01", "NA", "NA", "NA"),
        ("01", "NA", "NA", "rest"),
    ]
    trimmed, enriched = outcome.records
    assert trimmed.data == {"T2w": {"nii": "t2.nii"}}
    assert trimmed.file_paths == ("t2.nii",)
    assert enriched.data["T1w"] == {"nii": "t1.nii"}
    assert enriched.file_paths == ("bold.nii", "t1.nii")
    assert (outcome.copies, outcome.dropped, outcome.trimmed) == (1, 0, 1)


def test_copies_never_cross_other_loop_over_values(grouping_config) -> None:
    config = grouping_config(
        """
        T1w: {plain_set: {}}
        bold:
          plain_set:
            include_cross_modal: [T1w]
        """
    )
    anat = _record(("01", "NA", "NA", "NA"), "T1w", {"nii": "t1.nii"})
    other_subject = _record(("02", "NA", "NA", "rest"), "bold", {"nii": "bold.nii"})
    other_run = _record(("01", "NA", "2", "rest"), "bold", {"nii": "bold2.nii"})

    outcome = broadcast_cross_modal([anat, other_subject, other_run], config)

    assert outcome.copies == 0
    assert [record.data for record in outcome.records] == [
        {"T1w": {"nii": "t1.nii"}},
        {"bold": {"nii": "bold.nii"}},
        {"bold": {"nii": "bold2.nii"}},
    ]


def test_existing_suffix_is_not_overwritten(grouping_config) -> None:
    config = grouping_config(
        """
        T1w: {plain_set: {}}
        bold:
          plain_set:
            include_cross_modal: [T1w]
        """
    )
    anat = _record(("01", "NA", "NA", "NA"), "T1w", {"nii": "t1.nii"})
    own = _record(("01", "NA", "NA", "rest"), "bold", {"nii": "bold.nii"}).merged_with(
        _record(("01", "NA", "NA", "rest"), "T1w", {"nii": "task_t1.nii"})
    )

    outcome = broadcast_cross_modal([anat, own], config)

    assert outcome.records[0].data == {"T1w": {"nii": "t1.nii"}}
    assert outcome.records[1].data["T1w"] == {"nii": "task_t1.nii"}


def test_broadcast_skipped_without_task_entity(grouping_config) -> None:
    config = grouping_config(
        """
        loop_over: [subject]
        T1w: {plain_set: {}}
        bold:
          plain_set:
            include_cross_modal: [T1w]
        """
    )
    record = ChannelRecord.create(("01",), ("subject",), "T1w", {"nii": "t1.nii"}, ["t1.nii"])

    outcome = broadcast_cross_modal([record], config)

    assert outcome.records == [record]
    assert outcome.copies == 0


def test_custom_task_entity(grouping_config) -> None:
    config = grouping_config(
        """
        loop_over: [subject, acquisition]
        T1w: {plain_set: {}}
        bold:
          plain_set:
            include_cross_modal: [T1w]
        """
    )
    anat = ChannelRecord.create(("01", "NA"), ("subject", "acquisition"), "T1w", {"nii": "t1.nii"}, ["t1.nii"])
    bold = ChannelRecord.create(("01", "fast"), ("subject", "acquisition"), "bold", {"nii": "b.nii"}, ["b.nii"])

    outcome = broadcast_cross_modal([anat, bold], config, task_entity="acq")

    assert [record.group_key for record in outcome.records] == [("01", "fast")]
    assert set(outcome.records[0].data) == {"bold", "T1w"}


def test_empty_input() -> None:
    assert broadcast_cross_modal([], None).records == []  # type: ignore[arg-type]
