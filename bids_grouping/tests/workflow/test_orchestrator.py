from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from bids_grouping.config import Settings
from bids_grouping.grouping import DatasetPathError
from bids_grouping.models.records import ChannelRecord, iter_paths
from bids_grouping.services.export import read_json_lines
from bids_grouping.services.logging import shutdown_logging
from bids_grouping.workflow import (
    NoRecordsEmittedError,
    group_files,
    route_files,
    run_pipeline,
    unify_fragments,
)

CROSS_MODAL_CONFIG = """
T1w:
  plain_set: {}
epi:
  named_set:
    ap: {direction: AP}
    pa: {direction: PA}
bold:
  plain_set:
    include_cross_modal: [T1w]
"""

DATASET = [
    "sub-01/anat/sub-01_T1w.nii.gz",
    "sub-01/anat/sub-01_T1w.json",
    "sub-01/func/sub-01_task-rest_bold.nii.gz",
    "sub-01/func/sub-01_task-rest_bold.json",
    "sub-01/func/sub-01_task-motor_bold.nii.gz",
    "sub-02/anat/sub-02_T1w.nii.gz",
    "sub-02/fmap/sub-02_dir-AP_epi.nii.gz",
    "sub-02/fmap/sub-02_dir-PA_epi.nii.gz",
    "sub-02/func/sub-02_task-rest_bold.nii.gz",
    "sub-02/dwi/sub-02_dwi.nii.gz",
]


def _payloads(records):
    return [record.to_payload() for record in records]


def test_route_files_pairs_keys_with_physical_suffix(grouping_config, files) -> None:
    config = grouping_config(
        """
        dwi: {plain_set: {}}
        dwi_rev:
          suffix_maps_to: dwi
          named_set: {ap: {dir: AP}}
        T1w: {plain_set: {}}
        """
    )
    records = files(["sub-01_dwi.nii", "sub-01_T1w.nii", "sub-01_bold.nii", "sub-01_acq-x.nii"])

    routes, unrouted = route_files(records, config)

    assert [(suffix_config.key, len(routed)) for suffix_config, routed in routes] == [
        ("dwi", 1),
        ("dwi_rev", 1),
        ("T1w", 1),
    ]
    assert unrouted == 2


def test_task_records_receive_requested_anatomy(grouping_config, files, settings) -> None:
    config = grouping_config(CROSS_MODAL_CONFIG)

    state = group_files(files(DATASET[:5]), config, settings=settings)

    keys = [record.group_key for record in state.records]
    assert keys == [("01", "NA", "NA", "rest"), ("01", "NA", "NA", "motor")]
    for record in state.records:
        assert record.data["T1w"] == {
            "nii": "sub-01/anat/sub-01_T1w.nii.gz",
            "json": "sub-01/anat/sub-01_T1w.json",
        }
        assert "sub-01/anat/sub-01_T1w.json" in record.file_paths
    assert state.metrics.broadcast_copies == 2
    assert state.metrics.dropped_standalone == 1


def test_unrequested_independent_data_is_kept(grouping_config, files, settings) -> None:
    config = grouping_config(CROSS_MODAL_CONFIG)

    state = group_files(files(DATASET[5:]), config, settings=settings)

    by_key = {record.group_key: record for record in state.records}
    standalone = by_key[("02", "NA", "NA", "NA")]
    assert list(standalone.data) == ["epi"]
    assert "sub-02/anat/sub-02_T1w.nii.gz" not in standalone.file_paths
    assert set(by_key[("02", "NA", "NA", "rest")].data) == {"bold", "T1w"}


def test_every_emitted_path_is_listed_in_file_paths(grouping_config, files, settings) -> None:
    config = grouping_config(CROSS_MODAL_CONFIG)

    state = group_files(files(DATASET), config, settings=settings)

    for record in state.records:
        assert set(iter_paths(record.data)) <= set(record.file_paths)


def test_results_do_not_depend_on_worker_count(grouping_config, files) -> None:
    config = grouping_config(CROSS_MODAL_CONFIG)
    records = files(DATASET)

    serial = group_files(records, config, settings=Settings(show_progress=False, max_workers=1))
    threaded = group_files(records, config, settings=Settings(show_progress=False, max_workers=4))

    assert _payloads(serial.records) == _payloads(threaded.records)


def test_no_surviving_records_is_an_error(grouping_config, files, settings) -> None:
    config = grouping_config("T1w: {plain_set: {}}\n")

    with pytest.raises(NoRecordsEmittedError):
        group_files(files(["sub-01/dwi/sub-01_dwi.nii.gz"]), config, settings=settings)


def test_absolute_paths_are_relativized(grouping_config, files) -> None:
    config = grouping_config("T1w: {plain_set: {}}\n")
    settings = Settings(show_progress=False, dataset_root=Path("/data/ds001"))

    state = group_files(files(["/data/ds001/sub-01/anat/sub-01_T1w.nii.gz"]), config, settings=settings)

    assert state.records[0].file_paths == ("sub-01/anat/sub-01_T1w.nii.gz",)


def test_paths_outside_dataset_root_fail(grouping_config, files) -> None:
    config = grouping_config("T1w: {plain_set: {}}\n")
    settings = Settings(show_progress=False, dataset_root=Path("/data/ds001"))

    with pytest.raises(DatasetPathError):
        group_files(files(["/elsewhere/sub-01_T1w.nii.gz"]), config, settings=settings)


def test_unify_orders_by_first_appearance_and_later_wins() -> None:
    loop_over = ("subject",)
    first = [
        ChannelRecord.create(("02",), loop_over, "T1w", {"nii": "a.nii"}, ["a.nii"]),
        ChannelRecord.create(("01",), loop_over, "T1w", {"nii": "b.nii"}, ["b.nii"]),
    ]
    second = [
        ChannelRecord.create(("01",), loop_over, "T1w", {"nii": "c.nii"}, ["c.nii"]),
        ChannelRecord.create(("03",), loop_over, "dwi", {"nii": "d.nii"}, ["d.nii"]),
    ]

    unified = unify_fragments([first, second])

    assert [record.group_key for record in unified] == [("02",), ("01",), ("03",)]
    assert unified[1].data == {"T1w": {"nii": "c.nii"}}
    assert unified[1].file_paths == ("b.nii", "c.nii")


def test_run_pipeline_exports_json_lines(tmp_path: Path) -> None:
    grouping_path = tmp_path / "grouping.yaml"
    grouping_path.write_text(textwrap.dedent(CROSS_MODAL_CONFIG), encoding="utf-8")
    file_list = tmp_path / "files.csv"
    file_list.write_text(
        textwrap.dedent(
            """\
            subject,session,task,run,suffix,extension,path
            sub-01,NA,NA,NA,T1w,.nii.gz,sub-01/anat/sub-01_T1w.nii.gz
            sub-01,NA,task-rest,NA,bold,.nii.gz,sub-01/func/sub-01_task-rest_bold.nii.gz
            """
        ),
        encoding="utf-8",
    )
    output = tmp_path / "out" / "records.jsonl"
    settings = Settings(
        grouping_config=grouping_path,
        file_list=file_list,
        output_path=output,
        show_progress=False,
        log_to_console=False,
    )

    try:
        state = run_pipeline(settings=settings)
    finally:
        shutdown_logging()

    assert state.metrics.emitted == 1
    lines = read_json_lines(output)
    assert lines == [
        {
            "key": ["01", "NA", "NA", "rest"],
            "record": {
                "data": {
                    "bold": {"nii": "sub-01/func/sub-01_task-rest_bold.nii.gz"},
                    "T1w": {"nii": "sub-01/anat/sub-01_T1w.nii.gz"},
                },
                "filePaths": [
                    "sub-01/func/sub-01_task-rest_bold.nii.gz",
                    "sub-01/anat/sub-01_T1w.nii.gz",
                ],
                "subject": "sub-01",
                "session": "NA",
                "run": "NA",
                "task": "task-rest",
            },
        }
    ]


def test_run_pipeline_requires_inputs(tmp_path: Path) -> None:
    settings = Settings(show_progress=False, log_to_console=False)

    try:
        with pytest.raises(ValueError, match="grouping configuration"):
            run_pipeline(settings=settings)
    finally:
        shutdown_logging()
