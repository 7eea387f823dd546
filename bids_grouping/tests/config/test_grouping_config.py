from __future__ import annotations

from pathlib import Path

import pytest

from bids_grouping.config.grouping import (
    DEFAULT_LOOP_OVER,
    GroupingConfig,
    GroupingConfigError,
    MixedSetConfig,
    NamedSetConfig,
    OrderMode,
    PlainSetConfig,
    SequentialSetConfig,
    load_grouping_config,
)


def test_defaults_and_typed_variants(grouping_config) -> None:
    config = grouping_config(
        """
        T1w:
          plain_set: {}
        dwi:
          named_set:
            ap: {direction: dir-AP}
            pa: {direction: dir-PA}
            required: [ap, pa]
        MEGRE:
          sequential_set:
            by_entity: echo
        MP2RAGE:
          sequential_set:
            by_entities: [flip, inversion]
            order: flat
            parts: [mag, phase]
        MPM:
          mixed_set:
            named_dimension: acquisition
            sequential_dimension: echo
            named_groups:
              MTw: {acquisition: acq-MTw}
              PDw: {acquisition: acq-PDw}
            required: [MTw, PDw]
        """
    )

    assert config.loop_over == DEFAULT_LOOP_OVER
    assert isinstance(config.suffixes["T1w"].set_config, PlainSetConfig)

    dwi = config.suffixes["dwi"].set_config
    assert isinstance(dwi, NamedSetConfig)
    assert dwi.group_names == ["ap", "pa"]
    assert dwi.groups[0].patterns == {"dir": "dir-AP"}
    assert dwi.required == ["ap", "pa"]

    megre = config.suffixes["MEGRE"].set_config
    assert isinstance(megre, SequentialSetConfig)
    assert megre.by_entities == ["echo"]
    assert megre.order is OrderMode.HIERARCHICAL

    mp2rage = config.suffixes["MP2RAGE"].set_config
    assert mp2rage.by_entities == ["flip", "inv"]
    assert mp2rage.order is OrderMode.FLAT
    assert mp2rage.parts == ["mag", "phase"]

    mpm = config.suffixes["MPM"].set_config
    assert isinstance(mpm, MixedSetConfig)
    assert mpm.named_dimension == "acq"
    assert mpm.sequential_dimension == "echo"
    assert mpm.required == ["MTw", "PDw"]


def test_empty_plain_set_is_present(grouping_config) -> None:
    config = grouping_config(
        """
        T1w:
          plain_set:
        """
    )

    assert config.suffixes["T1w"].set_type == "plain_set"


def test_loop_over_accepts_single_string(grouping_config) -> None:
    config = grouping_config(
        """
        loop_over: subject
        T1w: {plain_set: {}}
        """
    )

    assert config.loop_over == ["subject"]


def test_reserved_and_non_mapping_keys_are_ignored(grouping_config) -> None:
    config = grouping_config(
        """
        plain_sets: {anything: true}
        version: 3
        T1w: {plain_set: {}}
        """
    )

    assert list(config.suffixes) == ["T1w"]


def test_required_at_suffix_level_is_accepted(grouping_config) -> None:
    config = grouping_config(
        """
        dwi:
          required: [ap]
          named_set:
            ap: {direction: AP}
            pa: {direction: PA}
        """
    )

    assert config.suffixes["dwi"].set_config.required == ["ap"]


def test_sequence_aliases_follow_priority(grouping_config) -> None:
    config = grouping_config(
        """
        a:
          sequential_set: {sequence_by: echo}
        b:
          sequential_set: {by_entity: run, sequential_dimension: inversion}
        c:
          sequential_set: {by_entities: [echo, flip], sequential_dimension: run}
        """
    )

    assert config.suffixes["a"].set_config.by_entities == ["echo"]
    assert config.suffixes["b"].set_config.by_entities == ["inv"]
    assert config.suffixes["c"].set_config.by_entities == ["echo", "flip"]
    assert any("Using 'by_entities'" in warning for warning in config.warnings)


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("T1w:\n  plain_set: {}\n  named_set: {a: {run: 1}}\n", "multiple set types"),
        ("T1w:\n  description: no set\n", "no set type"),
        ("MEGRE:\n  sequential_set: {by_entity: echo, order: diagonal}\n", "'order'"),
        ("MEGRE:\n  sequential_set: {by_entities: []}\n", "cannot be empty"),
        ("MEGRE:\n  sequential_set: {order: flat}\n", "must specify"),
        ("dwi:\n  named_set:\n    ap: {dir: AP}\n    required: [pa]\n", "'pa' is not defined"),
        ("dwi:\n  named_set:\n    required: [pa]\n", "no named groups"),
        ("MPM:\n  mixed_set: {sequential_dimension: echo}\n", "named_groups"),
        ("MPM:\n  mixed_set:\n    named_groups: {a: {acq: x}}\n", "sequential_dimension"),
        ("loop_over: {a: 1}\nT1w: {plain_set: {}}\n", "loop_over"),
        ("dwi:\n  suffix_maps_to: [dwi]\n  plain_set: {}\n", "suffix_maps_to"),
    ],
)
def test_structural_errors_name_suffix_and_field(grouping_config, text: str, message: str) -> None:
    with pytest.raises(GroupingConfigError) as excinfo:
        grouping_config(text)

    assert message in str(excinfo.value)


def test_soft_issues_become_warnings(grouping_config) -> None:
    config = grouping_config(
        """
        MEGRE:
          sequential_set:
            by_entities: [echo]
            parts: [mag]
        fmap:
          named_set:
            first: {run: 1}
            second: {run: "01"}
            empty: {}
        """
    )

    joined = "\n".join(config.warnings)
    assert "only one entity" in joined
    assert "'parts' has only one value" in joined
    assert "overlapping patterns" in joined
    assert "empty pattern" in joined


def test_suffix_mapping_and_output_keys(grouping_config) -> None:
    config = grouping_config(
        """
        dwi:
          plain_set: {}
        dwi_fullreverse:
          suffix_maps_to: dwi
          named_set:
            ap: {direction: AP}
        """
    )

    assert config.suffix_mapping() == {"dwi": "dwi_fullreverse"}
    assert config.keys_for_suffix("dwi") == ["dwi", "dwi_fullreverse"]
    assert config.suffixes["dwi_fullreverse"].output_key == "dwi_fullreverse"
    assert config.suffixes["dwi"].output_key == "dwi"


def test_summary_counts_set_types(grouping_config) -> None:
    config = grouping_config(
        """
        T1w: {plain_set: {}}
        T2w: {plain_set: {}}
        MEGRE: {sequential_set: {by_entity: echo}}
        """
    )

    summary = config.summary()

    assert summary["counts"] == {
        "plain_set": 2,
        "named_set": 0,
        "sequential_set": 1,
        "mixed_set": 0,
    }
    assert summary["total_suffixes"] == 3


def test_include_cross_modal_lists(grouping_config) -> None:
    config = grouping_config(
        """
        T1w: {plain_set: {}}
        bold:
          plain_set:
            include_cross_modal: [T1w]
        """
    )

    assert config.suffixes["bold"].include_cross_modal == ["T1w"]


def test_load_grouping_config_from_file(write_text) -> None:
    path = write_text(
        "grouping.yaml",
        """
        loop_over: [subject, session]
        T1w:
          plain_set: {}
        """,
    )

    config = load_grouping_config(path)

    assert config.loop_over == ["subject", "session"]
    assert config.loop_over_short == ["sub", "ses"]


def test_load_grouping_config_rejects_non_mapping(write_text) -> None:
    path = write_text("grouping.yaml", "- T1w\n")

    with pytest.raises(GroupingConfigError):
        load_grouping_config(path)


def test_load_grouping_config_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_grouping_config(tmp_path / "nope.yaml")


def test_from_mapping_rejects_non_mapping() -> None:
    with pytest.raises(GroupingConfigError):
        GroupingConfig.from_mapping(["T1w"])  # type: ignore[arg-type]


def test_mixed_set_prefers_sequential_dimension_over_by_entities(grouping_config) -> None:
    config = grouping_config(
        """
        MPM:
          mixed_set:
            sequential_dimension: echo
            by_entities: [flip, echo]
            named_groups: {a: {acquisition: a}}
        MTS:
          mixed_set:
            by_entities: [flip, echo]
            named_groups: {a: {acquisition: a}}
        """
    )

    assert config.suffixes["MPM"].set_config.sequential_dimension == "echo"
    assert config.suffixes["MTS"].set_config.sequential_dimension == "flip"
    joined = "\n".join(config.warnings)
    assert "Using 'sequential_dimension'" in joined
    assert "only the first ordering entity 'flip'" in joined
