"""Tests for dimsum_automation.core.selection."""

import pytest

from dimsum_automation.core.models import Experiment, Library, Sample, Selection
from dimsum_automation.core.selection import (
    NameRun,
    NoSamplesRequestedError,
    NotAllSamplesInSameExperimentError,
    SamplesNotFoundError,
    SelectionError,
    desired_keys,
    subset,
)


def make_tree():
    """Two libraries, three experiments, four samples."""
    return [
        Library(
            library_id="L1",
            study_id="st1",
            study_name="Study 1",
            experiments=[
                Experiment(experiment_id="E1", samples=[
                    Sample(sample_name="n1", sample_id="s1", run_id="r1", selection=Selection.INPUT),
                    Sample(sample_name="n2", sample_id="s2", run_id="r1", selection=Selection.OUTPUT),
                ]),
                Experiment(experiment_id="E2", samples=[
                    Sample(sample_name="n3", sample_id="s3", run_id="r1"),
                ]),
            ],
        ),
        Library(
            library_id="L2",
            experiments=[
                Experiment(experiment_id="E3", samples=[
                    Sample(sample_name="n4", sample_id="s4", run_id="r2"),
                ]),
            ],
        ),
    ]


def keys_of(library):
    return [s.key for e in library.experiments for s in e.samples]


class TestNameRun:
    """Test NameRun parsing."""

    def test_from_string(self):
        name_run = NameRun.from_string("s1.r1")
        assert name_run == NameRun("s1", "r1")
        assert name_run.key == "s1.r1"
        assert name_run.is_valid

    def test_from_string_sample_with_periods(self):
        """Test the run is taken from after the last period."""
        assert NameRun.from_string("a.b.r5") == NameRun("a.b", "r5")

    def test_from_string_without_run(self):
        name_run = NameRun.from_string("s1")
        assert name_run.run_id == ""
        assert not name_run.is_valid


class TestDesiredKeys:
    """Test desired key collection."""

    def test_skips_invalid_and_dedupes(self):
        keys = desired_keys([NameRun("s1", "r1"), NameRun("s1", "r1"), NameRun("", "r2")])
        assert keys == {("s1", "r1")}

    def test_none_valid(self):
        with pytest.raises(NoSamplesRequestedError, match="no samples requested"):
            desired_keys([NameRun("s1", ""), NameRun("", "r1")])


class TestSubset:
    """Test subset()."""

    def test_selects_whole_experiment(self):
        """Test the matching library is returned with just that experiment."""
        result = subset(make_tree(), [NameRun("s1", "r1"), NameRun("s2", "r1")])

        assert result.library_id == "L1"
        assert result.study_id == "st1"
        assert [e.experiment_id for e in result.experiments] == ["E1"]
        assert keys_of(result) == ["s1.r1", "s2.r1"]

    def test_selects_part_of_experiment(self):
        result = subset(make_tree(), [NameRun("s2", "r1")])
        assert keys_of(result) == ["s2.r1"]

    def test_keeps_experiment_order(self):
        """Test samples come back in experiment order, not request order."""
        result = subset(make_tree(), [NameRun("s2", "r1"), NameRun("s1", "r1")])
        assert keys_of(result) == ["s1.r1", "s2.r1"]

    def test_duplicate_requests(self):
        result = subset(make_tree(), [NameRun("s4", "r2"), NameRun("s4", "r2")])
        assert result.library_id == "L2"
        assert keys_of(result) == ["s4.r2"]

    def test_accepts_samples(self):
        """Test desired samples can be Sample objects."""
        result = subset(make_tree(), [Sample(sample_id="s3", run_id="r1")])
        assert result.experiments[0].experiment_id == "E2"

    def test_nothing_requested(self):
        with pytest.raises(NoSamplesRequestedError):
            subset(make_tree(), [])

    def test_invalid_requests_only(self):
        with pytest.raises(NoSamplesRequestedError):
            subset(make_tree(), [NameRun("s1", "")])

    def test_not_found(self):
        with pytest.raises(SamplesNotFoundError, match="samples not found"):
            subset(make_tree(), [NameRun("s9", "r9")])

    def test_not_found_in_empty_tree(self):
        with pytest.raises(SamplesNotFoundError):
            subset([], [NameRun("s1", "r1")])

    def test_straddling_experiments(self):
        """Test samples from two experiments fail at the first match."""
        with pytest.raises(NotAllSamplesInSameExperimentError):
            subset(make_tree(), [NameRun("s1", "r1"), NameRun("s3", "r1")])

    def test_straddling_libraries(self):
        with pytest.raises(NotAllSamplesInSameExperimentError):
            subset(make_tree(), [NameRun("s4", "r2"), NameRun("s1", "r1")])

    def test_partly_unknown(self):
        """Test an unknown sample alongside a known one."""
        with pytest.raises(NotAllSamplesInSameExperimentError):
            subset(make_tree(), [NameRun("s1", "r1"), NameRun("s9", "r9")])

    def test_errors_are_selection_errors(self):
        with pytest.raises(SelectionError):
            subset(make_tree(), [NameRun("s9", "r9")])

    def test_periods_in_sample_ids_do_not_collide(self):
        """Test a.b/c and a/b.c are different samples although their keys match."""
        tree = [Library(library_id="L1", experiments=[
            Experiment(experiment_id="E1", samples=[Sample(sample_id="a.b", run_id="c")]),
            Experiment(experiment_id="E2", samples=[Sample(sample_id="a", run_id="b.c")]),
        ])]

        result = subset(tree, [NameRun("a", "b.c")])

        assert result.experiments[0].experiment_id == "E2"
        assert result.experiments[0].samples[0].identity == ("a", "b.c")

    def test_every_experiment_round_trips(self):
        """Test selecting all of an experiment's samples gives that experiment."""
        tree = make_tree()

        for library in tree:
            for experiment in library.experiments:
                result = subset(tree, experiment.samples)
                assert result.library_id == library.library_id
                assert result.experiments[0].experiment_id == experiment.experiment_id
                assert result.experiments[0].samples == experiment.samples

    def test_result_is_independent(self):
        """Test modifying the result leaves the source tree alone."""
        tree = make_tree()
        result = subset(tree, [NameRun("s1", "r1")])

        result.study_name = "changed"
        result.experiments[0].experiment_id = "changed"
        result.experiments[0].samples[0].sample_name = "changed"
        result.experiments[0].samples.append(Sample(sample_id="x", run_id="y"))

        assert tree[0].study_name == "Study 1"
        assert tree[0].experiments[0].experiment_id == "E1"
        assert tree[0].experiments[0].samples[0].sample_name == "n1"
        assert len(tree[0].experiments[0].samples) == 2
        assert len(tree[0].experiments) == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
