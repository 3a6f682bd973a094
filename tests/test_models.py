"""Tests for dimsum_automation.core.models."""

import pytest

from dimsum_automation.core.models import (
    Experiment,
    Library,
    MutagenesisType,
    Sample,
    Selection,
    SequenceType,
)


class TestEnums:
    """Test parsing of enum cells."""

    def test_selection_parses(self):
        """Test input and output selections."""
        assert Selection.from_string("input") == Selection.INPUT
        assert Selection.from_string(" output ") == Selection.OUTPUT

    def test_selection_rejects_blank_and_unknown(self):
        """Test that selection has no default."""
        with pytest.raises(ValueError, match="invalid selection"):
            Selection.from_string("")
        with pytest.raises(ValueError, match="invalid selection"):
            Selection.from_string("middle")

    def test_sequence_type_blank_is_auto(self):
        """Test blank sequence type defaults to auto."""
        assert SequenceType.from_string("") == SequenceType.AUTO
        assert SequenceType.from_string("coding") == SequenceType.CODING

    def test_sequence_type_rejects_unknown(self):
        with pytest.raises(ValueError, match="invalid sequence type"):
            SequenceType.from_string("protein")

    def test_mutagenesis_type_blank_is_random(self):
        """Test blank mutagenesis type defaults to random."""
        assert MutagenesisType.from_string("") == MutagenesisType.RANDOM
        assert MutagenesisType.from_string("codon") == MutagenesisType.CODON

    def test_mutagenesis_type_rejects_unknown(self):
        with pytest.raises(ValueError, match="invalid mutagenesis type"):
            MutagenesisType.from_string("targeted")


class TestSample:
    """Test Sample derived values."""

    def test_key(self):
        """Test key joins sample and run identities with a period."""
        sample = Sample(sample_id="s1", run_id="r1")
        assert sample.key == "s1.r1"

    def test_selection_id_and_replicate(self):
        """Test DiMSum selection columns."""
        assert Sample(selection=Selection.INPUT).selection_id == 0
        assert Sample(selection=Selection.INPUT).selection_replicate == ""
        assert Sample(selection=Selection.OUTPUT).selection_id == 1
        assert Sample(selection=Selection.OUTPUT).selection_replicate == "1"

    def test_generations_for_output(self):
        """Test generations is log2 of density over the starting density."""
        sample = Sample(selection=Selection.OUTPUT, cell_density="0.8")
        assert sample.generations() == pytest.approx(4.0)

    def test_generations_for_input_is_zero(self):
        sample = Sample(selection=Selection.INPUT, cell_density="0.8")
        assert sample.generations() == 0.0

    def test_generations_without_density_is_zero(self):
        """Test blank and malformed densities give 0 generations."""
        assert Sample(selection=Selection.OUTPUT, cell_density="").generations() == 0.0
        assert Sample(selection=Selection.OUTPUT, cell_density="n/a").generations() == 0.0
        assert Sample(selection=Selection.OUTPUT, cell_density="n/a").cell_density_value == 0.0


class TestTree:
    """Test tree defaults."""

    def test_defaults_are_not_shared(self):
        """Test that default lists are per instance."""
        a = Library(library_id="a")
        b = Library(library_id="b")
        a.experiments.append(Experiment(experiment_id="e"))

        assert b.experiments == []
        assert Experiment(experiment_id="x").samples == []

    def test_experiment_enum_defaults(self):
        exp = Experiment(experiment_id="e")
        assert exp.sequence_type == SequenceType.AUTO
        assert exp.mutagenesis_type == MutagenesisType.RANDOM


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
