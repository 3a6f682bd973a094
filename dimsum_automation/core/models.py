"""
Data models for DiMSum sample metadata.

A consolidated metadata tree is a list of Library objects, each owning its
Experiments, each owning its Samples.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple

import numpy as np


# Cell density at which cultures are considered to start growing
GENERATIONS_MIN_DENSITY = 0.05


class Selection(Enum):
    """Whether a sample was taken before or after selection."""
    INPUT = "input"
    OUTPUT = "output"

    @classmethod
    def from_string(cls, value: str) -> 'Selection':
        """Parse a selection cell. Raises ValueError on anything else."""
        try:
            return cls(value.strip())
        except ValueError:
            raise ValueError(f"invalid selection: {value!r}") from None


class SequenceType(Enum):
    """Sequence type of the mutated region, as understood by DiMSum."""
    NONCODING = "noncoding"
    CODING = "coding"
    AUTO = "auto"

    @classmethod
    def from_string(cls, value: str) -> 'SequenceType':
        """Parse a sequence type cell. Blank means AUTO."""
        value = value.strip()
        if not value:
            return cls.AUTO
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"invalid sequence type: {value!r}") from None


class MutagenesisType(Enum):
    """Mutagenesis strategy used to build the library."""
    RANDOM = "random"
    CODON = "codon"

    @classmethod
    def from_string(cls, value: str) -> 'MutagenesisType':
        """Parse a mutagenesis type cell. Blank means RANDOM."""
        value = value.strip()
        if not value:
            return cls.RANDOM
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"invalid mutagenesis type: {value!r}") from None


@dataclass
class Sample:
    """
    A sequencing sample-run pair.

    Attributes:
        sample_name: Name the sample was submitted to the registry under
        sample_id: Registry sample identity
        run_id: Sequencing run identity
        manual_qc: True if the run passed manual QC
        selection: Input or output sample
        experiment_replicate: Replicate number within the experiment
        technical_replicate: Disambiguates multiple runs of the same
            experiment replicate (1-based)
        selection_time: Free-form numeric text from the spreadsheet
        cell_density: Free-form numeric text from the spreadsheet

    The pair (sample_id, run_id) is unique within a consolidated tree.
    """
    sample_name: str = ""
    sample_id: str = ""
    run_id: str = ""
    manual_qc: bool = False
    selection: Selection = Selection.INPUT
    experiment_replicate: int = 0
    technical_replicate: int = 0
    selection_time: str = ""
    cell_density: str = ""

    @property
    def key(self) -> str:
        """Unique key for this sample: sample_id and run_id joined by a period."""
        return f"{self.sample_id}.{self.run_id}"

    @property
    def identity(self) -> Tuple[str, str]:
        """(sample_id, run_id), unambiguous even when sample_id contains periods."""
        return self.sample_id, self.run_id

    @property
    def selection_id(self) -> int:
        """0 for input samples, 1 for output samples."""
        return 1 if self.selection == Selection.OUTPUT else 0

    @property
    def selection_replicate(self) -> str:
        """DiMSum's selection replicate: "1" for output samples, blank for input."""
        return "1" if self.selection == Selection.OUTPUT else ""

    @property
    def cell_density_value(self) -> float:
        """Cell density as a float, or 0.0 if the cell was blank or malformed."""
        try:
            return float(self.cell_density)
        except ValueError:
            return 0.0

    def generations(self) -> float:
        """
        Number of cell divisions between the start of growth and sampling.

        Input samples, and samples without a usable cell density, have 0
        generations.
        """
        density = self.cell_density_value
        if density <= 0 or self.selection == Selection.INPUT:
            return 0.0

        return float(np.log2(density / GENERATIONS_MIN_DENSITY))


@dataclass
class Experiment:
    """
    An experiment and the DiMSum parameters to run it with.

    The parameter block is read from the spreadsheet and passed through to
    command generation untouched.
    """
    experiment_id: str
    assay: str = ""
    project_name: str = ""
    start_stage: int = 0
    stop_stage: int = 0
    barcode_design_path: str = ""
    barcode_error_rate: str = ""
    experiment_design_pair_duplicates: bool = False
    count_path: str = ""
    barcode_identity_path: str = ""
    cutadapt5_first: str = ""
    cutadapt5_second: str = ""
    cutadapt_min_length: int = 0
    cutadapt_error_rate: str = ""
    cutadapt_overlap: int = 0
    cutadapt_cut5_first: str = ""
    cutadapt_cut5_second: str = ""
    cutadapt_cut3_first: str = ""
    cutadapt_cut3_second: str = ""
    vsearch_min_qual: int = 0
    vsearch_max_qual: int = 0
    vsearch_maxee: int = 0
    vsearch_minovlen: int = 0
    reverse_complement: bool = False
    wildtype_sequence: str = ""
    permitted_sequences: str = ""
    sequence_type: SequenceType = SequenceType.AUTO
    mutagenesis_type: MutagenesisType = MutagenesisType.RANDOM
    indels: str = ""
    max_substitutions: int = 0
    mixed_substitutions: bool = False
    fitness_min_input_count_all: int = 0
    fitness_min_input_count_any: int = 0
    fitness_min_output_count_all: int = 0
    fitness_min_output_count_any: int = 0
    fitness_normalise: bool = False
    fitness_error_model: bool = False
    fitness_dropout_pseudocount: int = 0
    retained_replicates: str = ""
    stranded: bool = False
    paired: bool = False
    synonym_sequence_path: str = ""
    trans_library: bool = False
    trans_library_reverse_complement: bool = False
    samples: List[Sample] = field(default_factory=list)


@dataclass
class Library:
    """
    A mutant library and its experiments.

    wildtype_sequence and max_substitutions are defaults that experiments
    inherit at tree-construction time. study_id and study_name come from the
    sample registry.
    """
    library_id: str
    wildtype_sequence: str = ""
    max_substitutions: int = 0
    study_id: str = ""
    study_name: str = ""
    experiments: List[Experiment] = field(default_factory=list)


# One fetched snapshot of the whole metadata tree
Libraries = List[Library]
