"""
DiMSum experiment design files and command lines.

Given a Library subset to a single experiment (see core.selection.subset()),
ExperimentDesign writes the tab-separated design file DiMSum reads, and
DimSum renders the command that runs DiMSum over it.
"""

import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

import pandas as pd

from ..core.models import Experiment, Library, Sample
from .itl import FASTQ_PAIR1_SUFFIX, FASTQ_PAIR2_SUFFIX, fastq_basename_prefix

logger = logging.getLogger(__name__)

# Run parameter defaults
DEFAULT_VSEARCH_MIN_QUAL = 20
DEFAULT_START_STAGE = 0
DEFAULT_FITNESS_MIN_INPUT_COUNT_ANY = 10
DEFAULT_FITNESS_MIN_INPUT_COUNT_ALL = 0
DEFAULT_FASTQ_EXTENSION = ".fastq"
DEFAULT_GZIPPED = True
DEFAULT_CUTADAPT_MIN_LENGTH = 100
DEFAULT_CUTADAPT_ERROR_RATE = 0.2
DEFAULT_CORES = 4
DEFAULT_MAX_SUBSTITUTIONS = 2
DEFAULT_MIXED_SUBSTITUTIONS = False
DEFAULT_MUTAGENESIS_TYPE = "random"
DEFAULT_RETAIN_INTERMEDIATE_FILES = True
DEFAULT_DESIGN_PAIR_DUPLICATES = False

EXPERIMENT_DESIGN_PREFIX = "dimsumDesign_"
EXPERIMENT_DESIGN_SUFFIX = ".txt"
EXPERIMENT_DESIGN_COLUMNS = [
    "sample_name", "experiment_replicate", "selection_id", "selection_replicate",
    "technical_replicate", "pair1", "pair2", "generations", "cell_density",
    "selection_time",
]
OUTPUT_SUBDIR = "outputs"
PROJECT_PREFIX = "dimsumRun_"

CUTADAPT_REQUIRED = ":required..."
CUTADAPT_OPTIONAL = ":optional"

_COMPLEMENT = str.maketrans("ACGT", "TGCA")


class DimSumError(ValueError):
    """Problems preparing a DiMSum run."""


def experiment_design_path(directory: Path, experiment_id: str) -> Path:
    return Path(directory) / f"{EXPERIMENT_DESIGN_PREFIX}{experiment_id}{EXPERIMENT_DESIGN_SUFFIX}"


def reverse_complement(seq: str) -> str:
    """Reverse complement a DNA sequence, leaving non-ACGT characters as they are."""
    return seq.upper().translate(_COMPLEMENT)[::-1]


def _float(value: str) -> float:
    try:
        return float(value)
    except ValueError:
        return 0.0


class ExperimentDesign:
    """
    The DiMSum experiment design for the samples of one experiment.

    Args:
        experiment: Experiment whose samples make up the design
    """

    def __init__(self, experiment: Experiment):
        self.experiment = experiment

    @classmethod
    def from_library(cls, library: Library) -> 'ExperimentDesign':
        """
        Raises:
            DimSumError: if the library does not hold exactly one experiment
        """
        if len(library.experiments) != 1:
            raise DimSumError("multiple experiments in samples")

        return cls(library.experiments[0])

    @property
    def experiment_id(self) -> str:
        return self.experiment.experiment_id

    def to_dataframe(self) -> pd.DataFrame:
        """One row per sample, with the columns DiMSum expects."""
        rows = []
        for sample in self.experiment.samples:
            prefix = fastq_basename_prefix(sample.sample_id, sample.run_id)
            rows.append({
                "sample_name": sample.sample_name,
                "experiment_replicate": sample.experiment_replicate,
                "selection_id": sample.selection_id,
                "selection_replicate": sample.selection_replicate,
                "technical_replicate": sample.technical_replicate or 1,
                "pair1": prefix + FASTQ_PAIR1_SUFFIX,
                "pair2": prefix + FASTQ_PAIR2_SUFFIX,
                "generations": f"{sample.generations():.0f}",
                "cell_density": f"{sample.cell_density_value:.3f}",
                "selection_time": f"{_float(sample.selection_time):.1f}",
            })

        return pd.DataFrame(rows, columns=EXPERIMENT_DESIGN_COLUMNS)

    def write(self, directory: Path) -> Path:
        """
        Write the design file to directory, naming it after the experiment.

        Returns:
            Path to the written file
        """
        path = experiment_design_path(directory, self.experiment_id)
        self.to_dataframe().to_csv(path, sep='\t', index=False)

        logger.info(f"Wrote experiment design for {len(self.experiment.samples)} samples to {path}")

        return path


@dataclass
class DimSum:
    """Parameters for one DiMSum run."""
    exe: str
    fastq_dir: str
    experiment: Experiment
    barcode_identity_path: str = ""
    vsearch_min_qual: int = DEFAULT_VSEARCH_MIN_QUAL
    start_stage: int = DEFAULT_START_STAGE
    fitness_min_input_count_any: int = DEFAULT_FITNESS_MIN_INPUT_COUNT_ANY
    fitness_min_input_count_all: int = DEFAULT_FITNESS_MIN_INPUT_COUNT_ALL
    fastq_extension: str = DEFAULT_FASTQ_EXTENSION
    gzipped: bool = DEFAULT_GZIPPED
    cutadapt_min_length: int = DEFAULT_CUTADAPT_MIN_LENGTH
    cutadapt_error_rate: float = DEFAULT_CUTADAPT_ERROR_RATE
    cores: int = DEFAULT_CORES
    max_substitutions: int = DEFAULT_MAX_SUBSTITUTIONS
    mixed_substitutions: bool = DEFAULT_MIXED_SUBSTITUTIONS
    mutagenesis_type: str = DEFAULT_MUTAGENESIS_TYPE
    retain_intermediate_files: bool = DEFAULT_RETAIN_INTERMEDIATE_FILES
    design_pair_duplicates: bool = DEFAULT_DESIGN_PAIR_DUPLICATES

    @classmethod
    def from_experiment(cls, exe: str, fastq_dir: str, experiment: Experiment) -> 'DimSum':
        """
        Create a DimSum with defaults for everything the experiment does not set.

        The experiment supplies the barcode identity path, max substitutions
        (default 2 when unset), mixed substitutions, mutagenesis type and
        pair duplicate handling.
        """
        return cls(
            exe=exe,
            fastq_dir=str(fastq_dir),
            experiment=experiment,
            barcode_identity_path=experiment.barcode_identity_path,
            max_substitutions=experiment.max_substitutions or DEFAULT_MAX_SUBSTITUTIONS,
            mixed_substitutions=experiment.mixed_substitutions,
            mutagenesis_type=experiment.mutagenesis_type.value,
            design_pair_duplicates=experiment.experiment_design_pair_duplicates,
        )

    @property
    def experiment_id(self) -> str:
        return self.experiment.experiment_id

    def key(self, samples: List[Sample]) -> str:
        """
        Output path key unique to this experiment, these samples and our parameters.

        Returns:
            "<experiment>/<sorted sample keys>/<sha1 of parameters>"
        """
        sample_info = sorted(f"{s.sample_name}.{s.run_id}" for s in samples)

        props = "_".join([
            self.barcode_identity_path,
            str(self.vsearch_min_qual),
            str(self.start_stage),
            str(self.fitness_min_input_count_any),
            str(self.fitness_min_input_count_all),
            str(self.cutadapt_min_length),
            f"{self.cutadapt_error_rate:.2f}",
            str(self.max_substitutions),
            str(self.mixed_substitutions).lower(),
            self.mutagenesis_type,
            str(self.design_pair_duplicates).lower(),
        ])
        digest = hashlib.sha1(props.encode()).hexdigest()

        return "/".join([self.experiment_id, ",".join(sample_info), digest])

    def command(self) -> str:
        """
        The DiMSum command line.

        It expects to be run in the directory holding the experiment design
        file, and writes results to an "outputs" subdirectory there, which the
        caller should create.
        """
        exp = self.experiment
        cutadapt5_first = (
            exp.cutadapt5_first + CUTADAPT_REQUIRED +
            reverse_complement(exp.cutadapt5_second) + CUTADAPT_OPTIONAL
        )
        cutadapt5_second = (
            exp.cutadapt5_second + CUTADAPT_REQUIRED +
            reverse_complement(exp.cutadapt5_first) + CUTADAPT_OPTIONAL
        )

        cmd = (
            f"{self.exe} -i {self.fastq_dir} -l {self.fastq_extension} "
            f"-g {_bool_word(self.gzipped)} -e {experiment_design_path(Path('.'), self.experiment_id)} "
            f"--cutadapt5First {cutadapt5_first} --cutadapt5Second {cutadapt5_second} "
            f"-n {self.cutadapt_min_length} -a {self.cutadapt_error_rate:.2f} "
            f"-q {self.vsearch_min_qual} -o {OUTPUT_SUBDIR} -p {PROJECT_PREFIX}{self.experiment_id} "
            f"-s {self.start_stage} -w {exp.wildtype_sequence} -c {self.cores} "
            f"--fitnessMinInputCountAny {self.fitness_min_input_count_any} "
            f"--fitnessMinInputCountAll {self.fitness_min_input_count_all} "
            f"--maxSubstitutions {self.max_substitutions} --mutagenesisType {self.mutagenesis_type} "
            f"--retainIntermediateFiles {_bool_letter(self.retain_intermediate_files)} "
            f"--mixedSubstitutions {_bool_letter(self.mixed_substitutions)} "
            f"--experimentDesignPairDuplicates {_bool_letter(self.design_pair_duplicates)}"
        )

        if self.barcode_identity_path:
            cmd += f" --barcodeIdentityPath {self.barcode_identity_path}"

        return cmd


def _bool_word(value: bool) -> str:
    return "TRUE" if value else "FALSE"


def _bool_letter(value: bool) -> str:
    return _bool_word(value)[0]
