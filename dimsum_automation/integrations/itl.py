"""
FASTQ retrieval with irods_to_lustre.

Getting FASTQs for selected samples is a chain of steps:
1. Run the command from ITL.generate_samples_tsv_command() to get a TSV of
   all sample-runs in the study
2. Call ITL.filter_samples_tsv() on that TSV to get one TSV per sample-run
3. Run each FastqCreator.command()
4. Call each FastqCreator.copy_fastq_files() to move the FASTQs into place
"""

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

import pandas as pd

from ..core.models import Library

logger = logging.getLogger(__name__)

FASTQ_PAIR1_SUFFIX = "_1.fastq.gz"
FASTQ_PAIR2_SUFFIX = "_2.fastq.gz"

TSV_OUTPUT_DIR = "./tsv_output"
TSV_OUTPUT_PATH = TSV_OUTPUT_DIR + "/metadata/samples.tsv"
TSV_WORK_DIR = "./tsv_work"
FASTQ_OUTPUT_PATH_SUFFIX = ".output"
FASTQ_OUTPUT_SUBDIR = "fastq"

# Columns of the study TSV holding sample and run identities
TSV_SAMPLE_ID_COLUMN = 1
TSV_RUN_ID_COLUMN = 3


class ITLError(ValueError):
    """Problems preparing irods_to_lustre runs."""


def fastq_basename_prefix(sample_id: str, run_id: str) -> str:
    """Prefix of a sample-run's FASTQ names; append a pair suffix for the full name."""
    return f"{sample_id}.{run_id}"


@dataclass(frozen=True)
class SampleRun:
    """A sample-run whose FASTQs we want."""
    sample_id: str
    run_id: str

    @property
    def key(self) -> str:
        return fastq_basename_prefix(self.sample_id, self.run_id)

    def tsv_path(self, directory: Path = Path(".")) -> Path:
        return Path(directory) / f"{self.key}.tsv"

    def fastq_path(self, directory: Path, pair_suffix: str) -> Path:
        return Path(directory) / f"{self.key}{pair_suffix}"


class ITL:
    """
    Plans irods_to_lustre runs to get FASTQs for the samples of a library.

    Samples whose FASTQ pair already exists in fastq_dir are skipped; see
    sample_runs for those that remain. If none remain there is nothing to do.

    Args:
        library: Library holding exactly one experiment, as returned by
            core.selection.subset()
        fastq_dir: Final directory for the FASTQ files

    Raises:
        ITLError: if the library has no study, does not hold exactly one
            experiment, or a sample has only one of its FASTQs in fastq_dir
    """

    def __init__(self, library: Library, fastq_dir: Path):
        if library is None or not library.study_id:
            raise ITLError("study not specified")

        if len(library.experiments) != 1:
            raise ITLError("samples from multiple experiments provided")

        self.study_id = library.study_id
        self.fastq_dir = Path(fastq_dir)
        self.sample_runs = [
            sr for sr in _unique_sample_runs(library)
            if not _fastqs_exist(sr, self.fastq_dir)
        ]

        logger.info(f"{len(self.sample_runs)} sample-runs need FASTQs fetched into {self.fastq_dir}")

    def generate_samples_tsv_command(self) -> Tuple[str, str]:
        """
        Command to make a TSV of all sample-runs in our study.

        Returns:
            Tuple of (command, path of the TSV it will create)
        """
        cmd = (
            f"irods_to_lustre --run_mode study_id --input_studies {self.study_id} "
            "--samples_to_process -1 --run_imeta_study true --run_iget_study_cram false "
            "--run_merge_crams false --run_crams_to_fastq false --filter_manual_qc true "
            f"--outdir {TSV_OUTPUT_DIR} -w {TSV_WORK_DIR}"
        )
        return cmd, TSV_OUTPUT_PATH

    def filter_samples_tsv(self, input_tsv: Path, output_dir: Path = Path(".")) -> List['FastqCreator']:
        """
        Split the study TSV into one TSV per sample-run we need.

        Args:
            input_tsv: TSV created by the generate_samples_tsv_command() command
            output_dir: Where to write the per-sample-run TSVs

        Raises:
            ITLError: if a sample-run has no rows in the TSV
        """
        df = pd.read_csv(input_tsv, sep='\t', dtype=str, keep_default_na=False)
        creators = []

        for sr in self.sample_runs:
            tsv_path = write_sample_run_tsv(df, sr, sr.tsv_path(output_dir))
            creators.append(FastqCreator(sample_run=sr, tsv_path=tsv_path, final_dir=self.fastq_dir))

        return creators


def _unique_sample_runs(library: Library) -> List[SampleRun]:
    runs = (SampleRun(s.sample_id, s.run_id) for s in library.experiments[0].samples)
    return list(dict.fromkeys(runs))


def _fastqs_exist(sr: SampleRun, fastq_dir: Path) -> bool:
    pair1 = sr.fastq_path(fastq_dir, FASTQ_PAIR1_SUFFIX).exists()
    pair2 = sr.fastq_path(fastq_dir, FASTQ_PAIR2_SUFFIX).exists()

    if pair1 != pair2:
        raise ITLError(f"only one FASTQ file for {sr.key} already exists in {fastq_dir}")

    return pair1


def write_sample_run_tsv(df: pd.DataFrame, sr: SampleRun, output_path: Path) -> Path:
    """Write the header plus the rows of df belonging to one sample-run."""
    if df.shape[1] <= TSV_RUN_ID_COLUMN:
        raise ITLError(f"no matching samples found in TSV for {sr.key}")

    matches = df[
        (df.iloc[:, TSV_SAMPLE_ID_COLUMN] == sr.sample_id) &
        (df.iloc[:, TSV_RUN_ID_COLUMN] == sr.run_id)
    ]

    if len(matches) == 0:
        raise ITLError(f"no matching samples found in TSV for {sr.key}")

    matches.to_csv(output_path, sep='\t', index=False)

    return Path(output_path)


@dataclass
class FastqCreator:
    """Retrieves the FASTQs of one sample-run."""
    sample_run: SampleRun
    tsv_path: Path
    final_dir: Path

    @property
    def output_prefix(self) -> str:
        return self.sample_run.key

    def command(self) -> str:
        """irods_to_lustre command that turns our TSV into FASTQs."""
        return (
            f"irods_to_lustre --run_mode csv_samples_id --input_samples_csv {self.tsv_path} "
            "--samples_to_process -1 --run_imeta_study false --run_iget_study_cram true "
            "--run_merge_crams true --run_crams_to_fastq true --filter_manual_qc true "
            f"--outdir {self.output_prefix}{FASTQ_OUTPUT_PATH_SUFFIX} -w {self.output_prefix}.work"
        )

    def copy_fastq_files(self, work_dir: Path = Path(".")):
        """
        Move the FASTQs produced by command() into final_dir, named by sample-run.

        Existing destination files of the same size are left alone.

        Raises:
            ITLError: if a destination file exists with a different size
        """
        source_dir = Path(work_dir) / f"{self.output_prefix}{FASTQ_OUTPUT_PATH_SUFFIX}" / FASTQ_OUTPUT_SUBDIR

        for suffix in (FASTQ_PAIR1_SUFFIX, FASTQ_PAIR2_SUFFIX):
            source = source_dir / f"{self.sample_run.sample_id}{suffix}"
            dest = self.sample_run.fastq_path(self.final_dir, suffix)
            move_file(source, dest)


def move_file(source: Path, dest: Path):
    """Move source to dest, unless an identically sized dest already exists."""
    if dest.exists():
        if os.path.getsize(source) != os.path.getsize(dest):
            raise ITLError(f"FASTQ file {dest} already exists with a different size")
        return

    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.move(str(source), str(dest))
    logger.info(f"Moved {source} to {dest}")
