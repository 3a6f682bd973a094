"""
Spreadsheet metadata service.

The metadata spreadsheet has three tabs:
- libraries: one row per mutant library, with defaults for its experiments
- experiments: one row per experiment, with the DiMSum parameters to use
- samples: one row per sequenced sample, naming its experiment

Tabs are read as string tables with pandas, then converted into a
Library -> Experiment -> Sample tree.
"""

import logging
import math
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import quote

import gspread
import pandas as pd

from ..core.models import (
    Experiment,
    Libraries,
    Library,
    MutagenesisType,
    Sample,
    Selection,
    SequenceType,
)

logger = logging.getLogger(__name__)

LIBRARIES_TAB = "libraries"
EXPERIMENTS_TAB = "experiments"
SAMPLES_TAB = "samples"

GOOGLE_CSV_URL = "https://docs.google.com/spreadsheets/d/{sheet_id}/gviz/tq?tqx=out:csv&sheet={tab}"
GOOGLE_SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]


class SheetError(ValueError):
    """Base class for problems with the metadata spreadsheet."""


class NoDataError(SheetError):
    def __init__(self, tab: str):
        super().__init__(f"no data found in sheet {tab!r}")


class MissingColumnError(SheetError):
    def __init__(self, tab: str, column: str):
        super().__init__(f"sheet {tab!r} is missing column {column!r}")


class MissingLibraryError(SheetError):
    def __init__(self, experiment_id: str, library_id: str):
        super().__init__(
            f"experiment {experiment_id!r} refers to library {library_id!r}, "
            "which is not in the libraries sheet"
        )


class MissingExperimentError(SheetError):
    def __init__(self, sample_name: str, experiment_id: str):
        super().__init__(
            f"sample {sample_name!r} refers to experiment {experiment_id!r}, "
            "which is not in the experiments sheet"
        )


class DuplicateLibraryError(SheetError):
    def __init__(self, library_id: str, row: int):
        super().__init__(f"library {library_id!r} is repeated in the libraries sheet at row {row}")


class DuplicateExperimentError(SheetError):
    def __init__(self, experiment_id: str, row: int):
        super().__init__(f"experiment {experiment_id!r} is repeated in the experiments sheet at row {row}")


class ConversionError(SheetError):
    def __init__(self, tab: str, row: int, column: str, value: str, reason: str):
        super().__init__(f"sheet {tab!r} row {row} column {column!r}: {reason}: {value!r}")


_TRUE = {"1", "t", "true"}
_FALSE = {"0", "f", "false"}


def to_int(value: str) -> int:
    """Convert a cell to int. Blank cells are 0."""
    if not value:
        return 0
    return int(value)


def to_float_string(value: str) -> str:
    """Check a cell holds a finite float (or is blank) and return it unchanged."""
    if value and not math.isfinite(float(value)):
        raise ValueError("not a finite number")
    return value


def to_bool(value: str) -> bool:
    """Convert a cell to bool. Blank cells are False."""
    lowered = value.lower()
    if not lowered or lowered in _FALSE:
        return False
    if lowered in _TRUE:
        return True
    raise ValueError("invalid boolean")


CONVERTERS: Dict[str, Callable[[str], object]] = {
    "str": str,
    "int": to_int,
    "float": to_float_string,
    "bool": to_bool,
    "selection": Selection.from_string,
    "sequence_type": SequenceType.from_string,
    "mutagenesis_type": MutagenesisType.from_string,
}

# (column, Experiment field, converter); experiment_id and library_id are
# handled separately
EXPERIMENT_COLUMNS: List[Tuple[str, str, str]] = [
    ("Assay", "assay", "str"),
    ("projectName", "project_name", "str"),
    ("startStage", "start_stage", "int"),
    ("stopStage", "stop_stage", "int"),
    ("barcodeDesignPath", "barcode_design_path", "str"),
    ("barcodeErrorRate", "barcode_error_rate", "float"),
    ("experimentDesignPairDuplicates", "experiment_design_pair_duplicates", "bool"),
    ("countPath", "count_path", "str"),
    ("barcodeIdentityPath", "barcode_identity_path", "str"),
    ("cutadapt5First", "cutadapt5_first", "str"),
    ("cutadapt5Second", "cutadapt5_second", "str"),
    ("cutadaptMinLength", "cutadapt_min_length", "int"),
    ("cutadaptErrorRate", "cutadapt_error_rate", "float"),
    ("cutadaptOverlap", "cutadapt_overlap", "int"),
    ("cutadaptCut5First", "cutadapt_cut5_first", "str"),
    ("cutadaptCut5Second", "cutadapt_cut5_second", "str"),
    ("cutadaptCut3First", "cutadapt_cut3_first", "str"),
    ("cutadaptCut3Second", "cutadapt_cut3_second", "str"),
    ("vsearchMinQual", "vsearch_min_qual", "int"),
    ("vsearchMaxQual", "vsearch_max_qual", "int"),
    ("vsearchMaxee", "vsearch_maxee", "int"),
    ("vsearchMinovlen", "vsearch_minovlen", "int"),
    ("reverseComplement", "reverse_complement", "bool"),
    ("permittedSequences", "permitted_sequences", "str"),
    ("sequenceType", "sequence_type", "sequence_type"),
    ("mutagenesisType", "mutagenesis_type", "mutagenesis_type"),
    ("indels", "indels", "str"),
    ("mixedSubstitutions", "mixed_substitutions", "bool"),
    ("fitnessMinInputCountAll", "fitness_min_input_count_all", "int"),
    ("fitnessMinInputCountAny", "fitness_min_input_count_any", "int"),
    ("fitnessMinOutputCountAll", "fitness_min_output_count_all", "int"),
    ("fitnessMinOutputCountAny", "fitness_min_output_count_any", "int"),
    ("fitnessNormalise", "fitness_normalise", "bool"),
    ("fitnessErrorModel", "fitness_error_model", "bool"),
    ("fitnessDropoutPseudocount", "fitness_dropout_pseudocount", "int"),
    ("retainedReplicates", "retained_replicates", "str"),
    ("stranded", "stranded", "bool"),
    ("paired", "paired", "bool"),
    ("synonymSequencePath", "synonym_sequence_path", "str"),
    ("transLibrary", "trans_library", "bool"),
    ("transLibraryReverseComplement", "trans_library_reverse_complement", "bool"),
]


class DirectorySheetReader:
    """
    Reads spreadsheet tabs exported as TSV files.

    Tab <tab> of sheet <sheet_id> is read from <root>/<sheet_id>/<tab>.tsv.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def read(self, sheet_id: str, tab: str) -> pd.DataFrame:
        path = self.root / sheet_id / f"{tab}.tsv"
        try:
            return pd.read_csv(path, sep='\t', dtype=str, keep_default_na=False)
        except pd.errors.EmptyDataError:
            return pd.DataFrame()


class GoogleSheetReader:
    """Reads tabs of a link-shared Google sheet through its CSV export."""

    def __init__(self, url_template: str = GOOGLE_CSV_URL):
        self.url_template = url_template

    def read(self, sheet_id: str, tab: str) -> pd.DataFrame:
        url = self.url_template.format(sheet_id=quote(sheet_id), tab=quote(tab))
        logger.debug(f"Reading sheet tab {tab} from {url}")
        try:
            return pd.read_csv(url, dtype=str, keep_default_na=False)
        except pd.errors.EmptyDataError:
            return pd.DataFrame()


class ServiceAccountSheetReader:
    """
    Reads tabs of a private Google sheet as a service account.

    Args:
        credentials_file: Service account JSON key from the Google Cloud console;
            the sheet must be shared with its client email
        client: Ready gspread client, for testing; built from
            credentials_file on first use otherwise
    """

    def __init__(self, credentials_file: Optional[Path] = None, client=None):
        self.credentials_file = credentials_file
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = gspread.service_account(
                filename=str(self.credentials_file),
                scopes=GOOGLE_SHEETS_SCOPES,
            )
        return self._client

    def read(self, sheet_id: str, tab: str) -> pd.DataFrame:
        logger.debug(f"Reading sheet tab {tab} of {sheet_id} as a service account")
        rows = self.client.open_by_key(sheet_id).worksheet(tab).get_all_values()

        if not rows:
            return pd.DataFrame()

        header = rows[0]
        width = len(header)
        body = [(row + [""] * width)[:width] for row in rows[1:]]

        return pd.DataFrame(body, columns=header, dtype=str)


class SheetsMetadata:
    """
    Builds the metadata tree from the three spreadsheet tabs.

    Args:
        reader: Has read(sheet_id, tab) returning a string DataFrame
    """

    def __init__(self, reader):
        self.reader = reader

    def fetch_tree(self, sheet_id: str) -> Libraries:
        """
        Read the spreadsheet and return its Library -> Experiment -> Sample tree.

        Experiments inherit their library's wildtype sequence and max
        substitutions when their own cells are blank.

        Raises:
            SheetError: if a tab is empty, lacks a required column, refers
                to a missing parent, or holds an unparseable cell
        """
        libraries, library_lookup = self._read_libraries(sheet_id)
        experiment_lookup = self._read_experiments(sheet_id, library_lookup)
        self._read_samples(sheet_id, experiment_lookup)

        return libraries

    def _read_tab(self, sheet_id: str, tab: str, required: List[str]) -> pd.DataFrame:
        df = self.reader.read(sheet_id, tab)
        if len(df) > 0:
            df = df.fillna("").astype(str).apply(lambda col: col.str.strip())
            df = df[(df != "").any(axis=1)]

        if len(df) == 0:
            raise NoDataError(tab)

        for column in required:
            if column not in df.columns:
                raise MissingColumnError(tab, column)

        return df

    def _read_libraries(self, sheet_id: str) -> Tuple[Libraries, Dict[str, Library]]:
        df = self._read_tab(sheet_id, LIBRARIES_TAB, ["library_id", "wildtypeSequence", "maxSubstitutions"])

        libraries = []
        lookup = {}

        for i, row in df.iterrows():
            if row["library_id"] in lookup:
                raise DuplicateLibraryError(row["library_id"], _sheet_row(i))

            library = Library(
                library_id=row["library_id"],
                wildtype_sequence=row["wildtypeSequence"],
                max_substitutions=_convert(LIBRARIES_TAB, i, "maxSubstitutions", row["maxSubstitutions"], "int"),
            )
            libraries.append(library)
            lookup[library.library_id] = library

        return libraries, lookup

    def _read_experiments(self, sheet_id: str, library_lookup: Dict[str, Library]) -> Dict[str, Experiment]:
        df = self._read_tab(sheet_id, EXPERIMENTS_TAB, [
            "library_id", "experiment_id", "wildtypeSequence", "maxSubstitutions",
        ])

        missing = [column for column, _, _ in EXPERIMENT_COLUMNS if column not in df.columns]
        if missing:
            logger.warning(f"Experiments sheet lacks columns {missing}; using blank values")

        lookup = {}

        for i, row in df.iterrows():
            experiment_id = row["experiment_id"]
            if experiment_id in lookup:
                raise DuplicateExperimentError(experiment_id, _sheet_row(i))

            library = library_lookup.get(row["library_id"])
            if library is None:
                raise MissingLibraryError(experiment_id, row["library_id"])

            params = {
                field: _convert(EXPERIMENTS_TAB, i, column, row.get(column, ""), kind)
                for column, field, kind in EXPERIMENT_COLUMNS
            }

            wildtype = row["wildtypeSequence"] or library.wildtype_sequence
            max_subs = library.max_substitutions
            if row["maxSubstitutions"]:
                max_subs = _convert(EXPERIMENTS_TAB, i, "maxSubstitutions", row["maxSubstitutions"], "int")

            experiment = Experiment(
                experiment_id=experiment_id,
                wildtype_sequence=wildtype,
                max_substitutions=max_subs,
                **params,
            )

            library.experiments.append(experiment)
            lookup[experiment_id] = experiment

        return lookup

    def _read_samples(self, sheet_id: str, experiment_lookup: Dict[str, Experiment]):
        df = self._read_tab(sheet_id, SAMPLES_TAB, [
            "experiment_id", "sample_id", "selection", "experiment_replicate",
            "selection_time", "cell_density",
        ])

        for i, row in df.iterrows():
            sample_name = row["sample_id"]
            experiment = experiment_lookup.get(row["experiment_id"])
            if experiment is None:
                raise MissingExperimentError(sample_name, row["experiment_id"])

            experiment.samples.append(Sample(
                sample_name=sample_name,
                selection=_convert(SAMPLES_TAB, i, "selection", row["selection"], "selection"),
                experiment_replicate=_convert(
                    SAMPLES_TAB, i, "experiment_replicate", row["experiment_replicate"], "int"),
                selection_time=_convert(SAMPLES_TAB, i, "selection_time", row["selection_time"], "float"),
                cell_density=_convert(SAMPLES_TAB, i, "cell_density", row["cell_density"], "float"),
            ))


def _convert(tab: str, index, column: str, value: str, kind: str):
    """Convert a cell, reporting failures with their spreadsheet row number."""
    try:
        return CONVERTERS[kind](value)
    except ValueError as e:
        raise ConversionError(tab, _sheet_row(index), column, value, str(e)) from None


def _sheet_row(index) -> int:
    """Spreadsheet row number of a DataFrame index: +2 for the header row and 1-based numbering."""
    return int(index) + 2
