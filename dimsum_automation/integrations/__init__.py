"""
External systems: the MLWH sample registry, the metadata spreadsheet,
irods_to_lustre FASTQ retrieval and DiMSum itself.
"""

from .dimsum import DimSum, DimSumError, ExperimentDesign, reverse_complement
from .itl import ITL, FastqCreator, ITLError, SampleRun
from .mlwh import MLWH, RegistrySample
from .sheets import (
    ConversionError,
    DirectorySheetReader,
    DuplicateExperimentError,
    DuplicateLibraryError,
    GoogleSheetReader,
    MissingColumnError,
    MissingExperimentError,
    MissingLibraryError,
    NoDataError,
    ServiceAccountSheetReader,
    SheetError,
    SheetsMetadata,
)

__all__ = [
    # Registry
    'MLWH',
    'RegistrySample',
    # Spreadsheet
    'SheetsMetadata',
    'DirectorySheetReader',
    'GoogleSheetReader',
    'ServiceAccountSheetReader',
    'SheetError',
    'NoDataError',
    'MissingColumnError',
    'MissingLibraryError',
    'MissingExperimentError',
    'DuplicateLibraryError',
    'DuplicateExperimentError',
    'ConversionError',
    # FASTQ retrieval
    'ITL',
    'FastqCreator',
    'SampleRun',
    'ITLError',
    # DiMSum
    'DimSum',
    'ExperimentDesign',
    'DimSumError',
    'reverse_complement',
]
