"""
Core metadata types and sample selection.
"""

from .models import (
    Experiment,
    Libraries,
    Library,
    MutagenesisType,
    Sample,
    Selection,
    SequenceType,
)
from .selection import (
    NameRun,
    NoSamplesRequestedError,
    NotAllSamplesInSameExperimentError,
    SamplesNotFoundError,
    SelectionError,
    clone_library,
    subset,
)

__all__ = [
    # Models
    'Sample',
    'Experiment',
    'Library',
    'Libraries',
    'Selection',
    'SequenceType',
    'MutagenesisType',
    # Selection
    'NameRun',
    'subset',
    'clone_library',
    'SelectionError',
    'NoSamplesRequestedError',
    'SamplesNotFoundError',
    'NotAllSamplesInSameExperimentError',
]
