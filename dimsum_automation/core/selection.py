"""
Selection of a single consistent experiment subtree from a metadata tree.
"""

import dataclasses
from dataclasses import dataclass
from typing import Iterable, List, Set, Tuple

from .models import Experiment, Libraries, Library, Sample


class SelectionError(ValueError):
    """Base class for errors selecting samples from a metadata tree."""


class NoSamplesRequestedError(SelectionError):
    def __init__(self):
        super().__init__("no samples requested")


class SamplesNotFoundError(SelectionError):
    def __init__(self):
        super().__init__("samples not found")


class NotAllSamplesInSameExperimentError(SelectionError):
    def __init__(self):
        super().__init__("not all samples in the same experiment")


@dataclass(frozen=True)
class NameRun:
    """
    A desired sample, identified by sample identity and run identity.

    Both must be set, otherwise the NameRun is ignored during selection.
    """
    sample_id: str
    run_id: str

    @property
    def is_valid(self) -> bool:
        return bool(self.sample_id) and bool(self.run_id)

    @property
    def key(self) -> str:
        return f"{self.sample_id}.{self.run_id}"

    @classmethod
    def from_string(cls, value: str) -> 'NameRun':
        """
        Parse "<sample_id>.<run_id>".

        The run identity is taken from after the last period, since sample
        identities may themselves contain periods.
        """
        sample_id, sep, run_id = value.strip().rpartition('.')
        if not sep:
            return cls(sample_id=value.strip(), run_id="")

        return cls(sample_id=sample_id, run_id=run_id)


def desired_keys(desired: Iterable) -> Set[Tuple[str, str]]:
    """
    Get the unique (sample_id, run_id) pairs of desired samples that have
    both identities set.

    Args:
        desired: NameRun, Sample or any object with sample_id and run_id

    Raises:
        NoSamplesRequestedError: if no desired sample is valid
    """
    keys = {
        (d.sample_id, d.run_id)
        for d in desired
        if d.sample_id and d.run_id
    }

    if not keys:
        raise NoSamplesRequestedError()

    return keys


def subset(libraries: Libraries, desired: Iterable) -> Library:
    """
    Extract the experiment holding exactly the desired samples.

    Libraries are walked in order, then each library's experiments in order.
    The first experiment containing any desired sample decides the outcome:
    either it holds all of them, or selection fails without considering
    later experiments.

    Args:
        libraries: Consolidated metadata tree
        desired: Samples wanted, as NameRuns or Samples

    Returns:
        A new Library with the original library's fields and exactly one
        new Experiment holding copies of the matched samples, in the
        experiment's original order.

    Raises:
        NoSamplesRequestedError: if no valid sample was requested
        NotAllSamplesInSameExperimentError: if the first matching
            experiment lacks some of the desired samples
        SamplesNotFoundError: if no experiment holds any desired sample
    """
    keys = desired_keys(desired)

    for library in libraries:
        for experiment in library.experiments:
            samples = _find_desired_samples(experiment, keys)

            if not samples:
                continue

            if len(samples) != len(keys):
                raise NotAllSamplesInSameExperimentError()

            return clone_library(library, experiment, samples)

    raise SamplesNotFoundError()


def _find_desired_samples(experiment: Experiment, keys: Set[Tuple[str, str]]) -> List[Sample]:
    return [sample for sample in experiment.samples if sample.identity in keys]


def clone_library(library: Library, experiment: Experiment, samples: List[Sample]) -> Library:
    """
    Copy a library so it holds only the given experiment with the given samples.

    The copies share no mutable state with the originals, so changing the
    result never alters a cached tree.
    """
    new_experiment = dataclasses.replace(
        experiment,
        samples=[dataclasses.replace(s) for s in samples],
    )

    return dataclasses.replace(library, experiments=[new_experiment])
