"""
Fetching and consolidation of sample metadata.

The sample registry knows which samples were sequenced for a sponsor, in
which runs, and whether they passed QC. The spreadsheet knows how samples
are organised into libraries and experiments, and how DiMSum should be run
on them. Consolidation joins the two into one tree holding only samples
found in both.
"""

import dataclasses
import logging
import time
from collections import defaultdict
from typing import Dict, Iterable, List, Set, Tuple

from ..core.models import Libraries

logger = logging.getLogger(__name__)


def consolidate(registry_samples: Iterable, libraries: Libraries) -> Libraries:
    """
    Join registry records with the spreadsheet's metadata tree.

    Each spreadsheet sample is matched to the registry records with the same
    sample name. A match yields one Sample per registry run, numbered by
    technical replicate in registry order, carrying the registry's sample
    identity, run identity and QC flag. The library takes its study from the
    first matched record. Unmatched samples are dropped, then experiments
    left without samples, then libraries left without experiments.

    The given tree is not modified; new objects are returned.

    Args:
        registry_samples: RegistrySample-like records for one sponsor
        libraries: Metadata tree from the spreadsheet

    Returns:
        The consolidated Libraries
    """
    by_name = _group_by_name(registry_samples)
    seen: Set[Tuple[str, str]] = set()
    result = []

    for library in libraries:
        study = None
        experiments = []

        for experiment in library.experiments:
            samples = []

            for sample in experiment.samples:
                for replicate, record in enumerate(by_name.get(sample.sample_name, []), start=1):
                    merged = dataclasses.replace(
                        sample,
                        sample_id=record.sample_id,
                        run_id=record.run_id,
                        manual_qc=record.manual_qc,
                        technical_replicate=replicate,
                    )

                    if merged.identity in seen:
                        logger.warning(
                            f"Sample {merged.key} appears in more than one experiment; "
                            f"ignoring it in experiment {experiment.experiment_id}"
                        )
                        continue

                    seen.add(merged.identity)
                    samples.append(merged)

                    if study is None:
                        study = record

            if samples:
                experiments.append(dataclasses.replace(experiment, samples=samples))

        if experiments:
            result.append(dataclasses.replace(
                library,
                study_id=study.study_id,
                study_name=study.study_name,
                experiments=experiments,
            ))

    return result


def _group_by_name(registry_samples: Iterable) -> Dict[str, List]:
    """Group registry records by sample name, dropping repeated sample-runs."""
    by_name: Dict[str, List] = defaultdict(list)
    keys: Set[Tuple[str, str]] = set()

    for record in registry_samples:
        key = (record.sample_id, record.run_id)
        if key in keys:
            continue

        keys.add(key)
        by_name[record.sample_name].append(record)

    return by_name


def count_samples(libraries: Libraries) -> int:
    """Total number of samples in a metadata tree."""
    return sum(len(e.samples) for lib in libraries for e in lib.experiments)


class MetadataFetcher:
    """
    Performs one uncached round trip to both metadata sources.

    Args:
        registry: Has samples_for_partition(sponsor) returning
            RegistrySample-like records
        metadata_service: Has fetch_tree(sheet_id) returning Libraries
        sheet_id: Spreadsheet to read the metadata tree from
    """

    def __init__(self, registry, metadata_service, sheet_id: str):
        self.registry = registry
        self.metadata_service = metadata_service
        self.sheet_id = sheet_id

    def fetch(self, sponsor: str) -> Libraries:
        """
        Fetch and consolidate metadata for a sponsor.

        Errors from either source propagate unchanged; nothing is retried.
        """
        start = time.monotonic()

        registry_samples = self.registry.samples_for_partition(sponsor)
        libraries = self.metadata_service.fetch_tree(self.sheet_id)
        result = consolidate(registry_samples, libraries)

        logger.info(
            f"Fetched metadata for {sponsor}: {len(result)} libraries, "
            f"{count_samples(result)} samples ({time.monotonic() - start:.1f}s)"
        )

        return result
