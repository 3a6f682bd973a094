"""
Sample registry access via the multi-lims warehouse (MLWH) database.
"""

import logging
from dataclasses import dataclass
from typing import List, Union

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine

logger = logging.getLogger(__name__)

# Seconds before pooled connections are recycled
CONN_MAX_LIFETIME = 180

GET_SAMPLES = text("""
SELECT DISTINCT st.id_study_lims AS study_id, st.name AS study_name,
r.id_run AS run_id, sa.sanger_sample_id AS sample_id,
sa.supplier_name AS sample_name, fc.manual_qc AS manual_qc
FROM iseq_flowcell fc
JOIN study st ON st.id_study_tmp = fc.id_study_tmp
JOIN iseq_run r ON r.id_flowcell_lims = fc.id_flowcell_lims
JOIN sample sa ON sa.id_sample_tmp = fc.id_sample_tmp
WHERE st.faculty_sponsor = :sponsor AND (fc.manual_qc = '1' OR fc.manual_qc = '0')
ORDER BY run_id, sample_id
""")


@dataclass
class RegistrySample:
    """A sample-run in the MLWH, with its study and QC outcome."""
    study_id: str
    study_name: str
    run_id: str
    sample_id: str
    sample_name: str
    manual_qc: bool


class MLWH:
    """
    Connection pool to the MLWH database.

    Args:
        engine: SQLAlchemy engine for the database
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    @classmethod
    def from_url(cls, url: Union[str, URL]) -> 'MLWH':
        """Create an MLWH for a database URL, e.g. from AutomationConfig.registry_url()."""
        engine = create_engine(url, pool_recycle=CONN_MAX_LIFETIME, pool_pre_ping=True)
        return cls(engine)

    def samples_for_partition(self, sponsor: str) -> List[RegistrySample]:
        """
        Get all samples with a manual QC decision whose study has the given
        faculty sponsor.

        Args:
            sponsor: Faculty sponsor name, e.g. "Ben Lehner"

        Returns:
            RegistrySamples ordered by run, then sample
        """
        with self.engine.connect() as conn:
            rows = conn.execute(GET_SAMPLES, {"sponsor": sponsor}).fetchall()

        samples = [
            RegistrySample(
                study_id=_str(row.study_id),
                study_name=_str(row.study_name),
                run_id=_str(row.run_id),
                sample_id=_str(row.sample_id),
                sample_name=_str(row.sample_name),
                manual_qc=_str(row.manual_qc) == "1",
            )
            for row in rows
        ]

        logger.debug(f"MLWH returned {len(samples)} samples for {sponsor}")

        return samples

    samples_for_sponsor = samples_for_partition

    def close(self):
        """Close all pooled connections."""
        self.engine.dispose()


def _str(value) -> str:
    return "" if value is None else str(value)
