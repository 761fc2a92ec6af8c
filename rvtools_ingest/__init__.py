"""RVTools export ingestion and migration-assessment toolkit.

The package turns an RVTools workbook into an immutable ``NormalizedDataset``
and derives metrics, exclusion decisions, readiness scores and migration waves
from it.
"""

__version__ = "0.3.0"

__all__ = ["__version__"]
