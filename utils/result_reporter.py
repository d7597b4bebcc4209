import csv
import json
import logging
import os
from datetime import datetime
from typing import Dict, Any, TYPE_CHECKING

if TYPE_CHECKING:
    from reducer.pipeline import ReductionResult

"""
Result Reporter - Reduction Output Files

This module writes the artifacts of a finished reduction:
- The statistics row appended to the CSV file
- The reduced script
- Structured metadata of the run
"""

STATS_COLUMNS = [
    'original_statements',
    'reduced_statements',
    'original_tokens',
    'reduced_tokens',
    'elapsed_ms',
]


class ResultReporter:
    """Writes reduction statistics, the reduced script and run metadata."""

    def __init__(self, config: Dict[str, Any]):
        """Initialize the reporter and its output directories."""
        self.config = config
        self.logger = logging.getLogger(__name__)

        self._create_directories()
        self.session_id = datetime.now().strftime("%Y%m%d_%H%M%S")

    def _create_directories(self):
        reporting = self.config.get('reporting', {})
        self.output_dir = reporting.get('output_dir', 'results')
        self.stats_path = os.path.join(self.output_dir, reporting.get('stats_file', 'stats.csv'))
        self.reduced_path = os.path.join(self.output_dir, reporting.get('reduced_file', 'reduced.sql'))
        self.write_metadata = reporting.get('write_metadata', True)
        self.metadata_dir = os.path.join(self.output_dir, 'metadata')

        os.makedirs(self.output_dir, exist_ok=True)
        if self.write_metadata:
            os.makedirs(self.metadata_dir, exist_ok=True)

    def _append_stats(self, result: 'ReductionResult'):
        with open(self.stats_path, 'a', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow([getattr(result, column) for column in STATS_COLUMNS])

    def _create_metadata_json(self, result: 'ReductionResult', source: str) -> Dict[str, Any]:
        """
        Create structured metadata JSON for the run.

        Args:
            result: The finished reduction
            source: Path of the reduced input script

        Returns:
            Structured metadata dictionary
        """
        oracle = self.config.get('oracle', {})
        return {
            "session_id": self.session_id,
            "finished_time": datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
            "source": source,
            "test_script": oracle.get('test_script'),
            "statistics": {column: getattr(result, column) for column in STATS_COLUMNS},
            "oracle": {
                "checks": result.oracle_checks,
                "interesting": result.oracle_interesting,
            },
            "removed_tables": result.removed_tables,
            "stages": [stage.__dict__ for stage in result.stages],
            "files": {
                "stats": self.stats_path,
                "reduced": self.reduced_path,
            },
        }

    def report(self, result: 'ReductionResult', source: str = "") -> Dict[str, str]:
        """
        Writes every artifact of a reduction.

        Args:
            result: The finished reduction
            source: Path of the reduced input script

        Returns:
            Mapping of artifact kind to the path it was written to
        """
        self._append_stats(result)

        with open(self.reduced_path, 'w', encoding='utf-8') as f:
            f.write(result.text)

        written = {'stats': self.stats_path, 'reduced': self.reduced_path}

        if self.write_metadata:
            metadata_path = os.path.join(self.metadata_dir, f"reduction_{self.session_id}.json")
            with open(metadata_path, 'w', encoding='utf-8') as f:
                json.dump(self._create_metadata_json(result, source), f, indent=2)
            written['metadata'] = metadata_path

        self.logger.info(f"Statistics appended to: {self.stats_path}")
        self.logger.info(f"Reduced script: {self.reduced_path}")
        if 'metadata' in written:
            self.logger.info(f"Metadata: {written['metadata']}")
        return written
