"""
Loading execution reports from disk
"""

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from livingdoc.core.exceptions import AdapterParseError, FormatDetectionError, LivingDocError
from livingdoc.results.detector import parse_report
from livingdoc.results.merger import merge_reports
from livingdoc.results.models import TestExecutionReport
from livingdoc.utils.helpers import deep_get
from livingdoc.utils.logger import setup_logger

logger = setup_logger(__name__)

DEFAULT_PATTERNS = ['**/*.xml', '**/*.trx', '**/*.json']


class TestReportService:
    """Read, detect, parse and merge execution reports"""
    __test__ = False

    def __init__(self, config: Optional[Dict] = None):
        config = config or {}
        self.patterns = deep_get(config, 'results.patterns', None) or DEFAULT_PATTERNS

    def discover(self, results_dir: Union[str, Path], patterns: Optional[List[str]] = None) -> List[Path]:
        """Report files under a directory, sorted and de-duplicated"""
        root = Path(results_dir)
        found = set()
        for pattern in patterns or self.patterns:
            found.update(p for p in root.glob(pattern) if p.is_file())
        return sorted(found)

    def load_file(self, path: Union[str, Path]) -> TestExecutionReport:
        """Parse one report file; raises FormatDetectionError or AdapterParseError"""
        try:
            with open(path, 'r', encoding='utf-8-sig') as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise AdapterParseError(str(path), 'unknown', f"cannot read file: {e}") from e
        report = parse_report(content, str(path))
        logger.info(f"Loaded {report.formats[0].value} report {path}: {len(report.features)} features")
        return report

    def load(self, paths: Sequence[Union[str, Path]]) -> Tuple[List[TestExecutionReport], List[LivingDocError]]:
        """Load many reports; unreadable or unrecognised files are skipped with a warning"""
        reports = []
        errors = []
        for path in paths:
            try:
                reports.append(self.load_file(path))
            except (FormatDetectionError, AdapterParseError) as e:
                logger.warning(f"Skipping report {e}")
                errors.append(e)
        return reports, errors

    def load_and_merge(self, paths: Sequence[Union[str, Path]]) -> Tuple[TestExecutionReport, List[LivingDocError]]:
        reports, errors = self.load(paths)
        return merge_reports(reports), errors
