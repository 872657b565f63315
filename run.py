#!/usr/bin/env python3
"""
LivingDoc - Living documentation from Gherkin features and test results
Main entry point: parse features, load execution reports, correlate and write the enriched document
"""

import json
import sys
from pathlib import Path

import click

from livingdoc.core.config_manager import ConfigManager
from livingdoc.core.exceptions import LivingDocError
from livingdoc.enrichment.engine import CorrelationEngine
from livingdoc.parser.feature_parser import FeatureParser
from livingdoc.results.service import TestReportService
from livingdoc.utils.logger import configure_logging, setup_logger

# Initialize logger
logger = setup_logger(__name__)


@click.command()
@click.option('--features', '-f', default='features', help='Path to features directory')
@click.option('--results', '-r', multiple=True, help='Result file or directory (repeatable)')
@click.option('--env', '-e', default=None, help='Environment overlay (config/environments/<env>.yaml)')
@click.option('--config', '-c', default='config/config.yaml', help='Path to config file')
@click.option('--tags', '-t', multiple=True, help='Only include scenarios with these tags')
@click.option('--exclude-tags', '-x', multiple=True, help='Exclude scenarios with these tags')
@click.option('--language', '-l', default=None, help='Default Gherkin language (en/de/fr/es/nl/pt)')
@click.option('--parallel', '-p', default=None, type=int, help='Number of parallel parser workers')
@click.option('--output', '-o', default='livingdoc.json', help='Where to write the enriched document')
@click.option('--fail-on-errors', is_flag=True, help='Exit with 1 when a feature or report could not be read')
def main(features, results, env, config, tags, exclude_tags, language, parallel, output, fail_on_errors):
    """
    Build the enriched living documentation model

    Examples:
        # Features with one NUnit result file
        python run.py --features features --results TestResults/results.xml

        # Merge every report under a directory, smoke scenarios only
        python run.py -r TestResults -t @smoke
    """

    try:
        config_manager = ConfigManager(config, env)
        config_data = config_manager.load_config()
        configure_logging(config_manager.get('logging.level', 'INFO'),
                          bool(config_manager.get('logging.colored', True)))
        if language:
            config_data['parser']['language'] = language
        if parallel is not None:
            config_data['parser']['parallel'] = parallel

        # Parse feature files
        feature_parser = FeatureParser(features, config_data)
        batch = feature_parser.parse_features(list(tags), list(exclude_tags))
        if not batch.features and not batch.errors:
            logger.warning(f"No feature files found in {features}")

        # Load execution reports
        service = TestReportService(config_data)
        report_files = []
        for entry in results:
            path = Path(entry)
            report_files.extend(service.discover(path) if path.is_dir() else [path])
        report, report_errors = service.load_and_merge(report_files)
        if report_files:
            logger.info(f"Merged {len(report.sources)} reports: {len(report.features)} features")

        # Correlate
        engine = CorrelationEngine(config_data)
        document = engine.enrich(batch.features, report, batch.errors, report_errors)

        with open(output, 'w', encoding='utf-8') as f:
            json.dump(document.to_dict(), f, indent=2)
        logger.info(f"Living documentation written to {output}")

        stats = document.statistics
        logger.info(f"Scenarios: {stats.total_scenarios}, passed {stats.passed}, failed {stats.failed}, "
                    f"untested {stats.untested}, coverage {stats.coverage}%")

        if fail_on_errors and (batch.errors or report_errors):
            logger.error(f"{len(batch.errors)} feature files and {len(report_errors)} reports could not be read")
            sys.exit(1)

    except (LivingDocError, OSError) as e:
        logger.error(f"Execution failed: {str(e)}")
        sys.exit(1)


if __name__ == '__main__':
    main()
