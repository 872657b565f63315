"""Unit tests for report merging"""
from datetime import datetime, timedelta, timezone

from livingdoc.results.merger import merge_reports
from livingdoc.results.models import (
    ExecutionStatus, FeatureExecutionResult, ReportFormat, ScenarioExecutionResult, TestExecutionReport,
)

T0 = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)


def _report(source, scenarios, feature='Login', fmt=ReportFormat.NUNIT3):
    return TestExecutionReport(
        features=[FeatureExecutionResult(name=feature, scenarios=scenarios)],
        sources=[source],
        formats=[fmt],
    )


def _scenario(name, status, timestamp=None, **kwargs):
    return ScenarioExecutionResult(name=name, status=status, timestamp=timestamp, **kwargs)


def test_latest_timestamp_wins():
    newer = _report('b.xml', [_scenario('Valid login', ExecutionStatus.PASSED, T0 + timedelta(minutes=5))])
    older = _report('a.xml', [_scenario('Valid login', ExecutionStatus.FAILED, T0)])
    merged = merge_reports([newer, older])

    assert len(merged.features) == 1
    assert merged.features[0].scenarios[0].status == ExecutionStatus.PASSED


def test_tie_goes_to_later_input():
    first = _report('a.xml', [_scenario('Valid login', ExecutionStatus.FAILED, T0)])
    second = _report('b.xml', [_scenario('Valid login', ExecutionStatus.PASSED, T0)])

    assert merge_reports([first, second]).features[0].scenarios[0].status == ExecutionStatus.PASSED
    assert merge_reports([second, first]).features[0].scenarios[0].status == ExecutionStatus.FAILED


def test_missing_timestamps_later_input_wins():
    first = _report('a.xml', [_scenario('Valid login', ExecutionStatus.PASSED, T0)])
    second = _report('b.xml', [_scenario('Valid login', ExecutionStatus.SKIPPED)])

    assert merge_reports([first, second]).features[0].scenarios[0].status == ExecutionStatus.SKIPPED


def test_keys_are_normalized():
    first = _report('a.xml', [_scenario('Valid Login', ExecutionStatus.FAILED)], feature='User Login')
    second = _report('b.xml', [_scenario('valid-login', ExecutionStatus.PASSED)], feature='UserLoginFeature')
    merged = merge_reports([first, second])

    assert len(merged.features) == 1
    assert merged.features[0].name == 'User Login'
    assert len(merged.features[0].scenarios) == 1
    assert merged.features[0].scenarios[0].status == ExecutionStatus.PASSED


def test_shards_are_combined_in_first_seen_order():
    shard_a = _report('a.xml', [_scenario('One', ExecutionStatus.PASSED), _scenario('Two', ExecutionStatus.PASSED)])
    shard_b = _report('b.xml', [_scenario('Three', ExecutionStatus.FAILED)])
    shard_c = _report('c.xml', [_scenario('Four', ExecutionStatus.PASSED)], feature='Search')
    merged = merge_reports([shard_a, shard_b, shard_c])

    assert [f.name for f in merged.features] == ['Login', 'Search']
    assert [s.name for s in merged.features[0].scenarios] == ['One', 'Two', 'Three']
    assert merged.sources == ['a.xml', 'b.xml', 'c.xml']
    assert merged.formats == [ReportFormat.NUNIT3]


def test_merge_is_associative_on_disjoint_keys():
    a = _report('a.xml', [_scenario('One', ExecutionStatus.PASSED)])
    b = _report('b.xml', [_scenario('Two', ExecutionStatus.FAILED)])
    c = _report('c.xml', [_scenario('Three', ExecutionStatus.SKIPPED)], feature='Other')

    left = merge_reports([merge_reports([a, b]), c])
    right = merge_reports([a, merge_reports([b, c])])

    assert left.features == right.features


def test_outline_rows_with_same_name_are_kept_apart():
    rows = [_scenario('Pay', ExecutionStatus.PASSED, example_index=0),
            _scenario('Pay', ExecutionStatus.FAILED, example_index=1)]
    rerun = [_scenario('Pay', ExecutionStatus.PASSED, T0, example_index=1)]
    merged = merge_reports([_report('a.json', rows), _report('b.json', rerun)])
    scenarios = merged.features[0].scenarios

    assert len(scenarios) == 2
    assert [s.status for s in scenarios] == [ExecutionStatus.PASSED, ExecutionStatus.PASSED]


def test_inputs_are_not_modified():
    first = _report('a.xml', [_scenario('One', ExecutionStatus.PASSED)])
    second = _report('b.xml', [_scenario('Two', ExecutionStatus.PASSED)])
    merge_reports([first, second])

    assert [s.name for s in first.features[0].scenarios] == ['One']
    assert [s.name for s in second.features[0].scenarios] == ['Two']


def test_merge_of_nothing_is_empty():
    merged = merge_reports([])

    assert merged.features == []
    assert merged.sources == []


def test_duplicate_example_index_in_one_report_keeps_both():
    rows = [_scenario('Pay', ExecutionStatus.PASSED, example_index=0),
            _scenario('Pay', ExecutionStatus.FAILED, example_index=0),
            _scenario('Pay', ExecutionStatus.SKIPPED, example_index=1)]
    merged = merge_reports([_report('a.json', rows)])

    assert [s.status for s in merged.features[0].scenarios] == [
        ExecutionStatus.PASSED, ExecutionStatus.FAILED, ExecutionStatus.SKIPPED]
