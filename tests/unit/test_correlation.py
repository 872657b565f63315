"""Unit tests for the correlation engine"""
import json

from livingdoc.enrichment.engine import CorrelationEngine, aggregate_status, assign_rows, substitute
from livingdoc.parser.feature_parser import parse_text
from livingdoc.results.adapters.cucumber_json import CucumberJsonAdapter
from livingdoc.results.merger import merge_reports
from livingdoc.results.models import (
    ExecutionStatus, FeatureExecutionResult, ScenarioExecutionResult, StepExecutionResult, TestExecutionReport,
)

LOGIN = '''@auth
Feature: User Login
  Background:
    Given the site is up

  @smoke
  Scenario: Valid credentials
    Given I am on the login page
    When I log in as "ann"
    Then I see my dashboard

  Scenario: Locked account
    When I log in as "bob"

  Scenario Outline: Password rules
    When I set the password "<password>"
    Then the result is <result>

    Examples:
      | password | result   |
      | short    | rejected |
      | longer1  | accepted |
      | longest1 | accepted |

  Rule: Remember me
    Scenario: Remembered session
      Then I stay logged in
'''


def _feature():
    return parse_text(LOGIN, 'features/login.feature')


def _report(*features):
    return TestExecutionReport(features=list(features))


def _enrich(features, report, **config):
    return CorrelationEngine({'correlation': config} if config else None).enrich(features, report)


def test_no_report_means_not_executed():
    document = _enrich([_feature()], None)
    feature = document.features[0]

    assert feature.status == ExecutionStatus.NOT_EXECUTED
    assert all(s.status == ExecutionStatus.NOT_EXECUTED for s in feature.scenarios)
    assert document.statistics.untested == 4
    assert document.statistics.coverage == 0.0


def test_match_by_basename_with_different_display_names():
    result = FeatureExecutionResult(
        name='UserLoginFeature', file_path='bin/login.feature',
        scenarios=[ScenarioExecutionResult('Valid credentials', ExecutionStatus.PASSED)])
    document = _enrich([_feature()], _report(result))

    assert document.features[0].result is result
    assert document.features[0].scenarios[0].status == ExecutionStatus.PASSED


def test_match_by_basename_only():
    feature = parse_text('Feature: Authentication\n  Scenario: Valid credentials\n    Given x\n',
                         'features/login.feature')
    result = FeatureExecutionResult(
        name='SomethingElse', file_path='C:\\build\\bin\\login.feature',
        scenarios=[ScenarioExecutionResult('Valid credentials', ExecutionStatus.FAILED)])
    document = _enrich([feature], _report(result), global_scenario_fallback=False)

    assert document.features[0].result is result
    assert document.features[0].status == ExecutionStatus.FAILED


def test_match_with_indexed_lookup():
    others = [FeatureExecutionResult(name=f'Other {i}', file_path=f'other{i}.feature') for i in range(10)]
    result = FeatureExecutionResult(
        name='User Login', scenarios=[ScenarioExecutionResult('Locked account', ExecutionStatus.SKIPPED)])
    document = _enrich([_feature()], _report(*others, result))

    assert document.features[0].result is result
    assert document.features[0].scenarios[1].status == ExecutionStatus.SKIPPED


def test_class_suffix_fallback():
    result = FeatureExecutionResult(
        name='UserLoginTests', scenarios=[ScenarioExecutionResult('ValidCredentialsTest', ExecutionStatus.PASSED)])
    document = _enrich([_feature()], _report(result))

    assert document.features[0].result is result
    assert document.features[0].scenarios[0].status == ExecutionStatus.PASSED


def test_outline_aggregation_and_row_map():
    rows = [
        ScenarioExecutionResult('Password rules(short, rejected)', ExecutionStatus.FAILED, error_message='boom'),
        ScenarioExecutionResult('Password rules(longer1, accepted)', ExecutionStatus.PASSED),
        ScenarioExecutionResult('Password rules(longest1, accepted)', ExecutionStatus.PASSED),
    ]
    result = FeatureExecutionResult(name='User Login', scenarios=rows)
    scenario = _enrich([_feature()], _report(result)).features[0].scenarios[2]

    assert scenario.status == ExecutionStatus.FAILED
    assert scenario.error_message == 'boom'
    assert scenario.row_statuses == {0: ExecutionStatus.FAILED, 1: ExecutionStatus.PASSED,
                                     2: ExecutionStatus.PASSED}
    assert len(scenario.results) == 3


def test_outline_rows_assigned_by_parameters_not_position():
    rows = [
        ScenarioExecutionResult('Password rules(longest1, accepted)', ExecutionStatus.PASSED),
        ScenarioExecutionResult('Password rules(short, rejected)', ExecutionStatus.FAILED),
        ScenarioExecutionResult('Password rules(longer1, accepted)', ExecutionStatus.SKIPPED),
    ]
    scenario = _feature().scenarios[2]
    assigned = assign_rows(scenario, rows)

    assert assigned[0] is rows[1]
    assert assigned[1] is rows[2]
    assert assigned[2] is rows[0]


def test_outline_rows_by_position_without_parameters():
    rows = [ScenarioExecutionResult('Password rules', s) for s in
            (ExecutionStatus.PASSED, ExecutionStatus.FAILED, ExecutionStatus.PASSED)]
    result = FeatureExecutionResult(name='User Login', scenarios=rows)
    scenario = _enrich([_feature()], _report(result)).features[0].scenarios[2]

    assert scenario.row_statuses == {0: ExecutionStatus.PASSED, 1: ExecutionStatus.FAILED,
                                     2: ExecutionStatus.PASSED}


def test_outline_rows_by_example_index():
    rows = [ScenarioExecutionResult('Password rules', ExecutionStatus.PASSED, example_index=2),
            ScenarioExecutionResult('Password rules', ExecutionStatus.FAILED, example_index=0)]
    assigned = assign_rows(_feature().scenarios[2], rows)

    assert assigned == {2: rows[0], 0: rows[1]}


def test_outline_prefix_match_with_placeholders_in_name():
    feature = parse_text('''Feature: Calc
  Scenario Outline: Adding <a> and <b>
    Given <a> and <b>
    Examples:
      | a | b |
      | 1 | 2 |
''')
    result = FeatureExecutionResult(name='Calc', scenarios=[
        ScenarioExecutionResult('Adding 1 and 2', ExecutionStatus.PASSED)])
    scenario = _enrich([feature], _report(result)).features[0].scenarios[0]

    assert scenario.status == ExecutionStatus.PASSED
    assert scenario.row_statuses == {0: ExecutionStatus.PASSED}


def test_step_matching_and_inheritance():
    steps = [
        StepExecutionResult('Given', 'the site is up'),
        StepExecutionResult('Given', 'I am on the login page'),
        StepExecutionResult('When', 'I log in as  "ann"', ExecutionStatus.FAILED, error_message='bad password'),
    ]
    result = FeatureExecutionResult(name='User Login', scenarios=[
        ScenarioExecutionResult('Valid credentials', ExecutionStatus.FAILED, steps=steps)])
    scenario = _enrich([_feature()], _report(result)).features[0].scenarios[0]

    assert scenario.background_steps[0].status == ExecutionStatus.PASSED
    assert [s.status for s in scenario.steps] == [
        ExecutionStatus.PASSED, ExecutionStatus.FAILED, ExecutionStatus.FAILED]
    assert scenario.steps[1].error_message == 'bad password'
    assert not scenario.steps[2].matched
    assert scenario.failed_line == 9


def test_step_placeholders_use_the_representative_row():
    steps = [StepExecutionResult('When', 'I set the password "short"', ExecutionStatus.FAILED)]
    rows = [
        ScenarioExecutionResult('Password rules(short, rejected)', ExecutionStatus.FAILED, steps=steps),
        ScenarioExecutionResult('Password rules(longer1, accepted)', ExecutionStatus.PASSED),
        ScenarioExecutionResult('Password rules(longest1, accepted)', ExecutionStatus.PASSED),
    ]
    result = FeatureExecutionResult(name='User Login', scenarios=rows)
    scenario = _enrich([_feature()], _report(result)).features[0].scenarios[2]

    assert scenario.steps[0].text == 'I set the password "short"'
    assert scenario.steps[0].matched
    assert scenario.steps[1].text == 'the result is rejected'


def test_feature_counters_and_rule_origin():
    result = FeatureExecutionResult(name='User Login', scenarios=[
        ScenarioExecutionResult('Valid credentials', ExecutionStatus.PASSED),
        ScenarioExecutionResult('Locked account', ExecutionStatus.SKIPPED),
        ScenarioExecutionResult('Remembered session', ExecutionStatus.PASSED),
    ])
    feature = _enrich([_feature()], _report(result)).features[0]

    assert (feature.passed_count, feature.failed_count, feature.skipped_count) == (2, 0, 1)
    assert feature.status == ExecutionStatus.PASSED
    remembered = feature.scenarios[3]
    assert remembered.rule is not None and remembered.rule.name == 'Remember me'
    assert [s.name for s in feature.scenarios_for(remembered.rule)] == ['Remembered session']


def test_unmatched_feature_uses_global_scenario_fallback():
    result = FeatureExecutionResult(name='Unrelated', scenarios=[
        ScenarioExecutionResult('Locked account', ExecutionStatus.FAILED)])
    feature = _enrich([_feature()], _report(result)).features[0]

    assert feature.result is None
    assert feature.scenarios[1].status == ExecutionStatus.FAILED


def test_global_fallback_can_be_disabled():
    result = FeatureExecutionResult(name='Unrelated', scenarios=[
        ScenarioExecutionResult('Locked account', ExecutionStatus.FAILED)])
    feature = _enrich([_feature()], _report(result), global_scenario_fallback=False).features[0]

    assert feature.scenarios[1].status == ExecutionStatus.NOT_EXECUTED


def test_partial_match_guard():
    feature = parse_text('Feature: Shop\n  Scenario: Pay\n    Given x\n  Scenario: Checkout cart\n    Given y\n')
    result = FeatureExecutionResult(name='Shop', scenarios=[
        ScenarioExecutionResult('Pay later', ExecutionStatus.PASSED),
        ScenarioExecutionResult('Checkout cart quickly', ExecutionStatus.FAILED),
    ])
    scenarios = _enrich([feature], _report(result)).features[0].scenarios

    assert scenarios[0].status == ExecutionStatus.NOT_EXECUTED
    assert scenarios[1].status == ExecutionStatus.FAILED

    strict = _enrich([feature], _report(result), allow_partial_match=False).features[0].scenarios
    assert strict[1].status == ExecutionStatus.NOT_EXECUTED


def test_statistics_and_tag_distribution():
    result = FeatureExecutionResult(name='User Login', scenarios=[
        ScenarioExecutionResult('Valid credentials', ExecutionStatus.PASSED),
        ScenarioExecutionResult('Locked account', ExecutionStatus.FAILED),
    ])
    document = CorrelationEngine().enrich([_feature()], _report(result), parse_errors=[ValueError('x')])
    stats = document.statistics

    assert stats.total_features == 1
    assert stats.total_scenarios == 4
    assert stats.total_steps == 8
    assert (stats.passed, stats.failed, stats.untested) == (1, 1, 2)
    assert stats.executed == 2
    assert stats.pass_rate == 50.0
    assert stats.coverage == 50.0
    assert stats.unparsed_features == 1
    assert document.tag_distribution == {'@auth': 1, '@smoke': 1}


def test_to_dict_is_json_ready():
    import json

    document = _enrich([_feature()], None)
    data = json.loads(json.dumps(document.to_dict()))

    assert data['features'][0]['name'] == 'User Login'
    outline = data['features'][0]['scenarios'][2]
    assert [row['status'] for row in outline['examples'][0]['rows']] == ['not_executed'] * 3


def test_enrich_does_not_modify_inputs():
    feature = _feature()
    result = FeatureExecutionResult(name='User Login', scenarios=[
        ScenarioExecutionResult('Valid credentials', ExecutionStatus.PASSED)])
    report = _report(result)
    _enrich([feature], report)

    assert feature == _feature()
    assert report.features[0].scenarios[0].status == ExecutionStatus.PASSED


def test_aggregate_status_first_result_for_mixed():
    results = [ScenarioExecutionResult('a', ExecutionStatus.SKIPPED),
               ScenarioExecutionResult('b', ExecutionStatus.PASSED)]

    assert aggregate_status(results) == ExecutionStatus.SKIPPED
    assert aggregate_status([]) == ExecutionStatus.NOT_EXECUTED


def test_substitute_leaves_unknown_placeholders():
    assert substitute('<a> and <z>', {'a': '1'}) == '1 and <z>'


SIGN_IN = '''Feature: Sign in
  Scenario: Login
    Given a user

  Scenario: Login (admin)
    Given an admin
'''


def test_plain_scenario_does_not_take_parameterized_sibling():
    feature = parse_text(SIGN_IN, 'features/sign_in.feature')
    result = FeatureExecutionResult(name='Sign in', scenarios=[
        ScenarioExecutionResult('Login', ExecutionStatus.PASSED),
        ScenarioExecutionResult('Login (admin)', ExecutionStatus.FAILED),
    ])
    login, admin = _enrich([feature], _report(result)).features[0].scenarios

    assert login.status == ExecutionStatus.PASSED
    assert len(login.results) == 1
    assert admin.status == ExecutionStatus.FAILED
    assert len(admin.results) == 1


def test_plain_scenario_falls_back_to_parameterized_name():
    feature = parse_text('Feature: Sign in\n  Scenario: Login\n    Given a user\n')
    result = FeatureExecutionResult(name='Sign in', scenarios=[
        ScenarioExecutionResult('Login(chrome)', ExecutionStatus.FAILED)])
    scenario = _enrich([feature], _report(result)).features[0].scenarios[0]

    assert scenario.status == ExecutionStatus.FAILED


CART_OUTLINE = '''Feature: Cart
  Scenario Outline: Add items
    When I add <count> items

    Examples:
      | count |
      | 1     |
      | 2     |

    Examples:
      | count |
      | 3     |
      | 4     |
'''


def test_outline_rows_across_unnamed_examples_blocks():
    elements = [
        {"id": f"cart;add-items;;{row}", "type": "scenario", "name": "Add items",
         "steps": [{"keyword": "When ", "name": f"I add {count} items", "result": {"status": status}}]}
        for row, count, status in ((2, 1, "passed"), (3, 2, "failed"), (2, 3, "passed"), (3, 4, "skipped"))
    ]
    report = CucumberJsonAdapter().parse(json.dumps([{"name": "Cart", "elements": elements}]), 'cart.json')
    merged = merge_reports([report])
    scenario = _enrich([parse_text(CART_OUTLINE)], merged).features[0].scenarios[0]

    assert len(merged.features[0].scenarios) == 4
    assert scenario.row_statuses == {0: ExecutionStatus.PASSED, 1: ExecutionStatus.FAILED,
                                     2: ExecutionStatus.PASSED, 3: ExecutionStatus.SKIPPED}
    assert scenario.status == ExecutionStatus.FAILED
