"""Unit tests for feature parser"""
import pickle

import pytest

from livingdoc.core.exceptions import ParseError
from livingdoc.parser.feature_parser import FeatureParser, parse_text
from livingdoc.parser.models import ScenarioType, filter_by_tags

FULL_FEATURE = '''@billing
Feature: Invoices
  As an accountant
  I want invoices

  Background:
    Given I am logged in

  @smoke
  Scenario: Create invoice
    Given a customer
      | id | name |
      | 1  | Ann  |
    When I create an invoice
    Then the body is
      """
      Invoice for Ann
      """

  Scenario Outline: Totals
    Given <count> items of <price>
    Then the total is <total>

    @fast
    Examples: Small
      | count | price | total |
      | 1     | 2     | 2     |
      | 2     | 3     | 6     |

  Rule: Discounts
    Background:
      Given a discount of 10%

    # rule comment
    Scenario: Discounted invoice
      Then the total is reduced
'''


def test_parse_full_feature():
    feature = parse_text(FULL_FEATURE, 'features/invoices.feature')

    assert feature.name == 'Invoices'
    assert feature.description == 'As an accountant\nI want invoices'
    assert feature.tags == ('@billing',)
    assert feature.file_path == 'features/invoices.feature'
    assert feature.background.steps[0].text == 'I am logged in'
    assert len(feature.scenarios) == 2
    assert len(feature.rules) == 1
    assert feature.scenario_count == 3


def test_data_table_shape():
    feature = parse_text(FULL_FEATURE)
    table = feature.scenarios[0].steps[0].data_table

    assert table.rows == (('id', 'name'), ('1', 'Ann'))
    assert table.row_count == 2
    assert table.column_count == 2


def test_doc_string_attached_to_step():
    feature = parse_text(FULL_FEATURE)
    step = feature.scenarios[0].steps[2]

    assert step.doc_string.content == 'Invoice for Ann'
    assert step.data_table is None


def test_outline_examples():
    feature = parse_text(FULL_FEATURE)
    outline = feature.scenarios[1]

    assert outline.type == ScenarioType.SCENARIO_OUTLINE
    assert outline.is_outline
    example = outline.examples[0]
    assert example.name == 'Small'
    assert example.tags == ('@fast',)
    assert example.header == ('count', 'price', 'total')
    assert example.rows == (('1', '2', '2'), ('2', '3', '6'))
    assert example.row_values(1) == {'count': '2', 'price': '3', 'total': '6'}


def test_rule_background_and_comments():
    feature = parse_text(FULL_FEATURE)
    rule = feature.rules[0]

    assert rule.name == 'Discounts'
    assert rule.background.steps[0].text == 'a discount of 10%'
    assert rule.scenarios[0].comments[0].text == '# rule comment'


def test_effective_tags_are_computed_not_stored():
    feature = parse_text(FULL_FEATURE)
    scenario = feature.scenarios[0]

    assert feature.effective_tags(scenario) == ('@billing', '@smoke')
    assert scenario.tags == ('@smoke',)


def test_parsing_is_deterministic():
    assert parse_text(FULL_FEATURE, 'a.feature') == parse_text(FULL_FEATURE, 'a.feature')


def test_filter_by_tags_returns_new_features():
    feature = parse_text(FULL_FEATURE)
    filtered = filter_by_tags([feature], include=['smoke'])

    assert len(filtered) == 1
    assert [s.name for s in filtered[0].scenarios] == ['Create invoice']
    assert filtered[0].rules == ()
    assert len(feature.scenarios) == 2


def test_filter_by_inherited_tag_keeps_everything():
    feature = parse_text(FULL_FEATURE)
    filtered = filter_by_tags([feature], include=['@billing'], exclude=['@smoke'])

    assert [s.name for s, _ in filtered[0].all_scenarios()] == ['Totals', 'Discounted invoice']


def test_second_background_after_scenario_fails():
    text = '''Feature: Broken
  Background:
    Given one

  Scenario: First
    Given two

  Background:
    Given three
'''
    with pytest.raises(ParseError) as error:
        parse_text(text, 'broken.feature')

    assert error.value.line == 8
    assert error.value.file_path == 'broken.feature'
    assert str(error.value).startswith('broken.feature:8:')


def test_background_after_scenario_fails():
    text = 'Feature: Late\n  Scenario: First\n    Given one\n  Background:\n    Given two\n'
    with pytest.raises(ParseError) as error:
        parse_text(text)

    assert error.value.line == 4
    assert 'before any Scenario' in error.value.reason


def test_duplicate_feature_fails():
    with pytest.raises(ParseError) as error:
        parse_text('Feature: A\nFeature: B\n')

    assert error.value.line == 2


def test_outline_without_examples_fails():
    text = 'Feature: F\n  Scenario Outline: Empty\n    Given <x>\n    Examples:\n      | x |\n'
    with pytest.raises(ParseError) as error:
        parse_text(text)

    assert error.value.line == 2


def test_ragged_examples_row_names_the_row():
    text = '''Feature: F
  Scenario Outline: Ragged
    Given <a>
    Examples:
      | a | b |
      | 1 | 2 |
      | 3 |
'''
    with pytest.raises(ParseError) as error:
        parse_text(text)

    assert error.value.line == 7
    assert '| 3 |' in error.value.reason


def test_examples_outside_outline_fails():
    text = 'Feature: F\n  Scenario: Plain\n    Given x\n    Examples:\n      | a |\n      | 1 |\n'
    with pytest.raises(ParseError) as error:
        parse_text(text)

    assert error.value.line == 4


def test_step_outside_scenario_fails():
    with pytest.raises(ParseError) as error:
        parse_text('Feature: F\n  Given a loose step\n')

    assert error.value.line == 2


def test_missing_feature_fails():
    with pytest.raises(ParseError) as error:
        parse_text('# just a comment\n')

    assert error.value.line is None


def test_dangling_tags_fail():
    with pytest.raises(ParseError) as error:
        parse_text('Feature: F\n  Scenario: S\n    Given x\n  @orphan\n')

    assert error.value.line == 4


def test_tags_before_step_fail():
    with pytest.raises(ParseError):
        parse_text('Feature: F\n  Scenario: S\n    @tag\n    Given x\n')


def test_unterminated_doc_string_fails():
    with pytest.raises(ParseError) as error:
        parse_text('Feature: F\n  Scenario: S\n    Given x\n      """\n      text\n')

    assert error.value.line == 4


def test_step_with_table_and_doc_string_fails():
    text = 'Feature: F\n  Scenario: S\n    Given x\n      | a |\n      """\n      body\n      """\n'
    with pytest.raises(ParseError):
        parse_text(text)


def test_stray_text_after_step_fails():
    with pytest.raises(ParseError) as error:
        parse_text('Feature: F\n  Scenario: S\n    Given x\n    stray words\n')

    assert error.value.line == 4


def test_parse_error_is_picklable():
    error = ParseError('Unexpected text', 'a.feature', 3)
    restored = pickle.loads(pickle.dumps(error))

    assert restored.line == 3
    assert str(restored) == 'a.feature:3: Unexpected text'


def test_localized_feature():
    text = '''# language: fr
Fonctionnalité: Connexion
  Scénario: Réussie
    Soit un utilisateur
    Quand il se connecte
    Alors il voit son tableau de bord
'''
    feature = parse_text(text)

    assert feature.language == 'fr'
    assert feature.name == 'Connexion'
    assert [s.keyword for s in feature.scenarios[0].steps] == ['Soit', 'Quand', 'Alors']


def _write_batch(tmp_path, broken_index=None, count=5):
    paths = []
    for i in range(1, count + 1):
        path = tmp_path / f'f{i}.feature'
        if i == broken_index:
            path.write_text('Feature: Broken\n  Given no scenario\n', encoding='utf-8')
        else:
            path.write_text(f'Feature: Feature {i}\n  Scenario: S{i}\n    Given step {i}\n', encoding='utf-8')
        paths.append(path)
    return paths


@pytest.mark.parametrize('parallel', [1, 4])
def test_batch_isolates_failures(tmp_path, parallel):
    paths = _write_batch(tmp_path, broken_index=3)
    parser = FeatureParser(str(tmp_path), {'parser': {'parallel': parallel}})
    result = parser.parse_files(paths)

    assert [f.name for f in result.features] == ['Feature 1', 'Feature 2', 'Feature 4', 'Feature 5']
    assert len(result.errors) == 1
    assert result.errors[0].file_path.endswith('f3.feature')
    assert result.errors[0].line == 2
    assert result.total_files == 5
    assert not result.success


def test_fail_fast_stops_sequential_batch(tmp_path):
    paths = _write_batch(tmp_path, broken_index=2)
    parser = FeatureParser(str(tmp_path), {'parser': {'parallel': 1, 'fail_fast': True}})
    result = parser.parse_files(paths)

    assert [f.name for f in result.features] == ['Feature 1']
    assert len(result.errors) == 1


def test_unreadable_file_is_recorded(tmp_path):
    parser = FeatureParser(str(tmp_path))
    result = parser.parse_files([tmp_path / 'missing.feature'])

    assert result.features == []
    assert result.errors[0].line is None


def test_parse_features_discovers_and_filters(tmp_path):
    (tmp_path / 'nested').mkdir()
    (tmp_path / 'nested' / 'a.feature').write_text(
        'Feature: A\n  @smoke\n  Scenario: One\n    Given x\n  Scenario: Two\n    Given y\n', encoding='utf-8')
    (tmp_path / 'b.feature').write_text('Feature: B\n  Scenario: Three\n    Given z\n', encoding='utf-8')

    parser = FeatureParser(str(tmp_path))
    result = parser.parse_features(tags=['@smoke'])

    assert [f.name for f in result.features] == ['A']
    assert [s.name for s in result.features[0].scenarios] == ['One']
