"""Unit tests for name normalization"""
import pytest

from livingdoc.core.cache_manager import CacheManager
from livingdoc.enrichment.normalize import (
    NameNormalizer, normalize_name, normalize_text, path_key, strip_class_suffixes,
)

NAMES = [
    'User Login',
    'UserLoginFeature',
    'user_login-feature',
    'Feature',
    'featurefeature',
    'Shopping Cart Feature Feature',
    '  spaced\tout  ',
    '',
    'Add numbers(1, 2)',
]


@pytest.mark.parametrize('name', NAMES)
def test_normalize_is_idempotent(name):
    assert normalize_name(normalize_name(name)) == normalize_name(name)


def test_normalize_strips_separators_and_feature_suffix():
    assert normalize_name('User Login') == 'userlogin'
    assert normalize_name('UserLoginFeature') == 'userlogin'
    assert normalize_name('user_login-feature') == 'userlogin'


def test_normalize_keeps_a_bare_feature():
    assert normalize_name('Feature') == 'feature'
    assert normalize_name('featurefeature') == 'feature'


def test_strip_class_suffixes():
    assert strip_class_suffixes('userlogintests') == 'userlogin'
    assert strip_class_suffixes('cartfeaturetest') == 'cart'
    assert strip_class_suffixes('test') == 'test'


def test_path_key_is_separator_agnostic():
    assert path_key('features/login.feature') == 'login'
    assert path_key('bin\\Debug\\Login.feature') == 'login'
    assert path_key('Features/Login.feature.cs') == 'login'
    assert path_key('') == ''
    assert path_key(None) == ''


def test_normalize_text():
    assert normalize_text('I  have   5 cukes ') == 'i have 5 cukes'


def test_name_normalizer_caches_by_exact_input():
    normalizer = NameNormalizer(CacheManager(max_size=2))

    assert normalizer.name('User Login') == 'userlogin'
    assert normalizer.name('User Login') == 'userlogin'
    assert normalizer.cache.hits == 1
    assert normalizer.base('Add numbers(1, 2)') == 'addnumbers'
    assert normalizer.loose('LoginTests') == 'login'


def test_name_normalizer_clear():
    normalizer = NameNormalizer()
    normalizer.name('x')
    normalizer.clear()

    assert len(normalizer.cache) == 0
