"""Tests for the field extraction cascade."""

import pytest
from bs4 import BeautifulSoup

from freegames.core.errors import SelectorMismatchError
from freegames.core.extraction import (
    MISSING, Found, attr_of, extract, first_of, first_srcset_url, map_result, own_attr,
    require, srcset_of, text_of, value_or
)

CARD_HTML = """
<a class="card" href="/p/game" aria-label="Aria Title">
  <h3 class="title">  Real Title </h3>
  <picture><source srcset="https://img/a.webp 1x, https://img/b.webp 2x"></picture>
  <img src="https://img/fallback.jpg" alt="Alt Title">
  <span class="empty">   </span>
</a>
"""


@pytest.fixture
def card():
    return BeautifulSoup(CARD_HTML, 'lxml').select_one('a.card')


class TestExtract:

    def test_first_matching_strategy_wins(self, card):
        result = extract(card, text_of('h6'), text_of('h3'), attr_of('img', 'alt'))
        assert result == Found("Real Title")

    def test_blank_values_fall_through(self, card):
        result = extract(card, text_of('.empty'), own_attr('aria-label'))
        assert result == Found("Aria Title")

    def test_all_missing_is_missing(self, card):
        result = extract(card, text_of('h6'), attr_of('img', 'data-src'))
        assert result is MISSING
        assert not result

    def test_none_root_is_missing(self):
        assert extract(None, text_of('h3')) is MISSING

    def test_raising_strategy_counts_as_miss(self, card):
        def broken(root):
            raise AttributeError("boom")
        assert extract(card, broken, own_attr('href')) == Found("/p/game")

    def test_multi_valued_attributes_are_joined(self, card):
        assert extract(card, own_attr('class')) == Found("card")


class TestPlaceholders:

    def test_value_or_placeholder(self, card):
        assert value_or(extract(card, text_of('h6')), "n/a") == "n/a"
        assert value_or(extract(card, text_of('h3')), "n/a") == "Real Title"

    def test_require_raises_for_missing_field(self, card):
        with pytest.raises(SelectorMismatchError) as excinfo:
            require(extract(card, text_of('h6')), 'title')
        assert excinfo.value.field == 'title'

    def test_map_result(self, card):
        assert map_result(Found("abc"), str.upper) == Found("ABC")
        assert map_result(Found("abc"), lambda value: None) is MISSING
        assert map_result(MISSING, str.upper) is MISSING


class TestSrcset:

    def test_first_srcset_url_drops_descriptor(self):
        assert first_srcset_url("https://img/a.webp 1x, https://img/b.webp 2x") == "https://img/a.webp"
        assert first_srcset_url("") is None

    def test_srcset_of(self, card):
        assert extract(card, srcset_of('source')) == Found("https://img/a.webp")

    def test_first_of_combines(self, card):
        image = first_of(attr_of('img', 'data-src'), attr_of('img', 'src'))
        assert extract(card, image) == Found("https://img/fallback.jpg")
