"""
Tests for typed cache keys and key patterns.
"""
import re

import pytest

from marketsync.cache.keys import (
    DETAIL,
    EXPLORE,
    HOME,
    USER,
    CacheKey,
    Domain,
    KeyPattern,
    pattern_matcher,
)


class TestCacheKey:

    def test_renders_scope_domain_qualifiers(self):
        assert str(CacheKey(HOME, Domain.EVENTS, "upcoming", 5)) == "home:events:upcoming:5"

    def test_without_qualifiers(self):
        assert str(CacheKey(EXPLORE, Domain.FORUM)) == "explore:forum"

    def test_domain_accepts_value(self):
        assert CacheKey(DETAIL, "listings", 1).domain is Domain.LISTINGS

    def test_keys_are_hashable_and_equal(self):
        assert CacheKey(USER, Domain.GARAGE, 7) == CacheKey(USER, Domain.GARAGE, "7")
        assert len({CacheKey(USER, Domain.GARAGE, 7), CacheKey(USER, Domain.GARAGE, "7")}) == 1

    @pytest.mark.parametrize("scope,qualifiers", [
        ("", ()),
        ("home", ("a:b",)),
        ("home", ("",)),
    ])
    def test_rejects_bad_segments(self, scope, qualifiers):
        with pytest.raises(ValueError):
            CacheKey(scope, Domain.EVENTS, *qualifiers)

    def test_parse_round_trip(self):
        key = CacheKey(USER, Domain.FAVORITES, "u1", "listings")
        assert CacheKey.parse(str(key)) == key

    @pytest.mark.parametrize("raw", ["custom", "home:unknown:1", "home::x", ""])
    def test_parse_rejects_unscoped_keys(self, raw):
        assert CacheKey.parse(raw) is None


class TestKeyPattern:

    def test_matches_every_scope_of_domain(self):
        pattern = KeyPattern(Domain.EVENTS)
        assert pattern.matches("home:events:upcoming:5")
        assert pattern.matches("detail:events:9")
        assert pattern.matches(CacheKey(USER, Domain.EVENTS, "u1"))
        assert not pattern.matches("home:rsvps:9")
        assert not pattern.matches("custom")

    def test_scope_narrows(self):
        pattern = KeyPattern(Domain.LISTINGS, scope=DETAIL)
        assert pattern.matches("detail:listings:42")
        assert not pattern.matches("marketplace:listings:recent")

    def test_leading_qualifiers_narrow(self):
        pattern = KeyPattern(Domain.FAVORITES, scope=USER, qualifiers=("u1",))
        assert pattern.matches("user:favorites:u1")
        assert pattern.matches("user:favorites:u1:listings")
        assert not pattern.matches("user:favorites:u2")

    def test_str(self):
        assert str(KeyPattern(Domain.EVENTS)) == "*:events:*"
        assert str(KeyPattern(Domain.EVENTS, scope=HOME, qualifiers=("upcoming",))) == "home:events:upcoming:*"


class TestPatternMatcher:

    def test_string_matches_key_and_children(self):
        matches = pattern_matcher("detail:events:9")
        assert matches("detail:events:9")
        assert matches("detail:events:9:comments")
        assert not matches("detail:events:90")

    def test_trailing_separator_is_raw_prefix(self):
        matches = pattern_matcher("detail:")
        assert matches("detail:events:9")
        assert not matches("detail")

    def test_regex_uses_search(self):
        matches = pattern_matcher(re.compile("listings"))
        assert matches("marketplace:listings:recent")

    def test_key_pattern(self):
        assert pattern_matcher(KeyPattern(Domain.FORUM))("community:forum:latest")

    def test_rejects_other_types(self):
        with pytest.raises(TypeError):
            pattern_matcher(None)
