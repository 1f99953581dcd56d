from __future__ import annotations

import pytest

from shutterbus.kernel.eventbus import matches_wildcard


@pytest.mark.parametrize("identity", ["001", "abc", ""])
def test_star_and_empty_match_anything(identity):
    assert matches_wildcard(identity, "*") is True
    assert matches_wildcard(identity, "") is True
    assert matches_wildcard(identity, None) is True


def test_prefix_pattern():
    assert matches_wildcard("001", "00*") is True
    assert matches_wildcard("002", "00*") is True
    assert matches_wildcard("100", "00*") is False


def test_pattern_without_star_requires_equality():
    assert matches_wildcard("001", "001") is True
    assert matches_wildcard("0011", "001") is False


def test_pattern_is_anchored_and_escapes_literals():
    assert matches_wildcard("room.1.shutter", "room.*.shutter") is True
    assert matches_wildcard("roomX1Xshutter", "room.*.shutter") is False
    assert matches_wildcard("room.1.shutter.extra", "room.*.shutter") is False
    assert matches_wildcard("a+b", "a+*") is True


def test_multiple_stars():
    assert matches_wildcard("north-001-left", "*-001-*") is True
    assert matches_wildcard("north-002-left", "*-001-*") is False
