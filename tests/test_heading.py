"""Heading classifier tests."""

import pytest

from oibot.heading import (ANGLE_RUNES, MAX_WEIGHT, UNKNOWN_GLYPH, Direction, classify,
                           normalize, weight_for_speed)


def test_zero_is_forward():
    glyph, direction = classify(0, 2)
    assert direction is Direction.FORWARD
    assert glyph == "\U0001F871"


def test_negative_zero_matches_zero():
    assert classify(-0.0, 2) == classify(0, 2)
    assert classify(-0, 2) == classify(0, 2)


@pytest.mark.parametrize("weight", [-1, 5, 7])
@pytest.mark.parametrize("angle", [0, 45, -200, 1000])
def test_weight_out_of_range_is_unknown(angle, weight):
    assert classify(angle, weight) == (UNKNOWN_GLYPH, Direction.STOP)


@pytest.mark.parametrize("angle, direction", [
    (45, Direction.FORWARD_LEFT),
    (90, Direction.LEFT),
    (135, Direction.BACK_LEFT),
    (180, Direction.BACK),
    (225, Direction.BACK_RIGHT),
    (270, Direction.RIGHT),
    (315, Direction.FORWARD_RIGHT),
    (350, Direction.FORWARD),
    (-10, Direction.FORWARD),
    (-45, Direction.FORWARD_RIGHT),
    (-90, Direction.RIGHT),
    (-180, Direction.BACK),
    (-270, Direction.LEFT),
    (-350, Direction.FORWARD),
    (360, Direction.FORWARD),
    (450, Direction.LEFT),
    (-450, Direction.RIGHT),
    (765, Direction.FORWARD_LEFT),
])
def test_octants(angle, direction):
    assert classify(angle, 0)[1] is direction


@pytest.mark.parametrize("angle, direction", [
    (22.5, Direction.FORWARD_LEFT),
    (22.4, Direction.FORWARD),
    (-22.5, Direction.FORWARD),
    (-22.6, Direction.FORWARD_RIGHT),
    (337.5, Direction.FORWARD),
    (-337.5, Direction.FORWARD_LEFT),
])
def test_lower_bound_is_inclusive(angle, direction):
    assert classify(angle, 1)[1] is direction


def test_every_angle_has_an_octant():
    for tenth in range(-7200, 7200):
        _, direction = classify(tenth / 10.0, MAX_WEIGHT)
        assert direction is not Direction.STOP, tenth / 10.0


def test_mirrored_angles_agree():
    for degrees in range(0, 360, 5):
        assert classify(degrees, 3) == classify(degrees - 360, 3)


def test_glyphs_per_weight_are_distinct():
    for rune in ANGLE_RUNES:
        assert len(rune.glyphs) == MAX_WEIGHT + 1
        assert len(set(rune.glyphs)) == MAX_WEIGHT + 1
    assert len({rune.glyphs[0] for rune in ANGLE_RUNES}) == len(ANGLE_RUNES)


def test_normalize_keeps_sign():
    assert normalize(370) == 10
    assert normalize(-370) == -10
    assert normalize(-720) == 0


@pytest.mark.parametrize("velocity, weight", [
    (0, 0), (60, 0), (125, 1), (250, 2), (-250, 2), (500, 4), (-500, 4), (1000, 4),
])
def test_weight_for_speed(velocity, weight):
    assert weight_for_speed(velocity) == weight


def test_weight_for_speed_without_range():
    assert weight_for_speed(100, max_velocity=0) == 0


@pytest.mark.parametrize("angle, direction", [
    (10**17 + 9, Direction.RIGHT),
    (-(10**17 + 9), Direction.LEFT),
    (10**400 + 170, Direction.LEFT),
    (10**400 + 90, Direction.FORWARD),
    (-(10**400) - 170, Direction.RIGHT),
])
def test_huge_integer_angles_reduce_exactly(angle, direction):
    assert classify(angle, 0)[1] is direction


def test_integer_normalize_is_exact_and_keeps_sign():
    assert normalize(10**17 + 9) == 289
    assert normalize(-(10**17 + 9)) == -289
    assert isinstance(normalize(725), int)
