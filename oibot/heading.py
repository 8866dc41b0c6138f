"""
Heading display: map a heading angle and an intensity weight to one of eight
compass octants and an arrow glyph.

Angles follow the OI angle packet: positive is counter-clockwise (left). The
angle is normalized with a sign-preserving modulo, so negative headings land in
(-360, 0] and the bound table carries a mirrored negative range per octant.
"""
from __future__ import annotations
import math
from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Union

MIN_WEIGHT = 0
MAX_WEIGHT = 4
UNKNOWN_GLYPH = "�"


class Direction(Enum):
    STOP = "stop"
    FORWARD = "forward"
    FORWARD_LEFT = "forward-left"
    LEFT = "left"
    BACK_LEFT = "back-left"
    BACK = "back"
    BACK_RIGHT = "back-right"
    RIGHT = "right"
    FORWARD_RIGHT = "forward-right"


@dataclass(frozen=True)
class AngleRune:
    direction: Direction
    bounds: Tuple[Tuple[float, float], ...]  # [min, max) ranges in degrees
    glyphs: Tuple[str, ...]  # indexed by weight

    def contains(self, angle: float) -> bool:
        return any(lo <= angle < hi for lo, hi in self.bounds)


# Wide-headed barb arrows, light .. very heavy (U+1F860 ..). Within each
# weight block the order is left, up, right, down, NW, NE, SE, SW.
_WEIGHT_BLOCKS = (0x1F860, 0x1F868, 0x1F870, 0x1F878, 0x1F880)


def _glyphs(offset: int) -> Tuple[str, ...]:
    return tuple(chr(base + offset) for base in _WEIGHT_BLOCKS)


ANGLE_RUNES: Tuple[AngleRune, ...] = (
    AngleRune(Direction.FORWARD,
              ((-22.5, 22.5), (337.5, 360.0), (-360.0, -337.5)), _glyphs(1)),
    AngleRune(Direction.FORWARD_LEFT, ((22.5, 67.5), (-337.5, -292.5)), _glyphs(4)),
    AngleRune(Direction.LEFT, ((67.5, 112.5), (-292.5, -247.5)), _glyphs(0)),
    AngleRune(Direction.BACK_LEFT, ((112.5, 157.5), (-247.5, -202.5)), _glyphs(7)),
    AngleRune(Direction.BACK, ((157.5, 202.5), (-202.5, -157.5)), _glyphs(3)),
    AngleRune(Direction.BACK_RIGHT, ((202.5, 247.5), (-157.5, -112.5)), _glyphs(6)),
    AngleRune(Direction.RIGHT, ((247.5, 292.5), (-112.5, -67.5)), _glyphs(2)),
    AngleRune(Direction.FORWARD_RIGHT, ((292.5, 337.5), (-67.5, -22.5)), _glyphs(5)),
)


def normalize(angle: Union[int, float]) -> Union[int, float]:
    """angle mod 360 keeping the sign of the dividend, result in (-360, 360).

    Integers stay exact at any magnitude; floats go through math.fmod.
    """
    if isinstance(angle, int):
        r = abs(angle) % 360
        return -r if angle < 0 else r
    return math.fmod(angle, 360)


def classify(angle: Union[int, float], weight: int) -> Tuple[str, Direction]:
    """Return (glyph, direction) for a heading angle at intensity weight 0..4.

    Out of range weights, or an angle no octant claims, give the unknown
    glyph with Direction.STOP.
    """
    if not MIN_WEIGHT <= weight <= MAX_WEIGHT:
        return UNKNOWN_GLYPH, Direction.STOP
    a = normalize(angle)
    for rune in ANGLE_RUNES:
        if rune.contains(a):
            return rune.glyphs[weight], rune.direction
    return UNKNOWN_GLYPH, Direction.STOP


def weight_for_speed(velocity: int, max_velocity: int = 500) -> int:
    """Scale a wheel speed magnitude (mm/s) to a glyph weight 0..4."""
    if max_velocity <= 0:
        return MIN_WEIGHT
    w = int(round(abs(velocity) / max_velocity * MAX_WEIGHT))
    return max(MIN_WEIGHT, min(MAX_WEIGHT, w))
