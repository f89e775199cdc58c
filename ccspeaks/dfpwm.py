"""
DFPWM encoder: 1-bit adaptive delta modulation.

Each input level (signed 8-bit range) becomes one bit: 1 when the level sits
above the integrator ``charge``, 0 otherwise.  ``charge`` chases the rail the
bit points at (+127 / -128) with a fixed-point gain ``strength`` that grows on
runs of equal bits and shrinks on alternation.

Bits are packed LSB first, eight inputs per byte.  A trailing partial byte
keeps its unused high bits at zero, so ``N`` levels always give
``ceil(N / 8)`` bytes.

The arithmetic is bit-exact with the reference DFPWM encoder.  ``charge`` is
not clamped: rounding can overshoot a rail slightly and the next update
pulls it back.
"""
from __future__ import annotations

from typing import Iterable, Iterator

PREC = 10
"""Fractional bits of ``strength``."""

STRENGTH_FLOOR = 2 << (PREC - 8)
STRENGTH_MAX = (1 << PREC) - 1
_ROUND_HALF = 1 << (PREC - 1)

LEVEL_MAX = 127
LEVEL_MIN = -128


class DfpwmEncoder:
    """Lazy DFPWM encoder over an iterable of integer levels.

    Usage:
        payload = bytes(DfpwmEncoder(levels))

    Single pass, not restartable: build a fresh instance per stream.
    """

    __slots__ = ("_source", "charge", "strength", "previous_bit")

    def __init__(self, source: Iterable[int]) -> None:
        self._source: Iterator[int] = iter(source)
        self.charge = 0
        self.strength = 0
        self.previous_bit = False

    def __iter__(self) -> "DfpwmEncoder":
        return self

    def __next__(self) -> int:
        byte = 0
        for i in range(8):
            level = next(self._source, None)
            if level is None:
                if i == 0:
                    raise StopIteration
                break
            if self.step(level):
                byte |= 1 << i
        return byte

    def step(self, level: int) -> bool:
        """Encode one level, update state and return the emitted bit."""
        charge = self.charge
        strength = self.strength

        bit = level > charge or (level == charge and charge == LEVEL_MAX)
        target = LEVEL_MAX if bit else LEVEL_MIN

        next_charge = charge + ((strength * (target - charge) + _ROUND_HALF) >> PREC)
        if next_charge == charge and next_charge != target:
            next_charge += 1 if bit else -1

        run = bit == self.previous_bit
        z = STRENGTH_MAX if run else 0
        next_strength = strength
        if strength != z:
            next_strength += 1 if run else -1
        if next_strength < STRENGTH_FLOOR:
            next_strength = STRENGTH_FLOOR

        self.charge = next_charge
        self.strength = next_strength
        self.previous_bit = bit
        return bit


def encode(levels: Iterable[int]) -> bytes:
    """Encode a finite level sequence to DFPWM bytes."""
    return bytes(DfpwmEncoder(levels))


def encoded_length(n_levels: int) -> int:
    """Bytes produced for *n_levels* inputs."""
    if n_levels <= 0:
        return 0
    return (n_levels + 7) // 8
