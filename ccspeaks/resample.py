"""
Streaming linear resampler for normalized float audio.

A phase accumulator walks the source at ``ratio = from_rate / to_rate``
source samples per output sample.  Each output is a linear blend of the two
source samples bracketing the current phase:

    out = prev * phase + next * (1 - phase)

The older sample is weighted by ``phase``, matching every DFPWM stream this
service has produced.

Phase correction:
  - default: one carry step per output sample.  Exact for upsampling and
    equal rates (``ratio <= 1``); when downsampling the window lags.
  - ``corrective=True``: carry until ``phase < 1``.  Correct for any ratio,
    but output differs from the default whenever ``ratio > 1``.

audio.py uses:
  from .resample import Resampler
"""
from __future__ import annotations

import logging
from typing import Iterable, Iterator, Optional

logger = logging.getLogger(__name__)


class Resampler:
    """Lazy resampler over an iterable of floats.

    Usage:
        out = list(Resampler(samples, 22050, 48000))

    Single pass, not restartable: build a fresh instance per stream.
    """

    __slots__ = ("_source", "_ratio", "_corrective", "_phase", "_prev", "_next")

    def __init__(
        self,
        source: Iterable[float],
        from_rate: int,
        to_rate: int,
        *,
        corrective: bool = False,
    ) -> None:
        if from_rate <= 0 or to_rate <= 0:
            raise ValueError(f"Sample rates must be positive, got {from_rate}->{to_rate}")
        self._source: Iterator[float] = iter(source)
        self._ratio = from_rate / to_rate
        self._corrective = corrective
        self._phase = 0.0
        self._prev: Optional[float] = None
        self._next: Optional[float] = None

        if self._ratio > 1.0 and not corrective:
            logger.debug(
                "Resampler %d->%d Hz: ratio %.3f > 1 with single-step phase correction",
                from_rate, to_rate, self._ratio,
            )

    @property
    def ratio(self) -> float:
        return self._ratio

    @property
    def phase(self) -> float:
        return self._phase

    def __iter__(self) -> "Resampler":
        return self

    def __next__(self) -> float:
        if self._corrective:
            while self._phase >= 1.0:
                self._advance()
        elif self._phase >= 1.0:
            self._advance()

        prev = self._prev
        if prev is None:
            # Raises StopIteration when the source is dry: end of stream.
            prev = next(self._source)
            self._prev = prev

        nxt = self._next if self._next is not None else 0.0
        phase = self._phase
        value = prev * phase + (1.0 - phase) * nxt
        self._phase = phase + self._ratio
        return value

    def _advance(self) -> None:
        self._prev = self._next
        self._next = next(self._source, None)
        self._phase -= 1.0


def expected_output_length(n_samples: int, from_rate: int, to_rate: int) -> int:
    """Approximate resampled length, for sizing log lines."""
    if n_samples <= 0 or from_rate <= 0 or to_rate <= 0:
        return 0
    return round(n_samples * to_rate / from_rate)
