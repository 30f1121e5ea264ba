"""Deterministic pseudo-random source used by every generator stage.

The generator is a Mulberry32 stream: a 32-bit counter advanced by a fixed odd
increment and mixed through two xorshift/multiply rounds. Everything built on
top of it (weighted picks, shuffles, log-normal and Pareto draws) consumes the
stream in a fixed order, so the same seed and call sequence always yields the
same data set.
"""
from __future__ import annotations

import math
import secrets
from datetime import datetime, timedelta
from typing import Sequence, TypeVar

T = TypeVar("T")

_MASK = 0xFFFFFFFF
_INCREMENT = 0x6D2B79F5
_TWO_32 = 4294967296.0


def _imul(a: int, b: int) -> int:
    return (a * b) & _MASK


def hash_seed(value: str) -> int:
    """Fold ``value`` into a positive 32-bit seed (``h = h * 31 + ord(c)``)."""

    acc = 0
    for char in value:
        acc = (acc * 31 + ord(char)) & _MASK
    if acc & 0x80000000:
        acc -= 1 << 32
    return abs(acc) or 1


def generate_seed() -> str:
    """Return a fresh 32 hex character seed for a new job."""

    return secrets.token_hex(16)


class SeededRNG:
    """Mulberry32 generator with the distributions the generator needs."""

    def __init__(self, seed: int | str) -> None:
        if isinstance(seed, str):
            state = hash_seed(seed)
        else:
            state = int(seed) & _MASK
        self._state = state or 1

    @property
    def state(self) -> int:
        return self._state

    def next(self) -> float:
        """Return a float in ``[0, 1)`` and advance the stream."""

        self._state = (self._state + _INCREMENT) & _MASK
        t = self._state
        t = _imul(t ^ (t >> 15), t | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & _MASK
        return ((t ^ (t >> 14)) & _MASK) / _TWO_32

    def int(self, minimum: int, maximum: int) -> int:
        """Uniform integer in ``[minimum, maximum]``."""

        return math.floor(self.next() * (maximum - minimum + 1)) + minimum

    def float(self, minimum: float, maximum: float) -> float:
        return self.next() * (maximum - minimum) + minimum

    def bool(self, probability: float = 0.5) -> bool:
        return self.next() < probability

    def pick(self, items: Sequence[T]) -> T:
        if not items:
            raise ValueError("Cannot pick from an empty sequence")
        return items[self.int(0, len(items) - 1)]

    def pick_weighted(self, items: Sequence[T], weights: Sequence[float]) -> T:
        """Cumulative-weight sampling; weights need not sum to one."""

        if len(items) != len(weights):
            raise ValueError("Items and weights must have the same length")
        if not items:
            raise ValueError("Cannot pick from an empty sequence")
        remaining = self.next() * sum(weights)
        for item, weight in zip(items, weights):
            remaining -= weight
            if remaining <= 0:
                return item
        return items[-1]

    def pick_multiple(self, items: Sequence[T], count: int) -> list[T]:
        if count > len(items):
            raise ValueError("Cannot pick more elements than available")
        return self.shuffle(items)[:count]

    def shuffle(self, items: Sequence[T]) -> list[T]:
        """Fisher-Yates shuffle returning a new list."""

        result = list(items)
        for index in range(len(result) - 1, 0, -1):
            swap = self.int(0, index)
            result[index], result[swap] = result[swap], result[index]
        return result

    def lognormal(self, mean: float, stddev: float) -> float:
        """Log-normal draw centred on ``mean`` (Box-Muller)."""

        u1 = max(self.next(), 0.0001)
        u2 = self.next()
        z = math.sqrt(-2 * math.log(u1)) * math.cos(2 * math.pi * u2)
        return math.exp(math.log(mean) + stddev * z)

    def pareto(self, alpha: float, xm: float) -> float:
        u = max(self.next(), 0.0001)
        return xm / u ** (1 / alpha)

    def uuid(self) -> str:
        """RFC 4122 v4 shaped identifier drawn from the stream."""

        def segment(length: int) -> str:
            return "".join(format(self.int(0, 15), "x") for _ in range(length))

        variant = ("8", "9", "a", "b")[self.int(0, 3)]
        return (
            f"{segment(8)}-{segment(4)}-4{segment(3)}-{variant}{segment(3)}-{segment(12)}"
        )

    def string(self, length: int, charset: str = "abcdefghijklmnopqrstuvwxyz0123456789") -> str:
        return "".join(charset[self.int(0, len(charset) - 1)] for _ in range(length))

    def date_between(self, start: datetime, end: datetime) -> datetime:
        if start > end:
            raise ValueError("start must not be after end")
        span = int((end - start).total_seconds())
        return start + timedelta(seconds=self.int(0, span))

    def business_datetime(self, start: datetime, end: datetime) -> datetime:
        """A weekday timestamp between 9 and 18 h inside ``[start, end]``.

        Weekend draws are retried a bounded number of times before the last
        draw is shifted forward to the following Monday morning.
        """

        for _ in range(100):
            moment = self.date_between(start, end)
            if moment.weekday() < 5:
                if moment.hour < 9:
                    moment = moment.replace(
                        hour=9 + self.int(0, 3), minute=self.int(0, 59), second=0
                    )
                elif moment.hour >= 18:
                    moment = moment.replace(
                        hour=14 + self.int(0, 3), minute=self.int(0, 59), second=0
                    )
                return moment
        moment = self.date_between(start, end)
        shift = {5: 2, 6: 1}.get(moment.weekday(), 0)
        moment = moment + timedelta(days=shift)
        return moment.replace(hour=9 + self.int(0, 3), minute=self.int(0, 59), second=0)

    def child(self, label: str) -> "SeededRNG":
        """Independent stream derived from the current state and ``label``."""

        return SeededRNG(f"{self._state}-{label}")
