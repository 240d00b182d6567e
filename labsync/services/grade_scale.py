"""Percentage to letter grade / GPA lookup.

The scale is a fixed table of 13 non-overlapping bands on a 0.01 grid.
``GRADE_SCALE`` is the process-wide instance; anything that needs a
letter grade takes a ``GradeScale`` argument defaulting to it.
"""
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Sequence

from labsync.core.errors import ValidationError

STEP = Decimal("0.01")


@dataclass(frozen=True)
class GradeBand:
    letter: str
    min_percentage: Decimal
    max_percentage: Decimal
    gpa: float

    def contains(self, percentage: float) -> bool:
        return float(self.min_percentage) <= percentage <= float(self.max_percentage)


def _band(letter: str, lo: str, hi: str, gpa: float) -> GradeBand:
    return GradeBand(letter, Decimal(lo), Decimal(hi), gpa)


DEFAULT_BANDS = (
    _band("A+", "97.00", "100.00", 4.0),
    _band("A", "93.00", "96.99", 4.0),
    _band("A-", "90.00", "92.99", 3.7),
    _band("B+", "87.00", "89.99", 3.3),
    _band("B", "83.00", "86.99", 3.0),
    _band("B-", "80.00", "82.99", 2.7),
    _band("C+", "77.00", "79.99", 2.3),
    _band("C", "73.00", "76.99", 2.0),
    _band("C-", "70.00", "72.99", 1.7),
    _band("D+", "67.00", "69.99", 1.3),
    _band("D", "63.00", "66.99", 1.0),
    _band("D-", "60.00", "62.99", 0.7),
    _band("F", "0.00", "59.99", 0.0),
)


class GradeScale:
    def __init__(self, bands: Iterable[GradeBand]):
        # highest band first
        self.bands: Sequence[GradeBand] = tuple(
            sorted(bands, key=lambda b: b.min_percentage, reverse=True)
        )
        self._check_partition()

    def _check_partition(self) -> None:
        if not self.bands:
            raise ValueError("grade scale has no bands")
        if self.bands[0].max_percentage != Decimal("100.00"):
            raise ValueError("top band must end at 100")
        if self.bands[-1].min_percentage != Decimal("0.00"):
            raise ValueError("bottom band must start at 0")

        for upper, lower in zip(self.bands, self.bands[1:]):
            if lower.max_percentage + STEP != upper.min_percentage:
                raise ValueError(
                    f"bands {lower.letter} and {upper.letter} do not abut "
                    f"({lower.max_percentage} / {upper.min_percentage})"
                )
        for band in self.bands:
            if band.min_percentage > band.max_percentage:
                raise ValueError(f"band {band.letter} has min above max")

    @property
    def lowest(self) -> GradeBand:
        return self.bands[-1]

    @property
    def highest(self) -> GradeBand:
        return self.bands[0]

    def lookup(self, percentage: float) -> GradeBand:
        if percentage is None or not math.isfinite(percentage):
            raise ValidationError("percentage must be a finite number", field="percentage")

        # rounding artifacts from score / max_score can land just outside 0..100
        if percentage >= 100:
            return self.highest
        if percentage <= 0:
            return self.lowest

        # un-rounded values in the 0.01 seam fall to the lower band
        for band in self.bands:
            if float(band.min_percentage) <= percentage:
                return band
        return self.lowest

    def letters(self) -> list[str]:
        return [b.letter for b in self.bands]

    def gpa_for_letter(self, letter: str) -> float | None:
        for band in self.bands:
            if band.letter == letter:
                return band.gpa
        return None


GRADE_SCALE = GradeScale(DEFAULT_BANDS)
