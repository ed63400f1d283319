"""
Histogram summaries of simulated mutation probabilities.

Probabilities are grouped into ten bins of width 0.1; bin ``i`` covers
``[i/10, (i+1)/10)`` and a probability of exactly 1 falls in bin 9.
"""

import math
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from .io import read_probabilities, read_probability_flags, read_trio_index_counts
from .utils import TRIO_COUNT

NUM_BINS = 10


def probability_bin(probability: float) -> int:
    """Bin of a probability; negative probabilities map below 0."""
    return int(min(math.floor(probability * NUM_BINS), NUM_BINS - 1))


@dataclass
class BinSummary:
    """Sites in one probability bin."""

    bin: int
    total: int
    count: int  # sites with a mutation, or all sites for probability-only files
    denominator: int

    @property
    def percent(self) -> float:
        if self.denominator == 0:
            return 0.0
        return 100.0 * self.count / self.denominator

    def describe(self, with_mutation: bool = True) -> str:
        if self.total == 0:
            return f"There are no sites in bin {self.bin}."
        suffix = " contain a mutation" if with_mutation else ""
        return (
            f"{self.percent:.2f}% or {self.count}/{self.denominator} "
            f"sites in bin {self.bin}{suffix}."
        )


def count_bin(path: str | Path) -> list[BinSummary]:
    """
    Fraction of sites with a true mutation in each probability bin.

    Parameters
    ----------
    path : str or Path
        ``<probability> <has_mutation>`` file.
    """
    counts = np.zeros(NUM_BINS, dtype=int)
    totals = np.zeros(NUM_BINS, dtype=int)
    for probability, has_mutation in read_probability_flags(path):
        b = probability_bin(probability)
        if b < 0:
            raise ValueError(f"{path}: negative probability {probability}")
        totals[b] += 1
        if has_mutation == 1:
            counts[b] += 1
    return [
        BinSummary(
            bin=i,
            total=int(totals[i]),
            count=int(counts[i]),
            denominator=int(totals[i]),
        )
        for i in range(NUM_BINS)
    ]


@dataclass
class TrioBinReport:
    """Bins of a probability-only file."""

    total: int
    above_cut: int
    cut: float
    negative: int
    bins: list

    @property
    def percent_above_cut(self) -> float:
        return 100.0 * self.above_cut / self.total if self.total else 0.0

    def lines(self) -> list[str]:
        out = [
            f"{self.percent_above_cut:.2f}% or {self.above_cut}/{self.total} "
            f"sites have a probability greater than {self.cut:.2f}."
        ]
        if self.negative > 0:
            out.append(
                BinSummary(-1, self.negative, self.negative, self.total).describe(False)
            )
        out.extend(summary.describe(with_mutation=False) for summary in self.bins)
        return out


def count_bin_trio(path: str | Path, cut: float = 0.1) -> TrioBinReport:
    """
    Share of sites in each probability bin of a probability-only file.

    Negative probabilities are grouped in bin -1.
    """
    counts = np.zeros(NUM_BINS, dtype=int)
    negative = 0
    above_cut = 0
    probabilities = read_probabilities(path)
    for probability in probabilities:
        if probability > cut:
            above_cut += 1
        b = probability_bin(probability)
        if b < 0:
            negative += 1
        else:
            counts[b] += 1

    total = len(probabilities)
    bins = [
        BinSummary(bin=i, total=int(counts[i]), count=int(counts[i]), denominator=total)
        for i in range(NUM_BINS)
    ]
    return TrioBinReport(
        total=total, above_cut=above_cut, cut=cut, negative=negative, bins=bins
    )


def count_probability_index(path: str | Path) -> np.ndarray:
    """
    Empirical ``P(mutation | trio)`` from trio index count files.

    Lines sharing an index (e.g. outputs of parallel jobs) are summed
    before dividing. Trios never observed get probability 0.

    Returns
    -------
    np.ndarray
        Probabilities of all ``TRIO_COUNT`` trios, by index.
    """
    with_mutation = np.zeros(TRIO_COUNT, dtype=np.int64)
    totals = np.zeros(TRIO_COUNT, dtype=np.int64)
    for index, mutated, not_mutated in read_trio_index_counts(path):
        with_mutation[index] += mutated
        totals[index] += mutated + not_mutated

    probabilities = np.zeros(TRIO_COUNT)
    observed = totals > 0
    probabilities[observed] = with_mutation[observed] / totals[observed]
    return probabilities
