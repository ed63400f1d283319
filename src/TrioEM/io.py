"""
Plain-text record formats read and written by TrioEM.

All formats are whitespace separated, one record per line, no header:

- sites:        12 integers, A C G T counts of child, mother, father
- probability:  ``<probability>\\t<has_mutation 0|1>``
- trio:         ``<probability>``
- trio index:   ``<index> <count with mutation> <count without mutation>``

Files ending in ``.gz`` are read and written through gzip.
"""

import gzip
import logging
from pathlib import Path
from typing import Iterable, Iterator, TextIO

from .utils import (
    MAX_READ_COUNT,
    TRIO_COUNT,
    TRIO_COVERAGE,
    ReadCounts,
    TrioReads,
    enumerate_trios,
)

logger = logging.getLogger(__name__)


def open_text(path: str | Path, mode: str = "rt") -> TextIO:
    p = str(path)
    if p.endswith(".gz"):
        return gzip.open(p, mode)  # type: ignore[return-value]
    return open(p, mode)


def format_probability(probability: float) -> str:
    return f"{probability:.6g}"


def _records(path: str | Path, n_fields: int) -> Iterator[tuple[int, list[str]]]:
    """Yield (line number, fields) of non-blank lines with enough fields."""
    with open_text(path) as fin:
        for lineno, line in enumerate(fin, start=1):
            fields = line.split()
            if not fields:
                continue
            if len(fields) < n_fields:
                raise ValueError(
                    f"{path}:{lineno}: expected {n_fields} fields, got {len(fields)}"
                )
            yield lineno, fields


def _parse(path, lineno, convert, value):
    try:
        return convert(value)
    except ValueError:
        raise ValueError(f"{path}:{lineno}: invalid value {value!r}") from None


# =============================================================================
# Sites
# =============================================================================


def read_sites(path: str | Path) -> list[TrioReads]:
    """
    Read trio read counts, one site per line.

    Raises
    ------
    ValueError
        On a line with fewer than 12 fields, a non-integer count or a
        count outside [0, MAX_READ_COUNT].
    """
    sites = []
    for lineno, fields in _records(path, 12):
        counts = [_parse(path, lineno, int, value) for value in fields[:12]]
        if any(count < 0 for count in counts):
            raise ValueError(f"{path}:{lineno}: negative read count")
        if any(count > MAX_READ_COUNT for count in counts):
            raise ValueError(
                f"{path}:{lineno}: read count above {MAX_READ_COUNT}"
            )
        sites.append(
            TrioReads(
                ReadCounts(*counts[0:4]),
                ReadCounts(*counts[4:8]),
                ReadCounts(*counts[8:12]),
            )
        )
    logger.info("Read %d sites from %s", len(sites), path)
    return sites


def format_site(site) -> str:
    return " ".join(str(int(count)) for data in site for count in data)


def write_sites(path: str | Path, sites: Iterable) -> None:
    with open_text(path, "wt") as fout:
        for site in sites:
            fout.write(format_site(site) + "\n")


# =============================================================================
# Probabilities
# =============================================================================


def read_probability_flags(path: str | Path) -> list[tuple[float, int]]:
    """Read ``<probability> <has_mutation>`` lines."""
    return [
        (_parse(path, lineno, float, fields[0]), _parse(path, lineno, int, fields[1]))
        for lineno, fields in _records(path, 2)
    ]


def read_probabilities(path: str | Path) -> list[float]:
    """Read one probability per line."""
    return [
        _parse(path, lineno, float, fields[0]) for lineno, fields in _records(path, 1)
    ]


def write_probabilities(path: str | Path, probabilities: Iterable[float]) -> None:
    with open_text(path, "wt") as fout:
        for probability in probabilities:
            fout.write(format_probability(probability) + "\n")


def read_trio_index_counts(path: str | Path) -> list[tuple[int, int, int]]:
    """
    Read ``<index> <with mutation> <without mutation>`` lines.

    Indices refer to ``enumerate_trios(4)`` and must be below ``TRIO_COUNT``.
    """
    records = []
    for lineno, fields in _records(path, 3):
        index, with_mutation, without_mutation = (
            _parse(path, lineno, int, value) for value in fields[:3]
        )
        if not 0 <= index < TRIO_COUNT:
            raise ValueError(f"{path}:{lineno}: trio index {index} out of range")
        records.append((index, with_mutation, without_mutation))
    return records


def write_trio_index_counts(path: str | Path, counts: dict) -> None:
    """Write ``{index: (with mutation, without mutation)}`` sorted by index."""
    with open_text(path, "wt") as fout:
        for index in sorted(counts):
            with_mutation, without_mutation = counts[index]
            fout.write(f"{index} {with_mutation} {without_mutation}\n")


def write_trio_probabilities(
    model, path: str | Path, coverage: int = TRIO_COVERAGE
) -> int:
    """
    Write the mutation probability of every trio at the given coverage.

    Lines follow the order of ``enumerate_trios(coverage)`` so the line
    number minus one is the trio index.

    Returns
    -------
    int
        Number of trios written.
    """
    trios = enumerate_trios(coverage)
    write_probabilities(path, (model.mutation_probability(trio) for trio in trios))
    logger.info("Wrote %d trio probabilities to %s", len(trios), path)
    return len(trios)
