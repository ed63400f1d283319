from functools import lru_cache
from itertools import product
from typing import NamedTuple

import numpy as np
from scipy.special import gammaln


NUCLEOTIDE_COUNT = 4
GENOTYPE_COUNT = 16
TRIO_COVERAGE = 4
TRIO_COUNT = 42875
MAX_READ_COUNT = 0xFFFF  # 16 bits per nucleotide in ReadCounts.key
NUCLEOTIDES = ("A", "C", "G", "T")


# INDEX  GENOTYPE     INDEX  GENOTYPE
# 0      AA           8      GA
# 1      AC           9      GC
# 2      AG           10     GG
# 3      AT           11     GT
# 4      CA           12     TA
# 5      CC           13     TC
# 6      CG           14     TG
# 7      CT           15     TT
def genotype_num_index() -> np.ndarray:
    """
    Build the 16 x 2 genotype -> nucleotide pair table.

    Row ``i`` holds the nucleotide indices of genotype ``i`` in
    lexicographic order, i.e. ``(i // 4, i % 4)``.

    Returns
    -------
    np.ndarray
        Read-only integer array of shape (16, 2).
    """
    table = np.array(
        [[first, second] for first in range(4) for second in range(4)], dtype=int
    )
    table.flags.writeable = False
    return table


GENOTYPE_NUM_INDEX = genotype_num_index()


class ReadCounts(NamedTuple):
    """Sequencer output at one individual's site, one count per nucleotide."""

    A: int
    C: int
    G: int
    T: int

    @property
    def key(self) -> int:
        """Counts packed into one 64-bit integer, 16 bits per nucleotide."""
        return self.A | (self.C << 16) | (self.G << 32) | (self.T << 48)

    @property
    def total(self) -> int:
        return self.A + self.C + self.G + self.T

    @classmethod
    def from_key(cls, key: int) -> "ReadCounts":
        return cls(*((key >> shift) & 0xFFFF for shift in (0, 16, 32, 48)))


class TrioReads(NamedTuple):
    """Read counts of one genomic site for the child, mother and father."""

    child: ReadCounts
    mother: ReadCounts
    father: ReadCounts

    def as_array(self) -> np.ndarray:
        return np.array(self, dtype=float)


def dirichlet_multinomial_logpmf(alpha: np.ndarray, reads) -> np.ndarray:
    """
    Log probability of read counts under a Dirichlet-multinomial.

    The density evaluated is:
        log P = lgamma(A) - lgamma(n + A)
                + Σᵢ [lgamma(αᵢ + nᵢ) - lgamma(αᵢ)]

    with A = Σα and n = Σ reads. The multinomial coefficient is left out,
    so this is the probability of one ordered sequence of reads.

    Parameters
    ----------
    alpha : np.ndarray
        Concentrations, last axis of length 4. Leading axes are broadcast,
        e.g. a (16, 4) array evaluates every genotype at once.
    reads : array-like
        Read counts, last axis of length 4, broadcast against ``alpha``.

    Returns
    -------
    np.ndarray
        Log-probabilities with the broadcast leading shape.
    """
    alpha = np.maximum(np.asarray(alpha, dtype=float), 1e-9)
    reads = np.asarray(reads, dtype=float)

    a = alpha.sum(axis=-1)
    n = reads.sum(axis=-1)
    constant_term = gammaln(a) - gammaln(n + a)
    product_term = np.sum(gammaln(alpha + reads) - gammaln(alpha), axis=-1)
    return constant_term + product_term


def kronecker_product(a: np.ndarray, b: np.ndarray | None = None) -> np.ndarray:
    """
    Kronecker product used to lift single-individual quantities into the
    joint (mother, father) space.

    Entry ``(i * rows_b + k, j * cols_b + l)`` is ``a[i, j] * b[k, l]``.
    With ``b`` omitted the product of ``a`` with itself is returned, which
    is how the 4 x 4 somatic and 4 x 16 germline matrices are expanded to
    16 x 16 and 16 x 256. Two 16-vectors give a 256-vector indexed
    ``i * 16 + j``.
    """
    a = np.asarray(a, dtype=float)
    b = a if b is None else np.asarray(b, dtype=float)
    if a.ndim != b.ndim:
        raise ValueError("Kronecker operands must have the same number of axes")
    return np.kron(a, b)


def enumerate_nucleotide_counts(coverage: int) -> np.ndarray:
    """
    Enumerate every way to distribute ``coverage`` reads over 4 nucleotides.

    Rows are built recursively by adding one read to each category of every
    row of the ``coverage - 1`` solution, so duplicates are kept.

    Parameters
    ----------
    coverage : int
        Number of reads, at least 1.

    Returns
    -------
    np.ndarray
        Integer array of shape (4**coverage, 4).
    """
    if coverage < 1:
        raise ValueError(f"coverage must be >= 1, got {coverage}")

    identity = np.eye(NUCLEOTIDE_COUNT, dtype=int)
    if coverage == 1:
        return identity

    recursive = enumerate_nucleotide_counts(coverage - 1)
    return np.vstack([identity + row for row in recursive])


def unique_read_counts(counts: np.ndarray) -> list[ReadCounts]:
    """Deduplicate count rows, keeping first occurrences in order."""
    keys = dict.fromkeys(
        ReadCounts(*(int(x) for x in row)).key for row in np.asarray(counts, dtype=int)
    )
    return [ReadCounts.from_key(key) for key in keys]


@lru_cache(maxsize=None)
def enumerate_trios(coverage: int) -> tuple[TrioReads, ...]:
    """
    All trios of unique read counts at the given coverage.

    The child varies slowest, then the mother, then the father.
    """
    data_vec = unique_read_counts(enumerate_nucleotide_counts(coverage))
    return tuple(TrioReads(*trio) for trio in product(data_vec, repeat=3))


def index_of_trio(trio, coverage: int = TRIO_COVERAGE) -> int:
    """
    Position of a trio in the enumerated trio universe.

    Returns
    -------
    int
        Index into ``enumerate_trios(coverage)``, or -1 when the trio is
        not part of it (e.g. reads at a different coverage).
    """
    trio = TrioReads(*(ReadCounts(*data) for data in trio))
    try:
        return enumerate_trios(coverage).index(trio)
    except ValueError:
        return -1


def genotype_allele_counts() -> np.ndarray:
    """Nucleotide counts of each genotype, shape (16, 4)."""
    counts = np.zeros((GENOTYPE_COUNT, NUCLEOTIDE_COUNT), dtype=int)
    for genotype, alleles in enumerate(GENOTYPE_NUM_INDEX):
        for allele in alleles:
            counts[genotype, allele] += 1
    return counts


def two_parent_counts() -> np.ndarray:
    """
    Nucleotide counts of every (mother, father) genotype pair.

    Returns
    -------
    np.ndarray
        Integer array of shape (16, 16, 4); element ``[m, f, k]`` counts
        nucleotide ``k`` among the four alleles of mother genotype ``m`` and
        father genotype ``f``.
    """
    single = genotype_allele_counts()
    return single[:, None, :] + single[None, :, :]


def genotype_label(genotype: int) -> str:
    first, second = GENOTYPE_NUM_INDEX[genotype]
    return NUCLEOTIDES[first] + NUCLEOTIDES[second]
