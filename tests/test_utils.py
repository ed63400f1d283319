import numpy as np
import pytest
from scipy.special import gammaln
from scipy.stats import dirichlet_multinomial

from TrioEM.utils import (
    GENOTYPE_NUM_INDEX,
    TRIO_COUNT,
    ReadCounts,
    TrioReads,
    dirichlet_multinomial_logpmf,
    enumerate_nucleotide_counts,
    enumerate_trios,
    genotype_allele_counts,
    genotype_label,
    index_of_trio,
    kronecker_product,
    two_parent_counts,
    unique_read_counts,
)


class TestGenotypeTable:
    """Tests for the genotype -> nucleotide pair table."""

    def test_lexicographic_order(self):
        """Row i holds (i // 4, i % 4)."""
        assert GENOTYPE_NUM_INDEX.shape == (16, 2)
        for i in range(16):
            assert tuple(GENOTYPE_NUM_INDEX[i]) == (i // 4, i % 4)

    def test_read_only(self):
        """The shared table cannot be modified."""
        with pytest.raises(ValueError):
            GENOTYPE_NUM_INDEX[0, 0] = 3

    def test_labels(self):
        assert genotype_label(0) == "AA"
        assert genotype_label(6) == "CG"
        assert genotype_label(15) == "TT"

    def test_allele_counts(self):
        """Each genotype has two alleles; homozygous ones count one nucleotide twice."""
        counts = genotype_allele_counts()
        assert counts.shape == (16, 4)
        np.testing.assert_array_equal(counts.sum(axis=1), np.full(16, 2))
        np.testing.assert_array_equal(counts[0], [2, 0, 0, 0])
        np.testing.assert_array_equal(counts[1], [1, 1, 0, 0])
        np.testing.assert_array_equal(counts[4], [1, 1, 0, 0])

    def test_two_parent_counts(self):
        """Four alleles per (mother, father) pair."""
        counts = two_parent_counts()
        assert counts.shape == (16, 16, 4)
        np.testing.assert_array_equal(counts.sum(axis=2), np.full((16, 16), 4))
        np.testing.assert_array_equal(counts[0, 15], [2, 0, 0, 2])


class TestReadCounts:
    """Tests for ReadCounts and TrioReads."""

    def test_key_round_trip(self):
        """Packed keys decode to the same counts."""
        data = ReadCounts(3, 0, 65535, 12)
        assert ReadCounts.from_key(data.key) == data

    def test_distinct_keys(self):
        assert ReadCounts(1, 0, 0, 0).key != ReadCounts(0, 1, 0, 0).key

    def test_total(self):
        assert ReadCounts(1, 2, 3, 4).total == 10

    def test_trio_array(self):
        trio = TrioReads(
            ReadCounts(4, 0, 0, 0), ReadCounts(0, 4, 0, 0), ReadCounts(2, 2, 0, 0)
        )
        arr = trio.as_array()
        assert arr.shape == (3, 4)
        np.testing.assert_array_equal(arr.sum(axis=1), [4, 4, 4])


class TestDirichletMultinomialLogpmf:
    """Tests for dirichlet_multinomial_logpmf."""

    def test_matches_scipy_without_coefficient(self):
        """Equals scipy's log pmf minus the log multinomial coefficient."""
        alpha = np.array([10.0, 2.0, 0.5, 3.0])
        reads = np.array([5, 1, 0, 2])
        n = reads.sum()

        result = dirichlet_multinomial_logpmf(alpha, reads)
        coefficient = gammaln(n + 1) - np.sum(gammaln(reads + 1))
        expected = dirichlet_multinomial.logpmf(reads, alpha, n) - coefficient

        np.testing.assert_allclose(result, expected, rtol=1e-10)

    def test_broadcast_over_genotypes(self):
        """A (16, 4) alpha evaluates every genotype at once."""
        alpha = np.ones((16, 4)) + np.arange(16)[:, None]
        reads = np.array([2, 1, 0, 1])

        result = dirichlet_multinomial_logpmf(alpha, reads)

        assert result.shape == (16,)
        np.testing.assert_allclose(
            result[5], dirichlet_multinomial_logpmf(alpha[5], reads), rtol=1e-12
        )

    def test_ordered_sequences_sum_to_one(self):
        """Probabilities of all ordered sequences of 2 reads sum to 1."""
        alpha = np.array([0.3, 1.0, 2.0, 4.0])
        total = np.exp(dirichlet_multinomial_logpmf(alpha, genotype_allele_counts())).sum()
        np.testing.assert_allclose(total, 1.0, rtol=1e-10)

    def test_zero_alpha_is_floored(self):
        """Zero concentrations are clamped so the result stays finite."""
        result = dirichlet_multinomial_logpmf(np.array([1.0, 0.0, 0.0, 0.0]), [3, 0, 0, 0])
        assert np.isfinite(result)

    def test_empty_reads(self):
        """No reads has probability 1."""
        result = dirichlet_multinomial_logpmf(np.array([1.0, 2.0, 3.0, 4.0]), [0, 0, 0, 0])
        np.testing.assert_allclose(result, 0.0, atol=1e-12)


class TestKroneckerProduct:
    """Tests for kronecker_product."""

    def test_elements(self):
        a = np.array([[1.0, 2.0], [3.0, 4.0]])
        b = np.array([[0.0, 5.0], [6.0, 7.0]])

        result = kronecker_product(a, b)

        assert result.shape == (4, 4)
        # (i * rows_b + k, j * cols_b + l) = a[i, j] * b[k, l]
        assert result[1 * 2 + 0, 0 * 2 + 1] == a[1, 0] * b[0, 1]
        assert result[0 * 2 + 1, 1 * 2 + 1] == a[0, 1] * b[1, 1]

    def test_self_product_preserves_stochastic_rows(self):
        """The square of a row-stochastic matrix is row-stochastic."""
        mat = np.array([[0.7, 0.1, 0.1, 0.1], [0.2, 0.5, 0.2, 0.1]] * 2)
        result = kronecker_product(mat)
        assert result.shape == (16, 16)
        np.testing.assert_allclose(result.sum(axis=1), np.ones(16))

    def test_vectors(self):
        """Two 16-vectors give a 256-vector indexed i * 16 + j."""
        a = np.arange(16.0)
        b = np.arange(16.0) + 1
        result = kronecker_product(a, b)
        assert result.shape == (256,)
        assert result[3 * 16 + 7] == a[3] * b[7]

    def test_mismatched_axes_raise(self):
        with pytest.raises(ValueError, match="same number of axes"):
            kronecker_product(np.ones(4), np.ones((4, 4)))


class TestEnumeration:
    """Tests for read count and trio enumeration."""

    @pytest.mark.parametrize("coverage", [1, 2, 3, 4])
    def test_nucleotide_counts_shape(self, coverage):
        """4**coverage rows, each summing to the coverage."""
        counts = enumerate_nucleotide_counts(coverage)
        assert counts.shape == (4**coverage, 4)
        np.testing.assert_array_equal(counts.sum(axis=1), np.full(4**coverage, coverage))

    @pytest.mark.parametrize("coverage, expected", [(1, 4), (2, 10), (4, 35)])
    def test_unique_counts(self, coverage, expected):
        """Number of unique rows is C(coverage + 3, 3)."""
        unique = unique_read_counts(enumerate_nucleotide_counts(coverage))
        assert len(unique) == expected
        assert len({data.key for data in unique}) == expected

    def test_unique_keeps_first_occurrence_order(self):
        counts = np.array([[1, 0, 0, 0], [0, 1, 0, 0], [1, 0, 0, 0]])
        assert unique_read_counts(counts) == [ReadCounts(1, 0, 0, 0), ReadCounts(0, 1, 0, 0)]

    def test_invalid_coverage(self):
        with pytest.raises(ValueError, match="coverage must be >= 1"):
            enumerate_nucleotide_counts(0)

    def test_trio_universe(self):
        """35 unique read counts per individual at coverage 4."""
        trios = enumerate_trios(4)
        assert len(trios) == TRIO_COUNT == 35**3
        assert len(set(trios)) == TRIO_COUNT
        # Child varies slowest.
        assert trios[0].child == trios[35 * 35 - 1].child
        assert trios[0].child != trios[35 * 35].child

    def test_index_of_trio(self):
        trios = enumerate_trios(4)
        assert index_of_trio(trios[123]) == 123
        assert index_of_trio(trios[-1]) == TRIO_COUNT - 1

    def test_index_of_plain_tuples(self):
        """Plain nested tuples are accepted."""
        trio = enumerate_trios(4)[4000]
        plain = tuple(tuple(int(x) for x in data) for data in trio)
        assert index_of_trio(plain) == 4000

    def test_index_of_trio_not_found(self):
        """Reads at another coverage are not part of the universe."""
        trio = ((5, 0, 0, 0), (5, 0, 0, 0), (5, 0, 0, 0))
        assert index_of_trio(trio) == -1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
