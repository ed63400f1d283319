import numpy as np
import pytest

from TrioEM.bins import (
    BinSummary,
    count_bin,
    count_bin_trio,
    count_probability_index,
    probability_bin,
)
from TrioEM.utils import TRIO_COUNT


class TestProbabilityBin:
    """Tests for probability_bin."""

    @pytest.mark.parametrize(
        "probability, expected",
        [(0.0, 0), (0.05, 0), (0.15, 1), (0.95, 9), (1.0, 9), (-0.2, -2)],
    )
    def test_bins(self, probability, expected):
        assert probability_bin(probability) == expected


class TestCountBin:
    """Tests for binning probabilities with known mutation status."""

    def test_scenario(self, tmp_path):
        path = tmp_path / "probabilities.txt"
        path.write_text("0.05 0\n0.15 1\n0.95 1\n")

        bins = count_bin(path)

        assert len(bins) == 10
        assert (bins[0].total, bins[0].count, bins[0].percent) == (1, 0, 0.0)
        assert (bins[1].total, bins[1].count, bins[1].percent) == (1, 1, 100.0)
        assert (bins[9].total, bins[9].count, bins[9].percent) == (1, 1, 100.0)
        assert bins[1].describe() == "100.00% or 1/1 sites in bin 1 contain a mutation."
        assert bins[2].describe() == "There are no sites in bin 2."

    def test_negative_probability(self, tmp_path):
        path = tmp_path / "probabilities.txt"
        path.write_text("-0.1 0\n")
        with pytest.raises(ValueError, match="negative probability"):
            count_bin(path)

    def test_summary_without_mutation(self):
        summary = BinSummary(bin=3, total=1, count=1, denominator=4)
        assert summary.describe(with_mutation=False) == "25.00% or 1/4 sites in bin 3."


class TestCountBinTrio:
    """Tests for binning probability-only files."""

    def test_report(self, tmp_path):
        path = tmp_path / "trio.txt"
        path.write_text("0.05\n0.5\n-0.1\n0.02\n")

        report = count_bin_trio(path, cut=0.1)

        assert report.total == 4
        assert report.above_cut == 1
        assert report.negative == 1
        assert report.bins[0].count == 2
        assert report.bins[5].count == 1

        lines = report.lines()
        assert lines[0] == "25.00% or 1/4 sites have a probability greater than 0.10."
        assert lines[1] == "25.00% or 1/4 sites in bin -1."
        assert lines[2] == "50.00% or 2/4 sites in bin 0."
        assert len(lines) == 12

    def test_no_negative_line(self, tmp_path):
        path = tmp_path / "trio.txt"
        path.write_text("0.5\n")
        lines = count_bin_trio(path).lines()
        assert len(lines) == 11
        assert lines[1] == "There are no sites in bin 0."


class TestCountProbabilityIndex:
    """Tests for aggregating trio index counts."""

    def test_duplicates_are_summed(self, tmp_path):
        path = tmp_path / "counts.txt"
        path.write_text("5 1 1\n7 0 2\n5 1 3\n")

        probabilities = count_probability_index(path)

        assert probabilities.shape == (TRIO_COUNT,)
        np.testing.assert_allclose(probabilities[5], 2 / 6)
        assert probabilities[7] == 0.0
        assert probabilities[0] == 0.0
        assert np.count_nonzero(probabilities) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
