import gzip

import numpy as np
import pytest

from TrioEM.io import (
    format_probability,
    read_probabilities,
    read_probability_flags,
    read_sites,
    read_trio_index_counts,
    write_sites,
    write_trio_index_counts,
    write_trio_probabilities,
)
from TrioEM.params import TrioModelParams
from TrioEM.trio_model import TrioModel
from TrioEM.utils import ReadCounts, TrioReads


class TestSites:
    """Tests for the sites format."""

    def test_read(self, tmp_path):
        path = tmp_path / "sites.txt"
        path.write_text("4 0 0 0 0 4 0 0 2 2 0 0\n\n1 2 3 4 5 6 7 8 9 10 11 12\n")

        sites = read_sites(path)

        assert len(sites) == 2
        assert sites[0] == TrioReads(
            ReadCounts(4, 0, 0, 0), ReadCounts(0, 4, 0, 0), ReadCounts(2, 2, 0, 0)
        )
        assert sites[1].father == ReadCounts(9, 10, 11, 12)

    def test_write_then_read_gzip(self, tmp_path):
        path = tmp_path / "sites.txt.gz"
        sites = [
            TrioReads(ReadCounts(3, 0, 0, 1), ReadCounts(4, 0, 0, 0), ReadCounts(0, 0, 4, 0)),
            ((1, 1, 1, 1), (0, 0, 0, 0), (2, 0, 0, 2)),
        ]
        write_sites(path, sites)

        with gzip.open(path, "rt") as fin:
            assert fin.readline() == "3 0 0 1 4 0 0 0 0 0 4 0\n"
        assert [tuple(map(tuple, site)) for site in read_sites(path)] == [
            tuple(map(tuple, site)) for site in sites
        ]

    def test_too_few_fields(self, tmp_path):
        path = tmp_path / "sites.txt"
        path.write_text("4 0 0 0 0 4 0 0 2 2 0\n")
        with pytest.raises(ValueError, match="expected 12 fields, got 11"):
            read_sites(path)

    def test_non_integer(self, tmp_path):
        path = tmp_path / "sites.txt"
        path.write_text("4 0 0 0 0 4 0 0 2 2 0 x\n")
        with pytest.raises(ValueError, match="invalid value 'x'"):
            read_sites(path)

    def test_negative_count(self, tmp_path):
        path = tmp_path / "sites.txt"
        path.write_text("4 0 0 0 0 4 0 0 2 2 0 -1\n")
        with pytest.raises(ValueError, match="negative read count"):
            read_sites(path)

    def test_count_limit(self, tmp_path):
        """Counts must fit the 16 bits each nucleotide has in a packed key."""
        path = tmp_path / "sites.txt"
        path.write_text("65535 0 0 0 0 4 0 0 2 2 0 0\n")
        assert read_sites(path)[0].child.A == 65535

        path.write_text("65536 0 0 0 0 4 0 0 2 2 0 0\n")
        with pytest.raises(ValueError, match="read count above 65535"):
            read_sites(path)

    def test_line_number_reported(self, tmp_path):
        path = tmp_path / "sites.txt"
        path.write_text("4 0 0 0 0 4 0 0 2 2 0 0\n1 2\n")
        with pytest.raises(ValueError, match=":2:"):
            read_sites(path)


class TestProbabilities:
    """Tests for probability and trio index files."""

    def test_format_probability(self):
        assert format_probability(0.5) == "0.5"
        assert format_probability(1.234567891e-9) == "1.23457e-09"

    def test_read_flags(self, tmp_path):
        path = tmp_path / "probabilities.txt"
        path.write_text("0.25\t1\n1e-05\t0\n")
        assert read_probability_flags(path) == [(0.25, 1), (1e-05, 0)]

    def test_read_probabilities(self, tmp_path):
        path = tmp_path / "trio.txt"
        path.write_text("0.1\n-0.5\n")
        assert read_probabilities(path) == [0.1, -0.5]

    def test_trio_index_counts(self, tmp_path):
        path = tmp_path / "counts.txt"
        write_trio_index_counts(path, {42: (1, 3), 7: (0, 2)})
        assert path.read_text() == "7 0 2\n42 1 3\n"
        assert read_trio_index_counts(path) == [(7, 0, 2), (42, 1, 3)]

    def test_trio_index_out_of_range(self, tmp_path):
        path = tmp_path / "counts.txt"
        path.write_text("42875 1 1\n")
        with pytest.raises(ValueError, match="out of range"):
            read_trio_index_counts(path)

    def test_write_trio_probabilities(self, tmp_path):
        """One line per trio at coverage 1, in enumeration order."""
        path = tmp_path / "trio.txt"
        model = TrioModel(TrioModelParams(somatic_mutation_rate=0.01))

        written = write_trio_probabilities(model, path, coverage=1)

        probabilities = read_probabilities(path)
        assert written == len(probabilities) == 4**3
        assert all(0.0 <= p <= 1.0 for p in probabilities)
        # (A, A, A) is the first trio
        np.testing.assert_allclose(
            probabilities[0],
            model.mutation_probability(((1, 0, 0, 0),) * 3),
            rtol=1e-5,
        )


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
