"""
Monte Carlo validation of the trio model.

Parents are drawn from the population prior, the child inherits one
allele from each parent, germline and somatic mutations are applied with
the model's transition probabilities and reads are drawn from a
Dirichlet-multinomial at fixed coverage. Because the true mutation status
of every site is known, the simulated sites can be compared with the
probabilities the model assigns to them.
"""

import logging
from collections import defaultdict
from dataclasses import replace
from pathlib import Path
from typing import Optional

import numpy as np

from .io import format_probability, open_text, write_sites, write_trio_index_counts
from .params import TrioModelParams
from .transitions import substitution_matrix
from .trio_model import DegenerateSiteError, TrioModel
from .utils import (
    GENOTYPE_COUNT,
    GENOTYPE_NUM_INDEX,
    NUCLEOTIDE_COUNT,
    TRIO_COVERAGE,
    ReadCounts,
    TrioReads,
    genotype_label,
    index_of_trio,
)

logger = logging.getLogger(__name__)


class SimulationModel:
    """
    Random trio generator.

    The simulator owns one ``numpy.random.Generator``. Use it as a context
    manager (or call ``close``) so the generator is released when the
    simulation ends; a closed simulator cannot draw.

    Parameters
    ----------
    coverage : int
        Reads drawn per individual and site.
    germline_mutation_rate : float
        Germline rate of the simulated and evaluated model.
    somatic_mutation_rate : float
        Somatic rate of the simulated and evaluated model.
    params : TrioModelParams, optional
        Remaining model parameters. Defaults are used when omitted.
    seed : int, optional
        Seed of the random generator.

    Attributes
    ----------
    has_mutation : bool
        Whether the site being simulated received a mutation.
    """

    def __init__(
        self,
        coverage: int,
        germline_mutation_rate: float,
        somatic_mutation_rate: float,
        params: Optional[TrioModelParams] = None,
        seed: Optional[int] = None,
    ):
        if coverage < 1:
            raise ValueError(f"coverage must be >= 1, got {coverage}")
        self.coverage = int(coverage)
        params = params if params is not None else TrioModelParams()
        self.params = TrioModel(
            replace(
                params,
                germline_mutation_rate=germline_mutation_rate,
                somatic_mutation_rate=somatic_mutation_rate,
            )
        )
        self._germline_substitution = substitution_matrix(germline_mutation_rate)
        self.has_mutation = False
        self._rng: Optional[np.random.Generator] = np.random.default_rng(seed)

    # ------------------------------------------------------------------
    # Generator lifecycle
    # ------------------------------------------------------------------

    @property
    def rng(self) -> np.random.Generator:
        if self._rng is None:
            raise RuntimeError("SimulationModel is closed")
        return self._rng

    def close(self) -> None:
        self._rng = None

    def __enter__(self) -> "SimulationModel":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def germline_mutation_rate(self) -> float:
        return self.params.germline_mutation_rate

    @property
    def somatic_mutation_rate(self) -> float:
        return self.params.somatic_mutation_rate

    # ------------------------------------------------------------------
    # Draws
    # ------------------------------------------------------------------

    def random_discrete_choice(self, probabilities, size=None):
        """
        Draw categories ``0..K-1`` with probability proportional to weights.

        Parameters
        ----------
        probabilities : array-like
            K non-negative weights.
        size : int, optional
            Number of draws; a single int is returned when omitted.
        """
        p = np.asarray(probabilities, dtype=float)
        p = p / p.sum()
        draws = self.rng.choice(p.size, size=size, p=p)
        return int(draws) if size is None else draws

    def get_child_genotype(self, mother_genotype: int, father_genotype: int) -> int:
        """Pick one allele of each parent, the mother's first."""
        child_allele1 = GENOTYPE_NUM_INDEX[mother_genotype, self.rng.integers(2)]
        child_allele2 = GENOTYPE_NUM_INDEX[father_genotype, self.rng.integers(2)]
        return int(child_allele1 * NUCLEOTIDE_COUNT + child_allele2)

    def mutate_germline(self, genotype_idx: int) -> int:
        """
        Apply germline substitution to both transmitted alleles.

        Each allele picked by ``get_child_genotype`` is redrawn from its row
        of the substitution matrix, which together with the Mendelian pick
        reproduces the columns of the germline transition.
        """
        alleles = [
            self.random_discrete_choice(self._germline_substitution[allele])
            for allele in GENOTYPE_NUM_INDEX[genotype_idx]
        ]
        mutated_genotype_idx = alleles[0] * NUCLEOTIDE_COUNT + alleles[1]
        if mutated_genotype_idx != genotype_idx:
            self.has_mutation = True
        return mutated_genotype_idx

    def mutate(self, genotype_idx: int) -> int:
        """Apply somatic mutation using the somatic transition row."""
        mutated_genotype_idx = self.random_discrete_choice(
            self.params.somatic_probability_mat[genotype_idx]
        )
        if mutated_genotype_idx != genotype_idx:
            self.has_mutation = True
        return mutated_genotype_idx

    def dirichlet_multinomial_sample(self, genotype_idx: int) -> ReadCounts:
        """
        Draw nucleotide frequencies from the genotype's Dirichlet and reads
        from a multinomial at the configured coverage.
        """
        alpha = np.maximum(self.params.alphas[genotype_idx], 1e-9)
        theta = self.rng.dirichlet(alpha)
        reads = self.rng.multinomial(self.coverage, theta / theta.sum())
        return ReadCounts(*(int(x) for x in reads))

    def simulate_site(self, mother_genotype: int, father_genotype: int) -> TrioReads:
        """
        Simulate one trio given the parents' genotypes.

        ``has_mutation`` is reset before the draw and reports whether any
        germline or somatic mutation happened.
        """
        self.has_mutation = False
        child_genotype = self.get_child_genotype(mother_genotype, father_genotype)
        child_germline_genotype = self.mutate_germline(child_genotype)

        logger.debug(
            "Parents %s x %s, child %s -> %s",
            genotype_label(mother_genotype),
            genotype_label(father_genotype),
            genotype_label(child_genotype),
            genotype_label(child_germline_genotype),
        )

        child_somatic_genotype = self.mutate(child_germline_genotype)
        mother_somatic_genotype = self.mutate(mother_genotype)
        father_somatic_genotype = self.mutate(father_genotype)

        return TrioReads(
            self.dirichlet_multinomial_sample(child_somatic_genotype),
            self.dirichlet_multinomial_sample(mother_somatic_genotype),
            self.dirichlet_multinomial_sample(father_somatic_genotype),
        )

    def get_parent_genotypes(self, experiment_count: int) -> np.ndarray:
        """Draw (mother, father) genotype pairs from the population prior."""
        parent_genotypes = self.random_discrete_choice(
            self.params.population_priors, size=experiment_count
        )
        return np.column_stack(np.divmod(parent_genotypes, GENOTYPE_COUNT))

    def simulate_sites(
        self, experiment_count: int
    ) -> list[tuple[TrioReads, bool]]:
        """
        Simulate independent sites.

        Returns
        -------
        list[tuple[TrioReads, bool]]
            Reads and true mutation status of each site.
        """
        sites = []
        for mother_genotype, father_genotype in self.get_parent_genotypes(
            experiment_count
        ):
            reads = self.simulate_site(int(mother_genotype), int(father_genotype))
            sites.append((reads, self.has_mutation))
            self.has_mutation = False
        return sites

    # ------------------------------------------------------------------
    # Output files
    # ------------------------------------------------------------------

    def write_probability(self, file_name: str | Path, experiment_count: int) -> int:
        """
        Simulate sites and write ``<probability>\\t<has_mutation>`` lines.

        Sites whose reads have zero probability under the model are logged
        and left out.

        Returns
        -------
        int
            Number of lines written.
        """
        written = 0
        with open_text(file_name, "wt") as fout:
            for reads, has_mutation in self.simulate_sites(experiment_count):
                try:
                    probability = self.params.mutation_probability(reads)
                except DegenerateSiteError as err:
                    logger.warning("Skipping simulated site: %s", err)
                    continue
                fout.write(
                    f"{format_probability(probability)}\t{int(has_mutation)}\n"
                )
                written += 1
        logger.info("Wrote %d simulated sites to %s", written, file_name)
        return written

    def write_mutation_counts(
        self, file_name: str | Path, experiment_count: int
    ) -> dict:
        """
        Tally simulated sites by trio index and write the counts.

        Only valid at coverage 4, where every simulated trio is part of the
        enumerated trio universe. Lines are
        ``<index> <count with mutation> <count without mutation>``.

        Returns
        -------
        dict
            ``{index: (with mutation, without mutation)}``.
        """
        if self.coverage != TRIO_COVERAGE:
            raise ValueError(
                f"Trio index counts require coverage {TRIO_COVERAGE}, "
                f"got {self.coverage}"
            )

        table = defaultdict(lambda: [0, 0])
        for reads, has_mutation in self.simulate_sites(experiment_count):
            index = index_of_trio(reads)
            if index < 0:
                logger.debug("Trio %s not in the trio universe", tuple(reads))
                continue
            table[index][0 if has_mutation else 1] += 1

        counts = {index: tuple(value) for index, value in table.items()}
        write_trio_index_counts(file_name, counts)
        logger.info("Wrote counts of %d trios to %s", len(counts), file_name)
        return counts

    def write_sites(self, file_name: str | Path, experiment_count: int) -> list[bool]:
        """
        Simulate sites and write their reads in the sites format.

        Returns
        -------
        list[bool]
            True mutation status of each written site.
        """
        sites = self.simulate_sites(experiment_count)
        write_sites(file_name, (reads for reads, _ in sites))
        return [has_mutation for _, has_mutation in sites]

    def __repr__(self) -> str:
        return (
            f"SimulationModel(coverage={self.coverage}, "
            f"germline={self.germline_mutation_rate:g}, "
            f"somatic={self.somatic_mutation_rate:g})"
        )
