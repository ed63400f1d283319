"""
Tree-peeling probability engine for a parent-child trio.

For one site the hidden variables are the zygotic genotypes of mother,
father and child and the somatic genotype of each individual. They are
eliminated bottom-up:

1. Sequencing: P(reads | somatic genotype) from the Dirichlet-multinomial,
   rescaled per individual by its maximum log-likelihood.
2. Somatic peeling: P(reads | zygotic genotype) = S @ P(reads | somatic).
3. Germline peeling: P(child reads | mother, father) = child @ G.
4. Root: child message × (mother ⊗ father) × population prior; the sum is
   P(reads) up to the rescaling factors.

Evaluating the same tree with the no-mutation transitions gives the
probability mass of configurations without any mutation, so

    P(mutation | reads) = 1 - P_no_mutation(reads) / P(reads).
"""

from dataclasses import dataclass, field, replace

import numpy as np

from .params import TrioModelParams
from .transitions import (
    genotype_alphas,
    germline_transition,
    population_priors,
    somatic_no_mutation,
    somatic_transition,
)
from .utils import (
    ReadCounts,
    TrioReads,
    dirichlet_multinomial_logpmf,
    kronecker_product,
)


class DegenerateSiteError(ValueError):
    """Raised when the marginal probability of a site's reads is zero."""


@dataclass
class TreePeels:
    """Messages of one tree-peeling pass over a trio."""

    child_probability: np.ndarray  # P(R|zygotic genotype)
    mother_probability: np.ndarray
    father_probability: np.ndarray
    child_germline_probability: np.ndarray  # P(child R|mom and dad genotype)
    parent_probability: np.ndarray  # P(parent R|mom and dad genotype)
    root_mat: np.ndarray  # P(R|mom and dad genotype) * P(mom and dad genotype)
    sum: float  # P(R), rescaled

    @property
    def is_degenerate(self) -> bool:
        return not np.isfinite(self.sum) or self.sum <= 0.0


@dataclass
class ReadDependentData:
    """
    Everything derived from one trio's reads.

    ``denominator`` is peeled with the nominal transitions and
    ``numerator`` with the no-mutation transitions. The object belongs to a
    single site and is discarded once its statistics are extracted.
    """

    reads: TrioReads
    sequencing_probability_mat: np.ndarray  # P(R|somatic genotype), 3 x 16
    max_elements: np.ndarray  # log rescaling factor of each row
    denominator: TreePeels
    numerator: TreePeels = field(repr=False)

    @property
    def log_probability(self) -> float:
        """Natural log of the marginal probability of the reads."""
        return float(np.log(self.denominator.sum) + self.max_elements.sum())

    @property
    def mutation_probability(self) -> float:
        if self.denominator.is_degenerate:
            raise DegenerateSiteError(
                f"Reads {tuple(self.reads)} have zero probability under the model"
            )
        probability = 1.0 - self.numerator.sum / self.denominator.sum
        return float(np.clip(probability, 0.0, 1.0))


class TrioModel:
    """
    Trio mutation model.

    Builds the transition matrices, priors and read alphas from a
    ``TrioModelParams`` and evaluates sites by tree peeling. Matrices are
    rebuilt whenever a parameter is set; evaluation never mutates the model.

    Parameters
    ----------
    params : TrioModelParams, optional
        Model parameters. Defaults are used when omitted.

    Attributes
    ----------
    somatic_probability_mat : np.ndarray
        16 x 16 somatic transition.
    germline_probability_mat : np.ndarray
        16 x 256 germline transition.
    population_priors : np.ndarray
        256 joint parent genotype priors.
    alphas : np.ndarray
        16 x 4 Dirichlet concentrations of the reads of each genotype.
    """

    def __init__(self, params: TrioModelParams | None = None):
        self.params = params if params is not None else TrioModelParams()
        self._build()

    def _build(self):
        params = self.params
        self.population_priors = population_priors(
            params.population_mutation_rate,
            params.nucleotide_frequencies,
            params.population_prior,
        )
        self.germline_probability_mat = germline_transition(
            params.germline_mutation_rate
        )
        self.germline_probability_mat_num = germline_transition(
            params.germline_mutation_rate, no_mutation=True
        )
        self.somatic_probability_mat = somatic_transition(params.somatic_mutation_rate)
        self.somatic_probability_mat_diag = somatic_no_mutation(
            params.somatic_mutation_rate
        )
        self.alphas = genotype_alphas(
            params.sequencing_error_rate, params.dirichlet_dispersion
        )

    # ------------------------------------------------------------------
    # Parameter setters
    # ------------------------------------------------------------------

    def set_params(self, params: TrioModelParams) -> "TrioModel":
        self.params = params
        self._build()
        return self

    def set_germline_mutation_rate(self, rate: float) -> "TrioModel":
        return self.set_params(replace(self.params, germline_mutation_rate=rate))

    def set_somatic_mutation_rate(self, rate: float) -> "TrioModel":
        return self.set_params(replace(self.params, somatic_mutation_rate=rate))

    def set_sequencing_error_rate(self, rate: float) -> "TrioModel":
        return self.set_params(replace(self.params, sequencing_error_rate=rate))

    @property
    def germline_mutation_rate(self) -> float:
        return self.params.germline_mutation_rate

    @property
    def somatic_mutation_rate(self) -> float:
        return self.params.somatic_mutation_rate

    @property
    def sequencing_error_rate(self) -> float:
        return self.params.sequencing_error_rate

    # ------------------------------------------------------------------
    # Tree peeling
    # ------------------------------------------------------------------

    def sequencing_probabilities(self, reads) -> tuple[np.ndarray, np.ndarray]:
        """
        Likelihood of each individual's reads under every genotype.

        Parameters
        ----------
        reads : TrioReads
            Child, mother and father read counts.

        Returns
        -------
        tuple[np.ndarray, np.ndarray]
            (3 x 16 likelihoods rescaled so each row peaks at 1,
            3 log rescaling factors).
        """
        reads = TrioReads(*(ReadCounts(*data) for data in reads))
        log_mat = dirichlet_multinomial_logpmf(
            self.alphas[None, :, :], reads.as_array()[:, None, :]
        )
        max_elements = log_mat.max(axis=1)
        return np.exp(log_mat - max_elements[:, None]), max_elements

    def peel(
        self, sequencing_probability_mat: np.ndarray, no_mutation: bool = False
    ) -> TreePeels:
        """
        Run one tree-peeling pass.

        Parameters
        ----------
        sequencing_probability_mat : np.ndarray
            3 x 16 likelihoods from ``sequencing_probabilities``.
        no_mutation : bool
            Use the transitions restricted to unchanged genotypes.
        """
        if no_mutation:
            germline = self.germline_probability_mat_num
            somatic = self.somatic_probability_mat_diag
        else:
            germline = self.germline_probability_mat
            somatic = self.somatic_probability_mat

        child, mother, father = (somatic @ row for row in sequencing_probability_mat)
        child_germline = child @ germline
        parents = kronecker_product(mother, father)
        root_mat = child_germline * parents * self.population_priors

        return TreePeels(
            child_probability=child,
            mother_probability=mother,
            father_probability=father,
            child_germline_probability=child_germline,
            parent_probability=parents,
            root_mat=root_mat,
            sum=float(root_mat.sum()),
        )

    def read_dependent_data(self, reads) -> ReadDependentData:
        """Evaluate both peeling passes for one site."""
        reads = TrioReads(*(ReadCounts(*data) for data in reads))
        likelihood, max_elements = self.sequencing_probabilities(reads)
        return ReadDependentData(
            reads=reads,
            sequencing_probability_mat=likelihood,
            max_elements=max_elements,
            denominator=self.peel(likelihood),
            numerator=self.peel(likelihood, no_mutation=True),
        )

    def mutation_probability(self, reads) -> float:
        """
        Probability that the site carries a germline or somatic mutation.

        Raises
        ------
        DegenerateSiteError
            If the reads have zero probability under the model.
        """
        return self.read_dependent_data(reads).mutation_probability

    def log_probability(self, reads) -> float:
        """Log marginal probability of the trio's reads."""
        data = self.read_dependent_data(reads)
        if data.denominator.is_degenerate:
            raise DegenerateSiteError(
                f"Reads {tuple(data.reads)} have zero probability under the model"
            )
        return data.log_probability

    def __repr__(self) -> str:
        return (
            f"TrioModel(germline={self.germline_mutation_rate:g}, "
            f"somatic={self.somatic_mutation_rate:g}, "
            f"error={self.sequencing_error_rate:g})"
        )
