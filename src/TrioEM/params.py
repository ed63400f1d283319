from dataclasses import dataclass, field
import numpy as np


_DEFAULT_POPULATION_MUTATION_RATE = 0.001
_DEFAULT_GERMLINE_MUTATION_RATE = 2e-8
_DEFAULT_SOMATIC_MUTATION_RATE = 2e-8
_DEFAULT_SEQUENCING_ERROR_RATE = 0.005
_DEFAULT_DIRICHLET_DISPERSION = 1000.0
_DEFAULT_NUCLEOTIDE_FREQUENCIES = np.array([0.25, 0.25, 0.25, 0.25])
_POPULATION_PRIOR_MODELS = ("independent", "joint")


def check_rate(name: str, value: float) -> float:
    value = float(value)
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be in [0, 1], got {value}")
    return value


@dataclass
class TrioModelParams:
    """
    Parameters of the trio mutation model.

    Owns every statistical assumption the probability engine is built
    from. Instances are replaced (``dataclasses.replace``) rather than
    mutated between EM iterations so validation always runs.

    Attributes
    ----------
    population_mutation_rate : float
        Theta, scaling the nucleotide frequencies into the Dirichlet
        concentration of the population genotype prior.
    germline_mutation_rate : float
        Per-allele germline rate, in [0, 1].
    somatic_mutation_rate : float
        Per-allele somatic rate shared by child, mother and father.
    sequencing_error_rate : float
        Probability a read shows a nucleotide absent from the genotype.
    dirichlet_dispersion : float
        Concentration multiplier of the per-genotype read alphas.
    nucleotide_frequencies : np.ndarray
        Population allele frequencies of A, C, G, T.
    population_prior : str
        ``"independent"`` draws each parent's genotype independently,
        ``"joint"`` draws all four parental alleles from one urn.
    """

    population_mutation_rate: float = _DEFAULT_POPULATION_MUTATION_RATE
    germline_mutation_rate: float = _DEFAULT_GERMLINE_MUTATION_RATE
    somatic_mutation_rate: float = _DEFAULT_SOMATIC_MUTATION_RATE
    sequencing_error_rate: float = _DEFAULT_SEQUENCING_ERROR_RATE
    dirichlet_dispersion: float = _DEFAULT_DIRICHLET_DISPERSION
    nucleotide_frequencies: np.ndarray = field(
        default_factory=lambda: _DEFAULT_NUCLEOTIDE_FREQUENCIES.copy()
    )
    population_prior: str = "independent"

    def __post_init__(self):
        self.germline_mutation_rate = check_rate(
            "germline_mutation_rate", self.germline_mutation_rate
        )
        self.somatic_mutation_rate = check_rate(
            "somatic_mutation_rate", self.somatic_mutation_rate
        )
        self.sequencing_error_rate = check_rate(
            "sequencing_error_rate", self.sequencing_error_rate
        )
        if self.population_mutation_rate <= 0:
            raise ValueError("population_mutation_rate must be positive")
        if self.dirichlet_dispersion <= 0:
            raise ValueError("dirichlet_dispersion must be positive")
        if self.population_prior not in _POPULATION_PRIOR_MODELS:
            raise ValueError(
                f"population_prior must be one of {_POPULATION_PRIOR_MODELS}"
            )

        self.nucleotide_frequencies = np.asarray(
            self.nucleotide_frequencies, dtype=float
        )
        if self.nucleotide_frequencies.shape != (4,):
            raise ValueError("nucleotide_frequencies must have shape (4,)")
        if np.any(self.nucleotide_frequencies < 0) or not np.any(
            self.nucleotide_frequencies > 0
        ):
            raise ValueError("nucleotide_frequencies must be non-negative")
        self.nucleotide_frequencies = (
            self.nucleotide_frequencies / self.nucleotide_frequencies.sum()
        )


@dataclass
class EMFitResult:
    """
    Results from fitting the trio model by expectation-maximization.
    """

    params: TrioModelParams
    loglik: float
    n_sites: int
    n_skipped: int
    converged: bool
    n_iterations: int

    # (germline, somatic, error) rate estimates after each iteration
    history: list = field(default_factory=list, repr=False)

    @property
    def germline_mutation_rate(self) -> float:
        return self.params.germline_mutation_rate

    @property
    def somatic_mutation_rate(self) -> float:
        return self.params.somatic_mutation_rate

    @property
    def sequencing_error_rate(self) -> float:
        return self.params.sequencing_error_rate
