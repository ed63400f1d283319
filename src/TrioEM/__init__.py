"""
Germline and somatic mutation probabilities for sequenced trios.

A parent-child trio is evaluated by tree peeling over the hidden zygotic
and somatic genotypes of the three individuals. Mutation and sequencing
error rates are estimated from many sites by expectation-maximization, and
a Monte Carlo simulator generates trios with known mutation status.
"""

from .utils import (
    # Constants
    GENOTYPE_NUM_INDEX,
    TRIO_COUNT,
    # Read data
    ReadCounts,
    TrioReads,
    # Combinatorics and likelihood
    dirichlet_multinomial_logpmf,
    kronecker_product,
    enumerate_nucleotide_counts,
    unique_read_counts,
    enumerate_trios,
    index_of_trio,
)

from .params import (
    TrioModelParams,
    EMFitResult,
)

from .trio_model import (
    TrioModel,
    ReadDependentData,
    TreePeels,
    DegenerateSiteError,
)

from .statistics import (
    SufficientStatistics,
    fit_em,
)

from .simulate import SimulationModel

__all__ = [
    # Classes
    "TrioModel",
    "SufficientStatistics",
    "SimulationModel",
    # Convenience functions
    "fit_em",
    # Data classes
    "TrioModelParams",
    "EMFitResult",
    "ReadDependentData",
    "TreePeels",
    "ReadCounts",
    "TrioReads",
    # Errors
    "DegenerateSiteError",
    # Utilities
    "GENOTYPE_NUM_INDEX",
    "TRIO_COUNT",
    "dirichlet_multinomial_logpmf",
    "kronecker_product",
    "enumerate_nucleotide_counts",
    "unique_read_counts",
    "enumerate_trios",
    "index_of_trio",
]

__version__ = "0.1.0"
