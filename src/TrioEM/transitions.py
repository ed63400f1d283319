"""
Transition matrices and priors of the trio model.

Mutation follows a Jukes-Cantor substitution model on each allele:

    P(same nucleotide)      = 1/4 + 3/4 · exp(-4r/3)
    P(each other nucleotide) = 1/4 - 1/4 · exp(-4r/3)

Somatic mutation acts on both alleles of an individual, giving the
16 x 16 Kronecker square of the 4 x 4 substitution matrix. Germline
transmission picks one allele of each parent uniformly and passes it
through the same substitution model; the 4 x 16 single-parent matrix is
squared into a 16 x 256 matrix from (mother, father) genotype pairs to
child genotypes.

The ``no_mutation`` variants keep only identity-preserving substitutions
and are used for the numerator of the mutation probability.
"""

import numpy as np

from .params import check_rate
from .utils import (
    GENOTYPE_COUNT,
    GENOTYPE_NUM_INDEX,
    dirichlet_multinomial_logpmf,
    genotype_allele_counts,
    kronecker_product,
    two_parent_counts,
)


def substitution_matrix(rate: float) -> np.ndarray:
    """
    4 x 4 nucleotide substitution matrix for a mutation rate.

    Parameters
    ----------
    rate : float
        Mutation rate in [0, 1].

    Returns
    -------
    np.ndarray
        Row-stochastic matrix, ``[i, j] = P(j | i)``.
    """
    rate = check_rate("mutation rate", rate)
    exp_term = np.exp(-4.0 / 3.0 * rate)
    mat = np.full((4, 4), 0.25 - 0.25 * exp_term)
    np.fill_diagonal(mat, 0.25 + 0.75 * exp_term)
    return mat


def somatic_transition(rate: float) -> np.ndarray:
    """16 x 16 somatic matrix, ``[z, s] = P(somatic s | zygotic z)``."""
    return kronecker_product(substitution_matrix(rate))


def somatic_no_mutation(rate: float) -> np.ndarray:
    """Somatic matrix restricted to genotypes left unchanged."""
    return np.diag(np.diag(somatic_transition(rate)))


def germline_single(rate: float, no_mutation: bool = False) -> np.ndarray:
    """
    Probability of the nucleotide a parent transmits.

    Parameters
    ----------
    rate : float
        Germline mutation rate in [0, 1].
    no_mutation : bool
        Keep only transmissions where the picked allele is unchanged.

    Returns
    -------
    np.ndarray
        4 x 16 matrix, ``[n, g] = P(transmitted n | parent genotype g)``.
        Columns sum to 1 unless ``no_mutation`` is set.
    """
    mat = substitution_matrix(rate)
    if no_mutation:
        mat = np.diag(np.diag(mat))
    first = mat[GENOTYPE_NUM_INDEX[:, 0]]
    second = mat[GENOTYPE_NUM_INDEX[:, 1]]
    return (0.5 * (first + second)).T


def germline_transition(rate: float, no_mutation: bool = False) -> np.ndarray:
    """
    16 x 256 germline matrix.

    Entry ``[c, m * 16 + f]`` is the probability that mother genotype ``m``
    and father genotype ``f`` produce child zygotic genotype ``c``, the
    first allele of ``c`` coming from the mother.
    """
    return kronecker_product(germline_single(rate, no_mutation))


def genotype_alphas(error_rate: float, dispersion: float) -> np.ndarray:
    """
    Dirichlet concentrations of the reads sequenced from each genotype.

    Homozygous genotypes put ``1 - e`` on their allele, heterozygous ones
    ``0.5 - e/3`` on each allele, and every absent nucleotide gets ``e/3``.

    Returns
    -------
    np.ndarray
        16 x 4 array scaled by ``dispersion``.
    """
    error_rate = check_rate("sequencing_error_rate", error_rate)
    alphas = np.full((GENOTYPE_COUNT, 4), error_rate / 3.0)
    for genotype, (first, second) in enumerate(GENOTYPE_NUM_INDEX):
        if first == second:
            alphas[genotype, first] = 1.0 - error_rate
        else:
            alphas[genotype, first] = 0.5 - error_rate / 3.0
            alphas[genotype, second] = 0.5 - error_rate / 3.0
    return alphas * dispersion


def genotype_priors(theta: float, frequencies: np.ndarray) -> np.ndarray:
    """
    Population prior of a single genotype.

    The two alleles are drawn from a Dirichlet-multinomial urn with
    concentration ``theta * frequencies``; the 16 ordered genotypes sum to 1.
    """
    alpha = theta * np.asarray(frequencies, dtype=float)
    return np.exp(dirichlet_multinomial_logpmf(alpha, genotype_allele_counts()))


def population_priors(
    theta: float, frequencies: np.ndarray, model: str = "independent"
) -> np.ndarray:
    """
    Prior over joint (mother, father) genotypes, length 256.

    Parameters
    ----------
    theta : float
        Population mutation rate.
    frequencies : np.ndarray
        Nucleotide frequencies.
    model : str
        ``"independent"``: Kronecker product of the single-genotype priors.
        ``"joint"``: all four parental alleles drawn from one urn.
    """
    if model == "independent":
        single = genotype_priors(theta, frequencies)
        return kronecker_product(single, single)
    if model == "joint":
        alpha = theta * np.asarray(frequencies, dtype=float)
        counts = two_parent_counts().reshape(GENOTYPE_COUNT * GENOTYPE_COUNT, 4)
        return np.exp(dirichlet_multinomial_logpmf(alpha, counts))
    raise ValueError(f"Unknown population prior model: {model!r}")
