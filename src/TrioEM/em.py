"""
E-step of the expectation-maximization algorithm for the trio model.

Every function here reads the ``ReadDependentData`` of one site that the
``TrioModel`` has already evaluated and returns an expected sufficient
statistic for that site. No additional tree peeling is performed; the
posterior of each hidden genotype is recovered from the messages of the
denominator pass.

Statistics:
    hom  expected reads matching a homozygous somatic genotype
    het  expected reads matching either allele of a heterozygous genotype
    e    expected reads matching no allele of the genotype
    germ expected germline substitutions (both transmitted alleles)
    som  expected somatic substitutions (six alleles of the trio)
"""

import numpy as np

from .trio_model import DegenerateSiteError, ReadDependentData, TrioModel
from .transitions import substitution_matrix
from .utils import GENOTYPE_COUNT, GENOTYPE_NUM_INDEX, NUCLEOTIDE_COUNT

_HOMOZYGOUS = GENOTYPE_NUM_INDEX[:, 0] == GENOTYPE_NUM_INDEX[:, 1]


def _safe_divide(numerator: np.ndarray, denominator: np.ndarray) -> np.ndarray:
    return np.divide(
        numerator,
        denominator,
        out=np.zeros(np.broadcast(numerator, denominator).shape),
        where=denominator > 0,
    )


def _check(data: ReadDependentData) -> None:
    if data.denominator.is_degenerate:
        raise DegenerateSiteError(
            f"Reads {tuple(data.reads)} have zero probability under the model"
        )


# =============================================================================
# Read matches per genotype
# =============================================================================


def homozygous_matches(reads) -> np.ndarray:
    """Reads matching each homozygous genotype's allele; 0 for heterozygous."""
    reads = np.asarray(reads, dtype=float)
    return np.where(_HOMOZYGOUS, reads[GENOTYPE_NUM_INDEX[:, 0]], 0.0)


def heterozygous_matches(reads) -> np.ndarray:
    """Reads matching either allele of each heterozygous genotype."""
    reads = np.asarray(reads, dtype=float)
    both = reads[GENOTYPE_NUM_INDEX[:, 0]] + reads[GENOTYPE_NUM_INDEX[:, 1]]
    return np.where(_HOMOZYGOUS, 0.0, both)


def mismatches(reads) -> np.ndarray:
    """Reads matching neither allele of each genotype."""
    reads = np.asarray(reads, dtype=float)
    return reads.sum() - homozygous_matches(reads) - heterozygous_matches(reads)


# =============================================================================
# Posteriors
# =============================================================================


def parent_posterior(data: ReadDependentData) -> np.ndarray:
    """P(mother genotype, father genotype | reads) as a 16 x 16 matrix."""
    _check(data)
    peels = data.denominator
    return (peels.root_mat / peels.sum).reshape(GENOTYPE_COUNT, GENOTYPE_COUNT)


def child_germline_posterior(model: TrioModel, data: ReadDependentData) -> np.ndarray:
    """
    Joint posterior of the child's zygotic genotype and the parents.

    Returns
    -------
    np.ndarray
        16 x 256 matrix, ``[c, m * 16 + f] = P(c, m, f | reads)``.
    """
    _check(data)
    peels = data.denominator
    parents = peels.parent_probability * model.population_priors
    return (
        model.germline_probability_mat
        * peels.child_probability[:, None]
        * parents[None, :]
        / peels.sum
    )


def zygotic_posteriors(model: TrioModel, data: ReadDependentData) -> np.ndarray:
    """Posterior of the zygotic genotypes, rows child, mother, father."""
    parents = parent_posterior(data)
    child = child_germline_posterior(model, data).sum(axis=1)
    return np.vstack([child, parents.sum(axis=1), parents.sum(axis=0)])


def somatic_joint_posteriors(model: TrioModel, data: ReadDependentData) -> np.ndarray:
    """
    Joint posterior of zygotic and somatic genotype of each individual.

    Returns
    -------
    np.ndarray
        3 x 16 x 16 array, ``[x, z, s] = P(zygotic z, somatic s | reads)``
        for x in (child, mother, father).
    """
    zygotic = zygotic_posteriors(model, data)
    peels = data.denominator
    messages = np.vstack(
        [peels.child_probability, peels.mother_probability, peels.father_probability]
    )
    somatic = model.somatic_probability_mat
    likelihood = data.sequencing_probability_mat

    # P(s | z, reads) = S[z, s] * L[s] / (S @ L)[z]
    conditional = _safe_divide(
        somatic[None, :, :] * likelihood[:, None, :], messages[:, :, None]
    )
    return zygotic[:, :, None] * conditional


def somatic_posteriors(model: TrioModel, data: ReadDependentData) -> np.ndarray:
    """Posterior of the somatic (sequenced) genotypes, 3 x 16."""
    return somatic_joint_posteriors(model, data).sum(axis=1)


# =============================================================================
# Sequencing statistics
# =============================================================================


def _read_statistic(model, data, matches) -> float:
    posteriors = somatic_posteriors(model, data)
    return float(
        sum(post @ matches(reads) for post, reads in zip(posteriors, data.reads))
    )


def homozygous_statistic(model: TrioModel, data: ReadDependentData) -> float:
    """Expected reads matching a homozygous genotype, summed over the trio."""
    return _read_statistic(model, data, homozygous_matches)


def heterozygous_statistic(model: TrioModel, data: ReadDependentData) -> float:
    """Expected reads matching a heterozygous genotype, summed over the trio."""
    return _read_statistic(model, data, heterozygous_matches)


def mismatch_statistic(model: TrioModel, data: ReadDependentData) -> float:
    """Expected reads matching neither allele, summed over the trio."""
    return _read_statistic(model, data, mismatches)


# =============================================================================
# Mutation statistics
# =============================================================================


def germline_mutation_counts_single(model: TrioModel) -> np.ndarray:
    """
    Expected substitutions behind one transmitted nucleotide.

    A homozygous parent transmitting its own allele needs no substitution,
    any other nucleotide needs one. A heterozygous parent transmitting one
    of its alleles may also have picked the other allele and mutated it,
    which happens with probability ``off / (diag + off)``.

    Returns
    -------
    np.ndarray
        4 x 16 matrix indexed like ``germline_single``.
    """
    mat = substitution_matrix(model.germline_mutation_rate)
    diag, off = mat[0, 0], mat[0, 1]
    het_match = off / (diag + off)

    counts = np.ones((NUCLEOTIDE_COUNT, GENOTYPE_COUNT))
    for genotype, (first, second) in enumerate(GENOTYPE_NUM_INDEX):
        if first == second:
            counts[first, genotype] = 0.0
        else:
            counts[first, genotype] = het_match
            counts[second, genotype] = het_match
    return counts


def germline_mutation_counts(model: TrioModel) -> np.ndarray:
    """
    Expected germline substitutions per transition, 16 x 256.

    Entry ``[a * 4 + b, m * 16 + f]`` adds the counts of the maternal
    allele ``a`` given ``m`` and of the paternal allele ``b`` given ``f``.
    """
    single = germline_mutation_counts_single(model)
    counts = single[:, None, :, None] + single[None, :, None, :]
    return counts.reshape(GENOTYPE_COUNT, GENOTYPE_COUNT * GENOTYPE_COUNT)


def germline_statistic(model: TrioModel, data: ReadDependentData) -> float:
    """Expected number of germline substitutions at the site."""
    posterior = child_germline_posterior(model, data)
    return float(np.sum(posterior * germline_mutation_counts(model)))


def somatic_mutation_counts() -> np.ndarray:
    """Number of alleles that differ between zygotic and somatic genotype."""
    first = GENOTYPE_NUM_INDEX[:, 0]
    second = GENOTYPE_NUM_INDEX[:, 1]
    return (first[:, None] != first[None, :]).astype(float) + (
        second[:, None] != second[None, :]
    )


def somatic_statistic(model: TrioModel, data: ReadDependentData) -> float:
    """Expected number of somatic substitutions over child, mother and father."""
    joint = somatic_joint_posteriors(model, data)
    return float(np.sum(joint * somatic_mutation_counts()[None, :, :]))
