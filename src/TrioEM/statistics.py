"""
Sufficient statistics accumulated over a dataset and the M-step.

The complete-data log-likelihood of the trio model depends on the data
only through five expected counts (reads matching homozygous genotypes,
reads matching heterozygous genotypes, mismatching reads, germline and
somatic substitutions) and the number of sites. Each M-step estimate is
therefore closed form:

- Mutation rates: the expected fraction of substituted alleles ``p``
  is inverted through the Jukes-Cantor relation
  ``p = 3/4 · (1 - exp(-4r/3))``. Two alleles are transmitted per site
  and six alleles are somatic per site.
- Sequencing error: maximizing
  ``hom · log(1 - e) + het · log(1/2 - e/3) + mis · log(e/3)``
  gives the smaller root of
  ``(hom + het + mis) e² - (3/2 hom + het + 5/2 mis) e + 3/2 mis = 0``.
"""

import logging
import math
from dataclasses import replace
from typing import Iterable, Optional

import numpy as np

from . import em
from .params import EMFitResult, TrioModelParams
from .trio_model import DegenerateSiteError, TrioModel

logger = logging.getLogger(__name__)


def _invert_jukes_cantor(p: float) -> float:
    """Rate whose substitution probability is ``p``, clipped to [0, 1]."""
    if p <= 0.0:
        return 0.0
    if p >= 0.75:
        return 1.0
    rate = -0.75 * math.log(1.0 - 4.0 * p / 3.0)
    return min(rate, 1.0)


class SufficientStatistics:
    """
    Expected sufficient statistics of one EM iteration.

    Attributes
    ----------
    e : float
        Expected mismatching reads.
    hom : float
        Expected reads matching a homozygous genotype.
    het : float
        Expected reads matching a heterozygous genotype.
    som : float
        Expected somatic substitutions.
    germ : float
        Expected germline substitutions (maternal plus paternal).
    n_s : int
        Number of sites that contributed.
    n_skipped : int
        Sites skipped because their reads had zero probability.
    log_likelihood : float
        Sum of the log marginal probabilities of contributing sites.
    """

    def __init__(self):
        self.clear()

    def clear(self) -> None:
        self.e = 0.0
        self.hom = 0.0
        self.het = 0.0
        self.som = 0.0
        self.germ = 0.0
        self.n_s = 0
        self.n_skipped = 0
        self.log_likelihood = 0.0

    def update(self, params: TrioModel, sites: Iterable) -> "SufficientStatistics":
        """
        Add the E-step contributions of every site.

        Parameters
        ----------
        params : TrioModel
            Model evaluated at the current parameter estimates.
        sites : iterable of TrioReads
            Dataset.

        Returns
        -------
        SufficientStatistics
            Self, for method chaining.
        """
        for site in sites:
            data = params.read_dependent_data(site)
            try:
                contribution = (
                    em.mismatch_statistic(params, data),
                    em.homozygous_statistic(params, data),
                    em.heterozygous_statistic(params, data),
                    em.somatic_statistic(params, data),
                    em.germline_statistic(params, data),
                )
            except DegenerateSiteError as err:
                logger.warning("Skipping site: %s", err)
                self.n_skipped += 1
                continue

            if not np.all(np.isfinite(contribution)):
                logger.warning("Skipping site %s: non-finite statistics", tuple(site))
                self.n_skipped += 1
                continue

            e, hom, het, som, germ = contribution
            self.e += e
            self.hom += hom
            self.het += het
            self.som += som
            self.germ += germ
            self.n_s += 1
            self.log_likelihood += data.log_probability

        logger.debug(
            "E-step over %d sites (%d skipped): %s",
            self.n_s,
            self.n_skipped,
            self.as_dict(),
        )
        return self

    # ------------------------------------------------------------------
    # M-step
    # ------------------------------------------------------------------

    def max_germline_mutation_rate(self) -> float:
        if self.n_s == 0:
            return math.nan
        return _invert_jukes_cantor(self.germ / (2.0 * self.n_s))

    def max_somatic_mutation_rate(self) -> float:
        if self.n_s == 0:
            return math.nan
        return _invert_jukes_cantor(self.som / (6.0 * self.n_s))

    def max_sequencing_error_rate(self) -> float:
        a = self.hom + self.het + self.e
        if self.n_s == 0 or a <= 0.0:
            return math.nan
        b = 1.5 * self.hom + self.het + 2.5 * self.e
        c = 1.5 * self.e
        discriminant = max(b * b - 4.0 * a * c, 0.0)
        rate = (b - math.sqrt(discriminant)) / (2.0 * a)
        return float(np.clip(rate, 0.0, 1.0))

    def is_nan(self) -> bool:
        """True if any statistic or estimate is not a finite number."""
        values = list(self.as_dict().values()) + [
            self.max_germline_mutation_rate(),
            self.max_somatic_mutation_rate(),
            self.max_sequencing_error_rate(),
        ]
        return not all(math.isfinite(v) for v in values)

    def as_dict(self) -> dict:
        return {
            "e": self.e,
            "hom": self.hom,
            "het": self.het,
            "som": self.som,
            "germ": self.germ,
            "n_s": self.n_s,
        }

    def print(self) -> None:
        for name, value in self.as_dict().items():
            print(f"{name}:\t{value}")

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v:g}" for k, v in self.as_dict().items())
        return f"SufficientStatistics({fields})"


# =============================================================================
# EM driver
# =============================================================================


def fit_em(
    sites,
    params: Optional[TrioModelParams] = None,
    max_iter: int = 50,
    tol: float = 1e-6,
) -> EMFitResult:
    """
    Estimate germline, somatic and sequencing error rates by EM.

    Parameters
    ----------
    sites : sequence of TrioReads
        Dataset; iterated once per EM iteration.
    params : TrioModelParams, optional
        Starting parameters. Defaults are used when omitted.
    max_iter : int
        Maximum EM iterations.
    tol : float
        Convergence tolerance on the log-likelihood.

    Returns
    -------
    EMFitResult
        Final parameters and diagnostics.

    Raises
    ------
    ValueError
        If no site could be evaluated.
    """
    if max_iter < 1:
        raise ValueError("max_iter must be >= 1")
    if params is None:
        params = TrioModelParams()
    sites = list(sites)

    model = TrioModel(params)
    stats = SufficientStatistics()
    prev_ll = -np.inf
    converged = False
    history = []

    for iteration in range(max_iter):
        stats.clear()
        stats.update(model, sites)
        if stats.is_nan():
            raise ValueError(
                f"Sufficient statistics could not be computed "
                f"({stats.n_s} usable sites, {stats.n_skipped} skipped)"
            )

        ll = stats.log_likelihood
        logger.info(
            "EM iteration %d: loglik=%.6f germline=%g somatic=%g error=%g",
            iteration + 1,
            ll,
            model.germline_mutation_rate,
            model.somatic_mutation_rate,
            model.sequencing_error_rate,
        )
        if abs(ll - prev_ll) < tol:
            converged = True
            break
        prev_ll = ll

        model.set_params(
            replace(
                model.params,
                germline_mutation_rate=stats.max_germline_mutation_rate(),
                somatic_mutation_rate=stats.max_somatic_mutation_rate(),
                sequencing_error_rate=stats.max_sequencing_error_rate(),
            )
        )
        history.append(
            (
                model.germline_mutation_rate,
                model.somatic_mutation_rate,
                model.sequencing_error_rate,
            )
        )

    return EMFitResult(
        params=model.params,
        loglik=ll,
        n_sites=stats.n_s,
        n_skipped=stats.n_skipped,
        converged=converged,
        n_iterations=iteration + 1,
        history=history,
    )
