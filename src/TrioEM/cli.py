from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional

from . import __version__
from .bins import count_bin, count_bin_trio, count_probability_index
from .io import read_sites, write_probabilities, write_trio_probabilities
from .params import TrioModelParams
from .simulate import SimulationModel
from .statistics import fit_em
from .trio_model import TrioModel

logger = logging.getLogger("TrioEM")


def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    log_fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(level=level, format=log_fmt, stream=sys.stderr)


def _handle_error(err: Exception) -> int:
    sys.stderr.write(f"{err.__class__.__name__}: {err}\n")
    return 2


def _params_from_args(args: argparse.Namespace) -> TrioModelParams:
    return TrioModelParams(
        population_mutation_rate=args.population_rate,
        germline_mutation_rate=args.germline_rate,
        somatic_mutation_rate=args.somatic_rate,
        sequencing_error_rate=args.error_rate,
        dirichlet_dispersion=args.dispersion,
        population_prior=args.population_prior,
    )


def _add_model_arguments(p: argparse.ArgumentParser) -> None:
    defaults = TrioModelParams()
    p.add_argument(
        "--germline-rate",
        type=float,
        default=defaults.germline_mutation_rate,
        help="Germline mutation rate (0-1).",
    )
    p.add_argument(
        "--somatic-rate",
        type=float,
        default=defaults.somatic_mutation_rate,
        help="Somatic mutation rate (0-1), shared by child, mother and father.",
    )
    p.add_argument(
        "--error-rate",
        type=float,
        default=defaults.sequencing_error_rate,
        help="Sequencing error rate (0-1).",
    )
    p.add_argument(
        "--population-rate",
        type=float,
        default=defaults.population_mutation_rate,
        help="Population mutation rate (theta) of the genotype prior.",
    )
    p.add_argument(
        "--dispersion",
        type=float,
        default=defaults.dirichlet_dispersion,
        help="Dirichlet dispersion of the sequencing model.",
    )
    p.add_argument(
        "--population-prior",
        choices=["independent", "joint"],
        default=defaults.population_prior,
        help="Parent genotype prior model.",
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="trioem",
        description=(
            "TrioEM: germline and somatic mutation probabilities of sequenced "
            "parent-child trios, EM estimation of mutation and error rates."
        ),
    )
    p.add_argument("--version", action="version", version=f"trioem {__version__}")
    p.add_argument(
        "-v", "--verbose", action="count", default=0, help="-v info, -vv debug."
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    # -----------------
    # simulate
    # -----------------
    s = sub.add_parser("simulate", help="Simulate trios with known mutation status.")
    _add_model_arguments(s)
    s.add_argument("--coverage", type=int, default=50, help="Reads per individual.")
    s.add_argument("--count", type=int, required=True, help="Number of sites.")
    s.add_argument("--output", required=True, help="Output file (.gz to compress).")
    s.add_argument(
        "--format",
        choices=["probability", "counts", "sites"],
        default="probability",
        help=(
            "probability: '<P(mutation)>\\t<0|1>' per site; "
            "counts: trio index counts (coverage 4 only); "
            "sites: simulated read counts."
        ),
    )
    s.add_argument("--seed", type=int, default=None, help="Random seed.")

    # -----------------
    # estimate
    # -----------------
    e = sub.add_parser("estimate", help="Estimate rates from trio read counts by EM.")
    _add_model_arguments(e)
    e.add_argument("--sites", required=True, help="Sites file, 12 counts per line.")
    e.add_argument("--max-iter", type=int, default=50, help="Maximum EM iterations.")
    e.add_argument("--tol", type=float, default=1e-6, help="Log-likelihood tolerance.")
    e.add_argument("--output", default=None, help="Write the JSON summary here.")

    # -----------------
    # trio-probabilities
    # -----------------
    t = sub.add_parser(
        "trio-probabilities",
        help="Mutation probability of every trio at a given coverage.",
    )
    _add_model_arguments(t)
    t.add_argument("--coverage", type=int, default=4, help="Reads per individual.")
    t.add_argument("--output", required=True, help="Output file, one line per trio.")

    # -----------------
    # bins
    # -----------------
    b = sub.add_parser("bins", help="Summarize probability files in 10%% bins.")
    b.add_argument("input", help="Probability or trio index count file.")
    b.add_argument(
        "--mode",
        choices=["mutation", "trio", "index"],
        default="mutation",
        help=(
            "mutation: '<P> <0|1>' lines; trio: '<P>' lines; "
            "index: '<index> <mutated> <not mutated>' lines."
        ),
    )
    b.add_argument(
        "--cut", type=float, default=0.1, help="Probability cut (trio mode)."
    )
    b.add_argument("--output", default=None, help="Probabilities output (index mode).")

    return p


def cmd_simulate(args: argparse.Namespace) -> int:
    try:
        params = _params_from_args(args)
        with SimulationModel(
            args.coverage,
            params.germline_mutation_rate,
            params.somatic_mutation_rate,
            params=params,
            seed=args.seed,
        ) as simulator:
            if args.format == "probability":
                simulator.write_probability(args.output, args.count)
            elif args.format == "counts":
                simulator.write_mutation_counts(args.output, args.count)
            else:
                simulator.write_sites(args.output, args.count)
        return 0
    except (ValueError, OSError) as e:
        return _handle_error(e)


def cmd_estimate(args: argparse.Namespace) -> int:
    try:
        sites = read_sites(args.sites)
        result = fit_em(sites, _params_from_args(args), args.max_iter, args.tol)
    except (ValueError, OSError) as e:
        return _handle_error(e)

    summary = {
        "germline_mutation_rate": result.germline_mutation_rate,
        "somatic_mutation_rate": result.somatic_mutation_rate,
        "sequencing_error_rate": result.sequencing_error_rate,
        "loglik": result.loglik,
        "n_sites": result.n_sites,
        "n_skipped": result.n_skipped,
        "converged": result.converged,
        "n_iterations": result.n_iterations,
    }
    if result.n_skipped:
        logger.warning(
            "%d sites had zero probability and were skipped", result.n_skipped
        )
    text = json.dumps(summary, indent=2, sort_keys=True)
    if args.output:
        try:
            with open(args.output, "wt", encoding="utf-8") as f:
                f.write(text + "\n")
        except OSError as e:
            return _handle_error(e)
    print(text)
    return 0


def cmd_trio_probabilities(args: argparse.Namespace) -> int:
    try:
        model = TrioModel(_params_from_args(args))
        write_trio_probabilities(model, args.output, args.coverage)
        return 0
    except (ValueError, OSError) as e:
        return _handle_error(e)


def cmd_bins(args: argparse.Namespace) -> int:
    try:
        if args.mode == "mutation":
            for summary in count_bin(args.input):
                print(summary.describe())
        elif args.mode == "trio":
            for line in count_bin_trio(args.input, args.cut).lines():
                print(line)
        else:
            if args.output is None:
                raise ValueError("--output is required in index mode")
            write_probabilities(args.output, count_probability_index(args.input))
        return 0
    except (ValueError, OSError) as e:
        return _handle_error(e)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    if args.cmd == "simulate":
        return cmd_simulate(args)
    if args.cmd == "estimate":
        return cmd_estimate(args)
    if args.cmd == "trio-probabilities":
        return cmd_trio_probabilities(args)
    if args.cmd == "bins":
        return cmd_bins(args)

    parser.error(f"Unknown command: {args.cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
