"""
Run a lagrangian2d problem from the command line.

Example:
    python -m lagrangian2d sedov driver.tstop=0.1 mesh.nzones_x=20
"""

import argparse

from .params import load_params
from .simulation import Simulation


def parse_override(item: str):
    key, _, value = item.partition("=")
    if not value:
        raise argparse.ArgumentTypeError(f"expected section.key=value, got '{item}'")
    for conv in (int, float):
        try:
            return key.strip(), conv(value)
        except ValueError:
            pass
    return key.strip(), value.strip()


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="2D staggered Lagrangian hydrodynamics",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("problem", help="Problem name (sedov, noh)")
    parser.add_argument("overrides", nargs="*", type=parse_override,
                        help="Runtime parameter overrides, section.key=value")
    parser.add_argument("--plot", type=str, default=None,
                        help="Save a plot of the final state to this file")
    args = parser.parse_args(argv)

    rp = load_params(args.problem, overrides=dict(args.overrides))
    sim = Simulation(args.problem, rp=rp)
    try:
        sim.initialize()
        sim.evolve()
        sim.finalize()
    finally:
        sim.shutdown()

    if args.plot:
        import matplotlib
        matplotlib.use("Agg")
        fig = sim.dovis()
        fig.savefig(args.plot)

    return sim


if __name__ == "__main__":
    main()
