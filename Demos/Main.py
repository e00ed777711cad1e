from __future__ import annotations

from pathlib import Path


# Put the repo root on PYTHONPATH for local imports
import sys
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import jax64  # noqa: F401

from DYNAX.Codec import element_labels
from DYNAX.Solve import evolve, print_report, solve
from DYNAX.Solvers import enumerate_solvers
from DYNAX.SysCheck import validate
from Demos.Models import DEMOS


def run_demo(name, builder, *, verbose=True):
    """Validate, diagnose and solve one example system with each of its solvers."""
    print(f"===== {name} =====")
    model = validate(builder(), diagnose=True, verbose=verbose)
    print(f"State rows: {element_labels(model.vardef)}")

    results = {}
    for info in enumerate_solvers(model):
        sol = solve(model, solver=info.solver)
        print_report(sol, header=f"{name} / {info.name}")
        results[info.name] = sol
    return model, results


if __name__ == "__main__":
    for demo_name, demo_builder in DEMOS.items():
        run_demo(demo_name, demo_builder)

    # Let the Lorenz attractor settle, then report the final window only.
    lorenz = validate(DEMOS["Lorenz"]())
    lorenz, sol = evolve(lorenz, reps=3)
    frame = sol.to_frame(lorenz.vardef)
    print(frame.describe())
