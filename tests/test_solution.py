from __future__ import annotations

import numpy as np
import pytest

import jax64  # noqa: F401
import jax.numpy as jnp

from DYNAX.Errors import SizeMismatchError
from DYNAX.Solution import Solution, as_solution
from DYNAX.Values import Definitions


@pytest.fixture
def sol():
    x = jnp.linspace(0.0, 2.0, 5)
    y = jnp.stack([x, 10.0 * x, -x])
    return Solution(x=x, y=y, solver="table")


def test_eval_scalar(sol):
    np.testing.assert_allclose(sol.eval(0.25), [0.25, 2.5, -0.25])


def test_eval_vector_and_rows(sol):
    out = sol.eval([0.25, 1.75], rows=range(1, 3))
    np.testing.assert_allclose(out, [[2.5, 17.5], [-0.25, -1.75]])


def test_transient_and_final_state(sol):
    np.testing.assert_array_equal(np.asarray(sol.transient(1.0)), [False, False, True, True, True])
    np.testing.assert_allclose(sol.final_state(), [2.0, 20.0, -2.0])


def test_to_frame(sol):
    defs = Definitions.from_records(
        [{"name": "a", "value": 0.0}, {"name": "v", "value": [0.0, 0.0]}], kind="vardef"
    )
    frame = sol.to_frame(defs)
    assert list(frame.columns) == ["a", "v_1", "v_2"]
    assert frame.index.name == "t"
    np.testing.assert_allclose(frame["v_1"].to_numpy(), 10.0 * np.linspace(0.0, 2.0, 5))


def test_to_frame_size_mismatch(sol):
    defs = Definitions.from_records([{"name": "a", "value": 0.0}], kind="vardef")
    with pytest.raises(SizeMismatchError):
        sol.to_frame(defs)


class TestAsSolution:
    def test_mapping(self):
        out = as_solution({"x": [0.0, 1.0], "y": [[1.0, 2.0]], "stats": {"n": 1}}, solver="s", n=1)
        assert out.solver == "s"
        assert out.stats == {"n": 1}

    def test_time_major_states_are_transposed(self):
        out = as_solution((np.arange(3.0), np.zeros((3, 2))), n=2)
        assert out.y.shape == (2, 3)

    def test_column_count_mismatch(self):
        with pytest.raises(SizeMismatchError):
            as_solution((np.arange(3.0), np.zeros((1, 4))), n=1)

    def test_unknown_result(self):
        with pytest.raises(ValueError):
            as_solution(42)
