import pytest

from taskweave.graph.task import Task, task


def _noop(inputs):
    return None


def test_depends_on_is_normalised_to_frozenset():
    t = Task("a", _noop, ["b", "c", "b"])  # type: ignore[arg-type]
    assert t.depends_on == frozenset({"b", "c"})


def test_task_helper_accepts_any_iterable():
    t = task("a", _noop, depends_on=(d for d in ["x", "y"]), timeout_ms=10)
    assert t.depends_on == frozenset({"x", "y"})
    assert t.timeout_ms == 10


@pytest.mark.parametrize("bad_id", ["", "   ", None])
def test_empty_id_raises(bad_id):
    with pytest.raises(ValueError):
        Task(bad_id, _noop)  # type: ignore[arg-type]


def test_depends_on_as_plain_string_raises():
    with pytest.raises(ValueError):
        Task("a", _noop, "b")  # type: ignore[arg-type]


@pytest.mark.parametrize("timeout", [0, -5])
def test_non_positive_timeout_raises(timeout):
    with pytest.raises(ValueError):
        Task("a", _noop, timeout_ms=timeout)


def test_run_must_be_callable():
    with pytest.raises(ValueError):
        Task("a", "not callable")  # type: ignore[arg-type]
