"""Integration tests for live editing: set a value, dependents follow, hooks fire."""

import pytest
from constraint_solver.core.solver import Solver
from constraint_solver.core.errors import NotificationCascadeError, OverConstrainedError


# ============================================================================
# Unit conversion: fahrenheit - 1.8·celsius = 32
# ============================================================================

def build_thermometer():
    """Helper to construct a two-way Celsius/Fahrenheit binding"""
    solver = Solver()
    celsius = solver.add_variable('celsius')
    fahrenheit = solver.add_variable('fahrenheit')
    solver.add_constraint({fahrenheit: 1.0, celsius: -1.8}, total=32.0)
    return solver, celsius, fahrenheit


def test_edit_either_side():
    _, celsius, fahrenheit = build_thermometer()

    celsius.set_value(100.0)
    assert fahrenheit.value == pytest.approx(212.0)

    fahrenheit.set_value(32.0)
    assert celsius.value == pytest.approx(0.0, abs=1e-6)

    celsius.set_value(-40.0)
    assert fahrenheit.value == pytest.approx(-40.0)


def test_display_hooks_follow_edits():
    _, celsius, fahrenheit = build_thermometer()
    display = {}
    celsius.on_update(lambda v: display.__setitem__('C', round(v, 2)))
    fahrenheit.on_update(lambda v: display.__setitem__('F', round(v, 2)))

    celsius.set_value(37.0)

    assert display == {'C': 37.0, 'F': 98.6}


# ============================================================================
# Box layout: left + content + right = width, left = right
# ============================================================================

def build_layout():
    """Helper to construct a centred box inside a container"""
    solver = Solver()
    width = solver.add_variable('width', 100.0)
    left = solver.add_variable('left')
    content = solver.add_variable('content')
    right = solver.add_variable('right')

    width.lock()
    with solver.batch():
        solver.add_constraint({left: 1.0, content: 1.0, right: 1.0, width: -1.0})
        solver.add_constraint({left: 1.0, right: -1.0})

    content.set_value(60.0)
    return solver, width, left, content, right


def test_layout_centres_content():
    _, width, left, content, right = build_layout()

    assert width.value == pytest.approx(100.0)
    assert content.value == pytest.approx(60.0)
    assert left.value == pytest.approx(20.0)
    assert right.value == pytest.approx(20.0)


def test_layout_resizes_with_locked_content():
    _, width, left, content, right = build_layout()
    content.lock()

    width.set_value(200.0)

    assert content.value == pytest.approx(60.0)
    assert left.value == pytest.approx(70.0)
    assert right.value == pytest.approx(70.0)
    assert width.locked


def test_layout_constraints_hold_after_edits():
    solver, width, _, content, _ = build_layout()

    content.set_value(10.0)
    width.set_value(50.0)

    assert all(c.is_satisfied() for c in solver.constraints)
    assert not solver.is_over_constrained()


def test_unlock_lets_width_follow():
    _, width, left, content, right = build_layout()
    width.unlock()
    content.lock()

    left.set_value(5.0)

    assert right.value == pytest.approx(5.0)
    assert width.value == pytest.approx(70.0)


# ============================================================================
# Re-entrant hooks
# ============================================================================

def test_hook_set_value_is_queued():
    """A set_value made inside a hook runs after the current hooks"""
    solver, celsius, fahrenheit = build_thermometer()
    kelvin_label = solver.add_variable('kelvin_label')
    events = []

    fahrenheit.on_update(lambda v: events.append('fahrenheit'))
    kelvin_label.on_update(lambda v: events.append('kelvin_label'))

    def on_celsius(value):
        events.append('celsius')
        kelvin_label.set_value(value + 273.15)
        # Not applied yet
        events.append(kelvin_label.value)

    celsius.on_update(on_celsius)
    celsius.set_value(10.0)

    assert events == ['fahrenheit', 'celsius', 0.0, 'kelvin_label']
    assert kelvin_label.value == pytest.approx(283.15)


def test_hook_constraint_edit_defers_solve():
    """A constraint mutated inside a hook is re-solved once hooks finish"""
    solver = Solver()
    x = solver.add_variable('x')
    y = solver.add_variable('y')
    offset = solver.add_constraint({y: 1.0, x: -1.0}, total=0.0)
    x.lock()
    seen = []

    def on_x(value):
        offset.set_sum(5.0)
        seen.append(y.value)

    x.on_update(on_x)
    x.set_value(1.0)

    assert seen == [pytest.approx(1.0)]
    assert x.value == pytest.approx(1.0)
    assert y.value == pytest.approx(6.0)


def test_explicit_solve_from_hook_is_deferred():
    solver = Solver(auto_solve=False)
    y = solver.add_variable('y')
    x = solver.add_variable('x')
    solver.add_constraint({y: 1.0, x: -2.0}, total=0.0)
    seen = []

    def on_x(value):
        solver.solve()
        seen.append(y.value)

    x.on_update(on_x)
    x.set_value(3.0)

    assert seen == [0.0]
    assert y.value == pytest.approx(6.0)


def test_runaway_hooks_are_stopped():
    solver = Solver(max_cascade=10)
    a = solver.add_variable('a')
    b = solver.add_variable('b')
    a.on_update(lambda v: b.set_value(v + 1.0))
    b.on_update(lambda v: a.set_value(v + 1.0))

    with pytest.raises(NotificationCascadeError, match="10 rounds"):
        a.set_value(1.0)

    # The queue is cleared and the solver keeps working
    a.on_update(None)
    b.on_update(None)
    a.set_value(100.0)
    assert a.value == 100.0


def build_mirror_with_fixed_p():
    """Helper: y follows x, and p is held at 3 by a constraint"""
    solver = Solver()
    x = solver.add_variable('x')
    y = solver.add_variable('y')
    p = solver.add_variable('p')
    q = solver.add_variable('q')
    solver.add_constraint({y: 1.0, x: -1.0}, total=0.0)
    solver.add_constraint({p: 1.0}, total=3.0)
    return solver, x, y, p, q


def test_contradictory_queued_edit_keeps_outer_edit():
    """A queued edit that fails does not undo the edit whose hooks queued it"""
    solver, x, y, p, _ = build_mirror_with_fixed_p()
    y.on_update(lambda v: p.set_value(4.0))

    with pytest.raises(OverConstrainedError):
        x.set_value(10.0)

    assert x.value == pytest.approx(10.0)
    assert y.value == pytest.approx(10.0)
    assert p.value == pytest.approx(3.0)
    assert not x.locked
    assert all(c.is_satisfied() for c in solver.constraints)


def test_contradictory_queued_edit_keeps_new_constraint():
    solver, x, y, p, _ = build_mirror_with_fixed_p()
    y.on_update(lambda v: p.set_value(4.0))

    with pytest.raises(OverConstrainedError):
        solver.add_constraint({x: 1.0}, total=2.0)

    assert len(solver.constraints) == 3
    assert y.value == pytest.approx(2.0)
    assert all(c.is_satisfied() for c in solver.constraints)


def test_failed_queue_is_discarded():
    """Edits queued behind a failing one never run later"""
    solver, x, y, p, q = build_mirror_with_fixed_p()

    def on_y(value):
        p.set_value(4.0)
        q.set_value(7.0)

    y.on_update(on_y)

    with pytest.raises(OverConstrainedError):
        x.set_value(10.0)
    assert q.value == 0.0

    y.on_update(None)
    x.set_value(1.0)

    assert y.value == pytest.approx(1.0)
    assert q.value == 0.0


def test_hook_exception_propagates():
    solver, celsius, fahrenheit = build_thermometer()

    def broken(value):
        raise RuntimeError("display unavailable")

    fahrenheit.on_update(broken)

    with pytest.raises(RuntimeError, match="display unavailable"):
        celsius.set_value(5.0)

    # Values were written before hooks ran, and the edit pin is gone
    assert fahrenheit.value == pytest.approx(41.0)
    assert not celsius.locked
    assert len(solver.constraints) == 1
