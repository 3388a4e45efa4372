"""
Centred box layout demonstration.

A content box sits inside a container with equal margins:
    left + content + right = width
    left = right

Editing any one value moves the others. Expected result: margins of
20 for a width of 100 and content of 60, then 70 after widening to 200.
"""

import logging

from constraint_solver import Solver, OverConstrainedError


def main():
    logging.basicConfig(level=logging.DEBUG, format="[%(levelname)s] %(name)s: %(message)s")

    solver = Solver()

    width = solver.add_variable('width', 100.0)
    left = solver.add_variable('left')
    content = solver.add_variable('content')
    right = solver.add_variable('right')

    for var in [width, left, content, right]:
        var.on_update(lambda value, name=var.name: print(f"  {name:>8} -> {value:.2f}"))

    # Pin the container, then add both equations with a single solve
    width.lock()
    with solver.batch():
        solver.add_constraint({left: 1.0, content: 1.0, right: 1.0, width: -1.0})
        solver.add_constraint({left: 1.0, right: -1.0})

    print("Set content to 60:")
    content.set_value(60.0)

    print("Lock content, widen the container to 200:")
    content.lock()
    width.set_value(200.0)

    print("Try to change a margin while everything is pinned:")
    try:
        left.set_value(10.0)
    except OverConstrainedError as e:
        print(f"  rejected: {e}")

    print(f"\nUnder-constrained: {solver.is_under_constrained()}")
    print(f"Over-constrained:  {solver.is_over_constrained()}")
    for constraint in solver.constraints:
        print(f"  {constraint}")


if __name__ == '__main__':
    main()
