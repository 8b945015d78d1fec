"""Pure low-price charging decision engine.

No Home Assistant dependencies — fully unit-testable.
"""
