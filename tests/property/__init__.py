"""Property-based tests for membership invariants (Hypothesis).

Run with:
    pytest tests/property/ -v --hypothesis-show-statistics
"""
