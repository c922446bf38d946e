"""
Delivery Fleet Test Suite

Test organization:
- tests/unit/: Unit tests for individual engine components
- tests/integration/: Engine scenarios and the dashboard transport
- tests/regression/: Regression tests for fixed bugs

Run tests:
    pytest                      # All tests
    pytest -m unit              # Unit tests only
    pytest -m integration       # Integration tests only
    pytest -m regression        # Regression tests only
    pytest -k approaching       # Tests matching 'approaching'
"""
