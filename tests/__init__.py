"""Test suite for scflow.

Test organization:
- fixtures/: Mock data generators and test utilities
- unit/: Unit tests for individual modules, plus an end-to-end run of the
  default stages in unit/test_pipeline.py

Run tests with:
    pytest tests/
    pytest tests/unit/test_trajectory.py -v
"""
