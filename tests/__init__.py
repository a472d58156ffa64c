"""Test package for RaceGuard static race detection.

This package contains unit and integration tests for the RaceGuard
race detector.
"""

__all__ = ["test_utils"]
