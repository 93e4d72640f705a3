"""
Test support utilities for jobq tests.
"""
