# tests/strategies/settings.py
"""Standardized Hypothesis settings profiles for property tests.

Tiers:
- STATE_MACHINE_SETTINGS: 200 examples - Stateful tests
- STANDARD_SETTINGS: 100 examples - Regular property tests
- QUICK_SETTINGS: 20 examples - Fast validation tests
"""

from hypothesis import settings

STATE_MACHINE_SETTINGS = settings(max_examples=200)
STANDARD_SETTINGS = settings(max_examples=100)
QUICK_SETTINGS = settings(max_examples=20)
