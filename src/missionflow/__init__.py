"""
Missionflow: team pipeline model for orchestrating AI coding agents.

Stage graphs are edited visually, validated as sound workflows, laid out
for display, and tracked per mission at runtime.
"""

__version__ = "0.1.0"
