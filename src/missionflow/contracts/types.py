"""Type aliases shared across the contracts."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from missionflow.contracts.pipeline import Agent

type AgentLookup = Callable[[str], Agent | None]
"""Read-only resolver from agent id to directory metadata.

Supplied by the agent directory. Returns None for ids it does not know.
"""
