"""
Stability Module - Black Box Interface

Purpose: Decide how each resource kind proves it is stable, and prove it
Interface: classify(), register_strategy(), StabilityChecker.check()
Hidden: kubectl command construction, job log capture

New kinds are added with register_strategy() without touching the
coordinator.
"""

from .stability import (
    WORKLOAD_KINDS,
    CommandRunner,
    StabilityChecker,
    classify,
    register_strategy,
)

__all__ = [
    "WORKLOAD_KINDS",
    "CommandRunner",
    "StabilityChecker",
    "classify",
    "register_strategy",
]
