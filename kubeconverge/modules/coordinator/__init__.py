"""
Coordinator Module - Black Box Interface

Purpose: Run one stability check per object concurrently
Interface: wait_stable(), CheckGroup
Hidden: Task scheduling, first-error aggregation, cancellation fan-out

No ordering or dependency between objects is assumed.
"""

from .coordinator import CheckGroup, wait_stable

__all__ = ["CheckGroup", "wait_stable"]
