"""
Dispatch Module - Black Box Interface

Purpose: Run commands on a managed cluster through the control plane
Interface: submit(), poll(), complete(), run()
Hidden: ARM REST calls, Retry-After backoff, result contract

Can be replaced with any channel that accepts a command plus a base64
context and reports logs and an exit code.
"""

from .dispatcher import CommandDispatcher, parse_retry_after

__all__ = ["CommandDispatcher", "parse_retry_after"]
