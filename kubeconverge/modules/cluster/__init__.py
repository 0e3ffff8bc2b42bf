"""
Cluster Module - Black Box Interface

Purpose: Deploy and clean resource objects on a managed cluster
Interface: ManagedCluster.deploy(), ManagedCluster.clean()
Hidden: Packaging, dispatch, polling and stability orchestration

A one-shot convergence driver, not a watch loop.
"""

from .cluster import APPLY_COMMAND, DELETE_COMMAND, ManagedCluster

__all__ = ["APPLY_COMMAND", "DELETE_COMMAND", "ManagedCluster"]
