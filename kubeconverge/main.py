#!/usr/bin/env python3
"""
kubeconverge - Main Entry Point

This is the thin orchestration layer that:
1. Loads configuration
2. Loads manifests
3. Runs a deploy or clean against a managed cluster

All business logic is in the modules, following black box principles.
"""

import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Iterable, List, Optional

import click
import yaml
from dotenv import load_dotenv

from kubeconverge.config.provider import EnvConfigProvider
from kubeconverge.logging_config import configure_logging
from kubeconverge.modules.api import ResourceObject
from kubeconverge.modules.auth import build_credential
from kubeconverge.modules.cluster import ManagedCluster
from kubeconverge.modules.errors import ConvergenceError

logger = logging.getLogger("kubeconverge.main")

MANIFEST_SUFFIXES = (".yaml", ".yml", ".json")


def _manifest_files(path: Path) -> List[Path]:
    if path.is_dir():
        return sorted(p for p in path.iterdir() if p.suffix in MANIFEST_SUFFIXES)
    return [path]


def load_manifests(paths: Iterable[str]) -> List[ResourceObject]:
    """
    Load resource objects from manifest files or directories.

    Files are read in the given order, directories in name order.
    Multi-document YAML and `kind: List` documents are expanded.
    """
    objects = []
    for raw_path in paths:
        for manifest_file in _manifest_files(Path(raw_path)):
            with open(manifest_file) as f:
                documents = list(yaml.safe_load_all(f))

            for document in documents:
                if not document:
                    continue
                if isinstance(document, dict) and document.get("kind") == "List":
                    objects.extend(ResourceObject.from_manifest(item) for item in document.get("items") or [])
                else:
                    objects.append(ResourceObject.from_manifest(document))

    return objects


def _describe_chain(error: BaseException) -> str:
    lines = [str(error)]
    cause = error.__cause__
    while cause is not None:
        lines.append(f"  caused by {type(cause).__name__}: {cause}")
        cause = cause.__cause__
    return "\n".join(lines)


async def run(action: str, cluster_id: str, manifests: List[str], timeout: Optional[float]) -> None:
    config_provider = EnvConfigProvider()
    credential = build_credential(config_provider.get_credential_config())
    objects = load_manifests(manifests)
    logger.info(f"Loaded {len(objects)} resource objects")

    async with ManagedCluster.load(cluster_id, credential, config_provider=config_provider) as cluster:
        if action == "deploy":
            await cluster.deploy(objects, timeout=timeout)
        elif action == "clean":
            await cluster.clean(objects, timeout=timeout)
        else:
            click.echo(json.dumps(await cluster.get_cluster(), indent=2))


@click.group()
@click.option("--log-level", "log_level", default=lambda: os.getenv("LOG_LEVEL", "INFO"))
def cli(log_level: str):
    """Deploy resource objects to a managed cluster and wait for them to converge."""
    load_dotenv()
    configure_logging(log_level)


def _run_action(action: str, cluster_id: str, manifests: List[str], timeout: Optional[float]) -> None:
    try:
        asyncio.run(run(action, cluster_id, manifests, timeout))
    except (ConvergenceError, ValueError, OSError, yaml.YAMLError) as e:
        logger.error(f"{action} failed")
        click.echo(_describe_chain(e), err=True)
        sys.exit(1)


@cli.command()
@click.option("--cluster-id", "cluster_id", required=True, envvar="CLUSTER_ID", help="ARM resource id")
@click.option("--timeout", "timeout", type=float, default=None, help="Deadline in seconds")
@click.argument("manifests", nargs=-1, required=True)
def deploy(cluster_id: str, timeout: Optional[float], manifests: List[str]):
    """Apply manifests and wait until they are stable."""
    _run_action("deploy", cluster_id, list(manifests), timeout)


@cli.command()
@click.option("--cluster-id", "cluster_id", required=True, envvar="CLUSTER_ID", help="ARM resource id")
@click.option("--timeout", "timeout", type=float, default=None, help="Deadline in seconds")
@click.argument("manifests", nargs=-1, required=True)
def clean(cluster_id: str, timeout: Optional[float], manifests: List[str]):
    """Delete the resources described by manifests."""
    _run_action("clean", cluster_id, list(manifests), timeout)


@cli.command(name="show-cluster")
@click.option("--cluster-id", "cluster_id", required=True, envvar="CLUSTER_ID", help="ARM resource id")
def show_cluster(cluster_id: str):
    """Print the managed cluster resource."""
    _run_action("show-cluster", cluster_id, [], None)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
