"""
Manifest Module - Black Box Interface

Purpose: Package resource objects into the run command transport archive
Interface: package_manifests(), ManifestArchive.encode()
Hidden: Zip layout, canonical JSON encoding

The archive format is what the managed cluster run command API expects:
a base64 zip whose files are applied with `kubectl -f manifests/`.
"""

from .manifest import ManifestArchive, canonical_json, manifest_path, package_manifests

__all__ = ["ManifestArchive", "canonical_json", "manifest_path", "package_manifests"]
