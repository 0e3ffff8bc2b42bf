import base64
import io
import json
import logging
import zipfile
from dataclasses import dataclass
from typing import Iterable, List, Tuple

from ..api.models import ResourceObject
from ..errors import SerializationError

logger = logging.getLogger("kubeconverge.manifest")

MANIFEST_DIRECTORY = "manifests"


def manifest_path(index: int) -> str:
    """Archive path of the manifest at position `index`."""
    return f"{MANIFEST_DIRECTORY}/{index}.json"


def canonical_json(obj: ResourceObject) -> bytes:
    """
    Serialize an object's body to canonical JSON.

    Keys are sorted and separators compact so equal bodies always
    produce identical bytes.

    Raises:
        SerializationError: If the body is not JSON-serializable
    """
    try:
        text = json.dumps(obj.body, sort_keys=True, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"marshaling json for {obj.kind}/{obj.name}: {e}") from e
    return text.encode("utf-8")


@dataclass(frozen=True)
class ManifestArchive:
    """Ordered (path, bytes) entries, built once and never mutated."""

    entries: Tuple[Tuple[str, bytes], ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def paths(self) -> List[str]:
        return [path for path, _ in self.entries]

    def to_zip(self) -> bytes:
        """Render the entries, in order, as a zip file."""
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for path, data in self.entries:
                archive.writestr(path, data)
        return buffer.getvalue()

    def encode(self) -> str:
        """Base64 zip, the run command context envelope."""
        return base64.b64encode(self.to_zip()).decode("ascii")


def package_manifests(objects: Iterable[ResourceObject]) -> ManifestArchive:
    """
    Package resource objects into a manifest archive.

    Args:
        objects: Objects in apply order (may be empty)

    Returns:
        Archive whose entry i is manifests/<i>.json for object i

    Raises:
        SerializationError: If any object fails; no partial archive is returned
    """
    entries = []
    for index, obj in enumerate(objects):
        try:
            data = canonical_json(obj)
        except SerializationError as e:
            raise SerializationError(f"object {index}: {e}") from e
        entries.append((manifest_path(index), data))

    logger.debug(f"Packaged {len(entries)} manifests")
    return ManifestArchive(entries=tuple(entries))
