import asyncio
import logging
from pathlib import Path
from typing import Union

from ..errors import OutputWriteError

logger = logging.getLogger("kubeconverge.sink")


def job_output_name(job_name: str) -> str:
    """Output file name for a job's captured logs."""
    return f"job-{job_name}.log"


class ResultSink:
    def __init__(self, directory: Union[str, Path] = "."):
        """
        Initialize result sink.

        Args:
            directory: Directory output files are written to
        """
        self.directory = Path(directory)

    def path_for(self, name: str) -> Path:
        """
        Resolve an output file name inside the sink directory.

        Raises:
            ValueError: If the name is empty or contains a path
        """
        if not name or Path(name).name != name:
            raise ValueError(f"Output file name must be a plain file name: {name!r}")
        return self.directory / name

    async def write(self, name: str, text: str) -> Path:
        """
        Write captured output to a file, replacing any previous run's file.

        Args:
            name: Output file name
            text: Captured command output

        Returns:
            Path of the written file

        Raises:
            OutputWriteError: If the file cannot be written
        """
        path = self.path_for(name)
        try:
            await asyncio.to_thread(self._write, path, text)
        except OSError as e:
            raise OutputWriteError(f"writing output file {path}: {e}") from e

        logger.info(f"Wrote {len(text)} characters of command output to {path}")
        return path

    @staticmethod
    def _write(path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
