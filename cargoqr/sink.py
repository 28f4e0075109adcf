"""Download sink: hand finished artifact bytes to the filesystem."""

from pathlib import Path

from cargoqr.logging import audit, get_logger, trace

log = get_logger("sink")


class DirectorySink:
    """Writes each delivered artifact into one directory."""

    def __init__(self, directory: "str | Path"):
        self.directory = Path(directory)

    @trace
    def deliver(self, data: bytes, filename: str) -> Path:
        """Write ``data`` as ``filename``; returns the written path.

        Raises ``OSError`` if the file cannot be written and ``ValueError``
        if the filename tries to leave the directory.
        """
        name = Path(filename).name
        if not name or name != filename:
            raise ValueError(f"filename must be a bare file name, got {filename!r}")
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / name
        path.write_bytes(data)
        audit("artifact.delivered", logger=log, path=str(path), bytes=len(data))
        return path
