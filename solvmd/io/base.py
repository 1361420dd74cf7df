"""Base class for append-only text output files."""

from __future__ import annotations

from pathlib import Path
from typing import TextIO


class OutputFile:
    """
    Append-only text file written in whole blocks.

    A block (one trajectory snapshot, one energy row) is rendered in memory
    and written with a single call. If the write fails, the file is cut
    back to where the block started, so a failed block never leaves a
    partial record behind.

    Example:
        with DumpWriter("trajectory.dump") as writer:
            writer.write(state, step)
    """

    def __init__(self, filename: str | Path, append: bool = False) -> None:
        """
        Initialize output file.

        Args:
            filename: Output file path.
            append: Keep existing content (restarts) instead of truncating.
        """
        self.filename = Path(filename)
        self.append = append
        self._file: TextIO | None = None
        self._n_blocks = 0

    def open(self) -> None:
        """Open file for writing."""
        self.filename.parent.mkdir(parents=True, exist_ok=True)
        self._file = self.filename.open("a" if self.append else "w", encoding="utf-8")

    def close(self) -> None:
        """Close file."""
        if self._file is not None:
            self._file.close()
            self._file = None

    @property
    def is_open(self) -> bool:
        """Check if the file is open."""
        return self._file is not None

    def __enter__(self) -> OutputFile:
        """Context manager entry."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()

    @property
    def n_blocks(self) -> int:
        """Number of blocks written."""
        return self._n_blocks

    def write_block(self, text: str) -> None:
        """
        Write ``text`` completely or not at all.

        Raises:
            RuntimeError: If the file is not open.
            OSError: If writing fails; the file is restored to its previous end.
        """
        if self._file is None:
            raise RuntimeError("File not open. Use context manager or call open().")

        offset = self._file.tell()
        try:
            self._file.write(text)
            self._file.flush()
        except OSError:
            self._file.seek(offset)
            self._file.truncate()
            raise
        self._n_blocks += 1
