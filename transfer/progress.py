"""Console progress display for transfers."""

import sys
from typing import TextIO

from common.constants import GREEN, RESET


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.
    
    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).
    
    Args:
        size_bytes: File size in bytes
        
    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    
    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0
    
    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0
    
    return f"{size:.2f} PiB"


class ProgressBar:
    """Single-line byte counter redrawn in place."""

    def __init__(self, label: str, total: int, stream: TextIO = sys.stdout):
        """
        Args:
            label: Text shown before the counter (e.g. "Uploading sample.c4gh")
            total: Expected number of bytes
            stream: Output stream
        """
        self.label = label
        self.total = total
        self.stream = stream
        self.current = 0
        self._finished = False

    def set_current(self, current: int) -> None:
        self.current = min(current, self.total) if self.total > 0 else current
        self._display()

    def advance(self, amount: int) -> None:
        self.set_current(self.current + amount)

    def _display(self) -> None:
        if self.total > 0:
            progress = (self.current / self.total) * 100
            self.stream.write(
                f"\r{self.label}: {format_file_size(self.current)} / {format_file_size(self.total)} "
                f"({GREEN}{progress:.1f}%{RESET})"
            )
        else:
            self.stream.write(f"\r{self.label}: {format_file_size(self.current)}")
        self.stream.flush()

    def finish(self) -> None:
        """Show the final state and end the line."""
        if self._finished:
            return
        self._finished = True
        self.set_current(self.total if self.total > 0 else self.current)
        self.stream.write('\n')
        self.stream.flush()


class NullProgress(ProgressBar):
    """Progress tracker that prints nothing."""

    def __init__(self, label: str = '', total: int = 0, stream: TextIO = sys.stdout):
        super().__init__(label, total, stream)

    def _display(self) -> None:
        pass

    def finish(self) -> None:
        self._finished = True
        self.current = self.total if self.total > 0 else self.current
