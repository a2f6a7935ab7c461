"""Failure table shown after a batch mastering run."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..core.base import ProcessingResult

# Column widths
FILE_COLUMN_WIDTH = 40
PRESET_COLUMN_WIDTH = 14
ERROR_COLUMN_WIDTH = 22
TABLE_WIDTH = 80


def _truncate(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 3] + "..."


def print_failure_table(failed_results: list[ProcessingResult], media_type: str = "audio") -> None:
    """
    Print the files that could not be mastered.

    Args:
        failed_results: ProcessingResult objects with error status
        media_type: Label used in the closing tip

    """
    if not failed_results:
        return

    print("\n" + "=" * TABLE_WIDTH)
    print(f"{'MASTERING FAILURES':^{TABLE_WIDTH}}")
    print("=" * TABLE_WIDTH)
    print(f"Total failed: {len(failed_results)} files\n")

    print(f"{'FILE':<{FILE_COLUMN_WIDTH}} | {'PRESET':<{PRESET_COLUMN_WIDTH}} | {'ERROR':<{ERROR_COLUMN_WIDTH}}")
    print("-" * TABLE_WIDTH)

    for result in failed_results:
        filename = _truncate(result.source_file.name, FILE_COLUMN_WIDTH - 3)
        preset = _truncate(str(result.metadata.get("preset") or "default"), PRESET_COLUMN_WIDTH)
        error_msg = _truncate(result.message or "Unknown error", ERROR_COLUMN_WIDTH)
        print(f"{filename:<{FILE_COLUMN_WIDTH}} | {preset:<{PRESET_COLUMN_WIDTH}} | {error_msg:<{ERROR_COLUMN_WIDTH}}")

    print(f"\n💡 TIP: Run with -vv to see ffmpeg's diagnostics for each failed {media_type} file\n")
