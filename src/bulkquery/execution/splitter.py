"""
Script Splitter: turns raw script text into an ordered list of batches.

A line whose trimmed content is ``GO`` (any case) ends the current batch.
The separator line itself never appears in a batch; every other line is kept
verbatim, line terminator included. The final accumulated text is always
flushed, so a script without any separator is a single batch equal to the
whole script.
"""
from __future__ import annotations

from typing import List

from bulkquery.common.errors import SplitError

BATCH_SEPARATOR = "GO"


def is_separator(line: str) -> bool:
    return line.strip().upper() == BATCH_SEPARATOR


def is_blank(batch: str) -> bool:
    return not batch.strip()


def split_script(script: str) -> List[str]:
    """Splits a script into batches on ``GO`` separator lines.

    Args:
        script (str): The raw multi-statement script.

    Returns:
        List[str]: Batches in script order. Blank batches are kept; they are
            valid no-ops.

    Raises:
        SplitError: If the script is not text.
    """
    if not isinstance(script, str):
        raise SplitError(f"Script must be text, got {type(script).__name__}.")
    if "\x00" in script:
        raise SplitError("Script contains a NUL character.")

    batches: List[str] = []
    current: List[str] = []
    for line in script.splitlines(keepends=True):
        if is_separator(line):
            batches.append("".join(current))
            current = []
        else:
            current.append(line)

    batches.append("".join(current))
    return batches
