"""Transfer file format for scenario sets.

One row per scenario file: the file path, a comma, then a bracketed list of
line numbers::

    features/login.feature,[12, 48, 50]
    features/cart.feature,[3]
"""

import re
from typing import List, Optional, Tuple

import structlog

from taiti.models.scenario import ScenarioSet, check_file_path

logger = structlog.get_logger(__name__)

SCENARIO_FILE_NAME = "taiti_scenarios.csv"

_ROW_PATTERN = re.compile(r'^\s*"?(?P<path>.*?)"?\s*,\s*"?\s*\[(?P<lines>[^\]]*)\]\s*"?\s*$')


class TransferFormatError(ValueError):
    """Raised when a transfer file holds no usable row at all."""
    pass


def is_scenario_attachment(name: str) -> bool:
    """Decide whether an attachment holds scenario data.

    Trackers offer no link between the marker comment and its attachment, so
    the pairing relies on the file name alone: a .csv whose name mentions
    "taiti" or "scenario".
    """
    lowered = (name or "").strip().lower()
    return lowered.endswith(".csv") and ("taiti" in lowered or "scenario" in lowered)


def serialize(scenario_set: ScenarioSet) -> bytes:
    """Render a scenario set as transfer file bytes (UTF-8)."""
    rows = []
    for path, lines in scenario_set.files.items():
        rows.append(f"{path},[{', '.join(str(line) for line in lines)}]")
    return ("\n".join(rows) + ("\n" if rows else "")).encode("utf-8")


def parse_row(row: str) -> Optional[Tuple[str, List[int]]]:
    """Parse one row into (path, lines).

    Malformed line tokens are skipped with a warning.

    Returns:
        The path and its valid line numbers, or None if the row is malformed
    """
    match = _ROW_PATTERN.match(row)
    if not match:
        return None

    path = match.group("path").strip()
    try:
        check_file_path(path)
    except ValueError:
        return None

    lines = []
    for token in match.group("lines").split(","):
        token = token.strip()
        if not token:
            continue
        try:
            line = int(token)
        except ValueError:
            logger.warning("transfer_line_token_skipped", path=path, token=token)
            continue
        if line < 1:
            logger.warning("transfer_line_token_skipped", path=path, token=token)
            continue
        lines.append(line)

    return path, lines


def parse(content: str) -> ScenarioSet:
    """Parse transfer file text into a scenario set.

    Args:
        content: Decoded transfer file

    Returns:
        The scenario set (empty for an empty file)

    Raises:
        TransferFormatError: If the file has rows but none yields a reference
    """
    scenario_set = ScenarioSet()
    saw_rows = False

    for number, row in enumerate(content.splitlines(), start=1):
        if not row.strip():
            continue
        saw_rows = True

        parsed = parse_row(row)
        if parsed is None:
            logger.warning("transfer_row_skipped", row_number=number, row=row[:120])
            continue

        path, lines = parsed
        scenario_set.add_lines(path, lines)

    if saw_rows and scenario_set.is_empty():
        raise TransferFormatError("Transfer file contains no valid scenario reference")

    return scenario_set


def decode(content: bytes) -> ScenarioSet:
    """Decode transfer file bytes, tolerating a UTF-8 byte order mark."""
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise TransferFormatError(f"Transfer file is not valid UTF-8: {e}") from e
    return parse(text)
