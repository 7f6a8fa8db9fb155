"""
Centralized parsing helpers for firmware format and probe index values.

Both CLI and Streamlit must import these helpers rather than re-implement.
"""

from typing import List, Optional

from iap_flasher.probe.interfaces import FormatKind

FORMAT_KIND_ALIASES = {
    "elf": FormatKind.ELF,
    "axf": FormatKind.ELF,
    "hex": FormatKind.HEX,
    "ihex": FormatKind.HEX,
    "intel-hex": FormatKind.HEX,
    "intel_hex": FormatKind.HEX,
    "bin": FormatKind.BIN,
    "binary": FormatKind.BIN,
    "raw": FormatKind.BIN,
}


def parse_format_kind(value: Optional[str]) -> Optional[FormatKind]:
    """
    Parse a firmware format name.

    Accepts canonical names ("ELF", "elf") and aliases ("ihex", "binary").
    A leading dot is ignored so ".hex" works too.

    Returns:
        FormatKind, or None if value is None or empty (derive from extension).

    Raises:
        ValueError: If the format is not recognized.
    """
    if value is None:
        return None

    key = value.strip().lower().lstrip(".")
    if not key:
        return None

    try:
        return FORMAT_KIND_ALIASES[key]
    except KeyError:
        raise ValueError(
            f"Invalid format '{value}'. Valid formats: {', '.join(get_valid_format_kinds())}"
        )


def get_valid_format_kinds() -> List[str]:
    """Get list of valid format strings."""
    return sorted(FORMAT_KIND_ALIASES.keys())


def parse_probe_index(value: Optional[str], probe_count: int) -> int:
    """
    Parse a probe index from user input.

    None or empty is only accepted when exactly one probe is connected;
    with several probes the caller must pick one.

    Raises:
        ValueError: If the value is not an integer or out of range.
    """
    if probe_count <= 0:
        raise ValueError("No debug probes available")

    if value is None or not str(value).strip():
        if probe_count > 1:
            raise ValueError(
                f"{probe_count} debug probes found. Select one with --probe (see the 'probes' command)."
            )
        return 0

    text = str(value).strip().strip("[]")
    try:
        index = int(text)
    except ValueError:
        raise ValueError(f"Invalid probe index '{value}'. Use a number from the 'probes' list.")

    if not 0 <= index < probe_count:
        raise ValueError(f"Probe index {index} out of range (0-{probe_count - 1})")
    return index
