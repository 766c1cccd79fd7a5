"""CPU core selection and affinity mask helpers."""

import re
from collections.abc import Iterable

from core_warden.errors import InvalidSelection

FIRST = "first"
LAST = "last"

_INDEX_RE = re.compile(r"[0-9]+")


def resolve_core_mask(selection: str, cpu_count: int) -> int:
    """Resolve a core selection to a single-bit affinity mask.

    Args:
        selection: "First", "Last" (any case) or a non-negative base-10 index
        cpu_count: Number of logical cores on the host

    Returns:
        Mask with exactly one bit set, at an index below cpu_count.

    Raises:
        InvalidSelection: cpu_count < 1, index out of range, or unrecognized selection.
    """
    if cpu_count < 1:
        raise InvalidSelection(f"Logical core count must be >= 1, got {cpu_count}")

    text = selection.strip()
    keyword = text.lower()
    if keyword == FIRST:
        index = 0
    elif keyword == LAST:
        index = cpu_count - 1
    elif _INDEX_RE.fullmatch(text):
        index = int(text)
        if index >= cpu_count:
            raise InvalidSelection(
                f"Core index {index} out of range; host has {cpu_count} logical cores "
                f"(valid: 0-{cpu_count - 1})"
            )
    else:
        raise InvalidSelection(
            f"Invalid core selection: {selection!r}. Use 'First', 'Last' or a core index"
        )

    return 1 << index


def mask_to_cpus(mask: int) -> list[int]:
    """Return the core indices set in mask, ascending."""
    return [i for i in range(mask.bit_length()) if mask >> i & 1]


def cpus_to_mask(cpus: Iterable[int]) -> int:
    """Build a mask from core indices."""
    mask = 0
    for cpu in cpus:
        mask |= 1 << cpu
    return mask


def format_mask(mask: int) -> str:
    """Format a mask as hex, e.g. 0x80."""
    return f"{mask:#x}"
