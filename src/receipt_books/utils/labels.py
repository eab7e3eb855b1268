"""Book label helpers"""

import string
from typing import Optional


def to_letter_label(index: int) -> str:
    """
    Spreadsheet-style letter label for a zero-based index

    0 -> A, 25 -> Z, 26 -> AA, 27 -> AB, 701 -> ZZ, 702 -> AAA
    """
    if index < 0:
        raise ValueError("index must be non-negative")

    letters = []
    n = index
    while True:
        letters.append(string.ascii_uppercase[n % 26])
        n = n // 26 - 1
        if n < 0:
            break
    return "".join(reversed(letters))


def batch_label(prefix: Optional[str], letter: str) -> str:
    """Join an optional batch prefix and a letter label"""
    return f"{prefix}-{letter}" if prefix else letter
