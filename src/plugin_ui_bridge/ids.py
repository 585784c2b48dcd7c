"""Identifier generation for requests and forms."""

from __future__ import annotations

import itertools
import secrets
import string

_DIGITS = string.digits + string.ascii_lowercase


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(_DIGITS[rem])
    return "".join(reversed(out))


class IdGenerator:
    """Monotonic counter plus a random base-36 suffix.

    The counter makes ids from one generator distinct; the suffix keeps them
    unpredictable and distinct across generators.
    """

    def __init__(self, random_bits: int = 52) -> None:
        self._counter = itertools.count(1)
        self._random_bits = random_bits

    def __call__(self) -> str:
        return f"{to_base36(next(self._counter))}-{to_base36(secrets.randbits(self._random_bits))}"
