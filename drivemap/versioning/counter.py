"""Version counter — the two-half integer that tells clients a policy changed.

A policy version is a 32-bit value written as eight hex digits. The high four
digits count machine-side changes, the low four count user-side changes. Each
publish of the drive maps bumps the user half and leaves the machine half
alone.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

DEFAULT_VERSION = 0x00010001  # 65537
HALF_MASK = 0xFFFF

_VERSION_RE = re.compile(r"^\s*version\s*=\s*(\d+)\s*$", re.IGNORECASE | re.MULTILINE)


def parse_version(metadata_text: str | None) -> int | None:
    """Return the ``Version=`` value from GPT.INI text, or None if there is none."""
    if not metadata_text:
        return None
    match = _VERSION_RE.search(metadata_text)
    if match is None:
        return None
    value = int(match.group(1))
    if value > 0xFFFFFFFF:
        return None
    return value


@dataclass
class VersionState:
    """A version value read once at the start of a run and bumped before writing."""

    current: int = DEFAULT_VERSION
    found: bool = False

    @classmethod
    def from_metadata(cls, metadata_text: str | None) -> VersionState:
        value = parse_version(metadata_text)
        if value is None:
            return cls(current=DEFAULT_VERSION, found=False)
        return cls(current=value, found=True)

    @property
    def hex_digits(self) -> str:
        return f"{self.current:08x}"

    @property
    def machine_part(self) -> str:
        return self.hex_digits[:4]

    @property
    def user_part(self) -> str:
        return self.hex_digits[4:]

    def bump_user(self) -> int:
        """Increment the user half; it wraps to 0 rather than spill into the machine half."""
        user = (int(self.user_part, 16) + 1) & HALF_MASK
        self.current = int(self.machine_part + f"{user:04x}", 16)
        return self.current

    def advance(self) -> int:
        """Return the version to publish: the default as is, otherwise the user half bumped."""
        if not self.found:
            self.found = True
            return self.current
        return self.bump_user()


def next_version(existing_metadata_text: str | None) -> int:
    """Compute the version to publish given the existing GPT.INI text.

    With no usable ``Version=`` line the default (65537) is returned as is.
    Otherwise the user half of the current value is incremented.
    """
    return VersionState.from_metadata(existing_metadata_text).advance()
