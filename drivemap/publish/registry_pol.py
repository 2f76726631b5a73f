"""Registry.pol — read and write the machine registry policy file.

The file is a ``PReg`` header followed by bracketed entries, all text in
UTF-16LE::

    [key\\0;value\\0;type;size;data]

Only the one value drive mapping depends on is managed here:
``EnableLinkedConnections`` lets elevated processes see drives mapped by
the user's filtered token.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from pathlib import Path

from drivemap.errors import DriveMapError

REGISTRY_POL = Path("Machine") / "Registry.pol"

SIGNATURE = b"PReg"
FILE_VERSION = 1

REG_DWORD = 4

LINKED_CONNECTIONS_KEY = r"Software\Microsoft\Windows\CurrentVersion\Policies\System"
LINKED_CONNECTIONS_VALUE = "EnableLinkedConnections"

_OPEN = "[".encode("utf-16-le")
_CLOSE = "]".encode("utf-16-le")
_SEP = ";".encode("utf-16-le")
_NUL = "\0".encode("utf-16-le")


class RegistryPolError(DriveMapError):
    """The file is not a valid Registry.pol."""


@dataclass
class RegistryValue:
    key: str
    name: str
    type: int
    data: bytes

    @property
    def dword(self) -> int | None:
        if self.type != REG_DWORD or len(self.data) != 4:
            return None
        return struct.unpack("<I", self.data)[0]

    def matches(self, key: str, name: str) -> bool:
        return self.key.lower() == key.lower() and self.name.lower() == name.lower()


def dword_value(key: str, name: str, value: int) -> RegistryValue:
    return RegistryValue(key=key, name=name, type=REG_DWORD, data=struct.pack("<I", value))


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


def parse(data: bytes) -> list[RegistryValue]:
    """Decode a Registry.pol file body."""
    if len(data) < 8 or data[:4] != SIGNATURE:
        raise RegistryPolError("Missing PReg signature")
    (version,) = struct.unpack("<I", data[4:8])
    if version != FILE_VERSION:
        raise RegistryPolError(f"Unsupported Registry.pol version {version}")

    values: list[RegistryValue] = []
    pos = 8
    while pos < len(data):
        pos = _expect(data, pos, _OPEN)
        key, pos = _read_string(data, pos)
        pos = _expect(data, pos, _SEP)
        name, pos = _read_string(data, pos)
        pos = _expect(data, pos, _SEP)
        value_type, pos = _read_dword(data, pos)
        pos = _expect(data, pos, _SEP)
        size, pos = _read_dword(data, pos)
        pos = _expect(data, pos, _SEP)
        payload = data[pos : pos + size]
        if len(payload) != size:
            raise RegistryPolError("Truncated value data")
        pos = _expect(data, pos + size, _CLOSE)
        values.append(RegistryValue(key=key, name=name, type=value_type, data=payload))
    return values


def serialize(values: list[RegistryValue]) -> bytes:
    out = bytearray(SIGNATURE + struct.pack("<I", FILE_VERSION))
    for v in values:
        out += _OPEN
        out += v.key.encode("utf-16-le") + _NUL + _SEP
        out += v.name.encode("utf-16-le") + _NUL + _SEP
        out += struct.pack("<I", v.type) + _SEP
        out += struct.pack("<I", len(v.data)) + _SEP
        out += v.data
        out += _CLOSE
    return bytes(out)


def _expect(data: bytes, pos: int, token: bytes) -> int:
    if data[pos : pos + len(token)] != token:
        raise RegistryPolError(f"Expected {token.decode('utf-16-le')!r} at offset {pos}")
    return pos + len(token)


def _read_dword(data: bytes, pos: int) -> tuple[int, int]:
    if pos + 4 > len(data):
        raise RegistryPolError("Truncated value header")
    (value,) = struct.unpack("<I", data[pos : pos + 4])
    return value, pos + 4


def _read_string(data: bytes, pos: int) -> tuple[str, int]:
    end = pos
    while end + 1 < len(data) and data[end : end + 2] != _NUL:
        end += 2
    if end + 1 >= len(data):
        raise RegistryPolError("Unterminated string")
    return data[pos:end].decode("utf-16-le"), end + 2


# ---------------------------------------------------------------------------
# Guard
# ---------------------------------------------------------------------------


def has_value(values: list[RegistryValue], key: str, name: str) -> bool:
    return any(v.matches(key, name) for v in values)


def ensure_linked_connections(policy_dir: str | Path) -> bytes | None:
    """Return Machine/Registry.pol content with ``EnableLinkedConnections=1`` added.

    Returns None when the value is already present. The caller writes the
    content so it can be committed together with the rest of the policy.
    """
    path = Path(policy_dir) / REGISTRY_POL
    values = parse(path.read_bytes()) if path.is_file() else []

    if has_value(values, LINKED_CONNECTIONS_KEY, LINKED_CONNECTIONS_VALUE):
        return None

    values.append(dword_value(LINKED_CONNECTIONS_KEY, LINKED_CONNECTIONS_VALUE, 1))
    return serialize(values)
