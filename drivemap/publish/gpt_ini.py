"""GPT.INI — the policy metadata file clients poll for the version number."""

from __future__ import annotations

from pathlib import Path

GPT_INI = "GPT.INI"


def render_gpt_ini(version: int, display_name: str = "") -> bytes:
    """Render the metadata block as UTF-8 (no BOM) with CRLF line endings."""
    lines = ["[General]", f"Version={version}"]
    if display_name:
        lines.append(f"displayName={display_name}")
    return ("\r\n".join(lines) + "\r\n").encode("utf-8")


def read_gpt_ini(policy_dir: str | Path) -> str | None:
    """Return the existing GPT.INI text, or None if the policy has none yet."""
    path = Path(policy_dir) / GPT_INI
    if not path.is_file():
        return None
    return path.read_bytes().decode("utf-8-sig", errors="replace")
