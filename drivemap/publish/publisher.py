"""Policy publisher — write the drive maps and bump the policy version.

Publishing is a staged commit:

1. Drives.xml, GPT.INI and, when machine settings change, Registry.pol
   are written next to their final names with a ``.staged`` suffix.
2. The directory object gets the new version number and extension names.
3. The staged files replace the live ones.

If step 2 fails the staged files are removed and the live files are left as
they were, so the SYSVOL copy never advertises a version the directory does
not know about.
"""

from __future__ import annotations

import os
import re
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

from drivemap.directory.client import PolicyObject
from drivemap.errors import DirectoryError, PublishError
from drivemap.publish.gpt_ini import GPT_INI, read_gpt_ini, render_gpt_ini
from drivemap.publish.registry_pol import REGISTRY_POL
from drivemap.versioning.counter import VersionState

DRIVES_XML = Path("User") / "Preferences" / "Drives" / "Drives.xml"
STAGED_SUFFIX = ".staged"

# [{client-side extension}{editor extension}] pairs.
USER_EXTENSION_NAMES = (
    "[{00000000-0000-0000-0000-000000000000}{2EA1A81B-48E5-45E9-8BB7-A6E3AC170006}]"
    "[{5794DAFD-BE60-433F-88A2-1A31939AC01F}{2EA1A81B-48E5-45E9-8BB7-A6E3AC170006}]"
)
REGISTRY_MACHINE_EXTENSION = (
    "[{35378EAC-683F-11D2-A89A-0080C7C3D3A5}{D02B1F72-3407-48AE-BA88-E8213C6761F1}]"
)

_EXTENSION_PAIR_RE = re.compile(r"\[[^\]]*\]")


class PolicyDirectory(Protocol):
    def update_policy_version(
        self,
        policy: PolicyObject,
        version: int,
        user_extension_names: str,
        machine_extension_names: str = "",
        expected_version: Optional[int] = None,
    ) -> None: ...


@dataclass
class PublishResult:
    policy_guid: str
    version: int
    written: list[Path] = field(default_factory=list)
    success: bool = False


def merge_extension_names(existing: str, addition: str) -> str:
    """Union two extension-name strings, keeping pairs sorted by GUID."""
    pairs = {p.upper(): p for p in _EXTENSION_PAIR_RE.findall(existing or "")}
    for p in _EXTENSION_PAIR_RE.findall(addition):
        pairs.setdefault(p.upper(), p)
    return "".join(pairs[k] for k in sorted(pairs))


def backup_policy(policy_dir: str | Path, backup_dir: str | Path, guid: str) -> Path | None:
    """Copy the policy folder to ``<backup_dir>/<guid>-<UTC timestamp>``.

    Returns None when there is nothing to back up yet.
    """
    source = Path(policy_dir)
    if not source.is_dir():
        return None
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    target = Path(backup_dir) / f"{guid}-{stamp}"
    try:
        shutil.copytree(source, target)
    except OSError as e:
        raise PublishError(f"Could not back up {source} to {target}: {e}") from e
    return target


class PolicyPublisher:
    """Publishes one policy's drive maps and version metadata."""

    def __init__(
        self,
        directory: PolicyDirectory,
        policy_dir: str | Path,
        compare_and_swap: bool = False,
    ) -> None:
        self.directory = directory
        self.policy_dir = Path(policy_dir)
        self.compare_and_swap = compare_and_swap

    # -- read phase ---------------------------------------------------------

    def read_version_state(self) -> VersionState:
        """Read the version currently advertised in GPT.INI."""
        return VersionState.from_metadata(read_gpt_ini(self.policy_dir))

    # -- write phase --------------------------------------------------------

    def publish(
        self,
        policy: PolicyObject,
        new_version: int,
        display_name: str,
        drives_xml: bytes,
        registry_pol: Optional[bytes] = None,
    ) -> PublishResult:
        """Stage the files, update the directory object, then promote.

        *registry_pol* is the new Machine/Registry.pol content when machine
        settings changed; the registry extension is then added to the
        policy's machine extension names.

        Raises:
            PublishError: If staging or the directory update fails, in which
                case live files are untouched, or if promotion fails part way.
        """
        files = {
            self.policy_dir / DRIVES_XML: drives_xml,
            self.policy_dir / GPT_INI: render_gpt_ini(new_version, display_name),
        }
        machine_extension_names = ""
        if registry_pol is not None:
            files[self.policy_dir / REGISTRY_POL] = registry_pol
            machine_extension_names = merge_extension_names(
                policy.machine_extension_names, REGISTRY_MACHINE_EXTENSION
            )
        staged = self._stage(files)

        try:
            self.directory.update_policy_version(
                policy,
                new_version,
                USER_EXTENSION_NAMES,
                machine_extension_names=machine_extension_names,
                expected_version=policy.version_number if self.compare_and_swap else None,
            )
        except DirectoryError as e:
            self._discard(staged)
            raise PublishError(f"Policy {policy.guid} was not published: {e}") from e

        written = self._promote(staged)
        return PublishResult(policy_guid=policy.guid, version=new_version, written=written, success=True)

    # ======================================================================
    # Internal helpers
    # ======================================================================

    @classmethod
    def _stage(cls, files: dict[Path, bytes]) -> dict[Path, Path]:
        staged: dict[Path, Path] = {}
        try:
            for final, content in files.items():
                final.parent.mkdir(parents=True, exist_ok=True)
                tmp = final.with_name(final.name + STAGED_SUFFIX)
                staged[final] = tmp
                tmp.write_bytes(content)
        except OSError as e:
            cls._discard(staged)
            raise PublishError(f"Could not stage policy files: {e}") from e
        return staged

    @staticmethod
    def _discard(staged: dict[Path, Path]) -> None:
        for tmp in staged.values():
            tmp.unlink(missing_ok=True)

    @classmethod
    def _promote(cls, staged: dict[Path, Path]) -> list[Path]:
        promoted: list[Path] = []
        try:
            for final, tmp in staged.items():
                os.replace(tmp, final)
                promoted.append(final)
        except OSError as e:
            cls._discard({f: t for f, t in staged.items() if f not in promoted})
            raise PublishError(
                f"Directory updated but only {len(promoted)} of {len(staged)} files were promoted: {e}"
            ) from e
        return promoted
