"""Publishing — the write side of a drive-map run.

This package provides the primitives for:
- GPT.INI: the version metadata clients poll
- Registry.pol: the machine setting mapped drives depend on
- Staged commit: writing policy files and the directory object together
"""
