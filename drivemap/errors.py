"""Exception types raised across drivemap."""

from __future__ import annotations


class DriveMapError(Exception):
    """Base class for every failure that aborts a run."""


class WorkbookError(DriveMapError):
    """The mapping workbook is missing or does not have the expected sheet."""


class DirectoryError(DriveMapError):
    """The directory could not be reached or rejected an operation."""


class PolicyNotFoundError(DriveMapError):
    """No policy object carries the requested display name."""


class PublishError(DriveMapError):
    """The policy could not be published; live files were left untouched."""
