"""Atomic installation of transformed component files."""

from .orchestrator import InstallOptions, InstallOrchestrator, InstallReport
from .packages import merge_package_versions, read_project_dependencies
from .transaction import InstallTransaction, StagedFile, sweep_stale_temp_files

__all__ = [
    "InstallOptions",
    "InstallOrchestrator",
    "InstallReport",
    "InstallTransaction",
    "StagedFile",
    "merge_package_versions",
    "read_project_dependencies",
    "sweep_stale_temp_files",
]
