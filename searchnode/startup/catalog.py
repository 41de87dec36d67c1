"""
Check Catalog: the ordered list of bootstrap checks for this host.

Platform differences live in PLATFORM_PROFILES, one row per OS family.
build_checks() is a pure mapping from (settings, host) to checks, so a
new check kind is one Check subclass plus one insertion below.
"""

import platform
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from searchnode.config.settings import (
    BOOTSTRAP_MLOCKALL,
    DISCOVERY_ZEN_MINIMUM_MASTER_NODES,
    Settings,
)
from searchnode.startup.checks import (
    DEFAULT_FILE_DESCRIPTOR_LIMIT,
    OSX_FILE_DESCRIPTOR_LIMIT,
    Check,
    FileDescriptorCheck,
    HeapSizeCheck,
    MaxNumberOfThreadsCheck,
    MaxSizeVirtualMemoryCheck,
    MinMasterNodesCheck,
    MlockallCheck,
    OsXFileDescriptorCheck,
)


@dataclass(frozen=True)
class PlatformProfile:
    file_descriptor_threshold: int
    check_max_threads: bool
    check_max_virtual_memory: bool


LINUX = "linux"
MAC_OS_X = "darwin"

PLATFORM_PROFILES: Dict[str, PlatformProfile] = {
    LINUX: PlatformProfile(
        file_descriptor_threshold=DEFAULT_FILE_DESCRIPTOR_LIMIT,
        check_max_threads=True,
        check_max_virtual_memory=True,
    ),
    MAC_OS_X: PlatformProfile(
        file_descriptor_threshold=OSX_FILE_DESCRIPTOR_LIMIT,
        check_max_threads=False,
        check_max_virtual_memory=True,
    ),
}

DEFAULT_PROFILE = PlatformProfile(
    file_descriptor_threshold=DEFAULT_FILE_DESCRIPTOR_LIMIT,
    check_max_threads=False,
    check_max_virtual_memory=False,
)


def host_family() -> str:
    """OS family of this host: 'linux', 'darwin', 'windows', 'freebsd' ..."""
    return platform.system().lower()


def profile_for(family: str) -> PlatformProfile:
    return PLATFORM_PROFILES.get(family.lower(), DEFAULT_PROFILE)


def _file_descriptor_check(threshold: int) -> FileDescriptorCheck:
    if threshold == OSX_FILE_DESCRIPTOR_LIMIT:
        return OsXFileDescriptorCheck()
    return FileDescriptorCheck(threshold)


def build_checks(settings: Settings, host: Optional[str] = None) -> Tuple[Check, ...]:
    """Build the checks to execute, in execution order."""
    profile = profile_for(host if host is not None else host_family())

    checks = []
    checks.append(HeapSizeCheck(settings))
    checks.append(_file_descriptor_check(profile.file_descriptor_threshold))
    checks.append(MlockallCheck(settings.get_bool(BOOTSTRAP_MLOCKALL, False)))
    if profile.check_max_threads:
        checks.append(MaxNumberOfThreadsCheck())
    if profile.check_max_virtual_memory:
        checks.append(MaxSizeVirtualMemoryCheck())
    checks.append(MinMasterNodesCheck(settings.exists(DISCOVERY_ZEN_MINIMUM_MASTER_NODES)))
    return tuple(checks)
