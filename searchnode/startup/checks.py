"""
Bootstrap Checks: one environmental condition per class.

A check answers two questions:
  evaluate()  True when the node FAILS the check
  describe()  the remediation message for a failed check

describe() re-reads the live probe values, so the message always cites
what the process currently sees. Probe methods are plain instance methods
so tests can override them in a subclass.
"""

import getpass
from abc import ABC, abstractmethod
from typing import Optional

from searchnode.config.settings import DISCOVERY_ZEN_MINIMUM_MASTER_NODES, Settings
from searchnode.startup import probes

DEFAULT_FILE_DESCRIPTOR_LIMIT = 1 << 16
# OPEN_MAX from /usr/include/sys/syslimits.h on macOS
OSX_FILE_DESCRIPTOR_LIMIT = 10240
MAX_NUMBER_OF_THREADS_THRESHOLD = 1 << 11


def _user_name() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


class Check(ABC):
    """A single startup-time validator."""

    @abstractmethod
    def evaluate(self) -> bool:
        """Return True if the node failed the check."""

    @abstractmethod
    def describe(self) -> str:
        """Message for a failed check."""


# =========================================================================
# HEAP
# =========================================================================

class HeapSizeCheck(Check):
    """Initial and max heap must match; a resizing heap defeats mlockall."""

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings if settings is not None else Settings()
        # unparsable sizes fail here, while the catalog is built
        probes.get_configured_heap_sizes(self._settings)

    def evaluate(self) -> bool:
        initial = self.get_initial_heap_size()
        maximum = self.get_max_heap_size()
        return initial != 0 and maximum != 0 and initial != maximum

    def describe(self) -> str:
        return (
            f"initial heap size [{self.get_initial_heap_size()}] "
            f"not equal to maximum heap size [{self.get_max_heap_size()}]; "
            f"this can cause resize pauses and prevents mlockall from locking the entire heap"
        )

    def get_initial_heap_size(self) -> int:
        return probes.get_configured_heap_sizes(self._settings)[0]

    def get_max_heap_size(self) -> int:
        return probes.get_configured_heap_sizes(self._settings)[1]


# =========================================================================
# FILE DESCRIPTORS
# =========================================================================

class FileDescriptorCheck(Check):

    def __init__(self, limit: int = DEFAULT_FILE_DESCRIPTOR_LIMIT):
        if limit <= 0:
            raise ValueError(f"limit must be positive but was [{limit}]")
        self.limit = limit

    def evaluate(self) -> bool:
        count = self.get_max_file_descriptor_count()
        return count != -1 and count < self.limit

    def describe(self) -> str:
        return (
            f"max file descriptors [{self.get_max_file_descriptor_count()}] "
            f"for searchnode process likely too low, increase to at least [{self.limit}]"
        )

    def get_max_file_descriptor_count(self) -> int:
        return probes.get_max_file_descriptor_count()


class OsXFileDescriptorCheck(FileDescriptorCheck):

    def __init__(self):
        super().__init__(OSX_FILE_DESCRIPTOR_LIMIT)


# =========================================================================
# MEMORY LOCK
# =========================================================================

class MlockallCheck(Check):

    def __init__(self, mlockall_set: bool):
        self.mlockall_set = mlockall_set

    def evaluate(self) -> bool:
        return self.mlockall_set and not self.is_memory_locked()

    def describe(self) -> str:
        return "memory locking requested for searchnode process but memory is not locked"

    def is_memory_locked(self) -> bool:
        return probes.is_memory_locked()


# =========================================================================
# THREADS / VIRTUAL MEMORY
# =========================================================================

class MaxNumberOfThreadsCheck(Check):

    threshold = MAX_NUMBER_OF_THREADS_THRESHOLD

    def evaluate(self) -> bool:
        count = self.get_max_number_of_threads()
        return count != -1 and count < self.threshold

    def describe(self) -> str:
        return (
            f"max number of threads [{self.get_max_number_of_threads()}] "
            f"for user [{_user_name()}] likely too low, increase to at least [{self.threshold}]"
        )

    def get_max_number_of_threads(self) -> int:
        return probes.get_max_number_of_threads()


class MaxSizeVirtualMemoryCheck(Check):
    """The address space limit must be unlimited."""

    def evaluate(self) -> bool:
        size = self.get_max_size_virtual_memory()
        return size != probes.UNKNOWN_VIRTUAL_MEMORY and size != self.get_rlim_infinity()

    def describe(self) -> str:
        return (
            f"max size virtual memory [{self.get_max_size_virtual_memory()}] "
            f"for user [{_user_name()}] likely too low, increase to [unlimited]"
        )

    def get_rlim_infinity(self) -> int:
        return probes.get_rlim_infinity()

    def get_max_size_virtual_memory(self) -> int:
        return probes.get_max_size_virtual_memory()


# =========================================================================
# DISCOVERY
# =========================================================================

class MinMasterNodesCheck(Check):

    def __init__(self, min_master_nodes_is_set: bool):
        self.min_master_nodes_is_set = min_master_nodes_is_set

    def evaluate(self) -> bool:
        return not self.min_master_nodes_is_set

    def describe(self) -> str:
        return (
            f"please set [{DISCOVERY_ZEN_MINIMUM_MASTER_NODES}] to a majority of "
            f"the number of master eligible nodes in your cluster."
        )
