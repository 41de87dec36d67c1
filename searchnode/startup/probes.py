"""
Process & Runtime Probes: read-only views of the limits the node runs under.

Every probe is a single synchronous local read. When a platform cannot
report a value the probe returns a documented "unknown" sentinel instead
of raising:

  max file descriptors   -1
  max threads            -1
  max virtual memory     UNKNOWN_VIRTUAL_MEMORY
  heap sizes             0 (unset)

RLIM_INFINITY is -1 on Linux, so -1 cannot double as the unknown value
for the virtual memory limit.

Memory locking is attempted once at startup through mlockall(2) via
ctypes; the outcome is remembered and reported by is_memory_locked().
"""

import ctypes
import ctypes.util
import logging
import platform
from typing import Optional

from searchnode.config.settings import (
    BOOTSTRAP_HEAP_INITIAL_SIZE,
    BOOTSTRAP_HEAP_MAX_SIZE,
    Settings,
)

try:
    import resource
except ImportError:  # Windows has no resource module
    resource = None

logger = logging.getLogger("searchnode.probes")

UNKNOWN_VIRTUAL_MEMORY = -(1 << 63)

# <sys/mman.h>
MCL_CURRENT = 1

_memory_locked = False


class ProbeError(RuntimeError):
    """Raised when a probe accessor fails outright rather than reporting unknown."""
    pass


# =========================================================================
# HEAP
# =========================================================================

def get_configured_heap_sizes(settings: Settings) -> tuple:
    """Return (initial, max) configured heap sizes in bytes, 0 when unset."""
    return (
        settings.get_bytes(BOOTSTRAP_HEAP_INITIAL_SIZE, 0),
        settings.get_bytes(BOOTSTRAP_HEAP_MAX_SIZE, 0),
    )


# =========================================================================
# RESOURCE LIMITS
# =========================================================================

def _soft_limit(name: str) -> Optional[int]:
    """Soft limit of an RLIMIT_* resource, None when the platform lacks it."""
    if resource is None:
        return None
    rlimit = getattr(resource, name, None)
    if rlimit is None:
        return None
    try:
        soft, _hard = resource.getrlimit(rlimit)
    except (OSError, ValueError) as e:
        raise ProbeError(f"getrlimit({name}) failed: {e}") from e
    return soft


def get_rlim_infinity() -> int:
    if resource is None:
        return UNKNOWN_VIRTUAL_MEMORY
    return resource.RLIM_INFINITY


def get_max_file_descriptor_count() -> int:
    soft = _soft_limit("RLIMIT_NOFILE")
    if soft is None or soft == get_rlim_infinity():
        return -1
    return soft


def get_max_number_of_threads() -> int:
    # RLIMIT_NPROC counts threads on Linux only
    if platform.system() != "Linux":
        return -1
    soft = _soft_limit("RLIMIT_NPROC")
    if soft is None:
        return -1
    return soft


def get_max_size_virtual_memory() -> int:
    soft = _soft_limit("RLIMIT_AS")
    if soft is None:
        return UNKNOWN_VIRTUAL_MEMORY
    return soft


# =========================================================================
# MEMORY LOCK
# =========================================================================

def try_mlockall() -> bool:
    """Attempt to lock the process address space into RAM.

    Failure is not fatal here; the bootstrap checks decide what a failed
    lock means for startup.
    """
    global _memory_locked

    if platform.system() not in ("Linux", "Darwin"):
        logger.warning(f"Unable to lock memory: mlockall not supported on {platform.system()}")
        return False

    libc_name = ctypes.util.find_library("c")
    try:
        libc = ctypes.CDLL(libc_name, use_errno=True)
    except OSError as e:
        logger.warning(f"Unable to lock memory: cannot load libc ({e})")
        return False

    rc = libc.mlockall(MCL_CURRENT)
    if rc == 0:
        _memory_locked = True
        logger.debug("mlockall succeeded")
        return True

    errno = ctypes.get_errno()
    logger.warning(
        f"Unable to lock process memory (mlockall errno={errno}). "
        f"This can result in part of the node memory being swapped out. "
        f"Increase RLIMIT_MEMLOCK (ulimit -l unlimited)."
    )
    return False


def is_memory_locked() -> bool:
    return _memory_locked
