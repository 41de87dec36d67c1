"""
searchnode Settings: Flat Dotted-Key Node Configuration

Settings are resolved in three layers, later layers win:
  1. DEFAULTS below
  2. An explicit mapping passed by the caller (tests, embedding code)
  3. SEARCHNODE_* environment variables

Environment names map to keys by dropping the prefix, lowercasing and
turning '_' into '.':  SEARCHNODE_BOOTSTRAP_MLOCKALL -> bootstrap.mlockall

Keys that are themselves multi-word (minimum_master_nodes, bind_host ...)
are listed in _ENV_KEYS so the mapping stays unambiguous.
"""

import logging
import os
import re
from typing import Dict, Mapping, Optional

logger = logging.getLogger("searchnode.settings")

ENV_PREFIX = "SEARCHNODE_"

# =============================================================================
# SETTING KEYS
# =============================================================================

NODE_NAME = "node.name"
NETWORK_HOST = "network.host"
NETWORK_BIND_HOST = "network.bind_host"
NETWORK_PUBLISH_HOST = "network.publish_host"
TRANSPORT_TCP_PORT = "transport.tcp.port"
HTTP_PORT = "http.port"
BOOTSTRAP_MLOCKALL = "bootstrap.mlockall"
BOOTSTRAP_HEAP_INITIAL_SIZE = "bootstrap.heap.initial_size"
BOOTSTRAP_HEAP_MAX_SIZE = "bootstrap.heap.max_size"
DISCOVERY_ZEN_MINIMUM_MASTER_NODES = "discovery.zen.minimum_master_nodes"

DEFAULTS: Dict[str, str] = {
    NODE_NAME: "searchnode-1",
    NETWORK_HOST: "_local_",
    TRANSPORT_TCP_PORT: "9300",
    HTTP_PORT: "9200",
    BOOTSTRAP_MLOCKALL: "false",
}

_ENV_KEYS: Dict[str, str] = {
    "NODE_NAME": NODE_NAME,
    "NETWORK_HOST": NETWORK_HOST,
    "NETWORK_BIND_HOST": NETWORK_BIND_HOST,
    "NETWORK_PUBLISH_HOST": NETWORK_PUBLISH_HOST,
    "TRANSPORT_TCP_PORT": TRANSPORT_TCP_PORT,
    "HTTP_PORT": HTTP_PORT,
    "BOOTSTRAP_MLOCKALL": BOOTSTRAP_MLOCKALL,
    "BOOTSTRAP_HEAP_INITIAL_SIZE": BOOTSTRAP_HEAP_INITIAL_SIZE,
    "BOOTSTRAP_HEAP_MAX_SIZE": BOOTSTRAP_HEAP_MAX_SIZE,
    "DISCOVERY_ZEN_MINIMUM_MASTER_NODES": DISCOVERY_ZEN_MINIMUM_MASTER_NODES,
}

_TRUE_VALUES = frozenset(["true", "1", "yes", "on"])
_FALSE_VALUES = frozenset(["false", "0", "no", "off"])

_BYTE_UNITS = {
    "b": 1,
    "kb": 1 << 10,
    "k": 1 << 10,
    "mb": 1 << 20,
    "m": 1 << 20,
    "gb": 1 << 30,
    "g": 1 << 30,
    "tb": 1 << 40,
    "t": 1 << 40,
}

_BYTE_SIZE_RE = re.compile(r"^\s*(\d+)\s*([a-zA-Z]*)\s*$")


class SettingsError(ValueError):
    """Raised when a setting holds a value that cannot be parsed."""
    pass


def parse_byte_size(key: str, raw: str) -> int:
    """Parse '512mb', '1g', '1048576' into a byte count."""
    match = _BYTE_SIZE_RE.match(raw)
    if not match:
        raise SettingsError(f"failed to parse setting [{key}] with value [{raw}] as a size in bytes")
    number, unit = match.groups()
    unit = unit.lower() or "b"
    if unit not in _BYTE_UNITS:
        raise SettingsError(
            f"failed to parse setting [{key}] with value [{raw}]: unknown unit [{unit}]"
        )
    return int(number) * _BYTE_UNITS[unit]


class Settings:
    """Immutable view over the resolved node settings."""

    def __init__(self, values: Optional[Mapping[str, str]] = None):
        self._values: Dict[str, str] = {
            k: str(v) for k, v in (values or {}).items()
        }

    @classmethod
    def load(
        cls,
        overrides: Optional[Mapping[str, object]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "Settings":
        """Resolve defaults, then overrides, then SEARCHNODE_* env vars."""
        values: Dict[str, str] = dict(DEFAULTS)
        for key, val in (overrides or {}).items():
            values[key] = str(val)

        env = os.environ if environ is None else environ
        for name, val in env.items():
            if not name.startswith(ENV_PREFIX):
                continue
            suffix = name[len(ENV_PREFIX):]
            key = _ENV_KEYS.get(suffix)
            if key is None:
                key = suffix.lower().replace("_", ".")
                logger.debug(f"Unregistered setting from env: {name} -> {key}")
            values[key] = val
        return cls(values)

    def exists(self, key: str) -> bool:
        return key in self._values

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._values.get(key, default)

    def get_bool(self, key: str, default: bool = False) -> bool:
        raw = self._values.get(key)
        if raw is None:
            return default
        val = raw.strip().lower()
        if val in _TRUE_VALUES:
            return True
        if val in _FALSE_VALUES:
            return False
        raise SettingsError(
            f"failed to parse value [{raw}] for setting [{key}], expected true or false"
        )

    def get_int(self, key: str, default: int = 0) -> int:
        raw = self._values.get(key)
        if raw is None:
            return default
        try:
            return int(raw.strip())
        except ValueError:
            raise SettingsError(
                f"failed to parse value [{raw}] for setting [{key}] as an integer"
            ) from None

    def get_bytes(self, key: str, default: int = 0) -> int:
        raw = self._values.get(key)
        if raw is None:
            return default
        return parse_byte_size(key, raw)

    @property
    def node_name(self) -> str:
        return self._values.get(NODE_NAME) or DEFAULTS[NODE_NAME]

    def as_dict(self) -> Dict[str, str]:
        return dict(self._values)

    def __repr__(self) -> str:
        return f"Settings({self._values!r})"
