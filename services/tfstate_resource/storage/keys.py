"""
Key naming for remote state files.

These names are the wire contract with existing buckets and must not change.
All keys are relative to the storage driver's configured prefix.
"""

STATE_SUFFIX = ".tfstate"
TAINTED_SUFFIX = ".tainted"

# Regex matching every normal state file directly under the prefix. Tainted
# markers end in ".tfstate.tainted" and keys in subdirectories have no
# environment name of their own; neither is matched.
ALL_STATE_FILES_PATTERN = r"[^/]+\.tfstate"


def state_key(env_name: str) -> str:
    """Key for an environment's state file."""
    return f"{env_name}{STATE_SUFFIX}"


def tainted_state_key(env_name: str) -> str:
    """Key for an environment's quarantined (tainted) state file."""
    return f"{state_key(env_name)}{TAINTED_SUFFIX}"


def env_name_from_key(key: str) -> str:
    """Recover the environment name from a normal or tainted key.

    Inverse of state_key and tainted_state_key: only the suffixes are removed.
    """
    name = key
    if name.endswith(TAINTED_SUFFIX):
        name = name[: -len(TAINTED_SUFFIX)]
    if name.endswith(STATE_SUFFIX):
        name = name[: -len(STATE_SUFFIX)]
    return name


def normalize_prefix(prefix: str) -> str:
    """Bucket path without leading or trailing slashes."""
    return prefix.strip("/")


def join_prefix(prefix: str, key: str) -> str:
    """Object name of `key` under a normalized prefix."""
    return f"{prefix}/{key}" if prefix else key


def strip_prefix(prefix: str, object_name: str) -> str:
    """Inverse of join_prefix; names outside the prefix come back unchanged."""
    if prefix and object_name.startswith(prefix + "/"):
        return object_name[len(prefix) + 1 :]
    return object_name


def listing_prefix(prefix: str) -> str:
    """Prefix to list under: every object below the bucket path, and nothing beside it."""
    return f"{prefix}/" if prefix else ""
