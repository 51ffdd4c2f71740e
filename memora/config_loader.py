"""
Permission configuration loader.

Reads the role -> capability grants from YAML and turns them into a
PermissionConfig. The result is a plain value: callers hand it to the
guards (the API keeps it on app.state.permissions).
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from memora.auth.capabilities import Capability, PermissionConfig, parse_capability
from memora.auth.roles import Role, parse_role

logger = logging.getLogger(__name__)

DEFAULT_PERMISSIONS_FILE = Path(__file__).parent / "auth" / "permissions.yaml"


class ConfigLoader:
    """
    Loads capability grants from a YAML file.

    Expected shape:

        grants:
          Guest: [groups:view, projects:view]
          Manager: [projects:create]

    Unknown role or capability names are rejected; a typo in the file must
    not silently drop a permission.
    """

    def __init__(self, path: Path | str | None = None):
        self.path = Path(path) if path else DEFAULT_PERMISSIONS_FILE

    def load(self) -> PermissionConfig:
        """Load and validate the configured file."""
        with open(self.path) as f:
            data = yaml.safe_load(f) or {}

        config = self.from_dict(data)
        logger.info("Loaded capability map from %s", self.path)
        return config

    @staticmethod
    def from_dict(data: dict[str, Any]) -> PermissionConfig:
        """Build a PermissionConfig from already-parsed YAML."""
        raw_grants = data.get("grants") or {}
        if not isinstance(raw_grants, dict):
            raise ValueError("'grants' must be a mapping of role -> capabilities")

        grants: dict[Role, list[Capability]] = {}
        for role_name, capability_names in raw_grants.items():
            role = parse_role(role_name)
            if role is None:
                raise ValueError(f"Unknown role in permissions file: {role_name!r}")

            capabilities: list[Capability] = []
            for name in capability_names or []:
                capability = parse_capability(name)
                if capability is None:
                    raise ValueError(f"Unknown capability for {role.value}: {name!r}")
                capabilities.append(capability)
            grants[role] = capabilities

        return PermissionConfig.from_grants(grants)


def load_permission_config(path: Path | str | None = None) -> PermissionConfig:
    """
    Convenience function to load a capability map.

    Args:
        path: YAML file to read; defaults to the packaged permissions.yaml
    """
    return ConfigLoader(path).load()


@lru_cache
def default_permission_config() -> PermissionConfig:
    """The packaged capability map, loaded once."""
    return load_permission_config()
