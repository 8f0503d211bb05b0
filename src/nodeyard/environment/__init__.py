"""Managed runtime environments for nodes (best effort)."""

from nodeyard.environment.provisioner import (
    EnvironmentProvisioner,
    FrameworkProvisioner,
    NpmProvisioner,
    NullProvisioner,
    ProvisionResult,
    VenvProvisioner,
)

__all__ = [
    "EnvironmentProvisioner",
    "FrameworkProvisioner",
    "NpmProvisioner",
    "NullProvisioner",
    "ProvisionResult",
    "VenvProvisioner",
]
