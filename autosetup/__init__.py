"""podman-autosetup — host provisioning and Quadlet deployment orchestrator."""

__version__ = "0.1.0"
