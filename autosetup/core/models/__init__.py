"""
Domain models — Pydantic types for the provisioning run.

All models are re-exported here for convenient access:

    from autosetup.core.models import AutosetupConfig, Target, Receipt, Outcome
"""

from autosetup.core.models.action import Receipt
from autosetup.core.models.deployment import (
    AutosetupConfig,
    BashCompletionSettings,
    ChronySettings,
    HostSettings,
    SnmpSettings,
    SshBannerSettings,
    Target,
    ToolPaths,
    service_name_for,
)
from autosetup.core.models.outcome import Outcome

__all__ = [
    # deployment.py
    "AutosetupConfig",
    "BashCompletionSettings",
    "ChronySettings",
    "HostSettings",
    # outcome.py
    "Outcome",
    # action.py
    "Receipt",
    "SnmpSettings",
    "SshBannerSettings",
    "Target",
    "ToolPaths",
    "service_name_for",
]
