"""Module containing the schemas for the pathguard package."""

from pathguard.schemas.check import CheckResult
from pathguard.schemas.policy import ConfinementPolicy

__all__ = ["CheckResult", "ConfinementPolicy"]
