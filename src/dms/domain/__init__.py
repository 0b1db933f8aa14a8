"""
src/dms/domain/__init__.py
Domain Models (state, errors, ids)
"""

from .errors import ConfigInvalidError, DeadMansSwitchError, NotificationError, PreflightError
from .ids import generate_code
from .state import EngineState, Phase, SwitchConfig

__all__ = [
    "ConfigInvalidError",
    "DeadMansSwitchError",
    "NotificationError",
    "PreflightError",
    "generate_code",
    "EngineState",
    "Phase",
    "SwitchConfig",
]
