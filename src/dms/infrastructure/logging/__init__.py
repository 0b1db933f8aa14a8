from .switch_event_logger import (
    SwitchEventValidationError,
    build_switch_event,
    log_switch_event,
    validate_switch_event_schema,
)

__all__ = [
    "SwitchEventValidationError",
    "build_switch_event",
    "log_switch_event",
    "validate_switch_event_schema",
]
