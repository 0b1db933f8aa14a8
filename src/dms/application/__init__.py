"""
src/dms/application/__init__.py
Application Layer (engine, preflight, secret input)
"""

from .switch_engine import SwitchEngine, SwitchHandle, TickAction, TickResult

__all__ = ["SwitchEngine", "SwitchHandle", "TickAction", "TickResult"]
