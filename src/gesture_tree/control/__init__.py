"""Application mode control."""
from .mode_machine import ModeStateMachine

__all__ = ["ModeStateMachine"]
