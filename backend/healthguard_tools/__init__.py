from .core_tools import HealthGuardToolset, check_reminder_time, register_tools

__all__ = ["HealthGuardToolset", "check_reminder_time", "register_tools"]
