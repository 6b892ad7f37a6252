"""todograph domain models.

Pydantic models for tasks, lists, operation results, configuration and the
reversible command records kept in the undo log.
"""

from .commands import Command, CompositeCommand, dump_command, load_command
from .config_models import AppConfig, LockConfig, UndoConfig
from .core import Priority, Task, TaskList, TaskStatus
from .results import Error, NoChange, NotFound, Success, TaskResult

__all__ = [
    # Core models
    "Task",
    "TaskList",
    "TaskStatus",
    "Priority",
    # Results
    "Success",
    "NotFound",
    "NoChange",
    "Error",
    "TaskResult",
    # Commands
    "Command",
    "CompositeCommand",
    "dump_command",
    "load_command",
    # Config
    "AppConfig",
    "UndoConfig",
    "LockConfig",
]
