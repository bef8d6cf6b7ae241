"""Context variables for structured logging."""

from contextvars import ContextVar
from typing import Dict, Optional

_command: ContextVar[str] = ContextVar("command", default="")
_operation_id: ContextVar[str] = ContextVar("operation_id", default="")
_stage_name: ContextVar[str] = ContextVar("stage_name", default="")


def set_log_context(
    command: Optional[str] = None,
    operation_id: Optional[str] = None,
    stage: Optional[str] = None,
) -> None:
    if command is not None:
        _command.set(command)
    if operation_id is not None:
        _operation_id.set(operation_id)
    if stage is not None:
        _stage_name.set(stage)


def get_log_context() -> Dict[str, str]:
    return {
        "command": _command.get(),
        "operation_id": _operation_id.get(),
        "stage": _stage_name.get(),
    }


def clear_log_context() -> None:
    _command.set("")
    _operation_id.set("")
    _stage_name.set("")
