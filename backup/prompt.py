"""Interactive choice of a log action for tasks the manifest leaves open."""
from __future__ import annotations

from typing import Callable, Optional

from .types import BackupTask, LogAction

_CHOICES = "[i]nclude / [e]xclude / [d]elete"


def interactive_resolver(
    default: LogAction,
    *,
    input_func: Callable[[str], str] = input,
    output: Callable[[str], None] = print,
) -> Callable[[BackupTask], LogAction]:
    """Return a resolver that asks the user once per task.

    A blank answer picks *default*. Appending ``a`` (``ea``, ``da``...) applies
    the answer to every remaining task without asking again. End of input
    falls back to *default* for the rest of the run.
    """

    sticky: Optional[LogAction] = None

    def resolve(task: BackupTask) -> LogAction:
        nonlocal sticky
        if sticky is not None:
            return sticky
        prompt = f"Log files found in {task.folder_label} ({task.source_path}). {_CHOICES} [{default.value}]: "
        while True:
            try:
                answer = input_func(prompt).strip().lower()
            except EOFError:
                sticky = default
                return default
            if not answer:
                return default
            apply_all = len(answer) > 1 and answer.endswith("a")
            action = LogAction.parse(answer[:-1] if apply_all else answer)
            if action is None:
                output(f"Please answer one of {_CHOICES}.")
                continue
            if apply_all:
                sticky = action
            return action

    return resolve


__all__ = ["interactive_resolver"]
