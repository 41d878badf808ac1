"""System utility checks."""

from __future__ import annotations

import shutil

from shelltask.services.executor import default_shell_wrapper


def check_shell(host_kind: str) -> tuple[bool, str]:
    """Check that the shell used for this host kind is on PATH."""
    program = default_shell_wrapper(host_kind)[0]
    path = shutil.which(program)
    if not path:
        return False, f"Shell '{program}' not found on PATH"
    return True, path
