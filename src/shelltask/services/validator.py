"""Command safety gate: blocklist first, then a first-token allow-list.

The check is lexical only. Commands are not parsed the way a shell would
parse them, so an allow-listed verb combined with an expansion the patterns
do not cover can still get through. There is no OS-level sandbox behind it.
"""

from __future__ import annotations

import logging
import re

from shelltask.config import PolicyConfig

logger = logging.getLogger(__name__)


def _compile(pattern: str, flags: int = 0) -> re.Pattern[str]:
    try:
        return re.compile(pattern, flags)
    except re.error as e:
        raise ValueError(f"Invalid policy pattern {pattern!r}: {e}") from e


class CommandValidator:
    """Decide whether a command line may be handed to the shell."""

    def __init__(self, policy: PolicyConfig | None = None) -> None:
        self.policy = policy or PolicyConfig()
        self._unsafe = _compile(self.policy.unsafe_pattern)
        self._subshell = _compile(self.policy.subshell_pattern)
        self._dangerous: re.Pattern[str] | None = None
        if self.policy.dangerous_words:
            words = "|".join(re.escape(w) for w in self.policy.dangerous_words)
            self._dangerous = _compile(rf"\b({words})\b", re.IGNORECASE)
        self._allowed = {c.strip().lower() for c in self.policy.allowed_commands if c.strip()}

    def check(self, command: str | None) -> tuple[bool, str]:
        """Check a command. Returns (safe, reason)."""
        if command is None or not command.strip():
            return self._reject(command, "empty command")
        trimmed = command.strip()

        if self._unsafe.search(trimmed):
            return self._reject(trimmed, "shell metacharacter")
        if self._subshell.search(trimmed):
            return self._reject(trimmed, "subshell")
        if self._dangerous is not None:
            match = self._dangerous.search(trimmed)
            if match:
                return self._reject(trimmed, f"dangerous command '{match.group(0)}'")

        verb = trimmed.split(maxsplit=1)[0].lower()
        if verb not in self._allowed:
            return self._reject(trimmed, f"'{verb}' is not an allowed command")
        return True, ""

    def is_safe(self, command: str | None) -> bool:
        safe, _ = self.check(command)
        return safe

    @staticmethod
    def _reject(command: str | None, reason: str) -> tuple[bool, str]:
        logger.warning("Rejected command: %r (reason: %s)", command, reason)
        return False, reason
