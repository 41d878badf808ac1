"""Configuration management using TOML + environment variables."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomllib
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore[no-redef]

import tomli_w

CONFIG_DIR = Path.home() / ".shelltask"
CONFIG_FILE = CONFIG_DIR / "config.toml"

DEFAULT_UNSAFE_PATTERN = r"[;&|`$><]"
DEFAULT_SUBSHELL_PATTERN = r"\$\("
DEFAULT_DANGEROUS_WORDS: list[str] = [
    "rm",
    "del",
    "shutdown",
    "reboot",
    "mkfs",
    "format",
    "poweroff",
    "halt",
    "kill",
    "dd",
    "userdel",
    "usermod",
]
DEFAULT_ALLOWED_COMMANDS: list[str] = ["echo", "ls", "dir", "whoami", "date", "pwd"]


@dataclass
class PolicyConfig:
    unsafe_pattern: str = DEFAULT_UNSAFE_PATTERN
    subshell_pattern: str = DEFAULT_SUBSHELL_PATTERN
    dangerous_words: list[str] = field(default_factory=lambda: list(DEFAULT_DANGEROUS_WORDS))
    allowed_commands: list[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_COMMANDS))


@dataclass
class ExecutorConfig:
    timeout: int = 30


@dataclass
class StorageConfig:
    db_path: str = "~/.shelltask/tasks.db"


@dataclass
class LoggingConfig:
    level: str = "WARNING"
    file: str = "~/.shelltask/shelltask.log"


@dataclass
class AppConfig:
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    executor: ExecutorConfig = field(default_factory=ExecutorConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def ensure_config_dir() -> None:
    """Create config directory with secure permissions."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    os.chmod(CONFIG_DIR, 0o700)


def load_config() -> AppConfig:
    """Load configuration from TOML file with env var overrides."""
    config = AppConfig()

    if CONFIG_FILE.exists():
        with open(CONFIG_FILE, "rb") as f:
            data = tomllib.load(f)

        policy = data.get("policy", {})
        config.policy.unsafe_pattern = policy.get("unsafe_pattern", config.policy.unsafe_pattern)
        config.policy.subshell_pattern = policy.get("subshell_pattern", config.policy.subshell_pattern)
        config.policy.dangerous_words = policy.get("dangerous_words", config.policy.dangerous_words)
        config.policy.allowed_commands = policy.get("allowed_commands", config.policy.allowed_commands)

        executor = data.get("executor", {})
        config.executor.timeout = executor.get("timeout", config.executor.timeout)

        storage = data.get("storage", {})
        config.storage.db_path = storage.get("db_path", config.storage.db_path)

        logging_cfg = data.get("logging", {})
        config.logging.level = logging_cfg.get("level", config.logging.level)
        config.logging.file = logging_cfg.get("file", config.logging.file)

    # Environment variable overrides
    if env_timeout := os.environ.get("SHELLTASK_TIMEOUT"):
        config.executor.timeout = int(env_timeout)
    if env_allowed := os.environ.get("SHELLTASK_ALLOWED_COMMANDS"):
        config.policy.allowed_commands = _split_list(env_allowed)
    if env_words := os.environ.get("SHELLTASK_DANGEROUS_WORDS"):
        config.policy.dangerous_words = _split_list(env_words)
    if env_unsafe := os.environ.get("SHELLTASK_UNSAFE_PATTERN"):
        config.policy.unsafe_pattern = env_unsafe
    if env_subshell := os.environ.get("SHELLTASK_SUBSHELL_PATTERN"):
        config.policy.subshell_pattern = env_subshell
    if env_db := os.environ.get("SHELLTASK_DB_PATH"):
        config.storage.db_path = env_db
    if env_log_level := os.environ.get("SHELLTASK_LOG_LEVEL"):
        config.logging.level = env_log_level
    if env_log_file := os.environ.get("SHELLTASK_LOG_FILE"):
        config.logging.file = env_log_file

    return config


def save_config(config: AppConfig) -> None:
    """Save configuration to TOML file."""
    ensure_config_dir()

    data = {
        "policy": {
            "unsafe_pattern": config.policy.unsafe_pattern,
            "subshell_pattern": config.policy.subshell_pattern,
            "dangerous_words": config.policy.dangerous_words,
            "allowed_commands": config.policy.allowed_commands,
        },
        "executor": {
            "timeout": config.executor.timeout,
        },
        "storage": {
            "db_path": config.storage.db_path,
        },
        "logging": {
            "level": config.logging.level,
            "file": config.logging.file,
        },
    }

    with open(CONFIG_FILE, "wb") as f:
        tomli_w.dump(data, f)

    os.chmod(CONFIG_FILE, 0o600)


# Global singleton
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get or load the global config singleton."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Reset the global config (for testing)."""
    global _config
    _config = None
