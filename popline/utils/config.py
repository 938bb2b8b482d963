"""Configuration models and a JSON-backed manager for popline settings."""

import json
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator

from .errors import ConfigurationError, InvalidConfigError
from .logging import LogManager, get_logger, init_logging, log_call
from .paths import CONFIG_PATH

logger = get_logger(__name__)

VerifyMode = Literal["verify-peer", "no-verify"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class POP3Settings(BaseModel):
    """Pydantic model for a POP3 account."""

    host: str = ""
    port: Optional[int] = None  # None picks 110 or 995 from use_tls
    use_tls: bool = True
    verify_mode: VerifyMode = "verify-peer"
    ca_file: Optional[str] = None
    timeout: float = 30.0  # in seconds
    encoding: str = "utf-8"
    username: str = ""
    password: SecretStr = SecretStr("")

    @field_validator("port")
    @classmethod
    def _check_port(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and not 0 < value < 65536:
            raise ValueError(f"port out of range: {value}")
        return value

    @field_validator("timeout")
    @classmethod
    def _check_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout must be positive")
        return value


class LoggingConfig(BaseModel):
    """Pydantic model for logging settings."""

    log_level: LogLevel = "INFO"
    console_level: LogLevel = "WARNING"
    log_to_file: bool = False
    max_file_size: int = 5_242_880  # 5 MB
    backup_count: int = 5


class AppConfig(BaseModel):
    """Pydantic model for overall application configuration."""

    version: str = "0.1.0"
    account: POP3Settings = Field(default_factory=POP3Settings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class ConfigManager:
    """Loads, validates and persists the application configuration."""

    def __init__(self, config_path: Optional[Path] = None):
        self.path = Path(config_path) if config_path else CONFIG_PATH
        self.config = self._load_or_create_config()
        logger.info(f"Configuration loaded from {self.path}")

    def _load_or_create_config(self) -> AppConfig:
        """Load configuration from file or create default if not present."""

        if not self.path.exists():
            logger.info("No config file found, creating default configuration.")
            config = AppConfig()
            self._save_config(config)
            return config

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            config = AppConfig(**data)
            logger.debug("Configuration successfully loaded and validated.")
            return config

        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse config file: {e}")
            raise InvalidConfigError(
                f"Configuration file is not valid JSON: {str(e)}",
                details={"path": str(self.path)},
            ) from e
        except ValidationError as e:
            logger.error(f"Failed to validate config file: {e}")
            raise InvalidConfigError(
                f"Configuration data does not match expected schema: {str(e)}",
                details={"path": str(self.path)},
            ) from e
        except OSError as e:
            raise ConfigurationError(
                f"Failed to read configuration: {str(e)}",
                details={"path": str(self.path)},
            ) from e

    def _save_config(self, config: Optional[AppConfig] = None) -> None:
        """Save the current configuration to file.

        The password is written in clear text; keep the file private.
        """

        config = config or self.config
        data = config.model_dump(mode="json")
        data["account"]["password"] = config.account.password.get_secret_value()

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            logger.debug("Configuration successfully saved.")
        except OSError as e:
            raise ConfigurationError(
                f"Failed to write configuration file: {str(e)}",
                details={"path": str(self.path)},
            ) from e

    def get_account_config(self) -> POP3Settings:
        """Return the POP3 account settings."""
        return self.config.account

    def apply_logging(self, log_dir: Optional[Path] = None) -> LogManager:
        """Install log handlers from the ``logging`` section.

        ``log_dir`` overrides the default logs directory when file logging
        is enabled.
        """
        return init_logging(log_dir=log_dir, **self.config.logging.model_dump())

    @log_call
    def set_config(self, key_path: str, value: Any, persist: bool = True) -> None:
        """Set a configuration value using dot-separated key path.

        The updated model is re-validated before it replaces the current one.
        """

        keys = key_path.split(".")
        data = self.config.model_dump()
        data["account"]["password"] = self.config.account.password.get_secret_value()
        node = data

        for key in keys[:-1]:
            if not isinstance(node.get(key), dict):
                raise InvalidConfigError(
                    f"Configuration path '{key_path}' is invalid: '{key}' not found"
                )
            node = node[key]

        if keys[-1] not in node:
            raise InvalidConfigError(
                f"Configuration key '{keys[-1]}' does not exist in path '{key_path}'"
            )
        node[keys[-1]] = value

        try:
            self.config = AppConfig(**data)
        except ValidationError as e:
            raise InvalidConfigError(
                f"Invalid value for '{key_path}': {str(e)}",
                details={"key": key_path},
            ) from e

        if persist:
            self._save_config()

        logger.info(f"Config key '{key_path}' updated.")
