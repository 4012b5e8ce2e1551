# config.py

import os
import logging
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import BaseModel, Field

from sync_runner import DEFAULT_SYNC_COMMAND

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"


class EmailSettings(BaseModel):
    smtp_server: Optional[str] = None
    smtp_port: int = 587
    use_tls: bool = True
    username: Optional[str] = None
    password: Optional[str] = None
    sender_email: Optional[str] = None
    recipients: List[str] = Field(default_factory=list)


class NotificationSettings(BaseModel):
    slack_webhook_url: str = ""
    email: Optional[EmailSettings] = None


class Settings(BaseModel):
    github_webhook_secret: str = ""
    host: str = "0.0.0.0"
    port: int = Field(0, ge=0, le=65535)
    sync_command: List[str] = Field(default_factory=lambda: list(DEFAULT_SYNC_COMMAND), min_length=1)
    watch_path: Optional[str] = None
    debug: bool = False
    log_db_path: Optional[str] = None
    log_max_entries: int = Field(10000, gt=0)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)


def load_config(path: str) -> Dict[str, Any]:
    """
    Load configuration from a YAML file.

    Returns:
        dict: Parsed configuration dictionary.
    """
    if not os.path.exists(path):
        logger.error(f"Configuration file '{path}' not found.")
        raise FileNotFoundError(f"Configuration file '{path}' not found.")

    try:
        with open(path, 'r') as f:
            config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        logger.error(f"Error parsing YAML file '{path}': {e}")
        raise

    if not isinstance(config, dict):
        raise ValueError(f"Configuration file '{path}' must contain a mapping.")
    logger.info(f"Configuration loaded successfully from '{path}'.")
    return config


def apply_env_overrides(config: Dict[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    """Override settings with environment variables (e.g., for CI/CD)."""
    config = dict(config)
    simple = {
        "WEBHOOK_SECRET": "github_webhook_secret",
        "PULLHOOK_HOST": "host",
        "PULLHOOK_PORT": "port",
        "DEBUG": "debug",
        "LOG_DB_PATH": "log_db_path",
    }
    for env_name, key in simple.items():
        if env_name in environ:
            config[key] = environ[env_name]

    notifications = dict(config.get("notifications") or {})
    if "SLACK_WEBHOOK_URL" in environ:
        notifications["slack_webhook_url"] = environ["SLACK_WEBHOOK_URL"]

    email_env = {
        "EMAIL_USERNAME": "username",
        "EMAIL_PASSWORD": "password",
        "SMTP_SERVER": "smtp_server",
        "SMTP_PORT": "smtp_port",
        "EMAIL_USE_TLS": "use_tls",
    }
    if any(name in environ for name in email_env):
        email = dict(notifications.get("email") or {})
        for env_name, key in email_env.items():
            if env_name in environ:
                email[key] = environ[env_name]
        notifications["email"] = email

    if notifications:
        config["notifications"] = notifications
    return config


def load_settings(
        config_path: Optional[str] = None,
        overrides: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """
    Build the settings from, in increasing priority: the YAML file, the
    environment, then explicit overrides (command line flags).

    A config path given explicitly (argument or CONFIG_PATH) must exist; when
    none is given, a missing default file means all defaults.
    """
    environ = os.environ if environ is None else environ
    path = config_path or environ.get("CONFIG_PATH")

    if path:
        config = load_config(path)
    elif os.path.exists(DEFAULT_CONFIG_PATH):
        config = load_config(DEFAULT_CONFIG_PATH)
    else:
        logger.info("No configuration file found. Using defaults.")
        config = {}

    config = apply_env_overrides(config, environ)
    for key, value in (overrides or {}).items():
        if value is not None:
            config[key] = value

    settings = Settings.model_validate(config)

    # Log summary of key settings (without sensitive details)
    logger.info(f"Sync command: {' '.join(settings.sync_command)}")
    logger.info(f"Slack notifications: {'enabled' if settings.notifications.slack_webhook_url else 'disabled'}")
    if settings.notifications.email is not None:
        logger.info(f"Email Recipients: {settings.notifications.email.recipients}")
    if not settings.github_webhook_secret:
        logger.warning("No webhook secret configured. Signature verification is disabled.")
    return settings
