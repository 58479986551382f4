"""
FrameCast Configuration
=======================

This module handles configuration loading for the relay server and peers.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    PORT                    -> server.port
    FRAMECAST_PORT          -> server.port (when PORT is unset)
    FRAMECAST_STATIC_DIR    -> server.static_dir
    FRAMECAST_SERVER_URL    -> client.server_url
    FRAMECAST_CAMERA_INDEX  -> capture.camera_index
    FRAMECAST_LOG_LEVEL     -> logging.level

Example:
    from framecast.config import settings

    print(settings.server.port)
    print(settings.capture.interval_ms)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class ServerConfig(BaseModel):
    """Relay server configuration."""

    name: str = Field(default="framecast-relay", description="Service name")
    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=3000, ge=1, le=65535, description="Bind port")
    static_dir: str = Field(
        default="public",
        description="Directory of client assets served at '/' (skipped if missing)",
    )


class CaptureConfig(BaseModel):
    """Outbound capture configuration for capturing peers."""

    camera_index: int = Field(default=0, ge=0, description="OpenCV camera index")
    interval_ms: int = Field(
        default=100,
        ge=10,
        description="Period between captured frames (100 ms ~ 10 fps)",
    )
    jpeg_quality: int = Field(
        default=50,
        ge=1,
        le=100,
        description="JPEG quality used when encoding frames",
    )


class ClientConfig(BaseModel):
    """Peer client configuration."""

    server_url: str = Field(
        default="ws://localhost:3000/ws",
        description="WebSocket URL of the relay",
    )
    open_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Seconds to wait for the WebSocket handshake",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for FrameCast.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    server: ServerConfig = Field(default_factory=ServerConfig)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.debug("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Server settings (PORT wins, as on most hosting platforms)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("FRAMECAST_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    if env_static := os.environ.get("FRAMECAST_STATIC_DIR"):
        config_data.setdefault("server", {})["static_dir"] = env_static

    # Peer settings
    if env_url := os.environ.get("FRAMECAST_SERVER_URL"):
        config_data.setdefault("client", {})["server_url"] = env_url
    if env_camera := os.environ.get("FRAMECAST_CAMERA_INDEX"):
        config_data.setdefault("capture", {})["camera_index"] = int(env_camera)

    # Logging settings
    if env_log := os.environ.get("FRAMECAST_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
