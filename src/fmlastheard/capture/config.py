# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Configuration management for the capture and processing layers.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .streams import CONSUMER_GROUP, MESSAGE_QUEUE_STREAM, NODES_TOPIC, TALKER_TOPIC

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDE_PATTERNS = [r"^TG\d*$", r"^\*"]


@dataclass
class Config:
    """Runtime configuration container."""

    # MQTT settings
    mqtt_host: str = "mqtt.fm-funknetz.de"
    mqtt_port: int = 1883
    mqtt_keepalive: int = 60
    mqtt_client_id: str = field(default_factory=lambda: f"fmlastheard-{os.getpid()}")
    mqtt_topics: List[str] = field(default_factory=lambda: [TALKER_TOPIC, NODES_TOPIC])

    # Redis settings
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_socket_timeout: float = 5.0
    stream_name: str = MESSAGE_QUEUE_STREAM
    stream_max_length: int = 10000
    consumer_group: str = CONSUMER_GROUP
    block_ms: int = 1000

    # Database settings
    db_path: Path = field(default_factory=lambda: Path.home() / ".fmlastheard" / "lastheard.db")
    db_timeout: float = 10.0

    # Ingest settings
    exclude_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS))
    presence_ttl_seconds: int = 180

    # Retention settings
    retention_mode: str = "age"  # age, count
    retention_max_age_days: int = 35
    retention_max_rows: int = 1000

    # Stats settings
    stats_interval_seconds: int = 600
    stats_window_days: int = 30
    heatmap_days: int = 7
    top_n: int = 10
    min_session_seconds: float = 5.0

    # Logging
    log_level: str = "INFO"

    # Config file path
    config_path: Optional[Path] = None

    def __post_init__(self):
        """Initialize configuration after creation."""
        if self.config_path is None:
            self.config_path = Path.home() / ".fmlastheard" / "config.yaml"
        self.config_path = Path(self.config_path).expanduser()

        if self.config_path.exists():
            self.load_from_file()

        self.load_from_env()
        self.db_path = Path(self.db_path).expanduser()

    def load_from_file(self):
        """Load configuration from YAML file."""
        try:
            with open(self.config_path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not load config file {self.config_path}: {e}")
            return

        if not isinstance(data, dict):
            logger.warning(f"Ignoring config file {self.config_path}: top level is not a mapping")
            return

        mqtt = self._section(data, "mqtt")
        self.mqtt_host = mqtt.get("host", self.mqtt_host)
        self.mqtt_port = int(mqtt.get("port", self.mqtt_port))
        self.mqtt_keepalive = int(mqtt.get("keepalive", self.mqtt_keepalive))
        self.mqtt_client_id = mqtt.get("client_id", self.mqtt_client_id)
        self.mqtt_topics = list(mqtt.get("topics", self.mqtt_topics))

        redis_cfg = self._section(data, "redis")
        self.redis_host = redis_cfg.get("host", self.redis_host)
        self.redis_port = int(redis_cfg.get("port", self.redis_port))
        self.redis_db = int(redis_cfg.get("db", self.redis_db))
        self.redis_socket_timeout = float(redis_cfg.get("socket_timeout", self.redis_socket_timeout))
        self.stream_name = redis_cfg.get("stream", self.stream_name)
        self.stream_max_length = int(redis_cfg.get("max_length", self.stream_max_length))
        self.consumer_group = redis_cfg.get("consumer_group", self.consumer_group)
        self.block_ms = int(redis_cfg.get("block_ms", self.block_ms))

        database = self._section(data, "database")
        self.db_path = Path(database.get("path", self.db_path))
        self.db_timeout = float(database.get("timeout", self.db_timeout))

        ingest = self._section(data, "ingest")
        self.exclude_patterns = list(ingest.get("exclude_patterns", self.exclude_patterns) or [])
        self.presence_ttl_seconds = int(ingest.get("presence_ttl_seconds", self.presence_ttl_seconds))

        retention = self._section(data, "retention")
        self.retention_mode = retention.get("mode", self.retention_mode)
        self.retention_max_age_days = int(retention.get("max_age_days", self.retention_max_age_days))
        self.retention_max_rows = int(retention.get("max_rows", self.retention_max_rows))

        stats = self._section(data, "stats")
        self.stats_interval_seconds = int(stats.get("interval_seconds", self.stats_interval_seconds))
        self.stats_window_days = int(stats.get("window_days", self.stats_window_days))
        self.heatmap_days = int(stats.get("heatmap_days", self.heatmap_days))
        self.top_n = int(stats.get("top_n", self.top_n))
        self.min_session_seconds = float(stats.get("min_session_seconds", self.min_session_seconds))

        logging_cfg = self._section(data, "logging")
        self.log_level = logging_cfg.get("level", self.log_level)

    @staticmethod
    def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
        section = data.get(name, {})
        if not isinstance(section, dict):
            logger.warning(f"Config section '{name}' is not a mapping, using defaults")
            return {}
        return section

    def load_from_env(self):
        """Load configuration from environment variables."""
        if env_db := os.environ.get("FMLH_DB_PATH"):
            self.db_path = Path(env_db)

        if env_mqtt := os.environ.get("FMLH_MQTT_HOST"):
            self.mqtt_host = env_mqtt

        if env_port := os.environ.get("FMLH_MQTT_PORT"):
            self.mqtt_port = int(env_port)

        if env_redis := os.environ.get("FMLH_REDIS_HOST"):
            self.redis_host = env_redis

        if env_level := os.environ.get("FMLH_LOG_LEVEL"):
            self.log_level = env_level

    def save_to_file(self):
        """Save current configuration to YAML file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "mqtt": {
                "host": self.mqtt_host,
                "port": self.mqtt_port,
                "keepalive": self.mqtt_keepalive,
                "topics": self.mqtt_topics,
            },
            "redis": {
                "host": self.redis_host,
                "port": self.redis_port,
                "db": self.redis_db,
                "socket_timeout": self.redis_socket_timeout,
                "stream": self.stream_name,
                "max_length": self.stream_max_length,
                "consumer_group": self.consumer_group,
                "block_ms": self.block_ms,
            },
            "database": {
                "path": str(self.db_path),
                "timeout": self.db_timeout,
            },
            "ingest": {
                "exclude_patterns": self.exclude_patterns,
                "presence_ttl_seconds": self.presence_ttl_seconds,
            },
            "retention": {
                "mode": self.retention_mode,
                "max_age_days": self.retention_max_age_days,
                "max_rows": self.retention_max_rows,
            },
            "stats": {
                "interval_seconds": self.stats_interval_seconds,
                "window_days": self.stats_window_days,
                "heatmap_days": self.heatmap_days,
                "top_n": self.top_n,
                "min_session_seconds": self.min_session_seconds,
            },
            "logging": {
                "level": self.log_level,
            },
        }

        with open(self.config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            k: (str(v) if isinstance(v, Path) else v)
            for k, v in self.__dict__.items()
            if not k.startswith("_") and k != "config_path"
        }

    def validate(self) -> bool:
        """Validate configuration values."""
        errors = []

        if self.retention_mode not in ("age", "count"):
            errors.append("retention.mode must be 'age' or 'count'")

        if self.retention_mode == "age" and self.retention_max_age_days < self.stats_window_days:
            errors.append("retention.max_age_days must cover stats.window_days")

        if self.retention_max_rows <= 0:
            errors.append("retention.max_rows must be positive")

        if self.presence_ttl_seconds <= 0:
            errors.append("ingest.presence_ttl_seconds must be positive")

        if self.stats_interval_seconds <= 0:
            errors.append("stats.interval_seconds must be positive")

        if self.heatmap_days <= 0 or self.stats_window_days <= 0:
            errors.append("stats window lengths must be positive")

        if self.top_n <= 0:
            errors.append("stats.top_n must be positive")

        if not 0 < self.mqtt_port < 65536:
            errors.append("mqtt.port must be a valid TCP port")

        if errors:
            for error in errors:
                logger.error(f"Configuration error: {error}")
            return False

        return True
