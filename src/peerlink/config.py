"""Configuration management for peerlink."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import yaml


DEFAULT_STUN_SERVERS = [
    "stun:stun.l.google.com:19302",
    "stun:stun.cloudflare.com:3478",
]


@dataclass
class PeerConfig:
    """Per-peer transport and timeout settings.

    A timeout of None waits forever.
    """

    stun_servers: list[str] = field(default_factory=lambda: DEFAULT_STUN_SERVERS.copy())
    gather_timeout: float | None = None  # seconds
    handler_timeout: float | None = None  # seconds
    connect_timeout: float | None = None  # seconds


@dataclass
class SignalingConfig:
    """HTTP rendezvous server configuration."""

    host: str = "0.0.0.0"
    port: int = 8821
    signaling_timeout: float = 30.0  # seconds


@dataclass
class Config:
    """peerlink configuration."""

    log_level: str = "INFO"
    log_file: str | None = None
    timing_log_level: str | None = None  # None inherits log_level
    peer: PeerConfig = field(default_factory=PeerConfig)
    signaling: SignalingConfig = field(default_factory=SignalingConfig)


def get_config_path(custom_path: Path | None = None) -> Path:
    """Get the configuration file path.

    Args:
        custom_path: Override path. If None, returns default.

    Returns:
        Path to config file.
    """
    if custom_path is not None:
        return custom_path
    return Path.home() / ".config" / "peerlink" / "config.yaml"


def _default_file_reader(path: Path) -> dict[str, Any] | None:
    """Default file reader that loads YAML from disk."""
    if not path.exists():
        return None
    try:
        content = path.read_text()
        if not content.strip():
            return None
        return yaml.safe_load(content)
    except yaml.YAMLError:
        return None


def load_config(
    path: Path | None = None,
    file_reader: Callable[[Path], dict[str, Any] | None] | None = None,
) -> Config:
    """Load configuration from file.

    Args:
        path: Path to config file. If None, uses default path.
        file_reader: Injectable file reader for testing.

    Returns:
        Config object with values from file or defaults.
    """
    config_path = get_config_path(path)
    reader = file_reader or _default_file_reader

    data = reader(config_path)

    if not isinstance(data, dict):
        return Config()

    # STUN servers live at the top level of the file
    peer_data = data.get("peer") or {}
    peer_config = PeerConfig(
        stun_servers=data.get("stun_servers", DEFAULT_STUN_SERVERS.copy()),
        gather_timeout=peer_data.get("gather_timeout", PeerConfig.gather_timeout),
        handler_timeout=peer_data.get("handler_timeout", PeerConfig.handler_timeout),
        connect_timeout=peer_data.get("connect_timeout", PeerConfig.connect_timeout),
    )

    signaling_data = data.get("signaling") or {}
    signaling_config = SignalingConfig(
        host=signaling_data.get("host", SignalingConfig.host),
        port=signaling_data.get("port", SignalingConfig.port),
        signaling_timeout=signaling_data.get(
            "signaling_timeout", SignalingConfig.signaling_timeout
        ),
    )

    return Config(
        log_level=data.get("log_level", Config.log_level),
        log_file=data.get("log_file", Config.log_file),
        timing_log_level=data.get("timing_log_level", Config.timing_log_level),
        peer=peer_config,
        signaling=signaling_config,
    )
