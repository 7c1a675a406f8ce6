"""Configuration management for the overcommit webhook.

Loads YAML-based configs and provides typed dataclasses for all settings.
The node label rule can additionally be overridden from the environment,
which is how the webhook deployment sets it.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional

import yaml


ENV_LABEL_KEY = "WEBHOOK_NODE_LABEL_KEY"
ENV_LABEL_VALUES = "WEBHOOK_NODE_LABEL_VALUES"

DEFAULT_LABEL_KEY = "image_type"
DEFAULT_LABEL_VALUE = "windows"


@dataclass
class NodeFilterConfig:
    """Label rule selecting the nodes that count toward Windows capacity.

    A node is eligible when its ``label_key`` label is set to one of
    ``label_values``.
    """
    label_key: str = DEFAULT_LABEL_KEY
    label_values: List[str] = field(default_factory=lambda: [DEFAULT_LABEL_VALUE])


@dataclass
class ServerConfig:
    """HTTPS server settings."""
    host: str = "0.0.0.0"
    port: int = 8443
    tls_cert_file: Optional[str] = "/ssl_certs/tls.crt"
    tls_key_file: Optional[str] = "/ssl_certs/tls.key"


@dataclass
class ClusterConfig:
    """Cluster API access settings."""
    kubeconfig: Optional[str] = None  # None = in-cluster, then default kubeconfig
    request_timeout_sec: float = 10.0


@dataclass
class SystemConfig:
    """Top-level configuration combining all subsystems."""
    node_filter: NodeFilterConfig = field(default_factory=NodeFilterConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    cluster: ClusterConfig = field(default_factory=ClusterConfig)


def parse_label_values(raw) -> List[str]:
    """Normalize label values given as a comma-separated string or a list.

    Blank entries are dropped. An empty result means "unset".
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        items = raw.split(",")
    else:
        items = [str(item) for item in raw]
    return [item.strip() for item in items if item.strip()]


def _merge_section(section, raw: Mapping) -> None:
    for k, v in raw.items():
        if hasattr(section, k):
            setattr(section, k, v)


def _normalize_node_filter(node_filter: NodeFilterConfig) -> None:
    if not node_filter.label_key:
        node_filter.label_key = DEFAULT_LABEL_KEY

    values = parse_label_values(node_filter.label_values)
    node_filter.label_values = values or [DEFAULT_LABEL_VALUE]


def load_config(
    config_path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> SystemConfig:
    """Load configuration from a YAML file and the environment.

    If no path is provided, looks for configs/default.yaml relative to
    the project root, then falls back to defaults. The label rule
    environment variables win over the file when they are set and
    non-empty.

    Args:
        config_path: Optional path to a YAML config file.
        environ: Environment mapping, defaults to ``os.environ``.

    Returns:
        Populated SystemConfig instance.
    """
    config = SystemConfig()
    if environ is None:
        environ = os.environ

    if config_path is None:
        project_root = Path(__file__).parent.parent.parent.parent
        default_path = project_root / "configs" / "default.yaml"
        if default_path.exists():
            config_path = str(default_path)

    if config_path and os.path.exists(config_path):
        with open(config_path, "r") as f:
            raw = yaml.safe_load(f) or {}

        if "node_filter" in raw:
            _merge_section(config.node_filter, raw["node_filter"] or {})

        if "server" in raw:
            _merge_section(config.server, raw["server"] or {})

        if "cluster" in raw:
            _merge_section(config.cluster, raw["cluster"] or {})

    label_key = environ.get(ENV_LABEL_KEY, "")
    if label_key:
        config.node_filter.label_key = label_key

    label_values = parse_label_values(environ.get(ENV_LABEL_VALUES, ""))
    if label_values:
        config.node_filter.label_values = label_values

    _normalize_node_filter(config.node_filter)
    return config
