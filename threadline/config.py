"""
threadline.config — YAML Configuration Loader
==============================================

Reads ``config.yaml`` for the forum's soft settings (display labels, reply
depth, API port).  Secrets such as ``DATABASE_URL`` and ``JWT_SECRET`` stay in
the environment / ``.env`` and never appear here.

Usage::

    from threadline.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.forum_name)        # "University Forum"
    print(cfg.max_reply_depth)   # 3
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from threadline.constants import (
    DELETED_CONTENT_PLACEHOLDER,
    DELETED_USER_LABEL,
    MAX_REPLY_DEPTH,
)


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ThreadlineConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    forum_name: str

    # API
    api_port: int

    # Threading
    max_reply_depth: int = MAX_REPLY_DEPTH

    # Presentation
    deleted_user_label: str = DELETED_USER_LABEL
    deleted_content_placeholder: str = DELETED_CONTENT_PLACEHOLDER


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> ThreadlineConfig:
    """Read *path* and return a :class:`ThreadlineConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ValueError
        If ``max_reply_depth`` falls outside ``1..MAX_REPLY_DEPTH``.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    max_depth = int(raw.get("max_reply_depth", MAX_REPLY_DEPTH))
    if not 1 <= max_depth <= MAX_REPLY_DEPTH:
        raise ValueError(
            f"max_reply_depth must be between 1 and {MAX_REPLY_DEPTH}, got {max_depth}"
        )

    return ThreadlineConfig(
        forum_name=raw["forum_name"],
        api_port=int(raw["api_port"]),
        max_reply_depth=max_depth,
        deleted_user_label=raw.get("deleted_user_label") or DELETED_USER_LABEL,
        deleted_content_placeholder=(
            raw.get("deleted_content_placeholder") or DELETED_CONTENT_PLACEHOLDER
        ),
    )
