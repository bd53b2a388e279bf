from __future__ import annotations

from pathlib import Path

LOCAL_CONFIG_NAME = Path("convoflow.toml")
HOME_CONFIG_PATH = Path.home() / ".convoflow" / "convoflow.toml"

DEFAULT_API_BASE_URL = "https://api.telegram.org"
DEFAULT_APP = "convoflow.demo:build_bot"

CONFIG_ENV_VAR = "CONVOFLOW_CONFIG"
