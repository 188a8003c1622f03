# config.py
import os
from functools import lru_cache

try:
    import streamlit as st
    _HAS_ST = True
except ImportError:
    _HAS_ST = False

@lru_cache(maxsize=1)
def get_config():
    """
    Centralised config loader:
      1) Environment variables
      2) Streamlit secrets (if running in Streamlit)
    """
    env = os.environ
    secrets = getattr(st, "secrets", {}) if _HAS_ST else {}

    def _get(key, default=""):
        try:
            return env.get(key) or secrets.get(key, default)
        except FileNotFoundError:
            # no secrets.toml
            return env.get(key) or default

    api_base = (_get("API_BASE") or "").rstrip("/")

    return {
        "API_BASE": api_base,
        "API_TIMEOUT": float(_get("API_TIMEOUT", "120")),
        "LOG_LEVEL": (_get("LOG_LEVEL", "INFO") or "INFO").upper(),
    }
