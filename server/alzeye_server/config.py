# config.py
import os
from functools import lru_cache
from pathlib import Path

_DEFAULT_MANIFEST = Path(__file__).resolve().parents[1] / "manifest.json"


@lru_cache(maxsize=1)
def get_config():
    """
    Server settings, read once from environment variables.
    GEMINI_API_KEY falls back to GOOGLE_API_KEY.
    """
    env = os.environ
    origins = env.get("CORS_ORIGINS", "*")

    return {
        "GEMINI_API_KEY": env.get("GEMINI_API_KEY") or env.get("GOOGLE_API_KEY", ""),
        "GEMINI_MODEL": env.get("GEMINI_MODEL", "gemini-1.5-flash"),
        "GEMINI_TEMPERATURE": float(env.get("GEMINI_TEMPERATURE", "0.4")),
        "MANIFEST_PATH": Path(env.get("ALZEYE_MANIFEST") or _DEFAULT_MANIFEST),
        "DEVICE": env.get("ALZEYE_DEVICE", ""),
        "LOG_LEVEL": env.get("LOG_LEVEL", "INFO").upper(),
        "CORS_ORIGINS": [o.strip() for o in origins.split(",") if o.strip()],
    }
