# =========================================
# File: config/config_loader.py
# Purpose: Load YAML config (dev/prod), substitute ${ENV_VARS}, validate, and expose helpers
# =========================================

import os                      # Used to read ENV to pick dev/prod and to resolve ${VAR} placeholders
import re                      # Used to find and replace ${VAR} patterns inside YAML text
from typing import Any, Dict, Optional
from urllib.parse import quote_plus  # Passwords may contain '@', ':' or '/'

import yaml                    # Safe YAML parsing (install: PyYAML)

from monthly_uploader.errors import UploaderConfigError

CONFIG_DIR = os.path.dirname(os.path.abspath(__file__))

DEFAULT_S3_BUCKET = "ryze-data-brand-performance"
DEFAULT_BO_DATABASE = "bo"
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_CONNECT_TIMEOUT = 10


def _substitute_env_placeholders(yaml_text: str) -> str:
    """
    Replace ${VAR} placeholders in YAML text with their environment variable values.
    If an env var is missing, mark it as <MISSING:VAR> to fail validation cleanly.
    """
    pattern = re.compile(r"\$\{([^}^{]+)\}")

    def repl(match):
        var_name = match.group(1)
        return os.getenv(var_name, f"<MISSING:{var_name}>")

    return pattern.sub(repl, yaml_text)


def _load_yaml_file(path: str) -> Dict[str, Any]:
    """
    Read a YAML file from disk, perform ${VAR} substitution, and parse it to a dict.
    """
    if not os.path.exists(path):
        raise UploaderConfigError(f"Configuration file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        raw = f.read()

    substituted = _substitute_env_placeholders(raw)

    try:
        cfg = yaml.safe_load(substituted)
    except yaml.YAMLError as e:
        raise UploaderConfigError(f"YAML parsing error in {path}: {e}") from e

    if not isinstance(cfg, dict):
        raise UploaderConfigError(f"Configuration file {path} must contain a mapping")
    return cfg


def _missing_keys(section: Dict[str, Any], prefix: str, required: list) -> list:
    """Keys that are absent, empty or still marked <MISSING:...>."""
    return [
        f"{prefix}.{k}"
        for k in required
        if k not in section or section[k] in (None, "") or "MISSING:" in str(section[k])
    ]


def validate_config(cfg: Dict[str, Any]) -> None:
    """
    Validate presence of required keys and ensure no <MISSING:...> placeholders remain.
    """
    required_top = ["environment", "log_level", "aws", "mysql"]
    missing_top = [k for k in required_top if k not in cfg or cfg[k] in (None, "")]
    if missing_top:
        raise UploaderConfigError(f"Missing top-level config keys: {', '.join(missing_top)}")

    missing = _missing_keys(cfg["aws"], "aws", ["access_key_id", "secret_access_key", "region"])
    missing += _missing_keys(cfg["mysql"], "mysql", ["host", "port", "user", "password"])
    if missing:
        raise UploaderConfigError(f"Missing/invalid credential keys: {', '.join(missing)}")

    uploader = cfg.get("uploader") or {}
    if "MISSING:" in str(uploader.get("s3_bucket_name", "")):
        raise UploaderConfigError("S3 bucket not provided (or placeholder unresolved).")


def get_config(env: Optional[str] = None, config_dir: Optional[str] = None) -> Dict[str, Any]:
    """
    Public API: pick env from ENV (default 'dev'), load YAML, validate, return dict.
    """
    env = (env or os.getenv("ENV", "dev")).lower()
    path = os.path.join(config_dir or CONFIG_DIR, f"{env}.yaml")
    cfg = _load_yaml_file(path)
    validate_config(cfg)
    return cfg


def uploader_options(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Options bundle with defaults applied for anything left empty in YAML."""
    section = cfg.get("uploader") or {}
    return {
        "s3_bucket_name": section.get("s3_bucket_name") or DEFAULT_S3_BUCKET,
        "bo_database": section.get("bo_database") or DEFAULT_BO_DATABASE,
        "dry_run": bool(section.get("dry_run", False)),
        "verbose_logging": bool(section.get("verbose_logging", False)),
    }


def build_db_url(cfg: Dict[str, Any], database: str) -> str:
    """
    Helper to build a SQLAlchemy MySQL URL; the database is chosen at connect time.
    """
    db = cfg["mysql"]
    user = quote_plus(str(db["user"]))
    pwd = quote_plus(str(db["password"]))
    host = db["host"]
    port = db["port"]
    return f"mysql+pymysql://{user}:{pwd}@{host}:{port}/{database}"
