"""Configuration helpers for the wardrobe ingestion service."""

from dataclasses import dataclass
from pathlib import Path
import os
from typing import Optional

from logic.errors import InvalidInputError

DEFAULT_GEMINI_MODEL = "models/gemini-2.5-flash"
DEFAULT_EMBEDDING_MODEL = "models/text-embedding-004"
DEFAULT_CATALOG_DB_PATH = "data/catalog.db"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class IngestConfig:
    """Stateless settings shared by the fingerprinting and merge pipeline.

    Signatures computed with different ``signature_grid_size`` values are not
    comparable, so the value must stay fixed for the lifetime of a catalog.
    """

    gemini_api_key: Optional[str] = None
    model: str = DEFAULT_GEMINI_MODEL
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    embeddings_enabled: bool = False
    catalog_db_path: str = DEFAULT_CATALOG_DB_PATH
    signature_grid_size: int = 8
    similarity_threshold: float = 0.85
    similarity_candidate_limit: int = 50
    min_confidence: float = 0.5
    max_retries: int = 3
    backoff_base_seconds: float = 1.0
    max_concurrency: int = 4
    image_fetch_timeout_seconds: float = 10.0
    environment: str | None = None

    def __post_init__(self) -> None:
        if self.signature_grid_size < 1:
            raise InvalidInputError("signature_grid_size must be at least 1")
        if not 0.0 <= self.similarity_threshold <= 1.0:
            raise InvalidInputError("similarity_threshold must be within [0, 1]")
        if not 0.0 <= self.min_confidence <= 1.0:
            raise InvalidInputError("min_confidence must be within [0, 1]")
        if self.max_retries < 0:
            raise InvalidInputError("max_retries cannot be negative")
        if self.max_concurrency < 1:
            raise InvalidInputError("max_concurrency must be at least 1")

    @classmethod
    def from_env(cls) -> "IngestConfig":
        """Build a config from environment variables or an environment YAML file.

        Environment specific YAML lives in ``config/environments/<env>.yaml`` by
        default and is merged with environment variables so that the Gemini key
        can be injected by the runtime environment.
        """

        env_name = os.getenv("APP_ENV")
        config_path = os.getenv("APP_CONFIG_PATH")
        config_dir = Path(os.getenv("WARDROBE_CONFIG_DIR", "config/environments"))
        yaml_config: dict = {}

        if config_path:
            path = Path(config_path)
        elif env_name:
            path = config_dir / f"{env_name}.yaml"
        else:
            path = None

        if path and path.exists():
            yaml_config = cls._load_yaml_config(path)

        def get_value(key: str, default: Optional[str] = None) -> Optional[str]:
            env_key = key.upper()
            return os.getenv(env_key, yaml_config.get(key, default))

        return cls(
            gemini_api_key=get_value("gemini_api_key"),
            model=str(get_value("model") or DEFAULT_GEMINI_MODEL),
            embedding_model=str(get_value("embedding_model") or DEFAULT_EMBEDDING_MODEL),
            embeddings_enabled=str(get_value("embeddings_enabled", "false")).strip().lower() in _TRUTHY,
            catalog_db_path=str(get_value("catalog_db_path") or DEFAULT_CATALOG_DB_PATH),
            signature_grid_size=cls._as_int("signature_grid_size", get_value("signature_grid_size", "8")),
            similarity_threshold=cls._as_float("similarity_threshold", get_value("similarity_threshold", "0.85")),
            similarity_candidate_limit=cls._as_int(
                "similarity_candidate_limit", get_value("similarity_candidate_limit", "50")
            ),
            min_confidence=cls._as_float("min_confidence", get_value("min_confidence", "0.5")),
            max_retries=cls._as_int("max_retries", get_value("max_retries", "3")),
            backoff_base_seconds=cls._as_float("backoff_base_seconds", get_value("backoff_base_seconds", "1.0")),
            max_concurrency=cls._as_int("max_concurrency", get_value("max_concurrency", "4")),
            image_fetch_timeout_seconds=cls._as_float(
                "image_fetch_timeout_seconds", get_value("image_fetch_timeout_seconds", "10")
            ),
            environment=env_name,
        )

    @staticmethod
    def _as_int(key: str, raw: Optional[str]) -> int:
        try:
            return int(str(raw).strip())
        except ValueError as exc:
            raise InvalidInputError(f"Config value {key}={raw!r} is not an integer") from exc

    @staticmethod
    def _as_float(key: str, raw: Optional[str]) -> float:
        try:
            return float(str(raw).strip())
        except ValueError as exc:
            raise InvalidInputError(f"Config value {key}={raw!r} is not a number") from exc

    @staticmethod
    def _load_yaml_config(path: Path) -> dict:
        """Parse a minimal YAML/INI-style config without external dependencies."""

        config: dict[str, str] = {}
        for line in path.read_text().splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            value = raw_value.strip()
            if (value.startswith("\"") and value.endswith("\"")) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]
            config[key.strip()] = value
        return config
