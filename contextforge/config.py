"""Centralised settings for the ContextForge optimizer service.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("CONTEXTFORGE_WORKSPACE", Path.home() / ".contextforge")
        )
    )
    cli_config_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("CONTEXTFORGE_CLI_DIR", Path.home() / ".contextforge_cli")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "contextforge.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    log_level: str = field(
        default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO").upper()
    )

    # ------------------------------------------------------------------
    # Text compression
    # ------------------------------------------------------------------
    compression_levels: dict[str, float] = field(
        default_factory=lambda: {
            "auto": float(os.environ.get("COMPRESSION_LEVEL_AUTO", "0.5")),
            "aggressive": float(os.environ.get("COMPRESSION_LEVEL_AGGRESSIVE", "0.8")),
            "conservative": float(os.environ.get("COMPRESSION_LEVEL_CONSERVATIVE", "0.3")),
        }
    )
    advanced_compression_threshold: int = field(
        default_factory=lambda: int(os.environ.get("ADVANCED_COMPRESSION_THRESHOLD", "500"))
    )
    compression_chunk_size: int = field(
        default_factory=lambda: int(os.environ.get("COMPRESSION_CHUNK_SIZE", "500"))
    )
    compression_chunk_overlap: int = field(
        default_factory=lambda: int(os.environ.get("COMPRESSION_CHUNK_OVERLAP", "50"))
    )
    min_fragment_length: int = field(
        default_factory=lambda: int(os.environ.get("MIN_FRAGMENT_LENGTH", "10"))
    )

    # ------------------------------------------------------------------
    # Template consolidation
    # ------------------------------------------------------------------
    similarity_threshold: float = field(
        default_factory=lambda: float(os.environ.get("SIMILARITY_THRESHOLD", "0.7"))
    )
    rewrite_consolidated_edges: bool = field(
        default_factory=lambda: _env_bool("REWRITE_CONSOLIDATED_EDGES")
    )

    # ------------------------------------------------------------------
    # Suggestion analysis
    # ------------------------------------------------------------------
    # Model assumed for cost estimates when a node names none (or an unpriced one).
    default_model: str = field(
        default_factory=lambda: os.environ.get("ANALYSIS_DEFAULT_MODEL", "gpt-4o-mini")
    )
    # Nodes estimated above this many dollars per call trigger a caching hint.
    caching_cost_threshold: float = field(
        default_factory=lambda: float(os.environ.get("CACHING_COST_THRESHOLD", "0.01"))
    )

    # ------------------------------------------------------------------
    # Improvement scoring (placeholder weights, not a measured model)
    # ------------------------------------------------------------------
    token_savings_weight: float = field(
        default_factory=lambda: float(os.environ.get("TOKEN_SAVINGS_WEIGHT", "0.6"))
    )
    node_savings_weight: float = field(
        default_factory=lambda: float(os.environ.get("NODE_SAVINGS_WEIGHT", "0.4"))
    )

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


def configure_logging(level: str | None = None) -> None:
    """Install a root handler at *level* (defaults to ``settings.log_level``)."""
    logging.basicConfig(
        level=level or settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Module-level singleton, import this everywhere:
#   from contextforge.config import settings
settings = Settings()
