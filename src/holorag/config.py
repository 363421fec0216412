"""holorag configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (HOLORAG_EMBEDDING_MODEL, HOLORAG_GENERATION_MODEL,
                             HOLORAG_DATA_DIR, OLLAMA_BASE_URL)
  3. Per-project holorag.yaml
  4. Global ~/.holorag/config.yaml  (model defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
Database passwords live in the SQL connection store, never in YAML.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".holorag"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "holorag.yaml"

# Fields that suggest an API key, forbidden in global config.
# Does NOT match legitimate config keys like max_tokens or top_k.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"  # api_key, api-key, api_secret, apikey
    r"|_token$"                  # github_token, access_token, auth_token (suffix)
    r"|^token$"                  # exactly "token" (standalone)
    r"|_secret$"                 # my_secret, client_secret (suffix)
    r"|^secret$"                 # exactly "secret" (standalone)
    r"|passw(?:ord|d)"           # password, passwd
    r"|credential",              # credential, credentials
    re.IGNORECASE,
)

# Known top-level sections; unknown keys produce a warning
_KNOWN_SECTIONS: frozenset[str] = frozenset(
    [
        "project",
        "embedding",
        "generation",
        "knowledge",
        "retrieval",
        "memory",
        "sql",
        "persistence",
    ]
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class ProjectCfg:
    """Project-level paths (holorag.yaml: project:).

    Attributes:
        data_dir: Directory for engine snapshots (knowledge text, vector cache,
            memories, SQL connections).
        corpus_dir: Directory of .txt/.md files indexed by the vector engine.
    """

    data_dir: str = "data"
    corpus_dir: str = "knowledge"


@dataclass
class EmbeddingCfg:
    """Embedding backend configuration (holorag.yaml: embedding:)."""

    model: str = "ollama/nomic-embed-text"
    api_base: str = "http://localhost:11434"
    probe_timeout: float = 3.0
    timeout: float = 30.0
    batch_size: int = 10


@dataclass
class GenerationCfg:
    """LLM used to summarize exchanges into memories (holorag.yaml: generation:)."""

    model: str = "groq/llama-3.3-70b-versatile"
    max_tokens: int = 60
    temperature: float = 0.1


@dataclass
class KnowledgeCfg:
    """Freeform knowledge text engine (holorag.yaml: knowledge:)."""

    chunk_size: int = 500
    overlap: int = 50
    top_k: int = 4


@dataclass
class RetrievalCfg:
    """Vector retrieval over the corpus directory (holorag.yaml: retrieval:)."""

    chunk_size: int = 500
    overlap: int = 50
    top_k: int = 4
    min_similarity: float = 0.3


@dataclass
class MemoryCfg:
    """Episodic memory engine (holorag.yaml: memory:)."""

    max_entries: int = 200
    top_k: int = 3
    similarity_threshold: float = 0.55
    duplicate_threshold: float = 0.9
    min_content_length: int = 30
    similarity_weight: float = 0.85
    recency_days: float = 7.0


@dataclass
class SqlCfg:
    """Schema filter and query execution (holorag.yaml: sql:)."""

    max_tables: int = 15
    max_rows: int = 20
    statement_timeout_ms: int = 10_000
    schema_timeout_ms: int = 60_000
    connect_timeout: int = 5


@dataclass
class PersistenceCfg:
    """Snapshot write coalescing (holorag.yaml: persistence:)."""

    debounce_seconds: float = 0.5


@dataclass
class HoloragConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    project: ProjectCfg = field(default_factory=ProjectCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    knowledge: KnowledgeCfg = field(default_factory=KnowledgeCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    memory: MemoryCfg = field(default_factory=MemoryCfg)
    sql: SqlCfg = field(default_factory=SqlCfg)
    persistence: PersistenceCfg = field(default_factory=PersistenceCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names.

    Global config must never store credentials; they belong in env vars.
    """

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: HoloragConfig) -> None:
    """Raise ConfigError for values the engines cannot work with."""
    for name, value in (
        ("retrieval.min_similarity", cfg.retrieval.min_similarity),
        ("memory.similarity_threshold", cfg.memory.similarity_threshold),
        ("memory.duplicate_threshold", cfg.memory.duplicate_threshold),
        ("memory.similarity_weight", cfg.memory.similarity_weight),
    ):
        if not 0.0 <= value <= 1.0:
            raise ConfigError(f"{name} must be between 0 and 1, got {value}")

    for name, value in (
        ("embedding.batch_size", cfg.embedding.batch_size),
        ("knowledge.top_k", cfg.knowledge.top_k),
        ("retrieval.top_k", cfg.retrieval.top_k),
        ("memory.max_entries", cfg.memory.max_entries),
        ("memory.top_k", cfg.memory.top_k),
        ("sql.max_tables", cfg.sql.max_tables),
        ("sql.max_rows", cfg.sql.max_rows),
    ):
        if value < 1:
            raise ConfigError(f"{name} must be >= 1, got {value}")

    for section, chunking in (("knowledge", cfg.knowledge), ("retrieval", cfg.retrieval)):
        if chunking.chunk_size < 1 or not 0 <= chunking.overlap < chunking.chunk_size:
            raise ConfigError(
                f"{section}.overlap must be in [0, chunk_size) and chunk_size >= 1, "
                f"got chunk_size={chunking.chunk_size}, overlap={chunking.overlap}"
            )

    if cfg.memory.recency_days <= 0:
        raise ConfigError(f"memory.recency_days must be > 0, got {cfg.memory.recency_days}")
    if cfg.persistence.debounce_seconds < 0:
        raise ConfigError(
            f"persistence.debounce_seconds must be >= 0, got {cfg.persistence.debounce_seconds}"
        )


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    raw = data.get(name) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping, got {type(raw).__name__}")
    return raw


def _cfg_from_dict(data: dict[str, Any]) -> HoloragConfig:
    """Build a *HoloragConfig* from a merged raw YAML dict."""
    cfg = HoloragConfig()

    try:
        p = _section(data, "project")
        cfg.project = ProjectCfg(
            data_dir=str(p.get("data_dir", cfg.project.data_dir)),
            corpus_dir=str(p.get("corpus_dir", cfg.project.corpus_dir)),
        )

        e = _section(data, "embedding")
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            api_base=str(e.get("api_base", cfg.embedding.api_base)),
            probe_timeout=float(e.get("probe_timeout", cfg.embedding.probe_timeout)),
            timeout=float(e.get("timeout", cfg.embedding.timeout)),
            batch_size=int(e.get("batch_size", cfg.embedding.batch_size)),
        )

        g = _section(data, "generation")
        cfg.generation = GenerationCfg(
            model=str(g.get("model", cfg.generation.model)),
            max_tokens=int(g.get("max_tokens", cfg.generation.max_tokens)),
            temperature=float(g.get("temperature", cfg.generation.temperature)),
        )

        k = _section(data, "knowledge")
        cfg.knowledge = KnowledgeCfg(
            chunk_size=int(k.get("chunk_size", cfg.knowledge.chunk_size)),
            overlap=int(k.get("overlap", cfg.knowledge.overlap)),
            top_k=int(k.get("top_k", cfg.knowledge.top_k)),
        )

        r = _section(data, "retrieval")
        cfg.retrieval = RetrievalCfg(
            chunk_size=int(r.get("chunk_size", cfg.retrieval.chunk_size)),
            overlap=int(r.get("overlap", cfg.retrieval.overlap)),
            top_k=int(r.get("top_k", cfg.retrieval.top_k)),
            min_similarity=float(r.get("min_similarity", cfg.retrieval.min_similarity)),
        )

        m = _section(data, "memory")
        cfg.memory = MemoryCfg(
            max_entries=int(m.get("max_entries", cfg.memory.max_entries)),
            top_k=int(m.get("top_k", cfg.memory.top_k)),
            similarity_threshold=float(
                m.get("similarity_threshold", cfg.memory.similarity_threshold)
            ),
            duplicate_threshold=float(
                m.get("duplicate_threshold", cfg.memory.duplicate_threshold)
            ),
            min_content_length=int(m.get("min_content_length", cfg.memory.min_content_length)),
            similarity_weight=float(m.get("similarity_weight", cfg.memory.similarity_weight)),
            recency_days=float(m.get("recency_days", cfg.memory.recency_days)),
        )

        s = _section(data, "sql")
        cfg.sql = SqlCfg(
            max_tables=int(s.get("max_tables", cfg.sql.max_tables)),
            max_rows=int(s.get("max_rows", cfg.sql.max_rows)),
            statement_timeout_ms=int(
                s.get("statement_timeout_ms", cfg.sql.statement_timeout_ms)
            ),
            schema_timeout_ms=int(s.get("schema_timeout_ms", cfg.sql.schema_timeout_ms)),
            connect_timeout=int(s.get("connect_timeout", cfg.sql.connect_timeout)),
        )

        ps = _section(data, "persistence")
        cfg.persistence = PersistenceCfg(
            debounce_seconds=float(ps.get("debounce_seconds", cfg.persistence.debounce_seconds)),
        )
    except (TypeError, ValueError) as exc:
        if isinstance(exc, ConfigError):
            raise
        raise ConfigError(f"Invalid config value: {exc}") from exc

    return cfg


def _apply_env_overrides(cfg: HoloragConfig) -> HoloragConfig:
    """Apply HOLORAG_* / OLLAMA_BASE_URL environment variable overrides."""
    if model := os.environ.get("HOLORAG_GENERATION_MODEL"):
        cfg.generation.model = model
    if model := os.environ.get("HOLORAG_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if base := os.environ.get("OLLAMA_BASE_URL"):
        cfg.embedding.api_base = base
    if data_dir := os.environ.get("HOLORAG_DATA_DIR"):
        cfg.project.data_dir = data_dir
    return cfg


def _read_yaml(path: Path) -> dict[str, Any]:
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file '{path}' must contain a mapping at the top level.")
    return raw


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> HoloragConfig:
    """Load and return a merged *HoloragConfig*.

    Applies layers in order: global → per-project → env vars.
    Relative ``project.data_dir`` / ``project.corpus_dir`` are resolved against
    *project_dir* by ``resolve_path()``, not here.

    Args:
        project_dir: Directory to search for *holorag.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged *HoloragConfig* with env var overrides applied.

    Raises:
        ConfigError: If global config contains API-key-like fields, or if any
            value is malformed or out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = _read_yaml(global_path)
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = _read_yaml(project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    _validate(cfg)
    return cfg


def resolve_path(value: str, base_dir: Path | None = None) -> Path:
    """Resolve a configured path relative to *base_dir* (CWD by default)."""
    path = Path(value).expanduser()
    if path.is_absolute():
        return path
    return (base_dir if base_dir is not None else Path.cwd()) / path


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.holorag/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).

    Args:
        global_config_path: Override path (for testing).

    Returns:
        Path to the global config file.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# holorag global configuration: model defaults only.\n"
            "# NEVER store API keys here. Use environment variables:\n"
            "#   export GROQ_API_KEY=gsk_...\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "\n"
            "embedding:\n"
            "  model: ollama/nomic-embed-text\n"
            "  api_base: http://localhost:11434\n"
            "\n"
            "generation:\n"
            "  model: groq/llama-3.3-70b-versatile\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
