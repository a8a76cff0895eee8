"""docchat configuration.

Layers, later wins:
  defaults (dataclasses below)
  → ~/.docchat/config.yaml   shared model defaults; secrets are refused here
  → ./docchat.yaml           per-corpus settings
  → DOCCHAT_* env vars       DOCCHAT_GENERATION_MODEL, DOCCHAT_EMBEDDING_MODEL, DOCCHAT_DB
CLI flags are applied by each command after load_config() returns.

Provider API keys only ever come from the environment (see rag.llm_client).
YAML is parsed with yaml.safe_load().
"""

from __future__ import annotations

import dataclasses
import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

_GLOBAL_CONFIG_PATH: Path = Path.home() / ".docchat" / "config.yaml"
_PROJECT_CONFIG_NAME: str = "docchat.yaml"

# Key names that look like credentials. Must not catch max_tokens / top_k.
_SECRET_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)|(?:^|_)token$|(?:^|_)secret$|passw(?:ord|d)|credential",
    re.IGNORECASE,
)

_ENV_OVERRIDES: tuple[tuple[str, str, str], ...] = (
    ("DOCCHAT_GENERATION_MODEL", "generation", "model"),
    ("DOCCHAT_EMBEDDING_MODEL", "embedding", "model"),
    ("DOCCHAT_DB", "server", "db"),
)

_DEFAULT_DESCRIPTION = (
    "Battlesnake is an online competitive programming game. "
    "The goal of a Battlesnake developer is to build a snake that can survive "
    "on the board the longest."
)


class ConfigError(ValueError):
    """A config layer is malformed, out of range, or holds a secret."""


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass
class ProjectCfg:
    """What the corpus is about (docchat.yaml: project:).

    Attributes:
        subject: Short name of the corpus subject, used in the prompt role line.
        description: One paragraph describing the subject to the model.
    """

    subject: str = "Battlesnake"
    description: str = _DEFAULT_DESCRIPTION


@dataclass
class EmbeddingCfg:
    """Embedding model, its vector size, and parallel requests during ingest."""

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536
    concurrent_requests: int = 5


@dataclass
class GenerationCfg:
    model: str = "openai/gpt-4o"
    max_tokens: int = 1024
    temperature: float = 0.0


@dataclass
class RetrievalCfg:
    """k-NN size and the sentence window around each hit."""

    top_k: int = 10
    window_before: int = 3
    window_after: int = 5


@dataclass
class ServerCfg:
    """Runtime settings for serve / ask (docchat.yaml: server:).

    Attributes:
        db: SQLite database holding the corpus and the conversations.
        poll_interval: Seconds between conversation polls in ``docchat ask``.
        request_timeout: Deadline in seconds for each embedding / completion call.
        num_retries: LiteLLM retries per provider call (0 = at most once).
    """

    db: str = ".docchat.db"
    host: str = "127.0.0.1"
    port: int = 3000
    poll_interval: float = 1.0
    request_timeout: float = 60.0
    num_retries: int = 0


@dataclass
class DocchatConfig:
    project: ProjectCfg = field(default_factory=ProjectCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    server: ServerCfg = field(default_factory=ServerCfg)


_SECTION_TYPES: dict[str, type] = {
    f.name: f.default_factory for f in dataclasses.fields(DocchatConfig)  # type: ignore[misc]
}


# ---------------------------------------------------------------------------
# Reading layers
# ---------------------------------------------------------------------------


def _read_layer(path: Path, *, allow_secrets: bool) -> dict[str, Any]:
    """Parse one YAML layer. Missing file → empty layer."""
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"'{path}' must contain a mapping, got {type(data).__name__}")
    if not allow_secrets:
        _refuse_secrets(data, path)
    for key in data:
        if key not in _SECTION_TYPES:
            warnings.warn(
                f"Unknown config key '{key}' in '{path}' — ignored.",
                UserWarning,
                stacklevel=3,
            )
    return data


def _refuse_secrets(data: dict[str, Any], source: Path) -> None:
    stack: list[tuple[str, Any]] = [("", data)]
    while stack:
        prefix, node = stack.pop()
        if not isinstance(node, dict):
            continue
        for key, value in node.items():
            dotted = f"{prefix}.{key}" if prefix else str(key)
            if _SECRET_KEY_RE.search(str(key)):
                raise ConfigError(
                    f"'{source}' contains a forbidden key '{dotted}'.\n"
                    f"  Provider keys belong in the environment, e.g.:\n"
                    f"    export {str(key).upper().replace('-', '_')}=<value>"
                )
            stack.append((dotted, value))


def _merge(into: dict[str, Any], layer: dict[str, Any]) -> None:
    """Recursively overlay *layer* onto *into* in place."""
    for key, value in layer.items():
        current = into.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _merge(current, value)
        else:
            into[key] = dict(value) if isinstance(value, dict) else value


# ---------------------------------------------------------------------------
# Building the config object
# ---------------------------------------------------------------------------


def _build_section(name: str, raw: Any) -> Any:
    """Instantiate section *name* from its raw mapping, coercing to field types."""
    section_type = _SECTION_TYPES[name]
    default = section_type()
    if not raw:
        return default
    if not isinstance(raw, dict):
        raise ConfigError(f"{name}: expected a mapping, got {type(raw).__name__}")
    values: dict[str, Any] = {}
    for f in dataclasses.fields(section_type):
        # a bare `key:` in YAML is null; keep the default
        if raw.get(f.name) is None:
            continue
        caster = type(getattr(default, f.name))
        try:
            values[f.name] = caster(raw[f.name])
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"{name}.{f.name}: cannot use {raw[f.name]!r} ({exc})") from exc
    return section_type(**values)


def _check_ranges(cfg: DocchatConfig) -> None:
    checks = [
        (cfg.retrieval.top_k >= 1, f"retrieval.top_k must be >= 1, got {cfg.retrieval.top_k}"),
        (
            cfg.retrieval.window_before >= 0 and cfg.retrieval.window_after >= 0,
            "retrieval.window_before and retrieval.window_after must be >= 0, "
            f"got {cfg.retrieval.window_before} and {cfg.retrieval.window_after}",
        ),
        (
            cfg.embedding.dimensions >= 1,
            f"embedding.dimensions must be >= 1, got {cfg.embedding.dimensions}",
        ),
        (
            cfg.embedding.concurrent_requests >= 1,
            "embedding.concurrent_requests must be >= 1, "
            f"got {cfg.embedding.concurrent_requests}",
        ),
        (
            cfg.server.poll_interval > 0,
            f"server.poll_interval must be > 0, got {cfg.server.poll_interval}",
        ),
        (
            cfg.server.request_timeout > 0,
            f"server.request_timeout must be > 0, got {cfg.server.request_timeout}",
        ),
    ]
    for ok, message in checks:
        if not ok:
            raise ConfigError(message)


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> DocchatConfig:
    """Merge every layer into a validated *DocchatConfig*.

    Args:
        project_dir: Where to look for docchat.yaml (default: CWD).
        global_config_path: Replacement for ~/.docchat/config.yaml (tests).

    Raises:
        ConfigError: Secret-looking key in the global layer, a value that
            cannot be coerced, or a number out of range.
    """
    merged: dict[str, Any] = {}
    _merge(
        merged,
        _read_layer(global_config_path or _GLOBAL_CONFIG_PATH, allow_secrets=False),
    )
    _merge(
        merged,
        _read_layer((project_dir or Path.cwd()) / _PROJECT_CONFIG_NAME, allow_secrets=True),
    )

    cfg = DocchatConfig(
        **{name: _build_section(name, merged.get(name)) for name in _SECTION_TYPES}
    )
    for env_var, section, attr in _ENV_OVERRIDES:
        if value := os.environ.get(env_var):
            setattr(getattr(cfg, section), attr, value)

    _check_ranges(cfg)
    return cfg
