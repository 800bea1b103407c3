"""distill configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (DISTILL_SUMMARY_MODEL, DISTILL_CLASSIFIER_MODEL,
                             DISTILL_COMPRESSION_MODEL)
  3. Per-project distill.yaml  (next to .distill.db)
  4. Global ~/.distill/config.yaml  (model defaults only, no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load(), never yaml.load().
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

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".distill"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "distill.yaml"

# Fields that suggest an API key are forbidden in global config.
# Does NOT match legitimate config keys like max_tokens or max_output_tokens.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["summarization", "classifier", "compression", "pipeline", "storage", "ingest"]
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
class SummarizationCfg:
    """Per-document summary model (distill.yaml: summarization:)."""

    model: str = "anthropic/claude-sonnet-4-20250514"
    max_output_tokens: int = 8_192
    timeout_seconds: float = 120.0


@dataclass
class ClassifierCfg:
    """Plain-text intent classifier (distill.yaml: classifier:)."""

    model: str = "anthropic/claude-haiku-4-5-20251001"
    sample_chars: int = 500
    max_tokens: int = 5


@dataclass
class CompressionCfg:
    """Knowledge-base compression (distill.yaml: compression:).

    Attributes:
        min_target_tokens: Smallest accepted ``--target-tokens``.
        max_target_tokens: Largest accepted ``--target-tokens``.
        max_output_tokens: Hard cap on the model's output ceiling; the ceiling
            actually sent is ``min(2 * target, max_output_tokens)``.
        timeout_seconds: Provider timeout for the aggregation call.
    """

    model: str = "anthropic/claude-haiku-4-5-20251001"
    min_target_tokens: int = 100
    max_target_tokens: int = 50_000
    max_output_tokens: int = 8_192
    timeout_seconds: float = 240.0


@dataclass
class PipelineCfg:
    """Orchestrator retry / timeout policy (distill.yaml: pipeline:)."""

    max_retries: int = 1
    run_timeout_seconds: float = 600.0
    stall_minutes: int = 10
    error_max_chars: int = 1_000


@dataclass
class StorageCfg:
    """Blob storage location (distill.yaml: storage:)."""

    blob_dir: str = ".distill/blobs"


@dataclass
class IngestCfg:
    """Upload validation (distill.yaml: ingest:)."""

    max_file_bytes: int = 50 * 1024 * 1024


@dataclass
class DistillConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    summarization: SummarizationCfg = field(default_factory=SummarizationCfg)
    classifier: ClassifierCfg = field(default_factory=ClassifierCfg)
    compression: CompressionCfg = field(default_factory=CompressionCfg)
    pipeline: PipelineCfg = field(default_factory=PipelineCfg)
    storage: StorageCfg = field(default_factory=StorageCfg)
    ingest: IngestCfg = field(default_factory=IngestCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

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
                f"Unknown config key '{key}' in '{source}': ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: DistillConfig) -> None:
    c = cfg.compression
    if c.min_target_tokens < 1 or c.min_target_tokens > c.max_target_tokens:
        raise ConfigError(
            "compression.min_target_tokens must be >= 1 and <= compression.max_target_tokens"
        )
    if cfg.pipeline.max_retries < 0:
        raise ConfigError("pipeline.max_retries must be >= 0")
    if cfg.ingest.max_file_bytes < 1:
        raise ConfigError("ingest.max_file_bytes must be >= 1")


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


def _cfg_from_dict(data: dict[str, Any]) -> DistillConfig:
    """Build a *DistillConfig* from a merged raw YAML dict."""
    cfg = DistillConfig()

    if "summarization" in data:
        s = data["summarization"] or {}
        cfg.summarization = SummarizationCfg(
            model=str(s.get("model", cfg.summarization.model)),
            max_output_tokens=int(
                s.get("max_output_tokens", cfg.summarization.max_output_tokens)
            ),
            timeout_seconds=float(
                s.get("timeout_seconds", cfg.summarization.timeout_seconds)
            ),
        )

    if "classifier" in data:
        c = data["classifier"] or {}
        cfg.classifier = ClassifierCfg(
            model=str(c.get("model", cfg.classifier.model)),
            sample_chars=int(c.get("sample_chars", cfg.classifier.sample_chars)),
            max_tokens=int(c.get("max_tokens", cfg.classifier.max_tokens)),
        )

    if "compression" in data:
        k = data["compression"] or {}
        cfg.compression = CompressionCfg(
            model=str(k.get("model", cfg.compression.model)),
            min_target_tokens=int(
                k.get("min_target_tokens", cfg.compression.min_target_tokens)
            ),
            max_target_tokens=int(
                k.get("max_target_tokens", cfg.compression.max_target_tokens)
            ),
            max_output_tokens=int(
                k.get("max_output_tokens", cfg.compression.max_output_tokens)
            ),
            timeout_seconds=float(
                k.get("timeout_seconds", cfg.compression.timeout_seconds)
            ),
        )

    if "pipeline" in data:
        p = data["pipeline"] or {}
        cfg.pipeline = PipelineCfg(
            max_retries=int(p.get("max_retries", cfg.pipeline.max_retries)),
            run_timeout_seconds=float(
                p.get("run_timeout_seconds", cfg.pipeline.run_timeout_seconds)
            ),
            stall_minutes=int(p.get("stall_minutes", cfg.pipeline.stall_minutes)),
            error_max_chars=int(p.get("error_max_chars", cfg.pipeline.error_max_chars)),
        )

    if "storage" in data:
        st = data["storage"] or {}
        cfg.storage = StorageCfg(blob_dir=str(st.get("blob_dir", cfg.storage.blob_dir)))

    if "ingest" in data:
        i = data["ingest"] or {}
        cfg.ingest = IngestCfg(
            max_file_bytes=int(i.get("max_file_bytes", cfg.ingest.max_file_bytes))
        )

    return cfg


def _apply_env_overrides(cfg: DistillConfig) -> DistillConfig:
    """Apply DISTILL_* environment variable overrides."""
    if model := os.environ.get("DISTILL_SUMMARY_MODEL"):
        cfg.summarization.model = model
    if model := os.environ.get("DISTILL_CLASSIFIER_MODEL"):
        cfg.classifier.model = model
    if model := os.environ.get("DISTILL_COMPRESSION_MODEL"):
        cfg.compression.model = model
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> DistillConfig:
    """Load and return a merged *DistillConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *distill.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged *DistillConfig* with env var overrides applied.

    Raises:
        ConfigError: If global config contains API-key-like fields, or if a
            numeric bound is inconsistent.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    try:
        cfg = _cfg_from_dict(merged)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    cfg = _apply_env_overrides(cfg)
    _validate(cfg)
    return cfg


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.distill/config.yaml`` with defaults if it does not exist.

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
            "# distill global configuration: model defaults only.\n"
            "# NEVER store API keys here. Use environment variables:\n"
            "#   export ANTHROPIC_API_KEY=sk-ant-...\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "\n"
            "summarization:\n"
            f"  model: {SummarizationCfg.model}\n"
            "\n"
            "classifier:\n"
            f"  model: {ClassifierCfg.model}\n"
            "\n"
            "compression:\n"
            f"  model: {CompressionCfg.model}\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
