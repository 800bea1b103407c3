"""Tests for the distill config loader."""

from __future__ import annotations

import stat
import warnings
from pathlib import Path

import pytest
import yaml

from distill.config import (
    ConfigError,
    DistillConfig,
    ensure_global_config,
    load_config,
)

_MODEL_ENV = ("DISTILL_SUMMARY_MODEL", "DISTILL_CLASSIFIER_MODEL", "DISTILL_COMPRESSION_MODEL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data), encoding="utf-8")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _MODEL_ENV:
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# Defaults with no config files present
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path) -> None:
    """No config files → all hardcoded defaults."""
    missing_global = tmp_path / "nonexistent" / "config.yaml"
    cfg = load_config(project_dir=tmp_path, global_config_path=missing_global)

    assert cfg.summarization.model == "anthropic/claude-sonnet-4-20250514"
    assert cfg.summarization.max_output_tokens == 8_192
    assert cfg.classifier.sample_chars == 500
    assert cfg.classifier.max_tokens == 5
    assert cfg.compression.min_target_tokens == 100
    assert cfg.compression.max_target_tokens == 50_000
    assert cfg.pipeline.max_retries == 1
    assert cfg.pipeline.run_timeout_seconds == 600.0
    assert cfg.ingest.max_file_bytes == 50 * 1024 * 1024


def test_defaults_match_dataclass(tmp_path: Path) -> None:
    cfg = load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")
    assert cfg == DistillConfig()


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


def test_load_config_global_overrides_defaults(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"summarization": {"model": "openai/gpt-4o"}})

    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.summarization.model == "openai/gpt-4o"
    assert cfg.summarization.max_output_tokens == 8_192


def test_load_config_global_empty_file(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text("", encoding="utf-8")
    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg == DistillConfig()


def test_load_config_project_overrides_global(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"compression": {"model": "openai/gpt-4o", "max_output_tokens": 4096}})
    _write_yaml(tmp_path / "distill.yaml", {"compression": {"model": "anthropic/claude-opus-4"}})

    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.compression.model == "anthropic/claude-opus-4"
    # deep merge keeps the global value the project file did not set
    assert cfg.compression.max_output_tokens == 4096


def test_load_config_pipeline_section(tmp_path: Path) -> None:
    _write_yaml(
        tmp_path / "distill.yaml",
        {"pipeline": {"max_retries": 3, "stall_minutes": 30}, "storage": {"blob_dir": "blobs"}},
    )
    cfg = load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")
    assert cfg.pipeline.max_retries == 3
    assert cfg.pipeline.stall_minutes == 30
    assert cfg.pipeline.error_max_chars == 1_000
    assert cfg.storage.blob_dir == "blobs"


def test_null_section_uses_defaults(tmp_path: Path) -> None:
    (tmp_path / "distill.yaml").write_text("classifier:\n", encoding="utf-8")
    cfg = load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")
    assert cfg.classifier.sample_chars == 500


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def test_non_numeric_value_raises_config_error(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "distill.yaml", {"pipeline": {"max_retries": "lots"}})
    with pytest.raises(ConfigError, match="Invalid config value"):
        load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")


def test_inverted_target_bounds_rejected(tmp_path: Path) -> None:
    _write_yaml(
        tmp_path / "distill.yaml",
        {"compression": {"min_target_tokens": 5000, "max_target_tokens": 100}},
    )
    with pytest.raises(ConfigError, match="min_target_tokens"):
        load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")


def test_negative_retries_rejected(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "distill.yaml", {"pipeline": {"max_retries": -1}})
    with pytest.raises(ConfigError, match="max_retries"):
        load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")


# ---------------------------------------------------------------------------
# API key protection
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "bad_key",
    ["api_key", "apikey", "ANTHROPIC_API_KEY", "secret", "password", "token", "api-key"],
)
def test_global_config_rejects_api_key_fields(tmp_path: Path, bad_key: str) -> None:
    """Global config containing API key-like field names raises ConfigError."""
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text(f"{bad_key}: sk-abc123\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="forbidden key"):
        load_config(project_dir=tmp_path, global_config_path=global_cfg)


def test_global_config_rejects_nested_api_key(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"summarization": {"api_key": "sk-secret"}})

    with pytest.raises(ConfigError, match="forbidden key"):
        load_config(project_dir=tmp_path, global_config_path=global_cfg)


def test_token_limits_are_not_mistaken_for_keys(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"compression": {"max_output_tokens": 2048, "min_target_tokens": 50}})
    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.compression.max_output_tokens == 2048


# ---------------------------------------------------------------------------
# Unknown key warnings
# ---------------------------------------------------------------------------


def test_unknown_top_level_key_warns(tmp_path: Path) -> None:
    """Unknown top-level key in config emits UserWarning (not error)."""
    _write_yaml(tmp_path / "distill.yaml", {"embedding": {"model": "x"}})

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        cfg = load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")

    assert any("embedding" in str(w.message) for w in caught)
    assert cfg == DistillConfig()


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------


def test_env_vars_override_files(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write_yaml(tmp_path / "distill.yaml", {"summarization": {"model": "openai/gpt-4o"}})
    monkeypatch.setenv("DISTILL_SUMMARY_MODEL", "anthropic/claude-opus-4")
    monkeypatch.setenv("DISTILL_CLASSIFIER_MODEL", "openai/gpt-4o-mini")
    monkeypatch.setenv("DISTILL_COMPRESSION_MODEL", "ollama/llama3")

    cfg = load_config(project_dir=tmp_path, global_config_path=tmp_path / "none.yaml")
    assert cfg.summarization.model == "anthropic/claude-opus-4"
    assert cfg.classifier.model == "openai/gpt-4o-mini"
    assert cfg.compression.model == "ollama/llama3"


# ---------------------------------------------------------------------------
# ensure_global_config
# ---------------------------------------------------------------------------


def test_ensure_global_config_creates_file(tmp_path: Path) -> None:
    target = tmp_path / ".distill" / "config.yaml"
    result = ensure_global_config(global_config_path=target)

    assert result == target
    parsed = yaml.safe_load(target.read_text(encoding="utf-8"))
    assert set(parsed) == {"summarization", "classifier", "compression"}
    # the generated file must load cleanly as a global config
    load_config(project_dir=tmp_path, global_config_path=target)


def test_ensure_global_config_file_mode(tmp_path: Path) -> None:
    target = tmp_path / ".distill" / "config.yaml"
    ensure_global_config(global_config_path=target)
    assert stat.S_IMODE(target.stat().st_mode) == 0o600


def test_ensure_global_config_idempotent(tmp_path: Path) -> None:
    target = tmp_path / ".distill" / "config.yaml"
    ensure_global_config(global_config_path=target)
    target.write_text("summarization:\n  model: openai/gpt-4o-mini\n", encoding="utf-8")

    ensure_global_config(global_config_path=target)
    assert "gpt-4o-mini" in target.read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# yaml.safe_load enforcement
# ---------------------------------------------------------------------------


def test_config_does_not_execute_yaml_load(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text("!!python/object/apply:os.system ['echo pwned']\n", encoding="utf-8")

    with pytest.raises(yaml.YAMLError):
        load_config(project_dir=tmp_path, global_config_path=global_cfg)
