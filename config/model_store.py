from __future__ import annotations

import json
import os
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any

from llm.types import ModelConfig

MODEL_CONFIG_PATH = Path("config/model_config.json")
DEFAULT_MODEL_CONFIG = ModelConfig(provider="local", model="kimi-k2.5")
SUPPORTED_PROVIDERS = {"local", "openrouter"}


def model_config_to_dict(config: ModelConfig) -> dict[str, Any]:
    data = asdict(config)
    return {k: v for k, v in data.items() if v is not None}


def model_config_from_dict(data: dict[str, Any]) -> ModelConfig:
    provider = data.get("provider", DEFAULT_MODEL_CONFIG.provider)
    if provider not in SUPPORTED_PROVIDERS:
        raise ValueError(f"Unknown model provider: {provider}")
    model = data.get("model", DEFAULT_MODEL_CONFIG.model)
    if not isinstance(model, str) or not model.strip():
        raise ValueError("model must be a non-empty string.")
    return ModelConfig(
        provider=provider,
        model=model.strip(),
        temperature=float(data.get("temperature", DEFAULT_MODEL_CONFIG.temperature)),
        top_p=data.get("top_p"),
        max_tokens=data.get("max_tokens"),
        base_url=data.get("base_url"),
        api_key=data.get("api_key"),
        extra_headers=dict(data.get("extra_headers", {})),
        timeout_seconds=int(data.get("timeout_seconds", DEFAULT_MODEL_CONFIG.timeout_seconds)),
    )


def load_model_config(path: Path = MODEL_CONFIG_PATH) -> ModelConfig:
    if not path.exists():
        return DEFAULT_MODEL_CONFIG
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        raise RuntimeError(f"Failed to read {path.name}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"{path.name} must contain an object.")
    return model_config_from_dict(data)


def resolve_model_config(path: Path = MODEL_CONFIG_PATH) -> ModelConfig:
    config = load_model_config(path)
    provider_raw = os.getenv("OPSCLAW_LLM_PROVIDER")
    model_raw = os.getenv("OPSCLAW_LLM_MODEL")
    base_url_raw = os.getenv("OPSCLAW_LLM_BASE_URL")
    api_key_raw = os.getenv("OPSCLAW_LLM_API_KEY")

    if isinstance(provider_raw, str) and provider_raw.strip():
        provider = provider_raw.strip().lower()
        if provider not in SUPPORTED_PROVIDERS:
            raise ValueError(f"OPSCLAW_LLM_PROVIDER must be one of {sorted(SUPPORTED_PROVIDERS)}.")
        config = replace(config, provider=provider)
    if isinstance(model_raw, str) and model_raw.strip():
        config = replace(config, model=model_raw.strip())
    if isinstance(base_url_raw, str) and base_url_raw.strip():
        config = replace(config, base_url=base_url_raw.strip())
    if isinstance(api_key_raw, str) and api_key_raw.strip():
        config = replace(config, api_key=api_key_raw.strip())
    return config


def save_model_config(config: ModelConfig, path: Path = MODEL_CONFIG_PATH) -> None:
    payload = model_config_to_dict(config)
    payload.pop("api_key", None)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
