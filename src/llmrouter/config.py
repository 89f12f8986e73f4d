"""Configuration: runtime settings from environment variables and the router config file."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, model_validator

from llmrouter.errors import ConfigError
from llmrouter.stages.rules import DEFAULT_RULES, RoutingRule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    config_path: str = "config/router_config.json"
    store_path: str = ""  # empty keeps processing state in memory only
    output_path: str = "output/batch_results.json"
    ollama_host: str = "localhost"
    ollama_port: int = 11434
    gemini_api_key: str = ""
    request_timeout: float = 60.0
    batch_size: int = 10
    log_level: str = "INFO"

    @property
    def ollama_base_url(self) -> str:
        return f"http://{self.ollama_host}:{self.ollama_port}"

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            config_path=os.environ.get("ROUTER_CONFIG_PATH", "config/router_config.json"),
            store_path=os.environ.get("STORE_PATH", ""),
            output_path=os.environ.get("OUTPUT_PATH", "output/batch_results.json"),
            ollama_host=os.environ.get("OLLAMA_HOST", "localhost"),
            ollama_port=int(os.environ.get("OLLAMA_PORT", "11434")),
            gemini_api_key=os.environ.get("GEMINI_API_KEY", ""),
            request_timeout=float(os.environ.get("REQUEST_TIMEOUT", "60")),
            batch_size=int(os.environ.get("BATCH_SIZE", "10")),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
        )


class ModelSpec(BaseModel):
    model: str
    description: str = ""
    max_tokens: int = 1000
    temperature: float = 0.7
    cost_per_1k_input: float = 0.0
    cost_per_1k_output: float = 0.0


def _default_local_models() -> dict[str, ModelSpec]:
    return {
        "classification": ModelSpec(
            model="llama3.2:3b", description="Fast classification model", max_tokens=256,
            temperature=0.1,
        ),
        "general_processing": ModelSpec(
            model="llama3.1:8b", description="General processing model", max_tokens=1000,
        ),
        "vision_analysis": ModelSpec(
            model="llama3.2-vision:11b", description="Vision analysis model", max_tokens=1000,
            temperature=0.3,
        ),
        "document_processing": ModelSpec(
            model="deepseek-coder:6.7b", description="Document processing model",
            max_tokens=2000, temperature=0.2,
        ),
        "complex_reasoning": ModelSpec(
            model="llama3.1:70b", description="Advanced reasoning model", max_tokens=4000,
            temperature=0.4,
        ),
    }


def _default_cloud_models() -> dict[str, ModelSpec]:
    return {
        "cloud_advanced": ModelSpec(
            model="gemini-2.5-pro", description="Most capable cloud model", max_tokens=4000,
            temperature=0.3, cost_per_1k_input=0.00125, cost_per_1k_output=0.01,
        ),
        "cloud_standard": ModelSpec(
            model="gemini-2.5-flash", description="Mid-tier cloud model", max_tokens=2000,
            temperature=0.5, cost_per_1k_input=0.0003, cost_per_1k_output=0.0025,
        ),
        "cloud_fast": ModelSpec(
            model="gemini-2.5-flash-lite", description="Fast low-latency cloud model",
            max_tokens=1000, temperature=0.5, cost_per_1k_input=0.0001,
            cost_per_1k_output=0.0004,
        ),
    }


class AlertThresholds(BaseModel):
    high_cost: float = 10.0  # daily spend, dollars
    high_latency_ms: float = 30000.0
    low_quality: float = 0.7


class MonitoringConfig(BaseModel):
    alerts: AlertThresholds = Field(default_factory=AlertThresholds)


class DuplicateDetectionConfig(BaseModel):
    processing_version: str = "2.0.0"
    priority_tags_version: str = "2.0.0"
    max_retries: int = 3
    quality_threshold: float = 0.7
    default_quality_score: float = 0.8


class OptimizerConfig(BaseModel):
    cost_fallback_model: str = "complex_reasoning"
    latency_fallback_model: str = "cloud_fast"
    cloud_fallback_model: str = "cloud_standard"


class RouterConfig(BaseModel):
    local_models: dict[str, ModelSpec] = Field(default_factory=_default_local_models)
    cloud_models: dict[str, ModelSpec] = Field(default_factory=_default_cloud_models)
    routing_rules: list[RoutingRule] = Field(default_factory=lambda: list(DEFAULT_RULES))
    fallback_model: str = "general_processing"
    priority_tags: dict[str, float] = Field(
        default_factory=lambda: {"bitcoin": 1.5, "tesla": 1.3, "solana": 1.2, "sbr": 1.4}
    )
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    duplicate_detection: DuplicateDetectionConfig = Field(
        default_factory=DuplicateDetectionConfig
    )
    optimizer: OptimizerConfig = Field(default_factory=OptimizerConfig)

    @model_validator(mode="after")
    def _check_consistency(self) -> RouterConfig:
        if not self.routing_rules:
            raise ValueError("routing_rules must not be empty")
        if not self.routing_rules[-1].when.is_unconditional:
            raise ValueError(
                f"last routing rule '{self.routing_rules[-1].name}' must be unconditional"
            )
        for rule in self.routing_rules:
            catalog = self.catalog(rule.route_to)
            if catalog is not None and rule.model not in catalog:
                raise ValueError(
                    f"rule '{rule.name}' names unknown {rule.route_to} model '{rule.model}'"
                )
        if self.fallback_model not in self.local_models:
            raise ValueError(f"fallback model '{self.fallback_model}' is not a local model")
        if self.optimizer.cost_fallback_model not in self.local_models:
            raise ValueError(
                f"cost fallback '{self.optimizer.cost_fallback_model}' is not a local model"
            )
        for name in (self.optimizer.latency_fallback_model, self.optimizer.cloud_fallback_model):
            if name not in self.cloud_models:
                raise ValueError(f"cloud fallback '{name}' is not a cloud model")
        return self

    @property
    def priority_tag_names(self) -> frozenset[str]:
        return frozenset(tag.lower() for tag in self.priority_tags)

    def catalog(self, route_to: str) -> dict[str, ModelSpec] | None:
        """Model catalog for a destination, or None for destinations without models."""
        if route_to == "local":
            return self.local_models
        if route_to == "cloud":
            return self.cloud_models
        return None


def load_router_config(path: str | Path) -> RouterConfig:
    """Load the router config file, falling back to built-in defaults if it is absent.

    Any other failure is fatal: the router must not serve traffic with a
    partially loaded rule table.
    """
    path = Path(path)
    if not path.exists():
        logger.info("Router config %s not found, using built-in defaults", path)
        return RouterConfig()

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read router config {path}: {exc}") from exc

    try:
        config = RouterConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid router config {path}: {exc}") from exc

    logger.info(
        "Loaded router config %s: %d rules, %d local models, %d cloud models",
        path,
        len(config.routing_rules),
        len(config.local_models),
        len(config.cloud_models),
    )
    return config
