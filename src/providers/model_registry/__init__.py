"""Model registry providers."""

from src.providers.model_registry.yaml_model_registry import YAMLModelRegistry

__all__ = ["YAMLModelRegistry"]
