"""Model id normalization used by every capability rule."""

from __future__ import annotations

from dataclasses import dataclass

from unified_stream.types import Model, Provider

# OpenRouter style routing variants, e.g. "deepseek/deepseek-r1:free"
_VARIANT_SUFFIXES = (":free", ":beta", ":extended", ":online", ":thinking")


def base_model_name(model_id: str, delimiter: str = "/") -> str:
    """Strip any provider/namespace prefix: ``openai/gpt-4o`` -> ``gpt-4o``."""
    return model_id.split(delimiter)[-1]


def lower_base_model_name(model_id: str, delimiter: str = "/") -> str:
    """Lower-cased base name with routing variant suffixes removed."""
    name = base_model_name(model_id, delimiter).lower()
    for suffix in _VARIANT_SUFFIXES:
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return name


@dataclass(frozen=True)
class ModelView:
    """Normalized facts about a model that rule predicates match against."""

    model: Model
    base_id: str
    name: str
    provider_id: str
    provider_type: str | None

    @classmethod
    def of(cls, model: Model, provider: Provider | None = None) -> ModelView:
        provider_id = (provider.id if provider else model.provider).lower()
        return cls(
            model=model,
            base_id=lower_base_model_name(model.id),
            name=lower_base_model_name(model.name) if model.name else "",
            provider_id=provider_id,
            provider_type=provider.type if provider else None,
        )

    def with_name_as_id(self) -> ModelView:
        """View of the same model matched by its display name instead of its id.

        Some vendors (e.g. Doubao endpoints) expose opaque machine ids while the
        human display name carries the family.
        """
        return ModelView(
            model=self.model,
            base_id=self.name,
            name=self.name,
            provider_id=self.provider_id,
            provider_type=self.provider_type,
        )
