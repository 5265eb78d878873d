from __future__ import annotations
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Type

from llmchat.core.errors import ProviderClientError
from llmchat.core.ports import ProviderClient
from llmchat.providers.anthropic_adapter import AnthropicClient
from llmchat.providers.openai_adapter import OpenAIClient

OPUS = "claude-3-opus-20240229"
SONNET = "claude-3-sonnet-20240229"
HAIKU = "claude-3-haiku-20240307"
GPT4 = "gpt-4-turbo"


@dataclass(frozen=True)
class ModelEntry:
    alias: str
    model_id: str
    provider: str


BUILTIN_MODELS: Mapping[str, ModelEntry] = MappingProxyType({
    "haiku": ModelEntry("haiku", HAIKU, "anthropic"),
    "sonnet": ModelEntry("sonnet", SONNET, "anthropic"),
    "opus": ModelEntry("opus", OPUS, "anthropic"),
    "gpt4": ModelEntry("gpt4", GPT4, "openai"),
})

# A new provider is one class with a `create(model_name=, provider_cfg=, secrets=)`
# classmethod plus one entry here.
BUILTIN_PROVIDERS: Mapping[str, Type] = MappingProxyType({
    "anthropic": AnthropicClient,
    "openai": OpenAIClient,
})


class ClientFactory:
    """
    The single place that knows which provider backs which model name.
    Built once at startup from config and passed to whoever needs a client.
    """

    def __init__(
        self,
        *,
        secrets,
        models: Optional[Mapping[str, ModelEntry]] = None,
        providers: Optional[Mapping[str, Type]] = None,
        provider_cfgs: Optional[Mapping[str, Dict[str, Any]]] = None,
    ):
        self._secrets = secrets
        self._models = {k.lower(): v for k, v in (models if models is not None else BUILTIN_MODELS).items()}
        self._providers = dict(providers if providers is not None else BUILTIN_PROVIDERS)
        self._provider_cfgs = dict(provider_cfgs or {})
        for entry in self._models.values():
            if entry.provider not in self._providers:
                raise ProviderClientError(
                    f"Model '{entry.alias}' uses unknown provider '{entry.provider}'"
                )

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], secrets) -> "ClientFactory":
        models = dict(BUILTIN_MODELS)
        for alias, spec in (cfg.get("models") or {}).items():
            key = str(alias).lower()
            models[key] = ModelEntry(key, str(spec["id"]), str(spec["provider"]).lower())

        http_cfg = cfg.get("http") or {}
        provider_cfgs = {
            name: {**(pc or {}), "http": {**http_cfg, **((pc or {}).get("http") or {})}}
            for name, pc in (cfg.get("providers") or {}).items()
        }
        for name in BUILTIN_PROVIDERS:
            provider_cfgs.setdefault(name, {"http": dict(http_cfg)})
        return cls(secrets=secrets, models=models, provider_cfgs=provider_cfgs)

    def names(self) -> List[str]:
        return sorted(self._models)

    def resolve(self, name: str) -> ModelEntry:
        key = (name or "").lower()
        if key not in self._models:
            raise ProviderClientError(
                f"input model must be one of [{', '.join(self.names())}], got '{name}'"
            )
        return self._models[key]

    def create(self, name: str, **kwargs) -> ProviderClient:
        entry = self.resolve(name)
        klass = self._providers[entry.provider]
        return klass.create(
            model_name=entry.model_id,
            provider_cfg=self._provider_cfgs.get(entry.provider, {}),
            secrets=self._secrets,
            **kwargs,
        )
