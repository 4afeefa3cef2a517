"""Provider 与模型配置。

集中记录端点基础 URL 与默认模型，上层只在没有显式指定 model_name 时
才使用这里的默认值，便于后续升级或切换。"""

from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass(frozen=True)
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    base_url: str
    default_model: str

    def resolve_model(self, model_name: Optional[str]) -> str:
        return model_name or self.default_model


OPENAI_CONFIG = ProviderConfig(
    name="openai",
    base_url="https://api.openai.com/v1",
    default_model="gpt-4-turbo",
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "openai": OPENAI_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")
