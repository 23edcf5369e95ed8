from dataclasses import dataclass, replace
from typing import Optional

import structlog

from agroloop.errors import StorageError, ValidationError

logger = structlog.get_logger()

STORAGE_KEY = 'aiConfig'

SUPPORTED_MODELS = [
    'plant-disease-v1',
    'crop-health-v2',
    'agricultural-ai-v3',
    'plant-diagnosis-v1',
]


@dataclass(frozen=True)
class AIConfig:
    enable_real_time: bool = False
    use_free_models: bool = True
    plantnet_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None

    def to_dict(self, redact=False):
        data = {'enableRealTime': self.enable_real_time, 'useFreeModels': self.use_free_models}
        for key, value in (('plantnetApiKey', self.plantnet_api_key), ('openaiApiKey', self.openai_api_key)):
            if value:
                data[key] = '***' if redact else value
        return data

    @classmethod
    def from_dict(cls, data):
        for key in ('enableRealTime', 'useFreeModels'):
            if key in data and not isinstance(data[key], bool):
                raise ValidationError(key, f"{key} must be a boolean")
        for key in ('plantnetApiKey', 'openaiApiKey'):
            if data.get(key) is not None and not isinstance(data[key], str):
                raise ValidationError(key, f"{key} must be a string")
        return cls(
            enable_real_time=data.get('enableRealTime', False),
            use_free_models=data.get('useFreeModels', True),
            plantnet_api_key=data.get('plantnetApiKey') or None,
            openai_api_key=data.get('openaiApiKey') or None,
        )


class AIConfigRepository:
    """Loads and saves the device-wide :class:`AIConfig`."""

    def __init__(self, store, default=None):
        self.store = store
        self.default = default or AIConfig()

    def load(self):
        try:
            data = self.store.get_json(STORAGE_KEY)
            if data is not None:
                return AIConfig.from_dict(data)
        except (StorageError, ValidationError, AttributeError) as e:
            logger.error("Failed to load AI config", error=str(e))
        return self.default

    def save(self, config):
        self.store.set_json(STORAGE_KEY, config.to_dict())
        logger.info("AI config saved", real_time=config.enable_real_time,
                    plantnet=bool(config.plantnet_api_key), openai=bool(config.openai_api_key))
        return config

    def set_real_time(self, enabled):
        return self.save(replace(self.load(), enable_real_time=enabled))

    @staticmethod
    def supported_models():
        return list(SUPPORTED_MODELS)
