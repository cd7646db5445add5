import logging
import os
from pathlib import Path
from typing import Optional, Tuple, Union

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger('config')

DEFAULT_CONFIG_PATH = Path('config') / 'critique.yaml'

PROVIDER_KEY_ENV = {
    'deepseek': 'DEEPSEEK_API_KEY',
    'groq': 'GROQ_API_KEY',
}


class LLMSettings(BaseModel):
    provider: str = Field('deepseek', pattern="^(deepseek|groq)$")
    model: str = 'deepseek-chat'
    api_url: str = 'https://api.deepseek.com/v1/chat/completions'
    api_key: Optional[str] = None
    temperature: float = Field(0.7, ge=0, le=2)
    max_tokens: int = Field(2000, gt=0)
    timeout: int = Field(60, gt=0)
    max_retries: int = Field(3, ge=1)
    retry_delay: float = Field(2, ge=0)
    fallback_on_error: bool = True


class ParserSettings(BaseModel):
    fallback_score_min: int = 50
    fallback_score_max: int = 79
    clamp_scores: bool = False
    tier_caps: Tuple[int, int, int] = (3, 2, 2)

    @model_validator(mode='after')
    def check_fallback_range(self):
        if self.fallback_score_min > self.fallback_score_max:
            raise ValueError("fallback_score_min must not exceed fallback_score_max")
        return self


class ExtractionSettings(BaseModel):
    max_file_size_mb: int = Field(100, gt=0)


class ProcessingSettings(BaseModel):
    max_workers: int = Field(4, ge=1)


class CritiqueSettings(BaseModel):
    llm: LLMSettings = Field(default_factory=LLMSettings)
    parser: ParserSettings = Field(default_factory=ParserSettings)
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    processing: ProcessingSettings = Field(default_factory=ProcessingSettings)


def _load_yaml(path: Path) -> dict:
    """Read the YAML config, treating a missing file as empty."""
    if not path.exists():
        logger.info(f"No config file at {path}, using defaults")
        return {}
    with open(path, 'r') as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return data


def load_settings(path: Optional[Union[str, Path]] = None) -> CritiqueSettings:
    """
    Build settings from the YAML config file and the environment.

    Args:
        path: Config file path. Falls back to CRITIQUE_CONFIG, then config/critique.yaml

    Returns:
        CritiqueSettings with API keys resolved from the environment
    """
    load_dotenv(override=True)

    config_path = Path(path or os.getenv('CRITIQUE_CONFIG', DEFAULT_CONFIG_PATH))
    data = _load_yaml(config_path)

    llm_data = dict(data.get('llm') or {})
    provider = os.getenv('CRITIQUE_PROVIDER')
    if provider:
        llm_data['provider'] = provider.lower()
    data['llm'] = llm_data

    settings = CritiqueSettings(**data)

    # API keys are never read from the YAML file
    key_env = PROVIDER_KEY_ENV[settings.llm.provider]
    settings.llm.api_key = os.getenv(key_env)
    if not settings.llm.api_key:
        logger.warning(f"{key_env} not found in environment variables")

    logger.info(f"Loaded settings (provider={settings.llm.provider}, model={settings.llm.model})")
    return settings
