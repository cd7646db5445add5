from .analyzer import ResumeCritiqueService
from .config import CritiqueSettings, load_settings
from .critique_parser import CritiqueParser, ParseFailure, parse, split_priority_tiers
from .extractor import ResumeExtractor, UnsupportedFormatError
from .llm import CritiqueClient, CritiqueResponse
from .prompt_handler import CritiqueServiceError
from .schemas import (
    CritiqueReport,
    ExtractedResume,
    ImprovementSuggestion,
    ImprovementSuggestions,
    SkillsMatch,
    StructuredCritique,
)

__all__ = [
    'ResumeCritiqueService',
    'CritiqueSettings',
    'load_settings',
    'CritiqueParser',
    'ParseFailure',
    'parse',
    'split_priority_tiers',
    'ResumeExtractor',
    'UnsupportedFormatError',
    'CritiqueClient',
    'CritiqueResponse',
    'CritiqueServiceError',
    'CritiqueReport',
    'ExtractedResume',
    'ImprovementSuggestion',
    'ImprovementSuggestions',
    'SkillsMatch',
    'StructuredCritique',
]
