from typing import Dict, List, Optional, Tuple, Any
from pydantic import BaseModel, ConfigDict, Field


class ImprovementSuggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = Field(..., description="Short heading of the suggestion")
    description: str = Field(..., description="What the candidate should change")


class ImprovementSuggestions(BaseModel):
    model_config = ConfigDict(frozen=True)

    high_priority: Tuple[ImprovementSuggestion, ...] = ()
    medium_priority: Tuple[ImprovementSuggestion, ...] = ()
    low_priority: Tuple[ImprovementSuggestion, ...] = ()

    def to_record(self) -> Dict[str, List[Dict[str, str]]]:
        """Stored shape of the suggestion tiers."""
        return {
            'highPriority': [s.model_dump() for s in self.high_priority],
            'mediumPriority': [s.model_dump() for s in self.medium_priority],
            'lowPriority': [s.model_dump() for s in self.low_priority],
        }


class SkillsMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    technical: int
    soft: int
    keywords: int


class StructuredCritique(BaseModel):
    """Scored, fixed-shape record parsed from a free-text AI critique."""
    model_config = ConfigDict(frozen=True)

    completeness_score: int
    skills_match: SkillsMatch
    ats_score: int
    strengths: Tuple[str, ...] = Field(default=(), max_length=5)
    weaknesses: Tuple[str, ...] = Field(default=(), max_length=5)
    improvement_suggestions: ImprovementSuggestions = ImprovementSuggestions()
    # Metrics whose score is a placeholder rather than a value read from the text
    fallback_metrics: Tuple[str, ...] = ()


class ResumeSections(BaseModel):
    summary: Optional[str] = None
    education: Optional[str] = None
    experience: Optional[str] = None
    skills: Optional[str] = None
    contact: Optional[str] = None


class ExtractedResume(BaseModel):
    text: str
    has_photo: bool = False
    sections: ResumeSections = Field(default_factory=ResumeSections)


class CritiqueReport(BaseModel):
    critique: StructuredCritique
    ai_response: str
    used_fallback_response: bool = False
    extracted: Optional[ExtractedResume] = None
    source_name: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        """Flatten into the column layout used by the resume_analyses table."""
        critique = self.critique
        return {
            'completeness_score': critique.completeness_score,
            'technical_skills_score': critique.skills_match.technical,
            'soft_skills_score': critique.skills_match.soft,
            'keywords_score': critique.skills_match.keywords,
            'ats_compatibility_score': critique.ats_score,
            'strengths': list(critique.strengths),
            'weaknesses': list(critique.weaknesses),
            'improvement_suggestions': critique.improvement_suggestions.to_record(),
            'ai_response': self.ai_response,
        }
