from typing import Any, Dict, List
import logging

logger = logging.getLogger(__name__)

METRIC_NAMES = "completeness, technical skills, soft skills, keywords, and ATS compatibility"

SYSTEM_PROMPT = (
    "You are an expert resume analyzer for the South African job market. "
    "Analyze the resume text and provide detailed feedback on its strengths, weaknesses, "
    "and suggestions for improvement. Focus on ATS compatibility, content quality, and formatting. "
    f"Include numerical scores (0-100) for: {METRIC_NAMES}."
)

USER_PROMPT = (
    "Please analyze this resume and provide a detailed assessment with scores and specific "
    "improvement suggestions. Format your response with clear sections for Strengths, Weaknesses, "
    f"and Suggestions. Include numerical scores (0-100) for {METRIC_NAMES}.\n\n"
    "RESUME TEXT:\n{resume_text}"
)


class CritiqueServiceError(RuntimeError):
    """Raised when the critique model cannot produce a usable response."""
    pass


class PromptHandler:
    @classmethod
    def create_critique_prompt(cls, resume_text: str) -> List[Dict[str, str]]:
        """Chat messages asking the model for a sectioned, scored critique"""
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": USER_PROMPT.format(resume_text=resume_text)},
        ]

    @classmethod
    def extract_content(cls, response: Any) -> str:
        """
        Pull choices[0].message.content out of a chat completion.

        Accepts both the JSON payload returned over HTTP and SDK response objects.

        Raises:
            CritiqueServiceError: If the response does not have the expected shape
        """
        try:
            if isinstance(response, dict):
                content = response['choices'][0]['message']['content']
            else:
                content = response.choices[0].message.content
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            logger.error(f"Unexpected API response format: {str(response)[:200]}")
            raise CritiqueServiceError("Unexpected API response format") from e

        if not isinstance(content, str) or not content.strip():
            logger.error("API response contained no critique text")
            raise CritiqueServiceError("Empty critique in API response")

        return content.strip()
