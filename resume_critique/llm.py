import logging
import time
import traceback
from typing import Any, Dict, List, NamedTuple, Optional

import requests
from groq import Groq

from .config import LLMSettings
from .prompt_handler import CritiqueServiceError, PromptHandler

logger = logging.getLogger('llm_critic')

# Returned when the model cannot be reached, so the rest of the pipeline still has text to parse
FALLBACK_CRITIQUE = """
Resume Analysis

Scores:
- Completeness: 72/100
- Technical Skills: 78/100
- Soft Skills: 65/100
- Keywords: 58/100
- ATS Compatibility: 68/100

Strengths:
1. Strong technical background with relevant programming languages and frameworks
2. Clear chronological work history with specific dates
3. Education credentials are well presented
4. Contact information is complete and professional
5. Good organization of sections with clear headings

Weaknesses:
1. Work experience lacks quantifiable achievements and metrics
2. Professional summary is too generic and doesn't highlight unique value proposition
3. Missing industry-specific keywords that would improve ATS compatibility
4. Soft skills are mentioned but not demonstrated with examples
5. No mention of certifications or professional development

Suggestions:
1. Add quantifiable achievements: Include specific metrics and results for each role (e.g., "Increased deployment efficiency by 40% through CI/CD implementation")
2. Enhance your professional summary: Make it more specific to your target role and highlight your unique strengths
3. Incorporate more industry keywords: Add terms from job descriptions in your field, especially for technical roles
4. Demonstrate soft skills: Provide brief examples of how you've applied leadership, communication, etc.
5. Add a certifications section: Include relevant professional certifications or courses
6. Standardize formatting: Ensure consistent date formats and bullet point styles throughout
7. Consider condensing to 2 pages: Focus on most relevant and recent experiences
"""


class RetryableError(Exception):
    """Transient API failure worth another attempt."""
    pass


class CritiqueResponse(NamedTuple):
    text: str
    used_fallback: bool = False


class CritiqueClient:
    def __init__(self, settings: Optional[LLMSettings] = None):
        """Initialize the client for the configured provider (deepseek or groq)."""
        self.settings = settings or LLMSettings()
        self.provider = self.settings.provider
        self.groq_client = None

        if not self.settings.api_key:
            raise ValueError(f"API key for provider '{self.provider}' not found in environment variables")

        if self.provider == 'groq':
            self.initialize_groq()

    def initialize_groq(self) -> None:
        try:
            self.groq_client = Groq(api_key=self.settings.api_key)
            logger.info("Successfully initialized Groq client")
        except Exception as e:
            logger.error(f"Failed to initialize Groq client: {str(e)}")
            logger.debug(f"Client initialization error details: {traceback.format_exc()}")
            raise RuntimeError("Failed to initialize Groq client") from e

    def handle_api_error(self, error: Exception, service: str) -> Exception:
        """Map a provider error onto a retryable or a final error."""
        error_msg = str(error)
        lowered = error_msg.lower()
        if "rate limit" in lowered or "429" in lowered:
            logger.warning(f"{service} API rate limit exceeded")
            return RetryableError(f"{service} rate limit exceeded")
        if "invalid api key" in lowered or "401" in lowered or "unauthorized" in lowered:
            logger.error(f"Invalid {service} API key")
            return ValueError(f"Invalid {service} API key. Please check your configuration.")
        if isinstance(error, (requests.exceptions.Timeout, requests.exceptions.ConnectionError)) \
                or any(marker in lowered for marker in ("timeout", "timed out", "connection error")):
            logger.warning(f"{service} API request timed out or connection failed")
            return RetryableError(f"{service} request timed out")
        if isinstance(error, requests.exceptions.HTTPError) and error.response is not None \
                and error.response.status_code >= 500:
            return RetryableError(f"{service} server error: {error_msg}")
        logger.error(f"Unexpected {service} API error: {error_msg}")
        return CritiqueServiceError(f"Unexpected error with {service} API: {error_msg}")

    def _post_deepseek(self, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.settings.api_key}",
        }
        data = {
            "model": self.settings.model,
            "messages": messages,
            "temperature": self.settings.temperature,
            "max_tokens": self.settings.max_tokens,
        }
        response = requests.post(
            self.settings.api_url,
            headers=headers,
            json=data,
            timeout=self.settings.timeout
        )
        response.raise_for_status()
        return response.json()

    def _create_groq(self, messages: List[Dict[str, str]]) -> Any:
        return self.groq_client.chat.completions.create(
            messages=messages,
            model=self.settings.model,
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens
        )

    def execute_request(self, messages: List[Dict[str, str]]) -> str:
        """Send the messages with exponential backoff on transient failures."""
        service = "Groq" if self.provider == 'groq' else "DeepSeek"
        max_retries = self.settings.max_retries
        last_error: Optional[Exception] = None

        for attempt in range(max_retries):
            try:
                logger.info(f"Making API request (attempt {attempt + 1}/{max_retries})")
                if self.provider == 'groq':
                    response = self._create_groq(messages)
                else:
                    response = self._post_deepseek(messages)
                logger.info("API request successful")
                return PromptHandler.extract_content(response)

            except CritiqueServiceError:
                raise
            except Exception as e:
                mapped = self.handle_api_error(e, service)
                if not isinstance(mapped, RetryableError):
                    raise mapped from e
                last_error = mapped
                if attempt < max_retries - 1:
                    wait_time = self.settings.retry_delay * (2 ** attempt)  # Exponential backoff
                    logger.info(f"Waiting {wait_time} seconds before retry...")
                    time.sleep(wait_time)

        logger.error("All retry attempts failed")
        raise CritiqueServiceError(f"{service} request failed after {max_retries} attempts") from last_error

    def critique(self, resume_text: str) -> CritiqueResponse:
        """
        Ask the model to critique a resume.

        Args:
            resume_text: Plain text extracted from the resume

        Returns:
            CritiqueResponse with the raw critique text. used_fallback is set when
            the canned critique was substituted for a failed call.
        """
        logger.info(f"Text length being sent to API: {len(resume_text)}")
        messages = PromptHandler.create_critique_prompt(resume_text)
        try:
            return CritiqueResponse(self.execute_request(messages))
        except (CritiqueServiceError, ValueError) as e:
            if not self.settings.fallback_on_error:
                raise
            logger.error(f"Critique request failed, returning fallback critique: {str(e)}")
            return CritiqueResponse(FALLBACK_CRITIQUE, used_fallback=True)
