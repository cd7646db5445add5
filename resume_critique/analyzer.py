import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .config import CritiqueSettings, load_settings
from .critique_parser import CritiqueParser
from .extractor import ResumeExtractor
from .llm import CritiqueClient
from .logging_config import setup_logging
from .parallel_processor import ParallelProcessor
from .schemas import CritiqueReport, ExtractedResume

logger = logging.getLogger(__name__)


class ResumeCritiqueService:
    """Extract resume text, ask the model for a critique and parse it into a scored record."""

    def __init__(
        self,
        settings: Optional[CritiqueSettings] = None,
        client: Optional[CritiqueClient] = None,
        parser: Optional[CritiqueParser] = None,
        extractor: Optional[ResumeExtractor] = None,
        configure_logging: bool = False
    ):
        if configure_logging:
            setup_logging()

        self.settings = settings or load_settings()
        self.client = client or CritiqueClient(self.settings.llm)
        self.parser = parser or CritiqueParser.from_settings(self.settings.parser)
        self.extractor = extractor or ResumeExtractor.from_settings(self.settings.extraction)
        self.processor = ParallelProcessor(max_workers=self.settings.processing.max_workers)

    def critique_text(
        self,
        resume_text: str,
        source_name: Optional[str] = None,
        extracted: Optional[ExtractedResume] = None
    ) -> CritiqueReport:
        """Critique already extracted resume text."""
        if not isinstance(resume_text, str) or not resume_text.strip():
            logger.error("Empty resume text provided for critique")
            raise ValueError("No resume text provided for critique")

        response = self.client.critique(resume_text)
        critique = self.parser.parse(response.text)

        if critique.fallback_metrics:
            logger.warning(f"Fallback scores used for: {', '.join(critique.fallback_metrics)}")

        return CritiqueReport(
            critique=critique,
            ai_response=response.text,
            used_fallback_response=response.used_fallback,
            extracted=extracted,
            source_name=source_name
        )

    def critique_file(self, file_bytes: bytes, filename: str) -> CritiqueReport:
        """Extract a PDF/DOCX resume and critique its text."""
        extracted = self.extractor.extract(file_bytes, filename)
        return self.critique_text(extracted.text, source_name=filename, extracted=extracted)

    def _critique_path(self, path: Union[str, Path]) -> CritiqueReport:
        path = Path(path)
        return self.critique_file(path.read_bytes(), path.name)

    def critique_paths(self, paths: Sequence[Union[str, Path]]) -> Tuple[List[Any], Dict[str, Any]]:
        """
        Critique many resume files concurrently.

        Returns:
            Tuple of (reports or error dicts in input order, statistics dict)
        """
        paths = [Path(p) for p in paths]
        logger.info(f"Critiquing {len(paths)} resumes with {self.processor.max_workers} workers")
        return self.processor.process_batch(paths, self._critique_path)

    def parse_many(self, raw_critiques: Sequence[Any]) -> Tuple[List[Any], Dict[str, Any]]:
        """Parse many critique texts concurrently; non-text entries come back as error dicts."""
        return self.processor.process_batch(list(raw_critiques), self.parser.parse)
