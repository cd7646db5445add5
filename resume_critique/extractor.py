import logging
import re

from .pdf import DEFAULT_MAX_FILE_SIZE, DOCXProcessor, PDFProcessor
from .schemas import ExtractedResume, ResumeSections

logger = logging.getLogger(__name__)


class UnsupportedFormatError(ValueError):
    """Raised for resume files that are neither PDF nor DOCX."""
    pass


class ResumeExtractor:
    def __init__(self, max_file_size: int = DEFAULT_MAX_FILE_SIZE):
        self.supported_formats = {'.pdf': PDFProcessor, '.docx': DOCXProcessor}
        self.max_file_size = max_file_size

    @classmethod
    def from_settings(cls, settings) -> 'ResumeExtractor':
        return cls(max_file_size=settings.max_file_size_mb * 1024 * 1024)

    def extract(self, file_bytes: bytes, filename: str) -> ExtractedResume:
        """Extract text, sections and the photo flag from a PDF or DOCX resume."""
        processor = self._get_processor(filename)

        text = processor.extract_text(file_bytes, max_size=self.max_file_size)
        text = self._clean_text(text)

        sections = processor.extract_sections(text)
        has_photo = processor.has_images(file_bytes) or processor.mentions_photo(text)

        logger.info(f"Extracted {len(text)} characters from {filename}")
        return ExtractedResume(
            text=text,
            has_photo=has_photo,
            sections=ResumeSections(**sections)
        )

    def _get_processor(self, filename: str):
        file_ext = self._get_file_extension(filename)
        if file_ext not in self.supported_formats:
            logger.error(f"Unsupported file format: {file_ext}")
            raise UnsupportedFormatError(f"Unsupported file format: {file_ext}")
        return self.supported_formats[file_ext]

    def _get_file_extension(self, filename: str) -> str:
        """Get the lowercase file extension including the dot."""
        if '.' not in filename:
            return ''
        return filename[filename.rfind('.'):].lower()

    def _clean_text(self, text: str) -> str:
        """Collapse runs of spaces and blank lines, keeping line structure for section detection."""
        text = text.replace('\r\n', '\n').replace('\r', '\n')
        text = re.sub(r'[ \t\f\v]+', ' ', text)
        text = re.sub(r'\n\s*\n+', '\n', text)
        return text.strip()
