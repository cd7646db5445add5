import io
import logging
import re
import traceback
from typing import Dict, List, Optional, Tuple

import fitz
import pdfplumber
import PyPDF2
from docx import Document

logger = logging.getLogger('pdf_processor')

DEFAULT_MAX_FILE_SIZE = 100 * 1024 * 1024  # 100MB

SECTION_KEYWORDS = {
    'summary': ['summary', 'profile', 'objective', 'about me', 'about'],
    'education': ['education', 'academic background', 'qualifications'],
    'experience': ['work experience', 'experience', 'work history', 'employment'],
    'skills': ['technical skills', 'skills', 'core competencies', 'expertise'],
}

CONTACT_PATTERN = re.compile(
    r'[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}'
    r'|\+\d{1,3}[\s-]?\d{1,14}'
    r'|\d{3}[\s-]?\d{3}[\s-]?\d{4}'
)

PHOTO_INDICATORS = [
    re.compile(r'photo', re.IGNORECASE),
    re.compile(r'picture', re.IGNORECASE),
    re.compile(r'image', re.IGNORECASE),
    re.compile(r'portrait', re.IGNORECASE),
    re.compile(r'headshot', re.IGNORECASE),
    re.compile(r'profile pic', re.IGNORECASE),
]


class DocumentProcessingError(Exception):
    """Base exception for document processing errors."""
    pass


class PDFProcessingError(DocumentProcessingError):
    """Custom exception for PDF processing errors."""
    pass


class DOCXProcessingError(DocumentProcessingError):
    """Custom exception for DOCX processing errors."""
    pass


def _check_size(file_bytes: bytes, max_size: int, error_cls) -> None:
    if not file_bytes:
        logger.error("No file content provided")
        raise error_cls("No file content was provided")
    if len(file_bytes) > max_size:
        logger.error(f"File too large: {len(file_bytes) / (1024*1024):.2f}MB")
        raise error_cls(f"File size exceeds {max_size // (1024*1024)}MB limit")


class DocumentProcessor:
    """Base class for document processing."""

    @staticmethod
    def _match_header(line: str) -> Tuple[Optional[str], str]:
        """Return the section a short heading opens and any text after its colon."""
        heading, _, rest = line.partition(':')
        clean = heading.strip().lower()
        if not clean or len(clean.split()) > 4:
            return None, ''
        for section, keywords in SECTION_KEYWORDS.items():
            if any(re.search(rf'\b{re.escape(keyword)}\b', clean) for keyword in keywords):
                return section, rest.strip()
        return None, ''

    @staticmethod
    def extract_sections(text: str) -> Dict[str, Optional[str]]:
        """
        Extract key resume sections from plain text

        Args:
            text: Raw text from document

        Returns:
            Dict with summary, education, experience, skills and contact entries.
            Sections not found are None.
        """
        if not isinstance(text, str):
            logger.error(f"Invalid input type for text: {type(text)}")
            raise TypeError("Input text must be a string")

        collected: Dict[str, List[str]] = {section: [] for section in SECTION_KEYWORDS}
        current_section = None

        for line in text.split('\n'):
            line = line.strip()
            if not line:
                continue

            header, rest = DocumentProcessor._match_header(line)
            if header:
                current_section = header
                if rest:
                    collected[current_section].append(rest)
                continue

            if current_section:
                collected[current_section].append(line)

        sections: Dict[str, Optional[str]] = {
            section: '\n'.join(lines) if lines else None
            for section, lines in collected.items()
        }

        contacts = CONTACT_PATTERN.findall(text)
        sections['contact'] = ' | '.join(match.strip() for match in contacts) if contacts else None

        logger.debug(f"Extracted sections: {[k for k, v in sections.items() if v]}")
        return sections

    @staticmethod
    def mentions_photo(text: str) -> bool:
        """Whether the text refers to a photo of the candidate."""
        return any(pattern.search(text) for pattern in PHOTO_INDICATORS)


class PDFProcessor(DocumentProcessor):
    """Processor for PDF documents."""

    @staticmethod
    def extract_text(file_bytes: bytes, max_size: int = DEFAULT_MAX_FILE_SIZE) -> str:
        """
        Extract text from PDF bytes, trying PyMuPDF, pdfplumber and PyPDF2 in turn

        Raises:
            PDFProcessingError: If PDF is corrupted, too large or has no readable text
        """
        _check_size(file_bytes, max_size, PDFProcessingError)

        text = ""
        try:
            with fitz.open(stream=file_bytes, filetype="pdf") as doc:
                if doc.page_count == 0:
                    logger.error("PDF document contains no pages")
                    raise PDFProcessingError("The PDF document contains no pages")
                text = "\n".join(page.get_text() for page in doc)
        except PDFProcessingError:
            raise
        except Exception as e:
            logger.warning(f"PyMuPDF extraction failed: {str(e)}")

        if not text.strip():
            try:
                with pdfplumber.open(io.BytesIO(file_bytes)) as pdf:
                    text = "\n".join(page.extract_text() or "" for page in pdf.pages)
            except Exception as e:
                logger.warning(f"pdfplumber extraction failed: {str(e)}")

        if not text.strip():
            try:
                reader = PyPDF2.PdfReader(io.BytesIO(file_bytes))
                text = "\n".join(page.extract_text() or "" for page in reader.pages)
            except Exception as e:
                logger.warning(f"PyPDF2 extraction failed: {str(e)}")

        if not text.strip():
            logger.warning("Extracted text is empty")
            raise PDFProcessingError("No readable text found in the PDF")

        return text.strip()

    @staticmethod
    def has_images(file_bytes: bytes) -> bool:
        """Whether any page of the PDF embeds an image."""
        try:
            with fitz.open(stream=file_bytes, filetype="pdf") as doc:
                return any(page.get_images(full=False) for page in doc)
        except Exception as e:
            logger.warning(f"Could not inspect PDF images: {str(e)}")
            return False


class DOCXProcessor(DocumentProcessor):
    """Processor for DOCX documents."""

    @staticmethod
    def extract_text(file_bytes: bytes, max_size: int = DEFAULT_MAX_FILE_SIZE) -> str:
        """
        Extract text from DOCX bytes, paragraphs first and then table cells

        Raises:
            DOCXProcessingError: If DOCX is corrupted, too large or has no readable text
        """
        _check_size(file_bytes, max_size, DOCXProcessingError)

        try:
            doc = Document(io.BytesIO(file_bytes))
            text = [paragraph.text for paragraph in doc.paragraphs if paragraph.text.strip()]

            for table in doc.tables:
                for row in table.rows:
                    for cell in row.cells:
                        if cell.text.strip():
                            text.append(cell.text)
        except Exception as e:
            logger.error(f"Failed to process DOCX: {str(e)}")
            logger.debug(f"DOCX processing error details: {traceback.format_exc()}")
            raise DOCXProcessingError("Unable to process DOCX file. Please ensure it is not corrupted.") from e

        full_text = '\n'.join(text).strip()
        if not full_text:
            logger.warning("Extracted text is empty")
            raise DOCXProcessingError("No readable text found in the DOCX")

        return full_text

    @staticmethod
    def has_images(file_bytes: bytes) -> bool:
        """Whether the document contains inline pictures."""
        try:
            return bool(Document(io.BytesIO(file_bytes)).inline_shapes)
        except Exception as e:
            logger.warning(f"Could not inspect DOCX images: {str(e)}")
            return False
