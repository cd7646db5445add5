import io
import random
import sys
from pathlib import Path

import docx
import fitz
import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from resume_critique.llm import FALLBACK_CRITIQUE


RESUME_TEXT = """Jane Doe
jane@example.com
Summary
Backend engineer building data platforms
Experience
Acme Corp 2019-2023
Education
BSc Computer Science
Skills
Python, SQL"""


@pytest.fixture
def sample_critique():
    """A full critique with every score, section and seven suggestions"""
    return FALLBACK_CRITIQUE


@pytest.fixture
def short_critique():
    """Three strengths/weaknesses/suggestions with two metric lines"""
    return (
        "completeness: 80\n"
        "technical skills: 70\n"
        "Strengths:\n1. Great formatting\n2. Clear structure\n"
        "Weaknesses:\n1. No metrics\n"
        "Suggestions:\n1. Add numbers: include metrics\n2. Rewrite summary: be specific\n"
        "3. Add keywords: use industry terms"
    )


@pytest.fixture
def seeded_rng():
    return random.Random(1234)


@pytest.fixture
def resume_text():
    return RESUME_TEXT


def make_pdf(text: str) -> bytes:
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), text, fontsize=11)
    data = doc.tobytes()
    doc.close()
    return data


def make_docx(paragraphs, table_cells=None) -> bytes:
    document = docx.Document()
    for paragraph in paragraphs:
        document.add_paragraph(paragraph)
    if table_cells:
        table = document.add_table(rows=1, cols=len(table_cells))
        for cell, value in zip(table.rows[0].cells, table_cells):
            cell.text = value
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def resume_pdf(resume_text):
    return make_pdf(resume_text)


@pytest.fixture
def resume_docx(resume_text):
    return make_docx(resume_text.split('\n'))


@pytest.fixture
def pdf_factory():
    return make_pdf


@pytest.fixture
def docx_factory():
    return make_docx
