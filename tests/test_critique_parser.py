import math
import random
import threading

import pytest
from pydantic import ValidationError

from resume_critique.critique_parser import (
    CritiqueParser,
    LineTag,
    ParseFailure,
    parse,
    scan_lines,
    split_fragments,
    split_priority_tiers,
    to_suggestion,
)
from resume_critique.config import ParserSettings

ALL_METRICS = ('completeness', 'technical', 'soft', 'keywords', 'ats')


def scores_of(critique):
    return {
        'completeness': critique.completeness_score,
        'technical': critique.skills_match.technical,
        'soft': critique.skills_match.soft,
        'keywords': critique.skills_match.keywords,
        'ats': critique.ats_score,
    }


class TestScores:
    def test_full_critique_scores(self, sample_critique):
        """Every metric line of the sample critique is read exactly"""
        critique = parse(sample_critique)
        assert scores_of(critique) == {
            'completeness': 72,
            'technical': 78,
            'soft': 65,
            'keywords': 58,
            'ats': 68,
        }
        assert critique.fallback_metrics == ()

    @pytest.mark.parametrize("value", [0, 1, 55, 99, 100])
    def test_completeness_exact(self, value):
        critique = parse(f"Some preamble\ncompleteness: {value}\nStrengths:\n- Tidy layout")
        assert critique.completeness_score == value
        assert 'completeness' not in critique.fallback_metrics

    def test_missing_labels_fall_back_into_range(self):
        """Without any label every score is a placeholder in [50, 79]"""
        for _ in range(20):
            critique = parse("Strengths:\n- Tidy layout")
            assert critique.fallback_metrics == ALL_METRICS
            for score in scores_of(critique).values():
                assert 50 <= score <= 79

    def test_injected_rng_gives_exact_fallbacks(self, short_critique, seeded_rng):
        """Fallback draws come from the injected generator in metric order"""
        expected_rng = random.Random()
        expected_rng.setstate(seeded_rng.getstate())
        expected = [expected_rng.randint(50, 79) for _ in range(3)]

        critique = parse(short_critique, rng=seeded_rng)

        assert critique.fallback_metrics == ('soft', 'keywords', 'ats')
        assert [critique.skills_match.soft, critique.skills_match.keywords, critique.ats_score] == expected

    def test_fixed_rng_is_reproducible(self):
        first = parse("", rng=random.Random(99))
        second = parse("", rng=random.Random(99))
        assert scores_of(first) == scores_of(second)

    def test_out_of_range_score_passes_through(self):
        critique = parse("Technical Skills: 150\nATS Compatibility: 0")
        assert critique.skills_match.technical == 150
        assert critique.ats_score == 0

    def test_clamp_policy(self):
        critique = parse("Technical Skills: 150\nCompleteness: 100", clamp_scores=True)
        assert critique.skills_match.technical == 100
        assert critique.completeness_score == 100

    def test_malformed_number_falls_back(self):
        """A label with no integer on its line is not read from the next line"""
        critique = parse("Completeness: N/A\nTechnical skills: 70", rng=random.Random(3))
        assert 'completeness' in critique.fallback_metrics
        assert 50 <= critique.completeness_score <= 79
        assert critique.skills_match.technical == 70

    def test_inline_mention_in_prose(self):
        critique = parse("Overall, the completeness of this resume is 85 out of 100.")
        assert critique.completeness_score == 85

    def test_dedicated_line_beats_earlier_inline_mention(self):
        text = "The completeness check covered 3 areas.\nCompleteness: 64/100"
        assert parse(text).completeness_score == 64

    def test_score_line_variants(self):
        text = (
            "**Completeness Score:** 81%\n"
            "- Technical Skills Match - 77/100\n"
            "* Soft skills = 66\n"
            "Keyword match: 59 out of 100\n"
            "ATS Compatibility Score: 70 points"
        )
        assert scores_of(parse(text)) == {
            'completeness': 81,
            'technical': 77,
            'soft': 66,
            'keywords': 59,
            'ats': 70,
        }

    def test_score_on_following_line(self):
        critique = parse("**Completeness Score**\n85/100\nATS Compatibility:\n\n70%")
        assert critique.completeness_score == 85
        assert critique.ats_score == 70
        assert critique.fallback_metrics == ('technical', 'soft', 'keywords')

    def test_label_line_followed_by_prose_falls_back(self):
        critique = parse("Keywords:\n- 5 relevant terms missing", rng=random.Random(5))
        assert 'keywords' in critique.fallback_metrics

    def test_same_values_in_different_texts(self):
        first = parse("Completeness: 70\nStrengths:\n- A")
        second = parse("Intro text\n\nCompleteness: 70\nWeaknesses:\n- B\n- C")
        assert first.completeness_score == second.completeness_score == 70


class TestSections:
    def test_short_critique_lists(self, short_critique):
        critique = parse(short_critique)
        assert critique.completeness_score == 80
        assert critique.skills_match.technical == 70
        assert critique.strengths == ("Great formatting", "Clear structure")
        assert critique.weaknesses == ("No metrics",)

    def test_lists_capped_at_five(self):
        text = "Strengths:\n" + "\n".join(f"{i}. Point {i}" for i in range(1, 8))
        critique = parse(text)
        assert critique.strengths == ("Point 1", "Point 2", "Point 3", "Point 4", "Point 5")

    def test_bullet_markers(self):
        text = "Strengths:\n• Clear layout • Strong verbs\n- Good education\n* Solid skills"
        critique = parse(text)
        assert critique.strengths == ("Clear layout", "Strong verbs", "Good education", "Solid skills")

    def test_header_with_inline_content(self):
        critique = parse("Strengths: Great formatting\nWeaknesses: No metrics")
        assert critique.strengths == ("Great formatting",)
        assert critique.weaknesses == ("No metrics",)

    def test_markdown_headers(self):
        text = (
            "## Strengths\n- Clean layout\n"
            "**Weaknesses:**\n- Generic summary\n"
            "### Suggestions for Improvement\n1. Quantify results: add numbers"
        )
        critique = parse(text)
        assert critique.strengths == ("Clean layout",)
        assert critique.weaknesses == ("Generic summary",)
        assert critique.improvement_suggestions.high_priority[0].title == "Quantify results"

    def test_missing_sections_are_empty(self):
        critique = parse("Completeness: 70\nTechnical skills: 60")
        assert critique.strengths == ()
        assert critique.weaknesses == ()
        suggestions = critique.improvement_suggestions
        assert suggestions.high_priority == suggestions.medium_priority == suggestions.low_priority == ()

    def test_repeated_header_appends(self):
        critique = parse("Strengths:\n- A\nWeaknesses:\n- B\nStrengths:\n- C")
        assert critique.strengths == ("A", "C")
        assert critique.weaknesses == ("B",)

    def test_metric_line_inside_section_is_not_content(self):
        critique = parse("Strengths:\n- Clear layout\n- ATS Compatibility: 90/100\n- Good verbs")
        assert critique.strengths == ("Clear layout", "Good verbs")
        assert critique.ats_score == 90

    def test_preamble_is_ignored(self):
        critique = parse("Overall a solid resume.\nStrengths:\n- Tidy layout")
        assert critique.strengths == ("Tidy layout",)

    def test_label_at_end_of_text(self):
        critique = parse("Strengths:\n- Tidy layout\nWeaknesses:")
        assert critique.strengths == ("Tidy layout",)
        assert critique.weaknesses == ()

    def test_numbered_line_mentioning_keyword_stays_content(self):
        critique = parse("Suggestions:\n1. Highlight strengths\n2. Remove weaknesses")
        high = critique.improvement_suggestions.high_priority
        assert [s.description for s in high] == ["Highlight strengths"]
        assert critique.strengths == ()

    def test_numbered_bold_headers(self):
        text = (
            "1. **Strengths:**\n   - Clean layout\n   - Strong verbs\n"
            "2. **Weaknesses:**\n   - No metrics\n"
            "3. **Suggestions:**\n   - Add numbers: quantify"
        )
        critique = parse(text)
        assert critique.strengths == ("Clean layout", "Strong verbs")
        assert critique.weaknesses == ("No metrics",)
        high = critique.improvement_suggestions.high_priority
        assert [(s.title, s.description) for s in high] == [("Add numbers", "quantify")]

    def test_suggestion_subheading_stays_in_suggestions(self):
        text = (
            "Strengths:\n- A\nWeaknesses:\n- B\nSuggestions:\n"
            "Highlight your strengths:\n- lead with impact\n- X: y"
        )
        critique = parse(text)
        assert critique.strengths == ("A",)
        suggestions = critique.improvement_suggestions
        assert [s.title for s in suggestions.high_priority] == ["Highlight your strengths"]
        assert [s.description for s in suggestions.medium_priority] == ["lead with impact"]
        assert [(s.title, s.description) for s in suggestions.low_priority] == [("X", "y")]

    def test_prefixed_headers(self):
        critique = parse("Key Strengths:\n- A\nAreas of Weakness:\n- B")
        assert critique.strengths == ("A",)
        assert critique.weaknesses == ("B",)

    def test_inline_enumeration_split(self):
        critique = parse("Strengths: 1. Great formatting 2. Clear structure")
        assert critique.strengths == ("Great formatting", "Clear structure")

    def test_decimal_is_not_enumeration(self):
        assert split_fragments("3.5 years of Python") == ["3.5 years of Python"]
        assert split_fragments("Raised score to 3.5 this year") == ["Raised score to 3.5 this year"]


class TestSuggestions:
    def test_short_critique_tiers(self, short_critique):
        """Three suggestions split one per tier"""
        suggestions = parse(short_critique).improvement_suggestions
        assert [(s.title, s.description) for s in suggestions.high_priority] == [("Add numbers", "include metrics")]
        assert [(s.title, s.description) for s in suggestions.medium_priority] == [("Rewrite summary", "be specific")]
        assert [(s.title, s.description) for s in suggestions.low_priority] == [("Add keywords", "use industry terms")]

    def test_full_critique_tiers(self, sample_critique):
        suggestions = parse(sample_critique).improvement_suggestions
        assert [s.title for s in suggestions.high_priority] == [
            "Add quantifiable achievements",
            "Enhance your professional summary",
            "Incorporate more industry keywords",
        ]
        assert [s.title for s in suggestions.medium_priority] == [
            "Demonstrate soft skills",
            "Add a certifications section",
        ]
        assert [s.title for s in suggestions.low_priority] == [
            "Standardize formatting",
            "Consider condensing to 2 pages",
        ]
        assert suggestions.high_priority[0].description.startswith("Include specific metrics")

    @pytest.mark.parametrize("count", range(0, 12))
    def test_tier_sizes_follow_formula(self, count):
        text = "Suggestions:\n" + "\n".join(f"{i}. Item {i}: detail {i}" for i in range(1, count + 1))
        suggestions = parse(text).improvement_suggestions

        high = min(3, math.ceil(count / 3))
        medium = min(2, count // 3)
        low = min(2, count - high - medium)
        assert len(suggestions.high_priority) == high
        assert len(suggestions.medium_priority) == medium
        assert len(suggestions.low_priority) == low

        tiers = suggestions.high_priority + suggestions.medium_priority + suggestions.low_priority
        assert len(tiers) == min(count, 7)
        assert [s.title for s in tiers] == [f"Item {i}" for i in range(1, len(tiers) + 1)]

    def test_suggestion_without_colon(self):
        line = "Quantify every achievement listed in the experience section"
        suggestion = to_suggestion(line)
        assert suggestion.title == line[:30].strip()
        assert suggestion.description == line

    def test_split_at_first_colon_only(self):
        suggestion = to_suggestion("Fix dates: use MM/YYYY: everywhere")
        assert suggestion.title == "Fix dates"
        assert suggestion.description == "use MM/YYYY: everywhere"

    def test_empty_parts_fall_back(self):
        assert to_suggestion(": only description").title == ": only description"[:30].strip()
        assert to_suggestion("Only title:").description == "Only title:"


class TestPriorityTiers:
    @pytest.mark.parametrize("count", range(0, 15))
    def test_contiguous_disjoint_prefixes(self, count):
        items = list(range(count))
        high, medium, low = split_priority_tiers(items)
        assert high + medium + low == items[:len(high) + len(medium) + len(low)]
        assert len(high) <= 3 and len(medium) <= 2 and len(low) <= 2

    def test_three_items(self):
        assert split_priority_tiers(['a', 'b', 'c']) == (['a'], ['b'], ['c'])

    def test_tail_dropped(self):
        high, medium, low = split_priority_tiers(list(range(10)))
        assert (high, medium, low) == ([0, 1, 2], [3, 4], [5, 6])

    def test_custom_caps(self):
        parser = CritiqueParser(tier_caps=(1, 1, 1))
        text = "Suggestions:\n" + "\n".join(f"- Item {i}" for i in range(9))
        suggestions = parser.parse(text).improvement_suggestions
        assert len(suggestions.high_priority) == 1
        assert len(suggestions.medium_priority) == 1
        assert len(suggestions.low_priority) == 1


class TestShapeAndFailures:
    def test_empty_string(self):
        critique = parse("")
        assert critique.fallback_metrics == ALL_METRICS
        for score in scores_of(critique).values():
            assert 50 <= score <= 79
        assert critique.strengths == ()
        assert critique.weaknesses == ()
        suggestions = critique.improvement_suggestions
        assert suggestions.high_priority == suggestions.medium_priority == suggestions.low_priority == ()

    def test_large_input_keeps_shape(self):
        text = "\n".join(
            ["Strengths:"] + [f"- S{i}" for i in range(200)]
            + ["Weaknesses:"] + [f"- W{i}" for i in range(200)]
            + ["Suggestions:"] + [f"- T{i}: d" for i in range(200)]
        )
        critique = parse(text)
        assert len(critique.strengths) == 5
        assert len(critique.weaknesses) == 5
        suggestions = critique.improvement_suggestions
        assert (len(suggestions.high_priority), len(suggestions.medium_priority), len(suggestions.low_priority)) == (3, 2, 2)

    @pytest.mark.parametrize("bad_input", [None, 42, ['Strengths:'], {'text': 'x'}])
    def test_non_text_raises(self, bad_input):
        with pytest.raises(ParseFailure):
            parse(bad_input)

    def test_undecodable_bytes_raise(self):
        with pytest.raises(ParseFailure):
            parse(b'\xff\xfe\xfa')

    def test_utf8_bytes_accepted(self):
        assert parse("completeness: 80".encode('utf-8')).completeness_score == 80

    def test_parse_failure_is_type_error(self):
        assert issubclass(ParseFailure, TypeError)

    def test_result_is_frozen(self, short_critique):
        critique = parse(short_critique)
        with pytest.raises(ValidationError):
            critique.completeness_score = 10

    def test_invalid_fallback_range(self):
        with pytest.raises(ValueError):
            CritiqueParser(fallback_range=(80, 50))

    def test_from_settings(self):
        settings = ParserSettings(fallback_score_min=10, fallback_score_max=10, clamp_scores=True)
        parser = CritiqueParser.from_settings(settings)
        critique = parser.parse("Technical skills: 140")
        assert critique.skills_match.technical == 100
        assert critique.completeness_score == 10

    def test_concurrent_calls_are_independent(self, sample_critique):
        parser = CritiqueParser()
        results = []

        def worker():
            results.append(parser.parse(sample_critique))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 8
        assert all(result == results[0] for result in results)


class TestLineScan:
    def test_tags(self, short_critique):
        tags = [line.tag for line in scan_lines(short_critique)]
        assert tags[:3] == [LineTag.METRIC, LineTag.METRIC, LineTag.HEADER]
        assert tags.count(LineTag.HEADER) == 3
        assert tags.count(LineTag.CONTENT) == 6

    def test_split_metric_scans_as_one_line(self):
        lines = scan_lines("Soft Skills Rating\n\n64\nStrengths:")
        assert [line.tag for line in lines] == [LineTag.METRIC, LineTag.HEADER]
        assert (lines[0].metric, lines[0].value) == ('soft', 64)

    def test_blank_lines_skipped(self):
        assert scan_lines("\n\n   \n") == []
