"""Tests for keyword extraction, quality scoring and entity decoding."""

from docnex.services.text_analysis import (
    calculate_quality_score,
    decode_html_entities,
    extract_keywords,
    quality_level,
)


class TestExtractKeywords:

    def test_collects_proper_nouns_and_technical_terms(self):
        assert extract_keywords("Según el Real Decreto, la API de Supabase.") == [
            "Real", "Decreto", "Supabase", "API",
        ]

    def test_skips_sentence_starts_stop_words_and_short_words(self):
        keywords = extract_keywords("La norma cita a Yo y Para. Luego menciona Sevilla.")
        assert keywords == ["Sevilla"]

    def test_quoted_phrases(self):
        keywords = extract_keywords('se regula la "protección de datos" y "ok"')
        assert keywords == ["protección de datos"]

    def test_duplicates_ignore_case(self):
        assert extract_keywords("usa react y luego React otra vez") == ["React"]

    def test_empty(self):
        assert extract_keywords("") == []


class TestQualityScore:

    def test_empty_content_is_bronze(self):
        metrics = calculate_quality_score("")
        assert metrics.score == 0
        assert metrics.level == "bronze"
        assert metrics.breakdown["word_count"] == 0

    def test_complete_cited_structured_text_is_platinum(self):
        content = "# A\n# B\n# C\n" + "palabra " * 491 + "[1] [2] [3]"
        metrics = calculate_quality_score(content)
        assert metrics.breakdown["word_count"] == 500
        assert metrics.score == 100
        assert metrics.level == "platinum"

    def test_partial_text(self):
        metrics = calculate_quality_score("palabra " * 250)
        # Half complete, no citations, no headers: 50 * 0.4
        assert metrics.score == 20
        assert metrics.to_dict()["level"] == "bronze"

    def test_levels(self):
        assert quality_level(90) == "platinum"
        assert quality_level(75) == "gold"
        assert quality_level(50) == "silver"
        assert quality_level(49) == "bronze"


class TestDecodeEntities:

    def test_named_and_numeric(self):
        assert decode_html_entities("Art&iacute;culo &#241; &#x41; &laquo;x&raquo;") == "Artículo ñ A «x»"

    def test_unknown_entities_untouched(self):
        assert decode_html_entities("a &foo; b") == "a &foo; b"
