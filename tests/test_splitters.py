"""Tests for the deterministic splitters."""

import pytest

from docnex.exceptions import ValidationError
from docnex.services.splitters import (
    INTRO_TITLE,
    INTRO_TITLE_HTML,
    build_hierarchy,
    split_by_header,
    split_by_index,
    split_by_paragraphs,
    split_by_pattern,
    split_by_smart_numbering,
    split_text,
)


class TestHeaderAndPattern:

    def test_markdown_headers_of_one_level(self):
        items = split_by_header("Intro\n# Uno\nTexto uno\n## Sub\n# Dos\nTexto dos", 1)
        assert [i.title for i in items] == [INTRO_TITLE, "Uno", "Dos"]
        assert items[1].content == "Texto uno\n## Sub"
        assert all(i.level == 1 for i in items)

    def test_html_headers(self):
        html = "<p>Portada</p><h2>Uno</h2><p>a</p><h2><b>Dos</b></h2><p>b</p>"
        items = split_by_header(html, 2)
        assert [i.title for i in items] == [INTRO_TITLE_HTML, "Uno", "Dos"]
        assert items[2].content == "<p>b</p>"

    def test_pattern_without_group_uses_whole_match(self):
        items = split_by_pattern("Artículo 1\nuno\nArtículo 2\ndos", r"^Artículo \d+")
        assert [(i.title, i.content) for i in items] == [("Artículo 1", "uno"), ("Artículo 2", "dos")]

    def test_items_have_unique_ids(self):
        items = split_by_pattern("# a\n# b", r"^#\s+(.+)")
        assert len({i.id for i in items}) == 2


class TestOtherStrategies:

    def test_hierarchy_nests_children(self):
        lines = [
            "Texto previo",
            "TÍTULO I",
            "intro del título",
            "Artículo 1",
            "cuerpo",
            "Artículo 2",
            "TÍTULO II",
            "Artículo 3",
        ]
        roots = build_hierarchy(lines, r"^(TÍTULO .+)", r"^(Artículo \d+)")
        assert [r.title for r in roots] == [INTRO_TITLE, "TÍTULO I", "TÍTULO II"]
        assert roots[0].content == "Texto previo"
        assert roots[1].content == "intro del título"
        assert [c.title for c in roots[1].children] == ["Artículo 1", "Artículo 2"]
        assert roots[1].children[0].content == "cuerpo"
        assert [c.title for c in roots[2].children] == ["Artículo 3"]

    def test_index_split_skips_missing_titles(self):
        text = "Portada\nCapítulo Uno\ncontenido uno\ncapítulo dos\ncontenido dos"
        items = split_by_index(text, "Capítulo Uno\nNo existe\nCapítulo Dos\n")
        assert [i.title for i in items] == ["Capítulo Uno", "Capítulo Dos"]
        assert items[0].content == "contenido uno"
        assert items[1].content == "contenido dos"

    def test_smart_numbering_picks_longest_chain(self):
        text = "1. Introducción\na\n1. sub\n2. Segundo\nb\n3. Tercero\nc"
        items = split_by_smart_numbering(text)
        assert [i.title for i in items] == ["1. Introducción", "2. Segundo", "3. Tercero"]
        assert items[0].content == "a\n1. sub"

    def test_smart_numbering_needs_two_lines(self):
        assert split_by_smart_numbering("1. Solo una") == []

    def test_paragraphs(self):
        items = split_by_paragraphs("Primer párrafo.\n\n\nSegundo párrafo.\n")
        assert [i.content for i in items] == ["Primer párrafo.", "Segundo párrafo."]
        assert items[0].title == "Tema 1: Primer párrafo...."


class TestSplitText:

    def test_dispatches_by_strategy(self):
        assert len(split_text("a\n\nb", "paragraphs")) == 2
        assert split_text("# A\nx", "header", level=1)[0].title == "A"

    @pytest.mark.parametrize("strategy,field", [
        ("pattern", "pattern"),
        ("index", "index_text"),
        ("hierarchy", "parent_pattern"),
        ("bogus", "strategy"),
    ])
    def test_missing_options(self, strategy, field):
        with pytest.raises(ValidationError) as exc_info:
            split_text("texto", strategy)
        assert exc_info.value.details["field"] == field

    def test_invalid_child_pattern(self):
        with pytest.raises(ValidationError) as exc_info:
            split_text("texto", "hierarchy", parent_pattern="^T", child_pattern="[")
        assert exc_info.value.details["field"] == "child_pattern"

    def test_items_serialize_for_import(self):
        data = split_text("# A\nx", "header")[0].to_dict()
        assert data["target"] == "active_version"
        assert data["children"] == []
