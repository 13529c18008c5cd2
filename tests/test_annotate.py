"""Tests for keyword annotation and filtering."""

from conftest import make_record

from tiktok_scraper.annotate import annotate, filter_matches, keyword_mentioned
from tiktok_scraper.text_match import matches, normalize_text


class TestTextMatch:
    def test_case_and_diacritics_are_ignored(self):
        assert matches("Best CAFÉ in town", "cafe")
        assert matches("best cafe in town", "Café")

    def test_empty_needle_never_matches(self):
        assert not matches("anything", "")
        assert not matches("anything", None)

    def test_missing_haystack(self):
        assert not matches(None, "cat")

    def test_normalize_text(self):
        assert normalize_text("Ñandú") == "nandu"


class TestKeywordMentioned:
    def test_matches_description(self):
        assert keyword_mentioned(make_record("u", "My cat video"), "CAT")

    def test_matches_comment_text(self):
        assert keyword_mentioned(make_record("u", "nothing here", ["love the cat"]), "cat")

    def test_no_match(self):
        assert not keyword_mentioned(make_record("u", "dogs", ["more dogs"]), "cat")

    def test_title_is_not_searched(self):
        record = make_record("u").model_copy(update={"title": "cat"})
        assert not keyword_mentioned(record, "cat")


class TestAnnotate:
    def test_returns_flagged_copies_without_touching_inputs(self):
        items = [make_record("u1", "cat"), make_record("u2", "dog")]

        annotated = annotate(items, "cat")

        assert [item.keyword_mentioned for item in annotated] == [True, False]
        assert all(item.keyword_mentioned is None for item in items)

    def test_same_inputs_give_same_output(self):
        items = [make_record("u1", "cat"), make_record("u2", "dog")]
        assert annotate(items, "cat") == annotate(items, "cat")

    def test_filter_keeps_order_and_is_idempotent(self):
        annotated = annotate([make_record("u1", "cat"), make_record("u2", "dog"), make_record("u3", "cats")], "cat")

        once = filter_matches(annotated, True)

        assert [item.url for item in once] == ["u1", "u3"]
        assert filter_matches(once, True) == once

    def test_filter_disabled_returns_everything(self):
        annotated = annotate([make_record("u1", "cat"), make_record("u2", "dog")], "cat")
        assert len(filter_matches(annotated, False)) == 2

    def test_reannotation_does_not_compound(self):
        items = [make_record("u1", "cat"), make_record("u2", "dog")]
        assert annotate(annotate(items, "cat"), "dog") == annotate(items, "dog")
