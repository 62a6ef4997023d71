import tempfile
import unittest
from pathlib import Path

from bib_dup import (
    Comparison,
    DuplicateKind,
    find_possible_duplicates,
    ident_or_addl_fields,
    list_key_duplicates,
    merge_to_left,
    possible_duplicate,
)
from bib_entry import Entry
from journal_list import JournalList


def entry(key, tag="Article", **fields) -> Entry:
    return Entry.from_pairs(tag, key, list(fields.items()))


class PossibleDuplicateTests(unittest.TestCase):
    def setUp(self) -> None:
        self.first = entry("k1", journal="Phys. Rev. C", volume="80", pages="045802-1")
        self.second = entry("k2", journal="PhysRevC", volume="80", pages="045802")

    def test_same_key_case_folded(self) -> None:
        left = entry("Smith99", tag="article", title="A")
        right = entry("smith99", tag="ARTICLE", title="B")
        self.assertEqual(possible_duplicate(left, right), DuplicateKind.SAME_KEY)
        self.assertEqual(possible_duplicate(right, left), DuplicateKind.SAME_KEY)

    def test_same_key_needs_same_tag(self) -> None:
        left = entry("k", tag="Article")
        right = entry("k", tag="Book")
        self.assertEqual(possible_duplicate(left, right), DuplicateKind.NONE)

    def test_fuzzy_needs_table_for_different_spellings(self) -> None:
        self.assertEqual(possible_duplicate(self.first, self.second), DuplicateKind.NONE)

    def test_fuzzy_match_through_journal_table(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "journals.txt"
            path.write_text("Phys. Rev. C\nPhysical Review C\ndone\n", encoding="utf-8")
            journals = JournalList()
            journals.load(str(path))
        self.assertEqual(
            possible_duplicate(self.first, self.second, journals), DuplicateKind.FUZZY_MATCH
        )
        self.assertEqual(
            possible_duplicate(self.second, self.first, journals), DuplicateKind.FUZZY_MATCH
        )

    def test_fuzzy_match_verbatim_journal(self) -> None:
        other = entry("k3", journal="Phys. Rev. C", volume="80", pages="045802--045810")
        self.assertEqual(possible_duplicate(self.first, other), DuplicateKind.FUZZY_MATCH)

    def test_fuzzy_requires_equal_volume_and_all_fields(self) -> None:
        other = entry("k3", journal="Phys. Rev. C", volume="81", pages="045802")
        self.assertEqual(possible_duplicate(self.first, other), DuplicateKind.NONE)
        no_pages = entry("k4", journal="Phys. Rev. C", volume="80")
        self.assertEqual(possible_duplicate(self.first, no_pages), DuplicateKind.NONE)

    def test_find_possible_duplicates(self) -> None:
        entries = [
            entry("k2", journal="X", volume="1", pages="1"),
            entry("k9", journal="Phys. Rev. C", volume="80", pages="045802"),
            entry("k1", tag="Book"),
            entry("k1"),
        ]
        self.assertEqual(find_possible_duplicates(self.first, entries), [1, 3])
        self.assertEqual(find_possible_duplicates(entry("zz"), entries), [])


class IdentOrAddlFieldsTests(unittest.TestCase):
    def test_identical_ignores_whitespace_and_field_case(self) -> None:
        left = entry("k", title="A  title", year="2000")
        right = entry("k", Title="A title", YEAR="2000")
        self.assertIs(ident_or_addl_fields(left, right), Comparison.IDENTICAL)
        self.assertIs(ident_or_addl_fields(right, left), Comparison.IDENTICAL)

    def test_additional_fields_on_either_side(self) -> None:
        left = entry("k", title="T")
        right = entry("k", title="T", doi="10.1/x")
        self.assertIs(ident_or_addl_fields(left, right), Comparison.ADDITIONAL_FIELDS)
        self.assertIs(ident_or_addl_fields(right, left), Comparison.ADDITIONAL_FIELDS)

    def test_mismatch_overrides_additional_fields(self) -> None:
        left = entry("k", doi="10.1/x", title="T")
        right = entry("k", title="Other")
        self.assertIs(ident_or_addl_fields(left, right), Comparison.DIFFERENT)

    def test_keys_must_match(self) -> None:
        self.assertIs(ident_or_addl_fields(entry("a"), entry("b")), Comparison.DIFFERENT)
        self.assertIs(
            ident_or_addl_fields(Entry(tag="Misc", key=None), Entry(tag="Misc", key=None)),
            Comparison.DIFFERENT,
        )


class MergeTests(unittest.TestCase):
    def test_merge_is_additive_and_left_biased(self) -> None:
        left = entry("k", title="Left title", Year="2000")
        right = entry("k", title="Right title", year="2001", doi="10.1/x", pages="1-2")
        added = merge_to_left(left, right)
        self.assertEqual(added, ["doi", "pages"])
        self.assertEqual(left.get_field("title"), "Left title")
        self.assertEqual(left.get_field("year"), "2000")
        self.assertEqual(left.get_field("doi"), "10.1/x")
        self.assertEqual(left.count_field_occurrences("year"), 1)
        self.assertEqual(right.field_names(), ["title", "year", "doi", "pages"])


class KeyDuplicateTests(unittest.TestCase):
    def test_list_key_duplicates(self) -> None:
        left = [entry("a"), entry("b"), entry("c", tag="Book")]
        right = [entry("b"), entry("c"), entry("d")]
        pairs = list_key_duplicates(left, right)
        self.assertEqual([(one.key, two.key) for one, two in pairs], [("b", "b")])


if __name__ == "__main__":
    unittest.main()
