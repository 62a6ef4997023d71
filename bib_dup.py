"""Decide whether two BibTeX entries describe the same publication."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Callable, List, Optional, Sequence, Tuple

from bib_entry import Entry, first_page, thin_whitespace
from journal_list import JournalList


class DuplicateKind(IntEnum):
    NONE = 0
    SAME_KEY = 1
    FUZZY_MATCH = 2


class Comparison(Enum):
    DIFFERENT = "different"
    IDENTICAL = "identical"
    ADDITIONAL_FIELDS = "additional_fields"


@dataclass
class PendingDecision:
    """Everything a caller needs to resolve a possible duplicate."""

    entry: Entry
    candidates: List[Entry]
    indices: List[int]
    kinds: List[DuplicateKind]
    comparison: Optional[Comparison] = None

    def describe(self) -> List[str]:
        lines = [f"Entry {self.entry.key or '(no key)'} has {len(self.candidates)} possible duplicate(s):"]
        for idx, candidate, kind in zip(self.indices, self.candidates, self.kinds):
            lines.append(f"  {idx}. {candidate.tag} {candidate.key} ({kind.name.lower()})")
        if self.comparison is not None:
            lines.append(f"  comparison: {self.comparison.value}")
        return lines


class DupAction(Enum):
    KEEP_FIRST = "keep_first"
    KEEP_SECOND = "keep_second"
    KEEP_BOTH = "keep_both"
    RENAME = "rename"
    STOP = "stop"


@dataclass
class DupDecision:
    action: DupAction
    first_key: Optional[str] = None
    second_key: Optional[str] = None


DupDecider = Callable[[PendingDecision], DupDecision]


def journal_for_matching(entry: Entry, journals: Optional[JournalList]) -> str:
    journal = entry.get_field("journal")
    if journals is not None and journals.is_loaded():
        abbrev = journals.find_abbrev(journal)
        if abbrev is not None:
            return abbrev
    return journal


def possible_duplicate(
    left: Entry, right: Entry, journals: Optional[JournalList] = None
) -> DuplicateKind:
    """Classify ``left`` and ``right`` as the same key, the same journal,
    volume and first page, or unrelated."""
    if left.tag.lower() != right.tag.lower():
        return DuplicateKind.NONE
    if left.key is not None and right.key is not None and left.key.lower() == right.key.lower():
        return DuplicateKind.SAME_KEY
    for entry in (left, right):
        if not all(entry.is_field_present(name) for name in ("volume", "pages", "journal")):
            return DuplicateKind.NONE
    if left.get_field("volume") != right.get_field("volume"):
        return DuplicateKind.NONE
    if first_page(left.get_field("pages")) != first_page(right.get_field("pages")):
        return DuplicateKind.NONE
    if journal_for_matching(left, journals) != journal_for_matching(right, journals):
        return DuplicateKind.NONE
    return DuplicateKind.FUZZY_MATCH


def find_possible_duplicates(
    entry: Entry, entries: Sequence[Entry], journals: Optional[JournalList] = None
) -> List[int]:
    return [
        idx
        for idx, other in enumerate(entries)
        if possible_duplicate(entry, other, journals) is not DuplicateKind.NONE
    ]


def ident_or_addl_fields(left: Entry, right: Entry) -> Comparison:
    """Compare two entries sharing a key field by field.

    Values are compared after thinning whitespace. Fields present on only
    one side make the result ``ADDITIONAL_FIELDS`` unless a shared field
    disagrees.
    """
    if not left.key or not right.key or left.key != right.key:
        return Comparison.DIFFERENT
    additional = False
    for name, values in left.fields:
        if not values:
            continue
        if not right.is_field_present(name):
            additional = True
            continue
        if thin_whitespace(values[0]) != thin_whitespace(right.get_field(name)):
            return Comparison.DIFFERENT
    for name, values in right.fields:
        if values and not left.is_field_present(name):
            additional = True
    if additional:
        return Comparison.ADDITIONAL_FIELDS
    return Comparison.IDENTICAL


def merge_to_left(left: Entry, right: Entry) -> List[str]:
    """Copy fields missing from ``left`` over from ``right``; never overwrite."""
    added: List[str] = []
    for name, values in right.fields:
        if values and not left.is_field_present(name):
            left.set_field_value(name, values[0])
            added.append(name)
    return added


def list_key_duplicates(
    left: Sequence[Entry], right: Sequence[Entry]
) -> List[Tuple[Entry, Entry]]:
    return [
        (first, second)
        for first in left
        for second in right
        if first.key == second.key and first.tag == second.tag
    ]


def keep_both(pending: PendingDecision) -> DupDecision:
    return DupDecision(DupAction.KEEP_BOTH)


@dataclass
class DupScan:
    found: int = 0
    removed: List[str] = field(default_factory=list)
    renamed: List[Tuple[str, str]] = field(default_factory=list)
    stopped: bool = False
