"""An ordered bibliography with a key index, search and deduplication."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from fnmatch import fnmatchcase
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from bib_clean import CleanDecider, CleanSummary, clean_entries
from bib_config import CleanConfig
from bib_dup import (
    Comparison,
    DupAction,
    DupDecider,
    DupScan,
    DuplicateKind,
    PendingDecision,
    find_possible_duplicates,
    ident_or_addl_fields,
    keep_both,
    merge_to_left,
    possible_duplicate,
)
from bib_entry import (
    AmbiguousKeys,
    DuplicateKey,
    Entry,
    InvalidCriteria,
    KeyNotFound,
    KeylessEntry,
    describe_key,
    normalize_tag,
    repeated_important_fields,
)
from journal_list import JournalList


logger = logging.getLogger(__name__)

Criteria = List[Tuple[str, str]]


class AddAction(Enum):
    ADD_ANYWAY = "add_anyway"
    REPLACE = "replace"
    KEEP_EXISTING = "keep_existing"
    STOP = "stop"


AddDecider = Callable[[PendingDecision], AddAction]


def keep_existing(pending: PendingDecision) -> AddAction:
    return AddAction.KEEP_EXISTING


@dataclass
class AddSummary:
    read: int = 0
    added: int = 0
    merged: int = 0
    identical: int = 0
    replaced: int = 0
    ignored: int = 0
    key_conflicts: int = 0
    stopped: bool = False


def criteria_pairs(args: Sequence[str], caller: str) -> Criteria:
    """Pair up a flat ``field pattern field pattern ...`` argument list."""
    if not args or len(args) % 2 != 0:
        raise InvalidCriteria(f"Need a set of field and pattern pairs in {caller}().")
    return [(args[k].lower(), args[k + 1]) for k in range(0, len(args), 2)]


def entry_matches(entry: Entry, field_name: str, pattern: str) -> bool:
    if field_name == "key":
        return entry.key is not None and fnmatchcase(entry.key, pattern)
    return any(
        name.lower() == field_name and values and fnmatchcase(values[0], pattern)
        for name, values in entry.fields
    )


def records_found(count: int) -> str:
    if count == 0:
        return "No records found."
    if count == 1:
        return "1 record found."
    return f"{count} records found."


class BibFile:
    def __init__(self, entries: Optional[Iterable[Entry]] = None) -> None:
        self.entries: List[Entry] = []
        self.sort: Dict[str, int] = {}
        for entry in entries or []:
            self.add_entry(entry)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def refresh_sort(self) -> None:
        """Rebuild the key index; the first entry holding a key owns it."""
        self.sort = {}
        for idx, entry in enumerate(self.entries):
            if entry.key is not None and entry.key not in self.sort:
                self.sort[entry.key] = idx

    def add_entry(self, entry: Entry) -> None:
        self.entries.append(entry)
        if entry.key is not None and entry.key not in self.sort:
            self.sort[entry.key] = len(self.entries) - 1
        for name in repeated_important_fields(entry):
            logger.warning(
                "Field %s appears more than once in entry with %s.",
                name,
                describe_key(entry.key),
            )

    def parse_bib(self, entries: Iterable[Entry]) -> int:
        """Replace the current entries with ``entries``."""
        self.entries = []
        self.sort = {}
        for entry in entries:
            if entry.key is None:
                raise KeylessEntry("This class does not support keyless entries.")
            if entry.key in self.sort:
                logger.warning("Warning: multiple copies with key %s.", entry.key)
            self.add_entry(entry)
        logger.info("Read %d entries.", len(self.entries))
        return len(self.entries)

    def is_key_present(self, key: str) -> bool:
        return key in self.sort

    def get_index_by_key(self, key: str) -> int:
        if key not in self.sort:
            raise KeyNotFound(f"Key {key} not found.")
        return self.sort[key]

    def get_entry_by_key(self, key: str) -> Entry:
        return self.entries[self.get_index_by_key(key)]

    def set_field_value(self, key: str, field_name: str, value: str) -> None:
        self.get_entry_by_key(key).set_field_value(field_name, value)

    def change_key(self, old_key: str, new_key: str) -> None:
        if new_key in self.sort:
            raise DuplicateKey(f"Key {new_key} already present.")
        entry = self.entries.pop(self.get_index_by_key(old_key))
        entry.key = new_key
        self.entries.append(entry)
        self.refresh_sort()

    def sort_bib(self) -> None:
        if len(self.entries) != len(self.sort):
            raise AmbiguousKeys(
                f"Cannot sort {len(self.entries)} entries with only "
                f"{len(self.sort)} distinct keys."
            )
        self.entries = [self.entries[self.sort[key]] for key in sorted(self.sort, reverse=True)]
        self.refresh_sort()

    def search_keys(self, pattern: str) -> List[str]:
        return [
            entry.key
            for entry in self.entries
            if entry.key is not None and fnmatchcase(entry.key, pattern)
        ]

    def _replace_entries(self, entries: List[Entry]) -> None:
        self.entries = entries
        self.refresh_sort()

    def search_or(self, args: Sequence[str]) -> int:
        """Keep only entries matching any criterion; keep everything if
        nothing matches."""
        criteria = criteria_pairs(args, "search_or")
        found = [
            entry
            for entry in self.entries
            if any(entry_matches(entry, name, pattern) for name, pattern in criteria)
        ]
        logger.info(records_found(len(found)))
        if found:
            self._replace_entries(found)
        return len(found)

    def search_and(self, args: Sequence[str]) -> int:
        """Narrow the entries one criterion at a time.

        A criterion matching nothing stops the search and leaves the
        entries matched by the earlier criteria in place.
        """
        criteria = criteria_pairs(args, "search_and")
        for name, pattern in criteria:
            found = [entry for entry in self.entries if entry_matches(entry, name, pattern)]
            if not found:
                logger.info(records_found(0))
                return 0
            self._replace_entries(found)
        logger.info(records_found(len(self.entries)))
        return len(self.entries)

    def remove_or(self, args: Sequence[str]) -> int:
        criteria = criteria_pairs(args, "remove_or")
        kept = [
            entry
            for entry in self.entries
            if not any(entry_matches(entry, name, pattern) for name, pattern in criteria)
        ]
        self._replace_entries(kept)
        if not kept:
            logger.info("No records remaining.")
        elif len(kept) == 1:
            logger.info("1 record remaining.")
        else:
            logger.info("%d records remaining.", len(kept))
        return len(kept)

    def subtract(self, other: Iterable[Entry]) -> int:
        """Drop entries whose key and tag both appear in ``other``."""
        pairs = {(entry.key, entry.tag) for entry in other}
        kept: List[Entry] = []
        for entry in self.entries:
            if (entry.key, entry.tag) in pairs:
                logger.info("Duplicate keys and duplicate tags: %s %s", entry.tag, entry.key)
                continue
            kept.append(entry)
        removed = len(self.entries) - len(kept)
        if removed:
            self._replace_entries(kept)
        return removed

    def clean(
        self,
        config: CleanConfig,
        journals: Optional[JournalList] = None,
        decide: Optional[CleanDecider] = None,
    ) -> CleanSummary:
        """Drop later copies sharing tag and key, then clean what is left."""
        kept: List[Entry] = []
        seen = set()
        duplicates = 0
        for entry in self.entries:
            tag = normalize_tag(entry.tag) if config.normalize_tags else entry.tag
            if entry.key is not None and (tag, entry.key) in seen:
                logger.warning(
                    "Removing second entry with tag %s and %s.", tag, describe_key(entry.key)
                )
                duplicates += 1
                continue
            seen.add((tag, entry.key))
            kept.append(entry)
        self._replace_entries(kept)
        summary = clean_entries(
            self.entries, config, journals, decide, CleanSummary(duplicates_found=duplicates)
        )
        self.refresh_sort()
        return summary

    def add_bib(
        self,
        new_entries: Iterable[Entry],
        prompt_on_duplicate: bool = True,
        decide: Optional[AddDecider] = None,
        journals: Optional[JournalList] = None,
    ) -> AddSummary:
        """Add ``new_entries``, merging or asking about likely duplicates."""
        decide = decide or keep_existing
        summary = AddSummary()
        for entry in new_entries:
            summary.read += 1
            if entry.key is None:
                raise KeylessEntry(
                    f"Entry of type {entry.tag} with {describe_key(entry.key)}: "
                    "this class does not support keyless entries."
                )
            candidates: List[int] = []
            if prompt_on_duplicate:
                candidates = find_possible_duplicates(entry, self.entries, journals)
            if not candidates:
                if entry.key is not None and self.is_key_present(entry.key):
                    logger.warning(
                        "Not adding entry with key %s because that key is already present.",
                        entry.key,
                    )
                    summary.key_conflicts += 1
                    continue
                self.add_entry(entry)
                summary.added += 1
                continue

            comparison = None
            if len(candidates) == 1:
                existing = self.entries[candidates[0]]
                comparison = ident_or_addl_fields(existing, entry)
                if comparison is Comparison.IDENTICAL:
                    logger.info("Entry %s already present, skipping.", entry.key)
                    summary.identical += 1
                    continue
                if comparison is Comparison.ADDITIONAL_FIELDS:
                    added = merge_to_left(existing, entry)
                    logger.info(
                        "Merged fields %s from new entry into %s.", ", ".join(added), existing.key
                    )
                    summary.merged += 1
                    continue

            pending = PendingDecision(
                entry=entry,
                candidates=[self.entries[idx] for idx in candidates],
                indices=candidates,
                kinds=[possible_duplicate(entry, self.entries[idx], journals) for idx in candidates],
                comparison=comparison,
            )
            for line in pending.describe():
                logger.debug(line)
            action = decide(pending)
            if action is AddAction.ADD_ANYWAY:
                self.add_entry(entry)
                summary.added += 1
            elif action is AddAction.REPLACE:
                if len(candidates) != 1:
                    raise ValueError("Replace needs exactly one possible duplicate.")
                logger.info("Replacing %s with %s", self.entries[candidates[0]].key, entry.key)
                self.entries[candidates[0]] = entry
                self.refresh_sort()
                summary.replaced += 1
            elif action is AddAction.STOP:
                logger.info("Stopping add.")
                summary.stopped = True
                break
            else:
                logger.info("Ignoring %s", entry.key)
                summary.ignored += 1

        logger.info(
            "Read %d entries. Now %d total entries with %d sortable entries.",
            summary.read,
            len(self.entries),
            len(self.sort),
        )
        return summary

    def find_duplicates(
        self, decide: Optional[DupDecider] = None, journals: Optional[JournalList] = None
    ) -> DupScan:
        """Look for possible duplicates among the current entries.

        Scanning restarts from the top after an entry is removed. Pairs
        answered with keep-both are not offered again.
        """
        decide = decide or keep_both
        logger.info("Looking for duplicates among current BibTeX entries.")
        scan = DupScan()
        kept_both = set()
        restart = True
        while restart and not scan.stopped:
            restart = False
            for i, j in self._pairs():
                first, second = self.entries[i], self.entries[j]
                if (id(first), id(second)) in kept_both:
                    continue
                kind = possible_duplicate(first, second, journals)
                if kind is DuplicateKind.NONE:
                    continue
                scan.found += 1
                decision = decide(
                    PendingDecision(entry=first, candidates=[second], indices=[j], kinds=[kind])
                )
                if decision.action is DupAction.STOP:
                    scan.stopped = True
                    break
                if decision.action is DupAction.KEEP_BOTH:
                    kept_both.add((id(first), id(second)))
                    continue
                if decision.action is DupAction.RENAME:
                    if not decision.first_key or not decision.second_key:
                        raise ValueError("Rename needs a new key for both entries.")
                    self._check_rename(first, second, decision.first_key, decision.second_key)
                    scan.renamed.append((first.key, decision.first_key))
                    scan.renamed.append((second.key, decision.second_key))
                    first.key = decision.first_key
                    second.key = decision.second_key
                    self.refresh_sort()
                    kept_both.add((id(first), id(second)))
                    continue
                drop = j if decision.action is DupAction.KEEP_FIRST else i
                scan.removed.append(self.entries[drop].key)
                del self.entries[drop]
                self.refresh_sort()
                restart = True
                break
        if not scan.found:
            logger.info("No duplicates found.")
        return scan

    def _check_rename(self, first: Entry, second: Entry, first_key: str, second_key: str) -> None:
        if first_key == second_key:
            raise DuplicateKey(f"Cannot rename both entries to {first_key}.")
        for key in (first_key, second_key):
            holders = [entry for entry in self.entries if entry.key == key]
            if any(entry is not first and entry is not second for entry in holders):
                raise DuplicateKey(f"Key {key} already present.")

    def _pairs(self):
        for i in range(len(self.entries)):
            for j in range(i + 1, len(self.entries)):
                yield i, j
