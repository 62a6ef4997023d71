"""Journal name synonym table used to canonicalize journal fields."""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterator, List, Optional, Tuple

from bib_config import CleanConfig
from bib_entry import JournalListError


logger = logging.getLogger(__name__)

NON_ALPHA_RE = re.compile(r"[^A-Za-z]+")
END_OF_BLOCK = "done"


def journal_simplify(name: str) -> str:
    """Drop everything but ASCII letters and lowercase the rest."""
    return NON_ALPHA_RE.sub("", name).lower()


class JournalList:
    """Canonical journal abbreviations and their known spellings.

    The list file is made of blocks: the canonical name on one line,
    one synonym per line after it, then a line reading ``done``.
    """

    def __init__(self) -> None:
        self.journals = {}

    @property
    def journals(self) -> Dict[str, List[str]]:
        return self._journals

    @journals.setter
    def journals(self, table: Dict[str, List[str]]) -> None:
        self._journals = table
        # Reverse alphabetical order: the first matching block wins
        self._order = sorted(table, reverse=True)

    @property
    def size(self) -> int:
        return len(self.journals)

    def is_loaded(self) -> bool:
        return bool(self.journals)

    @classmethod
    def from_config(cls, path: str, config: CleanConfig) -> "JournalList":
        journals = cls()
        journals.load(path, natbib=config.natbib_journals)
        return journals

    def load(self, path: str, natbib: bool = False) -> int:
        with open(path, "r", encoding="utf-8") as handle:
            lines = handle.read().splitlines()
        self.journals = parse_journal_blocks(lines, natbib=natbib)
        logger.info('%d journal name entries read from "%s".', self.size, path)
        return self.size

    def blocks(self) -> Iterator[Tuple[str, List[str]]]:
        for canonical in self._order:
            yield canonical, self.journals[canonical]

    def _require_loaded(self, caller: str) -> None:
        if not self.journals:
            raise JournalListError(f"No journal list read in {caller}().")

    def find_abbrev(self, journal: str) -> Optional[str]:
        self._require_loaded("find_abbrev")
        target = journal_simplify(journal)
        for canonical, synonyms in self.blocks():
            if journal_simplify(canonical) == target:
                return canonical
            if any(journal_simplify(synonym) == target for synonym in synonyms):
                return canonical
        return None

    def find_abbrevs(self, journal: str) -> Optional[List[str]]:
        self._require_loaded("find_abbrevs")
        target = journal_simplify(journal)
        for canonical, synonyms in self.blocks():
            names = [canonical] + synonyms
            if any(journal_simplify(name) == target for name in names):
                return names
        return None


def parse_journal_blocks(lines: List[str], natbib: bool = False) -> Dict[str, List[str]]:
    journals: Dict[str, List[str]] = {}
    idx = 0
    while idx < len(lines) and lines[idx]:
        canonical = lines[idx]
        idx += 1
        synonyms: List[str] = []
        while True:
            if idx >= len(lines):
                raise JournalListError(
                    f"Journal list block for {canonical} is not closed by '{END_OF_BLOCK}'."
                )
            line = lines[idx]
            idx += 1
            if line == END_OF_BLOCK:
                break
            synonyms.append(line)
        if natbib:
            canonical, synonyms = prefer_natbib_macro(canonical, synonyms)
        logger.debug("Abbr: %s", canonical)
        for k, synonym in enumerate(synonyms):
            logger.debug("List %d %s", k, synonym)
        if canonical in journals:
            logger.warning("Ignoring repeated journal list block for %s.", canonical)
            continue
        journals[canonical] = synonyms
    return journals


def prefer_natbib_macro(canonical: str, synonyms: List[str]) -> Tuple[str, List[str]]:
    swapped = list(synonyms)
    for k, synonym in enumerate(swapped):
        if synonym.startswith("\\"):
            swapped[k] = canonical
            canonical = synonym
    return canonical, swapped
