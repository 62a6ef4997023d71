"""Clean BibTeX entries: tags, field names, journals, volumes, URLs, titles."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from bib_config import CleanConfig
from bib_entry import (
    Entry,
    Field,
    MalformedField,
    MissingRequiredField,
    describe_key,
    normalize_tag,
    thin_whitespace,
)
from journal_list import JournalList


logger = logging.getLogger(__name__)

ARXIV_ABBREV = "Arxiv.org"
DOI_URL_PREFIX = "https://doi.org"
WORLDCAT_ISBN_URL = "http://www.worldcat.org/isbn/"

# (spellings, canonical journal, letters which may lead the volume)
VOLUME_LETTER_JOURNALS: List[Tuple[Tuple[str, ...], str, str]] = [
    (("Phys. Rev.", "Phys.Rev."), "Phys. Rev.", "ABCDE"),
    (("Eur. Phys. J.",), "Eur. Phys. J.", "ABCDE"),
    (("J. Phys.",), "J. Phys.", "ABCDEFG"),
    (("Nucl. Phys.",), "Nucl. Phys.", "AB"),
    (("Phys. Lett.",), "Phys. Lett.", "AB"),
]

# Each requirement is satisfied by any one of its alternatives
REQUIRED_FIELDS: Dict[str, List[Tuple[str, ...]]] = {
    "Article": [("author",), ("title",), ("journal",), ("year",)],
    "Book": [("author", "editor"), ("title",), ("publisher",), ("year",)],
    "Booklet": [("title",)],
    "Conference": [("author",), ("title",), ("booktitle",), ("year",)],
    "InBook": [
        ("author", "editor"),
        ("title",),
        ("chapter", "pages"),
        ("publisher",),
        ("year",),
    ],
    "InCollection": [("author", "editor"), ("title",), ("publisher",), ("year",)],
    "InProceedings": [("author",), ("title",), ("booktitle",), ("year",)],
    "Manual": [("title",)],
    "MastersThesis": [("author",), ("title",), ("school",), ("year",)],
    "Misc": [],
    "PhDThesis": [("author",), ("title",), ("school",), ("year",)],
    "Proceedings": [("title",), ("year",)],
    "TechReport": [("author",), ("title",), ("institution",), ("year",)],
    "Unpublished": [("author",), ("title",), ("note",)],
}


@dataclass
class ChangeReport:
    before: Entry
    after: Entry
    tag_normalized: bool = False
    author_tildes_removed: bool = False
    fields_removed: bool = False
    journal_renamed: bool = False
    vol_letters_moved: bool = False
    url_reformatted: bool = False
    empty_title_added: bool = False

    FLAGS = (
        "tag_normalized",
        "author_tildes_removed",
        "fields_removed",
        "journal_renamed",
        "vol_letters_moved",
        "url_reformatted",
        "empty_title_added",
    )

    @property
    def changed(self) -> bool:
        return self.before != self.after

    def flags(self) -> List[str]:
        return [name for name in self.FLAGS if getattr(self, name)]


class CleanAction(Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    ACCEPT_ALL = "accept_all"
    REJECT_ALL = "reject_all"
    STOP = "stop"


CleanDecider = Callable[[ChangeReport], CleanAction]


@dataclass
class CleanSummary:
    entries_processed: int = 0
    entries_changed: int = 0
    entries_rejected: int = 0
    tags_normalized: int = 0
    author_tildes_removed: int = 0
    entries_fields_removed: int = 0
    journals_renamed: int = 0
    vol_letters_moved: int = 0
    urls_reformatted: int = 0
    empty_titles_added: int = 0
    duplicates_found: int = 0
    stopped: bool = False
    reports: List[ChangeReport] = field(default_factory=list, repr=False)

    def record(self, report: ChangeReport) -> None:
        self.entries_changed += 1
        self.tags_normalized += report.tag_normalized
        self.author_tildes_removed += report.author_tildes_removed
        self.entries_fields_removed += report.fields_removed
        self.journals_renamed += report.journal_renamed
        self.vol_letters_moved += report.vol_letters_moved
        self.urls_reformatted += report.url_reformatted
        self.empty_titles_added += report.empty_title_added

    def report_lines(self) -> List[str]:
        lines = [
            f"{self.empty_titles_added} empty titles added.",
            f"{self.duplicates_found} duplicates found.",
            f"{self.entries_fields_removed} entries with extra fields removed.",
            f"{self.journals_renamed} journal names standardized.",
            f"{self.urls_reformatted} URLs reformatted.",
            f"{self.vol_letters_moved} volume letters moved to journal names.",
            f"{self.tags_normalized} tags normalized.",
            f"{self.author_tildes_removed} author fields with tildes fixed.",
        ]
        if self.entries_rejected:
            lines.append(f"{self.entries_rejected} proposed changes rejected.")
        if self.stopped:
            lines.append("Clean stopped before the last entry.")
        return lines


def strip_double_braces(value: str) -> str:
    while len(value) >= 4 and value.startswith("{{") and value.endswith("}}"):
        value = value[1:-1]
    return value


def clean_fields(
    entry: Entry,
    config: CleanConfig,
    journals: Optional[JournalList],
    report: ChangeReport,
) -> List[Field]:
    """Rebuild the field list of ``entry`` with the per-field rules applied."""
    remove = {name.lower() for name in config.remove_fields}
    use_journals = config.reformat_journal and journals is not None and journals.is_loaded()
    cleaned: List[Field] = []
    for name, values in entry.fields:
        if config.lowercase_fields:
            name = name.lower()
        if name.lower() in remove:
            logger.debug(
                "Removing extra field %s in entry with %s", name, describe_key(entry.key)
            )
            report.fields_removed = True
            continue
        if not values:
            raise MalformedField(
                f"Field {name} has no values in entry with {describe_key(entry.key)}."
            )
        if len(values) > 1:
            raise MalformedField(
                f"Field {name} has more than one value in entry with "
                f"{describe_key(entry.key)}."
            )
        value = strip_double_braces(values[0])
        if value != values[0]:
            logger.debug(
                "Removing extra braces in entry with %s for field %s",
                describe_key(entry.key),
                name,
            )
        if config.remove_extra_whitespace:
            value = thin_whitespace(value)
        if use_journals and name.lower() == "journal":
            value = rename_journal(entry, value, journals, report)
        cleaned.append((name, [value]))
    return cleaned


def rename_journal(
    entry: Entry, journal: str, journals: JournalList, report: ChangeReport
) -> str:
    abbrev = journals.find_abbrev(journal)
    if abbrev is None:
        logger.warning("Journal %s not found in entry with %s.", journal, describe_key(entry.key))
        return journal
    if abbrev == journal or abbrev == ARXIV_ABBREV:
        return journal
    logger.debug("Reformatting journal %s to %s", journal, abbrev)
    report.journal_renamed = True
    return abbrev


def move_volume_letters(entry: Entry) -> bool:
    if not (entry.is_field_present("journal") and entry.is_field_present("volume")):
        return False
    journal = entry.get_field("journal")
    volume = entry.get_field("volume")
    if not volume:
        return False
    letter = volume[0].upper()
    for spellings, canonical, letters in VOLUME_LETTER_JOURNALS:
        if journal in spellings and letter in letters:
            new_journal = f"{canonical} {letter}"
            new_volume = volume[1:]
            logger.debug(
                "In entry with %s reformatting journal and volume from %s, %s to %s, %s",
                describe_key(entry.key),
                journal,
                volume,
                new_journal,
                new_volume,
            )
            replace_value(entry, "journal", new_journal)
            replace_value(entry, "volume", new_volume)
            return True
    return False


def replace_value(entry: Entry, name: str, value: str) -> None:
    """Overwrite the first field matching ``name`` regardless of case."""
    for field_name, values in entry.fields:
        if field_name.lower() == name.lower() and values:
            values[0] = value
            return
    entry.fields.append((name, [value]))


def autoformat_url(entry: Entry) -> bool:
    tag = entry.tag.lower()
    if tag == "article" and entry.is_field_present("doi"):
        url = f"{DOI_URL_PREFIX}/{entry.get_field('doi')}"
        if entry.is_field_present("url"):
            if entry.get_field("url").startswith(DOI_URL_PREFIX):
                return False
            logger.debug("In entry with %s reformatted url to %s", describe_key(entry.key), url)
            replace_value(entry, "url", url)
            return True
        logger.debug("In entry with %s added url field %s", describe_key(entry.key), url)
        entry.fields.append(("url", [url]))
        return True
    if tag == "book" and entry.is_field_present("isbn") and not entry.is_field_present("url"):
        url = WORLDCAT_ISBN_URL + entry.get_field("isbn")
        logger.debug("In entry with %s added url field %s", describe_key(entry.key), url)
        entry.fields.append(("url", [url]))
        return True
    return False


def add_empty_title(entry: Entry) -> bool:
    if entry.tag.lower() not in {"article", "inproceedings"}:
        return False
    if entry.is_field_present("title"):
        return False
    entry.fields.append(("title", [" "]))
    logger.debug("In entry with %s added empty title.", describe_key(entry.key))
    return True


def check_required(entry: Entry) -> None:
    tag = next((name for name in REQUIRED_FIELDS if name.lower() == entry.tag.lower()), None)
    if tag is None:
        return
    for alternatives in REQUIRED_FIELDS[tag]:
        if not any(entry.is_field_present(name) for name in alternatives):
            raise MissingRequiredField(
                f"{tag} missing {' or '.join(alternatives)} field in entry with "
                f"{describe_key(entry.key)}."
            )


def clean_entry(
    entry: Entry,
    config: CleanConfig,
    journals: Optional[JournalList] = None,
) -> ChangeReport:
    """Propose a cleaned copy of ``entry``; ``entry`` itself is left untouched."""
    after = entry.copy()
    report = ChangeReport(before=entry, after=after)

    if config.normalize_tags:
        tag = normalize_tag(after.tag)
        if tag != after.tag:
            after.tag = tag
            report.tag_normalized = True

    if config.remove_author_tildes and after.is_field_present("author"):
        author = after.get_field("author")
        if "~" in author:
            replace_value(after, "author", author.replace("~", " "))
            report.author_tildes_removed = True

    after.fields = clean_fields(after, config, journals, report)

    if config.remove_vol_letters:
        report.vol_letters_moved = move_volume_letters(after)
    if config.autoformat_urls:
        report.url_reformatted = autoformat_url(after)
    if config.add_empty_titles:
        report.empty_title_added = add_empty_title(after)
    if config.checks_required:
        check_required(after)
    return report


def clean_entries(
    entries: List[Entry],
    config: CleanConfig,
    journals: Optional[JournalList] = None,
    decide: Optional[CleanDecider] = None,
    summary: Optional[CleanSummary] = None,
) -> CleanSummary:
    """Clean ``entries`` in place, asking ``decide`` before each change.

    Counts are added to ``summary`` when one is given.

    A hard failure on any entry aborts the whole pass; entries cleaned
    before it keep their changes.
    """
    for line in config.describe():
        logger.debug(line)
    if journals is None or not journals.is_loaded():
        logger.info("No entries in journal name list.")
    if not entries:
        logger.info("No entries to clean.")

    if summary is None:
        summary = CleanSummary()
    mode: Optional[CleanAction] = CleanAction.ACCEPT_ALL if decide is None else None
    for idx, entry in enumerate(entries):
        report = clean_entry(entry, config, journals)
        summary.entries_processed += 1
        summary.reports.append(report)
        if not report.changed:
            continue
        action = mode or decide(report)
        if action in (CleanAction.ACCEPT_ALL, CleanAction.REJECT_ALL):
            mode = action
        if action in (CleanAction.ACCEPT, CleanAction.ACCEPT_ALL):
            entries[idx] = report.after
            summary.record(report)
            continue
        summary.entries_rejected += 1
        if action is CleanAction.STOP:
            summary.stopped = True
            break

    for line in summary.report_lines():
        logger.info(line)
    return summary

