"""
MySQL dump importer.

Streams a mysqldump file and loads the tables of the legacy tafsir database
into Verse, Scholar and Tafsir rows:

    surahs                -> surah numbers and names
    ayahs                 -> Verse rows (plus a verse 0 per surah for intros)
    mufassirs             -> Scholar rows
    Mufessirs_dead_hijri  -> fallback scholar names
    tafseer_*             -> Tafsir rows

Only ``INSERT INTO `table` VALUES (...),(...);`` statements are read. The
dump is parsed incrementally, so files far larger than memory are fine.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional, Set, Tuple, Union

from sqlalchemy.orm import Session

from mufessir.models.models import Scholar, Search, SearchResult, Tafsir, Verse, verse_id_for

logger = logging.getLogger(__name__)

INSERT_MARKER = "INSERT INTO `"
VALUES_MARKER = "VALUES"
# Enough trailing text to catch a marker split across two chunks
LOOKBACK_CHARS = 20
READ_CHUNK_CHARS = 64 * 1024

# Parser states
SEARCHING_STATEMENT = "searching_statement"
READING_TABLE_NAME = "reading_table_name"
SEEKING_VALUES = "seeking_values"
READING_VALUES = "reading_values"

# ayahs.id values at or above this mark surah introductions
INTRO_AYAH_ID = 10000

MYSQL_ESCAPES = {
    "0": "\0",
    "b": "\b",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "Z": "\x1a",
    "'": "'",
    '"': '"',
    "\\": "\\",
}

_NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?$")

Value = Union[str, int, float, None]


class Field(NamedTuple):
    value: str
    quoted: bool


class DumpEvent(NamedTuple):
    """A parsed row (``row`` set) or the end of an INSERT statement (``row`` None)."""
    table: str
    row: Optional[List[Field]]


def is_table_of_interest(table: str) -> bool:
    return table in ("surahs", "ayahs", "mufassirs", "Mufessirs_dead_hijri") or table.startswith("tafseer_")


def to_value(field: Field) -> Value:
    """Quoted fields stay strings; bare NULL becomes None and bare numbers become numbers."""
    if field.quoted:
        return field.value
    trimmed = field.value.strip()
    if not trimmed or trimmed.upper() == "NULL":
        return None
    if _NUMBER_RE.match(trimmed):
        return float(trimmed) if "." in trimmed else int(trimmed)
    return trimmed


def as_string(value: Value) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text or None


def as_number(value: Value) -> Optional[int]:
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str) and _NUMBER_RE.match(value.strip()):
        return int(float(value))
    return None


def as_float(value: Value) -> Optional[float]:
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and _NUMBER_RE.match(value.strip()):
        return float(value)
    return None


def _field(row: List[Field], index: int) -> Value:
    return to_value(row[index]) if index < len(row) else None


class ValuesParser:
    """
    Character-level parser for the tuple list following VALUES.

    Keeps its state between calls so a tuple may straddle chunk boundaries.
    """

    def __init__(self):
        self.reset("", parse_rows=False)

    def reset(self, table: str, parse_rows: bool):
        self.table = table
        self.parse_rows = parse_rows
        self.in_string = False
        self.escape_next = False
        self.depth = 0
        self.field: List[str] = []
        self.field_quoted = False
        self.row: List[Field] = []
        self.rows: List[List[Field]] = []

    def _end_field(self):
        self.row.append(Field("".join(self.field), self.field_quoted))
        self.field = []
        self.field_quoted = False

    def feed(self, text: str, start: int = 0) -> Tuple[int, bool]:
        """
        Consume ``text`` from ``start``.

        Returns (next index, statement finished). Completed rows are collected
        in ``self.rows`` until ``drain()`` is called.
        """
        i = start
        length = len(text)
        while i < length:
            c = text[i]
            i += 1

            if self.in_string:
                if self.escape_next:
                    self.field.append(MYSQL_ESCAPES.get(c, c))
                    self.escape_next = False
                elif c == "\\":
                    self.escape_next = True
                elif c == "'":
                    self.in_string = False
                else:
                    self.field.append(c)
                continue

            if c == "'":
                self.in_string = True
                self.field_quoted = True
            elif c == "(":
                if self.depth == 0:
                    self.depth = 1
                    self.row = []
                    self.field = []
                    self.field_quoted = False
                else:
                    self.depth += 1
                    if self.parse_rows:
                        self.field.append(c)
            elif c == ")":
                if self.depth == 1:
                    if self.parse_rows:
                        self._end_field()
                        self.rows.append(self.row)
                    self.depth = 0
                    self.row = []
                    self.field = []
                    self.field_quoted = False
                else:
                    self.depth = max(0, self.depth - 1)
                    if self.parse_rows:
                        self.field.append(c)
            elif c == "," and self.depth == 1 and self.parse_rows:
                self._end_field()
            elif c == ";" and self.depth == 0:
                return i, True
            elif self.parse_rows and self.depth >= 1:
                self.field.append(c)

        return i, False

    def drain(self) -> List[List[Field]]:
        rows, self.rows = self.rows, []
        return rows


def parse_dump(chunks: Iterable[str]) -> Iterator[DumpEvent]:
    """
    Yield rows of interesting tables, and an end event after every INSERT.

    Rows of other tables are skipped without being materialized.
    """
    parser = ValuesParser()
    state = SEARCHING_STATEMENT
    table = ""
    buffer = ""

    for chunk in chunks:
        buffer += chunk
        idx = 0

        while True:
            if state == SEARCHING_STATEMENT:
                start = buffer.find(INSERT_MARKER, idx)
                if start == -1:
                    buffer = buffer[max(idx, len(buffer) - LOOKBACK_CHARS):]
                    break
                idx = start + len(INSERT_MARKER)
                state = READING_TABLE_NAME

            if state == READING_TABLE_NAME:
                end = buffer.find("`", idx)
                if end == -1:
                    buffer = buffer[idx:]
                    break
                table = buffer[idx:end]
                idx = end + 1
                state = SEEKING_VALUES

            if state == SEEKING_VALUES:
                found = buffer.find(VALUES_MARKER, idx)
                if found == -1:
                    buffer = buffer[max(idx, len(buffer) - LOOKBACK_CHARS):]
                    break
                idx = found + len(VALUES_MARKER)
                parser.reset(table, parse_rows=is_table_of_interest(table))
                state = READING_VALUES

            if state == READING_VALUES:
                idx, done = parser.feed(buffer, idx)
                for row in parser.drain():
                    yield DumpEvent(table, row)
                if not done:
                    buffer = ""
                    break
                yield DumpEvent(table, None)
                state = SEARCHING_STATEMENT
                table = ""


def read_chunks(path: str, size: int = READ_CHUNK_CHARS) -> Iterator[str]:
    with open(path, "r", encoding="utf-8") as f:
        while True:
            chunk = f.read(size)
            if not chunk:
                return
            yield chunk


@dataclass
class SurahInfo:
    surah_number: int
    name_ar: Optional[str] = None
    name_tr: Optional[str] = None
    name_en: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name_tr or self.name_en or self.name_ar or f"Surah {self.surah_number}"


@dataclass
class MufassirInfo:
    name_tr: Optional[str] = None
    name_en: Optional[str] = None
    name_ar: Optional[str] = None
    name_long: Optional[str] = None
    death_year: Optional[int] = None
    century: Optional[int] = None
    madhab: Optional[str] = None
    period: Optional[str] = None
    environment: Optional[str] = None
    origin_country: Optional[str] = None
    reputation_score: Optional[float] = None
    tafsir_type: Optional[str] = None


@dataclass
class ImportStats:
    verses: int = 0
    scholars: int = 0
    tafsirs: int = 0
    skipped_tafsirs: int = 0


class ImportOrderError(Exception):
    """Tafsir rows arrived before the surah table finished loading."""
    pass


class SqlDumpImporter:
    """
    Turns dump events into database rows.

    mysqldump writes tables alphabetically, so ayahs and mufassirs are seen
    before surahs; verses and scholars are built when the surahs statement
    ends, and tafsir rows after that are inserted in batches.
    """

    def __init__(self, db: Session, batch_verses: int = 500, batch_tafsirs: int = 50):
        self.db = db
        self.batch_verses = batch_verses
        self.batch_tafsirs = batch_tafsirs
        self.stats = ImportStats()

        self.ayahs: List[Tuple[int, int, str, Optional[str]]] = []
        self.surahs: Dict[int, SurahInfo] = {}
        self.mufassirs: Dict[int, MufassirInfo] = {}
        self.fallback_names: Dict[int, Tuple[Optional[str], Optional[str]]] = {}
        self.tafsir_types: Dict[int, str] = {}
        self.known_verse_ids: Set[str] = set()

        self.verses_ready = False
        self.scholars_ready = False
        self._tafsir_batch: List[Dict] = []

    # ------------------------------------------------------------------

    def clear_existing(self, reset: bool):
        """
        Delete previously imported content.

        Raises RuntimeError when content exists and ``reset`` is not set.
        """
        has_content = self.db.query(Verse.id).first() is not None or self.db.query(Scholar.id).first() is not None
        if not has_content:
            return
        if not reset:
            raise RuntimeError("Database already has verses or scholars; set RESET_DB=true to clear them")

        logger.warning("RESET_DB=true - clearing searches, tafsirs, scholars and verses")
        self.db.query(SearchResult).delete(synchronize_session=False)
        self.db.query(Search).delete(synchronize_session=False)
        self.db.query(Tafsir).delete(synchronize_session=False)
        self.db.query(Scholar).delete(synchronize_session=False)
        self.db.query(Verse).delete(synchronize_session=False)
        self.db.commit()

    def run(self, chunks: Iterable[str]) -> ImportStats:
        for event in parse_dump(chunks):
            if event.row is None:
                self.end_statement(event.table)
            else:
                self.handle_row(event.table, event.row)
        self.flush_tafsirs()
        return self.stats

    # ------------------------------------------------------------------

    def handle_row(self, table: str, row: List[Field]):
        if table == "surahs":
            surah_id = _field(row, 0)
            if isinstance(surah_id, int):
                number = _field(row, 1)
                self.surahs[surah_id] = SurahInfo(
                    surah_number=number if isinstance(number, int) else surah_id,
                    name_ar=as_string(_field(row, 2)),
                    name_tr=as_string(_field(row, 3)),
                    name_en=as_string(_field(row, 4)),
                )

        elif table == "ayahs":
            surah_id = _field(row, 1)
            ayah_number = _field(row, 2)
            if isinstance(surah_id, int) and isinstance(ayah_number, int):
                self.ayahs.append((
                    surah_id,
                    ayah_number,
                    as_string(_field(row, 3)) or "",
                    as_string(_field(row, 6)),
                ))

        elif table == "mufassirs":
            mufassir_id = _field(row, 1)
            if isinstance(mufassir_id, int):
                self.mufassirs[mufassir_id] = MufassirInfo(
                    name_en=as_string(_field(row, 2)),
                    name_tr=as_string(_field(row, 3)),
                    name_ar=as_string(_field(row, 4)),
                    name_long=as_string(_field(row, 5)),
                    death_year=as_number(_field(row, 10)),
                    century=as_number(_field(row, 11)),
                    period=as_string(_field(row, 12)),
                    madhab=as_string(_field(row, 13)),
                    environment=as_string(_field(row, 14)),
                    origin_country=as_string(_field(row, 15)),
                    reputation_score=as_float(_field(row, 16)),
                    tafsir_type=as_string(_field(row, 21)),
                )

        elif table == "Mufessirs_dead_hijri":
            mufassir_id = _field(row, 1)
            if isinstance(mufassir_id, int):
                self.fallback_names[mufassir_id] = (
                    as_string(_field(row, 2)),
                    as_string(_field(row, 0)),
                )

        elif table.startswith("tafseer_"):
            self._handle_tafseer_row(row)

    def _handle_tafseer_row(self, row: List[Field]):
        if not (self.verses_ready and self.scholars_ready):
            raise ImportOrderError("Verses and scholars must be imported before tafseer tables")

        tafseer_id, surah_id, ayah_id, mufassir_id = (_field(row, i) for i in range(4))
        if not all(isinstance(v, int) for v in (tafseer_id, surah_id, ayah_id, mufassir_id)):
            return

        surah = self.surahs.get(surah_id)
        surah_number = surah.surah_number if surah else surah_id
        verse_number = 0 if ayah_id >= INTRO_AYAH_ID else ayah_id
        verse_id = verse_id_for(surah_number, verse_number)
        if verse_id not in self.known_verse_ids:
            self.stats.skipped_tafsirs += 1
            return

        self._tafsir_batch.append({
            "id": f"tafsir-{surah_id}-{tafseer_id}",
            "verse_id": verse_id,
            "scholar_id": f"scholar-{mufassir_id}",
            "tafsir_text": as_string(_field(row, 4)) or "",
            "tafsir_type": self.tafsir_types.get(mufassir_id),
        })
        if len(self._tafsir_batch) >= self.batch_tafsirs:
            self.flush_tafsirs()

    def end_statement(self, table: str):
        if table == "surahs":
            self.build_verses()
            self.build_scholars()
        elif table.startswith("tafseer_"):
            self.flush_tafsirs()

    # ------------------------------------------------------------------

    def build_verses(self):
        batch: List[Dict] = []

        def add(verse: Dict):
            batch.append(verse)
            if len(batch) >= self.batch_verses:
                self.stats.verses += self._insert_new(Verse, batch)
                batch.clear()

        for surah_id, ayah_number, arabic_text, transliteration in self.ayahs:
            surah = self.surahs.get(surah_id) or SurahInfo(surah_number=surah_id)
            add({
                "id": verse_id_for(surah.surah_number, ayah_number),
                "surah_number": surah.surah_number,
                "verse_number": ayah_number,
                "surah_name": surah.display_name,
                "arabic_text": arabic_text,
                "transliteration": transliteration,
                "translation": None,
            })

        # Verse 0 holds surah level introductions
        for surah in self.surahs.values():
            add({
                "id": verse_id_for(surah.surah_number, 0),
                "surah_number": surah.surah_number,
                "verse_number": 0,
                "surah_name": surah.display_name,
                "arabic_text": surah.name_ar or "",
                "transliteration": None,
                "translation": None,
            })

        if batch:
            self.stats.verses += self._insert_new(Verse, batch)

        self.known_verse_ids.update(row[0] for row in self.db.query(Verse.id).all())
        self.ayahs = []
        self.verses_ready = True
        logger.info(f"Imported {self.stats.verses} verses")

    def build_scholars(self):
        batch = []
        for mufassir_id in sorted(set(self.mufassirs) | set(self.fallback_names)):
            info = self.mufassirs.get(mufassir_id) or MufassirInfo()
            fallback_ar, fallback_label = self.fallback_names.get(mufassir_id, (None, None))
            name = (
                info.name_tr or info.name_en or info.name_ar or info.name_long
                or fallback_ar or fallback_label or f"Mufassir {mufassir_id}"
            )
            if info.tafsir_type:
                self.tafsir_types[mufassir_id] = info.tafsir_type

            batch.append({
                "id": f"scholar-{mufassir_id}",
                "name": name,
                "birth_year": None,
                "death_year": info.death_year,
                "century": info.century or 0,
                "madhab": info.madhab,
                "period": info.period,
                "environment": info.environment,
                "origin_country": info.origin_country,
                "reputation_score": info.reputation_score,
            })

        if batch:
            self.stats.scholars += self._insert_new(Scholar, batch)
        self.scholars_ready = True
        logger.info(f"Imported {self.stats.scholars} scholars")

    def flush_tafsirs(self):
        if not self._tafsir_batch:
            return
        self.stats.tafsirs += self._insert_new(Tafsir, self._tafsir_batch)
        self._tafsir_batch = []

    def _insert_new(self, model, rows: List[Dict]) -> int:
        """Insert rows whose id is not taken yet; returns how many were inserted."""
        unique: Dict[str, Dict] = {}
        for row in rows:
            unique.setdefault(row["id"], row)

        existing = {
            r[0] for r in self.db.query(model.id).filter(model.id.in_(list(unique))).all()
        }
        fresh = [row for row_id, row in unique.items() if row_id not in existing]
        if fresh:
            self.db.bulk_insert_mappings(model, fresh)
            self.db.commit()
        return len(fresh)


def import_sql_dump(db: Session, path: str, reset: bool = False,
                    batch_verses: int = 500, batch_tafsirs: int = 50) -> ImportStats:
    importer = SqlDumpImporter(db, batch_verses=batch_verses, batch_tafsirs=batch_tafsirs)
    importer.clear_existing(reset)
    logger.info(f"Using SQL dump: {path}")
    stats = importer.run(read_chunks(path))
    if stats.skipped_tafsirs:
        logger.warning(f"Skipped {stats.skipped_tafsirs} tafsir rows for unknown verses")
    logger.info(
        f"Import complete: {stats.verses} verses, {stats.scholars} scholars, {stats.tafsirs} tafsirs"
    )
    return stats
