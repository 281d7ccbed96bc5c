from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from psdash.config import DATASET_OVERRIDES, get_settings
from psdash.errors import DatasetError, LoadFailed
from psdash.normalize import categories_in_order, normalize_records, observed_bounds
from psdash.summary import natural_key

logger = logging.getLogger(__name__)

_SEGMENT_RE = re.compile(r"[^A-Za-z0-9]+")


@dataclass(frozen=True)
class DatasetEntry:
    id: str
    label: str
    file: str
    instructions: Optional[str] = None
    colors: Dict[str, str] = field(default_factory=dict)
    default_category: Optional[str] = None
    value_type: Optional[str] = None
    size: Optional[int] = None
    last_modified: Optional[str] = None


def _segments(file_name: str) -> List[str]:
    stem = re.sub(r"\.csv$", "", file_name, flags=re.IGNORECASE)
    return [s for s in _SEGMENT_RE.split(stem) if s]


def build_dataset_entry(file_name: str, meta: Optional[Mapping[str, Any]] = None) -> Optional[DatasetEntry]:
    """historical_parts_v2.csv -> id "Historical_Parts_V2", label "Historical Parts V2"."""
    if not file_name:
        return None
    meta = meta or {}
    override = DATASET_OVERRIDES.get(file_name, {})
    segments = [s[:1].upper() + s[1:] for s in _segments(file_name)]
    stem = re.sub(r"\.csv$", "", file_name, flags=re.IGNORECASE)
    size = meta.get("size")
    return DatasetEntry(
        id=str(override.get("id") or ("_".join(segments) if segments else stem)),
        label=str(override.get("label") or (" ".join(segments) if segments else stem) or file_name),
        file=file_name,
        instructions=override.get("instructions"),
        colors=dict(override.get("colors") or {}),
        default_category=override.get("default_category"),
        value_type=override.get("value_type"),
        size=int(size) if isinstance(size, (int, float)) and not isinstance(size, bool) else None,
        last_modified=meta.get("last_modified") or meta.get("lastModified"),
    )


def normalize_dataset_records(records: Iterable[Mapping[str, Any]], default_id: Optional[str] = None) -> List[DatasetEntry]:
    """Dedupe catalog records by id; default dataset first, then natural label order."""
    default_id = default_id or get_settings().default_dataset
    by_id: Dict[str, DatasetEntry] = {}
    for record in records or []:
        if not record or not record.get("file"):
            continue
        entry = build_dataset_entry(str(record["file"]), record)
        if entry is None:
            continue
        existing = by_id.get(entry.id)
        if existing is None:
            by_id[entry.id] = entry
        else:
            by_id[entry.id] = replace(
                existing,
                size=existing.size if existing.size is not None else entry.size,
                last_modified=existing.last_modified or entry.last_modified,
            )
    return sorted(by_id.values(), key=lambda e: (e.id != default_id, natural_key(e.label or e.id)))


def get_source_files(data_dir: Optional[Path] = None) -> List[Path]:
    settings = get_settings()
    root = Path(data_dir) if data_dir is not None else settings.data_dir
    if not root.is_dir():
        return []
    return sorted(p for p in root.glob(settings.file_glob) if p.is_file())


def list_datasets(data_dir: Optional[Path] = None) -> List[DatasetEntry]:
    records = []
    for path in get_source_files(data_dir):
        st = path.stat()
        records.append(
            {
                "file": path.name,
                "size": st.st_size,
                "last_modified": datetime.fromtimestamp(st.st_mtime, tz=timezone.utc).isoformat(),
            }
        )
    entries = normalize_dataset_records(records)
    if not entries:
        entries = normalize_dataset_records([{"file": name} for name in DATASET_OVERRIDES])
    return entries


def find_dataset(dataset_id: Optional[str], entries: Sequence[DatasetEntry]) -> Optional[DatasetEntry]:
    """Requested dataset, else the configured default, else the first entry."""
    by_id = {e.id: e for e in entries}
    if dataset_id and dataset_id in by_id:
        return by_id[dataset_id]
    default = by_id.get(get_settings().default_dataset)
    return default or (entries[0] if entries else None)


# ---------------- Lexer boundary ----------------
def read_records(text: str) -> Tuple[List[Dict[str, Any]], List[str]]:
    """CSV text -> (rows, headers). Cells stay raw strings; blank lines are skipped."""
    try:
        df = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False, skip_blank_lines=True)
    except pd.errors.EmptyDataError:
        return [], []
    except (pd.errors.ParserError, ValueError) as exc:
        raise LoadFailed(f"Could not parse CSV: {exc}") from exc
    headers = [str(c).strip() for c in df.columns]
    df.columns = headers
    return df.to_dict(orient="records"), headers


def parse_dataset_text(text: str) -> pd.DataFrame:
    rows, headers = read_records(text)
    return normalize_records(rows, headers)


def read_dataset_text(path: Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8-sig")
    except OSError as exc:
        raise LoadFailed(f"Failed to load {Path(path).name}: {exc}") from exc


@lru_cache(maxsize=8)
def _load_facts_cached(path_str: str, mtime: float) -> pd.DataFrame:
    return parse_dataset_text(read_dataset_text(Path(path_str)))


def load_dataset_facts(path: Path) -> pd.DataFrame:
    """Facts for one dataset file, cached per (path, mtime). Callers must not mutate the frame."""
    path = Path(path)
    try:
        mtime = path.stat().st_mtime
    except OSError as exc:
        raise LoadFailed(f"Failed to load {path.name}: {exc}") from exc
    facts = _load_facts_cached(str(path), mtime)
    logger.info("Loaded %s: %d facts", path.name, len(facts))
    return facts


def dataset_context(facts: pd.DataFrame, entry: Optional[DatasetEntry] = None) -> Dict[str, object]:
    """Static per-dataset context shared by every filter combination."""
    bounds = observed_bounds(facts)
    branches = sorted({b for b in facts["Branch"].dropna().unique() if b}, key=str) if not facts.empty else []
    years = sorted(int(y) for y in facts["Year"].unique()) if not facts.empty else []
    return {
        "dataset": entry,
        "facts": facts,
        "bounds": bounds,
        "categories": categories_in_order(facts),
        "branches": branches,
        "years": years,
    }


def load_dashboard_data(dataset_id: Optional[str] = None, data_dir: Optional[Path] = None) -> Dict[str, object]:
    entries = list_datasets(data_dir)
    entry = find_dataset(dataset_id, entries)
    if entry is None:
        raise LoadFailed("No CSV datasets found.")
    root = Path(data_dir) if data_dir is not None else get_settings().data_dir
    try:
        facts = load_dataset_facts(root / entry.file)
    except DatasetError:
        logger.warning("Dataset %s failed to load", entry.id)
        raise
    ctx = dataset_context(facts, entry)
    ctx["datasets"] = entries
    return ctx
