from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, List


# ---------------------------------------------------------------------------
# Paths: override with PSDASH_DATA_DIR for deployment
# ---------------------------------------------------------------------------
DATA_DIR = Path(os.environ.get("PSDASH_DATA_DIR", str(Path(__file__).resolve().parents[1] / "data")))
FILE_GLOB = "historical_*.csv"

# ---------------------------------------------------------------------------
# Column detection (case-insensitive exact header match)
# ---------------------------------------------------------------------------
YEAR_COLUMN_NAMES = ("year", "yr", "fy", "fiscal year")
PERIOD_COLUMN_NAMES = ("period", "per", "month")
BRANCH_COLUMN_NAMES = ("branch name", "branch", "store", "location")

# Never treated as metric columns even when they are not the detected id columns.
DIMENSION_COLUMN_NAMES = frozenset({"date", "month", "year", "period", "branch"})

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

ROLLING_MONTHS = 12
BLANK_BRANCH = "(Blank)"

# ---------------------------------------------------------------------------
# Dataset catalog
# ---------------------------------------------------------------------------
DEFAULT_DATASET = "Historical_All"

DATASET_OVERRIDES: Dict[str, Dict[str, object]] = {
    "historical_all.csv": {
        "id": "Historical_All",
        "label": "Historical All ($)",
        "instructions": "Year, Period, Branch, Equipment, Rental, Parts, Service, Total",
        "colors": {
            "Equipment": "#2563EB",
            "Rental": "#7C3AED",
            "Parts": "#0EA5E9",
            "Service": "#F97316",
            "Total": "#FACC15",
        },
        "default_category": "Total",
        "value_type": "currency",
    },
    "historical_sales.csv": {
        "id": "Historical_Sales",
        "label": "Historical Equipment Sales ($)",
        "instructions": (
            "Year, Period, Branch, New Equipment Sales, Used Equipment Sales, RPO Sales, "
            "Re-Marketing Sales, Trade-In Sales, RtoR Sales, Other, Total Equipment"
        ),
        "colors": {
            "New Equipment Sales": "#2563EB",
            "Used Equipment Sales": "#7C3AED",
            "RPO Sales": "#0EA5E9",
            "Re-Marketing Sales": "#F97316",
            "Trade-In Sales": "#F43F5E",
            "RtoR Sales": "#10B981",
            "Other": "#94A3B8",
            "Total Equipment": "#FACC15",
        },
        "default_category": "Total Equipment",
        "value_type": "currency",
    },
}

BRAND_COLOR_OVERRIDES = {
    "Parts All": "#1f77b4",
    "Service All": "#2ca02c",
}

# Region -> branch codes. Static lookup data handed to the filter layer.
REGIONS: Dict[str, List[str]] = {
    "NC": ["113", "114", "117", "160"],
    "SC": ["215", "216", "218"],
    "GA": ["364", "365", "367"],
    "TN": ["520", "536"],
}


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    file_glob: str
    default_dataset: str
    log_level: str


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        data_dir=Path(os.environ.get("PSDASH_DATA_DIR", str(DATA_DIR))),
        file_glob=os.environ.get("PSDASH_FILE_GLOB", FILE_GLOB),
        default_dataset=os.environ.get("PSDASH_DEFAULT_DATASET", DEFAULT_DATASET),
        log_level=os.environ.get("PSDASH_LOG_LEVEL", "INFO").upper(),
    )
