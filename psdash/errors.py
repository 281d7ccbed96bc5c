from __future__ import annotations


class DatasetError(Exception):
    """Base class for failures that abort a single dataset load."""


class MissingColumn(DatasetError):
    def __init__(self, message: str = "Missing Year or Period/Month columns.") -> None:
        super().__init__(message)


class EmptyDataset(DatasetError):
    def __init__(self, message: str = "No valid rows found in CSV.") -> None:
        super().__init__(message)


class LoadFailed(DatasetError):
    pass
