"""Core (UI-agnostic) dashboard logic.

This package contains:
- month-key arithmetic
- record normalization (lexed CSV rows -> fact frame)
- branch/date filters and view state
- period, rolling-12 and branch-summary aggregates (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
