"""Core (UI-agnostic) care-class dashboard logic.

This package contains:
- time parsing and care-duration derivation (raw cells -> minutes)
- record import (XLSX/CSV -> StudentRecord list)
- admin settings normalization and persistence
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
