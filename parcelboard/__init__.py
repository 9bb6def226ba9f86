"""Core (UI-agnostic) parcel analytics logic.

This package contains:
- parcel records and derived metric types
- time filter normalization and date range resolution
- document store backends (memory, JSON file, HTTP)
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""

__version__ = "0.1.0"
