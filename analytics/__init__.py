"""Studio analytics (UI-agnostic) dashboard logic.

This package contains:
- spreadsheet loading (XLSX/CSV -> pandas) and filter application
- the grouped-reduce aggregation shared by every page
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
