"""Measurement import/export and store maintenance.

Modules:
    importer — Validate and write externally supplied records
    dedup    — Collapse duplicate (date, type) records, keeping the earliest
    export   — Pretty-printed JSON export
"""
