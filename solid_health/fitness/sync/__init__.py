"""Sync infrastructure for solid-health.

Modules:
    channels - Single-slot status / profile broadcast channels
    session  - Per-identity session, generation token and fitness snapshot
    dedup    - Provider vs. pod diffing and heart-rate collapse
    engine   - Month-by-month reconciliation
    manager  - Identity changes → load chain → reconciliation
"""
