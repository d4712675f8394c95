"""Solid pod access for the sync engine.

Modules:
    client       - Authenticated GET / PATCH / POST over httpx
    identity     - Login/logout broadcast and per-identity pod clients
    triple_store - Minimal load/look-up/assert interface over rdflib
    profile      - WebID profile → Profile
    type_index   - Locate or bootstrap the observation document
    observations - Parse and encode FHIR observations
    sparql       - SPARQL Update bodies from rdflib terms
"""
