"""Minimal triple-store capability used by the sync engine.

The engine only needs to load documents and look statements up by subject
and predicate; it never runs general queries.  ``TripleStore`` captures
that surface and ``RdflibTripleStore`` implements it over an rdflib graph
fed by the authenticated PodClient.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator
from urllib.parse import urldefrag

import rdflib
from rdflib import Graph, URIRef
from rdflib.term import Node

from solid_health.fitness.errors import NetworkError
from solid_health.fitness.pod.client import PodClient

logger = logging.getLogger("solidhealth.fitness.pod.store")

# Content type → rdflib parser name
_FORMATS: dict[str, str] = {
    "text/turtle": "turtle",
    "application/ld+json": "json-ld",
    "application/rdf+xml": "xml",
    "text/n3": "n3",
    "application/n-triples": "nt",
}


@contextmanager
def lexical_literals() -> Iterator[None]:
    """Keep typed literals exactly as written while parsing.

    rdflib rewrites typed literals to their canonical form by default, which
    cuts a timestamp typed ``xsd:date`` down to the bare date.
    """
    previous = rdflib.NORMALIZE_LITERALS
    rdflib.NORMALIZE_LITERALS = False
    try:
        yield
    finally:
        rdflib.NORMALIZE_LITERALS = previous


class TripleStore(ABC):
    """Load / look-up / assert over a set of triples."""

    @abstractmethod
    async def load(self, uri: str) -> None:
        """Fetch the document holding ``uri`` and merge its triples.

        Raises:
            NetworkError: If the document cannot be fetched or parsed.
        """

    @abstractmethod
    def query_single(self, subject: Node | None, predicate: Node, obj: Node | None = None) -> Node | None:
        """Return one matching node, or None.

        With ``subject`` None, returns a subject that has ``predicate obj``.
        Otherwise returns an object of ``subject predicate``.
        """

    @abstractmethod
    def query_all(self, subject: Node | None, predicate: Node, obj: Node | None = None) -> list[Node]:
        """Return every matching node, with the same addressing as query_single."""

    @abstractmethod
    def add_statement(self, subject: Node, predicate: Node, obj: Node) -> None:
        """Assert a statement locally (no network)."""


class RdflibTripleStore(TripleStore):
    """TripleStore over an in-memory rdflib Graph."""

    def __init__(self, client: PodClient, graph: Graph | None = None) -> None:
        self._client = client
        self.graph = graph if graph is not None else Graph()
        self._loaded: set[str] = set()

    @staticmethod
    def sym(uri: str) -> URIRef:
        return URIRef(uri)

    async def load(self, uri: str) -> None:
        document = urldefrag(uri).url
        response = await self._client.get(document)
        if not response.is_success:
            raise NetworkError(
                f"Could not load {document}: HTTP {response.status_code}",
                status=response.status_code,
            )

        content_type = response.headers.get("content-type", "text/turtle")
        fmt = _FORMATS.get(content_type.split(";")[0].strip().lower(), "turtle")
        try:
            with lexical_literals():
                self.graph.parse(data=response.text, format=fmt, publicID=document)
        except Exception as exc:  # rdflib raises parser-specific exceptions
            raise NetworkError(f"Could not parse {document} as {fmt}: {exc}") from exc

        self._loaded.add(document)
        logger.debug("Loaded %s (%d triples in store)", document, len(self.graph))

    def is_loaded(self, uri: str) -> bool:
        return urldefrag(uri).url in self._loaded

    def query_single(self, subject, predicate, obj=None):
        if subject is None:
            return next(iter(self.graph.subjects(predicate, obj)), None)
        return self.graph.value(subject, predicate, any=True)

    def query_all(self, subject, predicate, obj=None):
        if subject is None:
            return list(self.graph.subjects(predicate, obj))
        return list(self.graph.objects(subject, predicate))

    def add_statement(self, subject, predicate, obj):
        self.graph.add((subject, predicate, obj))
