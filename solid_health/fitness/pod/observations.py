"""FHIR Observation documents: load, parse, encode and write.

Observations are stored in the RDF shape of the FHIR model, with nested
blank nodes for every element::

    <#steps_20200301> a fhir:Observation ;
        fhir:Observation.code [ fhir:CodeableConcept.coding [
            fhir:Coding.system [ fhir:value "http://loinc.org" ] ;
            fhir:Coding.code   [ fhir:value "55423-8" ] ] ] ;
        fhir:Observation.subject [ fhir:link <webid> ] ;
        fhir:Observation.effectiveDateTime [ fhir:value "2020-03-01"^^xsd:date ] ;
        fhir:Observation.valueQuantity [
            fhir:Quantity.value [ fhir:value 8152 ] ] .

The document may be shared with other applications, so anything that does
not match this shape, belongs to another patient, or carries an unknown
code is skipped rather than reported.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timezone
from urllib.parse import urldefrag

from rdflib import BNode, Literal, URIRef
from rdflib.term import Node

from solid_health.fitness.base import Category, DataPoint, PodDataPoint, parse_instant
from solid_health.fitness.config_loader import SyncConfig
from solid_health.fitness.errors import NetworkError, ParseSkip
from solid_health.fitness.pod import sparql
from solid_health.fitness.pod.client import PodClient, raise_for_rejection
from solid_health.fitness.pod.namespaces import (
    DCTERMS,
    FHIR,
    FHIR_ONTOLOGY,
    LOINC,
    LOINC_SYSTEM,
    OWL,
    RDF,
    UCUM_SYSTEM,
    XSD,
)
from solid_health.fitness.pod.sparql import Triple
from solid_health.fitness.pod.triple_store import TripleStore

logger = logging.getLogger("solidhealth.fitness.pod.observations")

_NUMERIC_TYPES = (XSD.decimal, XSD.integer)


@dataclass
class EncodedObservation:
    """A new observation ready for upload.

    Attributes:
        uri:     Resource URI inside the observation document.
        point:   The pod-side view of the point (what the snapshot holds).
        triples: Self-contained statements, including the document's
                 ``dcterms:references`` link to ``uri``.
    """

    uri: str
    point: PodDataPoint
    triples: list[Triple] = field(default_factory=list)


class ObservationStore:
    """Observations of one patient inside one pod document.

    Args:
        store:    Triple store the document is loaded into.
        client:   Pod client used for writes.
        config:   Sync configuration (category codings).
        web_id:   The active patient's WebID.
        document: Observation document URI.
    """

    def __init__(
        self,
        store: TripleStore,
        client: PodClient,
        config: SyncConfig,
        web_id: str,
        document: str,
    ) -> None:
        self._store = store
        self._client = client
        self._config = config
        self.web_id = web_id
        self.document = urldefrag(document).url

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Load the document, creating it with boilerplate if it is absent.

        Raises:
            RemoteRejection: If the document is absent and cannot be created.
        """
        try:
            await self._store.load(self.document)
        except NetworkError as exc:
            logger.info("Could not load %s (%s); initialising", self.document, exc)
            await self._initialise()

    async def _initialise(self) -> None:
        doc = URIRef(self.document)
        statements = [
            (URIRef(self.web_id), RDF.type, FHIR.Patient),
            (doc, RDF.type, OWL.Ontology),
            (doc, OWL.imports, URIRef(FHIR_ONTOLOGY)),
        ]
        response = await self._client.patch(self.document, sparql.insert_data(statements))
        raise_for_rejection(response, f"Could not initialise {self.document}")
        for statement in statements:
            self._store.add_statement(*statement)
        logger.info("Populated %s", self.document)

    # ------------------------------------------------------------------
    # Parse
    # ------------------------------------------------------------------

    def parse(self) -> dict[Category, list[PodDataPoint]]:
        """Decode every valid observation of the active patient.

        Returns:
            Category → points sorted by parsed_date.
        """
        result: dict[Category, list[PodDataPoint]] = {c: [] for c in Category}
        skipped = 0

        for observation in self._store.query_all(None, RDF.type, FHIR.Observation):
            try:
                category, point = self._parse_observation(observation)
            except ParseSkip as exc:
                skipped += 1
                logger.debug("Skipping %s: %s", observation, exc)
                continue
            result[category].append(point)

        for points in result.values():
            points.sort(key=lambda p: p.parsed_date)

        logger.info(
            "Parsed %s: %d steps, %d distance, %d heart rate (%d skipped)",
            self.document,
            len(result[Category.STEPS]),
            len(result[Category.DISTANCE]),
            len(result[Category.HEART_RATE]),
            skipped,
        )
        return result

    def _parse_observation(self, observation: Node) -> tuple[Category, PodDataPoint]:
        if self._subject(observation) != self.web_id:
            raise ParseSkip("different patient")

        effective = self._effective_date(observation)
        value = self._value(observation)
        category = self._category(observation)

        try:
            parsed = parse_instant(effective)
        except ValueError as exc:
            raise ParseSkip(f"unparseable date {effective!r}") from exc

        return category, PodDataPoint(
            date=effective, value=value, uri=str(observation), parsed_date=parsed
        )

    def _path(self, node: Node, *predicates: Node) -> Node:
        for predicate in predicates:
            node = self._store.query_single(node, predicate)
            if node is None:
                raise ParseSkip(f"missing {predicate}")
        return node

    def _subject(self, observation: Node) -> str:
        return str(self._path(observation, FHIR["Observation.subject"], FHIR.link))

    def _effective_date(self, observation: Node) -> str:
        literal = self._path(observation, FHIR["Observation.effectiveDateTime"], FHIR.value)
        if not isinstance(literal, Literal) or literal.datatype != XSD.date:
            raise ParseSkip("effectiveDateTime is not an xsd:date literal")
        return str(literal)

    def _value(self, observation: Node) -> float:
        literal = self._path(
            observation,
            FHIR["Observation.valueQuantity"],
            FHIR["Quantity.value"],
            FHIR.value,
        )
        if not isinstance(literal, Literal) or literal.datatype not in _NUMERIC_TYPES:
            raise ParseSkip("quantity value is not a decimal or integer literal")
        try:
            value = float(str(literal))
        except ValueError as exc:
            raise ParseSkip(f"quantity value {literal!r} is not numeric") from exc
        if value != value:  # NaN
            raise ParseSkip("quantity value is NaN")
        return value

    def _category(self, observation: Node) -> Category:
        coding = self._path(
            observation, FHIR["Observation.code"], FHIR["CodeableConcept.coding"]
        )
        system = str(self._path(coding, FHIR["Coding.system"], FHIR.value))
        code = str(self._path(coding, FHIR["Coding.code"], FHIR.value))
        category = self._config.category_for_code(code) if system == LOINC_SYSTEM else None
        if category is None:
            raise ParseSkip(f"unrecognised coding {system} {code}")
        return category

    # ------------------------------------------------------------------
    # Encode / write
    # ------------------------------------------------------------------

    def resource_uri(self, point: DataPoint, category: Category) -> str:
        """Deterministic URI for a point: one per day, or one per instant for heart rate."""
        instant = parse_instant(point.date)
        if category.is_daily:
            suffix = instant.strftime("%Y%m%d")
        else:
            suffix = str(round(instant.astimezone(timezone.utc).timestamp() * 1000))
        return f"{self.document}#{category.value}_{suffix}"

    def encode(self, point: DataPoint, category: Category) -> EncodedObservation:
        """Build the statements for a new observation of ``point``."""
        coding_cfg = self._config.coding(category)
        uri = self.resource_uri(point, category)
        obs = URIRef(uri)

        status, code, coding = BNode(), BNode(), BNode()
        system, code_value, display = BNode(), BNode(), BNode()
        text, subject, effective = BNode(), BNode(), BNode()
        quantity, q_value, q_unit, q_system, q_code = BNode(), BNode(), BNode(), BNode(), BNode()

        triples: list[Triple] = [
            (obs, RDF.type, FHIR.Observation),
            (obs, FHIR.nodeRole, FHIR.treeRoot),
            (obs, FHIR["Observation.status"], status),
            (status, FHIR.value, Literal("final")),
            (obs, FHIR["Observation.code"], code),
            (code, FHIR["CodeableConcept.coding"], coding),
            (coding, FHIR["index"], Literal(0)),
            (coding, RDF.type, LOINC[coding_cfg.code]),
            (coding, FHIR["Coding.system"], system),
            (system, FHIR.value, Literal(LOINC_SYSTEM)),
            (coding, FHIR["Coding.code"], code_value),
            (code_value, FHIR.value, Literal(coding_cfg.code)),
            (coding, FHIR["Coding.display"], display),
            (display, FHIR.value, Literal(coding_cfg.display)),
            (code, FHIR["CodeableConcept.text"], text),
            (text, FHIR.value, Literal(coding_cfg.display)),
            (obs, FHIR["Observation.subject"], subject),
            (subject, FHIR.link, URIRef(self.web_id)),
            (obs, FHIR["Observation.effectiveDateTime"], effective),
            (effective, FHIR.value, Literal(point.date, datatype=XSD.date, normalize=False)),
            (obs, FHIR["Observation.valueQuantity"], quantity),
            (quantity, FHIR["Quantity.value"], q_value),
            (q_value, FHIR.value, sparql.quantity_literal(point.value, coding_cfg.literal_type)),
            (quantity, FHIR["Quantity.unit"], q_unit),
            (q_unit, FHIR.value, Literal(coding_cfg.unit)),
            (quantity, FHIR["Quantity.system"], q_system),
            (q_system, FHIR.value, Literal(UCUM_SYSTEM)),
            (quantity, FHIR["Quantity.code"], q_code),
            (q_code, FHIR.value, Literal(coding_cfg.unit_code)),
            (URIRef(self.document), DCTERMS.references, obs),
        ]

        pod_point = PodDataPoint(date=point.date, value=point.value, uri=uri)
        return EncodedObservation(uri=uri, point=pod_point, triples=triples)

    async def modify(self, point: PodDataPoint, new_value: float) -> None:
        """Rewrite the stored value of an existing observation.

        Raises:
            RemoteRejection: On a non-success response.
        """
        update = sparql.replace_quantity_value(URIRef(point.uri), new_value)
        response = await self._client.patch(self.document, update)
        raise_for_rejection(response, f"Could not update {point.uri}")
        point.value = new_value

    async def upload(self, batch: list[EncodedObservation]) -> None:
        """Insert a batch of new observations in one request.

        Raises:
            RemoteRejection: On a non-success response.
        """
        triples = [t for observation in batch for t in observation.triples]
        response = await self._client.patch(self.document, sparql.insert_data(triples))
        raise_for_rejection(response, f"Could not upload {len(batch)} observations")
