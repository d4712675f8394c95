"""Locate, or bootstrap, the pod document that holds health observations.

The private type index maps classes to storage locations.  We look for a
registration whose ``solid:forClass`` is ``fhir:Observation``:

- ``solid:instance``          → that document is used as-is.
- ``solid:instanceContainer`` → ``<container>/fitness.ttl``.
- no registration             → register a default container, create it,
                                and use ``<container>/fitness.ttl``.
"""

from __future__ import annotations

import logging
from urllib.parse import urljoin

from rdflib import Literal, URIRef

from solid_health.fitness.config_loader import BootstrapConfig
from solid_health.fitness.errors import BootstrapFailure
from solid_health.fitness.pod import sparql
from solid_health.fitness.pod.client import PodClient, raise_for_rejection
from solid_health.fitness.pod.namespaces import DCTERMS, FHIR, RDF, SOLID
from solid_health.fitness.pod.triple_store import TripleStore

logger = logging.getLogger("solidhealth.fitness.pod.type_index")

# Status returned by servers when the container already exists
_CONFLICT = 409


class TypeIndexResolver:
    """Resolve the observation document URI from a type index."""

    def __init__(
        self, store: TripleStore, client: PodClient, config: BootstrapConfig
    ) -> None:
        self._store = store
        self._client = client
        self._config = config

    async def resolve(self, type_index: str) -> str:
        """Return the observation document URI, bootstrapping it if needed.

        Re-running after a bootstrap finds the new registration and performs
        no writes.

        Raises:
            NetworkError:     If the type index cannot be loaded.
            BootstrapFailure: If registration or container creation fails.
        """
        await self._store.load(type_index)

        location = self._find_registered_location()
        if location is not None:
            logger.info("Observations registered at %s", location)
            return location

        logger.info("Observation location not found in %s, creating", type_index)
        return await self._bootstrap(type_index)

    def _find_registered_location(self) -> str | None:
        # Other apps may leave registrations without a location; skip those.
        for registration in self._store.query_all(None, SOLID.forClass, FHIR.Observation):
            instance = self._store.query_single(registration, SOLID.instance)
            if instance is not None and str(instance):
                return str(instance)

            container = self._store.query_single(registration, SOLID.instanceContainer)
            if container is not None and str(container):
                return urljoin(_as_container(str(container)), self._config.observation_file)

        return None

    async def _bootstrap(self, type_index: str) -> str:
        cfg = self._config
        index = URIRef(type_index)
        registration = URIRef(f"{type_index}#{cfg.registration_fragment}")
        container = URIRef(urljoin(type_index, cfg.container_path))

        statements = [
            (registration, RDF.type, SOLID.TypeRegistration),
            (registration, SOLID.forClass, FHIR.Observation),
            (registration, SOLID.instanceContainer, container),
            (index, DCTERMS.references, registration),
        ]

        # (a) register the default container in the type index
        response = await self._client.patch(type_index, sparql.insert_data(statements))
        raise_for_rejection(response, "Type registration insert unsuccessful", BootstrapFailure)
        for statement in statements:
            self._store.add_statement(*statement)
        logger.info("Added Observation registration to %s", type_index)

        # (b) create the container; an existing one is fine
        parent = urljoin(str(container), "..")
        title = sparql.triples_block(
            [(URIRef(""), DCTERMS.title, Literal(cfg.container_title))]
        ).strip()
        response = await self._client.create_container(parent, cfg.container_slug, title)
        if response.status_code == _CONFLICT:
            logger.info("Container %s already exists", container)
        else:
            raise_for_rejection(response, "Container creation unsuccessful", BootstrapFailure)
            logger.info("Created container %s", container)

        # (c) default observation document inside it
        return urljoin(str(container), cfg.observation_file)


def _as_container(uri: str) -> str:
    return uri if uri.endswith("/") else uri + "/"
