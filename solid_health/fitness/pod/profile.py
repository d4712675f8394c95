"""Resolve a WebID profile document into a Profile."""

from __future__ import annotations

import logging

from rdflib import URIRef

from solid_health.fitness.base import Profile
from solid_health.fitness.pod.namespaces import FOAF, SOLID
from solid_health.fitness.pod.triple_store import TripleStore

logger = logging.getLogger("solidhealth.fitness.pod.profile")


class ProfileLoader:
    """Read name, image, friends and the private type index from a profile."""

    def __init__(self, store: TripleStore) -> None:
        self._store = store

    async def load(self, web_id: str) -> Profile:
        """Load ``web_id``'s document and extract the profile fields.

        Absent fields stay None / empty.

        Raises:
            NetworkError: If the profile document is unreachable.
        """
        await self._store.load(web_id)

        user = URIRef(web_id)
        profile = Profile(web_id=web_id)

        name = self._store.query_single(user, FOAF.name)
        if name is not None and str(name):
            profile.name = str(name)

        image = self._store.query_single(user, FOAF.img)
        if image is not None and str(image):
            profile.image = str(image)

        profile.friends = {str(friend) for friend in self._store.query_all(user, FOAF.knows)}

        type_index = self._store.query_single(user, SOLID.privateTypeIndex)
        if type_index is not None and str(type_index):
            profile.private_type_index = str(type_index)

        logger.info(
            "Loaded profile %s (%d friends, type index %s)",
            web_id,
            len(profile.friends),
            "present" if profile.private_type_index else "absent",
        )
        return profile
