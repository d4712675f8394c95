"""Fitness provider adapters.

Each adapter implements the ProviderClient ABC and handles fetching daily
step and distance totals plus raw heart-rate samples, mapping "no data"
to empty lists.

Available adapters:
    GoogleFitAdapter - Google Fit REST API (OAuth2 bearer token)
"""

from solid_health.fitness.adapters.google_fit import GoogleFitAdapter

__all__ = ["GoogleFitAdapter"]

# Registry: source_id → adapter class
PROVIDER_REGISTRY: dict[str, type] = {
    "google_fit": GoogleFitAdapter,
}


def get_provider(source_id: str) -> "type":
    """Return the adapter class for a given source slug.

    Raises:
        KeyError: If the source_id is not registered.
    """
    if source_id not in PROVIDER_REGISTRY:
        raise KeyError(
            f"No provider registered for source '{source_id}'. "
            f"Available: {list(PROVIDER_REGISTRY)}"
        )
    return PROVIDER_REGISTRY[source_id]
