"""Error taxonomy for the resolution engine."""
from __future__ import annotations


class ResolverError(Exception):
    """Base class for everything the engine raises."""


class NotFound(ResolverError):
    """No candidate URL resolved to a reachable page."""


class UpstreamUnavailable(ResolverError):
    """The fetcher reported a transport failure for every candidate URL."""


class NoSourcesExtracted(ResolverError):
    """A page was fetched but no strategy produced an acceptable URL."""


class MalformedScriptPayload(ResolverError):
    """The per-section script was fetched but its arrays could not be parsed."""
