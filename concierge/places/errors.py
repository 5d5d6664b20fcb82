from __future__ import annotations


class PlacesError(Exception):
    """Base class for place-search failures."""


class PlacesUnavailableError(PlacesError):
    """The place service could not be reached or refused the credentials."""


class PlacesRequestError(PlacesError):
    """The place service rejected a single request."""


class PlacesResponseError(PlacesError):
    """The place service answered with a payload we could not decode."""
