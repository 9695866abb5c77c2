"""Exceptions raised by lavasrc."""


class LavaSrcError(Exception):
    """Base exception for lavasrc."""
    pass


class CredentialsError(LavaSrcError):
    """Missing or invalid credentials for an upstream API."""
    pass


class TokenError(LavaSrcError):
    """Fetching or refreshing an access token failed."""
    pass


class SourceError(LavaSrcError):
    """An upstream catalog / lyrics API could not be reached or answered with an error."""
    pass


class PersistenceError(LavaSrcError):
    """Error talking to the metadata database."""
    pass


class TrackNotFoundError(LavaSrcError):
    """No playable mirror could be found for a track."""
    pass
