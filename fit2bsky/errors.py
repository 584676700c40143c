class Fit2BskyError(Exception):
    """Base class for every error surfaced to the command line."""


class ConfigError(Fit2BskyError):
    pass


class DateParseError(Fit2BskyError):
    pass


class TokenStoreError(Fit2BskyError):
    pass


class TokenStoreUnreadable(TokenStoreError):
    pass


class TokenStoreUnwritable(TokenStoreError):
    pass


class TokenStoreCorrupt(TokenStoreError):
    pass


class NetworkError(Fit2BskyError):
    pass


class AuthEndpointError(Fit2BskyError):
    """Non-success response from the Fitbit token endpoint."""

    def __init__(self, status_code, body):
        self.status_code = status_code
        self.body = body
        if status_code is None:
            super().__init__(body)
        else:
            super().__init__(f"Fitbit token endpoint error {status_code}: {body}")


class AuthRefreshExpired(AuthEndpointError):
    """The refresh token was rejected or is missing; consent is needed again."""


class ConsentAborted(Fit2BskyError):
    pass


class ResourceError(Fit2BskyError):
    """Fitbit API still returned a non-success status after one retry."""

    def __init__(self, status_code, body):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Fitbit API error {status_code}: {body}")


class DecodeError(Fit2BskyError):
    pass


class EmptyReading(Fit2BskyError):
    pass


class SinkError(Fit2BskyError):
    pass
