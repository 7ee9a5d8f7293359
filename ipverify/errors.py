class VerificationError(Exception):
    """Base class for failures absorbed inside a verification run."""


class CredentialUnavailable(VerificationError):
    """No proxy credential could be obtained for a postal code."""


class TunnelRequestFailed(VerificationError):
    """A proxied request timed out, failed to connect or returned non-2xx."""


class GeoLookupInconclusive(VerificationError):
    """A geolocation provider returned no usable region."""
