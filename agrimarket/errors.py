"""
Error taxonomy for the dashboard service.

Widget failures stay local to the widget; chat failures stay local to the
conversation view. Only AuthRequired reaches the HTTP layer as a redirect.
"""


class AgrimarketError(Exception):
    """Base class for all service errors."""


class AuthRequired(AgrimarketError):
    """No active session for a gateway-backed view."""

    redirect_to = "/auth"


class ProfileMissing(AgrimarketError):
    """A session exists but no profile row was found."""


class PersistenceError(AgrimarketError):
    """A gateway read or write failed. The operation is abandoned, never retried."""


class StreamError(AgrimarketError):
    """Network failure, non-success status or unreadable body while streaming a reply."""


class ConfigFault(AgrimarketError):
    """A required setting (such as the assistant API key) is missing."""


class ForecastUnavailable(AgrimarketError):
    """The location could not be geocoded or the forecast request failed."""
