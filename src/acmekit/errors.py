"""ACME errors."""
import datetime
import typing
from typing import Any
from typing import Mapping
from typing import Optional

# We import acmekit.problem only during type check to avoid circular dependencies. Type
# references to acmekit.problem.* must be quoted to be lazily initialized.
if typing.TYPE_CHECKING:
    from acmekit import problem  # pragma: no cover


class Error(Exception):
    """Generic ACME error."""


class ProtocolError(Error):
    """Server response violates the structure the protocol requires.

    Raised for malformed JSON, missing required fields, challenge bodies of
    the wrong type and similar defects. Never retried.

    """


class NonceError(ProtocolError):
    """Server response nonce error."""


class BadNonce(NonceError):
    """Bad nonce error."""
    def __init__(self, nonce: str, error: Exception, *args: Any) -> None:
        super().__init__(*args)
        self.nonce = nonce
        self.error = error

    def __str__(self) -> str:
        return 'Invalid nonce ({0!r}): {1}'.format(self.nonce, self.error)


class MissingNonce(NonceError):
    """Missing nonce error.

    According to RFC 8555 an "ACME server MUST include a
    Replay-Nonce header field in each successful response to a POST it
    provides to a client (...)".

    :ivar headers: Mapping of HTTP headers

    """
    def __init__(self, headers: Mapping[str, str], *args: Any) -> None:
        super().__init__(*args)
        self.headers = dict(headers)

    def __str__(self) -> str:
        return ('Server response did not include a replay '
                'nonce, headers: {0} (This may be a service outage)'.format(
                    self.headers))


class ServerError(Error):
    """The server rejected a request.

    :ivar problem: `.Problem` sent by the server, or ``None`` if the
        response body was not a problem document.
    :ivar int status_code: HTTP status of the rejected response.

    """
    def __init__(self, problem: Optional['problem.Problem'], status_code: Optional[int] = None,
                 message: Optional[str] = None) -> None:
        self.problem = problem
        self.status_code = status_code
        self.message = message
        super().__init__()

    def __str__(self) -> str:
        if self.problem is not None:
            return str(self.problem)
        if self.message is not None:
            return self.message
        return 'HTTP {0}'.format(self.status_code)

    def __repr__(self) -> str:
        return '{0}(problem={1!r}, status_code={2!r})'.format(
            self.__class__.__name__, self.problem, self.status_code)


class RateLimited(ServerError):
    """The server refused the request because a rate limit was exceeded.

    :ivar datetime.datetime retry_after: Earliest time to retry, if the
        server sent a ``Retry-After`` header.

    """
    def __init__(self, problem: Optional['problem.Problem'], status_code: Optional[int] = None,
                 retry_after: Optional[datetime.datetime] = None) -> None:
        super().__init__(problem, status_code)
        self.retry_after = retry_after


class Unauthorized(ServerError):
    """The client lacks sufficient authorization for the request."""


class UserActionRequired(ServerError):
    """Visiting the ``instance`` URL of the problem is required, e.g. to
    agree to new terms of service.

    :ivar str terms_of_service: URL of the ``terms-of-service`` link, if any.

    """
    def __init__(self, problem: Optional['problem.Problem'], status_code: Optional[int] = None,
                 terms_of_service: Optional[str] = None) -> None:
        super().__init__(problem, status_code)
        self.terms_of_service = terms_of_service


class RetryAfter(Error):
    """The operation was accepted but is not finished yet.

    This is not a failure: the state of the resource has already been
    updated from the response. Poll again no sooner than ``retry_after``.

    :ivar datetime.datetime retry_after: Aware UTC instant.

    """
    def __init__(self, message: str, retry_after: datetime.datetime) -> None:
        super().__init__(message)
        self.message = message
        self.retry_after = retry_after

    def __str__(self) -> str:
        return '{0} (retry after {1})'.format(self.message, self.retry_after.isoformat())
