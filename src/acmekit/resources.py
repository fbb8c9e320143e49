"""Client side view of server resources."""
import datetime
import logging
import typing
from typing import Any
from typing import Mapping
from typing import Optional
from typing import Type
from typing import TypeVar
from typing import Union

from acmekit import connection
from acmekit import errors
from acmekit import json_util
from acmekit import messages
from acmekit import util

if typing.TYPE_CHECKING:
    from acmekit import session as session_mod  # pragma: no cover

logger = logging.getLogger(__name__)

GenericJSONResource = TypeVar('GenericJSONResource', bound='JSONResource')


def fetch(session: 'session_mod.Session', conn: connection.Connection, location: str,
          accept: str = connection.JSON_CONTENT_TYPE) -> None:
    """Read a resource: POST-as-GET with an account, plain GET otherwise."""
    if session.kid is not None:
        conn.send_signed_post_as_get(location, accept=accept)
    else:
        conn.send_request(location, accept=accept)


class Resource:
    """Server resource identified by its location.

    Once bound, the location never changes.

    :ivar .Session session: Session the resource was created in.

    """

    def __init__(self, session: 'session_mod.Session', location: Optional[str] = None) -> None:
        if session is None:
            raise TypeError('session must not be None')
        self.session = session
        self._location: Optional[str] = None
        if location is not None:
            self._bind_location(location)

    @property
    def location(self) -> Optional[str]:
        """URL of the resource, ``None`` while unbound."""
        return self._location

    def _bind_location(self, location: str) -> None:
        util.check_url(location, 'location')
        if self._location is not None and self._location != location:
            raise ValueError('{0} is already bound to {1}, cannot rebind to {2}'.format(
                self.__class__.__name__, self._location, location))
        self._location = location

    def _require_location(self) -> str:
        if self._location is None:
            raise errors.Error(f'{self.__class__.__name__} is not bound to a location')
        return self._location

    def _fetch(self, conn: connection.Connection,
               accept: str = connection.JSON_CONTENT_TYPE) -> None:
        fetch(self.session, conn, self._require_location(), accept)

    def __repr__(self) -> str:
        return '{0}(location={1!r})'.format(self.__class__.__name__, self._location)


class JSONResource(Resource):
    """Server resource with a JSON representation and a status.

    The snapshot is replaced as a whole, so `status` and every other
    field derived from `json` always change together.

    :ivar datetime.datetime retry_after: Instant of the last ``Retry-After``
        hint, ``None`` if the last response had none.

    """

    def __init__(self, session: 'session_mod.Session', location: Optional[str] = None,
                 json: Union[json_util.JSON, Mapping[str, Any], None] = None) -> None:
        super().__init__(session, location)
        self._json = json_util.JSON.empty()
        self.retry_after: Optional[datetime.datetime] = None
        if json is not None:
            self.unmarshall(json)

    @classmethod
    def bind(cls: Type[GenericJSONResource], session: 'session_mod.Session',
             location: str) -> GenericJSONResource:
        """Bind to a location and load the resource.

        A ``Retry-After`` hint of this first load is stored in
        `retry_after` but not raised.

        :raises TypeError: if an argument is ``None``.
        :raises ValueError: if ``location`` is malformed, or the server sent
            a different kind of resource.

        """
        if session is None:
            raise TypeError('session must not be None')
        util.check_url(location, 'location')
        logger.debug('Binding %s to %s', cls.__name__, location)
        with session.connect() as conn:
            fetch(session, conn, location)
            conn.accept(200, 202)
            json = conn.read_json_response()
            retry_after = conn.retry_after()
        resource = cls._create(session, location, json)
        resource.retry_after = retry_after
        return resource

    @classmethod
    def _create(cls: Type[GenericJSONResource], session: 'session_mod.Session',
                location: str, json: json_util.JSON) -> GenericJSONResource:
        return cls(session, location, json)

    @property
    def json(self) -> json_util.JSON:
        """Last known JSON representation, empty if not loaded yet."""
        return self._json

    @property
    def status(self) -> messages.Status:
        return self._json.get('status').as_status()

    def _check(self, json: json_util.JSON) -> None:
        """Refuse a body that does not represent this kind of resource.

        :raises ValueError: if the body is of a different kind.

        """

    def unmarshall(self, json: Union[json_util.JSON, Mapping[str, Any]]) -> None:
        """Replace the snapshot.

        On failure the previous snapshot is kept.

        """
        if not isinstance(json, json_util.JSON):
            json = json_util.JSON(json)
        self._check(json)
        self._json = json

    def _load(self, conn: connection.Connection) -> Optional[datetime.datetime]:
        """Apply the body of a successful response.

        :returns: ``Retry-After`` instant of the response, if any.

        """
        json = conn.read_json_response()
        retry_after = conn.retry_after()
        self.unmarshall(json)
        self.retry_after = retry_after
        return retry_after

    def update(self) -> None:
        """Reload the resource from the server.

        :raises .RetryAfter: if the server asked to poll again later. The
            state is already updated when this is raised.
        :raises .ServerError: if the server rejected the request; the state
            is unchanged.

        """
        logger.debug('Updating %r', self)
        with self.session.connect() as conn:
            self._fetch(conn)
            conn.accept(200, 202)
            self._load(conn)
            conn.handle_retry_after('{0} is not completed yet'.format(self.__class__.__name__))

    def __repr__(self) -> str:
        return '{0}(location={1!r}, status={2})'.format(
            self.__class__.__name__, self.location, self.status)
