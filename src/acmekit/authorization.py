"""ACME authorizations."""
import datetime
import logging
from typing import List
from typing import Optional
from typing import Type
from typing import Union

from acmekit import json_util
from acmekit import messages
from acmekit import resources
from acmekit.challenges import Challenge

logger = logging.getLogger(__name__)


class Authorization(resources.JSONResource):
    """Authorization of the account for one identifier.

    Selecting and triggering one of the `challenges` is left to the caller.

    """

    def _check(self, json: json_util.JSON) -> None:
        if json and 'identifier' not in json:
            raise ValueError('Not an authorization: body has no identifier')

    @property
    def identifier(self) -> Optional[messages.Identifier]:
        return self.json.get('identifier').as_identifier()

    @property
    def expires(self) -> Optional[datetime.datetime]:
        return self.json.get('expires').as_instant()

    @property
    def wildcard(self) -> bool:
        """Whether the authorization is for a wildcard domain."""
        return bool(self.json.get('wildcard').as_bool())

    @property
    def challenges(self) -> List[Challenge]:
        """Challenges offered by the server, built through the registry.

        :raises .ProtocolError: if a challenge is not an object with a type.

        """
        challenges = []
        for value in self.json.get('challenges').as_array():
            json = value.required().as_object()
            json.get('type').required()  # type: ignore[union-attr]
            challenges.append(Challenge.from_json(self.session, json))  # type: ignore[arg-type]
        return challenges

    def find_challenge(self, typ: Union[str, Type[Challenge]]
                       ) -> Optional[Challenge]:
        """First challenge of the given type.

        :param typ: Challenge type name, or a registered variant class.

        :returns: The challenge, or ``None`` if the server offered none of
            that type.

        """
        name = typ if isinstance(typ, str) else typ.typ
        for challenge in self.challenges:
            if challenge.type == name:
                return challenge
        return None

    def deactivate(self) -> None:
        """Deactivate the authorization."""
        claims = json_util.JSONBuilder().put('status', messages.STATUS_DEACTIVATED)
        logger.debug('Deactivating %r', self)
        with self.session.connect() as conn:
            conn.send_signed_request(self._require_location(), claims)
            conn.accept(200)
            self._load(conn)
