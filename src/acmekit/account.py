"""ACME accounts."""
import datetime
import ipaddress
import json
import logging
import typing
from typing import Any
from typing import Dict
from typing import Iterable
from typing import List
from typing import Optional
from typing import Union

import josepy as jose

from acmekit import authorization
from acmekit import errors
from acmekit import json_util
from acmekit import jws
from acmekit import messages
from acmekit import order
from acmekit import resources

if typing.TYPE_CHECKING:
    from acmekit import session as session_mod  # pragma: no cover

logger = logging.getLogger(__name__)

HMAC_ALGORITHMS = {
    "HS256": jose.jwa.HS256,
    "HS384": jose.jwa.HS384,
    "HS512": jose.jwa.HS512,
}


def external_account_binding(account_public_key: jose.JWK, kid: str, hmac_key: str,
                             url: str, hmac_alg: str = "HS256") -> Dict[str, Any]:
    """Create the ``externalAccountBinding`` member of a new account request.

    :param JWK account_public_key: Public key of the new account.
    :param str kid: Key identifier given by the CA.
    :param str hmac_key: base64url encoded MAC key given by the CA.
    :param str url: URL of the ``newAccount`` resource.
    :param str hmac_alg: ``HS256``, ``HS384`` or ``HS512``.

    """
    key_json = json.dumps(account_public_key.to_partial_json()).encode()
    decoded_hmac_key = jose.b64.b64decode(hmac_key)

    alg = HMAC_ALGORITHMS.get(hmac_alg)
    if alg is None:
        supported = ", ".join(HMAC_ALGORITHMS.keys())
        raise ValueError(f"Invalid value for hmac_alg: {hmac_alg}. "
                         f"Expected one of: {supported}.")

    eab = jws.JWS.sign(key_json, jose.jwk.JWKOct(key=decoded_hmac_key),
                       alg, None,
                       url, kid)

    return eab.to_partial_json()


def to_identifier(value: Union[str, messages.Identifier]) -> messages.Identifier:
    """Identifier for a domain name or IP address string."""
    if isinstance(value, messages.Identifier):
        return value
    try:
        address = ipaddress.ip_address(value)
    except ValueError:
        return messages.Identifier.dns(value)
    return messages.Identifier.ip(str(address))


class Account(resources.JSONResource):
    """ACME account."""

    def _check(self, json: json_util.JSON) -> None:
        for name in ('type', 'identifier', 'identifiers'):
            if name in json:
                raise ValueError(f'Not an account: body has a {name!r} field')

    @property
    def contacts(self) -> List[str]:
        return [value.as_uri()  # type: ignore[misc]
                for value in self.json.get('contact').as_array()]

    @property
    def terms_of_service_agreed(self) -> Optional[bool]:
        return self.json.get('termsOfServiceAgreed').as_bool()

    @property
    def orders_url(self) -> Optional[str]:
        return self.json.get('orders').as_url()

    @classmethod
    def create(cls, session: 'session_mod.Session', contact: Iterable[str] = (),
               terms_of_service_agreed: bool = False, only_return_existing: bool = False,
               external_account_binding: Optional[Dict[str, Any]] = None) -> 'Account':
        """Register a new account, or find the existing one for the session key.

        The account URL becomes the session's ``kid``.

        :param contact: Contact URIs, e.g. ``mailto:admin@example.com``.
        :param bool terms_of_service_agreed:
        :param bool only_return_existing: Do not create an account if there
            is none for the key.
        :param dict external_account_binding: See `external_account_binding`.

        """
        if session is None:
            raise TypeError('session must not be None')
        if session.key is None:
            raise errors.Error('Creating an account requires the account key')
        claims = json_util.JSONBuilder()
        contact = list(contact)
        if contact:
            claims.array('contact', contact)
        if terms_of_service_agreed:
            claims.put('termsOfServiceAgreed', True)
        if only_return_existing:
            claims.put('onlyReturnExisting', True)
        if external_account_binding is not None:
            claims.put('externalAccountBinding', external_account_binding)
        with session.connect() as conn:
            conn.send_signed_request(session.resource_url(messages.NEW_ACCOUNT),
                                     claims, use_kid=False)
            if conn.accept(200, 201) == 200:
                logger.debug('Account already exists')
            location = conn.location()
            if location is None:
                raise errors.ProtocolError('Server did not send the account location')
            account = cls(session, location, conn.read_json_response())
        session.kid = location
        return account

    def new_order(self, identifiers: Iterable[Union[str, messages.Identifier]],
                  not_before: Optional[datetime.datetime] = None,
                  not_after: Optional[datetime.datetime] = None) -> order.Order:
        """Request a new order.

        :param identifiers: Identifiers, or domain names and IP addresses.

        """
        claims = json_util.JSONBuilder()
        claims.array('identifiers', [to_identifier(value) for value in identifiers])
        if not_before is not None:
            claims.put('notBefore', not_before)
        if not_after is not None:
            claims.put('notAfter', not_after)
        with self.session.connect() as conn:
            conn.send_signed_request(self.session.resource_url(messages.NEW_ORDER), claims)
            conn.accept(201)
            location = conn.location()
            if location is None:
                raise errors.ProtocolError('Server did not send the order location')
            return order.Order(self.session, location, conn.read_json_response())

    def pre_authorize(self, identifier: Union[str, messages.Identifier]
                      ) -> authorization.Authorization:
        """Authorize an identifier ahead of an order.

        :raises .ProtocolError: if the server does not support it.

        """
        claims = json_util.JSONBuilder().put('identifier', to_identifier(identifier))
        with self.session.connect() as conn:
            conn.send_signed_request(self.session.resource_url(messages.NEW_AUTHZ), claims)
            conn.accept(201)
            location = conn.location()
            if location is None:
                raise errors.ProtocolError('Server did not send the authorization location')
            return authorization.Authorization(self.session, location,
                                               conn.read_json_response())

    def orders(self) -> List[order.Order]:
        """Orders of the account, following ``next`` links."""
        orders = []
        visited = set()
        url = self.orders_url
        while url is not None:
            if url in visited:
                logger.debug('Orders page %s was already read, stopping', url)
                break
            visited.add(url)
            with self.session.connect() as conn:
                resources.fetch(self.session, conn, url)
                conn.accept(200)
                orders.extend(order.Order(self.session, value.as_url())
                              for value in conn.read_json_response().get('orders').as_array())
                links = conn.links('next')
            url = links[0] if links else None
        return orders

    def modify(self, contact: Iterable[str]) -> None:
        """Replace the contact URIs."""
        claims = json_util.JSONBuilder().array('contact', list(contact))
        self._post(claims)

    def deactivate(self) -> None:
        """Deactivate the account. This cannot be undone."""
        self._post(json_util.JSONBuilder().put('status', messages.STATUS_DEACTIVATED))

    def change_key(self, new_key: jose.JWK) -> None:
        """Roll over to a new account key.

        On success the session signs with ``new_key`` from now on.

        """
        location = self._require_location()
        url = self.session.resource_url(messages.KEY_CHANGE)
        old_key = self.session.key
        if old_key is None:
            raise errors.Error('Changing the key requires the current account key')
        inner = json_util.JSONBuilder().put('account', location)
        inner.put_key('oldKey', old_key)
        inner_jws = jws.JWS.sign(inner.to_json().encode(), key=new_key,
                                 alg=jws.signature_algorithm(new_key), nonce=None, url=url)
        with self.session.connect() as conn:
            conn.send_signed_request(url, inner_jws.to_json())
            conn.accept(200)
        self.session.key = new_key

    def _post(self, claims: json_util.JSONBuilder) -> None:
        with self.session.connect() as conn:
            conn.send_signed_request(self._require_location(), claims)
            conn.accept(200)
            self._load(conn)
