"""ACME protocol client.

This package is a client implementation of the `ACME protocol`_: every server
resource (account, order, authorization, challenge, certificate) is a client
side object with a location, a JSON snapshot and a status that `update` brings
back in sync with the server.

.. _`ACME protocol`: https://datatracker.ietf.org/doc/html/rfc8555

"""
