""" Implementation of :class:`Client` and the top-level :func:`connect`
    method, intended to be the principal entry points for users opening
    connections.
"""

import logging

from . import config
from .connection import Connection, ConnectionInfo
from .pubsub import PubSub


log = logging.getLogger(__name__)


class Client:
    """ A factory for connections sharing one set of settings. The settings
        come from *info*, which may be a
        :class:`~respkit.connection.ConnectionInfo` or the name of a profile
        saved with :func:`respkit.config.save`; when *info* is None the
        environment defaults from :func:`respkit.config.defaults` are used.
        Any keyword *overrides* replace individual fields::

            client = Client(db=2, timeout=5)
            connection = client.get_connection()

        Every call opens a new connection; the caller owns it and is
        responsible for closing it. There is no pooling.
    """

    def __init__(self, info=None, **overrides):

        if info is None:
            info = config.defaults()
        elif isinstance(info, str):
            info = config.get(info)
        elif not isinstance(info, ConnectionInfo):
            raise TypeError('info must be a ConnectionInfo or a profile name, not ' + type(info).__name__)

        if overrides:
            info = info.replace(**overrides)

        self.info = info


    def __repr__(self):
        return 'Client(%r)' % (self.info,)


    def get_connection(self):
        """ Open and return a new :class:`~respkit.connection.Connection`.
        """

        connection = Connection.open(self.info)
        log.debug('opened %r', connection)
        return connection


    def get_pubsub(self):
        """ Return a :class:`~respkit.pubsub.PubSub` dispatcher over a new,
            dedicated connection.
        """

        return PubSub(self.get_connection())


# end of class Client



def connect(info=None, **overrides):
    """ Shorthand for ``Client(info, **overrides).get_connection()``.
    """

    return Client(info, **overrides).get_connection()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
