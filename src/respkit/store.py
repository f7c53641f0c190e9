""" A dictionary-like view of the keyspace. :class:`Store` maps string keys
    to string values, using plain GET/SET/DEL/EXISTS on a single
    connection; iteration walks the keyspace with SCAN so it never blocks
    the server the way KEYS would.
"""

import collections.abc
import logging
from typing import Optional

from .cmd import Cmd


log = logging.getLogger(__name__)


class Store(collections.abc.MutableMapping):
    """ The :class:`Store` implements a key/value store, effectively a Python
        dictionary backed by the server. Every key is stored under the
        optional *prefix*, so several stores can share one database without
        seeing each other's keys; the prefix is invisible to the caller.

        Values are returned as :class:`str`; use :func:`retrieve` with a
        different *target* for other conversions.
    """

    scan_count = 100

    def __init__(self, connection, prefix=''):

        self.connection = connection
        self.prefix = str(prefix)


    def __repr__(self):
        return 'store.Store(%r, prefix=%r)' % (self.connection, self.prefix)


    def _key(self, key):
        return self.prefix + str(key)


    def store(self, key, value, expire=None):
        """ Set *key* to *value*. If *expire* is specified, the key expires
            after that many seconds.
        """

        command = Cmd('SET', self._key(key), value)

        if expire is not None:
            command.arg('PX').arg(int(expire * 1000))

        command.execute(self.connection)


    def retrieve(self, key, target=str):
        """ Return the value of *key* converted to *target*, or None if the
            key does not exist.
        """

        return Cmd('GET', self._key(key)).query(self.connection, Optional[target])


    def delete(self, key):
        """ Delete *key*. Returns True if the key existed.
        """

        return Cmd('DEL', self._key(key)).query(self.connection, bool)


    def __setitem__(self, key, value):
        self.store(key, value)


    def __getitem__(self, key):

        value = self.retrieve(key)

        if value is None:
            raise KeyError(key)

        return value


    def __delitem__(self, key):
        if not self.delete(key):
            raise KeyError(key)


    def __contains__(self, key):
        return Cmd('EXISTS', self._key(key)).query(self.connection, bool)


    def __iter__(self):

        pattern = _escape(self.prefix) + '*'
        command = Cmd('SCAN').cursor_arg().arg('MATCH').arg(pattern).arg('COUNT').arg(self.scan_count)

        # SCAN may return a key more than once; callers expect each key once.

        seen = set()
        start = len(self.prefix)

        for key in command.iter(self.connection, str):
            if key in seen:
                continue
            seen.add(key)
            yield key[start:]


    def __len__(self):
        count = 0
        for key in self:
            count += 1
        return count


    def clear(self):
        """ Delete every key visible through this store.
        """

        keys = [self._key(key) for key in self]
        if keys:
            Cmd('DEL', keys).execute(self.connection)
            log.debug('%r deleted %d keys', self, len(keys))


# end of class Store



def _escape(prefix):
    """ Escape the glob metacharacters in *prefix* so it matches literally.
    """

    escaped = list()

    for character in prefix:
        if character in '*?[]\\':
            escaped.append('\\')
        escaped.append(character)

    return ''.join(escaped)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
