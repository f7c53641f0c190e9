""" Lazy iteration over paged scan replies (SCAN, SSCAN, HSCAN, ZSCAN and
    the like). Each page is a ``[cursor, [items...]]`` reply; the server
    signals the final page by returning cursor zero.
"""

import collections
import logging

from .convert import from_value
from .errors import TypeMismatch
from .protocol.value import SEQUENCES, Map


log = logging.getLogger(__name__)


class Iter:
    """ Iterate the elements produced by *cmd* on *connection*, converting
        each one to *target* (natural conversion when None).

        If *cmd* carries a cursor argument, pages are requested on demand:
        buffered elements are yielded first, then the next page is fetched
        using the last cursor returned by the server. Once the server
        returns cursor zero and the buffer drains, the iterator is finished
        for good; start a new scan to iterate again.

        A command without a cursor argument is queried once and its reply
        iterated.
    """

    def __init__(self, connection, cmd, target=None):

        self.connection = connection
        self.cmd = cmd
        self.target = target
        self.cursor = None
        self.buffer = collections.deque()
        self.exhausted = False
        self.pages = 0


    def __iter__(self):
        return self


    def __next__(self):

        while not self.buffer:
            if self.exhausted:
                raise StopIteration
            self._fetch()

        return self.buffer.popleft()


    def _convert(self, items):
        if self.target is None:
            return from_value(items, list)
        return from_value(items, list[self.target])


    def _fetch(self):

        if self.cmd.cursor_index is None:
            value = self.connection.request_one(self.cmd)
            self.exhausted = True
            self.pages += 1
            self.buffer.extend(self._convert(value))
            return

        if self.cursor is None:
            cursor = 0
        else:
            cursor = self.cursor

        page = self.connection.request_one(self.cmd.with_cursor(cursor))
        self.pages += 1

        if not isinstance(page, SEQUENCES) or len(page.items) != 2:
            raise TypeMismatch(page, list, 'expected a [cursor, items] scan reply')

        cursor, items = page.items

        if not isinstance(items, SEQUENCES + (Map,)):
            raise TypeMismatch(items, list, 'scan page items must be an aggregate')

        self.cursor = from_value(cursor, int)

        if self.cursor == 0:
            self.exhausted = True

        log.debug('scan page %d: %d items, next cursor %d', self.pages, len(items), self.cursor)

        self.buffer.extend(self._convert(items))


# end of class Iter


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
