""" Optimistic concurrency over WATCH/MULTI/EXEC. The caller supplies the
    keys to watch and a body that reads them, computes, and queues its
    writes in an atomic pipeline. If any watched key changes before EXEC,
    the server discards the queued writes and the whole body runs again.

    There is no retry limit and no delay between attempts: under
    persistent contention the loop spins. Callers that need a bound or a
    backoff should wrap the body accordingly.
"""

import logging

from .cmd import Cmd, Pipeline
from .connection import ConnectionLike
from .errors import RespError, TransactionAborted
from .protocol import fields
from .protocol.value import Nil


log = logging.getLogger(__name__)


class TransactionView(ConnectionLike):
    """ Wraps the connection handed to a transaction body, passing every
        request through while watching for an EXEC that came back nil.
    """

    def __init__(self, connection):

        self.connection = connection
        self.executed = False
        self.aborted = False


    def __repr__(self):
        return 'TransactionView(%r)' % (self.connection,)


    def _observe(self, cmd, value):
        if cmd.name == fields.EXEC:
            self.executed = True
            if isinstance(value, Nil):
                self.aborted = True


    def request_one(self, cmd):
        value = self.connection.request_one(cmd)
        self._observe(cmd, value)
        return value


    def request_many(self, cmds):
        cmds = list(cmds)
        replies = self.connection.request_many(cmds)
        for cmd, value in zip(cmds, replies):
            self._observe(cmd, value)
        return replies


    def note_database_index(self, db):
        self.connection.note_database_index(db)


    @property
    def database(self):
        return self.connection.database


    @property
    def usable(self):
        return self.connection.usable


# end of class TransactionView



def _unwatch(connection):
    if connection.usable:
        connection.request_one(Cmd(fields.UNWATCH))



def transaction(connection, keys, body):
    """ Run *body* as an optimistic transaction over the watched *keys*
        (a single key or a sequence of keys) and return whatever the body
        returns from its successful attempt.

        The body is called as ``body(view, pipe)``, where *view* is a
        connection to use for reads and for executing *pipe*, a fresh
        atomic :class:`~respkit.cmd.Pipeline`. A typical body::

            def increment(view, pipe):
                value = Cmd('GET', 'counter').query(view, Optional[int]) or 0
                return pipe.cmd('SET', 'counter', value + 1).ignore() \\
                           .cmd('GET', 'counter').query(view, tuple[int])

        The body may run several times and must be safe to repeat. If it
        returns without executing a transaction, the keys are still
        unwatched before returning. Errors raised by the body propagate
        after the keys are unwatched.
    """

    if isinstance(keys, (str, bytes)):
        keys = [keys]
    else:
        keys = list(keys)

    attempts = 0

    while True:
        attempts += 1

        if keys:
            connection.request_one(Cmd(fields.WATCH, keys))

        view = TransactionView(connection)
        pipe = Pipeline(atomic=True)

        try:
            result = body(view, pipe)
        except TransactionAborted:
            aborted = True
        except Exception:
            try:
                _unwatch(connection)
            except RespError:
                log.warning('could not unwatch %r after a failed transaction', keys, exc_info=True)
            raise
        else:
            aborted = view.aborted

        if aborted:
            log.debug('transaction on %r aborted after attempt %d, retrying', keys, attempts)
            continue

        if not view.executed:
            log.debug('transaction body on %r returned without EXEC', keys)

        _unwatch(connection)
        return result


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
