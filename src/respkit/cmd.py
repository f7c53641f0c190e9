""" Command and pipeline builders. A :class:`Cmd` accumulates arguments of
    any type :func:`~respkit.convert.to_args` understands; a
    :class:`Pipeline` batches several commands into one round trip,
    optionally wrapped in MULTI/EXEC.

    Both are built fluently::

        value = Cmd('GET', 'key').query(connection, int)

        a, b = (pipe()
            .cmd('SET', 'a', 1).ignore()
            .cmd('INCR', 'a')
            .cmd('GET', 'a')
            .query(connection, tuple[int, int]))
"""

from .convert import from_value, to_args
from .errors import ServerError, TypeMismatch
from .iterator import Iter
from .protocol import fields
from .protocol.codec import encode_command
from .protocol.value import Array, ErrorReply, Nil, Value


class Cmd:
    """ A single command. The first argument is the command name. Set
        :attr:`ignored` (or call :meth:`Pipeline.ignore`) to drop this
        command's reply from a pipeline's results.
    """

    def __init__(self, *args):

        self._args = list()
        self._packed = None
        self.cursor_index = None
        self.ignored = False

        for arg in args:
            self.arg(arg)


    def __repr__(self):
        return 'Cmd(%s)' % (', '.join(repr(arg) for arg in self._args))


    def __iter__(self):
        return iter(self._args)


    def __len__(self):
        return len(self._args)


    def arg(self, value):
        """ Append *value* as zero or more arguments. Returns this
            :class:`Cmd` so calls can be chained.
        """

        self._args.extend(to_args(value))
        self._packed = None
        return self


    def cursor_arg(self, cursor=0):
        """ Append a cursor argument. :meth:`iter` replaces it with the
            cursor returned by the server on every page.
        """

        if self.cursor_index is not None:
            raise ValueError('a command can only have one cursor argument')

        self.cursor_index = len(self._args)
        return self.arg(int(cursor))


    def with_cursor(self, cursor):
        """ Return a copy of this command with the cursor argument replaced
            by *cursor*.
        """

        if self.cursor_index is None:
            raise ValueError('command has no cursor argument: ' + repr(self))

        copy = Cmd()
        copy._args = list(self._args)
        copy._args[self.cursor_index] = b'%d' % (int(cursor))
        copy.cursor_index = self.cursor_index
        copy.ignored = self.ignored
        return copy


    @property
    def args(self):
        return tuple(self._args)


    @property
    def name(self):
        """ The upper case command name, as bytes. """

        if not self._args:
            raise ValueError('command is empty')
        return self._args[0].upper()


    def packed(self):
        """ Return the wire encoding of this command. """

        if not self._args:
            raise ValueError('command is empty')

        packed = self._packed
        if packed is None:
            packed = encode_command(self._args)
            self._packed = packed

        return packed


    def query(self, connection, target=None):
        """ Send this command over *connection* and return the reply
            converted to *target*; see :func:`~respkit.convert.from_value`.
        """

        value = connection.request_one(self)
        return from_value(value, target)


    def execute(self, connection):
        """ Send this command and discard the reply. Error replies still
            raise.
        """

        connection.request_one(self)


    def iter(self, connection, target=None):
        """ Return an :class:`~respkit.iterator.Iter` over the elements of
            this command's reply. With a cursor argument the iterator pages
            through the whole scan; otherwise it iterates the single reply.
        """

        return Iter(connection, self, target)


# end of class Cmd



def cmd(name, *args):
    """ Shorthand for ``Cmd(name, *args)``. """
    return Cmd(name, *args)



class Pipeline:
    """ An ordered batch of commands sent in a single write. When
        *atomic* is True the batch is wrapped in MULTI/EXEC and executes as
        a server-side transaction.
    """

    def __init__(self, atomic=False):

        self.commands = list()
        self.transaction_mode = bool(atomic)


    def __repr__(self):
        if self.transaction_mode:
            kind = 'atomic'
        else:
            kind = 'plain'
        return 'Pipeline(%s, %r)' % (kind, self.commands)


    def __len__(self):
        return len(self.commands)


    def __iter__(self):
        return iter(self.commands)


    def _last(self):
        try:
            return self.commands[-1]
        except IndexError:
            raise ValueError('pipeline has no commands yet') from None


    def cmd(self, name, *args):
        self.commands.append(Cmd(name, *args))
        return self


    def add_command(self, cmd):
        self.commands.append(cmd)
        return self


    def arg(self, value):
        """ Append *value* to the most recently added command. """
        self._last().arg(value)
        return self


    def ignore(self):
        """ Drop the reply of the most recently added command from the
            results.
        """
        self._last().ignored = True
        return self


    def atomic(self):
        self.transaction_mode = True
        return self


    def clear(self):
        self.commands = list()


    def _wire_commands(self):
        if self.transaction_mode:
            return [Cmd(fields.MULTI)] + self.commands + [Cmd(fields.EXEC)]
        return list(self.commands)


    def packed(self):
        """ Return the wire encoding of the whole batch. """
        return b''.join(cmd.packed() for cmd in self._wire_commands())


    def _retained(self, replies):
        """ Raise the first error reply, if any, then return the replies of the
            commands that were not ignored.
        """

        for value in replies:
            if isinstance(value, ErrorReply):
                raise ServerError.from_reply(value.code, value.message)

        retained = list()
        for cmd, value in zip(self.commands, replies):
            if not cmd.ignored:
                retained.append(value)

        return retained


    def _run_plain(self, connection):
        replies = connection.request_many(self.commands)
        return self._retained(replies)


    def _run_atomic(self, connection):
        replies = connection.request_many(self._wire_commands())

        # MULTI and every queued command answer with a status; an error here
        # means the server refused to queue a command.

        for value in replies[:-1]:
            if isinstance(value, ErrorReply):
                raise ServerError.from_reply(value.code, value.message)

        executed = replies[-1]

        if isinstance(executed, Nil):
            return None

        if isinstance(executed, ErrorReply):
            raise ServerError.from_reply(executed.code, executed.message)

        if not isinstance(executed, Array) or len(executed.items) != len(self.commands):
            raise TypeMismatch(executed, list, 'EXEC reply does not match %d queued commands' % (len(self.commands)))

        return self._retained(executed.items)


    def query(self, connection, target=None):
        """ Send the batch over *connection* and return the retained replies
            in submission order, converted as one composite value to
            *target* (element-wise natural conversion when *target* is
            None). Returns None when the pipeline is atomic and the server
            aborted the transaction because a watched key changed.
        """

        if self.transaction_mode:
            retained = self._run_atomic(connection)
            if retained is None:
                return None
        elif self.commands:
            retained = self._run_plain(connection)
        else:
            retained = []

        return from_value(Array(tuple(retained)), target)


    def execute(self, connection):
        """ Send the batch and discard the results. """
        self.query(connection, Value)


# end of class Pipeline



def pipe():
    """ Shorthand for ``Pipeline()``. """
    return Pipeline()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
