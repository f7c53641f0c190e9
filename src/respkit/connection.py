""" Connections to a RESP server. :class:`ConnectionLike` is the small
    capability set everything above the codec is written against;
    :class:`Connection` implements it on top of a byte-stream
    :class:`~respkit.transport.base.Transport`.

    Replies are correlated with requests strictly by order. A connection
    must therefore never be used by more than one thread at a time; use one
    connection per concurrent task.
"""

import collections
import dataclasses
import enum
import logging
from abc import ABC, abstractmethod
from typing import Optional

from . import transport as transports
from .cmd import Cmd
from .errors import ConnectionModeError, IoError, ProtocolError, ServerError
from .protocol import fields
from .protocol.codec import NEED_MORE, Decoder, encode_pipeline
from .protocol.value import SEQUENCES, BulkBytes, ErrorReply, Integer, Push, SimpleString
from .transport.base import TransportTimeout


log = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class ConnectionInfo:
    """ Everything needed to open a connection: the server address, either
        *host* and *port* or a local socket *path*; optional credentials;
        the database index to select; the protocol version to negotiate;
        the transport deadline in seconds (None blocks indefinitely); and
        the transport backend name (None uses the configured default).
    """

    host: str = 'localhost'
    port: int = 6379
    path: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = dataclasses.field(default=None, repr=False)
    db: int = 0
    protocol: int = 2
    timeout: Optional[float] = None
    transport: Optional[str] = None

    def __post_init__(self):
        if self.protocol not in (2, 3):
            raise ValueError('unsupported protocol version: %r' % (self.protocol,))

        if self.db < 0:
            raise ValueError('database index must be non-negative: %r' % (self.db,))

        if self.path is None and not 0 < self.port < 65536:
            raise ValueError('invalid port number: %r' % (self.port,))

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError('timeout must be positive: %r' % (self.timeout,))


    @property
    def address(self):
        if self.path is not None:
            return self.path
        return (self.host, self.port)


    def replace(self, **changes):
        return dataclasses.replace(self, **changes)


    def to_dict(self):
        return dataclasses.asdict(self)


    @classmethod
    def from_dict(cls, block):
        known = set(field.name for field in dataclasses.fields(cls))
        unknown = set(block) - known
        if unknown:
            raise ValueError('unknown connection settings: ' + ', '.join(sorted(unknown)))
        return cls(**block)


# end of class ConnectionInfo



class Mode(enum.Enum):
    """ NORMAL connections exchange request/reply pairs. PUBSUB connections
        only receive message frames and (un)subscribe controls. DISABLED
        connections hit a fatal transport or protocol error, or were closed.
    """

    NORMAL = 'normal'
    PUBSUB = 'pubsub'
    DISABLED = 'disabled'



class ConnectionLike(ABC):
    """ Anything that can serve request/reply exchanges: a live
        :class:`Connection`, or a view that wraps one, such as the
        transaction view used by :func:`respkit.transaction`.
    """

    @abstractmethod
    def request_one(self, cmd):
        """ Send a single :class:`~respkit.cmd.Cmd` and return its reply as a
            :class:`~respkit.protocol.value.Value`. An error reply raises
            :class:`~respkit.errors.ServerError`.
        """

    @abstractmethod
    def request_many(self, cmds):
        """ Send a batch of commands in one write, then return exactly one
            reply per command, in submission order. Error replies are
            returned as :class:`~respkit.protocol.value.ErrorReply` values.
        """

    @abstractmethod
    def note_database_index(self, db):
        """ Record that database *db* is now selected. """

    @property
    @abstractmethod
    def database(self):
        """ The currently selected database index. """

    @property
    @abstractmethod
    def usable(self):
        """ False once a fatal error occurred or the connection was closed. """


# end of class ConnectionLike



class Connection(ConnectionLike):
    """ A single connection to a RESP server, exclusively owning its
        *transport* and the decoder state for the bytes read from it. Use
        :meth:`open` to connect and perform the handshake.
    """

    def __init__(self, info, transport):

        self.info = info
        self.transport = transport
        self.decoder = Decoder()
        self.mode = Mode.NORMAL
        self.protocol = 2
        self.pushes = collections.deque()
        self.awaiting = 0
        self._db = 0


    @classmethod
    def open(cls, info, transport=None):
        """ Open a transport for *info* (unless one is supplied), connect,
            and perform the handshake: HELLO when RESP3 was requested, AUTH
            when credentials are present, SELECT when a database other than
            zero was requested.
        """

        if transport is None:
            transport = transports.create(info)

        transport.open()
        connection = cls(info, transport)

        try:
            connection._handshake()
        except Exception:
            connection.close()
            raise

        return connection


    def _handshake(self):

        info = self.info

        if info.protocol == 3:
            hello = Cmd(fields.HELLO, 3)
            if info.password is not None:
                hello.arg('AUTH').arg(info.username or 'default').arg(info.password)
            self.request_one(hello)
            self.protocol = 3
            log.debug('%r negotiated RESP3', self)

        elif info.password is not None:
            auth = Cmd(fields.AUTH)
            if info.username is not None:
                auth.arg(info.username)
            auth.arg(info.password)
            self.request_one(auth)

        if info.db != 0:
            self.request_one(Cmd(fields.SELECT, info.db))


    def __repr__(self):
        return 'Connection(%r, db=%d, %s)' % (self.info.address, self._db, self.mode.value)


    def __enter__(self):
        return self


    def __exit__(self, *exc_info):
        self.close()


    @property
    def database(self):
        return self._db


    @property
    def usable(self):
        return self.mode is not Mode.DISABLED and self.transport.is_open


    def note_database_index(self, db):
        self._db = int(db)


    def close(self):
        """ Close the transport. The connection cannot be reopened. """

        if self.mode is not Mode.DISABLED:
            log.debug('closing %r', self)

        self.mode = Mode.DISABLED
        self.transport.close()


    def _fail(self, error):
        """ Mark the connection unusable after a fatal *error*. """

        log.warning('%r is unusable: %s', self, error)
        self.mode = Mode.DISABLED

        try:
            self.transport.close()
        except IoError:
            pass


    def _require_usable(self):
        if not self.usable:
            raise IoError('connection to %r is not usable' % (self.info.address,))


    def _require_normal(self):
        self._require_usable()
        if self.mode is Mode.PUBSUB:
            raise ConnectionModeError('connection is subscribed; only pub/sub controls are allowed')


    def _write(self, data):
        try:
            self.transport.write(data)
        except IoError as error:
            self._fail(error)
            raise


    def _read_value(self, timeout=None, fatal_timeout=True):
        """ Return the next decoded frame, reading from the transport as many
            times as it takes.
        """

        decoder = self.decoder

        while True:
            try:
                value = decoder.decode()
            except ProtocolError as error:
                self._fail(error)
                raise

            if value is not NEED_MORE:
                return value

            try:
                data = self.transport.read_some(timeout=timeout)
            except TransportTimeout as error:
                if fatal_timeout:
                    self._fail(error)
                raise
            except IoError as error:
                self._fail(error)
                raise

            if not data:
                error = IoError('connection closed by %r' % (self.info.address,))
                self._fail(error)
                raise error

            decoder.feed(data)


    def _read_reply(self):
        """ Read the reply to a request. Push frames that arrive in between are
            queued for the pub/sub dispatcher.
        """

        while True:
            value = self._read_value()
            if isinstance(value, Push):
                self.pushes.append(value)
                continue
            return value


    def _observe(self, cmd, value):
        if cmd.name == fields.SELECT and value == SimpleString('OK'):
            self.note_database_index(cmd.args[1])


    def request_one(self, cmd):
        self._require_normal()
        self._write(cmd.packed())

        value = self._read_reply()

        if isinstance(value, ErrorReply):
            raise ServerError.from_reply(value.code, value.message)

        self._observe(cmd, value)
        return value


    def request_many(self, cmds):
        self._require_normal()

        cmds = list(cmds)
        if not cmds:
            return []

        self._write(encode_pipeline(cmd.args for cmd in cmds))

        replies = list()
        for cmd in cmds:
            value = self._read_reply()
            self._observe(cmd, value)
            replies.append(value)

        return replies


    # --- pub/sub support ---

    def send(self, cmd):
        """ Write *cmd* without waiting for a reply. Subscribing switches the
            connection to :attr:`Mode.PUBSUB`; while subscribed, only pub/sub
            controls may be sent.
        """

        self._require_usable()

        name = cmd.name

        if self.mode is Mode.PUBSUB and name not in fields.PUBSUB_COMMANDS:
            raise ConnectionModeError('cannot send %s while subscribed' % (name.decode(),))

        self._write(cmd.packed())

        if name in fields.SUBSCRIBE_COMMANDS:
            # One acknowledgement follows for every name.
            self.awaiting += len(cmd.args) - 1
            if self.mode is not Mode.PUBSUB:
                log.debug('%r entering pub/sub mode', self)
            self.mode = Mode.PUBSUB


    def read_message(self, timeout=None):
        """ Return the next frame delivered to a subscribed connection. A
            transport timeout raises
            :class:`~respkit.transport.base.TransportTimeout` but leaves the
            connection usable; the partially received frame, if any, stays
            in the decoder.
        """

        if self.pushes:
            value = self.pushes.popleft()
        else:
            self._require_usable()
            value = self._read_value(timeout, fatal_timeout=False)

        if isinstance(value, SEQUENCES) and len(value.items) == 3:
            kind, _channel, count = value.items
            if isinstance(kind, BulkBytes) and isinstance(count, Integer):
                self._track(kind.data, count.value)

        return value


    def _track(self, kind, count):
        """ Follow the subscription count reported by an acknowledgement.
            The connection only leaves pub/sub mode when the server reports
            no subscriptions and no subscribe request is still unanswered.
        """

        if kind in fields.SUBSCRIBES:
            if self.awaiting > 0:
                self.awaiting -= 1
            if count > 0 and self.mode is Mode.NORMAL:
                log.debug('%r re-entering pub/sub mode', self)
                self.mode = Mode.PUBSUB

        elif kind in fields.UNSUBSCRIBES:
            if count == 0 and self.awaiting == 0 and self.mode is Mode.PUBSUB:
                log.debug('%r leaving pub/sub mode', self)
                self.mode = Mode.NORMAL


# end of class Connection


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
