""" Publish/subscribe on a dedicated connection. Once a connection has
    subscribed to anything it only receives message frames and subscription
    acknowledgements; :class:`PubSub` sends the (un)subscribe controls,
    tracks the active subscriptions from the acknowledgements, and hands
    each published message to the caller as a :class:`Msg`.

    RESP2 message arrays and RESP3 push frames look the same at this level
    and are handled identically.
"""

import logging
import time
import weakref

from .cmd import Cmd
from .convert import from_value
from .errors import ServerError
from .protocol import fields
from .protocol.value import SEQUENCES, BulkBytes, ErrorReply, Integer, Nil, SimpleString
from .transport.base import TransportTimeout


log = logging.getLogger(__name__)


class Msg:
    """ A single published message. *channel* is the channel it was
        published on; *pattern* is the subscription pattern that matched it,
        or None for a direct channel subscription; *payload* is the message
        body. The raw reply values are retained for typed access via
        :func:`get_channel` and :func:`get_payload`.
    """

    def __init__(self, channel, payload, pattern=None):

        self.channel_value = channel
        self.payload_value = payload
        self.pattern_value = pattern

        self.channel = from_value(channel, bytes)
        self.payload = from_value(payload, bytes)

        if pattern is None:
            self.pattern = None
        else:
            self.pattern = from_value(pattern, bytes)


    def __repr__(self):
        if self.pattern is None:
            return 'Msg(%r, %r)' % (self.channel, self.payload)
        return 'Msg(%r, %r, pattern=%r)' % (self.channel, self.payload, self.pattern)


    def __eq__(self, other):
        if not isinstance(other, Msg):
            return NotImplemented
        return (self.channel, self.pattern, self.payload) == (other.channel, other.pattern, other.payload)


    @property
    def from_pattern(self):
        return self.pattern is not None


    def get_channel(self, target=str):
        return from_value(self.channel_value, target)


    def get_payload(self, target=None):
        """ Return the payload converted to *target*; the natural conversion
            (bytes, for a bulk payload) when *target* is None.
        """
        return from_value(self.payload_value, target)


# end of class Msg



def _name(value):
    """ Return the channel or pattern name carried in an acknowledgement,
        or None when the server reports no name (unsubscribing from nothing).
    """

    if isinstance(value, Nil):
        return None
    return from_value(value, bytes)


def _kind(value):
    if isinstance(value, BulkBytes):
        return value.data.lower()
    if isinstance(value, SimpleString):
        return value.text.encode().lower()
    return None


def _encode(name):
    try:
        name.decode
    except AttributeError:
        name = str(name)
        name = name.encode()

    return name


def _reference(callback):
    """ Return a weak reference to *callback*, which may be a plain function
        or a bound method.
    """

    try:
        callback.__func__
        callback.__self__
    except AttributeError:
        return weakref.ref(callback)
    else:
        return weakref.WeakMethod(callback)



class PubSub:
    """ Dispatcher for a subscribed *connection*. The connection should be
        dedicated to this dispatcher: once subscribed it refuses ordinary
        requests until every subscription has been removed.

        Messages can be consumed by polling :func:`get_message`, by iterating
        :func:`listen`, or by registering callbacks and calling :func:`run`.
    """

    poll_interval = 1.0
    minimum_wait = 0.001

    def __init__(self, connection):

        self.connection = connection
        self.channels = set()
        self.patterns = set()
        self.pending_channels = set()
        self.pending_patterns = set()
        self.shutdown = False
        self.callback_all = list()
        self.callback_specific = dict()


    def __repr__(self):
        return 'PubSub(%r, channels=%d, patterns=%d)' % (self.connection, len(self.channels), len(self.patterns))


    def __enter__(self):
        return self


    def __exit__(self, *exc_info):
        if self.connection.usable:
            self.close()


    @property
    def subscribed(self):
        if self.channels or self.patterns:
            return True
        return False


    # --- subscription controls ---

    def subscribe(self, *channels):
        if not channels:
            raise ValueError('subscribe requires at least one channel')

        channels = [_encode(channel) for channel in channels]
        self.connection.send(Cmd(b'SUBSCRIBE', channels))
        self.channels.update(channels)
        self.pending_channels.update(channels)


    def psubscribe(self, *patterns):
        if not patterns:
            raise ValueError('psubscribe requires at least one pattern')

        patterns = [_encode(pattern) for pattern in patterns]
        self.connection.send(Cmd(b'PSUBSCRIBE', patterns))
        self.patterns.update(patterns)
        self.pending_patterns.update(patterns)


    def unsubscribe(self, *channels):
        """ Unsubscribe from the named *channels*, or from every channel if
            none are named. The subscription set is updated as the
            acknowledgements arrive.
        """

        channels = [_encode(channel) for channel in channels]
        self.connection.send(Cmd(b'UNSUBSCRIBE', channels))


    def punsubscribe(self, *patterns):
        """ Unsubscribe from the named *patterns*, or from every pattern if
            none are named.
        """

        patterns = [_encode(pattern) for pattern in patterns]
        self.connection.send(Cmd(b'PUNSUBSCRIBE', patterns))


    def ping(self, message=None):
        self.connection.send(Cmd(b'PING', message))


    # --- receiving ---

    def _acknowledge(self, kind, name, count):

        if kind == fields.SUBSCRIBE:
            self.channels.add(name)
            self.pending_channels.discard(name)
        elif kind == fields.PSUBSCRIBE:
            self.patterns.add(name)
            self.pending_patterns.discard(name)
        elif kind == fields.UNSUBSCRIBE:
            self.channels.discard(name)
        elif kind == fields.PUNSUBSCRIBE:
            self.patterns.discard(name)

        # The count covers channels and patterns together; zero means the
        # server considers this connection unsubscribed from everything
        # except subscriptions it has not acknowledged yet.

        if count == 0:
            self.channels.intersection_update(self.pending_channels)
            self.patterns.intersection_update(self.pending_patterns)

        log.debug('%s %r, %d subscriptions remain', kind.decode(), name, count)


    def _handle(self, value):
        """ Interpret one frame received on the subscribed connection. Return
            a :class:`Msg` for a published message, or None for a control
            frame that was consumed here.
        """

        if isinstance(value, ErrorReply):
            raise ServerError.from_reply(value.code, value.message)

        if isinstance(value, SimpleString) and value.text.upper() == 'PONG':
            return None

        if not isinstance(value, SEQUENCES) or not value.items:
            log.warning('unexpected %s frame on a subscribed connection', value.shape)
            return None

        items = value.items
        kind = _kind(items[0])

        if kind == fields.MESSAGE and len(items) == 3:
            return Msg(items[1], items[2])

        if kind == fields.PMESSAGE and len(items) == 4:
            return Msg(items[2], items[3], pattern=items[1])

        if kind in fields.ACKNOWLEDGEMENTS and len(items) == 3 and isinstance(items[2], Integer):
            self._acknowledge(kind, _name(items[1]), items[2].value)
            return None

        if kind == fields.PONG:
            return None

        log.debug('ignoring %s frame on a subscribed connection', value.shape)
        return None


    def get_message(self, timeout=None):
        """ Return the next published :class:`Msg`. Acknowledgements and
            pong replies are consumed along the way. If *timeout* seconds
            pass without a message, return None; the connection stays
            usable. With no *timeout* the transport's own deadline applies.
        """

        if timeout is None:
            deadline = None
        else:
            deadline = time.monotonic() + timeout

        while True:
            # Every pass reads at least once, so frames that already arrived
            # are still delivered after the deadline.

            if deadline is None:
                remaining = None
            else:
                remaining = max(deadline - time.monotonic(), self.minimum_wait)

            try:
                value = self.connection.read_message(remaining)
            except TransportTimeout:
                return None

            message = self._handle(value)
            if message is not None:
                return message


    def listen(self):
        """ Generator yielding each :class:`Msg` as it arrives, for as long
            as any subscription is active.
        """

        while self.subscribed:
            message = self.get_message()
            if message is not None:
                yield message


    # --- callback dispatch ---

    def register(self, callback, channel=None, pattern=None):
        """ Register a callback that will be invoked with every :class:`Msg`
            received by :func:`run`. If a *channel* or a *pattern* is named
            the callback only sees messages for that channel or matched by
            that pattern, and the subscription is made here; it does not need
            to be requested separately. Only a weak reference to the
            callback is retained.
        """

        if not callable(callback):
            raise TypeError('callback must be callable')

        reference = _reference(callback)

        if channel is None and pattern is None:
            self.callback_all.append(reference)
            return

        if pattern is not None:
            key = (True, _encode(pattern))
        else:
            key = (False, _encode(channel))

        try:
            callbacks = self.callback_specific[key]
        except KeyError:
            callbacks = list()
            self.callback_specific[key] = callbacks

        callbacks.append(reference)

        if pattern is not None:
            if key[1] not in self.patterns:
                self.psubscribe(key[1])
        elif key[1] not in self.channels:
            self.subscribe(key[1])


    def _invoke(self, references, message):

        invalid = list()

        for reference in references:
            callback = reference()

            if callback is None:
                invalid.append(reference)
                continue

            try:
                callback(message)
            except Exception:
                log.exception('callback %r failed for %r', callback, message)
                continue

        for reference in invalid:
            references.remove(reference)


    def propagate(self, message):
        """ Invoke any/all callbacks registered via :func:`register` for a
            newly arrived *message*.
        """

        if self.callback_all:
            self._invoke(self.callback_all, message)

        if not self.callback_specific:
            return

        if message.pattern is None:
            key = (False, message.channel)
        else:
            key = (True, message.pattern)

        try:
            references = self.callback_specific[key]
        except KeyError:
            return

        self._invoke(references, message)

        if len(references) == 0:
            del self.callback_specific[key]


    def run(self):
        """ Receive and propagate messages on the calling thread until
            :attr:`shutdown` is set or no subscriptions remain.
        """

        self.shutdown = False

        while self.shutdown == False and self.subscribed:
            message = self.get_message(self.poll_interval)
            if message is not None:
                self.propagate(message)


    def close(self, timeout=5.0):
        """ Unsubscribe from everything and consume the acknowledgements,
            leaving the connection in normal request/reply mode. Messages
            that arrive while draining are dropped.
        """

        if not self.subscribed:
            return

        if self.channels:
            self.unsubscribe()
        if self.patterns:
            self.punsubscribe()

        deadline = time.monotonic() + timeout

        while self.subscribed:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                log.warning('%r still subscribed after %.1f seconds', self, timeout)
                break

            message = self.get_message(remaining)
            if message is not None:
                log.debug('dropping %r while closing', message)


# end of class PubSub


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
