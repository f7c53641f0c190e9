"""Wire codec: commands to bytes, bytes to :class:`~respkit.protocol.value.Value`.

The decoder never reads from a socket. Callers :meth:`Decoder.feed` it
whatever bytes arrived and call :meth:`Decoder.decode` until it answers
:data:`NEED_MORE`; the next network read is the caller's business.
"""

from __future__ import annotations

import math
from typing import Iterable, List, Sequence

from ..errors import ProtocolError
from . import fields
from .value import (
    NIL, Array, BigNumber, Boolean, BulkBytes, Double, ErrorReply, Integer,
    Map, Nil, Push, Set, SimpleString, Value, Verbatim,
)


CRLF = fields.CRLF


class _Marker:

    def __init__(self, name):
        self.name = name

    def __repr__(self):
        return self.name


NEED_MORE = _Marker('NEED_MORE')

# Internal signals from the frame parser.
_OPENED = _Marker('_OPENED')
_DISCARD = _Marker('_DISCARD')


# --- encoding ---

def encode_command(args: Sequence[bytes]) -> bytes:
    """ Encode a single command, given as a sequence of already converted
        byte-string arguments, as an array of bulk strings.
    """

    parts = [b'*%d\r\n' % (len(args))]
    for arg in args:
        parts.append(b'$%d\r\n' % (len(arg)))
        parts.append(arg)
        parts.append(CRLF)

    return b''.join(parts)


def encode_pipeline(commands: Iterable[Sequence[bytes]]) -> bytes:
    """ Encode several commands back to back. There is no enclosing frame;
        the server answers each one in turn.
    """

    return b''.join(encode_command(args) for args in commands)


def _format_double(number):
    if math.isnan(number):
        return b'nan'
    if math.isinf(number):
        return b'inf' if number > 0 else b'-inf'
    return repr(number).encode()


def _bulk(marker, data):
    return b'%c%d\r\n' % (marker, len(data)) + data + CRLF


def encode_value(value: Value, protocol: int = 3) -> bytes:
    """ Encode a :class:`Value` the way a server would send it as a reply.
        With *protocol* 2 the RESP3-only shapes are lowered to their RESP2
        equivalents, which is what a RESP2 server does with them.
    """

    resp3 = protocol >= 3

    if isinstance(value, Nil):
        return b'_\r\n' if resp3 else b'$-1\r\n'

    if isinstance(value, Integer):
        return b':%d\r\n' % (value.value)

    if isinstance(value, BulkBytes):
        return _bulk(fields.BULK_STRING, value.data)

    if isinstance(value, SimpleString):
        text = value.text.encode()
        if b'\r' in text or b'\n' in text:
            raise ValueError('simple strings cannot contain CR or LF')
        return b'+' + text + CRLF

    if isinstance(value, ErrorReply):
        line = value.line.encode()
        if b'\r' in line or b'\n' in line:
            if resp3:
                return _bulk(fields.BLOB_ERROR, line)
            raise ValueError('RESP2 error lines cannot contain CR or LF')
        return b'-' + line + CRLF

    if isinstance(value, Boolean):
        if resp3:
            return b'#t\r\n' if value.value else b'#f\r\n'
        return b':1\r\n' if value.value else b':0\r\n'

    if isinstance(value, Double):
        text = _format_double(value.value)
        if resp3:
            return b',' + text + CRLF
        return _bulk(fields.BULK_STRING, text)

    if isinstance(value, BigNumber):
        text = str(value.value).encode()
        if resp3:
            return b'(' + text + CRLF
        return _bulk(fields.BULK_STRING, text)

    if isinstance(value, Verbatim):
        if resp3:
            return _bulk(fields.VERBATIM, value.format.encode() + b':' + value.data)
        return _bulk(fields.BULK_STRING, value.data)

    if isinstance(value, Map):
        count = len(value.items)
        if resp3:
            parts = [b'%%%d\r\n' % (count)]
        else:
            parts = [b'*%d\r\n' % (count * 2)]
        for key, item in value.items:
            parts.append(encode_value(key, protocol))
            parts.append(encode_value(item, protocol))
        return b''.join(parts)

    if isinstance(value, (Array, Set, Push)):
        if resp3 and isinstance(value, Set):
            marker = fields.SET
        elif resp3 and isinstance(value, Push):
            marker = fields.PUSH
        else:
            marker = fields.ARRAY

        parts = [b'%c%d\r\n' % (marker, len(value.items))]
        for item in value.items:
            parts.append(encode_value(item, protocol))
        return b''.join(parts)

    raise TypeError('not a RESP value: ' + repr(value))


# --- decoding ---

class _Frame:
    """ An aggregate whose header has been read but whose children have not
        all arrived yet.
    """

    __slots__ = ('kind', 'remaining', 'items')

    def __init__(self, kind, remaining):
        self.kind = kind
        self.remaining = remaining
        self.items = list()


    def build(self):
        kind = self.kind
        items = self.items

        if kind == fields.ARRAY:
            return Array(tuple(items))
        if kind == fields.MAP:
            return Map(tuple(zip(items[0::2], items[1::2])))
        if kind == fields.SET:
            return Set(tuple(items))
        if kind == fields.PUSH:
            return Push(tuple(items))

        # Attributes carry out-of-band metadata about the next reply; the
        # reply itself is what the caller is waiting for.
        return _DISCARD


# end of class _Frame



def _length(line):
    """ Parse a signed decimal length or count field. Anything other than an
        optional minus sign followed by ASCII digits is a framing error.
    """

    if line[:1] == b'-':
        digits = line[1:]
    else:
        digits = line

    if digits.isdigit():
        return int(line)

    raise ProtocolError('invalid length or integer field: %r' % (bytes(line)))


def _text(line):
    return line.decode('utf-8', errors='replace')



class Decoder:
    """ Incremental RESP2/RESP3 decoder. One instance belongs to exactly one
        connection; it holds the unconsumed bytes and the stack of partially
        received aggregates between calls to :meth:`decode`.
    """

    compact_threshold = 65536

    def __init__(self):
        self._buffer = bytearray()
        self._offset = 0
        self._stack = list()


    @property
    def pending(self) -> int:
        """ Number of buffered bytes not yet consumed by a decoded frame. """
        return len(self._buffer) - self._offset


    @property
    def in_progress(self) -> bool:
        """ True if a reply has been partially decoded. """
        return bool(self._stack) or self.pending > 0


    def feed(self, data: bytes) -> None:
        if data:
            self._buffer += data


    def reset(self) -> None:
        self._buffer = bytearray()
        self._offset = 0
        self._stack = list()


    def decode(self):
        """ Return the next complete :class:`Value`, or :data:`NEED_MORE` if
            the buffered bytes do not yet hold one. Raises
            :class:`~respkit.errors.ProtocolError` on malformed input.
        """

        while True:
            value = self._parse_frame()

            if value is NEED_MORE:
                self._compact()
                return NEED_MORE

            if value is _OPENED:
                continue

            value = self._complete(value)

            if value is _OPENED:
                continue

            self._compact()
            return value


    def _complete(self, value):
        """ Attach a finished *value* to the innermost open aggregate, closing
            aggregates as they fill up. Returns the top level value once the
            stack is empty, or :data:`_OPENED` while an aggregate is still
            waiting for children.
        """

        stack = self._stack

        while stack:
            frame = stack[-1]
            frame.items.append(value)
            frame.remaining -= 1

            if frame.remaining > 0:
                return _OPENED

            stack.pop()
            value = frame.build()

            if value is _DISCARD:
                return _OPENED

        return value


    def _compact(self):
        offset = self._offset
        if offset == 0:
            return

        if offset == len(self._buffer):
            self._buffer = bytearray()
            self._offset = 0
        elif offset >= self.compact_threshold:
            del self._buffer[:offset]
            self._offset = 0


    def _payload(self, marker, line, after):
        """ Read the body of a length-prefixed frame. Returns None when the
            declared length is -1, :data:`NEED_MORE` when the body has not
            fully arrived.
        """

        length = _length(line)

        if length == -1:
            self._offset = after
            return None

        if length < -1:
            raise ProtocolError('invalid length for %r frame: %d' % (chr(marker), length))

        buffer = self._buffer
        end = after + length

        if len(buffer) < end + 2:
            return NEED_MORE

        if buffer[end:end + 2] != CRLF:
            raise ProtocolError('missing terminator after %d byte payload' % (length))

        self._offset = end + 2
        return bytes(buffer[after:end])


    def _aggregate(self, kind, line, after):
        count = _length(line)
        self._offset = after

        if count == -1 and kind == fields.ARRAY:
            return NIL

        if count < 0:
            raise ProtocolError('invalid element count for %r frame: %d' % (chr(kind), count))

        if kind in (fields.MAP, fields.ATTRIBUTE):
            count = count * 2

        frame = _Frame(kind, count)

        if count == 0:
            value = frame.build()
            if value is _DISCARD:
                return _OPENED
            return value

        self._stack.append(frame)
        return _OPENED


    def _parse_frame(self):
        """ Parse one frame header (and body, for scalar frames) at the current
            offset. The offset only advances when the whole frame, or the
            whole header of an aggregate, is available.
        """

        buffer = self._buffer
        start = self._offset

        if start >= len(buffer):
            return NEED_MORE

        end = buffer.find(CRLF, start)
        if end == -1:
            return NEED_MORE

        marker = buffer[start]
        line = bytes(buffer[start + 1:end])
        after = end + 2

        if marker == fields.BULK_STRING:
            data = self._payload(marker, line, after)
            if data is None:
                return NIL
            if data is NEED_MORE:
                return NEED_MORE
            return BulkBytes(data)

        if marker in (fields.ARRAY, fields.MAP, fields.SET, fields.PUSH, fields.ATTRIBUTE):
            return self._aggregate(marker, line, after)

        if marker == fields.VERBATIM:
            data = self._payload(marker, line, after)
            if data is NEED_MORE:
                return NEED_MORE
            if data is None or len(data) < 4 or data[3:4] != b':':
                raise ProtocolError('malformed verbatim string')
            return Verbatim(_text(data[:3]), data[4:])

        if marker == fields.BLOB_ERROR:
            data = self._payload(marker, line, after)
            if data is NEED_MORE:
                return NEED_MORE
            if data is None:
                raise ProtocolError('null blob error')
            return ErrorReply.from_line(_text(data))

        # Everything else is a single line.

        self._offset = after

        if marker == fields.SIMPLE_STRING:
            return SimpleString(_text(line))

        if marker == fields.ERROR:
            return ErrorReply.from_line(_text(line))

        if marker == fields.INTEGER:
            return Integer(_length(line))

        if marker == fields.NULL:
            if line:
                raise ProtocolError('unexpected data in null frame: %r' % (line))
            return NIL

        if marker == fields.BOOLEAN:
            if line == b't':
                return Boolean(True)
            if line == b'f':
                return Boolean(False)
            raise ProtocolError('invalid boolean: %r' % (line))

        if marker == fields.DOUBLE:
            try:
                return Double(float(line))
            except ValueError:
                raise ProtocolError('invalid double: %r' % (line))

        if marker == fields.BIG_NUMBER:
            return BigNumber(_length(line))

        raise ProtocolError('unexpected type byte: %r' % (chr(marker)))


# end of class Decoder



def decode_all(data: bytes) -> List[Value]:
    """ Decode every reply in *data*. Raises
        :class:`~respkit.errors.ProtocolError` if the bytes end partway
        through a reply.
    """

    decoder = Decoder()
    decoder.feed(data)

    values = list()
    while True:
        value = decoder.decode()
        if value is NEED_MORE:
            break
        values.append(value)

    if decoder.in_progress:
        raise ProtocolError('truncated reply: %d bytes left over' % (decoder.pending))

    return values


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
