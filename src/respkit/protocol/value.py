""" The closed set of reply shapes that can arrive from a RESP server. These
    are plain, immutable data containers; the :mod:`respkit.protocol.codec`
    produces them and :mod:`respkit.convert` consumes them.

    The RESP2 variants are :class:`Nil`, :class:`Integer`,
    :class:`BulkBytes`, :class:`SimpleString`, :class:`Array` and
    :class:`ErrorReply`. The remaining variants only appear when the
    connection negotiated RESP3.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple


class Value:
    """ Common base for every reply shape. The :attr:`shape` is a short
        description used in error messages, it does not include the payload.
    """

    __slots__ = ()

    @property
    def shape(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class Nil(Value):

    def __repr__(self):
        return 'Nil'


NIL = Nil()


@dataclass(frozen=True)
class Integer(Value):
    value: int


@dataclass(frozen=True)
class BulkBytes(Value):
    data: bytes


@dataclass(frozen=True)
class SimpleString(Value):
    """ A status line such as ``OK`` or ``QUEUED``. Not binary safe. """
    text: str


@dataclass(frozen=True)
class ErrorReply(Value):
    """ A decoded error reply. The *code* is the leading upper case word of
        the error line (``ERR``, ``WRONGTYPE``, ``EXECABORT``...), the
        *message* is whatever follows it.
    """

    code: str
    message: str

    @classmethod
    def from_line(cls, line: str) -> 'ErrorReply':
        code, _, message = line.partition(' ')
        if code and code.isupper():
            return cls(code, message)
        return cls('ERR', line)

    @property
    def line(self) -> str:
        if self.message:
            return self.code + ' ' + self.message
        return self.code


@dataclass(frozen=True)
class Array(Value):
    items: Tuple[Value, ...] = ()

    def __iter__(self):
        return iter(self.items)

    def __len__(self):
        return len(self.items)

    def __getitem__(self, index):
        return self.items[index]

    @property
    def shape(self) -> str:
        return 'Array(%d)' % (len(self.items))


@dataclass(frozen=True)
class Boolean(Value):
    value: bool


@dataclass(frozen=True, eq=False)
class Double(Value):
    value: float

    # NaN never equals itself; two NaN replies are still the same reply.

    def __eq__(self, other):
        if not isinstance(other, Double):
            return NotImplemented
        if math.isnan(self.value) and math.isnan(other.value):
            return True
        return self.value == other.value

    def __hash__(self):
        if math.isnan(self.value):
            return hash('nan')
        return hash(self.value)


@dataclass(frozen=True)
class BigNumber(Value):
    value: int


@dataclass(frozen=True)
class Verbatim(Value):
    """ A verbatim string; *format* is the three letter encoding hint that
        prefixes the payload on the wire (``txt``, ``mkd``).
    """

    format: str
    data: bytes


@dataclass(frozen=True)
class Map(Value):
    items: Tuple[Tuple[Value, Value], ...] = ()

    def __iter__(self):
        return iter(self.items)

    def __len__(self):
        return len(self.items)

    @property
    def shape(self) -> str:
        return 'Map(%d)' % (len(self.items))


@dataclass(frozen=True)
class Set(Value):
    items: Tuple[Value, ...] = ()

    def __iter__(self):
        return iter(self.items)

    def __len__(self):
        return len(self.items)

    @property
    def shape(self) -> str:
        return 'Set(%d)' % (len(self.items))


@dataclass(frozen=True)
class Push(Value):
    """ An out-of-band frame; pub/sub deliveries arrive this way on RESP3. """

    items: Tuple[Value, ...] = ()

    def __iter__(self):
        return iter(self.items)

    def __len__(self):
        return len(self.items)

    def __getitem__(self, index):
        return self.items[index]

    @property
    def shape(self) -> str:
        return 'Push(%d)' % (len(self.items))


SEQUENCES = (Array, Set, Push)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
