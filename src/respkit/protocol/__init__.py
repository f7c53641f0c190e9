from . import fields
from . import value
from . import codec

from .codec import NEED_MORE, Decoder, decode_all, encode_command, encode_pipeline, encode_value


"""
respkit Protocol Layer
======================

This package defines the RESP wire format: the reply shapes a server can
send and the codec that maps them to and from bytes.

The protocol layer MUST NOT depend on any transport implementation
(sockets, ZeroMQ, in-memory test doubles).

---------------------------------------------------------------------

Layer Architecture Overview
---------------------------

User Code
    │
    ▼
Command / Pipeline builder (respkit.cmd)
    Typed arguments in, typed results out
    - Cmd, Pipeline
    - transaction(), Iter, PubSub built on top

    │
    ▼
Connection (respkit.connection)
    Request/reply correlation by submission order
    - request_one()
    - request_many()

    │
    ▼
Codec (codec.py)
    Commands -> bytes, bytes -> Value
    - encode_command(), encode_pipeline()
    - Decoder.feed() / Decoder.decode() -> Value | NEED_MORE

    │
    ▼
Value Model (value.py)
    Immutable reply shapes
    Defines semantic meaning only

    │
    ▼
Field Vocabulary (fields.py)
    Type markers, command and frame names

---------------------------------------------------------------------

Below the Protocol Layer (for context)
--------------------------------------

Transport Layer (respkit.transport)
    Moves bytes
    - write()
    - read_some()

---------------------------------------------------------------------

Design Principles
-----------------

1. Transport Agnostic
   The decoder never blocks; it reports NEED_MORE and the connection
   decides when to read again.

2. Order, not tokens
   Replies are matched to requests purely by position.

3. Layer Isolation
   Dependencies only flow downward:
       Builder -> Connection -> Codec -> Transport
   Never upward.

---------------------------------------------------------------------
"""


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
