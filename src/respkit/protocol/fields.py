"""Protocol constants.

Keep these in one place to avoid stringly-typed frame handling.
"""

CRLF = b"\r\n"

# RESP2 type markers
SIMPLE_STRING = ord("+")
ERROR = ord("-")
INTEGER = ord(":")
BULK_STRING = ord("$")
ARRAY = ord("*")

# RESP3 type markers
NULL = ord("_")
BOOLEAN = ord("#")
DOUBLE = ord(",")
BIG_NUMBER = ord("(")
VERBATIM = ord("=")
BLOB_ERROR = ord("!")
MAP = ord("%")
SET = ord("~")
PUSH = ord(">")
ATTRIBUTE = ord("|")

# Commands the client itself needs to know by name
AUTH = b"AUTH"
EXEC = b"EXEC"
HELLO = b"HELLO"
MULTI = b"MULTI"
SELECT = b"SELECT"
UNWATCH = b"UNWATCH"
WATCH = b"WATCH"

# Pub/sub frame kinds
MESSAGE = b"message"
PMESSAGE = b"pmessage"
PONG = b"pong"
SUBSCRIBE = b"subscribe"
PSUBSCRIBE = b"psubscribe"
UNSUBSCRIBE = b"unsubscribe"
PUNSUBSCRIBE = b"punsubscribe"

ACKNOWLEDGEMENTS = (SUBSCRIBE, PSUBSCRIBE, UNSUBSCRIBE, PUNSUBSCRIBE)
SUBSCRIBES = (SUBSCRIBE, PSUBSCRIBE)
UNSUBSCRIBES = (UNSUBSCRIBE, PUNSUBSCRIBE)

# Commands whose acknowledgements keep a connection subscribed
SUBSCRIBE_COMMANDS = (b"SUBSCRIBE", b"PSUBSCRIBE")

# Commands accepted by a server while a connection is subscribed
PUBSUB_COMMANDS = frozenset((
    b"SUBSCRIBE", b"UNSUBSCRIBE", b"PSUBSCRIBE", b"PUNSUBSCRIBE",
    b"PING", b"RESET", b"QUIT",
))
