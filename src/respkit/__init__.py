""" Python client for servers speaking the RESP protocol family. This
    includes the protocol codec, connections, typed command and pipeline
    builders, optimistic transactions, cursor scans and publish/subscribe.
"""

import logging

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Utility components.

from . import json
from . import errors
from .errors import (
    RespError, IoError, ProtocolError, ServerError, TypeMismatch,
    ConnectionModeError,
)

# Submodules used by multiple other components.

from . import protocol
from . import transport
from . import convert
from .convert import from_value, to_args, register_args, register_result

# Primary public-facing interfaces.

from .cmd import Cmd, Pipeline, cmd, pipe
from .connection import Connection, ConnectionInfo, ConnectionLike, Mode
from .iterator import Iter
from .transaction import transaction
from .pubsub import Msg, PubSub
from .store import Store

from . import config
home = config.directory

from .client import Client, connect

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
