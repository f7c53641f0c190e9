import pytest

import respkit
from respkit.connection import Connection, ConnectionInfo

from fakeserver import FakeServer, MemoryTransport, TcpServer


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def open_connection(server):
    """ Factory opening connections to the in-memory server. Keyword
        arguments are :class:`ConnectionInfo` fields, plus *chunk* to cut
        every transport read short.
    """

    opened = list()

    def factory(chunk=None, target=None, **fields):
        if target is None:
            target = server
        info = ConnectionInfo(**fields)
        connection = Connection.open(info, MemoryTransport(target, chunk))
        opened.append(connection)
        return connection

    yield factory

    for connection in opened:
        connection.close()


@pytest.fixture
def connection(open_connection):
    return open_connection()


@pytest.fixture
def other(open_connection):
    """ A second connection to the same server, standing in for a
        concurrent client.
    """
    return open_connection()


@pytest.fixture
def tcp_server(server):

    listener = TcpServer(server)
    listener.start()

    yield listener

    listener.stop()


@pytest.fixture
def home(tmp_path, monkeypatch):
    """ Point the configuration directory at a scratch location and start
        with an empty profile cache.
    """

    monkeypatch.setattr(respkit.config.directory, 'found', None)
    monkeypatch.setattr(respkit.config, '_cache', dict())
    monkeypatch.setenv('RESPKIT_HOME', str(tmp_path))

    yield tmp_path


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
