import pytest

import respkit
from respkit import Cmd, Pipeline, cmd, pipe
from respkit.protocol.codec import encode_command
from respkit.protocol.value import Array, BulkBytes, SimpleString


def test_cmd_arguments():

    command = Cmd('SET', 'key').arg(5).arg(None).arg(['EX', 10])

    assert command.args == (b'SET', b'key', b'5', b'EX', b'10')
    assert command.name == b'SET'
    assert len(command) == 5
    assert list(command) == list(command.args)
    assert command.packed() == encode_command(command.args)

    assert cmd('get', 'key').name == b'GET'

    # Adding an argument invalidates the cached encoding.
    first = command.packed()
    command.arg('NX')
    assert command.packed() != first
    assert command.packed().endswith(b'$2\r\nNX\r\n')


def test_empty_cmd():

    with pytest.raises(ValueError):
        Cmd().packed()

    with pytest.raises(ValueError):
        Cmd().name


def test_cursor_argument():

    command = Cmd('SCAN').cursor_arg().arg('MATCH').arg('user:*')

    assert command.cursor_index == 1
    assert command.args == (b'SCAN', b'0', b'MATCH', b'user:*')

    moved = command.with_cursor(17)
    assert moved.args == (b'SCAN', b'17', b'MATCH', b'user:*')
    assert command.args == (b'SCAN', b'0', b'MATCH', b'user:*')

    with pytest.raises(ValueError):
        command.cursor_arg()

    with pytest.raises(ValueError):
        Cmd('GET', 'key').with_cursor(3)


def test_query(connection):

    assert Cmd('SET', 'counter', 41).query(connection, bool) is True
    assert Cmd('INCR', 'counter').query(connection, int) == 42
    assert Cmd('GET', 'counter').query(connection, str) == '42'
    assert Cmd('GET', 'counter').query(connection) == b'42'
    assert Cmd('GET', 'missing').query(connection) is None
    assert Cmd('PING').query(connection, respkit.protocol.value.Value) == SimpleString('PONG')

    Cmd('DEL', 'counter').execute(connection)
    assert Cmd('EXISTS', 'counter').query(connection, int) == 0


def test_mismatch_keeps_connection(connection):

    Cmd('RPUSH', 'list', 'a', 'b').execute(connection)

    with pytest.raises(respkit.TypeMismatch) as caught:
        Cmd('LRANGE', 'list', 0, -1).query(connection, int)

    assert 'Array(2)' in str(caught.value)
    assert connection.usable
    assert Cmd('LRANGE', 'list', 0, -1).query(connection, list[str]) == ['a', 'b']


def test_server_error_keeps_connection(connection):

    Cmd('SET', 'text', 'abc').execute(connection)

    with pytest.raises(respkit.errors.ResponseError):
        Cmd('INCR', 'text').query(connection, int)

    with pytest.raises(respkit.errors.WrongTypeError):
        Cmd('LRANGE', 'text', 0, -1).query(connection)

    assert connection.usable
    assert Cmd('GET', 'text').query(connection, str) == 'abc'


def test_pipeline(connection):

    pipeline = pipe()
    for number in range(10):
        pipeline.cmd('RPUSH', 'numbers', number)
    pipeline.cmd('LRANGE', 'numbers', 0, -1)

    results = pipeline.query(connection)

    assert len(pipeline) == 11
    assert results[:10] == list(range(1, 11))
    assert results[10] == [b'%d' % (number) for number in range(10)]


def test_pipeline_target_and_ignore(connection):

    results = (Pipeline()
        .cmd('SET', 'name', 'widget').ignore()
        .cmd('SET', 'count').arg(3).ignore()
        .cmd('INCR', 'count')
        .cmd('GET', 'name')
        .query(connection, tuple[int, str]))

    assert results == (4, 'widget')


def test_pipeline_error(connection):

    Cmd('SET', 'text', 'abc').execute(connection)

    pipeline = pipe().cmd('GET', 'text').cmd('INCR', 'text').cmd('SET', 'after', 1)

    with pytest.raises(respkit.ServerError):
        pipeline.query(connection)

    # Every reply was consumed; the stream is still aligned and the commands
    # after the failing one did run.
    assert connection.usable
    assert Cmd('GET', 'after').query(connection, int) == 1


def test_ignored_error_still_raises(connection):

    Cmd('SET', 'text', 'abc').execute(connection)

    with pytest.raises(respkit.ServerError):
        pipe().cmd('INCR', 'text').ignore().cmd('PING').query(connection)


def test_empty_pipeline(connection):

    assert pipe().query(connection) == []

    with pytest.raises(ValueError):
        pipe().ignore()

    with pytest.raises(ValueError):
        pipe().arg('x')


def test_atomic_pipeline(connection, server):

    pipeline = Pipeline(atomic=True).cmd('SET', 'a', 1).ignore().cmd('INCR', 'a').cmd('INCR', 'a')

    expected = encode_command([b'MULTI']) + encode_command([b'SET', b'a', b'1']) \
        + encode_command([b'INCR', b'a']) + encode_command([b'INCR', b'a']) + encode_command([b'EXEC'])

    assert pipeline.packed() == expected
    assert pipeline.query(connection, list[int]) == [2, 3]

    session = connection.transport.session
    assert [args[0] for args in session.log[-5:]] == [b'MULTI', b'SET', b'INCR', b'INCR', b'EXEC']


def test_atomic_via_builder(connection):

    results = pipe().atomic().cmd('SET', 'a', 'x').cmd('GET', 'a').query(connection)
    assert results == ['OK', b'x']


def test_atomic_queue_error(connection):

    pipeline = pipe().atomic().cmd('SET', 'a', 1).cmd('NOSUCHCOMMAND').cmd('SET', 'b', 2)

    with pytest.raises(respkit.ServerError) as caught:
        pipeline.query(connection)

    assert 'unknown command' in str(caught.value)
    assert connection.usable

    # Nothing queued before the failure was applied.
    assert Cmd('EXISTS', 'a', 'b').query(connection, int) == 0


def test_atomic_exec_error(connection):

    Cmd('SET', 'text', 'abc').execute(connection)

    with pytest.raises(respkit.ServerError):
        pipe().atomic().cmd('INCR', 'text').cmd('SET', 'b', 2).query(connection)

    # The transaction itself ran; only one of its commands failed.
    assert Cmd('GET', 'b').query(connection, int) == 2


def test_chunked_reads(open_connection):

    connection = open_connection(chunk=1)

    results = pipe().cmd('SET', 'k', 'v' * 50).cmd('GET', 'k').cmd('PING').query(connection)
    assert results == ['OK', b'v' * 50, 'PONG']
    assert connection.transport.reads > 50


def test_pipeline_raw_values(connection):

    value = pipe().cmd('ECHO', 'hi').query(connection, respkit.protocol.value.Value)
    assert value == Array((BulkBytes(b'hi'),))


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
