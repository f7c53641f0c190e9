import gc

import pytest

import respkit
from respkit import Cmd, Mode, Msg, PubSub
from respkit.protocol.value import Array, BulkBytes


def publish(connection, channel, payload):
    return Cmd('PUBLISH', channel, payload).query(connection, int)


@pytest.fixture(params=[2, 3], ids=['resp2', 'resp3'])
def subscriber(request, open_connection):
    return PubSub(open_connection(protocol=request.param))


def test_message(subscriber, other):

    subscriber.subscribe('news')
    assert subscriber.connection.mode is Mode.PUBSUB

    assert publish(other, 'news', 'hello') == 1

    message = subscriber.get_message()

    assert message == Msg(BulkBytes(b'news'), BulkBytes(b'hello'))
    assert message.channel == b'news'
    assert message.payload == b'hello'
    assert message.pattern is None
    assert not message.from_pattern
    assert message.get_channel() == 'news'
    assert message.get_payload(str) == 'hello'
    assert subscriber.channels == {b'news'}


def test_one_message_per_publish(subscriber, other):

    subscriber.subscribe('a', 'b')

    for number in range(5):
        publish(other, 'a', number)
    publish(other, 'b', 'last')

    received = list()
    while True:
        message = subscriber.get_message(timeout=0.01)
        if message is None:
            break
        received.append(message)

    assert [message.get_payload(int) for message in received[:5]] == [0, 1, 2, 3, 4]
    assert received[5].channel == b'b'
    assert len(received) == 6


def test_pattern(subscriber, other):

    subscriber.psubscribe('news.*')
    publish(other, 'news.sport', 'goal')
    publish(other, 'weather', 'rain')

    message = subscriber.get_message(timeout=0.01)

    assert message.from_pattern
    assert message.pattern == b'news.*'
    assert message.channel == b'news.sport'
    assert message.payload == b'goal'

    assert subscriber.get_message(timeout=0.01) is None


def test_acknowledgements_never_surface(subscriber):

    subscriber.subscribe('a')
    subscriber.psubscribe('b*')
    subscriber.ping()

    assert subscriber.get_message(timeout=0.01) is None
    assert subscriber.channels == {b'a'}
    assert subscriber.patterns == {b'b*'}


def test_unsubscribe(subscriber, other):

    subscriber.subscribe('a', 'b')
    subscriber.unsubscribe('a')

    assert subscriber.get_message(timeout=0.01) is None
    assert subscriber.channels == {b'b'}
    assert subscriber.subscribed

    subscriber.unsubscribe()

    assert subscriber.get_message(timeout=0.01) is None
    assert not subscriber.subscribed
    assert subscriber.connection.mode is Mode.NORMAL

    # Back to ordinary requests.
    assert Cmd('PING').query(subscriber.connection, str) == 'PONG'


def test_punsubscribe_all(subscriber):

    subscriber.psubscribe('a*', 'b*')
    subscriber.punsubscribe()

    assert subscriber.get_message(timeout=0.01) is None
    assert subscriber.patterns == set()
    assert subscriber.connection.mode is Mode.NORMAL


def test_resubscribe_before_acknowledgement(subscriber, other):

    subscriber.subscribe('a')
    assert subscriber.get_message(timeout=0.01) is None

    # Both requests go out before either acknowledgement is read; the
    # unsubscribe acknowledgement reports zero subscriptions.
    subscriber.unsubscribe('a')
    subscriber.subscribe('c')

    assert subscriber.get_message(timeout=0.01) is None
    assert subscriber.channels == {b'c'}
    assert subscriber.connection.mode is Mode.PUBSUB
    assert subscriber.connection.awaiting == 0

    with pytest.raises(respkit.ConnectionModeError):
        Cmd('PING').query(subscriber.connection)

    publish(other, 'c', 'still here')
    assert subscriber.get_message(timeout=0.01).payload == b'still here'

    subscriber.unsubscribe()
    assert subscriber.get_message(timeout=0.01) is None
    assert subscriber.connection.mode is Mode.NORMAL


def test_zero_count_keeps_unacknowledged(subscriber):

    subscriber.subscribe('a')
    subscriber.get_message(timeout=0.01)

    subscriber.unsubscribe('a')
    subscriber.psubscribe('b*')

    # Only the unsubscribe acknowledgement has been handled so far.
    subscriber._handle(subscriber.connection.read_message(timeout=1))

    assert subscriber.channels == set()
    assert subscriber.patterns == {b'b*'}
    assert subscriber.connection.mode is Mode.PUBSUB

    assert subscriber.get_message(timeout=0.01) is None
    assert subscriber.patterns == {b'b*'}
    assert subscriber.pending_patterns == set()


def test_sharded_messages_ignored(subscriber):

    frame = Array((BulkBytes(b'smessage'), BulkBytes(b'shard'), BulkBytes(b'data')))

    assert subscriber._handle(frame) is None
    assert subscriber._handle(Array((BulkBytes(b'message'), BulkBytes(b'a'), BulkBytes(b'b')))) == Msg(BulkBytes(b'a'), BulkBytes(b'b'))


def test_timeout_keeps_connection(subscriber, other):

    subscriber.subscribe('quiet')

    assert subscriber.get_message(timeout=0.01) is None
    assert subscriber.connection.usable

    publish(other, 'quiet', 'finally')
    assert subscriber.get_message(timeout=0.01).payload == b'finally'


def test_listen(subscriber, other):

    subscriber.subscribe('feed')
    publish(other, 'feed', 'one')
    publish(other, 'feed', 'two')
    subscriber.unsubscribe('feed')

    assert [message.payload for message in subscriber.listen()] == [b'one', b'two']


def test_subscribe_requires_names(subscriber):

    with pytest.raises(ValueError):
        subscriber.subscribe()

    with pytest.raises(ValueError):
        subscriber.psubscribe()


def test_callbacks(subscriber, other):

    everything = list()
    news = list()
    patterned = list()

    def all_messages(message):
        everything.append(message.payload)

    def news_messages(message):
        news.append(message.payload)

    def pattern_messages(message):
        patterned.append(message.channel)

    subscriber.register(all_messages)
    subscriber.register(news_messages, channel='news')
    subscriber.register(pattern_messages, pattern='alerts.*')

    assert b'news' in subscriber.channels
    assert b'alerts.*' in subscriber.patterns

    publish(other, 'news', 'first')
    publish(other, 'alerts.fire', 'second')

    for count in range(2):
        subscriber.propagate(subscriber.get_message(timeout=0.01))

    assert everything == [b'first', b'second']
    assert news == [b'first']
    assert patterned == [b'alerts.fire']

    with pytest.raises(TypeError):
        subscriber.register('not callable')


def test_weak_callbacks(subscriber, other):

    received = list()

    class Listener:
        def handle(self, message):
            received.append(message.payload)

    listener = Listener()
    subscriber.register(listener.handle, channel='news')
    publish(other, 'news', 'kept')
    subscriber.propagate(subscriber.get_message(timeout=0.01))

    del listener
    gc.collect()

    publish(other, 'news', 'dropped')
    subscriber.propagate(subscriber.get_message(timeout=0.01))

    assert received == [b'kept']
    assert subscriber.callback_specific == {}


def test_callback_errors_are_contained(subscriber, other):

    received = list()

    def broken(message):
        raise RuntimeError('callback failure')

    def working(message):
        received.append(message.payload)

    subscriber.register(broken)
    subscriber.register(working)
    subscriber.subscribe('news')

    publish(other, 'news', 'hello')
    subscriber.propagate(subscriber.get_message(timeout=0.01))

    assert received == [b'hello']


def test_run(subscriber, other):

    received = list()

    def handle(message):
        received.append(message.payload)
        if message.payload == b'stop':
            subscriber.shutdown = True

    subscriber.poll_interval = 0.01
    subscriber.register(handle, channel='control')

    for payload in ('one', 'two', 'stop', 'never'):
        publish(other, 'control', payload)

    subscriber.run()

    assert received == [b'one', b'two', b'stop']


def test_run_ends_without_subscriptions(subscriber, other):

    received = list()

    def handle(message):
        received.append(message.payload)

    subscriber.poll_interval = 0.01
    subscriber.register(handle, channel='control')
    publish(other, 'control', 'only')
    subscriber.unsubscribe()

    subscriber.run()

    assert received == [b'only']
    assert not subscriber.subscribed


def test_close(subscriber, other):

    subscriber.subscribe('a')
    subscriber.psubscribe('b*')
    publish(other, 'a', 'pending')

    subscriber.close(timeout=0.5)

    assert not subscriber.subscribed
    assert subscriber.connection.mode is Mode.NORMAL
    assert Cmd('PING').query(subscriber.connection, str) == 'PONG'


def test_context_manager(open_connection):

    with PubSub(open_connection()) as subscriber:
        subscriber.subscribe('a')

    assert subscriber.connection.mode is Mode.NORMAL


def test_client_pubsub(server, monkeypatch):

    from fakeserver import MemoryTransport

    monkeypatch.setattr(respkit.transport, 'create', lambda info: MemoryTransport(server))

    subscriber = respkit.Client(respkit.ConnectionInfo()).get_pubsub()
    subscriber.subscribe('news')

    publisher = respkit.connect(respkit.ConnectionInfo())
    publish(publisher, 'news', 'hi')

    assert subscriber.get_message(timeout=0.01).payload == b'hi'


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
