import os

import pytest

import respkit
from respkit import ConnectionInfo, config


def test_directory(home, monkeypatch):

    assert config.directory() == str(home)
    assert respkit.home() == str(home)

    # Later changes to the environment are ignored once resolved.
    monkeypatch.setenv('RESPKIT_HOME', '/elsewhere')
    assert config.directory() == str(home)


def test_directory_override(home, tmp_path):

    override = tmp_path / 'override'
    assert config.directory(str(override)) == str(override)
    assert override.is_dir()

    with pytest.raises(ValueError):
        config.directory('relative/path')


def test_directory_default(monkeypatch, tmp_path):

    monkeypatch.setattr(config.directory, 'found', None)
    monkeypatch.delenv('RESPKIT_HOME', raising=False)
    monkeypatch.setenv('HOME', str(tmp_path))

    assert config.directory() == os.path.join(str(tmp_path), '.respkit')


def test_defaults():

    assert config.defaults(dict()) == ConnectionInfo()

    environ = dict(
        RESPKIT_HOST='cache.example.com',
        RESPKIT_PORT='6380',
        RESPKIT_DB='2',
        RESPKIT_USERNAME='app',
        RESPKIT_PASSWORD='secret',
        RESPKIT_PROTOCOL='3',
        RESPKIT_TIMEOUT='2.5',
        RESPKIT_TRANSPORT='stream',
    )

    info = config.defaults(environ)

    assert info == ConnectionInfo(host='cache.example.com', port=6380, db=2, username='app',
                                  password='secret', protocol=3, timeout=2.5, transport='stream')

    assert config.defaults(dict(RESPKIT_PATH='/run/server.sock')).address == '/run/server.sock'
    assert config.defaults(dict(RESPKIT_PORT='  ')).port == 6379


def test_bad_defaults():

    for environ in (dict(RESPKIT_PORT='http'), dict(RESPKIT_DB='-1'), dict(RESPKIT_PROTOCOL='4'), dict(RESPKIT_TIMEOUT='soon')):
        with pytest.raises(ValueError):
            config.defaults(environ)

    with pytest.raises(ValueError) as caught:
        config.defaults(dict(RESPKIT_PORT='http'))

    assert 'RESPKIT_PORT' in str(caught.value)


def test_profiles(home):

    info = ConnectionInfo(host='db.internal', port=7000, db=1, password='secret', timeout=1.0)

    with pytest.raises(KeyError):
        config.get('production')

    config.save('production', info)

    filename = home / 'connections' / 'production.json'
    assert filename.is_file()
    assert oct(filename.stat().st_mode & 0o777) == oct(0o600)

    assert config.get('production') == info

    # A fresh process reads the profile back from disk.
    config._cache.clear()
    assert config.get('production') == info

    config.remove('production')
    assert not filename.exists()

    with pytest.raises(KeyError):
        config.get('production')

    # Removing twice is not an error.
    config.remove('production')


def test_profile_names(home):

    for name in ('', '.hidden', 'a/b'):
        with pytest.raises(ValueError):
            config.save(name, ConnectionInfo())


def test_client(home, monkeypatch):

    config.save('staging', ConnectionInfo(host='staging.internal', db=4))

    assert respkit.Client('staging').info == ConnectionInfo(host='staging.internal', db=4)
    assert respkit.Client('staging', db=5).info.db == 5

    monkeypatch.setenv('RESPKIT_PORT', '7777')
    assert respkit.Client().info.port == 7777
    assert respkit.Client(ConnectionInfo(), port=1234).info.port == 1234

    with pytest.raises(TypeError):
        respkit.Client(42)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
