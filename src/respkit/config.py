""" Connection settings from the environment and from saved profiles.

    :func:`defaults` builds a :class:`~respkit.connection.ConnectionInfo`
    from ``RESPKIT_*`` environment variables. Named profiles are JSON files
    in the ``connections`` subdirectory of :func:`directory`; they are
    loaded on first use and cached for the life of the process.
"""

import os
import threading

from . import json
from .connection import ConnectionInfo


_cache = dict()
_cache_lock = threading.Lock()


# Environment variable, ConnectionInfo field, conversion.

_environment = (
    ('RESPKIT_HOST', 'host', str),
    ('RESPKIT_PORT', 'port', int),
    ('RESPKIT_PATH', 'path', str),
    ('RESPKIT_DB', 'db', int),
    ('RESPKIT_USERNAME', 'username', str),
    ('RESPKIT_PASSWORD', 'password', str),
    ('RESPKIT_PROTOCOL', 'protocol', int),
    ('RESPKIT_TIMEOUT', 'timeout', float),
    ('RESPKIT_TRANSPORT', 'transport', str),
)


def defaults(environ=None):
    """ Return a :class:`~respkit.connection.ConnectionInfo` populated from
        the ``RESPKIT_*`` environment variables, falling back to the
        built-in defaults (localhost, port 6379, database 0, RESP2) for any
        that are not set. A value that cannot be parsed raises
        :class:`ValueError` naming the variable.
    """

    if environ is None:
        environ = os.environ

    settings = dict()

    for variable, field, convert in _environment:
        try:
            raw = environ[variable]
        except KeyError:
            continue

        raw = raw.strip()
        if raw == '':
            continue

        try:
            settings[field] = convert(raw)
        except ValueError:
            raise ValueError('invalid value for %s: %r' % (variable, raw)) from None

    return ConnectionInfo(**settings)



def directory(default=None):
    """ Return the directory holding saved connection profiles. The first
        call settles the location: an explicit absolute *default*, else
        ``RESPKIT_HOME``, else ``~/.respkit``. Later calls return the same
        directory unless a new *default* is given. A *default* that does not
        exist yet is created with owner-only permissions.
    """

    if default is not None:
        default = os.path.expanduser(os.path.expandvars(str(default)))

        if not os.path.isabs(default):
            raise ValueError('profile directory must be an absolute path: ' + repr(default))

        os.makedirs(default, mode=0o700, exist_ok=True)
        os.environ['RESPKIT_HOME'] = default
        directory.found = default

    if directory.found is not None:
        return directory.found

    # An empty variable counts as unset, as it does for defaults().
    found = os.environ.get('RESPKIT_HOME') or os.path.join(os.path.expanduser('~'), '.respkit')

    directory.found = found
    return found

directory.found = None



def _filename(name):

    name = str(name)

    if name == '' or name.startswith('.') or os.sep in name or (os.altsep and os.altsep in name):
        raise ValueError('invalid profile name: ' + repr(name))

    return os.path.join(directory(), 'connections', name + '.json')



def get(name):
    """ Return the :class:`~respkit.connection.ConnectionInfo` saved as
        profile *name*. A :class:`KeyError` is raised if no such profile
        exists.
    """

    try:
        return _cache[name]
    except KeyError:
        pass

    filename = _filename(name)

    _cache_lock.acquire()

    try:
        try:
            info = _cache[name]
        except KeyError:
            try:
                block = json.read(filename)
            except FileNotFoundError:
                raise KeyError('no saved connection profile named ' + repr(name)) from None

            info = ConnectionInfo.from_dict(block)
            _cache[name] = info
    finally:
        _cache_lock.release()

    return info



def save(name, info):
    """ Save *info* as the connection profile *name*, replacing any profile
        previously saved under that name.
    """

    filename = _filename(name)
    profiles = os.path.dirname(filename)

    if os.path.exists(profiles):
        pass
    else:
        os.makedirs(profiles, mode=0o700)

    if os.access(profiles, os.W_OK) != True:
        raise OSError('cannot write to profile directory: ' + profiles)

    _cache_lock.acquire()

    try:
        json.write(filename, info.to_dict())
        _cache[name] = info
    finally:
        _cache_lock.release()



def remove(name):
    """ Remove the saved profile *name*. Takes no action and throws no
        errors if the profile does not exist.
    """

    filename = _filename(name)

    _cache_lock.acquire()

    try:
        _cache.pop(name, None)

        try:
            os.remove(filename)
        except FileNotFoundError:
            pass
    finally:
        _cache_lock.release()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
