''' JSON encoding for saved connection profiles. The fastest installed
    library is used: msgspec, then orjson, then the standard library.
    Whichever is chosen, :func:`dumps` returns bytes and :func:`loads`
    accepts bytes or str; :data:`library` names the one in use.
'''

import os



def _select():
    """ Return ``(library, dumps, loads)`` for the first library that
        imports.
    """

    try:
        import msgspec
    except ImportError:
        pass
    else:
        return 'msgspec', msgspec.json.Encoder().encode, msgspec.json.Decoder().decode

    try:
        import orjson
    except ImportError:
        pass
    else:
        return 'orjson', orjson.dumps, orjson.loads

    import json

    def dumps(contents):
        return json.dumps(contents).encode()

    return 'json', dumps, json.loads



library, dumps, loads = _select()



def read(filename):
    """ Return the decoded contents of the JSON file *filename*.
    """

    reader = open(filename, 'rb')
    try:
        raw_json = reader.read()
    finally:
        reader.close()

    return loads(raw_json)



def write(filename, contents, mode=0o600):
    """ Encode *contents* as JSON and write it to *filename*, replacing any
        existing file. The file is created with permissions *mode*,
        owner-only by default.
    """

    raw_json = dumps(contents)

    try:
        os.remove(filename)
    except FileNotFoundError:
        pass

    descriptor = os.open(filename, os.O_WRONLY | os.O_CREAT | os.O_EXCL, mode)
    writer = os.fdopen(descriptor, 'wb')
    try:
        writer.write(raw_json)
    finally:
        writer.close()

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
