""" Conversion between Python values and the protocol. Two registries live
    here: :func:`to_args` knows how a Python value appends itself to a
    command as zero or more wire arguments, and :func:`from_value` knows
    how a reply becomes the Python type the caller asked for.

    Both can be extended; see :func:`register_args` and
    :func:`register_result`.
"""

import functools
import math
import types
import typing

from .errors import ServerError, TypeMismatch
from .protocol.value import (
    SEQUENCES, Array, BigNumber, Boolean, BulkBytes, Double, ErrorReply,
    Integer, Map, Nil, SimpleString, Value, Verbatim,
)


# --- arguments ---

@functools.singledispatch
def to_args(value):
    """ Return the list of wire arguments, as bytes, for *value*.
    """

    raise TypeError('cannot use %s as a command argument' % (type(value).__name__))


register_args = to_args.register


@to_args.register(bytes)
@to_args.register(bytearray)
@to_args.register(memoryview)
def _bytes_args(value):
    return [bytes(value)]


@to_args.register(str)
def _str_args(value):
    return [value.encode('utf-8')]


@to_args.register(bool)
def _bool_args(value):
    if value:
        return [b'1']
    return [b'0']


@to_args.register(int)
def _int_args(value):
    return [b'%d' % (value)]


@to_args.register(float)
def _float_args(value):
    if math.isinf(value):
        if value > 0:
            return [b'inf']
        return [b'-inf']
    if math.isnan(value):
        raise ValueError('NaN cannot be sent as a command argument')
    return [repr(value).encode()]


@to_args.register(type(None))
def _none_args(value):
    return []


@to_args.register(list)
@to_args.register(tuple)
@to_args.register(set)
@to_args.register(frozenset)
def _sequence_args(value):
    args = list()
    for item in value:
        args.extend(to_args(item))
    return args


@to_args.register(dict)
def _dict_args(value):
    args = list()
    for key, item in value.items():
        args.extend(to_args(key))
        args.extend(to_args(item))
    return args


# --- results ---

_converters = dict()


def register_result(target, function=None):
    """ Register *function* as the converter for replies requested as
        *target*. The function receives a :class:`Value` and returns the
        converted result; raising :class:`ValueError` is reported to the
        caller as :class:`~respkit.errors.TypeMismatch`. Can be used as a
        decorator by omitting *function*.
    """

    if function is None:
        def decorator(function):
            _converters[target] = function
            return function
        return decorator

    _converters[target] = function
    return function



def _check(value):
    if isinstance(value, ErrorReply):
        raise ServerError.from_reply(value.code, value.message)


def _parse(value, parse, target):
    """ Apply *parse* to the textual form of a scalar reply. """

    if isinstance(value, BulkBytes):
        text = value.data
    elif isinstance(value, SimpleString):
        text = value.text
    elif isinstance(value, Verbatim):
        text = value.data
    else:
        raise TypeMismatch(value, target)

    try:
        return parse(text)
    except ValueError:
        raise TypeMismatch(value, target, 'invalid literal %r' % (text,)) from None


@register_result(int)
def _to_int(value):
    if isinstance(value, (Integer, BigNumber)):
        return value.value
    if isinstance(value, Boolean):
        return int(value.value)
    return _parse(value, int, int)


@register_result(float)
def _to_float(value):
    if isinstance(value, (Integer, BigNumber, Double)):
        return float(value.value)
    return _parse(value, float, float)


@register_result(str)
def _to_str(value):
    if isinstance(value, SimpleString):
        return value.text
    if isinstance(value, (BulkBytes, Verbatim)):
        try:
            return value.data.decode('utf-8')
        except UnicodeDecodeError:
            raise TypeMismatch(value, str, 'payload is not valid UTF-8') from None
    if isinstance(value, (Integer, BigNumber)):
        return str(value.value)
    if isinstance(value, Double):
        return repr(value.value)
    raise TypeMismatch(value, str)


@register_result(bytes)
def _to_bytes(value):
    if isinstance(value, (BulkBytes, Verbatim)):
        return value.data
    if isinstance(value, SimpleString):
        return value.text.encode('utf-8')
    if isinstance(value, (Integer, BigNumber)):
        return b'%d' % (value.value)
    if isinstance(value, Double):
        return repr(value.value).encode()
    raise TypeMismatch(value, bytes)


@register_result(bool)
def _to_bool(value):
    if isinstance(value, Nil):
        return False
    if isinstance(value, Boolean):
        return value.value
    if isinstance(value, Integer):
        return value.value != 0
    if isinstance(value, SimpleString):
        if value.text in ('OK', '1'):
            return True
        if value.text == '0':
            return False
    if isinstance(value, BulkBytes):
        if value.data == b'1':
            return True
        if value.data == b'0':
            return False
    raise TypeMismatch(value, bool)



def _items(value):
    """ Return the children of an aggregate reply as a flat list. A Map is
        flattened to alternating keys and values; a nil reply has no
        children; any other scalar is treated as a single child.
    """

    if isinstance(value, SEQUENCES):
        return list(value.items)

    if isinstance(value, Map):
        flat = list()
        for key, item in value.items:
            flat.append(key)
            flat.append(item)
        return flat

    if isinstance(value, Nil):
        return []

    return [value]


def _fixed_tuple(target):
    """ Return the element types of ``tuple[A, B, ...]`` with a fixed length,
        or None for any other target.
    """

    if typing.get_origin(target) is not tuple:
        return None

    args = typing.get_args(target)
    if not args or args[-1] is Ellipsis:
        return None

    return args


def _to_list(value, element):
    items = _items(value)

    # A flat reply such as HGETALL or ZRANGE WITHSCORES requested as a list
    # of fixed size tuples is regrouped into chunks of that size.

    fixed = _fixed_tuple(element)
    if fixed is not None and len(fixed) > 1 and items and not isinstance(items[0], SEQUENCES):
        size = len(fixed)
        if len(items) % size != 0:
            raise TypeMismatch(value, list,
                               'cannot split %d items into tuples of %d' % (len(items), size))
        return [from_value(Array(tuple(items[i:i + size])), element) for i in range(0, len(items), size)]

    return [from_value(item, element) for item in items]


def _to_tuple(value, target, args):
    items = _items(value)

    if not args:
        return tuple(_natural(item) for item in items)

    if len(args) == 2 and args[1] is Ellipsis:
        return tuple(from_value(item, args[0]) for item in items)

    if not isinstance(value, SEQUENCES + (Map,)) or len(items) != len(args):
        raise TypeMismatch(value, target, 'expected %d elements' % (len(args)))

    return tuple(from_value(item, arg) for item, arg in zip(items, args))


def _to_dict(value, target, key_type, item_type):
    if isinstance(value, Map):
        pairs = value.items
    elif isinstance(value, Nil):
        pairs = ()
    elif isinstance(value, SEQUENCES):
        items = value.items
        if len(items) % 2 != 0:
            raise TypeMismatch(value, target, 'odd number of elements')
        pairs = zip(items[0::2], items[1::2])
    else:
        raise TypeMismatch(value, target)

    result = dict()
    for key, item in pairs:
        key = from_value(key, key_type)
        item = from_value(item, item_type)
        try:
            result[key] = item
        except TypeError:
            raise TypeMismatch(value, target, 'unhashable key') from None

    return result


def _to_set(value, target, element):
    if not isinstance(value, SEQUENCES + (Nil,)):
        raise TypeMismatch(value, target)

    try:
        return set(from_value(item, element) for item in _items(value))
    except TypeError as exc:
        if isinstance(exc, TypeMismatch):
            raise
        raise TypeMismatch(value, target, 'unhashable element') from None


def _is_union(origin):
    if origin is typing.Union:
        return True

    try:
        return origin is types.UnionType
    except AttributeError:
        return False


def _to_union(value, target, args):
    NoneType = type(None)

    if NoneType in args and isinstance(value, Nil):
        return None

    candidates = [arg for arg in args if arg is not NoneType]
    if len(candidates) == 1:
        return from_value(value, candidates[0])

    for candidate in candidates:
        try:
            return from_value(value, candidate)
        except TypeMismatch:
            continue

    raise TypeMismatch(value, target)



def _natural(value):
    """ Convert a reply to the closest built-in Python type: nil to None,
        bulk strings to bytes, status lines to str, aggregates to lists
        and dicts.
    """

    _check(value)

    if isinstance(value, Nil):
        return None
    if isinstance(value, (Integer, BigNumber, Boolean, Double)):
        return value.value
    if isinstance(value, BulkBytes):
        return value.data
    if isinstance(value, SimpleString):
        return value.text
    if isinstance(value, Verbatim):
        return value.data.decode('utf-8', errors='replace')

    if isinstance(value, Map):
        pairs = [(_natural(key), _natural(item)) for key, item in value.items]
        try:
            return dict(pairs)
        except TypeError:
            return pairs

    if isinstance(value, SEQUENCES):
        return [_natural(item) for item in value.items]

    raise TypeError('not a RESP value: ' + repr(value))



def from_value(value, target=None):
    """ Convert the reply *value* to the requested *target*:

        * None: the natural Python conversion, see :func:`_natural`.
        * :class:`Value` or one of its subclasses: the reply itself.
        * ``int``, ``float``, ``str``, ``bytes``, ``bool``, or any type
          registered with :func:`register_result`.
        * ``list``, ``tuple``, ``dict``, ``set`` and their parameterized
          forms, such as ``list[int]`` or ``tuple[str, int]``.
        * ``Optional[T]``: nil becomes None, anything else becomes ``T``.

        An error reply raises :class:`~respkit.errors.ServerError`; a reply
        that cannot become *target* raises
        :class:`~respkit.errors.TypeMismatch`.
    """

    _check(value)

    if target is None:
        return _natural(value)

    origin = typing.get_origin(target)

    if origin is None and isinstance(target, type) and issubclass(target, Value):
        if isinstance(value, target):
            return value
        raise TypeMismatch(value, target)

    if origin is None:
        try:
            converter = _converters[target]
        except KeyError:
            pass
        else:
            try:
                return converter(value)
            except TypeMismatch:
                raise
            except ValueError as exc:
                raise TypeMismatch(value, target, str(exc)) from None

        if target is list:
            return _to_list(value, None)
        if target is tuple:
            return _to_tuple(value, target, ())
        if target is dict:
            return _to_dict(value, target, None, None)
        if target in (set, frozenset):
            return target(_to_set(value, target, None))

        raise TypeError('no conversion registered for %r' % (target,))

    args = typing.get_args(target)

    if _is_union(origin):
        return _to_union(value, target, args)

    if origin is list:
        element = args[0] if args else None
        return _to_list(value, element)

    if origin is tuple:
        return _to_tuple(value, target, args)

    if origin is dict:
        if args:
            key_type, item_type = args
        else:
            key_type = item_type = None
        return _to_dict(value, target, key_type, item_type)

    if origin in (set, frozenset):
        element = args[0] if args else None
        return origin(_to_set(value, target, element))

    raise TypeError('no conversion registered for %r' % (target,))


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
