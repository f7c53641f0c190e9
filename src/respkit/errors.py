""" Exception hierarchy for respkit. The split that matters to a caller is
    whether the connection survives the error:

    * :class:`IoError` and :class:`ProtocolError` are fatal; the connection
      that raised them is marked unusable and should be discarded.
    * :class:`ServerError` and :class:`TypeMismatch` are data; the connection
      remains valid for the next request.
"""


class RespError(Exception):
    """ Base class for all respkit errors.
    """


class IoError(RespError):
    """ The transport failed, or the peer closed the connection.
    """


class ProtocolError(RespError):
    """ The byte stream from the server could not be decoded.
    """


class ConnectionModeError(RespError):
    """ The command is not allowed in the connection's current mode; for
        example, a GET issued while the connection is subscribed.
    """


class TransactionAborted(RespError):
    """ Raised inside the transaction loop when EXEC reports that a watched
        key changed. The loop consumes it and retries; it never reaches
        the caller of :func:`respkit.transaction`.
    """



class ServerError(RespError):
    """ The server answered with an error reply. The *code* is the leading
        word of the reply (``ERR``, ``WRONGTYPE``...) and the *message*
        is the remainder of the line.
    """

    codes = dict()

    def __init__(self, code, message=''):
        self.code = code
        self.message = message
        if message:
            super().__init__(code + ' ' + message)
        else:
            super().__init__(code)


    @classmethod
    def register(cls, *codes):
        """ Class decorator associating one or more error *codes* with a
            :class:`ServerError` subclass.
        """

        def decorator(subclass):
            for code in codes:
                cls.codes[code] = subclass
            return subclass

        return decorator


    @classmethod
    def from_reply(cls, code, message=''):
        """ Return an instance of the most specific subclass registered for
            the supplied *code*. Unknown codes fall back to
            :class:`ResponseError`.
        """

        try:
            subclass = cls.codes[code]
        except KeyError:
            subclass = ResponseError

        return subclass(code, message)


# end of class ServerError



@ServerError.register('ERR')
class ResponseError(ServerError):
    pass


@ServerError.register('WRONGTYPE')
class WrongTypeError(ServerError):
    pass


@ServerError.register('EXECABORT')
class ExecAbortError(ServerError):
    pass


@ServerError.register('NOSCRIPT')
class NoScriptError(ServerError):
    pass


@ServerError.register('READONLY')
class ReadOnlyError(ServerError):
    pass


@ServerError.register('LOADING', 'BUSY')
class BusyLoadingError(ServerError):
    pass


@ServerError.register('NOAUTH', 'WRONGPASS')
class AuthenticationError(ServerError):
    pass


@ServerError.register('NOPERM')
class NoPermissionError(ServerError):
    pass



class TypeMismatch(RespError, TypeError):
    """ A reply could not be converted to the requested type. The received
        *value* and the requested *target* are retained for inspection.
    """

    def __init__(self, value, target, detail=None):
        self.value = value
        self.target = target

        if isinstance(target, type):
            target_name = target.__name__
        else:
            target_name = repr(target)

        error = 'cannot convert %s to %s' % (value.shape, target_name)
        if detail:
            error = error + ': ' + detail

        super().__init__(error)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
