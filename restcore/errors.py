"""Exception hierarchy shared by the readers, writers and serializers."""


class RestcError(Exception):
    """Base class for every error raised by this package."""


class ProtocolError(RestcError):
    """The peer violated the HTTP protocol or the stream ended early."""


class ParseError(RestcError):
    """Data could not be parsed or converted."""


class ConstraintError(RestcError):
    """A configured or built-in limit was exceeded."""


class UnknownPropertyError(RestcError):
    """A JSON property has no matching field in the target type."""


class ObjectExpiredError(RestcError):
    """An object that an operation depends on no longer exists."""