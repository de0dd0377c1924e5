"""Exception types raised by the CAM engine."""


class RouterCamError(Exception):
    """Base class for all engine errors."""


class MalformedInputError(RouterCamError, ValueError):
    """Input geometry could not be interpreted.

    Raised for unrecognized path commands, non-finite coordinates and
    vertex arrays of the wrong shape.  The message names the offending
    construct.
    """


class ConfigurationError(RouterCamError, ValueError):
    """A tool, machine or job parameter is out of range."""
