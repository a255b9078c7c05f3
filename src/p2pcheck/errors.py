"""
p2pcheck/errors.py

Exception hierarchy for p2pcheck.

Two tiers:
- RequestFault and subclasses mean the probe itself could not run and
  surface to the caller as a server error.
- Everything else is caught by the probes and turned into a classified,
  human-readable field of the result.
"""


class CheckError(Exception):
    """Base class for all p2pcheck errors."""
    pass


class RequestFault(CheckError):
    """The request could not be diagnosed at all."""
    pass


class MissingArgument(RequestFault):
    """A required query parameter was not supplied."""

    def __init__(self, name: str):
        super().__init__(f"missing argument: {name}")
        self.name = name


class SessionError(RequestFault):
    """An ephemeral session could not be created or bootstrapped."""
    pass


class ParseError(CheckError):
    """Caller-supplied input could not be parsed."""
    pass


class AddressParseError(ParseError):
    """Invalid peer multiaddress."""
    pass


class CIDParseError(ParseError):
    """Invalid content identifier."""
    pass


class DeadlineExceeded(CheckError):
    """The probe deadline expired before a stage completed."""
    pass


class ProtocolError(CheckError):
    """A remote peer answered a wire exchange with malformed data."""
    pass
