from .errors import TransportError, TransportIOError
from .http import HttpReply, HttpTransport

__all__ = ["TransportError", "TransportIOError", "HttpReply", "HttpTransport"]
