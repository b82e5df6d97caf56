# runtime/__init__.py

from .converter_session import ConverterSession
from .device_link import DeviceLink
from .sample_window import SampleWindow
from .state import ConnectionPhase, ConnectionState, ConverterInfo, ConverterStatus

__all__ = [
    "ConverterSession", "DeviceLink", "SampleWindow",
    "ConnectionPhase", "ConnectionState", "ConverterInfo", "ConverterStatus"]
