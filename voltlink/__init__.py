# voltlink/__init__.py
"""Host-side control and telemetry client for HTTP-controlled DC-DC converters."""

__version__ = "0.1.0"
