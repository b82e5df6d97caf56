from .sample_sink import SampleSink

__all__ = ["SampleSink"]
