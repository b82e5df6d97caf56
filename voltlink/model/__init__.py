from .sample import Sample
from .target import ConverterTarget

__all__ = ["Sample",
           "ConverterTarget"]
