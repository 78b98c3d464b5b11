"""Result sinks."""

from .base import Sink
from .jsonfile import JsonFileSink, load_result_document, result_to_dict

__all__ = ["JsonFileSink", "Sink", "load_result_document", "result_to_dict"]
