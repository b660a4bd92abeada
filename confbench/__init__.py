"""
Benchmark harness for key/value configuration backends.

This package builds deterministic parameter datasets in four key layouts,
writes them to one or more backend servers, and times synchronized read-backs
from many client processes, publishing raw timestamp samples to a metrics
sink.
"""

from .main import main

__all__ = ["main"]
