from __future__ import annotations

VALUE_WIDTH = 95


def pad_index(index: int) -> str:
    return str(index).zfill(VALUE_WIDTH)


def make_value(index: int) -> str:
    """Return the benchmark value stored for parameter ``index``.

    Every index below 10**95 yields a 100 character string, so payload size
    does not depend on the dataset size.
    """
    return f"value{pad_index(index)}"


__all__ = ["VALUE_WIDTH", "make_value", "pad_index"]
