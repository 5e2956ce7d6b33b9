"""xPL peer addressing and default interface selection."""

from xpl_py.network.address import XplAddress

__all__ = ["XplAddress"]
