"""xPL wire codec."""

from xpl_py.encoding.message import XplMessage, decode_message, encode_message

__all__ = ["XplMessage", "decode_message", "encode_message"]
