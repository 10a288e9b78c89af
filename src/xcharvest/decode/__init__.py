"""External decoder wrappers and retry policy."""

from xcharvest.decode.retrier import DecodeRetrier
from xcharvest.decode.xclogparser import XCLogParser
from xcharvest.decode.xcresulttool import XCResultTool

__all__ = [
    "DecodeRetrier",
    "XCLogParser",
    "XCResultTool",
]
