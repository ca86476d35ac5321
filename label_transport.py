"""
Transport seam between a LabelSession and the printer

The session never talks to a device. A transport decides how fragments
leave: one call per fragment (incremental, the vendor's synchronous USB
driver) or the whole finalized label at once (batch: a raw socket, a
device node, a file upload).
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum

from label_errors import UnsupportedPrimitive
from label_primitives import DriverCall

logger = logging.getLogger(__name__)


class ChannelMode(Enum):
    INCREMENTAL = "incremental"
    BATCH = "batch"


class Transport(ABC):
    """Receives rendered fragments from a LabelSession"""

    mode = ChannelMode.BATCH

    @property
    def synchronous(self):
        return self.mode is ChannelMode.INCREMENTAL

    @abstractmethod
    def send(self, fragments):
        """Deliver a sequence of fragments"""


def join_fragments(fragments, separator="\n"):
    """Concatenate fragments into the bytes written to the printer

    Text fragments are joined by the language's line separator; raw bytes
    are passed as they are.
    """
    out = bytearray()
    for i, fragment in enumerate(fragments):
        if isinstance(fragment, DriverCall):
            raise UnsupportedPrimitive(
                f"Driver function {fragment.function!r} can only be executed by a synchronous channel"
            )
        if i:
            out += separator.encode("utf-8")
        out += fragment if isinstance(fragment, (bytes, bytearray)) else fragment.encode("utf-8")
    return bytes(out)


class StreamTransport(Transport):
    """Batch transport writing to a binary stream (file, /dev/usb/lp0, socket makefile)"""

    mode = ChannelMode.BATCH

    def __init__(self, stream, separator="\n", trailing_separator=True):
        self.stream = stream
        self.separator = separator
        self.trailing_separator = trailing_separator

    def send(self, fragments):
        data = join_fragments(fragments, self.separator)
        if self.trailing_separator and data:
            data += self.separator.encode("utf-8")
        self.stream.write(data)
        self.stream.flush()
        logger.info("Wrote %d bytes (%d fragments)", len(data), len(fragments))
        return len(data)


class RecordingTransport(Transport):
    """Keeps everything it is sent; handy for tests and dry runs"""

    def __init__(self, mode=ChannelMode.BATCH):
        self.mode = mode
        self.sent = []
        self.batches = []

    def send(self, fragments):
        fragments = list(fragments)
        self.batches.append(fragments)
        self.sent.extend(fragments)
        return len(fragments)
