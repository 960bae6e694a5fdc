"""
Ships the session database to the collector.

Wire format, one TCP connection, client writes only:

    [10 bytes] decimal payload length, right-padded with ':'
    [64 bytes] transfer filename, right-padded with ':'
    [payload]  written in BUFFER_SIZE chunks

The receiver must trust the length field, not EOF, to know where the
payload ends.
"""
import io
import logging
import math
import socket
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Optional, Tuple

from tqdm import tqdm

from .. import config
from ..exceptions import TransmissionError


class TransferState(Enum):
    IDLE = "idle"
    HEADER_SENT = "header_sent"
    BODY_STREAMING = "body_streaming"
    DONE = "done"
    FAILED = "failed"


@dataclass
class TransferResult:
    declared_size: int
    chunks_sent: int
    bytes_sent: int  # header excluded; exceeds declared_size when padding


def fill_string(value: str, width: int) -> str:
    """Right-pads value with ':' to exactly width characters."""
    if len(value) > width:
        raise TransmissionError(f"'{value}' does not fit in a {width}-byte header field")
    return value + config.FILL_CHAR * (width - len(value))


def build_header(size: int, filename: str) -> bytes:
    size_field = fill_string(str(size), config.SIZE_FIELD_WIDTH)
    name_field = fill_string(filename, config.NAME_FIELD_WIDTH)
    return (size_field + name_field).encode("ascii")


def expected_chunks(size: int) -> int:
    return math.ceil(size / config.BUFFER_SIZE)


def parse_target(target: str) -> Tuple[str, int]:
    """Splits 'host:port'. A bare host gets the default server port."""
    host, sep, port = target.rpartition(":")
    if not sep:
        return target, config.SERVER_PORT
    try:
        return host.strip("[]"), int(port)
    except ValueError:
        raise TransmissionError(f"Invalid target address: {target}") from None


def byte_count_si(b: int) -> str:
    unit = 1000
    if b < unit:
        return f"{b} B"
    div, exp = unit, 0
    n = b // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{b / div:.1f} {'kMGTPE'[exp]}B"


class FileTransmitter:
    """
    Sends one payload over one connection: IDLE -> HEADER_SENT ->
    BODY_STREAMING -> DONE, or FAILED on the first write error.
    No acknowledgement is read and nothing is retried.

    pad_final_chunk=True reproduces the historical framing where the last
    chunk is always a full BUFFER_SIZE write, carrying stale bytes from the
    previous read past the declared length. By default the last chunk is
    cut at the declared length.
    """

    def __init__(self, target: str, pad_final_chunk: bool = False, progress: bool = False):
        self.host, self.port = parse_target(target)
        self.pad_final_chunk = pad_final_chunk
        self.progress = progress
        self.state = TransferState.IDLE

    def send_file(self, stream: BinaryIO, size: int, filename: str,
                  connection: Optional[socket.socket] = None) -> TransferResult:
        """
        Streams size bytes from stream. Opens a connection unless one is given;
        a connection opened here is closed here.
        """
        if self.state is not TransferState.IDLE:
            raise TransmissionError(f"Transmitter already used (state={self.state.value})")

        header = build_header(size, filename)

        owns_connection = connection is None
        if owns_connection:
            logging.info(f"Connecting to {self.host}:{self.port} ...")
            try:
                connection = socket.create_connection((self.host, self.port))
            except OSError as e:
                self.state = TransferState.FAILED
                raise TransmissionError(f"Cannot connect to {self.host}:{self.port}: {e}") from e

        try:
            return self._transfer(connection, header, stream, size)
        finally:
            if owns_connection:
                connection.close()

    def send_bytes(self, data: bytes, filename: str,
                   connection: Optional[socket.socket] = None) -> TransferResult:
        return self.send_file(io.BytesIO(data), len(data), filename, connection)

    def _transfer(self, connection: socket.socket, header: bytes,
                  stream: BinaryIO, size: int) -> TransferResult:
        try:
            logging.info("Sending name and size of temporary file ...")
            connection.sendall(header)
            self.state = TransferState.HEADER_SENT

            chunks, sent = self._stream_body(connection, stream, size)
        except OSError as e:
            failed_in = self.state
            self.state = TransferState.FAILED
            raise TransmissionError(f"Transfer aborted in state {failed_in.value}: {e}") from e

        self.state = TransferState.DONE
        logging.info(f"File has been sent: {byte_count_si(sent)} in {chunks} chunks.")
        return TransferResult(declared_size=size, chunks_sent=chunks, bytes_sent=sent)

    def _stream_body(self, connection: socket.socket, stream: BinaryIO, size: int) -> Tuple[int, int]:
        self.state = TransferState.BODY_STREAMING
        buffer = bytearray(config.BUFFER_SIZE)
        view = memoryview(buffer)
        remaining = size
        chunks = 0
        sent = 0

        with tqdm(total=size, unit="B", unit_scale=True, desc="Sending", disable=not self.progress) as bar:
            while remaining > 0:
                n = self._fill(stream, view[:min(config.BUFFER_SIZE, remaining)])
                if not n:
                    raise OSError(f"payload ended {remaining} bytes short of declared size")
                remaining -= n

                out = view if self.pad_final_chunk else view[:n]
                connection.sendall(out)
                chunks += 1
                sent += len(out)
                bar.update(n)

        return chunks, sent

    @staticmethod
    def _fill(stream: BinaryIO, view: memoryview) -> int:
        """Reads until view is full or the stream is exhausted."""
        filled = 0
        while filled < len(view):
            n = stream.readinto(view[filled:])
            if not n:
                break
            filled += n
        return filled
