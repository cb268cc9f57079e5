"""Minimal threaded HTTP/1.x static file server.

Greeter threads accept connections and queue them; worker threads read one
request per turn, answer it and requeue kept-alive connections. Only
``/`` and ``/index.html`` are served, from the document root.
"""

from __future__ import annotations

import argparse
import os
import re
import socket
import sys
import threading
import time
from dataclasses import dataclass
from enum import Enum, IntEnum

from lockless.connqueue import ConnectionQueue

PORT = 9000
BACKLOG = 1024
MAXMSG = 1024
MAXPATH = 1024

_DAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)
_WHITESPACE = re.compile(r"[ \t]")


class HttpStatus(IntEnum):
    OK = 200
    BAD_REQUEST = 400
    FORBIDDEN = 403
    NOT_FOUND = 404
    REQUEST_TIMEOUT = 408
    REQUEST_TOO_LARGE = 413
    SERVER_ERROR = 500

    @property
    def phrase(self) -> str:
        return _PHRASES.get(self, "Internal Server Error")


_PHRASES = {
    HttpStatus.OK: "OK",
    HttpStatus.BAD_REQUEST: "Bad Request",
    HttpStatus.FORBIDDEN: "Forbidden",
    HttpStatus.NOT_FOUND: "Not Found",
    HttpStatus.REQUEST_TIMEOUT: "Request Timeout",
    HttpStatus.REQUEST_TOO_LARGE: "Request Entity Too Large",
    HttpStatus.SERVER_ERROR: "Internal Server Error",
}


class Method(Enum):
    GET = "GET"
    HEAD = "HEAD"


class ContentType(Enum):
    APPLICATION = "application"
    AUDIO = "audio"
    IMAGE = "image"
    MESSAGE = "message"
    MULTIPART = "multipart"
    TEXT = "text"
    VIDEO = "video"


class HttpError(Exception):
    """A request that cannot be served, with the status to answer."""

    def __init__(self, status: HttpStatus) -> None:
        super().__init__(f"{int(status)} {status.phrase}")
        self.status = status


@dataclass
class Request:
    method: Method = Method.GET
    path: str = ""
    type: ContentType = ContentType.TEXT
    protocol_version: int = 0


def _strsep(s: str | None, pattern: re.Pattern[str]) -> tuple[str | None, str | None]:
    if s is None:
        return None, None
    match = pattern.search(s)
    if match is None:
        return s, None
    return s[: match.start()], s[match.end():]


def _next_word(s: str | None) -> tuple[str | None, str | None]:
    token, rest = _strsep(s, _WHITESPACE)
    if rest is not None:
        rest = rest.lstrip(" \t")
    return token, rest


def _next_line(s: str | None) -> tuple[str | None, str | None]:
    if s is None:
        return None, None
    r = s.find("\r")
    n = s.find("\n")
    if r < 0 or n < 0 or n < r:
        return _strsep(s, re.compile("\n"))
    token, rest = _strsep(s, re.compile("\r"))
    return token, (rest[1:] if rest is not None else None)


def _parse_method(token: str) -> Method:
    if token == "GET":
        return Method.GET
    if token == "HEAD":
        return Method.HEAD
    raise HttpError(HttpStatus.BAD_REQUEST)


def _parse_path(token: str, document_root: str) -> tuple[str, ContentType]:
    if token in ("/", "/index.html"):
        return f"{document_root}/index.html"[: MAXPATH - 1], ContentType.TEXT
    raise HttpError(HttpStatus.NOT_FOUND)


def _parse_version(token: str) -> int:
    if token == "HTTP/1.0":
        return 0
    if token == "HTTP/1.1":
        return 1
    raise HttpError(HttpStatus.BAD_REQUEST)


def parse_request(msg: str | bytes, document_root: str) -> Request:
    """Parse the request line of ``msg``; headers are read but ignored.

    Raises :class:`HttpError` with the status to answer when it is invalid.
    """
    if isinstance(msg, (bytes, bytearray)):
        msg = bytes(msg).split(b"\0", 1)[0].decode("latin-1")
    line, rest = _next_line(msg)
    if line is None:
        raise HttpError(HttpStatus.BAD_REQUEST)

    token, line = _next_word(line)
    if token is None:
        raise HttpError(HttpStatus.BAD_REQUEST)
    method = _parse_method(token)
    token, line = _next_word(line)
    if token is None:
        raise HttpError(HttpStatus.BAD_REQUEST)
    path, ctype = _parse_path(token, document_root)
    token, line = _next_word(line)
    if token is None:
        raise HttpError(HttpStatus.BAD_REQUEST)
    version = _parse_version(token)

    # Header lines are consumed up to the blank line and otherwise ignored.
    header, rest = _next_line(rest)
    while header:
        header, rest = _next_line(rest)
    return Request(method, path, ctype, version)


def _http_date(now: float) -> str:
    t = time.gmtime(now)
    return (
        f"{_DAYS[t.tm_wday]}, {t.tm_mday:02d} {_MONTHS[t.tm_mon - 1]} "
        f"{t.tm_year} {t.tm_hour:02d}:{t.tm_min:02d}:{t.tm_sec:02d} GMT"
    )


def response_head(request: Request, status: HttpStatus, now: float) -> bytes:
    """Build the status line and headers, ending with the blank line."""
    lines = [
        f"HTTP/1.{request.protocol_version} {int(status)} {status.phrase}",
        f"Date: {_http_date(now)}",
    ]
    if status == HttpStatus.OK and request.method is Method.GET:
        try:
            size = os.stat(request.path).st_size
        except OSError:
            size = 0
        lines.append(f"Content-Length: {size}")
        lines.append(f"Content-Type: {request.type.value}")
    return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")


def _receive(conn: socket.socket) -> bytes | None:
    """Read until the end of the headers; None when the client has closed."""
    msg = b""
    while True:
        text = msg.split(b"\0", 1)[0]
        if b"\r\n\r\n" in text or b"\n\n" in text or len(msg) >= MAXMSG:
            return msg
        chunk = conn.recv(MAXMSG - len(msg))
        if not chunk:
            return None
        msg += chunk


def _send_file(conn: socket.socket, path: str) -> None:
    try:
        with open(path, "rb") as fh:
            while chunk := fh.read(MAXMSG):
                conn.sendall(chunk)
    except FileNotFoundError as exc:
        print(f"open: {exc}", file=sys.stderr)


def handle_connection(
    conn: socket.socket, request_state: Request, document_root: str
) -> bool:
    """Serve one request on ``conn``.

    ``request_state`` is updated with each well-formed request. Returns True
    when the connection stays open for another request; otherwise it has
    been closed.
    """
    try:
        msg = _receive(conn)
    except socket.timeout:
        status = HttpStatus.REQUEST_TIMEOUT
    except OSError as exc:
        print(f"recv: {exc}", file=sys.stderr)
        status = HttpStatus.SERVER_ERROR
    else:
        if msg is None:
            conn.close()
            return False
        try:
            parsed = parse_request(msg, document_root)
        except HttpError as exc:
            status = exc.status
        else:
            status = HttpStatus.OK
            request_state.method = parsed.method
            request_state.path = parsed.path
            request_state.type = parsed.type
            request_state.protocol_version = parsed.protocol_version

    try:
        conn.sendall(response_head(request_state, status, time.time()))
        if status == HttpStatus.OK and request_state.method is Method.GET:
            _send_file(conn, request_state.path)
    except OSError as exc:
        print(f"send: {exc}", file=sys.stderr)
        conn.close()
        return False

    if request_state.protocol_version == 0 or status != HttpStatus.OK:
        conn.close()
        return False
    return True


def _greeter(listener: socket.socket, q: ConnectionQueue) -> None:
    while True:
        try:
            conn, _ = listener.accept()
        except OSError as exc:
            print(f"accept: {exc}", file=sys.stderr)
            continue
        # At least 10 s, plus a second for every 50 queued connections.
        n = len(q)
        conn.settimeout(10 + (n // 50 if n > 0 else 0))
        q.enqueue(conn)


def _worker(q: ConnectionQueue, document_root: str) -> None:
    request_state = Request()
    while True:
        conn = q.dequeue()
        if handle_connection(conn, request_state, document_root):
            q.enqueue(conn)


def serve(port: int, document_root: str, n_threads: int) -> None:
    """Listen on ``port`` and serve forever with ``n_threads`` threads."""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        listener.bind(("", port))
        listener.listen(BACKLOG)
    except OSError:
        listener.close()
        raise
    q = ConnectionQueue()
    half = max(1, n_threads // 2)
    threads = [
        threading.Thread(target=_greeter, args=(listener, q), daemon=True)
        for _ in range(half)
    ]
    threads += [
        threading.Thread(target=_worker, args=(q, document_root), daemon=True)
        for _ in range(half)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()


def main(argv: list[str] | None = None) -> int:
    """Serve ``index.html`` from ``./resources``."""
    parser = argparse.ArgumentParser(description="Serve a static index page.")
    parser.add_argument("--port", type=int, default=PORT)
    parser.add_argument(
        "--root", default=os.path.join(os.getcwd(), "resources"),
        help="document root",
    )
    parser.add_argument(
        "--threads", type=int, default=24 * (os.cpu_count() or 1),
    )
    args = parser.parse_args(argv)
    try:
        serve(args.port, args.root, args.threads)
    except OSError as exc:
        print(f"bind: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        pass
    return 0