import socket

import pytest

from lockless.httpd import (
    ContentType,
    HttpError,
    HttpStatus,
    Method,
    Request,
    handle_connection,
    parse_request,
    response_head,
)

ROOT = "/srv/www"


def _read_all(sock):
    data = b""
    while chunk := sock.recv(4096):
        data += chunk
    return data


def test_parse_get_root():
    req = parse_request("GET / HTTP/1.1\r\nHost: x\r\n\r\n", ROOT)
    assert req == Request(Method.GET, ROOT + "/index.html", ContentType.TEXT, 1)


def test_parse_head_index_with_plain_newlines():
    req = parse_request("HEAD /index.html HTTP/1.0\n\n", ROOT)
    assert req.method is Method.HEAD
    assert req.protocol_version == 0
    assert req.path == ROOT + "/index.html"


def test_parse_bytes_and_extra_whitespace():
    req = parse_request(b"GET \t /  HTTP/1.1\r\n\r\n", ROOT)
    assert req.method is Method.GET
    assert req.protocol_version == 1


@pytest.mark.parametrize(
    "msg, status",
    [
        ("POST / HTTP/1.1\r\n\r\n", HttpStatus.BAD_REQUEST),
        ("GET /other.html HTTP/1.1\r\n\r\n", HttpStatus.NOT_FOUND),
        ("GET / HTTP/2.0\r\n\r\n", HttpStatus.BAD_REQUEST),
        ("GET / \r\n\r\n", HttpStatus.BAD_REQUEST),
        ("GET\r\n\r\n", HttpStatus.BAD_REQUEST),
    ],
)
def test_parse_errors(msg, status):
    with pytest.raises(HttpError) as info:
        parse_request(msg, ROOT)
    assert info.value.status == status


def test_status_phrases():
    assert HttpStatus(413).phrase == "Request Entity Too Large"
    assert HttpStatus(404).phrase == "Not Found"


def test_response_head_error_has_no_content_headers():
    head = response_head(Request(protocol_version=1), HttpStatus.NOT_FOUND, 0)
    assert head.startswith(b"HTTP/1.1 404 Not Found\r\n")
    assert b"Date: Thu, 01 Jan 1970 00:00:00 GMT\r\n" in head
    assert b"Content-Length" not in head
    assert head.endswith(b"\r\n\r\n")


def test_response_head_get_reports_file_size(tmp_path):
    index = tmp_path / "index.html"
    index.write_bytes(b"<p>hello</p>")
    req = parse_request("GET / HTTP/1.0\r\n\r\n", str(tmp_path))
    head = response_head(req, HttpStatus.OK, 0)
    assert head.startswith(b"HTTP/1.0 200 OK\r\n")
    assert f"Content-Length: {len(b'<p>hello</p>')}\r\n".encode() in head
    assert b"Content-Type: text\r\n" in head


def test_response_head_head_request_omits_content_headers(tmp_path):
    req = Request(Method.HEAD, str(tmp_path / "index.html"), ContentType.TEXT, 1)
    head = response_head(req, HttpStatus.OK, 0)
    assert b"Content-Type" not in head


def test_handle_connection_http10_sends_file_and_closes(tmp_path):
    body = b"<html>page</html>"
    (tmp_path / "index.html").write_bytes(body)
    server, client = socket.socketpair()
    with client:
        client.sendall(b"GET / HTTP/1.0\r\n\r\n")
        state = Request()
        keep = handle_connection(server, state, str(tmp_path))
        data = _read_all(client)
    assert keep is False
    assert data.startswith(b"HTTP/1.0 200 OK\r\n")
    assert data.endswith(b"\r\n\r\n" + body)
    assert state.path == str(tmp_path) + "/index.html"


def test_handle_connection_http11_keeps_alive(tmp_path):
    (tmp_path / "index.html").write_bytes(b"x")
    server, client = socket.socketpair()
    with server, client:
        client.sendall(b"HEAD / HTTP/1.1\r\n\r\n")
        state = Request()
        keep = handle_connection(server, state, str(tmp_path))
        client.settimeout(2)
        data = client.recv(4096)
    assert keep is True
    assert data.startswith(b"HTTP/1.1 200 OK\r\n")
    assert state.method is Method.HEAD


def test_handle_connection_bad_request_closes(tmp_path):
    server, client = socket.socketpair()
    with client:
        client.sendall(b"DELETE / HTTP/1.1\r\n\r\n")
        keep = handle_connection(server, Request(), str(tmp_path))
        data = _read_all(client)
    assert keep is False
    assert data.startswith(b"HTTP/1.0 400 Bad Request\r\n")


def test_handle_connection_timeout(tmp_path):
    server, client = socket.socketpair()
    server.settimeout(0.05)
    with client:
        keep = handle_connection(server, Request(), str(tmp_path))
        data = _read_all(client)
    assert keep is False
    assert data.startswith(b"HTTP/1.0 408 Request Timeout\r\n")


def test_handle_connection_client_closed(tmp_path):
    server, client = socket.socketpair()
    client.close()
    assert handle_connection(server, Request(), str(tmp_path)) is False
    assert server.fileno() == -1