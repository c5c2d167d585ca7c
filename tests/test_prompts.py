import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from sparkbench.prompts import (
    PromptFileError,
    TokenizeError,
    estimate_tokens,
    load_file,
    split_prompts,
    tokenize,
)


def test_load_file_text_format(tmp_path):
    path = tmp_path / "test.txt"
    path.write_text("First prompt\n---\nSecond prompt\n---\nThird prompt")
    prompts = load_file(str(path))
    assert len(prompts) == 3
    assert prompts[0] == "First prompt"
    assert prompts[2] == "Third prompt"


def test_load_file_yaml_format(tmp_path):
    path = tmp_path / "test.yaml"
    path.write_text(
        "prompts:\n"
        '  - text: "Explain the CAP theorem."\n'
        "    expected_tokens: 300\n"
        '  - text: "Write a Go function."\n'
        "    expected_tokens: 500\n"
    )
    prompts = load_file(str(path))
    assert prompts == ["Explain the CAP theorem.", "Write a Go function."]


def test_load_file_yml_extension(tmp_path):
    path = tmp_path / "test.yml"
    path.write_text("prompts:\n  - text: '  padded  '\n")
    assert load_file(str(path)) == ["padded"]


def test_load_file_yaml_without_prompts(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("other: 1\n")
    with pytest.raises(PromptFileError, match="no prompts"):
        load_file(str(path))


def test_load_file_empty_file(tmp_path):
    path = tmp_path / "empty.txt"
    path.write_text("")
    with pytest.raises(PromptFileError, match="no prompts"):
        load_file(str(path))


def test_load_file_not_found():
    with pytest.raises(PromptFileError, match="reading prompt file"):
        load_file("/nonexistent/path/file.txt")


def test_split_prompts_drops_blanks():
    assert split_prompts("  a \n---\n   \n---\nb\n") == ["a", "b"]


def test_split_prompts_needs_separator_on_own_line():
    assert split_prompts("a --- b") == ["a --- b"]


@pytest.mark.parametrize(
    "prompt, min_count",
    [("Hello", 1), ("Hello, how are you doing today?", 5), ("", 1)],
)
def test_estimate_tokens(prompt, min_count):
    result = estimate_tokens(prompt)
    assert result.token_count >= min_count
    assert result.source == "estimated"


def test_estimate_tokens_empty_is_one():
    assert estimate_tokens("").token_count == 1


class _TokenizeHandler(BaseHTTPRequestHandler):
    def do_POST(self):
        length = int(self.headers.get("Content-Length", 0))
        self.server.received.append(json.loads(self.rfile.read(length) or b"{}"))
        if self.path != "/tokenize":
            self.send_response(404)
            self.end_headers()
            return
        body = json.dumps({"tokens": [1, 2, 3, 4, 5]}).encode()
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, *args):
        pass


class _ErrorHandler(BaseHTTPRequestHandler):
    def do_POST(self):
        length = int(self.headers.get("Content-Length", 0))
        self.rfile.read(length)
        self.send_response(500)
        self.end_headers()

    def log_message(self, *args):
        pass


def _start(handler):
    server = ThreadingHTTPServer(("127.0.0.1", 0), handler)
    server.received = []
    threading.Thread(target=server.serve_forever, daemon=True).start()
    host, port = server.server_address[:2]
    return server, f"http://{host}:{port}"


def test_tokenize_mock_server():
    server, url = _start(_TokenizeHandler)
    try:
        result = tokenize(url, "Hello world")
    finally:
        server.shutdown()
        server.server_close()
    assert result.token_count == 5
    assert result.source == "tokenized"
    assert server.received == [{"content": "Hello world"}]


def test_tokenize_server_error():
    server, url = _start(_ErrorHandler)
    try:
        with pytest.raises(TokenizeError, match="HTTP 500"):
            tokenize(url, "Hello")
    finally:
        server.shutdown()
        server.server_close()