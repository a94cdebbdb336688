"""Tests for request body parsing middleware."""

import asyncio

import pytest

from routeschema import (
    BodyParsingError,
    HTTPMethod,
    Request,
    Response,
    body_parser,
    form_parser,
    json_parser,
    multipart_parser,
    text_parser,
)


def parse(parser, raw_body, content_type):
    request = Request(HTTPMethod.POST, "/", headers={"Content-Type": content_type}, raw_body=raw_body)
    asyncio.run(parser(request, Response()))
    return request.body


class TestJsonParser:

    def test_parses_json(self):
        assert parse(json_parser(), b'{"a": [1, 2]}', "application/json") == {"a": [1, 2]}

    def test_charset_parameter(self):
        raw = '{"name": "café"}'.encode("latin-1")
        assert parse(json_parser(), raw, "application/json; charset=latin-1") == {"name": "café"}

    def test_invalid_json(self):
        with pytest.raises(BodyParsingError) as exc_info:
            parse(json_parser(), b"{oops", "application/json")
        assert exc_info.value.status_code == 400
        assert exc_info.value.original_exception is not None

    def test_invalid_encoding(self):
        with pytest.raises(BodyParsingError):
            parse(json_parser(), b"\xff\xfe", "application/json")

    def test_other_content_types_are_ignored(self):
        assert parse(json_parser(), b"hello", "text/plain") is None

    def test_empty_body_is_ignored(self):
        assert parse(json_parser(), b"", "application/json") is None

    def test_parsed_body_is_not_replaced(self):
        request = Request(HTTPMethod.POST, "/", headers={"Content-Type": "application/json"},
                          body={"already": True}, raw_body=b"{}")
        asyncio.run(json_parser()(request, Response()))
        assert request.body == {"already": True}


class TestFormParser:

    def test_single_and_repeated_values(self):
        body = parse(form_parser(), b"name=Rex&tag=a&tag=b&empty=", "application/x-www-form-urlencoded")
        assert body == {"name": "Rex", "tag": ["a", "b"], "empty": ""}


class TestMultipartParser:

    BODY = (
        b"--boundary\r\n"
        b'Content-Disposition: form-data; name="name"\r\n\r\n'
        b"Rex\r\n"
        b"--boundary\r\n"
        b'Content-Disposition: form-data; name="photo"; filename="rex.png"\r\n'
        b"Content-Type: image/png\r\n\r\n"
        b"\x89PNG\r\n"
        b"--boundary--\r\n"
    )

    def test_fields_and_files(self):
        body = parse(multipart_parser(), self.BODY, "multipart/form-data; boundary=boundary")
        assert body == {"name": "Rex", "photo": b"\x89PNG"}

    def test_missing_boundary(self):
        with pytest.raises(BodyParsingError, match="boundary"):
            parse(multipart_parser(), self.BODY, "multipart/form-data")


class TestTextParser:

    def test_plain_and_html(self):
        assert parse(text_parser(), b"hello", "text/plain") == "hello"
        assert parse(text_parser(), b"<p>hi</p>", "text/html; charset=utf-8") == "<p>hi</p>"


class TestBodyParser:

    @pytest.mark.parametrize("raw, content_type, expected", [
        (b'{"a": 1}', "application/json", {"a": 1}),
        (b"a=1", "application/x-www-form-urlencoded", {"a": "1"}),
        (b"hello", "text/plain", "hello"),
        (b"\x00\x01", "application/octet-stream", None),
    ])
    def test_dispatches_on_content_type(self, raw, content_type, expected):
        assert parse(body_parser(), raw, content_type) == expected
