"""Tests for chibiforge.core.content: payloads and response readers."""

from __future__ import annotations

import base64
from types import SimpleNamespace

import pytest
from conftest import image_response

from chibiforge.core.content import (
    build_contents,
    iter_inline_images,
    iter_response_parts,
    mime_type_for,
    response_text,
)


class TestMimeType:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("a.png", "image/png"),
            ("a.HEIC", "image/heic"),
            ("a.tif", "image/tiff"),
            ("a.jpg", "image/jpeg"),
            ("a.unknown", "image/jpeg"),
            ("/uploads/no-extension", "image/jpeg"),
        ],
    )
    def test_extension_lookup(self, name, expected):
        assert mime_type_for(name) == expected


class TestBuildContents:
    def test_text_only(self):
        assert build_contents("hello") == [{"role": "user", "parts": [{"text": "hello"}]}]

    def test_text_and_image(self):
        contents = build_contents("describe", b"\x89PNG", "image/png")
        assert contents[0]["parts"][1] == {
            "inline_data": {"data": b"\x89PNG", "mime_type": "image/png"}
        }


class TestResponseReaders:
    def test_text_property_preferred(self):
        assert response_text(SimpleNamespace(text="  hi  ")) == "hi"

    def test_text_from_parts(self):
        response = image_response(b"img", text="caption")
        assert response_text(response) == "caption"

    def test_parts_attribute_shape(self):
        part = SimpleNamespace(text="direct", inline_data=None)
        assert iter_response_parts(SimpleNamespace(parts=[part])) == [part]

    def test_empty_response(self):
        assert iter_response_parts(None) == []
        assert iter_response_parts(SimpleNamespace(candidates=[])) == []
        assert response_text(SimpleNamespace(text=None, candidates=None)) == ""

    def test_inline_images_bytes_and_base64(self):
        encoded = base64.b64encode(b"second").decode("ascii")
        parts = [
            SimpleNamespace(inline_data=SimpleNamespace(data=b"first")),
            SimpleNamespace(inline_data=SimpleNamespace(data=encoded)),
            SimpleNamespace(inline_data=SimpleNamespace(data="!!not base64!!")),
            SimpleNamespace(inline_data=None),
        ]
        assert list(iter_inline_images(SimpleNamespace(parts=parts))) == [b"first", b"second"]
