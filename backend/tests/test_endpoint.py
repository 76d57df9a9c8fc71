import json

import pytest

from histquiz.core.endpoint import GenerationEndpoint, parse_prompt
from histquiz.core.errors import ConfigurationError, ErrorKind, InvalidRequestError, UpstreamError
from histquiz.core.gemini_qg import ClientInit

from conftest import FakeGenerator


def _reader(body: bytes):
    async def read() -> bytes:
        return body

    return read


def _body(obj) -> bytes:
    return json.dumps(obj, ensure_ascii=False).encode("utf-8")


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["GET", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"])
async def test_non_post_returns_405_without_calling_upstream(method) -> None:
    generator = FakeGenerator(text="{}")
    endpoint = GenerationEndpoint(ClientInit.ok(generator))

    result = await endpoint.handle(method, _reader(_body({"prompt": "x"})))

    assert result.status == 405
    assert result.headers["Allow"] == "POST"
    assert result.json() == {"error": "POSTメソッドのみ許可されています"}
    assert generator.prompts == []


@pytest.mark.asyncio
async def test_method_is_checked_before_body_is_read() -> None:
    async def exploding_reader() -> bytes:
        raise AssertionError("body must not be read")

    endpoint = GenerationEndpoint(ClientInit.ok(FakeGenerator(text="{}")))
    result = await endpoint.handle("GET", exploding_reader)
    assert result.status == 405


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        _body({}),
        _body({"prompt": ""}),
        _body({"prompt": "   \n\t"}),
        _body({"prompt": 42}),
        _body({"prompt": None}),
        _body({"prompt": ["a"]}),
        _body({"text": "hello"}),
        _body(["prompt"]),
        _body("prompt"),
    ],
)
async def test_missing_or_invalid_prompt_returns_400(body) -> None:
    generator = FakeGenerator(text="{}")
    endpoint = GenerationEndpoint(ClientInit.ok(generator))

    result = await endpoint.handle("POST", _reader(body))

    assert result.status == 400
    assert result.json() == {"error": "有効なプロンプトが必要です"}
    assert generator.prompts == []


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [b"{not json", b"{\"prompt\": ", b"prompt=abc", b"\xff\xfe\x00"])
async def test_malformed_json_returns_400_invalid_format(body) -> None:
    generator = FakeGenerator(text="{}")
    endpoint = GenerationEndpoint(ClientInit.ok(generator))

    result = await endpoint.handle("POST", _reader(body))

    assert result.status == 400
    assert "形式が無効" in result.json()["error"]
    assert generator.prompts == []


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [b"", b"   "])
async def test_empty_body_returns_400(body) -> None:
    endpoint = GenerationEndpoint(ClientInit.ok(FakeGenerator(text="{}")))
    result = await endpoint.handle("POST", _reader(body))
    assert result.status == 400
    assert result.json() == {"error": "リクエストボディが空です。"}


@pytest.mark.asyncio
async def test_missing_credential_returns_500_for_every_request() -> None:
    endpoint = GenerationEndpoint(ClientInit.failed(ConfigurationError("no key")))

    for body in (_body({"prompt": "自己紹介してください"}), b"", b"{bad"):
        result = await endpoint.handle("POST", _reader(body))
        assert result.status == 500
        assert result.json()["error"].startswith("サーバー設定エラー")


@pytest.mark.asyncio
async def test_success_relays_upstream_text_byte_for_byte(sample_quiz_text) -> None:
    generator = FakeGenerator(text=sample_quiz_text)
    endpoint = GenerationEndpoint(ClientInit.ok(generator))

    result = await endpoint.handle("post", _reader(_body({"prompt": "モンゴル帝国"})))

    assert result.status == 200
    assert result.headers["Content-Type"] == "application/json"
    assert result.body == sample_quiz_text.encode("utf-8")


@pytest.mark.asyncio
async def test_smoke_prompt_forwarded_verbatim() -> None:
    generator = FakeGenerator(text="はじめまして。")
    endpoint = GenerationEndpoint(ClientInit.ok(generator))

    result = await endpoint.handle("POST", _reader(_body({"prompt": "自己紹介してください"})))

    assert generator.prompts == ["自己紹介してください"]
    assert result.status == 200
    assert result.body.decode("utf-8") == "はじめまして。"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, status",
    [
        (RuntimeError("You exceeded your current quota"), 429),
        (RuntimeError("Candidate was blocked due to SAFETY"), 400),
        (RuntimeError("API key not valid. Please pass a valid API key."), 500),
        (RuntimeError("socket hang up"), 500),
        (UpstreamError(ErrorKind.CONTENT_POLICY), 400),
    ],
)
async def test_upstream_failures_map_to_status(error, status) -> None:
    endpoint = GenerationEndpoint(ClientInit.ok(FakeGenerator(error=error)))

    result = await endpoint.handle("POST", _reader(_body({"prompt": "テーマ"})))

    assert result.status == status
    assert set(result.json()) == {"error"}


@pytest.mark.asyncio
async def test_unknown_upstream_error_relays_message() -> None:
    endpoint = GenerationEndpoint(ClientInit.ok(FakeGenerator(error=RuntimeError("socket hang up"))))
    result = await endpoint.handle("POST", _reader(_body({"prompt": "テーマ"})))
    assert result.json() == {"error": "サーバーエラー: socket hang up"}


def test_parse_prompt_returns_prompt_unchanged() -> None:
    assert parse_prompt(_body({"prompt": "  唐と吐蕃  "})) == "  唐と吐蕃  "


def test_parse_prompt_raises_typed_errors() -> None:
    with pytest.raises(InvalidRequestError) as exc:
        parse_prompt(b"{")
    assert exc.value.kind is ErrorKind.MALFORMED_BODY
    assert exc.value.status == 400
