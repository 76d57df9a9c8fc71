# backend/histquiz/core/endpoint.py
"""
Host-independent handler for POST /api/generate-question.

Hosts supply the HTTP method, a coroutine that reads the raw body, and a
ClientInit built however their lifecycle requires (once per process or once
per request). The handler never raises; every failure becomes an
EndpointResponse carrying {"error": ...}.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict

from pydantic import ValidationError

from .errors import ErrorKind, InvalidRequestError, QuizError, to_upstream_error
from .gemini_qg import ClientInit
from .schemas import ErrorResponse, GenerationRequest

logger = logging.getLogger("quiz.endpoint")

GENERATE_PATH = "/api/generate-question"
JSON_CONTENT_TYPE = "application/json"

BodyReader = Callable[[], Awaitable[bytes]]


@dataclass(frozen=True)
class EndpointResponse:
    status: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_error(cls, exc: QuizError) -> "EndpointResponse":
        headers = {"Content-Type": JSON_CONTENT_TYPE}
        if exc.kind is ErrorKind.METHOD_NOT_ALLOWED:
            headers["Allow"] = "POST"
        body = ErrorResponse(error=exc.message).model_dump_json().encode("utf-8")
        return cls(status=exc.status, body=body, headers=headers)

    def json(self) -> Any:
        return json.loads(self.body)


def parse_prompt(body: bytes) -> str:
    """Extract the prompt from a raw JSON request body."""
    if not body or not body.strip():
        raise InvalidRequestError(ErrorKind.EMPTY_BODY)
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidRequestError(ErrorKind.MALFORMED_BODY, detail=str(e)) from e
    try:
        return GenerationRequest.model_validate(data).prompt
    except ValidationError as e:
        raise InvalidRequestError(ErrorKind.MISSING_PROMPT, detail=str(e)) from e


class GenerationEndpoint:
    def __init__(self, init: ClientInit):
        self._init = init

    async def handle(self, method: str, read_body: BodyReader) -> EndpointResponse:
        try:
            if method.upper() != "POST":
                raise InvalidRequestError(ErrorKind.METHOD_NOT_ALLOWED)
            generator = self._init.unwrap()
            prompt = parse_prompt(await read_body())
            text = await generator.generate(prompt)
        except QuizError as e:
            if e.status >= 500:
                logger.error(f"Generation failed ({e.kind.value}): {e}")
            else:
                logger.warning(f"Rejected request ({e.kind.value}): {e}")
            return EndpointResponse.from_error(e)
        except Exception as e:
            err = to_upstream_error(e)
            logger.error(f"Upstream call failed ({err.kind.value})", exc_info=True)
            return EndpointResponse.from_error(err)

        _warn_if_not_json(text)
        return EndpointResponse(
            status=200,
            body=text.encode("utf-8"),
            headers={"Content-Type": JSON_CONTENT_TYPE},
        )


def _warn_if_not_json(text: str) -> None:
    # Relayed as-is; the client validates the quiz shape.
    try:
        json.loads(text)
    except ValueError:
        logger.warning(f"Upstream returned non-JSON text ({len(text)} chars); relaying unchanged")
