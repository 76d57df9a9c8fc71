# backend/histquiz/client.py

import logging
from enum import Enum
from typing import Optional

import httpx

from histquiz.core.prompt import EmptyThemeError, build_prompt
from histquiz.core.renderer import PayloadValidationError, parse_quiz_payload
from histquiz.core.schemas import QuizPayload

logger = logging.getLogger("quiz.client")

UNKNOWN_FAILURE = "問題の生成中に不明なエラーが発生しました。"


class SubmissionState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    FAILED = "failed"


class SubmissionInProgressError(RuntimeError):
    pass


class GenerationFailedError(Exception):
    pass


class QuestionGenerator:
    """Submits a theme to the generation endpoint and keeps the latest outcome.

    One request at a time: submit() refuses to start while another is
    outstanding. No timeout is set on the HTTP call.
    """

    def __init__(self, api_url: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = api_url
        self._transport = transport
        self.state = SubmissionState.IDLE
        self.payload: Optional[QuizPayload] = None
        self.error: Optional[str] = None

    @property
    def is_submitting(self) -> bool:
        return self.state is SubmissionState.SUBMITTING

    async def submit(self, theme: str) -> Optional[QuizPayload]:
        if self.is_submitting:
            raise SubmissionInProgressError("A submission is already in progress")

        try:
            prompt = build_prompt(theme)
        except EmptyThemeError as e:
            self.error = str(e)
            self.state = SubmissionState.FAILED
            return None

        self.state = SubmissionState.SUBMITTING
        self.error = None
        self.payload = None
        try:
            self.payload = await self._request(prompt)
            self.state = SubmissionState.SUCCESS
        except (GenerationFailedError, PayloadValidationError, httpx.HTTPError) as e:
            logger.error(f"Generation failed: {e}")
            self.error = str(e) or UNKNOWN_FAILURE
            self.payload = None
            self.state = SubmissionState.FAILED
        finally:
            if self.state is SubmissionState.SUBMITTING:
                self.state = SubmissionState.FAILED
                self.error = self.error or UNKNOWN_FAILURE
        return self.payload

    async def _request(self, prompt: str) -> QuizPayload:
        async with httpx.AsyncClient(timeout=None, transport=self._transport) as client:
            resp = await client.post(self.api_url, json={"prompt": prompt})

        if resp.is_error:
            raise GenerationFailedError(_error_message(resp))
        return parse_quiz_payload(resp.text)


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        logger.error(f"Could not parse error response (status={resp.status_code})")
        return f"サーバーエラー ({resp.status_code})"
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return f"サーバーエラーが発生しました ({resp.status_code})"
