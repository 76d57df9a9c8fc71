# backend/histquiz/core/errors.py

from enum import Enum
from typing import Dict, Optional

import openai


# ------------------------------------------------------------
# Error kinds and their HTTP mapping
# ------------------------------------------------------------
class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    EMPTY_BODY = "empty_body"
    MALFORMED_BODY = "malformed_body"
    MISSING_PROMPT = "missing_prompt"
    CONTENT_POLICY = "content_policy"
    QUOTA = "quota"
    INVALID_CREDENTIAL = "invalid_credential"
    UNKNOWN = "unknown"


STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.CONFIGURATION: 500,
    ErrorKind.METHOD_NOT_ALLOWED: 405,
    ErrorKind.EMPTY_BODY: 400,
    ErrorKind.MALFORMED_BODY: 400,
    ErrorKind.MISSING_PROMPT: 400,
    ErrorKind.CONTENT_POLICY: 400,
    ErrorKind.QUOTA: 429,
    ErrorKind.INVALID_CREDENTIAL: 500,
    ErrorKind.UNKNOWN: 500,
}

MESSAGE_BY_KIND: Dict[ErrorKind, str] = {
    ErrorKind.CONFIGURATION: "サーバー設定エラー: APIキーが見つかりません。環境変数を確認してください。",
    ErrorKind.METHOD_NOT_ALLOWED: "POSTメソッドのみ許可されています",
    ErrorKind.EMPTY_BODY: "リクエストボディが空です。",
    ErrorKind.MALFORMED_BODY: "リクエスト形式が無効です。",
    ErrorKind.MISSING_PROMPT: "有効なプロンプトが必要です",
    ErrorKind.CONTENT_POLICY: "セーフティフィルターによりブロックされました。",
    ErrorKind.QUOTA: "APIの利用上限に達しました。しばらく待ってから再試行してください。",
    ErrorKind.INVALID_CREDENTIAL: "サーバー設定エラー: APIキーが無効です。",
    ErrorKind.UNKNOWN: "関数でエラーが発生しました。",
}


# ------------------------------------------------------------
# Exceptions
# ------------------------------------------------------------
class QuizError(Exception):
    """Base error carrying an ErrorKind; its status and message follow the kind."""

    def __init__(self, kind: ErrorKind, detail: Optional[str] = None):
        self.kind = kind
        self.detail = detail
        super().__init__(detail or MESSAGE_BY_KIND[kind])

    @property
    def status(self) -> int:
        return STATUS_BY_KIND[self.kind]

    @property
    def message(self) -> str:
        # Opaque upstream failures relay their own message.
        if self.kind is ErrorKind.UNKNOWN and self.detail:
            return f"サーバーエラー: {self.detail}"
        return MESSAGE_BY_KIND[self.kind]

    def to_body(self) -> Dict[str, str]:
        return {"error": self.message}


class ConfigurationError(QuizError):
    def __init__(self, detail: Optional[str] = None):
        super().__init__(ErrorKind.CONFIGURATION, detail)


class InvalidRequestError(QuizError):
    pass


class UpstreamError(QuizError):
    pass


# ------------------------------------------------------------
# Upstream error classification
# ------------------------------------------------------------
_SAFETY_MARKERS = ("SAFETY", "safety", "blocked")
_QUOTA_MARKERS = ("quota", "RESOURCE_EXHAUSTED", "rate limit")
_CREDENTIAL_MARKERS = ("API key not valid", "API_KEY_INVALID", "PERMISSION_DENIED")


def classify_upstream_error(exc: BaseException) -> ErrorKind:
    """Map an upstream failure to an ErrorKind.

    Typed SDK errors are checked first; anything else falls back to
    inspecting the message text.
    """
    if isinstance(exc, QuizError):
        return exc.kind
    if isinstance(exc, openai.RateLimitError):
        return ErrorKind.QUOTA
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return ErrorKind.INVALID_CREDENTIAL

    text = str(exc)
    # Quota first: quota messages can also say "blocked".
    if any(m.lower() in text.lower() for m in _QUOTA_MARKERS):
        return ErrorKind.QUOTA
    if any(m in text for m in _SAFETY_MARKERS):
        return ErrorKind.CONTENT_POLICY
    if any(m in text for m in _CREDENTIAL_MARKERS):
        return ErrorKind.INVALID_CREDENTIAL
    return ErrorKind.UNKNOWN


def to_upstream_error(exc: BaseException) -> QuizError:
    if isinstance(exc, QuizError):
        return exc
    return UpstreamError(classify_upstream_error(exc), detail=str(exc) or None)
