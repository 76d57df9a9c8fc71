# backend/histquiz/core/renderer.py

import json
import logging
import re
from html import escape
from typing import Any, Dict, List, Union

from pydantic import ValidationError

from .prompt import REQUIRED_FIELDS
from .schemas import QuizPayload

logger = logging.getLogger("quiz.renderer")

PAGE_TITLE = "東大世界史 一問一答ジェネレーター (Gemini API)"
SHOW_LABEL = "解答を表示"
HIDE_LABEL = "解答を隠す"
HIDDEN_NOTE = "(解答は非表示です)"


class PayloadValidationError(ValueError):
    pass


# ------------------------------------------------------------
# Parsing
# ------------------------------------------------------------
def _load_json(text: str) -> Any:
    """Parse model output, tolerating a surrounding markdown fence."""
    try:
        return json.loads(text)
    except ValueError:
        pass

    cleaned = re.sub(r"^```(json)?|```$", "", text.strip(), flags=re.M)
    try:
        return json.loads(cleaned)
    except ValueError:
        raise PayloadValidationError("生成結果のJSONを解析できませんでした。") from None


def _missing(data: Dict[str, Any], key: str) -> bool:
    value = data.get(key)
    # An empty list is present; its section is simply not rendered.
    if isinstance(value, list):
        return False
    return not value


def parse_quiz_payload(raw: Union[str, bytes, Dict[str, Any]]) -> QuizPayload:
    """Validate a generated quiz.

    Every required field must be present and the text fields non-empty;
    Questions and Answers may be empty lists. A question/answer count
    mismatch is only logged.
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    data = raw if isinstance(raw, dict) else _load_json(raw)
    if not isinstance(data, dict) or any(_missing(data, k) for k in REQUIRED_FIELDS):
        raise PayloadValidationError("生成されたデータに必要な項目が不足しています。")

    try:
        payload = QuizPayload.model_validate(data)
    except ValidationError as e:
        raise PayloadValidationError("生成されたデータの形式が不正です。") from e

    if len(payload.questions) != len(payload.answers):
        logger.warning(
            f"設問と解答の数が一致しません: questions={len(payload.questions)} answers={len(payload.answers)}"
        )
    return payload


def format_error(message: str) -> str:
    return f"エラー: {message}"


# ------------------------------------------------------------
# View
# ------------------------------------------------------------
class QuizView:
    """A quiz plus the reveal toggle."""

    def __init__(self, payload: QuizPayload, show_answers: bool = False):
        self.payload = payload
        self.show_answers = show_answers

    def toggle_answers(self) -> bool:
        self.show_answers = not self.show_answers
        return self.show_answers

    @property
    def toggle_label(self) -> str:
        return HIDE_LABEL if self.show_answers else SHOW_LABEL

    @property
    def alternate_answers(self) -> List[str]:
        if not self.show_answers:
            return []
        return list(self.payload.different_answers or [])

    def render_text(self) -> str:
        p = self.payload
        lines: List[str] = []

        if p.theme:
            lines += ["テーマ", f"  {p.theme}", ""]
        if p.leading_sentence:
            lines += ["リード文", f"  {p.leading_sentence}", ""]
        if p.questions:
            lines.append("設問")
            lines += [f"  {i}. {q}" for i, q in enumerate(p.questions, 1)]
            lines.append("")
        if p.answers:
            lines.append(f"解答 [{self.toggle_label}]")
            if self.show_answers:
                lines += [f"  {i}. {a}" for i, a in enumerate(p.answers, 1)]
                if self.alternate_answers:
                    lines.append("別解・許容解答")
                    lines += [f"  - {da}" for da in self.alternate_answers]
            else:
                lines.append(f"  {HIDDEN_NOTE}")
            lines.append("")
        if p.explanation:
            lines.append("解説")
            lines += [f"  {line}" for line in p.explanation.split("\n")]

        return "\n".join(lines).rstrip() + "\n"

    def render_html(self) -> str:
        p = self.payload
        parts: List[str] = ['<div class="question-display">']

        if p.theme:
            parts.append(_section("theme", "テーマ", f"<p>{escape(p.theme)}</p>"))
        if p.leading_sentence:
            parts.append(_section("leading-sentence", "リード文", f"<p>{escape(p.leading_sentence)}</p>"))
        if p.questions:
            parts.append(_section("questions", "設問", _list("ol", p.questions)))
        if p.answers:
            toggle = f'<span class="answer-toggle">{self.toggle_label}</span>'
            if self.show_answers:
                inner = _list("ol", p.answers)
                if self.alternate_answers:
                    inner += "<h4>別解・許容解答</h4>" + _list("ul", self.alternate_answers)
            else:
                inner = f'<p class="hidden-answers">{HIDDEN_NOTE}</p>'
            parts.append(_section("answers", "解答", toggle + inner))
        if p.explanation:
            body = "<br>".join(escape(line) for line in p.explanation.split("\n"))
            parts.append(_section("explanation", "解説", body))

        parts.append("</div>")
        return "\n".join(parts)


def _section(css: str, heading: str, inner: str) -> str:
    return f'<div class="question-section {css}"><h3>{heading}</h3>{inner}</div>'


def _list(tag: str, items: List[str]) -> str:
    return f"<{tag}>" + "".join(f"<li>{escape(x)}</li>" for x in items) + f"</{tag}>"


def render_error_html(message: str) -> str:
    return f'<div class="error-message">{escape(format_error(message))}</div>'


def render_page(content_html: str = "", theme: str = "", show_answers: bool = False) -> str:
    """Full HTML page: the theme form followed by a result or an error."""
    checked = " checked" if show_answers else ""
    return (
        "<!DOCTYPE html>\n"
        '<html lang="ja"><head><meta charset="utf-8">'
        f"<title>{PAGE_TITLE}</title></head>\n"
        '<body><div class="app-container">\n'
        f"<h1>{PAGE_TITLE}</h1>\n"
        '<form class="input-form" method="get" action="/quiz">'
        '<textarea name="theme" rows="4" '
        'placeholder="問題を作成したいテーマや時代、地域、キーワードなどを入力してください...">'
        f"{escape(theme)}</textarea>"
        f'<label><input type="checkbox" name="show_answers" value="true"{checked}> {SHOW_LABEL}</label>'
        '<button type="submit">東大世界史レベルの問題を生成</button>'
        "</form>\n"
        f"{content_html}\n"
        "</div></body></html>\n"
    )
