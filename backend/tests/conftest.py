"""
Shared fixtures: a fake upstream generator and helpers to install it into the
FastAPI app through dependency overrides. No test talks to the real API.
"""

import json

import pytest

from histquiz.app import app, get_endpoint
from histquiz.core.endpoint import GenerationEndpoint
from histquiz.core.gemini_qg import ClientInit


SAMPLE_QUIZ = {
    "Leading Sentence": "13世紀、ユーラシアの東西はモンゴル帝国によって結ばれ、人と物と情報が草原の道を行き交った。",
    "Questions": [
        "フランス王ルイ9世の命を受けてカラコルムを訪れた修道士と会見したモンゴルの君主は誰か。",
        "元代に大都から各地へ整備された駅伝制度を何というか。",
        "元曲の代表作『西廂記』の作者は誰か。",
    ],
    "Answers": ["モンケ", "ジャムチ", "王実甫"],
    "different_answers": ["問2: 站赤"],
    "Explaination": "モンゴル帝国期の東西交流を扱った。\nルブルックの旅行記は貴重な同時代史料である。",
    "Theme": "モンゴル帝国と東西交流",
}


class FakeGenerator:
    """Stands in for GeminiGenerator; records prompts and returns canned text."""

    def __init__(self, text: str = "", error: Exception = None):
        self.text = text
        self.error = error
        self.prompts = []
        self.closed = False

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.text

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def sample_quiz():
    return json.loads(json.dumps(SAMPLE_QUIZ))


@pytest.fixture
def sample_quiz_text(sample_quiz):
    return json.dumps(sample_quiz, ensure_ascii=False)


@pytest.fixture
def install_endpoint():
    """Route the app's generation endpoint to a given ClientInit."""

    def _install(init: ClientInit) -> None:
        app.dependency_overrides[get_endpoint] = lambda: GenerationEndpoint(init)

    yield _install
    app.dependency_overrides.clear()


@pytest.fixture
def fake_generator(install_endpoint, sample_quiz_text):
    generator = FakeGenerator(text=sample_quiz_text)
    install_endpoint(ClientInit.ok(generator))
    return generator
