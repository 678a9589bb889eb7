"""
Tests for the explanation client boundary (no network access).
"""

import asyncio
from types import SimpleNamespace

import httpx
import pytest
from openai import APIConnectionError

import groq_integration
from config import Settings
from groq_integration import (
    ExplanationError,
    build_prompt,
    fallback_explanation,
    generate_explanation,
)


class _FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _patch_client(monkeypatch, completions):
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    monkeypatch.setattr(groq_integration, "get_client", lambda settings: client)


class TestGenerateExplanation:

    def test_missing_api_key_raises(self):
        with pytest.raises(ExplanationError, match="GROQ_API_KEY"):
            asyncio.run(generate_explanation(
                "CODEINE", "Poor Metabolizer", "Ineffective", [], "CYP2D6",
                settings=Settings(groq_api_key=None),
            ))

    def test_returns_model_text(self, monkeypatch, variant):
        completions = _FakeCompletions(content="  CYP2D6 *4/*4 abolishes activation.  ")
        _patch_client(monkeypatch, completions)

        text = asyncio.run(generate_explanation(
            "CODEINE", "Poor Metabolizer", "Ineffective",
            [variant("rs3892097", "CYP2D6", "*4")], "CYP2D6",
            settings=Settings(groq_api_key="test-key", groq_model="test-model"),
        ))

        assert text == "CYP2D6 *4/*4 abolishes activation."
        assert completions.calls[0]["model"] == "test-model"
        assert "rs3892097" in completions.calls[0]["messages"][1]["content"]

    def test_empty_reply_raises(self, monkeypatch):
        _patch_client(monkeypatch, _FakeCompletions(content=""))

        with pytest.raises(ExplanationError, match="empty"):
            asyncio.run(generate_explanation(
                "CODEINE", "Normal Metabolizer", "Safe", [], "CYP2D6",
                settings=Settings(groq_api_key="test-key"),
            ))

    def test_api_failure_is_wrapped(self, monkeypatch):
        error = APIConnectionError(request=httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions"))
        _patch_client(monkeypatch, _FakeCompletions(error=error))

        with pytest.raises(ExplanationError):
            asyncio.run(generate_explanation(
                "CODEINE", "Normal Metabolizer", "Safe", [], "CYP2D6",
                settings=Settings(groq_api_key="test-key"),
            ))


class TestPromptAndFallback:

    def test_prompt_lists_variants(self, variant):
        prompt = build_prompt(
            "WARFARIN", "Intermediate Metabolizer", "Adjust Dosage",
            [variant("rs1057910", "CYP2C9", "*3")], "CYP2C9",
        )

        assert "rs1057910 (CYP2C9, *3, HET)" in prompt
        assert "WARFARIN" in prompt

    def test_prompt_without_variants(self):
        prompt = build_prompt("CODEINE", "Normal Metabolizer", "Safe", [], "CYP2D6")

        assert "none detected" in prompt

    def test_fallback_mentions_diplotype_and_risk(self):
        text = fallback_explanation("CODEINE", "Poor Metabolizer", "Ineffective", "CYP2D6", "*4/*4")

        assert "*4/*4" in text
        assert "'Ineffective'" in text

    def test_fallback_for_unsupported_drug(self):
        text = fallback_explanation("ASPIRIN", "Indeterminate", "Unknown", None, "Unknown")

        assert "not covered" in text
