"""Tests for Tripsplit receipt extraction."""

import base64
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import requests

from tripsplit.errors import ReceiptError
from tripsplit.receipts import extract_receipt, normalize_receipt, parse_model_json


def gemini_reply(text: str) -> dict[str, object]:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class TestParseModelJson:
    """Tests for parse_model_json."""

    def test_plain_json(self) -> None:
        assert parse_model_json('{"merchant": "Cafe"}') == {"merchant": "Cafe"}

    def test_strips_code_fences(self) -> None:
        text = '```json\n{"merchant": "Cafe", "total": 12}\n```'
        assert parse_model_json(text) == {"merchant": "Cafe", "total": 12}

    def test_extracts_embedded_object(self) -> None:
        text = 'Sure! Here it is: {"merchant": "Cafe"} Hope that helps.'
        assert parse_model_json(text) == {"merchant": "Cafe"}

    @pytest.mark.parametrize("text", ["no json here", "{broken", "[1, 2]"])
    def test_unparseable(self, text: str) -> None:
        with pytest.raises(ReceiptError):
            parse_model_json(text)


class TestNormalizeReceipt:
    """Tests for normalize_receipt."""

    def test_full_reply(self) -> None:
        info = normalize_receipt(
            {
                "merchant": " Domino's ",
                "category": "Food",
                "items": ["pizza", "garlic bread", "coke"],
                "total": 1249,
            },
            model="gemini-2.5-flash",
        )
        assert info.merchant == "Domino's"
        assert info.category == "Food"
        assert info.total == Decimal("1249.0")
        assert info.title == "Domino's\npizza, garlic bread, coke"
        assert info.model == "gemini-2.5-flash"

    def test_unknown_category_becomes_other(self) -> None:
        assert normalize_receipt({"category": "Groceries"}).category == "Other"

    @pytest.mark.parametrize("total", [-5, "abc", None, float("nan")])
    def test_bad_total_becomes_zero(self, total: object) -> None:
        assert normalize_receipt({"total": total}).total == 0

    def test_items_are_capped_and_cleaned(self) -> None:
        info = normalize_receipt({"items": [f"item{i}" for i in range(15)] + ["", None]})
        assert info.items == [f"item{i}" for i in range(10)]
        # Title lists at most six items
        assert info.title == "Other\n" + ", ".join(f"item{i}" for i in range(6))

    def test_title_without_items(self) -> None:
        assert normalize_receipt({"merchant": "Cafe"}).title == "Cafe"
        assert normalize_receipt({}).title == "Other"


class TestExtractReceipt:
    """Tests for extract_receipt."""

    def test_success(self, mock_gemini: MagicMock) -> None:
        info = extract_receipt(b"jpeg-bytes", api_key="k", models=["m1"])

        assert info.merchant == "Domino's"
        assert info.total == Decimal("1249")
        assert info.model == "m1"

        mock_gemini.assert_called_once()
        args, kwargs = mock_gemini.call_args
        assert args[0].endswith("/models/m1:generateContent")
        assert kwargs["params"] == {"key": "k"}
        inline = kwargs["json"]["contents"][0]["parts"][1]["inline_data"]
        assert inline == {
            "mime_type": "image/jpeg",
            "data": base64.b64encode(b"jpeg-bytes").decode("ascii"),
        }

    def test_empty_image(self) -> None:
        with pytest.raises(ReceiptError, match="file is required"):
            extract_receipt(b"", api_key="k")

    def test_missing_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        with pytest.raises(ReceiptError, match="Missing GOOGLE_API_KEY"):
            extract_receipt(b"img")

    def test_key_from_env(self, monkeypatch: pytest.MonkeyPatch, mock_gemini: MagicMock) -> None:
        monkeypatch.setenv("GOOGLE_API_KEY", "env-key")
        extract_receipt(b"img", models=["m1"])
        assert mock_gemini.call_args.kwargs["params"] == {"key": "env-key"}

    @patch("tripsplit.receipts.requests.post")
    def test_falls_back_to_next_model(self, mock_post: MagicMock) -> None:
        ok = MagicMock()
        ok.json.return_value = gemini_reply('{"merchant": "Cafe", "total": 8}')
        ok.raise_for_status = MagicMock()
        mock_post.side_effect = [requests.RequestException("quota"), ok]

        info = extract_receipt(b"img", api_key="k", models=["m1", "m2"])

        assert info.model == "m2"
        assert mock_post.call_count == 2

    @patch("tripsplit.receipts.requests.post")
    def test_empty_reply_tries_next_model(self, mock_post: MagicMock) -> None:
        empty = MagicMock()
        empty.json.return_value = {"candidates": []}
        ok = MagicMock()
        ok.json.return_value = gemini_reply('{"merchant": "Cafe"}')
        mock_post.side_effect = [empty, ok]

        assert extract_receipt(b"img", api_key="k", models=["m1", "m2"]).model == "m2"

    @patch("tripsplit.receipts.requests.post")
    def test_all_models_fail(self, mock_post: MagicMock) -> None:
        mock_post.side_effect = requests.RequestException("down")

        with pytest.raises(ReceiptError, match="m2"):
            extract_receipt(b"img", api_key="k", models=["m1", "m2"])
        assert mock_post.call_count == 2

    def test_uses_configured_models(
        self, monkeypatch: pytest.MonkeyPatch, mock_gemini: MagicMock
    ) -> None:
        monkeypatch.setenv("GEMINI_MODEL", "primary")
        monkeypatch.setenv("GEMINI_FALLBACKS", "")
        extract_receipt(b"img", api_key="k")
        assert "/models/primary:" in mock_gemini.call_args.args[0]
