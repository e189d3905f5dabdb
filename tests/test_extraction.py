"""Tests for Gemini receipt scanning with a stubbed client."""

from types import SimpleNamespace

import pytest

from parcel_tracker import extraction
from parcel_tracker.errors import ConfigurationError, ExtractionError
from parcel_tracker.extraction import _parse_json_response, extract_parcel_data, merge_into_form
from parcel_tracker.schemas import ExtractedParcelData


class StubModels:
    def __init__(self, text):
        self.text = text
        self.calls = []

    def generate_content(self, model, contents, config):
        self.calls.append((model, contents, config))
        return SimpleNamespace(text=self.text)


@pytest.fixture
def stub_gemini(monkeypatch):
    monkeypatch.setattr(extraction, "GEMINI_DELAY", 0.0)

    def install(text):
        models = StubModels(text)
        monkeypatch.setattr(extraction, "_get_gemini_client", lambda api_key=None: SimpleNamespace(models=models))
        return models

    return install


def test_extract_parcel_data(stub_gemini):
    models = stub_gemini('```json\n{"lrNumber": "4521", "partyName": "Sharma", "weight": "12 kg", '
                         '"totalAmount": 600, "date": "2024-03-10"}\n```')
    data = extract_parcel_data(b"jpeg-bytes", "image/png", api_key="key", model="gemini-test")
    assert data == ExtractedParcelData(
        lr_number="4521", party_name="Sharma", weight=12.0, total_amount=600.0, date="2024-03-10"
    )
    model, contents, config = models.calls[0]
    assert model == "gemini-test"
    assert config.response_mime_type == "application/json"


@pytest.mark.parametrize("text", ["", "no json here", "[1, 2]"])
def test_bad_answers_raise_extraction_error(stub_gemini, text):
    stub_gemini(text)
    with pytest.raises(ExtractionError, match="Failed to extract data from image."):
        extract_parcel_data(b"jpeg-bytes", api_key="key")


def test_missing_key(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    with pytest.raises(ConfigurationError):
        extraction._get_gemini_client(None)


def test_parse_json_with_surrounding_text():
    assert _parse_json_response('Here you go: {"weight": 5} thanks') == {"weight": 5}


def test_merge_keeps_values_the_scan_missed():
    form = {"lr_number": "OLD", "party_name": "Gupta", "weight": 3.0, "rate": 9.0}
    merged = merge_into_form(form, ExtractedParcelData(lr_number="NEW", weight=None))
    assert merged == {"lr_number": "NEW", "party_name": "Gupta", "weight": 3.0, "rate": 9.0}
    assert form["lr_number"] == "OLD"
