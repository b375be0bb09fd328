import json

import pytest

from mehfil.errors import ValidationError
from mehfil.services.qr_service import QRService


def test_payload_is_compact_json_with_fixed_keys():
    text = QRService.encode_payload("A0007", "evt-1", "Asha", "9000000001", "audience")

    assert text == (
        '{"userId":"A0007","eventId":"evt-1","name":"Asha",'
        '"phone":"9000000001","type":"audience"}'
    )


def test_payload_keeps_unicode_names():
    text = QRService.encode_payload("P0002", "evt-1", "ग़ालिब", "9000000002", "performer")

    assert json.loads(text)["name"] == "ग़ालिब"
    assert "ग़ालिब" in text


def test_decode_json_payload():
    text = QRService.encode_payload("P0002", "evt-1", "Ravi", "9000000002", "performer")

    payload = QRService.decode_payload(text)

    assert payload.user_id == "P0002"
    assert payload.event_id == "evt-1"
    assert payload.name == "Ravi"
    assert payload.phone == "9000000002"
    assert payload.type == "performer"


def test_decode_legacy_pipe_format():
    payload = QRService.decode_payload(" evt-1|A0003 ")

    assert payload.event_id == "evt-1"
    assert payload.user_id == "A0003"
    assert payload.name is None


@pytest.mark.parametrize("text", [
    "",
    "   ",
    "{not json",
    '{"userId":"A0001"}',
    '{"userId":"","eventId":"evt-1"}',
    '{"userId":1,"eventId":"evt-1"}',
    "[1, 2]",
    "hello world",
    "a|b|c",
    "|A0001",
])
def test_decode_rejects_garbage(text):
    with pytest.raises(ValidationError):
        QRService.decode_payload(text)


def test_render_data_url_is_png():
    url = QRService.render_data_url('{"userId":"A0001"}')

    assert url.startswith("data:image/png;base64,")
    png = QRService.data_url_to_png(url)
    assert png[:8] == b"\x89PNG\r\n\x1a\n"


def test_data_url_to_png_ignores_other_urls():
    assert QRService.data_url_to_png(None) is None
    assert QRService.data_url_to_png("data:image/jpeg;base64,AAAA") is None


@pytest.mark.parametrize("key", ["name", "phone", "type"])
def test_decode_rejects_non_text_details(key):
    data = {"userId": "A0001", "eventId": "evt-1", "name": "Asha",
            "phone": "9000000001", "type": "audience"}
    data[key] = 9000000001

    with pytest.raises(ValidationError) as exc:
        QRService.decode_payload(json.dumps(data))
    assert exc.value.field == "qr"


def test_decode_allows_missing_details():
    payload = QRService.decode_payload('{"userId":"A0001","eventId":"evt-1","name":null}')

    assert payload.user_id == "A0001"
    assert payload.name is None
    assert payload.phone is None
