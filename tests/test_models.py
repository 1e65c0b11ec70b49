from menu_lens.domain.models import ImagePayload, ProgressEvent, sniff_mime_type

from helpers import png_payload


def test_mime_sniffing_prefers_magic_bytes():
    assert sniff_mime_type(b"\xff\xd8\xff\xe0rest", "menu.png") == "image/jpeg"
    assert sniff_mime_type(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "image/webp"
    assert sniff_mime_type(b"%PDF-1.7") == "application/pdf"
    assert sniff_mime_type(b"????", "scan.tiff") == "image/tiff"
    assert sniff_mime_type(b"????") is None


def test_payload_facts(tmp_path):
    source = png_payload()
    path = tmp_path / "menu.png"
    path.write_bytes(source.data)

    payload = ImagePayload.from_path(str(path))

    assert payload.filename == "menu.png"
    assert payload.format == "png"
    assert payload.byte_size == len(source.data)
    assert payload.sha256 == source.sha256
    assert "data" not in payload.as_dict()
    assert "data=" not in repr(payload)


def test_progress_event_dict_omits_empty_fields():
    assert ProgressEvent(stage="ocr", progress=10, message="m").as_dict() == {
        "stage": "ocr",
        "progress": 10,
        "message": "m",
    }
