import pytest

import translatebridge.language_codes as lc


@pytest.mark.parametrize("value, expected", [
    ("spanish", "Spanish"),
    ("Spanish", "Spanish"),
    ("es", "Spanish"),
    ("mandarin", "Mandarin Chinese"),
    ("zh", "Mandarin Chinese"),
    ("zh_tw", "Traditional Chinese"),
    ("pt-br", "Brazilian Portuguese"),
    ("de-AT", "German"),
    ("  vietnamese ", "Vietnamese"),
    ("Klingon", "Klingon"),
])
def test_get_language_name(value, expected):
    assert lc.get_language_name(value) == expected


def test_get_language_name_empty():
    assert lc.get_language_name("") is None
    assert lc.get_language_name("   ") is None


def test_normalize_language_code():
    assert lc.normalize_language_code("zh-cn") == "zh-CN"
    assert lc.normalize_language_code("PT_br") == "pt-BR"
    assert lc.normalize_language_code("EN") == "en"


def test_language_key_for_regional_variant():
    assert lc.get_language_key("es-MX") == "spanish"
    assert lc.get_language_key("fr-CA") == "french"
    assert lc.get_language_key("German") is None


def test_language_key_for_codes_and_names():
    assert lc.get_language_key("ar") == "arabic"
    assert lc.get_language_key("Korean") == "korean"
    assert lc.get_language_key("Italian") is None


def test_every_supported_language_has_a_voice():
    assert set(lc.VOICE_IDS) == set(lc.SUPPORTED_LANGUAGES)
    assert lc.get_voice_id("arabic") == lc.VOICE_IDS["arabic"]
    assert lc.get_voice_id("Italian") == lc.DEFAULT_VOICE_ID
