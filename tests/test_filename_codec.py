import pytest

from app.services import filename_codec
from app.services.filename_codec import decode, encode, format_user_id_hex


def test_encode_numeric_user_id():
    assert encode(42, "abc123", 1, "photo.jpg") == "img.0000042.abc123.01.jpg"


def test_encode_lowercases_extension():
    assert encode("42", "abc123", 7, "HOUSE.JPG") == "img.0000042.abc123.07.jpg"


def test_format_user_id_hex_strips_and_truncates():
    assert format_user_id_hex(42) == "0000042"
    assert format_user_id_hex("user-beef") == "000beef"
    assert format_user_id_hex("c7b3d8e0-1f2a-4b5c") == "c7b3d8e"
    # Uppercase letters are not part of the kept alphabet
    assert format_user_id_hex("ABC") == "0000000"


def test_format_user_id_hex_is_lossy():
    assert format_user_id_hex("42") == format_user_id_hex("x42")


@pytest.mark.parametrize("user_id,code,number,name", [
    (42, "abc123", 1, "a.jpg"),
    ("65f1c0ffee", "Lst9", 99, "b.PNG"),
    ("u-7", "m2k1x9a0", 12, "c.webp"),
])
def test_decode_reverses_encode(user_id, code, number, name):
    decoded = decode(encode(user_id, code, number, name))
    assert decoded is not None
    assert decoded.user_id_hex == format_user_id_hex(user_id)
    assert decoded.listing_code == code
    assert decoded.sequence_number == number
    assert decoded.extension == name[name.rfind("."):].lower()


@pytest.mark.parametrize("name", [
    "",
    "photo.jpg",
    "img.0000042.abc123.1.jpg",
    "img.0000042.abc123.001.jpg",
    "img.000042.abc123.01.jpg",
    "img.000004g.abc123.01.jpg",
    "img.0000042.abc-123.01.jpg",
    "img.0000042.abc123.01",
    "img.0000042.abc123.01.jp2",
    "img.0000042.abc123.01.jpg\n",
    "img.0000042..01.jpg",
    "../img.0000042.abc123.01.jpg",
    "img.0000042.abc123.١٢.jpg",
])
def test_decode_rejects_non_matching_names(name):
    assert decode(name) is None


@pytest.mark.parametrize("value", [None, 42, b"img.0000042.abc123.01.jpg", ["x"]])
def test_decode_never_raises_on_non_strings(value):
    assert decode(value) is None


def test_decode_is_case_insensitive():
    decoded = decode("IMG.00000AB.ABC.03.JPEG")
    assert decoded.user_id_hex == "00000AB"
    assert decoded.sequence_number == 3
    assert decoded.extension == ".jpeg"


@pytest.mark.parametrize("number", [0, 100, -1])
def test_encode_rejects_sequence_outside_two_digits(number):
    with pytest.raises(ValueError):
        encode(42, "abc123", number, "a.jpg")


def test_encode_uses_fallback_when_name_has_no_extension():
    assert encode(42, "abc", 2, "blob", fallback_extension=".png") == "img.0000042.abc.02.png"
    assert encode(42, "abc", 2, "scan.jp2", fallback_extension=".jpg") == "img.0000042.abc.02.jpg"
    assert encode(42, "abc", 2, "roof.webp", fallback_extension=".jpg") == "img.0000042.abc.02.webp"


def test_extension_of():
    assert filename_codec.extension_of("a/b/c.Tar.GZ") == ".gz"
    assert filename_codec.extension_of(".hidden") == ""
    assert filename_codec.extension_of(None) == ""


def test_listing_code_validation():
    assert filename_codec.is_valid_listing_code("abc123")
    assert filename_codec.is_valid_listing_code("ABC")
    assert not filename_codec.is_valid_listing_code("")
    assert not filename_codec.is_valid_listing_code("abc 123")
    assert not filename_codec.is_valid_listing_code("café")
    assert not filename_codec.is_valid_listing_code(None)


def test_generate_listing_code_is_base36_millis():
    assert filename_codec.generate_listing_code(now=1.0) == "rs"  # 1000 ms
    code = filename_codec.generate_listing_code()
    assert filename_codec.is_valid_listing_code(code)
    assert code == code.lower()
