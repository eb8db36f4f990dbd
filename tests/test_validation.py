import pytest

from storefront.validation import clean_text, is_valid_email, is_valid_phone, parse_price


@pytest.mark.parametrize("value", ["a@b.co", "jane.doe+shop@example.com", "  x@y.org  "])
def test_valid_emails(value):
    assert is_valid_email(value)


@pytest.mark.parametrize("value", [
    "not-an-email", "a@b", "a b@c.de", "@x.com", "x@...", "a@b..c", "a@-.-", "", None, 42,
])
def test_invalid_emails(value):
    assert not is_valid_email(value)


@pytest.mark.parametrize("value", ["5551234567", "+972 50-123-4567", "(555) 123.4567", "+123456789012345"])
def test_valid_phones(value):
    assert is_valid_phone(value)


@pytest.mark.parametrize("value", ["123", "12345678901234567", "555-abc-4567", "++5551234567", "", None])
def test_invalid_phones(value):
    assert not is_valid_phone(value)


def test_parse_price():
    assert parse_price("19.99") == 19.99
    assert parse_price(5) == 5.0
    assert parse_price(" 7 ") == 7.0
    for bad in ("0", "-3", "abc", "", None, "nan", "inf", True):
        assert parse_price(bad) is None


def test_clean_text():
    assert clean_text("  hi ") == "hi"
    assert clean_text("   ") is None
    assert clean_text(None) is None
    assert clean_text(12) == "12"
