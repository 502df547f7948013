from __future__ import annotations

import pytest

from guestsync.domain.normalize import (
    email_domain,
    identity_name,
    name_key,
    normalize_email,
    same_text,
)


def test_normalize_email_trims_and_lowercases() -> None:
    assert normalize_email("  Guest@Example.COM ") == "guest@example.com"
    assert normalize_email(None) == ""


@pytest.mark.parametrize(
    ("first", "last", "expected"),
    [
        ("Mary-Ann", "O'Neil", "maryann|oneil"),
        (" JOSE ", "de la Cruz", "jose|delacruz"),
        ("", "Smith", None),
        ("Ana", "...", None),
        (None, "Smith", None),
    ],
)
def test_name_key(first: str | None, last: str | None, expected: str | None) -> None:
    assert name_key(first, last) == expected


def test_identity_name_ignores_case_and_outer_whitespace() -> None:
    assert identity_name(" Carol", "ADAMS ") == identity_name("carol", "adams")
    assert identity_name("Mary-Ann", "X") != identity_name("Maryann", "X")


def test_email_domain() -> None:
    assert email_domain("a@Gmail.com") == "gmail.com"
    assert email_domain("not-an-email") == ""
    assert email_domain("a@b@c") == ""
    assert email_domain(None) == ""


def test_same_text_never_matches_blank_values() -> None:
    assert same_text(" Mendoza", "mendoza ")
    assert not same_text("", "")
    assert not same_text(None, None)
