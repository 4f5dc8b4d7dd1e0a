"""
Unit tests for log sanitizing and level resolution.
"""
import logging

import pytest

from imageguard.core.logging_config import _resolve_log_level, _sanitize_data


def test_sensitive_keys_are_masked():
    data = {"filename": "a.jpg", "postgres_password": "hunter2", "nested": {"api_key": "abc"}}

    assert _sanitize_data(data) == {
        "filename": "a.jpg",
        "postgres_password": "***MASKED***",
        "nested": {"api_key": "***MASKED***"},
    }


def test_connection_string_password_is_masked():
    url = "postgresql://shop:hunter2@db:5432/catalog"
    assert _sanitize_data(url) == "postgresql://shop:***@db:5432/catalog"


def test_plain_values_are_untouched():
    assert _sanitize_data(["a.jpg", 3, None]) == ["a.jpg", 3, None]
    assert _sanitize_data("/uploads/categories/a.jpg") == "/uploads/categories/a.jpg"


@pytest.mark.parametrize(
    "value,expected",
    [
        ("debug", (logging.DEBUG, False)),
        (" WARNING ", (logging.WARNING, False)),
        ("10", (logging.DEBUG, False)),
        (logging.ERROR, (logging.ERROR, False)),
        ("loud", (logging.INFO, True)),
        ("", (logging.INFO, True)),
    ],
)
def test_resolve_log_level(value, expected):
    assert _resolve_log_level(value) == expected
