"""Tests for branch name sanitisation."""

from __future__ import annotations

import pytest

from gitpublish.naming import MAX_BRANCH_NAME_LENGTH, sanitize_branch_name


def test_removes_forbidden_characters():
    assert sanitize_branch_name("feat: my *branch* + v1") == "featmybranchv1"


def test_keeps_valid_names_untouched():
    assert sanitize_branch_name("updatecli/feature-x_1.2") == "updatecli/feature-x_1.2"


def test_truncates_to_255_characters():
    name = "a" * 300
    result = sanitize_branch_name(name)
    assert len(result) == MAX_BRANCH_NAME_LENGTH == 255
    assert result == "a" * 255


def test_truncation_happens_after_removal():
    # 300 spaces vanish entirely, leaving the short tail
    assert sanitize_branch_name(" " * 300 + "tail") == "tail"


def test_empty_string_is_valid_input():
    assert sanitize_branch_name("") == ""


@pytest.mark.parametrize(
    "name",
    [
        "plain",
        " : * + ",
        "x" * 1000,
        "mixed:+*  chars" * 40,
        "ünïcødé: brånch",
    ],
)
def test_output_never_contains_forbidden_characters(name):
    result = sanitize_branch_name(name)
    assert len(result) <= 255
    for char in (" ", ":", "*", "+"):
        assert char not in result
