"""Tests for the console prompts."""

from unittest.mock import patch

import pytest

from star_manager.cli.prompts import Prompter, parse_selection

CHOICES = [("a", "Alpha"), ("b", "Beta"), ("c", "Gamma")]


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("1", [0]),
        ("3, 1", [0, 2]),
        ("2 2,3", [1, 2]),
        ("", []),
        ("0", None),
        ("4", None),
        ("x", None),
        ("-1", None),
    ],
)
def test_parse_selection(raw, expected):
    assert parse_selection(raw, 3) == expected


@patch("click.prompt", return_value=2)
def test_select_returns_value(mock_prompt, capsys):
    assert Prompter().select("Pick", CHOICES, default="c") == "b"
    assert mock_prompt.call_args[1]["default"] == 3
    assert "  1. Alpha" in capsys.readouterr().out


@patch("click.prompt", return_value=1)
def test_select_unknown_default(mock_prompt):
    Prompter().select("Pick", CHOICES, default="zzz")
    assert mock_prompt.call_args[1]["default"] is None


@patch("click.prompt", return_value="")
def test_multiselect_blank_keeps_defaults(mock_prompt):
    assert Prompter().multiselect("Pick", CHOICES, defaults=("c", "a")) == ["a", "c"]


@patch("click.prompt", side_effect=["9", "2,3"])
def test_multiselect_reprompts_on_invalid(mock_prompt, capsys):
    assert Prompter().multiselect("Pick", CHOICES) == ["b", "c"]
    assert "Enter numbers between 1 and 3." in capsys.readouterr().out


@patch("click.prompt", return_value="  secret ")
def test_password_hidden_and_stripped(mock_prompt):
    assert Prompter().password("Token") == "secret"
    assert mock_prompt.call_args[1]["hide_input"] is True
