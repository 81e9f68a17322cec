"""Tests for the mapping of layer names onto store files."""

from __future__ import annotations

import pathlib

import pytest

from tilestore.db import layout


@pytest.mark.parametrize(
    ("layer_name", "expected"),
    [
        ("roads", "roads"),
        ("topp:states", "topp_states"),
        ("my layer", "my_layer"),
        ("a/b\\c", "a_b_c"),
        ("v1.2-final", "v1.2-final"),
        ("../escape", "___escape"),
    ],
)
def test_filtered_layer_name(layer_name: str, expected: str) -> None:
    """Test that unsafe characters are replaced."""
    assert layout.filtered_layer_name(layer_name) == expected


def test_filtered_layer_name_rejects_empty() -> None:
    """Test that an empty layer name is rejected."""
    with pytest.raises(ValueError):
        layout.filtered_layer_name("")


def test_layer_path_stays_in_root(tmp_path: pathlib.Path) -> None:
    """Test that every layer maps to a file directly under the root."""
    path = layout.layer_path(tmp_path, "../../etc/passwd")
    assert path.parent == tmp_path
    assert path.name == "___.._etc_passwd.sqlite"


def test_layer_path_custom_extension(tmp_path: pathlib.Path) -> None:
    """Test that the configured extension is used."""
    assert layout.layer_path(tmp_path, "roads", ".db") == tmp_path / "roads.db"
