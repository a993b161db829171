"""Tests for DropCompleter."""

from pathlib import Path
from unittest.mock import patch

import pytest
from prompt_toolkit.document import Document

from dropcli.completer import DropCompleter
from dropcli.constants import COMMANDS


@pytest.fixture
def completer():
    return DropCompleter()


@pytest.fixture
def workdir(tmp_path):
    (tmp_path / "report.pdf").write_text("content")
    (tmp_path / "readme.md").write_text("content")
    (tmp_path / ".hidden").write_text("content")
    (tmp_path / "photos").mkdir()
    (tmp_path / "photos" / "cat.jpg").write_text("content")
    return tmp_path


def get_completions_list(completer, text):
    """Helper to get list of completion texts from completer."""
    doc = Document(text, len(text))
    return [c.text for c in completer.get_completions(doc, None)]


class TestCommandCompletion:
    def test_empty_input_shows_all_commands(self, completer):
        assert get_completions_list(completer, "") == COMMANDS

    def test_partial_command_filters(self, completer):
        assert get_completions_list(completer, "u") == ["upload", "unlock"]

    def test_command_completion_case_insensitive(self, completer):
        assert "download" in get_completions_list(completer, "DOWN")


class TestPathCompletion:
    def test_lists_working_directory(self, completer, workdir):
        with patch.object(Path, "cwd", return_value=workdir):
            completions = get_completions_list(completer, "upload ")
        assert completions == ["photos/", "readme.md", "report.pdf"]

    def test_partial_name(self, completer, workdir):
        with patch.object(Path, "cwd", return_value=workdir):
            assert get_completions_list(completer, "upload rep") == ["report.pdf"]

    def test_hidden_files_need_dot(self, completer, workdir):
        with patch.object(Path, "cwd", return_value=workdir):
            assert get_completions_list(completer, "upload .h") == [".hidden"]

    def test_subdirectory(self, completer, workdir):
        text = f"upload {workdir}/photos/c"
        assert get_completions_list(completer, text) == [f"{workdir}/photos/cat.jpg"]

    def test_only_upload_completes_paths(self, completer, workdir):
        with patch.object(Path, "cwd", return_value=workdir):
            assert get_completions_list(completer, "info ") == []

    def test_options_are_not_completed(self, completer, workdir):
        with patch.object(Path, "cwd", return_value=workdir):
            assert get_completions_list(completer, "upload --pass") == []
