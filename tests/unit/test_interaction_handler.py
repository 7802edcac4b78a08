"""Unit tests for interaction_handler module."""

from pathlib import Path
from unittest.mock import patch

import click
import pytest

from azspeech.errors import UserCancelledError
from azspeech.interaction_handler import (
    CANCEL,
    CREATE_NEW,
    CLIInteractionHandler,
    InteractionHandler,
    MockInteractionHandler,
)
from azspeech.models import OptionItem

OPTIONS = [OptionItem(id="rg1", label="rg1"), OptionItem(id="rg2", label="rg2")]


class TestProtocol:
    """Both handlers implement InteractionHandler."""

    def test_cli_handler(self):
        assert isinstance(CLIInteractionHandler(), InteractionHandler)

    def test_mock_handler(self):
        assert isinstance(MockInteractionHandler(), InteractionHandler)


class TestCLIInteractionHandler:
    """Tests for CLIInteractionHandler."""

    @patch("azspeech.interaction_handler.click.prompt", return_value="2")
    def test_choose_one(self, mock_prompt):
        assert CLIInteractionHandler().choose_one("Select", OPTIONS) == "rg2"

    def test_choose_one_empty(self):
        with pytest.raises(ValueError):
            CLIInteractionHandler().choose_one("Select", [])

    @patch("azspeech.interaction_handler.click.prompt", return_value="1")
    def test_choose_or_create_first_entry_creates(self, mock_prompt):
        """Test the first entry is always 'create new'."""
        assert CLIInteractionHandler().choose_or_create("Select", OPTIONS, "Create") is None

    @patch("azspeech.interaction_handler.click.prompt", return_value="3")
    def test_choose_or_create_existing(self, mock_prompt):
        assert CLIInteractionHandler().choose_or_create("Select", OPTIONS, "Create") == "rg2"

    @patch("azspeech.interaction_handler.click.prompt", side_effect=["x", "9", "1"])
    def test_invalid_choice_reprompts(self, mock_prompt):
        assert CLIInteractionHandler().choose_one("Select", OPTIONS) == "rg1"
        assert mock_prompt.call_count == 3

    @patch("azspeech.interaction_handler.click.prompt", side_effect=click.Abort())
    def test_abort_is_cancellation(self, mock_prompt):
        with pytest.raises(UserCancelledError):
            CLIInteractionHandler().choose_one("Select", OPTIONS)

    @patch("azspeech.interaction_handler.click.prompt", side_effect=["Bad Name", " good "])
    def test_input_text_reprompts_until_valid(self, mock_prompt):
        """Test validation errors are shown and the user asked again."""
        result = CLIInteractionHandler().input_text(
            "Name", default="d", validate=lambda v: None if v == "good" else "invalid"
        )
        assert result == "good"
        assert mock_prompt.call_count == 2

    @patch("azspeech.interaction_handler.click.prompt", side_effect=KeyboardInterrupt())
    def test_input_text_interrupt(self, mock_prompt):
        with pytest.raises(UserCancelledError):
            CLIInteractionHandler().input_text("Name")

    @patch("azspeech.interaction_handler.click.confirm", return_value=False)
    def test_confirm(self, mock_confirm):
        assert CLIInteractionHandler().confirm("Continue?") is False

    @patch("azspeech.interaction_handler.click.confirm", side_effect=click.Abort())
    def test_confirm_abort(self, mock_confirm):
        with pytest.raises(UserCancelledError):
            CLIInteractionHandler().confirm("Continue?")

    @patch("azspeech.interaction_handler.click.prompt")
    def test_select_folder(self, mock_prompt, tmp_path):
        mock_prompt.return_value = tmp_path
        assert CLIInteractionHandler().select_folder("Project folder") == tmp_path


class TestMockInteractionHandler:
    """Tests for MockInteractionHandler."""

    def test_choose_one_records(self):
        handler = MockInteractionHandler(choice_responses=["rg1"])

        assert handler.choose_one("Select", OPTIONS) == "rg1"

        choice = handler.get_interactions_by_type("choice")[0]
        assert choice["message"] == "Select"
        assert choice["response"] == "rg1"

    def test_create_new(self):
        handler = MockInteractionHandler(choice_responses=[CREATE_NEW])
        assert handler.choose_or_create("Select", OPTIONS, "Create") is None

    def test_cancel(self):
        handler = MockInteractionHandler(choice_responses=[CANCEL])
        with pytest.raises(UserCancelledError):
            handler.choose_or_create("Select", OPTIONS, "Create")

    def test_invalid_response(self):
        handler = MockInteractionHandler(choice_responses=["rg9"])
        with pytest.raises(ValueError):
            handler.choose_one("Select", OPTIONS)

    def test_exhausted_responses(self):
        with pytest.raises(IndexError):
            MockInteractionHandler().confirm("Continue?")

    def test_input_text_default(self):
        handler = MockInteractionHandler(text_responses=[""])
        assert handler.input_text("Name", default="generated") == "generated"

    def test_input_text_rejected_then_accepted(self):
        """Test rejected responses are recorded with their error."""
        handler = MockInteractionHandler(text_responses=["Bad", "good"])

        result = handler.input_text("Name", validate=lambda v: None if v == "good" else "nope")

        assert result == "good"
        texts = handler.get_interactions_by_type("text")
        assert [t["error"] for t in texts] == ["nope", None]

    def test_confirm_and_folder(self):
        handler = MockInteractionHandler(confirm_responses=[True], folder_responses=["/tmp/p"])
        assert handler.confirm("Continue?") is True
        assert handler.select_folder("Folder") == Path("/tmp/p")

    def test_messages_recorded(self):
        handler = MockInteractionHandler()
        handler.show_info("done")
        handler.show_warning("careful")
        assert [i["type"] for i in handler.interactions] == ["info", "warning"]
