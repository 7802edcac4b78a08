"""User interaction abstraction for CLI and testing.

The selection logic of azspeech never talks to a terminal directly. It asks
an InteractionHandler to choose one option, choose-or-create, enter text,
confirm or pick a folder. Every call is a blocking, cancellable step with
three outcomes: a value, a cancellation (UserCancelledError) or an error.

Example:
    >>> handler = CLIInteractionHandler()
    >>> options = [OptionItem("rg1", "rg1"), OptionItem("rg2", "rg2")]
    >>> choice = handler.choose_or_create("Select a resource group", options,
    ...                                   "Create a new Resource Group")

    Testing example:
    >>> test_handler = MockInteractionHandler(choice_responses=[CREATE_NEW],
    ...                                       text_responses=["rg1"])
    >>> test_handler.choose_or_create("Select:", [], "Create new") is None
    True
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import click

from azspeech.errors import UserCancelledError
from azspeech.models import OptionItem

# Returns an error message for invalid input, None when valid
Validator = Callable[[str], str | None]

# Scripted responses for MockInteractionHandler
CREATE_NEW = "__create_new__"
CANCEL = "__cancel__"


@runtime_checkable
class InteractionHandler(Protocol):
    """Protocol for user interaction."""

    def choose_one(self, title: str, options: list[OptionItem]) -> str:
        """Let the user pick one option.

        Returns:
            The id of the chosen option

        Raises:
            ValueError: If options is empty
            UserCancelledError: If the user cancels
        """
        ...

    def choose_or_create(
        self, title: str, options: list[OptionItem], create_label: str
    ) -> str | None:
        """Let the user pick an option or ask for a new one.

        A "create new" entry is always offered first.

        Returns:
            The id of the chosen option, or None when "create new" was chosen

        Raises:
            UserCancelledError: If the user cancels
        """
        ...

    def input_text(
        self, prompt: str, default: str | None = None, validate: Validator | None = None
    ) -> str:
        """Ask for a line of text, re-prompting until ``validate`` accepts it.

        Returns:
            The accepted text, stripped

        Raises:
            UserCancelledError: If the user cancels
        """
        ...

    def confirm(self, message: str, default: bool = True) -> bool:
        """Prompt for yes/no confirmation."""
        ...

    def select_folder(self, prompt: str, default: Path | None = None) -> Path:
        """Ask for a folder path.

        Raises:
            UserCancelledError: If the user cancels
        """
        ...

    def show_info(self, message: str) -> None:
        """Display an informational message."""
        ...

    def show_warning(self, message: str) -> None:
        """Display a warning message."""
        ...


class CLIInteractionHandler:
    """Click-based CLI interaction handler.

    Options are shown as a numbered list; Ctrl+C at any prompt raises
    UserCancelledError.
    """

    def choose_one(self, title: str, options: list[OptionItem]) -> str:
        if not options:
            raise ValueError("options cannot be empty")
        index = self._prompt_index(title, [option.label for option in options])
        return options[index].id

    def choose_or_create(
        self, title: str, options: list[OptionItem], create_label: str
    ) -> str | None:
        labels = [click.style(f"+ {create_label}", fg="green")]
        labels.extend(option.label for option in options)
        index = self._prompt_index(title, labels)
        if index == 0:
            return None
        return options[index - 1].id

    def input_text(
        self, prompt: str, default: str | None = None, validate: Validator | None = None
    ) -> str:
        while True:
            try:
                value = click.prompt(prompt, default=default, type=str, show_default=True)
            except (KeyboardInterrupt, click.Abort) as e:
                click.echo()
                raise UserCancelledError() from e

            value = value.strip()
            error = validate(value) if validate else None
            if error is None:
                return value
            click.secho(error, fg="red")

    def confirm(self, message: str, default: bool = True) -> bool:
        try:
            return click.confirm(click.style(message, fg="yellow"), default=default)
        except (KeyboardInterrupt, click.Abort) as e:
            click.echo()
            raise UserCancelledError() from e

    def select_folder(self, prompt: str, default: Path | None = None) -> Path:
        try:
            value = click.prompt(
                prompt,
                default=str(default) if default else None,
                type=click.Path(file_okay=False, dir_okay=True, path_type=Path),
            )
        except (KeyboardInterrupt, click.Abort) as e:
            click.echo()
            raise UserCancelledError() from e
        return Path(value).expanduser()

    def show_info(self, message: str) -> None:
        click.secho(message, fg="green")

    def show_warning(self, message: str) -> None:
        click.secho(f"Warning: {message}", fg="yellow", err=True)

    def _prompt_index(self, title: str, labels: list[str]) -> int:
        """Display a numbered list and return the zero-based chosen index."""
        click.echo()
        click.secho(title, fg="green", bold=True)
        click.echo()
        for i, label in enumerate(labels, 1):
            click.echo(f"  {click.style(str(i), fg='cyan')}. {label}")
        click.echo()

        while True:
            try:
                choice_str = click.prompt("Enter choice", type=str, show_default=False)
            except (KeyboardInterrupt, click.Abort) as e:
                click.echo()
                raise UserCancelledError() from e

            try:
                choice_num = int(choice_str)
            except ValueError:
                click.secho("Please enter a valid number", fg="red")
                continue

            if 1 <= choice_num <= len(labels):
                return choice_num - 1
            click.secho(f"Please enter a number between 1 and {len(labels)}", fg="red")


class MockInteractionHandler:
    """Mock interaction handler for testing with pre-programmed responses.

    Responses are consumed in order per interaction kind. ``CANCEL`` in any
    response list simulates the user cancelling that prompt; ``CREATE_NEW``
    in choice_responses picks the "create new" entry. Rejected text
    responses are recorded and the next response is used, like a user
    retyping after an inline error.

    All interactions are recorded in ``interactions`` for verification.
    """

    def __init__(
        self,
        choice_responses: list[str] | None = None,
        text_responses: list[str] | None = None,
        confirm_responses: list[bool | str] | None = None,
        folder_responses: list[Path | str] | None = None,
    ):
        self.choice_responses = list(choice_responses or [])
        self.text_responses = list(text_responses or [])
        self.confirm_responses = list(confirm_responses or [])
        self.folder_responses = list(folder_responses or [])
        self.interactions: list[dict[str, Any]] = []

    def choose_one(self, title: str, options: list[OptionItem]) -> str:
        if not options:
            raise ValueError("options cannot be empty")
        response = self._next(self.choice_responses, "choice")
        self._record("choice", title, options=options, response=response)
        if response == CANCEL:
            raise UserCancelledError()
        self._check_option(response, options)
        return response

    def choose_or_create(
        self, title: str, options: list[OptionItem], create_label: str
    ) -> str | None:
        response = self._next(self.choice_responses, "choice")
        self._record(
            "choose_or_create", title, options=options, create_label=create_label, response=response
        )
        if response == CANCEL:
            raise UserCancelledError()
        if response == CREATE_NEW:
            return None
        self._check_option(response, options)
        return response

    def input_text(
        self, prompt: str, default: str | None = None, validate: Validator | None = None
    ) -> str:
        while True:
            response = self._next(self.text_responses, "text")
            if response == CANCEL:
                self._record("text", prompt, default=default, response=response)
                raise UserCancelledError()
            value = (default or "") if response == "" else response.strip()
            error = validate(value) if validate else None
            self._record("text", prompt, default=default, response=value, error=error)
            if error is None:
                return value

    def confirm(self, message: str, default: bool = True) -> bool:
        response = self._next(self.confirm_responses, "confirm")
        self._record("confirm", message, default=default, response=response)
        if response == CANCEL:
            raise UserCancelledError()
        return bool(response)

    def select_folder(self, prompt: str, default: Path | None = None) -> Path:
        response = self._next(self.folder_responses, "folder")
        self._record("folder", prompt, default=default, response=response)
        if response == CANCEL:
            raise UserCancelledError()
        return Path(response)

    def show_info(self, message: str) -> None:
        self._record("info", message)

    def show_warning(self, message: str) -> None:
        self._record("warning", message)

    def get_interactions_by_type(self, interaction_type: str) -> list[dict[str, Any]]:
        """Get all interactions of a specific type."""
        return [i for i in self.interactions if i["type"] == interaction_type]

    def _next(self, responses: list, kind: str) -> Any:
        if not responses:
            raise IndexError(f"No more {kind} responses available")
        return responses.pop(0)

    def _record(self, interaction_type: str, message: str, **details: Any) -> None:
        self.interactions.append({"type": interaction_type, "message": message, **details})

    @staticmethod
    def _check_option(response: str, options: list[OptionItem]) -> None:
        if response not in {option.id for option in options}:
            raise ValueError(f"Invalid pre-programmed response {response!r}")


__all__ = [
    "CANCEL",
    "CREATE_NEW",
    "CLIInteractionHandler",
    "InteractionHandler",
    "MockInteractionHandler",
    "Validator",
]
