"""Custom Click group with automatic help display on usage errors."""

from typing import Any

import click


class SpeechToolkitGroup(click.Group):
    """Click group that shows the relevant help after a usage error."""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except (
            click.exceptions.UsageError,
            click.exceptions.BadParameter,
            click.exceptions.MissingParameter,
        ) as e:
            click.echo(f"Error: {e.format_message()}", err=True)

            # Prefer the subcommand context when there is one
            error_ctx = e.ctx if e.ctx else ctx
            click.echo("")
            click.echo(error_ctx.get_help())
            error_ctx.exit(e.exit_code)


__all__ = ["SpeechToolkitGroup"]
