"""StateFlow CLI メインエントリーポイント.

このモジュールは StateFlow の CLI ツールのメインエントリーポイントを提供します。
"""

import json
import sys

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from stateflow import __version__
from stateflow.cli.commands.envelopes import envelopes
from stateflow.config import get_settings


# Rich Console インスタンス
console = Console()


class StateFlowCLI(click.Group):
    """StateFlow CLI グループクラス.

    カスタムヘルプフォーマットを提供します。
    """

    def format_help(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        """ヘルプメッセージをフォーマット."""
        title = Text("StateFlow CLI", style="bold cyan")
        subtitle = Text("Reactive single-store state management", style="dim")

        console.print()
        console.print(Panel(title, subtitle=subtitle, border_style="cyan"))
        console.print()

        super().format_help(ctx, formatter)


@click.group(cls=StateFlowCLI)
@click.version_option(version=__version__, prog_name="stateflow")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="詳細な出力を表示",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """StateFlow - Reactive single-store state management.

    使用例:

        \b
        # 永続化エンベロープを一覧表示
        $ stateflow envelopes list --dir ./.stateflow

        \b
        # エンベロープの内容を表示
        $ stateflow envelopes show stateflow:app.CounterState --dir ./.stateflow

        \b
        # 有効な設定を表示
        $ stateflow config
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["console"] = console


@cli.command(name="config")
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="JSON 形式で出力",
)
def show_config(json_output: bool) -> None:
    """有効な設定を表示（環境変数 STATEFLOW_* と .env を反映）."""
    settings = get_settings()
    values = settings.model_dump()

    if json_output:
        click.echo(json.dumps(values, indent=2, ensure_ascii=False, default=str))
        return

    table = Table(title="StateFlow Settings", show_header=True, header_style="bold cyan")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_column("Env", style="dim")
    for name, value in values.items():
        table.add_row(name, str(value), f"STATEFLOW_{name.upper()}")

    console.print()
    console.print(table)


def handle_error(error: Exception, verbose: bool = False) -> None:
    """エラーを処理して表示.

    Args:
        error: 発生した例外
        verbose: 詳細表示フラグ
    """
    console.print()
    console.print(
        Panel(
            f"[bold red]Error:[/bold red] {error!s}",
            border_style="red",
            title="❌ エラー",
        )
    )

    if verbose:
        console.print()
        console.print("[dim]詳細:[/dim]")
        console.print_exception()

    console.print()
    console.print("[dim]ヘルプ: stateflow --help[/dim]")


# コマンドを登録
cli.add_command(envelopes)


def main() -> None:
    """CLI メインエントリーポイント."""
    try:
        cli(obj={})
    except Exception as e:
        handle_error(e, verbose=False)
        sys.exit(1)


if __name__ == "__main__":
    main()
