"""StateFlow CLI envelopes コマンド.

FilePersistenceProvider が書き出した永続化エンベロープを調査する：
- list: エンベロープを一覧表示
- show: エンベロープの内容を表示
"""

import json
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from stateflow.config import get_settings
from stateflow.state.models import PersistedEnvelope
from stateflow.storage.file_backend import FilePersistenceProvider


console = Console()


def resolve_provider(directory: Path | None) -> FilePersistenceProvider:
    """保存先ディレクトリからプロバイダーを生成（未指定時は設定値）."""
    if directory is None:
        configured = get_settings().persistence_dir
        if not configured:
            msg = "--dir が未指定で、STATEFLOW_PERSISTENCE_DIR も設定されていません"
            raise click.UsageError(msg)
        directory = Path(configured)
    return FilePersistenceProvider(directory)


def load_envelope(provider: FilePersistenceProvider, key: str) -> PersistedEnvelope | None:
    """エンベロープを読み込み.

    Raises:
        click.ClickException: 破損している場合
    """
    data = provider.read_sync(key)
    if data is None:
        return None
    try:
        return PersistedEnvelope.from_bytes(data)
    except ValueError as e:
        msg = f"破損したエンベロープ: {key} ({e})"
        raise click.ClickException(msg) from e


dir_option = click.option(
    "--dir",
    "-d",
    "directory",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="エンベロープの保存先ディレクトリ（既定: STATEFLOW_PERSISTENCE_DIR）",
)


@click.group()
def envelopes() -> None:
    """永続化エンベロープを調査.

    エンベロープは永続状態のスナップショットで、状態が変更されるたびに
    上書きされ、ストア初期化時のハイドレーションで読み戻されます。
    """


@envelopes.command(name="list")
@dir_option
@click.option(
    "--pattern",
    "-p",
    default="*",
    help="キーのワイルドカードパターン",
)
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="JSON 形式で出力",
)
def list_envelopes(directory: Path | None, pattern: str, json_output: bool) -> None:
    """エンベロープを一覧表示.

    例:
        stateflow envelopes list --dir ./.stateflow
        stateflow envelopes list --pattern "stateflow:app.*" --json
    """
    provider = resolve_provider(directory)
    rows: list[dict] = []
    for key in provider.list_keys(pattern):
        try:
            envelope = load_envelope(provider, key)
        except click.ClickException as e:
            rows.append({"key": key, "error": e.message})
            continue
        if envelope is None:
            continue
        rows.append(
            {
                "key": envelope.key,
                "state_type": envelope.state_type,
                "guid": envelope.guid,
                "saved_at": envelope.saved_at.isoformat(),
                "field_count": len(envelope.fields),
            }
        )

    if json_output:
        click.echo(json.dumps(rows, indent=2, ensure_ascii=False))
        return

    if not rows:
        console.print("[yellow]⚠ No envelopes found[/yellow]")
        console.print(f"[dim]Directory: {provider.directory}[/dim]")
        return

    table = Table(title="Persisted Envelopes", show_header=True, header_style="bold cyan")
    table.add_column("Key", style="cyan", overflow="fold")
    table.add_column("GUID", style="dim")
    table.add_column("Saved At")
    table.add_column("Fields", justify="right")
    for row in rows:
        if "error" in row:
            table.add_row(row["key"], "[red]corrupt[/red]", "-", "-")
        else:
            table.add_row(row["key"], row["guid"], row["saved_at"], str(row["field_count"]))

    console.print()
    console.print(table)
    console.print(f"[dim]合計: {len(rows)} 件[/dim]")


@envelopes.command(name="show")
@click.argument("key")
@dir_option
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="JSON 形式で出力",
)
def show_envelope(key: str, directory: Path | None, json_output: bool) -> None:
    """エンベロープの内容を表示.

    KEY: 永続化キー（例: stateflow:app.CounterState）
    """
    provider = resolve_provider(directory)
    envelope = load_envelope(provider, key)
    if envelope is None:
        msg = f"エンベロープが見つかりません: {key}"
        raise click.ClickException(msg)

    if json_output:
        click.echo(envelope.model_dump_json(indent=2))
        return

    console.print(
        Panel(
            f"[bold]State:[/bold] {envelope.state_type}\n"
            f"[bold]GUID:[/bold] {envelope.guid}\n"
            f"[bold]Saved:[/bold] {envelope.saved_at.isoformat()}\n"
            f"[bold]Version:[/bold] {envelope.version}",
            title=envelope.key,
            border_style="cyan",
        )
    )
    console.print(
        Syntax(json.dumps(envelope.fields, indent=2, ensure_ascii=False), "json")
    )
