from typing import Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from bulkquery.execution.contracts import AggregateResult
from bulkquery.selection.tree import CheckState, SelectionNode

CHECK_MARKS = {
    CheckState.YES: "[green]\\[x][/green]",
    CheckState.NO: "\\[ ]",
    CheckState.MIXED: "[yellow]\\[-][/yellow]",
}


def _cell(value) -> str:
    return "NULL" if value is None else escape(str(value))


class ConsolePresenter:
    def __init__(self, console: Console = None):
        self.console = console or Console()

    def print_result(self, aggregate: AggregateResult, title: str = "") -> None:
        if aggregate.result is None:
            self.console.print("[yellow]No result set.[/yellow]")
        else:
            table = Table(title=title or None)
            for column in aggregate.result.columns:
                table.add_column(escape(column.name))
            for row in aggregate.result.rows:
                table.add_row(*[_cell(value) for value in row])
            self.console.print(table)
            self.print_info(
                f"{aggregate.row_count} row(s) from {aggregate.succeeded} target(s), "
                f"{aggregate.failed} failed."
            )
        self.print_messages(aggregate.messages)

    def print_messages(self, messages: Sequence[str]) -> None:
        for message in messages:
            self.print_warning(message)

    def print_tree(self, roots: Sequence[SelectionNode]) -> None:
        tree = Tree("Servers")
        for root in roots:
            branch = tree.add(f"{CHECK_MARKS[root.state]} {escape(root.name)}")
            for child in root.children:
                branch.add(f"{CHECK_MARKS[child.state]} {escape(child.name)}")
        self.console.print(tree)

    def print_success(self, message: str) -> None:
        self.console.print(f"[green][OK][/green] {escape(message)}")

    def print_error(self, message: str) -> None:
        self.console.print(f"[red][FAIL][/red] {escape(message)}")

    def print_info(self, message: str) -> None:
        self.console.print(f"[blue][INFO][/blue] {escape(message)}")

    def print_warning(self, message: str) -> None:
        self.console.print(f"[yellow][WARN][/yellow] {escape(message)}")
