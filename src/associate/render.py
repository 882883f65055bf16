"""Rendering of :class:`DashboardState` with rich."""

from __future__ import annotations

import time
from typing import Sequence

from rich.console import Group, RenderableType
from rich.layout import Layout
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .data.git import DiffKind
from .data.plans import LineKind
from .processes import describe_state
from .state import DashboardState, Focus, Tab, TabKind
from .transcripts import ItemKind

KIND_STYLES = {
    ItemKind.USER: "bold cyan",
    ItemKind.ASSISTANT: "white",
    ItemKind.TOOL_USE: "yellow",
    ItemKind.TOOL_RESULT: "dim",
    ItemKind.SYSTEM: "magenta",
    ItemKind.PROGRESS: "dim italic",
}
DIFF_STYLES = {
    DiffKind.HEADER: "bold",
    DiffKind.HUNK: "cyan",
    DiffKind.ADD: "green",
    DiffKind.REMOVE: "red",
    DiffKind.CONTEXT: "",
}
MARKDOWN_STYLES = {LineKind.HEADING: "bold cyan", LineKind.CODE_FENCE: "dim", LineKind.CODE: "green", LineKind.NORMAL: ""}
HELP_TEXT = """\
1-9          switch tab
Tab / S-Tab  next / previous tab
j / k        move down / up
h / l        focus list / detail pane
Enter        open selection
g / G        top / bottom
f            toggle follow mode
s            cycle subagent transcript, or jump to a worker's session
b            browse project files (git tab)
Backspace    collapse directory or go to parent
r            refresh the current tab
p            spawn a worker for the selected issue
x            kill the selected worker
D            dismiss a finished worker
d            delete the selection (asks y/n)
?            this help
q            quit"""


def _window(length: int, index: int, height: int) -> range:
    """Indices of a ``height``-row window that keeps ``index`` visible."""

    if length <= height:
        return range(length)
    start = min(max(index - height // 2, 0), length - height)
    return range(start, start + height)


def _list_table(rows: Sequence[tuple[str, ...]], index: int, height: int, focused: bool) -> Table:
    table = Table(expand=True, box=None, show_header=False, pad_edge=False)
    table.add_column("", width=1)
    width = max((len(row) for row in rows), default=1)
    for _ in range(width):
        table.add_column(no_wrap=True, overflow="ellipsis", ratio=1)
    for position in _window(len(rows), index, height):
        selected = position == index
        style = "reverse" if selected and focused else ("bold" if selected else "")
        table.add_row(Text(">" if selected else " ", style="green bold"), *(Text(cell, style=style) for cell in rows[position]))
    return table


def _lines(lines: Sequence[Text], index: int, height: int) -> RenderableType:
    return Group(*(lines[position] for position in _window(len(lines), index, height)))


def _pane(body: RenderableType, title: str, focused: bool) -> Panel:
    return Panel(body, title=f"[bold]{title}[/bold]", border_style="cyan" if focused else "blue")


def _sessions(state: DashboardState, height: int) -> tuple[Panel, Panel]:
    view = state.view()
    rows = []
    for entry in state.sessions:
        marker = "*" if entry.session_id in state.active_sessions else " "
        stamp = entry.modified.astimezone().strftime("%m/%d %H:%M") if entry.modified else ""
        rows.append((f"{marker} {stamp}", entry.display_title()))
    left = _pane(_list_table(rows, view.list_index, height, view.focus is Focus.LIST), "Sessions", view.focus is Focus.LIST)

    items = state.visible_transcript()
    lines = [
        Text.assemble((f"{item.kind.value:<5}", KIND_STYLES.get(item.kind, "")), " ", item.text.replace("\n", " "))
        for item in items
    ]
    title = "Transcript"
    if state.loaded_session:
        title = f"Transcript {state.loaded_session[:8]}"
        current = state._current_subagent()
        if current is not None:
            title += f" / agent {current.agent_id}"
        elif state.subagents:
            title += f" ({len(state.subagents)} subagents)"
    if state.transcript_skipped:
        title += f" [{state.transcript_skipped} skipped]"
    if state.follow:
        title += " [follow]"
    right = _pane(_lines(lines, view.detail_index, height), title, view.focus is Focus.DETAIL)
    return left, right


def _teams(state: DashboardState, height: int) -> tuple[Panel, Panel]:
    view = state.view()
    rows = [(team.display_name(), f"{len(team.config.members)} members") for team in state.teams]
    left = _pane(_list_table(rows, view.list_index, height, view.focus is Focus.LIST), "Teams", view.focus is Focus.LIST)

    team = state.selected_team()
    detail = state.team_detail if team is not None and state.team_detail and state.team_detail.team_id == team.dir_name else None
    parts: list[RenderableType] = []
    if team is not None:
        if team.config.description:
            parts.append(Text(team.config.description, style="italic"))
        member_rows = []
        for member in team.config.members:
            status = detail.statuses.get(member.name) if detail else None
            lead = " (lead)" if team.config.is_lead(member) else ""
            member_rows.append((f"{status.icon if status else '   '} {member.name}{lead}", member.agent_type or ""))
        parts.append(_list_table(member_rows, view.detail_index, max(height // 3, 3), view.focus is Focus.DETAIL))
        if detail is not None:
            parts.append(Text("Tasks", style="bold"))
            for task in detail.tasks:
                blocked = " (blocked)" if task.is_blocked else ""
                parts.append(Text(f"{task.status.icon} #{task.id} {task.subject} [{task.owner or '-'}]{blocked}"))
            member = state.selected_member()
            if member is not None:
                parts.append(Text(f"Inbox: {member}", style="bold"))
                for message in detail.inboxes.get(member, [])[: max(height // 3, 3)]:
                    parts.append(Text(f"{message.display_time()} {message.sender}: {message.display_text()}"))
    right = _pane(Group(*parts), "Team", view.focus is Focus.DETAIL)
    return left, right


def _todos(state: DashboardState, height: int) -> tuple[Panel, Panel]:
    view = state.view()
    rows = [(todo.display_name(), str(len(todo.items))) for todo in state.todos]
    left = _pane(_list_table(rows, view.list_index, height, view.focus is Focus.LIST), "Todos", view.focus is Focus.LIST)
    todo = state.selected_todo()
    lines = [Text(f"{item.icon} {item.display_text()}") for item in (todo.items if todo else [])]
    right = _pane(_lines(lines, view.detail_index, height), "Items", view.focus is Focus.DETAIL)
    return left, right


def _git(state: DashboardState, height: int) -> tuple[Panel, Panel]:
    view = state.view()
    if state.browsing:
        return _files(state, height)
    snapshot = state.git
    if snapshot is not None and not snapshot.available:
        body: RenderableType = Text("Not a git repository", style="dim")
    else:
        rows = [(entry.status, entry.section.value, entry.path) for entry in (snapshot.files() if snapshot else [])]
        body = _list_table(rows, view.list_index, height, view.focus is Focus.LIST)
    title = f"Git ({snapshot.branch})" if snapshot is not None and snapshot.branch else "Git"
    left = _pane(body, title, view.focus is Focus.LIST)
    lines = [Text(line.text, style=DIFF_STYLES[line.kind]) for line in state.diff]
    right = _pane(_lines(lines, view.detail_index, height), "Diff", view.focus is Focus.DETAIL)
    return left, right


def _files(state: DashboardState, height: int) -> tuple[Panel, Panel]:
    view = state.view()
    if state.file_entries:
        rows = []
        for entry in state.file_entries:
            marker = ("v " if entry.path in state.expanded else "> ") if entry.is_dir else "  "
            rows.append(("  " * entry.depth + marker + entry.name,))
        body: RenderableType = _list_table(rows, view.list_index, height, view.focus is Focus.LIST)
    else:
        body = Text("No files", style="dim")
    left = _pane(body, "Files", view.focus is Focus.LIST)

    content = state.file_content
    if content is None:
        right = _pane(Text("Select a file", style="dim"), "Content", view.focus is Focus.DETAIL)
        return left, right
    placeholder = content.placeholder()
    if placeholder is not None:
        lines = [Text(placeholder, style="dim")]
    else:
        lines = [Text(line.text, style=MARKDOWN_STYLES[line.kind]) for line in content.lines]
    right = _pane(_lines(lines, view.detail_index, height), content.path.name, view.focus is Focus.DETAIL)
    return left, right


def _plans(state: DashboardState, height: int) -> tuple[Panel, Panel]:
    view = state.view()
    rows = [(plan.title,) for plan in state.plans]
    left = _pane(_list_table(rows, view.list_index, height, view.focus is Focus.LIST), "Plans", view.focus is Focus.LIST)
    plan = state.selected_plan()
    lines = [Text(line.text, style=MARKDOWN_STYLES[line.kind]) for line in (plan.lines if plan else [])]
    right = _pane(_lines(lines, view.detail_index, height), plan.display_name() if plan else "Plan", view.focus is Focus.DETAIL)
    return left, right


def _integration(state: DashboardState, tab: Tab, height: int) -> tuple[Panel, Panel]:
    view = state.view()
    integration = state.integrations[tab.integration_id]
    if integration.error and not integration.issues:
        body: RenderableType = Text(integration.error, style="red")
    elif not integration.loaded:
        body = Text("Loading...", style="dim")
    else:
        rows = [(issue.key, issue.state, issue.title) for issue in integration.issues]
        body = _list_table(rows, view.list_index, height, view.focus is Focus.LIST)
    left = _pane(body, tab.title, view.focus is Focus.LIST)

    issue = state.selected_issue(tab.integration_id)
    parts: list[RenderableType] = []
    if issue is not None:
        parts.append(Text(f"{issue.key} {issue.title}", style="bold"))
        if issue.url:
            parts.append(Text(issue.url, style="underline blue"))
        for name, value in issue.extra.items():
            if value:
                parts.append(Text(f"{name}: {value}", style="dim"))
        if issue.labels:
            parts.append(Text("Labels: " + ", ".join(issue.labels), style="dim"))
        body_lines = [Text(line) for line in issue.body.splitlines()]
        parts.append(_lines(body_lines, view.detail_index, max(height - len(parts), 1)))
    right = _pane(Group(*parts), "Details  [p] spawn worker", view.focus is Focus.DETAIL)
    return left, right


def _processes(state: DashboardState, height: int) -> tuple[Panel, Panel]:
    view = state.view()
    now = time.time()
    rows = [
        (worker.label, describe_state(worker.state), f"{int(worker.elapsed(now))}s")
        for worker in state.supervisor.workers
    ]
    left = _pane(_list_table(rows, view.list_index, height, view.focus is Focus.LIST), "Workers", view.focus is Focus.LIST)
    worker = state.selected_worker()
    lines: list[Text] = []
    if worker is not None:
        lines = [Text(item.render()) for item in worker.parsed_output]
        lines.extend(Text(line, style="red") for line in list(worker.error_lines)[-20:])
    title = f"Output {worker.title}" if worker is not None and worker.title else "Output"
    if worker is not None and worker.captured_session_id:
        title += "  [s] open session"
    right = _pane(_lines(lines, view.detail_index, height), title, view.focus is Focus.DETAIL)
    return left, right


def _tab_bar(state: DashboardState) -> Text:
    bar = Text()
    for index, tab in enumerate(state.tabs):
        style = "bold reverse" if index == state.active_tab else "dim"
        bar.append(f" {index + 1}:{tab.title} ", style=style)
        bar.append(" ")
    return bar


def _status_bar(state: DashboardState) -> Text:
    if state.status is not None:
        return Text(state.status.message, style="bold red" if state.status.error else "yellow")
    hint = "[?] help  [q] quit"
    if state.watcher_degraded:
        return Text(f"watcher degraded  {hint}", style="red")
    return Text(hint, style="dim italic")


def build_dashboard(state: DashboardState, height: int = 40) -> Layout:
    layout = Layout()
    layout.split_column(
        Layout(_tab_bar(state), name="tabs", size=1),
        Layout(name="main"),
        Layout(_status_bar(state), name="status", size=1),
    )
    if state.show_help:
        layout["main"].update(Panel(Text(HELP_TEXT), title="[bold]Keys[/bold]", border_style="green"))
        return layout

    tab = state.tab
    rows = max(height - 4, 3)
    if tab is None:
        layout["main"].update(Panel(Text("All tabs are disabled", style="dim")))
        return layout
    if tab.kind is TabKind.SESSIONS:
        left, right = _sessions(state, rows)
    elif tab.kind is TabKind.TEAMS:
        left, right = _teams(state, rows)
    elif tab.kind is TabKind.TODOS:
        left, right = _todos(state, rows)
    elif tab.kind is TabKind.GIT:
        left, right = _git(state, rows)
    elif tab.kind is TabKind.PLANS:
        left, right = _plans(state, rows)
    elif tab.kind is TabKind.INTEGRATION:
        left, right = _integration(state, tab, rows)
    else:
        left, right = _processes(state, rows)
    layout["main"].split_row(Layout(left, name="list", ratio=2), Layout(right, name="detail", ratio=3))
    return layout


__all__ = ["build_dashboard"]
