"""Rich console rendering of keep-alive events."""

from __future__ import annotations

from datetime import datetime

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .events import Event

_KIND_ICON = {
    "success": "✅",
    "connection_refused": "❌",
    "timeout": "⏰",
    "http_error": "⚠️",
    "other_error": "❌",
}


def _local_time(iso: str | None) -> str:
    if not iso:
        return "never"
    return datetime.fromisoformat(iso).astimezone().strftime("%Y-%m-%d %H:%M:%S")


class ConsoleReporter:
    """Event sink that pretty-prints to the terminal."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def __call__(self, event: Event) -> None:
        handler = getattr(self, f"_on_{event.kind.value}", None)
        if handler:
            handler(event)

    def _on_round_start(self, event: Event) -> None:
        self.console.print(
            f"\n🔄 [bold][{_local_time(event.timestamp)}][/bold] "
            f"Checking {len(event.data.get('urls', []))} site(s)..."
        )

    def _on_probe_result(self, event: Event) -> None:
        d = event.data
        icon = _KIND_ICON.get(d["kind"], "❔")
        if d["kind"] in ("success", "http_error"):
            detail = f"{d['status_code']} - {d['status_text']}"
        else:
            detail = d["message"]
        style = "green" if d["ok"] else "red"
        self.console.print(f"{icon} [{style}]{d['url']}[/{style}]: {detail}")

    def _on_health_check(self, event: Event) -> None:
        items = event.data.get("items")
        if items is not None:
            self.console.print(f"   📚 Fics available: {items}", style="dim")

    def _on_fallback_attempt(self, event: Event) -> None:
        self.console.print(f"   🔄 Trying alternate protocol: {event.data['url']}", style="dim")

    def _on_fallback(self, event: Event) -> None:
        d = event.data
        if d["ok"]:
            self.console.print(f"   ✅ Alternate protocol works: {d['status_code']}", style="green")
        else:
            self.console.print("   ❌ Alternate protocol failed too", style="red")

    def _on_target_added(self, event: Event) -> None:
        self.console.print(f"   📝 Now tracking: {event.data['url']}", style="cyan")

    def _on_round_summary(self, event: Event) -> None:
        d = event.data
        self.console.print(
            f"📊 Done. Successful: {d['successful_requests']}/{d['total_requests']}"
        )

    def _on_round_skipped(self, event: Event) -> None:
        self.console.print(
            f"⏭️  Skipped {event.data['source']} round (another round in progress)",
            style="yellow",
        )

    def _on_alert(self, event: Event) -> None:
        d = event.data
        self.console.print(
            f"🔔 Notification sent ({d['level']}): success rate {d['success_rate']}%, "
            f"{d['consecutive_failures']} consecutive failures",
            style="yellow",
        )

    def _on_stats_snapshot(self, event: Event) -> None:
        d = event.data
        table = Table.grid(padding=(0, 2))
        table.add_row("🕐 Uptime", d["uptime"])
        table.add_row("📊 Total requests", str(d["total_requests"]))
        table.add_row("✅ Successful", str(d["successful_requests"]))
        table.add_row("❌ Failed", str(d["failed_requests"]))
        table.add_row("📈 Success rate", f"{d['success_rate']}%")
        table.add_row("⏰ Last check", _local_time(d["last_check"]))
        title = "Final statistics" if d.get("final") else "Statistics"
        self.console.print(Panel.fit(table, title=title, border_style="blue"))
