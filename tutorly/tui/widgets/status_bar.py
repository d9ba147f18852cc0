"""Bottom bar showing mode, lens, pacing and request state."""

from __future__ import annotations

from textual.reactive import reactive
from textual.widget import Widget
from rich.text import Text


class StatusBar(Widget):
    """Single-line status bar with tutoring state and connection status."""

    mode: reactive[str] = reactive("Standard")
    lens: reactive[str] = reactive("")
    pacing: reactive[str] = reactive("")
    pacing_state: reactive[str] = reactive("")
    model: reactive[str] = reactive("—")
    status: reactive[str] = reactive("ready")
    stuck_available: reactive[bool] = reactive(False)

    def render(self) -> Text:
        status_colors = {
            "ready": "green",
            "streaming": "yellow",
            "offline": "red",
            "error": "red bold",
        }
        color = status_colors.get(self.status, "white")

        bar = Text()
        bar.append(f" {self.mode} ", style="bold")
        if self.lens:
            bar.append(" │ ", style="dim")
            bar.append(f"Lens: {self.lens}", style="magenta")
        if self.pacing:
            bar.append(" │ ", style="dim")
            pacing_style = {
                "paused": "dim",
                "expired": "bold red",
                "low": "bold yellow",
            }.get(self.pacing_state, "cyan")
            bar.append(self.pacing, style=pacing_style)
        bar.append(" │ ", style="dim")
        bar.append(self.model, style="cyan")
        bar.append(" │ ", style="dim")
        bar.append(
            "/stuck ready" if self.stuck_available else "/stuck cooling down",
            style="dim" if not self.stuck_available else "green",
        )
        bar.append(" │ ", style="dim")
        bar.append(f"● {self.status}", style=color)
        return bar
