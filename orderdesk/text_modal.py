"""Free-text entry modal screen."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Container
from textual.events import Key
from textual.screen import ModalScreen
from textual.widgets import Static


class TextModal(ModalScreen[str | None]):
    """Prompt for one line of text such as a customer name or address."""

    CSS = """
    TextModal {
        align: center middle;
        background: $background 60%;
    }

    #text-dialog {
        width: 64;
        height: auto;
        border: round $secondary;
        background: $panel;
        padding: 1 2;
    }

    #text-title {
        text-style: bold;
        margin-bottom: 1;
        color: white;
    }

    #text-value {
        border: heavy $secondary;
        padding: 0 1;
        color: white;
        margin-bottom: 1;
    }

    #text-error {
        color: #ffb3b3;
    }
    """

    def __init__(self, title: str, initial: str = "", required: bool = False) -> None:
        super().__init__()
        self.title_text = title
        self.required = required
        self.value = initial
        self.error = ""

    def compose(self) -> ComposeResult:
        with Container(id="text-dialog"):
            yield Static(self.title_text, id="text-title")
            yield Static(id="text-value")
            yield Static(id="text-error")
            yield Static("Type text. Enter confirm. Esc cancel.", id="text-help")

    def on_mount(self) -> None:
        self._refresh_content()

    def on_key(self, event: Key) -> None:
        if event.key == "escape":
            self.dismiss(None)
        elif event.key == "enter":
            normalized = self.value.strip()
            if self.required and not normalized:
                self.error = "This field is required."
                self._refresh_content()
            else:
                self.dismiss(normalized)
        elif event.key == "backspace":
            self.value = self.value[:-1]
            self._refresh_content()
        elif event.is_printable and event.character:
            self.value += event.character
            self.error = ""
            self._refresh_content()
        # Swallow every key so the app underneath never sees typing.
        event.stop()

    def _refresh_content(self) -> None:
        self.query_one("#text-value", Static).update(f"{self.value}|")
        self.query_one("#text-error", Static).update(self.error)
