"""Money / percentage entry modal screen."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from textual.app import ComposeResult
from textual.containers import Container
from textual.events import Key
from textual.screen import ModalScreen
from textual.widgets import Static


class AmountModal(ModalScreen[Decimal | None]):
    """Prompt for a non-negative amount, optionally bounded above."""

    CSS = """
    AmountModal {
        align: center middle;
        background: $background 60%;
    }

    #amount-dialog {
        width: 56;
        height: auto;
        border: round $secondary;
        background: $panel;
        padding: 1 2;
    }

    #amount-title {
        text-style: bold;
        margin-bottom: 1;
        color: white;
    }

    #amount-prompt {
        color: white;
        margin-bottom: 1;
    }

    #amount-value {
        border: heavy $secondary;
        padding: 0 1;
        color: white;
        margin-bottom: 1;
    }

    #amount-error {
        color: #ffb3b3;
        margin-bottom: 1;
    }

    #amount-help {
        color: #dddddd;
    }
    """

    def __init__(
        self,
        title: str,
        prompt: str,
        initial: Decimal | None = None,
        maximum: Decimal | None = None,
        allow_zero: bool = False,
    ) -> None:
        super().__init__()
        self.title_text = title
        self.prompt_text = prompt
        self.maximum = maximum
        self.allow_zero = allow_zero
        self.value = "" if initial is None else str(initial)
        self.error = ""

    def compose(self) -> ComposeResult:
        with Container(id="amount-dialog"):
            yield Static(self.title_text, id="amount-title")
            yield Static(self.prompt_text, id="amount-prompt")
            yield Static(id="amount-value")
            yield Static(id="amount-error")
            yield Static("Digits and '.' only. Enter confirm. Backspace delete. Esc cancel.", id="amount-help")

    def on_mount(self) -> None:
        self._refresh_content()

    def on_key(self, event: Key) -> None:
        if event.key in {"escape", "ctrl+c"}:
            self.dismiss(None)
            event.stop()
            return

        if event.key == "enter":
            self._confirm()
            event.stop()
            return

        if event.key == "backspace":
            if self.value:
                self.value = self.value[:-1]
                self.error = ""
                self._refresh_content()
            event.stop()
            return

        char = event.character if event.is_printable else None
        if char and (char.isdigit() or (char == "." and "." not in self.value)):
            if len(self.value) < 12:
                self.value += char
            self.error = ""
            self._refresh_content()
            event.stop()

    def parsed_value(self) -> Decimal | None:
        """Validate the typed value; sets `error` and returns None when invalid."""
        if not self.value:
            self.error = "An amount is required."
            return None
        try:
            amount = Decimal(self.value)
        except InvalidOperation:
            self.error = "Not a valid number."
            return None
        if amount < 0 or (amount == 0 and not self.allow_zero):
            self.error = "Amount must be greater than zero."
            return None
        if self.maximum is not None and amount > self.maximum:
            self.error = f"Amount must not exceed {self.maximum}."
            return None
        return amount

    def _confirm(self) -> None:
        amount = self.parsed_value()
        if amount is None:
            self._refresh_content()
            return
        self.dismiss(amount)

    def _refresh_content(self) -> None:
        value_widget = self.query_one("#amount-value", Static)
        error_widget = self.query_one("#amount-error", Static)
        value_widget.update(self.value or "")
        error_widget.update(self.error or "")
