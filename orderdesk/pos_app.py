"""Main Textual app class."""

from __future__ import annotations

import logging
from decimal import Decimal
from pathlib import Path
from typing import Callable

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.events import Key
from textual.reactive import reactive
from textual.widgets import Header, Static

from orderdesk.amount_modal import AmountModal
from orderdesk.backup import BackupService
from orderdesk.cart import Cart
from orderdesk.config import EXPORT_DIR
from orderdesk.errors import PosError
from orderdesk.lifecycle import OrderManager
from orderdesk.models import CustomerInfo, LineItem, Order, OrderType, PaymentMethod, Product
from orderdesk.printer import check_printer_dependencies, print_receipt
from orderdesk.receipt import format_money
from orderdesk.rendering import format_cart_line, format_order_row, format_report, format_stats, format_table_cell
from orderdesk.reports import export_filename, period_reports, write_orders_csv
from orderdesk.text_modal import TextModal

logger = logging.getLogger(__name__)

_PAYMENT_CYCLE = [PaymentMethod.CASH, PaymentMethod.CARD, PaymentMethod.UPI]


class PosApp(App):
    """A Textual console for taking orders, seating tables and settling bills."""

    TITLE = "Order Desk"
    SUB_TITLE = "Tables / Orders"

    CSS = """
    Screen {
        layout: vertical;
    }

    #main-layout {
        height: 1fr;
    }

    #left-pane {
        width: 3fr;
        border: round $primary;
        padding: 1;
    }

    #right-pane {
        width: 2fr;
        border: round $secondary;
        padding: 1;
    }

    #search-bar {
        border: heavy $secondary;
        padding: 0 1;
        margin-bottom: 1;
        height: 3;
    }

    #left-list {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
    }

    #right-list {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
    }

    #status-bar {
        height: 2;
        padding: 0 1;
    }

    .pane-title {
        text-style: bold;
        margin-bottom: 1;
    }
    """

    view = reactive("dashboard")
    input_state = reactive("normal")
    search_query = reactive("")
    selected_index = reactive(0)
    cart_selected_index = reactive(None)
    table_selected_index = reactive(0)
    open_selected_index = reactive(0)
    dashboard_focus = reactive("tables")

    BINDINGS = [
        ("tab", "switch_focus", "Switch pane"),
        ("up", "cycle(-1)", "Previous"),
        ("down", "cycle(1)", "Next"),
        ("enter", "confirm", "Select"),
        ("backspace", "backspace_query", "Delete query char"),
        ("escape", "back", "Back"),
        Binding("ctrl+s", "save_draft", "Save table order", priority=True),
        Binding("ctrl+b", "bill", "Bill", priority=True),
        ("ctrl+c", "cancel_active_mode", "Exit search"),
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(
        self,
        manager: OrderManager,
        backups: BackupService | None = None,
        export_dir: str | Path = EXPORT_DIR,
    ) -> None:
        super().__init__()
        self.manager = manager
        self.backups = backups
        self.export_dir = Path(export_dir)
        self.system_status = ""
        self.printer_ready = False
        self._reset_order_context()

    def _reset_order_context(self) -> None:
        self.cart = Cart()
        self.order_type = OrderType.TAKEAWAY
        self.table_number: int | None = None
        self.editing_order: Order | None = None
        self.discount_percent = Decimal(0)
        self.payment_method = PaymentMethod.CASH
        self.customer = CustomerInfo()

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="main-layout"):
            with Vertical(id="left-pane"):
                yield Static("Tables", id="left-title", classes="pane-title")
                yield Static(id="left-list")
            with Vertical(id="right-pane"):
                yield Static(id="search-bar")
                yield Static(id="right-list")
        yield Static(id="status-bar")

    def on_mount(self) -> None:
        ready, msg = check_printer_dependencies()
        self.printer_ready = ready
        self.system_status = msg
        if self.backups is not None:
            path = self._guard(self.backups.check_and_backup)
            if path is not None:
                self.system_status = f"Auto backup written: {path}"
        logger.info("console mounted printer_status=%r", msg)
        self._refresh_all()

    def _is_modal_active(self) -> bool:
        return isinstance(self.screen, (AmountModal, TextModal))

    def _guard(self, operation: Callable[..., object], *args: object, **kwargs: object) -> object | None:
        """Run a core operation, turning domain errors into a status line."""
        try:
            return operation(*args, **kwargs)
        except PosError as exc:
            self.system_status = f"Error: {exc}"
            logger.warning("operation %s failed: %s", getattr(operation, "__name__", operation), exc)
            return None

    def on_key(self, event: Key) -> None:
        if self._is_modal_active():
            return
        if not event.is_printable or not event.character or len(event.character) != 1:
            return

        char = event.character
        if self.view == "order" and self.input_state == "active":
            if char.isprintable():
                self.search_query += char
                self.selected_index = 0
                self._refresh_all()
                event.stop()
            return

        handler = {
            "dashboard": self._dashboard_key,
            "order": self._order_key,
            "reports": self._reports_key,
        }[self.view]
        if handler(char.lower()):
            self._refresh_all()
            event.stop()

    def _dashboard_key(self, key: str) -> bool:
        if key == "j":
            self.action_cycle(1)
        elif key == "k":
            self.action_cycle(-1)
        elif key == "o":
            self.action_confirm()
        elif key == "t":
            self._start_order(OrderType.TAKEAWAY)
        elif key == "v":
            self.push_screen(TextModal("Delivery address", required=True), self._start_delivery)
        elif key == "p":
            self._pay_selected_order()
        elif key == "c":
            order = self._selected_open_order()
            if order is not None and self._guard(self.manager.complete_incomplete_order, order.id):
                self.system_status = f"Order #{order.id} completed"
                self._after_order_change()
        elif key == "r":
            self._print_selected_order()
        elif key == "b":
            self._manual_backup()
        elif key == "l":
            if self._guard(self.manager.reload) is not None:
                self.system_status = "Reloaded orders and tables"
        elif key == "g":
            self.view = "reports"
        else:
            return False
        return True

    def _reports_key(self, key: str) -> bool:
        if key != "e":
            return False
        self._export_csv()
        return True

    def _order_key(self, key: str) -> bool:
        if key == "s" or key == "/":
            self.input_state = "active"
            self.search_query = ""
            self.selected_index = 0
        elif key == "j":
            self._move_cart_selection(1)
        elif key == "k":
            self._move_cart_selection(-1)
        elif key in {"+", "="}:
            line = self._selected_line()
            if line is not None:
                self._guard(self.cart.add_item, line.product.id, self.manager.catalog)
        elif key == "-":
            line = self._selected_line()
            if line is not None:
                self._guard(self.cart.remove_one_unit, line.product.id)
                self._clamp_cart_selection()
        elif key == "x":
            line = self._selected_line()
            if line is not None:
                self._guard(self.cart.remove_item, line.product.id)
                self._clamp_cart_selection()
        elif key == "%":
            self.push_screen(
                AmountModal("Discount", "Discount percent (0-100)", maximum=Decimal(100), allow_zero=True),
                self._set_discount,
            )
        elif key == "m":
            idx = _PAYMENT_CYCLE.index(self.payment_method)
            self.payment_method = _PAYMENT_CYCLE[(idx + 1) % len(_PAYMENT_CYCLE)]
        elif key == "n":
            self.push_screen(TextModal("Customer name", self.customer.name or ""), self._set_customer_name)
        else:
            return False
        return True

    def action_cancel_active_mode(self) -> None:
        if self._is_modal_active() or self.input_state == "normal":
            return
        self.input_state = "normal"
        self.search_query = ""
        self.selected_index = 0
        self._refresh_all()

    def action_back(self) -> None:
        if self._is_modal_active():
            return
        if self.input_state == "active":
            self.action_cancel_active_mode()
            return
        if self.view == "order":
            self._reset_order_context()
        if self.view != "dashboard":
            self.view = "dashboard"
            self._refresh_all()

    def action_cycle(self, delta: int) -> None:
        if self._is_modal_active() or self.view == "reports":
            return
        if self.view == "order":
            if self.input_state == "active":
                results = self._filtered_results()
                self.selected_index = (self.selected_index + delta) % len(results) if results else 0
            else:
                self._move_cart_selection(delta)
        elif self.dashboard_focus == "tables":
            total = len(self.manager.table_list())
            self.table_selected_index = (self.table_selected_index + delta) % total
        else:
            total = len(self._open_orders())
            self.open_selected_index = (self.open_selected_index + delta) % total if total else 0
        self._refresh_all()

    def action_confirm(self) -> None:
        if self._is_modal_active() or self.view == "reports":
            return
        if self.view == "order":
            if self.input_state != "active":
                return
            results = self._filtered_results()
            if results:
                line = self._guard(self.cart.add_item, results[self.selected_index].id, self.manager.catalog)
                if line is not None:
                    self.cart_selected_index = self._index_in_cart(results[self.selected_index].id)
            self._refresh_all()
            return

        if self.dashboard_focus == "tables":
            table = self.manager.table_list()[self.table_selected_index]
            self._open_table(table.number)
        else:
            self._pay_selected_order()
        self._refresh_all()

    def action_backspace_query(self) -> None:
        if self._is_modal_active() or self.input_state != "active" or not self.search_query:
            return
        self.search_query = self.search_query[:-1]
        self.selected_index = 0
        self._refresh_all()

    def action_save_draft(self) -> None:
        if self._is_modal_active() or self.view != "order":
            return
        if self.order_type is not OrderType.DINEIN or self.table_number is None:
            self.system_status = "Only dine-in orders can be saved unpaid"
            self._refresh_all()
            return
        order = self._guard(self.manager.save_table_order, self.table_number, self.cart.items)
        if order is not None:
            self.system_status = f"Saved order #{order.id} for table {self.table_number}"
            self.view = "dashboard"
            self._reset_order_context()
        self._refresh_all()

    def action_bill(self) -> None:
        if self._is_modal_active() or self.view != "order":
            return
        if self.cart.is_empty():
            self.system_status = "Add items before billing"
            self._refresh_all()
            return
        totals = self.cart.compute_totals(self.discount_percent)
        self.push_screen(
            AmountModal(
                "Payment",
                f"Total {format_money(totals.total)}; enter amount received",
                initial=totals.total,
                maximum=totals.total,
                allow_zero=totals.total == 0,
            ),
            self._finish_bill,
        )

    def _finish_bill(self, amount: Decimal | None) -> None:
        if amount is None:
            return
        order: Order | None
        if self.editing_order is not None and self.table_number is not None:
            saved = self._guard(self.manager.save_table_order, self.table_number, self.cart.items)
            order = None
            if saved is not None:
                order = self._guard(
                    self.manager.bill_order,
                    saved.id,
                    payer_amount=amount,
                    discount_percent=self.discount_percent,
                    payment_method=self.payment_method,
                    customer=self.customer,
                )
        else:
            order = self._guard(
                self.manager.create_order,
                self.order_type,
                self.cart.items,
                discount_percent=self.discount_percent,
                payment_method=self.payment_method,
                payer_amount=amount,
                customer=self.customer,
                table_number=self.table_number,
            )
        if order is not None:
            self.system_status = f"Order #{order.id} {order.status.value}"
            self._print_order(order)
            self.view = "dashboard"
            self._reset_order_context()
        self._refresh_all()

    def _start_order(self, order_type: OrderType, table_number: int | None = None) -> None:
        self._reset_order_context()
        self.order_type = order_type
        self.table_number = table_number
        self.view = "order"
        self.input_state = "normal"

    def _start_delivery(self, address: str | None) -> None:
        if not address:
            return
        self._start_order(OrderType.DELIVERY)
        self.customer = CustomerInfo(address=address)
        self._refresh_all()

    def _open_table(self, table_number: int) -> None:
        existing = self._guard(self.manager.open_table, table_number)
        self._start_order(OrderType.DINEIN, table_number)
        if isinstance(existing, Order):
            if existing.status.is_open and existing.amount_paid > 0:
                self.view = "dashboard"
                self.system_status = f"Table {table_number} order #{existing.id} is part-paid; press p to pay"
                return
            self.editing_order = existing
            self.cart = Cart(existing.items)
            self.discount_percent = existing.discount_percent

    def _set_discount(self, value: Decimal | None) -> None:
        if value is not None:
            self.discount_percent = value
        self._refresh_all()

    def _set_customer_name(self, value: str | None) -> None:
        if value is not None:
            self.customer = CustomerInfo(name=value or None, contact=self.customer.contact, address=self.customer.address)
        self._refresh_all()

    def _pay_selected_order(self) -> None:
        order = self._selected_open_order()
        if order is None:
            return
        self.push_screen(
            AmountModal(
                f"Payment for #{order.id}",
                f"Remaining {format_money(order.amount_remaining)}",
                initial=order.amount_remaining,
            ),
            lambda amount: self._finish_payment(order.id, amount),
        )

    def _finish_payment(self, order_id: int, amount: Decimal | None) -> None:
        if amount is None:
            return
        order = self._guard(self.manager.record_payment, order_id, amount)
        if isinstance(order, Order):
            self.system_status = (
                f"Order #{order.id} {order.status.value}, remaining {format_money(order.amount_remaining)}"
            )
            self._after_order_change()
        self._refresh_all()

    def _after_order_change(self) -> None:
        total = len(self._open_orders())
        if self.open_selected_index >= total:
            self.open_selected_index = max(0, total - 1)

    def _print_selected_order(self) -> None:
        order = self._selected_open_order()
        if order is not None:
            self._print_order(order)

    def _print_order(self, order: Order) -> None:
        if not self.printer_ready:
            return
        try:
            print_receipt(order)
        except Exception as exc:
            self.system_status = f"Order #{order.id} saved but print failed: {exc}"
            logger.warning("print failed order_id=%d error=%r", order.id, exc)

    def _manual_backup(self) -> None:
        if self.backups is None:
            self.system_status = "Backups are not configured"
            return
        path = self._guard(self.backups.perform_manual_backup)
        if path is not None:
            self.system_status = f"Backup written: {path}"

    def _export_csv(self) -> None:
        orders = self._guard(self.manager.completed_orders)
        if orders is None:
            return
        path = self._guard(write_orders_csv, orders, self.export_dir / export_filename(self.manager.clock()))
        if path is not None:
            self.system_status = f"Exported {len(orders)} completed orders to {path}"
            logger.info("exported %d orders to %s", len(orders), path)

    def _open_orders(self) -> list[Order]:
        tables_held = [table.current_order for table in self.manager.table_list() if table.current_order]
        incomplete = self._guard(self.manager.incomplete_orders) or []
        seen = {order.id for order in tables_held}
        return sorted(tables_held + [o for o in incomplete if o.id not in seen], key=lambda o: o.id)

    def _selected_open_order(self) -> Order | None:
        if self.dashboard_focus != "orders":
            table = self.manager.table_list()[self.table_selected_index]
            return table.current_order
        orders = self._open_orders()
        if not (0 <= self.open_selected_index < len(orders)):
            return None
        return orders[self.open_selected_index]

    def _filtered_results(self) -> list[Product]:
        return self.manager.catalog.search(self.search_query)

    def _index_in_cart(self, product_id: str) -> int | None:
        for idx, item in enumerate(self.cart.items):
            if item.product.id == product_id:
                return idx
        return None

    def _selected_line(self) -> LineItem | None:
        items = self.cart.items
        if self.cart_selected_index is None or not (0 <= self.cart_selected_index < len(items)):
            return None
        return items[self.cart_selected_index]

    def _clamp_cart_selection(self) -> None:
        count = len(self.cart.items)
        if count == 0:
            self.cart_selected_index = None
        elif self.cart_selected_index is not None and self.cart_selected_index >= count:
            self.cart_selected_index = count - 1

    def _move_cart_selection(self, delta: int) -> None:
        items = self.cart.items
        if not items:
            return
        if self.cart_selected_index is None:
            self.cart_selected_index = 0 if delta > 0 else len(items) - 1
        else:
            self.cart_selected_index = (self.cart_selected_index + delta) % len(items)

    def _visible_rows(self, widget: Static) -> int:
        height = widget.size.height
        if height <= 0:
            return 8
        return max(1, height)

    def _window_bounds(self, total: int, rows: int, selected: int | None) -> tuple[int, int]:
        if total <= 0:
            return (0, 0)

        rows = max(1, rows)
        if total <= rows:
            return (0, total)

        if selected is None:
            start = 0
        else:
            start = max(0, selected - rows // 2)
            start = min(start, total - rows)

        return (start, start + rows)

    def _render_window(self, widget: Static, rows: list[Text], selected: int | None, empty: str) -> None:
        if not rows:
            widget.update(empty)
            return
        start, end = self._window_bounds(len(rows), self._visible_rows(widget), selected)
        lines = Text()
        if start > 0:
            lines.append("⋮\n", style="dim")
        for idx in range(start, end):
            if idx > start:
                lines.append("\n")
            lines.append("➤ " if idx == selected else "  ")
            lines.append_text(rows[idx])
        if end < len(rows):
            lines.append("\n⋮", style="dim")
        widget.update(lines)

    def action_switch_focus(self) -> None:
        if self._is_modal_active():
            return
        if self.view == "order":
            self.action_cycle(1)
            return
        self.dashboard_focus = "orders" if self.dashboard_focus == "tables" else "tables"
        self._refresh_all()

    def _refresh_all(self) -> None:
        try:
            left_title = self.query_one("#left-title", Static)
            left = self.query_one("#left-list", Static)
            bar = self.query_one("#search-bar", Static)
            right = self.query_one("#right-list", Static)
            status = self.query_one("#status-bar", Static)
        except NoMatches:
            return

        if self.view == "dashboard":
            self._refresh_dashboard(left_title, left, bar, right)
        elif self.view == "reports":
            self._refresh_reports_view(left_title, left, bar, right)
        else:
            self._refresh_order_view(left_title, left, bar, right)
        status.update(self.system_status or "Ready")

    def _refresh_dashboard(self, left_title: Static, left: Static, bar: Static, right: Static) -> None:
        tables = self.manager.table_list()
        focus_tables = self.dashboard_focus == "tables"
        left_title.update("Tables" + (" *" if focus_tables else ""))
        self._render_window(
            left,
            [format_table_cell(table) for table in tables],
            self.table_selected_index if focus_tables else None,
            "(no tables)",
        )
        bar.update(
            "Open orders" + ("" if focus_tables else " *")
            + "\nEnter open/pay  t takeaway  v delivery  p pay  c complete  r print  b backup  g reports  l reload"
        )
        self._render_window(
            right,
            [format_order_row(order) for order in self._open_orders()],
            None if focus_tables else self.open_selected_index,
            "(no open orders)",
        )

    def _refresh_order_view(self, left_title: Static, left: Static, bar: Static, right: Static) -> None:
        totals = self.cart.compute_totals(self.discount_percent)
        heading = {
            OrderType.DINEIN: f"Table {self.table_number} order",
            OrderType.TAKEAWAY: "Takeaway order",
            OrderType.DELIVERY: "Delivery order",
        }[self.order_type]
        if self.editing_order is not None:
            heading += f" #{self.editing_order.id} (editing)"
        left_title.update(
            f"{heading}  subtotal {format_money(totals.subtotal)}  "
            f"discount {totals.discount_percent}%  total {format_money(totals.total)}  "
            f"[{self.payment_method.value}]"
        )
        self._render_window(
            left,
            [format_cart_line(item) for item in self.cart.items],
            self.cart_selected_index,
            "(cart is empty)",
        )

        if self.input_state == "normal":
            bar.update("s search  +/- qty  x drop  % discount  m method  n name\nCtrl+S save  Ctrl+B bill  Esc back")
            right.update("")
            return

        text = Text()
        text.append("Menu", style="bold #ffffff on #2f6db5")
        text.append(f": {self.search_query}")
        bar.update(text)
        results = self._filtered_results()
        if self.selected_index >= len(results):
            self.selected_index = 0
        self._render_window(
            right,
            [Text(f"{product.name}  {format_money(product.price)}") for product in results],
            self.selected_index,
            "No results",
        )

    def _refresh_reports_view(self, left_title: Static, left: Static, bar: Static, right: Static) -> None:
        left_title.update("Sales reports (completed orders)")
        orders = self._guard(self.manager.completed_orders)
        if orders is None:
            left.update("(reports unavailable)")
        else:
            reports = period_reports(orders, self.manager.clock())
            left.update(Text("\n\n").join(format_report(report) for report in reports))
        bar.update("e export completed orders to CSV\nEsc back")
        stats = self._guard(self.manager.store.stats)
        right.update(format_stats(stats) if stats is not None else "(stats unavailable)")
