#!/usr/bin/env python3
"""
Till — CLI entry point.

Usage examples:
  python main.py check                              # Verify the store API and till state
  python main.py session open 50000                 # Open the cash drawer with a float
  python main.py session close 182500 --notes "..." # Close with the counted amount
  python main.py watch                              # Close the till automatically at closing time

  python main.py sell 12:2 "galaxy case" --discount-fixed 500 --received 20000
  python main.py sell IPH-13 --payment card --customer 7

  python main.py po show 4                          # Ordered vs received per line
  python main.py po receive 4 --item 31:6           # Partial delivery
  python main.py po receive 4 --all                 # Everything still outstanding
  python main.py po cancel 4
"""
import logging
import sys
from datetime import datetime
from typing import Optional

import click

from config import Config
from models.purchase_order import ReceiveItem
from models.sale import Discount, Payment
from pos.cash_session import CashSessionGate
from pos.catalog import ProductCatalog
from pos.checkout import CheckoutOrchestrator, SaleDraft
from pos.client import StoreApiClient
from pos.errors import PreconditionFailed, RemoteServiceError
from pos.purchase_orders import ReceivingWorkflow, status_after
from pos.scheduler import AutoCloseScheduler


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )


def _fail(exc: Exception) -> None:
    if isinstance(exc, PreconditionFailed):
        click.echo(f"✗ [{exc.reason}] {exc.description}", err=True)
    else:
        click.echo(f"✗ Store API error: {exc}", err=True)
    sys.exit(1)


def _fmt_ts(ts: Optional[int]) -> str:
    if not ts:
        return "—"
    return datetime.fromtimestamp(ts).strftime("%d/%m/%Y %H:%M")


def _pair(value: str, label: str) -> tuple[str, int]:
    """Split "ref:qty" (qty defaults to 1)."""
    ref, _, qty = value.rpartition(":") if ":" in value else (value, "", "1")
    try:
        return ref, int(qty)
    except ValueError:
        raise click.BadParameter(f"'{value}' is not {label}:QTY")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--api-url", default=None, help="Store API base URL (default: POS_API_URL)")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, api_url: Optional[str]) -> None:
    """Till — cash drawer, checkout and purchase order receiving."""
    _setup_logging(verbose)
    config = Config()
    if api_url:
        config.api_base_url = api_url
    api = StoreApiClient.from_config(config)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["api"] = api
    ctx.obj["gate"] = CashSessionGate(api, config.store_settings())


# --------------------------------------------------------------------
# check command
# --------------------------------------------------------------------

@cli.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Verify that the store API is reachable and report the till state."""
    config: Config = ctx.obj["config"]
    api: StoreApiClient = ctx.obj["api"]
    gate: CashSessionGate = ctx.obj["gate"]

    click.echo("\n=== Till Setup Check ===\n")
    click.echo(f"  Store API:     {config.api_base_url}")
    try:
        gate.refresh()
        products = api.products()
    except RemoteServiceError as e:
        click.echo(f"  Reachable:     ✗ ({e})")
        click.echo("  → Check POS_API_URL in your environment")
        sys.exit(1)
    click.echo("  Reachable:     ✓")
    click.echo(f"  Products:      {len(products)} ({sum(1 for p in products if p.sellable)} sellable)")
    session = gate.session
    if session:
        click.echo(f"  Cash session:  ✓ #{session.id} open since {_fmt_ts(session.opened_at)}")
    else:
        click.echo("  Cash session:  ✗ closed — selling is blocked")

    settings = gate.settings
    auto = f"at {settings.closing_time}" if settings.auto_cash_close else "disabled"
    click.echo(f"  Auto-close:    {auto}")
    click.echo()


# --------------------------------------------------------------------
# session commands
# --------------------------------------------------------------------

@cli.group()
def session() -> None:
    """Open, close and inspect the cash drawer session."""


@session.command("status")
@click.pass_context
def session_status(ctx: click.Context) -> None:
    """Show the current cash session."""
    gate: CashSessionGate = ctx.obj["gate"]
    try:
        current = gate.refresh()
    except RemoteServiceError as e:
        _fail(e)
    if current is None:
        click.echo("Till is closed — selling is blocked.")
        return
    click.echo(f"Session #{current.id} open since {_fmt_ts(current.opened_at)}")
    click.echo(f"  Opening amount: {current.opening_amount:.2f}")
    if current.notes:
        click.echo(f"  Notes:          {current.notes}")


@session.command("open")
@click.argument("opening_amount", type=float)
@click.option("--notes", default=None, help="Free-text note")
@click.pass_context
def session_open(ctx: click.Context, opening_amount: float, notes: Optional[str]) -> None:
    """Open a cash session with OPENING_AMOUNT in the drawer."""
    gate: CashSessionGate = ctx.obj["gate"]
    try:
        gate.refresh()
        opened = gate.open_session(opening_amount, notes)
    except (PreconditionFailed, RemoteServiceError) as e:
        _fail(e)
    click.echo(f"✓ Session #{opened.id} opened with {opened.opening_amount:.2f}")


@session.command("close")
@click.argument("closing_amount", type=float)
@click.option("--notes", default=None, help="Free-text note")
@click.pass_context
def session_close(ctx: click.Context, closing_amount: float, notes: Optional[str]) -> None:
    """Close the open session with the CLOSING_AMOUNT counted in the drawer."""
    gate: CashSessionGate = ctx.obj["gate"]
    try:
        gate.refresh()
        closed = gate.close_session(closing_amount, notes)
    except (PreconditionFailed, RemoteServiceError) as e:
        _fail(e)
    click.echo(f"✓ Session #{closed.id} closed")
    click.echo(f"  Counted:     {closed.closing_amount or 0:.2f}")
    if closed.expected_amount is not None:
        click.echo(f"  Expected:    {closed.expected_amount:.2f}")
    if closed.discrepancy is not None:
        label = "surplus" if closed.discrepancy > 0 else ("shortage" if closed.discrepancy < 0 else "balanced")
        click.echo(f"  Discrepancy: {closed.discrepancy:+.2f} ({label})")


@session.command("history")
@click.option("--limit", default=30, show_default=True, help="Number of sessions")
@click.pass_context
def session_history(ctx: click.Context, limit: int) -> None:
    """List recent cash sessions."""
    gate: CashSessionGate = ctx.obj["gate"]
    try:
        sessions = gate.history(limit)
    except RemoteServiceError as e:
        _fail(e)
    for s in sessions:
        state = "open" if s.is_open else "closed"
        diff = f"{s.discrepancy:+.2f}" if s.discrepancy is not None else "—"
        click.echo(
            f"  #{s.id:<5} {_fmt_ts(s.opened_at)}  →  {_fmt_ts(s.closed_at):<16}  "
            f"{state:<6}  opening={s.opening_amount:.2f}  discrepancy={diff}"
        )


# --------------------------------------------------------------------
# settings command
# --------------------------------------------------------------------

@cli.command()
@click.option("--closing-time", default=None, help="Store closing time, HH:MM")
@click.option("--auto-close/--no-auto-close", default=None, help="Close the till automatically at closing time")
@click.pass_context
def settings(ctx: click.Context, closing_time: Optional[str], auto_close: Optional[bool]) -> None:
    """Show or change the store hours used by the automatic cash close."""
    config: Config = ctx.obj["config"]
    updates = {}
    if closing_time is not None:
        updates["closing_time"] = closing_time
    if auto_close is not None:
        updates["auto_cash_close"] = auto_close
    if updates:
        path = config.save_store_settings(**updates)
        click.echo(f"✓ Saved to {path}")
    store = config.store_settings()
    click.echo(f"  Closing time: {config.closing_time}")
    click.echo(f"  Auto-close:   {'enabled' if store.auto_cash_close else 'disabled'}")


# --------------------------------------------------------------------
# watch command
# --------------------------------------------------------------------

@cli.command()
@click.option(
    "--interval", "-i", default=None, type=int,
    help="Seconds between checks, at most 60 (default: AUTO_CLOSE_CHECK_INTERVAL or 30)",
)
@click.pass_context
def watch(ctx: click.Context, interval: Optional[int]) -> None:
    """
    Close the cash session automatically at the store's closing time.

    \b
    The gate is re-checked every interval; the close fires once, on the
    closing minute, and only while a session is open.
    """
    config: Config = ctx.obj["config"]
    gate: CashSessionGate = ctx.obj["gate"]
    try:
        gate.refresh()
    except RemoteServiceError as e:
        _fail(e)

    interval = interval if interval is not None else config.auto_close_check_seconds
    click.echo(
        f"\n  Store API:     {config.api_base_url}\n"
        f"  Closing time:  {gate.settings.closing_time or '(not set)'}\n"
        f"  Auto-close:    {'enabled' if gate.settings.auto_cash_close else 'disabled'}\n"
        f"  Session:       {'#%d open' % gate.session.id if gate.session else 'closed'}\n"
    )
    click.echo("  Press Ctrl-C to stop.\n")

    reported: set[int] = set()

    def _follow(session) -> None:  # noqa: ANN001
        if session is not None:
            click.echo(f"  Session #{session.id} is open")
            return
        closed = gate.last_closed
        if closed is not None and closed.id not in reported:
            reported.add(closed.id)
            click.echo(f"  ✓ Session #{closed.id} closed automatically")
        else:
            click.echo("  Session no longer open")

    gate.add_listener(_follow)
    AutoCloseScheduler(gate, interval=interval).run()


# --------------------------------------------------------------------
# sell command
# --------------------------------------------------------------------

@cli.command()
@click.argument("items", nargs=-1, required=True)
@click.option("--discount-percent", type=float, default=None, help="Percentage off the subtotal")
@click.option("--discount-fixed", type=float, default=None, help="Amount off the subtotal")
@click.option("--payment", type=click.Choice(["cash", "card", "mobile"]), default="cash", show_default=True)
@click.option("--received", default=None, help="Cash handed over (default: exact total)")
@click.option("--customer", type=int, default=None, help="Customer id")
@click.option("--dry-run", is_flag=True, help="Show totals without committing the sale")
@click.pass_context
def sell(
    ctx: click.Context,
    items: tuple[str, ...],
    discount_percent: Optional[float],
    discount_fixed: Optional[float],
    payment: str,
    received: Optional[str],
    customer: Optional[int],
    dry_run: bool,
) -> None:
    """
    Ring up a sale. Each ITEM is a product id, SKU or name, optionally
    followed by :QTY.
    """
    config: Config = ctx.obj["config"]
    api: StoreApiClient = ctx.obj["api"]
    gate: CashSessionGate = ctx.obj["gate"]

    catalog = ProductCatalog(api=api, fuzzy_threshold=config.product_search_threshold)
    try:
        gate.refresh()
        catalog.refresh()
    except RemoteServiceError as e:
        _fail(e)

    draft = SaleDraft(customer_id=customer)
    cart = draft.cart
    for item in items:
        ref, qty = _pair(item, "PRODUCT")
        product = catalog.resolve(ref)
        if product is None or not product.sellable:
            click.echo(f"✗ No sellable product matches '{ref}'", err=True)
            sys.exit(1)
        line = cart.add(product)
        if line is not None and qty != 1:
            cart.set_quantity(product.id, line.quantity + qty - 1)

    if discount_percent is not None:
        draft.discount = Discount(type="percent", value=discount_percent)
    else:
        draft.discount = Discount(type="fixed", value=discount_fixed or 0)
    discount = draft.discount

    checkout = CheckoutOrchestrator(api, gate)
    checkout.add_refresh_hook("products", catalog.refresh)
    checkout.add_refresh_hook("recent sales", lambda: api.sales(config.recent_sales_limit))
    checkout.add_refresh_hook("dashboard stats", api.dashboard_stats)

    pay = draft.payment = Payment(method=payment)
    if payment == "cash":
        pay.amount_received = received if received is not None else checkout.quote(cart, discount).total
    quote = checkout.quote(cart, discount, pay)

    click.echo()
    for line in cart:
        click.echo(f"  {line.name:<32} {line.quantity:>3} × {line.unit_price:>10.2f} = {line.line_total:>10.2f}")
    click.echo(f"  {'Subtotal':<52} {quote.subtotal:>10.2f}")
    if quote.discount_amount:
        click.echo(f"  {'Discount':<52} {-quote.discount_amount:>10.2f}")
    click.echo(f"  {'Total':<52} {quote.total:>10.2f}")
    if quote.change is not None:
        click.echo(f"  {'Change':<52} {quote.change:>10.2f}")
    click.echo()

    blockers = checkout.blockers(cart, discount, pay)
    for b in blockers:
        click.echo(f"  ✗ [{b.reason}] {b.description}")
    if dry_run:
        return

    try:
        result = checkout.checkout(draft)
    except (PreconditionFailed, RemoteServiceError) as e:
        _fail(e)
    click.echo(f"✓ Sale #{result.sale.id} recorded — total {result.sale.total:.2f}")
    if result.quote.change:
        click.echo(f"  Change due: {result.quote.change:.2f}")
    for name in result.refresh_failures:
        click.echo(f"  ⚠ Could not refresh {name}")


# --------------------------------------------------------------------
# purchase order commands
# --------------------------------------------------------------------

@cli.group()
@click.pass_context
def po(ctx: click.Context) -> None:
    """Place, receive and cancel supplier purchase orders."""
    ctx.obj["workflow"] = ReceivingWorkflow(ctx.obj["api"])


def _echo_order(order) -> None:  # noqa: ANN001
    click.echo(f"\n  {order.order_number or '#%d' % order.id}  {order.supplier_name or ''}")
    click.echo(f"  Status: {order.status}   Total: {order.total_amount:.2f}\n")
    for l in order.lines:
        click.echo(
            f"  line {l.id:<5} {(l.product_name or 'product %d' % l.product_id):<32} "
            f"{l.quantity_received:>4}/{l.quantity_ordered:<4} received"
        )
    click.echo()


@po.command("list")
@click.option("--status", default=None,
              type=click.Choice(["pending", "partially_received", "received", "cancelled"]))
@click.pass_context
def po_list(ctx: click.Context, status: Optional[str]) -> None:
    """List purchase orders."""
    workflow: ReceivingWorkflow = ctx.obj["workflow"]
    try:
        orders = workflow.list_orders(status)
    except RemoteServiceError as e:
        _fail(e)
    for o in orders:
        click.echo(f"  {o.order_number or o.id:<14} {o.supplier_name or '':<28} {o.status:<20} {o.total_amount:>10.2f}")


@po.command("show")
@click.argument("order_id", type=int)
@click.pass_context
def po_show(ctx: click.Context, order_id: int) -> None:
    """Show ordered vs received quantities for ORDER_ID."""
    workflow: ReceivingWorkflow = ctx.obj["workflow"]
    try:
        _echo_order(workflow.get(order_id))
    except RemoteServiceError as e:
        _fail(e)


@po.command("receive")
@click.argument("order_id", type=int)
@click.option("--item", "items", multiple=True, help="LINE_ID:QTY delivered (repeatable)")
@click.option("--all", "receive_all", is_flag=True, help="Receive everything outstanding")
@click.option("--dry-run", is_flag=True, help="Show the resulting status without receiving")
@click.pass_context
def po_receive(ctx: click.Context, order_id: int, items: tuple[str, ...], receive_all: bool, dry_run: bool) -> None:
    """Record a delivery against ORDER_ID."""
    workflow: ReceivingWorkflow = ctx.obj["workflow"]
    if not items and not receive_all:
        raise click.UsageError("Give at least one --item LINE_ID:QTY or --all")
    offers = []
    for item in items:
        line_id, qty = _pair(item, "LINE_ID")
        if not line_id.isdigit():
            raise click.BadParameter(f"'{item}' is not LINE_ID:QTY")
        offers.append(ReceiveItem(item_id=int(line_id), quantity_received=qty))
    try:
        order = workflow.get(order_id)
        if receive_all:
            offers = workflow.remaining_items(order)
        if dry_run:
            click.echo(f"Status after receipt would be: {status_after(order, offers)}")
            return
        _echo_order(workflow.receive(order_id, offers))
    except (PreconditionFailed, RemoteServiceError) as e:
        _fail(e)


@po.command("cancel")
@click.argument("order_id", type=int)
@click.pass_context
def po_cancel(ctx: click.Context, order_id: int) -> None:
    """Cancel ORDER_ID (only while nothing has been received)."""
    workflow: ReceivingWorkflow = ctx.obj["workflow"]
    try:
        order = workflow.cancel(order_id)
    except (PreconditionFailed, RemoteServiceError) as e:
        _fail(e)
    click.echo(f"✓ {order.order_number or order_id} cancelled")


@po.command("create")
@click.option("--supplier", type=int, required=True, help="Supplier id")
@click.option("--item", "items", multiple=True, required=True, help="PRODUCT_ID:QTY (repeatable)")
@click.option("--notes", default=None)
@click.pass_context
def po_create(ctx: click.Context, supplier: int, items: tuple[str, ...], notes: Optional[str]) -> None:
    """Place a purchase order with a supplier."""
    workflow: ReceivingWorkflow = ctx.obj["workflow"]
    lines = []
    for item in items:
        product_id, qty = _pair(item, "PRODUCT_ID")
        if not product_id.isdigit():
            raise click.BadParameter(f"'{item}' is not PRODUCT_ID:QTY")
        lines.append({"product_id": int(product_id), "quantity_ordered": qty})
    try:
        order = workflow.place_order(supplier, lines, notes)
    except (PreconditionFailed, RemoteServiceError) as e:
        _fail(e)
    click.echo(f"✓ {order.order_number or order.id} placed — total {order.total_amount:.2f}")


if __name__ == "__main__":
    cli()
