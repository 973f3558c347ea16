"""
Mechanic Shop Interactive Terminal

A numbered-menu REPL over the shop workflows. Every field prompt loops
until the value is valid; typing ``cancel`` (or Ctrl+C / Ctrl+D) at any
prompt drops the current operation and returns to the menu without
writing anything. Rich library for formatted output.

Run with:
    mechanic-shop

Or as a module:
    python -m interfaces.cli.terminal
"""

import logging
from typing import Any, Callable, Sequence

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from core.record_store import RecordStore, StoreError
from shop.bills import BillPrinter
from shop.closures import ClosureWorkflow
from shop.errors import (
    ExistenceConflict,
    NotFoundError,
    ShopError,
    ValidationError,
)
from shop.models import ClosedRequest, Customer, ServiceRequest
from shop.ownership import OwnershipResolver
from shop.registrar import EntityKind, EntityRegistrar
from shop.reports import ReportQueries, ReportResult
from shop.self_test import SelfTest
from shop.service_requests import RequestRevision, ServiceRequestWorkflow
from shop.validation import (
    CAR_LIMITS,
    CUSTOMER_LIMITS,
    MECHANIC_LIMITS,
    parse_customer_id,
    require_int,
    require_positive_int,
    require_service_date,
    require_text,
    require_year,
)

logger = logging.getLogger("shop.cli")

# Errors a prompt answers by asking again
_RETRYABLE = (ValidationError, ExistenceConflict, NotFoundError)


class _Cancelled(Exception):
    """Operator abandoned the current operation."""


# ---------------------------------------------------------------------------
# ShopTerminal
# ---------------------------------------------------------------------------

class ShopTerminal:
    """Interactive menu loop for the shop.

    Args:
        store:     The open RecordStore. The terminal never closes it.
        config:    ShopConfig (report thresholds, bill settings, prompt).
        console:   Rich console to print to (tests pass one backed by a buffer).
        input_fn:  Replacement for input(); must raise EOFError when exhausted.
    """

    def __init__(
        self,
        store: RecordStore,
        config,
        console: Console | None = None,
        input_fn: Callable[[str], str] | None = None,
    ):
        self.store = store
        self.config = config
        self.console = console or Console()
        self._input = input_fn or input
        self.registrar = EntityRegistrar(store)
        self.ownership = OwnershipResolver(store)
        self._running = False

    # -----------------------------------------------------------------------
    # Main loop
    # -----------------------------------------------------------------------

    def run(self):
        """Print the banner and serve the menu until exit or end of input."""
        self._print_banner()
        self._running = True
        while self._running:
            self._print_menu()
            try:
                line = self._input(self.config.terminal.prompt)
            except KeyboardInterrupt:
                self.console.print("\n[dim]Use 11 or quit to exit.[/dim]")
                continue
            except EOFError:
                break

            line = line.strip()
            if not line:
                continue
            self._dispatch(line)

        self.console.print("[dim]Goodbye.[/dim]")

    def _dispatch(self, line: str):
        """Route a menu choice to its handler."""
        cmd = line.split(maxsplit=1)[0].lower()

        handlers = {
            "1": self._cmd_add_customer,
            "2": self._cmd_add_mechanic,
            "3": self._cmd_add_car,
            "4": self._cmd_service_request,
            "5": self._cmd_close_request,
            "6": self._cmd_report_bills,
            "7": self._cmd_report_many_cars,
            "8": self._cmd_report_old_cars,
            "9": self._cmd_report_top_models,
            "10": self._cmd_report_total_bill,
            "11": self._cmd_quit,
            "bill": self._cmd_bill,
            "test": self._cmd_test,
            "config": self._cmd_config,
            "reload": self._cmd_reload,
            "help": self._cmd_help,
            "quit": self._cmd_quit,
            "exit": self._cmd_quit,
        }

        handler = handlers.get(cmd)
        if handler is None:
            self.console.print(f"[red]Unknown choice: {escape(cmd)}[/red]  (try help)")
            return

        try:
            handler()
        except _Cancelled:
            self.console.print("[dim]Cancelled. Nothing was saved.[/dim]")
        except ShopError as e:
            logger.warning("Menu %s rejected: %s", cmd, e)
            self.console.print(f"[red]{escape(str(e))}[/red]")
        except StoreError as e:
            logger.error("Menu %s failed: %s", cmd, e)
            self.console.print(f"[bold red]Database error:[/bold red] {escape(str(e))}")

    # -----------------------------------------------------------------------
    # Prompts
    # -----------------------------------------------------------------------

    def _read(self, label: str) -> str:
        try:
            raw = self._input(f"  {label}: ")
        except (KeyboardInterrupt, EOFError):
            raise _Cancelled()
        if raw.strip().lower() == "cancel":
            raise _Cancelled()
        return raw

    def _ask(self, label: str, check: Callable[[str], Any], allow_blank: bool = False) -> Any:
        """Prompt until check(raw) succeeds and return what it returns.

        With allow_blank an empty answer returns None without calling check.
        """
        while True:
            raw = self._read(label)
            if allow_blank and not raw.strip():
                return None
            try:
                return check(raw)
            except _RETRYABLE as e:
                self.console.print(f"  [red]{escape(str(e))}[/red]")

    def _field(self, label: str, check: Callable[[str], Any]) -> str:
        """Prompt until the value passes check, then return the trimmed text."""
        def accept(raw: str) -> str:
            check(raw)
            return raw.strip()
        return self._ask(label, accept)

    def _text(self, label: str, field: str, limits: dict[str, tuple[int, int]]) -> str:
        low, high = limits[field]
        return self._ask(label, lambda raw: require_text(field, raw, low, high))

    def _new_key(self, label: str, kind: EntityKind) -> str:
        """Prompt for a key that isn't in use yet."""
        def check(raw: str) -> str:
            if self.registrar.exists(kind, raw):
                raise ExistenceConflict(kind.value, raw.strip())
            return raw.strip()
        return self._ask(label, check)

    def _yes(self, label: str) -> bool:
        def check(raw: str) -> bool:
            answer = raw.strip().lower()
            if answer in ("y", "yes"):
                return True
            if answer in ("n", "no"):
                return False
            raise ValidationError("answer", "type y or n")
        return self._ask(f"{label} (y/n)", check)

    # -----------------------------------------------------------------------
    # Rendering
    # -----------------------------------------------------------------------

    def _print_rows(self, title: str, columns: Sequence[str], rows: Sequence[Sequence[Any]],
                    numbered: bool = False):
        """Print rows as a table; numbered menus get a 1-based ordinal column."""
        table = Table(title=title, min_width=len(title) + 4)
        if numbered:
            table.add_column("#", style="bold cyan", justify="right")
        for column in columns:
            table.add_column(column)
        for position, row in enumerate(rows, start=1):
            cells = [escape(str(value)) for value in row]
            if numbered:
                cells.insert(0, str(position))
            table.add_row(*cells)
        self.console.print(table)

    def _print_records(self, title: str, records: Sequence, numbered: bool = False):
        columns = records[0].COLUMNS if records else ()
        self._print_rows(title, columns, [r.values() for r in records], numbered)

    def _print_report(self, report: ReportResult):
        if not report.rows:
            self.console.print(f"[dim]{escape(report.title)}: no rows.[/dim]")
            return
        self._print_rows(f"{report.title} ({len(report)})", report.columns, report.rows)

    def _print_menu(self):
        reports = self.config.reports
        lines = [
            " 1. Add customer",
            " 2. Add mechanic",
            " 3. Add car",
            " 4. Insert service request",
            " 5. Close service request",
            f" 6. Customers with bill <= {reports.bill_threshold}",
            f" 7. Customers with more than {reports.min_cars} cars",
            f" 8. Cars before {reports.year_before} under {reports.odometer_under} miles",
            " 9. K most serviced car models",
            "10. Customers by total bill",
            "11. Exit",
        ]
        self.console.print(Panel(
            "\n".join(lines),
            title="Main Menu",
            subtitle="bill | test | config | reload | help",
            border_style="cyan",
        ))

    # -----------------------------------------------------------------------
    # 1-3: Registration
    # -----------------------------------------------------------------------

    def _cmd_add_customer(self):
        """1: Register a customer."""
        customer_id = self._new_key("Customer id", EntityKind.CUSTOMER)
        fname = self._text("First name", "fname", CUSTOMER_LIMITS)
        lname = self._text("Last name", "lname", CUSTOMER_LIMITS)
        phone = self._text("Phone", "phone", CUSTOMER_LIMITS)
        address = self._text("Address", "address", CUSTOMER_LIMITS)
        reg = self.registrar.register_customer(customer_id, fname, lname, phone, address)
        self._print_registration(reg, "Customer")

    def _cmd_add_mechanic(self):
        """2: Register a mechanic."""
        mechanic_id = self._new_key("Mechanic id", EntityKind.MECHANIC)
        fname = self._text("First name", "fname", MECHANIC_LIMITS)
        lname = self._text("Last name", "lname", MECHANIC_LIMITS)
        experience = self._ask(
            "Years of experience", lambda raw: require_int("experience", raw, minimum=0),
        )
        reg = self.registrar.register_mechanic(mechanic_id, fname, lname, experience)
        self._print_registration(reg, "Mechanic")

    def _cmd_add_car(self):
        """3: Register a car, optionally linking it to an owner."""
        vin = self._new_key("VIN", EntityKind.CAR)
        make = self._text("Make", "make", CAR_LIMITS)
        model = self._text("Model", "model", CAR_LIMITS)
        year = self._ask("Year (4 digits)", require_year)
        owner = self._ask("Owner customer id (blank to skip)", self._existing_customer,
                          allow_blank=True)

        with self.store.transaction():
            reg = self.registrar.register_car(vin, make, model, year)
            if owner is not None:
                self.ownership.link_ownership(owner, reg.record.vin)
        self._print_registration(reg, "Car")
        if owner is not None:
            self.console.print(f"[green]Linked to customer {owner}.[/green]")

    def _existing_customer(self, raw: str) -> int:
        customer_id = parse_customer_id(raw)
        if not self.registrar.exists(EntityKind.CUSTOMER, customer_id):
            raise NotFoundError(f"customer {customer_id} does not exist")
        return customer_id

    def _print_registration(self, reg, label: str):
        if reg.existed:
            self.console.print(f"[yellow]{label} already on file, nothing added:[/yellow]")
        else:
            self.console.print(f"[green]{label} added:[/green]")
        self._print_records(label, [reg.record])

    # -----------------------------------------------------------------------
    # 4: Service request intake
    # -----------------------------------------------------------------------

    def _cmd_service_request(self):
        """4: Open a new service request or revise an open one."""
        flow = ServiceRequestWorkflow(self.store, self.registrar, self.ownership)
        try:
            self._intake_customer(flow)
            self._intake_vehicle(flow)
            self._ask("Re-enter the VIN to confirm", flow.confirm_vin)
            self._intake_action(flow)
        except _Cancelled:
            flow.abort()
            raise

    def _intake_customer(self, flow: ServiceRequestWorkflow):
        matches = self._ask("Customer last name", flow.find_customers)
        if matches:
            self._print_records("Matching customers", matches, numbered=True)
            customer = self._ask(
                "Select customer", lambda raw: flow.select_customer(matches, raw),
            )
        else:
            self.console.print(
                "[yellow]No customer with that last name. Registering a new one.[/yellow]"
            )
            customer = self._ask(
                "Customer id", lambda raw: self._register_intake_customer(flow, raw),
            )
        self.console.print(f"Customer: [bold]{escape(customer.display_name)}[/bold] (#{customer.id})")

    def _register_intake_customer(self, flow: ServiceRequestWorkflow, raw: str) -> Customer:
        if self.registrar.exists(EntityKind.CUSTOMER, raw):
            raise ExistenceConflict("customer", raw.strip())
        fname = self._text("First name", "fname", CUSTOMER_LIMITS)
        lname = self._text("Last name", "lname", CUSTOMER_LIMITS)
        phone = self._text("Phone", "phone", CUSTOMER_LIMITS)
        address = self._text("Address", "address", CUSTOMER_LIMITS)
        return flow.register_customer(raw, fname, lname, phone, address)

    def _intake_vehicle(self, flow: ServiceRequestWorkflow):
        new_vehicle = self._yes("Is this a new vehicle?")
        if not new_vehicle:
            owned = flow.owned_vehicles()
            if owned:
                self._print_records("Customer's vehicles", owned, numbered=True)
                car = self._ask("Select vehicle", lambda raw: flow.select_vehicle(owned, raw))
                self.console.print(f"Vehicle: [bold]{escape(car.display_name)}[/bold]")
                return
            self.console.print(
                "[yellow]This customer has no vehicles on file. Add the vehicle now.[/yellow]"
            )

        vin = self._new_key("VIN", EntityKind.CAR)
        make = self._text("Make", "make", CAR_LIMITS)
        model = self._text("Model", "model", CAR_LIMITS)
        year = self._ask("Year (4 digits)", require_year)
        car = flow.register_vehicle(vin, make, model, year)
        self.console.print(f"Vehicle added: [bold]{escape(car.display_name)}[/bold]")

    def _intake_action(self, flow: ServiceRequestWorkflow):
        open_requests = flow.open_requests()
        if open_requests:
            self._print_records("Open service requests", open_requests)
        else:
            self.console.print("[dim]No open service requests for this vehicle.[/dim]")

        while True:
            update = self._yes("Update an open request instead of opening a new one?")
            if not update:
                self._create_request(flow)
                return
            if not open_requests:
                self.console.print("  [red]There is no open request to update.[/red]")
                continue
            self._update_request(flow, open_requests)
            return

    def _request_fields(self) -> tuple[str, str, str]:
        odometer = self._field("Odometer", lambda raw: require_int("odometer", raw, minimum=0))
        service_date = self._field("Date (mm/dd/yyyy)", require_service_date)
        complaint = self._field("Complaint", lambda raw: require_text("complaint", raw))
        return odometer, service_date, complaint

    def _update_request(self, flow: ServiceRequestWorkflow, open_requests: list[ServiceRequest]):
        open_rids = {sr.rid for sr in open_requests}

        def check(raw: str) -> int:
            rid = require_int("rid", raw)
            if rid not in open_rids:
                raise ValidationError("rid", f"{rid} is not one of the open requests listed")
            return rid

        rid = self._ask("Service request id", check)
        odometer, service_date, complaint = self._request_fields()
        revision: RequestRevision = flow.update_request(rid, odometer, service_date, complaint)
        self.console.print("[green]Service request updated.[/green]")
        self._print_records("Before", [revision.before])
        self._print_records("After", [revision.after])

    def _create_request(self, flow: ServiceRequestWorkflow):
        def check(raw: str) -> int:
            rid = require_int("rid", raw)
            if not flow.rid_available(rid):
                raise ExistenceConflict("service request", rid)
            return rid

        rid = self._ask("New service request id", check)
        odometer, service_date, complaint = self._request_fields()
        created = flow.create_request(rid, odometer, service_date, complaint)
        self.console.print("[green]Service request opened.[/green]")
        self._print_records("Service request", [created])

    # -----------------------------------------------------------------------
    # 5: Closure
    # -----------------------------------------------------------------------

    def _cmd_close_request(self):
        """5: Close a service request with a comment and bill."""
        flow = ClosureWorkflow(self.store)
        try:
            self._close(flow)
        except _Cancelled:
            flow.abort()
            raise

    def _close(self, flow: ClosureWorkflow):
        history: list[ClosedRequest] = self._ask("Mechanic id", flow.identify_mechanic)
        if history:
            self._print_records(f"Closed by mechanic {flow.mid}", history)
        else:
            self.console.print(f"[dim]No closed requests for mechanic {flow.mid} yet.[/dim]")

        pending = flow.open_requests()
        if pending:
            self._print_records("Open service requests", pending)
        else:
            self.console.print("[dim]There are no open service requests.[/dim]")

        request = self._ask("Service request id", flow.select_request)
        self._print_records("Current service request", [request])

        current = self._ask("Closed request id", flow.select_closed_record)
        if current is not None:
            self._print_records("Updating closed request", [current])
        else:
            self.console.print("[dim]New closed request.[/dim]")

        comment = self._read("Comment").strip()
        bill = self._ask("Bill", lambda raw: require_int("bill", raw, minimum=0))

        result = flow.close(comment, bill)
        verb = "closed" if result.created else "updated"
        self.console.print(f"[green]Service request {flow.rid} {verb}.[/green]")
        self._print_records("Closed request", [result.after])
        self.console.print(f"[dim]Type 'bill' and {flow.wid} to print the bill.[/dim]")

    # -----------------------------------------------------------------------
    # 6-10: Reports
    # -----------------------------------------------------------------------

    def _reports(self) -> ReportQueries:
        # Built per call so reload takes effect immediately
        return ReportQueries(self.store, self.config.reports)

    def _cmd_report_bills(self):
        self._print_report(self._reports().bills_under_threshold())

    def _cmd_report_many_cars(self):
        self._print_report(self._reports().customers_with_many_cars())

    def _cmd_report_old_cars(self):
        self._print_report(self._reports().old_low_mileage_cars())

    def _cmd_report_top_models(self):
        k = self._ask("How many models (K)", lambda raw: require_positive_int("k", raw))
        self._print_report(self._reports().top_serviced_models(k))

    def _cmd_report_total_bill(self):
        self._print_report(self._reports().customers_by_total_bill())

    # -----------------------------------------------------------------------
    # Extras
    # -----------------------------------------------------------------------

    def _cmd_bill(self):
        """bill: Print a closed request's bill to PDF."""
        wid = self._ask("Closed request id", lambda raw: require_int("wid", raw))
        bills = self.config.bills
        printer = BillPrinter(
            self.store,
            output_dir=bills.output_dir,
            shop_name=bills.shop_name,
            currency=bills.currency,
        )
        path = printer.generate(wid)
        if path is None:
            self.console.print(f"[red]No closed request {wid}.[/red]")
            return
        self.console.print(f"[green]Bill written to[/green] {escape(path)}")

    def _cmd_test(self):
        """test: Run the self-test suite."""
        self.console.print("[dim]Running self-tests...[/dim]")
        results = SelfTest(config=self.config, store=self.store).run_all()

        table = Table(title=f"Self-Test Results ({results['passed']}/{results['total']} passed)")
        table.add_column("Test", style="bold")
        table.add_column("Result")
        table.add_column("Message")
        table.add_column("Time", justify="right")

        for r in results["results"]:
            style = "green" if r["passed"] else "red"
            icon = "PASS" if r["passed"] else "FAIL"
            table.add_row(
                r["name"],
                f"[{style}]{icon}[/{style}]",
                escape(r["message"][:80]),
                f"{r['duration_ms']:.0f}ms",
            )

        self.console.print(table)
        self.console.print(f"[dim]Total: {results['duration_ms']:.0f}ms[/dim]")

    def _cmd_config(self):
        """config: Show current configuration."""
        table = Table(title="Configuration")
        table.add_column("Section", style="bold")
        table.add_column("Key")
        table.add_column("Value")

        for section, values in sorted(self.config.to_dict().items()):
            if isinstance(values, dict):
                for key, val in sorted(values.items()):
                    table.add_row(section, key, escape(str(val)))
            else:
                table.add_row(section, "-", escape(str(values)))

        self.console.print(table)
        self.console.print(f"[dim]Loaded from {escape(str(self.config.path))}[/dim]")

    def _cmd_reload(self):
        """reload: Re-read settings from disk."""
        changes = self.config.reload()
        if not changes:
            self.console.print("[dim]Configuration reloaded, no changes.[/dim]")
            return
        table = Table(title="Configuration changes")
        table.add_column("Key", style="bold")
        table.add_column("Old")
        table.add_column("New")
        for key, change in sorted(changes.items()):
            table.add_row(key, escape(str(change["old"])), escape(str(change["new"])))
        self.console.print(table)

    def _cmd_help(self):
        """help: Show all menu choices."""
        table = Table(title="Commands")
        table.add_column("Choice", style="bold cyan")
        table.add_column("Description")

        commands = [
            ("1", "Add a customer"),
            ("2", "Add a mechanic"),
            ("3", "Add a car and optionally link its owner"),
            ("4", "Open a service request, or revise an open one"),
            ("5", "Close a service request with a comment and bill"),
            ("6-10", "Reports"),
            ("bill", "Write a closed request's bill to PDF"),
            ("test", "Run the self-test suite"),
            ("config", "Show current configuration"),
            ("reload", "Re-read config/settings.toml"),
            ("help", "Show this help table"),
            ("11, quit, exit", "Exit"),
        ]
        for cmd, desc in commands:
            table.add_row(cmd, desc)

        self.console.print(table)
        self.console.print("[dim]Type 'cancel' at any prompt to abandon the current step.[/dim]")

    def _cmd_quit(self):
        """11, quit or exit: Leave the menu loop."""
        self._running = False

    # -----------------------------------------------------------------------
    # Startup banner
    # -----------------------------------------------------------------------

    def _print_banner(self):
        counts = self.store.table_counts()
        lines = [
            f"[bold]{escape(self.config.bills.shop_name)}[/bold]",
            "",
            f"Database: {escape(self.store.db_path)}",
            f"Customers: {counts['customer']}  |  Cars: {counts['car']}  |  "
            f"Mechanics: {counts['mechanic']}  |  Open requests: "
            f"{counts['service_request'] - counts['closed_request']}",
            "",
            "[dim]Type help for commands.[/dim]",
        ]
        self.console.print(Panel("\n".join(lines), border_style="bright_blue", padding=(1, 2)))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    from shop_launcher import main

    raise SystemExit(main())
