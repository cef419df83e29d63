"""Flask CLI commands for Debt-It."""

from __future__ import annotations

from pathlib import Path

import click


def init_app(app) -> None:
    """Register CLI commands on the Flask app."""

    # Imported here to avoid circular imports at module import time
    from .extensions import get_store
    from .services.debts import simulate
    from .services.reports import payoff_chart_png, payoff_label, render_plan_report
    from .services.transfer import (
        ImportFailed,
        export_json,
        export_schedule_csv,
        parse_import,
    )

    @app.cli.command("debtit-schedule")
    def debtit_schedule() -> None:
        """Print the payoff summary for the stored plan."""

        state = get_store().load_state()
        result = simulate(state.debts, state.settings)
        currency = state.settings.currency
        click.echo(f"Strategy: {state.settings.strategy.value}")
        click.echo(f"Estimated payoff: {payoff_label(result, state.settings.horizon_months)}")
        click.echo(f"Total interest: {result.total_interest:.2f} {currency}")
        click.echo(f"Total paid: {result.total_paid:.2f} {currency}")

    @app.cli.command("debtit-report")
    def debtit_report() -> None:
        """Print the printable payoff plan."""

        store = get_store()
        state = store.load_state()
        click.echo(
            render_plan_report(
                result=simulate(state.debts, state.settings),
                debts=state.debts,
                settings=state.settings,
                profile=store.load_profile(),
                max_rows=app.config["DEBTIT_CONFIG"].REPORT_ROWS,
            ),
            nl=False,
        )

    @app.cli.command("debtit-export")
    @click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
    def debtit_export(path: Path) -> None:
        """Write the plan and profile to a JSON export file."""

        store = get_store()
        path.write_text(
            export_json(profile=store.load_profile(), state=store.load_state()),
            encoding="utf-8",
        )
        click.echo(f"Export written: {path}")

    @app.cli.command("debtit-import")
    @click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
    def debtit_import(path: Path) -> None:
        """Replace the stored plan and profile with a JSON export file."""

        store = get_store()
        try:
            profile, state = parse_import(
                path.read_text(encoding="utf-8"), current_profile=store.load_profile()
            )
        except ImportFailed as exc:
            raise click.ClickException(str(exc)) from exc
        store.save_profile(profile)
        store.save_state(state)
        click.echo(f"Imported {len(state.debts)} debts.")

    @app.cli.command("debtit-schedule-csv")
    @click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
    def debtit_schedule_csv(path: Path) -> None:
        """Write the full month-by-month schedule to CSV."""

        state = get_store().load_state()
        result = simulate(state.debts, state.settings)
        export_schedule_csv(result=result, debts=state.debts, output_path=path)
        click.echo(f"Schedule written: {path}")

    @app.cli.command("debtit-chart")
    @click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
    def debtit_chart(path: Path) -> None:
        """Render the remaining-balance chart to a PNG file."""

        state = get_store().load_state()
        result = simulate(state.debts, state.settings)
        payoff_chart_png(result, output_path=path, currency=state.settings.currency)
        click.echo(f"Chart written: {path}")
