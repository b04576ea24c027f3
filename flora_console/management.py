"""
Management commands for checking the Flora backend from a shell.

All commands live under ``flask flora``.
"""
import click
from flask.cli import with_appcontext

from .errors import FloraApiError
from .services.flora_client import get_flora_client
from .services.recipe_service import RecipeService
from .services.variance import classify_variance, format_variance
from .services.variance_history_service import VarianceHistoryService


@click.group('flora')
def flora_group():
    """Inspect the Flora IM and Flora Fields plugins."""


@flora_group.command('ping')
@with_appcontext
def ping_command():
    """Check that the Flora API accepts our credentials"""
    client = get_flora_client()
    if client.ping():
        click.echo(f"✅ Flora API reachable at {client.base_url}")
        return
    click.echo(f"❌ Flora API not reachable at {client.base_url}")
    raise SystemExit(1)


@flora_group.command('recipes')
@click.option('--product-id', type=int, default=None, help='Only recipes available for this product')
@with_appcontext
def recipes_command(product_id):
    """List active recipes"""
    service = RecipeService()
    try:
        recipes = service.get_available_recipes(product_id) if product_id else service.get_recipes()
    except FloraApiError as exc:
        click.echo(f"❌ Could not load recipes: {exc.message}")
        raise SystemExit(1)

    if not recipes:
        click.echo("ℹ️  No recipes found.")
        return
    for recipe in recipes:
        click.echo(f"{recipe.id:>5}  {recipe.label}  [{recipe.status}]")


@flora_group.command('reasons')
@with_appcontext
def reasons_command():
    """List variance reason tags"""
    reasons = VarianceHistoryService().get_variance_reasons()
    if not reasons:
        click.echo("ℹ️  No variance reasons found.")
        return
    for reason in reasons:
        marker = " " if reason.is_active else "x"
        click.echo(f"[{marker}] {reason.code:<20} {reason.name} ({reason.impact_type})")


@flora_group.command('history')
@click.argument('product_id', type=int)
@with_appcontext
def history_command(product_id):
    """Show conversion history for a product"""
    history = VarianceHistoryService().get_product_conversion_history(product_id)
    if not history:
        click.echo(f"ℹ️  No conversions recorded for product {product_id}.")
        return
    for record in history:
        variance = record.variance_percentage or 0.0
        level = classify_variance(variance)
        actual = "-" if record.actual_output is None else f"{record.actual_output:g}"
        click.echo(
            f"#{record.id:<6} {record.status:<10} in={record.input_quantity:g} "
            f"expected={record.expected_output:g} actual={actual} "
            f"variance={format_variance(variance)} ({level.label})"
        )


@flora_group.command('stats')
@click.argument('product_id', type=int)
@with_appcontext
def stats_command(product_id):
    """Summarise completed conversions for a product"""
    stats = VarianceHistoryService().get_product_conversion_stats(product_id)
    click.echo(f"Conversions:      {stats.total_conversions}")
    click.echo(f"Average variance: {format_variance(stats.average_variance)}")
    click.echo(f"Total input:      {stats.total_input:g}")
    click.echo(f"Total output:     {stats.total_output:g}")
    click.echo(f"Efficiency:       {stats.efficiency_rate:.1f}%")


def register_commands(app):
    """Register CLI commands"""
    app.cli.add_command(flora_group)
