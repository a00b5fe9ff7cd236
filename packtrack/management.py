"""
Management commands for deployment and maintenance
"""
import sys

import click
from flask.cli import with_appcontext

from .extensions import db


@click.command('create-tables')
@with_appcontext
def create_tables_command():
    """Create database tables (local development only)"""
    try:
        print("🔄 Creating database tables...")
        from . import models  # noqa: F401
        db.create_all()
        print('✅ Database tables created')
    except Exception as e:
        print(f'❌ Table creation failed: {str(e)}')
        db.session.rollback()
        raise


@click.command('check-lot-sync')
@click.option('--material-id', type=int, help='Check a single material')
@with_appcontext
def check_lot_sync_command(material_id):
    """Report materials whose stock differs from the sum of their active lots"""
    from .services.lot_ledger import find_lot_sync_violations, validate_material_lot_sync

    if material_id is not None:
        is_valid, error, stock_qty, lot_total = validate_material_lot_sync(material_id)
        if is_valid:
            print(f'✅ Material {material_id}: stock {stock_qty} matches lots {lot_total}')
            return
        print(f'❌ Material {material_id}: {error}')
        sys.exit(1)

    violations = find_lot_sync_violations()
    if not violations:
        print('✅ All materials in sync with their lots')
        return

    for violation in violations:
        print(f"❌ Material {violation['material_id']}: {violation['error']}")
    print(f'⚠️  {len(violations)} material(s) out of sync')
    sys.exit(1)


@click.command('stock-alerts')
@with_appcontext
def stock_alerts_command():
    """List materials and resale products below minimum or reorder point"""
    from .services.stock_alerts import LEVEL_CRITICAL, stock_alerts

    alerts = stock_alerts()
    if not alerts:
        print('✅ No stock alerts')
        return

    for alert in alerts:
        marker = '🔴' if alert.level == LEVEL_CRITICAL else '🟡'
        print(
            f"{marker} [{alert.level}] {alert.item_kind} {alert.item_id} {alert.name}: "
            f"{alert.stock_qty:g} {alert.unit} (min {alert.min_stock:g}, reorder {alert.reorder_point:g})"
        )


@click.command('cost-divergences')
@with_appcontext
def cost_divergences_command():
    """List materials whose oldest lot cost diverges from the administrative cost"""
    from .services.cost_reconciler import pending_divergences

    alerts = pending_divergences()
    if not alerts:
        print('✅ No cost divergences')
        return
    for alert in alerts:
        print(
            f"⚠️  Material {alert.material_id} {alert.material_name}: admin {alert.admin_cost:.4f} "
            f"vs lot {alert.lot_cost:.4f} ({alert.pct_diff:.2%})"
        )


def register_commands(app):
    """Register CLI commands"""
    app.cli.add_command(create_tables_command)

    # Inventory maintenance
    app.cli.add_command(check_lot_sync_command)
    app.cli.add_command(stock_alerts_command)
    app.cli.add_command(cost_divergences_command)
