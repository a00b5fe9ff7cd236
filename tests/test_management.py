from packtrack.models import db, Material


def test_check_lot_sync_all_clean(runner, app_context, make_material, add_lot):
    material = make_material()
    add_lot(material, 10, 2.0)

    result = runner.invoke(args=['check-lot-sync'])

    assert result.exit_code == 0
    assert 'All materials in sync' in result.output


def test_check_lot_sync_reports_drift(runner, app_context, make_material, add_lot):
    material = make_material(name='Cola PVA')
    add_lot(material, 10, 2.0)
    material = db.session.get(Material, material.id)
    material.stock_qty = 9.0
    db.session.commit()

    result = runner.invoke(args=['check-lot-sync'])

    assert result.exit_code == 1
    assert f'Material {material.id}' in result.output

    single = runner.invoke(args=['check-lot-sync', '--material-id', str(material.id)])
    assert single.exit_code == 1


def test_stock_alerts_command(runner, app_context, make_material):
    make_material(name='Bobina PP', min_stock=10, reorder_point=5)

    result = runner.invoke(args=['stock-alerts'])

    assert result.exit_code == 0
    assert '[critico]' in result.output
    assert 'Bobina PP' in result.output


def test_cost_divergences_command(runner, app_context, make_material, add_lot):
    material = make_material(name='Filme PE', admin_unit_cost=10.0)
    add_lot(material, 5, 11.0)

    result = runner.invoke(args=['cost-divergences'])

    assert result.exit_code == 0
    assert 'Filme PE' in result.output
