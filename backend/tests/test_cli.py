from shoprelay.services import token_service


def test_store_show_lists_collections(app, db_session):
    result = app.test_cli_runner().invoke(args=['store', 'show'])
    assert result.exit_code == 0
    assert 'debtorPayments' in result.output


def test_store_reset_requires_confirmation(app, db_session):
    result = app.test_cli_runner().invoke(args=['store', 'reset'])
    assert result.exit_code == 1
    assert 'FAIL' in result.output


def test_shops_merge_then_resolve(app, db_session):
    runner = app.test_cli_runner()

    merged = runner.invoke(args=['shops', 'merge', 'old-shop', 'new-shop'])
    assert merged.exit_code == 0
    assert 'PASS old-shop -> new-shop' in merged.output

    resolved = runner.invoke(args=['shops', 'resolve', 'old-shop'])
    assert resolved.output.strip() == 'new-shop'


def test_shops_merge_rejects_cycle(app, db_session):
    runner = app.test_cli_runner()
    runner.invoke(args=['shops', 'merge', 'a', 'b'])

    result = runner.invoke(args=['shops', 'merge', 'b', 'a'])
    assert result.exit_code == 1
    assert 'FAIL' in result.output


def test_tokens_issue_prints_a_valid_token(app, db_session):
    result = app.test_cli_runner().invoke(args=['tokens', 'issue', '--shop-id', 'shop-a', '--device-id', 'POS-3'])
    assert result.exit_code == 0

    context = token_service.decode_token(result.output.strip())
    assert context.shop_id == 'shop-a'
    assert context.role == 'device'
    assert context.device_id == 'POS-3'
