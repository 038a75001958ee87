def test_modules_import():
    import app
    import config
    import schemas
    import ws
    assert app.app.state.hub is not None
    assert config.WS_SLOW_CONSUMER_POLICY in ws.POLICIES
    assert schemas.JOIN_TYPES == ("join_project", "join_whiteboard")
