import importlib

from mangum import Mangum

from nl_files_api.settings import get_settings


def test_handler_wraps_app_with_configured_storage(monkeypatch, tmp_path):
    monkeypatch.setenv("DEPLOYMENT_MODE", "memory")
    monkeypatch.setenv("UPLOADS_DIR", str(tmp_path / "uploads"))
    get_settings.cache_clear()

    import nl_files_api.lambda_handler as lambda_handler
    lambda_handler = importlib.reload(lambda_handler)

    assert isinstance(lambda_handler.handler, Mangum)
    assert lambda_handler.lambda_handler is lambda_handler.handler
    assert lambda_handler.app.state.storage.backend_name == "memory"
