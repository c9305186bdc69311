"""
StockVault Console API

Точка входа: создание приложения, хранилища и подключение роутеров.
"""
from core import create_app, create_store, register_startup_events, register_shutdown_events
from api.api_entity_data import router as entity_data_router
from utils.config_loader import get_config_value
from utils.logging import setup_logging

setup_logging(
    log_dir=get_config_value('app', 'logging.dir', default=None),
    log_file=get_config_value('app', 'logging.file', default='stockvault.log'),
    max_bytes=get_config_value('app', 'logging.max_bytes', default=50 * 1024 * 1024),
    backup_count=get_config_value('app', 'logging.backup_count', default=20),
)

app = create_app()
app.state.store = create_store()

app.include_router(entity_data_router)

register_startup_events(app)
register_shutdown_events(app)


@app.get("/")
async def root():
    return {"name": app.title, "version": app.version, "status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
