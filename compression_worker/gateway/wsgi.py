"""WSGI entry point for the enqueue/retry gateway, e.g. ``gunicorn compression_worker.gateway.wsgi:app``."""
from compression_worker.bootstrap import build_backends
from compression_worker.config.settings import Settings
from compression_worker.gateway.api import create_gateway_app
from compression_worker.gateway.gateway import TranscodingGateway
from compression_worker.logging.logger import Log

settings = Settings()
Log.configure(settings.log_level)
backends = build_backends(settings)
app = create_gateway_app(TranscodingGateway(backends.store, backends.queue, settings))
