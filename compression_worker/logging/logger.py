import logging
import sys

_FORMAT = "%(asctime)s [%(levelname)s] [%(threadName)s] %(message)s"


def _render(message: str, fields: dict[str, object]) -> str:
    """Append keyword context as ``key=value`` pairs, in call order."""
    if not fields:
        return message
    context = " ".join(f"{key}={value}" for key, value in fields.items())
    return f"{message} | {context}"


class Log:
    """Process-wide logger for the worker, gateway and monitors.

    Keyword arguments are rendered after the message, so
    ``Log.info("Job acked", job_id="7")`` logs ``Job acked | job_id=7``.
    """

    _logger: logging.Logger = logging.getLogger("compression_worker")

    @classmethod
    def configure(cls, log_level: str) -> None:
        """Set the level and attach a single stdout handler.

        The werkzeug request log is capped at WARNING so health probes do not
        flood the output.
        """
        cls._logger.setLevel(log_level.upper())
        if not cls._logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(logging.Formatter(_FORMAT))
            cls._logger.addHandler(handler)
        logging.getLogger("werkzeug").setLevel(logging.WARNING)

    @classmethod
    def info(cls, message: str, **fields: object) -> None:
        cls._logger.info(_render(message, fields))

    @classmethod
    def error(cls, message: str, **fields: object) -> None:
        cls._logger.error(_render(message, fields))

    @classmethod
    def warning(cls, message: str, **fields: object) -> None:
        cls._logger.warning(_render(message, fields))

    @classmethod
    def debug(cls, message: str, **fields: object) -> None:
        cls._logger.debug(_render(message, fields))

    @classmethod
    def exception(cls, message: str, **fields: object) -> None:
        """Log at ERROR with the active exception's traceback."""
        cls._logger.exception(_render(message, fields))
