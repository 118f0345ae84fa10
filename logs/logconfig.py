import atexit
import logging
import os
import queue
from logging.config import dictConfig
from logging.handlers import QueueListener, RotatingFileHandler
from typing import List, Optional

from config import settings


class AsyncLoggingManager:
    """
    Runs the real handlers on a QueueListener thread so that emitting a
    record from the event loop is only a queue put.
    """

    def __init__(self, maxsize: int = 10000):
        self.log_queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self.queue_listener: Optional[QueueListener] = None
        self.handlers: List[logging.Handler] = []

    def start(self, handlers: List[logging.Handler]):
        """Start the listener thread feeding the given handlers"""
        if self.is_running():
            self.stop()
        self.handlers = handlers
        self.queue_listener = QueueListener(
            self.log_queue,
            *handlers,
            respect_handler_level=True
        )
        self.queue_listener.start()
        atexit.register(self.stop)

    def stop(self):
        """Stop the listener and flush whatever is still queued."""
        if self.queue_listener:
            self.queue_listener.stop()
            self.queue_listener = None

        for handler in self.handlers:
            handler.flush()
            handler.close()
        self.handlers = []

    def is_running(self) -> bool:
        return self.queue_listener is not None


async_logging_manager = AsyncLoggingManager()


def _log_format(session_id_run: str) -> str:
    return f'%(asctime)s %(name)-12s %(levelname)-8s [SESSION_ID: {session_id_run}] %(message)s'


def configure_logging(session_id_run, use_async=True):
    log_level = logging.INFO if settings.PROD else logging.DEBUG

    if use_async and settings.PROD:
        formatter = logging.Formatter(_log_format(session_id_run))

        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        stream_handler.setLevel(log_level)

        log_dir = os.path.dirname(settings.LOG_FILE)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            filename=settings.LOG_FILE,
            maxBytes=1024 * 1024 * 5,  # 5 MB
            backupCount=10
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(log_level)

        async_logging_manager.start([stream_handler, file_handler])

        LOGGING_CONFIG = dict(
            version=1,
            disable_existing_loggers=False,
            handlers={
                'queue': {
                    'class': 'logging.handlers.QueueHandler',
                    'queue': async_logging_manager.log_queue,
                },
            },
            root={
                'handlers': ['queue'],
                'level': log_level,
            },
        )
    else:
        LOGGING_CONFIG = dict(
            version=1,
            disable_existing_loggers=False,
            formatters={
                'f': {
                    'format': _log_format(session_id_run),
                },
            },
            handlers={
                'h': {
                    'class': 'logging.StreamHandler',
                    'formatter': 'f',
                    'level': log_level,
                },
            },
            root={
                'handlers': ['h'],
                'level': log_level,
            },
        )

    dictConfig(LOGGING_CONFIG)
