import logging
import os
import sys
from pythonjsonlogger import jsonlogger


def setup_logging(level: int = logging.INFO):
    """
    Sets up centralized logging for the search subsystem to output structured JSON logs.

    Logs go to stderr so that a host application's stdout stays untouched.
    The level can be overridden with the GLOBALSEARCH_LOG_LEVEL environment variable.
    """
    env_level = os.environ.get('GLOBALSEARCH_LOG_LEVEL')
    if env_level:
        level = logging.getLevelName(env_level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger('globalsearch')
    logger.setLevel(level)

    # Prevent adding multiple handlers if setup_logging is called multiple times
    if not logger.handlers:
        formatter = jsonlogger.JsonFormatter(
            '%(asctime)s %(levelname)s %(name)s %(message)s',
            rename_fields={'levelname': 'level', 'asctime': 'timestamp', 'name': 'logger'},
            json_ensure_ascii=False
        )

        class DefaultFieldsFilter(logging.Filter):
            def filter(self, record):
                record.service = 'globalsearch'
                record.environment = os.environ.get('GLOBALSEARCH_ENV', 'development')
                return True

        logger.addFilter(DefaultFieldsFilter())

        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

        # Library loggers stay quiet unless explicitly configured
        logging.getLogger('elasticsearch').setLevel(logging.WARNING)
        logging.getLogger('elastic_transport').setLevel(logging.WARNING)

    return logger


# Initialize logging when this module is imported
logger = setup_logging()
