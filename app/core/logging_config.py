import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from datetime import datetime

from app.core.config import settings

LOGS_DIR = Path(settings.LOGS_DIRECTORY)
LOGS_DIR.mkdir(parents=True, exist_ok=True)

LOG_FILENAME = LOGS_DIR / f"portal_administrativo_{datetime.now().strftime('%Y%m%d')}.log"

LOG_LEVEL = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

LOG_FORMAT = "%(asctime)s.%(msecs)03d [%(levelname)-8s] [%(name)s] [%(process)d:%(threadName)s] [%(filename)s:%(lineno)d] - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

console_handler = logging.StreamHandler(sys.stdout)
console_handler.setFormatter(formatter)
console_handler.setLevel(LOG_LEVEL)

# Rota cada medianoche y conserva dos semanas
file_handler = TimedRotatingFileHandler(
    filename=LOG_FILENAME,
    when="midnight",
    interval=1,
    backupCount=14,
    encoding='utf-8',
    delay=True
)
file_handler.setFormatter(formatter)
file_handler.setLevel(LOG_LEVEL)


def setup_logging():
    """Configura los manejadores y el nivel para el logger raíz y loggers específicos."""
    root_logger = logging.getLogger()
    root_logger.setLevel(LOG_LEVEL)
    # Limpiar handlers existentes para evitar duplicados con --reload
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.ERROR)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    root_logger.info("="*50)
    root_logger.info("Configuración de Logging Iniciada")
    root_logger.info(f"Nivel de Log: {logging.getLevelName(LOG_LEVEL)}")
    root_logger.info(f"Archivo de Log: {LOG_FILENAME}")
    root_logger.info("="*50)
