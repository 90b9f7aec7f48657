# main.py
import sys
import logging
from logging.handlers import RotatingFileHandler

from core.config_manager import ConfigManager, ConfigError, get_app_data_dir

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(config: ConfigManager):
    """Настраивает логирование ДО всех операций с ротацией"""
    logging_config = config.get_logging_config()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handlers = [console_handler]

    try:
        logs_dir = get_app_data_dir() / "logs"
        logs_dir.mkdir(exist_ok=True)

        # Ротирующий обработчик: по умолчанию макс 5MB, 5 резервных копий
        file_handler = RotatingFileHandler(
            logs_dir / "eds_dev_server.log",
            maxBytes=int(logging_config.get('max_bytes', 5 * 1024 * 1024)),
            backupCount=int(logging_config.get('backup_count', 5)),
            encoding='utf-8'
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(file_handler)
    except OSError as e:
        print(f"Лог-файл недоступен, логируем только в консоль: {e}", file=sys.stderr)

    level = logging.getLevelName(str(logging_config.get('level', 'INFO')).upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(level=level, handlers=handlers, force=True)


def setup_exception_handler():
    """Настраивает глобальный обработчик исключений"""

    def exception_handler(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return

        logger.critical("Необработанное исключение:",
                        exc_info=(exc_type, exc_value, exc_traceback))

    sys.excepthook = exception_handler


def main() -> int:
    """Основная функция приложения"""
    config = ConfigManager()
    setup_logging(config)
    setup_exception_handler()

    try:
        server_config = config.build_server_config()
    except ConfigError as e:
        logger.error(f"❌ Некорректная конфигурация: {e}")
        return 2

    from core.server_lifecycle import DevServer

    logger.info("🚀 Запуск EDS dev server")
    return DevServer(server_config).run()


if __name__ == "__main__":
    sys.exit(main())
