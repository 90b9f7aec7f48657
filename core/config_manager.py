# core/config_manager.py
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Optional
import os

logger = logging.getLogger(__name__)

# Переменная окружения -> ключ конфигурации
ENV_OVERRIDES = {
    'HOST': 'server.host',
    'PORT': 'server.port',
    'ROOT_DIR': 'server.root_dir',
    'PROXY_HOST': 'server.proxy_origin',
    'DEFAULT_DOCUMENT': 'server.default_document',
    'PROXY_TIMEOUT': 'server.proxy_timeout',
    'LOG_LEVEL': 'logging.level',
}


class ConfigError(Exception):
    """Некорректное значение в конфигурации"""


def get_app_data_dir() -> Path:
    """Возвращает путь для хранения данных приложения"""
    if os.name == 'nt':  # Windows
        appdata_dir = Path(os.getenv('LOCALAPPDATA', Path.home() / 'AppData' / 'Local'))
        app_data_dir = appdata_dir / 'EDSDevServer'
    else:  # Linux/Mac
        app_data_dir = Path.home() / '.config' / 'eds-dev-server'

    app_data_dir.mkdir(parents=True, exist_ok=True)
    return app_data_dir


@dataclass(frozen=True)
class ServerConfig:
    """Неизменяемые настройки сервера, собираются один раз при старте"""
    host: str
    port: int
    root_dir: Path
    proxy_origin: str
    default_document: str
    proxy_timeout: float

    @property
    def main_page_url(self) -> str:
        host = 'localhost' if self.host in ('127.0.0.1', '0.0.0.0', '') else self.host
        return f"http://{host}:{self.port}{self.default_document}"


class ConfigManager:
    def __init__(self, config_path: Optional[Path] = None, environ: Optional[Dict[str, str]] = None):
        self.environ = os.environ if environ is None else environ
        self.config_path = config_path or self._get_config_path()
        self.config = self._load_config()

    def _get_config_path(self) -> Optional[Path]:
        """Возвращает путь к файлу конфигурации (None если app data недоступна)"""
        explicit = self.environ.get('EDS_CONFIG')
        if explicit:
            return Path(explicit)

        try:
            return get_app_data_dir() / 'config.json'
        except OSError as e:
            logger.error(f"Директория данных приложения недоступна, используются настройки по умолчанию: {e}")
            return None

    def _get_default_config(self) -> dict:
        """Возвращает конфигурацию по умолчанию"""
        return {
            'server': {
                'host': '127.0.0.1',
                'port': 3000,
                'root_dir': None,  # None = текущая рабочая директория
                'proxy_origin': 'https://allabout.network',
                'default_document': '/aem.html',
                'proxy_timeout': 10,
            },

            'logging': {
                'level': 'INFO',
                'max_bytes': 5 * 1024 * 1024,
                'backup_count': 5,
            }
        }

    def _load_config(self) -> Dict[str, Any]:
        """Загружает конфигурацию: дефолты < файл < переменные окружения"""
        config = self._get_default_config()

        try:
            if self.config_path is not None and self.config_path.exists():
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    loaded_config = json.load(f)
                    config = self._deep_merge(config, loaded_config)
                logger.debug(f"Конфигурация загружена из {self.config_path}")
        except (OSError, ValueError) as e:
            logger.error(f"Ошибка загрузки конфига {self.config_path}: {e}")

        for env_name, key in ENV_OVERRIDES.items():
            value = self.environ.get(env_name)
            if value:
                self._set(config, key, value)

        return config

    def _deep_merge(self, base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
        """Рекурсивное объединение словарей"""
        result = base.copy()

        for key, value in update.items():
            if (key in result and
                    isinstance(result[key], dict) and
                    isinstance(value, dict)):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    @staticmethod
    def _set(config: Dict[str, Any], key: str, value: Any):
        keys = key.split('.')
        config_ref = config

        for k in keys[:-1]:
            if k not in config_ref or not isinstance(config_ref[k], dict):
                config_ref[k] = {}
            config_ref = config_ref[k]

        config_ref[keys[-1]] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Получает значение по ключу (dot notation)"""
        value = self.config

        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def get_logging_config(self) -> Dict[str, Any]:
        """Возвращает настройки логирования"""
        return self.get('logging', {})

    def build_server_config(self) -> ServerConfig:
        """
        Проверяет настройки сервера и собирает ServerConfig

        Raises:
            ConfigError: если какое-то значение некорректно
        """
        try:
            port = int(self.get('server.port'))
        except (TypeError, ValueError):
            raise ConfigError(f"Некорректный порт: {self.get('server.port')!r}")
        if not 1 <= port <= 65535:
            raise ConfigError(f"Порт вне диапазона 1-65535: {port}")

        try:
            proxy_timeout = float(self.get('server.proxy_timeout'))
        except (TypeError, ValueError):
            raise ConfigError(f"Некорректный таймаут прокси: {self.get('server.proxy_timeout')!r}")
        if proxy_timeout <= 0:
            raise ConfigError(f"Таймаут прокси должен быть положительным: {proxy_timeout}")

        root_dir = Path(self.get('server.root_dir') or os.getcwd()).resolve()
        if not root_dir.is_dir():
            raise ConfigError(f"Корневая директория не существует: {root_dir}")

        default_document = str(self.get('server.default_document') or '')
        if not default_document.startswith('/'):
            raise ConfigError(f"Документ по умолчанию должен начинаться с '/': {default_document!r}")

        proxy_origin = str(self.get('server.proxy_origin') or '')
        if not proxy_origin.startswith(('http://', 'https://')):
            raise ConfigError(f"Адрес прокси должен быть http(s) URL: {proxy_origin!r}")

        return ServerConfig(
            host=str(self.get('server.host') or '127.0.0.1'),
            port=port,
            root_dir=root_dir,
            proxy_origin=proxy_origin,
            default_document=default_document,
            proxy_timeout=proxy_timeout,
        )
