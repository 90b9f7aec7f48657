# core/proxy_forwarder.py
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Union
from aiohttp import ClientSession, TCPConnector, ClientTimeout, ClientConnectorError, ServerTimeoutError, ClientError

from core.config_manager import ServerConfig
from core.mime_registry import DEFAULT_CONTENT_TYPE

logger = logging.getLogger(__name__)

# Заголовки исходящего запроса: удаленный сервер должен видеть обычный браузерный fetch
UPSTREAM_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (compatible; EDS-Emulation-Layer/1.0)',
    'Accept': '*/*',
    'Accept-Encoding': 'gzip, deflate',
    'Connection': 'keep-alive',
}

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'GET, POST, PUT, DELETE, OPTIONS',
    'Access-Control-Allow-Headers': 'Content-Type, Authorization',
}

TEXT_CONTENT_MARKERS = ('text/', 'json', 'javascript')


def is_text_content_type(content_type: str) -> bool:
    """Текстовый ли content-type (text/*, JSON, скрипты)"""
    content_type = content_type.lower()
    return any(marker in content_type for marker in TEXT_CONTENT_MARKERS)


@dataclass(frozen=True)
class ProxyResult:
    url: str
    status: int
    content_type: str
    body: bytes
    is_text: bool = False

    @property
    def headers(self) -> Dict[str, str]:
        """Заголовки ответа клиенту: content-type, no-cache и CORS"""
        headers = {
            'Content-Type': self.content_type,
            'Cache-Control': 'no-cache',
        }
        headers.update(CORS_HEADERS)
        return headers


@dataclass(frozen=True)
class ProxyFailure:
    url: str
    reason: str
    status: Optional[int] = None


class ProxyForwarder:
    def __init__(self, config: ServerConfig):
        """
        Args:
            config: Настройки сервера (proxy_origin, proxy_timeout)
        """
        self.config = config

        self.connector = None
        self.session = None

    async def initialize(self):
        """Инициализация connection pool для удаленного сервера"""
        if self.connector is None:
            self.connector = TCPConnector(
                limit=100,
                ttl_dns_cache=300,  # DNS кэш на 5 минут
                enable_cleanup_closed=True
            )

        if self.session is None:
            self.session = ClientSession(
                connector=self.connector,
                timeout=ClientTimeout(total=self.config.proxy_timeout)
            )

    async def cleanup(self):
        """Очистка ресурсов"""
        if self.session:
            await self.session.close()
            self.session = None
        if self.connector:
            await self.connector.close()
            self.connector = None

    def build_url(self, request_path: str) -> str:
        # Простая конкатенация, без нормализации слэшей
        return f"{self.config.proxy_origin}{request_path}"

    async def forward(self, request_path: str) -> Union[ProxyResult, ProxyFailure]:
        """
        Запрашивает request_path у удаленного сервера.

        Сетевые ошибки, таймауты и не-2xx ответы возвращаются как ProxyFailure,
        исключения наружу не выходят.
        """
        proxy_url = self.build_url(request_path)
        logger.info(f"🌐 Проксируем запрос: {proxy_url}")

        try:
            await self.initialize()

            async with self.session.get(proxy_url, headers=UPSTREAM_HEADERS) as upstream_response:
                logger.info(f"Статус ответа прокси: {upstream_response.status} {upstream_response.reason}")
                logger.debug(f"Заголовки ответа прокси: {dict(upstream_response.headers)}")

                if not 200 <= upstream_response.status < 300:
                    reason = f"Удаленный сервер вернул {upstream_response.status} {upstream_response.reason}"
                    logger.error(f"❌ {reason}\n   URL: {proxy_url}")
                    return ProxyFailure(url=proxy_url, reason=reason, status=upstream_response.status)

                content_type = upstream_response.headers.get('Content-Type') or DEFAULT_CONTENT_TYPE
                content = await upstream_response.read()
                charset = upstream_response.charset

            logger.info(f"Content-Type ответа: {content_type}")
            is_text = is_text_content_type(content_type) and self._log_text_length(content, charset)
            if not is_text:
                logger.info(f"Размер ответа (бинарный): {len(content)} байт")

            logger.info(f"✅ Успешно проксировано: {request_path}")
            return ProxyResult(
                url=proxy_url,
                status=upstream_response.status,
                content_type=content_type,
                body=content,
                is_text=is_text,
            )

        except ClientConnectorError as e:
            logger.error(f"❌ Удаленный сервер недоступен {proxy_url}: {e}")
            return ProxyFailure(url=proxy_url, reason=str(e))

        except (ServerTimeoutError, asyncio.TimeoutError) as e:
            reason = str(e) or f"нет ответа за {self.config.proxy_timeout}с"
            logger.error(f"❌ Таймаут прокси {proxy_url}: {reason}")
            return ProxyFailure(url=proxy_url, reason=reason)

        except (ClientError, ValueError) as e:
            logger.error(f"❌ Ошибка проксирования {request_path}: {e}")
            return ProxyFailure(url=proxy_url, reason=str(e))

        except Exception as e:
            logger.error(f"❌ Непредвиденная ошибка прокси {proxy_url}: {e}", exc_info=True)
            return ProxyFailure(url=proxy_url, reason=str(e))

    @staticmethod
    def _log_text_length(content: bytes, charset: Optional[str]) -> bool:
        """
        Декодирует текстовый ответ для логирования длины.

        Returns:
            bool: False если кодировка неизвестна или текст не декодируется
                  (тогда ответ считается бинарным)
        """
        try:
            text = content.decode(charset or 'utf-8')
        except (LookupError, UnicodeDecodeError) as e:
            logger.warning(f"⚠️ Не удалось декодировать текст ({charset or 'utf-8'}): {e}, отдаем как бинарный")
            return False

        logger.info(f"Размер ответа (текст): {len(text)} символов")
        return True
