# core/request_router.py
import html
import logging
from dataclasses import dataclass
from aiohttp import web

from core.config_manager import ServerConfig
from core.local_resolver import LocalResolver, FileResult
from core.proxy_forwarder import ProxyForwarder, ProxyResult

logger = logging.getLogger(__name__)

NOT_FOUND_TEMPLATE = """<!DOCTYPE html>
<html>
  <head><title>404 Not Found</title></head>
  <body>
    <h1>404 Not Found</h1>
    <p>The requested resource <code>{path}</code> was not found locally or on the proxy server.</p>
    <p>Attempted proxy URL: <code>{proxy_url}</code></p>
  </body>
</html>
"""


@dataclass(frozen=True)
class RequestDescriptor:
    method: str
    path: str    # декодированный путь для поиска на диске
    target: str  # исходный путь с query string для прокси

    @classmethod
    def from_request(cls, request: web.Request, default_document: str) -> "RequestDescriptor":
        """Корень '/' подменяется на документ по умолчанию"""
        if request.path == '/':
            target = default_document
            if request.query_string:
                target = f"{target}?{request.query_string}"
            return cls(method=request.method, path=default_document, target=target)

        return cls(method=request.method, path=request.path, target=request.raw_path)


def render_not_found(target: str, proxy_url: str) -> str:
    return NOT_FOUND_TEMPLATE.format(
        path=html.escape(target, quote=False),
        proxy_url=html.escape(proxy_url, quote=False),
    )


class RequestRouter:
    """
    Цепочка приоритетов для каждого запроса:
    локальный файл -> удаленный сервер -> 404.

    Один проход без повторов, на каждый запрос ровно один ответ.
    """

    def __init__(self, config: ServerConfig, resolver: LocalResolver = None, forwarder: ProxyForwarder = None):
        self.config = config
        self.resolver = resolver or LocalResolver(config.root_dir)
        self.forwarder = forwarder or ProxyForwarder(config)

    async def handle(self, request: web.Request) -> web.Response:
        descriptor = RequestDescriptor.from_request(request, self.config.default_document)
        logger.info(f"Запрос: {descriptor.method} {descriptor.target}")

        try:
            return await self._route(descriptor)
        except Exception as e:
            # Клиент не должен видеть stack trace или обрыв соединения
            logger.error(f"❌ Необработанная ошибка {descriptor.target}: {e}", exc_info=True)
            return self._not_found(descriptor, self.forwarder.build_url(descriptor.target))

    async def _route(self, descriptor: RequestDescriptor) -> web.Response:
        local = await self.resolver.resolve(descriptor.path)
        if isinstance(local, FileResult):
            logger.info(f"✅ {descriptor.method} {descriptor.target} -> локальный файл ({local.content_type}, {len(local.content)} байт)")
            return web.Response(
                body=local.content,
                status=200,
                headers={
                    'Content-Type': local.content_type,
                    'Cache-Control': 'no-cache',
                }
            )

        logger.info(f"Локальный файл не найден, пробуем прокси: {descriptor.target}")
        proxied = await self.forwarder.forward(descriptor.target)
        if isinstance(proxied, ProxyResult):
            logger.info(f"✅ {descriptor.method} {descriptor.target} -> прокси {proxied.status}")
            return web.Response(
                body=proxied.body,
                status=proxied.status,
                headers=proxied.headers
            )

        return self._not_found(descriptor, proxied.url)

    def _not_found(self, descriptor: RequestDescriptor, proxy_url: str) -> web.Response:
        logger.warning(f"⚠️ {descriptor.method} {descriptor.target} -> 404 (прокси: {proxy_url})")
        return web.Response(
            text=render_not_found(descriptor.target, proxy_url),
            status=404,
            content_type='text/html'
        )


router_key = web.AppKey("router_key", RequestRouter)


async def _close_forwarder(app: web.Application):
    await app[router_key].forwarder.cleanup()


def create_app(config: ServerConfig, router: RequestRouter = None) -> web.Application:
    """Создает aiohttp приложение: все пути и методы идут в RequestRouter"""
    router = router or RequestRouter(config)

    app = web.Application()
    app[router_key] = router
    app.router.add_route('*', '/{path:.*}', router.handle)
    app.on_cleanup.append(_close_forwarder)
    return app
