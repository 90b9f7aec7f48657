import asyncio
from pathlib import Path

import pytest
from aiohttp import web

from core.config_manager import ServerConfig

PNG_BYTES = b'\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\xff\xfe'


class FakeOrigin:
    """Удаленный сервер для тестов: фиксированные ответы + журнал запросов"""

    def __init__(self):
        self.requests = []

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get('/data/remote-only.json', self.remote_json)
        app.router.add_get('/styles/styles.css', self.remote_css)
        app.router.add_get('/aem.html', self.remote_page)
        app.router.add_get('/images/logo.png', self.remote_png)
        app.router.add_get('/legacy.txt', self.remote_latin1)
        app.router.add_get('/broken.txt', self.remote_bad_charset)
        app.router.add_get('/slow', self.remote_slow)
        app.router.add_get('/forbidden', self.remote_forbidden)
        app.router.add_get('/echo', self.remote_echo)
        app.router.add_get('/blocks/card/card.plain.html', self.remote_plain_html)
        app.middlewares.append(self.record)
        return app

    @web.middleware
    async def record(self, request, handler):
        self.requests.append((request.path_qs, dict(request.headers)))
        return await handler(request)

    async def remote_json(self, request):
        return web.Response(body=b'{"ok":true}', content_type='application/json')

    async def remote_css(self, request):
        return web.Response(text='body{color:blue}', content_type='text/css')

    async def remote_page(self, request):
        return web.Response(text='<h1>remote aem</h1>', content_type='text/html')

    async def remote_png(self, request):
        return web.Response(body=PNG_BYTES, content_type='image/png')

    async def remote_latin1(self, request):
        return web.Response(body='café'.encode('latin-1'), headers={'Content-Type': 'text/plain; charset=latin-1'})

    async def remote_bad_charset(self, request):
        return web.Response(body=b'\xff\xfe\xfa', headers={'Content-Type': 'text/plain; charset=utf-8'})

    async def remote_slow(self, request):
        await asyncio.sleep(2)
        return web.Response(text='too late')

    async def remote_forbidden(self, request):
        return web.Response(status=403, text='nope')

    async def remote_echo(self, request):
        return web.json_response({'query': request.query_string})

    async def remote_plain_html(self, request):
        return web.Response(text='<div>card</div>', content_type='text/html')


@pytest.fixture
def site_root(tmp_path) -> Path:
    root = tmp_path / 'site'
    (root / 'styles').mkdir(parents=True)
    (root / 'styles' / 'styles.css').write_text('body{color:red}', encoding='utf-8')
    (root / 'aem.html').write_text('<h1>local aem</h1>', encoding='utf-8')
    (root / 'data').mkdir()
    (root / 'data' / 'cards.json').write_text('{"data":[]}', encoding='utf-8')
    (root / 'fonts').mkdir()
    (root / 'fonts' / 'icons.woff2').write_bytes(b'wOF2\x00\x01\x00\x00')
    (root / 'notes.xyz').write_bytes(b'\x00\x01\x02')
    (tmp_path / 'secret.txt').write_text('outside root', encoding='utf-8')
    return root


@pytest.fixture
def fake_origin():
    return FakeOrigin()


@pytest.fixture
async def origin_server(aiohttp_server, fake_origin):
    return await aiohttp_server(fake_origin.make_app())


@pytest.fixture
def make_config(site_root):
    def factory(proxy_origin='http://127.0.0.1:9', **overrides) -> ServerConfig:
        values = dict(
            host='127.0.0.1',
            port=3000,
            root_dir=site_root,
            proxy_origin=proxy_origin,
            default_document='/aem.html',
            proxy_timeout=5.0,
        )
        values.update(overrides)
        return ServerConfig(**values)
    return factory


@pytest.fixture
def origin_url(origin_server) -> str:
    return f"http://{origin_server.host}:{origin_server.port}"
