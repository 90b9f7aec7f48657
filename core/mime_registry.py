# core/mime_registry.py
"""Таблица MIME типов для локальных файлов"""

from pathlib import PurePosixPath

DEFAULT_CONTENT_TYPE = 'application/octet-stream'

MIME_TYPES = {
    '.html': 'text/html',
    '.js': 'application/javascript',
    '.css': 'text/css',
    '.json': 'application/json',
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.gif': 'image/gif',
    '.svg': 'image/svg+xml',
    '.ico': 'image/x-icon',
    '.woff': 'font/woff',
    '.woff2': 'font/woff2',
    '.ttf': 'font/ttf',
    '.eot': 'application/vnd.ms-fontobject',
}


def lookup(extension: str) -> str:
    """Возвращает content-type по расширению ('.css' или 'css')"""
    if extension and not extension.startswith('.'):
        extension = f'.{extension}'
    return MIME_TYPES.get(extension.lower(), DEFAULT_CONTENT_TYPE)


def lookup_path(path) -> str:
    """Возвращает content-type по имени файла"""
    return lookup(PurePosixPath(str(path).replace('\\', '/')).suffix)
