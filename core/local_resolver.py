# core/local_resolver.py
"""Поиск и чтение файлов из корневой директории сервера"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from core.mime_registry import lookup_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileResult:
    path: Path
    content: bytes
    content_type: str


@dataclass(frozen=True)
class NotFound:
    path: Optional[Path] = None
    reason: str = "not found"


class LocalResolver:
    def __init__(self, root_dir: Path):
        """
        Args:
            root_dir: Корень, из которого раздаются файлы (только чтение)
        """
        self.root_dir = Path(root_dir).resolve()

    def map_path(self, request_path: str) -> Optional[Path]:
        """
        Переводит путь запроса в путь на диске.

        Returns:
            Path или None, если путь выходит за пределы root_dir или некорректен
        """
        relative = request_path.lstrip('/')
        try:
            candidate = (self.root_dir / relative).resolve()
        except (OSError, ValueError):
            return None

        if candidate != self.root_dir and self.root_dir not in candidate.parents:
            return None
        return candidate

    async def resolve(self, request_path: str) -> Union[FileResult, NotFound]:
        """
        Ищет файл для пути запроса.

        Отсутствие файла, выход за root_dir, ошибки stat и чтения - это NotFound,
        запрос в этом случае уходит на прокси.
        """
        file_path = self.map_path(request_path)
        if file_path is None:
            logger.warning(f"⚠️ Путь выходит за пределы корневой директории: {request_path}")
            return NotFound(reason="outside root directory")

        try:
            if not await asyncio.to_thread(file_path.is_file):
                return NotFound(path=file_path)
        except OSError as e:
            logger.warning(f"⚠️ Не удалось проверить файл {file_path}: {e}")
            return NotFound(path=file_path, reason=str(e))

        logger.info(f"📄 Отдаем локальный файл: {file_path}")

        try:
            content = await asyncio.to_thread(file_path.read_bytes)
        except OSError as e:
            logger.error(f"❌ Ошибка чтения локального файла {file_path}: {e}")
            return NotFound(path=file_path, reason=str(e))

        return FileResult(
            path=file_path,
            content=content,
            content_type=lookup_path(request_path),
        )
