# core/server_lifecycle.py
import asyncio
import logging
import signal
from aiohttp import web

from core.config_manager import ServerConfig
from core.request_router import create_app
from utils.port_utils import check_port_availability

logger = logging.getLogger(__name__)


class DevServer:
    def __init__(self, config: ServerConfig, app: web.Application = None):
        self.config = config
        self.app = app
        self.runner = None
        self.site = None
        self.is_running = False
        self._shutdown_event = None

    async def start(self):
        """
        Поднимает aiohttp сервер на config.host:config.port

        Raises:
            OSError: если не удалось занять порт
        """
        if self.is_running:
            logger.warning("⚠️ Сервер уже запущен")
            return

        self._shutdown_event = asyncio.Event()
        if self.app is None:
            self.app = create_app(self.config)

        self.runner = web.AppRunner(self.app, access_log=None)
        await self.runner.setup()

        # Проверка порта до bind: в лог попадает процесс, который его держит
        port_available, port_message = check_port_availability(self.config.port, self.config.host)
        if not port_available:
            logger.warning(f"⚠️ {port_message}")

        self.site = web.TCPSite(self.runner, host=self.config.host, port=self.config.port)
        try:
            await self.site.start()
        except OSError as e:
            logger.error(f"❌ Не удалось занять {self.config.host}:{self.config.port}: {e}")
            await self.runner.cleanup()
            self.runner = None
            self.site = None
            raise

        self.is_running = True

        logger.info("=" * 60)
        logger.info(f"🚀 Сервер запущен: http://{self.config.host}:{self.config.port}")
        logger.info(f"📁 Раздаются файлы из: {self.config.root_dir}")
        logger.info(f"🔗 Отсутствующие файлы проксируются на: {self.config.proxy_origin}")
        logger.info(f"📄 Главная страница: {self.config.main_page_url}")
        logger.info("=" * 60)
        logger.info("Нажмите Ctrl+C для остановки")

    async def stop(self):
        """Перестает принимать соединения и освобождает ресурсы"""
        if not self.is_running:
            return

        self.is_running = False
        try:
            if self.site:
                await self.site.stop()
            if self.runner:
                # on_cleanup приложения закрывает исходящую сессию прокси
                await self.runner.cleanup()
        finally:
            self.site = None
            self.runner = None
        logger.info("✅ Сервер остановлен")

    def request_shutdown(self):
        """Вызывается из обработчика сигнала"""
        if self._shutdown_event is not None and not self._shutdown_event.is_set():
            logger.info("🛑 Остановка сервера...")
            self._shutdown_event.set()

    def _install_signal_handlers(self):
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_shutdown)
            except (NotImplementedError, RuntimeError):
                # Windows: нет add_signal_handler у event loop
                signal.signal(sig, lambda *_: loop.call_soon_threadsafe(self.request_shutdown))

    def _remove_signal_handlers(self):
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                signal.signal(sig, signal.SIG_DFL)

    async def serve(self, install_signals: bool = True) -> int:
        """
        Работает до SIGINT/SIGTERM или request_shutdown().

        Returns:
            int: 0 при штатной остановке, 1 если порт занять не удалось
        """
        try:
            await self.start()
        except OSError:
            return 1

        if install_signals:
            self._install_signal_handlers()
        try:
            await self._shutdown_event.wait()
        finally:
            if install_signals:
                self._remove_signal_handlers()
            await self.stop()

        return 0

    def run(self) -> int:
        """Блокирующий запуск в собственном event loop"""
        return asyncio.run(self.serve())
