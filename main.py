import eventlet
from eventlet import wsgi
from loguru import logger

from relay.config import settings
from relay.logs import setup_logging
from relay.server import create_app

setup_logging(settings.log_level, settings.log_file)
sio, app, relay = create_app(settings)

if __name__ == '__main__':
    relay.sweeper.start(sio.start_background_task, sio.sleep)
    logger.info(f"Запуск сервера на http://{settings.host}:{settings.port}")
    logger.info(f"Проверка состояния: http://{settings.host}:{settings.port}/health")
    wsgi.server(eventlet.listen((settings.host, settings.port)), app)
