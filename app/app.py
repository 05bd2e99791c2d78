import logging

from core.config import BASE_URL, IDENTITY, LOG_DIR, LOG_LEVEL, PASSWORD
from core.exceptions import AuthError
from core.logging_setup import setup_logging
from storage.pocketbase import PocketBaseClient
from services.activity_service import ActivityLog
from controller.app_controller import AppController
from gui.main_window import MainWindow

log = logging.getLogger(__name__)


def main():
    setup_logging(log_dir=LOG_DIR, console_level=LOG_LEVEL.upper())
    client = PocketBaseClient(BASE_URL)
    controller = AppController(client, ActivityLog(client))
    try:
        controller.login(IDENTITY, PASSWORD)
    except AuthError as e:
        # Evitamos tkinter si no tenemos token
        log.error("Login error: %s", e)
        return

    ui = MainWindow(controller)
    ui.mainloop()


if __name__ == "__main__":
    main()
