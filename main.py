# main.py

import logging
import sys

from PyQt6.QtWidgets import QApplication

from main_window import CamcorderWindow
from session import SessionController


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = QApplication(sys.argv)
    controller = SessionController()
    window = CamcorderWindow(controller)
    window.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
