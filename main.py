#!/usr/bin/env python3
"""
OIBot Monitor
Desktop tool for driving and monitoring Open Interface cleaning robots.
"""

import sys
import os
from PyQt6.QtWidgets import QApplication
from oibot.main_window import MainWindow, DARK_STYLESHEET

def main():
    app = QApplication(sys.argv)
    app.setApplicationName("OIBot Monitor")
    app.setApplicationVersion("1.0.0")
    app.setOrganizationName("OIBotTools")

    # Set application icon if available
    icon_path = os.path.join(os.path.dirname(__file__), 'resources', 'icons', 'app_icon.png')
    if os.path.exists(icon_path):
        from PyQt6.QtGui import QIcon
        app.setWindowIcon(QIcon(icon_path))

    # Dark theme for the whole app, independent of the saved window theme
    if os.environ.get('OIBOT_THEME', '').lower() == 'dark':
        app.setStyleSheet(DARK_STYLESHEET)

    window = MainWindow()
    window.show()

    return app.exec()

if __name__ == "__main__":
    sys.exit(main())
