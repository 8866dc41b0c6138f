"""
Main window for the OIBot Monitor
"""

import logging
import threading
import time
from typing import Optional
from logging.handlers import RotatingFileHandler
from PyQt6.QtWidgets import (QMainWindow, QVBoxLayout, QWidget, QTabWidget,
                            QMessageBox, QLabel)
from PyQt6.QtCore import QSettings, pyqtSignal
from PyQt6.QtGui import QAction, QIcon

from .device_connection_tab import DeviceConnectionTab
from .drive_control_tab import DriveControlTab
from .monitoring_tab import MonitoringTab
from .errors import OIError
from .oi_protocol import OIProtocol

logger = logging.getLogger(__name__)

DARK_STYLESHEET = """
    QWidget { background-color:#232629; color:#ddd; }
    QGroupBox { border:1px solid #444; margin-top:6px; }
    QGroupBox::title { subcontrol-origin: margin; left:8px; padding:0 4px; }
    QPushButton { background:#444; border:1px solid #555; padding:4px; }
    QPushButton:hover { background:#555; }
    QTabBar::tab:selected { background:#444; }
    QStatusBar { background:#1e1e1e; }
"""


def setup_logging(debug: bool = False, log_file: str = 'oibot_monitor.log'):
    """Route all loggers to a rotating file plus stderr."""
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    rotating = RotatingFileHandler(log_file, maxBytes=512000, backupCount=3)
    rotating.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s: %(message)s'))
    stream = logging.StreamHandler()
    stream.setFormatter(logging.Formatter('%(levelname)s %(name)s: %(message)s'))
    root.addHandler(rotating)
    root.addHandler(stream)
    root.setLevel(logging.DEBUG if debug else logging.INFO)


class MainWindow(QMainWindow):
    """Main application window"""

    snapshot_ready = pyqtSignal(object)

    def __init__(self, configure_logging: bool = True):
        super().__init__()
        self.setWindowTitle("OIBot Monitor")
        self.setMinimumSize(1000, 700)

        self.settings = QSettings("OIBotTools", "Monitor")

        self.oi: Optional[OIProtocol] = None
        # One request in flight on the link: every command and query, from the
        # UI thread or the snapshot thread, runs under this lock.
        self.oi_lock = threading.RLock()

        self._snapshot_thread = None
        self._snapshot_stop = threading.Event()
        self._snapshot_interval = 0.25
        self.snapshot_ready.connect(self._apply_snapshot)

        if configure_logging:
            setup_logging(self.settings.value("debug_mode", False, type=bool))

        self._create_menus()
        self._create_status_bar()
        self._create_central_widget()
        self._create_toolbar()
        self._restore_settings()

        logger.info("OIBot Monitor initialized")

    @property
    def device_connected(self) -> bool:
        return self.oi is not None

    def _create_menus(self):
        menubar = self.menuBar()

        file_menu = menubar.addMenu("&File")
        self.connect_action = QAction("&Connect Robot", self)
        self.connect_action.setShortcut("Ctrl+C")
        self.connect_action.triggered.connect(self._on_connect_device)
        file_menu.addAction(self.connect_action)

        self.disconnect_action = QAction("&Disconnect Robot", self)
        self.disconnect_action.setShortcut("Ctrl+D")
        self.disconnect_action.setEnabled(False)
        self.disconnect_action.triggered.connect(self._on_disconnect_device)
        file_menu.addAction(self.disconnect_action)

        file_menu.addSeparator()
        exit_action = QAction("E&xit", self)
        exit_action.setShortcut("Ctrl+Q")
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)

        tools_menu = menubar.addMenu("&Tools")
        emergency_stop_action = QAction("&Emergency Stop", self)
        emergency_stop_action.setShortcut("Escape")
        emergency_stop_action.triggered.connect(self._on_emergency_stop)
        tools_menu.addAction(emergency_stop_action)

        view_menu = menubar.addMenu("&View")
        self.debug_action = QAction("&Debug Mode", self)
        self.debug_action.setCheckable(True)
        self.debug_action.setChecked(self.settings.value("debug_mode", False, type=bool))
        self.debug_action.triggered.connect(self._on_toggle_debug)
        view_menu.addAction(self.debug_action)

        help_menu = menubar.addMenu("&Help")
        about_action = QAction("&About", self)
        about_action.triggered.connect(self._on_about)
        help_menu.addAction(about_action)

    def _create_status_bar(self):
        self.status_bar = self.statusBar()
        self.connection_status_label = QLabel("Disconnected")
        self.status_bar.addWidget(self.connection_status_label)
        self.device_info_label = QLabel("")
        self.status_bar.addPermanentWidget(self.device_info_label)

    def _create_central_widget(self):
        central_widget = QWidget()
        self.setCentralWidget(central_widget)
        layout = QVBoxLayout(central_widget)

        self.tab_widget = QTabWidget()
        layout.addWidget(self.tab_widget)

        self.connection_tab = DeviceConnectionTab(self)
        self.drive_control_tab = DriveControlTab(self)
        self.monitoring_tab = MonitoringTab(self)

        self.tab_widget.addTab(self.connection_tab, "Connection")
        self.tab_widget.addTab(self.drive_control_tab, "Drive Control")
        self.tab_widget.addTab(self.monitoring_tab, "Monitoring")

        self.connection_tab.device_connected.connect(self._on_device_connected)
        self.connection_tab.device_disconnected.connect(self._on_device_disconnected)

    def _create_toolbar(self):
        tb = self.addToolBar('Main')
        tb.setObjectName('MainToolbar')
        tb.setMovable(False)

        self.action_connect = QAction(QIcon.fromTheme('network-connect'), 'Connect', self)
        self.action_connect.triggered.connect(self._on_connect_device)
        tb.addAction(self.action_connect)

        self.action_disconnect = QAction(QIcon.fromTheme('network-disconnect'), 'Disconnect', self)
        self.action_disconnect.triggered.connect(self._on_disconnect_device)
        self.action_disconnect.setEnabled(False)
        tb.addAction(self.action_disconnect)

        tb.addSeparator()
        self.action_emergency = QAction(QIcon.fromTheme('process-stop'), 'Emergency Stop', self)
        self.action_emergency.triggered.connect(self._on_emergency_stop)
        tb.addAction(self.action_emergency)

        tb.addSeparator()
        self.action_theme = QAction('Toggle Theme', self)
        self.action_theme.setCheckable(True)
        self.action_theme.triggered.connect(self._toggle_theme)
        tb.addAction(self.action_theme)

    def _toggle_theme(self):
        theme = 'dark' if self.action_theme.isChecked() else 'light'
        self.settings.setValue('theme', theme)
        self._apply_theme(theme)

    def _apply_theme(self, theme: str):
        self.setStyleSheet(DARK_STYLESHEET if theme == 'dark' else "")

    def _restore_settings(self):
        geometry = self.settings.value("geometry")
        if geometry:
            self.restoreGeometry(geometry)
        state = self.settings.value("windowState")
        if state:
            self.restoreState(state)
        theme = self.settings.value('theme', 'light')
        self.action_theme.setChecked(theme == 'dark')
        self._apply_theme(theme)

    def _save_settings(self):
        self.settings.setValue("geometry", self.saveGeometry())
        self.settings.setValue("windowState", self.saveState())
        self.settings.setValue("debug_mode", self.debug_action.isChecked())

    def closeEvent(self, event):
        self._stop_snapshot_thread()
        if self.device_connected:
            self._on_disconnect_device()
        self._save_settings()
        event.accept()

    def _on_connect_device(self):
        self.tab_widget.setCurrentWidget(self.connection_tab)
        self.connection_tab.connect_device()

    def _on_disconnect_device(self):
        self.connection_tab.disconnect_device()

    def _on_device_connected(self, oi):
        self.oi = oi

        self.connect_action.setEnabled(False)
        self.disconnect_action.setEnabled(True)
        self.action_connect.setEnabled(False)
        self.action_disconnect.setEnabled(True)
        self.connection_status_label.setText("Connected")
        self.device_info_label.setText(self.connection_tab.describe())

        self.drive_control_tab.set_oi(oi)
        self.monitoring_tab.set_oi(oi)

        self._start_snapshot_thread()
        logger.info("Robot connected")

    def _on_device_disconnected(self):
        self._stop_snapshot_thread()
        self.oi = None

        self.connect_action.setEnabled(True)
        self.disconnect_action.setEnabled(False)
        self.action_connect.setEnabled(True)
        self.action_disconnect.setEnabled(False)
        self.connection_status_label.setText("Disconnected")
        self.device_info_label.setText("")

        self.drive_control_tab.set_oi(None)
        self.monitoring_tab.set_oi(None)

        logger.info("Robot disconnected")

    def _on_emergency_stop(self):
        """Zero the wheels; the robot stays in its current mode."""
        if self.device_connected:
            try:
                with self.oi_lock:
                    self.oi.drive_stop()
                logger.warning("Emergency stop activated")
            except OIError as e:
                logger.error(f"Emergency stop failed: {e}")
                QMessageBox.critical(self, "Error", f"Emergency stop failed: {e}")

    def _on_toggle_debug(self):
        debug_mode = self.debug_action.isChecked()
        self.settings.setValue("debug_mode", debug_mode)
        logging.getLogger().setLevel(logging.DEBUG if debug_mode else logging.INFO)
        logger.info(f"Debug mode {'enabled' if debug_mode else 'disabled'}")

    def _on_about(self):
        QMessageBox.about(
            self, "About OIBot Monitor",
            """<h3>OIBot Monitor</h3>
            <p>Drive and monitor cleaning robots over the serial Open Interface.</p>
            <ul>
            <li>Mode and cleaning commands</li>
            <li>Drive and wheel velocity control</li>
            <li>Battery, heading and odometry telemetry</li>
            </ul>
            <p>Built with PyQt6.</p>"""
        )

    def _start_snapshot_thread(self):
        """Start the telemetry polling thread"""
        if self._snapshot_thread and self._snapshot_thread.is_alive():
            return
        self._snapshot_stop.clear()

        def run():
            while not self._snapshot_stop.is_set():
                oi = self.oi
                if oi is not None and self.monitoring_tab.monitoring_enabled:
                    with self.oi_lock:
                        snap = oi.snapshot()
                    self._dispatch_snapshot(snap)
                time.sleep(self._snapshot_interval)
        self._snapshot_thread = threading.Thread(target=run, daemon=True)
        self._snapshot_thread.start()

    def _stop_snapshot_thread(self):
        if self._snapshot_thread:
            self._snapshot_stop.set()
            self._snapshot_thread.join(timeout=2.0)
            self._snapshot_thread = None

    def _dispatch_snapshot(self, snap: dict):
        # invoked from the polling thread; the queued signal hops to the UI thread
        self.snapshot_ready.emit(snap)

    def _apply_snapshot(self, snap: dict):
        self.monitoring_tab.update_from_snapshot(snap)
        self.drive_control_tab.update_from_snapshot(snap)
        if 'battery' in snap:
            battery = snap['battery']
            self.connection_status_label.setText(
                f"Mode: {getattr(snap['mode'], 'name', snap['mode'])} "
                f"V:{battery.voltage_mv / 1000.0:.2f} I:{battery.current_ma}mA")
        elif snap.get('no_data'):
            self.connection_status_label.setText("Connected (no data)")
        elif 'snapshot_error' in snap:
            self.connection_status_label.setText(f"Error: {snap['snapshot_error']}")
