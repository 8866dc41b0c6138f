"""
Device connection tab for the OIBot Monitor
"""

import os
import logging
from typing import Optional
from PyQt6.QtWidgets import (QWidget, QVBoxLayout, QHBoxLayout, QGroupBox,
                            QComboBox, QPushButton, QLabel, QSpinBox, QCheckBox,
                            QMessageBox, QProgressBar, QTextEdit)
from PyQt6.QtCore import QThread, pyqtSignal, QTimer
from PyQt6.QtGui import QFont

from .config import OIConfig, ENV_PREFIX
from .errors import OIError
from .oi_constants import BAUD_CODES
from .oi_protocol import OIProtocol
from .oi_transport import available_ports

logger = logging.getLogger(__name__)


class ConnectionWorker(QThread):
    """Opens the link and reads the robot's info block off the UI thread"""

    connection_result = pyqtSignal(bool, str, object)  # success, message, OIProtocol

    def __init__(self, config: OIConfig):
        super().__init__()
        self.config = config

    def run(self):
        oi = None
        try:
            oi = OIProtocol.from_config(self.config)
            oi.connect(init=self.config.init_baud)
            info = oi.info()
            if info is None:
                oi.close()
                self.connection_result.emit(False, "Robot not responding", None)
                return
            mode = getattr(info.mode, 'name', info.mode)
            self.connection_result.emit(
                True, f"Connected, mode {mode}, battery {info.battery.voltage_mv / 1000.0:.2f}V", oi)
        except OIError as e:
            if oi is not None:
                oi.close()
            self.connection_result.emit(False, f"Connection error: {e}", None)


class DeviceConnectionTab(QWidget):
    """Connection settings and device information"""

    device_connected = pyqtSignal(object)
    device_disconnected = pyqtSignal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self.parent_window = parent
        self.oi: Optional[OIProtocol] = None
        self.connection_worker: Optional[ConnectionWorker] = None

        self._create_ui()
        self._load_defaults()
        self._refresh_ports()

        self.port_refresh_timer = QTimer()
        self.port_refresh_timer.timeout.connect(self._refresh_ports)
        self.port_refresh_timer.start(2000)

    def _create_ui(self):
        layout = QVBoxLayout(self)

        connection_group = QGroupBox("Connection Settings")
        connection_layout = QVBoxLayout(connection_group)

        port_layout = QHBoxLayout()
        port_layout.addWidget(QLabel("Serial Port:"))
        self.port_combo = QComboBox()
        self.port_combo.setMinimumWidth(200)
        self.port_combo.setEditable(True)
        port_layout.addWidget(self.port_combo)
        self.refresh_ports_btn = QPushButton("Refresh")
        self.refresh_ports_btn.clicked.connect(self._refresh_ports)
        port_layout.addWidget(self.refresh_ports_btn)
        port_layout.addStretch()
        connection_layout.addLayout(port_layout)

        baud_layout = QHBoxLayout()
        baud_layout.addWidget(QLabel("Baud Rate:"))
        self.baud_combo = QComboBox()
        self.baud_combo.addItems([str(rate) for rate in BAUD_CODES])
        baud_layout.addWidget(self.baud_combo)
        self.init_baud_cb = QCheckBox("Send Baud command on connect")
        baud_layout.addWidget(self.init_baud_cb)
        baud_layout.addStretch()
        connection_layout.addLayout(baud_layout)

        timeout_layout = QHBoxLayout()
        timeout_layout.addWidget(QLabel("Read Timeout:"))
        self.timeout_spin = QSpinBox()
        self.timeout_spin.setRange(0, 10000)
        self.timeout_spin.setSuffix(" ms")
        self.timeout_spin.setSpecialValueText("never")
        timeout_layout.addWidget(self.timeout_spin)
        timeout_layout.addStretch()
        connection_layout.addLayout(timeout_layout)

        button_layout = QHBoxLayout()
        self.connect_btn = QPushButton("Connect")
        self.connect_btn.clicked.connect(self.connect_device)
        button_layout.addWidget(self.connect_btn)
        self.disconnect_btn = QPushButton("Disconnect")
        self.disconnect_btn.clicked.connect(self.disconnect_device)
        self.disconnect_btn.setEnabled(False)
        button_layout.addWidget(self.disconnect_btn)
        button_layout.addStretch()
        connection_layout.addLayout(button_layout)

        self.connection_progress = QProgressBar()
        self.connection_progress.setVisible(False)
        connection_layout.addWidget(self.connection_progress)

        layout.addWidget(connection_group)

        device_info_group = QGroupBox("Robot Information")
        device_info_layout = QVBoxLayout(device_info_group)
        self.device_info_text = QTextEdit()
        self.device_info_text.setMaximumHeight(150)
        self.device_info_text.setReadOnly(True)
        font = QFont("Courier")
        font.setPointSize(10)
        self.device_info_text.setFont(font)
        device_info_layout.addWidget(self.device_info_text)
        layout.addWidget(device_info_group)

        instructions_group = QGroupBox("Instructions")
        instructions_layout = QVBoxLayout(instructions_group)
        instructions_text = QLabel("""
        <h4>Connection Instructions:</h4>
        <ol>
        <li>Connect the robot's serial cable to the computer</li>
        <li>Select the serial port from the dropdown</li>
        <li>Choose the robot's baud rate (default is 115200)</li>
        <li>Pick a read timeout; "never" blocks until the robot answers</li>
        <li>Click "Connect"; the robot is put in Passive mode</li>
        </ol>
        """)
        instructions_text.setWordWrap(True)
        instructions_layout.addWidget(instructions_text)
        layout.addWidget(instructions_group)

        layout.addStretch()

    def _load_defaults(self):
        """Seed the controls: OIBOT_* environment first, then the last used port/baud"""
        try:
            cfg = OIConfig.from_env()
        except OIError as e:
            logger.warning(f"Ignoring environment settings: {e}")
            cfg = OIConfig()
        settings = getattr(self.parent_window, 'settings', None)
        if settings is not None:
            if ENV_PREFIX + "PORT" not in os.environ:
                cfg.port = settings.value("last_port", cfg.port)
            if ENV_PREFIX + "BAUD" not in os.environ:
                cfg.baud = settings.value("last_baud", cfg.baud, type=int)
        self.port_combo.setEditText(cfg.port)
        self.baud_combo.setCurrentText(str(cfg.baud))
        self.timeout_spin.setValue(int(cfg.timeout * 1000))
        self.init_baud_cb.setChecked(cfg.init_baud)

    def _refresh_ports(self):
        current_port = self.port_combo.currentText()
        self.port_combo.clear()
        ports = available_ports()
        if ports:
            self.port_combo.addItems(ports)
        if current_port:
            self.port_combo.setEditText(current_port)

    def current_config(self) -> OIConfig:
        return OIConfig(
            port=self.port_combo.currentText(),
            baud=int(self.baud_combo.currentText()),
            timeout=self.timeout_spin.value() / 1000.0,
            init_baud=self.init_baud_cb.isChecked(),
        )

    def describe(self) -> str:
        return f"{self.port_combo.currentText()} @ {self.baud_combo.currentText()}"

    def connect_device(self):
        port = self.port_combo.currentText()
        if not port:
            QMessageBox.warning(self, "Warning", "Please select a valid serial port")
            return
        if not os.path.exists(port):
            QMessageBox.warning(self, "Warning", f"Serial port {port} does not exist")
            return

        config = self.current_config()
        self.connect_btn.setEnabled(False)
        self.connection_progress.setVisible(True)
        self.connection_progress.setRange(0, 0)

        self.connection_worker = ConnectionWorker(config)
        self.connection_worker.connection_result.connect(self._on_connection_result)
        self.connection_worker.finished.connect(self._on_connection_finished)
        self.connection_worker.start()

        logger.info(f"Attempting to connect to {config.port} at {config.baud} baud")

    def _on_connection_result(self, success: bool, message: str, oi):
        if success:
            self.oi = oi
            self.disconnect_btn.setEnabled(True)
            self.port_combo.setEnabled(False)
            self.baud_combo.setEnabled(False)
            self.timeout_spin.setEnabled(False)
            self.init_baud_cb.setEnabled(False)

            self.device_info_text.setPlainText("\n".join([message, f"Port: {self.describe()}"]))
            settings = getattr(self.parent_window, 'settings', None)
            if settings is not None:
                settings.setValue("last_port", self.port_combo.currentText())
                settings.setValue("last_baud", int(self.baud_combo.currentText()))
            self.device_connected.emit(self.oi)
            logger.info(f"Connected successfully: {message}")
        else:
            QMessageBox.critical(self, "Connection Failed", message)
            logger.error(f"Connection failed: {message}")

    def _on_connection_finished(self):
        self.connection_progress.setVisible(False)
        if not self.disconnect_btn.isEnabled():
            self.connect_btn.setEnabled(True)

    def disconnect_device(self):
        if self.oi:
            lock = getattr(self.parent_window, 'oi_lock', None)
            try:
                if lock is not None:
                    with lock:
                        self.oi.close()
                else:
                    self.oi.close()
            except OIError as e:
                logger.error(f"Error closing link: {e}")
            self.oi = None

        self.connect_btn.setEnabled(True)
        self.disconnect_btn.setEnabled(False)
        self.port_combo.setEnabled(True)
        self.baud_combo.setEnabled(True)
        self.timeout_spin.setEnabled(True)
        self.init_baud_cb.setEnabled(True)
        self.device_info_text.clear()

        self.device_disconnected.emit()
        logger.info("Disconnected from robot")

    def get_oi(self) -> Optional[OIProtocol]:
        return self.oi
