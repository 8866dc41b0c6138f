"""
Real-time monitoring tab for the OIBot Monitor
"""

import logging
import time
from collections import deque
from typing import Optional
from PyQt6.QtWidgets import (QWidget, QVBoxLayout, QHBoxLayout, QGroupBox,
                            QLabel, QProgressBar, QGridLayout, QTabWidget,
                            QPushButton, QCheckBox, QSpinBox, QComboBox)
from PyQt6.QtCore import QTimer, Qt
from PyQt6.QtGui import QFont
from matplotlib.backends.backend_qtagg import FigureCanvasQTAgg as FigureCanvas
from matplotlib.figure import Figure
import numpy as np

from .heading import classify, weight_for_speed
from .oi_protocol import OIProtocol

logger = logging.getLogger(__name__)

# Typical NiMH/Li-ion pack temperature alarm levels
TEMP_HIGH_C = 50
TEMP_WARN_C = 40


class MonitoringTab(QWidget):
    """Telemetry readout, heading display and history plots.

    Samples arrive as snapshots pushed by the main window's polling thread;
    this tab never talks to the link itself.
    """

    def __init__(self, parent=None):
        super().__init__(parent)
        self.parent_window = parent
        self.oi: Optional[OIProtocol] = None

        self.max_data_points = 1000
        self.time_data = deque(maxlen=self.max_data_points)
        self.voltage_data = deque(maxlen=self.max_data_points)
        self.current_data = deque(maxlen=self.max_data_points)
        self.charge_data = deque(maxlen=self.max_data_points)
        self.temperature_data = deque(maxlen=self.max_data_points)
        self.heading_data = deque(maxlen=self.max_data_points)
        self.odometer_data = deque(maxlen=self.max_data_points)

        # distance and angle packets report deltas since the previous read
        self.heading = 0
        self.odometer = 0

        self.start_time = time.time()
        self.monitoring_enabled = False

        self._create_ui()
        self._setup_timers()

    def _create_ui(self):
        layout = QVBoxLayout(self)

        controls_group = QGroupBox("Monitoring Controls")
        controls_layout = QHBoxLayout(controls_group)

        self.enable_monitoring_cb = QCheckBox("Enable Monitoring")
        self.enable_monitoring_cb.setEnabled(False)
        self.enable_monitoring_cb.stateChanged.connect(self._on_monitoring_toggled)
        controls_layout.addWidget(self.enable_monitoring_cb)

        self.clear_data_btn = QPushButton("Clear Data")
        self.clear_data_btn.clicked.connect(self._clear_data)
        controls_layout.addWidget(self.clear_data_btn)

        self.reset_odometry_btn = QPushButton("Reset Odometry")
        self.reset_odometry_btn.clicked.connect(self._reset_odometry)
        controls_layout.addWidget(self.reset_odometry_btn)

        controls_layout.addStretch()
        layout.addWidget(controls_group)

        self.tab_widget = QTabWidget()
        self.status_tab = self._create_status_tab()
        self.tab_widget.addTab(self.status_tab, "Status")
        self.plots_tab = self._create_plots_tab()
        self.tab_widget.addTab(self.plots_tab, "Data Plots")
        layout.addWidget(self.tab_widget)

    def _create_status_tab(self) -> QWidget:
        tab = QWidget()
        layout = QVBoxLayout(tab)

        battery_group = QGroupBox("Battery")
        battery_layout = QGridLayout(battery_group)

        battery_layout.addWidget(QLabel("Mode:"), 0, 0)
        self.mode_status = QLabel("--")
        self.mode_status.setAlignment(Qt.AlignmentFlag.AlignCenter)
        battery_layout.addWidget(self.mode_status, 0, 1)

        battery_layout.addWidget(QLabel("Charging:"), 1, 0)
        self.charging_status = QLabel("--")
        self.charging_status.setAlignment(Qt.AlignmentFlag.AlignCenter)
        battery_layout.addWidget(self.charging_status, 1, 1)

        battery_layout.addWidget(QLabel("Voltage:"), 2, 0)
        self.voltage_status = QLabel("0.00")
        self.voltage_status.setAlignment(Qt.AlignmentFlag.AlignCenter)
        battery_layout.addWidget(self.voltage_status, 2, 1)
        battery_layout.addWidget(QLabel("V"), 2, 2)

        battery_layout.addWidget(QLabel("Current:"), 3, 0)
        self.current_status = QLabel("0")
        self.current_status.setAlignment(Qt.AlignmentFlag.AlignCenter)
        battery_layout.addWidget(self.current_status, 3, 1)
        battery_layout.addWidget(QLabel("mA"), 3, 2)

        battery_layout.addWidget(QLabel("Charge:"), 4, 0)
        self.charge_status = QLabel("0 / 0")
        self.charge_status.setAlignment(Qt.AlignmentFlag.AlignCenter)
        battery_layout.addWidget(self.charge_status, 4, 1)
        battery_layout.addWidget(QLabel("mAh"), 4, 2)
        self.battery_progress = QProgressBar()
        self.battery_progress.setRange(0, 100)
        self.battery_progress.setValue(0)
        battery_layout.addWidget(self.battery_progress, 4, 3)

        battery_layout.addWidget(QLabel("Temperature:"), 5, 0)
        self.temperature_status = QLabel("0")
        self.temperature_status.setAlignment(Qt.AlignmentFlag.AlignCenter)
        battery_layout.addWidget(self.temperature_status, 5, 1)
        battery_layout.addWidget(QLabel("°C"), 5, 2)

        layout.addWidget(battery_group)

        motion_group = QGroupBox("Motion")
        motion_layout = QGridLayout(motion_group)

        self.heading_glyph = QLabel("·")
        font = QFont()
        font.setPointSize(48)
        self.heading_glyph.setFont(font)
        self.heading_glyph.setAlignment(Qt.AlignmentFlag.AlignCenter)
        motion_layout.addWidget(self.heading_glyph, 0, 0, 3, 1)

        motion_layout.addWidget(QLabel("Heading:"), 0, 1)
        self.heading_status = QLabel("0°")
        motion_layout.addWidget(self.heading_status, 0, 2)

        motion_layout.addWidget(QLabel("Direction:"), 1, 1)
        self.direction_status = QLabel("--")
        motion_layout.addWidget(self.direction_status, 1, 2)

        motion_layout.addWidget(QLabel("Odometer:"), 2, 1)
        self.odometer_status = QLabel("0 mm")
        motion_layout.addWidget(self.odometer_status, 2, 2)

        layout.addWidget(motion_group)

        status_layout = QHBoxLayout()
        status_layout.addWidget(QLabel("Samples Collected:"))
        self.samples_count_label = QLabel("0")
        status_layout.addWidget(self.samples_count_label)
        self.link_status = QLabel("")
        status_layout.addWidget(self.link_status)
        status_layout.addStretch()
        layout.addLayout(status_layout)

        layout.addStretch()
        return tab

    def _create_plots_tab(self) -> QWidget:
        tab = QWidget()
        layout = QVBoxLayout(tab)

        plot_controls_group = QGroupBox("Plot Controls")
        plot_controls_layout = QHBoxLayout(plot_controls_group)

        plot_controls_layout.addWidget(QLabel("Plot Type:"))
        self.plot_type_combo = QComboBox()
        self.plot_type_combo.addItems([
            "Battery",
            "Temperature",
            "Odometry",
        ])
        self.plot_type_combo.currentTextChanged.connect(self._update_plots)
        plot_controls_layout.addWidget(self.plot_type_combo)

        plot_controls_layout.addWidget(QLabel("Time Range (s):"))
        self.time_range_spin = QSpinBox()
        self.time_range_spin.setRange(10, 300)
        self.time_range_spin.setValue(60)
        self.time_range_spin.valueChanged.connect(self._update_plots)
        plot_controls_layout.addWidget(self.time_range_spin)

        plot_controls_layout.addStretch()
        layout.addWidget(plot_controls_group)

        self.figure = Figure(figsize=(12, 8))
        self.canvas = FigureCanvas(self.figure)
        layout.addWidget(self.canvas)

        self.ax1 = self.figure.add_subplot(2, 1, 1)
        self.ax2 = self.figure.add_subplot(2, 1, 2)
        for ax in (self.ax1, self.ax2):
            ax.grid(True, alpha=0.3)
            ax.set_xlabel("Time (s)")
        self.figure.tight_layout()
        self.canvas.draw()

        return tab

    def _setup_timers(self):
        # Plots redraw slower than samples arrive
        self.plot_timer = QTimer()
        self.plot_timer.timeout.connect(self._update_plots)
        self.plot_timer.start(1000)

    def set_oi(self, oi: Optional[OIProtocol]):
        self.oi = oi
        connected = oi is not None
        self.enable_monitoring_cb.setEnabled(connected)
        if not connected:
            self.enable_monitoring_cb.setChecked(False)
            self._on_monitoring_toggled()

    def _on_monitoring_toggled(self):
        self.monitoring_enabled = self.enable_monitoring_cb.isChecked()
        if self.monitoring_enabled:
            self.start_time = time.time()
            logger.info("Monitoring started")
        else:
            logger.info("Monitoring stopped")

    def _reset_odometry(self):
        self.heading = 0
        self.odometer = 0
        self._show_heading(0)
        self.odometer_status.setText("0 mm")

    def _clear_data(self):
        for series in (self.time_data, self.voltage_data, self.current_data, self.charge_data,
                       self.temperature_data, self.heading_data, self.odometer_data):
            series.clear()
        self.start_time = time.time()
        self.samples_count_label.setText("0")
        self._update_plots()
        logger.info("Monitoring data cleared")

    def _show_heading(self, velocity: int):
        glyph, direction = classify(self.heading, weight_for_speed(velocity))
        self.heading_glyph.setText(glyph)
        self.heading_status.setText(f"{self.heading}°")
        self.direction_status.setText(direction.value)

    def update_from_snapshot(self, snap: dict):
        if not snap or not self.monitoring_enabled:
            return
        if snap.get('no_data'):
            self.link_status.setText("no data")
            self.link_status.setStyleSheet("color: orange;")
            return
        if 'snapshot_error' in snap:
            self.link_status.setText(f"error: {snap['snapshot_error']}")
            self.link_status.setStyleSheet("color: red;")
            return
        self.link_status.setText("")

        battery = snap['battery']
        self.heading += snap['angle']
        self.odometer += snap['distance']

        self.time_data.append(time.time() - self.start_time)
        self.voltage_data.append(battery.voltage_mv / 1000.0)
        self.current_data.append(battery.current_ma)
        self.charge_data.append(battery.charge_mah)
        self.temperature_data.append(snap['temperature'])
        self.heading_data.append(self.heading)
        self.odometer_data.append(self.odometer)

        mode = snap['mode']
        self.mode_status.setText(getattr(mode, 'name', str(mode)))
        self.charging_status.setText(battery.charging_state_name)
        self.voltage_status.setText(f"{battery.voltage_mv / 1000.0:.2f}")
        self.current_status.setText(f"{battery.current_ma:,}")
        self.charge_status.setText(f"{battery.charge_mah:,} / {battery.capacity_mah:,}")
        percent = battery.percent
        self.battery_progress.setValue(int(percent) if percent is not None else 0)

        temperature = snap['temperature']
        self.temperature_status.setText(str(temperature))
        if temperature > TEMP_HIGH_C:
            self.temperature_status.setStyleSheet("color: red;")
        elif temperature > TEMP_WARN_C:
            self.temperature_status.setStyleSheet("color: orange;")
        else:
            self.temperature_status.setStyleSheet("")

        self._show_heading(snap['requested_velocity'])
        self.odometer_status.setText(f"{self.odometer:,} mm")
        self.samples_count_label.setText(str(len(self.time_data)))

    def _update_plots(self):
        if len(self.time_data) < 2:
            return

        plot_type = self.plot_type_combo.currentText()
        time_range = self.time_range_spin.value()

        times = np.array(self.time_data)
        mask = times >= (times[-1] - time_range)
        t = times[mask]

        self.ax1.clear()
        self.ax2.clear()

        if plot_type == "Battery":
            self.ax1.plot(t, np.array(self.voltage_data)[mask], 'g-', linewidth=2, label='Voltage')
            self.ax1.set_title("Battery Voltage")
            self.ax1.set_ylabel("Volts")
            self.ax2.plot(t, np.array(self.current_data)[mask], 'b-', linewidth=2, label='Current')
            self.ax2.axhline(y=0, color='k', linestyle='--', alpha=0.5)
            self.ax2.set_title("Battery Current (negative = discharging)")
            self.ax2.set_ylabel("mA")

        elif plot_type == "Temperature":
            temp = np.array(self.temperature_data)[mask]
            self.ax1.plot(t, temp, 'm-', linewidth=2, label='Temperature')
            self.ax1.set_title("Battery Temperature")
            self.ax1.set_ylabel("°C")
            self.ax2.axhline(y=TEMP_HIGH_C, color='r', linestyle='--', alpha=0.7, label=f'High ({TEMP_HIGH_C}°C)')
            self.ax2.axhline(y=TEMP_WARN_C, color='orange', linestyle='--', alpha=0.7, label=f'Warm ({TEMP_WARN_C}°C)')
            self.ax2.plot(t, temp, 'm-', linewidth=2, label='Temperature')
            self.ax2.set_title("Temperature with Thresholds")
            self.ax2.set_ylabel("°C")
            self.ax2.legend()

        elif plot_type == "Odometry":
            self.ax1.plot(t, np.array(self.odometer_data)[mask], 'b-', linewidth=2, label='Odometer')
            self.ax1.set_title("Distance Travelled")
            self.ax1.set_ylabel("mm")
            self.ax2.plot(t, np.array(self.heading_data)[mask], 'r-', linewidth=2, label='Heading')
            self.ax2.set_title("Accumulated Heading")
            self.ax2.set_ylabel("Degrees")

        for ax in (self.ax1, self.ax2):
            ax.grid(True, alpha=0.3)
            ax.set_xlabel("Time (s)")

        self.figure.tight_layout()
        self.canvas.draw()
