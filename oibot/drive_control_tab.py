"""
Drive control tab for the OIBot Monitor
"""

import logging
import time
from typing import Optional
from PyQt6.QtWidgets import (QWidget, QVBoxLayout, QHBoxLayout, QGroupBox,
                            QSlider, QPushButton, QLabel, QSpinBox,
                            QCheckBox, QMessageBox)
from PyQt6.QtCore import Qt

from .errors import OIError
from .oi_constants import (MIN_DRIVE_VELOCITY, MAX_DRIVE_VELOCITY,
                           MIN_DRIVE_RADIUS, MAX_DRIVE_RADIUS, TURN_CLOCKWISE_RADIUS,
                           TURN_COUNTER_CLOCKWISE_RADIUS)
from .oi_protocol import OIProtocol

logger = logging.getLogger(__name__)

TANK_SPEED = 200
TURN_SPEED = 100


class DriveControlTab(QWidget):
    """Mode, cleaning and motion commands"""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.parent_window = parent
        self.oi: Optional[OIProtocol] = None
        self.drive_enabled = False

        self._create_ui()
        self.set_oi(None)

    def _create_ui(self):
        layout = QVBoxLayout(self)

        # Mode
        mode_group = QGroupBox("Mode")
        mode_layout = QHBoxLayout(mode_group)
        self.mode_buttons = []
        for label, action in (("Passive", lambda oi: oi.passive()),
                              ("Safe", lambda oi: oi.safe()),
                              ("Full", lambda oi: oi.full()),
                              ("Power Off", lambda oi: oi.power()),
                              ("Stop OI", lambda oi: oi.stop()),
                              ("Reset", lambda oi: oi.reset())):
            btn = QPushButton(label)
            btn.clicked.connect(lambda _=False, a=action, n=label: self._run(n, a))
            mode_layout.addWidget(btn)
            self.mode_buttons.append(btn)
        self.query_mode_btn = QPushButton("Query Mode")
        self.query_mode_btn.clicked.connect(self._on_query_mode)
        mode_layout.addWidget(self.query_mode_btn)
        self.mode_buttons.append(self.query_mode_btn)
        mode_layout.addStretch()
        self.mode_label = QLabel("Mode: --")
        mode_layout.addWidget(self.mode_label)
        layout.addWidget(mode_group)

        # Cleaning
        clean_group = QGroupBox("Cleaning")
        clean_layout = QHBoxLayout(clean_group)
        self.clean_buttons = []
        for label, action in (("Clean", lambda oi: oi.clean()),
                              ("Spot", lambda oi: oi.spot()),
                              ("Max", lambda oi: oi.max_clean()),
                              ("Seek Dock", lambda oi: oi.seek_dock())):
            btn = QPushButton(label)
            btn.clicked.connect(lambda _=False, a=action, n=label: self._run(n, a))
            clean_layout.addWidget(btn)
            self.clean_buttons.append(btn)
        clean_layout.addStretch()
        layout.addWidget(clean_group)

        # Drive enable / emergency stop
        control_group = QGroupBox("Drive")
        control_layout = QVBoxLayout(control_group)

        enable_layout = QHBoxLayout()
        self.enable_checkbox = QCheckBox("Enable Drive")
        self.enable_checkbox.stateChanged.connect(self._on_drive_toggled)
        enable_layout.addWidget(self.enable_checkbox)

        self.emergency_stop_btn = QPushButton("EMERGENCY STOP")
        self.emergency_stop_btn.setStyleSheet("QPushButton { background-color: red; color: white; font-weight: bold; }")
        self.emergency_stop_btn.clicked.connect(self._on_emergency_stop)
        enable_layout.addWidget(self.emergency_stop_btn)
        enable_layout.addStretch()
        control_layout.addLayout(enable_layout)

        velocity_layout = QHBoxLayout()
        velocity_layout.addWidget(QLabel("Velocity (mm/s):"))
        self.velocity_slider = QSlider(Qt.Orientation.Horizontal)
        self.velocity_slider.setRange(MIN_DRIVE_VELOCITY, MAX_DRIVE_VELOCITY)
        self.velocity_slider.setValue(0)
        self.velocity_slider.valueChanged.connect(self._on_velocity_changed)
        self.velocity_slider.sliderReleased.connect(self._on_velocity_released)
        velocity_layout.addWidget(self.velocity_slider)
        self.velocity_spinbox = QSpinBox()
        self.velocity_spinbox.setRange(MIN_DRIVE_VELOCITY, MAX_DRIVE_VELOCITY)
        self.velocity_spinbox.valueChanged.connect(self._on_velocity_spinbox_changed)
        velocity_layout.addWidget(self.velocity_spinbox)
        control_layout.addLayout(velocity_layout)

        radius_layout = QHBoxLayout()
        radius_layout.addWidget(QLabel("Radius (mm):"))
        self.radius_spinbox = QSpinBox()
        self.radius_spinbox.setRange(MIN_DRIVE_RADIUS, MAX_DRIVE_RADIUS)
        self.radius_spinbox.setValue(MAX_DRIVE_RADIUS)
        radius_layout.addWidget(self.radius_spinbox)
        self.straight_checkbox = QCheckBox("Straight")
        self.straight_checkbox.setChecked(True)
        self.straight_checkbox.toggled.connect(self._update_radius_enabled)
        radius_layout.addWidget(self.straight_checkbox)
        self.drive_btn = QPushButton("Drive")
        self.drive_btn.clicked.connect(self._on_velocity_released)
        radius_layout.addWidget(self.drive_btn)
        radius_layout.addStretch()
        control_layout.addLayout(radius_layout)

        status_layout = QHBoxLayout()
        status_layout.addWidget(QLabel("Requested velocity:"))
        self.requested_velocity_label = QLabel("--")
        status_layout.addWidget(self.requested_velocity_label)
        status_layout.addStretch()
        control_layout.addLayout(status_layout)
        layout.addWidget(control_group)

        # Per-wheel control
        wheels_group = QGroupBox("Wheel Control")
        wheels_layout = QVBoxLayout(wheels_group)

        wheel_speed_layout = QHBoxLayout()
        wheel_speed_layout.addWidget(QLabel("Right:"))
        self.right_spinbox = QSpinBox()
        self.right_spinbox.setRange(MIN_DRIVE_VELOCITY, MAX_DRIVE_VELOCITY)
        wheel_speed_layout.addWidget(self.right_spinbox)
        wheel_speed_layout.addWidget(QLabel("Left:"))
        self.left_spinbox = QSpinBox()
        self.left_spinbox.setRange(MIN_DRIVE_VELOCITY, MAX_DRIVE_VELOCITY)
        wheel_speed_layout.addWidget(self.left_spinbox)
        self.wheels_btn = QPushButton("Apply")
        self.wheels_btn.clicked.connect(
            lambda: self._set_wheels(self.right_spinbox.value(), self.left_spinbox.value()))
        wheel_speed_layout.addWidget(self.wheels_btn)
        wheel_speed_layout.addStretch()
        wheels_layout.addLayout(wheel_speed_layout)

        tank_layout = QHBoxLayout()
        self.tank_forward_btn = QPushButton("Forward")
        self.tank_forward_btn.clicked.connect(lambda: self._set_wheels(TANK_SPEED, TANK_SPEED))
        tank_layout.addWidget(self.tank_forward_btn)
        self.tank_backward_btn = QPushButton("Backward")
        self.tank_backward_btn.clicked.connect(lambda: self._set_wheels(-TANK_SPEED, -TANK_SPEED))
        tank_layout.addWidget(self.tank_backward_btn)
        self.tank_left_btn = QPushButton("Spin Left")
        self.tank_left_btn.clicked.connect(lambda: self._spin(TURN_COUNTER_CLOCKWISE_RADIUS))
        tank_layout.addWidget(self.tank_left_btn)
        self.tank_right_btn = QPushButton("Spin Right")
        self.tank_right_btn.clicked.connect(lambda: self._spin(TURN_CLOCKWISE_RADIUS))
        tank_layout.addWidget(self.tank_right_btn)
        self.tank_stop_btn = QPushButton("Stop All")
        self.tank_stop_btn.clicked.connect(self._stop_drive)
        tank_layout.addWidget(self.tank_stop_btn)
        wheels_layout.addLayout(tank_layout)
        layout.addWidget(wheels_group)

        layout.addStretch()

    def _drive_controls(self):
        return [
            self.velocity_slider, self.velocity_spinbox, self.radius_spinbox,
            self.straight_checkbox, self.drive_btn,
            self.right_spinbox, self.left_spinbox, self.wheels_btn,
            self.tank_forward_btn, self.tank_backward_btn,
            self.tank_left_btn, self.tank_right_btn, self.tank_stop_btn,
        ]

    def set_oi(self, oi: Optional[OIProtocol]):
        """Attach or detach the robot link"""
        self.oi = oi
        connected = oi is not None
        for btn in self.mode_buttons + self.clean_buttons:
            btn.setEnabled(connected)
        self.enable_checkbox.setEnabled(connected)
        self.emergency_stop_btn.setEnabled(connected)
        if not connected:
            self.enable_checkbox.setChecked(False)
            self.mode_label.setText("Mode: --")
            self.requested_velocity_label.setText("--")
        self._on_drive_toggled()

    def _run(self, name: str, action):
        """Run one link operation under the shared lock; returns its result or None."""
        if not self.oi:
            return None
        lock = getattr(self.parent_window, 'oi_lock', None)
        start = time.monotonic()
        try:
            if lock is not None:
                with lock:
                    result = action(self.oi)
            else:
                result = action(self.oi)
        except OIError as e:
            logger.error(f"ACTION {name} failed: {e}")
            QMessageBox.warning(self, "Command Failed", f"{name}: {e}")
            return None
        logger.info(f"ACTION {name} dur_ms={(time.monotonic() - start) * 1000:.2f} stats={self.oi.get_stats()}")
        return result

    def _on_query_mode(self):
        mode = self._run("query_mode", lambda oi: oi.mode())
        self.mode_label.setText(f"Mode: {mode.name if mode is not None else 'no data'}")

    def _on_drive_toggled(self):
        self.drive_enabled = self.enable_checkbox.isChecked()
        for control in self._drive_controls():
            control.setEnabled(self.drive_enabled and self.oi is not None)
        self._update_radius_enabled()

        if not self.drive_enabled and self.oi:
            self._stop_drive(force=True)
        logger.info(f"Drive {'enabled' if self.drive_enabled else 'disabled'}")

    def _update_radius_enabled(self):
        self.radius_spinbox.setEnabled(self.drive_enabled and self.oi is not None
                                       and not self.straight_checkbox.isChecked())

    def _reset_controls(self):
        self.velocity_slider.setValue(0)
        self.velocity_spinbox.setValue(0)
        self.right_spinbox.setValue(0)
        self.left_spinbox.setValue(0)

    def _on_emergency_stop(self):
        if self.oi:
            self._stop_drive(force=True)
            self.enable_checkbox.setChecked(False)
            logger.warning("Emergency stop activated")

    def _stop_drive(self, force: bool = False):
        if not force and not self.drive_enabled:
            return
        self._run("drive_stop", lambda oi: oi.drive_stop())
        self._reset_controls()

    def _on_velocity_changed(self, value: int):
        self.velocity_spinbox.setValue(value)

    def _on_velocity_spinbox_changed(self, value: int):
        self.velocity_slider.setValue(value)

    def _on_velocity_released(self):
        if not self.drive_enabled:
            return
        velocity = self.velocity_slider.value()
        if self.straight_checkbox.isChecked():
            self._run("drive_straight", lambda oi: oi.drive_straight(velocity))
        else:
            radius = self.radius_spinbox.value()
            self._run("drive", lambda oi: oi.drive(velocity, radius))

    def _spin(self, radius: int):
        if not self.drive_enabled:
            return
        self._run("spin", lambda oi: oi.drive(TURN_SPEED, radius))

    def _set_wheels(self, right: int, left: int):
        if not self.drive_enabled:
            return
        self._run("drive_wheels", lambda oi: oi.drive_wheels(right, left))
        if self.right_spinbox.value() != right:
            self.right_spinbox.setValue(right)
        if self.left_spinbox.value() != left:
            self.left_spinbox.setValue(left)

    def update_from_snapshot(self, snap: dict):
        if not snap:
            return
        if 'mode' in snap and snap['mode'] is not None:
            self.mode_label.setText(f"Mode: {getattr(snap['mode'], 'name', snap['mode'])}")
        if 'requested_velocity' in snap:
            self.requested_velocity_label.setText(f"{snap['requested_velocity']} mm/s")
