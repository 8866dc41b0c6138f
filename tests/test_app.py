"""
Checks that the OIBot Monitor can start and render telemetry without a robot connected
"""

import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
QtWidgets = pytest.importorskip("PyQt6.QtWidgets")

from oibot.main_window import MainWindow
from oibot.oi_constants import OpenInterfaceMode
from oibot.oi_sensors import BatteryStatus


@pytest.fixture(scope="module")
def app():
    return QtWidgets.QApplication.instance() or QtWidgets.QApplication([])


@pytest.fixture
def window(app):
    w = MainWindow(configure_logging=False)
    yield w
    w.close()


def _snapshot(angle=0, velocity=0):
    return {
        'mode': OpenInterfaceMode.SAFE,
        'battery': BatteryStatus(2, 11160, -250, 1300, 2600, 1),
        'temperature': 28,
        'distance': 40,
        'angle': angle,
        'requested_velocity': velocity,
    }


def test_window_has_all_tabs(window):
    assert window.tab_widget.count() == 3
    assert not window.device_connected


def test_controls_disabled_without_robot(window):
    assert not window.drive_control_tab.enable_checkbox.isEnabled()
    assert not window.monitoring_tab.enable_monitoring_cb.isEnabled()
    assert not window.drive_control_tab.velocity_slider.isEnabled()


def test_snapshot_updates_monitor(window):
    window.monitoring_tab.monitoring_enabled = True
    window._apply_snapshot(_snapshot(angle=90, velocity=500))

    tab = window.monitoring_tab
    assert tab.mode_status.text() == "SAFE"
    assert tab.voltage_status.text() == "11.16"
    assert tab.battery_progress.value() == 50
    assert tab.direction_status.text() == "left"
    assert tab.odometer == 40
    assert window.drive_control_tab.mode_label.text() == "Mode: SAFE"
    assert "V:11.16" in window.connection_status_label.text()


def test_heading_accumulates_deltas(window):
    window.monitoring_tab.monitoring_enabled = True
    for _ in range(4):
        window._apply_snapshot(_snapshot(angle=45))
    assert window.monitoring_tab.heading == 180
    assert window.monitoring_tab.direction_status.text() == "back"


def test_no_data_snapshot(window):
    window.monitoring_tab.monitoring_enabled = True
    window._apply_snapshot({'no_data': True})
    assert window.monitoring_tab.link_status.text() == "no data"
    assert window.connection_status_label.text() == "Connected (no data)"
