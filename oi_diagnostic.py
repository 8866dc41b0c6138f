#!/usr/bin/env python3
"""
OIBot Connection Diagnostic Tool
Probes serial ports and baud rates for a robot answering the Open Interface
"""

import sys
import logging

from oibot.config import OIConfig
from oibot.errors import OIError
from oibot.oi_protocol import OIProtocol
from oibot.oi_transport import available_ports

logger = logging.getLogger("oi_diagnostic")

# Most likely rates first: 115200 is the factory default, 19200 the fallback
BAUD_RATES = [115200, 19200, 57600, 38400, 9600]


def probe(port, baud, timeout=1.0):
    """Return the robot's InfoStatus at port/baud, or None if nothing answers."""
    print(f"\n=== Testing {port} at {baud} baud ===")
    oi = OIProtocol.from_config(OIConfig(port=port, baud=baud, timeout=timeout))
    try:
        oi.connect()
        print("✓ Serial port opened, Start sent")
        info = oi.info()
        if info is None:
            print("✗ No response to sensor query")
            return None
        mode = getattr(info.mode, 'name', info.mode)
        battery = info.battery
        print(f"✓ Mode: {mode}")
        print(f"✓ Battery: {battery.voltage_mv / 1000.0:.2f}V {battery.current_ma}mA "
              f"{battery.charge_mah}/{battery.capacity_mah}mAh ({battery.charging_state_name})")
        return info
    except OIError as e:
        print(f"✗ {e}")
        if "Permission denied" in str(e):
            print(f"   Try: sudo chmod 666 {port}")
            print(f"   Or add user to dialout group and logout/login")
        return None
    finally:
        oi.close()


def test_baud_rates(port):
    print(f"\n=== Testing multiple baud rates on {port} ===")
    for baud in BAUD_RATES:
        if probe(port, baud):
            print(f"\n🎉 SUCCESS: robot found on {port} at {baud} baud")
            return port, baud
    return None, None


def main():
    logging.basicConfig(level=logging.WARNING, format='%(levelname)s %(name)s: %(message)s')
    print("OIBot Connection Diagnostic Tool")
    print("=" * 50)

    ports = available_ports()
    if not ports:
        print("❌ No serial ports found!")
        print("\nTroubleshooting:")
        print("1. Make sure the robot's serial cable is connected")
        print("2. Check the USB-serial adapter")
        print("3. Try a different USB port")
        return 1

    print(f"Found {len(ports)} serial ports:")
    for port in ports:
        print(f"  {port}")

    for port in ports:
        if '/dev/ttyS' in port and port[-1].isdigit() and int(port[-1]) > 3:
            continue  # Skip high-numbered ttyS ports (usually not real)

        port_result, baud_result = test_baud_rates(port)
        if port_result:
            print(f"\n✅ SOLUTION FOUND!")
            print(f"   Port: {port_result}")
            print(f"   Baud Rate: {baud_result}")
            print(f"\nUse these settings in the OIBot Monitor, or export")
            print(f"   OIBOT_PORT={port_result} OIBOT_BAUD={baud_result}")
            return 0

    print(f"\n❌ No robot found on any port!")
    print(f"\nTroubleshooting checklist:")
    print(f"1. Verify the robot is powered on (press Clean once to wake it)")
    print(f"2. Check the mini-DIN cable connection")
    print(f"3. Robots left on the dock may sleep; take it off and retry")
    print(f"4. A previous Baud command may have changed the rate; power-cycle the robot")
    print(f"5. Check for driver issues: dmesg | tail")

    return 1

if __name__ == "__main__":
    sys.exit(main())
