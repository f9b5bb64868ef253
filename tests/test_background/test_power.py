"""Tests for PsutilPowerOracle."""

from unittest.mock import Mock, patch

import pytest

from voice_keyword.background.exceptions import PowerStateUnavailableError
from voice_keyword.background.power import PsutilPowerOracle


def battery(percent: float, power_plugged: bool | None) -> Mock:
    return Mock(percent=percent, power_plugged=power_plugged, secsleft=3600)


@pytest.mark.unit
class TestPsutilPowerOracle:
    """Test cases for the psutil-backed power oracle."""

    @pytest.mark.asyncio
    @patch("psutil.sensors_battery")
    async def test_battery_level(self, mock_battery: Mock) -> None:
        mock_battery.return_value = battery(42.6, True)

        assert await PsutilPowerOracle().battery_level_percent() == 43

    @pytest.mark.asyncio
    @patch("psutil.sensors_battery")
    async def test_discharging_is_power_save(self, mock_battery: Mock) -> None:
        mock_battery.return_value = battery(90, False)

        assert await PsutilPowerOracle().is_power_save_likely() is True

    @pytest.mark.asyncio
    @patch("psutil.sensors_battery")
    async def test_unknown_plug_state_is_power_save(self, mock_battery: Mock) -> None:
        mock_battery.return_value = battery(90, None)

        assert await PsutilPowerOracle().is_power_save_likely() is True

    @pytest.mark.asyncio
    @patch("psutil.sensors_battery")
    async def test_plugged_in(self, mock_battery: Mock) -> None:
        mock_battery.return_value = battery(90, True)

        assert await PsutilPowerOracle().is_power_save_likely() is False

    @pytest.mark.asyncio
    @patch("psutil.sensors_battery")
    async def test_no_battery_is_mains_power(self, mock_battery: Mock) -> None:
        mock_battery.return_value = None
        oracle = PsutilPowerOracle()

        assert await oracle.battery_level_percent() == 100
        assert await oracle.is_power_save_likely() is False

    @pytest.mark.asyncio
    @patch("psutil.sensors_battery")
    async def test_sensor_failure(self, mock_battery: Mock) -> None:
        mock_battery.side_effect = RuntimeError("sensor read failed")

        with pytest.raises(PowerStateUnavailableError, match="sensor read failed"):
            await PsutilPowerOracle().battery_level_percent()
