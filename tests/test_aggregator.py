import unittest

from urbanpulse import aggregator, incident_manager, location_service
from urbanpulse.config import settings
from urbanpulse.incident_store import IncidentCreate
from urbanpulse.providers.open_meteo_client import (
    AirHour,
    AirQualityReport,
    AirQualitySummary,
    WeatherHour,
    WeatherReport,
    WeatherSummary,
)


def _weather_report():
    return WeatherReport(
        summary=WeatherSummary(temperature=35.0, humidity=60.0, wind_speed=10.0, pressure=1005.0),
        hourly=[
            WeatherHour(time="2024-01-01T12:00", temperature=35.0, humidity=60.0, wind_speed=10.0, pressure=1005.0),
            WeatherHour(time="2024-01-01T13:00", temperature=34.0, humidity=62.0, wind_speed=9.0, pressure=1005.5),
        ],
        timezone="Asia/Kolkata",
    )


def _air_report(aqi=160):
    return AirQualityReport(
        summary=AirQualitySummary(aqi=aqi, category="Unhealthy", pm2_5=80.0, pm10=120.0),
        hourly=[AirHour(time="2024-01-01T13:00", aqi=aqi, pm2_5=80.0, pm10=120.0)],
    )


class TestMergeHourly(unittest.TestCase):
    def test_joins_on_timestamp(self):
        merged = aggregator.merge_hourly(_weather_report().hourly, _air_report().hourly)
        self.assertEqual(len(merged), 2)
        self.assertIsNone(merged[0].aqi)
        self.assertEqual(merged[1].aqi, 160)
        self.assertEqual(merged[1].time_label, "13:00")

    def test_no_air_data(self):
        merged = aggregator.merge_hourly(_weather_report().hourly, [])
        self.assertTrue(all(m.aqi is None for m in merged))


class TestBuildDashboard(unittest.TestCase):
    def setUp(self):
        from urbanpulse.providers import open_meteo_client, tomtom_client

        self.om = open_meteo_client
        self.tt = tomtom_client
        self._orig_weather = open_meteo_client.fetch_weather
        self._orig_air = open_meteo_client.fetch_air_quality
        self._orig_geocode = tomtom_client.reverse_geocode
        self._orig_traffic = tomtom_client.fetch_traffic_flow
        self._orig_tomtom_key = settings.tomtom_api_key
        self._orig_gemini_key = settings.gemini_api_key

        settings.tomtom_api_key = None
        settings.gemini_api_key = None
        location_service.reset_caches()
        incident_manager.use_in_memory_store_for_tests()

        open_meteo_client.fetch_weather = lambda lat, lon, timezone="auto": _weather_report()
        open_meteo_client.fetch_air_quality = lambda lat, lon, timezone="auto": _air_report()
        tomtom_client.reverse_geocode = lambda lat, lon: {"freeformAddress": "Fort, Mumbai"}

    def tearDown(self):
        self.om.fetch_weather = self._orig_weather
        self.om.fetch_air_quality = self._orig_air
        self.tt.reverse_geocode = self._orig_geocode
        self.tt.fetch_traffic_flow = self._orig_traffic
        settings.tomtom_api_key = self._orig_tomtom_key
        settings.gemini_api_key = self._orig_gemini_key
        location_service.reset_caches()

    def test_defaults_location_when_missing(self):
        view = aggregator.build_dashboard()
        self.assertEqual(view.location_source, "default")
        self.assertEqual(view.latitude, settings.default_latitude)
        self.assertEqual(view.longitude, settings.default_longitude)

    def test_full_dashboard(self):
        view = aggregator.build_dashboard(19.07, 72.87)
        self.assertEqual(view.location_source, "request")
        self.assertEqual(view.weather.temperature, 35.0)
        self.assertEqual(view.air_quality.aqi, 160)
        self.assertEqual(view.address["freeformAddress"], "Fort, Mumbai")
        self.assertEqual(view.timezone, "Asia/Kolkata")
        self.assertEqual(len(view.hourly), 2)
        self.assertEqual(view.degraded, [])
        # traffic is skipped without a TomTom key
        self.assertIsNone(view.traffic)
        self.assertEqual([i.icon for i in view.insights], ["sun", "mask"])

    def test_air_failure_degrades_only_air(self):
        def broken_air(lat, lon, timezone="auto"):
            raise RuntimeError("air api down")

        self.om.fetch_air_quality = broken_air
        view = aggregator.build_dashboard(19.07, 72.87)

        self.assertEqual(view.weather.temperature, 35.0)
        self.assertIsNone(view.air_quality.aqi)
        self.assertEqual(view.air_quality.category, "Unknown")
        self.assertEqual(view.degraded, ["air_quality"])
        self.assertTrue(all(h.aqi is None for h in view.hourly))

    def test_geocode_failure_uses_placeholder_address(self):
        def broken_geocode(lat, lon):
            raise RuntimeError("tomtom down")

        self.tt.reverse_geocode = broken_geocode
        view = aggregator.build_dashboard(19.07, 72.87)
        self.assertEqual(view.address, {"freeformAddress": "19.0700, 72.8700", "countryCode": "Unknown"})
        self.assertIn("address", view.degraded)

    def test_traffic_included_when_configured(self):
        from urbanpulse.providers.tomtom_client import TrafficFlow

        settings.tomtom_api_key = "k"
        flow = TrafficFlow(20.0, 40.0, 120.0, 60.0, 0.9, False, 0.5)
        self.tt.fetch_traffic_flow = lambda lat, lon: flow
        view = aggregator.build_dashboard(19.07, 72.87)
        self.assertEqual(view.traffic.congestion, 0.5)

    def test_recent_incidents_are_capped(self):
        for n in range(7):
            incident_manager.create_incident(
                "u",
                IncidentCreate(type="Other", description=f"report {n}",
                               location={"name": "X", "lat": 0.0, "lon": 0.0}),
            )
        view = aggregator.build_dashboard(19.07, 72.87)
        self.assertEqual(len(view.incidents), aggregator.RECENT_INCIDENT_LIMIT)

    def test_simulation_insights(self):
        result = aggregator.build_simulation_insights(
            "Heat plan", "Mumbai", 19.07, 72.87, {"trees": True}
        )
        self.assertEqual(result.name, "Heat plan")
        self.assertEqual(result.weather.temperature, 35.0)
        self.assertEqual([i.icon for i in result.insights], ["sun", "mask"])
        self.assertEqual(result.degraded, [])


if __name__ == "__main__":
    unittest.main()
