import unittest

from urbanpulse.main import app


class TestMain(unittest.TestCase):
    def test_app_metadata(self):
        self.assertEqual(app.title, "UrbanPulse")
        paths = {route.path for route in app.routes}
        for path in ("/api/geocode", "/api/location-search", "/api/tomtom-route", "/api/dashboard"):
            self.assertIn(path, paths)


if __name__ == "__main__":
    unittest.main()
