import unittest

from urbanpulse.insights import (
    InsightContext,
    build_insight_prompt,
    fallback_insights,
    get_llm_insights,
    parse_insights,
)
from urbanpulse.providers.errors import ProviderHTTPError, ProviderPayloadError


class StubClient:
    """GeminiClient stand-in returning canned text or raising."""

    model = "stub"

    def __init__(self, text=None, error=None, configured=True):
        self.text = text
        self.error = error
        self.configured = configured
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.text


class TestPrompt(unittest.TestCase):
    def test_build_insight_prompt_lines(self):
        ctx = InsightContext(temperature=31.2, humidity=70, wind_speed=12.5, aqi=162, pm2_5=None)
        prompt = build_insight_prompt(ctx, header_lines=["Location: 19.07,72.87"])
        lines = prompt.splitlines()
        self.assertEqual(lines[0], "Location: 19.07,72.87")
        self.assertIn("Temperature: 31.2", lines)
        self.assertIn("AQI: 162", lines)
        self.assertIn("PM2_5: unknown", lines)
        self.assertTrue(prompt.endswith("JSON array format."))


class TestParseInsights(unittest.TestCase):
    def test_parses_fenced_array(self):
        raw = (
            "Here you go:\n```json\n"
            '[{"icon":"sun","title":"Hot","suggestion":"Stay cool","color":"yellow"}]\n```'
        )
        out = parse_insights(raw)
        self.assertEqual(len(out), 1)
        self.assertEqual(out[0].icon, "sun")

    def test_drops_malformed_items_and_caps(self):
        items = ",".join(
            f'{{"icon":"i{n}","title":"t","suggestion":"s","color":"sky"}}' for n in range(6)
        )
        raw = f'[{{"icon":"bad","title":"t","suggestion":"s","color":"purple"}},{items}]'
        out = parse_insights(raw, limit=4)
        self.assertEqual([i.icon for i in out], ["i0", "i1", "i2"])

    def test_rejects_non_json(self):
        with self.assertRaises(ValueError):
            parse_insights("sorry, I cannot help with that")

    def test_rejects_object(self):
        with self.assertRaises(ValueError):
            parse_insights('{"icon":"sun"}')


class TestFallbackInsights(unittest.TestCase):
    def test_hot_and_unhealthy(self):
        out = fallback_insights("Temperature: 35\nAQI: 160")
        self.assertEqual([i.icon for i in out], ["sun", "mask"])
        self.assertEqual(out[1].color, "red")

    def test_defaults_give_good_air_only(self):
        out = fallback_insights("nothing useful here")
        self.assertEqual(len(out), 1)
        self.assertEqual(out[0].title, "Good air")
        self.assertEqual(out[0].color, "emerald")

    def test_cold_moderate_humid(self):
        out = fallback_insights("Temperature: 2\nHumidity: 85\nAQI: 120")
        self.assertEqual([i.icon for i in out], ["cloud", "alert-circle", "droplet"])

    def test_context_takes_precedence_over_prompt(self):
        out = fallback_insights("Temperature: 35", InsightContext(temperature=10, aqi=20))
        self.assertEqual([i.icon for i in out], ["leaf"])

    def test_unknown_values_use_defaults(self):
        out = fallback_insights("Temperature: unknown\nAQI: unknown")
        self.assertEqual([i.icon for i in out], ["leaf"])


class TestGetLlmInsights(unittest.TestCase):
    def test_unconfigured_client_uses_fallback_without_calling(self):
        client = StubClient(configured=False)
        out = get_llm_insights("Temperature: 35\nAQI: 160", client=client)
        self.assertEqual([i.icon for i in out], ["sun", "mask"])
        self.assertEqual(client.prompts, [])

    def test_model_output_is_used(self):
        client = StubClient(text='[{"icon":"bus","title":"Transit","suggestion":"Take the bus","color":"sky"}]')
        out = get_llm_insights("Temperature: 20", client=client)
        self.assertEqual(out[0].icon, "bus")
        self.assertEqual(client.prompts, ["Temperature: 20"])

    def test_unparseable_output_falls_back(self):
        client = StubClient(text="I think it will be sunny.")
        out = get_llm_insights("Temperature: 35\nAQI: 40", client=client)
        self.assertEqual([i.icon for i in out], ["sun", "leaf"])

    def test_provider_errors_fall_back(self):
        errors = (ProviderHTTPError(500, "boom", provider="gemini"), ProviderPayloadError("blocked", provider="gemini"))
        for error in errors:
            client = StubClient(error=error)
            out = get_llm_insights("AQI: 160", client=client)
            self.assertEqual([i.icon for i in out], ["mask"])


if __name__ == "__main__":
    unittest.main()
