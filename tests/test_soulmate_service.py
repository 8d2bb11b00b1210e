"""Soulmate generation pipeline with stubbed OpenAI and storage."""

from __future__ import annotations

import random
import tempfile
import unittest
from collections import Counter
from pathlib import Path
from unittest.mock import Mock, patch

from botocore.exceptions import ClientError

from sidus import astro_calc, openai_client, storage
from sidus_api import db, soulmate_service


R2_ENV = {
    "R2_ENDPOINT": "https://account.r2.cloudflarestorage.com",
    "R2_ACCESS_KEY_ID": "key",
    "R2_SECRET_ACCESS_KEY": "secret",
    "R2_BUCKET_NAME": "sidus",
    "R2_PUBLIC_URL": "https://cdn.example.com",
}


def sequence(*values):
    it = iter(values)
    return lambda: next(it)


class SoulmateServiceTest(unittest.TestCase):
    def setUp(self):
        self.tempdir = tempfile.TemporaryDirectory()
        db.DB_PATH = Path(self.tempdir.name) / "test.db"
        self.conn = db.get_connection()
        db.init_db(self.conn)

        self.image_patch = patch("sidus.openai_client.generate_image", return_value="https://oai.example/tmp.png")
        self.upload_patch = patch(
            "sidus.storage.upload_image_from_url",
            return_value="https://cdn.example/soulmates/soulmate-1-abc.png",
        )
        self.analysis_patch = patch("sidus.openai_client.ask_gpt", return_value="A destined pairing.")
        self.generate_image = self.image_patch.start()
        self.upload = self.upload_patch.start()
        self.ask_gpt = self.analysis_patch.start()

    def tearDown(self):
        patch.stopall()
        self.conn.close()
        db.DB_PATH = None
        self.tempdir.cleanup()

    def generate(self, **overrides):
        kwargs = {
            "user_id": "user-1",
            "user_sun_sign": "Leo",
            "gender_preference": "female",
            "ethnicity_tags": ["asian"],
        }
        kwargs.update(overrides)
        return soulmate_service.generate_soulmate(self.conn, **kwargs)

    def test_end_to_end_with_stubs(self):
        result = self.generate()
        self.assertGreaterEqual(result.compatibility_score, 90)
        self.assertLessEqual(result.compatibility_score, 100)
        self.assertTrue(result.analysis)
        self.assertIn(result.soulmate_sign, astro_calc.ZODIAC_SIGNS)
        self.assertEqual(result.soulmate_sign, result.sun_sign)
        self.assertEqual(result.image_url, "https://cdn.example/soulmates/soulmate-1-abc.png")

        prompt = self.generate_image.call_args[0][0]
        self.assertIn("female person of asian ethnicity", prompt)
        self.assertIn("compatible with a Leo", prompt)
        self.assertIn("pencil sketch", prompt)
        self.assertEqual(self.upload.call_args[0][0], "https://oai.example/tmp.png")
        self.assertRegex(self.upload.call_args[0][1], r"^soulmate-\d+-[a-z0-9]+\.png$")

    def test_deterministic_random_source(self):
        result = self.generate(rand=sequence(0.0, 0.5, 0.99, 0.999))
        self.assertEqual((result.sun_sign, result.moon_sign, result.rising_sign), ("Aries", "Libra", "Pisces"))
        self.assertEqual(result.compatibility_score, 100)
        self.assertEqual(
            result.short_description,
            soulmate_service.build_short_description("Aries", "Pisces"),
        )

    def test_score_bounds(self):
        self.assertEqual(soulmate_service.draw_soulmate_score(lambda: 0.0), 90)
        self.assertEqual(soulmate_service.draw_soulmate_score(lambda: 0.9999999), 100)
        self.assertEqual(soulmate_service.draw_soulmate_score(lambda: 1.0), 100)
        rng = random.Random(7)
        scores = {soulmate_service.draw_soulmate_score(rng.random) for _ in range(2000)}
        self.assertEqual(scores, set(range(90, 101)))

    def test_sign_draws_are_uniform(self):
        for k, sign in enumerate(astro_calc.ZODIAC_SIGNS):
            self.assertEqual(soulmate_service.draw_sign(lambda k=k: (k + 0.5) / 12), sign)
        self.assertEqual(soulmate_service.draw_sign(lambda: 1.0), "Pisces")

        rng = random.Random(1234)
        counts = Counter(soulmate_service.draw_sign(rng.random) for _ in range(12000))
        self.assertEqual(set(counts), set(astro_calc.ZODIAC_SIGNS))
        for sign, count in counts.items():
            self.assertTrue(800 <= count <= 1200, f"{sign}: {count}")

    def test_each_slot_covers_all_signs(self):
        rng = random.Random(99)
        slots = {"sun_sign": Counter(), "moon_sign": Counter(), "rising_sign": Counter()}
        for i in range(240):
            result = self.generate(user_id=f"user-{i}", rand=rng.random)
            for name, counter in slots.items():
                counter[getattr(result, name)] += 1
        for counter in slots.values():
            self.assertEqual(set(counter), set(astro_calc.ZODIAC_SIGNS))

    def test_record_round_trip(self):
        result = self.generate(ethnicity_tags=["asian", "white"])
        stored = db.get_soulmate(self.conn, result.id)
        self.assertEqual(stored["user_id"], "user-1")
        self.assertEqual(
            stored["personal_info"],
            {"name": "Your Soulmate", "gender": "female", "ethnicity": ["asian", "white"]},
        )
        self.assertEqual(
            stored["astrological_info"],
            {
                "sun_sign": result.sun_sign,
                "moon_sign": result.moon_sign,
                "rising_sign": result.rising_sign,
                "soulmate_sign": result.soulmate_sign,
            },
        )
        self.assertEqual(
            stored["compatibility_info"],
            {
                "compatibility_score": result.compatibility_score,
                "analysis": result.analysis,
                "short_description": result.short_description,
            },
        )
        self.assertEqual(stored["image_url"], result.image_url)
        self.assertIn("asian and white", self.generate_image.call_args[0][0])

    def test_empty_ethnicity_is_diverse(self):
        self.generate(ethnicity_tags=[])
        self.assertIn("of diverse ethnicity", self.generate_image.call_args[0][0])

    def test_duplicate_guard_skips_generators(self):
        self.generate()
        self.generate_image.reset_mock()
        self.ask_gpt.reset_mock()

        with self.assertRaises(soulmate_service.DuplicateGenerationError):
            self.generate()
        self.generate_image.assert_not_called()
        self.upload.assert_called_once()
        self.ask_gpt.assert_not_called()
        self.assertEqual(len(db.list_soulmates(self.conn, "user-1")), 1)

    def test_duplicate_guard_is_per_user_and_configurable(self):
        self.generate()
        self.generate(user_id="user-2")
        self.generate(cooldown_seconds=0)
        self.assertEqual(len(db.list_soulmates(self.conn, "user-1")), 2)

    def test_cooldown_from_environment(self):
        self.generate()
        with patch.dict("os.environ", {"SIDUS_SOULMATE_COOLDOWN_SECONDS": "0"}):
            self.generate()
        with patch.dict("os.environ", {"SIDUS_SOULMATE_COOLDOWN_SECONDS": "5"}):
            with self.assertRaises(soulmate_service.DuplicateGenerationError):
                self.generate()

    def test_validation_before_external_calls(self):
        for overrides in (
            {"user_sun_sign": None},
            {"user_sun_sign": "Ophiuchus"},
            {"gender_preference": ""},
            {"ethnicity_tags": None},
            {"ethnicity_tags": 5},
            {"ethnicity_tags": {"asian": True}},
        ):
            with self.subTest(overrides=overrides):
                with self.assertRaises(soulmate_service.ValidationError):
                    self.generate(**overrides)
        self.generate_image.assert_not_called()

    def test_image_failure_persists_nothing(self):
        self.generate_image.side_effect = openai_client.OpenAIError("timeout")
        with self.assertRaises(soulmate_service.GenerationError):
            self.generate()
        self.upload.assert_not_called()
        self.assertIsNone(db.get_latest_soulmate(self.conn, "user-1"))

    def test_upload_failure_persists_nothing(self):
        self.upload.side_effect = storage.StorageError("boom")
        with self.assertRaises(soulmate_service.GenerationError):
            self.generate()
        self.ask_gpt.assert_not_called()
        self.assertIsNone(db.get_latest_soulmate(self.conn, "user-1"))

    def test_analysis_failure_persists_nothing(self):
        self.ask_gpt.side_effect = openai_client.OpenAIError("bad gateway")
        with self.assertRaises(soulmate_service.GenerationError):
            self.generate()
        self.assertIsNone(db.get_latest_soulmate(self.conn, "user-1"))

    def test_missing_credentials_are_configuration_errors(self):
        self.generate_image.side_effect = openai_client.OpenAIConfigError("OPENAI_API_KEY is not set")
        with self.assertRaises(soulmate_service.ConfigurationError) as ctx:
            self.generate()
        self.assertEqual(ctx.exception.code, "server_misconfigured")

        self.generate_image.side_effect = None
        self.upload.side_effect = storage.StorageConfigError("R2 is not configured")
        with self.assertRaises(soulmate_service.ConfigurationError):
            self.generate()
        self.assertIsNone(db.get_latest_soulmate(self.conn, "user-1"))

    def test_rejected_openai_key_is_configuration_error(self):
        self.image_patch.stop()
        rejected = Mock(status_code=401, text="invalid_api_key")
        with patch.dict("os.environ", {"OPENAI_API_KEY": "revoked"}), patch(
            "sidus.openai_client.requests.post", return_value=rejected
        ):
            with self.assertRaises(soulmate_service.ConfigurationError) as ctx:
                self.generate()
        self.assertEqual(ctx.exception.status_code, 500)
        self.upload.assert_not_called()
        self.assertIsNone(db.get_latest_soulmate(self.conn, "user-1"))

    def test_rejected_r2_key_is_configuration_error(self):
        self.upload_patch.stop()
        download = Mock(content=b"\x89PNG", headers={"Content-Type": "image/png"})
        client = Mock()
        client.put_object.side_effect = ClientError(
            {"Error": {"Code": "InvalidAccessKeyId", "Message": "bad key"}}, "PutObject"
        )
        with patch.dict("os.environ", R2_ENV), patch("sidus.storage.requests.get", return_value=download), patch(
            "sidus.storage.build_client", return_value=client
        ):
            with self.assertRaises(soulmate_service.ConfigurationError):
                self.generate()
        self.ask_gpt.assert_not_called()
        self.assertIsNone(db.get_latest_soulmate(self.conn, "user-1"))

    def test_r2_throttling_stays_transient(self):
        self.upload_patch.stop()
        download = Mock(content=b"\x89PNG", headers={"Content-Type": "image/png"})
        client = Mock()
        client.put_object.side_effect = ClientError({"Error": {"Code": "SlowDown"}}, "PutObject")
        with patch.dict("os.environ", R2_ENV), patch("sidus.storage.requests.get", return_value=download), patch(
            "sidus.storage.build_client", return_value=client
        ):
            with self.assertRaises(soulmate_service.GenerationError):
                self.generate()

    def test_delete_latest(self):
        first = self.generate()
        second = self.generate(cooldown_seconds=0)
        self.assertEqual(soulmate_service.get_latest_soulmate(self.conn, "user-1")["id"], second.id)
        self.assertTrue(soulmate_service.delete_latest_soulmate(self.conn, "user-1"))
        self.assertEqual(soulmate_service.get_latest_soulmate(self.conn, "user-1")["id"], first.id)
        self.assertTrue(soulmate_service.delete_latest_soulmate(self.conn, "user-1"))
        self.assertFalse(soulmate_service.delete_latest_soulmate(self.conn, "user-1"))


if __name__ == "__main__":
    unittest.main()
