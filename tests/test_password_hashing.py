"""Tests for registry password hashing."""

from __future__ import annotations

import hashlib
import unittest

from clubsite.passwords import generate_temp_password, hash_password, verify_password


class PasswordHashingTests(unittest.TestCase):
    def test_hash_is_single_round_hex_sha256(self) -> None:
        hashed = hash_password("supersecurepassword")

        self.assertEqual(hashed, hashlib.sha256(b"supersecurepassword").hexdigest())
        self.assertTrue(verify_password("supersecurepassword", hashed))
        self.assertFalse(verify_password("incorrect", hashed))

    def test_legacy_digest_written_elsewhere_verifies(self) -> None:
        legacy = hashlib.sha256(b"from-the-old-site").hexdigest()

        self.assertTrue(verify_password("from-the-old-site", legacy))

    def test_unrecognised_hash_never_verifies(self) -> None:
        self.assertFalse(verify_password("anything", "not-a-digest"))

    def test_temp_passwords_are_short_and_random(self) -> None:
        first = generate_temp_password()
        second = generate_temp_password()

        self.assertEqual(len(first), 8)
        self.assertNotEqual(first, second)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
