"""Tests for the user domain model."""

import unittest

from domain.model.user import UserPatch


class TestUserPatch(unittest.TestCase):

    def test_no_fields_is_empty(self):
        self.assertTrue(UserPatch().is_empty())

    def test_old_password_alone_is_empty(self):
        self.assertTrue(UserPatch(old_password='p').is_empty())

    def test_any_changing_field_is_not_empty(self):
        for patch in (
            UserPatch(name='Ada'),
            UserPatch(surnames=''),
            UserPatch(email='a@b'),
            UserPatch(old_password='p', new_password='q'),
            UserPatch(claim_ids=()),
        ):
            self.assertFalse(patch.is_empty(), patch)


if __name__ == '__main__':
    unittest.main()
