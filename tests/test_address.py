# =============================================================================
# Address Utility Tests
# =============================================================================

from relay_mailer.core.address import get_address_array, get_display_name, get_mail_address


class TestGetAddressArray:
    def test_splits_and_trims(self):
        assert get_address_array("a@x.com; b@y.com ; c@z.com") == [
            "a@x.com",
            "b@y.com",
            "c@z.com",
        ]

    def test_single_address(self):
        assert get_address_array("a@x.com") == ["a@x.com"]

    def test_none_and_empty(self):
        assert get_address_array(None) == []
        assert get_address_array("") == []

    def test_drops_empty_entries(self):
        assert get_address_array("a@x.com;; ;b@y.com;") == ["a@x.com", "b@y.com"]

    def test_keeps_display_names(self):
        assert get_address_array("Jane Doe <jane@x.com>;bob@y.com") == [
            "Jane Doe <jane@x.com>",
            "bob@y.com",
        ]


class TestGetMailAddress:
    def test_display_form(self):
        assert get_mail_address("Jane Doe <jane@x.com>") == "jane@x.com"

    def test_bare_address_unchanged(self):
        assert get_mail_address("jane@x.com") == "jane@x.com"

    def test_angle_brackets_only(self):
        assert get_mail_address("<jane@x.com>") == "jane@x.com"

    def test_empty(self):
        assert get_mail_address("") == ""


class TestGetDisplayName:
    def test_display_form(self):
        assert get_display_name("Jane Doe <jane@x.com>") == "Jane Doe"

    def test_bare_address(self):
        assert get_display_name("jane@x.com") == ""

    def test_name_glued_to_bracket(self):
        assert get_display_name("José<jose@x.com>") == "José"
        assert get_display_name("<jose@x.com>") == ""
