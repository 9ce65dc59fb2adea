"""Tests for vendor report row normalization."""

from __future__ import annotations

from datetime import date

from enrollproof.services.ingest.normalize import guess_name_from_email, normalize_row


class TestEmail:
    def test_label_case_and_whitespace_vary(self):
        assert normalize_row({"EMAIL": "  Jane.Doe@Acme.COM "}).email == "jane.doe@acme.com"
        assert normalize_row({"Email Address": "a@x.com"}).email == "a@x.com"

    def test_priority_list_skips_blank_aliases(self):
        row = normalize_row({"Email": "", "Work Email": "w@x.com"})
        assert row.email == "w@x.com"

    def test_missing_email_is_blank(self):
        assert normalize_row({"Name": "Jane Doe"}).email == ""


class TestNames:
    def test_explicit_columns_win(self):
        row = normalize_row({"Email": "a@x.com", "First Name": "Maria", "Last Name": "Garcia", "Name": "Ignored"})
        assert (row.first_name, row.last_name) == ("Maria", "Garcia")

    def test_full_name_split_on_whitespace(self):
        row = normalize_row({"Email": "a@x.com", "Employee Name": "Mary Ann  van Dyke"})
        assert (row.first_name, row.last_name) == ("Mary", "Ann van Dyke")

    def test_single_token_full_name(self):
        row = normalize_row({"email": "a@x.com", "name": "Cher"})
        assert (row.first_name, row.last_name) == ("Cher", None)

    def test_no_name_data(self):
        row = normalize_row({"email": "a@x.com"})
        assert not row.has_name


class TestEmailGuess:
    def test_single_token(self):
        assert guess_name_from_email("jsmith@co.com") == ("Jsmith", None)

    def test_dotted_local_part(self):
        assert guess_name_from_email("JANE.DOE@co.com") == ("Jane", "Doe")

    def test_uses_first_and_last_tokens(self):
        assert guess_name_from_email("mary_ann-lee+benefits@co.com") == ("Mary", "Benefits")

    def test_numeric_first_token_yields_nothing(self):
        assert guess_name_from_email("12345.smith@co.com") == (None, None)


class TestLoginAndPortal:
    def test_login_and_portal_aliases(self):
        row = normalize_row({
            "EMAIL": "a@x.com",
            "Last Login Date": "03152026",
            "Attentive Link": " https://portal.example/i/abc ",
        })
        assert row.login_date == date(2026, 3, 15)
        assert row.portal_url == "https://portal.example/i/abc"

    def test_invitation_url_preferred_over_link(self):
        row = normalize_row({"email": "a@x.com", "Link": "https://b", "INVITATION URL": "https://a"})
        assert row.portal_url == "https://a"

    def test_absent_values_are_none(self):
        row = normalize_row({"email": "a@x.com", "Last Login": "", "Portal Link": "  "})
        assert row.login_date is None
        assert row.portal_url is None
