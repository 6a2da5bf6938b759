"""Tests for delivery-status field encoding."""

from datetime import datetime, timezone

import pytest

from mail_dsn.errors import (
    DomainEncodingError,
    DSNValidationError,
    FieldEncodingError,
    InvalidFieldError,
    TranscodingError,
    UnicodeLocalPartError,
)
from mail_dsn.fields import (
    collapse_newlines,
    encode_recipient,
    encode_reporting_mta,
    resolve_mta_label,
)
from mail_dsn.models import Action, PlainDiagnostic, RecipientInfo, ReportingMTAInfo, SMTPDiagnostic

ARRIVAL = datetime(2020, 1, 2, 15, 4, 5, 6, tzinfo=timezone.utc)
LAST_ATTEMPT = datetime(2020, 1, 2, 16, 0, 0, tzinfo=timezone.utc)


def full_mta_info(**overrides):
    values = {
        "reporting_mta": "mx.münchen.de",
        "received_from_mta": "relay.example.org",
        "sender_address": "sender@bücher.example",
        "sender_message_id": "<orig-1@example.org>",
        "arrival_date": ARRIVAL,
        "last_attempt_date": LAST_ATTEMPT,
    }
    values.update(overrides)
    return ReportingMTAInfo(**values)


class TestResolveMtaLabel:
    """Tests for resolve_mta_label()."""

    def test_default_label(self):
        """Test an empty label falls back to the default."""
        assert resolve_mta_label(ReportingMTAInfo(reporting_mta="mx")) == "MailDsn"

    def test_custom_default(self):
        """Test a caller-supplied default is used."""
        assert resolve_mta_label(ReportingMTAInfo(reporting_mta="mx"), "Relay") == "Relay"

    def test_record_label_is_stripped(self):
        """Test surrounding whitespace is removed."""
        assert resolve_mta_label(ReportingMTAInfo(reporting_mta="mx", mta_label=" Edge ")) == "Edge"

    def test_record_is_not_modified(self):
        """Test resolving a label leaves the record untouched."""
        info = ReportingMTAInfo(reporting_mta="mx")
        resolve_mta_label(info)
        assert info.mta_label == ""


class TestReportingMtaBlock:
    """Tests for encode_reporting_mta()."""

    def test_ascii_block_in_order(self):
        """Test every field is present, ACE-encoded and ordered."""
        header = encode_reporting_mta(full_mta_info(), utf8=False)
        assert header.items() == [
            ("Reporting-MTA", "dns; mx.xn--mnchen-3ya.de"),
            ("Received-From-MTA", "dns; relay.example.org"),
            ("X-MailDsn-Sender", "rfc822; sender@xn--bcher-kva.example"),
            ("X-MailDsn-MsgID", "<orig-1@example.org>"),
            ("Arrival-Date", "Thu, 02 Jan 2020 15:04:05 +0000"),
            ("Last-Attempt-Date", "Thu, 02 Jan 2020 16:00:00 +0000"),
        ]

    def test_utf8_block(self):
        """Test UTF-8 mode writes U-labels and the utf8 tag."""
        info = full_mta_info(reporting_mta="mx.xn--mnchen-3ya.de", sender_address="sender@xn--bcher-kva.example")
        header = encode_reporting_mta(info, utf8=True)
        assert header["Reporting-MTA"] == "dns; mx.münchen.de"
        assert header["X-MailDsn-Sender"] == "utf8; sender@bücher.example"

    def test_minimal_block(self):
        """Test optional fields are omitted when empty."""
        header = encode_reporting_mta(ReportingMTAInfo(reporting_mta="mx.example.com"), utf8=False)
        assert header.items() == [("Reporting-MTA", "dns; mx.example.com")]

    def test_label_from_record(self):
        """Test the record label names the extension fields."""
        header = encode_reporting_mta(full_mta_info(mta_label=" Edge "), utf8=False)
        assert "X-Edge-Sender" in header
        assert header["X-Edge-MsgID"] == "<orig-1@example.org>"

    def test_explicit_label(self):
        """Test an explicit label wins over the record default."""
        header = encode_reporting_mta(full_mta_info(), utf8=False, mta_label="Relay")
        assert header["X-Relay-MsgID"] == "<orig-1@example.org>"

    def test_missing_reporting_mta(self):
        """Test an empty Reporting-MTA is a validation error."""
        with pytest.raises(DSNValidationError) as exc_info:
            encode_reporting_mta(ReportingMTAInfo(), utf8=False)
        assert exc_info.value.field == "Reporting-MTA"
        assert exc_info.value.code == "missing_field"

    def test_invalid_reporting_mta(self):
        """Test conversion failures name the field."""
        with pytest.raises(FieldEncodingError) as exc_info:
            encode_reporting_mta(ReportingMTAInfo(reporting_mta="snow\u2603.example"), utf8=False)
        assert exc_info.value.field == "Reporting-MTA"
        assert isinstance(exc_info.value.__cause__, DomainEncodingError)

    def test_unicode_sender_in_ascii_mode(self):
        """Test a non-ASCII sender mailbox fails in ASCII mode."""
        with pytest.raises(FieldEncodingError) as exc_info:
            encode_reporting_mta(full_mta_info(sender_address="jörg@example.com"), utf8=False)
        assert exc_info.value.field == "X-MailDsn-Sender"
        assert isinstance(exc_info.value.__cause__, UnicodeLocalPartError)

    def test_dates_omitted_without_arrival(self):
        """Test Last-Attempt-Date follows the arrival date guard."""
        header = encode_reporting_mta(full_mta_info(arrival_date=None), utf8=False)
        assert "Arrival-Date" not in header
        assert "Last-Attempt-Date" not in header

    def test_last_attempt_without_value(self):
        """Test the zero timestamp is written when only the arrival is known."""
        header = encode_reporting_mta(full_mta_info(last_attempt_date=None), utf8=False)
        assert header["Arrival-Date"] == "Thu, 02 Jan 2020 15:04:05 +0000"
        assert header["Last-Attempt-Date"] == "Mon, 01 Jan 0001 00:00:00 +0000"


class TestRecipientBlock:
    """Tests for encode_recipient()."""

    def test_ascii_block_in_order(self):
        """Test every field is present, ACE-encoded and ordered."""
        info = RecipientInfo(
            final_recipient="rcpt@münchen.de",
            remote_mta="mx.münchen.de",
            action=Action.FAILED,
            status=(5, 1, 1),
            diagnostic=SMTPDiagnostic(code=550, enhanced_code=(5, 1, 1), message="Mailbox not found"),
        )
        header = encode_recipient(info, utf8=False)
        assert header.items() == [
            ("Final-Recipient", "rfc822; rcpt@xn--mnchen-3ya.de"),
            ("Action", "failed"),
            ("Status", "5.1.1"),
            ("Diagnostic-Code", "smtp; 550 5.1.1 Mailbox not found"),
            ("Remote-MTA", "dns; mx.xn--mnchen-3ya.de"),
        ]

    def test_utf8_block(self):
        """Test UTF-8 mode writes Unicode addresses and the utf8 tag."""
        info = RecipientInfo(
            final_recipient="jörg@xn--mnchen-3ya.de",
            remote_mta="mx.xn--mnchen-3ya.de",
            action="delayed",
            status=(4, 2, 2),
        )
        header = encode_recipient(info, utf8=True)
        assert header.items() == [
            ("Final-Recipient", "utf8; jörg@münchen.de"),
            ("Action", "delayed"),
            ("Status", "4.2.2"),
            ("Remote-MTA", "dns; mx.münchen.de"),
        ]

    def test_postmaster_recipient(self):
        """Test the postmaster address passes through."""
        info = RecipientInfo(final_recipient="postmaster", action=Action.DELIVERED, status=(2, 0, 0))
        assert encode_recipient(info, utf8=False)["Final-Recipient"] == "rfc822; postmaster"

    @pytest.mark.parametrize("utf8", [False, True])
    def test_smtp_diagnostic_collapses_newlines(self, utf8):
        """Test CR and LF each become one space in both modes."""
        info = RecipientInfo(
            final_recipient="rcpt@example.com",
            action=Action.FAILED,
            status=(5, 1, 1),
            diagnostic=SMTPDiagnostic(code=550, enhanced_code=(5, 1, 1), message="Mailbox not found\r\nTry again"),
        )
        header = encode_recipient(info, utf8=utf8)
        assert header["Diagnostic-Code"] == "smtp; 550 5.1.1 Mailbox not found  Try again"

    def test_plain_diagnostic_in_utf8_mode(self):
        """Test free-text diagnostics use the X-<label> tag in UTF-8 mode."""
        info = RecipientInfo(
            final_recipient="rcpt@example.com",
            action=Action.FAILED,
            status=(5, 2, 2),
            diagnostic=PlainDiagnostic(message="Postfach voll\nbitte später"),
        )
        header = encode_recipient(info, utf8=True, mta_label="Edge")
        assert header["Diagnostic-Code"] == "X-Edge; Postfach voll bitte später"

    def test_plain_diagnostic_omitted_in_ascii_mode(self):
        """Test free-text diagnostics are dropped from ASCII reports."""
        info = RecipientInfo(
            final_recipient="rcpt@example.com",
            action=Action.FAILED,
            status=(5, 2, 2),
            diagnostic=PlainDiagnostic(message="mailbox full"),
        )
        header = encode_recipient(info, utf8=False)
        assert "Diagnostic-Code" not in header

    def test_missing_final_recipient(self):
        """Test an empty Final-Recipient is a validation error."""
        with pytest.raises(DSNValidationError) as exc_info:
            encode_recipient(RecipientInfo(action=Action.FAILED, status=(5, 0, 0)), utf8=False)
        assert exc_info.value.field == "Final-Recipient"

    def test_missing_action(self):
        """Test a missing Action is a validation error."""
        with pytest.raises(DSNValidationError) as exc_info:
            encode_recipient(RecipientInfo(final_recipient="a@example.com", status=(5, 0, 0)), utf8=False)
        assert exc_info.value.field == "Action"

    def test_zero_status_class(self):
        """Test a zero status class is a validation error."""
        with pytest.raises(DSNValidationError) as exc_info:
            encode_recipient(
                RecipientInfo(final_recipient="a@example.com", action=Action.FAILED, status=(0, 1, 1)),
                utf8=False,
            )
        assert exc_info.value.field == "Status"

    def test_unicode_recipient_in_ascii_mode(self):
        """Test a non-ASCII mailbox cannot be reported in ASCII mode."""
        info = RecipientInfo(final_recipient="jörg@example.com", action=Action.FAILED, status=(5, 1, 1))
        with pytest.raises(TranscodingError) as exc_info:
            encode_recipient(info, utf8=False)
        assert exc_info.value.field == "Final-Recipient"

    def test_invalid_remote_mta(self):
        """Test Remote-MTA conversion failures name the field."""
        info = RecipientInfo(
            final_recipient="a@example.com", remote_mta="xn--.example", action=Action.FAILED, status=(5, 0, 0)
        )
        with pytest.raises(FieldEncodingError) as exc_info:
            encode_recipient(info, utf8=True)
        assert exc_info.value.field == "Remote-MTA"


class TestPlainHostNames:
    """Tests for ASCII host names and address literals in both modes."""

    @pytest.mark.parametrize("utf8", [False, True])
    def test_underscore_reporting_mta(self, utf8):
        """Test a host name with an underscore is written unchanged."""
        header = encode_reporting_mta(ReportingMTAInfo(reporting_mta="mx_1.example.com"), utf8=utf8)
        assert header["Reporting-MTA"] == "dns; mx_1.example.com"

    @pytest.mark.parametrize("utf8", [False, True])
    def test_mixed_case_domains(self, utf8):
        """Test ASCII domains keep their case."""
        info = ReportingMTAInfo(reporting_mta="MX.Example.COM", received_from_mta="Relay.Example.ORG")
        header = encode_reporting_mta(info, utf8=utf8)
        assert header["Reporting-MTA"] == "dns; MX.Example.COM"
        assert header["Received-From-MTA"] == "dns; Relay.Example.ORG"

    @pytest.mark.parametrize("utf8, tag", [(False, "rfc822"), (True, "utf8")])
    def test_address_literal_recipient(self, utf8, tag):
        """Test a recipient at an address literal is written unchanged."""
        info = RecipientInfo(
            final_recipient="user@[192.0.2.1]", remote_mta="mx_1.example.com", action=Action.FAILED, status=(5, 1, 1)
        )
        header = encode_recipient(info, utf8=utf8)
        assert header["Final-Recipient"] == f"{tag}; user@[192.0.2.1]"
        assert header["Remote-MTA"] == "dns; mx_1.example.com"


class TestLineBreaks:
    """Tests for values that would split a field."""

    def test_message_id_with_line_break(self):
        """Test a line break in the sender message ID is rejected."""
        info = ReportingMTAInfo(reporting_mta="mx.example.com", sender_message_id="<1@x>\r\nAction: delivered")
        with pytest.raises(InvalidFieldError) as exc_info:
            encode_reporting_mta(info, utf8=False)
        assert exc_info.value.field == "X-MailDsn-MsgID"
        assert exc_info.value.code == "invalid_field"
        assert isinstance(exc_info.value, DSNValidationError)

    def test_domain_with_line_break(self):
        """Test a line break in an ASCII domain is rejected."""
        with pytest.raises(InvalidFieldError) as exc_info:
            encode_reporting_mta(ReportingMTAInfo(reporting_mta="mx.example.com\nX-Evil: 1"), utf8=True)
        assert exc_info.value.field == "Reporting-MTA"

    def test_recipient_with_line_break(self):
        """Test a line break in the final recipient is rejected."""
        info = RecipientInfo(final_recipient="a@example.com\r\nB: c", action=Action.FAILED, status=(5, 1, 1))
        with pytest.raises(InvalidFieldError):
            encode_recipient(info, utf8=False)

    def test_label_with_line_break(self):
        """Test a line break in the MTA label is rejected."""
        with pytest.raises(InvalidFieldError):
            resolve_mta_label(ReportingMTAInfo(reporting_mta="mx", mta_label="A\nB"))


def test_collapse_newlines():
    assert collapse_newlines("a\r\nb\nc\rd") == "a  b c d"
