"""Tests for attachment validation and conversion."""

from __future__ import annotations

import base64
from pathlib import Path
import tempfile
import unittest

from agentic_chat.attachments import (
    ALLOWED_MEDIA_TYPES,
    CSV_MEDIA_TYPE,
    PDF_MEDIA_TYPE,
    UNSUPPORTED_TYPE_TEXT,
    XLS_MEDIA_TYPE,
    XLSX_MEDIA_TYPE,
    Attachment,
    AttachmentState,
    AttachmentValidator,
    to_data_url,
)
from agentic_chat.exceptions import UnsupportedAttachmentError


class AttachmentValidatorTests(unittest.TestCase):
    """Validate the media-type allow-list and size ceiling."""

    def setUp(self) -> None:
        self.validator = AttachmentValidator()

    def test_accepts_exactly_the_allowed_set(self) -> None:
        self.assertEqual(
            ALLOWED_MEDIA_TYPES,
            {PDF_MEDIA_TYPE, XLSX_MEDIA_TYPE, XLS_MEDIA_TYPE, CSV_MEDIA_TYPE},
        )
        for media_type in ALLOWED_MEDIA_TYPES:
            with self.subTest(media_type=media_type):
                check = self.validator.validate(Attachment("f", media_type, b"x"))
                self.assertTrue(check.ok)
                self.assertEqual(check.reason, "")

    def test_rejects_other_types_with_notice(self) -> None:
        for media_type in ("image/png", "text/plain", "application/json", ""):
            with self.subTest(media_type=media_type):
                with self.assertLogs("agentic_chat.attachments", level="WARNING"):
                    check = self.validator.validate(Attachment("f", media_type, b"x"))
                self.assertFalse(check.ok)
                self.assertEqual(check.reason, UNSUPPORTED_TYPE_TEXT)

    def test_rejection_logs_attachment_name(self) -> None:
        with self.assertLogs("agentic_chat.attachments", level="WARNING") as captured:
            check = self.validator.validate(Attachment("cat.png", "image/png", b"x"))
        self.assertFalse(check.ok)
        self.assertEqual(captured.records[0].attachment_name, "cat.png")
        self.assertEqual(captured.records[0].media_type, "image/png")

        validator = AttachmentValidator(max_bytes=1)
        with self.assertLogs("agentic_chat.attachments", level="WARNING") as captured:
            check = validator.validate(Attachment("big.csv", CSV_MEDIA_TYPE, b"12"))
        self.assertFalse(check.ok)
        self.assertEqual(captured.records[0].attachment_name, "big.csv")
        self.assertEqual(captured.records[0].size, 2)

    def test_media_type_case_and_parameters_are_ignored(self) -> None:
        check = self.validator.validate(
            Attachment("rows.csv", "Text/CSV; charset=utf-8", b"a,b\n")
        )
        self.assertTrue(check.ok)

    def test_rejects_files_over_the_ceiling(self) -> None:
        validator = AttachmentValidator(max_bytes=1024 * 1024)
        big = Attachment("big.pdf", PDF_MEDIA_TYPE, b"x" * (1024 * 1024 + 1))
        with self.assertLogs("agentic_chat.attachments", level="WARNING") as captured:
            check = validator.validate(big)
        self.assertFalse(check.ok)
        self.assertEqual(check.reason, "Sorry, big.pdf is too large (max 1.0MB).")
        self.assertIn("attachment.too_large", "\n".join(captured.output))

    def test_file_at_the_ceiling_is_accepted(self) -> None:
        validator = AttachmentValidator(max_bytes=4)
        self.assertTrue(validator.validate(Attachment("a.csv", CSV_MEDIA_TYPE, b"1234")).ok)

    def test_custom_allow_list(self) -> None:
        validator = AttachmentValidator(frozenset({"TEXT/CSV"}))
        self.assertTrue(validator.validate(Attachment("a.csv", CSV_MEDIA_TYPE)).ok)
        with self.assertLogs("agentic_chat.attachments", level="WARNING"):
            self.assertFalse(validator.validate(Attachment("a.pdf", PDF_MEDIA_TYPE)).ok)

    def test_require_raises_with_reason(self) -> None:
        with self.assertLogs("agentic_chat.attachments", level="WARNING"):
            with self.assertRaises(UnsupportedAttachmentError) as ctx:
                self.validator.require(Attachment("pic.png", "image/png", b"\x89PNG"))
        self.assertEqual(ctx.exception.reason, UNSUPPORTED_TYPE_TEXT)

    def test_require_passes_silently(self) -> None:
        self.validator.require(Attachment("doc.pdf", PDF_MEDIA_TYPE, b"%PDF"))


class AttachmentTests(unittest.TestCase):
    """Validate loading attachments from disk."""

    def test_from_path_maps_known_extensions(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            cases = {
                "leads.xlsx": XLSX_MEDIA_TYPE,
                "old.XLS": XLS_MEDIA_TYPE,
                "rows.csv": CSV_MEDIA_TYPE,
                "report.pdf": PDF_MEDIA_TYPE,
            }
            for name, expected in cases.items():
                path = Path(tmpdir) / name
                path.write_bytes(b"payload")
                with self.subTest(name=name):
                    attachment = Attachment.from_path(path)
                    self.assertEqual(attachment.filename, name)
                    self.assertEqual(attachment.media_type, expected)
                    self.assertEqual(attachment.data, b"payload")
                    self.assertEqual(attachment.size, 7)

    def test_from_path_unknown_extension_is_rejected_later(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "blob.zzunknown"
            path.write_bytes(b"?")
            attachment = Attachment.from_path(path)
        self.assertEqual(attachment.media_type, "application/octet-stream")
        with self.assertLogs("agentic_chat.attachments", level="WARNING"):
            self.assertFalse(AttachmentValidator().validate(attachment).ok)


class AttachmentStateTests(unittest.TestCase):
    def test_set_and_clear(self) -> None:
        state = AttachmentState()
        self.assertFalse(state.has_any())
        attachment = Attachment("a.csv", CSV_MEDIA_TYPE, b"1")
        state.set(attachment)
        self.assertTrue(state.has_any())
        self.assertIs(state.pending, attachment)
        state.clear()
        self.assertIsNone(state.pending)


class DataUrlTests(unittest.IsolatedAsyncioTestCase):
    async def test_to_data_url(self) -> None:
        attachment = Attachment("a.csv", "text/csv; charset=utf-8", b"a,b\n1,2\n")
        url = await to_data_url(attachment)
        prefix = "data:text/csv;base64,"
        self.assertTrue(url.startswith(prefix))
        self.assertEqual(base64.b64decode(url[len(prefix):]), b"a,b\n1,2\n")


if __name__ == "__main__":
    unittest.main()
