"""Tests for the attachment endpoints and base64 decoding."""

import base64
from unittest.mock import AsyncMock
from unittest.mock import MagicMock
from unittest.mock import patch
from urllib.parse import quote

import pytest
from fastapi import status

from ccas_api.errors import NotFoundError
from ccas_api.errors import ValidationError
from ccas_api.routes.routes_attachments import content_disposition
from ccas_api.routes.routes_attachments import decode_base64_content
from tests.consts import API_BASE
from tests.fixtures.db_fixtures import make_attachment_row
from tests.fixtures.db_fixtures import make_request_row

MODULE = "ccas_api.routes.routes_attachments"


@pytest.fixture
def attachment_repo():
    repo = MagicMock()
    repo.put = AsyncMock(return_value=make_attachment_row())
    with patch(f"{MODULE}.AttachmentRepository", return_value=repo):
        yield repo


@pytest.fixture
def known_request():
    with patch(f"{MODULE}.get_request_or_404", new_callable=AsyncMock, return_value=make_request_row()) as mock:
        yield mock


class TestDecodeBase64Content:
    """Tests for decode_base64_content."""

    def test_plain(self):
        assert decode_base64_content(base64.b64encode(b"hello").decode()) == b"hello"

    def test_data_url_prefix(self):
        content = "data:application/pdf;base64," + base64.b64encode(b"%PDF-1.4").decode()

        assert decode_base64_content(content) == b"%PDF-1.4"

    @pytest.mark.parametrize(
        "content,message",
        [
            ("not base64!!", "Attachment content is not valid base64"),
            ("", "Attachment content is empty"),
            ("data:text/plain;base64,", "Attachment content is empty"),
        ],
        ids=["invalid", "empty", "empty_data_url"],
    )
    def test_rejected(self, content, message):
        with pytest.raises(ValidationError) as exc_info:
            decode_base64_content(content)

        assert exc_info.value.message == message


class TestContentDisposition:
    """Tests for the download Content-Disposition header."""

    @pytest.mark.parametrize(
        "file_name,fallback",
        [
            ("gst.pdf", "gst.pdf"),
            ('my "gst".pdf', "my gst.pdf"),
            ("back\\slash.pdf", "backslash.pdf"),
            ("Zertifikat-Größe.pdf", "Zertifikat-Gre.pdf"),
            ("रिपोर्ट", "attachment"),
        ],
        ids=["ascii", "quotes", "backslash", "latin1", "no_ascii"],
    )
    def test_fallback_and_encoded_name(self, file_name, fallback):
        header = content_disposition(file_name)

        assert header == f"inline; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name, safe='')}"

    def test_header_is_ascii(self):
        assert content_disposition("रिपोर्ट.pdf").isascii()


class TestUploadAttachment:
    """Tests for multipart and base64 uploads."""

    def test_multipart_upload(self, client_with_workflow, attachment_repo, known_request):
        response = client_with_workflow.post(
            f"{API_BASE}/attachments",
            files={"file": ("gst.pdf", b"%PDF-", "application/pdf")},
            data={"requestId": "N_01012025_001", "version": "1", "title": "GST certificate"},
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["AttachmentId"] == "a" * 32
        assert data["SizeBytes"] == 5
        attachment_repo.put.assert_awaited_once_with(
            b"%PDF-",
            "gst.pdf",
            "application/pdf",
            "N_01012025_001",
            "requestor@example.com",
            version=1,
            title="GST certificate",
        )

    def test_multipart_empty_file(self, client_with_workflow, attachment_repo, known_request):
        response = client_with_workflow.post(
            f"{API_BASE}/attachments",
            files={"file": ("empty.txt", b"", "text/plain")},
            data={"requestId": "N_01012025_001"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        attachment_repo.put.assert_not_awaited()

    def test_multipart_unknown_request(self, client_with_workflow, attachment_repo):
        with patch(
            f"{MODULE}.get_request_or_404",
            new_callable=AsyncMock,
            side_effect=NotFoundError("Request not found: N_01012025_404"),
        ):
            response = client_with_workflow.post(
                f"{API_BASE}/attachments",
                files={"file": ("gst.pdf", b"%PDF-", "application/pdf")},
                data={"requestId": "N_01012025_404"},
            )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        attachment_repo.put.assert_not_awaited()

    def test_base64_upload(self, client_with_workflow, attachment_repo, known_request):
        body = {
            "requestId": "N_01012025_001",
            "fileName": "gst.pdf",
            "fileType": "application/pdf",
            "content": "data:application/pdf;base64," + base64.b64encode(b"%PDF-").decode(),
        }

        response = client_with_workflow.post(f"{API_BASE}/attachments/base64", json=body)

        assert response.status_code == status.HTTP_201_CREATED
        args = attachment_repo.put.call_args
        assert args.args == (b"%PDF-", "gst.pdf", "application/pdf", "N_01012025_001", "requestor@example.com")
        assert args.kwargs == {"version": None, "title": None}

    def test_base64_invalid_content(self, client_with_workflow, attachment_repo, known_request):
        body = {"requestId": "N_01012025_001", "fileName": "x.bin", "content": "@@@"}

        response = client_with_workflow.post(f"{API_BASE}/attachments/base64", json=body)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "Attachment content is not valid base64"
        known_request.assert_not_awaited()

    def test_upload_requires_caller(self, unauthenticated_client):
        body = {"requestId": "N_01012025_001", "fileName": "x.bin", "content": "aGk="}

        response = unauthenticated_client.post(f"{API_BASE}/attachments/base64", json=body)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestReadAttachments:
    """Tests for listing and downloading attachments."""

    def test_list_for_request(self, client_with_workflow, attachment_repo):
        attachment_repo.list_for_request = AsyncMock(
            return_value=[make_attachment_row(), make_attachment_row(attachment_id="b" * 32, version=None)]
        )

        response = client_with_workflow.get(f"{API_BASE}/requests/N_01012025_001/attachments")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["Count"] == 2
        assert data["Attachments"][1]["Version"] is None
        attachment_repo.list_for_request.assert_awaited_once_with("N_01012025_001")

    def test_download(self, client_with_workflow, attachment_repo):
        attachment_repo.get = AsyncMock(
            return_value={**make_attachment_row(file_name='my "gst".pdf'), "content": b"%PDF-"}
        )

        response = client_with_workflow.get(f"{API_BASE}/attachments/{'a' * 32}")

        assert response.status_code == status.HTTP_200_OK
        assert response.content == b"%PDF-"
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["content-disposition"] == (
            "inline; filename=\"my gst.pdf\"; filename*=UTF-8''my%20%22gst%22.pdf"
        )

    def test_download_non_latin_file_name(self, client_with_workflow, attachment_repo):
        """Names outside latin-1 are served via filename* instead of failing the response."""
        attachment_repo.get = AsyncMock(
            return_value={**make_attachment_row(file_name="रिपोर्ट.pdf"), "content": b"%PDF-"}
        )

        response = client_with_workflow.get(f"{API_BASE}/attachments/{'a' * 32}")

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-disposition"] == (
            "inline; filename=\".pdf\"; filename*=UTF-8''" + quote("रिपोर्ट.pdf", safe="")
        )

    def test_download_not_found(self, client_with_workflow, attachment_repo):
        attachment_repo.get = AsyncMock(side_effect=NotFoundError("Attachment not found: missing"))

        response = client_with_workflow.get(f"{API_BASE}/attachments/missing")

        assert response.status_code == status.HTTP_404_NOT_FOUND
