#!/usr/bin/env python3
"""
Token redemption flow: state transitions, notifications and request sequencing
"""
import asyncio
import json
import re

import pyperclip
import pytest

from badge_redeem.core.redemption_flow import (
    CONNECTION_ERROR_MESSAGE, Downloading, Empty, FlowStatus, Invalid, Valid,
)
from badge_redeem.exceptions import HTTPRequestError, ResponseFormatError, TransportError
from badge_redeem.models import DownloadedArtifact, ValidationResponse, parse_timestamp
from badge_redeem.notifications import Severity
from tests.factories import badge_info_payload, invalid_response, valid_response


# ============================================================================
# validate()
# ============================================================================

class TestValidate:

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", ["", "   ", "\t\n", " \n "])
    async def test_blank_token_never_reaches_the_server(self, flow, api, notifier, token):
        flow.set_token(token)

        assert await flow.validate() is False

        api.validate_token.assert_not_awaited()
        assert len(notifier.notifications) == 1
        assert notifier.notifications[0].severity is Severity.ERROR
        assert isinstance(flow.state, Empty)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_token_is_trimmed_before_sending(self, flow, api):
        flow.set_token("  abc-123  ")

        await flow.validate()

        api.validate_token.assert_awaited_once_with("abc-123")
        assert flow.token == "  abc-123  "

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_valid_token_holds_the_view_unchanged(self, flow, notifier):
        flow.set_token("abc-123")

        assert await flow.validate() is True

        payload = badge_info_payload()
        view = flow.view
        assert flow.status is FlowStatus.VALID
        assert flow.is_valid_token and flow.can_download
        assert view.badge_name == payload["badgeName"]
        assert view.badge_description == payload["badgeDescription"]
        assert view.badge_category == payload["badgeCategory"]
        assert view.badge_image_path == payload["badgeImagePath"]
        assert view.issuer == payload["issuer"]
        assert view.issuer_image_path == payload["issuerImagePath"]
        assert view.student_name == payload["studentName"]
        assert view.achievement_reason == payload["achievementReason"]
        assert view.assigned_at == payload["assignedAt"]
        assert view.download_count == payload["downloadCount"]
        assert view.token_expires_at == payload["tokenExpiresAt"]
        assert view.assignment_id == payload["assignmentId"]
        assert [n.severity for n in notifier.notifications] == [Severity.INFO]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rejection_clears_a_previously_held_view(self, flow, api, notifier):
        flow.set_token("abc-123")
        await flow.validate()
        assert flow.view is not None

        api.validate_token.return_value = invalid_response("Token already used")
        assert await flow.validate() is False

        assert flow.view is None
        assert flow.is_valid_token is False
        assert flow.state == Invalid("Token already used")
        assert notifier.notifications[-1].description == "Token already used"
        assert notifier.notifications[-1].severity is Severity.ERROR

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_valid_flag_without_badge_info_is_a_rejection(self, flow, api):
        api.validate_token.return_value = ValidationResponse(valid=True, message="ok", badge_info=None)
        flow.set_token("abc-123")

        assert await flow.validate() is False
        assert isinstance(flow.state, Invalid)

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        TransportError("https://api.badges.test/api/badges/validate-token", "POST", "Connection refused"),
        ResponseFormatError("Response body is not valid JSON"),
    ])
    async def test_transport_or_parse_failure_reports_generic_message(self, flow, api, notifier, error):
        flow.set_token("abc-123")
        await flow.validate()
        api.validate_token.side_effect = error

        assert await flow.validate() is False

        assert flow.view is None
        assert flow.state == Invalid(CONNECTION_ERROR_MESSAGE)
        assert notifier.notifications[-1].description == CONNECTION_ERROR_MESSAGE
        assert "refused" not in notifier.notifications[-1].description

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_busy_state_while_request_is_in_flight(self, flow, api):
        seen = []

        async def validate_token(token):
            seen.append(flow.status)
            return valid_response()

        api.validate_token.side_effect = validate_token
        flow.set_token("abc-123")
        await flow.validate()

        assert seen == [FlowStatus.VALIDATING]
        assert flow.is_validating is False


# ============================================================================
# Overlapping validations: the last one started wins
# ============================================================================

class TestOverlappingValidations:

    @pytest.mark.mocked
    @pytest.mark.asyncio
    async def test_later_started_request_wins_even_if_earlier_resolves_last(self, flow, api, notifier):
        release_first = asyncio.Event()

        async def validate_token(token):
            if token == "first":
                await release_first.wait()
                return valid_response(badgeName="First Badge")
            return valid_response(badgeName="Second Badge")

        api.validate_token.side_effect = validate_token

        flow.set_token("first")
        first = asyncio.create_task(flow.validate())
        await asyncio.sleep(0)

        flow.set_token("second")
        assert await flow.validate() is True

        release_first.set()
        assert await first is False

        assert flow.view.badge_name == "Second Badge"
        assert len(notifier.notifications) == 1

    @pytest.mark.mocked
    @pytest.mark.asyncio
    async def test_stale_failure_does_not_clobber_newer_success(self, flow, api, notifier):
        release_first = asyncio.Event()

        async def validate_token(token):
            if token == "first":
                await release_first.wait()
                raise TransportError("url", "POST", "reset by peer")
            return valid_response()

        api.validate_token.side_effect = validate_token

        flow.set_token("first")
        first = asyncio.create_task(flow.validate())
        await asyncio.sleep(0)
        flow.set_token("second")
        await flow.validate()
        release_first.set()
        await first

        assert flow.status is FlowStatus.VALID
        assert notifier.errors == []


# ============================================================================
# download()
# ============================================================================

class TestDownload:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_download_before_validation_is_a_no_op(self, flow, api, notifier):
        flow.set_token("abc-123")

        assert await flow.download() is None

        api.download_by_token.assert_not_awaited()
        api.validate_token.assert_not_awaited()
        assert notifier.notifications == []
        assert isinstance(flow.state, Empty)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_download_after_rejection_is_a_no_op(self, flow, api):
        api.validate_token.return_value = invalid_response()
        flow.set_token("abc-123")
        await flow.validate()

        assert await flow.download() is None
        api.download_by_token.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_successful_download_saves_file_then_revalidates_once(self, flow, api, notifier, tmp_path):
        api.validate_token.side_effect = [valid_response(downloadCount=3), valid_response(downloadCount=4)]
        flow.set_token(" abc-123 ")
        await flow.validate()

        path = await flow.download()

        assert path == tmp_path / "python-basics.png"
        assert path.read_bytes() == b"\x89PNG fake"
        assert [c[0] for c in api.mock_calls] == ["validate_token", "download_by_token", "validate_token"]
        assert [c.args for c in api.validate_token.await_args_list] == [("abc-123",), ("abc-123",)]
        api.download_by_token.assert_awaited_once_with("abc-123")
        # count comes from the server's second answer, not a local +1
        assert flow.view.download_count == 4
        assert flow.status is FlowStatus.VALID
        assert any('"Python Basics"' in n.description for n in notifier.notifications)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_count_is_never_bumped_locally(self, flow, api):
        # server did not count this download (yet)
        api.validate_token.side_effect = [valid_response(downloadCount=3), valid_response(downloadCount=3)]
        flow.set_token("abc-123")
        await flow.validate()

        await flow.download()

        assert flow.view.download_count == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_revalidation_waits_for_the_artifact(self, flow, api, tmp_path):
        order = []

        async def download_by_token(token):
            await asyncio.sleep(0)
            order.append("download")
            return DownloadedArtifact(filename="b.png", content=b"x")

        async def validate_token(token):
            order.append("validate")
            return valid_response()

        api.download_by_token.side_effect = download_by_token
        api.validate_token.side_effect = validate_token
        flow.set_token("abc-123")
        await flow.validate()
        order.clear()

        await flow.download()

        assert order == ["download", "validate"]
        assert (tmp_path / "b.png").exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_server_error_body_is_shown_and_state_kept(self, flow, api, notifier, badge_view):
        flow.set_token("abc-123")
        await flow.validate()
        api.download_by_token.side_effect = HTTPRequestError(
            410, "https://api.badges.test/api/badges/download-by-token", "Gone", "POST", "Token expired"
        )

        assert await flow.download() is None

        assert flow.state == Valid(badge_view)
        assert notifier.notifications[-1].title == "Download failed"
        assert notifier.notifications[-1].description == "Token expired"
        api.validate_token.assert_awaited_once()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_transport_failure_during_download(self, flow, api, notifier):
        flow.set_token("abc-123")
        await flow.validate()
        api.download_by_token.side_effect = TransportError("url", "POST", "timeout")

        assert await flow.download() is None

        assert flow.status is FlowStatus.VALID
        assert notifier.notifications[-1].description == "Failed to download the badge"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_refresh_failure_keeps_the_downloaded_file(self, flow, api, notifier, tmp_path):
        api.validate_token.side_effect = [
            valid_response(),
            TransportError("url", "POST", "connection reset"),
        ]
        flow.set_token("abc-123")
        await flow.validate()

        path = await flow.download()

        assert path is not None and path.exists()
        assert flow.state == Invalid(CONNECTION_ERROR_MESSAGE)
        assert notifier.notifications[-1].title == "Connection error"

    @pytest.mark.mocked
    @pytest.mark.asyncio
    async def test_second_download_while_downloading_is_ignored(self, flow, api):
        release = asyncio.Event()
        artifact = api.download_by_token.return_value

        async def download_by_token(token):
            await release.wait()
            return artifact

        api.download_by_token.side_effect = download_by_token
        flow.set_token("abc-123")
        await flow.validate()

        first = asyncio.create_task(flow.download())
        await asyncio.sleep(0)
        assert flow.is_downloading
        assert isinstance(flow.state, Downloading)

        assert await flow.download() is None
        assert await flow.validate() is False

        release.set()
        assert await first is not None
        assert api.download_by_token.await_count == 1
        assert api.validate_token.await_count == 2

    @pytest.mark.mocked
    @pytest.mark.asyncio
    async def test_forced_reset_discards_in_flight_download(self, flow, api, tmp_path):
        release = asyncio.Event()
        artifact = api.download_by_token.return_value

        async def download_by_token(token):
            await release.wait()
            return artifact

        api.download_by_token.side_effect = download_by_token
        flow.set_token("abc-123")
        await flow.validate()

        pending = asyncio.create_task(flow.download())
        await asyncio.sleep(0)
        assert flow.reset() is False
        assert flow.reset(force=True) is True

        release.set()
        assert await pending is None
        assert isinstance(flow.state, Empty)
        assert list(tmp_path.iterdir()) == []


# ============================================================================
# export()
# ============================================================================

class TestExport:

    @pytest.mark.unit
    def test_export_without_view_only_notifies(self, flow, notifier, tmp_path):
        assert flow.export() is None

        assert len(notifier.errors) == 1
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_export_writes_named_json_document(self, flow, api, tmp_path):
        flow.set_token("abc-123")
        await flow.validate()
        calls_before = len(api.mock_calls)

        path = flow.export()

        assert re.fullmatch(r"badge-python-basics-\d+\.json", path.name)
        assert path.parent == tmp_path
        document = json.loads(path.read_text(encoding="utf-8"))
        assert set(document) == {"badge", "issuer", "recipient", "metadata"}
        exported_at = parse_timestamp(document["metadata"]["exportedAt"])
        assert exported_at > parse_timestamp(document["metadata"]["assignedAt"])
        assert document["badge"]["imageUrl"] == "https://api.badges.test/uploads/badges/python.png"
        assert document["issuer"]["imageUrl"] == "https://api.badges.test/uploads/issuers/incode.png"
        assert document["recipient"] == {"name": "Ana Souza", "achievementReason": "Finished all exercises"}
        assert document["metadata"]["downloadCount"] == 0
        assert document["metadata"]["assignmentId"] == 42
        # local only
        assert len(api.mock_calls) == calls_before

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_consecutive_exports_do_not_collide(self, flow):
        flow.set_token("abc-123")
        await flow.validate()

        assert flow.export() != flow.export()


# ============================================================================
# reset() and copy_token()
# ============================================================================

class TestResetAndClipboard:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_reset_returns_to_empty(self, flow):
        flow.set_token("abc-123")
        await flow.validate()

        assert flow.reset() is True

        assert flow.token == ""
        assert flow.view is None
        assert flow.is_valid_token is False
        assert isinstance(flow.state, Empty)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_reset_after_rejection(self, flow, api):
        api.validate_token.return_value = invalid_response()
        flow.set_token("abc-123")
        await flow.validate()

        assert flow.reset() is True
        assert flow.status is FlowStatus.EMPTY

    @pytest.mark.mocked
    @pytest.mark.asyncio
    async def test_forced_reset_discards_in_flight_validation(self, flow, api, notifier):
        release = asyncio.Event()

        async def validate_token(token):
            await release.wait()
            return valid_response()

        api.validate_token.side_effect = validate_token
        flow.set_token("abc-123")
        pending = asyncio.create_task(flow.validate())
        await asyncio.sleep(0)

        assert flow.reset() is False
        assert flow.is_validating
        assert flow.reset(force=True) is True

        release.set()
        assert await pending is False
        assert isinstance(flow.state, Empty)
        assert notifier.notifications == []

    @pytest.mark.unit
    def test_copy_token_copies_raw_text(self, flow, clipboard, notifier):
        flow.set_token("  abc-123 ")

        assert flow.copy_token() is True

        assert clipboard == ["  abc-123 "]
        assert notifier.notifications[-1].title == "Copied!"
        assert isinstance(flow.state, Empty)

    @pytest.mark.unit
    def test_clipboard_failure_is_reported(self, flow, notifier):
        def broken(text):
            raise pyperclip.PyperclipException("no clipboard mechanism")

        flow.clipboard = broken
        flow.set_token("abc-123")

        assert flow.copy_token() is False
        assert notifier.errors[-1].description == "Could not copy the code to the clipboard"
