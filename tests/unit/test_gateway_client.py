from __future__ import annotations

from datetime import date
from unittest.mock import Mock

import pytest
import requests

from acquisition_dashboard.gateway.client import (
    AuthenticationError,
    GatewayError,
    PipelineGateway,
    ResponseFormatError,
)
from acquisition_dashboard.models.file_record import FileRecord

"""Gateway client tests against a mocked requests.Session."""

STATUS_ITEM = {
    "id": 1,
    "dir": "/exports",
    "segment": "FO",
    "filename": "a.csv",
    "filetype": "F",
    "createdTime": "2024-05-01T07:00:00Z",
    "dlStatus": 200,
    "spStatus": 404,
}


def _response(status_code=200, body=None, json_error=False):
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    if json_error:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = body
    return response


@pytest.fixture()
def session():
    s = Mock()
    s.headers = {}
    s.request.return_value = _response(body={"success": True, "data": []})
    return s


@pytest.fixture()
def client(session):
    return PipelineGateway("http://pipeline.local:3000/", token="secret", timeout=7, session=session)


def test_headers_and_base_url(client, session):
    assert client.base_url == "http://pipeline.local:3000/api/automate"
    assert session.headers["Authorization"] == "Bearer secret"
    assert session.headers["Content-Type"] == "application/json"


@pytest.mark.asyncio
async def test_fetch_status_parses_records(client, session):
    session.request.return_value = _response(body={"success": True, "data": [STATUS_ITEM]})

    records = await client.fetch_status()

    assert [r.id for r in records] == ["1"]
    session.request.assert_called_once_with(
        "GET", "http://pipeline.local:3000/api/automate/status", params=None, json=None, timeout=7
    )


@pytest.mark.asyncio
async def test_build_task_sends_date_range(client, session):
    await client.trigger_build_task(date(2024, 5, 1), date(2024, 5, 1))

    args, kwargs = session.request.call_args
    assert args == ("GET", "http://pipeline.local:3000/api/automate/buildTask")
    assert kwargs["params"] == {"startDate": "2024-05-01", "endDate": "2024-05-01"}


@pytest.mark.asyncio
async def test_download_trigger_ignores_body(client, session):
    session.request.return_value = _response(body=None, json_error=True)

    await client.trigger_download()

    assert session.request.call_args.args[1].endswith("/DownloadFiles")


@pytest.mark.asyncio
async def test_import_posts_exact_records(client, session):
    record = FileRecord.from_api(STATUS_ITEM)
    session.request.return_value = _response(
        body={"success": True, "data": [dict(STATUS_ITEM, spStatus=200)]}
    )

    results = await client.import_files([record])

    args, kwargs = session.request.call_args
    assert args[0] == "POST"
    assert args[1].endswith("/ImportFiles")
    assert kwargs["json"] == [record.to_api()]
    assert results[0].sp_status == 200


@pytest.mark.asyncio
async def test_import_without_records_is_rejected(client, session):
    with pytest.raises(ValueError, match="No files provided"):
        await client.import_files([])
    session.request.assert_not_called()


@pytest.mark.asyncio
async def test_activity_log_uses_day_month_year_path(client, session):
    session.request.return_value = _response(
        body={"success": True, "data": [{"filename": "a.csv", "dlStatus": 200, "spStatus": 200}]}
    )

    entries = await client.fetch_activity_log(date(2024, 5, 1))

    assert session.request.call_args.args[1].endswith("/getActivityLog/01052024")
    assert entries[0].id == 1
    assert entries[0].outcome == "Completed"


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [401, 403])
async def test_auth_rejection_raises_authentication_error(client, session, status_code):
    session.request.return_value = _response(status_code=status_code)

    with pytest.raises(AuthenticationError):
        await client.fetch_status()


@pytest.mark.asyncio
async def test_server_error_raises_gateway_error(client, session):
    session.request.return_value = _response(status_code=502)

    with pytest.raises(GatewayError, match="HTTP 502") as exc:
        await client.fetch_status()
    assert not isinstance(exc.value, AuthenticationError)


@pytest.mark.asyncio
async def test_timeout_raises_gateway_error(client, session):
    session.request.side_effect = requests.Timeout("slow")

    with pytest.raises(GatewayError, match="timed out after 7s"):
        await client.fetch_status()


@pytest.mark.asyncio
async def test_connection_error_raises_gateway_error(client, session):
    session.request.side_effect = requests.ConnectionError("refused")

    with pytest.raises(GatewayError, match="request failed"):
        await client.trigger_download()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"success": False, "data": []},
        {"success": True, "data": {"id": 1}},
        {"success": True, "data": ["not-an-object"]},
        {"success": True, "data": [{"id": 1}]},
        ["raw", "list"],
    ],
)
async def test_malformed_status_body_raises_format_error(client, session, body):
    session.request.return_value = _response(body=body)

    with pytest.raises(ResponseFormatError):
        await client.fetch_status()


@pytest.mark.asyncio
async def test_non_json_status_raises_format_error(client, session):
    session.request.return_value = _response(json_error=True)

    with pytest.raises(ResponseFormatError, match="non-JSON"):
        await client.fetch_status()


def test_close_closes_session(client, session):
    client.close()
    session.close.assert_called_once()


@pytest.mark.asyncio
async def test_import_body_keeps_incremental_names_from_status(client, session):
    item = dict(STATUS_ITEM, filename="bhav^", filetype="I-3", filepath="/x/bhav^")
    session.request.return_value = _response(body={"success": True, "data": [item]})
    records = await client.fetch_status()

    session.request.return_value = _response(body={"success": True, "data": [dict(item, spStatus=200)]})
    results = await client.import_files(records)

    sent = session.request.call_args.kwargs["json"][0]
    assert sent["filename"] == "bhav^"
    assert sent["filetype"] == "I-3"
    assert sent["filepath"] == "/x/bhav^"
    assert results[0].filename == "bhav^"
