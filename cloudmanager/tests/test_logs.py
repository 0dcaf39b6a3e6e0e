"""Tests for environment log downloads and tailing."""

import asyncio
import gzip
import io
from datetime import datetime, timezone

import httpx
import pytest

from cloudmanager.src.core.tail import TailState
from cloudmanager.src.errors import (
    EnvironmentNotFoundError,
    LinkMissingError,
    LogDownloadError,
    LogNotFoundError,
    LogSizeError,
    LogsNotFoundError,
    LogUnzipError,
    TailError,
    TailLinkNotFoundError,
)
from cloudmanager.src.models.hal import REL_LOGS_DOWNLOAD
from cloudmanager.src.services import download_logs, list_available_log_options, tail_log

from conftest import BASE_URL, json_body, links, logs_listing, partial, run, status

LOGS = "/api/program/4/environment/1/logs?service=author&name=aemerror&days=1"
TODAY = "https://filestore/logs/author_aemerror_2021-09-08.log"
TOMORROW = "https://filestore/logs/author_aemerror_2021-09-09.log"

def ranges(routes, url):
    return [r.headers["range"] for r in routes.requests("GET", url)]

def test_list_available_log_options(routes, make_client):
    options = run(list_available_log_options(make_client(), "4", "1"))
    assert options == [
        {"service": "author", "name": "aemerror"},
        {"service": "publish", "name": "aemaccess"},
    ]

def test_unknown_environment(routes, make_client):
    with pytest.raises(EnvironmentNotFoundError, match="environment 9 for program 4"):
        run(tail_log(make_client(), "4", "9", "author", "aemerror", io.BytesIO()))

def test_tail_starts_at_current_size(routes, make_client, clock):
    routes.add("GET", LOGS, json_body(logs_listing(TODAY)))
    routes.add("HEAD", TODAY, status(200, headers={"Content-Length": "500"}))
    routes.add("GET", TODAY, partial(b"new entry\n"), status(416), status(200))
    sink = io.BytesIO()

    with pytest.raises(TailError) as excinfo:
        run(tail_log(make_client(), "4", "1", "author", "aemerror", sink))

    assert excinfo.value.status == 200
    assert ranges(routes, TODAY) == ["bytes=500-", "bytes=510-", "bytes=510-"]
    assert sink.getvalue() == b"new entry\n"
    assert clock.sleeps == [2]
    # Away from midnight the listing is fetched only once
    assert len(routes.requests("GET", LOGS)) == 1

def test_tail_follows_rollover(routes, make_client, clock):
    clock.current = datetime(2021, 9, 8, 23, 58, tzinfo=timezone.utc)
    routes.add(
        "GET", LOGS,
        json_body(logs_listing(TODAY)),
        json_body(logs_listing(TOMORROW)),
    )
    routes.add("HEAD", TODAY, status(200, headers={"Content-Length": "500"}))
    routes.add("HEAD", TOMORROW, status(200, headers={"Content-Length": "4"}))
    routes.add("GET", TODAY, partial(b"late\n"), status(416))
    routes.add("GET", TOMORROW, partial(b"early\n"), status(500))
    sink = io.BytesIO()

    with pytest.raises(TailError):
        run(tail_log(make_client(), "4", "1", "author", "aemerror", sink))

    assert ranges(routes, TODAY) == ["bytes=500-", "bytes=505-"]
    assert ranges(routes, TOMORROW) == ["bytes=4-", "bytes=10-"]
    assert sink.getvalue() == b"late\nearly\n"

def test_tail_keeps_segment_before_rollover(routes, make_client, clock):
    clock.current = datetime(2021, 9, 8, 23, 56, tzinfo=timezone.utc)
    routes.add("GET", LOGS, json_body(logs_listing(TODAY)))
    routes.add("HEAD", TODAY, status(200, headers={"Content-Length": "500"}))
    routes.add("GET", TODAY, status(416), status(500))

    with pytest.raises(TailError):
        run(tail_log(make_client(), "4", "1", "author", "aemerror", io.BytesIO()))

    assert ranges(routes, TODAY) == ["bytes=500-", "bytes=500-"]
    assert clock.sleeps == [2, 2]
    assert len(routes.requests("GET", LOGS)) == 2

def test_tail_cancelled(routes, make_client):
    routes.add("GET", LOGS, json_body(logs_listing(TODAY)))
    routes.add("HEAD", TODAY, status(200, headers={"Content-Length": "0"}))

    async def scenario():
        cancel = asyncio.Event()

        def not_ready(request):
            cancel.set()
            return httpx.Response(416)

        routes.add("GET", TODAY, partial(b"entry\n"), not_ready)
        return await tail_log(make_client(), "4", "1", "author", "aemerror", io.BytesIO(), cancel=cancel)

    cursor = run(scenario())

    assert cursor.state == TailState.CANCELLED
    assert cursor.offset == 6
    assert cursor.terminated is False

def test_tail_missing_log(routes, make_client):
    routes.add("GET", LOGS, json_body(logs_listing(TODAY)))
    routes.add("HEAD", TODAY, status(200, headers={"Content-Length": "0"}))
    routes.add("GET", TODAY, status(404))

    with pytest.raises(LogNotFoundError):
        run(tail_log(make_client(), "4", "1", "author", "aemerror", io.BytesIO()))

def test_initial_size_failure(routes, make_client):
    routes.add("GET", LOGS, json_body(logs_listing(TODAY)))
    routes.add("HEAD", TODAY, status(403))

    with pytest.raises(LogSizeError):
        run(tail_log(make_client(), "4", "1", "author", "aemerror", io.BytesIO()))
    assert routes.requests("GET", TODAY) == []

def test_no_downloads(routes, make_client):
    routes.add("GET", LOGS, json_body({"_embedded": {"downloads": []}}))
    with pytest.raises(LogsNotFoundError, match="No logs available in 1"):
        run(tail_log(make_client(), "4", "1", "author", "aemerror", io.BytesIO()))

def test_no_tail_link(routes, make_client):
    routes.add("GET", LOGS, json_body(logs_listing(None)))
    with pytest.raises(TailLinkNotFoundError, match="No logs for tailing"):
        run(tail_log(make_client(), "4", "1", "author", "aemerror", io.BytesIO()))

def test_environment_without_logs_link(routes, make_client):
    routes.add("GET", "/api/program/4/environments", json_body({
        "_embedded": {"environments": [
            {"id": "1", "programId": "4", "_links": links(self="/api/program/4/environment/1")},
        ]},
    }))
    with pytest.raises(LinkMissingError, match="logs link"):
        run(tail_log(make_client(), "4", "1", "author", "aemerror", io.BytesIO()))

DOWNLOADS = "/api/program/4/environment/1/logs?service=author&name=aemerror&days=2"
LOG_FILE = "/api/program/4/environment/1/logs/download"

def downloads_listing(*days):
    def day(date, count):
        hrefs = [{"href": f"{LOG_FILE}?date={date}&part={i}"} for i in range(count)]
        return {
            "service": "author",
            "name": "aemerror",
            "date": date,
            "_links": {REL_LOGS_DOWNLOAD: hrefs[0] if count == 1 else hrefs},
        }
    return {"_embedded": {"downloads": [day(date, count) for date, count in days]}}

def add_log_file(routes, date, part, response):
    signed = f"https://filestore/logs/{date}-{part}.log.gz"
    routes.add("GET", f"{LOG_FILE}?date={date}&part={part}", json_body({"redirect": signed}))
    routes.add("GET", signed, response)

def test_download_logs(routes, make_client, tmp_path):
    routes.add("GET", DOWNLOADS, json_body(downloads_listing(("2021-09-08", 1), ("2021-09-09", 2))))
    add_log_file(routes, "2021-09-08", 0, status(200, stream=httpx.ByteStream(gzip.compress(b"monday\n"))))
    add_log_file(routes, "2021-09-09", 0, status(200, stream=httpx.ByteStream(gzip.compress(b"tuesday am\n"))))
    add_log_file(routes, "2021-09-09", 1, status(200, stream=httpx.ByteStream(gzip.compress(b"tuesday pm\n"))))

    result = run(download_logs(make_client(), "4", "1", "author", "aemerror", 2, tmp_path / "out"))

    out = tmp_path / "out"
    assert sorted(p.name for p in out.iterdir()) == [
        "1-author-aemerror-2021-09-08.log",
        "1-author-aemerror-2021-09-09-0.log",
        "1-author-aemerror-2021-09-09-1.log",
    ]
    assert (out / "1-author-aemerror-2021-09-08.log").read_bytes() == b"monday\n"
    assert (out / "1-author-aemerror-2021-09-09-1.log").read_bytes() == b"tuesday pm\n"

    assert result[0] == {
        "service": "author",
        "name": "aemerror",
        "date": "2021-09-08",
        "index": 0,
        "path": str(out / "1-author-aemerror-2021-09-08.log"),
        "url": f"{BASE_URL}{LOG_FILE}?date=2021-09-08&part=0",
    }
    assert [(r["date"], r["index"]) for r in result[1:]] == [("2021-09-09", 0), ("2021-09-09", 1)]

def test_download_logs_keeps_truncated_archive(routes, make_client, tmp_path):
    routes.add("GET", DOWNLOADS, json_body(downloads_listing(("2021-09-08", 1))))
    archive = gzip.compress(b"partial day\n" * 50)
    add_log_file(routes, "2021-09-08", 0, status(200, stream=httpx.ByteStream(archive[:-8])))

    run(download_logs(make_client(), "4", "1", "author", "aemerror", 2, tmp_path))

    assert (tmp_path / "1-author-aemerror-2021-09-08.log").read_bytes() == b"partial day\n" * 50

def test_download_logs_failed_request(routes, make_client, tmp_path):
    routes.add("GET", DOWNLOADS, json_body(downloads_listing(("2021-09-08", 1))))
    add_log_file(routes, "2021-09-08", 0, status(403))

    with pytest.raises(LogDownloadError, match="403"):
        run(download_logs(make_client(), "4", "1", "author", "aemerror", 2, tmp_path))

def test_download_logs_not_gzip(routes, make_client, tmp_path):
    routes.add("GET", DOWNLOADS, json_body(downloads_listing(("2021-09-08", 1))))
    add_log_file(routes, "2021-09-08", 0, status(200, stream=httpx.ByteStream(b"plain text")))

    with pytest.raises(LogUnzipError, match="Could not unzip"):
        run(download_logs(make_client(), "4", "1", "author", "aemerror", 2, tmp_path))
