#!/usr/bin/env python
"""
Unit tests for wdc.client.  No WebDAV server is needed; requests made
through the requests library are answered by the FakeServer from
fixture_helpers.
"""
import io
import json
import logging
from datetime import datetime
from unittest import mock

import pytest
import requests

from fixture_helpers import dav_response
from fixture_helpers import FakeServer
from fixture_helpers import MockedResponse
from fixture_helpers import multistatus
from wdc import Client
from wdc import get_client
from wdc.lib import error
from wdc.lib.error import AuthorizationError
from wdc.lib.error import ConfigurationError
from wdc.lib.error import HttpError
from wdc.lib.error import TransportError
from wdc.lib.error import TransportStatus

REQUEST = "wdc.transport.requests.Session.request"

OPTIONS = {
    "webdav_hostname": "https://dav.example.com",
    "webdav_root": "/webdav",
    "webdav_username": "alice",
    "webdav_password": "secret",
}


@pytest.fixture
def client():
    with Client(OPTIONS) as client:
        yield client


class TestConstruction:
    def testOptions(self):
        client = Client(OPTIONS, timeout=10, something="ignored")
        options = client.options()
        assert options["webdav_hostname"] == "https://dav.example.com"
        assert options["timeout"] == "10"
        assert "something" not in options
        assert options["proxy_hostname"] == ""

    def testBearerWithoutToken(self):
        with pytest.raises(AuthorizationError):
            Client(webdav_hostname="https://dav.example.com", auth_type="bearer")

    def testInvalidAuthType(self):
        with pytest.raises(ConfigurationError):
            Client(webdav_hostname="https://dav.example.com", auth_type="kerberos")

    def testUrlBuilding(self, client):
        target = client.target("møøh/bar baz.txt")
        assert target.path == "/webdav/møøh/bar baz.txt"
        assert (
            client.url(target)
            == "https://dav.example.com/webdav/m%C3%B8%C3%B8h/bar%20baz.txt"
        )
        assert client.target("/docs", directory=True).path == "/webdav/docs/"

    def testHostnameWithTrailingSlash(self):
        client = Client(webdav_hostname="https://dav.example.com/", webdav_root="/")
        assert client.url(client.target("a")) == "https://dav.example.com/a"


class TestLookups:
    def testCheck(self, client):
        server = FakeServer(files={"/webdav/a.txt": b"hello"})
        with mock.patch(REQUEST, server):
            assert client.check("a.txt")
            assert not client.check("b.txt")
        assert server.calls[0][0] == "PROPFIND"
        assert server.calls[0][2]["Depth"] == "1"

    def testCheckTransportFailure(self, client):
        with mock.patch(REQUEST, side_effect=requests.exceptions.ConnectionError()):
            assert not client.check("a.txt")
            assert client.list("/") is None
            assert client.info("a.txt") is None
            assert client.free_size() == 0
            assert not client.mkdir("a")

    def testTransportFailureLoggedOnce(self, client, caplog):
        caplog.set_level(logging.INFO, logger="wdc")
        with mock.patch(REQUEST, side_effect=requests.exceptions.ConnectionError()):
            assert not client.check("a.txt")
        infos = [r for r in caplog.records if r.levelno >= logging.INFO]
        assert len(infos) == 1
        assert "CONNECTION_ERROR" in infos[0].getMessage()

    def testInfo(self, client):
        server = FakeServer(files={"/webdav/a.txt": b"hello"})
        with mock.patch(REQUEST, server):
            info = client.info("/a.txt")
        assert server.calls[0][2]["Depth"] == "0"
        assert info.href == "/webdav/a.txt"
        assert info.name == "a.txt"
        assert info.size == 5
        assert info.modified == datetime(1998, 1, 12, 9, 25, 56)
        assert not info.is_directory

    def testInfoDirectory(self, client):
        server = FakeServer(directories=["/webdav", "/webdav/docs"])
        with mock.patch(REQUEST, server):
            info = client.info("docs")
            assert client.is_directory("docs")
            assert client.is_directory("docs/")
            assert not client.is_directory("nothing")
        assert info.href == "/webdav/docs/"
        assert info.type == "collection"

    def testInfoMissing(self, client):
        with mock.patch(REQUEST, FakeServer()):
            assert client.info("nothing.txt") is None

    def testInfoAboutSomethingElse(self, client):
        body = multistatus(dav_response("/webdav/other.txt"))
        with mock.patch(REQUEST, return_value=MockedResponse(207, body)):
            assert client.info("a.txt") is None

    def testInfoAbsoluteHref(self, client):
        body = multistatus(dav_response("https://dav.example.com/webdav/a%20b.txt"))
        with mock.patch(REQUEST, return_value=MockedResponse(207, body)):
            assert client.info("a b.txt").href == "/webdav/a b.txt"

    def testInfoInvalidXML(self, client):
        with mock.patch(REQUEST, return_value=MockedResponse(207, b"this is not XML")):
            assert client.info("a.txt") is None
            assert client.list("/") is None

    def testList(self, client):
        server = FakeServer(
            directories=["/webdav", "/webdav/docs"],
            files={"/webdav/a.txt": b"a", "/webdav/docs/b.txt": b"bb"},
        )
        with mock.patch(REQUEST, server):
            resources = client.list("/")
            sub = client.list("docs")
        assert [r.href for r in resources] == ["/webdav/", "/webdav/a.txt", "/webdav/docs/"]
        assert [r.is_directory for r in resources] == [True, False, True]
        assert [r.href for r in sub] == ["/webdav/docs/", "/webdav/docs/b.txt"]
        assert sub[1].size == 2
        assert server.calls[1][1] == "/webdav/docs/"

    def testListMissing(self, client):
        with mock.patch(REQUEST, FakeServer()):
            assert client.list("nothing") is None

    def testFreeSize(self, client):
        server = FakeServer(quota=1000)
        with mock.patch(REQUEST, server):
            assert client.free_size() == 1000
        method, path, headers = server.calls[0]
        assert method == "PROPFIND"
        assert path == "/webdav/"
        assert headers["Depth"] == "0"
        assert headers["Content-Type"] == "text/xml"

    def testFreeSizeNotSupported(self, client):
        with mock.patch(REQUEST, FakeServer()):
            assert client.free_size() == 0

    def testFreeSizeServerError(self, client):
        with mock.patch(REQUEST, return_value=MockedResponse(500, reason="Oops")):
            assert client.free_size() == 0


class TestMkdir:
    def testCreate(self, client):
        server = FakeServer()
        with mock.patch(REQUEST, server):
            assert client.mkdir("new")
        assert server.methods() == ["PROPFIND", "MKCOL"]
        assert server.paths("MKCOL") == ["/webdav/new/"]
        assert server.calls[1][2]["Connection"] == "Keep-Alive"
        assert "/webdav/new" in server.directories

    def testExisting(self, client):
        server = FakeServer(directories=["/webdav", "/webdav/old"])
        with mock.patch(REQUEST, server):
            assert client.mkdir("old")
        assert server.methods() == ["PROPFIND"]

    def testMissingParent(self, client):
        server = FakeServer()
        with mock.patch(REQUEST, server):
            assert not client.mkdir("/a/b/c")
        assert server.paths("MKCOL") == ["/webdav/a/b/c/"]

    def testRecursive(self, client):
        server = FakeServer()
        with mock.patch(REQUEST, server):
            assert client.mkdir("/a/b/c", recursive=True)
        assert server.paths("MKCOL") == ["/webdav/a/", "/webdav/a/b/", "/webdav/a/b/c/"]
        assert {"/webdav/a", "/webdav/a/b", "/webdav/a/b/c"} <= server.directories

    def testRecursivePartlyExisting(self, client):
        server = FakeServer(directories=["/webdav", "/webdav/a"])
        with mock.patch(REQUEST, server):
            assert client.mkdir("a/b/c/", recursive=True)
        assert server.paths("MKCOL") == ["/webdav/a/b/", "/webdav/a/b/c/"]

    def testRecursiveFailsFast(self, client):
        server = FakeServer()
        server.refuse.add("MKCOL")
        with mock.patch(REQUEST, server):
            assert not client.mkdir("/a/b/c", recursive=True)
        assert server.paths("MKCOL") == ["/webdav/a/"]

    def testRecursiveWithoutRoot(self, client):
        server = FakeServer(directories=[])
        with mock.patch(REQUEST, server):
            assert not client.mkdir("/a", recursive=True)
        assert "MKCOL" not in server.methods()


class TestModify:
    def testDelete(self, client):
        server = FakeServer(files={"/webdav/a.txt": b"a"})
        with mock.patch(REQUEST, server):
            assert client.delete("a.txt")
        assert server.methods() == ["PROPFIND", "DELETE"]
        assert server.calls[1][2]["Connection"] == "Keep-Alive"
        assert "/webdav/a.txt" not in server.files

    def testDeleteAbsent(self, client):
        server = FakeServer()
        with mock.patch(REQUEST, server):
            assert client.delete("a.txt")
        assert server.methods() == ["PROPFIND"]

    def testDeleteRefused(self, client):
        server = FakeServer(files={"/webdav/a.txt": b"a"})
        server.refuse.add("DELETE")
        with mock.patch(REQUEST, server):
            assert not client.delete("a.txt")

    def testMove(self, client):
        server = FakeServer(files={"/webdav/a.txt": b"a"})
        with mock.patch(REQUEST, server):
            assert client.move("a.txt", "b c.txt")
        assert server.methods() == ["PROPFIND", "MOVE"]
        assert server.calls[1][2]["Destination"] == "/webdav/b%20c.txt"
        assert server.files == {"/webdav/b c.txt": b"a"}

    def testMoveMissingSource(self, client):
        server = FakeServer()
        with mock.patch(REQUEST, server):
            assert not client.move("a.txt", "b.txt")
        assert server.methods() == ["PROPFIND"]

    def testCopy(self, client):
        server = FakeServer(files={"/webdav/a.txt": b"a"})
        with mock.patch(REQUEST, server):
            assert client.copy("a.txt", "b.txt")
        assert server.methods() == ["PROPFIND", "COPY"]
        assert server.files == {"/webdav/a.txt": b"a", "/webdav/b.txt": b"a"}

    def testCopyMissingSource(self, client):
        server = FakeServer()
        with mock.patch(REQUEST, server):
            assert not client.copy("a.txt", "b.txt")
        assert "COPY" not in server.methods()


class TestTransfers:
    def testDownload(self, client, tmp_path):
        local = tmp_path / "a.txt"
        server = FakeServer(files={"/webdav/a.txt": b"hello world"})
        with mock.patch(REQUEST, server):
            assert client.download("a.txt", str(local))
        assert local.read_bytes() == b"hello world"
        assert server.methods() == ["PROPFIND", "GET"]

    def testDownloadMissing(self, client, tmp_path):
        local = tmp_path / "a.txt"
        server = FakeServer()
        with mock.patch(REQUEST, server):
            assert not client.download("a.txt", str(local))
        assert not local.exists()
        assert server.methods() == ["PROPFIND"]

    def testDownloadUnwritable(self, client, tmp_path):
        local = tmp_path / "no such directory" / "a.txt"
        with mock.patch(REQUEST, FakeServer(files={"/webdav/a.txt": b"a"})):
            assert not client.download("a.txt", str(local))

    def testDownloadBytes(self, client):
        with mock.patch(REQUEST, FakeServer(files={"/webdav/a.txt": b"hello"})):
            assert client.download_bytes("a.txt") == b"hello"
            assert client.download_bytes("b.txt") is None

    def testDownloadToStream(self, client):
        target = io.BytesIO()
        with mock.patch(REQUEST, FakeServer(files={"/webdav/a.txt": b"hello"})):
            assert client.download_to("a.txt", target)
        assert target.getvalue() == b"hello"

    def testDownloadProgress(self, client):
        calls = []

        def progress(download_total, download_now, upload_total, upload_now):
            calls.append((download_total, download_now))

        with mock.patch(REQUEST, FakeServer(files={"/webdav/a.txt": b"x" * 10})):
            assert client.download_bytes("a.txt", progress) == b"x" * 10
        assert calls[-1] == (10, 10)

    def testDownloadAborted(self, client):
        with mock.patch(REQUEST, FakeServer(files={"/webdav/a.txt": b"hello"})):
            assert client.download_bytes("a.txt", lambda *args: True) is None

    def testUpload(self, client, tmp_path):
        local = tmp_path / "a.txt"
        local.write_bytes(b"some content")
        server = FakeServer()
        with mock.patch(REQUEST, server):
            assert client.upload("a.txt", str(local))
        assert server.files["/webdav/a.txt"] == b"some content"
        assert server.methods() == ["PUT"]

    def testUploadMissingLocalFile(self, client, tmp_path):
        server = FakeServer()
        with mock.patch(REQUEST, server):
            assert not client.upload("a.txt", str(tmp_path / "nothing.txt"))
            assert not client.upload("a.txt", str(tmp_path))
        assert server.calls == []

    def testUploadRefused(self, client, tmp_path):
        local = tmp_path / "a.txt"
        local.write_bytes(b"some content")
        with mock.patch(REQUEST, FakeServer()):
            assert not client.upload("missing/a.txt", str(local))

    def testUploadFromBytes(self, client):
        server = FakeServer()
        buffer = bytearray(b"from a buffer")
        with mock.patch(REQUEST, server):
            assert client.upload_from("a.txt", buffer)
        assert server.files["/webdav/a.txt"] == b"from a buffer"
        assert buffer == bytearray(b"from a buffer")

    def testUploadFromStream(self, client):
        server = FakeServer()
        stream = io.BytesIO(b"skipped, from a stream")
        stream.seek(9)
        with mock.patch(REQUEST, server):
            assert client.upload_from("a.txt", stream)
        assert server.files["/webdav/a.txt"] == b"from a stream"

    def testUploadProgress(self, client):
        calls = []

        def progress(download_total, download_now, upload_total, upload_now):
            calls.append((upload_total, upload_now))

        with mock.patch(REQUEST, FakeServer()):
            assert client.upload_from("a.txt", b"x" * 20, progress)
        assert calls[-1] == (20, 20)

    def testAsyncDownload(self, client, tmp_path):
        local = tmp_path / "a.txt"
        results = []
        with mock.patch(REQUEST, FakeServer(files={"/webdav/a.txt": b"hello"})):
            future = client.async_download("a.txt", str(local), results.append)
            assert future.result(timeout=10)
        assert results == [True]
        assert local.read_bytes() == b"hello"

    def testAsyncUpload(self, client, tmp_path):
        local = tmp_path / "a.txt"
        local.write_bytes(b"hello")
        server = FakeServer()
        results = []
        with mock.patch(REQUEST, server):
            future = client.async_upload("a.txt", str(local), results.append)
            assert future.result(timeout=10)
            failed = client.async_upload("b.txt", str(tmp_path / "nothing"), results.append)
            assert not failed.result(timeout=10)
        assert results == [True, False]
        assert server.files["/webdav/a.txt"] == b"hello"

    def testUploadFromClosedStream(self, client):
        stream = io.BytesIO(b"data")
        stream.close()
        with mock.patch(REQUEST, FakeServer()):
            assert not client.upload_from("a.txt", stream)

    def testUploadFromTextStream(self, client):
        server = FakeServer()
        with mock.patch(REQUEST, server):
            assert not client.upload_from("a.txt", io.StringIO("text"))
        assert "/webdav/a.txt" not in server.files

    def testDownloadToClosedStream(self, client):
        target = io.BytesIO()
        target.close()
        with mock.patch(REQUEST, FakeServer(files={"/webdav/a.txt": b"hello"})):
            assert not client.download_to("a.txt", target)

    def testDownloadToTextStream(self, client):
        target = io.StringIO()
        with mock.patch(REQUEST, FakeServer(files={"/webdav/a.txt": b"hello"})):
            assert not client.download_to("a.txt", target)
        assert target.getvalue() == ""


class TestRequest:
    def testRequest(self, client):
        server = FakeServer(directories=["/webdav", "/webdav/docs"])
        with mock.patch(REQUEST, server):
            outcome, content = client.request("PROPFIND", "docs", {"Depth": "0"})
        assert outcome.is_success()
        assert outcome.http_status == 207
        assert b"/webdav/docs/" in content
        assert server.calls[0][2]["User-Agent"].startswith("python-wdc/")

    def testRequestErrors(self, client):
        with mock.patch(REQUEST, FakeServer()):
            outcome, _ = client.request("PROPFIND", "nothing")
        assert error.classify(outcome) == HttpError(404)

        with mock.patch(REQUEST, side_effect=requests.exceptions.ReadTimeout()):
            outcome, _ = client.request("GET", "a.txt")
        assert error.classify(outcome) == TransportError(TransportStatus.TIMEOUT)

    def testRequestBody(self, client):
        with mock.patch(REQUEST) as mocked:
            mocked.return_value = MockedResponse(201, reason="Created")
            client.request("PUT", "a.txt", body="bringebærsyltetøy")
        assert mocked.call_args[0] == ("PUT", "https://dav.example.com/webdav/a.txt")
        data = mocked.call_args[1]["data"]
        assert len(data) == len("bringebærsyltetøy".encode("utf-8"))


class TestGetClient:
    def testFromParameters(self):
        client = get_client(webdav_hostname="https://dav.example.com")
        assert client.config.webdav_hostname == "https://dav.example.com"

    def testFromEnvironment(self, monkeypatch):
        monkeypatch.setenv("WDC_WEBDAV_HOSTNAME", "https://env.example.com")
        monkeypatch.setenv("WDC_WEBDAV_USERNAME", "bob")
        client = get_client(check_config_file=False)
        assert client.config.webdav_hostname == "https://env.example.com"
        assert client.config.webdav_username == "bob"

    def testFromConfigFile(self, monkeypatch, tmp_path):
        monkeypatch.delenv("WDC_WEBDAV_HOSTNAME", raising=False)
        config_file = tmp_path / "config.json"
        config_file.write_text(
            json.dumps(
                {
                    "base": {"webdav_hostname": "https://file.example.com"},
                    "work": {"inherits": "base", "webdav_root": "/dav", "color": "red"},
                }
            )
        )
        client = get_client(config_file=str(config_file), config_section="work")
        assert client.config.webdav_hostname == "https://file.example.com"
        assert client.config.webdav_root == "/dav"

        monkeypatch.setenv("WDC_CONFIG_FILE", str(config_file))
        monkeypatch.setenv("WDC_CONFIG_SECTION", "base")
        client = get_client()
        assert client.config.webdav_hostname == "https://file.example.com"
        assert client.config.webdav_root == ""

    def testNothingConfigured(self):
        assert get_client(check_config_file=False, environment=False) is None
