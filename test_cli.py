import io
import zipfile

import pytest
import requests
from click.testing import CliRunner

from speedbag.cli import cli
from speedbag.download import filename_from_url, open_url_source
from speedbag.errors import StreamFault
from speedbag.speedbag import run


class FakeRaw:
    def __init__(self, content):
        self._content = io.BytesIO(content)
        self.decode_content = False

    def read(self, size=None):
        return self._content.read(size)


class FakeResponse:
    def __init__(self, content=b"", status_code=200):
        self.raw = FakeRaw(content)
        self.status_code = status_code
        self.closed = False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error")

    def close(self):
        self.closed = True


@pytest.fixture
def payload_dir(tmp_path):
    payload = tmp_path / "payload"
    (payload / "sub").mkdir(parents=True)
    (payload / "a.csv").write_bytes(b"id,value\n1,2\n3,4")
    (payload / "sub" / "b.csv").write_bytes(b"id,value\n10,20\n30,40")
    return payload


@pytest.fixture
def tag_dir(tmp_path):
    tags = tmp_path / "tags"
    (tags / "metadata").mkdir(parents=True)
    (tags / "metadata" / "eml.xml").write_bytes(b"<eml/>\n")
    return tags


def test_cli_writes_bag(tmp_path, payload_dir, tag_dir):
    output = tmp_path / "bag.zip"
    runner = CliRunner()
    result = runner.invoke(cli, [
        str(payload_dir),
        "-o", str(output),
        "-a", "MD5",
        "-t", str(tag_dir),
        "-m", "Contact-Name=Jo",
        "--no-env-metadata",
    ])
    assert result.exit_code == 0, result.output

    archive = zipfile.ZipFile(output)
    assert archive.namelist() == [
        "data/a.csv",
        "data/sub/b.csv",
        "bagit.txt",
        "bag-info.txt",
        "manifest-md5.txt",
        "metadata/eml.xml",
        "tagmanifest-md5.txt",
    ]
    assert archive.read("bagit.txt").decode("utf-8").splitlines()[0] == "Contact-Name: Jo"
    assert "Payload-Oxum: 36.2" in archive.read("bag-info.txt").decode("utf-8")


def test_cli_reads_env_metadata(tmp_path, payload_dir):
    output = tmp_path / "bag.zip"
    runner = CliRunner()
    result = runner.invoke(
        cli,
        [str(payload_dir), "-o", str(output), "-V", "0.97"],
        env={"BAGIT_CONTACT_EMAIL": "jo@example.org"},
    )
    assert result.exit_code == 0, result.output
    assert zipfile.ZipFile(output).read("bagit.txt").decode("utf-8").splitlines() == [
        "Contact-Email: jo@example.org",
        "BagIt-Version: 0.97",
        "Tag-File-Character-Encoding: UTF-8",
    ]


def test_cli_rejects_bad_metadata(tmp_path, payload_dir):
    runner = CliRunner()
    result = runner.invoke(cli, [str(payload_dir), "-o", str(tmp_path / "bag.zip"), "-m", "no-separator"])
    assert result.exit_code == 2
    assert "KEY=VALUE" in result.output


def test_cli_reports_unsupported_algorithm(tmp_path, payload_dir):
    runner = CliRunner()
    result = runner.invoke(cli, [str(payload_dir), "-o", str(tmp_path / "bag.zip"), "-a", "crc-99"])
    assert result.exit_code == 1
    assert "Unsupported checksum algorithm 'crc-99'" in result.output


def test_filename_from_url():
    assert filename_from_url("https://example.org/files/obs%202023.nc?x=1") == "obs 2023.nc"
    with pytest.raises(ValueError):
        filename_from_url("https://example.org/")


def test_url_source_downloads_lazily(monkeypatch):
    calls = []
    response = FakeResponse(b"netcdf bytes")

    def fake_get(url, **kwargs):
        calls.append((url, kwargs))
        return response

    monkeypatch.setattr(requests, "get", fake_get)
    source = open_url_source("https://example.org/obs.nc")
    assert not calls

    assert source.read(6) == b"netcdf"
    assert source.read() == b" bytes"
    assert calls == [("https://example.org/obs.nc", {"stream": True, "allow_redirects": True, "timeout": 60})]
    assert response.raw.decode_content
    source.close()
    assert response.closed


def test_run_with_urls(monkeypatch, tmp_path, payload_dir):
    monkeypatch.setattr(requests, "get", lambda url, **kwargs: FakeResponse(b"remote data"))
    output = io.BytesIO()
    bag = run(payload_dir, output, "sha256", 1.0, urls=["https://example.org/files/remote.nc"], env_metadata=False)

    assert bag.payload_file_count == 3
    assert bag.payload_oxum == "47.3"
    assert zipfile.ZipFile(output).read("data/remote.nc") == b"remote data"


def test_run_fails_on_http_error(monkeypatch, tmp_path, payload_dir):
    response = FakeResponse(status_code=404)
    monkeypatch.setattr(requests, "get", lambda url, **kwargs: response)
    with pytest.raises(StreamFault) as info:
        run(payload_dir, io.BytesIO(), urls=["https://example.org/missing.nc"], env_metadata=False)
    assert isinstance(info.value.__cause__, requests.HTTPError)
    assert response.closed
