import subprocess
import zipfile
from pathlib import Path
from unittest import mock

import pytest

from ctimeta.gitstorage import (
    GitInfo,
    GitStorage,
    discover_source,
    find_go_import,
    git_archive,
    git_ls_remote,
    parse_go_query,
)

PAGE = (
    b'<html><head><meta name="go-import" '
    b'content="example.com/mod git https://example.com/repo.git"></head></html>'
)


def _completed(stdout=b""):
    return subprocess.CompletedProcess(args=[], returncode=0, stdout=stdout, stderr=b"")


def _fake_urlopen(body):
    opener = mock.MagicMock()
    opener.return_value.__enter__.return_value.read.return_value = body
    return opener


def test_parse_go_query_splits_three_parts():
    assert parse_go_query("example.com/mod git https://example.com/repo.git") == (
        "example.com/mod",
        "git",
        "https://example.com/repo.git",
    )


def test_parse_go_query_rejects_short_value():
    with pytest.raises(ValueError):
        parse_go_query("example.com/mod git")


def test_find_go_import_reads_meta_content():
    assert find_go_import(PAGE) == "example.com/mod git https://example.com/repo.git"
    assert find_go_import("<html></html>") is None


def test_git_ls_remote_returns_first_field():
    with mock.patch("subprocess.run", return_value=_completed(b"deadbeef\trefs/tags/1.0.0\n")) as run:
        result = git_ls_remote("https://example.com/repo.git", "1.0.0")
    assert result == "deadbeef"
    assert run.call_args.args[0] == ["git", "ls-remote", "https://example.com/repo.git", "1.0.0"]


def test_git_ls_remote_empty_output_gives_empty_hash():
    with mock.patch("subprocess.run", return_value=_completed(b"")):
        assert git_ls_remote("https://example.com/repo.git", "1.0.0") == ""


def test_git_ls_remote_failure_raises():
    error = subprocess.CalledProcessError(128, ["git"])
    with mock.patch("subprocess.run", side_effect=error):
        with pytest.raises(RuntimeError, match="git ls-remote"):
            git_ls_remote("https://example.com/repo.git", "1.0.0")


def test_git_archive_command_line(tmp_path):
    dest = tmp_path / "out.zip"
    with mock.patch("subprocess.run", return_value=_completed()) as run:
        git_archive("https://example.com/repo.git", "1.0.0", dest)
    assert run.call_args.args[0] == [
        "git", "archive", "--remote", "https://example.com/repo.git", "1.0.0", "-o", str(dest),
    ]


def test_git_archive_failure_raises(tmp_path):
    error = subprocess.CalledProcessError(1, ["git"])
    with mock.patch("subprocess.run", side_effect=error):
        with pytest.raises(RuntimeError, match="git archive"):
            git_archive("https://example.com/repo.git", "1.0.0", tmp_path / "out.zip")


def test_discover_source_adds_go_get_query():
    opener = _fake_urlopen(PAGE)
    with mock.patch("urllib.request.urlopen", opener):
        body = discover_source("https://example.com/mod")
    assert body == PAGE
    assert opener.call_args.args[0] == "https://example.com/mod?go-get=1"


def test_git_info_dict_round_trip():
    info = GitInfo(name="pkg", vcs="git", url="https://example.com/repo.git", hash="deadbeef", ref="1.0.0")
    data = info.to_dict()
    assert set(data) == {"Name", "VCS", "URL", "Hash", "Ref"}
    assert GitInfo.from_dict(data) == info


def test_git_info_from_dict_rejects_non_string():
    with pytest.raises(ValueError):
        GitInfo.from_dict({"Hash": 12})


def test_validate_reports_hash_mismatch_and_ignores_name():
    first = GitInfo(name="a", vcs="git", url="u", hash="h1", ref="1.0.0")
    second = GitInfo(name="b", vcs="git", url="u", hash="h2", ref="1.0.0")
    with pytest.raises(ValueError, match="hash mismatch: h1 != h2"):
        first.validate(second)


def test_validate_reports_vcs_first():
    first = GitInfo(vcs="git", url="u1", ref="1.0.0")
    second = GitInfo(vcs="hg", url="u2", ref="2.0.0")
    with pytest.raises(ValueError, match="vcs mismatch"):
        first.validate(second)


def test_validate_rejects_other_origin_kind():
    class Other(GitInfo.__mro__[1]):
        def download(self, cache_dir):
            return cache_dir

        def to_dict(self):
            return {}

        @classmethod
        def from_dict(cls, data):
            return cls()

    with pytest.raises(TypeError, match="origin is not a gitInfo"):
        GitInfo().validate(Other())


def _archive_writer(entries):
    def run(command, **kwargs):
        with zipfile.ZipFile(command[-1], "w") as archive:
            for name, content in entries.items():
                archive.writestr(name, content)
        return _completed()

    return run


def test_download_unpacks_archive(tmp_path):
    info = GitInfo(name="example.com/mod", vcs="git", url="https://example.com/repo.git",
                   hash="deadbeefcafe", ref="1.0.0")
    with mock.patch("subprocess.run", side_effect=_archive_writer({"index.json": "{}", "a/b.raml": "x"})) as run:
        result = info.download(tmp_path)
    assert Path(result) == tmp_path / "package"
    assert (tmp_path / "package" / "index.json").read_text() == "{}"
    assert (tmp_path / "package" / "a" / "b.raml").read_text() == "x"
    assert run.call_args.args[0][-1] == str(tmp_path / "example.com" / "mod-1.0.0-deadbeef.zip")


def test_download_rejects_path_traversal(tmp_path):
    info = GitInfo(name="example.com/mod", url="https://example.com/repo.git", hash="deadbeef", ref="1.0.0")
    with mock.patch("subprocess.run", side_effect=_archive_writer({"../evil.txt": "x"})):
        with pytest.raises(ValueError, match="unzip"):
            info.download(tmp_path)
    assert not (tmp_path / "evil.txt").exists()


def test_empty_origin_is_blank_git_info():
    assert GitStorage().empty_origin() == GitInfo()


def test_discover_rejects_invalid_version():
    with mock.patch("urllib.request.urlopen") as opener:
        with pytest.raises(ValueError, match="invalid version"):
            GitStorage().discover("example.com/mod", "not-a-version")
    assert not opener.called


def test_discover_resolves_commit():
    opener = _fake_urlopen(PAGE)
    with mock.patch("urllib.request.urlopen", opener), \
            mock.patch("subprocess.run", return_value=_completed(b"deadbeef refs/tags/1.0.0\n")) as run:
        info = GitStorage().discover("example.com/mod", "1.0.0")
    assert info == GitInfo(vcs="git", url="https://example.com/repo.git", hash="deadbeef", ref="1.0.0")
    assert opener.call_args.args[0] == "https://example.com/mod?go-get=1"
    assert run.call_args.args[0] == ["git", "ls-remote", "https://example.com/repo.git", "1.0.0"]


def test_discover_without_go_import_fails():
    with mock.patch("urllib.request.urlopen", _fake_urlopen(b"<html></html>")):
        with pytest.raises(ValueError, match="find go-import at https://example.com/mod"):
            GitStorage().discover("example.com/mod", "1.0.0")


def test_discover_unknown_ref_fails():
    with mock.patch("urllib.request.urlopen", _fake_urlopen(PAGE)), \
            mock.patch("subprocess.run", return_value=_completed(b"")):
        with pytest.raises(ValueError, match="failed to find https://example.com/repo.git 1.0.0"):
            GitStorage().discover("example.com/mod", "1.0.0")


def test_discover_network_failure():
    with mock.patch("urllib.request.urlopen", side_effect=OSError("unreachable")):
        with pytest.raises(RuntimeError, match="discover source at https://example.com/mod"):
            GitStorage().discover("example.com/mod", "1.0.0")