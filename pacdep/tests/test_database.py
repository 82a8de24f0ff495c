"""Tests for the SQLite package index"""

import gzip
import io
import lzma
import tarfile

import pytest

from pacdep.core.compression import decompress_stream, detect_format
from pacdep.core.config import PacmanConfig
from pacdep.core.database import (
    DatabaseError, InstallReason, PackageDatabase, SearchSet, open_database,
)


@pytest.fixture
def db():
    """Create an in-memory database for testing."""
    database = PackageDatabase()
    yield database
    database.close()


def write_sync_db(path, names):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode='w') as tar:
        for name in names:
            data = f"%NAME%\n{name}\n\n%ISIZE%\n2048\n".encode()
            info = tarfile.TarInfo(f"{name}-1.0-1/desc")
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    path.write_bytes(gzip.compress(buf.getvalue()))


def write_local_db(local_dir, packages):
    local_dir.mkdir(parents=True)
    for name, reason in packages:
        entry = local_dir / f"{name}-1.0-1"
        entry.mkdir()
        (entry / "desc").write_text(f"%NAME%\n{name}\n\n%SIZE%\n1024\n\n%REASON%\n{reason}\n")


class TestCompression:
    """Tests for compression detection."""

    def test_detect_format(self):
        assert detect_format(b'\x28\xb5\x2f\xfd0000') == 'zstd'
        assert detect_format(b'\x1f\x8b\x08\x00') == 'gzip'
        assert detect_format(b'\xfd7zXZ\x00\x00') == 'xz'
        assert detect_format(b'BZh91AY') == 'bzip2'
        assert detect_format(b'%NAME%\n') == 'plain'

    def test_decompress_gzip(self, tmp_path):
        path = tmp_path / "core.db"
        path.write_bytes(gzip.compress(b'hello'))
        with decompress_stream(path) as stream:
            assert stream.read() == b'hello'

    def test_decompress_zstd(self, tmp_path):
        import zstandard
        path = tmp_path / "core.db"
        # repo-add streams zstd without a content size in the frame
        compressor = zstandard.ZstdCompressor(write_content_size=False)
        path.write_bytes(compressor.compress(b'hello'))
        with decompress_stream(path) as stream:
            assert stream.read() == b'hello'

    def test_decompress_xz(self, tmp_path):
        path = tmp_path / "core.db"
        path.write_bytes(lzma.compress(b'hello'))
        with decompress_stream(path) as stream:
            assert stream.read() == b'hello'

    def test_plain_passthrough(self, tmp_path):
        path = tmp_path / "core.db"
        path.write_bytes(b'hello')
        with decompress_stream(path) as stream:
            assert stream.read() == b'hello'


class TestAddPackage:
    """Tests for package import."""

    def test_local_package(self, db):
        pkg = db.add_package("firefox", version="120.0-1", isize=5000,
                             depends=["gtk3", "nss>=3.90"],
                             optdepends=["hunspell: spell checking"])
        assert pkg.name == "firefox"
        assert pkg.is_local
        assert pkg.is_explicit
        assert pkg.reason == InstallReason.EXPLICIT
        assert pkg.depends == ("gtk3", "nss>=3.90")
        assert pkg.optdepends == (("hunspell", "spell checking"),)

    def test_sync_package_has_no_reason(self, db):
        pkg = db.add_package("nss", repo="core", reason="dependency")
        assert pkg.repo == "core"
        assert pkg.reason is None
        assert not pkg.is_explicit

    def test_dependency_reason(self, db):
        pkg = db.add_package("nss", reason="dependency")
        assert pkg.reason == InstallReason.DEPENDENCY
        assert not pkg.is_explicit


class TestFindPackage:
    """Tests for satisfier lookups."""

    def test_exact_name(self, db):
        db.add_package("bash")
        assert db.find_package("bash").name == "bash"

    def test_version_constraint_ignored(self, db):
        db.add_package("glibc", version="2.38-1")
        assert db.find_package("glibc>=9.0").name == "glibc"

    def test_provider(self, db):
        db.add_package("vim", provides=["vi=9.0"])
        assert db.find_package("vi").name == "vim"

    def test_exact_name_wins_over_provider(self, db):
        db.add_package("busybox", provides=["sh"])
        db.add_package("sh")
        assert db.find_package("sh").name == "sh"

    def test_local_first(self, db):
        db.add_package("nss", repo="core")
        db.add_package("nss")
        assert db.find_package("nss").is_local
        assert db.find_package("nss", SearchSet.SYNC).repo == "core"

    def test_repository_order(self, db):
        db.add_package("nss", repo="testing")
        db.add_package("nss", repo="core")
        assert db.find_package("nss", SearchSet.SYNC).repo == "testing"

    def test_not_found(self, db):
        assert db.find_package("nothing") is None


class TestRequiredBy:
    """Tests for reverse dependency lookups."""

    def test_direct_and_provided(self, db):
        lib = db.add_package("libfoo", provides=["libfoo.so=1-64"])
        db.add_package("app1", depends=["libfoo"])
        db.add_package("app2", depends=["libfoo.so=1-64"])
        db.add_package("other", depends=["bash"])
        assert db.required_by(lib) == ["app1", "app2"]

    def test_same_partition_only(self, db):
        lib = db.add_package("libfoo")
        db.add_package("app", repo="extra", depends=["libfoo"])
        assert db.required_by(lib) == []
        sync_lib = db.add_package("libfoo", repo="core")
        assert db.required_by(sync_lib) == ["app"]

    def test_excludes_itself(self, db):
        pkg = db.add_package("selfish", provides=["me"], depends=["me"])
        assert db.required_by(pkg) == []


class TestQueries:
    """Tests for the remaining lookups."""

    def test_is_installed(self, db):
        db.add_package("bash")
        db.add_package("zsh", repo="extra")
        assert db.is_installed("bash")
        assert not db.is_installed("zsh")

    def test_all_packages(self, db):
        db.add_package("b", optdepends=["x: for x"])
        db.add_package("a", repo="core")
        db.add_package("c")
        local = list(db.all_packages(SearchSet.LOCAL))
        assert [p.name for p in local] == ["b", "c"]
        assert local[0].optdepends == (("x", "for x"),)
        assert [p.name for p in db.all_packages()] == ["b", "c", "a"]
        assert db.count_packages(SearchSet.SYNC) == 1


class TestLoading:
    """Tests for loading pacman databases."""

    def test_load_local(self, db, tmp_path):
        write_local_db(tmp_path / "local", [("bash", 0), ("glibc", 1)])
        assert db.load_local(tmp_path / "local") == 2
        assert db.find_package("bash").is_explicit
        assert not db.find_package("glibc").is_explicit

    def test_load_local_missing(self, db, tmp_path):
        with pytest.raises(DatabaseError):
            db.load_local(tmp_path / "nope")

    def test_load_sync(self, db, tmp_path):
        write_sync_db(tmp_path / "core.db", ["glibc", "bash"])
        assert db.load_sync("core", tmp_path / "core.db") == 2
        assert db.find_package("bash").repo == "core"
        assert db.find_package("bash").isize == 2048

    def test_open_database(self, tmp_path):
        write_local_db(tmp_path / "local", [("bash", 0)])
        (tmp_path / "sync").mkdir()
        write_sync_db(tmp_path / "sync" / "core.db", ["zsh"])
        config = PacmanConfig(db_path=str(tmp_path),
                              repositories=["core", "missing"])

        with open_database(config) as database:
            assert database.is_installed("bash")
            assert database.find_package("zsh").repo == "core"

    def test_open_database_corrupt_sync(self, tmp_path):
        write_local_db(tmp_path / "local", [("bash", 0)])
        (tmp_path / "sync").mkdir()
        (tmp_path / "sync" / "core.db").write_bytes(gzip.compress(b"not a tar"))
        config = PacmanConfig(db_path=str(tmp_path), repositories=["core"])

        with open_database(config) as database:
            assert database.count_packages(SearchSet.SYNC) == 0

    def test_open_database_without_local(self, tmp_path):
        config = PacmanConfig(db_path=str(tmp_path))
        with pytest.raises(DatabaseError):
            open_database(config)
