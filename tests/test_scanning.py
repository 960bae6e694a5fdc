import os
from pathlib import Path

import pytest
import xxhash

from gofi import config
from gofi.exceptions import ScanRootError
from gofi.scanning import hasher as hasher_mod
from gofi.scanning.filesystem import DiskWalker
from gofi.scanning.hasher import FileFingerprinter, Fingerprint
from gofi.session import new_session

PNG_HEADER = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"


def test_fingerprint_small_file(tmp_path):
    p = tmp_path / "sample.bin"
    data = b"hello world" * 10
    p.write_bytes(data)

    fp = FileFingerprinter()
    res = fp.fingerprint(p)

    assert res.digest == xxhash.xxh128(data, seed=fp.seed).hexdigest()
    assert res.size == len(data)
    assert res.type == config.UNKNOWN_TYPE
    assert not res.too_large
    assert res.modified


def test_digest_stable_across_instances_and_key_dependent(tmp_path):
    p = tmp_path / "a.txt"
    p.write_bytes(b"same content")

    assert FileFingerprinter().hash_file(p) == FileFingerprinter().hash_file(p)
    other_key = "FF" * 32
    assert FileFingerprinter(other_key).hash_file(p) != FileFingerprinter().hash_file(p)


def test_digest_covers_whole_file(tmp_path):
    """Files sharing the leading sniff window still get different digests."""
    head = b"x" * (config.HASH_CHUNK_SIZE * 2)
    a = tmp_path / "a.bin"
    b = tmp_path / "b.bin"
    a.write_bytes(head + b"tail-a")
    b.write_bytes(head + b"tail-b")

    fp = FileFingerprinter()
    assert fp.hash_file(a) != fp.hash_file(b)


def test_magic_type_detection(tmp_path):
    p = tmp_path / "no_extension"
    p.write_bytes(PNG_HEADER + b"\x00" * 64)

    res = FileFingerprinter().fingerprint(p)
    assert res.type == "png"


@pytest.mark.skipif(hasher_mod.magic is None, reason="libmagic not available")
def test_mime_sniffing(tmp_path):
    p = tmp_path / "notes"
    p.write_text("just some plain text\n" * 5)

    res = FileFingerprinter().fingerprint(p)
    assert res.mime.startswith("text/")


def test_too_large_skips_content(monkeypatch, tmp_path):
    p = tmp_path / "big.bin"
    p.write_bytes(b"0123456789")
    monkeypatch.setattr(config, "SIZE_CEILING", 10)

    def no_hash(self, path):
        raise AssertionError("content must not be read")
    monkeypatch.setattr(FileFingerprinter, "_hash_and_head", no_hash)

    res = FileFingerprinter().fingerprint(p)
    assert res.too_large
    assert res.type == res.mime == res.digest == config.TOO_LARGE
    assert res.size == 10


def test_just_under_ceiling_is_hashed(monkeypatch, tmp_path):
    p = tmp_path / "edge.bin"
    p.write_bytes(b"012345678")
    monkeypatch.setattr(config, "SIZE_CEILING", 10)

    res = FileFingerprinter().fingerprint(p)
    assert not res.too_large


def test_unreadable_file_falls_back_to_sentinel(monkeypatch, tmp_path):
    p = tmp_path / "locked.bin"
    p.write_bytes(b"secret")

    def deny(*args, **kwargs):
        raise PermissionError("denied")
    monkeypatch.setattr(hasher_mod, "open", deny, raising=False)

    res = FileFingerprinter().fingerprint(p)
    assert res.digest == config.TOO_LARGE
    assert res.size == 6


def _build_tree(root: Path):
    (root / "a.txt").write_bytes(b"0123456789")
    sub = root / "sub"
    sub.mkdir()
    (sub / "b.txt").write_text("b")
    (root / "empty").mkdir()


def test_walker_records_every_file(session, scan_root):
    _build_tree(scan_root)

    walker = DiskWalker(session)
    records = list(walker.scan())

    by_name = {r.name: r for r in records}
    assert set(by_name) == {"a.txt", "b.txt"}
    assert walker.file_count == 2
    assert walker.error_count == 0

    a = by_name["a.txt"]
    assert a.path == str(scan_root) + os.sep
    assert a.size == 10
    assert a.isdir == 0
    assert a.machine == "host1"
    assert a.ip == "10.0.0.1"
    assert a.on_external_source == 0
    assert a.external_name == ""
    assert by_name["b.txt"].path == str(scan_root / "sub") + os.sep


def test_walker_include_dirs(session, scan_root):
    _build_tree(scan_root)

    walker = DiskWalker(session, include_dirs=True)
    records = list(walker.scan())

    dirs = {r.name: r for r in records if r.isdir}
    assert set(dirs) == {"sub", "empty"}
    assert all(r.file_type == r.file_mime == r.file_hash == "" for r in dirs.values())
    assert walker.dir_count == 2
    # The root itself is never recorded
    assert all(r.name != scan_root.name for r in records)


def test_walker_external_label(tmp_path, scan_root):
    (scan_root / "x.txt").write_text("x")
    s = new_session(scan_root, work_dir=tmp_path, hostname="h", ip="1.2.3.4",
                    external_name="usb-disk")

    rec = next(DiskWalker(s).scan())
    assert rec.on_external_source == 1
    assert rec.external_name == "usb-disk"


def test_walker_missing_root_is_fatal(tmp_path):
    s = new_session(tmp_path / "nope", work_dir=tmp_path, hostname="h", ip="1.2.3.4")
    with pytest.raises(ScanRootError):
        list(DiskWalker(s).scan())


def test_walker_counts_broken_symlink(session, scan_root):
    (scan_root / "ok.txt").write_text("ok")
    try:
        os.symlink(scan_root / "missing", scan_root / "dangling")
    except (OSError, NotImplementedError):
        pytest.skip("symlinks not supported")

    walker = DiskWalker(session)
    records = list(walker.scan())

    assert [r.name for r in records] == ["ok.txt"]
    assert walker.error_count == 1


def test_walker_continues_past_unreadable_dir(monkeypatch, session, scan_root):
    _build_tree(scan_root)
    real_scandir = os.scandir
    blocked = str(scan_root / "sub")

    def fake_scandir(path):
        if str(path) == blocked:
            raise PermissionError("denied")
        return real_scandir(path)
    monkeypatch.setattr(os, "scandir", fake_scandir)

    walker = DiskWalker(session)
    names = {r.name for r in walker.scan()}

    assert names == {"a.txt"}
    assert walker.error_count == 1


def test_walker_skips_vanished_file(monkeypatch, session, scan_root):
    _build_tree(scan_root)
    real = FileFingerprinter.fingerprint

    def flaky(self, path, stat_result=None):
        if path.name == "b.txt":
            raise FileNotFoundError(path)
        return real(self, path, stat_result)
    monkeypatch.setattr(FileFingerprinter, "fingerprint", flaky)

    walker = DiskWalker(session)
    names = {r.name for r in walker.scan()}

    assert names == {"a.txt"}
    assert walker.error_count == 1


def test_walker_uses_given_fingerprinter(session, scan_root):
    (scan_root / "f.txt").write_text("f")

    class Stub:
        def fingerprint(self, path, stat_result=None):
            return Fingerprint("t", "m", "d", 1, "now")

    rec = next(DiskWalker(session, fingerprinter=Stub()).scan())
    assert (rec.file_type, rec.file_mime, rec.file_hash, rec.modified) == ("t", "m", "d", "now")


def test_walker_ignores_session_artifacts(scan_root):
    (scan_root / "real.txt").write_text("r")
    s = new_session(scan_root, work_dir=scan_root, hostname="h", ip="1.2.3.4", session_id="sid")
    s.tmp_dir.mkdir()
    (s.tmp_dir / "abcde0.tmp.JSON").write_text("[]")
    s.db_path.write_bytes(b"")

    names = {r.name for r in DiskWalker(s, include_dirs=True).scan()}
    assert names == {"real.txt"}
