import shutil

import pytest

from app.services.auditor import (
    AuditError,
    ListingImageAuditor,
    find_missing_numbers,
    format_bytes,
)


@pytest.fixture()
def auditor(storage):
    storage.ensure_directory()
    return ListingImageAuditor(storage)


def put(storage, name, data=None):
    storage.write(name, data if data is not None else name.encode())


def names(storage):
    return sorted(p.name for p in storage.listings_path.iterdir())


def test_analyze_reports_gap(auditor, storage):
    put(storage, "img.0000042.abc123.01.jpg")
    put(storage, "img.0000042.abc123.03.jpg")

    report = auditor.analyze()

    assert len(report.groups) == 1
    group = report.groups[0]
    assert group.user_id_hex == "0000042"
    assert group.listing_code == "abc123"
    assert group.sequence == [1, 3]
    assert group.contiguous is False
    assert group.missing == [2]
    assert report.broken_groups == [group]


def test_analyze_classifies_and_aggregates(auditor, storage):
    put(storage, "img.0000042.abc123.01.jpg", b"x" * 100)
    put(storage, "img.0000042.abc123.02.png", b"x" * 300)
    put(storage, "img.0000042.zz9.01.jpg", b"x" * 200)
    put(storage, "img.00000ff.home1.01.webp", b"x" * 400)
    put(storage, "README.txt", b"x" * 5000)
    (storage.listings_path / "temp").mkdir()

    report = auditor.analyze()

    assert report.total_entries == 6
    assert sorted(report.invalid_files) == ["README.txt", "temp"]
    assert len(report.valid_files) == 4
    assert report.by_extension == {".jpg": 2, ".png": 1, ".webp": 1}
    assert report.total_bytes == 1000
    assert report.average_bytes == 250

    users = {u.user_id_hex: u for u in report.users}
    assert users["0000042"].total_images == 3
    assert users["0000042"].listing_count == 2
    assert users["0000042"].by_extension == {".jpg": 2, ".png": 1}
    assert users["00000ff"].listing_count == 1
    assert all(g.contiguous for g in report.groups)


def test_analyze_reports_duplicates(auditor, storage):
    put(storage, "img.0000042.abc.01.jpg")
    put(storage, "img.0000042.abc.01.png")

    group = auditor.analyze().groups[0]
    assert group.sequence == [1, 1]
    assert group.duplicates == [1]
    assert group.missing == []
    assert group.contiguous is False


def test_analyze_groups_hex_case_insensitively(auditor, storage):
    put(storage, "img.000002A.abc.01.jpg")
    put(storage, "img.000002a.abc.02.jpg")

    report = auditor.analyze()

    assert len(report.groups) == 1
    assert report.groups[0].user_id_hex == "000002a"
    assert report.groups[0].sequence == [1, 2]
    assert report.groups[0].contiguous
    assert [u.user_id_hex for u in report.users] == ["000002a"]
    assert report.users[0].total_images == 2


def test_analyze_is_read_only(auditor, storage):
    put(storage, "img.0000042.abc.02.jpg")
    before = names(storage)
    auditor.analyze()
    assert names(storage) == before


def test_analyze_missing_directory(tmp_path):
    from app.services.local_storage import ListingImageStorage

    report = ListingImageAuditor(ListingImageStorage(tmp_path / "absent")).analyze()
    assert report.total_entries == 0
    assert report.average_bytes == 0
    assert not (tmp_path / "absent").exists()


def test_repair_renumbers_preserving_order(auditor, storage):
    put(storage, "img.0000042.abc123.05.jpg", b"five")
    put(storage, "img.0000042.abc123.02.jpg", b"two")
    put(storage, "img.0000042.abc123.09.png", b"nine")
    put(storage, "img.0000042.other.07.jpg", b"untouched")

    result = auditor.repair("0000042", "abc123")

    assert [(r.old_name, r.new_name) for r in result.renames] == [
        ("img.0000042.abc123.02.jpg", "img.0000042.abc123.01.jpg"),
        ("img.0000042.abc123.05.jpg", "img.0000042.abc123.02.jpg"),
        ("img.0000042.abc123.09.png", "img.0000042.abc123.03.png"),
    ]
    assert result.changed
    assert names(storage) == [
        "img.0000042.abc123.01.jpg",
        "img.0000042.abc123.02.jpg",
        "img.0000042.abc123.03.png",
        "img.0000042.other.07.jpg",
    ]
    assert storage.get_path("img.0000042.abc123.01.jpg").read_bytes() == b"two"
    assert storage.get_path("img.0000042.abc123.02.jpg").read_bytes() == b"five"
    assert storage.get_path("img.0000042.abc123.03.png").read_bytes() == b"nine"
    assert auditor.analyze().groups[0].contiguous


def test_repair_is_idempotent(auditor, storage):
    put(storage, "img.0000042.abc123.01.jpg")
    put(storage, "img.0000042.abc123.04.jpg")

    auditor.repair("0000042", "abc123")
    after_first = names(storage)
    second = auditor.repair("0000042", "abc123")

    assert names(storage) == after_first
    assert not second.changed


def test_repair_breaks_ties_by_filename(auditor, storage):
    put(storage, "img.0000042.abc.03.png", b"png")
    put(storage, "img.0000042.abc.03.jpg", b"jpg")

    auditor.repair("0000042", "abc")

    assert names(storage) == ["img.0000042.abc.01.jpg", "img.0000042.abc.02.png"]


def test_repair_accepts_uppercase_hex_argument(auditor, storage):
    put(storage, "img.00000ab.abc.02.jpg")
    result = auditor.repair("00000AB", "abc")
    assert result.renames[0].new_name == "img.00000ab.abc.01.jpg"


def test_repair_aborts_on_malformed_group_member(auditor, storage):
    put(storage, "img.0000042.abc.02.jpg")
    put(storage, "img.0000042.abc.7.jpg")

    with pytest.raises(AuditError):
        auditor.repair("0000042", "abc")
    assert names(storage) == ["img.0000042.abc.02.jpg", "img.0000042.abc.7.jpg"]


def test_repair_empty_group(auditor):
    with pytest.raises(AuditError):
        auditor.repair("0000042", "nothing")


@pytest.mark.parametrize("user_id_hex,code", [("42", "abc"), ("0000042", "a-b"), ("000004z", "abc")])
def test_repair_rejects_bad_arguments(auditor, user_id_hex, code):
    with pytest.raises(AuditError):
        auditor.repair(user_id_hex, code)


def test_repair_refuses_when_previous_run_unfinished(auditor, storage):
    put(storage, "img.0000042.abc.02.jpg")
    auditor.scratch_path("0000042", "abc").mkdir()

    with pytest.raises(AuditError):
        auditor.repair("0000042", "abc")
    assert auditor.pending_recoveries() == [("0000042", "abc")]


def test_recover_after_crash_between_phases(auditor, storage):
    # Originals deleted, renamed copies only in scratch
    scratch = auditor.scratch_path("0000042", "abc")
    scratch.mkdir()
    (scratch / "img.0000042.abc.01.jpg").write_bytes(b"first")
    (scratch / "img.0000042.abc.02.jpg").write_bytes(b"second")

    restored = auditor.recover("0000042", "abc")

    assert restored == ["img.0000042.abc.01.jpg", "img.0000042.abc.02.jpg"]
    assert names(storage) == restored
    assert storage.get_path("img.0000042.abc.02.jpg").read_bytes() == b"second"
    assert auditor.pending_recoveries() == []


def test_recover_without_scratch(auditor):
    with pytest.raises(AuditError):
        auditor.recover("0000042", "abc")


def test_repair_failure_mid_copy_discards_scratch(auditor, storage, monkeypatch):
    put(storage, "img.0000042.abc.02.jpg", b"two")
    put(storage, "img.0000042.abc.05.jpg", b"five")
    put(storage, "img.0000042.abc.09.jpg", b"nine")
    real_copy = shutil.copy2
    calls = []

    def copy_failing_on_third(src, dst):
        calls.append(dst)
        if len(calls) == 3:
            raise OSError("no space left")
        return real_copy(src, dst)

    monkeypatch.setattr("app.services.auditor.shutil.copy2", copy_failing_on_third)
    with pytest.raises(OSError):
        auditor.repair("0000042", "abc")
    monkeypatch.undo()

    assert names(storage) == [
        "img.0000042.abc.02.jpg",
        "img.0000042.abc.05.jpg",
        "img.0000042.abc.09.jpg",
    ]
    assert storage.get_path("img.0000042.abc.05.jpg").read_bytes() == b"five"
    assert auditor.pending_recoveries() == []

    # The listing can be repaired again once the disk problem is gone
    auditor.repair("0000042", "abc")
    assert names(storage) == [
        "img.0000042.abc.01.jpg",
        "img.0000042.abc.02.jpg",
        "img.0000042.abc.03.jpg",
    ]


def test_find_missing_numbers():
    assert find_missing_numbers([1, 3, 6]) == [2, 4, 5]
    assert find_missing_numbers([1, 2]) == []
    assert find_missing_numbers([]) == []


def test_format_bytes():
    assert format_bytes(0) == "0 Bytes"
    assert format_bytes(512) == "512 Bytes"
    assert format_bytes(1536) == "1.5 KB"
    assert format_bytes(5 * 1024 ** 3) == "5 GB"
