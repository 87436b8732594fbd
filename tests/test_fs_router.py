from __future__ import annotations

import asyncio
from io import BytesIO

import pytest
from fastapi import HTTPException, UploadFile

from botfs import deps
from botfs.routers import fs
from botfs.schemas import FSMkdirRequest, FSWriteRequest
from botfs.services.file_ops import FileOps


@pytest.fixture
def ops(tmp_path):
    return FileOps(tmp_path)


def _status(call) -> int:
    with pytest.raises(HTTPException) as exc:
        call()
    return exc.value.status_code


def test_write_then_read_and_list(ops):
    resp = fs.write_fs_file(FSWriteRequest(path='notes/a.txt', content='hello'), ops=ops)
    assert resp.ok is True

    read = fs.read_fs_file(path='notes/a.txt', ops=ops)
    assert read.content == 'hello'
    assert read.size == 5

    listing = fs.list_fs(path='', recursive='true', ops=ops)
    assert listing.path == '.'
    assert [e.path for e in listing.entries] == ['notes', 'notes/a.txt']


def test_read_replaces_invalid_utf8(ops, tmp_path):
    (tmp_path / 'bin.dat').write_bytes(b'ok\xff')

    assert fs.read_fs_file(path='bin.dat', ops=ops).content == 'ok\ufffd'


def test_error_mapping(ops):
    fs.write_fs_file(FSWriteRequest(path='dir/a.txt', content='x'), ops=ops)

    assert _status(lambda: fs.list_fs(path='../../etc', recursive=None, ops=ops)) == 400
    assert _status(lambda: fs.read_fs_file(path='/etc/passwd', ops=ops)) == 400
    assert _status(lambda: fs.read_fs_file(path='a\x00b', ops=ops)) == 400
    assert _status(lambda: fs.write_fs_file(FSWriteRequest(path='a\x00b', content='x'), ops=ops)) == 400
    assert _status(lambda: fs.read_fs_file(path='dir', ops=ops)) == 400
    assert _status(lambda: fs.list_fs(path='dir/a.txt', recursive=None, ops=ops)) == 400
    assert _status(lambda: fs.stat_fs(path='missing', ops=ops)) == 404
    assert _status(lambda: fs.usage_fs(path='missing', ops=ops)) == 404
    assert _status(
        lambda: fs.write_fs_file(FSWriteRequest(path='dir/a.txt', content='y', overwrite=False), ops=ops)
    ) == 409
    assert _status(lambda: fs.mkdir_fs(FSMkdirRequest(path='dir', parents=False), ops=ops)) == 409
    assert _status(lambda: fs.delete_fs(path='dir', recursive=None, ops=ops)) == 400
    assert _status(lambda: fs.delete_fs(path='.', recursive='true', ops=ops)) == 400


def test_storage_failure_maps_to_500(monkeypatch, ops):
    from botfs.services.errors import StorageIOError

    def _fail(_rel):
        raise StorageIOError('Input/output error', 'a.txt')

    monkeypatch.setattr(ops, 'stat', _fail)

    assert _status(lambda: fs.stat_fs(path='a.txt', ops=ops)) == 500


def test_blank_write_and_mkdir_paths_are_rejected(ops):
    assert _status(lambda: fs.write_fs_file(FSWriteRequest(path='  ', content='x'), ops=ops)) == 400
    assert _status(lambda: fs.mkdir_fs(FSMkdirRequest(path=''), ops=ops)) == 400


def test_malformed_boolean_is_bad_request(ops):
    assert _status(lambda: fs.list_fs(path='', recursive='yes', ops=ops)) == 400
    assert _status(lambda: fs.delete_fs(path='a', recursive='maybe', ops=ops)) == 400


@pytest.mark.parametrize(
    ('raw', 'expected'),
    [(None, False), ('', False), ('1', True), ('T', True), ('True', True), ('0', False), ('FALSE', False)],
)
def test_parse_bool_query(raw, expected):
    assert deps.parse_bool_query(raw, 'recursive') is expected


def test_delete_recursive_and_stat(ops):
    fs.mkdir_fs(FSMkdirRequest(path='tree/leaf'), ops=ops)
    fs.write_fs_file(FSWriteRequest(path='tree/leaf/f.txt', content='x'), ops=ops)

    assert fs.stat_fs(path='tree', ops=ops).is_dir is True
    usage = fs.usage_fs(path='', ops=ops)
    assert (usage.file_count, usage.dir_count, usage.total_bytes) == (1, 2, 1)

    resp = fs.delete_fs(path='tree', recursive='1', ops=ops)
    assert resp.ok is True
    assert _status(lambda: fs.stat_fs(path='tree', ops=ops)) == 404


def test_upload_into_directory_uses_filename(ops, tmp_path):
    upload = UploadFile(file=BytesIO(b'payload'), filename='report.txt')

    resp = asyncio.run(fs.upload_fs(file=upload, form_path=None, query_path='inbox/', ops=ops))

    assert resp.data == {'path': 'inbox/report.txt'}
    assert (tmp_path / 'inbox' / 'report.txt').read_bytes() == b'payload'


def test_upload_form_path_wins_and_overwrites(ops, tmp_path):
    (tmp_path / 'final.txt').write_text('old', encoding='utf-8')
    upload = UploadFile(file=BytesIO(b'new'), filename='ignored.txt')

    asyncio.run(fs.upload_fs(file=upload, form_path='final.txt', query_path='elsewhere/', ops=ops))

    assert (tmp_path / 'final.txt').read_bytes() == b'new'
    assert not (tmp_path / 'elsewhere').exists()


def test_upload_traversal_is_rejected(ops):
    upload = UploadFile(file=BytesIO(b'x'), filename='../../evil.sh')

    with pytest.raises(HTTPException) as exc:
        asyncio.run(fs.upload_fs(file=upload, form_path=None, query_path=None, ops=ops))

    assert exc.value.status_code == 400


def test_get_bot_ops_provisions_root(monkeypatch, tmp_path):
    monkeypatch.setattr(deps.settings, 'data_root', str(tmp_path))

    ops = deps.get_bot_ops('bot1')

    assert ops.root == (tmp_path / 'bots' / 'bot1').resolve()
    assert ops.root.is_dir()


def test_get_bot_ops_rejects_bad_bot_id(monkeypatch, tmp_path):
    monkeypatch.setattr(deps.settings, 'data_root', str(tmp_path))

    assert _status(lambda: deps.get_bot_ops('../escape')) == 400
