"""Unit tests for FileSession writes and key mutations."""

import io

import pytest

from mogclient.exceptions import (
    EmptyPathError,
    KeyExistsError,
    ReadOnlyError,
    SizeMismatchError,
    UnsupportedPathError,
    UploadError,
)
from mogclient.files import HTTPFile, NFSFile
from mogclient.session import FileSession, parse_destinations
from mogclient.types import BufferSource, Destination, PathSource, StreamSource

DEST1 = "http://10.0.0.1:7500/dev1/0/000/000/0000000003.fid"
DEST2 = "http://10.0.0.2:7500/dev2/0/000/000/0000000003.fid"


@pytest.fixture
def session(backend, cluster):
    backend.responses['create_open'] = {'fid': '3', 'devid': '1', 'path': DEST1}
    session = FileSession(backend, 'test')
    session.http = cluster.client()
    return session


def test_parse_destinations_single():
    assert parse_destinations({'fid': '3', 'devid': '1', 'path': DEST1}) == [
        Destination(devid='1', path=DEST1),
    ]


def test_parse_destinations_multi():
    res = {'fid': '3', 'dev_count': '2', 'devid_1': '1', 'path_1': DEST1,
           'devid_2': '2', 'path_2': DEST2}

    assert parse_destinations(res) == [
        Destination(devid='1', path=DEST1),
        Destination(devid='2', path=DEST2),
    ]


def test_store_content_uploads_and_commits(session, backend, cluster):
    assert session.store_content('mykey', 'normal', b'hello world') == 11

    assert cluster.content[DEST1] == b'hello world'
    assert backend.calls == [
        ('create_open', {'domain': 'test', 'klass': 'normal', 'key': 'mykey', 'multi_dest': 1}),
        ('create_close', {'fid': '3', 'devid': '1', 'domain': 'test', 'key': 'mykey',
                          'path': DEST1, 'size': 11}),
    ]


def test_multi_destination_writes_primary_only(session, backend, cluster):
    backend.responses['create_open'] = {
        'fid': '3', 'dev_count': '2', 'devid_1': '2', 'path_1': DEST2,
        'devid_2': '1', 'path_2': DEST1,
    }

    with session.new_file('mykey', 'normal') as mfp:
        assert isinstance(mfp, HTTPFile)
        assert len(mfp.dests) == 2
        mfp.write(b'abc')

    assert cluster.content == {DEST2: b'abc'}
    assert backend.calls[-1][1]['devid'] == '2'


@pytest.mark.parametrize('res', [
    {'fid': '3', 'devid': '1', 'path': ''},
    {'fid': '3', 'devid': '1'},
    {'fid': '3', 'dev_count': '0'},
    {'fid': '3', 'dev_count': '1', 'devid_1': '1', 'path_1': ''},
])
def test_empty_destination_path(session, backend, res):
    backend.responses['create_open'] = res

    with pytest.raises(EmptyPathError):
        session.new_file('mykey')

    assert backend.commands() == ['create_open']


def test_unsupported_scheme(session, backend):
    backend.responses['create_open'] = {'fid': '3', 'devid': '1', 'path': 'ftp://host/x.fid'}

    with pytest.raises(UnsupportedPathError):
        session.new_file('mykey')


def test_size_mismatch_fails_without_commit(session, backend, cluster):
    mfp = session.new_file('mykey', size_hint=10)
    mfp.write(b'short')

    with pytest.raises(SizeMismatchError) as excinfo:
        mfp.close()

    assert excinfo.value.expected == 10
    assert excinfo.value.actual == 5
    assert 'create_close' not in backend.commands()
    assert cluster.content == {}


def test_matching_size_hint_commits(session, backend):
    with session.new_file('mykey', size_hint=5) as mfp:
        mfp.write(b'12345')

    assert backend.commands() == ['create_open', 'create_close']


def test_exception_in_block_discards(session, backend, cluster):
    with pytest.raises(RuntimeError):
        with session.new_file('mykey') as mfp:
            mfp.write(b'partial')
            raise RuntimeError("caller failed")

    assert backend.commands() == ['create_open']
    assert cluster.content == {}


def test_rejected_upload_raises(session, backend):
    import httpx

    session.http = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(507)))

    with pytest.raises(UploadError):
        session.store_content('mykey', None, b'data')

    assert 'create_close' not in backend.commands()


def test_store_file_from_buffer(session, cluster):
    assert session.store_file('mykey', None, BufferSource(b'buffered')) == 8
    assert cluster.content[DEST1] == b'buffered'


def test_store_file_from_stream(session, cluster):
    data = b'x' * 40000
    assert session.store_file('mykey', None, StreamSource(io.BytesIO(data))) == 40000
    assert cluster.content[DEST1] == data


def test_store_file_small_path_is_copied(session, cluster, tmp_path):
    path = tmp_path / 'small.bin'
    path.write_bytes(b'small file')

    assert session.store_file('mykey', None, PathSource(path)) == 10
    assert cluster.content[DEST1] == b'small file'


def test_store_file_large_path_uses_bigfile(session, backend, cluster, tmp_path):
    data = bytes(range(256)) * 300
    path = tmp_path / 'large.bin'
    path.write_bytes(data)

    assert session.store_file('mykey', None, PathSource(str(path))) == len(data)
    assert cluster.content[DEST1] == data
    assert backend.calls[-1] == ('create_close', {
        'fid': '3', 'devid': '1', 'domain': 'test', 'key': 'mykey',
        'path': DEST1, 'size': len(data),
    })


def test_store_file_rejects_untagged_source(session):
    with pytest.raises(TypeError):
        session.store_file('mykey', None, b'raw bytes')


def test_nfs_destination(backend, tmp_path):
    backend.responses['create_open'] = {
        'fid': '3', 'devid': '1', 'path': '/dev1/0/000/000/0000000003.fid',
    }
    session = FileSession(backend, 'test', root=str(tmp_path))

    with session.new_file('mykey') as mfp:
        assert isinstance(mfp, NFSFile)
        mfp.write(b'on nfs')

    assert (tmp_path / 'dev1/0/000/000/0000000003.fid').read_bytes() == b'on nfs'
    assert backend.calls[-1][1]['path'] == '/dev1/0/000/000/0000000003.fid'
    assert backend.calls[-1][1]['size'] == 6


def test_nfs_discard_removes_partial_file(backend, tmp_path):
    backend.responses['create_open'] = {'fid': '3', 'devid': '1', 'path': '/dev1/x.fid'}
    session = FileSession(backend, 'test', root=str(tmp_path))

    with pytest.raises(ValueError):
        with session.new_file('mykey') as mfp:
            mfp.write(b'partial')
            raise ValueError("abort")

    assert not (tmp_path / 'dev1/x.fid').exists()
    assert backend.commands() == ['create_open']


def test_nfs_large_path_is_copied_whole(backend, tmp_path):
    backend.responses['create_open'] = {
        'fid': '3', 'devid': '1', 'path': '/dev1/0/000/000/0000000003.fid',
    }
    root = tmp_path / 'mnt'
    session = FileSession(backend, 'test', root=str(root))
    data = bytes(range(256)) * 300
    source = tmp_path / 'large.bin'
    source.write_bytes(data)

    assert session.store_file('mykey', None, PathSource(source)) == len(data)

    assert (root / 'dev1/0/000/000/0000000003.fid').read_bytes() == data
    assert backend.calls[-1] == ('create_close', {
        'fid': '3', 'devid': '1', 'domain': 'test', 'key': 'mykey',
        'path': '/dev1/0/000/000/0000000003.fid', 'size': len(data),
    })


def test_nfs_size_mismatch_removes_file(backend, tmp_path):
    backend.responses['create_open'] = {'fid': '3', 'devid': '1', 'path': '/dev1/x.fid'}
    session = FileSession(backend, 'test', root=str(tmp_path))

    mfp = session.new_file('mykey', size_hint=100)
    mfp.write(b'too short')

    with pytest.raises(SizeMismatchError):
        mfp.close()

    assert not (tmp_path / 'dev1/x.fid').exists()
    assert backend.commands() == ['create_open']


def test_tracker_errors_propagate(session, backend):
    backend.responses['create_open'] = KeyExistsError('key_exists', 'Key already exists')

    with pytest.raises(KeyExistsError):
        session.store_content('mykey', None, b'data')


def test_delete_rename_sleep_pass_through(session, backend):
    backend.responses['sleep'] = {}

    session.delete('a')
    session.rename('a', 'b')
    assert session.sleep(2) == {}

    assert backend.calls == [
        ('delete', {'domain': 'test', 'key': 'a'}),
        ('rename', {'domain': 'test', 'from_key': 'a', 'to_key': 'b'}),
        ('sleep', {'duration': 2}),
    ]


@pytest.mark.parametrize('call', [
    lambda s: s.new_file('k'),
    lambda s: s.store_content('k', None, b'data'),
    lambda s: s.store_file('k', None, BufferSource(b'data')),
    lambda s: s.store_file('k', None, StreamSource(io.BytesIO(b'data'))),
    lambda s: s.delete('k'),
    lambda s: s.rename('k', 'j'),
])
def test_readonly_rejects_mutations(backend, call):
    session = FileSession(backend, 'test', readonly=True)

    with pytest.raises(ReadOnlyError, match='readonly mogilefs'):
        call(session)

    assert backend.calls == []
