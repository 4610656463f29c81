import errno
import os
import shutil
import unittest
from concurrent.futures import ThreadPoolExecutor
from os.path import (
    basename,
    dirname,
    exists,
    isabs,
    isdir,
    join,
    realpath,
)

from testkit import g
from testkit.impl import (
    ChangeToTempDir,
    FilesystemError,
    Scope,
    TemporaryDirectory,
    TemporaryFile,
)


class TemporaryFileTests(unittest.TestCase):
    def setUp(self):
        g.reset()
        g.quiet = True

    def tearDown(self):
        g.reset()

    def test_simple(self):
        with TemporaryFile() as f:
            assert f.path
            assert isabs(f.path)
            assert exists(f.path)
            fd = f.fd
            assert fd >= 0
            assert os.lseek(fd, 0, os.SEEK_CUR) == 0
            assert os.write(fd, b'x') == 1
            path = f.path

        assert not exists(path)
        # The descriptor must have been closed. Nothing else in this process
        # opens files in the meantime.
        with self.assertRaises(OSError) as cm:
            os.write(fd, b'x')
        assert cm.exception.errno == errno.EBADF

    def test_prefix(self):
        with TemporaryFile('Foo') as f:
            assert isabs(f.path)
            assert basename(f.path).startswith('Foo')

    def test_parent(self):
        with TemporaryDirectory() as d:
            with TemporaryFile('Foo', d.path) as f:
                assert dirname(f.path) == d.path
                assert basename(f.path).startswith('Foo')

    def test_relative_parent(self):
        with ChangeToTempDir():
            with TemporaryFile('Foo', '.') as f:
                assert isabs(f.path)
                assert dirname(f.path) == os.getcwd()

    def test_no_such_path(self):
        with self.assertRaises(FilesystemError) as cm:
            TemporaryFile('', '/no/such/path')
        assert cm.exception.errno == errno.ENOENT
        assert cm.exception.filename == '/no/such/path'
        assert isinstance(cm.exception.__cause__, FileNotFoundError)

    def test_parent_is_a_file(self):
        with TemporaryFile() as f:
            with self.assertRaises(FilesystemError) as cm:
                TemporaryFile('', f.path)
            assert cm.exception.errno == errno.ENOTDIR

    def test_close_is_idempotent(self):
        f = TemporaryFile()
        f.close()
        f.close()
        assert f.closed
        assert not exists(f.path)
        assert g.output == []

    def test_descriptor_closed_by_owner(self):
        with TemporaryFile() as f:
            os.close(f.fd)
        assert not exists(f.path)
        assert g.output == []

    def test_file_removed_by_owner(self):
        with TemporaryFile() as f:
            os.unlink(f.path)
        assert g.output == []

    def test_unique_names(self):
        with TemporaryDirectory() as d:
            with ThreadPoolExecutor(max_workers=8) as pool:
                files = list(pool.map(lambda _: TemporaryFile('same', d.path), range(64)))
            try:
                assert len({f.path for f in files}) == 64
                assert len(os.listdir(d.path)) == 64
            finally:
                for f in files:
                    f.close()
            assert os.listdir(d.path) == []


class TemporaryDirectoryTests(unittest.TestCase):
    def setUp(self):
        g.reset()
        g.quiet = True

    def tearDown(self):
        g.reset()

    def check_scope(self, scope):
        with TemporaryDirectory('', None, scope) as d:
            path = d.path
            assert path
            assert isabs(path)
            assert isdir(path)

            with open(join(path, 'bar'), 'w') as f:
                f.write('bar')
            os.mkdir(join(path, 'sub'))

            with TemporaryFile('Foo', d.path) as f:
                assert dirname(f.path) == d.path

        return path

    def test_permanent(self):
        path = self.check_scope(Scope.PERMANENT)
        try:
            assert isdir(path)
            assert exists(join(path, 'bar'))
        finally:
            shutil.rmtree(path)

    def test_delete_on_destruction(self):
        path = self.check_scope(Scope.DELETE_ON_DESTRUCTION)
        assert not exists(path)

    def test_default_scope(self):
        d = TemporaryDirectory()
        assert d.scope is Scope.DELETE_ON_DESTRUCTION
        d.cleanup()
        d.cleanup()
        assert not exists(d.path)
        assert g.output == []

    def test_prefix_and_parent(self):
        with TemporaryDirectory() as parent:
            with TemporaryDirectory('Foo', parent.path) as d:
                assert dirname(d.path) == parent.path
                assert basename(d.path).startswith('Foo')

    def test_no_such_path(self):
        with self.assertRaises(FilesystemError) as cm:
            TemporaryDirectory('', '/no/such/path')
        assert cm.exception.errno == errno.ENOENT

    def test_removed_by_owner(self):
        with TemporaryDirectory() as d:
            shutil.rmtree(d.path)
        assert g.output == []

    def test_unique_names(self):
        with TemporaryDirectory() as parent:
            with ThreadPoolExecutor(max_workers=8) as pool:
                dirs = list(pool.map(lambda _: TemporaryDirectory('same', parent.path), range(32)))
            assert len({d.path for d in dirs}) == 32
            for d in dirs:
                d.cleanup()
            assert os.listdir(parent.path) == []


class ChangeToTempDirTests(unittest.TestCase):
    def setUp(self):
        g.reset()
        g.quiet = True

    def tearDown(self):
        g.reset()

    def test_change_dir(self):
        pwd1 = os.getcwd()
        with ChangeToTempDir() as d:
            assert os.getcwd() != pwd1
            assert realpath(os.getcwd()) == realpath(d.path)
            path = d.path
        assert os.getcwd() == pwd1
        assert not exists(path)

    def test_restores_on_exception(self):
        pwd1 = os.getcwd()
        with self.assertRaises(RuntimeError):
            with ChangeToTempDir():
                raise RuntimeError('boom')
        assert os.getcwd() == pwd1

    def test_restores_when_directory_is_already_gone(self):
        pwd1 = os.getcwd()
        with ChangeToTempDir() as d:
            shutil.rmtree(d.path)
        assert os.getcwd() == pwd1
        assert g.output == []

    def test_nested(self):
        pwd1 = os.getcwd()
        with ChangeToTempDir() as outer:
            with ChangeToTempDir() as inner:
                assert realpath(os.getcwd()) == realpath(inner.path)
            assert realpath(os.getcwd()) == realpath(outer.path)
        assert os.getcwd() == pwd1

    def test_bad_parent(self):
        pwd1 = os.getcwd()
        with self.assertRaises(FilesystemError):
            ChangeToTempDir(parent='/no/such/path')
        assert os.getcwd() == pwd1
