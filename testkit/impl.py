import errno
import os
import shutil
from enum import Enum
from os.path import abspath
from tempfile import (
    gettempdir,
    mkdtemp,
    mkstemp,
)

import testkit
from testkit.colors import (
    RESET_COLOR,
    YELLOW,
)


class FilesystemError(OSError):
    pass


class DescriptorError(OSError):
    pass


class EnvironmentVariableError(OSError):
    pass


def wrap_os_error(error_class, e, message, filename=None):
    if filename is None:
        filename = e.filename
    return error_class(e.errno, f'{message}: {e.strerror}', filename)


def report_cleanup_failure(action, target, e):
    testkit.print(f'{YELLOW}testkit: failed to {action} {target}: {e}{RESET_COLOR}')


def read_settings():
    """
    Load the [testkit] section of setup.cfg in the current directory:

    temp_root: parent directory for temporary files and directories
    keep_temp_dirs: keep temporary directories after their scope ends
    quiet: do not echo diagnostics to stderr
    """
    from configparser import ConfigParser
    settings = dict(
        temp_root=None,
        keep_temp_dirs=False,
    )
    config_parser = ConfigParser()
    config_parser.read('setup.cfg')
    try:
        section = config_parser['testkit']
    except KeyError:
        section = None

    if section is not None:
        try:
            settings['temp_root'] = section.get('temp_root') or None
            settings['keep_temp_dirs'] = section.getboolean('keep_temp_dirs', fallback=False)
            if 'quiet' in section:
                testkit.g.quiet = section.getboolean('quiet')
        except ValueError as e:
            testkit.print(f'{YELLOW}testkit: ignoring invalid [testkit] settings in setup.cfg: {e}{RESET_COLOR}')

    testkit.g.settings = settings
    return settings


def get_settings():
    if testkit.g.settings is None:
        read_settings()
    return testkit.g.settings


def default_temp_root():
    return get_settings()['temp_root'] or gettempdir()


class TemporaryFile:
    """
    A uniquely named file, created on construction and removed by close().

    The name is generated by mkstemp: prefix plus a random suffix, retried
    on collision, so concurrent creation in the same parent never clashes.
    """

    def __init__(self, prefix='', parent=None):
        if parent is None:
            parent = default_temp_root()
        try:
            fd, path = mkstemp(prefix=prefix, dir=parent)
        except OSError as e:
            raise wrap_os_error(FilesystemError, e, 'Could not create temporary file', filename=parent) from e

        self.fd = fd
        self.path = abspath(path)
        self.closed = False

    def __repr__(self):
        return f'<TemporaryFile path={self.path!r} fd={self.fd}>'

    def __enter__(self):
        return self

    def __exit__(self, *tp):
        self.close()

    def close(self):
        if self.closed:
            return
        self.closed = True

        try:
            os.close(self.fd)
        except OSError as e:
            # The owner may have closed the descriptor already
            if e.errno != errno.EBADF:
                report_cleanup_failure('close', self.path, e)

        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass
        except OSError as e:
            report_cleanup_failure('remove', self.path, e)


class Scope(Enum):
    PERMANENT = 'permanent'
    DELETE_ON_DESTRUCTION = 'delete_on_destruction'


class TemporaryDirectory:
    def __init__(self, prefix='', parent=None, scope=Scope.DELETE_ON_DESTRUCTION):
        assert isinstance(scope, Scope), f'scope must be a Scope, got {scope!r}'
        settings = get_settings()
        if parent is None:
            parent = default_temp_root()
        if settings['keep_temp_dirs']:
            scope = Scope.PERMANENT

        try:
            path = mkdtemp(prefix=prefix, dir=parent)
        except OSError as e:
            raise wrap_os_error(FilesystemError, e, 'Could not create temporary directory', filename=parent) from e

        self.path = abspath(path)
        self.scope = scope
        self.cleaned_up = False

    def __repr__(self):
        return f'<TemporaryDirectory path={self.path!r} scope={self.scope.value}>'

    def __enter__(self):
        return self

    def __exit__(self, *tp):
        self.cleanup()

    def cleanup(self):
        if self.cleaned_up:
            return
        self.cleaned_up = True

        if self.scope is not Scope.DELETE_ON_DESTRUCTION:
            return

        try:
            shutil.rmtree(self.path)
        except FileNotFoundError:
            pass
        except OSError as e:
            report_cleanup_failure('remove', self.path, e)


class ChangeToTempDir:
    def __init__(self, prefix='', parent=None):
        self.previous = os.getcwd()
        self.directory = TemporaryDirectory(prefix=prefix, parent=parent)
        try:
            os.chdir(self.directory.path)
        except OSError as e:
            self.directory.cleanup()
            raise wrap_os_error(FilesystemError, e, 'Could not change directory', filename=self.directory.path) from e
        self.restored = False

    @property
    def path(self):
        return self.directory.path

    def __enter__(self):
        return self

    def __exit__(self, *tp):
        self.restore()

    def restore(self):
        if self.restored:
            return
        self.restored = True

        try:
            os.chdir(self.previous)
        except OSError as e:
            report_cleanup_failure('change back to', self.previous, e)

        self.directory.cleanup()


def _environ():
    # environb shares its storage with environ, but keeps values byte exact
    if os.supports_bytes_environ:
        return os.environb
    return os.environ


class EnvVarSaver:
    """
    Snapshot the whole environment and put it back on restore().

    Every saver restores to what it saw when it was created, so nested
    savers have to be restored in reverse order of creation.
    """

    def __init__(self):
        self.snapshot = dict(_environ())
        self.restored = False

    def __enter__(self):
        return self

    def __exit__(self, *tp):
        self.restore()

    def set(self, name, value):
        try:
            os.environ[name] = value
        except ValueError as e:
            raise EnvironmentVariableError(errno.EINVAL, f'Could not set environment variable: {e}', name) from e
        except OSError as e:
            raise wrap_os_error(EnvironmentVariableError, e, 'Could not set environment variable', filename=name) from e

    def unset(self, name):
        try:
            del os.environ[name]
        except KeyError:
            pass
        except OSError as e:
            raise wrap_os_error(EnvironmentVariableError, e, 'Could not unset environment variable', filename=name) from e

    def restore(self):
        if self.restored:
            return
        self.restored = True

        environ = _environ()
        for name in list(environ):
            if name not in self.snapshot:
                try:
                    del environ[name]
                except (OSError, ValueError) as e:
                    report_cleanup_failure('unset environment variable', name, e)

        for name, value in self.snapshot.items():
            if environ.get(name) != value:
                try:
                    environ[name] = value
                except (OSError, ValueError) as e:
                    report_cleanup_failure('restore environment variable', name, e)
