"""
Generator fixtures. Nothing registers them: wrap them for your runner, e.g.
`capture_stderr = pytest.fixture(fixtures.capture_stderr)` in conftest.py.
"""


def temporary_file():
    from testkit.impl import TemporaryFile
    with TemporaryFile(prefix='testkit_') as f:
        yield f


def temporary_directory():
    from testkit.impl import TemporaryDirectory
    with TemporaryDirectory(prefix='testkit_') as d:
        yield d


def change_to_temp_dir():
    from testkit.impl import ChangeToTempDir
    with ChangeToTempDir(prefix='testkit_') as d:
        yield d


def env_var_saver():
    from testkit.impl import EnvVarSaver
    with EnvVarSaver() as saver:
        yield saver


def capture_stdout():
    """Everything written to descriptor 1 during the test. See CaptureFD."""
    from testkit.capture import CaptureFD
    with CaptureFD(1) as capture:
        yield capture


def capture_stderr():
    """Everything written to descriptor 2 during the test, log output included. See CaptureFD."""
    from testkit.capture import CaptureFD
    with CaptureFD(2) as capture:
        yield capture
