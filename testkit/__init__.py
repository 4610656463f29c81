import sys


__version__ = '0.1.0'

_orig_print = print


class Globals:
    def __init__(self):
        self.settings = None
        self.quiet = False
        self.output = []

    def reset(self):
        self.__init__()

    def get_log_without_colors(self):
        import re
        ansi_escape = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')
        return ansi_escape.sub('', ''.join([
            ' '.join(str(x) for x in args) + end
            for args, end, flush in self.output
        ]))


g = Globals()


def print(*args, end='\n', flush=False):
    g.output.append((args, end, flush))
    if g.quiet:
        return
    stream = sys.__stderr__
    if stream is None:
        return
    _orig_print(*args, end=end, flush=flush, file=stream)


from testkit.impl import (  # noqa: E402
    ChangeToTempDir,
    DescriptorError,
    EnvironmentVariableError,
    EnvVarSaver,
    FilesystemError,
    Scope,
    TemporaryDirectory,
    TemporaryFile,
    read_settings,
)
from testkit.capture import CaptureFD  # noqa: E402
from testkit.patterns import (  # noqa: E402
    assert_matches,
    assert_no_match,
    log_error_or_warning_pattern,
    log_error_pattern,
    log_warning_pattern,
    matches,
)
