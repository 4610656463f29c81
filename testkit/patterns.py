import re

from testkit.colors import (
    GREEN,
    RED,
    RESET_COLOR,
    YELLOW,
)

# logging.BASIC_FORMAT is '%(levelname)s:%(name)s:%(message)s'
ERROR_LEVELS = ('ERROR', 'CRITICAL')
WARNING_LEVELS = ('WARNING',)


def _log_level_pattern(levels):
    return r'(?ms).*^(?:' + '|'.join(levels) + r'):[^:\n]*:.*'


def log_error_pattern():
    """ERROR or CRITICAL lines of logging.BASIC_FORMAT output, the format logging.basicConfig() installs."""
    return _log_level_pattern(ERROR_LEVELS)


def log_warning_pattern():
    """WARNING lines of logging.BASIC_FORMAT output."""
    return _log_level_pattern(WARNING_LEVELS)


def log_error_or_warning_pattern():
    """ERROR, CRITICAL or WARNING lines of logging.BASIC_FORMAT output."""
    return _log_level_pattern(ERROR_LEVELS + WARNING_LEVELS)


def matches(pattern, subject, flags=re.DOTALL):
    """True if all of subject matches pattern. `.` matches newlines unless flags say otherwise."""
    if isinstance(subject, bytes) and isinstance(pattern, str):
        pattern = pattern.encode()
    return re.fullmatch(pattern, subject, flags) is not None


def indent(s, levels=1):
    ind = '    ' * levels
    return '\n'.join(ind + x for x in s.split('\n'))


def match_feedback(title, pattern, subject):
    result = [
        f'{RED}{title}{RESET_COLOR}',
        '--- pattern ---',
        indent(f'{GREEN}{pattern!r}{RESET_COLOR}'),
        '--- subject ---',
        indent(f'{YELLOW}{subject!r}{RESET_COLOR}'),
    ]

    if isinstance(subject, bytes):
        subject = subject.decode(errors='replace')
    lines = subject.rstrip('\n').split('\n')
    if len(lines) > 1:
        result.append('--- subject lines ---')
        for number, line in enumerate(lines, start=1):
            result.append(indent(f'{number:>4}: {line}'))

    return '\n'.join(result)


def assert_matches(pattern, subject, flags=re.DOTALL):
    __tracebackhide__ = True
    if not matches(pattern, subject, flags):
        raise AssertionError(match_feedback('Subject does not match pattern', pattern, subject))


def assert_no_match(pattern, subject, flags=re.DOTALL):
    __tracebackhide__ = True
    if matches(pattern, subject, flags):
        raise AssertionError(match_feedback('Subject unexpectedly matches pattern', pattern, subject))
