"""
Capture everything written to a file descriptor.

CaptureFD points a descriptor (typically 2, where logging ends up) at a
temporary file for the duration of a scope:

    with CaptureFD(2) as stderr:
        logging.error('Uh-oh')
        assert_matches(log_error_pattern(), stderr.read_incremental())

logging.error() installs the default `LEVEL:name:message` format on first use;
a bare logger without handlers prints only the message.

On exit the descriptor points back at whatever it referred to before, so
captures nest as long as they are released in reverse order of creation.
Descriptors are process wide: do not write to a captured descriptor from
other threads while the capture is being created or released.
"""
import codecs
import os
import sys

from testkit.impl import (
    DescriptorError,
    FilesystemError,
    TemporaryFile,
    report_cleanup_failure,
    wrap_os_error,
)

READ_CHUNK_SIZE = 64 * 1024


def flush_streams_for(fd):
    """Flush the Python level streams that buffer writes to fd."""
    for stream in (sys.stdout, sys.stderr, sys.__stdout__, sys.__stderr__):
        if stream is None:
            continue
        try:
            if stream.fileno() == fd:
                stream.flush()
        except (AttributeError, OSError, ValueError):
            # replaced by something without a real descriptor, or closed
            continue


class CaptureFD:
    def __init__(self, fd, chunk_callback=None, encoding='utf-8', prefix='testkit_capture_', parent=None):
        """
        :param fd: the descriptor number to capture
        :param chunk_callback: called with the result of every read_incremental()
        :param encoding: decode captured bytes with this codec, or return bytes if None
        :param prefix: name prefix of the backing file
        :param parent: directory of the backing file
        """
        self.fd = fd
        self.chunk_callback = chunk_callback
        self.encoding = encoding
        self.read_offset = 0
        self.released = False
        if encoding is None:
            self._decoder = None
        else:
            self._decoder = codecs.getincrementaldecoder(encoding)(errors='replace')

        # Anything still buffered belongs to the original destination
        flush_streams_for(fd)

        try:
            self.inheritable = os.get_inheritable(fd)
            self.saved_fd = os.dup(fd)
        except OSError as e:
            raise wrap_os_error(DescriptorError, e, f'Could not duplicate descriptor {fd}') from e

        try:
            self.file = TemporaryFile(prefix=prefix, parent=parent)
        except FilesystemError:
            os.close(self.saved_fd)
            raise

        try:
            os.dup2(self.file.fd, fd, inheritable=self.inheritable)
        except OSError as e:
            os.close(self.saved_fd)
            self.file.close()
            raise wrap_os_error(DescriptorError, e, f'Could not redirect descriptor {fd}') from e

    def __repr__(self):
        state = 'released' if self.released else f'offset={self.read_offset}'
        return f'<CaptureFD fd={self.fd} {state}>'

    def __enter__(self):
        return self

    def __exit__(self, *tp):
        self.release()

    def _check_alive(self):
        if self.released:
            raise ValueError(f'Capture of descriptor {self.fd} has already been released')

    def _read_from(self, offset):
        flush_streams_for(self.fd)
        chunks = []
        while True:
            chunk = os.pread(self.file.fd, READ_CHUNK_SIZE, offset)
            if not chunk:
                break
            chunks.append(chunk)
            offset += len(chunk)
        return b''.join(chunks)

    def _has_unread(self):
        flush_streams_for(self.fd)
        return os.fstat(self.file.fd).st_size > self.read_offset

    def _has_undecoded(self):
        return self._decoder is not None and self._decoder.getstate()[0] != b''

    def read(self):
        """
        Everything captured so far. Does not move the incremental read offset.

        An incomplete multi-byte sequence at the very end is left out, the
        same way read_incremental() holds it back, until the rest arrives.
        """
        self._check_alive()
        data = self._read_from(0)
        if self.encoding is None:
            return data
        return codecs.getincrementaldecoder(self.encoding)(errors='replace').decode(data)

    def read_incremental(self):
        """
        Everything captured since the previous call, or since the capture
        started. The chunk callback, if any, gets the same value.
        """
        self._check_alive()
        return self._read_incremental(final=False)

    def _read_incremental(self, final):
        data = self._read_from(self.read_offset)
        self.read_offset += len(data)

        if self._decoder is None:
            chunk = data
        else:
            # incomplete multi-byte sequences are held back until the rest arrives
            chunk = self._decoder.decode(data, final=final)

        if self.chunk_callback is not None:
            self.chunk_callback(chunk)
        return chunk

    def release(self):
        """Point the descriptor back where it was. Safe to call more than once."""
        if self.released:
            return

        try:
            # The callback gets to see the tail nobody read yet, cut off characters included
            if self.chunk_callback is not None and (self._has_unread() or self._has_undecoded()):
                self._read_incremental(final=True)
        finally:
            self.released = True
            flush_streams_for(self.fd)

            try:
                os.dup2(self.saved_fd, self.fd, inheritable=self.inheritable)
            except OSError as e:
                report_cleanup_failure('restore descriptor', self.fd, e)

            try:
                os.close(self.saved_fd)
            except OSError as e:
                report_cleanup_failure('close saved descriptor', self.saved_fd, e)

            self.file.close()
