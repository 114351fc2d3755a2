"""
Unix domain socket subscribers connect to.

Functions:
    open_listener: Bind the relay socket, replacing a stale one
    close_listener: Close the socket and remove its file
"""

import contextlib
import logging
import os
import socket
import stat

logger = logging.getLogger(__name__)

DEFAULT_SOCKET_PATH = "/var/run/fowsr.sock"
# Subscribers run as other users (collectd, the uploader), so the socket is
# world read/writable. Anyone on the host can read the weather stream.
DEFAULT_SOCKET_MODE = 0o777
DEFAULT_BACKLOG = 16


class ListenerError(Exception):
    """The relay socket could not be created."""
    pass


def _remove_stale_socket(path: str) -> None:
    """Unlink a socket file left over from a previous run."""
    try:
        st = os.stat(path)
    except FileNotFoundError:
        return
    if not stat.S_ISSOCK(st.st_mode):
        raise ListenerError(f"{path} exists and is not a socket")

    probe = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        probe.connect(path)
    except FileNotFoundError:
        return
    except OSError as e:
        logger.info(f"Removing stale socket {path} ({e.strerror or e})")
        try:
            os.unlink(path)
        except OSError as unlink_error:
            raise ListenerError(
                f"Cannot remove stale socket {path}: {unlink_error}"
            ) from unlink_error
        return
    finally:
        probe.close()

    raise ListenerError(f"Another relay is already listening on {path}")


def open_listener(
    path: str = DEFAULT_SOCKET_PATH,
    mode: int = DEFAULT_SOCKET_MODE,
    backlog: int = DEFAULT_BACKLOG,
) -> socket.socket:
    """
    Create the non-blocking listening socket.

    Args:
        path: Filesystem path for the socket
        mode: Permission bits applied after bind
        backlog: listen() backlog

    Returns:
        Bound, listening, non-blocking socket

    Raises:
        ListenerError: If the socket cannot be created. The relay cannot
            do anything useful without it.
    """
    _remove_stale_socket(path)

    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        sock.bind(path)
        os.chmod(path, mode)
        sock.listen(backlog)
    except OSError as e:
        sock.close()
        raise ListenerError(f"Cannot listen on {path}: {e}") from e

    sock.setblocking(False)
    logger.info(f"Listening on {path} (mode {mode:o})")
    return sock


def close_listener(sock: socket.socket, path: str) -> None:
    sock.close()
    with contextlib.suppress(FileNotFoundError):
        os.unlink(path)
    logger.info(f"Closed listener {path}")
