"""A TCP listening socket that can be handed off exactly once."""

from __future__ import annotations

import socket
import threading


class ListenerHandedOffError(RuntimeError):
    """Raised when the listener has already been obtained or closed."""


def _format_address(sockname: tuple) -> str:
    host, port = sockname[0], sockname[1]
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


class ListenerHolder:
    """Holds an open TCP listener until one caller obtains it."""

    def __init__(self, sock: socket.socket) -> None:
        sockname = sock.getsockname()
        self._number: int = sockname[1]
        self._addr: str = _format_address(sockname)
        self._listener: socket.socket | None = sock
        self._lock = threading.Lock()

    def obtain(self) -> socket.socket:
        """Hand off the listener; every later call raises ListenerHandedOffError."""
        with self._lock:
            listener, self._listener = self._listener, None
        if listener is None:
            raise ListenerHandedOffError(
                f"cannot obtain listener for {self._number} because already handed off"
            )
        return listener

    @property
    def number(self) -> int:
        """The bound port number."""
        return self._number

    @property
    def addr_string(self) -> str:
        """The address the listener serves on, as host:port."""
        return self._addr

    def close(self) -> None:
        """Close the listener if it has not been handed off."""
        with self._lock:
            listener, self._listener = self._listener, None
        if listener is not None:
            listener.close()

    def __enter__(self) -> "ListenerHolder":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def new_from_port_number(port_number: int) -> ListenerHolder:
    """Open a TCP listener on every interface at the given port (0 picks a free one)."""
    if socket.has_dualstack_ipv6():
        try:
            sock = socket.create_server(
                ("::", port_number), family=socket.AF_INET6, dualstack_ipv6=True
            )
        except OSError:
            sock = socket.create_server(("", port_number))
    else:
        sock = socket.create_server(("", port_number))
    return ListenerHolder(sock)


def must_listen() -> ListenerHolder:
    """Open a listener on a free port chosen by the system."""
    return new_from_port_number(0)