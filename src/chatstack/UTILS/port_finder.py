"""
Utilities for checking whether host ports are already taken.
"""
from typing import Iterable, List, Set
import psutil


def listening_ports() -> Set[int]:
    """
    Returns every local TCP/UDP port with a listening or bound socket.
    """
    ports = set()
    for conn in psutil.net_connections(kind="inet"):
        if not conn.laddr:
            continue
        # UDP sockets have no LISTEN state; a bound address without a peer counts.
        if conn.status == psutil.CONN_LISTEN or (conn.status == psutil.CONN_NONE and not conn.raddr):
            ports.add(conn.laddr.port)
    return ports


def bound_ports(ports: Iterable[int]) -> List[int]:
    """
    Returns those of the given ports that something is already listening on.
    """
    taken = listening_ports()
    return [port for port in ports if port in taken]
