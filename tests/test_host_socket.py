import asyncio
import socket as pysocket
from pathlib import Path

import pytest

from intarvm.errors import SerialError
from intarvm.host_socket import HostSocket, connect_host_socket


def test_tcp_chardev_arg():
    sock = HostSocket.tcp(4444)
    assert sock.chardev_arg("agent") == (
        "socket,id=agent,host=127.0.0.1,port=4444,server=on,wait=off"
    )


def test_tcp_qmp_arg():
    assert HostSocket.tcp(4444).qmp_arg() == "tcp:127.0.0.1:4444,server,nowait"


def test_unix_args_use_path():
    path = Path("/run/intar/web-qmp.sock")
    sock = HostSocket.unix(path)
    assert sock.chardev_arg("actions") == (
        f"socket,id=actions,path={path},server=on,wait=off"
    )
    assert sock.qmp_arg() == f"unix:{path},server,nowait"


def test_cleanup_path():
    path = Path("/run/intar/web-serial.sock")
    assert HostSocket.unix(path).cleanup_path() == path
    assert HostSocket.tcp(5555).cleanup_path() is None


def test_needs_exactly_one_endpoint():
    with pytest.raises(ValueError):
        HostSocket()
    with pytest.raises(ValueError):
        HostSocket(path=Path("/x"), address=("127.0.0.1", 1))


def test_equal_sockets_compare_equal():
    assert HostSocket.tcp(1234) == HostSocket.tcp(1234)
    assert HostSocket.tcp(1234).address == ("127.0.0.1", 1234)


@pytest.mark.asyncio
async def test_tcp_connect_round_trip():
    async def handle(reader, writer):
        data = await reader.readline()
        writer.write(data.upper())
        await writer.drain()
        writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    async with server:
        reader, writer = await connect_host_socket(HostSocket.tcp(port))
        writer.write(b"ping\n")
        await writer.drain()
        assert await reader.readline() == b"PING\n"
        writer.close()
        await writer.wait_closed()


@pytest.mark.asyncio
async def test_tcp_connect_refused_raises_serial_error():
    probe = pysocket.socket(pysocket.AF_INET, pysocket.SOCK_STREAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    with pytest.raises(SerialError) as info:
        await connect_host_socket(HostSocket.tcp(port))
    assert "Failed to connect to socket" in str(info.value)


@pytest.mark.asyncio
async def test_unix_connect_missing_path_raises_serial_error(tmp_path):
    with pytest.raises(SerialError):
        await connect_host_socket(HostSocket.unix(tmp_path / "missing.sock"))