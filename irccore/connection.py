import asyncio


class AioFactory:
    """
    A class for creating asyncio connections to a server.

    To create a simple connection:

    .. code-block:: python

       server_address = ('localhost', 6667)
       await AioFactory()(protocol_instance, server_address, timeout=30)

    To create an IPv6 connection:

    .. code-block:: python

       AioFactory(family=socket.AF_INET6)(protocol_instance, server_address)

    Note that AioFactory doesn't save the state of the transport itself.
    The caller must do that, as necessary. As a result, the factory may be
    re-used to create new connections with the same settings.

    A timeout raises :class:`asyncio.TimeoutError`; the half-open socket
    is closed before the error propagates, as it is when the awaiting
    task is cancelled.
    """

    def __init__(self, **kwargs):
        self.connection_args = kwargs

    async def connect(self, protocol_instance, server_address, timeout=None):
        loop = protocol_instance.loop
        connection = loop.create_connection(
            lambda: protocol_instance, *server_address, **self.connection_args
        )
        return await asyncio.wait_for(connection, timeout)

    __call__ = connect
