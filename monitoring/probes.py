"""
============================================================================
PING MONITOR - ADDRESS RESOLUTION & REACHABILITY PROBES
============================================================================
Leaf components of the monitoring cycle.

AddressResolver     ← identifier → IP (dnspython, then the OS resolver)
ReachabilityProber  ← dispatches to the protocol checker
├── ICMPChecker     ← one echo request via ping3 (run in the executor)
└── TCPChecker      ← asyncio connect with a fixed timeout

A checker returns True (reachable) or False (confirmed unreachable, i.e.
the wait timed out). Anything else is a ProbeError. There is no UDP
checker: a connectionless probe cannot tell "closed" from "silent".
============================================================================
"""

import asyncio
import functools
import socket
import time
from typing import Optional

import dns.asyncresolver
import dns.exception
import dns.resolver
import ping3
from ping3.errors import PingError, Timeout as PingTimeout

from config.settings import MonitoringSettings
from database.models import Protocol
from exceptions import ConfigurationError, ProbeError, ResolutionError
from utils.logger import get_logger
from utils.validators import TargetValidator


logger = get_logger("Probes")

# Timeouts raise ping3.errors.Timeout instead of returning None, so they can
# be told apart from the other failures
ping3.EXCEPTIONS = True


# ============================================================================
# ADDRESS RESOLVER
# ============================================================================

class AddressResolver:
    """
    Turns a device identifier into the address to probe.

    Literal IPv4/IPv6 addresses are returned unchanged without touching
    the network. Hostnames are looked up with dnspython (A record first,
    AAAA when the name has no A record), applying the configured search
    domains. Names DNS does not know, such as hosts-file entries, are
    then asked of the operating system resolver.
    """

    def __init__(self, settings: MonitoringSettings):
        self.lifetime = settings.dns_timeout
        self._resolver: Optional[dns.asyncresolver.Resolver] = None

    def _get_resolver(self) -> dns.asyncresolver.Resolver:
        if self._resolver is None:
            resolver = dns.asyncresolver.Resolver()
            resolver.lifetime = self.lifetime
            self._resolver = resolver
        return self._resolver

    async def resolve(self, identifier: str) -> str:
        """
        Resolve *identifier* to an IP address.

        Raises
        ------
        ResolutionError
            The lookup failed for any reason.
        """
        identifier = identifier.strip()
        if TargetValidator.is_valid_ip(identifier):
            return identifier

        logger.debug(f"[DNS] Resolving {identifier}")
        start_time = time.perf_counter()

        try:
            address = await self._dns_lookup(identifier)

        except (
            dns.resolver.NXDOMAIN,
            dns.resolver.NoAnswer,
            dns.resolver.NoResolverConfiguration,
        ) as e:
            address = await self._system_lookup(identifier)
            if address is None:
                if isinstance(e, dns.resolver.NXDOMAIN):
                    message = f"Domain {identifier} does not exist (NXDOMAIN)"
                elif isinstance(e, dns.resolver.NoAnswer):
                    message = f"No A or AAAA record for {identifier}"
                else:
                    message = f"No nameserver configured to resolve {identifier}"
                raise ResolutionError(identifier, message, cause=e) from e
            logger.debug(f"[DNS] {identifier} answered by the system resolver")

        except dns.exception.Timeout as e:
            raise ResolutionError(
                identifier,
                f"DNS resolution for {identifier} timed out after {self.lifetime}s",
                cause=e,
            ) from e
        except dns.exception.DNSException as e:
            raise ResolutionError(identifier, cause=e) from e

        logger.debug(
            f"[DNS] {identifier} → {address} "
            f"in {time.perf_counter() - start_time:.3f}s"
        )
        return address

    async def _dns_lookup(self, identifier: str) -> str:
        resolver = self._get_resolver()
        try:
            answers = await resolver.resolve(identifier, "A", search=True)
        except dns.resolver.NoAnswer:
            answers = await resolver.resolve(identifier, "AAAA", search=True)
        return str(answers[0])

    async def _system_lookup(self, identifier: str) -> Optional[str]:
        """
        First address the OS resolver (hosts file, search list, mDNS)
        returns for *identifier*, IPv4 preferred, or None.
        """
        loop = asyncio.get_running_loop()
        try:
            infos = await asyncio.wait_for(
                loop.getaddrinfo(identifier, None, type=socket.SOCK_STREAM),
                timeout=self.lifetime,
            )
        except (OSError, asyncio.TimeoutError) as e:
            logger.debug(f"[DNS] System resolver has no address for {identifier}: {e}")
            return None

        addresses = sorted(infos, key=lambda info: info[0] != socket.AF_INET)
        return addresses[0][4][0] if addresses else None


# ============================================================================
# ICMP CHECKER
# ============================================================================

class ICMPChecker:
    """
    Sends one ICMP echo request and waits a bounded time for the reply.

    ping3 is blocking, so the call runs in the loop's default executor.
    Raw (or unprivileged datagram) ICMP sockets may need elevated
    permissions; a refused socket is reported as a ProbeError.
    """

    def __init__(self, timeout_ms: int):
        self.timeout = timeout_ms / 1000

    async def check(self, address: str) -> bool:
        loop = asyncio.get_running_loop()
        try:
            delay = await loop.run_in_executor(
                None,
                functools.partial(ping3.ping, address, timeout=self.timeout),
            )
        except PingTimeout:
            logger.debug(f"[ICMP] {address} → no reply within {self.timeout}s")
            return False
        except PingError as e:
            raise ProbeError(
                f"Error pinging {address}: {e}",
                address=address,
                protocol=Protocol.ICMP.value,
                cause=e,
            ) from e
        except OSError as e:
            raise ProbeError(
                f"Could not open ICMP socket to {address}: {e}",
                address=address,
                protocol=Protocol.ICMP.value,
                cause=e,
            ) from e

        if delay is None or delay is False:
            return False

        logger.debug(f"[ICMP] {address} → reply in {delay:.3f}s")
        return True


# ============================================================================
# TCP CHECKER
# ============================================================================

class TCPChecker:
    """
    Performs a raw TCP connect check; the connection is closed as soon as
    it is established.
    """

    def __init__(self, timeout_ms: int):
        self.timeout = timeout_ms / 1000

    async def check(self, address: str, port: int) -> bool:
        logger.debug(f"[TCP] Testing connectivity to {address}:{port}")
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(address, port),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.debug(f"[TCP] {address}:{port} → INACTIVE (timed out after {self.timeout}s)")
            return False
        except OSError as e:
            raise ProbeError(
                f"Error opening TCP socket to {address}:{port}: {e}",
                address=address,
                protocol=Protocol.TCP.value,
                port=port,
                cause=e,
            ) from e

        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass  # peer reset while closing; the connect already succeeded

        logger.debug(f"[TCP] {address}:{port} → ACTIVE")
        return True


# ============================================================================
# REACHABILITY PROBER
# ============================================================================

class ReachabilityProber:
    """
    Routes a probe to the checker for the device's protocol.
    """

    def __init__(self, settings: MonitoringSettings):
        self._icmp_checker = ICMPChecker(settings.icmp_timeout_ms)
        self._tcp_checker = TCPChecker(settings.tcp_timeout_ms)

    async def probe(
        self,
        address: str,
        protocol: Protocol,
        port: Optional[int] = None,
        device_id: Optional[int] = None,
    ) -> bool:
        """
        Returns
        -------
        bool
            True if reachable, False if confirmed unreachable.

        Raises
        ------
        ConfigurationError
            TCP probe requested without a port.
        ProbeError
            The probe mechanism failed, or the protocol is unsupported.
        """
        if protocol == Protocol.ICMP:
            return await self._icmp_checker.check(address)

        if protocol == Protocol.TCP:
            if port is None:
                raise ConfigurationError(
                    f"Device {device_id} missing port but protocol set to TCP",
                    config_key="port",
                    device_id=device_id,
                    recoverable=True,
                )
            return await self._tcp_checker.check(address, port)

        raise ProbeError(
            f"Unsupported protocol {protocol!r} for device {device_id}",
            address=address,
            protocol=str(protocol),
        )
