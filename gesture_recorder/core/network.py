"""Network precondition for uploads.

Uploads only run on an unmetered link with full connectivity. The state is
read from NetworkManager through ``nmcli``::

    $ nmcli -t -f CONNECTIVITY,METERED general
    full:no (guessed)
"""

import subprocess
from dataclasses import dataclass
from typing import Optional

from loguru import logger

NMCLI_COMMAND = ['nmcli', '-t', '-f', 'CONNECTIVITY,METERED', 'general']


@dataclass(frozen=True)
class NetworkStatus:
    connectivity: str
    metered: Optional[bool]

    @property
    def online(self) -> bool:
        return self.connectivity == 'full'


def parse_nmcli_general(output: str) -> NetworkStatus:
    """Parse the terse ``CONNECTIVITY:METERED`` line printed by nmcli.

    ``METERED`` values look like ``yes``, ``no``, ``yes (guessed)``,
    ``no (guessed)`` or ``unknown``.
    """
    line = output.strip().splitlines()[0] if output.strip() else ''
    connectivity, _, metered = line.partition(':')
    metered = metered.strip().lower()
    if metered.startswith('yes'):
        metered_flag: Optional[bool] = True
    elif metered.startswith('no'):
        metered_flag = False
    else:
        metered_flag = None
    return NetworkStatus(connectivity=connectivity.strip().lower(), metered=metered_flag)


def read_network_status(timeout: float = 5.0) -> Optional[NetworkStatus]:
    """Query NetworkManager; ``None`` when nmcli is missing or fails."""
    try:
        result = subprocess.run(
            NMCLI_COMMAND, check=True, capture_output=True, text=True, timeout=timeout,
        )
    except FileNotFoundError:
        logger.debug('nmcli not found, network status unknown')
        return None
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired) as e:
        logger.debug(f'nmcli failed: {e}')
        return None
    return parse_nmcli_general(result.stdout)


class NetworkPrecondition:
    """Callable returning ``True`` when uploads may run.

    Args:
        require_unmetered: Also require the active connection to be unmetered.
        assume_unmetered: Answer used when the network state cannot be read.
    """

    def __init__(self, require_unmetered: bool = True, assume_unmetered: bool = False) -> None:
        self.require_unmetered = require_unmetered
        self.assume_unmetered = assume_unmetered

    def __call__(self) -> bool:
        status = read_network_status()
        if status is None:
            return self.assume_unmetered
        if not status.online:
            return False
        if not self.require_unmetered:
            return True
        if status.metered is None:
            return self.assume_unmetered
        return not status.metered

    def describe(self) -> str:
        """Human-readable summary for the ``status`` command."""
        status = read_network_status()
        if status is None:
            return 'unknown (nmcli unavailable)'
        metered = {True: 'metered', False: 'unmetered', None: 'metering unknown'}[status.metered]
        return f'{status.connectivity}, {metered}'
